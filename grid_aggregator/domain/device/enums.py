from enum import Enum


class DeviceStatus(str, Enum):
    ONLINE = "Online"
    OFFLINE = "Offline"
