from datetime import datetime
from typing import List, Union

from pydantic import BaseModel, ConfigDict, field_validator

from grid_aggregator.domain.device.enums import DeviceStatus


class DeviceReading(BaseModel):
    model_config = ConfigDict(frozen=True)

    sn: str
    power: str
    status: DeviceStatus
    last_updated: Union[datetime, str]

    @field_validator("sn")
    @classmethod
    def validate_sn(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("sn must not be empty")
        return normalized


class DeviceReadingsResponse(BaseModel):
    data: List[DeviceReading]
