import hashlib
import time
from urllib.parse import urlparse


def generate_signature(path: str, token: str, timestamp: str) -> str:
    """MD5(path + token + timestamp) as lowercase hex, as verified by EnergyGrid."""
    for name, value in (("path", path), ("token", token), ("timestamp", timestamp)):
        if not isinstance(value, str):
            raise TypeError(f"{name} must be str, got {type(value).__name__}")

    data = f"{path}{token}{timestamp}"
    return hashlib.md5(data.encode("utf-8")).hexdigest()


def request_path(api_url: str) -> str:
    return urlparse(api_url).path or "/"


def current_timestamp_ms() -> int:
    return time.time_ns() // 1_000_000
