from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    API_URL: str = Field(
        "http://localhost:3000/device/real/query",
        description="EnergyGrid query endpoint",
    )
    API_TOKEN: str = Field(
        "interview_token_123", description="Shared secret used for request signing"
    )

    RATE_LIMIT_MS: int = Field(1000, description="Minimum gap between requests")
    BATCH_SIZE: int = Field(10, description="Max devices per request")
    MAX_RETRIES: int = 3
    RETRY_DELAY_MS: int = 2000
    REQUEST_TIMEOUT: float = 10.0

    DEVICE_COUNT: int = 500
    SERIAL_PREFIX: str = "SN"
    LOG_DIR: str = "logs"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @field_validator("API_URL")
    @classmethod
    def validate_api_url(cls, value: str) -> str:
        parsed = urlparse(value.strip())
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError("API_URL must be an absolute http(s) URL")
        return value.strip()

    @field_validator("BATCH_SIZE", "DEVICE_COUNT")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("value must be >= 1")
        return value

    @field_validator("RATE_LIMIT_MS", "MAX_RETRIES", "RETRY_DELAY_MS")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("value must be >= 0")
        return value


settings = Settings()
