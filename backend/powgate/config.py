from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="POW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Listener
    host: str = "127.0.0.1"
    port: int = Field(default=8081, ge=0, le=65535)

    # Proof of Work
    bits: int = Field(default=24, ge=1, le=255)  # leading zero bits, ~seconds on a modern CPU

    # Limits
    max_line_bytes: int = Field(default=4096, gt=0)

    # Client
    client_timeout_seconds: float = 30.0
    solve_timeout_seconds: float | None = None

    # Logging
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept log levels in any case."""
        if isinstance(v, str):
            return v.strip().upper()
        return v


settings = Settings()
