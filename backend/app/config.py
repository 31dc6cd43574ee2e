from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="FrameSync", description="Human readable service name")
    environment: str = Field(default="development", description="Deployment environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root logger level")

    cors_origins: Annotated[List[AnyHttpUrl], NoDecode] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://localhost:5500",
            "http://127.0.0.1:5500",
        ],
        description="List of allowed CORS origins",
    )
    cors_allow_origin_regex: str | None = Field(
        default=None,
        description="Optional regular expression that matches allowed CORS origins",
    )

    database_url: str = Field(
        default="sqlite+pysqlite:///./framesync.db",
        description="SQLAlchemy URL of the relational store backing identities and stats",
    )
    database_auto_create: bool = Field(
        default=True,
        description="Create missing tables on startup",
    )

    jwt_secret_key: str = Field(
        default="change-me-to-a-long-random-secret-value",
        description="Secret used to sign and verify access tokens",
    )
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24)

    websocket_keepalive_timeout_seconds: float = Field(
        default=30,
        description="Idle time after which the server checks whether to ping the client.",
    )
    websocket_keepalive_ping_interval_seconds: float = Field(
        default=25,
        description="Minimum delay between two keepalive pings on an idle socket.",
    )
    websocket_max_message_bytes: int = Field(
        default=64 * 1024,
        description="Largest inbound websocket frame accepted by the party gateway.",
    )

    store_timeout_seconds: float = Field(
        default=2.0,
        description="Upper bound for every persistence call made from a realtime handler.",
    )
    drift_pulse_interval_seconds: float = Field(
        default=10.0,
        description="How often room hosts are asked to rebroadcast their playback position.",
    )
    enforce_host_authority: bool = Field(
        default=False,
        description="Drop playback events that do not come from the flagged host of the room.",
    )
    public_room_default_capacity: int = Field(
        default=8,
        description="Capacity advertised for public rooms created without a valid capacity.",
    )

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Any):  # type: ignore[override]
        if v in (None, "", Ellipsis):
            return v
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalise_log_level(cls, value: Any) -> str:
        if not value:
            return "INFO"
        return str(value).strip().upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()
