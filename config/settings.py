"""
Centralized Settings Module - Environment-based configuration

Uses Pydantic BaseSettings for type-safe configuration management.
Settings are resolved once at an entry point (CLI, API factory) and passed
explicitly into every component.
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator
from typing import List, Optional
from functools import lru_cache


class DatabaseSettings(BaseSettings):
    """Relational store configuration."""

    url: str = Field(
        default="sqlite:///./data/racing.db",
        description="SQLAlchemy database URL (sqlite:/// or postgresql+psycopg2://)"
    )
    echo: bool = Field(default=False, description="Echo SQL statements")

    class Config:
        env_prefix = "DATABASE_"


class ImportSettings(BaseSettings):
    """CSV import pipeline configuration."""

    batch_size: int = Field(default=10000, ge=1, description="Rows per executemany batch")
    vehicle_id_prefix: str = Field(default="GR86", description="Vehicle id prefix")
    vehicle_series: str = Field(default="004", description="Vehicle id series segment")
    car_number_width: int = Field(
        default=0,
        ge=0,
        le=6,
        description="Zero-pad width for the car number segment (0 = no padding)"
    )
    speed_channels: List[str] = Field(
        default=["vCar", "speed_can", "speed"],
        description="Telemetry channels that carry vehicle speed"
    )
    max_error_samples: int = Field(default=20, ge=0, description="Row errors kept per file report")

    @field_validator("speed_channels", mode="before")
    @classmethod
    def parse_speed_channels(cls, v):
        """Parse speed channels from a comma separated string or list."""
        if isinstance(v, str):
            return [name.strip() for name in v.split(",") if name.strip()]
        return v

    @field_validator("vehicle_series")
    @classmethod
    def validate_series(cls, v: str) -> str:
        """Series segment must be numeric."""
        if not v.isdigit():
            raise ValueError(f"Vehicle series must be numeric, got {v!r}")
        return v

    class Config:
        env_prefix = "IMPORT_"


class ReplaySettings(BaseSettings):
    """Telemetry replay configuration."""

    page_size: int = Field(default=100, ge=1, le=10000, description="Rows fetched per page")
    min_playback_speed: float = Field(default=0.1, gt=0.0, description="Lowest playback multiplier")
    max_playback_speed: float = Field(default=10.0, gt=0.0, description="Highest playback multiplier")
    default_playback_speed: float = Field(default=1.0, gt=0.0, description="Playback multiplier when none given")
    min_delay_ms: float = Field(
        default=1.0,
        ge=0.0,
        description="Suspensions at or below this many milliseconds are skipped"
    )
    queue_depth: int = Field(default=2, ge=1, description="Pages buffered between fetcher and emitter")

    @model_validator(mode="after")
    def validate_speed_range(self) -> "ReplaySettings":
        """Validate the playback range is ordered and contains the default."""
        if self.min_playback_speed > self.max_playback_speed:
            raise ValueError("min_playback_speed must not exceed max_playback_speed")
        if not self.min_playback_speed <= self.default_playback_speed <= self.max_playback_speed:
            raise ValueError("default_playback_speed must lie inside the playback range")
        return self

    class Config:
        env_prefix = "REPLAY_"


class APISettings(BaseSettings):
    """Stream endpoint server configuration."""

    host: str = Field(default="0.0.0.0", description="API host")
    port: int = Field(default=3000, ge=1024, le=65535, description="API port")
    cors_origins: List[str] = Field(default=["*"], description="Allowed CORS origins")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    class Config:
        env_prefix = "API_"


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format (json/text)")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    enable_console: bool = Field(default=True, description="Enable console logging")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        if v.lower() not in ("json", "text"):
            raise ValueError("Log format must be 'json' or 'text'")
        return v.lower()

    class Config:
        env_prefix = "LOG_"


class Settings(BaseSettings):
    """Main settings aggregating all configuration sections."""

    # Environment
    env: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    # Sub-settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    ingestion: ImportSettings = Field(default_factory=ImportSettings)
    replay: ReplaySettings = Field(default_factory=ReplaySettings)
    api: APISettings = Field(default_factory=APISettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment is recognized."""
        valid_envs = ["development", "staging", "production", "testing"]
        if v.lower() not in valid_envs:
            raise ValueError(f"Invalid environment. Must be one of: {valid_envs}")
        return v.lower()

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_nested_delimiter = "__"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Only entry points (CLI, API factory) should call this; components
    receive their settings section through their constructor.

    Returns:
        Settings: Application settings
    """
    return Settings()
