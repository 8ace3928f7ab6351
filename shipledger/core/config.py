"""Runtime configuration loaded from environment variables or defaults."""

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SHIPLEDGER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Shipping Ledger API"
    api_prefix: str = "/api/v1"

    database_type: Literal["sqlite", "postgresql"] = "sqlite"
    database_path: Path = Field(default=Path("./data/shipledger.db"))
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "shipledger"
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_timeout_seconds: float = Field(default=10.0, gt=0, description="Lock/statement timeout for database I/O.")
    db_echo: bool = False

    log_level: str = "INFO"
    log_dir: Optional[Path] = Field(default=None, description="Enables daily rotating file logs when set.")

    settings_cache_ttl_seconds: float = Field(
        default=300.0,
        ge=0.0,
        description="How long a cached AppSettings snapshot is served before re-reading.",
    )
    cors_allowed_origins: tuple[str, ...] = Field(default=("*",))

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> str:
        return str(value).strip().upper()

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def _parse_origins(cls, value: Any) -> tuple[str, ...]:
        if isinstance(value, str):
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return tuple(value)


def get_engine_url(settings: Settings) -> str:
    """Build the SQLAlchemy database URL."""
    if settings.database_type == "sqlite":
        return f"sqlite:///{settings.database_path}"
    elif settings.database_type == "postgresql":
        return (
            f"postgresql://{settings.db_user}:{settings.db_password}"
            f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
        )
    else:
        raise ValueError(f"Unsupported database type: {settings.database_type}")


@lru_cache
def get_settings() -> Settings:
    return Settings()
