from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Iterable

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

WAREHOUSE_LIST_MODES = ("catalog", "data")
ORDER_ID_STRATEGIES = ("sequence", "uuid")


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Device Inventory"
    APP_ENV: str = "dev"

    BASE_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent)
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent.parent / "data")
    EXPORT_DIR: Path | None = None
    TZ: str = "Asia/Kolkata"

    DB_URL: str = Field(default="", validation_alias=AliasChoices("DB_URL", "DATABASE_URL"))

    HOST: str = "0.0.0.0"
    PORT: int = 8090
    ALLOWED_ORIGINS: Annotated[list[str], NoDecode] = Field(default_factory=list)

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    ORDER_ID_PREFIX: str = "ORD"
    ORDER_ID_STRATEGY: str = "sequence"
    # "catalog" keeps the fixed warehouse list; "data" derives it from stored orders.
    WAREHOUSE_LIST_MODE: str = "catalog"
    RECENT_ACTIVITY_DAYS: int = 30

    @property
    def export_dir(self) -> Path:
        return self.EXPORT_DIR if self.EXPORT_DIR is not None else self.DATA_DIR / "exports"

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, Iterable):
            return [str(item).strip() for item in value if str(item).strip()]
        raise TypeError("ALLOWED_ORIGINS must be a comma separated string or list")

    @field_validator("WAREHOUSE_LIST_MODE")
    @classmethod
    def check_warehouse_mode(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in WAREHOUSE_LIST_MODES:
            raise ValueError(f"WAREHOUSE_LIST_MODE must be one of {', '.join(WAREHOUSE_LIST_MODES)}")
        return value

    @field_validator("ORDER_ID_STRATEGY")
    @classmethod
    def check_id_strategy(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ORDER_ID_STRATEGIES:
            raise ValueError(f"ORDER_ID_STRATEGY must be one of {', '.join(ORDER_ID_STRATEGIES)}")
        return value


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    if not settings.DB_URL:
        settings.DB_URL = f"sqlite:///{settings.DATA_DIR / 'inventory.db'}"
    return settings


settings = get_settings()
