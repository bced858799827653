from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Gadget Inventory"
    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent.parent / "data")

    JWT_SECRET: str = "change-me"
    # Access tokens live for a working day, matching the login contract clients expect.
    JWT_ACCESS_TTL_MIN: int = 60 * 24
    JWT_REFRESH_TTL_DAYS: int = 7
    # Comma separated list of origins allowed by CORS.
    ALLOWED_ORIGINS: str = ""

    DB_URL: str = Field(default="", validation_alias=AliasChoices("DB_URL", "DATABASE_URL"))

    SELF_DESTRUCT_TTL_SECONDS: int = Field(default=300, gt=0)
    SELF_DESTRUCT_MAX_ATTEMPTS: int = Field(default=3, gt=0)
    REAPER_INTERVAL_SECONDS: int = Field(default=60, gt=0)

    HOST: str = "0.0.0.0"
    PORT: int = 3000

    @property
    def database_url(self) -> str:
        return self.DB_URL or f"sqlite:///{self.DATA_DIR / 'gadgets.db'}"

    @property
    def allowed_origins(self) -> list[str]:
        return [item.strip() for item in self.ALLOWED_ORIGINS.split(",") if item.strip()]


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    return settings


settings = get_settings()
