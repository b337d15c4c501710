"""Environment-driven cache configuration with Pydantic v2."""

from typing import Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheSettings(BaseSettings):
    """Cache settings, overridable through APP_CACHE_* environment variables."""

    # Memory tier
    default_ttl: int = Field(default=300, ge=1)
    memory_max_size: int = Field(default=100, ge=1)

    # Durable tier
    key_prefix: str = Field(default="app_cache_", min_length=1)
    use_durable: bool = Field(default=True)
    durable_url: str = Field(default="sqlite:///./data/app_cache.db")
    durable_max_bytes: int = Field(default=5 * 1024 * 1024, ge=1024)  # 5MB, browser localStorage budget

    # Janitor
    janitor_enabled: bool = Field(default=True)
    janitor_interval: int = Field(default=60, ge=1)
    janitor_sweep_durable: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    @field_validator("durable_url")
    @classmethod
    def validate_durable_url(cls, v):
        """Ensure the database directory exists for file-backed SQLite."""
        if v.startswith("sqlite") and ":///" in v:
            db_path = v.split(":///", 1)[1]
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @property
    def is_memory_only(self) -> bool:
        """Check if the durable tier is switched off."""
        return not self.use_durable

    model_config = SettingsConfigDict(
        env_prefix="APP_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="none",
    )
