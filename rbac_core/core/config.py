"""Application configuration using Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rbac_core.models.permissions_constants import get_baseline_permissions, get_system_role_permissions


class AppSettings(BaseSettings):
    """Service configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RBAC_",
        extra="ignore",
    )

    environment: Literal["local", "test", "staging", "production"] = Field(
        default="local",
        validation_alias="env",
    )
    service_name: str = Field(default="donation-rbac-core")
    database_url: str = Field(default="sqlite+aiosqlite:///./data/rbac.db")
    sql_echo: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)
    permission_cache_ttl: int = Field(default=300)
    redis_url: str | None = Field(default=None)
    redis_token: str | None = Field(default=None)
    redis_cache_prefix: str = Field(default="rbac")
    invalidation_poll_interval: float = Field(default=5.0)
    immutable_system_roles: List[str] | str = Field(default_factory=lambda: ["super_admin"])
    baseline_permissions: List[str] | str = Field(default_factory=get_baseline_permissions)
    system_roles: Dict[str, List[str]] = Field(default_factory=get_system_role_permissions)
    audit_page_size_max: int = Field(default=200)

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("immutable_system_roles", "baseline_permissions", mode="before")
    @classmethod
    def parse_name_list(cls, value: str | List[str] | None) -> List[str]:
        if value is None or value == "":
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("redis_url", "redis_token", mode="before")
    @classmethod
    def empty_string_to_none(cls, value: str | None) -> str | None:
        if value == "":
            return None
        return value

    @field_validator("permission_cache_ttl", mode="before")
    @classmethod
    def ensure_int_ttl(cls, value: int | str | None) -> int | str | None:
        if value in (None, ""):
            return 300
        return value


@lru_cache
def get_settings() -> AppSettings:
    """Return cached application settings instance."""

    return AppSettings()
