"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - Every setting reads from LIGHTRPC_<NAME> (case-insensitive) or .env
    - json_host_path always starts and ends with "/"
    - get_settings() is cached (lru_cache): single instance per process

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support (ADR: developer UX)
    - Settings builds ProtocolOptions instead of being one: validators are code,
      not environment values
"""

from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lightrpc.core.domain_types import SerializationMode
from lightrpc.core.options import ProtocolOptions


class Settings(BaseSettings):
    """lightrpc settings from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LIGHTRPC_", env_file=".env", case_sensitive=False, extra="ignore",
    )

    # Protocol
    enable_validation: bool = True
    debug: bool = False
    serialization_mode: SerializationMode = SerializationMode.AUTO
    expose_internal_errors: bool = True

    # HTTP
    json_host_path: str = "/api/"
    max_body_size: int = 10 * 1024 * 1024

    @field_validator("json_host_path", mode="before")
    @classmethod
    def normalize_host_path(cls, v: Any) -> Any:
        """Both "api" and "/api" become "/api/"."""
        if isinstance(v, str):
            v = v.strip()
            if not v.startswith("/"):
                v = "/" + v
            if not v.endswith("/"):
                v = v + "/"
        return v

    # CORS
    cors_origins: list[str] = ["*"]
    cors_max_age: int = 3600

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    def protocol_options(self, custom_validators: dict | None = None) -> ProtocolOptions:
        return ProtocolOptions(
            enable_validation=self.enable_validation,
            debug=self.debug,
            serialization_mode=self.serialization_mode,
            custom_validators=dict(custom_validators or {}),
            expose_internal_errors=self.expose_internal_errors,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
