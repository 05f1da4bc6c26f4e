"""Centralized configuration via pydantic-settings.

All ``HARK_*`` environment variables are read, validated, and exposed here.
Logging env vars (``HARK_LOG_FORMAT``, ``HARK_LOG_LEVEL``) are intentionally
excluded; they stay in ``hark.logging`` for bootstrap-safety.

Usage::

    from hark.config.settings import get_settings

    settings = get_settings()
    print(settings.server.port)         # int, validated
    print(settings.server.archive_path) # Path, expanded

``.env`` files in the working directory are loaded automatically.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hark._audio_constants import DEFAULT_ALLOWED_EXTENSIONS, ENGINE_SAMPLE_RATE


class ServerSettings(BaseSettings):
    """HTTP server, authentication, and upload settings."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    host: str = Field(default="0.0.0.0", validation_alias="HARK_HOST")
    port: int = Field(default=8080, ge=1, le=65535, validation_alias="HARK_PORT")
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("HARK_API_KEY", "API_KEY"),
    )
    max_file_size_mb: int = Field(
        default=25, ge=1, le=500, validation_alias="HARK_MAX_FILE_SIZE_MB"
    )
    archive_dir: str = Field(default="archives", validation_alias="HARK_ARCHIVE_DIR")
    allowed_extensions: str = Field(
        default=DEFAULT_ALLOWED_EXTENSIONS,
        validation_alias="HARK_ALLOWED_EXTENSIONS",
    )

    @field_validator("api_key")
    @classmethod
    def _empty_key_is_unset(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def max_file_size_bytes(self) -> int:
        """Maximum upload size in bytes (derived from MB setting)."""
        return self.max_file_size_mb * 1024 * 1024

    @property
    def archive_path(self) -> Path:
        """Expanded archive root as a Path object."""
        return Path(self.archive_dir).expanduser()

    @property
    def allowed_extensions_list(self) -> tuple[str, ...]:
        """Accepted upload extensions, lowercased and without the leading dot."""
        return tuple(
            ext.strip().lower().lstrip(".")
            for ext in self.allowed_extensions.split(",")
            if ext.strip()
        )


class EngineSettings(BaseSettings):
    """Inference engine and operating mode settings."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    engine: str = Field(default="faster-whisper", validation_alias="HARK_ENGINE")
    model_path: str | None = Field(default=None, validation_alias="HARK_MODEL_PATH")
    model_name: str = Field(default="default", validation_alias="HARK_MODEL_NAME")
    model_alias: str = Field(default="default", validation_alias="HARK_MODEL_ALIAS")
    threads: int = Field(default=4, ge=1, le=256, validation_alias="HARK_THREADS")
    processors: int = Field(default=1, ge=1, le=64, validation_alias="HARK_PROCESSORS")
    task: str = Field(default="full", validation_alias="HARK_TASK")
    audio_preprocessor: bool = Field(default=True, validation_alias="HARK_AUDIO_PREPROCESSOR")
    sample_rate: int = Field(
        default=ENGINE_SAMPLE_RATE, ge=8000, le=48000, validation_alias="HARK_SAMPLE_RATE"
    )
    max_output_bytes: int = Field(
        default=1_000_000,
        ge=1024,
        le=64 * 1024 * 1024,
        validation_alias="HARK_MAX_OUTPUT_BYTES",
    )

    @field_validator("task")
    @classmethod
    def _validate_task(cls, value: str) -> str:
        valid = {"transcribe", "translate", "full"}
        normalized = value.lower()
        if normalized not in valid:
            msg = f"task must be one of {sorted(valid)}, got {value!r}"
            raise ValueError(msg)
        return normalized


class HarkSettings(BaseSettings):
    """Root settings: aggregates all subsystem settings.

    Loads ``.env`` from the current directory when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    server: ServerSettings = Field(default_factory=ServerSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)


@lru_cache(maxsize=1)
def get_settings() -> HarkSettings:
    """Return the singleton ``HarkSettings`` instance.

    The result is cached; subsequent calls return the same object.
    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    return HarkSettings()
