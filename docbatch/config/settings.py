"""Configuration settings using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource

from docbatch.config.constants import (
    DEFAULT_CONCURRENCY_LIMIT,
    DEFAULT_LOG_DIR,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RESOURCE_CEILING_MB,
    DEFAULT_RETRY_BASE_DELAY,
    MAX_CONCURRENCY_LIMIT,
    MIN_CONCURRENCY_LIMIT,
    MIN_RESOURCE_CEILING_MB,
    get_config_locations,
)


class BatchConfig(BaseModel):
    """Batch coordinator limits."""

    concurrency_limit: int = Field(
        default=DEFAULT_CONCURRENCY_LIMIT,
        ge=MIN_CONCURRENCY_LIMIT,
        le=MAX_CONCURRENCY_LIMIT,
    )
    resource_ceiling_mb: float = Field(
        default=DEFAULT_RESOURCE_CEILING_MB, ge=MIN_RESOURCE_CEILING_MB
    )


class RecoveryConfig(BaseModel):
    """Retry and recovery configuration."""

    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    retry_base_delay: float = Field(default=DEFAULT_RETRY_BASE_DELAY, ge=0)


class ProcessingDefaults(BaseModel):
    """Default processing configuration for new jobs."""

    output_format: Literal["html", "markdown", "plaintext"] = "markdown"
    preserve_images: bool = True
    include_metadata: bool = True
    cleanup_level: Literal["minimal", "standard", "aggressive"] = "standard"


class DocbatchSettings(BaseSettings):
    """Main configuration class for docbatch."""

    model_config = SettingsConfigDict(
        env_prefix="DOCBATCH_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings sources to include YAML file."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            # Later files win, so the highest-priority location goes last
            YamlConfigSettingsSource(
                settings_cls, yaml_file=list(reversed(get_config_locations()))
            ),
            file_secret_settings,
        )

    # Sub-configurations
    batch: BatchConfig = Field(default_factory=BatchConfig)
    recovery: RecoveryConfig = Field(default_factory=RecoveryConfig)
    processing: ProcessingDefaults = Field(default_factory=ProcessingDefaults)

    # Global settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_dir: str = DEFAULT_LOG_DIR


@lru_cache
def get_settings() -> DocbatchSettings:
    """Get cached settings instance."""
    return DocbatchSettings()


def reload_settings() -> DocbatchSettings:
    """Force reload settings (clear cache)."""
    get_settings.cache_clear()
    return get_settings()
