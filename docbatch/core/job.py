"""Jobs and their processing configuration."""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from docbatch.config.settings import DocbatchSettings


class OutputFormat(str, Enum):
    """Rendered output format."""

    HTML = "html"
    MARKDOWN = "markdown"
    PLAINTEXT = "plaintext"


class CleanupLevel(str, Enum):
    """How much structural cleanup the clean stage performs."""

    MINIMAL = "minimal"
    STANDARD = "standard"
    AGGRESSIVE = "aggressive"


@dataclass(frozen=True)
class ProcessingConfig:
    """Processing options for one job.

    Instances are never mutated. Recovery strategies derive modified copies,
    so every attempt carries its own snapshot.
    """

    output_format: OutputFormat = OutputFormat.MARKDOWN
    preserve_images: bool = True
    include_metadata: bool = True
    cleanup_level: CleanupLevel = CleanupLevel.STANDARD
    custom_settings: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "output_format", OutputFormat(self.output_format))
        object.__setattr__(self, "cleanup_level", CleanupLevel(self.cleanup_level))
        object.__setattr__(self, "custom_settings", MappingProxyType(dict(self.custom_settings)))

    def derive(self, **changes: Any) -> "ProcessingConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def with_custom_settings(self, **settings: Any) -> "ProcessingConfig":
        """Return a copy with ``settings`` merged into the custom settings."""
        return replace(self, custom_settings={**self.custom_settings, **settings})

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary."""
        return {
            "output_format": self.output_format.value,
            "preserve_images": self.preserve_images,
            "include_metadata": self.include_metadata,
            "cleanup_level": self.cleanup_level.value,
            "custom_settings": dict(self.custom_settings),
        }

    @classmethod
    def from_settings(cls, settings: "DocbatchSettings") -> "ProcessingConfig":
        """Build the default config from application settings."""
        return cls(**settings.processing.model_dump())


@dataclass(frozen=True)
class Job:
    """One document conversion request."""

    source_ref: str
    config: ProcessingConfig = field(default_factory=ProcessingConfig)

    @classmethod
    def create(cls, source_ref: str, config: ProcessingConfig | None = None) -> "Job":
        """Create a job, falling back to the default config."""
        return cls(source_ref=str(source_ref), config=config or ProcessingConfig())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"source_ref": self.source_ref, "config": self.config.to_dict()}
