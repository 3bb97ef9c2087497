"""Constants for docbatch."""

from pathlib import Path

from docbatch import __version__

# Application constants
APP_NAME = "docbatch"
APP_VERSION = __version__

# Default paths
DEFAULT_LOG_DIR = ".logs"
DEFAULT_CONFIG_FILE = "docbatch.yaml"


def get_config_locations() -> list[Path]:
    """Config file locations, highest priority first."""
    return [
        Path.cwd() / DEFAULT_CONFIG_FILE,
        Path.home() / ".config" / APP_NAME / "config.yaml",
    ]


# Output formats and cleanup levels
OUTPUT_FORMATS = ["html", "markdown", "plaintext"]
CLEANUP_LEVELS = ["minimal", "standard", "aggressive"]

# Fallback order tried when conversion to a format fails
FORMAT_FALLBACKS: dict[str, list[str]] = {
    "html": ["markdown", "plaintext"],
    "markdown": ["plaintext", "html"],
    "plaintext": ["html", "markdown"],
}

# Rendered output file extensions
FORMAT_EXTENSIONS = {
    "html": ".html",
    "markdown": ".md",
    "plaintext": ".txt",
}

# Concurrency defaults and bounds
DEFAULT_CONCURRENCY_LIMIT = 3
MIN_CONCURRENCY_LIMIT = 1
MAX_CONCURRENCY_LIMIT = 10

# Resource ceiling (resident memory, MB)
DEFAULT_RESOURCE_CEILING_MB = 500.0
MIN_RESOURCE_CEILING_MB = 100.0

# Retry settings
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 1.0  # seconds, multiplied by attempt number

# Error statistics
MAX_RECENT_ERRORS = 100

# Messages recorded for jobs that never ran
CANCELLED_MESSAGE = "Processing cancelled by user"
HALTED_MESSAGE = "Batch halted after a critical error"
