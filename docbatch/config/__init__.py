"""Configuration module for docbatch."""

from docbatch.config.settings import DocbatchSettings, get_settings, reload_settings

__all__ = ["DocbatchSettings", "get_settings", "reload_settings"]
