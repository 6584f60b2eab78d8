"""Configuration module -- exports Settings, the loaders, and a module-level singleton."""

from pdfchat.config.loader import build_pipeline_config, load_config
from pdfchat.config.settings import Settings

settings = Settings()

__all__ = ["Settings", "build_pipeline_config", "load_config", "settings"]
