"""Configuration module for the SaaS identity services."""
from .settings import AppConfig, load_settings

__all__ = ["AppConfig", "load_settings"]
