"""Configuration module for the console."""

from kyooar.config.constants import STORAGE_KEYS, create_mailto_link
from kyooar.config.settings import AppConfig

__all__ = [
    "AppConfig",
    "STORAGE_KEYS",
    "create_mailto_link",
]
