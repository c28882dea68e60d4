"""Core components for the chat-completion load tester."""

from chatload.core.config import Settings, get_settings
from chatload.core.exceptions import (
    ConfigError,
    CredentialStoreError,
    LoadTestError,
    ResultStoreError,
)

__all__ = [
    "Settings",
    "get_settings",
    "LoadTestError",
    "ConfigError",
    "CredentialStoreError",
    "ResultStoreError",
]
