"""Utility modules for the vault context server."""

from vault_context.utils.exceptions import (
    ConfigurationError,
    InvalidContinuationTokenError,
    ValidationError,
    VaultContextError,
    VaultPathError,
)
from vault_context.utils.logger import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # Exceptions
    "VaultContextError",
    "ValidationError",
    "InvalidContinuationTokenError",
    "ConfigurationError",
    "VaultPathError",
]
