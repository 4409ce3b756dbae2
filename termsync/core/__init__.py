"""Core module - configuration, logging and errors."""

from termsync.core.config import Settings, clear_settings_cache, get_settings
from termsync.core.errors import (
    CapabilityUnavailableError,
    NetworkError,
    PollDisposedError,
    ResponseError,
    ServiceUnavailableError,
    TermsyncError,
)
from termsync.core.logging import configure_logging

__all__ = [
    "CapabilityUnavailableError",
    "NetworkError",
    "PollDisposedError",
    "ResponseError",
    "ServiceUnavailableError",
    "Settings",
    "TermsyncError",
    "clear_settings_cache",
    "configure_logging",
    "get_settings",
]
