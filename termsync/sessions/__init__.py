"""Session management - terminal manager, connections and REST client."""

from termsync.sessions.connection import TerminalConnection
from termsync.sessions.manager import TerminalManager
from termsync.sessions.models import (
    ConnectionOptions,
    ManagerState,
    ServerSettings,
    TerminalModel,
)
from termsync.sessions.restapi import TerminalAPIClient

__all__ = [
    "ConnectionOptions",
    "ManagerState",
    "ServerSettings",
    "TerminalAPIClient",
    "TerminalConnection",
    "TerminalManager",
    "TerminalModel",
]
