"""Data models shared by the terminal manager, connections and REST client."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from termsync.core.config import Settings, get_settings

# =============================================================================
# ENUMS
# =============================================================================


class ManagerState(str, Enum):
    """Readiness state of a terminal manager."""

    UNAVAILABLE = "unavailable"
    INITIALIZING = "initializing"
    READY = "ready"
    DISPOSED = "disposed"


# =============================================================================
# PYDANTIC MODELS
# =============================================================================


class TerminalModel(BaseModel):
    """Server-reported descriptor of a running terminal."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(min_length=1, description="Unique terminal name")


class ServerSettings(BaseModel):
    """
    Connection settings carried through every REST call.

    ``ws_url`` is not used by termsync itself; it is carried for callers
    that open terminal websockets from a connection's settings.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(default="http://localhost:8888/", description="Server base URL")
    ws_url: str = Field(
        default="ws://localhost:8888/",
        description="WebSocket base URL (carried for callers)",
    )
    request_timeout: float = Field(default=20.0, gt=0, description="Request timeout in seconds")
    unavailable_statuses: frozenset[int] = Field(
        default=frozenset({503, 424}),
        description="Statuses reported as service unavailable",
    )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ServerSettings":
        """Build server settings from the environment configuration."""
        settings = settings or get_settings()
        return cls(
            base_url=settings.base_url,
            ws_url=settings.resolved_ws_url,
            request_timeout=settings.request_timeout,
            unavailable_statuses=frozenset(settings.unavailable_statuses),
        )


class ConnectionOptions(BaseModel):
    """Options used to connect to a running terminal."""

    model_config = ConfigDict(frozen=True)

    model: TerminalModel = Field(description="The terminal to connect to")
    server_settings: ServerSettings | None = Field(
        default=None,
        description="Server settings (the manager's are used when omitted)",
    )
