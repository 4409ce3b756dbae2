"""Connection handle for one running terminal."""

from typing import Any
from uuid import uuid4

from loguru import logger

from termsync.events.signal import Signal
from termsync.sessions.models import ConnectionOptions, ServerSettings, TerminalModel
from termsync.sessions.restapi import TerminalAPIClient


class TerminalConnection:
    """
    A caller-held handle to a running terminal.

    The handle owns its disposal lifecycle. Disposing it publishes
    ``disposed`` exactly once; later calls are no-ops, including calls made
    from a ``disposed`` subscriber.

    Example:
        >>> connection = TerminalConnection(ConnectionOptions(model=TerminalModel(name="1")))
        >>> connection.disposed.subscribe(lambda c: print(f"{c.name} gone"))
        True
        >>> connection.dispose()
        1 gone
    """

    def __init__(
        self,
        options: ConnectionOptions,
        api: TerminalAPIClient | None = None,
    ) -> None:
        """
        Initialize the connection.

        Args:
            options: Terminal model and server settings.
            api: REST client used by ``shutdown``.
        """
        self.id = str(uuid4())
        self.model = options.model
        self.server_settings = options.server_settings or ServerSettings()
        self._api = api
        self._is_disposed = False
        self._disposed: Signal[TerminalConnection] = Signal(f"terminal {self.name} disposed")

    @property
    def name(self) -> str:
        """Name of the terminal this handle is bound to."""
        return self.model.name

    @property
    def disposed(self) -> Signal["TerminalConnection"]:
        """Signal published once when the handle is disposed."""
        return self._disposed

    @property
    def is_disposed(self) -> bool:
        return self._is_disposed

    async def shutdown(self) -> None:
        """Shut down the terminal on the server, then dispose the handle."""
        if self._api is None:
            raise RuntimeError(f"Terminal {self.name} has no API client to shut down with")
        await self._api.shutdown_terminal(self.name, self.server_settings)
        self.dispose()

    def dispose(self) -> None:
        """Dispose the handle and notify subscribers."""
        if self._is_disposed:
            return
        self._is_disposed = True
        logger.debug(f"Terminal connection {self.name} ({self.id[:8]}) disposed")
        self._disposed.publish(self)
        self._disposed.clear()

    def __enter__(self) -> "TerminalConnection":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return f"TerminalConnection(name={self.name!r}, disposed={self._is_disposed})"
