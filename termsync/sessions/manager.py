"""
Terminal Manager for termsync.

Keeps a local view of the terminals running on a server, hands out
connection handles and publishes changes. The view is refreshed by a
``Poll`` with exponential backoff; each tick reconciles the server's list
against the cached names and disposes handles whose terminal is gone.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterator, Mapping
from typing import Any

from loguru import logger

from termsync.core.config import Settings, get_settings
from termsync.core.errors import (
    CapabilityUnavailableError,
    NetworkError,
    PollDisposedError,
    ResponseError,
)
from termsync.events.signal import Signal
from termsync.polling.poll import Frequency, Poll, Standby
from termsync.sessions.connection import TerminalConnection
from termsync.sessions.models import (
    ConnectionOptions,
    ManagerState,
    ServerSettings,
    TerminalModel,
)
from termsync.sessions.restapi import TerminalAPIClient


class TerminalManager:
    """
    Manages the running terminals of one server.

    Must be created inside a running event loop. Polling starts at
    construction; ``ready`` completes once the first poll has run, whether
    or not it succeeded.

    Example:
        >>> manager = TerminalManager()
        >>> await manager.ready
        >>> manager.running_changed.subscribe(print)
        >>> connection = await manager.start_new()
        >>> [model.name for model in manager.running()]
        ['1']
        >>> await manager.shutdown_all()
        >>> manager.dispose()
    """

    def __init__(
        self,
        server_settings: ServerSettings | None = None,
        standby: Standby | None = None,
        api: TerminalAPIClient | None = None,
        settings: Settings | None = None,
        is_hidden: Callable[[], bool] | None = None,
    ) -> None:
        """
        Initialize the terminal manager.

        Args:
            server_settings: Settings passed to every REST call.
            standby: When to stop polling. Defaults to ``settings.standby``.
            api: REST client (anything with the TerminalAPIClient methods).
            settings: Application settings for polling parameters.
            is_hidden: Predicate for the "when-hidden" standby policy.
        """
        self.settings = settings or get_settings()
        self.server_settings = server_settings or ServerSettings.from_settings(self.settings)
        self._api = api or TerminalAPIClient(self.settings)
        self._loop = asyncio.get_running_loop()

        self._state = ManagerState.INITIALIZING
        # As an optimization, only the names of the models are stored
        self._names: list[str] = []
        self._connections: dict[str, TerminalConnection] = {}
        self._background: set[asyncio.Task[None]] = set()
        self._running_changed: Signal[list[TerminalModel]] = Signal("running_changed")
        self._connection_failure: Signal[Exception] = Signal("connection_failure")
        self._poll: Poll | None = None

        if not self.is_available():
            self._state = ManagerState.UNAVAILABLE
            self._ready: asyncio.Future[None] = self._loop.create_future()
            self._ready.set_exception(CapabilityUnavailableError("Terminals unavailable"))
            self._ready.exception()
            logger.warning("Terminals unavailable on the server")
            return

        self._poll = Poll(
            factory=self.request_running,
            frequency=Frequency(
                interval=self.settings.poll_interval,
                backoff=self.settings.poll_backoff,
                max=self.settings.poll_max_interval,
            ),
            name="termsync:TerminalManager#models",
            standby=standby if standby is not None else self.settings.standby,
            is_hidden=is_hidden,
        )
        self._poll.start()
        self._ready = self._loop.create_task(self._initialize(self._poll))
        self._ready.add_done_callback(_consume_exception)

    async def _initialize(self, poll: Poll) -> None:
        try:
            await poll.tick
        except PollDisposedError:
            raise
        except Exception as e:
            logger.warning(f"Initial terminal poll failed: {e}")
        if self._state is ManagerState.INITIALIZING:
            self._state = ManagerState.READY
            logger.info(f"Terminal manager ready ({len(self._names)} running)")

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> ManagerState:
        return self._state

    @property
    def is_ready(self) -> bool:
        """Test whether the manager is ready."""
        return self._state is ManagerState.READY

    @property
    def ready(self) -> Awaitable[None]:
        """Completes when the manager is ready; fails if terminals are unavailable."""
        return asyncio.shield(self._ready)

    @property
    def is_disposed(self) -> bool:
        return self._state is ManagerState.DISPOSED

    @property
    def running_changed(self) -> Signal[list[TerminalModel]]:
        """Signal published with the full model list when the running terminals change."""
        return self._running_changed

    @property
    def connection_failure(self) -> Signal[Exception]:
        """Signal published when the server cannot be reached."""
        return self._connection_failure

    def dispose(self) -> None:
        """Dispose the manager, its poll and every tracked connection."""
        if self.is_disposed:
            return
        was_available = self._state is not ManagerState.UNAVAILABLE
        self._state = ManagerState.DISPOSED
        self._names = []
        for connection in list(self._connections.values()):
            connection.dispose()
        self._connections.clear()
        if self._poll is not None:
            self._poll.dispose()
        self._running_changed.clear()
        self._connection_failure.clear()
        if was_available:
            logger.info("Terminal manager disposed")

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def is_available(self) -> bool:
        """Whether the terminal service is available."""
        return self._api.is_available()

    def running(self) -> Iterator[TerminalModel]:
        """Iterate over a snapshot of the most recent running terminals."""
        return iter(self._models)

    def connect_to(self, options: ConnectionOptions | Mapping[str, Any]) -> TerminalConnection:
        """
        Connect to a running terminal.

        The connection is tracked immediately. If the terminal is not known
        yet, a refresh verifies it in the background; a failed verification
        never affects the returned connection.
        On a disposed manager the connection is returned untracked.

        Args:
            options: The terminal model and optional server settings. The
                manager's server settings are used when omitted.

        Returns:
            The new connection.
        """
        if not isinstance(options, ConnectionOptions):
            options = ConnectionOptions.model_validate(options)
        if options.server_settings is None:
            options = options.model_copy(update={"server_settings": self.server_settings})

        connection = TerminalConnection(options, api=self._api)
        self._on_started(connection)
        if options.model.name not in self._names:
            # Trust the caller that the terminal exists, but verify
            self._refresh_in_background()
        return connection

    async def refresh_running(self) -> None:
        """
        Force a refresh of the running terminals.

        Intended for user actions, since the manager keeps its state current
        through polling.
        """
        if self._poll is None:
            raise CapabilityUnavailableError("Terminals unavailable")
        self._poll.refresh()
        await self._poll.tick

    async def start_new(self) -> TerminalConnection:
        """Start a new terminal and connect to it."""
        model = await self._api.start_new(self.server_settings)
        await self.refresh_running()
        return self.connect_to(ConnectionOptions(model=model))

    async def shutdown(self, name: str) -> None:
        """Shut down a terminal by name."""
        await self._api.shutdown_terminal(name, self.server_settings)
        await self.refresh_running()

    async def shutdown_all(self) -> None:
        """
        Shut down all terminals.

        A terminal started by someone else between the two refreshes may
        survive.
        """
        # Make sure the list of names is current
        await self.refresh_running()

        await asyncio.gather(
            *(self._api.shutdown_terminal(name, self.server_settings) for name in self._names)
        )

        # Clear out the state
        await self.refresh_running()

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    async def request_running(self) -> None:
        """Poll the server for running terminals and update the state."""
        try:
            models = await self._api.list_running(self.server_settings)
        except Exception as e:
            if self._is_connection_failure(e):
                logger.warning(f"Terminal server connection failure: {e}")
                self._connection_failure.publish(e)
            raise

        if self.is_disposed:
            return

        names = sorted(model.name for model in models)
        if names == self._names:
            # Identical list, nothing to do
            return

        logger.info(f"Running terminals changed: {self._names} -> {names}")
        self._names = names
        for connection in list(self._connections.values()):
            if connection.name not in names:
                connection.dispose()
        self._running_changed.publish(self._models)

    def _is_connection_failure(self, error: Exception) -> bool:
        if isinstance(error, NetworkError):
            return True
        return (
            isinstance(error, ResponseError)
            and error.status_code in self.server_settings.unavailable_statuses
        )

    @property
    def _models(self) -> list[TerminalModel]:
        return [TerminalModel(name=name) for name in self._names]

    # =========================================================================
    # CONNECTION TRACKING
    # =========================================================================

    def _on_started(self, connection: TerminalConnection) -> None:
        if self.is_disposed:
            # Teardown already ran; the caller owns the connection
            return
        self._connections[connection.id] = connection
        connection.disposed.subscribe(self._on_disposed)

    def _on_disposed(self, connection: TerminalConnection) -> None:
        self._connections.pop(connection.id, None)
        if self.is_disposed:
            return
        # Make sure the running list reflects the server state
        self._refresh_in_background()

    def _refresh_in_background(self) -> None:
        if self._poll is None or self.is_disposed:
            return
        task = self._loop.create_task(self._refresh_quietly())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _refresh_quietly(self) -> None:
        try:
            await self.refresh_running()
        except Exception as e:
            logger.debug(f"Background terminal refresh failed: {e}")

    def __repr__(self) -> str:
        return (
            f"TerminalManager(state={self._state.value}, running={len(self._names)}, "
            f"connections={len(self._connections)})"
        )


def _consume_exception(future: asyncio.Future[None]) -> None:
    if not future.cancelled():
        future.exception()
