"""Integration tests: terminal manager over the REST client and a fake server."""

import json
from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from termsync.core.config import Settings
from termsync.core.errors import NetworkError, ServiceUnavailableError
from termsync.sessions.manager import TerminalManager
from termsync.sessions.models import TerminalModel
from termsync.sessions.restapi import TerminalAPIClient


class FakeTerminalServer:
    """In-memory terminals API answering httpx requests."""

    def __init__(self) -> None:
        self.terminals: list[str] = []
        self.status: int | None = None
        self.reachable = True
        self.requests: list[tuple[str, str]] = []
        self._counter = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if not self.reachable:
            raise httpx.ConnectError("Connection refused", request=request)
        if self.status is not None:
            return httpx.Response(self.status, json={"message": "Service Unavailable"})

        path = request.url.path
        if path == "/api/terminals" and request.method == "GET":
            return httpx.Response(
                200,
                json=[{"name": name, "last_activity": "2024-01-01T00:00:00Z"} for name in self.terminals],
            )
        if path == "/api/terminals" and request.method == "POST":
            self._counter += 1
            name = str(self._counter)
            self.terminals.append(name)
            return httpx.Response(200, json={"name": name})
        if path.startswith("/api/terminals/") and request.method == "DELETE":
            name = path.rsplit("/", 1)[-1]
            if name not in self.terminals:
                return httpx.Response(404, content=json.dumps({"message": f"{name} not found"}))
            self.terminals.remove(name)
            return httpx.Response(204)
        return httpx.Response(404)

    def count(self, method: str) -> int:
        return sum(1 for m, _ in self.requests if m == method)


@pytest.fixture
def server() -> FakeTerminalServer:
    return FakeTerminalServer()


@pytest_asyncio.fixture
async def http_manager(
    server: FakeTerminalServer,
    test_settings: Settings,
) -> AsyncGenerator[TerminalManager, None]:
    api = TerminalAPIClient(test_settings, transport=httpx.MockTransport(server))
    manager = TerminalManager(api=api, settings=test_settings, standby="never")
    await manager.ready

    yield manager

    manager.dispose()


@pytest.mark.integration
class TestManagerOverHttp:
    """End-to-end flows through TerminalAPIClient."""

    @pytest.mark.asyncio
    async def test_lifecycle(self, http_manager: TerminalManager, server: FakeTerminalServer) -> None:
        events: list[list[TerminalModel]] = []
        http_manager.running_changed.subscribe(events.append)

        first = await http_manager.start_new()
        second = await http_manager.start_new()

        assert [m.name for m in http_manager.running()] == ["1", "2"]

        await http_manager.shutdown(first.name)

        assert first.is_disposed
        assert not second.is_disposed
        assert [m.name for m in http_manager.running()] == ["2"]
        assert events == [
            [TerminalModel(name="1")],
            [TerminalModel(name="1"), TerminalModel(name="2")],
            [TerminalModel(name="2")],
        ]

    @pytest.mark.asyncio
    async def test_terminal_removed_on_server(
        self,
        http_manager: TerminalManager,
        server: FakeTerminalServer,
    ) -> None:
        connection = await http_manager.start_new()

        server.terminals.clear()
        await http_manager.refresh_running()

        assert connection.is_disposed
        assert list(http_manager.running()) == []

    @pytest.mark.asyncio
    async def test_shutdown_all(self, http_manager: TerminalManager, server: FakeTerminalServer) -> None:
        server.terminals.extend(["a", "b"])

        await http_manager.shutdown_all()

        assert server.count("DELETE") == 2
        assert server.terminals == []
        assert list(http_manager.running()) == []

    @pytest.mark.asyncio
    async def test_shutdown_missing_terminal(
        self,
        http_manager: TerminalManager,
        server: FakeTerminalServer,
    ) -> None:
        """Shutting down a terminal that is already gone succeeds."""
        await http_manager.shutdown("missing")

        assert server.count("DELETE") == 1

    @pytest.mark.asyncio
    async def test_connection_failures(
        self,
        http_manager: TerminalManager,
        server: FakeTerminalServer,
    ) -> None:
        server.terminals.append("a")
        await http_manager.refresh_running()
        failures: list[Exception] = []
        http_manager.connection_failure.subscribe(failures.append)

        server.status = 503
        with pytest.raises(ServiceUnavailableError):
            await http_manager.refresh_running()

        server.status = None
        server.reachable = False
        with pytest.raises(NetworkError):
            await http_manager.refresh_running()

        assert [type(f) for f in failures] == [ServiceUnavailableError, NetworkError]
        assert [m.name for m in http_manager.running()] == ["a"]

        server.reachable = True
        await http_manager.refresh_running()
        assert [m.name for m in http_manager.running()] == ["a"]
