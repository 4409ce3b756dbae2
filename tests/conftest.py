"""Pytest configuration and shared fixtures."""

import asyncio
import itertools
import os
from collections.abc import Awaitable, Callable
from typing import AsyncGenerator, Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# Set test environment
os.environ.setdefault("TERMSYNC_BASE_URL", "http://testserver/")
os.environ.setdefault("TERMSYNC_LOG_LEVEL", "DEBUG")

from termsync.core.config import Settings  # noqa: E402
from termsync.sessions.manager import TerminalManager  # noqa: E402
from termsync.sessions.models import TerminalModel  # noqa: E402


@pytest.fixture
def mock_settings() -> Generator:
    """Clear the cached settings around a test."""
    from termsync.core.config import clear_settings_cache

    # Clear any cached settings
    clear_settings_cache()

    yield

    # Clear again after test
    clear_settings_cache()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a poll interval long enough that only explicit ticks run."""
    return Settings(
        base_url="http://testserver/",
        poll_interval=60,
        poll_max_interval=600,
        standby="never",
    )


@pytest.fixture
def server_names() -> list[str]:
    """Names of the terminals running on the fake server."""
    return []


@pytest.fixture
def mock_api(server_names: list[str]) -> MagicMock:
    """Provide a mock terminals API backed by ``server_names``."""
    counter = itertools.count(1)

    async def list_running(settings: object) -> list[TerminalModel]:
        return [TerminalModel(name=name) for name in server_names]

    async def start_new(settings: object) -> TerminalModel:
        name = str(next(counter))
        while name in server_names:
            name = str(next(counter))
        server_names.append(name)
        return TerminalModel(name=name)

    async def shutdown_terminal(name: str, settings: object) -> None:
        if name in server_names:
            server_names.remove(name)

    api = MagicMock()
    api.is_available = MagicMock(return_value=True)
    api.list_running = AsyncMock(side_effect=list_running)
    api.start_new = AsyncMock(side_effect=start_new)
    api.shutdown_terminal = AsyncMock(side_effect=shutdown_terminal)
    return api


@pytest_asyncio.fixture
async def manager(
    mock_api: MagicMock,
    test_settings: Settings,
) -> AsyncGenerator[TerminalManager, None]:
    """Provide a ready terminal manager backed by ``mock_api``."""
    manager = TerminalManager(api=mock_api, settings=test_settings, standby="never")
    await manager.ready

    yield manager

    manager.dispose()


async def wait_for_background(manager: TerminalManager) -> None:
    """Wait until the manager's background refreshes have finished."""
    await asyncio.sleep(0)
    while manager._background:
        await asyncio.gather(*list(manager._background))
        await asyncio.sleep(0)


@pytest.fixture
def settle() -> Callable[[TerminalManager], Awaitable[None]]:
    """Provide a helper awaiting the manager's background refreshes."""
    return wait_for_background


# Markers
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
