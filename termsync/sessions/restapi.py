"""
REST client for the server's terminals API.

Endpoints (relative to the server base URL):
    GET    api/terminals          list running terminals
    POST   api/terminals          start a new terminal
    DELETE api/terminals/{name}   shut a terminal down
"""

from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger
from pydantic import ValidationError

from termsync.core.config import Settings, get_settings
from termsync.core.errors import NetworkError, ResponseError, ServiceUnavailableError
from termsync.sessions.models import ServerSettings, TerminalModel

TERMINAL_SERVICE_URL = "api/terminals"


def url_path_join(*parts: str) -> str:
    """Join URL parts with single slashes, keeping the scheme of the first."""
    head, *tail = parts
    pieces = [head.rstrip("/")] + [p.strip("/") for p in tail if p.strip("/")]
    return "/".join(pieces)


class TerminalAPIClient:
    """
    Async client for the terminals REST API.

    Transport failures raise NetworkError; non-success responses raise
    ResponseError, or ServiceUnavailableError when the status is one of
    ``ServerSettings.unavailable_statuses``.

    Example:
        >>> api = TerminalAPIClient()
        >>> settings = ServerSettings.from_settings()
        >>> model = await api.start_new(settings)
        >>> [m.name for m in await api.list_running(settings)]
        ['1']
        >>> await api.shutdown_terminal(model.name, settings)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            settings: Application settings (availability flag).
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``.
        """
        self.settings = settings or get_settings()
        self._transport = transport

    def is_available(self) -> bool:
        """Whether the server provides terminals."""
        return self.settings.terminals_available

    async def list_running(self, server_settings: ServerSettings) -> list[TerminalModel]:
        """List the running terminals."""
        url = url_path_join(server_settings.base_url, TERMINAL_SERVICE_URL)
        response = await self._request("GET", url, server_settings, expected=(200,))

        data = self._json(response)
        if not isinstance(data, list):
            raise ResponseError(response.status_code, "Invalid terminal list")
        try:
            return [TerminalModel.model_validate(item) for item in data]
        except ValidationError as e:
            raise ResponseError(response.status_code, f"Invalid terminal model: {e}") from e

    async def start_new(self, server_settings: ServerSettings) -> TerminalModel:
        """Start a new terminal and return its model."""
        url = url_path_join(server_settings.base_url, TERMINAL_SERVICE_URL)
        response = await self._request("POST", url, server_settings, expected=(200, 201))

        try:
            model = TerminalModel.model_validate(self._json(response))
        except ValidationError as e:
            raise ResponseError(response.status_code, f"Invalid terminal model: {e}") from e

        logger.info(f"Started terminal {model.name}")
        return model

    async def shutdown_terminal(self, name: str, server_settings: ServerSettings) -> None:
        """Shut down a terminal by name. A missing terminal is not an error."""
        url = url_path_join(server_settings.base_url, TERMINAL_SERVICE_URL, quote(name, safe=""))
        response = await self._request("DELETE", url, server_settings, expected=(204, 404))

        if response.status_code == 404:
            message = self._message(response) or f"The terminal session {name!r} does not exist"
            logger.warning(message)
        else:
            logger.info(f"Shut down terminal {name}")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        server_settings: ServerSettings,
        expected: tuple[int, ...],
    ) -> httpx.Response:
        logger.debug(f"{method} {url}")
        try:
            async with httpx.AsyncClient(
                timeout=server_settings.request_timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, url)
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e

        if response.status_code not in expected:
            message = self._message(response) or response.reason_phrase
            if response.status_code in server_settings.unavailable_statuses:
                raise ServiceUnavailableError(response.status_code, message)
            raise ResponseError(response.status_code, message)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ResponseError(response.status_code, f"Invalid JSON response: {e}") from e

    @staticmethod
    def _message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text.strip()
        if isinstance(data, dict):
            return str(data.get("message") or data.get("reason") or "")
        return ""
