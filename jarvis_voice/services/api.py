"""HTTP client used to talk to the remote command processor."""

from __future__ import annotations

import logging
import time

import httpx

from ..config.settings import Settings
from ..core.errors import DecodeError, TransportError
from .schemas import CommandReply, CommandRequest

LOGGER = logging.getLogger(__name__)


class CommandDispatcher:
    """Async client posting transcribed commands to the endpoint.

    One exchange at a time is expected; the controller enforces it. There is no
    retry and, unless ``dispatch_timeout`` is configured, no timeout.
    """

    def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        timeout = httpx.Timeout(settings.dispatch_timeout) if settings.dispatch_timeout else httpx.Timeout(None)
        self._client = httpx.AsyncClient(
            verify=settings.verify_ssl,
            timeout=timeout,
            transport=transport,
        )

    async def send(self, command: str) -> CommandReply:
        """Send one command and return the decoded reply."""
        request = CommandRequest(command=command)
        started = time.perf_counter()
        try:
            response = await self._client.post(
                self.settings.command_url,
                json=request.to_payload(),
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"Command endpoint unreachable: {exc!r}") from exc
        elapsed = time.perf_counter() - started
        if not response.is_success:
            LOGGER.warning("Command endpoint answered HTTP %s after %.2fs", response.status_code, elapsed)
            raise TransportError(
                f"Command endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            snippet = response.text[:200]
            raise DecodeError(f"Non-JSON reply from command endpoint: {snippet}") from exc
        LOGGER.info("Command endpoint replied in %.2fs", elapsed)
        return CommandReply.from_payload(data)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
