"""WebSocket transport to a node JSON-RPC endpoint."""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from enum import StrEnum
from typing import Any

import aiohttp
from yarl import URL

from chain_rpc_harness.errors import NodeConnectionError

log = logging.getLogger(__name__)

WEBSOCKET_SCHEMES = frozenset(["ws", "wss"])


class ConnectionState(StrEnum):
    """Lifecycle of a node connection."""

    CONNECTING = "connecting"
    READY = "ready"
    CLOSED = "closed"
    FAILED = "failed"


def parse_endpoint(endpoint: str | URL) -> URL:
    """Validate a node endpoint.

    Raises:
        NodeConnectionError: If the endpoint is not a ws:// or wss:// URL with a host

    """
    try:
        url = URL(endpoint)
    except (TypeError, ValueError) as exc:
        raise NodeConnectionError(f"Malformed endpoint {endpoint!r}: {exc}") from exc

    if url.scheme not in WEBSOCKET_SCHEMES or not url.host:
        raise NodeConnectionError(
            f"Malformed endpoint {endpoint!r}: expected ws:// or wss:// URL with a host"
        )
    return url


class Connection:
    """A single WebSocket session to one node endpoint.

    The session and socket are released by ``close``, which may be called any
    number of times.
    """

    def __init__(self, endpoint: URL) -> None:
        self.endpoint = endpoint
        self.state = ConnectionState.CONNECTING
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._ready = asyncio.Event()

    @property
    def is_ready(self) -> bool:
        return self.state is ConnectionState.READY

    async def wait_ready(self) -> None:
        """Wait until the connection has completed its handshake."""
        await self._ready.wait()

    async def open(self, timeout: float) -> None:
        """Open the session and perform the WebSocket handshake."""
        self._session = aiohttp.ClientSession()
        try:
            async with asyncio.timeout(timeout):
                self._ws = await self._session.ws_connect(self.endpoint)
        except (aiohttp.ClientError, OSError, TimeoutError) as exc:
            self.state = ConnectionState.FAILED
            await self._session.close()
            self._session = None
            raise NodeConnectionError(
                f"Failed to connect to {self.endpoint}: {exc!r}"
            ) from exc

        self.state = ConnectionState.READY
        self._ready.set()
        log.info("Connected to %s", self.endpoint)

    async def send_json(self, payload: Any) -> None:
        """Send one JSON text frame."""
        if self._ws is None or not self.is_ready:
            raise NodeConnectionError(f"Connection to {self.endpoint} is not ready")
        try:
            await self._ws.send_str(json.dumps(payload))
        except (aiohttp.ClientError, ConnectionError) as exc:
            raise NodeConnectionError(f"Failed to send to {self.endpoint}: {exc}") from exc

    async def frames(self) -> AsyncGenerator[Any, None]:
        """Yield decoded JSON text frames until the socket closes."""
        if self._ws is None:
            raise NodeConnectionError(f"Connection to {self.endpoint} was never opened")

        async for message in self._ws:
            if message.type is aiohttp.WSMsgType.TEXT:
                try:
                    frame = json.loads(message.data)
                except ValueError as exc:
                    log.warning("Ignoring non-JSON frame from %s: %s", self.endpoint, exc)
                    continue
                yield frame
            elif message.type is aiohttp.WSMsgType.ERROR:
                raise NodeConnectionError(
                    f"WebSocket error from {self.endpoint}: {self._ws.exception()}"
                )

        if self.state is ConnectionState.READY:
            log.warning("Node %s closed the connection", self.endpoint)
            self.state = ConnectionState.CLOSED
            self._ready.clear()

    async def close(self) -> None:
        """Close the socket and session."""
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._session is not None:
            await self._session.close()
            self._session = None
            log.info("Closed connection to %s", self.endpoint)
        if self.state is not ConnectionState.FAILED:
            self.state = ConnectionState.CLOSED
        self._ready.clear()


async def connect(endpoint: str | URL, *, timeout: float = 10.0) -> Connection:
    """Open a connection to a node endpoint.

    Raises:
        NodeConnectionError: If the endpoint is malformed or the connection
            is refused or times out

    """
    connection = Connection(parse_endpoint(endpoint))
    await connection.open(timeout)
    return connection
