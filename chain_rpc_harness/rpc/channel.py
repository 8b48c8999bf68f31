"""JSON-RPC 2.0 request/response and subscription routing over a connection."""

import asyncio
import inspect
import itertools
import logging
from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from chain_rpc_harness.errors import (
    HarnessError,
    NodeConnectionError,
    RpcError,
    RpcTimeoutError,
)
from chain_rpc_harness.transport import Connection

log = logging.getLogger(__name__)

type Callback[T] = Callable[[T], Awaitable[None] | None]

_CLOSED = object()


@dataclass(frozen=True)
class _Failure:
    error: BaseException


class Subscription[T]:
    """A node subscription, consumed as an async iterator or through a callback.

    Items are delivered in arrival order. ``unsubscribe`` stops all further
    delivery; undelivered items still in the queue are discarded, but a
    callback that is already running is left to finish.
    """

    def __init__(
        self,
        channel: "RpcChannel",
        *,
        method: str,
        unsubscribe_method: str,
        parse: Callable[[Any], T],
    ) -> None:
        self.method = method
        self.subscription_id: str | None = None
        self._channel = channel
        self._unsubscribe_method = unsubscribe_method
        self._parse = parse
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False
        self._pump: asyncio.Task[None] | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED or self._closed:
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self._closed = True
            raise item.error
        return self._parse(item)

    def listen(self, callback: Callback[T]) -> None:
        """Start delivering items to ``callback`` on a background task."""
        if self._pump is not None:
            raise RuntimeError(f"Subscription {self.subscription_id} already has a listener")
        self._pump = asyncio.create_task(self._run_pump(callback))

    async def _run_pump(self, callback: Callback[T]) -> None:
        try:
            async for item in self:
                result = callback(item)
                if inspect.isawaitable(result):
                    await result
        finally:
            try:
                await self.unsubscribe()
            except HarnessError as exc:
                log.warning("Failed to unsubscribe %s: %s", self.subscription_id, exc)

    async def wait_closed(self) -> None:
        """Wait for the listener to stop; re-raises any callback exception."""
        if self._pump is not None:
            await self._pump

    async def unsubscribe(self) -> None:
        """Stop delivery and cancel the subscription on the node."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        self._channel.forget(self)

        if self.subscription_id is not None and self._channel.is_open:
            result = await self._channel.call(
                self._unsubscribe_method, [self.subscription_id]
            )
            log.debug(
                "Unsubscribed %s (%s): %s", self.method, self.subscription_id, result
            )

    def deliver(self, payload: Any) -> None:
        if not self._closed:
            self._queue.put_nowait(payload)

    def fail(self, error: BaseException) -> None:
        if not self._closed:
            self._queue.put_nowait(_Failure(error))

    def end(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)


@dataclass(kw_only=True)
class _PendingCall:
    method: str
    future: asyncio.Future[Any]
    subscription: Subscription[Any] | None = None


@dataclass(kw_only=True)
class RpcChannel:
    """Correlates JSON-RPC responses with requests and routes notifications.

    A single reader task consumes the connection's frames. The channel holds
    a non-owning reference to the connection and never closes it.
    """

    connection: Connection
    timeout: float = 5.0
    _ids: Iterator[int] = field(
        default_factory=lambda: itertools.count(1), init=False, repr=False
    )
    _pending: dict[int, _PendingCall] = field(default_factory=dict, init=False, repr=False)
    _subscriptions: dict[str, Subscription[Any]] = field(
        default_factory=dict, init=False, repr=False
    )
    _reader: asyncio.Task[None] | None = field(default=None, init=False, repr=False)

    @property
    def is_open(self) -> bool:
        return (
            self._reader is not None
            and not self._reader.done()
            and self.connection.is_ready
        )

    def start(self) -> None:
        """Start the reader task."""
        if self._reader is None:
            self._reader = asyncio.create_task(self._read_loop())

    async def close(self) -> None:
        """Stop the reader and fail everything still waiting on it."""
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
        for subscription in self._subscriptions.values():
            subscription.end()
        self._subscriptions.clear()
        self._fail_all(NodeConnectionError("RPC channel closed"))

    async def call(
        self,
        method: str,
        params: Sequence[Any] = (),
        *,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and wait for its result.

        Raises:
            RpcError: If the node answers with an error frame
            RpcTimeoutError: If no answer arrives within the deadline
            NodeConnectionError: If the connection is lost

        """
        return await self._request(method, params, timeout=timeout)

    async def subscribe[T](
        self,
        method: str,
        params: Sequence[Any] = (),
        *,
        unsubscribe_method: str,
        parse: Callable[[Any], T],
        timeout: float | None = None,
    ) -> Subscription[T]:
        """Open a subscription; the returned object yields parsed notifications."""
        subscription = Subscription(
            self, method=method, unsubscribe_method=unsubscribe_method, parse=parse
        )
        await self._request(method, params, timeout=timeout, subscription=subscription)
        log.debug("Subscribed %s as %s", method, subscription.subscription_id)
        return subscription

    def forget(self, subscription: Subscription[Any]) -> None:
        if subscription.subscription_id is not None:
            self._subscriptions.pop(subscription.subscription_id, None)

    async def _request(
        self,
        method: str,
        params: Sequence[Any],
        *,
        timeout: float | None,
        subscription: Subscription[Any] | None = None,
    ) -> Any:
        if self._reader is None or self._reader.done():
            raise NodeConnectionError(f"RPC channel is not running, cannot call {method}")

        deadline = self.timeout if timeout is None else timeout
        request_id = next(self._ids)
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = _PendingCall(
            method=method, future=future, subscription=subscription
        )

        try:
            await self.connection.send_json(
                {"jsonrpc": "2.0", "id": request_id, "method": method, "params": list(params)}
            )
            async with asyncio.timeout(deadline):
                return await future
        except TimeoutError as exc:
            raise RpcTimeoutError(method, deadline) from exc
        finally:
            self._pending.pop(request_id, None)

    async def _read_loop(self) -> None:
        try:
            async for frame in self.connection.frames():
                try:
                    self._dispatch(frame)
                except (AttributeError, KeyError, TypeError, ValueError) as exc:
                    log.warning("Ignoring malformed frame %r: %s", frame, exc)
        except NodeConnectionError as exc:
            log.error("Connection failed while reading: %s", exc)
            self._fail_all(exc)
            return
        except Exception as exc:
            log.exception("RPC reader stopped unexpectedly")
            self._fail_all(NodeConnectionError(f"RPC reader stopped: {exc!r}"))
            return
        self._fail_all(NodeConnectionError("Connection closed by node"))

    def _dispatch(self, frame: Any) -> None:
        if not isinstance(frame, dict):
            log.warning("Ignoring non-object frame: %r", frame)
            return

        if "id" in frame and frame["id"] is not None:
            if not isinstance(frame["id"], int | str):
                log.warning("Ignoring response with invalid id: %r", frame)
                return
            self._resolve(frame)
        elif "params" in frame and isinstance(frame["params"], dict):
            self._notify(frame)
        else:
            log.warning("Ignoring unexpected frame: %r", frame)

    def _resolve(self, frame: dict[str, Any]) -> None:
        pending = self._pending.get(frame["id"])
        if pending is None or pending.future.done():
            log.debug("Dropping response for unknown or expired id %s", frame["id"])
            return

        if (error := frame.get("error")) is not None:
            if not isinstance(error, dict):
                error = {"message": str(error)}
            pending.future.set_exception(
                RpcError(
                    code=error.get("code", 0),
                    message=error.get("message", ""),
                    data=error.get("data"),
                )
            )
            return

        result = frame.get("result")
        if pending.subscription is not None:
            # Registered here, before any later frame is read, so that
            # notifications sent right after the response are not lost.
            subscription_id = str(result)
            pending.subscription.subscription_id = subscription_id
            self._subscriptions[subscription_id] = pending.subscription
        pending.future.set_result(result)

    def _notify(self, frame: dict[str, Any]) -> None:
        params = frame["params"]
        subscription = self._subscriptions.get(str(params.get("subscription")))
        if subscription is None:
            log.debug("Dropping notification for unknown subscription: %r", frame)
            return
        subscription.deliver(params.get("result"))

    def _fail_all(self, error: BaseException) -> None:
        for pending in self._pending.values():
            if not pending.future.done():
                pending.future.set_exception(error)
        for subscription in self._subscriptions.values():
            subscription.fail(error)
        self._subscriptions.clear()
