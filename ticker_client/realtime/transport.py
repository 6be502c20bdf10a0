import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable

import socketio

from ticker_client.core.config import Settings, get_settings
from ticker_client.core.errors import AckTimeoutError, TransportNotConnectedError

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Awaitable[None] | None]
ConnectionListener = Callable[[bool, int], Awaitable[None] | None]


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class ListenerScope:
    def __init__(self, transport: "TransportSession") -> None:
        self._transport = transport
        self._subscriptions: list[tuple[str, EventHandler]] = []
        self._connection_listeners: list[ConnectionListener] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def events(self) -> list[str]:
        return [event for event, _handler in self._subscriptions]

    def subscribe(self, event: str, handler: EventHandler) -> None:
        if self._closed:
            raise RuntimeError("listener scope is closed")
        self._transport.subscribe(event, handler)
        self._subscriptions.append((event, handler))

    def on_connection(self, listener: ConnectionListener) -> None:
        if self._closed:
            raise RuntimeError("listener scope is closed")
        self._transport.add_connection_listener(listener)
        self._connection_listeners.append(listener)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for event, handler in self._subscriptions:
            self._transport.unsubscribe(event, handler)
        for listener in self._connection_listeners:
            self._transport.remove_connection_listener(listener)
        self._subscriptions.clear()
        self._connection_listeners.clear()
        self._transport._forget_scope(self)

    def __enter__(self) -> "ListenerScope":
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()


class TransportSession:
    def __init__(
        self,
        settings: Settings | None = None,
        client: socketio.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client or socketio.AsyncClient(
            reconnection=True,
            reconnection_attempts=0,
            reconnection_delay=self._settings.reconnection_delay_seconds,
            reconnection_delay_max=self._settings.reconnection_delay_max_seconds,
            logger=False,
            engineio_logger=False,
        )
        self._handlers: dict[str, list[EventHandler]] = {}
        self._bound_events: set[str] = set()
        self._connection_listeners: list[ConnectionListener] = []
        self._scopes: list[ListenerScope] = []
        self._epoch = 0
        self._connect_lock = asyncio.Lock()
        self._retry_task: asyncio.Task | None = None
        self._closing = False

        self._client.on("connect", self._on_connect)
        self._client.on("disconnect", self._on_disconnect)
        self._client.on("connect_error", self._on_connect_error)

    @property
    def connected(self) -> bool:
        return bool(self._client.connected)

    @property
    def sid(self) -> str | None:
        if not self.connected:
            return None
        return self._client.get_sid()

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def url(self) -> str:
        return self._settings.server_url

    async def open(self) -> bool:
        async with self._connect_lock:
            self._closing = False
            if self.connected:
                return True
            if self._retry_task and not self._retry_task.done():
                return False
            if await self._try_connect():
                return True
            self._retry_task = asyncio.create_task(self._retry_connect_loop())
            return False

    async def connect(self) -> bool:
        return await self.open()

    async def _try_connect(self) -> bool:
        try:
            await self._client.connect(
                self._settings.server_url,
                socketio_path=self._settings.socket_path,
                transports=self._settings.transports,
                wait_timeout=self._settings.connect_wait_timeout_seconds,
            )
        except socketio.exceptions.ConnectionError as exc:
            logger.warning("connection to %s failed: %s", self._settings.server_url, exc)
            return False
        return True

    async def _retry_connect_loop(self) -> None:
        delay = max(0.1, self._settings.reconnection_delay_seconds)
        delay_max = max(delay, self._settings.reconnection_delay_max_seconds)
        while not self._closing and not self.connected:
            await asyncio.sleep(delay)
            if self._closing:
                return
            if await self._try_connect():
                return
            delay = min(delay * 2, delay_max)

    async def close(self) -> None:
        self._closing = True
        if self._retry_task and not self._retry_task.done():
            self._retry_task.cancel()
            try:
                await self._retry_task
            except asyncio.CancelledError:
                pass
        self._retry_task = None
        for scope in list(self._scopes):
            scope.close()
        if self.connected:
            await self._client.disconnect()

    def scope(self) -> ListenerScope:
        scope = ListenerScope(self)
        self._scopes.append(scope)
        return scope

    def _forget_scope(self, scope: ListenerScope) -> None:
        if scope in self._scopes:
            self._scopes.remove(scope)

    def subscribe(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.setdefault(event, [])
        if handler not in handlers:
            handlers.append(handler)
        if event not in self._bound_events:
            self._client.on(event, self._dispatcher_for(event))
            self._bound_events.add(event)

    def unsubscribe(self, event: str, handler: EventHandler | None = None) -> None:
        if handler is None:
            self._handlers.pop(event, None)
            return
        handlers = self._handlers.get(event)
        if not handlers:
            return
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            self._handlers.pop(event, None)

    def has_handlers(self, event: str) -> bool:
        return bool(self._handlers.get(event))

    def subscribed_events(self) -> set[str]:
        return {event for event, handlers in self._handlers.items() if handlers}

    def add_connection_listener(self, listener: ConnectionListener) -> None:
        if listener not in self._connection_listeners:
            self._connection_listeners.append(listener)

    def remove_connection_listener(self, listener: ConnectionListener) -> None:
        if listener in self._connection_listeners:
            self._connection_listeners.remove(listener)

    def _dispatcher_for(self, event: str) -> Callable[..., Awaitable[None]]:
        async def dispatch(*args: Any) -> None:
            await self.dispatch(event, *args)

        return dispatch

    async def dispatch(self, event: str, *args: Any) -> None:
        payload = args[0] if args else None
        for handler in list(self._handlers.get(event, [])):
            try:
                await _invoke(handler, payload)
            except Exception:
                logger.exception("handler for %s failed", event)

    async def _notify_connection(self, connected: bool) -> None:
        for listener in list(self._connection_listeners):
            try:
                await _invoke(listener, connected, self._epoch)
            except Exception:
                logger.exception("connection listener failed")

    async def _on_connect(self) -> None:
        self._epoch += 1
        logger.info("connected to %s (sid=%s, epoch=%d)", self.url, self.sid, self._epoch)
        await self._notify_connection(True)

    async def _on_disconnect(self, *args: Any) -> None:
        reason = args[0] if args else "unknown"
        logger.info("disconnected from %s: %s", self.url, reason)
        await self._notify_connection(False)

    async def _on_connect_error(self, *args: Any) -> None:
        logger.warning("connect error from %s: %s", self.url, args[0] if args else "unknown")

    async def emit(
        self,
        event: str,
        payload: dict | None = None,
        on_ack: Callable[[Any], Any] | None = None,
    ) -> None:
        if not self.connected:
            raise TransportNotConnectedError(event)
        callback = None
        if on_ack is not None:

            async def callback(*args: Any) -> None:
                try:
                    await _invoke(on_ack, args[0] if args else None)
                except Exception:
                    logger.exception("ack callback for %s failed", event)

        await self._client.emit(event, payload, callback=callback)

    async def call(self, event: str, payload: dict | None = None, timeout: float | None = None) -> Any:
        if not self.connected:
            raise TransportNotConnectedError(event)
        wait = timeout if timeout is not None else self._settings.ack_timeout_seconds
        try:
            return await self._client.call(event, payload, timeout=wait)
        except socketio.exceptions.TimeoutError as exc:
            raise AckTimeoutError(event, wait) from exc
        except socketio.exceptions.BadNamespaceError as exc:
            raise TransportNotConnectedError(event) from exc
