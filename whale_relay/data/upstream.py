"""Upstream websocket lifecycle: connect, subscribe, heartbeat, reconnect."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import asyncio
import contextlib
import json
from typing import Any, Callable

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from whale_relay.accounting.stats import ConnectionStatus, RelayContext
from whale_relay.config import constants
from whale_relay.logging.loggers import get_relay_logger

TRANSPORT_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)
CLOSE_TIMEOUT_SECONDS = 2.0


class EventKind(str, Enum):
    OPENED = "opened"
    FRAME = "frame"
    CLOSED = "closed"
    HEARTBEAT_DUE = "heartbeat_due"
    RECONNECT_DUE = "reconnect_due"
    SHUTDOWN = "shutdown"


@dataclass(frozen=True)
class RelayEvent:
    """Item on the engine inbox. ``generation`` ties it to one connection attempt."""

    kind: EventKind
    payload: Any = None
    generation: int = 0


def backoff_delay_ms(
    attempts: int,
    base_ms: int = constants.RECONNECT_BASE_MS,
    cap_ms: int = constants.RECONNECT_CAP_MS,
) -> int:
    """Reconnect delay for the given attempt number: base * 2**attempts, capped."""
    return min(base_ms * 2 ** attempts, cap_ms)


def subscribe_message(channels: tuple[str, ...] = constants.CHANNELS) -> str:
    return json.dumps({"action": "subscribe", "channels": list(channels)})


class ConnectionManager:
    """Owns the upstream socket and its state transitions.

    Socket reads and timers never act on state directly: they post
    ``RelayEvent`` items to ``inbox`` and the engine hands the lifecycle
    events back to :meth:`handle`, one at a time.
    """

    def __init__(
        self,
        context: RelayContext,
        inbox: asyncio.Queue,
        url: str = constants.DEFAULT_WS_URL,
        api_key: str = "",
        heartbeat_interval_ms: int = constants.HEARTBEAT_INTERVAL_MS,
        reconnect_base_ms: int = constants.RECONNECT_BASE_MS,
        reconnect_cap_ms: int = constants.RECONNECT_CAP_MS,
        connect: Callable[..., Any] | None = None,
    ) -> None:
        self.context = context
        self.inbox = inbox
        self.url = url
        self.api_key = api_key
        self.heartbeat_interval_ms = heartbeat_interval_ms
        self.reconnect_base_ms = reconnect_base_ms
        self.reconnect_cap_ms = reconnect_cap_ms
        self.connect = connect or websockets.connect
        self.logger = get_relay_logger()
        self.generation = 0
        self._ws: Any = None
        self._reader: asyncio.Task | None = None
        self._heartbeat: asyncio.Task | None = None
        self._reconnect: asyncio.Task | None = None
        self._closing = False

    @property
    def state(self):
        return self.context.connection

    @property
    def heartbeat_running(self) -> bool:
        return self._heartbeat is not None and not self._heartbeat.done()

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect is not None and not self._reconnect.done()

    def start(self) -> None:
        """Open a new connection attempt (DISCONNECTED/RECONNECTING -> CONNECTING)."""
        if self._closing:
            return
        self.generation += 1
        self.state.status = ConnectionStatus.CONNECTING
        self.logger.info("connecting url=%s attempt=%d", self.url, self.state.reconnect_attempts)
        self._reader = asyncio.create_task(self._read(self.generation))

    def _post(self, kind: EventKind, payload: Any = None, generation: int | None = None) -> None:
        self.inbox.put_nowait(RelayEvent(kind, payload, self.generation if generation is None else generation))

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}

    async def _read(self, generation: int) -> None:
        try:
            ws = await self.connect(self.url, additional_headers=self._headers())
        except TRANSPORT_ERRORS as exc:
            self._post(EventKind.CLOSED, exc, generation)
            return
        except Exception as exc:
            # any other failure still ends this attempt
            self.logger.exception("connect_failed unexpected error=%r", exc)
            self._post(EventKind.CLOSED, exc, generation)
            return
        self._post(EventKind.OPENED, ws, generation)
        try:
            async for message in ws:
                self._post(EventKind.FRAME, message, generation)
        except ConnectionClosed as exc:
            self._post(EventKind.CLOSED, exc, generation)
            return
        except Exception as exc:
            self.logger.exception("read_failed unexpected error=%r", exc)
            self._post(EventKind.CLOSED, exc, generation)
            return
        self._post(EventKind.CLOSED, None, generation)

    def is_current(self, event: RelayEvent) -> bool:
        return event.generation == self.generation

    async def handle(self, event: RelayEvent) -> None:
        """Apply one lifecycle event from the inbox."""
        if not self.is_current(event) or self._closing:
            self.logger.debug("stale_event kind=%s generation=%d", event.kind.value, event.generation)
            if event.kind is EventKind.OPENED:
                await self._close_socket(event.payload)
            return
        if event.kind is EventKind.OPENED:
            await self._on_open(event.payload)
        elif event.kind is EventKind.CLOSED:
            self._on_close(event.payload)
        elif event.kind is EventKind.HEARTBEAT_DUE:
            await self._ping()
        elif event.kind is EventKind.RECONNECT_DUE:
            self._reconnect = None
            self.start()

    async def _on_open(self, ws: Any) -> None:
        self._ws = ws
        self.state.status = ConnectionStatus.CONNECTED
        self.state.reconnect_attempts = 0
        self.state.last_error = None
        self.logger.info("connected url=%s", self.url)
        try:
            await ws.send(subscribe_message())
            self.logger.info("subscribed channels=%s", ",".join(constants.CHANNELS))
        except ConnectionClosed as exc:
            # reader posts the CLOSED event
            self.logger.warning("subscribe_failed error=%r", exc)
        self.start_heartbeat()

    def _on_close(self, exc: BaseException | None) -> None:
        self.stop_heartbeat()
        self._ws = None
        self.state.status = ConnectionStatus.RECONNECTING
        self.state.reconnect_attempts += 1
        if exc is not None:
            self.context.stats.errors += 1
            self.state.last_error = repr(exc)
        delay = backoff_delay_ms(self.state.reconnect_attempts, self.reconnect_base_ms, self.reconnect_cap_ms)
        self.logger.warning(
            "disconnected error=%r reconnect_in=%.1fs attempt=%d",
            exc,
            delay / 1000,
            self.state.reconnect_attempts,
        )
        self.schedule_reconnect(delay)

    def schedule_reconnect(self, delay_ms: float) -> None:
        if self.reconnect_pending:
            return
        self._reconnect = asyncio.create_task(self._post_after(delay_ms, EventKind.RECONNECT_DUE))

    async def _post_after(self, delay_ms: float, kind: EventKind) -> None:
        generation = self.generation
        await asyncio.sleep(delay_ms / 1000)
        self._post(kind, generation=generation)

    def start_heartbeat(self) -> None:
        if self.heartbeat_running:
            return
        self._heartbeat = asyncio.create_task(self._tick(self.generation))

    def stop_heartbeat(self) -> None:
        if self._heartbeat is not None:
            self._heartbeat.cancel()
            self._heartbeat = None

    async def _tick(self, generation: int) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval_ms / 1000)
            self._post(EventKind.HEARTBEAT_DUE, generation=generation)

    async def _ping(self) -> None:
        if not self.state.connected or self._ws is None:
            return
        try:
            await self._ws.ping()
            self.logger.debug("ping sent")
        except (ConnectionClosed, RuntimeError) as exc:
            # liveness ping is best effort; the reader reports real failures
            self.logger.debug("ping_failed error=%r", exc)

    async def _close_socket(self, ws: Any) -> None:
        if ws is None:
            return
        with contextlib.suppress(*TRANSPORT_ERRORS):
            await asyncio.wait_for(ws.close(), CLOSE_TIMEOUT_SECONDS)

    async def close(self) -> None:
        """Cancel timers, close the socket and stop reading."""
        self._closing = True
        self.stop_heartbeat()
        if self._reconnect is not None:
            self._reconnect.cancel()
            self._reconnect = None
        await self._close_socket(self._ws)
        self._ws = None
        if self._reader is not None:
            self._reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader
            self._reader = None
        self.state.status = ConnectionStatus.DISCONNECTED
        self.logger.info("connection closed")
