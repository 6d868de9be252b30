"""Main orchestration engine for the flow relay."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import aiohttp

from whale_relay.accounting.stats import RelayContext
from whale_relay.config.settings import RelayConfig
from whale_relay.data.upstream import ConnectionManager, EventKind, RelayEvent
from whale_relay.errors import MalformedFrame, MalformedPayload
from whale_relay.execution.forwarder import Forwarder
from whale_relay.health import HealthServer
from whale_relay.logging.loggers import get_relay_logger, get_signal_logger
from whale_relay.logging.metrics import summarize_stats
from whale_relay.strategy.classifiers import Thresholds
from whale_relay.strategy.confirmation import ConfirmationAggregator, monotonic_ms
from whale_relay.strategy.router import EventRouter, parse_frame
from whale_relay.strategy.signal import Signal


class RelayEngine:
    def __init__(
        self,
        config: RelayConfig,
        context: RelayContext | None = None,
        connect: Callable[..., Any] | None = None,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        self.config = config
        self.context = context or RelayContext()
        self.inbox: asyncio.Queue[RelayEvent] = asyncio.Queue()
        self.router = EventRouter(Thresholds.from_overrides(config.filters))
        self.aggregator = ConfirmationAggregator(
            window_ms=config.confirmation_window_ms,
            min_signals=config.min_confirming_signals,
            max_symbols=config.max_tracked_symbols,
            clock=clock,
        )
        self.forwarder = Forwarder(
            self.context,
            config.sink_url,
            timeout_seconds=config.delivery_timeout_seconds,
            session=session,
        )
        self.connection = ConnectionManager(
            self.context,
            self.inbox,
            url=config.ws_url,
            api_key=config.api_key,
            heartbeat_interval_ms=config.heartbeat_interval_ms,
            reconnect_base_ms=config.reconnect_base_ms,
            reconnect_cap_ms=config.reconnect_cap_ms,
            connect=connect,
        )
        self.signal_logger = get_signal_logger()
        self.relay_logger = get_relay_logger()

    def request_shutdown(self) -> None:
        """Ask the loop to stop after the event it is currently handling."""
        self.relay_logger.info("shutdown requested")
        self.inbox.put_nowait(RelayEvent(EventKind.SHUTDOWN))

    def handle_frame(self, frame: str | bytes) -> list[Signal]:
        """Process one inbound frame end to end; returns the signals submitted."""
        stats = self.context.stats
        stats.messages_received += 1
        try:
            message = parse_frame(frame)
            if self.router.is_heartbeat_reply(message):
                return []
            event = self.router.route(message)
            if event is None:
                stats.unknown_messages += 1
                self.relay_logger.info(
                    "unknown_message type=%s", message.get("channel") or message.get("type") or message.get("event")
                )
                return []
            signal = self.router.classify(event)
        except (MalformedFrame, MalformedPayload) as exc:
            stats.errors += 1
            self.relay_logger.error("parse_failed error=%s", exc)
            return []

        if signal is None:
            self.signal_logger.debug("filtered channel=%s", event.channel)
            return []

        emitted = [signal]
        self.signal_logger.info(
            "signal type=%s symbol=%s action=%s priority=%d reason=%s",
            signal.signal_type,
            getattr(signal, "symbol", "-"),
            signal.action,
            signal.priority,
            signal.reason,
        )
        confirmation = self.aggregator.track(signal)
        if confirmation is not None:
            stats.confirmations_emitted += 1
            emitted.append(confirmation)
            self.signal_logger.info(
                "confirmed symbol=%s direction=%s signals=%d priority=%d",
                confirmation.symbol,
                confirmation.direction,
                confirmation.signal_count,
                confirmation.priority,
            )
        stats.signals_emitted += len(emitted)
        for item in emitted:
            self.forwarder.submit(item)
        return emitted

    async def run(self, serve_status: bool = True) -> dict[str, Any]:
        """Run until :meth:`request_shutdown`; returns the final stats snapshot."""
        health = HealthServer(self.context, self.config.host, self.config.port) if serve_status else None
        if health is not None:
            await health.start()
        if not self.config.api_key:
            self.relay_logger.warning("api_key_missing upstream may reject the handshake")
        if not self.forwarder.configured:
            self.relay_logger.warning("sink_not_configured signals will not be delivered")

        self.connection.start()
        try:
            while True:
                event = await self.inbox.get()
                if event.kind is EventKind.SHUTDOWN:
                    break
                if event.kind is EventKind.FRAME:
                    if self.connection.is_current(event):
                        self.handle_frame(event.payload)
                    continue
                await self.connection.handle(event)
        finally:
            await self.connection.close()
            await self.forwarder.close()
            if health is not None:
                await health.stop()
        return summarize_stats(self.context)
