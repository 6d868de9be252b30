"""Fire-and-forget delivery of signals to the downstream webhook."""

from __future__ import annotations

import asyncio
import contextlib

import aiohttp

from whale_relay.accounting.stats import RelayContext
from whale_relay.config import constants
from whale_relay.logging.loggers import get_relay_logger
from whale_relay.strategy.signal import Signal


class Forwarder:
    """POSTs signals as JSON to the sink. At-most-once, no retry."""

    def __init__(
        self,
        context: RelayContext,
        sink_url: str | None,
        timeout_seconds: float = constants.DELIVERY_TIMEOUT_SECONDS,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.context = context
        self.sink_url = sink_url or ""
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.logger = get_relay_logger()
        self._session = session
        self._owns_session = session is None
        self._pending: set[asyncio.Task] = set()

    @property
    def configured(self) -> bool:
        return bool(self.sink_url) and self.sink_url != constants.SINK_URL_PLACEHOLDER

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    def submit(self, signal: Signal) -> asyncio.Task | None:
        """Schedule delivery without waiting for it."""
        if not self.configured:
            self.logger.warning("sink_not_configured skip type=%s", signal.signal_type)
            return None
        task = asyncio.create_task(self.deliver(signal))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def deliver(self, signal: Signal) -> bool | None:
        """Send one signal. Returns True/False for outcome, None when unconfigured."""
        if not self.configured:
            self.logger.warning("sink_not_configured skip type=%s", signal.signal_type)
            return None
        stats = self.context.stats
        try:
            session = self._get_session()
            async with session.post(self.sink_url, json=signal.to_dict(), timeout=self.timeout) as resp:
                if not 200 <= resp.status < 300:
                    stats.errors += 1
                    self.logger.error("delivery_failed type=%s status=%s", signal.signal_type, resp.status)
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            stats.errors += 1
            self.logger.error("delivery_failed type=%s error=%r", signal.signal_type, exc)
            return False
        stats.signals_sent += 1
        self.logger.info(
            "delivered type=%s symbol=%s priority=%s",
            signal.signal_type,
            getattr(signal, "symbol", "") or "",
            signal.priority,
        )
        return True

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Drop in-flight deliveries and release the HTTP session."""
        for task in list(self._pending):
            task.cancel()
        for task in list(self._pending):
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._pending.clear()
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
