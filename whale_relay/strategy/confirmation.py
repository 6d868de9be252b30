"""Per-symbol multi-signal confirmation within a sliding window."""

from __future__ import annotations

import math
import time
from typing import Callable

from whale_relay.config import constants
from whale_relay.strategy.signal import (
    BEARISH,
    BULLISH,
    BUY_CALLS,
    BUY_PUTS,
    MultiFactorConfirmation,
    Signal,
    WindowEntry,
    utc_now,
)


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_bullish(signal: Signal) -> bool:
    return "CALL" in signal.action or getattr(signal, "sentiment", None) == BULLISH


def is_bearish(signal: Signal) -> bool:
    return "PUT" in signal.action or getattr(signal, "sentiment", None) == BEARISH


class ConfirmationAggregator:
    """Tracks recent signals per symbol and emits a confirmation once enough agree.

    Entries older than ``window_ms`` are purged before every evaluation, and a
    symbol's window is cleared as soon as it produces a confirmation so the same
    evidence is never counted twice. At most ``max_symbols`` windows are kept;
    on overflow expired windows are swept first, then the symbol with the oldest
    latest entry is dropped.
    """

    def __init__(
        self,
        window_ms: float = constants.CONFIRMATION_WINDOW_MS,
        min_signals: int = constants.MIN_CONFIRMING_SIGNALS,
        max_symbols: int = constants.MAX_TRACKED_SYMBOLS,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        self.window_ms = window_ms
        self.min_signals = min_signals
        self.max_symbols = max_symbols
        self.clock = clock
        self._windows: dict[str, list[WindowEntry]] = {}

    def window(self, symbol: str) -> list[WindowEntry]:
        """Copy of the current entries for ``symbol``."""
        return list(self._windows.get(symbol, ()))

    @property
    def tracked_symbols(self) -> int:
        return len(self._windows)

    def track(self, signal: Signal, now: float | None = None) -> MultiFactorConfirmation | None:
        """Record ``signal``; return a confirmation when the window reaches the minimum."""
        symbol = getattr(signal, "symbol", None)
        if not symbol:
            return None
        now = self.clock() if now is None else now

        if symbol not in self._windows:
            self._make_room(now)
        entries = self._windows.setdefault(symbol, [])
        entries.append(WindowEntry(signal=signal, received_at=now))
        entries[:] = self._live(entries, now)

        if len(entries) < self.min_signals:
            return None

        confirmation = self._confirm(symbol, tuple(entries))
        del self._windows[symbol]
        return confirmation

    def purge(self, now: float | None = None) -> None:
        """Drop expired entries for every symbol, and empty windows with them."""
        now = self.clock() if now is None else now
        for symbol in list(self._windows):
            live = self._live(self._windows[symbol], now)
            if live:
                self._windows[symbol] = live
            else:
                del self._windows[symbol]

    def _live(self, entries: list[WindowEntry], now: float) -> list[WindowEntry]:
        return [e for e in entries if now - e.received_at < self.window_ms]

    def _make_room(self, now: float) -> None:
        if len(self._windows) < self.max_symbols:
            return
        self.purge(now)
        while len(self._windows) >= self.max_symbols:
            stalest = min(self._windows, key=lambda s: self._windows[s][-1].received_at)
            del self._windows[stalest]

    def _confirm(self, symbol: str, entries: tuple[WindowEntry, ...]) -> MultiFactorConfirmation:
        signals = [e.signal for e in entries]
        bullish = sum(1 for s in signals if is_bullish(s))
        bearish = sum(1 for s in signals if is_bearish(s))
        avg_priority = round_half_up(sum(s.priority for s in signals) / len(signals))
        # Ties resolve to BEARISH
        direction = BULLISH if bullish > bearish else BEARISH
        return MultiFactorConfirmation(
            timestamp=utc_now(),
            symbol=symbol,
            direction=direction,
            signal_count=len(signals),
            bullish_count=bullish,
            bearish_count=bearish,
            avg_priority=avg_priority,
            underlying_signals=entries,
            action=BUY_CALLS if direction == BULLISH else BUY_PUTS,
            reason=f"{len(signals)} confirming signals ({bullish} bullish, {bearish} bearish)",
            priority=min(constants.MAX_PRIORITY, avg_priority + constants.CONFIRMATION_PRIORITY_BOOST),
        )
