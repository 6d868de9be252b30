"""Signal models shared between classifiers, aggregator and forwarder."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Mapping

from whale_relay.config.constants import SOURCE

BUY_CALLS = "BUY_CALLS"
BUY_PUTS = "BUY_PUTS"
CONSIDER_CALLS = "CONSIDER_CALLS"
CONSIDER_PUTS = "CONSIDER_PUTS"

BULLISH = "BULLISH"
BEARISH = "BEARISH"
EXTREME_FEAR = "EXTREME_FEAR"
EXTREME_GREED = "EXTREME_GREED"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, kw_only=True)
class Signal:
    """Base relay signal. Subclasses set ``signal_type`` for the wire form."""

    signal_type: ClassVar[str] = "SIGNAL"

    timestamp: datetime = field(default_factory=utc_now)
    action: str
    reason: str
    priority: int
    source: str = SOURCE
    raw_data: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def _fields(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready wire form of the signal."""
        data: dict[str, Any] = {"type": self.signal_type}
        data.update(self._fields())
        data.update(
            {
                "timestamp": self.timestamp.isoformat(),
                "action": self.action,
                "reason": self.reason,
                "priority": self.priority,
                "source": self.source,
                "rawData": dict(self.raw_data),
            }
        )
        return data


@dataclass(frozen=True, kw_only=True)
class HighPremiumFlow(Signal):
    signal_type: ClassVar[str] = "HIGH_PREMIUM_FLOW"

    symbol: str
    side: str | None
    premium: float
    volume: float
    strike: Any = None
    expiry: Any = None

    def _fields(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "side": self.side,
            "premium": self.premium,
            "volume": self.volume,
            "strike": self.strike,
            "expiry": self.expiry,
        }


@dataclass(frozen=True, kw_only=True)
class DarkPoolPrint(Signal):
    signal_type: ClassVar[str] = "DARK_POOL_PRINT"

    symbol: str
    size: float
    price: float
    value: float
    sentiment: str

    def _fields(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "size": self.size,
            "price": self.price,
            "value": self.value,
            "sentiment": self.sentiment,
        }


@dataclass(frozen=True, kw_only=True)
class MarketSentiment(Signal):
    """Market-wide tide reading. Carries no symbol."""

    signal_type: ClassVar[str] = "MARKET_SENTIMENT"

    sentiment: str
    put_call_ratio: float

    def _fields(self) -> dict[str, Any]:
        return {"sentiment": self.sentiment, "putCallRatio": self.put_call_ratio}


@dataclass(frozen=True)
class WindowEntry:
    """A tracked signal and the monotonic time (ms) it was received."""

    signal: Signal
    received_at: float

    def to_dict(self) -> dict[str, Any]:
        data = self.signal.to_dict()
        data["receivedAt"] = self.received_at
        return data


@dataclass(frozen=True, kw_only=True)
class MultiFactorConfirmation(Signal):
    signal_type: ClassVar[str] = "MULTI_FACTOR_CONFIRMATION"

    symbol: str
    direction: str
    signal_count: int
    bullish_count: int
    bearish_count: int
    avg_priority: int
    underlying_signals: tuple[WindowEntry, ...] = ()

    def _fields(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "direction": self.direction,
            "signalCount": self.signal_count,
            "bullishCount": self.bullish_count,
            "bearishCount": self.bearish_count,
            "avgPriority": self.avg_priority,
            "underlyingSignals": [entry.to_dict() for entry in self.underlying_signals],
        }
