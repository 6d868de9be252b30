"""Per-channel filter and scoring policies for upstream events."""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
import math
from typing import Any, Mapping, Sequence

from whale_relay.config import constants
from whale_relay.data.payload import first_present, number_field
from whale_relay.strategy.signal import (
    BEARISH,
    BULLISH,
    BUY_CALLS,
    BUY_PUTS,
    CONSIDER_CALLS,
    CONSIDER_PUTS,
    EXTREME_FEAR,
    EXTREME_GREED,
    DarkPoolPrint,
    HighPremiumFlow,
    MarketSentiment,
    utc_now,
)

# Alternate upstream field names, preferred name first
SYMBOL_FIELDS = ("ticker", "symbol")
SIDE_FIELDS = ("call_put", "type")
EXPIRY_FIELDS = ("expiry", "expiration_date")
AVERAGE_PRICE_FIELDS = ("average_price", "avg_price")
PUT_CALL_RATIO_FIELDS = ("put_call_ratio", "pcRatio")


@dataclass(frozen=True)
class Thresholds:
    """Static filter settings shared by all policies."""

    min_premium: float = constants.MIN_PREMIUM
    min_dark_pool: float = constants.MIN_DARK_POOL
    min_priority: int = constants.MIN_PRIORITY
    fear_put_call_ratio: float = constants.FEAR_PUT_CALL_RATIO
    greed_put_call_ratio: float = constants.GREED_PUT_CALL_RATIO
    universe: frozenset[str] = constants.TIER_1

    def __post_init__(self) -> None:
        if self.greed_put_call_ratio > self.fear_put_call_ratio:
            raise ValueError("greed ratio must not exceed fear ratio")

    @classmethod
    def from_overrides(cls, overrides: Mapping[str, Any]) -> "Thresholds":
        """Build thresholds from config, ignoring unknown keys.

        Values are coerced to numbers here so a bad setting fails at load
        time rather than on the first matching event. Raises ``ValueError``.
        """
        known = {f.name for f in fields(cls)} - {"universe"}
        return cls(**{k: _threshold_value(k, v) for k, v in overrides.items() if k in known})


def _threshold_value(name: str, value: Any) -> float | int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(number):
        raise ValueError(f"{name} must be finite, got {value!r}")
    if name == "min_priority":
        if not number.is_integer():
            raise ValueError(f"{name} must be a whole number, got {value!r}")
        return int(number)
    return number


def band_priority(amount: float, bands: Sequence[tuple[float, int]], floor: int = constants.BASE_PRIORITY) -> int:
    """Step function: first band whose lower bound ``amount`` exceeds wins."""
    for lower, priority in bands:
        if amount > lower:
            return priority
    return floor


def is_call(side: Any) -> bool:
    return isinstance(side, str) and side.strip().upper() == "CALL"


def _symbol(payload: Mapping[str, Any], thresholds: Thresholds) -> str | None:
    symbol = first_present(payload, SYMBOL_FIELDS)
    if isinstance(symbol, str) and symbol in thresholds.universe:
        return symbol
    return None


class FlowPolicy:
    """High-premium options flow on Tier-1 names."""

    def __init__(self, thresholds: Thresholds) -> None:
        self.thresholds = thresholds

    def classify(self, payload: Mapping[str, Any], ts: datetime | None = None) -> HighPremiumFlow | None:
        symbol = _symbol(payload, self.thresholds)
        if symbol is None:
            return None

        premium = number_field(payload, ("premium",), 0)
        if premium < self.thresholds.min_premium:
            return None

        priority = band_priority(premium, constants.FLOW_PRIORITY_BANDS)
        if priority < self.thresholds.min_priority:
            return None

        side = first_present(payload, SIDE_FIELDS)
        return HighPremiumFlow(
            timestamp=ts or utc_now(),
            symbol=symbol,
            side=side,
            premium=premium,
            volume=number_field(payload, ("volume",), 0),
            strike=payload.get("strike"),
            expiry=first_present(payload, EXPIRY_FIELDS),
            action=BUY_CALLS if is_call(side) else BUY_PUTS,
            reason=f"${premium / 1_000_000:.2f}M premium flow detected LIVE",
            priority=priority,
            raw_data=dict(payload),
        )


class DarkPoolPolicy:
    """Large off-exchange prints on Tier-1 names."""

    def __init__(self, thresholds: Thresholds) -> None:
        self.thresholds = thresholds

    def classify(self, payload: Mapping[str, Any], ts: datetime | None = None) -> DarkPoolPrint | None:
        symbol = _symbol(payload, self.thresholds)
        if symbol is None:
            return None

        size = number_field(payload, ("size",), 0)
        price = number_field(payload, ("price",), 0)
        value = size * price
        if value < self.thresholds.min_dark_pool:
            return None

        priority = band_priority(value, constants.DARK_POOL_PRIORITY_BANDS)
        if priority < self.thresholds.min_priority:
            return None

        reference = number_field(payload, AVERAGE_PRICE_FIELDS, price)
        sentiment = BULLISH if price > reference else BEARISH
        return DarkPoolPrint(
            timestamp=ts or utc_now(),
            symbol=symbol,
            size=size,
            price=price,
            value=value,
            sentiment=sentiment,
            action=BUY_CALLS if sentiment == BULLISH else BUY_PUTS,
            reason=f"${value / 1_000_000:.2f}M dark pool {sentiment} LIVE",
            priority=priority,
            raw_data=dict(payload),
        )


class TidePolicy:
    """Market-wide put/call extremes. No symbol filter."""

    def __init__(self, thresholds: Thresholds) -> None:
        self.thresholds = thresholds

    def classify(self, payload: Mapping[str, Any], ts: datetime | None = None) -> MarketSentiment | None:
        ratio = number_field(payload, PUT_CALL_RATIO_FIELDS)
        if ratio is None:
            return None

        if ratio > self.thresholds.fear_put_call_ratio:
            sentiment, action, mood = EXTREME_FEAR, CONSIDER_CALLS, "oversold"
        elif ratio < self.thresholds.greed_put_call_ratio:
            sentiment, action, mood = EXTREME_GREED, CONSIDER_PUTS, "overbought"
        else:
            return None

        return MarketSentiment(
            timestamp=ts or utc_now(),
            sentiment=sentiment,
            put_call_ratio=ratio,
            action=action,
            reason=f"Put/Call ratio {ratio:.2f} - market {mood}",
            priority=constants.TIDE_PRIORITY,
            raw_data=dict(payload),
        )
