"""Tests for the flow, dark pool and market tide policies."""

from datetime import datetime, timezone

import pytest

from conftest import dark_pool_payload, flow_payload
from whale_relay.errors import MalformedPayload
from whale_relay.strategy.classifiers import (
    DarkPoolPolicy,
    FlowPolicy,
    Thresholds,
    TidePolicy,
    band_priority,
)
from whale_relay.strategy.signal import DarkPoolPrint, HighPremiumFlow, MarketSentiment

TS = datetime(2026, 3, 2, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def thresholds():
    return Thresholds()


class TestFlowPolicy:
    def test_high_premium_call(self, thresholds):
        signal = FlowPolicy(thresholds).classify(flow_payload(), TS)
        assert isinstance(signal, HighPremiumFlow)
        assert signal.symbol == "AAPL"
        assert signal.priority == 10
        assert signal.action == "BUY_CALLS"
        assert signal.side == "CALL"
        assert signal.timestamp == TS
        assert signal.reason == "$6.00M premium flow detected LIVE"

    @pytest.mark.parametrize("symbol", ["ZZZZ", "aapl", "SPY", ""])
    def test_outside_universe_rejected(self, thresholds, symbol):
        assert FlowPolicy(thresholds).classify(flow_payload(ticker=symbol)) is None

    def test_missing_symbol_rejected(self, thresholds):
        payload = flow_payload()
        del payload["ticker"]
        assert FlowPolicy(thresholds).classify(payload) is None

    def test_symbol_alias(self, thresholds):
        payload = flow_payload()
        payload["symbol"] = payload.pop("ticker")
        assert FlowPolicy(thresholds).classify(payload).symbol == "AAPL"

    @pytest.mark.parametrize(
        "premium,expected",
        [
            (999_999, None),
            (1_000_000, 8),
            (2_000_000, 8),
            (2_000_001, 9),
            (5_000_000, 9),
            (5_000_001, 10),
            (50_000_000, 10),
        ],
    )
    def test_premium_bands(self, thresholds, premium, expected):
        signal = FlowPolicy(thresholds).classify(flow_payload(premium=premium))
        if expected is None:
            assert signal is None
        else:
            assert signal.priority == expected

    def test_priority_is_non_decreasing(self):
        premiums = range(1_000_000, 7_000_000, 250_000)
        priorities = [band_priority(p, ((5_000_000, 10), (2_000_000, 9))) for p in premiums]
        assert priorities == sorted(priorities)

    def test_missing_premium_rejected(self, thresholds):
        payload = flow_payload()
        del payload["premium"]
        assert FlowPolicy(thresholds).classify(payload) is None

    def test_numeric_string_premium(self, thresholds):
        assert FlowPolicy(thresholds).classify(flow_payload(premium="3000000")).priority == 9

    def test_garbage_premium_raises(self, thresholds):
        with pytest.raises(MalformedPayload):
            FlowPolicy(thresholds).classify(flow_payload(premium="lots"))

    @pytest.mark.parametrize(
        "side_fields,action",
        [
            ({"call_put": "CALL"}, "BUY_CALLS"),
            ({"call_put": "call"}, "BUY_CALLS"),
            ({"call_put": "PUT"}, "BUY_PUTS"),
            ({"type": "call"}, "BUY_CALLS"),
            ({"type": "put"}, "BUY_PUTS"),
            ({}, "BUY_PUTS"),
        ],
    )
    def test_action_follows_side(self, thresholds, side_fields, action):
        payload = flow_payload()
        del payload["call_put"]
        payload.update(side_fields)
        assert FlowPolicy(thresholds).classify(payload).action == action

    def test_expiry_alias(self, thresholds):
        signal = FlowPolicy(thresholds).classify(flow_payload(expiration_date="2026-04-17"))
        assert signal.expiry == "2026-04-17"

    def test_min_priority_above_bands_rejects(self):
        strict = Thresholds(min_priority=9)
        assert FlowPolicy(strict).classify(flow_payload(premium=1_500_000)) is None
        assert FlowPolicy(strict).classify(flow_payload(premium=2_500_000)).priority == 9


class TestDarkPoolPolicy:
    def test_bullish_print(self, thresholds):
        signal = DarkPoolPolicy(thresholds).classify(dark_pool_payload(), TS)
        assert isinstance(signal, DarkPoolPrint)
        assert signal.value == 3_000_000
        assert signal.sentiment == "BULLISH"
        assert signal.action == "BUY_CALLS"
        assert signal.priority == 10
        assert signal.reason == "$3.00M dark pool BULLISH LIVE"

    def test_outside_universe_rejected(self, thresholds):
        assert DarkPoolPolicy(thresholds).classify(dark_pool_payload(ticker="GME")) is None

    def test_value_is_exact(self, thresholds):
        signal = DarkPoolPolicy(thresholds).classify(dark_pool_payload(size=3333, price=333.33))
        assert signal.value == 3333 * 333.33

    @pytest.mark.parametrize(
        "size,price,expected",
        [
            (1_000, 499.99, None),
            (1_000, 500, 8),
            (1_000, 1_000, 8),
            (1_000, 1_000.01, 9),
            (1_000, 2_000, 9),
            (1_000, 2_000.5, 10),
        ],
    )
    def test_value_bands(self, thresholds, size, price, expected):
        signal = DarkPoolPolicy(thresholds).classify(dark_pool_payload(size=size, price=price, average_price=1))
        if expected is None:
            assert signal is None
        else:
            assert signal.priority == expected

    def test_price_equal_to_average_is_bearish(self, thresholds):
        signal = DarkPoolPolicy(thresholds).classify(dark_pool_payload(average_price=300))
        assert signal.sentiment == "BEARISH"
        assert signal.action == "BUY_PUTS"

    def test_price_below_average_is_bearish(self, thresholds):
        assert DarkPoolPolicy(thresholds).classify(dark_pool_payload(average_price=301)).sentiment == "BEARISH"

    def test_avg_price_alias(self, thresholds):
        payload = dark_pool_payload()
        del payload["average_price"]
        payload["avg_price"] = 310
        assert DarkPoolPolicy(thresholds).classify(payload).sentiment == "BEARISH"

    def test_missing_average_defaults_to_price(self, thresholds):
        payload = dark_pool_payload()
        del payload["average_price"]
        assert DarkPoolPolicy(thresholds).classify(payload).sentiment == "BEARISH"


class TestTidePolicy:
    def test_extreme_fear(self, thresholds):
        signal = TidePolicy(thresholds).classify({"put_call_ratio": 1.5}, TS)
        assert isinstance(signal, MarketSentiment)
        assert signal.sentiment == "EXTREME_FEAR"
        assert signal.action == "CONSIDER_CALLS"
        assert signal.priority == 8
        assert signal.reason == "Put/Call ratio 1.50 - market oversold"
        assert signal.to_dict()["type"] == "MARKET_SENTIMENT"

    def test_extreme_greed(self, thresholds):
        signal = TidePolicy(thresholds).classify({"pcRatio": 0.45})
        assert signal.sentiment == "EXTREME_GREED"
        assert signal.action == "CONSIDER_PUTS"
        assert signal.priority == 8

    @pytest.mark.parametrize("ratio", [0.6, 0.61, 0.9, 1.0, 1.19, 1.2])
    def test_neutral_band_never_emits(self, thresholds, ratio):
        assert TidePolicy(thresholds).classify({"put_call_ratio": ratio}) is None

    @pytest.mark.parametrize("ratio", [1.2000001, 1.3, 4.0])
    def test_above_fear_always_fear(self, thresholds, ratio):
        assert TidePolicy(thresholds).classify({"put_call_ratio": ratio}).sentiment == "EXTREME_FEAR"

    @pytest.mark.parametrize("ratio", [0.0, 0.3, 0.5999999])
    def test_below_greed_always_greed(self, thresholds, ratio):
        assert TidePolicy(thresholds).classify({"put_call_ratio": ratio}).sentiment == "EXTREME_GREED"

    def test_missing_ratio_emits_nothing(self, thresholds):
        assert TidePolicy(thresholds).classify({"ticker": "SPY"}) is None

    def test_no_symbol_filter(self, thresholds):
        assert TidePolicy(thresholds).classify({"ticker": "NOT_TIER_1", "put_call_ratio": 2}) is not None


class TestThresholds:
    def test_from_overrides_ignores_unknown_keys(self):
        t = Thresholds.from_overrides({"min_premium": 2_000_000, "bogus": 1})
        assert t.min_premium == 2_000_000
        assert t.min_dark_pool == 500_000

    def test_from_overrides_coerces_strings(self):
        t = Thresholds.from_overrides({"min_premium": "1e6", "min_priority": "9", "greed_put_call_ratio": "0.5"})
        assert t.min_premium == 1_000_000.0
        assert t.min_priority == 9
        assert isinstance(t.min_priority, int)
        assert t.greed_put_call_ratio == 0.5

    @pytest.mark.parametrize("value", ["abc", None, False, "inf", [1]])
    def test_from_overrides_rejects_non_numbers(self, value):
        with pytest.raises(ValueError):
            Thresholds.from_overrides({"min_premium": value})

    def test_overlapping_tide_bands_rejected(self):
        with pytest.raises(ValueError):
            Thresholds(fear_put_call_ratio=0.5, greed_put_call_ratio=0.8)
