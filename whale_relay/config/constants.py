"""Project-wide constants for the flow relay."""

from __future__ import annotations

SOURCE = "UNUSUAL_WHALES_LIVE"
DEFAULT_WS_URL = "wss://api.unusualwhales.com/v1/ws"
SINK_URL_PLACEHOLDER = "YOUR_N8N_WEBHOOK_URL_HERE"

# Upstream channels, in subscribe order
CHANNEL_FLOW = "flow"
CHANNEL_DARKPOOL = "darkpool"
CHANNEL_TIDE = "tide"
CHANNELS = (CHANNEL_FLOW, CHANNEL_DARKPOOL, CHANNEL_TIDE)

# Tier 1 symbols (only these produce symbol signals)
TIER_1 = frozenset({
    "AAPL", "MSFT", "GOOGL", "GOOG", "AMZN", "NVDA", "META", "TSLA",
    "BRK.B", "V", "UNH", "JNJ", "WMT", "XOM", "LLY", "JPM", "MA", "PG",
    "AVGO", "HD", "CVX", "MRK", "ABBV", "KO", "PEP", "COST", "BAC",
    "TMO", "ADBE", "CRM", "NFLX", "DIS", "AMD", "NKE", "CSCO", "ABT",
    "CMCSA", "VZ", "DHR", "INTC", "PFE", "TXN", "ORCL", "WFC", "PM",
    "RTX", "UPS", "T", "IBM", "QCOM",
})

# Filtering thresholds
MIN_PREMIUM = 1_000_000
MIN_DARK_POOL = 500_000
MIN_PRIORITY = 7

# Priority bands: (exclusive lower bound, priority), checked top-down
FLOW_PRIORITY_BANDS = ((5_000_000, 10), (2_000_000, 9))
DARK_POOL_PRIORITY_BANDS = ((2_000_000, 10), (1_000_000, 9))
BASE_PRIORITY = 8

# Market tide
FEAR_PUT_CALL_RATIO = 1.2
GREED_PUT_CALL_RATIO = 0.6
TIDE_PRIORITY = 8

# Multi-factor confirmation
CONFIRMATION_WINDOW_MS = 300_000
MIN_CONFIRMING_SIGNALS = 2
CONFIRMATION_PRIORITY_BOOST = 2
MAX_TRACKED_SYMBOLS = 500
MAX_PRIORITY = 10

# Connection behavior
HEARTBEAT_INTERVAL_MS = 30_000
RECONNECT_BASE_MS = 1_000
RECONNECT_CAP_MS = 60_000

# Delivery
DELIVERY_TIMEOUT_SECONDS = 3.0
DEFAULT_PORT = 3000
