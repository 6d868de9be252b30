"""Status snapshot helpers."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any

from whale_relay.accounting.stats import RelayContext


def summarize_stats(context: RelayContext, now: datetime | None = None) -> dict[str, Any]:
    """Build the stats block reported by the status surface and the run summary."""
    stats = context.stats
    base: dict[str, Any] = {
        k: v for k, v in asdict(stats).items() if isinstance(v, int)
    }
    base["start_time"] = stats.start_time.isoformat()
    base["uptime"] = f"{stats.uptime_seconds(now)}s"
    return base


def connection_snapshot(context: RelayContext) -> dict[str, Any]:
    state = context.connection
    return {
        "state": state.status.value,
        "reconnect_attempts": state.reconnect_attempts,
        "last_error": state.last_error,
    }
