"""Process-wide relay counters and the shared runtime context."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass
class ConnectionState:
    """Upstream connection status. Only the connection manager mutates it."""

    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    reconnect_attempts: int = 0
    last_error: str | None = None

    @property
    def connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED


@dataclass
class RelayStats:
    """Counters reported by the status surface. Never reset."""

    messages_received: int = 0
    signals_sent: int = 0
    errors: int = 0
    unknown_messages: int = 0
    signals_emitted: int = 0
    confirmations_emitted: int = 0
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def uptime_seconds(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        return max(0, int((now - self.start_time).total_seconds()))


@dataclass
class RelayContext:
    """State shared by every relay component, passed in explicitly."""

    stats: RelayStats = field(default_factory=RelayStats)
    connection: ConnectionState = field(default_factory=ConnectionState)
