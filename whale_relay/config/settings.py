"""Runtime configuration loaded from YAML with environment overrides."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping
import os

from dotenv import load_dotenv
import yaml

from whale_relay.config import constants
from whale_relay.errors import ConfigError
from whale_relay.strategy.classifiers import Thresholds

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class RelayConfig:
    """Immutable relay settings. Built once at startup."""

    ws_url: str = constants.DEFAULT_WS_URL
    api_key: str = ""
    sink_url: str = ""
    host: str = "0.0.0.0"
    port: int = constants.DEFAULT_PORT
    log_level: str = "INFO"
    heartbeat_interval_ms: int = constants.HEARTBEAT_INTERVAL_MS
    reconnect_base_ms: int = constants.RECONNECT_BASE_MS
    reconnect_cap_ms: int = constants.RECONNECT_CAP_MS
    delivery_timeout_seconds: float = constants.DELIVERY_TIMEOUT_SECONDS
    confirmation_window_ms: int = constants.CONFIRMATION_WINDOW_MS
    min_confirming_signals: int = constants.MIN_CONFIRMING_SIGNALS
    max_tracked_symbols: int = constants.MAX_TRACKED_SYMBOLS
    filters: Mapping[str, float] = field(default_factory=dict)

    @classmethod
    def from_yaml(cls, path: str | Path = DEFAULT_SETTINGS_PATH, env: Mapping[str, str] | None = None) -> "RelayConfig":
        """Load settings from ``path``; environment variables win over file values."""
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"unreadable settings file {path}: {exc}") from exc
        if env is None:
            load_dotenv()
            env = os.environ
        return cls.from_mapping(data, env)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], env: Mapping[str, str] | None = None) -> "RelayConfig":
        env = env or {}
        upstream = data.get("upstream") or {}
        sink = data.get("sink") or {}
        server = data.get("server") or {}
        confirmation = data.get("confirmation") or {}
        log_cfg = data.get("logging") or {}
        try:
            config = cls(
                ws_url=env.get("UW_WS_URL") or upstream.get("url") or constants.DEFAULT_WS_URL,
                api_key=env.get("UW_API_KEY") or upstream.get("api_key") or "",
                sink_url=env.get("SINK_URL") or env.get("N8N_WEBHOOK_URL") or sink.get("url") or "",
                host=server.get("host", "0.0.0.0"),
                port=int(env.get("PORT") or server.get("port", constants.DEFAULT_PORT)),
                log_level=str(env.get("LOG_LEVEL") or log_cfg.get("level", "INFO")).upper(),
                heartbeat_interval_ms=int(upstream.get("heartbeat_interval_ms", constants.HEARTBEAT_INTERVAL_MS)),
                reconnect_base_ms=int(upstream.get("reconnect_base_ms", constants.RECONNECT_BASE_MS)),
                reconnect_cap_ms=int(upstream.get("reconnect_cap_ms", constants.RECONNECT_CAP_MS)),
                delivery_timeout_seconds=float(sink.get("timeout_seconds", constants.DELIVERY_TIMEOUT_SECONDS)),
                confirmation_window_ms=int(confirmation.get("window_ms", constants.CONFIRMATION_WINDOW_MS)),
                min_confirming_signals=int(confirmation.get("min_signals", constants.MIN_CONFIRMING_SIGNALS)),
                max_tracked_symbols=int(confirmation.get("max_symbols", constants.MAX_TRACKED_SYMBOLS)),
                filters=dict(data.get("filters") or {}),
            )
            Thresholds.from_overrides(config.filters)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid relay settings: {exc}") from exc
        config.validate()
        return config

    def validate(self) -> None:
        if not self.ws_url.startswith(("ws://", "wss://")):
            raise ConfigError(f"upstream url must be ws:// or wss://, got {self.ws_url!r}")
        if not 0 < self.port < 65536:
            raise ConfigError(f"port out of range: {self.port}")
        if self.delivery_timeout_seconds <= 0:
            raise ConfigError("sink timeout must be positive")
        if self.min_confirming_signals < 2:
            raise ConfigError("confirmation needs at least two signals")
        if self.max_tracked_symbols < 1:
            raise ConfigError("max_symbols must be at least 1")
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"unknown log level {self.log_level!r}")
