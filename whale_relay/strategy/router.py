"""Routes decoded upstream messages to the matching channel policy."""

from __future__ import annotations

import json
from typing import Any, Mapping

from whale_relay.config.constants import CHANNEL_DARKPOOL, CHANNEL_FLOW, CHANNEL_TIDE
from whale_relay.data.payload import RawEvent
from whale_relay.errors import MalformedFrame
from whale_relay.strategy.classifiers import DarkPoolPolicy, FlowPolicy, Thresholds, TidePolicy
from whale_relay.strategy.signal import Signal

PONG = "pong"


def parse_frame(frame: str | bytes) -> dict[str, Any]:
    """Decode one websocket frame into a JSON object."""
    try:
        message = json.loads(frame)
    except (TypeError, ValueError) as exc:
        raise MalformedFrame(f"undecodable frame: {exc}") from exc
    if not isinstance(message, dict):
        raise MalformedFrame(f"expected JSON object, got {type(message).__name__}")
    return message


class EventRouter:
    """Maps the ``channel``/``type`` discriminant onto a classifier policy."""

    def __init__(self, thresholds: Thresholds | None = None) -> None:
        thresholds = thresholds or Thresholds()
        self.policies = {
            CHANNEL_FLOW: FlowPolicy(thresholds),
            CHANNEL_DARKPOOL: DarkPoolPolicy(thresholds),
            CHANNEL_TIDE: TidePolicy(thresholds),
        }

    @staticmethod
    def discriminant(message: Mapping[str, Any]) -> tuple[str | None, str | None]:
        """Return ``(key, value)`` of the discriminant, preferring ``channel``."""
        for key in ("channel", "type"):
            value = message.get(key)
            if value is not None:
                return key, value
        return None, None

    @staticmethod
    def is_heartbeat_reply(message: Mapping[str, Any]) -> bool:
        return PONG in (message.get("type"), message.get("channel"), message.get("event"))

    def route(self, message: Mapping[str, Any]) -> RawEvent | None:
        """Return the event for a known channel, or None when unrecognized."""
        key, channel = self.discriminant(message)
        if not isinstance(channel, str) or channel not in self.policies:
            return None
        data = message.get("data")
        if isinstance(data, Mapping):
            payload = dict(data)
        else:
            payload = {k: v for k, v in message.items() if k != key}
        return RawEvent(channel=channel, payload=payload)

    def classify(self, event: RawEvent) -> Signal | None:
        return self.policies[event.channel].classify(event.payload)
