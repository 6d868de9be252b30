"""Inbound message model and tolerant field lookup."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Any, Mapping, Sequence

from whale_relay.errors import MalformedPayload

_MISSING = object()


@dataclass(frozen=True)
class RawEvent:
    """One routed upstream message. Lives for a single dispatch cycle."""

    channel: str
    payload: Mapping[str, Any]


def first_present(payload: Mapping[str, Any], names: Sequence[str], default: Any = None) -> Any:
    """Return the value of the first key in ``names`` that is set and not None."""
    for name in names:
        value = payload.get(name, _MISSING)
        if value is not _MISSING and value is not None:
            return value
    return default


def to_number(value: Any, field: str) -> int | float:
    """Coerce a numeric payload field, keeping ints exact."""
    if isinstance(value, bool):
        raise MalformedPayload(field, value)
    if isinstance(value, int):
        return value
    number = value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            raise MalformedPayload(field, value) from None
    if isinstance(number, float) and math.isfinite(number):
        return number
    raise MalformedPayload(field, value)


def number_field(payload: Mapping[str, Any], names: Sequence[str], default: Any = None) -> int | float | None:
    """``first_present`` followed by numeric coercion; missing fields give ``default``."""
    value = first_present(payload, names, _MISSING)
    if value is _MISSING:
        return default
    return to_number(value, names[0])
