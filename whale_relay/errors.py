"""Exception types raised inside the relay."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for relay errors."""


class MalformedFrame(RelayError):
    """Inbound frame could not be decoded into a JSON object."""


class MalformedPayload(RelayError):
    """Decoded message carries a field the classifiers cannot use."""

    def __init__(self, field: str, value: object) -> None:
        self.field = field
        self.value = value
        super().__init__(f"invalid value for {field!r}: {value!r}")


class ConfigError(RelayError):
    """Startup configuration is unusable."""
