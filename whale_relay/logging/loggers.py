"""Named relay loggers: RELAY for connection/delivery, SIGNAL for classified events."""

from __future__ import annotations

import logging

RELAY_LOGGER = "relay_log"
SIGNAL_LOGGER = "signal_log"
_TAGS = {RELAY_LOGGER: "RELAY", SIGNAL_LOGGER: "SIGNAL"}


def _get_logger(name: str, level: int | str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(f"%(asctime)s | {_TAGS[name]} | %(levelname)s | %(message)s"))
        logger.addHandler(handler)
        logger.setLevel(level)
    return logger


def get_relay_logger(level: int | str = logging.INFO) -> logging.Logger:
    """Return configured relay logger instance."""
    return _get_logger(RELAY_LOGGER, level)


def get_signal_logger(level: int | str = logging.INFO) -> logging.Logger:
    """Return configured signal logger instance."""
    return _get_logger(SIGNAL_LOGGER, level)


def set_log_level(level: int | str) -> None:
    for name in _TAGS:
        _get_logger(name, level).setLevel(level)
