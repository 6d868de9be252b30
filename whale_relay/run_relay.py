"""Entry point for running the flow relay."""

from __future__ import annotations

import asyncio
import os
import signal
import sys
from pathlib import Path

from whale_relay.config.settings import DEFAULT_SETTINGS_PATH, RelayConfig
from whale_relay.engine import RelayEngine
from whale_relay.errors import ConfigError
from whale_relay.logging.loggers import get_relay_logger, get_signal_logger, set_log_level


async def serve(engine: RelayEngine) -> dict:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, engine.request_shutdown)
    return await engine.run()


def main() -> int:
    cfg_path = Path(os.environ.get("RELAY_SETTINGS", DEFAULT_SETTINGS_PATH))
    logger = get_relay_logger()
    get_signal_logger()
    try:
        config = RelayConfig.from_yaml(cfg_path)
    except (OSError, ConfigError) as exc:
        logger.error("config_error path=%s error=%s", cfg_path, exc)
        return 1
    set_log_level(config.log_level)

    print("=== Flow relay starting ===")
    metrics = asyncio.run(serve(RelayEngine(config)))

    print("=== RUN SUMMARY ===")
    for k, v in metrics.items():
        print(f"{k}: {v}")
    print("Flow relay stopped cleanly.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
