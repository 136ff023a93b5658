"""Entry point for the ASHA auto-connect service."""

import asyncio
import logging
import os
import signal
import sys

from .config import AppConfig
from .manager import AshaAutoConnectManager

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level_name: str) -> None:
    """Configure logging to stdout (captured by journald)."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        stream=sys.stdout,
    )
    # Quiet noisy libraries
    logging.getLogger("dbus_next").setLevel(logging.WARNING)


async def main() -> None:
    """Run the manager until signalled to stop."""
    config = AppConfig.load()
    setup_logging(config.log_level)

    logger = logging.getLogger(__name__)
    version = os.environ.get("BUILD_VERSION", "dev")
    logger.info("ASHA auto-connect v%s starting...", version)

    manager = AshaAutoConnectManager(config)

    # Handle shutdown signals
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Received shutdown signal")
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _signal_handler)

    run_task = asyncio.create_task(manager.run())
    stop_task = asyncio.create_task(shutdown_event.wait())
    try:
        await asyncio.wait({run_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if run_task.done() and not run_task.cancelled() and run_task.exception():
            logger.error("Fatal error: %s", run_task.exception(), exc_info=run_task.exception())
    finally:
        for task in (run_task, stop_task):
            task.cancel()
        await asyncio.gather(run_task, stop_task, return_exceptions=True)
        manager.stop()
        logger.info("Goodbye.")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
