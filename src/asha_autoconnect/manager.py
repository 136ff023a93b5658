"""Top-level orchestrator: playback monitor plus the epoch restart loop."""

import asyncio
import logging

from .config import AppConfig
from .controller import AdapterSessionController, SetupError
from .discovery import DiscoveryRouter
from .playback import PlaybackMonitor

logger = logging.getLogger(__name__)


class AshaAutoConnectManager:
    """Keeps ASHA devices connected while media is playing.

    Never gives up: setup failures and stream endings both lead back to
    a fresh session epoch after the appropriate delay.
    """

    def __init__(self, config: AppConfig, monitor: PlaybackMonitor | None = None):
        self.config = config
        self.monitor = monitor or PlaybackMonitor()
        self.controller = AdapterSessionController(config)
        self.router: DiscoveryRouter | None = None
        self.epochs = 0

    async def run(self) -> None:
        """Run until cancelled."""
        self.monitor.start()
        try:
            while True:
                delay = await self.run_epoch()
                await asyncio.sleep(delay)
        finally:
            self.monitor.stop()

    async def run_epoch(self) -> float:
        """One setup attempt plus routing; returns the delay before the next."""
        self.epochs += 1
        try:
            epoch = await self.controller.open_epoch()
        except SetupError as e:
            backoff = e.backoff(self.config)
            logger.warning("%s; retrying in %ss", e, backoff)
            return backoff

        logger.info("Discovering devices...")
        self.router = DiscoveryRouter(
            epoch.adapter,
            self.monitor.signal,
            call_timeout=self.config.call_timeout_seconds,
        )
        try:
            await self.router.run(epoch.stream)
        except Exception:
            logger.exception("Discovery epoch failed")
            return self.config.short_backoff_seconds
        finally:
            self.router = None
            await epoch.close()

        logger.info(
            "Discovery ended, restarting session in %ss",
            self.config.restart_delay_seconds,
        )
        return self.config.restart_delay_seconds

    def stop(self) -> None:
        """Stop the playback monitor thread."""
        self.monitor.stop()
