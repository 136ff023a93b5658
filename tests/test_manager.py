"""Tests for the top-level restart loop."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from asha_autoconnect.config import AppConfig
from asha_autoconnect.controller import AdapterNotPoweredError, Epoch, SessionUnavailableError
from asha_autoconnect.manager import AshaAutoConnectManager
from asha_autoconnect.playback import PlaybackSignal


def _monitor():
    monitor = MagicMock()
    monitor.signal = PlaybackSignal()
    return monitor


def _epoch():
    stream = MagicMock()
    stream.close = AsyncMock()
    session = MagicMock()
    return Epoch(session=session, adapter=MagicMock(), stream=stream)


@pytest.fixture
def config():
    return AppConfig(
        short_backoff_seconds=2, long_backoff_seconds=60, restart_delay_seconds=1
    )


@pytest.mark.asyncio
async def test_setup_failure_returns_backoff(config):
    manager = AshaAutoConnectManager(config, monitor=_monitor())
    manager.controller.open_epoch = AsyncMock(side_effect=SessionUnavailableError("down"))
    assert await manager.run_epoch() == 60

    manager.controller.open_epoch = AsyncMock(side_effect=AdapterNotPoweredError("off"))
    assert await manager.run_epoch() == 2


@pytest.mark.asyncio
async def test_stream_end_closes_epoch_and_restarts(config):
    manager = AshaAutoConnectManager(config, monitor=_monitor())
    epoch = _epoch()
    manager.controller.open_epoch = AsyncMock(return_value=epoch)

    with patch("asha_autoconnect.manager.DiscoveryRouter") as router_cls:
        router_cls.return_value.run = AsyncMock()
        delay = await manager.run_epoch()

    assert delay == 1
    router_cls.return_value.run.assert_awaited_once_with(epoch.stream)
    epoch.stream.close.assert_awaited_once()
    epoch.session.close.assert_called_once()
    assert manager.router is None


@pytest.mark.asyncio
async def test_unexpected_router_error_restarts(config):
    manager = AshaAutoConnectManager(config, monitor=_monitor())
    epoch = _epoch()
    manager.controller.open_epoch = AsyncMock(return_value=epoch)

    with patch("asha_autoconnect.manager.DiscoveryRouter") as router_cls:
        router_cls.return_value.run = AsyncMock(side_effect=RuntimeError("bug"))
        delay = await manager.run_epoch()

    assert delay == 2
    epoch.session.close.assert_called_once()


@pytest.mark.asyncio
async def test_session_failures_retry_with_backoff_and_never_exit(config):
    monitor = _monitor()
    manager = AshaAutoConnectManager(config, monitor=monitor)
    manager.controller.open_epoch = AsyncMock(side_effect=SessionUnavailableError("down"))
    sleeps = []
    real_sleep = asyncio.sleep

    async def _fake_sleep(delay):
        sleeps.append(delay)
        if len(sleeps) >= 3:
            raise asyncio.CancelledError
        await real_sleep(0)

    with patch("asha_autoconnect.manager.asyncio.sleep", side_effect=_fake_sleep):
        with pytest.raises(asyncio.CancelledError):
            await manager.run()

    assert sleeps == [60, 60, 60]
    assert manager.controller.open_epoch.await_count == 3
    monitor.start.assert_called_once()
    monitor.stop.assert_called_once()
