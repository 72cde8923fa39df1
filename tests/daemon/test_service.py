"""Tests for the scheduler daemon."""

import asyncio
import logging
import signal
from unittest.mock import AsyncMock, Mock, patch

import pytest

from cron_schedule import config as config_module
from cron_schedule.config import CronScheduleConfig
from cron_schedule.daemon.service import SchedulerDaemon, run_scheduler
from cron_schedule.exceptions import ConfigurationError
from cron_schedule.scheduler import FiringPolicy, FunctionJob, JobStatus, Scheduler


def _mock_scheduler() -> Mock:
    scheduler = Mock(spec=Scheduler)
    scheduler.start = AsyncMock()
    scheduler.stop = AsyncMock()
    return scheduler


@pytest.fixture(autouse=True)
def default_config(monkeypatch: pytest.MonkeyPatch) -> CronScheduleConfig:
    """Keep the host config file out of daemons built without a config."""
    config = CronScheduleConfig()
    monkeypatch.setattr(config_module, "_global_config", config)
    return config


class TestSchedulerDaemon:
    """Tests for SchedulerDaemon class."""

    @pytest.mark.asyncio
    async def test_daemon_initialization(self):
        """Test daemon initialization."""
        scheduler = _mock_scheduler()
        daemon = SchedulerDaemon(scheduler)

        assert daemon.scheduler is scheduler
        assert daemon.is_running is False

    @pytest.mark.asyncio
    async def test_daemon_start(self):
        """Test daemon start starts the scheduler."""
        scheduler = _mock_scheduler()
        daemon = SchedulerDaemon(scheduler)

        await daemon.start()

        assert daemon.is_running is True
        scheduler.start.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_daemon_stop_uses_configured_timeout(self):
        """Test daemon stop passes the shutdown timeout through."""
        config = CronScheduleConfig()
        config.scheduler.shutdown_timeout = 2.5
        scheduler = _mock_scheduler()
        daemon = SchedulerDaemon(scheduler, config)
        daemon._running = True

        await daemon.stop()

        assert daemon.is_running is False
        scheduler.stop.assert_awaited_once_with(timeout=2.5)

    @pytest.mark.asyncio
    async def test_daemon_stop_error_logged(self):
        """Test errors while stopping don't escape."""
        scheduler = _mock_scheduler()
        scheduler.stop.side_effect = RuntimeError("stuck")
        daemon = SchedulerDaemon(scheduler)

        await daemon.stop()

        assert daemon.is_running is False

    @pytest.mark.asyncio
    async def test_daemon_uses_global_config(self, default_config: CronScheduleConfig):
        """Test a daemon built without a config uses the global one."""
        default_config.scheduler.shutdown_timeout = 1.5
        scheduler = _mock_scheduler()
        daemon = SchedulerDaemon(scheduler)

        await daemon.stop()

        scheduler.stop.assert_awaited_once_with(timeout=1.5)

    @pytest.mark.asyncio
    async def test_daemon_start_rejects_invalid_config(self):
        """Test start refuses to launch jobs with a broken config."""
        config = CronScheduleConfig()
        config.logging.level = "LOUD"
        scheduler = _mock_scheduler()
        daemon = SchedulerDaemon(scheduler, config)

        with pytest.raises(ConfigurationError) as exc_info:
            await daemon.start()

        assert "logging.level" in str(exc_info.value)
        assert daemon.is_running is False
        scheduler.start.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_daemon_start_logs_effective_config(self, caplog: pytest.LogCaptureFixture):
        """Test the effective config is dumped as YAML at debug level."""
        config = CronScheduleConfig()
        config.scheduler.shutdown_timeout = 4.0
        daemon = SchedulerDaemon(_mock_scheduler(), config)

        with caplog.at_level(logging.DEBUG, logger="cron_schedule.daemon.service"):
            await daemon.start()

        assert "Effective configuration" in caplog.text
        assert "shutdown_timeout: 4.0" in caplog.text

    @pytest.mark.asyncio
    async def test_request_shutdown(self):
        """Test request_shutdown sets event."""
        daemon = SchedulerDaemon(_mock_scheduler())
        assert not daemon._shutdown_event.is_set()

        daemon.request_shutdown()

        assert daemon._shutdown_event.is_set()

    @pytest.mark.asyncio
    async def test_run_until_shutdown(self):
        """Test run_until_shutdown returns once shutdown is requested."""
        scheduler = _mock_scheduler()
        never_done = asyncio.Event()
        scheduler.join = AsyncMock(side_effect=never_done.wait)
        daemon = SchedulerDaemon(scheduler)

        async def delayed_shutdown():
            await asyncio.sleep(0.01)
            daemon.request_shutdown()

        asyncio.create_task(delayed_shutdown())
        await asyncio.wait_for(daemon.run_until_shutdown(), timeout=1.0)

        assert daemon._shutdown_event.is_set()

    @pytest.mark.asyncio
    async def test_run_until_all_jobs_exit(self):
        """Test run_until_shutdown returns when no job loops remain."""
        scheduler = _mock_scheduler()
        scheduler.join = AsyncMock(return_value=None)
        daemon = SchedulerDaemon(scheduler)

        await asyncio.wait_for(daemon.run_until_shutdown(), timeout=1.0)

        assert not daemon._shutdown_event.is_set()


class TestRunScheduler:
    """Tests for run_scheduler."""

    @pytest.mark.asyncio
    async def test_runs_until_jobs_finish(self):
        """Test run_scheduler returns after the last job loop exits."""
        calls = []

        def job() -> None:
            calls.append(1)
            raise RuntimeError("one-shot")

        scheduler = Scheduler()
        scheduler.register(FiringPolicy.interval(60), FunctionJob("once", job, restart=False))

        await asyncio.wait_for(run_scheduler(scheduler), timeout=5.0)

        assert calls == [1]
        assert scheduler.job_status("once") == JobStatus.STOPPED
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_signal_handlers_registered(self):
        """Test SIGINT and SIGTERM trigger shutdown."""
        scheduler = _mock_scheduler()
        scheduler.join = AsyncMock(return_value=None)
        loop = asyncio.get_running_loop()

        with patch.object(loop, "add_signal_handler") as add_handler:
            await run_scheduler(scheduler)

        signals = {c.args[0].name for c in add_handler.call_args_list}
        assert signals == {"SIGINT", "SIGTERM"}
        scheduler.start.assert_awaited_once()
        scheduler.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fallback_signal_handlers_restored(self):
        """Test handlers set with signal.signal are put back on exit."""
        before = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
        during = {}

        async def record_handlers() -> None:
            during.update({sig: signal.getsignal(sig) for sig in before})

        scheduler = _mock_scheduler()
        scheduler.start.side_effect = record_handlers
        scheduler.join = AsyncMock(return_value=None)
        loop = asyncio.get_running_loop()

        with patch.object(loop, "add_signal_handler", side_effect=NotImplementedError):
            await run_scheduler(scheduler)

        assert all(during[sig] is not before[sig] for sig in before)
        assert {sig: signal.getsignal(sig) for sig in before} == before
