"""Run a scheduler for the lifetime of a process.

This module provides:
- Lifecycle management (start/stop) around a Scheduler
- Signal handling for graceful shutdown
"""

import asyncio
import logging
import signal
from typing import Optional

from cron_schedule.config import (
    CronScheduleConfig,
    export_config_yaml,
    get_config,
    validate_config,
)
from cron_schedule.exceptions import ConfigurationError
from cron_schedule.scheduler.job_scheduler import Scheduler

logger = logging.getLogger(__name__)


class SchedulerDaemon:
    """Hosts a Scheduler until shutdown is requested.

    The daemon also returns once every job loop has exited on its own,
    since there is nothing left to wait for.

    Example:
        scheduler = Scheduler(config.scheduler)
        scheduler.register(FiringPolicy.interval(60), job)

        daemon = SchedulerDaemon(scheduler, config)
        await daemon.start()
        await daemon.run_until_shutdown()
        await daemon.stop()
    """

    def __init__(
        self,
        scheduler: Scheduler,
        config: Optional[CronScheduleConfig] = None,
    ):
        """Initialize the daemon.

        Args:
            scheduler: Scheduler with its jobs already registered
            config: Configuration (default: the global configuration)
        """
        self._scheduler = scheduler
        self._config = config or get_config()
        self._running = False
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Start the scheduler.

        Raises:
            ConfigurationError: If the configuration has errors
        """
        logger.info("Starting scheduler daemon...")

        problems = validate_config(self._config)
        for problem in problems:
            if problem.severity == "warning":
                logger.warning(str(problem))
        errors = [p for p in problems if p.severity == "error"]
        if errors:
            raise ConfigurationError(
                "Invalid configuration: " + "; ".join(f"{e.field}: {e.message}" for e in errors),
                str(self._config.config_dir),
            )

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Effective configuration:\n{export_config_yaml(self._config)}")

        await self._scheduler.start()
        self._running = True
        logger.info("Scheduler daemon started")

    async def stop(self) -> None:
        """Stop the scheduler and its job loops."""
        logger.info("Stopping scheduler daemon...")
        self._running = False
        try:
            await self._scheduler.stop(timeout=self._config.scheduler.shutdown_timeout)
        except Exception as e:
            logger.warning(f"Error stopping scheduler: {e}")
        logger.info("Scheduler daemon stopped")

    async def run_until_shutdown(self) -> None:
        """Block until request_shutdown() is called or all job loops end."""
        shutdown = asyncio.create_task(self._shutdown_event.wait())
        finished = asyncio.create_task(self._scheduler.join())

        done, pending = await asyncio.wait(
            {shutdown, finished},
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()

        if finished in done and not self._shutdown_event.is_set():
            logger.info("All job loops have exited")

    def request_shutdown(self) -> None:
        """Request daemon shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        """Check if the daemon is running."""
        return self._running

    @property
    def scheduler(self) -> Scheduler:
        """Get the hosted scheduler."""
        return self._scheduler


async def run_scheduler(
    scheduler: Scheduler,
    config: Optional[CronScheduleConfig] = None,
) -> None:
    """Run a scheduler until SIGINT/SIGTERM, then shut it down.

    Example:
        asyncio.run(run_scheduler(scheduler))
    """
    daemon = SchedulerDaemon(scheduler, config)

    loop = asyncio.get_running_loop()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        daemon.request_shutdown()

    installed = []
    previous = {}
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
            installed.append(sig)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            previous[sig] = signal.getsignal(sig)
            signal.signal(sig, lambda signum, frame: handle_signal(signal.Signals(signum)))

    try:
        await daemon.start()
        await daemon.run_until_shutdown()
    finally:
        await daemon.stop()
        for sig in installed:
            loop.remove_signal_handler(sig)
        for sig, handler in previous.items():
            if handler is not None:
                signal.signal(sig, handler)
