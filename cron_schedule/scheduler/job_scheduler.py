"""Job scheduler for fixed-interval and daily recurring jobs.

The Scheduler keeps a registry of named jobs and, once started, runs
each active job with a valid policy on its own asyncio task. Every loop
asks the policy module how long to wait, sleeps, runs the job behind a
fault boundary and decides whether to go round again.

Loops share nothing with each other. A job that crashes, hangs or gives
up only ends its own loop.
"""

import asyncio
import inspect
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from cron_schedule.config import SchedulerConfig
from cron_schedule.exceptions import JobExecutionError, SchedulerError
from cron_schedule.scheduler.job import CronJob, JobRunResult, JobStatus
from cron_schedule.scheduler.policy import (
    REFERENCE_TZ,
    FiringPolicy,
    next_fire_delay,
    validate,
)

logger = logging.getLogger(__name__)


@dataclass
class _Registration:
    """A registered job and the policy it fires on."""

    policy: FiringPolicy
    job: CronJob
    status: JobStatus = JobStatus.PENDING


class Scheduler:
    """Runs registered jobs on independent recurring timelines.

    Example:
        scheduler = Scheduler()

        scheduler.register(FiringPolicy.interval(60), FunctionJob("poll", poll))
        scheduler.register(
            FiringPolicy.daily("01:00", "22:00"),
            FunctionJob("report", build_report, restart=False),
        )

        # Launch one loop per job; returns immediately
        await scheduler.start()
    """

    def __init__(self, config: Optional[SchedulerConfig] = None) -> None:
        """Initialize an empty scheduler.

        Args:
            config: Scheduler configuration
        """
        self._config = config or SchedulerConfig()
        self._registry: Dict[str, _Registration] = {}
        self._tasks: Dict[str, "asyncio.Task[None]"] = {}
        self._executor: Optional[ThreadPoolExecutor] = None
        self._started = False
        self._running = False

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running

    @property
    def jobs(self) -> List[CronJob]:
        """Get all registered jobs in registration order."""
        return [r.job for r in self._registry.values()]

    def get_job(self, name: str) -> Optional[CronJob]:
        """Get a registered job by name."""
        registration = self._registry.get(name)
        return registration.job if registration else None

    def get_policy(self, name: str) -> Optional[FiringPolicy]:
        """Get the policy a job was registered with."""
        registration = self._registry.get(name)
        return registration.policy if registration else None

    def job_status(self, name: str) -> Optional[JobStatus]:
        """Get the lifecycle status of a registered job."""
        registration = self._registry.get(name)
        return registration.status if registration else None

    def register(self, policy: FiringPolicy, job: CronJob) -> bool:
        """Register a job.

        Jobs with an empty name, or a name that is already registered,
        are dropped; the first registration under a name wins.

        Args:
            policy: When the job fires
            job: The job to run

        Returns:
            True if the job was added to the registry

        Raises:
            SchedulerError: If the scheduler has already been started
        """
        name = job.name
        if self._started:
            raise SchedulerError(
                "Cannot register jobs after the scheduler has started",
                {"job": name},
            )

        # Copy so later changes to the caller's policy don't leak in
        policy = FiringPolicy(phase=policy.phase, period=policy.period)

        if not name:
            logger.warning("Ignoring job registration with an empty name")
            return False
        if name in self._registry:
            logger.warning(f"Ignoring duplicate registration for job '{name}'")
            return False

        self._registry[name] = _Registration(policy=policy, job=job)
        logger.debug(f"Registered job '{name}' (phase={list(policy.phase)}, period={policy.period})")
        return True

    async def start(self) -> None:
        """Launch a loop for every active job with a valid policy.

        Inactive jobs and jobs whose policy fails validation are skipped.
        Returns as soon as the loops are created.
        """
        if self._started:
            logger.warning("Scheduler already started")
            return

        if not self._config.enabled:
            logger.info("Scheduler disabled by configuration, no jobs launched")
            return

        logger.info("Starting job scheduler...")
        self._started = True

        launch: List[_Registration] = []
        for name, registration in self._registry.items():
            if not registration.job.is_active:
                registration.status = JobStatus.SKIPPED
                logger.info(f"Job '{name}' is inactive, not launching")
                continue
            if not validate(registration.policy):
                registration.status = JobStatus.SKIPPED
                logger.warning(
                    f"Job '{name}' has an invalid policy "
                    f"(phase={list(registration.policy.phase)}, "
                    f"period={registration.policy.period}), not launching"
                )
                continue
            launch.append(registration)

        # One worker thread per loop so a blocked job never starves another
        if launch:
            self._executor = ThreadPoolExecutor(
                max_workers=len(launch),
                thread_name_prefix="cron-job",
            )

        for registration in launch:
            name = registration.job.name
            registration.status = JobStatus.RUNNING
            task = asyncio.create_task(self._run(registration), name=f"cron-job:{name}")
            task.add_done_callback(self._on_loop_done)
            self._tasks[name] = task

        self._running = True
        logger.info(f"Scheduler started with {len(self._tasks)} of {len(self._registry)} jobs")

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Cancel all job loops and wait for them to finish.

        A job that is in the middle of a synchronous execute() keeps its
        worker thread until it returns; its loop ends regardless.

        Args:
            timeout: Seconds to wait for loops (default: config.shutdown_timeout)
        """
        if not self._running:
            return

        logger.info("Stopping job scheduler...")
        if timeout is None:
            timeout = self._config.shutdown_timeout

        pending = [t for t in self._tasks.values() if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            _, still_pending = await asyncio.wait(pending, timeout=timeout)
            if still_pending:
                logger.warning(f"{len(still_pending)} job loops did not stop within {timeout}s")

        if self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None

        self._running = False
        logger.info("Scheduler stopped")

    async def join(self) -> None:
        """Wait until every launched job loop has exited."""
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    def get_status(self) -> Dict[str, Any]:
        """Get scheduler status.

        Returns:
            Dictionary with scheduler status information
        """
        jobs: List[Dict[str, Any]] = []
        for name, registration in self._registry.items():
            policy = registration.policy
            jobs.append(
                {
                    "name": name,
                    "status": registration.status.name.lower(),
                    "mode": "daily" if policy.is_daily else "interval",
                    "phase": list(policy.phase),
                    "period": policy.period,
                    "valid": validate(policy),
                }
            )

        return {
            "running": self._running,
            "total_jobs": len(self._registry),
            "running_jobs": sum(1 for t in self._tasks.values() if not t.done()),
            "jobs": jobs,
        }

    async def _wait(self, delay: int) -> None:
        """Suspend a job loop until its next firing."""
        await asyncio.sleep(delay)

    async def _run(self, registration: _Registration) -> None:
        """Per-job loop: wait, execute, apply the failure policy, repeat."""
        job = registration.job
        policy = registration.policy
        run_count = 0

        try:
            while True:
                delay = next_fire_delay(policy.phase, policy.period, run_count)
                if delay < 0:
                    logger.warning(f"Job '{job.name}' has no further firing time, stopping")
                    break

                if logger.isEnabledFor(logging.DEBUG):
                    fire_at = datetime.now(REFERENCE_TZ) + timedelta(seconds=delay)
                    logger.debug(f"Job '{job.name}' next run in {delay}s (at {fire_at:%Y-%m-%d %H:%M:%S%z})")
                await self._wait(delay)

                result = await self._execute(job, run_count + 1)
                run_count += 1

                if not result.success and not job.restart_on_failure:
                    logger.error(
                        f"Job '{job.name}' failed on run {result.run_number} "
                        "and does not restart on failure, stopping"
                    )
                    break
        finally:
            registration.status = JobStatus.STOPPED

    async def _execute(self, job: CronJob, run_number: int) -> JobRunResult:
        """Run a job once, turning anything it raises into a failed result.

        Args:
            job: The job to execute
            run_number: 1-based run index for this job

        Returns:
            Execution result
        """
        result = JobRunResult(job_name=job.name, run_number=run_number)
        logger.info(f"Executing job '{job.name}' (run {run_number})")

        # Everything a job raises is its own failure, SystemExit and
        # KeyboardInterrupt included; only cancellation from stop() passes
        error: Optional[BaseException] = None
        try:
            outcome = await self._invoke(job)
            if isinstance(outcome, BaseException):
                error = outcome
        except asyncio.CancelledError:
            raise
        except BaseException as e:
            error = e

        result.completed_at = datetime.now(timezone.utc)

        if error is None:
            result.success = True
            logger.info(f"Job '{job.name}' run {run_number} completed in {result.duration:.3f}s")
        else:
            failure = JobExecutionError(job.name, run_number, error)
            result.error = str(error)
            logger.error(
                str(failure),
                exc_info=(type(error), error, error.__traceback__) if error.__traceback__ else None,
            )

        return result

    async def _invoke(self, job: CronJob) -> Any:
        """Call job.execute(), off the event loop unless it is a coroutine."""
        if inspect.iscoroutinefunction(job.execute):
            return await job.execute()

        loop = asyncio.get_running_loop()
        outcome = await loop.run_in_executor(self._executor, job.execute)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome

    def _on_loop_done(self, task: "asyncio.Task[None]") -> None:
        """Log loops that ended outside the normal exit paths."""
        if task.cancelled():
            logger.debug(f"Loop {task.get_name()} cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Loop {task.get_name()} crashed: {exc}", exc_info=exc)
        else:
            logger.debug(f"Loop {task.get_name()} finished")
