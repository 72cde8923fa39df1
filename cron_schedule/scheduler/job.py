"""Job definitions for the scheduler.

A job is anything implementing the CronJob interface. The scheduler only
reads its name and flags and calls execute(); what the job does is its own
business.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Callable, Optional


class JobStatus(Enum):
    """Lifecycle state of a registered job."""

    PENDING = auto()  # Registered, scheduler not started yet
    RUNNING = auto()  # Loop is alive
    SKIPPED = auto()  # Inactive or invalid policy, never launched
    STOPPED = auto()  # Loop exited and will not be relaunched


class CronJob(ABC):
    """Abstract base class for scheduled jobs.

    Jobs must implement:
    - name property: Unique, non-empty identifier
    - execute(): The work to perform

    Jobs may override:
    - is_active: Whether the job should be launched at all (default True)
    - restart_on_failure: Whether to keep looping after a failed run
      (default True)

    execute() may be a plain method or a coroutine. It succeeds by
    returning normally. It fails by raising, or by returning an exception
    instance instead of raising it.

    Example:
        class CleanupJob(CronJob):
            @property
            def name(self) -> str:
                return "cleanup"

            def execute(self) -> None:
                remove_stale_files()
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique job identifier."""
        ...

    @abstractmethod
    def execute(self) -> Any:
        """Run the job once."""
        ...

    @property
    def is_active(self) -> bool:
        return True

    @property
    def restart_on_failure(self) -> bool:
        return True


@dataclass
class FunctionJob(CronJob):
    """A CronJob backed by a plain callable.

    Attributes:
        job_name: Unique job identifier
        func: Callable (or coroutine function) taking no arguments
        active: Whether the job is launched on start
        restart: Whether to keep looping after a failed run
    """

    job_name: str
    func: Callable[[], Any]
    active: bool = True
    restart: bool = True

    @property
    def name(self) -> str:
        return self.job_name

    def execute(self) -> Any:
        return self.func()

    @property
    def is_active(self) -> bool:
        return self.active

    @property
    def restart_on_failure(self) -> bool:
        return self.restart


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class JobRunResult:
    """Result of one job execution.

    Attributes:
        job_name: Name of the job that ran
        run_number: 1-based index of this run within the job's loop
        started_at: When execution started
        completed_at: When execution completed
        success: Whether execution succeeded
        error: Error message if failed
    """

    job_name: str
    run_number: int
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    success: bool = False
    error: Optional[str] = None

    @property
    def duration(self) -> float:
        """Execution time in seconds (0.0 while still running)."""
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()
