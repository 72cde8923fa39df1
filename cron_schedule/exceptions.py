"""Exceptions for cron-schedule."""

from typing import Any


class CronScheduleError(Exception):
    """Base exception for cron-schedule.

    Attributes:
        message: Error message
        details: Optional dictionary of additional error details
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            extra = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({extra})"
        return self.message


class SchedulerError(CronScheduleError):
    """Raised when the scheduler API is used incorrectly."""
    pass


class InvalidPolicyError(SchedulerError):
    """Raised when a firing policy is malformed."""

    def __init__(
        self,
        message: str,
        phase: tuple[int, ...] | None = None,
        period: Any = None,
    ) -> None:
        details: dict[str, Any] = {}
        if phase is not None:
            details["phase"] = list(phase)
        if period is not None:
            details["period"] = period
        super().__init__(message, details)
        self.phase = phase
        self.period = period


class JobExecutionError(CronScheduleError):
    """A failed job execution.

    Built at the loop boundary from whatever the job raised or returned,
    with the original exception chained as ``__cause__``.
    """

    def __init__(self, job_name: str, run_number: int, error: BaseException) -> None:
        super().__init__(
            f"Job {job_name} failed on run {run_number}: {error}",
            {"error_type": type(error).__name__},
        )
        self.job_name = job_name
        self.run_number = run_number
        self.error = error
        self.__cause__ = error


class ConfigurationError(CronScheduleError):
    """Raised when configuration cannot be loaded or is invalid."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, {"path": path} if path else None)
        self.path = path
