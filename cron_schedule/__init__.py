"""cron-schedule - minimal in-process recurring-task scheduler."""

from cron_schedule.scheduler import (
    CronJob,
    FiringPolicy,
    FunctionJob,
    JobRunResult,
    JobStatus,
    Scheduler,
    next_fire_delay,
    validate,
)

__app_name__ = "cron-schedule"
__version__ = "0.1.0"

__all__ = [
    "CronJob",
    "FiringPolicy",
    "FunctionJob",
    "JobRunResult",
    "JobStatus",
    "Scheduler",
    "next_fire_delay",
    "validate",
]
