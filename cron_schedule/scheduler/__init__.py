"""Recurring job scheduling.

The scheduler runs each registered job on its own asyncio task, asking
the policy module for the delay before every firing.
"""

from cron_schedule.scheduler.job import CronJob, FunctionJob, JobRunResult, JobStatus
from cron_schedule.scheduler.job_scheduler import Scheduler
from cron_schedule.scheduler.policy import (
    NEVER,
    SECONDS_PER_DAY,
    UTC_OFFSET_SECONDS,
    FiringPolicy,
    next_fire_delay,
    next_fire_time,
    seconds_of_day,
    validate,
)

__all__ = [
    "CronJob",
    "FunctionJob",
    "JobRunResult",
    "JobStatus",
    "Scheduler",
    "FiringPolicy",
    "NEVER",
    "SECONDS_PER_DAY",
    "UTC_OFFSET_SECONDS",
    "next_fire_delay",
    "next_fire_time",
    "seconds_of_day",
    "validate",
]
