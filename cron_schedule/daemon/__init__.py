"""Process-lifetime hosting for a scheduler."""

from cron_schedule.daemon.service import SchedulerDaemon, run_scheduler

__all__ = ["SchedulerDaemon", "run_scheduler"]
