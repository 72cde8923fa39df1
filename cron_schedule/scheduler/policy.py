"""Firing policies and next-fire-time calculation.

A policy is either interval mode (no phases: fire immediately, then every
``period`` seconds) or daily mode (one or more seconds-of-day: fire at each
of them, cycling every ``period`` seconds, a whole number of days).

Daily phases are measured against a fixed UTC+8 clock.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Sequence, Tuple, Union

from cron_schedule.exceptions import InvalidPolicyError

SECONDS_PER_DAY = 24 * 3600

# Fixed reference offset for daily phases (UTC+8), not configurable
UTC_OFFSET_SECONDS = 8 * 3600
REFERENCE_TZ = timezone(timedelta(seconds=UTC_OFFSET_SECONDS))

# Returned by next_fire_delay when a job must never run again
NEVER = -1


def _parse_time_of_day(value: Union[int, str]) -> int:
    """Convert ``"HH:MM[:SS]"`` or a raw second count to seconds-of-day."""
    if isinstance(value, bool):
        raise InvalidPolicyError(f"Invalid time of day: {value!r}")
    if isinstance(value, int):
        return value

    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isascii() and p.isdigit() for p in parts):
        raise InvalidPolicyError(
            f"Invalid time of day: '{value}'. Expected HH:MM or HH:MM:SS"
        )

    hours, minutes = int(parts[0]), int(parts[1])
    seconds = int(parts[2]) if len(parts) == 3 else 0
    if hours > 23 or minutes > 59 or seconds > 59:
        raise InvalidPolicyError(f"Time of day out of range: '{value}'")

    return hours * 3600 + minutes * 60 + seconds


def _normalize_phase(phase: Iterable[int]) -> Tuple[int, ...]:
    return tuple(sorted(set(phase)))


@dataclass
class FiringPolicy:
    """When a job fires.

    Attributes:
        phase: Seconds after midnight (UTC+8) at which to fire. Empty for
            interval mode. Stored sorted ascending without duplicates.
        period: Repeat interval in seconds. Any positive value in interval
            mode, a positive multiple of a day in daily mode.

    Example:
        FiringPolicy.interval(10)            # now, then every 10s
        FiringPolicy.daily("01:00", "22:00") # 1:00 and 22:00 every day
        FiringPolicy(phase=[3600], period=2 * SECONDS_PER_DAY)
    """

    phase: Tuple[int, ...] = field(default_factory=tuple)
    period: int = 0

    def __post_init__(self) -> None:
        self.phase = _normalize_phase(self.phase)

    @classmethod
    def interval(cls, seconds: int) -> "FiringPolicy":
        """Fire once immediately, then every ``seconds``."""
        return cls(phase=(), period=seconds)

    @classmethod
    def daily(cls, *times: Union[int, str], days: int = 1) -> "FiringPolicy":
        """Fire at each time of day, repeating every ``days`` days.

        Args:
            times: Seconds-of-day or ``"HH:MM[:SS]"`` strings
            days: Cycle length in days

        Raises:
            InvalidPolicyError: If no times are given or one is malformed
        """
        if not times:
            raise InvalidPolicyError("A daily policy needs at least one time of day")
        return cls(
            phase=tuple(_parse_time_of_day(t) for t in times),
            period=days * SECONDS_PER_DAY,
        )

    @property
    def is_daily(self) -> bool:
        """Whether this policy fires at fixed times of day."""
        return bool(self.phase)

    def require_valid(self) -> "FiringPolicy":
        """Return self, or raise InvalidPolicyError if the policy can't run."""
        if not validate(self):
            if self.is_daily:
                message = (
                    "Daily policy needs a period that is a positive multiple of "
                    f"{SECONDS_PER_DAY} and phases within one day"
                )
            else:
                message = "Interval policy needs a positive period"
            raise InvalidPolicyError(message, phase=self.phase, period=self.period)
        return self


def validate(policy: FiringPolicy) -> bool:
    """Check whether a policy can be scheduled.

    Interval mode needs ``period > 0``. Daily mode needs ``period`` to be a
    positive multiple of a day and every phase inside ``[0, 86400)``.
    """
    period = policy.period
    if isinstance(period, bool) or not isinstance(period, int):
        return False

    if not policy.phase:
        return period > 0

    if period < SECONDS_PER_DAY or period % SECONDS_PER_DAY != 0:
        return False
    return all(0 <= p < SECONDS_PER_DAY for p in policy.phase)


def seconds_of_day(now: Optional[float] = None) -> int:
    """Seconds since midnight on the UTC+8 reference clock.

    Args:
        now: Unix timestamp; the current wall clock when omitted
    """
    if now is None:
        now = time.time()
    return (int(now) + UTC_OFFSET_SECONDS) % SECONDS_PER_DAY


def next_fire_delay(
    phase: Sequence[int],
    period: int,
    run_count: int,
    now: Optional[float] = None,
) -> int:
    """Seconds to wait before the next run, or NEVER.

    Args:
        phase: Sorted seconds-of-day, empty for interval mode
        period: Repeat interval in seconds
        run_count: Executions the job has completed so far
        now: Unix timestamp to compute against (defaults to the wall clock)

    Returns:
        A non-negative delay for any policy that passes validate(); NEVER
        otherwise.
    """
    if not phase:
        if period <= 0:
            return NEVER
        return 0 if run_count == 0 else period

    now_offset = seconds_of_day(now)
    for value in phase:
        if now_offset < value:
            return value - now_offset

    # Past the last phase of today: wait out the cycle, land on the first
    delay = period - now_offset + phase[0]
    return delay if delay >= 0 else NEVER


def next_fire_time(
    policy: FiringPolicy,
    run_count: int,
    now: Optional[float] = None,
) -> Optional[datetime]:
    """Absolute time of the next run on the UTC+8 reference clock.

    Returns:
        Timezone-aware datetime, or None if the policy never fires
    """
    if now is None:
        now = time.time()
    delay = next_fire_delay(policy.phase, policy.period, run_count, now=now)
    if delay < 0:
        return None
    return datetime.fromtimestamp(int(now) + delay, tz=REFERENCE_TZ)
