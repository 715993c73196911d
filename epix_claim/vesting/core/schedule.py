"""
Vesting schedule and entitlement math.

This module holds the process-wide vesting schedule and the pure functions
that compute how much of an allocation has vested at a given time. All
arithmetic is integer arithmetic; `now` is always passed in explicitly.
"""

import logging
from typing import Any, Dict, Optional

from epix_claim.vesting.core.errors import AlreadyStartedError, ConfigurationError

logger = logging.getLogger(__name__)


class VestingSchedule:
    """
    Linear vesting schedule shared by every allocation in a ledger.

    The schedule starts in the "not started" state and moves to "started"
    exactly once. The period is fixed when the schedule is created.
    """

    def __init__(self, period: int, start_time: Optional[int] = None):
        """
        Initialize the VestingSchedule.

        Args:
            period: Duration in seconds over which allocations vest to 100%
            start_time: Start timestamp when restoring an already started schedule
        """
        if isinstance(period, bool) or not isinstance(period, int) or period <= 0:
            raise ConfigurationError(f"Vesting period must be a positive integer, got {period!r}")
        self.period = period
        self.start_time = start_time

    @property
    def started(self) -> bool:
        return self.start_time is not None

    @property
    def end_time(self) -> Optional[int]:
        if self.start_time is None:
            return None
        return self.start_time + self.period

    def start(self, now: int):
        """
        Start vesting at `now`.

        Raises:
            AlreadyStartedError: If the schedule was started before
        """
        if self.started:
            raise AlreadyStartedError("Vesting has already started")
        self.start_time = now
        logger.info(f"Vesting schedule started at {now} for a period of {self.period}s")

    def vested(self, total_amount: int, now: int) -> int:
        """Amount of `total_amount` vested at `now` under this schedule."""
        return vested_amount(total_amount, self.start_time, self.period, now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "period": self.period,
            "started": self.started
        }


def vested_amount(total_amount: int, start_time: Optional[int], period: int, now: int) -> int:
    """
    Compute the linearly vested part of an allocation.

    Args:
        total_amount: Total allocation in wei
        start_time: Vesting start timestamp, None if vesting has not started
        period: Vesting period in seconds
        now: Timestamp to evaluate at

    Returns:
        floor(total_amount * elapsed / period), capped at total_amount
    """
    if start_time is None or now <= start_time:
        return 0

    elapsed = now - start_time
    if elapsed >= period:
        return total_amount

    return total_amount * elapsed // period


def claimable_amount(record, schedule: VestingSchedule, now: int) -> int:
    """
    Compute how much of a record's base allocation can be claimed at `now`.

    Works for any claimable record. Records that report themselves as paused
    are forced to zero regardless of elapsed time.

    Args:
        record: A ClaimableRecord (regular or bizdev)
        schedule: The ledger's vesting schedule
        now: Timestamp to evaluate at

    Returns:
        The claimable amount in wei, never negative
    """
    if not schedule.started or record.is_paused:
        return 0

    vested = schedule.vested(record.total_amount, now)
    return max(vested - record.base_claimed, 0)
