"""
Global statistics maintained alongside the ledger.
"""

import logging
from collections import namedtuple
from typing import Any, Dict

logger = logging.getLogger(__name__)

GlobalStatsView = namedtuple(
    "GlobalStatsView",
    ["total_allocated", "total_claimed", "total_users", "remaining_claimable", "total_times_claimed"]
)


class GlobalStats:
    """
    Running totals over every allocation in the ledger.

    The counters are updated incrementally by the ledger in the same step as
    the mutation they summarize. `total_allocated` covers regular allocations
    and the bizdev base allocation; the bizdev bonus is not part of it.
    """

    def __init__(
        self,
        total_allocated: int = 0,
        total_claimed: int = 0,
        total_users: int = 0,
        total_times_claimed: int = 0
    ):
        self.total_allocated = total_allocated
        self.total_claimed = total_claimed
        self.total_users = total_users
        self.total_times_claimed = total_times_claimed

    def record_allocation(self, amount: int, new_user: bool = True):
        self.total_allocated += amount
        if new_user:
            self.total_users += 1

    def record_claim(self, amount: int):
        self.total_claimed += amount
        self.total_times_claimed += 1

    def record_clawback(self, amount: int):
        # Swept base tokens count as claimed so the claimed total keeps
        # matching the sum of claimed amounts.
        self.total_claimed += amount

    @property
    def remaining_claimable(self) -> int:
        # Paid bonus counts as claimed but not as allocated, so clamp.
        return max(self.total_allocated - self.total_claimed, 0)

    def view(self) -> GlobalStatsView:
        return GlobalStatsView(
            self.total_allocated,
            self.total_claimed,
            self.total_users,
            self.remaining_claimable,
            self.total_times_claimed
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return self.view()._asdict()

    def __repr__(self):
        return (
            f"GlobalStats(total_allocated={self.total_allocated}, total_claimed={self.total_claimed}, "
            f"total_users={self.total_users}, total_times_claimed={self.total_times_claimed})"
        )
