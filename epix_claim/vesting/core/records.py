"""
Claimable records held by the vesting ledger.

Regular and bizdev allocations share the ClaimableRecord base so the vesting
formula only ever deals with one shape. The bizdev variant adds the bonus and
pause controls.
"""

from collections import namedtuple
from typing import Any, Dict, Optional

REGULAR = "regular"
BIZDEV = "bizdev"

# Read-only view returned by VestingLedger.get_allocation
AllocationView = namedtuple("AllocationView", ["total_amount", "claimed_amount", "exists"])

# Read-only view returned by VestingLedger.bizdev_allocation
BizdevView = namedtuple(
    "BizdevView",
    ["address", "total_amount", "claimed_amount", "bonus_amount", "bonus_unlocked", "is_paused"]
)


class ClaimableRecord:
    """Base allocation: a fixed total and the cumulative amount paid out."""

    kind = None

    def __init__(self, address: str, total_amount: int, claimed_amount: int = 0):
        self.address = address
        self.total_amount = total_amount
        self.claimed_amount = claimed_amount

    @property
    def is_paused(self) -> bool:
        return False

    @property
    def base_claimed(self) -> int:
        """Part of claimed_amount paid against the vesting base allocation."""
        return self.claimed_amount

    @property
    def remaining_amount(self) -> int:
        return self.total_amount - self.base_claimed

    def view(self) -> AllocationView:
        return AllocationView(self.total_amount, self.claimed_amount, True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind,
            "address": self.address,
            "total_amount": self.total_amount,
            "claimed_amount": self.claimed_amount
        }


class RegularAllocation(ClaimableRecord):
    """Allocation of a regular airdrop beneficiary."""

    kind = REGULAR


class BizdevAllocation(ClaimableRecord):
    """
    The singleton business-development allocation.

    On top of the base allocation it carries a bonus that is paid in one
    piece once unlocked, and a pause flag that gates every bizdev claim path
    and enables clawback.
    """

    kind = BIZDEV

    def __init__(
        self,
        address: str,
        total_amount: int,
        original_bonus: int,
        claimed_amount: int = 0,
        bonus_amount: Optional[int] = None,
        bonus_unlocked: bool = False,
        paused: bool = False,
        bonus_paid: int = 0
    ):
        super().__init__(address, total_amount, claimed_amount)
        self.original_bonus = original_bonus
        self.bonus_amount = original_bonus if bonus_amount is None else bonus_amount
        self.bonus_paid = bonus_paid
        self.bonus_unlocked = bonus_unlocked
        self.paused = paused

    @property
    def is_paused(self) -> bool:
        return self.paused

    @property
    def base_claimed(self) -> int:
        # claimed_amount also holds a paid bonus, which is not part of vesting
        return self.claimed_amount - self.bonus_paid

    @property
    def bonus_settled(self) -> bool:
        """True once the bonus has been claimed or clawed back."""
        return self.bonus_amount == 0

    def bizdev_view(self) -> BizdevView:
        return BizdevView(
            self.address,
            self.total_amount,
            self.claimed_amount,
            self.bonus_amount,
            self.bonus_unlocked,
            self.paused
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = super().to_dict()
        result.update({
            "original_bonus": self.original_bonus,
            "bonus_amount": self.bonus_amount,
            "bonus_unlocked": self.bonus_unlocked,
            "bonus_paid": self.bonus_paid,
            "is_paused": self.paused
        })
        return result
