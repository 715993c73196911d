"""
Core components for the vesting ledger.
"""

from epix_claim.vesting.core.custody import Custody, Payout
from epix_claim.vesting.core.errors import (
    AlreadyStartedError,
    BonusAlreadyClaimedError,
    BonusLockedError,
    ClaimingPausedError,
    ConfigurationError,
    DuplicateAllocationError,
    InsufficientCustodyError,
    InvalidAddressError,
    InvalidAmountError,
    MismatchedBatchError,
    NotPausedError,
    NotStartedError,
    NothingToClaimError,
    StatsMismatchError,
    TransferError,
    UnauthorizedError,
    VestingError
)
from epix_claim.vesting.core.records import (
    AllocationView,
    BizdevAllocation,
    BizdevView,
    ClaimableRecord,
    RegularAllocation
)
from epix_claim.vesting.core.schedule import VestingSchedule, claimable_amount, vested_amount
from epix_claim.vesting.core.stats import GlobalStats, GlobalStatsView
from epix_claim.vesting.core.units import EPIX, format_epix, normalize_address, parse_epix, parse_wei

__all__ = [
    "Custody",
    "Payout",
    "VestingError",
    "AlreadyStartedError",
    "BonusAlreadyClaimedError",
    "BonusLockedError",
    "ClaimingPausedError",
    "ConfigurationError",
    "DuplicateAllocationError",
    "InsufficientCustodyError",
    "InvalidAddressError",
    "InvalidAmountError",
    "MismatchedBatchError",
    "NotPausedError",
    "NotStartedError",
    "NothingToClaimError",
    "StatsMismatchError",
    "TransferError",
    "UnauthorizedError",
    "AllocationView",
    "BizdevAllocation",
    "BizdevView",
    "ClaimableRecord",
    "RegularAllocation",
    "VestingSchedule",
    "claimable_amount",
    "vested_amount",
    "GlobalStats",
    "GlobalStatsView",
    "EPIX",
    "format_epix",
    "normalize_address",
    "parse_epix",
    "parse_wei"
]
