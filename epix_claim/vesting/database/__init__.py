"""
Database models for the vesting ledger.
"""

from epix_claim.vesting.database.models import (
    AllocationRecord,
    BizdevRecord,
    LedgerEventRecord,
    LedgerState,
    WeiAmount,
    Base
)

__all__ = [
    "AllocationRecord",
    "BizdevRecord",
    "LedgerEventRecord",
    "LedgerState",
    "WeiAmount",
    "Base"
]
