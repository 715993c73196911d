"""
Vesting and claim accounting for the EPIX airdrop.

This package implements the allocation ledger behind the claim portal:
one-time allocations per address, linear vesting from a single start time,
claims paid from custody, the bizdev allocation with its bonus, pause and
clawback controls, and the global statistics kept in step with all of it.
"""

# Core components
from epix_claim.vesting.core import (
    EPIX,
    VestingError,
    VestingSchedule,
    format_epix,
    parse_epix
)

# Main ledger
from epix_claim.vesting.ledger import BatchResult, LedgerEvent, VestingLedger

# Persistence and integration
from epix_claim.vesting.store import LedgerStore
from epix_claim.vesting.snapshot_client import SnapshotClient
from epix_claim.vesting.config import load_vesting_config

__all__ = [
    # Core components
    "EPIX",
    "VestingError",
    "VestingSchedule",
    "format_epix",
    "parse_epix",

    # Main ledger
    "BatchResult",
    "LedgerEvent",
    "VestingLedger",

    # Persistence and integration
    "LedgerStore",
    "SnapshotClient",
    "load_vesting_config"
]
