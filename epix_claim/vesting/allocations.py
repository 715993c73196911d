"""
Allocations file handling and bulk administration.

The allocations file lists the bizdev allocation and every regular
beneficiary:

    {
        "bizdev": {"address": "0x...", "amount": "15000000000000000000", "bonus": "5000000000000000000"},
        "allocations": [{"address": "0x...", "amount": "1000000000000000000"}, ...]
    }

Amounts are integer wei, given as JSON numbers or decimal strings.
"""

import json
import logging
from collections import namedtuple
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from epix_claim.vesting.core.errors import ConfigurationError, InvalidAddressError, InvalidAmountError
from epix_claim.vesting.core.units import EPIX, normalize_address, parse_wei
from epix_claim.vesting.ledger import BatchResult, VestingLedger

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
MAX_DEPOSIT_CHUNK = 1_000_000 * EPIX

AllocationEntry = namedtuple("AllocationEntry", ["address", "amount"])
BizdevEntry = namedtuple("BizdevEntry", ["address", "amount", "bonus"])


class AllocationsFile:
    """Parsed contents of an allocations file."""

    def __init__(self, bizdev: BizdevEntry, allocations: List[AllocationEntry]):
        self.bizdev = bizdev
        self.allocations = allocations

    @property
    def total_allocated(self) -> int:
        return sum(a.amount for a in self.allocations)

    @property
    def total_required(self) -> int:
        """Custody needed to fund every allocation plus the bizdev amount and bonus."""
        return self.total_allocated + self.bizdev.amount + self.bizdev.bonus


def parse_allocations(data: Dict[str, Any]) -> AllocationsFile:
    """
    Validate raw allocations data.

    Raises:
        ConfigurationError: If a section or field is missing or malformed
    """
    try:
        bizdev_data = data["bizdev"]
        bizdev = BizdevEntry(
            normalize_address(bizdev_data["address"]),
            parse_wei(bizdev_data["amount"]),
            parse_wei(bizdev_data.get("bonus", 0))
        )
        allocations = [
            AllocationEntry(normalize_address(entry["address"]), parse_wei(entry["amount"]))
            for entry in data.get("allocations", [])
        ]
    except (KeyError, TypeError, AttributeError) as e:
        raise ConfigurationError(f"Malformed allocations data: missing {e}")
    except (InvalidAddressError, InvalidAmountError) as e:
        raise ConfigurationError(f"Malformed allocations data: {e}")

    if bizdev.amount < 0 or bizdev.bonus < 0:
        raise ConfigurationError("Bizdev amount and bonus must not be negative")

    return AllocationsFile(bizdev, allocations)


def load_allocations_file(path: Union[str, Path]) -> AllocationsFile:
    """Read and validate an allocations JSON file."""
    path = Path(path)
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read allocations file {path}: {e}")

    allocations_file = parse_allocations(data)
    logger.info(f"Loaded {len(allocations_file.allocations)} allocations from {path}")
    return allocations_file


def create_ledger(
    allocations_file: AllocationsFile,
    admin_address: str,
    vesting_period: int,
    transfer_sink=None
) -> VestingLedger:
    """Create an empty ledger for the bizdev allocation of `allocations_file`."""
    bizdev = allocations_file.bizdev
    return VestingLedger(
        admin_address=admin_address,
        bizdev_address=bizdev.address,
        bizdev_amount=bizdev.amount,
        bizdev_bonus=bizdev.bonus,
        vesting_period=vesting_period,
        transfer_sink=transfer_sink
    )


def load_into_ledger(
    ledger: VestingLedger,
    caller: str,
    allocations: List[AllocationEntry],
    batch_size: int = DEFAULT_BATCH_SIZE,
    now: Optional[int] = None
) -> BatchResult:
    """
    Add the allocations that do not exist yet, in batches.

    Addresses that already hold a regular allocation are skipped without
    being reported as failures, so loading the same file twice is harmless.
    Listing the bizdev address is reported as a DuplicateAllocationError.

    Returns:
        Combined BatchResult over all batches
    """
    new_allocations = [
        a for a in allocations
        if a.address == ledger.bizdev.address or not ledger.get_allocation(a.address).exists
    ]
    skipped = len(allocations) - len(new_allocations)
    if skipped:
        logger.info(f"Skipping {skipped} addresses that already have allocations")
    logger.info(f"Found {len(new_allocations)} new allocations to add out of {len(allocations)} total")

    combined = BatchResult()
    num_batches = (len(new_allocations) + batch_size - 1) // batch_size
    for i in range(0, len(new_allocations), batch_size):
        batch = new_allocations[i:i + batch_size]
        logger.info(f"Adding allocations batch {i // batch_size + 1}/{num_batches}")
        result = ledger.add_allocations_batch(
            caller,
            [a.address for a in batch],
            [a.amount for a in batch],
            now=now
        )
        combined.added.extend(result.added)
        combined.failed.update(result.failed)

    return combined


def split_into_chunks(total_amount: int, max_chunk: int = MAX_DEPOSIT_CHUNK) -> List[int]:
    """Split a funding amount into deposits no larger than `max_chunk`."""
    if max_chunk <= 0:
        raise InvalidAmountError("Chunk size must be greater than zero")

    chunks = []
    remaining = total_amount
    while remaining > 0:
        chunk = min(remaining, max_chunk)
        chunks.append(chunk)
        remaining -= chunk
    return chunks


def fund_ledger(ledger: VestingLedger, caller: str, max_chunk: int = MAX_DEPOSIT_CHUNK,
                amount: Optional[int] = None, now: Optional[int] = None) -> int:
    """
    Deposit `amount`, or whatever custody is missing, in chunks.

    Returns:
        Total amount deposited
    """
    if amount is None:
        amount = ledger.funding_shortfall()
        if amount == 0:
            logger.info("Custody already has sufficient funds")
            return 0

    chunks = split_into_chunks(amount, max_chunk)
    logger.info(f"Funding custody with {amount} wei in {len(chunks)} chunk(s)")
    for chunk in chunks:
        ledger.deposit(caller, chunk, now=now)
    return amount


def allocation_report(ledger: VestingLedger, allocations: List[AllocationEntry], now: int) -> Dict[str, Any]:
    """
    Summarize the ledger state of the listed addresses.

    Returns:
        Dictionary with the schedule, bizdev allocation, per-address rows and
        a funding summary
    """
    rows = []
    total_allocated = 0
    total_claimed = 0
    for entry in allocations:
        allocation = ledger.get_allocation(entry.address)
        if not allocation.exists:
            rows.append({"address": entry.address, "exists": False})
            continue

        total_allocated += allocation.total_amount
        total_claimed += allocation.claimed_amount
        rows.append({
            "address": entry.address,
            "exists": True,
            "total_amount": allocation.total_amount,
            "claimed_amount": allocation.claimed_amount,
            "claimable_amount": ledger.get_claimable_amount(entry.address, now),
            "remaining_amount": allocation.total_amount - allocation.claimed_amount
        })

    required = ledger.required_funding()
    return {
        "schedule": ledger.schedule.to_dict(),
        "bizdev": ledger.bizdev.to_dict(),
        "allocations": rows,
        "summary": {
            "listed": len(allocations),
            "existing": sum(1 for r in rows if r["exists"]),
            "total_allocated": total_allocated,
            "total_claimed": total_claimed,
            "custody_balance": ledger.custody_balance,
            "required_funding": required,
            "shortfall": max(required - ledger.custody_balance, 0)
        }
    }
