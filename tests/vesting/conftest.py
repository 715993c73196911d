"""
Shared fixtures for the vesting ledger tests.
"""

import pytest

from epix_claim.vesting.core.units import EPIX
from epix_claim.vesting.ledger import VestingLedger

ADMIN = "0xadmin"
BIZDEV = "0xbizdev"
USER1 = "0xuser1"
USER2 = "0xuser2"

VESTING_PERIOD = 60
T0 = 1_700_000_000


class RecordingSink:
    """Transfer sink that records every payout, optionally failing."""

    def __init__(self):
        self.payouts = []
        self.fail = False

    def __call__(self, recipient, amount):
        if self.fail:
            raise RuntimeError("transfer rejected")
        self.payouts.append((recipient, amount))

    def received_by(self, address):
        return sum(amount for recipient, amount in self.payouts if recipient == address)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def ledger(sink):
    """Ledger with 1 and 2 EPIX allocations, 15 + 5 EPIX bizdev, fully funded."""
    ledger = VestingLedger(
        admin_address=ADMIN,
        bizdev_address=BIZDEV,
        bizdev_amount=15 * EPIX,
        bizdev_bonus=5 * EPIX,
        vesting_period=VESTING_PERIOD,
        transfer_sink=sink
    )
    ledger.add_allocation(ADMIN, USER1, 1 * EPIX)
    ledger.add_allocation(ADMIN, USER2, 2 * EPIX)
    ledger.deposit(ADMIN, 23 * EPIX)
    return ledger


@pytest.fixture
def started_ledger(ledger):
    ledger.start_vesting(ADMIN, T0)
    return ledger
