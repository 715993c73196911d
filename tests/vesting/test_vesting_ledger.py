"""
Tests for the vesting ledger: allocations, claims and global statistics.
"""

import pytest

from epix_claim.vesting.core.errors import (
    AlreadyStartedError,
    DuplicateAllocationError,
    InsufficientCustodyError,
    InvalidAddressError,
    InvalidAmountError,
    MismatchedBatchError,
    NotStartedError,
    NothingToClaimError,
    StatsMismatchError,
    TransferError,
    UnauthorizedError,
)
from epix_claim.vesting.core.units import EPIX
from epix_claim.vesting.ledger import CLAIMED, VestingLedger
from tests.vesting.conftest import ADMIN, BIZDEV, T0, USER1, USER2, VESTING_PERIOD


def snapshot(ledger):
    """Everything an operation could change."""
    return (
        {a: (r.total_amount, r.claimed_amount) for a, r in ledger.allocations.items()},
        ledger.bizdev.to_dict(),
        ledger.get_global_stats(),
        ledger.custody_balance,
        ledger.schedule.start_time,
        len(ledger.events)
    )


def assert_conservation(ledger):
    claimed = sum(r.claimed_amount for r in ledger.allocations.values()) + ledger.bizdev.claimed_amount
    assert ledger.get_global_stats().total_claimed == claimed
    ledger.audit_stats()


class TestAllocations:

    def test_initial_state(self, ledger):
        allocation = ledger.get_allocation(USER1)
        assert allocation.total_amount == EPIX
        assert allocation.claimed_amount == 0
        assert allocation.exists

        stats = ledger.get_global_stats()
        assert stats.total_allocated == 18 * EPIX  # 1 + 2 + 15, bonus excluded
        assert stats.total_claimed == 0
        assert stats.total_users == 2
        assert stats.remaining_claimable == 18 * EPIX
        assert stats.total_times_claimed == 0

    def test_unknown_address(self, ledger):
        assert ledger.get_allocation("0xnobody") == (0, 0, False)

    def test_duplicate_allocation_rejected(self, ledger):
        before = snapshot(ledger)
        with pytest.raises(DuplicateAllocationError):
            ledger.add_allocation(ADMIN, USER1, 5000 * EPIX)
        assert snapshot(ledger) == before

    def test_duplicate_detected_across_case(self, ledger):
        ledger.add_allocation(ADMIN, "0xABCDEF", EPIX)
        with pytest.raises(DuplicateAllocationError):
            ledger.add_allocation(ADMIN, "0xabcdef", EPIX)

    def test_bizdev_address_cannot_get_regular_allocation(self, ledger):
        with pytest.raises(DuplicateAllocationError):
            ledger.add_allocation(ADMIN, BIZDEV, EPIX)

    @pytest.mark.parametrize("amount", [0, -1])
    def test_invalid_amount_rejected(self, ledger, amount):
        before = snapshot(ledger)
        with pytest.raises(InvalidAmountError):
            ledger.add_allocation(ADMIN, "0xnew", amount)
        assert snapshot(ledger) == before

    @pytest.mark.parametrize("address", ["", "  ", None, 42])
    def test_invalid_address_rejected(self, ledger, address):
        before = snapshot(ledger)
        with pytest.raises(InvalidAddressError):
            ledger.add_allocation(ADMIN, address, EPIX)
        assert snapshot(ledger) == before

    def test_only_admin_adds_allocations(self, ledger):
        with pytest.raises(UnauthorizedError):
            ledger.add_allocation(USER1, "0xnew", EPIX)
        assert not ledger.get_allocation("0xnew").exists

    def test_allocations_allowed_after_start(self, started_ledger):
        started_ledger.add_allocation(ADMIN, "0xlate", EPIX)
        assert started_ledger.get_claimable_amount("0xlate", T0 + 30) == EPIX // 2


class TestBatchAllocations:

    def test_partial_success(self, ledger):
        result = ledger.add_allocations_batch(
            ADMIN,
            ["0xa", USER1, "0xb", "0xc"],
            [EPIX, 5 * EPIX, 0, 2 * EPIX]
        )

        assert result.added == ["0xa", "0xc"]
        assert set(result.failed) == {USER1, "0xb"}
        assert isinstance(result.failed[USER1], DuplicateAllocationError)
        assert isinstance(result.failed["0xb"], InvalidAmountError)
        assert not result.all_added

        stats = ledger.get_global_stats()
        assert stats.total_users == 4
        assert stats.total_allocated == 21 * EPIX
        assert ledger.get_allocation(USER1).total_amount == EPIX

    def test_duplicate_within_batch(self, ledger):
        result = ledger.add_allocations_batch(ADMIN, ["0xd", "0xD"], [EPIX, 2 * EPIX])
        assert result.added == ["0xd"]
        assert ledger.get_allocation("0xd").total_amount == EPIX

    def test_malformed_addresses_do_not_abort_batch(self, ledger):
        result = ledger.add_allocations_batch(ADMIN, ["0xa", None, "0xb", "   "], [EPIX, EPIX, EPIX, EPIX])

        assert result.added == ["0xa", "0xb"]
        assert isinstance(result.failed[None], InvalidAddressError)
        assert isinstance(result.failed["   "], InvalidAddressError)
        assert ledger.get_allocation("0xb").exists
        assert ledger.get_global_stats().total_users == 4

    def test_length_mismatch(self, ledger):
        before = snapshot(ledger)
        with pytest.raises(MismatchedBatchError):
            ledger.add_allocations_batch(ADMIN, ["0xa", "0xb"], [EPIX])
        assert snapshot(ledger) == before

    def test_only_admin(self, ledger):
        with pytest.raises(UnauthorizedError):
            ledger.add_allocations_batch(USER1, ["0xa"], [EPIX])


class TestStartVesting:

    def test_start(self, ledger):
        assert not ledger.vesting_started
        ledger.start_vesting(ADMIN, T0)
        assert ledger.vesting_started
        assert ledger.schedule.start_time == T0

    def test_start_twice(self, started_ledger):
        with pytest.raises(AlreadyStartedError):
            started_ledger.start_vesting(ADMIN, T0 + 100)
        assert started_ledger.schedule.start_time == T0

    def test_only_admin(self, ledger):
        with pytest.raises(UnauthorizedError):
            ledger.start_vesting(USER1, T0)
        assert not ledger.vesting_started

    def test_requires_full_funding(self, sink):
        ledger = VestingLedger(ADMIN, BIZDEV, 15 * EPIX, 5 * EPIX, VESTING_PERIOD, transfer_sink=sink)
        ledger.add_allocation(ADMIN, USER1, EPIX)
        ledger.deposit(ADMIN, 10 * EPIX)

        assert ledger.required_funding() == 21 * EPIX
        assert ledger.funding_shortfall() == 11 * EPIX

        with pytest.raises(InsufficientCustodyError) as exc_info:
            ledger.start_vesting(ADMIN, T0)
        assert exc_info.value.required == 21 * EPIX
        assert exc_info.value.available == 10 * EPIX
        assert not ledger.vesting_started

        ledger.deposit(ADMIN, 11 * EPIX)
        ledger.start_vesting(ADMIN, T0)
        assert ledger.vesting_started


class TestDeposit:

    def test_deposit(self, ledger):
        ledger.deposit(ADMIN, EPIX)
        assert ledger.custody_balance == 24 * EPIX
        assert ledger.funding_shortfall() == 0

    def test_invalid_deposit(self, ledger):
        with pytest.raises(InvalidAmountError):
            ledger.deposit(ADMIN, 0)

    def test_only_admin(self, ledger):
        with pytest.raises(UnauthorizedError):
            ledger.deposit(USER1, EPIX)


class TestClaim:

    def test_claim_before_start(self, ledger):
        before = snapshot(ledger)
        with pytest.raises(NotStartedError):
            ledger.claim(USER1, T0)
        assert snapshot(ledger) == before

    def test_claimable_before_start_is_zero(self, ledger):
        assert ledger.get_claimable_amount(USER1, T0 + 1000) == 0

    def test_quarter_then_remainder(self, started_ledger, sink):
        ledger = started_ledger

        assert ledger.get_claimable_amount(USER1, T0) == 0
        assert ledger.get_claimable_amount(USER1, T0 + 15) == EPIX // 4

        assert ledger.claim(USER1, T0 + 15) == EPIX // 4
        assert ledger.get_allocation(USER1).claimed_amount == EPIX // 4
        assert ledger.get_global_stats().total_times_claimed == 1

        assert ledger.get_claimable_amount(USER1, T0 + 61) == EPIX - EPIX // 4
        assert ledger.claim(USER1, T0 + 61) == EPIX - EPIX // 4
        assert ledger.get_allocation(USER1).claimed_amount == EPIX

        with pytest.raises(NothingToClaimError):
            ledger.claim(USER1, T0 + 120)

        assert sink.received_by(USER1) == EPIX
        stats = ledger.get_global_stats()
        assert stats.total_claimed == EPIX
        assert stats.total_times_claimed == 2
        assert stats.remaining_claimable == 17 * EPIX

    def test_full_claim_after_period(self, started_ledger):
        assert started_ledger.get_claimable_amount(USER2, T0 + VESTING_PERIOD + 60) == 2 * EPIX
        assert started_ledger.claim(USER2, T0 + VESTING_PERIOD + 60) == 2 * EPIX
        with pytest.raises(NothingToClaimError):
            started_ledger.claim(USER2, T0 + VESTING_PERIOD + 61)

    def test_second_claim_in_same_instant(self, started_ledger):
        started_ledger.claim(USER1, T0 + 30)
        with pytest.raises(NothingToClaimError):
            started_ledger.claim(USER1, T0 + 30)

    def test_claim_without_allocation(self, started_ledger):
        with pytest.raises(NothingToClaimError):
            started_ledger.claim("0xnobody", T0 + 30)

    def test_claim_address_is_case_insensitive(self, started_ledger, sink):
        started_ledger.claim("0xUSER1", T0 + 30)
        assert started_ledger.get_allocation(USER1).claimed_amount == EPIX // 2

    def test_claim_history(self, started_ledger):
        started_ledger.claim(USER1, T0 + 15)
        started_ledger.claim(USER2, T0 + 20)
        started_ledger.claim(USER1, T0 + 30)

        history = started_ledger.claims_for(USER1)
        assert [e.kind for e in history] == [CLAIMED, CLAIMED]
        assert [e.amount for e in history] == [EPIX // 4, EPIX // 4]
        assert [e.timestamp for e in history] == [T0 + 15, T0 + 30]

    def test_monotonic_claims(self, started_ledger):
        claimed = []
        for t in range(T0, T0 + VESTING_PERIOD + 10, 7):
            try:
                started_ledger.claim(USER2, t)
            except NothingToClaimError:
                pass
            claimed.append(started_ledger.get_allocation(USER2).claimed_amount)

        assert all(b >= a for a, b in zip(claimed, claimed[1:]))
        assert claimed[-1] == 2 * EPIX
        assert all(c <= 2 * EPIX for c in claimed)
        assert_conservation(started_ledger)


class TestAtomicity:

    def test_rejected_transfer_leaves_state_unchanged(self, started_ledger, sink):
        before = snapshot(started_ledger)
        sink.fail = True

        with pytest.raises(TransferError):
            started_ledger.claim(USER1, T0 + 30)

        assert snapshot(started_ledger) == before
        sink.fail = False
        assert started_ledger.claim(USER1, T0 + 30) == EPIX // 2

    def test_insufficient_custody_leaves_state_unchanged(self, started_ledger, sink):
        started_ledger.custody.balance = EPIX // 10
        before = snapshot(started_ledger)

        with pytest.raises(InsufficientCustodyError):
            started_ledger.claim(USER1, T0 + 30)

        assert snapshot(started_ledger) == before
        assert sink.payouts == []


class TestGlobalStats:

    def test_conservation_across_operations(self, started_ledger):
        ledger = started_ledger
        ledger.claim(USER1, T0 + 10)
        ledger.claim(BIZDEV, T0 + 20)
        ledger.unlock_bizdev_bonus(ADMIN)
        ledger.claim_bizdev_bonus(BIZDEV)
        ledger.claim(USER2, T0 + 40)
        ledger.pause_bizdev_claiming(ADMIN)
        ledger.claw_back_bizdev_remaining(ADMIN, T0 + 45)
        ledger.claim(USER1, T0 + 100)

        assert_conservation(ledger)
        stats = ledger.get_global_stats()
        assert stats.total_times_claimed == 5
        assert stats.total_allocated == 18 * EPIX

    def test_audit_detects_drift(self, started_ledger):
        started_ledger.claim(USER1, T0 + 30)
        started_ledger.stats.total_claimed += 1
        with pytest.raises(StatsMismatchError):
            started_ledger.audit_stats()

    def test_custody_tracks_payouts(self, started_ledger, sink):
        started_ledger.claim(USER1, T0 + 30)
        started_ledger.claim(USER2, T0 + 30)
        assert started_ledger.custody_balance == 23 * EPIX - sum(a for _, a in sink.payouts)
