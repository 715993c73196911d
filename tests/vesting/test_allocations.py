"""
Tests for allocations file handling and bulk administration.
"""

import json

import pytest

from epix_claim.vesting.allocations import (
    MAX_DEPOSIT_CHUNK,
    AllocationEntry,
    allocation_report,
    create_ledger,
    fund_ledger,
    load_allocations_file,
    load_into_ledger,
    parse_allocations,
    split_into_chunks,
)
from epix_claim.vesting.core.errors import ConfigurationError, DuplicateAllocationError, InvalidAmountError
from epix_claim.vesting.core.units import EPIX
from tests.vesting.conftest import ADMIN, BIZDEV, T0, USER1, USER2, VESTING_PERIOD

ALLOCATIONS_DATA = {
    "bizdev": {"address": "0xBIZDEV", "amount": str(15 * EPIX), "bonus": str(5 * EPIX)},
    "allocations": [
        {"address": USER1, "amount": str(EPIX)},
        {"address": USER2, "amount": 2 * EPIX},
    ]
}


@pytest.fixture
def allocations_path(tmp_path):
    path = tmp_path / "allocations.json"
    path.write_text(json.dumps(ALLOCATIONS_DATA))
    return path


class TestParsing:

    def test_parse(self):
        allocations_file = parse_allocations(ALLOCATIONS_DATA)
        assert allocations_file.bizdev == (BIZDEV, 15 * EPIX, 5 * EPIX)
        assert allocations_file.allocations == [
            AllocationEntry(USER1, EPIX),
            AllocationEntry(USER2, 2 * EPIX)
        ]
        assert allocations_file.total_allocated == 3 * EPIX
        assert allocations_file.total_required == 23 * EPIX

    def test_bonus_defaults_to_zero(self):
        allocations_file = parse_allocations({"bizdev": {"address": BIZDEV, "amount": 1}})
        assert allocations_file.bizdev.bonus == 0
        assert allocations_file.allocations == []

    @pytest.mark.parametrize("data", [
        {},
        {"bizdev": {"amount": 1}},
        {"bizdev": {"address": BIZDEV, "amount": "1.5"}},
        {"bizdev": {"address": BIZDEV, "amount": -1}},
        {"bizdev": {"address": BIZDEV, "amount": 1}, "allocations": [{"address": USER1}]},
        {"bizdev": {"address": "", "amount": 1}},
        {"bizdev": {"address": BIZDEV, "amount": 1}, "allocations": [{"address": None, "amount": 1}]},
    ])
    def test_malformed(self, data):
        with pytest.raises(ConfigurationError):
            parse_allocations(data)

    def test_load_file(self, allocations_path):
        assert len(load_allocations_file(allocations_path).allocations) == 2

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_allocations_file(tmp_path / "missing.json")

        broken = tmp_path / "broken.json"
        broken.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_allocations_file(broken)


class TestBulkLoading:

    def test_create_and_load(self, sink):
        allocations_file = parse_allocations(ALLOCATIONS_DATA)
        ledger = create_ledger(allocations_file, ADMIN, VESTING_PERIOD, transfer_sink=sink)

        result = load_into_ledger(ledger, ADMIN, allocations_file.allocations, batch_size=1)

        assert result.added == [USER1, USER2]
        assert result.all_added
        assert ledger.get_global_stats().total_users == 2
        assert ledger.required_funding() == allocations_file.total_required

    def test_reloading_skips_existing(self, sink):
        allocations_file = parse_allocations(ALLOCATIONS_DATA)
        ledger = create_ledger(allocations_file, ADMIN, VESTING_PERIOD, transfer_sink=sink)
        load_into_ledger(ledger, ADMIN, allocations_file.allocations)

        extended = allocations_file.allocations + [AllocationEntry("0xuser3", 3 * EPIX)]
        result = load_into_ledger(ledger, ADMIN, extended)

        assert result.added == ["0xuser3"]
        assert not result.failed
        assert ledger.get_allocation(USER1).total_amount == EPIX

    def test_bizdev_address_reported_as_duplicate(self, ledger):
        result = load_into_ledger(ledger, ADMIN, [AllocationEntry(BIZDEV, EPIX), AllocationEntry("0xok", EPIX)])

        assert result.added == ["0xok"]
        assert isinstance(result.failed[BIZDEV], DuplicateAllocationError)
        assert ledger.get_allocation(BIZDEV).total_amount == 15 * EPIX

    def test_invalid_entries_reported(self, ledger):
        result = load_into_ledger(ledger, ADMIN, [AllocationEntry("0xzero", 0), AllocationEntry("0xok", EPIX)])
        assert result.added == ["0xok"]
        assert isinstance(result.failed["0xzero"], InvalidAmountError)


class TestFunding:

    def test_split_into_chunks(self):
        assert split_into_chunks(25, 10) == [10, 10, 5]
        assert split_into_chunks(20, 10) == [10, 10]
        assert split_into_chunks(0, 10) == []
        assert split_into_chunks(2_500_000 * EPIX) == [MAX_DEPOSIT_CHUNK, MAX_DEPOSIT_CHUNK, 500_000 * EPIX]

    def test_invalid_chunk_size(self):
        with pytest.raises(InvalidAmountError):
            split_into_chunks(10, 0)

    def test_fund_shortfall(self, sink):
        allocations_file = parse_allocations(ALLOCATIONS_DATA)
        ledger = create_ledger(allocations_file, ADMIN, VESTING_PERIOD, transfer_sink=sink)
        load_into_ledger(ledger, ADMIN, allocations_file.allocations)

        assert fund_ledger(ledger, ADMIN, max_chunk=10 * EPIX) == 23 * EPIX
        assert ledger.custody_balance == 23 * EPIX
        assert ledger.funding_shortfall() == 0
        assert fund_ledger(ledger, ADMIN) == 0

    def test_fund_explicit_amount(self, ledger):
        assert fund_ledger(ledger, ADMIN, amount=EPIX) == EPIX
        assert ledger.custody_balance == 24 * EPIX


class TestReport:

    def test_report(self, started_ledger):
        started_ledger.claim(USER1, T0 + 15)
        entries = [AllocationEntry(USER1, EPIX), AllocationEntry("0xunknown", EPIX)]

        report = allocation_report(started_ledger, entries, T0 + 30)

        assert report["schedule"]["started"]
        assert report["bizdev"]["address"] == BIZDEV
        assert report["allocations"][0] == {
            "address": USER1,
            "exists": True,
            "total_amount": EPIX,
            "claimed_amount": EPIX // 4,
            "claimable_amount": EPIX // 4,
            "remaining_amount": EPIX - EPIX // 4
        }
        assert report["allocations"][1] == {"address": "0xunknown", "exists": False}

        summary = report["summary"]
        assert summary["listed"] == 2
        assert summary["existing"] == 1
        assert summary["total_claimed"] == EPIX // 4
        assert summary["custody_balance"] == 23 * EPIX - EPIX // 4
        assert summary["shortfall"] == 0
