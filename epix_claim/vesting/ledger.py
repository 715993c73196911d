"""
Vesting ledger for the EPIX claim portal.

The ledger records one allocation per beneficiary, vests every allocation
linearly from a single start time, pays out claims from custody and keeps the
global statistics in step with every mutation. It also owns the bizdev
allocation with its bonus, pause and clawback controls.

Every public operation checks all of its preconditions before it touches any
state, performs the payout, and only then commits the ledger and statistics
changes. A failed operation therefore leaves the ledger exactly as it was.
"""

import logging
import threading
from collections import namedtuple
from typing import Dict, List, Optional

from epix_claim.vesting.core.custody import Custody, TransferSink
from epix_claim.vesting.core.errors import (
    AlreadyStartedError,
    BonusAlreadyClaimedError,
    BonusLockedError,
    ClaimingPausedError,
    DuplicateAllocationError,
    InsufficientCustodyError,
    InvalidAddressError,
    InvalidAmountError,
    MismatchedBatchError,
    NotPausedError,
    NotStartedError,
    NothingToClaimError,
    StatsMismatchError,
    UnauthorizedError,
    VestingError,
)
from epix_claim.vesting.core.records import (
    AllocationView,
    BizdevAllocation,
    BizdevView,
    ClaimableRecord,
    RegularAllocation,
)
from epix_claim.vesting.core.schedule import VestingSchedule, claimable_amount
from epix_claim.vesting.core.stats import GlobalStats, GlobalStatsView
from epix_claim.vesting.core.units import normalize_address

logger = logging.getLogger(__name__)

# Event kinds
ALLOCATION_ADDED = "allocation_added"
VESTING_STARTED = "vesting_started"
CLAIMED = "claimed"
BIZDEV_CLAIMED = "bizdev_claimed"
BONUS_UNLOCKED = "bonus_unlocked"
BONUS_CLAIMED = "bonus_claimed"
CLAIMING_PAUSED = "claiming_paused"
CLAIMING_RESUMED = "claiming_resumed"
REMAINING_CLAWED_BACK = "remaining_clawed_back"
BONUS_CLAWED_BACK = "bonus_clawed_back"
DEPOSITED = "deposited"

CLAIM_EVENTS = (CLAIMED, BIZDEV_CLAIMED, BONUS_CLAIMED)

LedgerEvent = namedtuple("LedgerEvent", ["seq", "kind", "address", "amount", "timestamp"])


class BatchResult:
    """Outcome of a batch allocation: which entries were added and which failed."""

    def __init__(self):
        self.added: List[str] = []
        self.failed: Dict[str, VestingError] = {}

    @property
    def all_added(self) -> bool:
        return not self.failed

    def __repr__(self):
        return f"BatchResult(added={len(self.added)}, failed={len(self.failed)})"


class VestingLedger:
    """
    Allocation and vesting ledger.

    This class is responsible for:
    1. Recording one allocation per beneficiary address
    2. Computing the vested and claimable amount of each allocation
    3. Paying out claims and keeping global statistics consistent
    4. Running the bizdev allocation state machine (bonus, pause, clawback)
    """

    def __init__(
        self,
        admin_address: str,
        bizdev_address: str,
        bizdev_amount: int,
        bizdev_bonus: int,
        vesting_period: int,
        transfer_sink: Optional[TransferSink] = None
    ):
        """
        Initialize the VestingLedger.

        Args:
            admin_address: The single privileged administrator
            bizdev_address: Recipient of the bizdev allocation
            bizdev_amount: Base bizdev allocation in wei, vested like any other
            bizdev_bonus: Bizdev bonus in wei, paid in one piece once unlocked
            vesting_period: Vesting period in seconds
            transfer_sink: Optional callable invoked for every payout
        """
        if bizdev_amount < 0 or bizdev_bonus < 0:
            raise InvalidAmountError("Bizdev amounts must not be negative")

        self.admin_address = normalize_address(admin_address)
        self.schedule = VestingSchedule(vesting_period)
        self.custody = Custody(transfer_sink=transfer_sink)
        self.stats = GlobalStats()
        self.bizdev = BizdevAllocation(normalize_address(bizdev_address), bizdev_amount, bizdev_bonus)
        self.allocations: Dict[str, RegularAllocation] = {}
        self.events: List[LedgerEvent] = []

        self.stats.record_allocation(bizdev_amount, new_user=False)

        self._lock = threading.RLock()

    # Internal helpers

    def _require_admin(self, caller: str):
        if normalize_address(caller) != self.admin_address:
            raise UnauthorizedError("Caller is not the administrator")

    def _require_bizdev(self, caller: str):
        if normalize_address(caller) != self.bizdev.address:
            raise UnauthorizedError("Caller is not the bizdev address")

    def _record_for(self, address: str) -> Optional[ClaimableRecord]:
        address = normalize_address(address)
        if address == self.bizdev.address:
            return self.bizdev
        return self.allocations.get(address)

    def _emit(self, kind: str, address: Optional[str], amount: int, timestamp: Optional[int]):
        event = LedgerEvent(len(self.events) + 1, kind, address, amount, timestamp)
        self.events.append(event)
        return event

    # Allocation ledger

    def add_allocation(self, caller: str, address: str, amount: int, now: Optional[int] = None):
        """
        Record the one-time allocation of `address`.

        Args:
            caller: Address invoking the operation, must be the administrator
            address: Beneficiary address
            amount: Allocation in wei
            now: Optional timestamp recorded on the event

        Raises:
            UnauthorizedError: If the caller is not the administrator
            DuplicateAllocationError: If the address already holds an allocation
            InvalidAddressError: If the address is not a non-empty string
            InvalidAmountError: If amount is zero or negative
        """
        with self._lock:
            self._require_admin(caller)
            self._add_allocation(normalize_address(address), amount, now)

    def _add_allocation(self, address: str, amount: int, now: Optional[int]):
        if address in self.allocations or address == self.bizdev.address:
            raise DuplicateAllocationError(f"Allocation already exists for {address}")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError("Amount must be greater than zero")

        self.allocations[address] = RegularAllocation(address, amount)
        self.stats.record_allocation(amount)
        self._emit(ALLOCATION_ADDED, address, amount, now)
        logger.debug(f"Added allocation of {amount} wei for {address}")

    def add_allocations_batch(
        self,
        caller: str,
        addresses: List[str],
        amounts: List[int],
        now: Optional[int] = None
    ) -> BatchResult:
        """
        Add many allocations at once.

        Entries are applied one by one; an invalid or duplicate entry is
        reported in the result and does not stop the others.

        Args:
            caller: Address invoking the operation, must be the administrator
            addresses: Beneficiary addresses
            amounts: Allocation amounts in wei, matched by position
            now: Optional timestamp recorded on the events

        Returns:
            BatchResult listing added and failed addresses

        Raises:
            UnauthorizedError: If the caller is not the administrator
            MismatchedBatchError: If the two lists differ in length
        """
        with self._lock:
            self._require_admin(caller)
            if len(addresses) != len(amounts):
                raise MismatchedBatchError(
                    f"Arrays length mismatch: {len(addresses)} addresses, {len(amounts)} amounts"
                )

            result = BatchResult()
            for address, amount in zip(addresses, amounts):
                try:
                    address = normalize_address(address)
                    self._add_allocation(address, amount, now)
                    result.added.append(address)
                except (DuplicateAllocationError, InvalidAddressError, InvalidAmountError) as e:
                    result.failed[address] = e

            logger.info(f"Batch allocation: {len(result.added)} added, {len(result.failed)} rejected")
            if result.failed:
                logger.warning(f"Rejected batch entries: {list(result.failed)}")
            return result

    def get_allocation(self, address: str) -> AllocationView:
        """Allocation of `address`, or a zero record with exists=False."""
        with self._lock:
            record = self._record_for(address)
            if record is None:
                return AllocationView(0, 0, False)
            return record.view()

    # Schedule

    def start_vesting(self, caller: str, now: int):
        """
        Start the vesting period at `now`.

        Raises:
            UnauthorizedError: If the caller is not the administrator
            AlreadyStartedError: If vesting was already started
            InsufficientCustodyError: If custody does not cover every outstanding allocation
        """
        with self._lock:
            self._require_admin(caller)
            if self.schedule.started:
                raise AlreadyStartedError("Vesting has already started")

            required = self.required_funding()
            if self.custody.balance < required:
                logger.warning(
                    f"Refusing to start vesting: custody holds {self.custody.balance} wei, "
                    f"{required} wei required"
                )
                raise InsufficientCustodyError(required, self.custody.balance)

            self.schedule.start(now)
            self._emit(VESTING_STARTED, None, 0, now)

    @property
    def vesting_started(self) -> bool:
        return self.schedule.started

    # Claims

    def get_claimable_amount(self, address: str, now: int) -> int:
        """Base-allocation amount `address` could claim at `now` (bonus excluded)."""
        with self._lock:
            record = self._record_for(address)
            if record is None:
                return 0
            return claimable_amount(record, self.schedule, now)

    def get_bizdev_claimable_amount(self, now: int) -> int:
        """Amount the bizdev address could claim at `now`; zero while paused."""
        with self._lock:
            return claimable_amount(self.bizdev, self.schedule, now)

    def claim(self, caller: str, now: int) -> int:
        """
        Claim everything vested and not yet claimed for the caller.

        The bizdev address may use this entry point for its base allocation.

        Args:
            caller: Beneficiary address
            now: Current timestamp

        Returns:
            The amount paid out in wei

        Raises:
            NotStartedError: If vesting has not started
            NothingToClaimError: If nothing is claimable
            InsufficientCustodyError: If custody cannot fund the payout
            TransferError: If the payout was rejected
        """
        with self._lock:
            if not self.schedule.started:
                raise NotStartedError("Vesting has not started yet")

            record = self._record_for(caller)
            amount = 0 if record is None else claimable_amount(record, self.schedule, now)
            if amount == 0:
                raise NothingToClaimError("No tokens available to claim")

            kind = BIZDEV_CLAIMED if record is self.bizdev else CLAIMED
            return self._pay_claim(record, amount, kind, now)

    def claim_bizdev(self, caller: str, now: int) -> int:
        """
        Claim the vested part of the bizdev base allocation.

        Raises:
            UnauthorizedError: If the caller is not the bizdev address
            NotStartedError: If vesting has not started
            ClaimingPausedError: If bizdev claiming is paused
            NothingToClaimError: If nothing is claimable
        """
        with self._lock:
            self._require_bizdev(caller)
            if not self.schedule.started:
                raise NotStartedError("Vesting has not started yet")
            if self.bizdev.is_paused:
                raise ClaimingPausedError("Bizdev claiming is paused")

            amount = claimable_amount(self.bizdev, self.schedule, now)
            if amount == 0:
                raise NothingToClaimError("No tokens available to claim")

            return self._pay_claim(self.bizdev, amount, BIZDEV_CLAIMED, now)

    def _pay_claim(self, record: ClaimableRecord, amount: int, kind: str, now: Optional[int]) -> int:
        self.custody.pay(record.address, amount)

        record.claimed_amount += amount
        self.stats.record_claim(amount)
        self._emit(kind, record.address, amount, now)

        logger.info(f"{record.address} claimed {amount} wei ({record.claimed_amount}/{record.total_amount})")
        return amount

    def claims_for(self, address: str) -> List[LedgerEvent]:
        """Claim events paid to `address`, oldest first."""
        address = normalize_address(address)
        with self._lock:
            return [e for e in self.events if e.kind in CLAIM_EVENTS and e.address == address]

    # Bizdev state machine

    def bizdev_allocation(self) -> BizdevView:
        with self._lock:
            return self.bizdev.bizdev_view()

    @property
    def original_bizdev_bonus(self) -> int:
        return self.bizdev.original_bonus

    def unlock_bizdev_bonus(self, caller: str, now: Optional[int] = None):
        """Unlock the bizdev bonus. Unlocking an unlocked bonus changes nothing."""
        with self._lock:
            self._require_admin(caller)
            if self.bizdev.bonus_unlocked:
                logger.info("Bizdev bonus is already unlocked")
                return

            self.bizdev.bonus_unlocked = True
            self._emit(BONUS_UNLOCKED, self.bizdev.address, self.bizdev.bonus_amount, now)
            logger.info(f"Bizdev bonus of {self.bizdev.bonus_amount} wei unlocked")

    def claim_bizdev_bonus(self, caller: str, now: Optional[int] = None) -> int:
        """
        Claim the full bizdev bonus.

        Returns:
            The bonus amount paid out in wei

        Raises:
            UnauthorizedError: If the caller is not the bizdev address
            BonusLockedError: If the bonus is not unlocked
            BonusAlreadyClaimedError: If the bonus was claimed or clawed back
            ClaimingPausedError: If bizdev claiming is paused
        """
        with self._lock:
            self._require_bizdev(caller)
            if not self.bizdev.bonus_unlocked:
                raise BonusLockedError("Bonus is not unlocked yet")
            if self.bizdev.bonus_settled:
                raise BonusAlreadyClaimedError("Bonus already claimed")
            if self.bizdev.is_paused:
                raise ClaimingPausedError("Bizdev claiming is paused")

            bonus = self.bizdev.bonus_amount
            self.custody.pay(self.bizdev.address, bonus)

            self.bizdev.claimed_amount += bonus
            self.bizdev.bonus_paid = bonus
            self.bizdev.bonus_amount = 0
            self.stats.record_claim(bonus)
            self._emit(BONUS_CLAIMED, self.bizdev.address, bonus, now)

            logger.info(f"Bizdev bonus of {bonus} wei claimed")
            return bonus

    def pause_bizdev_claiming(self, caller: str, now: Optional[int] = None):
        with self._lock:
            self._require_admin(caller)
            if self.bizdev.paused:
                return
            self.bizdev.paused = True
            self._emit(CLAIMING_PAUSED, self.bizdev.address, 0, now)
            logger.info("Bizdev claiming paused")

    def resume_bizdev_claiming(self, caller: str, now: Optional[int] = None):
        with self._lock:
            self._require_admin(caller)
            if not self.bizdev.paused:
                return
            self.bizdev.paused = False
            self._emit(CLAIMING_RESUMED, self.bizdev.address, 0, now)
            logger.info("Bizdev claiming resumed")

    def claw_back_bizdev_remaining(self, caller: str, now: int) -> int:
        """
        Sweep the vested but unclaimed bizdev base allocation to the administrator.

        After the sweep the bizdev claimed amount equals the amount vested at
        `now`, so those tokens can never be claimed by the bizdev address.
        The unvested remainder stays in custody.

        Returns:
            The amount swept in wei

        Raises:
            UnauthorizedError: If the caller is not the administrator
            NotPausedError: If bizdev claiming is not paused
            NothingToClaimError: If nothing vested remains unclaimed
        """
        with self._lock:
            self._require_admin(caller)
            if not self.bizdev.is_paused:
                logger.warning("Clawback refused: bizdev claiming is not paused")
                raise NotPausedError("Claiming must be paused first")

            vested = self.schedule.vested(self.bizdev.total_amount, now)
            amount = max(vested - self.bizdev.base_claimed, 0)
            if amount == 0:
                raise NothingToClaimError("No vested bizdev tokens to claw back")

            self.custody.pay(self.admin_address, amount)

            self.bizdev.claimed_amount = vested + self.bizdev.bonus_paid
            self.stats.record_clawback(amount)
            self._emit(REMAINING_CLAWED_BACK, self.admin_address, amount, now)

            logger.info(f"Clawed back {amount} wei of vested bizdev allocation")
            return amount

    def claw_back_bizdev_bonus(self, caller: str, now: Optional[int] = None) -> int:
        """
        Send the unclaimed bizdev bonus to the administrator.

        Raises:
            UnauthorizedError: If the caller is not the administrator
            NotPausedError: If bizdev claiming is not paused
            BonusAlreadyClaimedError: If the bonus was claimed or clawed back
        """
        with self._lock:
            self._require_admin(caller)
            if not self.bizdev.is_paused:
                logger.warning("Bonus clawback refused: bizdev claiming is not paused")
                raise NotPausedError("Claiming must be paused first")
            if self.bizdev.bonus_settled:
                raise BonusAlreadyClaimedError("Bonus already claimed")

            bonus = self.bizdev.bonus_amount
            self.custody.pay(self.admin_address, bonus)

            self.bizdev.bonus_amount = 0
            self._emit(BONUS_CLAWED_BACK, self.admin_address, bonus, now)

            logger.info(f"Clawed back bizdev bonus of {bonus} wei")
            return bonus

    # Custody

    def deposit(self, caller: str, amount: int, now: Optional[int] = None):
        """
        Fund custody.

        Raises:
            UnauthorizedError: If the caller is not the administrator
            InvalidAmountError: If amount is zero or negative
        """
        with self._lock:
            self._require_admin(caller)
            self.custody.deposit(amount)
            self._emit(DEPOSITED, self.admin_address, amount, now)

    @property
    def custody_balance(self) -> int:
        return self.custody.balance

    def required_funding(self) -> int:
        """Amount custody must hold to pay every outstanding allocation and the bonus."""
        with self._lock:
            outstanding = sum(a.remaining_amount for a in self.allocations.values())
            return outstanding + self.bizdev.remaining_amount + self.bizdev.bonus_amount

    def funding_shortfall(self) -> int:
        """How much custody is missing to cover `required_funding()`."""
        return max(self.required_funding() - self.custody.balance, 0)

    # Statistics

    def get_global_stats(self) -> GlobalStatsView:
        with self._lock:
            return self.stats.view()

    def audit_stats(self):
        """
        Recompute the statistics by full scan and compare with the running totals.

        Raises:
            StatsMismatchError: If any total diverges
        """
        with self._lock:
            regular = list(self.allocations.values())
            expected = GlobalStats(
                total_allocated=sum(a.total_amount for a in regular) + self.bizdev.total_amount,
                total_claimed=sum(a.claimed_amount for a in regular) + self.bizdev.claimed_amount,
                total_users=len(self.allocations),
                total_times_claimed=sum(1 for e in self.events if e.kind in CLAIM_EVENTS)
            )

            mismatches = []
            for field in ("total_allocated", "total_claimed", "total_users"):
                if getattr(expected, field) != getattr(self.stats, field):
                    mismatches.append(
                        f"{field}: recorded {getattr(self.stats, field)}, actual {getattr(expected, field)}"
                    )
            if self.events and expected.total_times_claimed != self.stats.total_times_claimed:
                mismatches.append(
                    f"total_times_claimed: recorded {self.stats.total_times_claimed}, "
                    f"actual {expected.total_times_claimed}"
                )

            if mismatches:
                logger.error(f"Global statistics mismatch: {mismatches}")
                raise StatsMismatchError("; ".join(mismatches))
