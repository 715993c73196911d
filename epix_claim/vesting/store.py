"""
Persistence of the vesting ledger.

The ledger is an in-memory object; LedgerStore writes its full state to a SQL
database after each administrative or claim operation and rebuilds it on the
next start.
"""

import logging
from pathlib import Path
from typing import List, Optional

from sqlalchemy import create_engine, func, select
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from epix_claim.vesting.core.records import RegularAllocation
from epix_claim.vesting.database.models import (
    AllocationRecord,
    Base,
    BizdevRecord,
    LedgerEventRecord,
    LedgerState,
)
from epix_claim.vesting.ledger import LedgerEvent, VestingLedger

logger = logging.getLogger(__name__)

STATE_ROW_ID = 1


class LedgerStore:
    """
    Saves and restores a VestingLedger through SQLAlchemy.
    """

    def __init__(self, database_url: str, echo: bool = False):
        """
        Initialize the LedgerStore.

        Args:
            database_url: SQLAlchemy database URL, e.g. sqlite:///./state/vesting.db
            echo: Whether to log emitted SQL
        """
        self.database_url = database_url
        self._ensure_sqlite_directory(database_url)
        self.engine = create_engine(database_url, echo=echo, future=True)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)

    @staticmethod
    def _ensure_sqlite_directory(database_url: str):
        url = make_url(database_url)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    def initialize(self):
        """Create the ledger tables if they do not exist."""
        Base.metadata.create_all(self.engine)
        logger.info(f"Vesting ledger tables ready at {self.database_url}")

    def close(self):
        self.engine.dispose()

    def save(self, ledger: VestingLedger):
        """
        Write the full ledger state in a single transaction.

        Allocation and bizdev rows are upserted; events not yet persisted are
        appended.
        """
        with self.Session.begin() as session:
            stats = ledger.stats
            session.merge(LedgerState(
                id=STATE_ROW_ID,
                admin_address=ledger.admin_address,
                vesting_period=ledger.schedule.period,
                vesting_start_time=ledger.schedule.start_time,
                custody_balance=ledger.custody.balance,
                total_allocated=stats.total_allocated,
                total_claimed=stats.total_claimed,
                total_users=stats.total_users,
                total_times_claimed=stats.total_times_claimed
            ))

            bizdev = ledger.bizdev
            session.merge(BizdevRecord(
                id=STATE_ROW_ID,
                address=bizdev.address,
                total_amount=bizdev.total_amount,
                claimed_amount=bizdev.claimed_amount,
                original_bonus=bizdev.original_bonus,
                bonus_amount=bizdev.bonus_amount,
                bonus_paid=bizdev.bonus_paid,
                bonus_unlocked=bizdev.bonus_unlocked,
                is_paused=bizdev.paused
            ))

            for allocation in ledger.allocations.values():
                session.merge(AllocationRecord(
                    address=allocation.address,
                    total_amount=allocation.total_amount,
                    claimed_amount=allocation.claimed_amount
                ))

            last_seq = session.execute(select(func.max(LedgerEventRecord.seq))).scalar() or 0
            new_events = [e for e in ledger.events if e.seq > last_seq]
            session.add_all([
                LedgerEventRecord(
                    seq=e.seq,
                    kind=e.kind,
                    address=e.address,
                    amount=e.amount,
                    timestamp=e.timestamp
                )
                for e in new_events
            ])

        logger.info(
            f"Saved vesting ledger: {len(ledger.allocations)} allocations, "
            f"{len(new_events)} new events"
        )

    def load(self, transfer_sink=None) -> Optional[VestingLedger]:
        """
        Rebuild the ledger from the database.

        Args:
            transfer_sink: Optional payout callable for the restored ledger

        Returns:
            The restored ledger, or None if nothing was saved yet

        Raises:
            StatsMismatchError: If the stored statistics do not match the stored allocations
        """
        with self.Session() as session:
            state = session.get(LedgerState, STATE_ROW_ID)
            bizdev_row = session.get(BizdevRecord, STATE_ROW_ID)
            if state is None or bizdev_row is None:
                logger.info("No saved vesting ledger found")
                return None

            ledger = VestingLedger(
                admin_address=state.admin_address,
                bizdev_address=bizdev_row.address,
                bizdev_amount=bizdev_row.total_amount,
                bizdev_bonus=bizdev_row.original_bonus,
                vesting_period=state.vesting_period,
                transfer_sink=transfer_sink
            )

            ledger.schedule.start_time = state.vesting_start_time
            ledger.custody.balance = state.custody_balance

            stats = ledger.stats
            stats.total_allocated = state.total_allocated
            stats.total_claimed = state.total_claimed
            stats.total_users = state.total_users
            stats.total_times_claimed = state.total_times_claimed

            bizdev = ledger.bizdev
            bizdev.claimed_amount = bizdev_row.claimed_amount
            bizdev.bonus_amount = bizdev_row.bonus_amount
            bizdev.bonus_paid = bizdev_row.bonus_paid
            bizdev.bonus_unlocked = bizdev_row.bonus_unlocked
            bizdev.paused = bizdev_row.is_paused

            for row in session.execute(select(AllocationRecord)).scalars():
                ledger.allocations[row.address] = RegularAllocation(
                    row.address, row.total_amount, row.claimed_amount
                )

            ledger.events.extend(self._load_events(session))

        ledger.audit_stats()
        logger.info(f"Loaded vesting ledger with {len(ledger.allocations)} allocations")
        return ledger

    @staticmethod
    def _load_events(session) -> List[LedgerEvent]:
        rows = session.execute(select(LedgerEventRecord).order_by(LedgerEventRecord.seq)).scalars()
        return [LedgerEvent(r.seq, r.kind, r.address, r.amount, r.timestamp) for r in rows]
