"""
Database models for the vesting ledger.

This module defines the tables the ledger is persisted to: the ledger-wide
state row, regular allocations, the bizdev allocation and the event log.
"""

from typing import Any, Dict

from sqlalchemy import Boolean, Column, Integer, String
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


class WeiAmount(TypeDecorator):
    """SQLAlchemy type for integer wei amounts.

    Wei values overflow 64-bit integer columns, so they are stored as decimal
    strings and loaded back as Python ints.
    """
    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        """Convert int to string when storing in database"""
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value, dialect):
        """Convert string to int when loading from database"""
        if value is None:
            return None
        return int(value)


class LedgerState(Base):
    """Ledger-wide state: identities, schedule, custody and global statistics."""

    __tablename__ = "vesting_ledger_state"

    id = Column(Integer, primary_key=True)
    admin_address = Column(String(255), nullable=False)
    vesting_period = Column(Integer, nullable=False)
    vesting_start_time = Column(Integer, nullable=True)
    custody_balance = Column(WeiAmount, nullable=False, default=0)
    total_allocated = Column(WeiAmount, nullable=False, default=0)
    total_claimed = Column(WeiAmount, nullable=False, default=0)
    total_users = Column(Integer, nullable=False, default=0)
    total_times_claimed = Column(Integer, nullable=False, default=0)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "admin_address": self.admin_address,
            "vesting_period": self.vesting_period,
            "vesting_start_time": self.vesting_start_time,
            "custody_balance": self.custody_balance,
            "total_allocated": self.total_allocated,
            "total_claimed": self.total_claimed,
            "total_users": self.total_users,
            "total_times_claimed": self.total_times_claimed
        }


class AllocationRecord(Base):
    """Allocation of a regular beneficiary."""

    __tablename__ = "vesting_allocations"

    address = Column(String(255), primary_key=True)
    total_amount = Column(WeiAmount, nullable=False)
    claimed_amount = Column(WeiAmount, nullable=False, default=0)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "address": self.address,
            "total_amount": self.total_amount,
            "claimed_amount": self.claimed_amount
        }


class BizdevRecord(Base):
    """The singleton bizdev allocation."""

    __tablename__ = "vesting_bizdev_allocation"

    id = Column(Integer, primary_key=True)
    address = Column(String(255), nullable=False)
    total_amount = Column(WeiAmount, nullable=False)
    claimed_amount = Column(WeiAmount, nullable=False, default=0)
    original_bonus = Column(WeiAmount, nullable=False)
    bonus_amount = Column(WeiAmount, nullable=False)
    bonus_paid = Column(WeiAmount, nullable=False, default=0)
    bonus_unlocked = Column(Boolean, nullable=False, default=False)
    is_paused = Column(Boolean, nullable=False, default=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "address": self.address,
            "total_amount": self.total_amount,
            "claimed_amount": self.claimed_amount,
            "original_bonus": self.original_bonus,
            "bonus_amount": self.bonus_amount,
            "bonus_paid": self.bonus_paid,
            "bonus_unlocked": self.bonus_unlocked,
            "is_paused": self.is_paused
        }


class LedgerEventRecord(Base):
    """Append-only log of committed ledger mutations."""

    __tablename__ = "vesting_events"

    seq = Column(Integer, primary_key=True, autoincrement=False)
    kind = Column(String(32), index=True, nullable=False)  # see epix_claim.vesting.ledger event kinds
    address = Column(String(255), index=True, nullable=True)
    amount = Column(WeiAmount, nullable=False, default=0)
    timestamp = Column(Integer, index=True, nullable=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "seq": self.seq,
            "kind": self.kind,
            "address": self.address,
            "amount": self.amount,
            "timestamp": self.timestamp
        }
