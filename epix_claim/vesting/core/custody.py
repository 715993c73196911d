"""
Custody of the native currency that funds payouts.
"""

import logging
from collections import namedtuple
from typing import Callable, Optional

from epix_claim.vesting.core.errors import InsufficientCustodyError, InvalidAmountError, TransferError

logger = logging.getLogger(__name__)

Payout = namedtuple("Payout", ["recipient", "amount"])

# Callable invoked for every payout; raising aborts the payout
TransferSink = Callable[[str, int], None]


class Custody:
    """
    Balance held by the ledger for claims and clawbacks.

    A payout either debits the balance and reaches the transfer sink, or
    leaves the balance untouched and raises.
    """

    def __init__(self, balance: int = 0, transfer_sink: Optional[TransferSink] = None):
        self.balance = balance
        self.transfer_sink = transfer_sink

    def deposit(self, amount: int):
        if amount <= 0:
            raise InvalidAmountError("Deposit amount must be greater than zero")
        self.balance += amount
        logger.info(f"Custody funded with {amount} wei, balance is now {self.balance}")

    def ensure_available(self, amount: int):
        """
        Raises:
            InsufficientCustodyError: If the balance cannot cover `amount`
        """
        if amount > self.balance:
            raise InsufficientCustodyError(amount, self.balance)

    def pay(self, recipient: str, amount: int) -> Payout:
        """
        Pay `amount` out of custody to `recipient`.

        Args:
            recipient: Address receiving the payout
            amount: Amount in wei

        Returns:
            The executed payout

        Raises:
            InsufficientCustodyError: If the balance cannot cover the payout
            TransferError: If the transfer sink rejects the payout
        """
        self.ensure_available(amount)

        if self.transfer_sink is not None:
            try:
                self.transfer_sink(recipient, amount)
            except Exception as e:
                logger.error(f"Transfer of {amount} wei to {recipient} failed: {e}")
                raise TransferError(f"Transfer to {recipient} failed: {e}") from e

        self.balance -= amount
        return Payout(recipient, amount)
