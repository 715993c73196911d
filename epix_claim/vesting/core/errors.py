"""
Error taxonomy for the vesting ledger.

Every error raised by a ledger operation is a subclass of VestingError and is
raised before any state is changed, so callers can rely on the ledger being
exactly as it was before the failed call.
"""


class VestingError(Exception):
    """Base class for vesting ledger errors."""
    pass


class DuplicateAllocationError(VestingError):
    """An allocation already exists for the address."""
    pass


class InvalidAmountError(VestingError):
    """Amount is zero or negative."""
    pass


class InvalidAddressError(VestingError):
    """Address is not a non-empty string."""
    pass


class NotStartedError(VestingError):
    """Vesting has not been started yet."""
    pass


class AlreadyStartedError(VestingError):
    """Vesting has already been started."""
    pass


class NothingToClaimError(VestingError):
    """No tokens available to claim."""
    pass


class ClaimingPausedError(VestingError):
    """Bizdev claiming is paused."""
    pass


class NotPausedError(VestingError):
    """Bizdev claiming must be paused first."""
    pass


class BonusLockedError(VestingError):
    """Bizdev bonus is not unlocked yet."""
    pass


class BonusAlreadyClaimedError(VestingError):
    """Bizdev bonus was already claimed or clawed back."""
    pass


class UnauthorizedError(VestingError):
    """Caller is not allowed to perform the operation."""
    pass


class InsufficientCustodyError(VestingError):
    """Custody balance cannot fund the payout."""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient custody balance: required {required}, available {available}"
        )


class MismatchedBatchError(VestingError):
    """Addresses and amounts of a batch differ in length."""
    pass


class TransferError(VestingError):
    """The transfer sink refused a payout."""
    pass


class StatsMismatchError(VestingError):
    """Global statistics diverge from the ledger entries they summarize."""
    pass


class ConfigurationError(VestingError):
    """Invalid vesting configuration."""
    pass
