"""
Amount and address helpers.

Amounts are integers in wei (10**18 per EPIX). Conversions to and from
human-readable EPIX strings go through Decimal so no float ever touches the
accounting path.
"""

from decimal import Decimal, InvalidOperation
from typing import Union

from epix_claim.vesting.core.errors import InvalidAddressError, InvalidAmountError

EPIX_DECIMALS = 18
EPIX = 10 ** EPIX_DECIMALS


def parse_epix(value: Union[str, int, Decimal]) -> int:
    """
    Convert an EPIX amount to wei.

    Args:
        value: Amount in EPIX, e.g. "0.25" or 15

    Returns:
        The amount in wei

    Raises:
        InvalidAmountError: If the value is not a number or has more than 18 decimals
    """
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise InvalidAmountError(f"Not a valid EPIX amount: {value!r}")

    if not amount.is_finite():
        raise InvalidAmountError(f"Not a valid EPIX amount: {value!r}")

    wei = amount * EPIX
    if wei != wei.to_integral_value():
        raise InvalidAmountError(f"EPIX amount has more than {EPIX_DECIMALS} decimals: {value!r}")
    return int(wei)


def format_epix(wei: int) -> str:
    """Format a wei amount as an EPIX string without trailing zeros."""
    sign = "-" if wei < 0 else ""
    whole, frac = divmod(abs(wei), EPIX)
    if frac == 0:
        return f"{sign}{whole}"
    frac_str = str(frac).rjust(EPIX_DECIMALS, "0").rstrip("0")
    return f"{sign}{whole}.{frac_str}"


def parse_wei(value: Union[str, int]) -> int:
    """Parse an integer wei amount given as int or decimal string."""
    if isinstance(value, bool):
        raise InvalidAmountError(f"Not a valid wei amount: {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip(), 10)
    except ValueError:
        raise InvalidAmountError(f"Not a valid wei amount: {value!r}")


def normalize_address(address: str) -> str:
    """Normalize an address so case variants map to the same allocation."""
    if not isinstance(address, str) or not address.strip():
        raise InvalidAddressError(f"Not a valid address: {address!r}")
    return address.strip().lower()
