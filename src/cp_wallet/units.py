"""Conversions between on-chain base units and human-readable decimals.

Balances render the way the node's chain tooling always has: the wei value
is held as a binary float with a 64-bit mantissa, divided by 10**18 at that
precision, and the binary quotient is rounded to 5 decimal places.  Every
rounding step is round-half-to-even.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from fractions import Fraction

from web3 import Web3

BALANCE_PLACES = 5
MANTISSA_BITS = 64


def _round_mantissa(value: Fraction, bits: int = MANTISSA_BITS) -> Fraction:
    """Round a positive rational to the nearest binary float with *bits* of mantissa."""
    shift = bits - (value.numerator.bit_length() - value.denominator.bit_length())
    scaled = value * Fraction(2) ** shift
    while scaled >= 2**bits:
        shift -= 1
        scaled /= 2
    while scaled < 2 ** (bits - 1):
        shift += 1
        scaled *= 2
    return Fraction(round(scaled)) / Fraction(2) ** shift


def balance_to_str(balance: int) -> str:
    """Render a base-unit balance with exactly 5 fractional digits.

    A balance of exactly zero renders as ``"0.0"``.
    """
    if balance == 0:
        return "0.0"
    sign = "-" if balance < 0 else ""
    wei = int(_round_mantissa(Fraction(abs(balance))))
    ether = _round_mantissa(Fraction(Web3.from_wei(wei, "ether")))
    scaled = round(ether * 10**BALANCE_PLACES)
    whole, frac = divmod(scaled, 10**BALANCE_PLACES)
    return f"{sign}{whole}.{frac:0{BALANCE_PLACES}d}"


def convert_to_wei(amount: str) -> int:
    """Convert a decimal ether string such as ``"1.5"`` to wei.

    Raises ``ValueError`` if *amount* is not a finite, non-negative decimal
    number that fits in a uint256.
    """
    try:
        value = Decimal(str(amount).strip())
        if not value.is_finite():
            raise ValueError("not a finite number")
        return Web3.to_wei(value, "ether")
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"conversion to wei failed: {amount!r}") from exc
