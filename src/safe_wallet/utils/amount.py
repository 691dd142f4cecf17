"""Decimal amount parsing — amounts never pass through float."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from safe_wallet.errors.definitions import ErrInvalidAmount

# Ledger amounts carry at most 8 fractional digits
AMOUNT_PRECISION = 8
_ATOMIC_UNIT = Decimal(10) ** AMOUNT_PRECISION


def parse_amount(value: str | Decimal) -> Decimal:
    """Parse a positive decimal amount.

    Raises:
        SafeError: ``ErrInvalidAmount`` if malformed, not finite, not
            positive, or more precise than the ledger allows.
    """
    if isinstance(value, float):
        raise ErrInvalidAmount
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value.strip())
        if not amount.is_finite() or amount <= 0:
            raise ErrInvalidAmount
        too_precise = -amount.as_tuple().exponent > AMOUNT_PRECISION and (
            amount != amount.quantize(Decimal(1).scaleb(-AMOUNT_PRECISION))
        )
    except (InvalidOperation, AttributeError) as exc:
        raise ErrInvalidAmount from exc
    if too_precise:
        raise ErrInvalidAmount
    return amount


def to_atomic(amount: str | Decimal) -> int:
    """Convert a decimal amount into integer atomic units (1e-8)."""
    value = amount if isinstance(amount, Decimal) else Decimal(amount)
    return int((value * _ATOMIC_UNIT).to_integral_exact())


def from_atomic(units: int) -> Decimal:
    """Convert integer atomic units back into a normalized decimal amount."""
    return (Decimal(units) / _ATOMIC_UNIT).normalize()


def format_amount(amount: Decimal) -> str:
    """Plain decimal string without exponent or trailing zeros (``"0.00000001"``, ``"20"``)."""
    return format(amount.normalize(), "f")
