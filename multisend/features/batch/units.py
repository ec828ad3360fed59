"""Decimal display amounts to integer base units."""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, Inexact, Rounded, localcontext

from multisend.features.batch.errors import BatchError, BatchErrorKind
from multisend.shared.formatting import EXACT_CONTEXT, UNBOUNDED_CONTEXT, format_decimal

MAX_UINT256 = 2**256 - 1


def _precision_overflow(amount: Decimal, decimals: int, reason: str) -> BatchError:
    return BatchError(
        kind=BatchErrorKind.PRECISION_OVERFLOW,
        message=f"Amount {format_decimal(amount)} {reason}",
        details={"amount": format_decimal(amount), "decimals": decimals},
    )


def to_base_units(amount: Decimal | str, decimals: int) -> int:
    """Exact conversion; a remainder below one base unit is rejected."""
    amount = Decimal(amount) if isinstance(amount, str) else amount
    with localcontext(UNBOUNDED_CONTEXT):
        significant = amount.normalize()
    try:
        with localcontext(EXACT_CONTEXT):
            scaled = significant.scaleb(decimals)
            integral = scaled.to_integral_value(rounding=ROUND_DOWN)
    except (Inexact, Rounded):
        # More significant digits than a uint256 amount can carry.
        raise _precision_overflow(
            amount, decimals, "has too many significant digits to be sent exactly"
        ) from None
    if scaled != integral:
        raise _precision_overflow(
            amount,
            decimals,
            f"has more than {decimals} decimal places and cannot be expressed "
            "in base units",
        )
    base_units = int(integral)
    if base_units > MAX_UINT256:
        raise _precision_overflow(amount, decimals, "exceeds the maximum token amount")
    return base_units


def truncate_to_base_units(amount: Decimal | str, decimals: int) -> int:
    """Conversion that drops any sub-unit remainder, never rounding up."""
    amount = Decimal(amount) if isinstance(amount, str) else amount
    with localcontext(UNBOUNDED_CONTEXT):
        return int(amount.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN))


def from_base_units(base_units: int, decimals: int) -> Decimal:
    with localcontext(UNBOUNDED_CONTEXT):
        return Decimal(base_units).scaleb(-decimals)
