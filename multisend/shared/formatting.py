"""Display helpers for addresses, amounts and block explorer links."""

from __future__ import annotations

import uuid
from decimal import (
    MAX_EMAX,
    MAX_PREC,
    MIN_EMIN,
    ROUND_DOWN,
    Context,
    Decimal,
    Inexact,
    InvalidOperation,
    Rounded,
    localcontext,
)

# Wide enough for any uint256 base-unit value plus its fractional digits.
# Anything wider raises instead of being rounded.
EXACT_CONTEXT = Context(prec=100, traps=[InvalidOperation, Inexact, Rounded])

# Sums and display; never rounds.
UNBOUNDED_CONTEXT = Context(
    prec=MAX_PREC, Emax=MAX_EMAX, Emin=MIN_EMIN, traps=[InvalidOperation]
)

SMALLEST_DISPLAYED = Decimal("0.0001")


def generate_id() -> str:
    return f"rcp-{uuid.uuid4().hex[:8]}"


def format_decimal(value: Decimal) -> str:
    """Render a decimal without exponent or trailing zeros (``7.50`` -> ``7.5``)."""
    if value == 0:
        return "0"
    with localcontext(UNBOUNDED_CONTEXT):
        return format(value.normalize(), "f")


def format_address(address: str, chars: int = 6) -> str:
    if not address:
        return ""
    if len(address) <= chars * 2 + 2:
        return address
    return f"{address[: chars + 2]}...{address[-chars:]}"


def format_number(value: str | int | float | Decimal, decimals: int = 4) -> str:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return "0"
    if not number.is_finite() or number == 0:
        return "0"

    if abs(number) < SMALLEST_DISPLAYED and decimals >= 4:
        return "< 0.0001"

    with localcontext(UNBOUNDED_CONTEXT):
        truncated = number.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_DOWN)
    integer_part, _, fraction = format(truncated, "f").partition(".")
    fraction = fraction.rstrip("0")
    grouped = f"{int(integer_part):,}" if integer_part not in ("", "-") else "0"
    if integer_part.startswith("-") and not grouped.startswith("-"):
        grouped = f"-{grouped}"
    return f"{grouped}.{fraction}" if fraction else grouped


def format_balance(balance: str | Decimal, symbol: str, decimals: int = 4) -> str:
    return f"{format_number(balance, decimals)} {symbol}"


def get_tx_explorer_url(reference: str, explorer_base_url: str | None) -> str:
    if not explorer_base_url or not reference:
        return ""
    return f"{explorer_base_url.rstrip('/')}/tx/{reference}"


def get_address_explorer_url(address: str, explorer_base_url: str | None) -> str:
    if not explorer_base_url or not address:
        return ""
    return f"{explorer_base_url.rstrip('/')}/address/{address}"
