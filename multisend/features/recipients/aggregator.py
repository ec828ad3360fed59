"""Batch totals and counts for the summary panel and the executor."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from typing import Iterable, Sequence

from multisend.features.recipients.validators import (
    HasAddressAndAmount,
    find_duplicate_addresses,
    is_empty_amount,
    is_ready_for_execution,
    parse_amount,
    validate_recipient,
)
from multisend.shared.formatting import UNBOUNDED_CONTEXT, format_decimal


def calculate_total_amount(recipients: Iterable[HasAddressAndAmount]) -> Decimal:
    """Exact sum of every independently valid amount; others are skipped."""
    total = Decimal(0)
    with localcontext(UNBOUNDED_CONTEXT):
        for recipient in recipients:
            amount = parse_amount(recipient.amount)
            if amount is not None:
                total += amount
    return total


def count_valid_recipients(recipients: Iterable[HasAddressAndAmount]) -> int:
    return sum(1 for recipient in recipients if is_ready_for_execution(recipient))


@dataclass(frozen=True)
class BatchSummary:
    recipient_count: int
    valid_count: int
    invalid_count: int
    pending_amount_count: int
    total_amount: Decimal
    duplicates: list[str] = field(default_factory=list)

    @property
    def total_display(self) -> str:
        return format_decimal(self.total_amount)

    @property
    def is_ready(self) -> bool:
        return (
            self.valid_count > 0
            and self.valid_count == self.recipient_count
            and not self.duplicates
        )


def summarize(recipients: Sequence[HasAddressAndAmount]) -> BatchSummary:
    invalid = sum(
        1 for r in recipients if not validate_recipient(r.address, r.amount)
    )
    pending_amount = sum(
        1
        for r in recipients
        if validate_recipient(r.address, r.amount) and is_empty_amount(r.amount)
    )
    return BatchSummary(
        recipient_count=len(recipients),
        valid_count=count_valid_recipients(recipients),
        invalid_count=invalid,
        pending_amount_count=pending_amount,
        total_amount=calculate_total_amount(recipients),
        duplicates=find_duplicate_addresses(recipients),
    )
