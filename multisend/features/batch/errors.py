"""Error taxonomy for batch execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class BatchErrorKind(Enum):
    NO_TOKEN_SELECTED = "NoTokenSelected"
    NO_RECIPIENTS = "NoRecipients"
    TOO_MANY_RECIPIENTS = "TooManyRecipients"
    INVALID_RECIPIENT = "InvalidRecipient"
    DUPLICATE_ADDRESS = "DuplicateAddress"
    ZERO_TOTAL_AMOUNT = "ZeroTotalAmount"
    INSUFFICIENT_VALUE = "InsufficientValue"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    REFUND_FAILED = "RefundFailed"
    REENTRANT_CALL = "ReentrantCall"
    PRECISION_OVERFLOW = "PrecisionOverflow"
    TOTAL_AMOUNT_MISMATCH = "TotalAmountMismatch"
    SETTLEMENT_TIMEOUT = "SettlementTimeout"
    SETTLEMENT_REJECTED = "SettlementRejected"

    @property
    def from_settlement(self) -> bool:
        return self in SETTLEMENT_KINDS


SETTLEMENT_KINDS = frozenset(
    {
        BatchErrorKind.SETTLEMENT_TIMEOUT,
        BatchErrorKind.SETTLEMENT_REJECTED,
        BatchErrorKind.REFUND_FAILED,
    }
)


@dataclass
class BatchError(Exception):
    kind: BatchErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


@dataclass
class SettlementError(BatchError):
    """Failure reported by a settlement boundary; ``cause`` keeps the original error."""

    cause: Exception | None = None
    reference: str | None = None
