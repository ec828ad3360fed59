"""Settlement boundary contract.

A settlement boundary moves the value of a whole batch in one atomic step and
reports either a receipt or a ``SettlementError``. Adapters must not retry on
their own: a retried transfer may already have been applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from multisend.features.batch.errors import BatchErrorKind

# Revert reasons of the MultiSend contract, also used by relays to report failures.
CONTRACT_ERROR_KINDS: dict[str, BatchErrorKind] = {
    "InsufficientValue": BatchErrorKind.INSUFFICIENT_VALUE,
    "InsufficientBalance": BatchErrorKind.INSUFFICIENT_BALANCE,
    "InsufficientTokensReceived": BatchErrorKind.INSUFFICIENT_BALANCE,
    "RefundFailed": BatchErrorKind.REFUND_FAILED,
    "ReentrancyGuardReentrantCall": BatchErrorKind.REENTRANT_CALL,
    "TooManyRecipients": BatchErrorKind.TOO_MANY_RECIPIENTS,
    "NoRecipients": BatchErrorKind.NO_RECIPIENTS,
    "ZeroTotalAmount": BatchErrorKind.ZERO_TOTAL_AMOUNT,
    "TotalAmountMismatch": BatchErrorKind.TOTAL_AMOUNT_MISMATCH,
    "LengthMismatch": BatchErrorKind.SETTLEMENT_REJECTED,
    "SafeERC20FailedOperation": BatchErrorKind.SETTLEMENT_REJECTED,
    "FailedCall": BatchErrorKind.SETTLEMENT_REJECTED,
}


def error_kind_for(name: str | None) -> BatchErrorKind:
    """Map a contract error name or a ``BatchErrorKind`` value to a kind."""
    if not name:
        return BatchErrorKind.SETTLEMENT_REJECTED
    if name in CONTRACT_ERROR_KINDS:
        return CONTRACT_ERROR_KINDS[name]
    try:
        return BatchErrorKind(name)
    except ValueError:
        return BatchErrorKind.SETTLEMENT_REJECTED


@dataclass(frozen=True)
class SettlementReceipt:
    reference: str
    settled_total: int | None = None
    refunded: int = 0


class SettlementBoundary(Protocol):
    """Interface the batch executor needs from a settlement backend."""

    def settle_native(
        self,
        actor: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
        value: int,
    ) -> SettlementReceipt: ...

    def settle_token(
        self,
        actor: str,
        token: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
        total_amount: int,
    ) -> SettlementReceipt: ...
