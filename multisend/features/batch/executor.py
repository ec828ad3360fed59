"""Atomic batch execution.

The executor checks every precondition locally, converts amounts to base
units, and hands the whole batch to the settlement boundary in a single call.
Nothing observable happens before that call, and the executor never retries
it: every recipient is paid, or none is.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Callable, Sequence

from multisend.features.batch.errors import BatchError, BatchErrorKind, SettlementError
from multisend.features.batch.guard import ReentrancyGuard
from multisend.features.batch.models import (
    CompletionRecord,
    ExecutionResult,
    PreparedBatch,
    TokenDescriptor,
)
from multisend.features.batch.units import (
    from_base_units,
    to_base_units,
    truncate_to_base_units,
)
from multisend.features.recipients.aggregator import calculate_total_amount
from multisend.features.recipients.validators import (
    HasAddressAndAmount,
    find_duplicate_addresses,
    is_empty_amount,
    is_valid_address,
    is_valid_amount,
    parse_amount,
)
from multisend.shared.config import DEFAULT_MAX_RECIPIENTS
from multisend.shared.formatting import format_decimal
from multisend.shared.logging import get_logger, log_with_context

if TYPE_CHECKING:
    from multisend.features.settlement.base import SettlementBoundary, SettlementReceipt

logger = get_logger(__name__)

CompletionListener = Callable[[CompletionRecord], None]


def _parse_decimal(value: Any) -> Decimal | None:
    try:
        parsed = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite() or parsed < 0:
        return None
    return parsed


def _describe_invalid(index: int, recipient: HasAddressAndAmount) -> str:
    label = recipient.address or "<empty address>"
    position = f"Recipient {index + 1} ({label})"
    if not is_valid_address(recipient.address):
        return f"{position} has an invalid address"
    if is_empty_amount(recipient.amount):
        return f"{position} has no amount"
    return f"{position} has an invalid amount '{recipient.amount}'"


class BatchExecutor:
    def __init__(
        self,
        settlement: SettlementBoundary,
        max_recipients: int = DEFAULT_MAX_RECIPIENTS,
        refund_excess_value: bool = True,
        guard: ReentrancyGuard | None = None,
        on_completion: CompletionListener | None = None,
    ):
        self.settlement = settlement
        self.max_recipients = max_recipients
        self.refund_excess_value = refund_excess_value
        self.guard = guard or ReentrancyGuard()
        self._completion_listeners: list[CompletionListener] = []
        if on_completion:
            self._completion_listeners.append(on_completion)

    def add_completion_listener(self, listener: CompletionListener) -> None:
        self._completion_listeners.append(listener)

    def prepare(
        self,
        recipients: Sequence[HasAddressAndAmount],
        token: TokenDescriptor | None,
        value: str | Decimal | None = None,
    ) -> PreparedBatch:
        """Run every precondition in order and return the batch in base units.

        Raises ``BatchError`` for the first failed check.
        """
        if token is None:
            raise BatchError(
                kind=BatchErrorKind.NO_TOKEN_SELECTED,
                message="No token selected",
            )

        if not recipients:
            raise BatchError(
                kind=BatchErrorKind.NO_RECIPIENTS,
                message="No recipients in batch",
            )

        if len(recipients) > self.max_recipients:
            raise BatchError(
                kind=BatchErrorKind.TOO_MANY_RECIPIENTS,
                message=(
                    f"Too many recipients: {len(recipients)} exceeds the "
                    f"maximum of {self.max_recipients} per batch"
                ),
                details={"count": len(recipients), "max": self.max_recipients},
            )

        for index, recipient in enumerate(recipients):
            if is_valid_address(recipient.address) and is_valid_amount(
                recipient.amount
            ):
                continue
            raise BatchError(
                kind=BatchErrorKind.INVALID_RECIPIENT,
                message=_describe_invalid(index, recipient),
                details={
                    "index": index,
                    "id": getattr(recipient, "id", None),
                    "address": recipient.address,
                    "amount": recipient.amount,
                },
            )

        duplicates = find_duplicate_addresses(recipients)
        if duplicates:
            raise BatchError(
                kind=BatchErrorKind.DUPLICATE_ADDRESS,
                message=f"Duplicate addresses found: {', '.join(duplicates)}",
                details={"duplicates": duplicates},
            )

        total = calculate_total_amount(recipients)
        if total <= 0:
            raise BatchError(
                kind=BatchErrorKind.ZERO_TOTAL_AMOUNT,
                message="Batch total must be greater than zero",
            )

        amounts = tuple(
            to_base_units(parse_amount(r.amount), token.decimals) for r in recipients
        )
        total_base_units = to_base_units(total, token.decimals)
        if sum(amounts) != total_base_units:
            raise BatchError(
                kind=BatchErrorKind.TOTAL_AMOUNT_MISMATCH,
                message="Recipient amounts do not add up to the batch total",
                details={
                    "sum": sum(amounts),
                    "total": total_base_units,
                },
            )

        value_base_units = 0
        if token.is_native:
            value_base_units = self._check_native_value(token, total, value)
        else:
            self._check_token_balance(token, total_base_units)

        return PreparedBatch(
            token=token,
            addresses=tuple(r.address for r in recipients),
            amounts=amounts,
            total_amount=total,
            total_base_units=total_base_units,
            value_base_units=value_base_units,
        )

    def _check_native_value(
        self,
        token: TokenDescriptor,
        total: Decimal,
        value: str | Decimal | None,
    ) -> int:
        total_base_units = to_base_units(total, token.decimals)
        if value is None:
            value_base_units = total_base_units
        else:
            supplied = _parse_decimal(value)
            if supplied is None:
                raise BatchError(
                    kind=BatchErrorKind.INSUFFICIENT_VALUE,
                    message=f"Supplied value '{value}' is not a valid amount",
                    details={"value": str(value)},
                )
            value_base_units = to_base_units(supplied, token.decimals)

        if value_base_units < total_base_units:
            raise BatchError(
                kind=BatchErrorKind.INSUFFICIENT_VALUE,
                message=(
                    f"Supplied value {format_decimal(from_base_units(value_base_units, token.decimals))} "
                    f"{token.symbol} is less than the batch total "
                    f"{format_decimal(total)} {token.symbol}"
                ),
                details={
                    "value": format_decimal(
                        from_base_units(value_base_units, token.decimals)
                    ),
                    "total": format_decimal(total),
                },
            )

        if value_base_units > total_base_units and not self.refund_excess_value:
            raise BatchError(
                kind=BatchErrorKind.TOTAL_AMOUNT_MISMATCH,
                message=(
                    "Supplied value exceeds the batch total and excess refunds "
                    "are disabled"
                ),
                details={
                    "value": format_decimal(
                        from_base_units(value_base_units, token.decimals)
                    ),
                    "total": format_decimal(total),
                },
            )

        available = self._available_base_units(token)
        if available is not None and value_base_units > available:
            self._raise_insufficient_balance(token, value_base_units, available)

        return value_base_units

    def _check_token_balance(self, token: TokenDescriptor, needed: int) -> None:
        available = self._available_base_units(token)
        if available is not None and available < needed:
            self._raise_insufficient_balance(token, needed, available)

    def _available_base_units(self, token: TokenDescriptor) -> int | None:
        if token.balance is None:
            return None
        balance = _parse_decimal(token.balance)
        if balance is None:
            logger.warning(
                "Ignoring unparseable %s balance: %s", token.symbol, token.balance
            )
            return None
        return truncate_to_base_units(balance, token.decimals)

    def _raise_insufficient_balance(
        self, token: TokenDescriptor, needed: int, available: int
    ) -> None:
        shortfall = from_base_units(needed - available, token.decimals)
        raise BatchError(
            kind=BatchErrorKind.INSUFFICIENT_BALANCE,
            message=(
                f"Insufficient balance: need {format_decimal(from_base_units(needed, token.decimals))} "
                f"{token.symbol}, have {format_decimal(from_base_units(available, token.decimals))} "
                f"{token.symbol} (short by {format_decimal(shortfall)})"
            ),
            details={
                "needed": format_decimal(from_base_units(needed, token.decimals)),
                "available": format_decimal(
                    from_base_units(available, token.decimals)
                ),
                "shortfall": format_decimal(shortfall),
            },
        )

    def execute(
        self,
        actor: str,
        recipients: Sequence[HasAddressAndAmount],
        token: TokenDescriptor | None,
        value: str | Decimal | None = None,
        on_dispatch: Callable[[], None] | None = None,
    ) -> ExecutionResult:
        """Execute one batch attempt for ``actor``.

        ``on_dispatch`` runs once every precondition has passed, right before
        the settlement call. Failures come back as an error ``ExecutionResult``
        carrying exactly one error kind.
        """
        if not actor or not actor.strip():
            raise ValueError("actor is required")

        try:
            self.guard.acquire(actor)
        except BatchError as e:
            return ExecutionResult.failed(e)

        try:
            return self._execute_guarded(actor, recipients, token, value, on_dispatch)
        finally:
            self.guard.release(actor)

    def _execute_guarded(
        self,
        actor: str,
        recipients: Sequence[HasAddressAndAmount],
        token: TokenDescriptor | None,
        value: str | Decimal | None,
        on_dispatch: Callable[[], None] | None,
    ) -> ExecutionResult:
        try:
            prepared = self.prepare(recipients, token, value)
        except BatchError as e:
            log_with_context(
                logger,
                logging.WARNING,
                f"Batch rejected before dispatch: {e.message}",
                actor=actor,
                error_kind=e.kind.value,
                recipient_count=len(recipients),
            )
            return ExecutionResult.failed(e)

        if on_dispatch:
            on_dispatch()

        try:
            receipt = self._settle(actor, prepared)
        except SettlementError as e:
            return self._settlement_failed(actor, prepared, e)
        except TimeoutError as e:
            return self._settlement_failed(
                actor,
                prepared,
                SettlementError(
                    kind=BatchErrorKind.SETTLEMENT_TIMEOUT,
                    message=f"Settlement timed out: {e}",
                    cause=e,
                ),
            )
        except Exception as e:
            return self._settlement_failed(
                actor,
                prepared,
                SettlementError(
                    kind=BatchErrorKind.SETTLEMENT_REJECTED,
                    message=f"Settlement rejected the batch: {e}",
                    cause=e,
                ),
            )

        if (
            receipt.settled_total is not None
            and receipt.settled_total != prepared.total_base_units
        ):
            error = BatchError(
                kind=BatchErrorKind.TOTAL_AMOUNT_MISMATCH,
                message=(
                    f"Settled total {receipt.settled_total} does not match the "
                    f"committed total {prepared.total_base_units}"
                ),
                details={
                    "settled": receipt.settled_total,
                    "committed": prepared.total_base_units,
                },
            )
            logger.error(
                "Value conservation check failed for %s: %s", receipt.reference, error
            )
            return ExecutionResult.failed(error, reference=receipt.reference)

        completion = CompletionRecord(
            actor=actor,
            total_amount=prepared.total_amount,
            recipient_count=prepared.recipient_count,
            token_symbol=prepared.token.symbol,
            token_address=None if prepared.token.is_native else prepared.token.address,
            reference=receipt.reference,
        )
        self._emit(completion)

        log_with_context(
            logger,
            logging.INFO,
            f"Batch settled: {completion.recipient_count} recipients, "
            f"{format_decimal(completion.total_amount)} {completion.token_symbol}",
            actor=actor,
            reference=receipt.reference,
            excess=prepared.excess_base_units,
            refunded=receipt.refunded,
        )
        return ExecutionResult.succeeded(completion)

    def _settle(self, actor: str, prepared: PreparedBatch) -> SettlementReceipt:
        if prepared.token.is_native:
            return self.settlement.settle_native(
                actor,
                list(prepared.addresses),
                list(prepared.amounts),
                prepared.value_base_units,
            )
        return self.settlement.settle_token(
            actor,
            str(prepared.token.address),
            list(prepared.addresses),
            list(prepared.amounts),
            prepared.total_base_units,
        )

    def _settlement_failed(
        self, actor: str, prepared: PreparedBatch, error: SettlementError
    ) -> ExecutionResult:
        log_with_context(
            logger,
            logging.ERROR,
            f"Settlement failed: {error.message}",
            actor=actor,
            error_kind=error.kind.value,
            recipient_count=prepared.recipient_count,
            reference=error.reference,
        )
        return ExecutionResult.failed(error, reference=error.reference)

    def _emit(self, completion: CompletionRecord) -> None:
        for listener in list(self._completion_listeners):
            try:
                listener(completion)
            except Exception as e:
                logger.error("Error in completion listener: %s", e)
