"""MultiSend session: one editable batch, one token, one lifecycle."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from multisend.features.batch.errors import BatchError, BatchErrorKind
from multisend.features.batch.executor import BatchExecutor
from multisend.features.batch.lifecycle import LifecycleTracker, TransactionStatus
from multisend.features.batch.models import ExecutionResult, TokenDescriptor
from multisend.features.recipients.aggregator import BatchSummary, summarize
from multisend.features.recipients.import_export import (
    export_to_csv,
    export_to_json,
    import_from_text,
    read_recipients_file,
)
from multisend.features.recipients.models import Recipient
from multisend.features.recipients.validators import validate_recipient
from multisend.shared.config import MultiSendConfig
from multisend.shared.formatting import get_address_explorer_url, get_tx_explorer_url
from multisend.shared.logging import get_logger

if TYPE_CHECKING:
    from multisend.features.settlement.base import SettlementBoundary

logger = get_logger(__name__)


@dataclass(frozen=True)
class ImportPreview:
    total: int
    valid: int
    invalid: int


class MultiSendService:
    """Holds the recipient rows of one session and drives a send through the
    executor while keeping the lifecycle tracker in step.

    The session starts with a single blank row, like an empty form.
    """

    def __init__(
        self,
        actor: str,
        executor: BatchExecutor,
        config: MultiSendConfig | None = None,
        tracker: LifecycleTracker | None = None,
    ):
        self.actor = actor
        self.executor = executor
        self.config = config or MultiSendConfig()
        self.tracker = tracker or LifecycleTracker()
        self._recipients: list[Recipient] = [Recipient.create()]
        self._token: TokenDescriptor | None = None
        self._last_result: ExecutionResult | None = None

    @classmethod
    def create(
        cls,
        actor: str,
        settlement: SettlementBoundary,
        config: MultiSendConfig | None = None,
    ) -> "MultiSendService":
        config = config or MultiSendConfig()
        executor = BatchExecutor(
            settlement,
            max_recipients=config.max_recipients,
            refund_excess_value=config.refund_excess_value,
        )
        return cls(actor, executor, config)

    @property
    def recipients(self) -> list[Recipient]:
        return list(self._recipients)

    @property
    def token(self) -> TokenDescriptor | None:
        return self._token

    @property
    def status(self) -> TransactionStatus:
        return self.tracker.status

    @property
    def last_result(self) -> ExecutionResult | None:
        return self._last_result

    def add_recipient(self, address: str = "", amount: str = "") -> Recipient:
        recipient = Recipient.create(address, amount)
        self._recipients.append(recipient)
        return recipient

    def remove_recipient(self, recipient_id: str) -> bool:
        before = len(self._recipients)
        self._recipients = [r for r in self._recipients if r.id != recipient_id]
        return len(self._recipients) != before

    def update_recipient(
        self,
        recipient_id: str,
        address: str | None = None,
        amount: str | None = None,
    ) -> Recipient:
        for index, recipient in enumerate(self._recipients):
            if recipient.id != recipient_id:
                continue
            if address is not None:
                recipient = recipient.with_address(address)
            if amount is not None:
                recipient = recipient.with_amount(amount)
            self._recipients[index] = recipient
            return recipient
        raise KeyError(f"Unknown recipient: {recipient_id}")

    def preview_import(self, text: str) -> ImportPreview:
        parsed = import_from_text(text)
        valid = sum(1 for r in parsed if validate_recipient(r.address, r.amount))
        return ImportPreview(total=len(parsed), valid=valid, invalid=len(parsed) - valid)

    def import_text(self, text: str) -> list[Recipient]:
        """Replace the current rows with recipients parsed from ``text``."""
        return self._replace(import_from_text(text))

    def import_file(self, path: str | Path) -> list[Recipient]:
        return self._replace(read_recipients_file(path))

    def _replace(self, recipients: list[Recipient]) -> list[Recipient]:
        self._recipients = list(recipients) or [Recipient.create()]
        logger.info("Imported %d recipients", len(recipients))
        return self.recipients

    def export_csv(self) -> str:
        return export_to_csv(self._filled_rows())

    def export_json(self) -> str:
        return export_to_json(self._filled_rows())

    def clear(self) -> None:
        self._recipients = [Recipient.create()]
        self._last_result = None
        if not self.tracker.state.in_flight:
            self.tracker.reset()

    def select_token(self, token: TokenDescriptor | None) -> None:
        self._token = token

    def summary(self) -> BatchSummary:
        return summarize(self._filled_rows())

    def _filled_rows(self) -> list[Recipient]:
        return [r for r in self._recipients if not r.is_blank()]

    def send(
        self,
        value: str | Decimal | None = None,
        on_status_change: Callable[[TransactionStatus], None] | None = None,
    ) -> ExecutionResult:
        if self.tracker.state.in_flight:
            result = ExecutionResult.failed(
                BatchError(
                    kind=BatchErrorKind.REENTRANT_CALL,
                    message="A batch from this session is already in flight",
                )
            )
            self._last_result = result
            return result

        def notify(status: TransactionStatus) -> None:
            if on_status_change:
                on_status_change(status)

        notify(self.tracker.begin())

        def on_dispatch() -> None:
            notify(self.tracker.mark_pending())

        try:
            result = self.executor.execute(
                self.actor,
                self._filled_rows(),
                self._token,
                value=value,
                on_dispatch=on_dispatch,
            )
        except Exception as e:
            notify(self.tracker.fail(str(e) or type(e).__name__))
            raise

        if result.is_success:
            notify(self.tracker.succeed(result.transaction_reference))
        else:
            notify(
                self.tracker.fail(
                    result.error_message
                    or (result.error_kind.value if result.error_kind else "Batch failed"),
                    kind=result.error_kind,
                    reference=result.transaction_reference,
                )
            )

        self._last_result = result
        return result

    def transaction_url(self) -> str:
        reference = self.tracker.status.reference
        if not reference:
            return ""
        return get_tx_explorer_url(reference, self.config.explorer_base_url)

    def address_url(self, address: str) -> str:
        return get_address_explorer_url(address, self.config.explorer_base_url)
