"""Settlement through an HTTP relay that submits batches on the actor's behalf."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Sequence

from multisend.features.batch.errors import BatchErrorKind, SettlementError
from multisend.features.settlement.base import SettlementReceipt, error_kind_for
from multisend.network import (
    NO_RETRY_CONFIG,
    NetworkClient,
    NetworkError,
    NetworkErrorType,
    TimeoutConfig,
)
from multisend.shared.config import DEFAULT_POLL_INTERVAL, DEFAULT_RECEIPT_TIMEOUT

logger = logging.getLogger(__name__)

FINAL_STATUSES = {"confirmed", "failed"}


def _as_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class RelaySettlement:
    """Posts a batch once and polls the relay until it settles.

    The submission is never retried; only the read-only status polls are.
    """

    def __init__(
        self,
        base_url: str,
        network_client: NetworkClient | None = None,
        timeout_seconds: float = DEFAULT_RECEIPT_TIMEOUT,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL,
        timeout_config: TimeoutConfig | None = None,
        on_status_update: Callable[[str, str], None] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._network_client = network_client or NetworkClient(
            self.base_url, timeout_config=timeout_config
        )
        self.timeout_seconds = timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.on_status_update = on_status_update

    def settle_native(
        self,
        actor: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
        value: int,
    ) -> SettlementReceipt:
        payload = {
            "actor": actor,
            "recipients": list(recipients),
            "amounts": [str(amount) for amount in amounts],
            "value": str(value),
        }
        return self._submit("/batches/native", payload)

    def settle_token(
        self,
        actor: str,
        token: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
        total_amount: int,
    ) -> SettlementReceipt:
        payload = {
            "actor": actor,
            "token": token,
            "recipients": list(recipients),
            "amounts": [str(amount) for amount in amounts],
            "totalAmount": str(total_amount),
        }
        return self._submit("/batches/token", payload)

    def _submit(self, endpoint: str, payload: dict[str, Any]) -> SettlementReceipt:
        try:
            response = self._network_client.post(
                endpoint,
                context="Submit batch",
                retry_config=NO_RETRY_CONFIG,
                json=payload,
            )
        except NetworkError as e:
            kind = (
                BatchErrorKind.SETTLEMENT_TIMEOUT
                if e.error_type == NetworkErrorType.TIMEOUT
                else BatchErrorKind.SETTLEMENT_REJECTED
            )
            raise SettlementError(kind=kind, message=str(e), cause=e) from e

        reference = str(response.get("reference") or "").strip()
        if not reference:
            raise SettlementError(
                kind=BatchErrorKind.SETTLEMENT_REJECTED,
                message=f"Relay did not accept the batch: {response.get('message') or 'no reference returned'}",
                details={"response": response},
            )

        logger.info("Batch submitted to relay with reference %s", reference)
        return self.wait_for_settlement(reference)

    def wait_for_settlement(self, reference: str) -> SettlementReceipt:
        """Poll the relay until the batch is confirmed or failed."""
        deadline = time.time() + self.timeout_seconds
        last_status = ""

        while time.time() < deadline:
            try:
                status = self._network_client.get(
                    f"/batches/{reference}", context="Check batch status"
                )
            except NetworkError as e:
                logger.debug("Batch status check failed for %s: %s", reference, e)
                status = {}

            state = str(status.get("status", "")).lower()
            if state and state != last_status:
                if self.on_status_update:
                    self.on_status_update(state, str(status.get("message", "")))
                last_status = state

            if state in FINAL_STATUSES:
                return self._finish(reference, state, status)

            time.sleep(self.poll_interval_seconds)

        raise SettlementError(
            kind=BatchErrorKind.SETTLEMENT_TIMEOUT,
            message=(
                f"Batch {reference} was not settled within "
                f"{self.timeout_seconds:g} seconds"
            ),
            reference=reference,
        )

    def _finish(
        self, reference: str, state: str, status: dict[str, Any]
    ) -> SettlementReceipt:
        transaction_reference = str(status.get("transactionHash") or reference)
        if state == "failed":
            error_name = status.get("error")
            raise SettlementError(
                kind=error_kind_for(error_name),
                message=str(
                    status.get("message") or error_name or "Relay reported a failed batch"
                ),
                details={"status": status},
                reference=transaction_reference,
            )
        return SettlementReceipt(
            reference=transaction_reference,
            settled_total=_as_int(status.get("settledTotal")),
            refunded=_as_int(status.get("refunded")) or 0,
        )
