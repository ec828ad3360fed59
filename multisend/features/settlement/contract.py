"""Settlement through the on-chain MultiSend contract.

Transactions are sent with ``transact`` from an account the provider already
manages; this module never touches keys or gas pricing.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted
from web3.logs import DISCARD

from multisend.features.batch.errors import BatchErrorKind, SettlementError
from multisend.features.settlement.base import (
    CONTRACT_ERROR_KINDS,
    SettlementReceipt,
    error_kind_for,
)
from multisend.shared.config import DEFAULT_POLL_INTERVAL, DEFAULT_RECEIPT_TIMEOUT

logger = logging.getLogger(__name__)


def _error(name: str, inputs: list[tuple[str, str]] | None = None) -> dict[str, Any]:
    return {
        "inputs": [{"name": n, "type": t, "internalType": t} for n, t in inputs or []],
        "name": name,
        "type": "error",
    }


MULTISEND_ABI: list[dict[str, Any]] = [
    _error("FailedCall"),
    _error("InsufficientBalance", [("balance", "uint256"), ("needed", "uint256")]),
    _error("InsufficientTokensReceived"),
    _error("InsufficientValue"),
    _error("LengthMismatch"),
    _error("NoRecipients"),
    _error("ReentrancyGuardReentrantCall"),
    _error("RefundFailed"),
    _error("SafeERC20FailedOperation", [("token", "address")]),
    _error("TooManyRecipients"),
    _error("TotalAmountMismatch"),
    _error("ZeroTotalAmount"),
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "sender", "type": "address"},
            {"indexed": False, "name": "totalValue", "type": "uint256"},
            {"indexed": False, "name": "recipientCount", "type": "uint256"},
        ],
        "name": "NativeSent",
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "sender", "type": "address"},
            {"indexed": True, "name": "token", "type": "address"},
            {"indexed": False, "name": "totalValue", "type": "uint256"},
            {"indexed": False, "name": "recipientCount", "type": "uint256"},
        ],
        "name": "TokenSent",
        "type": "event",
    },
    {
        "inputs": [
            {"name": "recipients", "type": "address[]"},
            {"name": "amounts", "type": "uint256[]"},
        ],
        "name": "multiSendNative",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "token", "type": "address"},
            {"name": "recipients", "type": "address[]"},
            {"name": "amounts", "type": "uint256[]"},
            {"name": "totalAmount", "type": "uint256"},
        ],
        "name": "multiSendToken",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


def _signature(entry: dict[str, Any]) -> str:
    types = ",".join(i["type"] for i in entry["inputs"])
    return f"{entry['name']}({types})"


def _selector(signature: str) -> str:
    return "0x" + bytes(Web3.keccak(text=signature)[:4]).hex()


ERROR_SELECTORS: dict[str, str] = {
    _selector(_signature(entry)): entry["name"]
    for entry in MULTISEND_ABI
    if entry["type"] == "error"
}


def decode_error_name(error: Exception) -> str | None:
    """Name of the contract error behind a revert, if it can be recognised."""
    data = getattr(error, "data", None)
    if isinstance(data, (bytes, bytearray)):
        data = "0x" + bytes(data).hex()
    if data:
        name = ERROR_SELECTORS.get(str(data)[:10].lower())
        if name:
            return name

    message = str(error)
    for name in CONTRACT_ERROR_KINDS:
        if name in message:
            return name
    return None


class ContractSettlement:
    def __init__(
        self,
        w3: Web3,
        contract_address: str,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.w3 = w3
        self.contract = w3.eth.contract(
            address=Web3.to_checksum_address(contract_address), abi=MULTISEND_ABI
        )
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval

    @classmethod
    def from_rpc(
        cls,
        rpc_url: str,
        contract_address: str,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> "ContractSettlement":
        w3 = Web3(Web3.HTTPProvider(rpc_url))
        return cls(w3, contract_address, receipt_timeout, poll_interval)

    def settle_native(
        self,
        actor: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
        value: int,
    ) -> SettlementReceipt:
        call = self.contract.functions.multiSendNative(
            [Web3.to_checksum_address(r) for r in recipients], list(amounts)
        )
        receipt, reference = self._send(
            call, {"from": Web3.to_checksum_address(actor), "value": value}
        )
        settled = self._settled_total(self.contract.events.NativeSent(), receipt)
        refunded = value - settled if settled is not None else 0
        return SettlementReceipt(
            reference=reference, settled_total=settled, refunded=max(refunded, 0)
        )

    def settle_token(
        self,
        actor: str,
        token: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
        total_amount: int,
    ) -> SettlementReceipt:
        call = self.contract.functions.multiSendToken(
            Web3.to_checksum_address(token),
            [Web3.to_checksum_address(r) for r in recipients],
            list(amounts),
            total_amount,
        )
        receipt, reference = self._send(
            call, {"from": Web3.to_checksum_address(actor)}
        )
        settled = self._settled_total(self.contract.events.TokenSent(), receipt)
        return SettlementReceipt(reference=reference, settled_total=settled)

    def _send(self, call: Any, tx_params: dict[str, Any]) -> tuple[Any, str]:
        try:
            tx_hash = call.transact(tx_params)
        except ContractLogicError as e:
            raise self._revert_error(e) from e

        reference = Web3.to_hex(tx_hash)
        logger.info("MultiSend transaction sent: %s", reference)

        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout, poll_latency=self.poll_interval
            )
        except TimeExhausted as e:
            raise SettlementError(
                kind=BatchErrorKind.SETTLEMENT_TIMEOUT,
                message=(
                    f"Transaction {reference} was not mined within "
                    f"{self.receipt_timeout:g} seconds"
                ),
                cause=e,
                reference=reference,
            ) from e

        if receipt["status"] != 1:
            raise SettlementError(
                kind=BatchErrorKind.SETTLEMENT_REJECTED,
                message=f"Transaction {reference} reverted",
                reference=reference,
            )
        return receipt, reference

    def _revert_error(self, error: ContractLogicError) -> SettlementError:
        name = decode_error_name(error)
        kind = error_kind_for(name)
        logger.warning("MultiSend call reverted: %s", name or error)
        return SettlementError(
            kind=kind,
            message=f"MultiSend contract rejected the batch: {name or error}",
            details={"contract_error": name} if name else {},
            cause=error,
        )

    @staticmethod
    def _settled_total(event: Any, receipt: Any) -> int | None:
        logs = event.process_receipt(receipt, errors=DISCARD)
        if not logs:
            return None
        return sum(int(log["args"]["totalValue"]) for log in logs)
