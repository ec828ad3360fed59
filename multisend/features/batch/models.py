"""Data types exchanged with the batch executor."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from multisend.features.batch.errors import BatchError, BatchErrorKind
from multisend.shared.formatting import format_decimal


@dataclass(frozen=True)
class TokenDescriptor:
    symbol: str
    name: str
    decimals: int
    is_native: bool = False
    address: str | None = None
    balance: str | None = None

    def __post_init__(self):
        if self.decimals < 0:
            raise ValueError("decimals must be >= 0")
        if not self.is_native and not self.address:
            raise ValueError("token address is required for non-native tokens")

    @classmethod
    def native(
        cls,
        symbol: str = "ETH",
        name: str = "Ether",
        decimals: int = 18,
        balance: str | None = None,
    ) -> "TokenDescriptor":
        return cls(
            symbol=symbol,
            name=name,
            decimals=decimals,
            is_native=True,
            balance=balance,
        )


class ExecutionStatus(Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class CompletionRecord:
    """Single event describing a settled batch."""

    actor: str
    total_amount: Decimal
    recipient_count: int
    token_symbol: str
    token_address: str | None = None
    reference: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "actor": self.actor,
            "total_amount": format_decimal(self.total_amount),
            "recipient_count": self.recipient_count,
            "token_symbol": self.token_symbol,
            "token_address": self.token_address,
            "reference": self.reference,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ExecutionResult:
    status: ExecutionStatus
    transaction_reference: str | None = None
    error_kind: BatchErrorKind | None = None
    error_message: str | None = None
    error_details: dict[str, Any] = field(default_factory=dict)
    completion: CompletionRecord | None = None

    @property
    def is_success(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    @classmethod
    def succeeded(cls, completion: CompletionRecord) -> "ExecutionResult":
        return cls(
            status=ExecutionStatus.SUCCESS,
            transaction_reference=completion.reference,
            completion=completion,
        )

    @classmethod
    def failed(
        cls, error: BatchError, reference: str | None = None
    ) -> "ExecutionResult":
        return cls(
            status=ExecutionStatus.ERROR,
            transaction_reference=reference,
            error_kind=error.kind,
            error_message=error.message,
            error_details=dict(error.details),
        )


@dataclass(frozen=True)
class PreparedBatch:
    """A batch that passed every local precondition, expressed in base units."""

    token: TokenDescriptor
    addresses: tuple[str, ...]
    amounts: tuple[int, ...]
    total_amount: Decimal
    total_base_units: int
    value_base_units: int = 0

    @property
    def recipient_count(self) -> int:
        return len(self.addresses)

    @property
    def excess_base_units(self) -> int:
        return max(0, self.value_base_units - self.total_base_units)
