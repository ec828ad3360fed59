"""Atomic batch execution and its transaction lifecycle."""

from multisend.features.batch.errors import (
    SETTLEMENT_KINDS,
    BatchError,
    BatchErrorKind,
    SettlementError,
)
from multisend.features.batch.executor import BatchExecutor
from multisend.features.batch.guard import ReentrancyGuard
from multisend.features.batch.lifecycle import (
    LifecycleState,
    LifecycleTracker,
    LifecycleTransitionError,
    TransactionStatus,
)
from multisend.features.batch.models import (
    CompletionRecord,
    ExecutionResult,
    ExecutionStatus,
    PreparedBatch,
    TokenDescriptor,
)
from multisend.features.batch.service import ImportPreview, MultiSendService
from multisend.features.batch.units import (
    MAX_UINT256,
    from_base_units,
    to_base_units,
    truncate_to_base_units,
)

__all__ = [
    "MAX_UINT256",
    "SETTLEMENT_KINDS",
    "BatchError",
    "BatchErrorKind",
    "BatchExecutor",
    "CompletionRecord",
    "ExecutionResult",
    "ExecutionStatus",
    "ImportPreview",
    "LifecycleState",
    "LifecycleTracker",
    "LifecycleTransitionError",
    "MultiSendService",
    "PreparedBatch",
    "ReentrancyGuard",
    "SettlementError",
    "TokenDescriptor",
    "TransactionStatus",
    "from_base_units",
    "to_base_units",
    "truncate_to_base_units",
]
