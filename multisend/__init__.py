"""MultiSend - atomic batch transfers to many recipients.

This package is organized into feature-based modules:
- features.recipients: Recipient list parsing, validation and aggregation
- features.batch: Batch execution, reentrancy guard and lifecycle tracking
- features.settlement: Contract and relay settlement boundaries
- shared: Shared utilities (config, logging, formatting)
"""

__version__ = "0.1.0"

from multisend.features.batch import (
    BatchError,
    BatchErrorKind,
    BatchExecutor,
    ExecutionResult,
    LifecycleTracker,
    MultiSendService,
    TokenDescriptor,
)
from multisend.features.recipients import Recipient, parse_recipients

__all__ = [
    "__version__",
    "BatchError",
    "BatchErrorKind",
    "BatchExecutor",
    "ExecutionResult",
    "LifecycleTracker",
    "MultiSendService",
    "Recipient",
    "TokenDescriptor",
    "parse_recipients",
]
