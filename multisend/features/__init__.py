"""Feature modules for MultiSend.

- recipients: parsing, validation, aggregation and import/export of recipient lists
- batch: atomic batch execution, reentrancy guard and lifecycle tracking
- settlement: contract and relay settlement boundaries
"""

from multisend.features import batch
from multisend.features import recipients
from multisend.features import settlement

__all__ = ["batch", "recipients", "settlement"]
