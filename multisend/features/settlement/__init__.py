"""Settlement boundaries that move a batch's value in one atomic step."""

from multisend.features.settlement.base import (
    CONTRACT_ERROR_KINDS,
    SettlementBoundary,
    SettlementReceipt,
    error_kind_for,
)
from multisend.features.settlement.contract import (
    MULTISEND_ABI,
    ContractSettlement,
    decode_error_name,
)
from multisend.features.settlement.relay import RelaySettlement

__all__ = [
    "CONTRACT_ERROR_KINDS",
    "ContractSettlement",
    "MULTISEND_ABI",
    "RelaySettlement",
    "SettlementBoundary",
    "SettlementReceipt",
    "decode_error_name",
    "error_kind_for",
]
