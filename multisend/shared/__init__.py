"""Shared utilities for MultiSend."""

from multisend.shared.config import DEFAULT_MAX_RECIPIENTS, MultiSendConfig
from multisend.shared.formatting import (
    EXACT_CONTEXT,
    UNBOUNDED_CONTEXT,
    format_address,
    format_balance,
    format_decimal,
    format_number,
    generate_id,
    get_address_explorer_url,
    get_tx_explorer_url,
)
from multisend.shared.logging import (
    ContextAdapter,
    LoggingConfig,
    LogLevel,
    format_error_for_user,
    get_logger,
    get_user_friendly_error,
    log_with_context,
    sanitize_dict,
    sanitize_message,
    setup_logging,
)

__all__ = [
    "DEFAULT_MAX_RECIPIENTS",
    "MultiSendConfig",
    "EXACT_CONTEXT",
    "UNBOUNDED_CONTEXT",
    "format_address",
    "format_balance",
    "format_decimal",
    "format_number",
    "generate_id",
    "get_address_explorer_url",
    "get_tx_explorer_url",
    "ContextAdapter",
    "LoggingConfig",
    "LogLevel",
    "format_error_for_user",
    "get_logger",
    "get_user_friendly_error",
    "log_with_context",
    "sanitize_dict",
    "sanitize_message",
    "setup_logging",
]
