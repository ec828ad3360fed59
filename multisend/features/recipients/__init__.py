"""Recipient list parsing, validation and aggregation."""

from multisend.features.recipients.aggregator import (
    BatchSummary,
    calculate_total_amount,
    count_valid_recipients,
    summarize,
)
from multisend.features.recipients.import_export import (
    export_to_csv,
    export_to_json,
    import_from_csv,
    import_from_json,
    import_from_text,
    read_recipients_file,
    write_recipients_file,
)
from multisend.features.recipients.models import (
    Recipient,
    RecipientCandidate,
    create_recipient,
)
from multisend.features.recipients.parser import ParsedRecipients, parse_recipients
from multisend.features.recipients.validators import (
    AddressValidator,
    AmountValidator,
    ValidationResult,
    find_duplicate_addresses,
    is_ready_for_execution,
    is_valid_address,
    is_valid_amount,
    validate_recipient,
)

__all__ = [
    "AddressValidator",
    "AmountValidator",
    "BatchSummary",
    "ParsedRecipients",
    "Recipient",
    "RecipientCandidate",
    "ValidationResult",
    "calculate_total_amount",
    "count_valid_recipients",
    "create_recipient",
    "export_to_csv",
    "export_to_json",
    "find_duplicate_addresses",
    "import_from_csv",
    "import_from_json",
    "import_from_text",
    "is_ready_for_execution",
    "is_valid_address",
    "is_valid_amount",
    "parse_recipients",
    "read_recipients_file",
    "summarize",
    "validate_recipient",
    "write_recipients_file",
]
