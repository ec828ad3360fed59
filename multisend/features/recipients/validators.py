"""Recipient validators for MultiSend.

Address checks follow the EVM account shape (``0x`` + 40 hex characters).
Amounts are human-entered decimal strings and are never converted to float.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Protocol


ADDRESS_PREFIX = "0x"
ADDRESS_HEX_LENGTH = 40

_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")
_AMOUNT_RE = re.compile(r"(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")


class HasAddress(Protocol):
    address: str


class HasAddressAndAmount(Protocol):
    address: str
    amount: str


@dataclass
class ValidationResult:
    is_valid: bool
    error_message: str | None = None
    normalized_value: Any = None


def is_valid_address(address: str) -> bool:
    if not address:
        return False
    return _ADDRESS_RE.fullmatch(address) is not None


def is_empty_amount(amount: str) -> bool:
    return not amount or not amount.strip()


def parse_amount(amount: str) -> Decimal | None:
    """Return the amount as a positive Decimal, or None when it is not one."""
    if is_empty_amount(amount):
        return None
    raw = amount.strip()
    if not _AMOUNT_RE.fullmatch(raw):
        return None
    try:
        value = Decimal(raw)
    except InvalidOperation:
        return None
    if value <= 0:
        return None
    return value


def is_valid_amount(amount: str) -> bool:
    return parse_amount(amount) is not None


def validate_recipient(address: str, amount: str) -> bool:
    # An address may be entered before its amount; blank amounts are not invalid yet.
    return is_valid_address(address) and (
        is_empty_amount(amount) or is_valid_amount(amount)
    )


def is_ready_for_execution(recipient: HasAddressAndAmount) -> bool:
    return is_valid_address(recipient.address) and is_valid_amount(recipient.amount)


def canonical_address(address: str) -> str:
    return address.strip().lower()


def find_duplicate_addresses(recipients: Iterable[HasAddress]) -> list[str]:
    """Lower-cased addresses that occur more than once, in first-seen order."""
    counts: dict[str, int] = {}
    for recipient in recipients:
        if not recipient.address or not recipient.address.strip():
            continue
        key = canonical_address(recipient.address)
        counts[key] = counts.get(key, 0) + 1
    return [address for address, count in counts.items() if count > 1]


class AddressValidator:
    @staticmethod
    def validate(value: str) -> ValidationResult:
        if not value or not value.strip():
            return ValidationResult(
                is_valid=False,
                error_message="Address is required",
            )

        candidate = value.strip()

        if not candidate.startswith(ADDRESS_PREFIX):
            return ValidationResult(
                is_valid=False,
                error_message=f"Address must start with '{ADDRESS_PREFIX}'",
            )

        hex_part = candidate[len(ADDRESS_PREFIX) :]
        if len(hex_part) != ADDRESS_HEX_LENGTH:
            return ValidationResult(
                is_valid=False,
                error_message=f"Address must have exactly {ADDRESS_HEX_LENGTH} hexadecimal characters after '{ADDRESS_PREFIX}'",
            )

        if not is_valid_address(candidate):
            return ValidationResult(
                is_valid=False,
                error_message="Address contains invalid characters",
            )

        return ValidationResult(
            is_valid=True,
            normalized_value=candidate,
        )


class AmountValidator:
    @staticmethod
    def validate(value: str) -> ValidationResult:
        if is_empty_amount(value):
            return ValidationResult(
                is_valid=False,
                error_message="Amount is required",
            )

        raw_amount = value.strip()

        if raw_amount.startswith("-") or raw_amount.startswith("+"):
            return ValidationResult(
                is_valid=False,
                error_message="Amount must be a positive number without a sign",
            )

        if not _AMOUNT_RE.fullmatch(raw_amount):
            return ValidationResult(
                is_valid=False,
                error_message="Amount must be a plain decimal number",
            )

        amount = parse_amount(raw_amount)
        if amount is None:
            return ValidationResult(
                is_valid=False,
                error_message="Amount must be greater than zero",
            )

        return ValidationResult(
            is_valid=True,
            normalized_value=amount,
        )
