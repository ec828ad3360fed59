"""Recipient data types."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from multisend.features.recipients.validators import validate_recipient
from multisend.shared.formatting import generate_id


@dataclass(frozen=True)
class RecipientCandidate:
    address: str
    amount: str


@dataclass(frozen=True)
class Recipient:
    """A recipient row of a batch.

    Instances are immutable: edits go through ``with_address`` and
    ``with_amount`` so that the address, the amount and ``is_valid`` always
    change together. ``id`` survives edits and is only used for identity in
    the caller's views.
    """

    address: str
    amount: str
    is_valid: bool
    id: str = field(default_factory=generate_id)

    @classmethod
    def create(cls, address: str = "", amount: str = "", id: str = "") -> "Recipient":
        return cls(
            address=address,
            amount=amount,
            is_valid=validate_recipient(address, amount),
            id=id or generate_id(),
        )

    @classmethod
    def from_candidate(cls, candidate: RecipientCandidate) -> "Recipient":
        return cls.create(candidate.address, candidate.amount)

    def with_address(self, address: str) -> "Recipient":
        return replace(
            self, address=address, is_valid=validate_recipient(address, self.amount)
        )

    def with_amount(self, amount: str) -> "Recipient":
        return replace(
            self, amount=amount, is_valid=validate_recipient(self.address, amount)
        )

    def is_blank(self) -> bool:
        return not self.address.strip() and not self.amount.strip()

    def to_dict(self) -> dict[str, Any]:
        return {"address": self.address, "amount": self.amount}


def create_recipient(address: str = "", amount: str = "") -> Recipient:
    return Recipient.create(address, amount)
