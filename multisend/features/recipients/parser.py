"""Free-form recipient list parsing.

Each non-blank line holds an address and an optional amount separated by a
comma, whitespace, a semicolon or ``=``::

    0x1234567890123456789012345678901234567890,1.5
    0xabcdefABCDEFabcdefABCDEFabcdefABCDEFabcd 2.0
    0x9876543210987654321098765432109876543210;0.5
    0x9876543210987654321098765432109876543211=3

Parsing never fails; malformed lines come out as candidates that do not
validate.
"""

from __future__ import annotations

import re
from typing import Callable, Iterator

from multisend.features.recipients.models import RecipientCandidate

_WHITESPACE_RUN = re.compile(r"\s+")
_TRAILING_SEPARATORS = ",;= \t"

Splitter = Callable[[str], list[str]]

SPLITTERS: tuple[Splitter, ...] = (
    lambda line: line.split(","),
    lambda line: _WHITESPACE_RUN.split(line),
    lambda line: line.split(";"),
    lambda line: line.split("="),
)


def parse_line(line: str) -> RecipientCandidate | None:
    stripped = line.strip()
    if not stripped:
        return None

    for split in SPLITTERS:
        tokens = [token.strip() for token in split(stripped)]
        if len(tokens) == 2 and tokens[0] and tokens[1]:
            return RecipientCandidate(address=tokens[0], amount=tokens[1])

    return RecipientCandidate(
        address=stripped.rstrip(_TRAILING_SEPARATORS), amount=""
    )


class ParsedRecipients:
    """Lazy view over the candidates in a block of text.

    Every iteration re-reads the text from the start, so the same object can
    feed a preview and then the import.
    """

    def __init__(self, text: str):
        self.text = text or ""

    def __iter__(self) -> Iterator[RecipientCandidate]:
        for line in self.text.splitlines():
            candidate = parse_line(line)
            if candidate is not None:
                yield candidate

    def to_list(self) -> list[RecipientCandidate]:
        return list(self)


def parse_recipients(text: str) -> ParsedRecipients:
    return ParsedRecipients(text)
