"""CSV and JSON import/export of recipient lists.

CSV files carry an ``Address,Amount`` header followed by one row per
recipient; JSON files hold an array of ``{"address", "amount"}`` objects.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any, Iterable

from multisend.features.recipients.models import Recipient
from multisend.features.recipients.parser import parse_recipients

logger = logging.getLogger(__name__)

CSV_HEADER = ("Address", "Amount")


def export_to_csv(recipients: Iterable[Recipient]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    writer.writerows((r.address, r.amount) for r in recipients)
    return buffer.getvalue()


def export_to_json(recipients: Iterable[Recipient]) -> str:
    return json.dumps([r.to_dict() for r in recipients], indent=2)


def import_from_csv(csv_text: str) -> list[Recipient]:
    rows = list(csv.reader(io.StringIO(csv_text.strip())))
    if rows and rows[0] and "address" in rows[0][0].lower():
        rows = rows[1:]

    recipients = []
    for row in rows:
        cells = [cell.strip() for cell in row]
        if not cells or not cells[0]:
            continue
        amount = cells[1] if len(cells) > 1 else ""
        recipients.append(Recipient.create(cells[0], amount))
    return recipients


def import_from_json(json_text: str) -> list[Recipient]:
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e.msg}") from e

    if not isinstance(data, list):
        raise ValueError("JSON must contain a list of recipient objects")

    recipients = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ValueError(f"Entry {i}: must be an object")
        recipients.append(
            Recipient.create(
                _as_text(entry.get("address")), _as_text(entry.get("amount"))
            )
        )
    return recipients


def import_from_text(text: str) -> list[Recipient]:
    return [Recipient.from_candidate(c) for c in parse_recipients(text)]


def read_recipients_file(path: str | Path) -> list[Recipient]:
    """Load recipients from a file, choosing the format from its suffix."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()

    if suffix == ".json":
        recipients = import_from_json(text)
    elif suffix == ".csv":
        recipients = import_from_csv(text)
    else:
        recipients = import_from_text(text)

    logger.info("Loaded %d recipients from %s", len(recipients), path)
    return recipients


def write_recipients_file(
    recipients: Iterable[Recipient], path: str | Path, file_format: str | None = None
) -> Path:
    path = Path(path)
    file_format = (file_format or path.suffix.lstrip(".") or "csv").lower()

    if file_format == "json":
        content = export_to_json(recipients)
    elif file_format == "csv":
        content = export_to_csv(recipients)
    else:
        raise ValueError(f"Unsupported export format: {file_format}")

    path.write_text(content, encoding="utf-8")
    logger.info("Exported recipients to %s", path)
    return path


def _as_text(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    return str(value).strip()
