"""Tests for CSV/JSON recipient import and export."""

import json

import pytest

from multisend.features.recipients.import_export import (
    export_to_csv,
    export_to_json,
    import_from_csv,
    import_from_json,
    import_from_text,
    read_recipients_file,
    write_recipients_file,
)
from multisend.features.recipients.models import Recipient

ADDR_1 = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"
ADDR_2 = "0x" + "a" * 40


@pytest.fixture
def recipients():
    return [Recipient.create(ADDR_1, "1.5"), Recipient.create(ADDR_2, "2")]


@pytest.mark.unit
class TestCsv:
    def test_export_format(self, recipients):
        assert export_to_csv(recipients) == (
            f"Address,Amount\n{ADDR_1},1.5\n{ADDR_2},2\n"
        )

    def test_export_empty(self):
        assert export_to_csv([]) == "Address,Amount\n"

    def test_round_trip_preserves_pairs(self, recipients):
        imported = import_from_csv(export_to_csv(recipients))
        assert [(r.address, r.amount) for r in imported] == [
            (r.address, r.amount) for r in recipients
        ]
        assert all(r.is_valid for r in imported)

    def test_cells_with_commas_are_quoted(self):
        exported = export_to_csv([Recipient.create(ADDR_1, "1,000")])
        assert exported.splitlines()[1] == f'{ADDR_1},"1,000"'
        assert import_from_csv(exported)[0].amount == "1,000"

    def test_import_without_header(self):
        imported = import_from_csv(f"{ADDR_1},1\n{ADDR_2},2")
        assert len(imported) == 2

    def test_import_skips_rows_without_address(self):
        imported = import_from_csv(f"Address,Amount\n,1\n{ADDR_1},1\n\n")
        assert [r.address for r in imported] == [ADDR_1]

    def test_import_missing_amount(self):
        imported = import_from_csv(f"Address,Amount\n{ADDR_1}")
        assert imported[0].amount == ""
        assert imported[0].is_valid is True

    def test_import_assigns_fresh_ids(self):
        imported = import_from_csv(f"{ADDR_1},1\n{ADDR_2},2")
        assert imported[0].id != imported[1].id


@pytest.mark.unit
class TestJson:
    def test_export_format(self, recipients):
        exported = export_to_json(recipients)
        assert json.loads(exported) == [
            {"address": ADDR_1, "amount": "1.5"},
            {"address": ADDR_2, "amount": "2"},
        ]
        assert '\n  {\n    "address"' in exported

    def test_round_trip(self, recipients):
        imported = import_from_json(export_to_json(recipients))
        assert [(r.address, r.amount) for r in imported] == [
            (ADDR_1, "1.5"),
            (ADDR_2, "2"),
        ]

    def test_numeric_amount(self):
        imported = import_from_json(json.dumps([{"address": ADDR_1, "amount": 3}]))
        assert imported[0].amount == "3"

    def test_missing_fields(self):
        imported = import_from_json(json.dumps([{}]))
        assert imported[0].address == ""
        assert imported[0].amount == ""

    def test_invalid_json(self):
        with pytest.raises(ValueError, match="Invalid JSON"):
            import_from_json("[{")

    def test_not_a_list(self):
        with pytest.raises(ValueError, match="list"):
            import_from_json('{"address": "x"}')

    def test_entry_not_object(self):
        with pytest.raises(ValueError, match="Entry 1"):
            import_from_json(json.dumps([{"address": ADDR_1}, "oops"]))


@pytest.mark.unit
class TestFiles:
    def test_read_csv(self, tmp_path):
        path = tmp_path / "list.csv"
        path.write_text(f"Address,Amount\n{ADDR_1},1\n", encoding="utf-8")
        assert [r.amount for r in read_recipients_file(path)] == ["1"]

    def test_read_json(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text(json.dumps([{"address": ADDR_1, "amount": "4"}]), encoding="utf-8")
        assert [r.amount for r in read_recipients_file(path)] == ["4"]

    def test_read_text(self, tmp_path):
        path = tmp_path / "list.txt"
        path.write_text(f"{ADDR_1} 1\n{ADDR_2}=2\n", encoding="utf-8")
        assert [r.amount for r in read_recipients_file(path)] == ["1", "2"]

    def test_write_by_suffix(self, tmp_path, recipients):
        path = write_recipients_file(recipients, tmp_path / "out.json")
        assert json.loads(path.read_text(encoding="utf-8"))[0]["address"] == ADDR_1

    def test_write_explicit_format(self, tmp_path, recipients):
        path = write_recipients_file(recipients, tmp_path / "out.txt", "csv")
        assert path.read_text(encoding="utf-8").startswith("Address,Amount\n")

    def test_write_unsupported_format(self, tmp_path, recipients):
        with pytest.raises(ValueError, match="Unsupported"):
            write_recipients_file(recipients, tmp_path / "out.xml")

    def test_import_from_text(self):
        imported = import_from_text(f"{ADDR_1},1\n\n{ADDR_2};2")
        assert len(imported) == 2
