"""
Tests for app.exporter - inventory document and tabular exports
"""

from __future__ import annotations

import io
import json
from unittest.mock import patch

import pytest

from algorithm.normalizer import normalize_all
from algorithm.records import RawFact
from app.exporter import (
    COLUMNS,
    GENERATED_BY,
    ExportError,
    build_document,
    load_inventory,
    render,
    to_csv_bytes,
    to_jsonl_text,
    to_xlsx_bytes,
    write_inventory,
)


@pytest.fixture
def records(sample_facts):
    return normalize_all(RawFact.from_dict(f) for f in sample_facts)


class TestBuildDocument:
    """Tests for the inventory envelope"""

    def test_envelope(self, records):
        """Test generatedBy, entryCount and entries"""
        doc = build_document(records)
        assert doc["generatedBy"] == GENERATED_BY
        assert doc["entryCount"] == len(records)
        assert [e["name"] for e in doc["entries"]] == [r.name for r in records]

    def test_entry_shape(self, records):
        """Test each entry carries the exported keys"""
        entry = build_document(records)["entries"][0]
        for key in (
            "name",
            "category",
            "scope",
            "source",
            "severity",
            "severityReasons",
            "explanation",
            "responsibleUser",
            "attributes",
        ):
            assert key in entry
        assert entry["attributes"]["severityTier"] == entry["severity"]

    def test_nul_characters_stripped(self):
        """Test embedded NULs from registry values are removed"""
        recs = normalize_all([RawFact(name="Bad\x00Name", source="registry", attributes={"publisher": "A\x00B"})])
        entry = build_document(recs)["entries"][0]
        assert entry["name"] == "BadName"
        assert entry["attributes"]["publisher"] == "AB"

    def test_empty(self):
        """Test an empty run still produces a valid document"""
        assert build_document([]) == {"generatedBy": GENERATED_BY, "entryCount": 0, "entries": []}


class TestTabular:
    """Tests for CSV, JSONL and XLSX renderers"""

    def test_csv_bom_quotes_crlf(self, records):
        """Test CSV is Excel friendly"""
        data = to_csv_bytes(build_document(records)["entries"])
        text = data.decode("utf-8")
        assert text.startswith("\ufeff")
        first_line = text[1:].split("\r\n", 1)[0]
        assert first_line == ",".join(f'"{c}"' for c in COLUMNS)
        assert text.count("\r\n") == len(records) + 1

    def test_csv_path_from_attributes(self, records):
        """Test the path column is read from the attribute map"""
        text = to_csv_bytes(build_document(records)["entries"]).decode("utf-8")
        assert '"C:\\Program Files\\7-Zip\\"' in text

    def test_jsonl_one_object_per_line(self, records):
        """Test JSONL output"""
        lines = to_jsonl_text(build_document(records)["entries"]).split("\n")
        assert len(lines) == len(records)
        assert json.loads(lines[1])["source"] == "persistence"

    def test_xlsx(self, records):
        """Test XLSX output is a workbook with a header row and one row per entry"""
        openpyxl = pytest.importorskip("openpyxl")
        data = to_xlsx_bytes(build_document(records)["entries"])
        wb = openpyxl.load_workbook(io.BytesIO(data))
        ws = wb["Inventory"]
        rows = list(ws.iter_rows(values_only=True))
        assert list(rows[0]) == COLUMNS
        assert len(rows) == len(records) + 1

    def test_xlsx_without_openpyxl(self):
        """Test a clear error when openpyxl is not installed"""
        with patch.dict("sys.modules", {"openpyxl": None}):
            with pytest.raises(ExportError, match="openpyxl"):
                to_xlsx_bytes([])


class TestRenderAndWrite:
    """Tests for render, write_inventory and load_inventory"""

    def test_render_unknown_format(self, records):
        """Test unknown formats are rejected"""
        with pytest.raises(ExportError, match="unknown export format"):
            render(records, "yaml")

    def test_render_format_case_insensitive(self, records):
        """Test format names ignore case"""
        assert render(records, "JSON") == render(records, "json")

    def test_write_and_load_roundtrip(self, records, tmp_path):
        """Test the written inventory reads back as the same entries"""
        out = write_inventory(records, tmp_path / "nested" / "inventory.json")
        assert out.exists()
        doc = json.loads(out.read_text(encoding="utf-8"))
        assert doc["entryCount"] == len(records)
        assert load_inventory(out) == doc["entries"]

    def test_write_unwritable_path(self, records, tmp_path):
        """Test I/O failures surface as ExportError"""
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        with pytest.raises(ExportError, match="Unable to open output file"):
            write_inventory(records, blocker / "inventory.json")

    def test_load_missing(self, tmp_path):
        """Test a missing inventory reads as empty"""
        assert load_inventory(tmp_path / "none.json") == []

    def test_load_bare_list(self, tmp_path):
        """Test a bare list is accepted and non-objects dropped"""
        p = tmp_path / "inv.json"
        p.write_text(json.dumps([{"name": "a"}, 3]), encoding="utf-8")
        assert load_inventory(p) == [{"name": "a"}]
