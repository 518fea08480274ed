# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: render normalized records for people and tools. the main artifact is the inventory document
(a JSON envelope with generatedBy, entryCount and entries). the same entries can also be written
as JSONL, as an Excel-friendly CSV (BOM + quoted + CRLF), or as an XLSX sheet through openpyxl.
the dashboard reuses these renderers for its download endpoint.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

import csv  # for the tabular CSV export
import io  # in-memory buffers for CSV / XLSX
import json  # for the inventory document and JSONL
import logging  # for noting what got written
import os  # for checking the inventory file exists
from collections.abc import Iterable, Sequence  # type hints for record lists
from pathlib import Path  # for creating the output directory
from typing import Any  # type hint for entry dicts

from algorithm.records import NormalizedRecord

log = logging.getLogger(__name__)

GENERATED_BY = "SurfaceScan execution surface inventory"

FORMATS = ("json", "jsonl", "csv", "xlsx")

# common tabular cols
COLUMNS = [
    "severity",
    "name",
    "category",
    "scope",
    "source",
    "responsibleUser",
    "path",
    "severityReasons",
]


class ExportError(Exception):
    """The inventory could not be rendered or written."""


def _clean(value: Any) -> Any:
    # registry values sometimes carry embedded NULs, drop them everywhere
    if isinstance(value, str):
        return value.replace("\x00", "")
    if isinstance(value, dict):
        return {_clean(k): _clean(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_clean(v) for v in value]
    return value


def build_document(records: Sequence[NormalizedRecord]) -> dict[str, Any]:
    entries = [_clean(r.to_dict()) for r in records]
    return {"generatedBy": GENERATED_BY, "entryCount": len(entries), "entries": entries}


def _row(entry: dict[str, Any]) -> dict[str, str]:
    r = {k: entry.get(k, "") for k in COLUMNS}
    r["path"] = (entry.get("attributes") or {}).get("path", "")
    return {k: "" if v is None else str(v) for k, v in r.items()}


def to_json_text(document: dict[str, Any]) -> str:
    return json.dumps(document, ensure_ascii=False, indent=2)


def to_jsonl_text(entries: Iterable[dict[str, Any]]) -> str:
    return "\n".join(json.dumps(e, ensure_ascii=False) for e in entries)


def to_csv_bytes(entries: Iterable[dict[str, Any]]) -> bytes:
    buf = io.StringIO(newline="")
    writer = csv.DictWriter(
        buf,
        fieldnames=COLUMNS,
        extrasaction="ignore",
        quoting=csv.QUOTE_ALL,
        lineterminator="\r\n",
    )
    writer.writeheader()
    for entry in entries:
        writer.writerow(_row(entry))
    return ("\ufeff" + buf.getvalue()).encode("utf-8")  # BOM so Excel picks UTF-8


def to_xlsx_bytes(entries: Iterable[dict[str, Any]]) -> bytes:
    try:
        from openpyxl import Workbook
        from openpyxl.utils import get_column_letter
    except ImportError as e:
        raise ExportError("xlsx export requires `openpyxl` (pip install openpyxl)") from e

    wb = Workbook()
    ws = wb.active
    ws.title = "Inventory"
    ws.append(COLUMNS)
    for entry in entries:
        r = _row(entry)
        ws.append([r[c] for c in COLUMNS])

    # size columns to their content, clamped to something readable
    for i, c in enumerate(COLUMNS, 1):
        max_len = len(c)
        for row in ws.iter_rows(min_row=2, min_col=i, max_col=i):
            v = row[0].value
            if v is None:
                continue
            max_len = max(max_len, len(str(v)))
        ws.column_dimensions[get_column_letter(i)].width = max(10, min(60, int(max_len * 1.1 + 2)))

    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


def render(records: Sequence[NormalizedRecord], fmt: str = "json") -> bytes:
    fmt = fmt.lower()
    document = build_document(records)
    if fmt == "json":
        return to_json_text(document).encode("utf-8")
    if fmt == "jsonl":
        return to_jsonl_text(document["entries"]).encode("utf-8")
    if fmt == "csv":
        return to_csv_bytes(document["entries"])
    if fmt == "xlsx":
        return to_xlsx_bytes(document["entries"])
    raise ExportError(f"unknown export format: {fmt} (expected one of {', '.join(FORMATS)})")


def write_inventory(records: Sequence[NormalizedRecord], path: str | Path, fmt: str = "json") -> Path:
    out = Path(path)
    payload = render(records, fmt)
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(payload)
    except OSError as e:
        raise ExportError(f"Unable to open output file: {out} ({e})") from e
    log.info("wrote %d entries to %s as %s", len(records), out, fmt)
    return out


def load_inventory(path: str | Path) -> list[dict[str, Any]]:
    """Read the entries back out of an inventory document. Missing file -> []."""
    if not os.path.exists(path):
        return []
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict) and isinstance(data.get("entries"), list):
        return [e for e in data["entries"] if isinstance(e, dict)]
    if isinstance(data, list):
        return [e for e in data if isinstance(e, dict)]
    return []
