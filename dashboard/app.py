# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: small local Flask API over a written inventory document. lets an analyst filter entries by
severity, source and free text, see a summary (counts per severity / source / category and the
most common publishers), and download the filtered view as csv, json, jsonl or xlsx.

how data flows through the app:
1. the console writes inventory.json through app.exporter
2. every request re-reads that document (so a fresh scan shows up without a restart)
3. filters from the query string narrow the entries
4. /api/entries returns them, /api/summary aggregates them, /api/export renders them
"""

from __future__ import annotations

# --- standard library ---
import logging
from collections import Counter
from pathlib import Path
from typing import Any

# --- third-party ---
from flask import Flask, jsonify, make_response, request

# --- local/project imports ---
from algorithm.records import SeverityTier
from app.exporter import (
    GENERATED_BY,
    ExportError,
    load_inventory,
    to_csv_bytes,
    to_json_text,
    to_jsonl_text,
    to_xlsx_bytes,
)
from dashboard.config import Config, load_config

# single waitress optional block
try:
    from waitress import serve as _serve  # type: ignore[import-untyped]

    HAVE_WAITRESS = True
except Exception:
    HAVE_WAITRESS = False
    _serve = None  # type: ignore

log = logging.getLogger(__name__)

SEVERITY_ORDER = [t.label for t in sorted(SeverityTier, reverse=True)]  # critical first

_CONTENT_TYPES = {
    "csv": ("text/csv; charset=utf-8", "surfacescan_export.csv"),
    "json": ("application/json", "surfacescan_export.json"),
    "jsonl": ("application/x-ndjson", "surfacescan_export.jsonl"),
    "xlsx": (
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "surfacescan_export.xlsx",
    ),
}


def _csv_arg(name: str) -> list[str]:
    # "high,critical" -> ["high", "critical"]
    return [x.strip().lower() for x in (request.args.get(name) or "").split(",") if x.strip()]


def filter_entries(
    entries: list[dict[str, Any]], severities: list[str], sources: list[str], q: str
) -> list[dict[str, Any]]:
    def pass_filters(e: dict[str, Any]) -> bool:
        if severities and str(e.get("severity", "")).lower() not in severities:
            return False
        if sources and str(e.get("source", "")).lower() not in sources:
            return False
        if q:
            attrs = e.get("attributes") or {}
            s = (
                f"{e.get('name', '')} {e.get('source', '')} {e.get('severityReasons', '')} "
                f"{e.get('responsibleUser', '')} {attrs.get('path', '')} {attrs.get('publisher', '')}"
            )
            if q not in s.lower():
                return False
        return True

    return [e for e in entries if pass_filters(e)]


def summarize(entries: list[dict[str, Any]]) -> dict[str, Any]:
    by_severity = {label: 0 for label in SEVERITY_ORDER}
    for e in entries:
        sev = str(e.get("severity", "")).lower()
        if sev in by_severity:
            by_severity[sev] += 1
    publishers = Counter(
        (e.get("attributes") or {}).get("publisher", "")
        for e in entries
        if (e.get("attributes") or {}).get("publisher")
    )
    return {
        "total": len(entries),
        "bySeverity": by_severity,
        "bySource": dict(Counter(str(e.get("source", "")) for e in entries).most_common()),
        "byCategory": dict(Counter(str(e.get("category", "")) for e in entries).most_common()),
        "topPublishers": [{"publisher": p, "count": n} for p, n in publishers.most_common(8)],
    }


def build_app(inventory_path: str | Path, max_entries: int = 5000) -> Flask:
    app = Flask(__name__)
    inventory_path = Path(inventory_path)

    def current() -> list[dict[str, Any]]:
        # re-read every time, the console may have rewritten the document
        entries = load_inventory(inventory_path)
        q = (request.args.get("q") or "").lower().strip()
        return filter_entries(entries, _csv_arg("severity"), _csv_arg("source"), q)

    @app.get("/api/ping")
    def ping():
        return jsonify({"ok": True, "inventory": str(inventory_path), "exists": inventory_path.exists()})

    @app.get("/api/entries")
    def entries():
        rows = current()
        return jsonify({"total": len(rows), "entries": rows[:max_entries]})

    @app.get("/api/summary")
    def summary():
        return jsonify(summarize(current()))

    # export endpoint: export filtered entries in various formats (CSV, JSON, JSONL, XLSX)
    @app.get("/api/export")
    def export_current():
        """
        export the filtered inventory.
        format=csv (default) | json | jsonl | xlsx
        """
        fmt = (request.args.get("format") or "csv").lower()
        if fmt not in _CONTENT_TYPES:
            return (
                jsonify({"error": f"unknown format: {fmt}", "hint": "use csv, json, jsonl or xlsx"}),
                400,
            )

        rows = current()
        try:
            if fmt == "json":
                doc = {"generatedBy": GENERATED_BY, "entryCount": len(rows), "entries": rows}
                body: bytes = to_json_text(doc).encode("utf-8")
            elif fmt == "jsonl":
                body = to_jsonl_text(rows).encode("utf-8")
            elif fmt == "xlsx":
                body = to_xlsx_bytes(rows)
            else:
                body = to_csv_bytes(rows)
        except ExportError as e:
            return jsonify({"error": str(e)}), 400

        ctype, filename = _CONTENT_TYPES[fmt]
        resp = make_response(body)
        resp.headers["Content-Type"] = ctype
        resp.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
        return resp

    return app


def run_dashboard(cfg: Config | None = None, inventory_path: str | Path | None = None) -> None:
    cfg = cfg or load_config()
    app = build_app(inventory_path or cfg.output_path, max_entries=cfg.max_entries)
    log.info("dashboard listening on http://%s:%s", cfg.host, cfg.port)
    if HAVE_WAITRESS and _serve is not None:
        _serve(app, host=cfg.host, port=cfg.port)
    else:
        app.run(host=cfg.host, port=cfg.port, debug=False, use_reloader=False)
