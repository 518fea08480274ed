from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import pytest

from algorithm.records import RawFact


@pytest.fixture
def make_fact():
    """Factory for raw facts with keyword attributes."""

    def _make(source: str, name: str = "", path: str = "", **attributes: str) -> RawFact:
        return RawFact(name=name, path=path, source=source, attributes=attributes)

    return _make


@pytest.fixture
def sample_facts() -> list[dict[str, Any]]:
    """One fact per collector, the way external collectors write them."""
    return [
        {
            "name": "7-Zip",
            "path": "C:\\Program Files\\7-Zip\\",
            "sourceKind": "registry",
            "rawMetadata": {
                "publisher": "Igor Pavlov",
                "displayVersion": "23.01",
                "installDate": "20240110",
                "registryPath": "HKEY_LOCAL_MACHINE\\SOFTWARE\\Microsoft\\Windows\\CurrentVersion\\Uninstall\\7-Zip",
            },
        },
        {
            "name": "Updater",
            "path": "C:\\Users\\bob\\AppData\\Local\\Temp\\upd.exe",
            "source": "persistence",
            "attributes": {"mechanism": "run_key", "context": "user", "userSid": "S-1-5-21-1000"},
        },
        {
            "name": "Spooler",
            "path": "C:\\Windows\\System32\\spoolsv.exe",
            "source": "service",
            "attributes": {
                "serviceType": "OwnProcess",
                "startType": "Auto",
                "objectName": "LocalSystem",
                "resolvedPath": "C:\\Windows\\System32\\spoolsv.exe",
                "fileExists": "true",
            },
        },
        {
            "name": "invoice.pdf.exe",
            "path": "C:\\Program Files\\Tools\\invoice.pdf.exe",
            "source": "filesystem",
            "attributes": {},
        },
        {"name": "Mystery", "path": "", "source": "wmi", "attributes": {}},
    ]


@pytest.fixture
def facts_file(tmp_path: Path, sample_facts) -> Path:
    p = tmp_path / "raw_facts.json"
    p.write_text(json.dumps(sample_facts), encoding="utf-8")
    return p


@pytest.fixture
def clean_env(monkeypatch, tmp_path: Path) -> Path:
    """Point config at an empty base dir and drop any SURFACESCAN_* overrides."""
    for key in list(os.environ):
        if key.startswith("SURFACESCAN_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("SURFACESCAN_BASE_DIR", str(tmp_path))
    return tmp_path
