"""
Tests for algorithm.normalizer - record assembly, order preservation and idempotence
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from algorithm.normalizer import normalize, normalize_all
from algorithm.records import RawFact, SeverityTier
from algorithm.severity import UNKNOWN_SOURCE_REASON

ALL_SOURCES = ["registry", "registry-msi", "persistence", "service", "filesystem", "os_catalog"]


class TestNormalize:
    """Tests for normalize"""

    @pytest.mark.parametrize("source", ALL_SOURCES)
    def test_every_source_classified(self, make_fact, source):
        """Test every known source yields a tier and non-empty reasons"""
        rec = normalize(make_fact(source))
        assert rec.severity in ("low", "medium", "high", "critical")
        assert rec.severity_reasons

    def test_unknown_source(self, make_fact):
        """Test the unknown-source fallback"""
        rec = normalize(make_fact("usb_history", name="x"))
        assert rec.severity_tier == SeverityTier.LOW
        assert rec.severity_reasons == UNKNOWN_SOURCE_REASON
        assert rec.category == "Portable"

    def test_derived_attribute_keys(self, make_fact):
        """Test path, severityTier and severityReasons are added to the attributes"""
        fact = make_fact("registry", name="Acme", path="C:\\Program Files\\Acme\\", publisher="Acme")
        rec = normalize(fact)
        assert rec.attributes["publisher"] == "Acme"
        assert rec.attributes["path"] == "C:\\Program Files\\Acme\\"
        assert rec.attributes["severityTier"] == rec.severity
        assert rec.attributes["severityReasons"] == rec.severity_reasons
        assert rec.path == fact.path

    def test_input_attributes_untouched(self, make_fact):
        """Test the input fact keeps its original attribute map"""
        fact = make_fact("service", objectName="LocalSystem")
        normalize(fact)
        assert dict(fact.attributes) == {"objectName": "LocalSystem"}

    def test_name_from_path_only_when_empty(self, make_fact):
        """Test an empty name is filled from the path basename, a given name is kept"""
        assert normalize(make_fact("filesystem", path="C:\\Tools\\nc.exe")).name == "nc.exe"
        assert normalize(make_fact("filesystem", name="netcat", path="C:\\Tools\\nc.exe")).name == "netcat"
        assert normalize(make_fact("filesystem")).name == ""

    def test_descriptive_fields(self, make_fact):
        """Test inferencers are wired into the record"""
        rec = normalize(
            make_fact("persistence", name="Upd", mechanism="run_key", context="user", userSid="S-1-5-21-7")
        )
        assert rec.category == "Service"
        assert rec.scope == "per-user"
        assert rec.responsible_user == "S-1-5-21-7"
        assert "(run_key)" in rec.explanation
        assert rec.source == "persistence"

    def test_idempotent(self, make_fact):
        """Test normalizing the same fact twice gives equal records"""
        fact = make_fact(
            "persistence",
            path="C:\\Program Files\\Vendor\\agent.exe",
            mechanism="run_key",
            context="machine",
        )
        assert normalize(fact) == normalize(fact)
        assert normalize(fact).to_dict() == normalize(fact).to_dict()

    def test_headline_scenarios(self, make_fact):
        """Test the headline scenarios end to end"""
        assert normalize(
            make_fact("persistence", path="C:\\Windows\\System32\\explorer.exe", mechanism="winlogon_value")
        ).severity == "low"
        assert normalize(
            make_fact("persistence", path="C:\\evil\\shell.exe", mechanism="winlogon_value")
        ).severity == "critical"
        assert normalize(
            make_fact("filesystem", name="invoice.pdf.exe", path="C:\\Program Files\\x\\invoice.pdf.exe")
        ).severity == "critical"


class TestNormalizeAll:
    """Tests for normalize_all"""

    def _facts(self, n: int) -> list[RawFact]:
        sources = ALL_SOURCES + ["mystery"]
        return [
            RawFact(
                name=f"item{i}",
                path=f"C:\\Tools\\item{i}.exe",
                source=sources[i % len(sources)],
                attributes={"idx": str(i)},
            )
            for i in range(n)
        ]

    def test_empty(self):
        """Test an empty input gives an empty output"""
        assert normalize_all([]) == []
        assert normalize_all([], workers=4) == []

    @pytest.mark.parametrize("workers", [1, 4])
    def test_order_and_length_preserved(self, workers):
        """Test output i is the normalization of input i"""
        facts = self._facts(50)
        out = normalize_all(facts, workers=workers)
        assert len(out) == len(facts)
        for fact, rec in zip(facts, out):
            assert rec == normalize(fact)
            assert rec.attributes["idx"] == fact.attributes["idx"]

    def test_parallel_matches_serial(self):
        """Test the thread pool path gives the same list as the inline path"""
        facts = self._facts(30)
        assert normalize_all(facts, workers=8) == normalize_all(facts, workers=1)

    def test_accepts_iterables(self):
        """Test generators are consumed once and fully"""
        facts = self._facts(5)
        assert len(normalize_all(iter(facts), workers=2)) == 5

    def test_inline_path_skips_pool(self):
        """Test a single worker never creates a thread pool"""
        with patch("algorithm.normalizer.ThreadPoolExecutor") as pool:
            normalize_all(self._facts(3), workers=1)
            pool.assert_not_called()
