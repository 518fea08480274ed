# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: turn raw collector facts into normalized inventory records. for each fact we run the four
attribute inferencers and the severity calculator picked for its source kind, then assemble one
record. no classification logic lives here, this module only stitches the pieces together.

normalize() never fails and never looks at any other fact, so normalize_all() can fan the work
out to a thread pool; results always come back in input order and with the same length.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

from collections.abc import Iterable  # type hint for fact sequences
from concurrent.futures import ThreadPoolExecutor  # optional parallel classification

from algorithm.inference import (
    infer_category,
    infer_explanation,
    infer_responsible_user,
    infer_scope,
)
from algorithm.markers import basename
from algorithm.records import NormalizedRecord, RawFact
from algorithm.severity import compute_severity


def normalize(fact: RawFact) -> NormalizedRecord:
    severity = compute_severity(fact)
    reasons = severity.joined()

    # copy the collector's attributes and add the derived keys so consumers read one map
    attributes = dict(fact.attributes)
    attributes["path"] = fact.path
    attributes["severityTier"] = severity.tier.label
    attributes["severityReasons"] = reasons

    return NormalizedRecord(
        name=fact.name or basename(fact.path),  # only filled in when the collector left it empty
        source=fact.source,
        category=infer_category(fact),
        scope=infer_scope(fact),
        responsible_user=infer_responsible_user(fact),
        explanation=infer_explanation(fact),
        severity_tier=severity.tier,
        severity_reasons=reasons,
        attributes=attributes,
    )


def normalize_all(facts: Iterable[RawFact], workers: int = 1) -> list[NormalizedRecord]:
    """Normalize every fact, preserving order. ``workers > 1`` classifies on a thread pool."""
    items = list(facts)
    if workers <= 1 or len(items) < 2:
        return [normalize(f) for f in items]
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="normalize") as pool:
        return list(pool.map(normalize, items))  # map() yields in submission order
