# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: load raw facts written by external collectors (registry walker, autorun walker, AppX catalog
walker, ...) from a JSON file. accepts either a bare list of fact objects or an envelope like
{"entries": [...]}. a missing file means there is nothing to classify yet, so we return an empty
list; malformed JSON is a real problem and is allowed to raise.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

import json  # for parsing the facts file
import logging  # for reporting skipped entries
import os  # for checking if the facts file exists
from typing import Any  # type hint for flexible JSON values

from algorithm.records import RawFact

log = logging.getLogger(__name__)


def _unwrap(data: Any) -> list[Any]:
    if isinstance(data, list):  # bare list of facts
        return data
    if isinstance(data, dict) and isinstance(data.get("entries"), list):  # envelope
        return data["entries"]
    return []  # anything else carries no facts


def load_facts(path: str) -> list[RawFact]:
    if not os.path.exists(path):  # no facts file yet
        log.info("facts file %s not found, nothing to load", path)
        return []
    with open(path, encoding="utf-8") as f:  # open the JSON file as UTF-8 text
        data = json.load(f)  # malformed JSON raises json.JSONDecodeError on purpose

    facts: list[RawFact] = []
    for i, item in enumerate(_unwrap(data)):
        if not isinstance(item, dict):  # skip junk rows, keep the rest of the file usable
            log.warning("skipping fact #%d in %s: expected an object, got %s", i, path, type(item).__name__)
            continue
        facts.append(RawFact.from_dict(item))
    log.debug("loaded %d facts from %s", len(facts), path)
    return facts
