# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: record types shared by the collectors, the engine, and the exporter.

RawFact is what a collector hands us: a name, a location string, the collector's source kind,
and a free-form string->string attribute map whose expected keys depend on the source kind.
NormalizedRecord is what the engine hands back: the canonical schema with category, scope,
responsible user, explanation, severity tier and reasons. both are frozen, nothing mutates them
after construction.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

from collections.abc import Mapping  # type hint for read-only attribute maps
from dataclasses import dataclass, field, fields  # frozen record types
from enum import Enum, IntEnum  # source kinds and ordinal severity tiers
from types import MappingProxyType  # read-only view over the copied attribute dict
from typing import Any  # type hint for loosely typed collector payloads


class SourceKind(str, Enum):
    """collector identifiers the engine knows how to score."""

    REGISTRY = "registry"
    REGISTRY_MSI = "registry-msi"
    PERSISTENCE = "persistence"
    SERVICE = "service"
    FILESYSTEM = "filesystem"
    OS_CATALOG = "os_catalog"

    @classmethod
    def parse(cls, value: str) -> SourceKind | None:
        # exact match only, anything else is an unrecognized source
        try:
            return cls(value)
        except ValueError:
            return None


class SeverityTier(IntEnum):
    """ordinal risk level, low < medium < high < critical."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3

    @property
    def label(self) -> str:
        return self.name.lower()

    def lowered(self) -> SeverityTier:
        # one step down, never below low
        return SeverityTier(max(self.value - 1, SeverityTier.LOW.value))


# categories
WIN32 = "Win32"
DRIVER = "Driver"
SHARED_SERVICE = "SharedService"
SERVICE = "Service"
PORTABLE = "Portable"
UWP = "UWP"

# scopes
PER_MACHINE = "per-machine"
PER_USER = "per-user"

# sentinel for "no responsible user could be determined"
NO_USER = "N/A"


def _frozen_map(data: Mapping[str, str] | None) -> Mapping[str, str]:
    return MappingProxyType(dict(data or {}))


@dataclass(frozen=True)
class RawFact:
    name: str = ""  # display label, may be empty
    path: str = ""  # install path, binary path or command line depending on source
    source: str = ""  # collector identifier, see SourceKind
    attributes: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        # take a private read-only copy so the caller's dict can't change us later
        object.__setattr__(self, "attributes", _frozen_map(self.attributes))

    def __reduce__(self):
        # mappingproxy does not pickle, ship a plain dict and re-freeze on load
        return (type(self), (self.name, self.path, self.source, dict(self.attributes)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RawFact:
        """
        Build a fact from loosely typed collector output (JSON, etc).
        Accepts ``source`` or ``sourceKind`` and ``attributes`` or ``rawMetadata``.
        Every value is coerced to str and None becomes "".
        """

        def _s(v: Any) -> str:
            return "" if v is None else str(v)

        raw_attrs = data.get("attributes")
        if raw_attrs is None:
            raw_attrs = data.get("rawMetadata")
        attrs = (
            {str(k): _s(v) for k, v in raw_attrs.items()} if isinstance(raw_attrs, Mapping) else {}
        )
        source = data.get("source")
        if source is None:
            source = data.get("sourceKind")
        return cls(
            name=_s(data.get("name")),
            path=_s(data.get("path")),
            source=_s(source),
            attributes=attrs,
        )


@dataclass(frozen=True)
class NormalizedRecord:
    name: str
    source: str
    category: str  # Win32 | Driver | SharedService | Service | Portable | UWP
    scope: str  # per-machine | per-user
    responsible_user: str  # SID / account, or N/A
    explanation: str
    severity_tier: SeverityTier
    severity_reasons: str  # "; " joined, never empty
    attributes: Mapping[str, str] = field(hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _frozen_map(self.attributes))

    def __reduce__(self):
        values = tuple(getattr(self, f.name) for f in fields(self))
        return (type(self), values[:-1] + (dict(self.attributes),))

    @property
    def severity(self) -> str:
        return self.severity_tier.label

    @property
    def path(self) -> str:
        return self.attributes.get("path", "")

    def to_dict(self) -> dict[str, Any]:
        # shape written into the inventory document
        return {
            "name": self.name,
            "category": self.category,
            "scope": self.scope,
            "source": self.source,
            "severity": self.severity,
            "severityReasons": self.severity_reasons,
            "explanation": self.explanation,
            "responsibleUser": self.responsible_user,
            "attributes": dict(self.attributes),
        }
