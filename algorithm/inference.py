# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: derive the descriptive half of a normalized record from a raw fact: what kind of thing it
is (category), who it applies to (scope), which account owns it (responsible user), and a fixed
sentence telling an analyst why this source matters. every function here is pure and total.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

from algorithm.markers import USER_HIVE_MARKERS, attr, contains_any
from algorithm.records import (
    DRIVER,
    NO_USER,
    PER_MACHINE,
    PER_USER,
    PORTABLE,
    SERVICE,
    SHARED_SERVICE,
    UWP,
    WIN32,
    RawFact,
    SourceKind,
)

DRIVER_SERVICE_TYPES = frozenset({"KernelDriver", "FilesystemDriver"})

_CATEGORY_BY_SOURCE: dict[SourceKind, str] = {
    SourceKind.OS_CATALOG: UWP,
    SourceKind.REGISTRY: WIN32,
    SourceKind.REGISTRY_MSI: WIN32,
    SourceKind.PERSISTENCE: SERVICE,
    SourceKind.FILESYSTEM: PORTABLE,
}

_EXPLANATIONS: dict[SourceKind, str] = {
    SourceKind.REGISTRY: (
        "Found in uninstall registry keys; indicates installed software with standard "
        "registration and likely regular execution footprint."
    ),
    SourceKind.REGISTRY_MSI: (
        "Found in MSI UserData registry records; confirms Windows Installer-managed software "
        "and potential machine-wide impact."
    ),
    SourceKind.OS_CATALOG: (
        "Found in Windows AppX catalog; indicates packaged UWP app presence that can execute "
        "in user context."
    ),
    SourceKind.FILESYSTEM: (
        "Found by executable file scan; may indicate manually deployed or portable software "
        "that can run directly."
    ),
}

_PERSISTENCE_GENERIC = (
    "Found in persistence surface; can auto-start and maintain recurring execution on this host."
)
_SERVICE_GENERIC = (
    "Windows service registered in SCM; runs at boot or on-demand, potentially as SYSTEM "
    "or a privileged account."
)
_DRIVER_EXPLANATION = (
    "Kernel/filesystem driver registered in SCM; runs in ring-0 with full hardware access, "
    "no OS memory protection."
)


def infer_category(fact: RawFact) -> str:
    kind = SourceKind.parse(fact.source)
    if kind is SourceKind.SERVICE:
        service_type = attr(fact.attributes, "serviceType")
        if service_type in DRIVER_SERVICE_TYPES:
            return DRIVER
        if service_type == "SharedProcess":
            return SHARED_SERVICE
        return SERVICE
    if kind is None:
        return PORTABLE  # safe default for sources we don't know
    return _CATEGORY_BY_SOURCE[kind]


def infer_scope(fact: RawFact) -> str:
    kind = SourceKind.parse(fact.source)
    if kind is SourceKind.SERVICE:
        return PER_MACHINE  # SCM entries are always machine-wide
    if kind is SourceKind.PERSISTENCE:
        # a missing context reads as "" which is not "machine"
        return PER_MACHINE if attr(fact.attributes, "context") == "machine" else PER_USER
    if contains_any(attr(fact.attributes, "registryPath"), USER_HIVE_MARKERS):
        return PER_USER
    return PER_MACHINE


def infer_responsible_user(fact: RawFact) -> str:
    return attr(fact.attributes, "userSid") or NO_USER


def infer_explanation(fact: RawFact) -> str:
    kind = SourceKind.parse(fact.source)
    if kind is SourceKind.PERSISTENCE:
        mechanism = attr(fact.attributes, "mechanism")
        if mechanism:
            return (
                f"Found in persistence surface ({mechanism}); can auto-start and maintain "
                "recurring execution on this host."
            )
        return _PERSISTENCE_GENERIC
    if kind is SourceKind.SERVICE:
        service_type = attr(fact.attributes, "serviceType")
        if service_type in DRIVER_SERVICE_TYPES:
            return _DRIVER_EXPLANATION
        if service_type:
            return (
                f"Windows service ({service_type}) registered in SCM; runs at boot or on-demand, "
                "potentially as SYSTEM or a privileged account."
            )
        return _SERVICE_GENERIC
    if kind is None:
        return (
            f"Found by scanner source {fact.source}; indicates executable presence that may "
            "affect host attack surface."
        )
    return _EXPLANATIONS[kind]
