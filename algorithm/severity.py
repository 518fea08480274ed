# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: assign a severity tier (low, medium, high, critical) and an ordered list of reasons to a raw
fact. there is one calculator per collector source kind and a dispatcher that picks the right one,
falling back to a neutral "unknown source" verdict so every input gets classified.

how scoring works
each calculator threads an immutable Severity value through its rule checks. a firing signal
appends its reason and lifts the tier to the max of the current tier and the signal's tier, so
risk never adds up: the record is as bad as its single worst indicator. every reason that fired
is kept, not only the one that set the final tier.

the one exception is the persistence trusted-path mitigation. a persistence target living under
System32 / SysWOW64 / Program Files knocks the tier down exactly one step (never below low) and
records why. nothing else ever moves a tier downward.

if no signal fires, the calculator records a single baseline reason so the reasons list is
never empty.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

from collections.abc import Callable  # type hint for the calculator capability
from dataclasses import dataclass  # immutable accumulator

from algorithm.inference import DRIVER_SERVICE_TYPES, infer_scope
from algorithm.markers import (
    APPDATA_MARKERS,
    LOCAL_SYSTEM_ACCOUNTS,
    PACKAGED_APP_STORE_MARKER,
    PROGRAM_FILES_MARKERS,
    TEMP_MARKERS,
    TRUSTED_MARKERS,
    attr,
    basename,
    contains_any,
    has_double_extension,
    is_expected_winlogon,
    lower,
)
from algorithm.records import PER_USER, RawFact, SeverityTier, SourceKind

LOW = SeverityTier.LOW
MEDIUM = SeverityTier.MEDIUM
HIGH = SeverityTier.HIGH
CRITICAL = SeverityTier.CRITICAL

UNKNOWN_SOURCE_REASON = "Unknown source — insufficient data for severity scoring"

RUN_MECHANISMS = frozenset({"run_key", "run_once_key"})


@dataclass(frozen=True)
class Severity:
    """Accumulated verdict for one fact: current tier plus every reason that fired, in order."""

    tier: SeverityTier = LOW
    reasons: tuple[str, ...] = ()

    def raised(self, tier: SeverityTier, reason: str) -> Severity:
        # append unconditionally, tier only ever goes up here
        return Severity(max(self.tier, tier), self.reasons + (reason,))

    def mitigated(self, reason: str) -> Severity:
        # the single downward step: one tier, only when above low
        if self.tier == LOW:
            return self
        return Severity(self.tier.lowered(), self.reasons + (reason,))

    def or_baseline(self, reason: str) -> Severity:
        return self if self.reasons else Severity(self.tier, (reason,))

    def joined(self) -> str:
        return "; ".join(self.reasons)


# capability: one pure function per source kind
SeverityCalculator = Callable[[RawFact], Severity]


def registry_severity(fact: RawFact) -> Severity:
    """Uninstall-key and MSI records: temp install paths and missing installer metadata."""
    a = fact.attributes
    publisher = attr(a, "publisher")
    path = fact.path or attr(a, "path")  # some collectors only fill the attribute
    s = Severity()

    if contains_any(path, TEMP_MARKERS):
        s = s.raised(HIGH, "Binary installed to TEMP directory — strong indicator of dropper activity")
    if not publisher:
        s = s.raised(MEDIUM, "No publisher recorded — cannot verify software origin")
    if not attr(a, "displayVersion"):
        s = s.raised(MEDIUM, "No version string — unusual for legitimate installers")
    if not attr(a, "installDate"):
        s = s.raised(
            MEDIUM, "No install date — may indicate manual registry write rather than installer"
        )
    if infer_scope(fact) == PER_USER and not publisher:
        s = s.raised(MEDIUM, "Per-user install with no publisher — elevated suspicion")

    return s.or_baseline("Standard installer registration with publisher, version, and date")


def persistence_severity(fact: RawFact) -> Severity:
    """Autorun surfaces: mechanism first, then the location of the target binary."""
    a = fact.attributes
    mechanism = attr(a, "mechanism")
    machine_wide = attr(a, "context") == "machine"
    path = fact.path or attr(a, "rawValue")
    s = Severity()

    # Winlogon runs as SYSTEM before the user shell, so it is judged on its own
    if mechanism == "winlogon_value":
        if is_expected_winlogon(path):
            return s.raised(
                LOW, "Winlogon value present but points to standard Windows binary — expected"
            )
        return s.raised(
            CRITICAL, "Winlogon value override — executes as SYSTEM before user shell loads"
        )

    if mechanism in RUN_MECHANISMS:
        if machine_wide:
            s = s.raised(HIGH, "HKLM Run key — executes for all users at every logon")
        else:
            s = s.raised(MEDIUM, "HKU Run key — executes at logon for a specific user")
    elif mechanism == "startup_folder":
        s = s.raised(MEDIUM, "Startup folder — executes on logon")

    if contains_any(path, TEMP_MARKERS):
        s = s.raised(CRITICAL, "Persistence target in TEMP/AppData Temp — strong malware indicator")
    elif contains_any(path, APPDATA_MARKERS):
        s = s.raised(HIGH, "Persistence target in AppData — common malware install path")
    elif contains_any(path, TRUSTED_MARKERS):
        s = s.mitigated("Path within trusted system/program directory — reduces suspicion")

    return s.or_baseline("Persistence mechanism registered — verify binary is expected")


def service_severity(fact: RawFact) -> Severity:
    """SCM services and drivers: type, binary presence, account, start type, failure actions."""
    a = fact.attributes
    service_type = attr(a, "serviceType")
    start_type = attr(a, "startType")
    account = lower(attr(a, "objectName")).strip()
    path = attr(a, "resolvedPath") or fact.path
    s = Severity()

    if service_type in DRIVER_SERVICE_TYPES:
        s = s.raised(HIGH, "Kernel/filesystem driver — ring-0 execution, no memory protection")
    if path and attr(a, "fileExists") == "false":
        s = s.raised(
            CRITICAL,
            "Registered binary missing from disk — entry orphaned or binary deleted post-install",
        )
    if not account or account in LOCAL_SYSTEM_ACCOUNTS or "localsystem" in account:
        s = s.raised(MEDIUM, "Runs as LocalSystem — highest privilege level on the machine")
    if start_type in ("Boot", "System"):
        s = s.raised(
            MEDIUM, "Start type Boot/System — loads before user space and before AV initialises"
        )
    elif start_type == "Auto" and s.tier == LOW:
        s = s.raised(MEDIUM, "Auto-start service — persistent background execution")
    if attr(a, "failureActions") == "run_program":
        command = attr(a, "failureCommand") or "(unspecified)"
        s = s.raised(HIGH, f"Failure action executes binary on crash: {command}")
    if contains_any(path, TEMP_MARKERS):
        s = s.raised(CRITICAL, "Service binary in TEMP directory — immediate investigation required")

    return s.or_baseline("Demand-start service with standard configuration — low risk baseline")


def filesystem_severity(fact: RawFact) -> Severity:
    """Loose executables: where they live, and whether the name hides a second extension."""
    path = fact.path
    s = Severity()

    if contains_any(path, TEMP_MARKERS):
        s = s.raised(CRITICAL, "Executable in TEMP — classic dropper/stager location")
    elif contains_any(path, APPDATA_MARKERS):
        s = s.raised(HIGH, "Executable in AppData — common malware install path")
    elif contains_any(path, PROGRAM_FILES_MARKERS):
        s = s.raised(LOW, "Executable in Program Files — standard install location")
    else:
        s = s.raised(MEDIUM, "Executable outside standard install paths — verify origin")

    if has_double_extension(fact.name or basename(path)):
        s = s.raised(CRITICAL, "Double extension detected — masquerading as document file")

    return s


def os_catalog_severity(fact: RawFact) -> Severity:
    path = lower(fact.path)
    if path and PACKAGED_APP_STORE_MARKER not in path:
        return Severity().raised(
            MEDIUM, "AppX package installed outside WindowsApps — possible sideloaded package"
        )
    return Severity().raised(
        LOW, "Packaged UWP app in WindowsApps — sandboxed execution with declared capabilities"
    )


def unknown_source_severity(fact: RawFact) -> Severity:
    return Severity().raised(LOW, UNKNOWN_SOURCE_REASON)


CALCULATORS: dict[SourceKind, SeverityCalculator] = {
    SourceKind.REGISTRY: registry_severity,
    SourceKind.REGISTRY_MSI: registry_severity,
    SourceKind.PERSISTENCE: persistence_severity,
    SourceKind.SERVICE: service_severity,
    SourceKind.FILESYSTEM: filesystem_severity,
    SourceKind.OS_CATALOG: os_catalog_severity,
}


def calculator_for(source: str) -> SeverityCalculator:
    kind = SourceKind.parse(source)
    if kind is None:
        return unknown_source_severity
    return CALCULATORS.get(kind, unknown_source_severity)


def compute_severity(fact: RawFact) -> Severity:
    return calculator_for(fact.source)(fact)
