# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: enumerate Windows services through psutil and emit one "service" raw fact per service.
the binary path is pulled out of the service command line, expanded, and checked on disk so the
engine can spot orphaned registrations. only works on Windows; everywhere else (or if psutil
can't reach the service control manager) it returns an empty list.
"""

from __future__ import annotations  # lets us use string annotations before functions are defined

import logging  # for reporting services we could not read
import ntpath  # %VAR% expansion follows Windows rules on every platform
import os  # for checking binaries exist
from typing import Any  # type hint for psutil's service info dict

import psutil  # library for getting service information

from algorithm.records import RawFact, SourceKind

log = logging.getLogger(__name__)

# psutil start types -> SCM names the engine scores on
_START_TYPES = {"automatic": "Auto", "manual": "Demand", "disabled": "Disabled"}


def binary_from_command(command: str) -> str:
    """
    Extract the executable from a service command line.
    Handles quoted paths, unquoted paths with spaces up to ".exe", and the
    ``\\??\\`` / ``\\SystemRoot\\`` prefixes drivers use.
    """
    cmd = (command or "").strip()
    if not cmd:
        return ""
    if cmd.startswith('"'):  # "C:\Program Files\x\svc.exe" -k arg
        end = cmd.find('"', 1)
        exe = cmd[1:end] if end > 0 else cmd[1:]
    else:
        low = cmd.lower()
        idx = low.find(".exe")
        exe = cmd[: idx + 4] if idx >= 0 else cmd.split(" ", 1)[0]
    if exe.startswith("\\??\\"):
        exe = exe[4:]
    if exe.lower().startswith("\\systemroot\\"):
        exe = "%SystemRoot%\\" + exe[len("\\systemroot\\") :]
    elif exe.lower().startswith("system32\\"):  # relative driver paths
        exe = "%SystemRoot%\\" + exe
    return ntpath.expandvars(exe)


def service_fact(info: dict[str, Any]) -> RawFact:
    """Map psutil's WindowsService.as_dict() output onto a service raw fact."""
    command = str(info.get("binpath") or "")
    resolved = binary_from_command(command)
    attrs = {
        "serviceName": str(info.get("name") or ""),
        "startType": _START_TYPES.get(str(info.get("start_type") or "").lower(), ""),
        "objectName": str(info.get("username") or ""),
        "status": str(info.get("status") or ""),
        "commandLine": command,
        "resolvedPath": resolved,
        "fileExists": ("true" if os.path.exists(resolved) else "false") if resolved else "",
    }
    if info.get("description"):
        attrs["description"] = str(info["description"])
    return RawFact(
        name=str(info.get("display_name") or info.get("name") or ""),
        path=resolved,
        source=SourceKind.SERVICE.value,
        attributes=attrs,
    )


def scan_services() -> list[RawFact]:
    iter_services = getattr(psutil, "win_service_iter", None)
    if iter_services is None:  # not on Windows
        return []
    facts: list[RawFact] = []
    try:
        services = list(iter_services())
    except (psutil.Error, OSError) as e:  # SCM not reachable
        log.warning("cannot enumerate services: %s", e)
        return []
    for svc in services:
        try:
            facts.append(service_fact(svc.as_dict()))
        except (psutil.NoSuchProcess, psutil.AccessDenied, OSError) as e:  # removed or locked mid-scan
            log.debug("skipping service %r: %s", svc, e)
    log.info("service scan found %d services", len(facts))
    return facts
