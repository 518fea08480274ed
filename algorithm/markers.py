# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: tiny string helpers and the fixed marker tables the severity calculators match against.
location checks are case-insensitive substring tests against one of these tuples. Winlogon values
are the exception: they are split into targets and each target must be a canonical shell binary.
there are no regular expressions and no fuzzy matching anywhere.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

import ntpath  # Windows path rules even when we run on another platform
from collections.abc import Iterable, Mapping  # type hints for marker tuples and attribute maps

# temp / staging directories (Windows and POSIX spellings, plus the unexpanded env var)
TEMP_MARKERS: tuple[str, ...] = (
    "\\temp\\",
    "\\tmp\\",
    "/temp/",
    "/tmp/",
    "%temp%",
    "\\appdata\\local\\temp\\",
)

# per-user profile locations that malware likes to install into
APPDATA_MARKERS: tuple[str, ...] = ("\\appdata\\roaming\\", "\\appdata\\local\\")

# trusted system / program directories (used by the persistence mitigation step)
TRUSTED_MARKERS: tuple[str, ...] = (
    "\\windows\\system32\\",
    "\\windows\\syswow64\\",
    "c:\\program files\\",
    "c:\\program files (x86)\\",
)

# any Program Files tree, on any drive (filesystem "standard location")
PROGRAM_FILES_MARKERS: tuple[str, ...] = ("\\program files\\", "\\program files (x86)\\")

# canonical packaged-app store directory
PACKAGED_APP_STORE_MARKER = "windowsapps"

# the two binaries a healthy Winlogon Shell / Userinit value points at
WINLOGON_EXPECTED: tuple[str, ...] = ("explorer.exe", "userinit.exe")

# directories those binaries may be referenced from (drive letter stripped first)
WINLOGON_DIRS: tuple[str, ...] = (
    "",
    "\\windows",
    "\\windows\\system32",
    "%systemroot%",
    "%systemroot%\\system32",
    "%windir%",
    "%windir%\\system32",
)

# per-user registry hive prefixes
USER_HIVE_MARKERS: tuple[str, ...] = ("hkey_current_user", "hkcu\\", "hkey_users\\", "hku\\")

# double-extension masquerade: a document extension directly followed by an executable one
DOCUMENT_EXTENSIONS: tuple[str, ...] = (
    "pdf",
    "doc",
    "docx",
    "txt",
    "rtf",
    "jpg",
    "jpeg",
    "png",
    "xls",
    "xlsx",
    "ppt",
    "pptx",
)
EXECUTABLE_EXTENSIONS: tuple[str, ...] = ("exe", "scr", "com", "pif", "bat", "cmd")

LOCAL_SYSTEM_ACCOUNTS: tuple[str, ...] = ("localsystem", "system", "nt authority\\system")


def lower(x: object) -> str:
    # lowercase a value safely, None becomes the empty string
    return str(x).lower() if x is not None else ""


def contains_any(haystack: str, needles: Iterable[str]) -> bool:
    # case-insensitive substring test, True if any needle appears in the haystack
    h = lower(haystack)
    return any(n in h for n in needles)


def attr(attributes: Mapping[str, str], key: str) -> str:
    # read an attribute, absent or None values read as ""
    value = attributes.get(key)
    return str(value) if value is not None else ""


def basename(p: str) -> str:
    # last path component of a Windows or POSIX path, trailing separators ignored
    return ntpath.basename(p.rstrip("\\/"))


def has_double_extension(name: str) -> bool:
    """True for names like ``invoice.pdf.exe`` that hide an executable behind a document extension."""
    n = lower(name).strip()
    return any(
        n.endswith(f".{doc}.{exe}") for doc in DOCUMENT_EXTENSIONS for exe in EXECUTABLE_EXTENSIONS
    )


def winlogon_targets(value: str) -> list[str]:
    # Shell / Userinit hold a comma separated list; "userinit.exe," has one target
    parts = (p.strip().strip('"').strip() for p in lower(value).split(","))
    return [p for p in parts if p]


def is_expected_winlogon(value: str) -> bool:
    """
    True only when every target in a Winlogon value is explorer.exe or userinit.exe, either bare
    or under the Windows / System32 directory. ``explorer.exe, evil.exe`` is not expected.
    """
    targets = winlogon_targets(value)
    if not targets:
        return False
    for target in targets:
        folder, binary = ntpath.split(target)
        _, folder = ntpath.splitdrive(folder.rstrip("\\/"))
        if binary not in WINLOGON_EXPECTED or folder not in WINLOGON_DIRS:
            return False
    return True
