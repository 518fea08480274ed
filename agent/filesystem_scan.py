# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: walk a set of directories for loose executables (portable tools, dropped binaries, scripts)
and emit one "filesystem" raw fact per file. records size, modification time and a SHA256 hash.
hashes are cached by (path, mtime) so re-scans skip files that did not change. unreadable
directories and files that disappear mid-walk are skipped, a scan never crashes.
"""

from __future__ import annotations  # lets us use string annotations before classes are defined

import hashlib  # for computing SHA256 hashes of executables
import logging  # for noting skipped directories
import os  # for walking directories and reading file stats
from collections.abc import Iterable  # type hint for root lists

from algorithm.records import RawFact, SourceKind

log = logging.getLogger(__name__)

EXECUTABLE_SUFFIXES = (".exe", ".dll", ".ps1", ".bat", ".cmd", ".scr", ".msi")


def is_executable(filename: str) -> bool:
    return filename.lower().endswith(EXECUTABLE_SUFFIXES)


class _Hasher:
    """small SHA256 hasher with naive cache keyed by (path, mtime)."""

    def __init__(self) -> None:
        self._cache: dict[tuple[str, float], str] = {}  # (path, mtime) -> hex digest

    def sha256_file(self, path: str, mtime: float) -> str | None:
        key = (path, mtime)
        if key in self._cache:  # same file version as last time
            return self._cache[key]
        try:
            h = hashlib.sha256()
            with open(path, "rb") as f:
                for chunk in iter(lambda: f.read(1024 * 1024), b""):  # 1MB chunks
                    h.update(chunk)
        except OSError:  # gone, locked, or no permission
            return None
        digest = h.hexdigest()
        self._cache[key] = digest
        return digest


def _owner_hint(path: str) -> str:
    # C:\Users\<name>\... belongs to <name>, everything else is treated as SYSTEM
    parts = path.replace("/", "\\").split("\\")
    lowered = [p.lower() for p in parts]
    if "users" in lowered:
        i = lowered.index("users")
        if i + 1 < len(parts) - 1 and lowered[i + 1] not in ("public", "default"):
            return parts[i + 1]
    return "SYSTEM"


class FilesystemScanner:
    def __init__(self, roots: Iterable[str], hash_max_mb: float = 64.0) -> None:
        self.roots = [str(r) for r in roots]  # directories to walk
        self.hash_max_bytes = int(hash_max_mb * 1024 * 1024)  # don't hash anything bigger
        self._hasher = _Hasher()

    def _fact(self, root: str, path: str, filename: str) -> RawFact | None:
        try:
            st = os.stat(path)
        except OSError:  # vanished between listing and stat
            return None
        attrs = {
            "root": root,
            "user": _owner_hint(path),
            "sizeBytes": str(st.st_size),
            "modified": str(int(st.st_mtime)),
        }
        if st.st_size <= self.hash_max_bytes:
            digest = self._hasher.sha256_file(path, st.st_mtime)
            if digest:
                attrs["sha256"] = digest
        return RawFact(name=filename, path=path, source=SourceKind.FILESYSTEM.value, attributes=attrs)

    def scan(self) -> list[RawFact]:
        facts: list[RawFact] = []
        for root in self.roots:
            if not os.path.isdir(root):
                log.debug("scan root %s does not exist, skipping", root)
                continue

            def _skip(err: OSError) -> None:
                log.debug("cannot read %s: %s", getattr(err, "filename", "?"), err)

            for dirpath, dirnames, filenames in os.walk(root, onerror=_skip):
                dirnames.sort()  # walk subdirectories in a stable order
                for filename in sorted(filenames):  # stable output order
                    if not is_executable(filename):
                        continue
                    fact = self._fact(root, os.path.join(dirpath, filename), filename)
                    if fact is not None:
                        facts.append(fact)
        log.info("filesystem scan found %d executables under %d roots", len(facts), len(self.roots))
        return facts
