"""Ignore-file rules for walking a mod folder.

Mirrors the usual version-control conventions: hidden entries are skipped,
and ``.gitignore`` / ``.ignore`` files apply to everything below the folder
they live in. Rules from deeper folders win over rules from their parents.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pathspec

from modshrink.core.errors import WorkspaceIOError

# Later names override earlier ones within the same folder.
IGNORE_FILE_NAMES: tuple[str, ...] = (".gitignore", ".ignore")


@dataclass(frozen=True)
class IgnoreLevel:
    base: str  # folder relative to the walk root, "" for the root itself
    spec: pathspec.GitIgnoreSpec


class IgnoreRules:
    """Stack of ignore specs collected while descending a tree."""

    def __init__(self, levels: tuple[IgnoreLevel, ...] = ()) -> None:
        self._levels = levels

    def descend(self, abs_dir: Path, rel_dir: str) -> IgnoreRules:
        """Return the rules for ``rel_dir``, adding its own ignore files."""
        lines: list[str] = []
        for name in IGNORE_FILE_NAMES:
            candidate = abs_dir / name
            if not candidate.is_file():
                continue
            try:
                lines.extend(candidate.read_text(encoding="utf-8", errors="replace").splitlines())
            except OSError as e:
                raise WorkspaceIOError(f"failed reading ignore file '{candidate}'") from e
        if not lines:
            return self
        level = IgnoreLevel(base=rel_dir, spec=pathspec.GitIgnoreSpec.from_lines(lines))
        return IgnoreRules(self._levels + (level,))

    def is_ignored(self, rel_path: str, *, is_dir: bool) -> bool:
        if is_hidden(rel_path):
            return True
        for level in reversed(self._levels):
            local = rel_path[len(level.base) + 1 :] if level.base else rel_path
            if is_dir:
                local += "/"
            include = level.spec.check_file(local).include
            if include is not None:
                return include
        return False


def is_hidden(rel_path: str) -> bool:
    return rel_path.rsplit("/", 1)[-1].startswith(".")
