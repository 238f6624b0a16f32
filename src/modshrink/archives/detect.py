"""Source kind detection.

Detection is by file name suffix only; archive content is never sniffed, so a
misnamed file fails later with a container error instead of being guessed.
"""

from __future__ import annotations

from pathlib import Path

from modshrink.core.errors import UnsupportedInputError

from .types import SourceKind

_SUFFIX_MAP: list[tuple[str, SourceKind]] = [
    (".tar.zst", SourceKind.TAR_ZST),
    (".tzst", SourceKind.TAR_ZST),
    (".zip", SourceKind.ZIP),
]


def detect_from_suffix(path: Path) -> SourceKind | None:
    name = path.name
    for suffix, kind in _SUFFIX_MAP:
        if name.endswith(suffix):
            return kind
    return None


def detect_source(path: Path) -> SourceKind:
    """Pick the extraction strategy for a source path.

    Raises:
        UnsupportedInputError: If the path is neither a supported archive nor a directory
    """
    if path.is_file():
        kind = detect_from_suffix(path)
        if kind is None:
            raise UnsupportedInputError(str(path), "unsupported file type")
        return kind
    if path.is_dir():
        return SourceKind.DIRECTORY
    raise UnsupportedInputError(str(path), "unsupported file or directory")
