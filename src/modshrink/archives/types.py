"""Archive format types shared by extraction and packing."""

from __future__ import annotations

from enum import StrEnum


class ArchiveFormat(StrEnum):
    ZSTD = "zstd"
    ZIP = "zip"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]


class SourceKind(StrEnum):
    ZIP = "zip"
    TAR_ZST = "tar.zst"
    DIRECTORY = "directory"


_EXTENSIONS: dict[ArchiveFormat, str] = {
    ArchiveFormat.ZSTD: "tzst",
    ArchiveFormat.ZIP: "zip",
}

# Longest first so ".tar.zst" wins over shorter matches.
ARCHIVE_SUFFIXES: tuple[str, ...] = (".tar.zst", ".tzst", ".zip")
