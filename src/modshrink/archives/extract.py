"""Extraction of a mod source into a scratch Workspace.

Three strategies share one contract: zip archives, tar+zstd archives and
plain folders all end up as a Workspace whose file list follows the source
order. Entry names are untrusted and go through normalize_entry_name before
anything is written.
"""

from __future__ import annotations

import os
import stat
import tarfile
import zipfile
import zlib
from collections.abc import Callable
from pathlib import Path

import zstandard

from modshrink.core.errors import ArchiveFormatError, InvalidPathError, WorkspaceIOError
from modshrink.core.logging import get_logger
from modshrink.core.progress import ProgressSink, resolve_progress
from modshrink.core.workspace import Workspace, WorkspaceBuilder

from .detect import detect_source
from .ignore import IgnoreRules
from .types import SourceKind

log = get_logger(__name__)

_ZIP_ENTRY_ERRORS = (zipfile.BadZipFile, EOFError, zlib.error, NotImplementedError, RuntimeError)

Extractor = Callable[[Path, ProgressSink], Workspace]


def extract(source: Path, progress: ProgressSink | None = None) -> Workspace:
    """Extract a mod archive or copy a mod folder into a fresh Workspace.

    Args:
        source: Path to a *.zip, *.tzst or *.tar.zst archive, or a folder
        progress: Optional progress sink

    Returns:
        Fully populated Workspace

    Raises:
        UnsupportedInputError: Source is neither a supported archive nor a folder
        InvalidPathError: An entry name is not UTF-8 or escapes the workspace
        ArchiveFormatError: The archive container is corrupt
        WorkspaceIOError: Writing the scratch copy failed
    """
    kind = detect_source(source)
    workspace = _EXTRACTORS[kind](source, resolve_progress(progress))
    log.verbose(f"extracted {len(workspace)} files from {kind.value} source '{source}'")
    return workspace


def _zip_is_symlink(info: zipfile.ZipInfo) -> bool:
    mode = info.external_attr >> 16
    return stat.S_ISLNK(mode)


def extract_zip(source: Path, progress: ProgressSink) -> Workspace:
    try:
        zf = zipfile.ZipFile(source, "r")
    except UnicodeDecodeError as e:
        raise InvalidPathError(str(source), "zip entry name is not valid UTF-8") from e
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as e:
        raise ArchiveFormatError(f"failed reading zip file '{source}'", path=str(source)) from e
    except OSError as e:
        raise WorkspaceIOError(f"failed opening zip file '{source}'", path=str(source)) from e

    with zf, WorkspaceBuilder(progress) as builder:
        infos = zf.infolist()
        with progress.bar(len(infos), "[1/4] extracting data", "[1/4] data extracted") as bar:
            for info in infos:
                if info.is_dir() or _zip_is_symlink(info):
                    bar.advance()
                    continue
                try:
                    with zf.open(info, "r") as entry:
                        builder.add_file(info.filename, entry)
                except _ZIP_ENTRY_ERRORS as e:
                    raise ArchiveFormatError(
                        f"failed extracting zip entry '{info.filename}'", path=info.filename
                    ) from e
                bar.advance()
        return builder.build()


def extract_tar_zst(source: Path, progress: ProgressSink) -> Workspace:
    try:
        fh = open(source, "rb")
    except OSError as e:
        raise WorkspaceIOError(f"failed opening tar.zst file '{source}'", path=str(source)) from e

    dctx = zstandard.ZstdDecompressor()
    with fh, dctx.stream_reader(fh) as reader, WorkspaceBuilder(progress) as builder:
        with progress.spinner("[1/4] extracting data", "[1/4] data extracted"):
            try:
                # Stream mode: entries are visited once, in archive order.
                with tarfile.open(fileobj=reader, mode="r|", encoding="utf-8") as tf:
                    for member in tf:
                        if not member.isreg():
                            continue
                        entry = tf.extractfile(member)
                        if entry is None:
                            continue
                        with entry:
                            builder.add_file(member.name, entry)
            except (tarfile.TarError, zstandard.ZstdError, EOFError) as e:
                raise ArchiveFormatError(
                    f"failed reading tar.zst file '{source}'", path=str(source)
                ) from e
        return builder.build()


def copy_dir(source: Path, progress: ProgressSink) -> Workspace:
    with WorkspaceBuilder(progress) as builder:
        with progress.spinner("[1/4] copying folder", "[1/4] folder copied"):
            _copy_tree(source, "", IgnoreRules().descend(source, ""), builder)
        return builder.build()


def _copy_tree(
    abs_dir: Path, rel_dir: str, rules: IgnoreRules, builder: WorkspaceBuilder
) -> None:
    try:
        entries = sorted(os.scandir(abs_dir), key=lambda e: e.name)
    except OSError as e:
        raise WorkspaceIOError(f"failed traversing folder '{abs_dir}'") from e

    for entry in entries:
        rel = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = entry.is_file(follow_symlinks=False)
        except OSError as e:
            raise WorkspaceIOError(f"failed reading folder entry '{rel}'") from e

        if not (is_dir or is_file) or rules.is_ignored(rel, is_dir=is_dir):
            continue

        if is_dir:
            sub = Path(entry.path)
            _copy_tree(sub, rel, rules.descend(sub, rel), builder)
            continue

        try:
            with open(entry.path, "rb") as src:
                builder.add_file(rel, src)
        except OSError as e:
            raise WorkspaceIOError(f"failed copying file '{rel}'", path=rel) from e


_EXTRACTORS: dict[SourceKind, Extractor] = {
    SourceKind.ZIP: extract_zip,
    SourceKind.TAR_ZST: extract_tar_zst,
    SourceKind.DIRECTORY: copy_dir,
}
