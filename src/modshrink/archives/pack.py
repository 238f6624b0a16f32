"""Re-emission of a Workspace as a single output archive.

The tar+zstd writer is fully deterministic: fixed header metadata, members
in workspace order and a fixed compression level. The zip writer keeps host
modification times and is therefore not reproducible byte for byte.
"""

from __future__ import annotations

import contextlib
import os
import tarfile
import tempfile
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

import zstandard

from modshrink.core.errors import ArchiveWriteError
from modshrink.core.logging import get_logger
from modshrink.core.progress import ProgressSink, ProgressTask, resolve_progress
from modshrink.core.workspace import Workspace

from .types import ARCHIVE_SUFFIXES, ArchiveFormat

log = get_logger(__name__)

ZSTD_LEVEL = 19
OUTPUT_SUFFIX = ".out"

Packer = Callable[[Workspace, BinaryIO, ProgressTask], None]


def output_base_name(path: Path) -> Path:
    """Compute the extension-less output path for an input path.

    Strips one known archive suffix and any ``.out`` left by an earlier run,
    then appends ``.out``; the parent folder is kept.

    Examples:
        file.zip -> file.out
        /temp/file-1.0.0.tar.zst -> /temp/file-1.0.0.out
    """
    name = path.name or "file"
    for suffix in ARCHIVE_SUFFIXES:
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break
    if name.endswith(OUTPUT_SUFFIX) and name != OUTPUT_SUFFIX:
        name = name[: -len(OUTPUT_SUFFIX)]
    out = f"{name}{OUTPUT_SUFFIX}"

    if path.name:
        return path.parent / out
    return Path(out)


def output_path(path: Path, fmt: ArchiveFormat) -> Path:
    base = output_base_name(path)
    return base.with_name(f"{base.name}.{fmt.extension}")


def _tmp_path_for_atomic_write(target: Path) -> Path:
    return target.with_name(f".{target.name}.tmp.{os.getpid()}")


def _tarinfo_deterministic(name: str, size: int) -> tarfile.TarInfo:
    ti = tarfile.TarInfo(name=name)
    ti.size = size
    ti.mtime = 0
    ti.uid = 0
    ti.gid = 0
    ti.uname = ""
    ti.gname = ""
    ti.mode = 0o644
    return ti


def archive(
    workspace: Workspace,
    fmt: ArchiveFormat,
    source: Path,
    progress: ProgressSink | None = None,
) -> Path:
    """Write every workspace file into one archive beside the source.

    Args:
        workspace: Extracted (and possibly minified) mod content
        fmt: Output container format
        source: Original input path, used to name the output
        progress: Optional progress sink

    Returns:
        Path of the written archive

    Raises:
        ArchiveWriteError: If writing, flushing or renaming the output fails
    """
    out = output_path(source, fmt)
    tmp = _tmp_path_for_atomic_write(out)
    packer = _PACKERS[fmt]

    try:
        with resolve_progress(progress).bar(
            len(workspace), "[3/4] creating archive", "[3/4] archive created"
        ) as bar:
            with open(tmp, "wb") as fh:
                packer(workspace, fh, bar)
                fh.flush()
                os.fsync(fh.fileno())
        os.replace(tmp, out)
    except (OSError, zstandard.ZstdError, tarfile.TarError) as e:
        raise ArchiveWriteError(f"failed writing archive '{out}'", path=str(out)) from e
    finally:
        # Gone after a successful rename; otherwise a partial archive.
        _remove_quietly(tmp)

    log.verbose(f"wrote {len(workspace)} files to '{out}'")
    return out


def _remove_quietly(path: Path) -> None:
    with contextlib.suppress(FileNotFoundError):
        path.unlink()


def pack_tar_zst(workspace: Workspace, fh: BinaryIO, bar: ProgressTask) -> None:
    # The tar stream is spooled first so the zstd frame can carry its size.
    with tempfile.TemporaryFile() as spool:
        with tarfile.open(fileobj=spool, mode="w|", format=tarfile.PAX_FORMAT) as tf:
            for rel, abs_path in workspace:
                try:
                    with open(abs_path, "rb") as src:
                        size = os.fstat(src.fileno()).st_size
                        tf.addfile(_tarinfo_deterministic(rel, size), src)
                except OSError as e:
                    raise ArchiveWriteError(f"failed adding file '{rel}' to tar", path=rel) from e
                bar.advance()

        size = spool.tell()
        spool.seek(0)
        cctx = zstandard.ZstdCompressor(
            level=ZSTD_LEVEL, write_checksum=True, write_content_size=True
        )
        cctx.copy_stream(spool, fh, size=size)


def pack_zip(workspace: Workspace, fh: BinaryIO, bar: ProgressTask) -> None:
    # Host mtimes are kept; pre-1980 stamps are clamped instead of failing.
    with zipfile.ZipFile(
        fh, "w", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False
    ) as zf:
        for rel, abs_path in workspace:
            try:
                zf.write(abs_path, arcname=rel)
            except OSError as e:
                raise ArchiveWriteError(
                    f"failed adding file '{rel}' to zip archive", path=rel
                ) from e
            bar.advance()


_PACKERS: dict[ArchiveFormat, Packer] = {
    ArchiveFormat.ZSTD: pack_tar_zst,
    ArchiveFormat.ZIP: pack_zip,
}
