"""Lossless PNG recompression.

Images go through oxipng at its strongest preset: every filter and colour-type
or bit-depth reduction is tried, all ancillary chunks are stripped and the
image data is deflated with libdeflate at level 12. Transparency and palettes
survive; pixel values never change.
"""

from __future__ import annotations

import os
import struct
from pathlib import Path

import oxipng

from modshrink.core.errors import ImageCodecError, WorkspaceIOError
from modshrink.core.logging import get_logger

log = get_logger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

OXIPNG_LEVEL = 6
LIBDEFLATE_LEVEL = 12


def _is_animated(data: bytes) -> bool:
    """Tell whether an animation control chunk precedes the image data."""
    if not data.startswith(PNG_SIGNATURE):
        return False
    pos = len(PNG_SIGNATURE)
    while pos + 8 <= len(data):
        (length,) = struct.unpack(">I", data[pos : pos + 4])
        chunk_type = data[pos + 4 : pos + 8]
        if chunk_type == b"acTL":
            return True
        if chunk_type in (b"IDAT", b"IEND"):
            return False
        pos += 12 + length
    return False


def recompress_png(data: bytes, rel_path: str = "<bytes>") -> bytes | None:
    """Recompress PNG bytes with maximum effort.

    Args:
        data: Original PNG file content
        rel_path: Path used in log and error messages

    Returns:
        The optimized bytes, or None if the image is left as-is

    Raises:
        ImageCodecError: The image cannot be decoded or re-encoded
    """
    # Only the first frame of an animation would be optimized.
    if _is_animated(data):
        log.debug(f"skipping png '{rel_path}': animated")
        return None

    try:
        return oxipng.optimize_from_memory(
            data,
            level=OXIPNG_LEVEL,
            strip=oxipng.StripChunks.all(),
            deflate=oxipng.Deflaters.libdeflater(LIBDEFLATE_LEVEL),
        )
    except oxipng.PngError as e:
        raise ImageCodecError(f"failed minifying png file '{rel_path}'", path=rel_path) from e


def minify_png(path: Path, rel_path: str) -> None:
    try:
        st = path.stat()
        data = path.read_bytes()
    except OSError as e:
        raise WorkspaceIOError(f"failed reading png file '{rel_path}'", path=rel_path) from e

    encoded = recompress_png(data, rel_path)
    if encoded is None:
        return
    if len(encoded) >= len(data):
        log.debug(f"keeping png '{rel_path}': recompression saves nothing")
        return

    try:
        path.write_bytes(encoded)
        os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns))
    except OSError as e:
        raise WorkspaceIOError(f"failed writing png file '{rel_path}'", path=rel_path) from e
    log.debug(f"png '{rel_path}': {len(data)} -> {len(encoded)} bytes")
