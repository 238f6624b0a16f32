"""Scratch workspace holding the extracted mod content.

A Workspace owns a temporary directory and the ordered list of relative file
paths inside it. Extraction builds one through WorkspaceBuilder, which removes
the scratch directory again if extraction fails part-way, so callers only ever
see a fully populated Workspace.
"""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Iterator
from pathlib import Path
from types import TracebackType
from typing import BinaryIO

from modshrink.core.errors import CleanupError, InvalidPathError, WorkspaceIOError
from modshrink.core.logging import get_logger
from modshrink.core.progress import ProgressSink, resolve_progress

log = get_logger(__name__)

SCRATCH_PREFIX = "modshrink-"


def normalize_entry_name(name: str) -> str:
    """Turn an untrusted entry name into a safe relative path.

    Backslashes count as separators, empty and ``.`` components are dropped and
    ``..`` pops one component. Names that are absolute, contain NUL, are not
    valid UTF-8 (surrogate-escaped), climb above the root or end up empty are
    rejected.

    Args:
        name: Entry name as found in the archive or on disk

    Returns:
        Normalized ``/``-separated relative path

    Raises:
        InvalidPathError: If the name is unsafe or not valid UTF-8
    """
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        raise InvalidPathError(name, "not a valid UTF-8 path") from None

    if "\x00" in name:
        raise InvalidPathError(name, "contains a NUL byte")

    unified = name.replace("\\", "/")
    if unified.startswith("/"):
        raise InvalidPathError(name, "absolute path")
    if len(unified) >= 3 and unified[0].isalpha() and unified[1:3] == ":/":
        raise InvalidPathError(name, "absolute path")

    parts: list[str] = []
    for part in unified.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if not parts:
                raise InvalidPathError(name, "escapes the destination root")
            parts.pop()
            continue
        parts.append(part)

    if not parts:
        raise InvalidPathError(name, "empty path")
    return "/".join(parts)


class Workspace:
    """Scratch directory plus the ordered files extracted into it."""

    def __init__(
        self,
        root: Path,
        files: list[str] | tuple[str, ...],
        progress: ProgressSink | None = None,
    ) -> None:
        self.root = root
        self.files: tuple[str, ...] = tuple(files)
        self._progress = progress
        self._disposed = False

    def path_of(self, rel_path: str) -> Path:
        return self.root / rel_path

    def __iter__(self) -> Iterator[tuple[str, Path]]:
        for rel in self.files:
            yield rel, self.root / rel

    def __len__(self) -> int:
        return len(self.files)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self, progress: ProgressSink | None = None) -> None:
        """Remove the scratch directory and everything left in it.

        Calling dispose more than once is a no-op. Without an explicit sink the
        one the workspace was built with is used.

        Raises:
            CleanupError: If the directory cannot be removed
        """
        if self._disposed:
            return

        sink = progress if progress is not None else self._progress
        with resolve_progress(sink).spinner("[4/4] cleaning up", "[4/4] cleaned up"):
            try:
                shutil.rmtree(self.root)
            except FileNotFoundError:
                pass
            except OSError as e:
                raise CleanupError(str(self.root)) from e
        self._disposed = True
        log.debug(f"removed workspace {self.root}")

    def __enter__(self) -> Workspace:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            self.dispose()
        except CleanupError as cleanup_exc:
            if exc is None:
                raise
            # The earlier failure stays the reported cause.
            log.warning(f"{cleanup_exc.message} (after an earlier failure)")


class WorkspaceBuilder:
    """Populate a fresh scratch directory entry by entry.

    Used as a context manager: if the block raises, the scratch directory is
    removed before the exception propagates.
    """

    def __init__(self, progress: ProgressSink | None = None) -> None:
        self._progress = progress
        try:
            self.root = Path(tempfile.mkdtemp(prefix=SCRATCH_PREFIX))
        except OSError as e:
            raise WorkspaceIOError("failed creating temp dir") from e
        self._files: list[str] = []
        self._seen: set[str] = set()

    def add_file(self, name: str, src: BinaryIO) -> str:
        """Copy one entry's bytes into the workspace.

        Args:
            name: Untrusted entry name
            src: Readable binary stream with the entry's content

        Returns:
            Normalized relative path the bytes were written to
        """
        rel = normalize_entry_name(name)
        dst = self.root / rel
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            with open(dst, "wb") as out:
                shutil.copyfileobj(src, out)
        except OSError as e:
            raise WorkspaceIOError(f"failed writing entry '{rel}'", path=rel) from e
        # Last writer wins; the path keeps its first position.
        if rel not in self._seen:
            self._seen.add(rel)
            self._files.append(rel)
        return rel

    def build(self) -> Workspace:
        return Workspace(self.root, self._files, self._progress)

    def discard(self) -> None:
        shutil.rmtree(self.root, ignore_errors=True)

    def __enter__(self) -> WorkspaceBuilder:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is not None:
            self.discard()
