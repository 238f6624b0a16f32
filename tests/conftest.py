"""Pytest configuration and fixtures."""

from __future__ import annotations

import io
import os
import sys
import tarfile
import tempfile
import zipfile
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

import pytest

# Add src to path (for 'modshrink.*' imports without an install)
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root / "src"))

import zstandard  # noqa: E402
from PIL import Image, PngImagePlugin  # noqa: E402

from modshrink.core.log_bus import LogRecord, get_log_bus  # noqa: E402
from modshrink.core.logging import (  # noqa: E402
    VerbosityLevel,
    set_colors,
    set_log_sink,
    set_verbosity,
)
from modshrink.core.workspace import Workspace, WorkspaceBuilder  # noqa: E402

Entries = dict[str, bytes] | Iterable[tuple[str, bytes]]


def _items(entries: Entries) -> list[tuple[str, bytes]]:
    if isinstance(entries, dict):
        return list(entries.items())
    return list(entries)


@pytest.fixture(autouse=True)
def _isolate_global_state(tmp_path, monkeypatch):
    """Reset logger state, config env vars and HOME between tests."""
    get_log_bus().clear()
    set_log_sink(None)
    set_verbosity(VerbosityLevel.NORMAL)
    set_colors(False)

    for key in [k for k in os.environ if k.startswith("MODSHRINK_")]:
        monkeypatch.delenv(key)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))

    yield

    set_log_sink(None)
    get_log_bus().clear()
    set_verbosity(VerbosityLevel.NORMAL)


@pytest.fixture
def scratch_dir(tmp_path, monkeypatch) -> Path:
    """Redirect workspace scratch directories into the test's tmp_path."""
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    return scratch


@pytest.fixture
def log_records() -> list[LogRecord]:
    records: list[LogRecord] = []
    get_log_bus().subscribe_all(records.append)
    return records


def write_zip(path: Path, entries: Entries) -> Path:
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in _items(entries):
            zf.writestr(name, data)
    return path


def write_tzst(path: Path, entries: Entries, dirs: Iterable[str] = ()) -> Path:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as tf:
        for name in dirs:
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tf.addfile(info)
        for name, data in _items(entries):
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
    path.write_bytes(zstandard.ZstdCompressor().compress(buf.getvalue()))
    return path


def png_bytes(
    mode: str = "RGBA",
    size: tuple[int, int] = (64, 64),
    *,
    compress_level: int = 0,
    text: dict[str, str] | None = None,
    **save_kwargs,
) -> bytes:
    """Build a PNG with a gradient, stored without compression by default."""
    gradient = Image.linear_gradient("L").resize(size)
    image = gradient if mode == "L" else gradient.convert(mode)
    pnginfo = None
    if text:
        pnginfo = PngImagePlugin.PngInfo()
        for key, value in text.items():
            pnginfo.add_text(key, value)
    out = io.BytesIO()
    image.save(out, format="PNG", compress_level=compress_level, pnginfo=pnginfo, **save_kwargs)
    return out.getvalue()


@pytest.fixture
def make_zip() -> Callable[..., Path]:
    return write_zip


@pytest.fixture
def make_tzst() -> Callable[..., Path]:
    return write_tzst


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    return png_bytes


@pytest.fixture
def make_workspace(scratch_dir) -> Iterator[Callable[[Entries], Workspace]]:
    """Build a Workspace directly from (name, bytes) pairs."""
    created: list[Workspace] = []

    def _make(entries: Entries) -> Workspace:
        with WorkspaceBuilder() as builder:
            for name, data in _items(entries):
                builder.add_file(name, io.BytesIO(data))
            workspace = builder.build()
        created.append(workspace)
        return workspace

    yield _make

    for workspace in created:
        workspace.dispose()


@dataclass
class RecordedTask:
    kind: str
    total: int | None
    message: str
    finish_message: str
    advanced: int = 0
    finished: bool = False

    def advance(self, n: int = 1) -> None:
        self.advanced += n

    def finish(self) -> None:
        self.finished = True

    def __enter__(self) -> RecordedTask:
        return self

    def __exit__(self, *exc: object) -> None:
        self.finish()


@dataclass
class RecordingProgress:
    """Progress sink that keeps every task it hands out."""

    tasks: list[RecordedTask] = field(default_factory=list)

    def bar(self, total: int, message: str, finish_message: str) -> RecordedTask:
        task = RecordedTask("bar", total, message, finish_message)
        self.tasks.append(task)
        return task

    def spinner(self, message: str, finish_message: str) -> RecordedTask:
        task = RecordedTask("spinner", None, message, finish_message)
        self.tasks.append(task)
        return task

    def messages(self) -> list[str]:
        return [task.message for task in self.tasks]


@pytest.fixture
def recording_progress() -> RecordingProgress:
    return RecordingProgress()
