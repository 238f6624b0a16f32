"""Unit tests for core.pipeline module."""

from __future__ import annotations

import io
import shutil
import tarfile
import zipfile
from pathlib import Path

import pytest
import zstandard

from modshrink.archives.types import ArchiveFormat
from modshrink.core.config import PipelineConfig
from modshrink.core.errors import (
    CleanupError,
    ImageCodecError,
    PipelineError,
    UnsupportedInputError,
    format_error_chain,
)
from modshrink.core.pipeline import run_pipeline

PRETTY_JSON = b'{\n  "name": "mod",\n  "version": "1.0.0"\n}\n'


def _tzst_contents(path: Path) -> dict[str, bytes]:
    data = zstandard.ZstdDecompressor().stream_reader(io.BytesIO(path.read_bytes())).read()
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tf:
        return {m.name: tf.extractfile(m).read() for m in tf.getmembers()}


def test_zip_to_tzst(tmp_path, scratch_dir, make_zip, make_png):
    png = make_png()
    source = make_zip(
        tmp_path / "mod.zip",
        [
            ("manifest.json", PRETTY_JSON),
            ("maps/town.tmx", b"<map>\n  <layer/>\n</map>\n"),
            ("img/a.png", png),
            ("notes.txt", b" as is \n"),
        ],
    )

    out = run_pipeline(PipelineConfig(source=source))

    assert out == tmp_path / "mod.out.tzst"
    contents = _tzst_contents(out)
    assert list(contents) == ["manifest.json", "maps/town.tmx", "img/a.png", "notes.txt"]
    assert contents["manifest.json"] == b'{"name":"mod","version":"1.0.0"}'
    assert contents["maps/town.tmx"] == b"<map><layer/></map>"
    assert len(contents["img/a.png"]) < len(png)
    assert contents["notes.txt"] == b" as is \n"
    assert list(scratch_dir.iterdir()) == []


def test_folder_to_zip_with_toggles(tmp_path, scratch_dir):
    mod = tmp_path / "my-mod"
    (mod / "i18n").mkdir(parents=True)
    (mod / "i18n" / "ja.json").write_bytes('{ "hi" : "\u3084\u3042" }'.encode("cp932"))
    (mod / "settings.json").write_bytes(PRETTY_JSON)
    (mod / ".gitignore").write_text("*.bak\n")
    (mod / "old.bak").write_text("backup")

    config = PipelineConfig(source=mod, format=ArchiveFormat.ZIP, minify_images=False)
    out = run_pipeline(config)

    assert out == tmp_path / "my-mod.out.zip"
    with zipfile.ZipFile(out) as zf:
        assert zf.namelist() == ["i18n/ja.json", "settings.json"]
        assert zf.read("i18n/ja.json").decode("utf-8") == '{"hi":"\u3084\u3042"}'
    assert list(scratch_dir.iterdir()) == []


def test_reports_every_stage(tmp_path, scratch_dir, make_zip, recording_progress):
    source = make_zip(tmp_path / "mod.zip", {"a.json": PRETTY_JSON})

    run_pipeline(PipelineConfig(source=source), recording_progress)

    assert recording_progress.messages() == [
        "[1/4] extracting data",
        "[2/4] minifying files",
        "[3/4] creating archive",
        "[4/4] cleaning up",
    ]
    assert all(task.finished for task in recording_progress.tasks)


def test_extraction_failure(tmp_path, scratch_dir):
    source = tmp_path / "mod.rar"
    source.write_bytes(b"Rar!")

    with pytest.raises(PipelineError) as exc_info:
        run_pipeline(PipelineConfig(source=source))

    assert exc_info.value.stage == "extraction"
    assert isinstance(exc_info.value.__cause__, UnsupportedInputError)


def test_minification_failure_writes_nothing_and_cleans_up(tmp_path, scratch_dir, make_zip):
    source = make_zip(tmp_path / "mod.zip", {"a.json": PRETTY_JSON, "bad.png": b"corrupt"})

    with pytest.raises(PipelineError) as exc_info:
        run_pipeline(PipelineConfig(source=source))

    assert exc_info.value.stage == "minification"
    assert isinstance(exc_info.value.__cause__, ImageCodecError)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["home", "mod.zip", "scratch"]
    assert list(scratch_dir.iterdir()) == []


def test_error_chain_reads_stage_then_file(tmp_path, scratch_dir, make_zip):
    source = make_zip(tmp_path / "mod.zip", {"bad.png": b"corrupt"})

    with pytest.raises(PipelineError) as exc_info:
        run_pipeline(PipelineConfig(source=source))

    lines = format_error_chain(exc_info.value)
    assert lines[0] == "error: minification failed"
    assert lines[1] == "  caused by: failed minifying png file 'bad.png'"
    assert len(lines) >= 3


def test_archiving_failure(tmp_path, scratch_dir, make_zip, monkeypatch):
    source = make_zip(tmp_path / "mod.zip", {"a.json": PRETTY_JSON})

    def failing_replace(src, dst):
        raise PermissionError(13, "Permission denied", str(dst))

    monkeypatch.setattr("modshrink.archives.pack.os.replace", failing_replace)
    with pytest.raises(PipelineError) as exc_info:
        run_pipeline(PipelineConfig(source=source))

    assert exc_info.value.stage == "archiving"
    assert list(tmp_path.glob("*.out*")) == []
    assert list(tmp_path.glob(".*")) == []
    assert list(scratch_dir.iterdir()) == []


def test_cleanup_failure_does_not_mask_stage_error(tmp_path, scratch_dir, make_zip, monkeypatch):
    source = make_zip(tmp_path / "mod.zip", {"bad.png": b"corrupt"})

    def failing_rmtree(path, *args, **kwargs):
        raise PermissionError(13, "Permission denied", str(path))

    with monkeypatch.context() as m:
        m.setattr(shutil, "rmtree", failing_rmtree)
        with pytest.raises(PipelineError) as exc_info:
            run_pipeline(PipelineConfig(source=source))

    assert exc_info.value.stage == "minification"


def test_cleanup_failure_after_success_is_reported(tmp_path, scratch_dir, make_zip, monkeypatch):
    source = make_zip(tmp_path / "mod.zip", {"a.json": PRETTY_JSON})

    def failing_rmtree(path, *args, **kwargs):
        raise PermissionError(13, "Permission denied", str(path))

    with monkeypatch.context() as m:
        m.setattr(shutil, "rmtree", failing_rmtree)
        with pytest.raises(CleanupError):
            run_pipeline(PipelineConfig(source=source))

    assert (tmp_path / "mod.out.tzst").is_file()
