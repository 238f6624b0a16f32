"""Parallel, fail-fast minification of a Workspace.

Every file whose extension has an enabled transform becomes one task on a
bounded thread pool. The first failure sets a shared stop flag: tasks that
have not started yet return without touching their file, queued futures are
cancelled and the failure is raised to the caller.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from pathlib import Path, PurePosixPath

from modshrink.core.config import PipelineConfig
from modshrink.core.logging import get_logger
from modshrink.core.progress import ProgressSink, resolve_progress
from modshrink.core.workspace import Workspace

from .json_minify import minify_json
from .png import minify_png
from .xml_minify import minify_xml

log = get_logger(__name__)

Transform = Callable[[Path, str], None]


def select_transforms(config: PipelineConfig) -> dict[str, Transform]:
    """Map case-sensitive file extensions to the transforms enabled for this run."""
    transforms: dict[str, Transform] = {}
    if config.minify_json:
        transforms["json"] = minify_json
    if config.minify_images:
        transforms["png"] = minify_png
    if config.minify_tiles:
        transforms["tmx"] = minify_xml
        transforms["tsx"] = minify_xml
    return transforms


def _extension(rel_path: str) -> str:
    return PurePosixPath(rel_path).suffix[1:]


def minify(
    workspace: Workspace,
    config: PipelineConfig,
    progress: ProgressSink | None = None,
) -> None:
    """Rewrite matching workspace files in place.

    Args:
        workspace: Extracted mod content
        config: Run configuration (transform toggles and worker count)
        progress: Optional progress sink

    Raises:
        FileError: The first per-file failure, naming the file's relative path
    """
    transforms = select_transforms(config)
    if not transforms:
        log.verbose("minification disabled, workspace left untouched")
        return

    jobs = [
        (rel, abs_path, transforms[ext])
        for rel, abs_path in workspace
        if (ext := _extension(rel)) in transforms
    ]
    workers = config.workers or os.cpu_count() or 1
    log.verbose(f"minifying {len(jobs)} of {len(workspace)} files with {workers} workers")

    stop = threading.Event()

    def run(rel: str, abs_path: Path, transform: Transform) -> None:
        if stop.is_set():
            return
        try:
            transform(abs_path, rel)
        except BaseException:
            stop.set()
            raise

    with resolve_progress(progress).bar(
        len(jobs), "[2/4] minifying files", "[2/4] files minified"
    ) as bar:
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="modshrink-minify")
        try:
            pending: set[Future[None]] = {executor.submit(run, *job) for job in jobs}
            while pending:
                done, pending = wait(pending, return_when=FIRST_EXCEPTION)
                for future in done:
                    exc = future.exception()
                    if exc is not None:
                        raise exc
                    bar.advance()
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
