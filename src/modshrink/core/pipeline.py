"""Pipeline driver: extract, minify, archive, clean up.

Stages run one after another on the caller's thread. The workspace is
disposed when the run leaves its ``with`` block, whether or not a stage
failed.
"""

from __future__ import annotations

from pathlib import Path

from modshrink.archives.extract import extract
from modshrink.archives.pack import archive
from modshrink.core.config import PipelineConfig
from modshrink.core.errors import ModShrinkError, PipelineError
from modshrink.core.logging import get_logger
from modshrink.core.progress import ProgressSink, resolve_progress
from modshrink.minify.service import minify

log = get_logger(__name__)


def run_pipeline(config: PipelineConfig, progress: ProgressSink | None = None) -> Path:
    """Repackage one mod source into a minified archive.

    Args:
        config: Run configuration
        progress: Optional progress sink shared by all stages

    Returns:
        Path of the written archive

    Raises:
        PipelineError: A stage failed; the stage error is chained as its cause
        CleanupError: Every stage succeeded but the scratch directory could not be removed
    """
    sink = resolve_progress(progress)
    log.verbose(f"repackaging '{config.source}' as {config.format.value}")

    try:
        workspace = extract(config.source, sink)
    except ModShrinkError as e:
        raise PipelineError("extraction") from e

    with workspace:
        try:
            minify(workspace, config, sink)
        except ModShrinkError as e:
            raise PipelineError("minification") from e

        try:
            out = archive(workspace, config.format, config.source, sink)
        except ModShrinkError as e:
            raise PipelineError("archiving") from e

    log.verbose(f"archive written to '{out}'")
    return out
