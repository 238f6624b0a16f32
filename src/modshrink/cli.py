"""Command-line interface.

Usage:
    modshrink path/to/mod.zip
    modshrink --format zip --no-images -j 4 path/to/mod-folder

Exit codes:
- 0: archive written, its path printed on stdout
- 1: the run failed, error chain printed on stderr
- 2: invalid command line
"""

from __future__ import annotations

import argparse
import contextlib
import sys
import threading
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

from modshrink import __version__
from modshrink.archives.types import ArchiveFormat
from modshrink.core.config import ConfigResolver, build_pipeline_config
from modshrink.core.errors import ConfigError, ModShrinkError, format_error_chain
from modshrink.core.logging import (
    get_log_sink,
    get_logger,
    set_colors,
    set_log_sink,
    set_verbosity,
)
from modshrink.core.pipeline import run_pipeline
from modshrink.core.progress import NullProgress, ProgressSink, RichProgress

log = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="modshrink",
        description="Repackage a game mod into a smaller archive with minified content.",
    )
    parser.add_argument("path", type=Path, help="mod archive (*.zip, *.tzst, *.tar.zst) or folder")
    parser.add_argument(
        "--no-json",
        dest="minify_json",
        action="store_false",
        default=None,
        help="do not minify JSON files",
    )
    parser.add_argument(
        "--no-images",
        dest="minify_images",
        action="store_false",
        default=None,
        help="do not recompress PNG images",
    )
    parser.add_argument(
        "--no-tiles",
        dest="minify_tiles",
        action="store_false",
        default=None,
        help="do not minify Tiled map and tileset files (tmx, tsx)",
    )
    parser.add_argument(
        "--format",
        choices=[fmt.value for fmt in ArchiveFormat],
        default=None,
        help="output archive format (default: zstd)",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        metavar="N",
        help="number of minification workers (0 = one per CPU)",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-q",
        "--quiet",
        dest="logging_level",
        action="store_const",
        const="quiet",
        help="only show warnings and errors",
    )
    verbosity.add_argument(
        "-v",
        "--verbose",
        dest="logging_level",
        action="store_const",
        const="verbose",
        help="show stage details",
    )
    verbosity.add_argument(
        "--debug",
        dest="logging_level",
        action="store_const",
        const="debug",
        help="show per-file decisions",
    )

    parser.add_argument(
        "--no-progress",
        dest="progress_enabled",
        action="store_false",
        default=None,
        help="do not render progress bars",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        metavar="FILE",
        help="also append the log lines of this run to FILE",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="FILE",
        help="user config file (default: ~/.config/modshrink/config.yaml)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _cli_args(args: argparse.Namespace) -> dict[str, Any]:
    """Map parsed flags to dot-notation config keys; unset flags are left out."""
    mapping = {
        "format": args.format,
        "minify.json": args.minify_json,
        "minify.images": args.minify_images,
        "minify.tiles": args.minify_tiles,
        "minify.workers": args.jobs,
        "logging.level": args.logging_level,
        "logging.file": args.log_file,
        "progress.enabled": args.progress_enabled,
    }
    return {key: value for key, value in mapping.items() if value is not None}


def _make_resolver(args: argparse.Namespace) -> ConfigResolver:
    if args.config is not None and not args.config.is_file():
        raise ConfigError(
            f"config file not found: '{args.config}'",
            "Check the --config path",
        )
    return ConfigResolver(cli_args=_cli_args(args), user_config_path=args.config)


def _make_progress(enabled: bool) -> ProgressSink:
    if not enabled:
        return NullProgress()
    return RichProgress()


@contextlib.contextmanager
def _log_file_sink(path: Path) -> Iterator[None]:
    """Append every published log line to ``path`` while the block runs."""
    try:
        fh = open(path, "a", encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot open log file: '{path}'", "Check the --log-file path") from e

    lock = threading.Lock()

    def _write(line: str) -> None:
        with lock:
            fh.write(line + "\n")

    prev_sink = get_log_sink()
    with fh:
        set_log_sink(_write)
        try:
            yield
        finally:
            set_log_sink(prev_sink)


def run(args: argparse.Namespace) -> Path:
    resolver = _make_resolver(args)
    set_verbosity(resolver.resolve_logging_level())
    set_colors(resolver.resolve_bool("logging.color"))

    config = build_pipeline_config(resolver, args.path)
    progress = _make_progress(resolver.resolve_bool("progress.enabled"))
    log_file = resolver.resolve_log_file()
    capture = _log_file_sink(log_file) if log_file is not None else contextlib.nullcontext()

    with capture:
        log.debug(f"resolved config: {config}")
        return run_pipeline(config, progress)


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments without the program name (default: sys.argv[1:])

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    try:
        out = run(args)
    except ModShrinkError as e:
        for line in format_error_chain(e):
            print(line, file=sys.stderr)
        return 1

    print(out)
    return 0
