"""modshrink core: errors, logging, progress and the scratch workspace.

Configuration and the pipeline driver depend on the archive and minify
packages and are imported from their own modules
(``modshrink.core.config``, ``modshrink.core.pipeline``).
"""

from modshrink.core.errors import (
    ArchiveFormatError,
    ArchiveWriteError,
    CleanupError,
    ConfigError,
    FileError,
    ImageCodecError,
    InvalidPathError,
    MalformedJsonError,
    ModShrinkError,
    PipelineError,
    UnsupportedEncodingError,
    UnsupportedInputError,
    WorkspaceIOError,
    XmlSyntaxError,
    format_error_chain,
)
from modshrink.core.log_bus import LogBus, LogRecord, get_log_bus
from modshrink.core.logging import (
    VerbosityLevel,
    get_logger,
    get_verbosity,
    set_colors,
    set_log_sink,
    set_verbosity,
)
from modshrink.core.progress import NullProgress, ProgressSink, ProgressTask, RichProgress
from modshrink.core.workspace import Workspace, WorkspaceBuilder, normalize_entry_name

__all__ = [
    # Errors
    "ModShrinkError",
    "ConfigError",
    "PipelineError",
    "UnsupportedInputError",
    "FileError",
    "InvalidPathError",
    "ArchiveFormatError",
    "WorkspaceIOError",
    "MalformedJsonError",
    "UnsupportedEncodingError",
    "ImageCodecError",
    "XmlSyntaxError",
    "ArchiveWriteError",
    "CleanupError",
    "format_error_chain",
    # Logging
    "LogBus",
    "LogRecord",
    "get_log_bus",
    "VerbosityLevel",
    "get_logger",
    "get_verbosity",
    "set_colors",
    "set_log_sink",
    "set_verbosity",
    # Progress
    "NullProgress",
    "ProgressSink",
    "ProgressTask",
    "RichProgress",
    # Workspace
    "Workspace",
    "WorkspaceBuilder",
    "normalize_entry_name",
]
