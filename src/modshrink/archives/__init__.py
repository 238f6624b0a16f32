"""Archive extraction and re-emission."""

from .detect import detect_from_suffix, detect_source
from .extract import extract
from .pack import archive, output_base_name, output_path
from .types import ArchiveFormat, SourceKind

__all__ = [
    "ArchiveFormat",
    "SourceKind",
    "archive",
    "detect_from_suffix",
    "detect_source",
    "extract",
    "output_base_name",
    "output_path",
]
