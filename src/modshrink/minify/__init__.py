"""Per-file-type minification of workspace content."""

from .json_minify import minify_json, minify_json_text
from .png import minify_png, recompress_png
from .service import minify, select_transforms
from .xml_minify import minify_xml, minify_xml_bytes

__all__ = [
    "minify",
    "minify_json",
    "minify_json_text",
    "minify_png",
    "minify_xml",
    "minify_xml_bytes",
    "recompress_png",
    "select_transforms",
]
