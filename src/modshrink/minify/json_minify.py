"""JSON minification with JSON5-tolerant parsing."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import json5

from modshrink.core.errors import MalformedJsonError, UnsupportedEncodingError, WorkspaceIOError
from modshrink.core.logging import get_logger

from .encodings import legacy_encoding_for

log = get_logger(__name__)

_BOM = "\ufeff"


def decode_json_text(data: bytes, rel_path: str) -> str:
    """Decode JSON bytes, falling back to the i18n locale table.

    Raises:
        UnsupportedEncodingError: Bytes are not UTF-8 and no legacy encoding applies
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        encoding = legacy_encoding_for(rel_path)
        if encoding is None:
            raise UnsupportedEncodingError(rel_path) from e
        log.debug(f"decoding '{rel_path}' as {encoding}")
        text = data.decode(encoding, errors="replace")
    return text.removeprefix(_BOM)


def minify_json_text(text: str, rel_path: str = "<string>") -> str:
    """Parse relaxed JSON and serialize it compactly.

    Strict JSON goes through the standard parser, which copes with deep
    nesting; anything else is retried under JSON5 rules. Key order is kept as
    encountered; non-ASCII text is written as-is.

    Raises:
        MalformedJsonError: Text is not JSON, even under JSON5 rules, or nests too deeply
    """
    try:
        try:
            value: Any = json.loads(text)
        except json.JSONDecodeError:
            value = json5.loads(text)
    except ValueError as e:
        raise MalformedJsonError(f"failed parsing json file '{rel_path}'", path=rel_path) from e
    except RecursionError as e:
        raise _too_deep(rel_path) from e

    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
    except ValueError as e:
        raise MalformedJsonError(
            f"json file '{rel_path}' holds a non-finite number", path=rel_path
        ) from e
    except RecursionError as e:
        raise _too_deep(rel_path) from e


def _too_deep(rel_path: str) -> MalformedJsonError:
    return MalformedJsonError(f"json file '{rel_path}' is nested too deeply", path=rel_path)


def minify_json(path: Path, rel_path: str) -> None:
    try:
        data = path.read_bytes()
    except OSError as e:
        raise WorkspaceIOError(f"failed reading json file '{rel_path}'", path=rel_path) from e
    minified = minify_json_text(decode_json_text(data, rel_path), rel_path)
    try:
        path.write_text(minified, encoding="utf-8")
    except OSError as e:
        raise WorkspaceIOError(f"failed writing json file '{rel_path}'", path=rel_path) from e
