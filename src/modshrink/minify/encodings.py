"""Legacy encodings of localized i18n JSON files.

Some mods ship translation files that were saved in the locale's legacy code
page. These are only recognized as ``i18n/<locale>.json``; anything else that
is not UTF-8 is rejected.
"""

from __future__ import annotations

from pathlib import PurePosixPath

# Fixed set of known legacy-localized files; a new locale needs a new entry here.
LOCALE_ENCODINGS: dict[str, str] = {
    "ja": "cp932",  # Shift-JIS (Windows-31J)
    "zh": "utf-8",
    "ko": "utf-8",
    "hu": "cp1250",
    "ru": "cp1251",
    "de": "cp1252",
    "es": "cp1252",
    "fr": "cp1252",
    "it": "cp1252",
    "pt": "cp1252",
    "tr": "cp1254",
}


def legacy_encoding_for(rel_path: str) -> str | None:
    """Return the codec for a non-UTF-8 i18n file, or None if it has none.

    Args:
        rel_path: Workspace-relative path with ``/`` separators
    """
    path = PurePosixPath(rel_path)
    if path.parent.name != "i18n" or path.suffix != ".json":
        return None
    return LOCALE_ENCODINGS.get(path.stem)
