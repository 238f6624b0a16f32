"""Error handling with friendly messages."""

from __future__ import annotations


class ModShrinkError(Exception):
    """Base exception for all modshrink errors."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\nSuggestion: {self.suggestion}"
        return self.message


class ConfigError(ModShrinkError):
    """Configuration error."""

    pass


class PipelineError(ModShrinkError):
    """Pipeline stage failed."""

    def __init__(self, stage: str, message: str | None = None) -> None:
        self.stage = stage
        super().__init__(message or f"{stage} failed")


class UnsupportedInputError(ModShrinkError):
    """Source is neither a supported archive nor a directory."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(
            f"{reason}: '{path}'",
            "Pass a *.zip, *.tzst or *.tar.zst archive, or a folder with the mod's content",
        )


class FileError(ModShrinkError):
    """Error tied to a single file or archive entry."""

    def __init__(
        self, message: str, path: str | None = None, suggestion: str | None = None
    ) -> None:
        self.path = path
        super().__init__(message, suggestion)


class InvalidPathError(FileError):
    """Entry name is not valid UTF-8 or would escape the workspace root."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"invalid entry path {name!r}: {reason}", path=name)


class ArchiveFormatError(FileError):
    """Archive container is corrupt or not of the expected format."""

    pass


class WorkspaceIOError(FileError):
    """I/O failure inside the scratch workspace."""

    pass


class MalformedJsonError(FileError):
    """JSON file cannot be parsed, even with relaxed JSON5 rules."""

    pass


class UnsupportedEncodingError(FileError):
    """File is not UTF-8 and no legacy encoding is known for it."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"unsupported encoding for file '{path}'",
            path=path,
            suggestion="Re-save the file as UTF-8",
        )


class ImageCodecError(FileError):
    """PNG could not be decoded or re-encoded."""

    pass


class XmlSyntaxError(FileError):
    """Tile map or tileset XML is malformed."""

    pass


class ArchiveWriteError(FileError):
    """Output archive could not be written."""

    pass


class CleanupError(ModShrinkError):
    """Scratch workspace could not be removed."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(
            f"failed cleaning up temp data at '{path}'",
            "Remove the directory manually",
        )


def format_error_chain(exc: BaseException) -> list[str]:
    """Render an exception and its causes, outermost first.

    Args:
        exc: Outermost exception

    Returns:
        One line per layer, each prefixed with ``error:`` or ``caused by:``
    """
    lines: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = str(current) or type(current).__name__
        prefix = "error: " if not lines else "  caused by: "
        head, *rest = text.splitlines()
        lines.append(prefix + head)
        lines.extend("    " + extra for extra in rest)
        current = current.__cause__ or (
            None if current.__suppress_context__ else current.__context__
        )
    return lines
