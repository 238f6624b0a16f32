"""Whitespace-stripping rewrite of Tiled map (tmx) and tileset (tsx) XML.

The document is replayed event by event through expat: declaration, doctype,
elements with their attributes in document order, comments, processing
instructions, CDATA sections and entity references all survive. Only text
runs change, losing leading and trailing whitespace, and elements left
without content are written in their short ``<x/>`` form.
"""

from __future__ import annotations

from pathlib import Path
from xml.parsers import expat
from xml.sax.saxutils import escape

from modshrink.core.errors import WorkspaceIOError, XmlSyntaxError

XML_WHITESPACE = " \t\r\n"

_ATTR_ENTITIES = {'"': "&quot;", "\n": "&#10;", "\r": "&#13;", "\t": "&#9;"}


def _quote_attr(value: str) -> str:
    return '"' + escape(value, _ATTR_ENTITIES) + '"'


class _XmlRewriter:
    def __init__(self) -> None:
        self.out: list[str] = []
        self.encoding = "utf-8"
        self._text: list[str] = []
        self._start_open = False
        self._in_cdata = False
        self._depth = 0
        self._doctype: list[str] | None = None
        self._doctype_head = ""

        parser = expat.ParserCreate()
        parser.ordered_attributes = True
        parser.XmlDeclHandler = self.xml_decl
        parser.StartDoctypeDeclHandler = self.start_doctype
        parser.EndDoctypeDeclHandler = self.end_doctype
        parser.StartElementHandler = self.start_element
        parser.EndElementHandler = self.end_element
        parser.StartCdataSectionHandler = self.start_cdata
        parser.EndCdataSectionHandler = self.end_cdata
        parser.CommentHandler = self.comment
        parser.ProcessingInstructionHandler = self.processing_instruction
        # No character data handler: text, character and entity references reach the
        # non-expanding default handler exactly as written.
        parser.DefaultHandler = self.default
        self.parser = parser

    def feed(self, data: bytes) -> None:
        self.parser.Parse(data, True)
        self._flush_text()

    # Output helpers

    def _emit(self, markup: str) -> None:
        if self._doctype is not None:
            self._doctype.append(markup)
            return
        self._flush_text()
        self._close_start()
        self.out.append(markup)

    def _close_start(self) -> None:
        if self._start_open:
            self.out.append(">")
            self._start_open = False

    def _flush_text(self) -> None:
        if not self._text:
            return
        text = "".join(self._text).strip(XML_WHITESPACE)
        self._text = []
        if text:
            self._close_start()
            self.out.append(text)

    # expat handlers

    def xml_decl(self, version: str | None, encoding: str | None, standalone: int) -> None:
        parts = [f'<?xml version="{version or "1.0"}"']
        if encoding:
            self.encoding = encoding
            parts.append(f' encoding="{encoding}"')
        if standalone != -1:
            parts.append(f' standalone="{"yes" if standalone else "no"}"')
        parts.append("?>")
        self._emit("".join(parts))

    def start_doctype(
        self,
        name: str,
        system_id: str | None,
        public_id: str | None,
        has_internal_subset: int,
    ) -> None:
        head = f"<!DOCTYPE {name}"
        if public_id:
            head += f' PUBLIC "{public_id}"'
            if system_id:
                head += f' "{system_id}"'
        elif system_id:
            head += f' SYSTEM "{system_id}"'
        self._doctype_head = head
        self._doctype = []

    def end_doctype(self) -> None:
        parts = self._doctype or []
        self._doctype = None
        subset = "".join(parts).strip(XML_WHITESPACE)
        if subset.endswith("]"):
            subset = subset[:-1].rstrip(XML_WHITESPACE)
        if subset:
            self._emit(f"{self._doctype_head} [{subset}]>")
        else:
            self._emit(f"{self._doctype_head}>")

    def start_element(self, name: str, attributes: list[str]) -> None:
        self._emit(f"<{name}")
        self._depth += 1
        for i in range(0, len(attributes), 2):
            self.out.append(f" {attributes[i]}={_quote_attr(attributes[i + 1])}")
        self._start_open = True

    def end_element(self, name: str) -> None:
        self._flush_text()
        self._depth -= 1
        if self._start_open:
            self._start_open = False
            self.out.append("/>")
        else:
            self.out.append(f"</{name}>")

    def start_cdata(self) -> None:
        self._emit("<![CDATA[")
        self._in_cdata = True

    def end_cdata(self) -> None:
        self._in_cdata = False
        self.out.append("]]>")

    def comment(self, data: str) -> None:
        self._emit(f"<!--{data}-->")

    def processing_instruction(self, target: str, data: str) -> None:
        self._emit(f"<?{target} {data}?>" if data else f"<?{target}?>")

    def default(self, data: str) -> None:
        if self._doctype is not None:
            self._doctype.append(data)
        elif self._in_cdata:
            self.out.append(data)
        elif self._depth:
            # Raw text, so character references such as &#10; are never trimmed.
            self._text.append(data)
        elif data.strip(XML_WHITESPACE):
            self._emit(data)


def minify_xml_bytes(data: bytes, rel_path: str = "<bytes>") -> bytes:
    """Rewrite an XML document without insignificant whitespace.

    Args:
        data: Raw document bytes
        rel_path: Path used in error messages

    Returns:
        The rewritten document in its declared encoding (UTF-8 if none)

    Raises:
        XmlSyntaxError: The document is not well-formed
    """
    rewriter = _XmlRewriter()
    try:
        rewriter.feed(data)
    except expat.ExpatError as e:
        raise XmlSyntaxError(
            f"failed minifying xml file '{rel_path}': {expat.ErrorString(e.code)} "
            f"at line {e.lineno}, column {e.offset}",
            path=rel_path,
        ) from e

    text = "".join(rewriter.out)
    try:
        return text.encode(rewriter.encoding, errors="xmlcharrefreplace")
    except LookupError as e:
        raise XmlSyntaxError(
            f"unknown encoding '{rewriter.encoding}' declared in xml file '{rel_path}'",
            path=rel_path,
        ) from e


def minify_xml(path: Path, rel_path: str) -> None:
    try:
        data = path.read_bytes()
    except OSError as e:
        raise WorkspaceIOError(f"failed reading xml file '{rel_path}'", path=rel_path) from e
    minified = minify_xml_bytes(data, rel_path)
    try:
        path.write_bytes(minified)
    except OSError as e:
        raise WorkspaceIOError(f"failed writing xml file '{rel_path}'", path=rel_path) from e
