"""Unit tests for minify.xml_minify module."""

from __future__ import annotations

import pytest

from modshrink.core.errors import XmlSyntaxError
from modshrink.minify.xml_minify import minify_xml, minify_xml_bytes

TOWN_TMX = b"""<?xml version="1.0" encoding="UTF-8"?>
<map version="1.10" orientation="orthogonal" width="2" height="2" tilewidth="16">
 <tileset firstgid="1" source="tiles.tsx"/>
 <layer id="1" name="Ground" width="2" height="2">
  <data encoding="csv">
1,2,
3,4
</data>
 </layer>
 <objectgroup id="2">
  <object id="1" x="0" y="0"></object>
 </objectgroup>
</map>
"""


def test_strips_whitespace_and_collapses_empty_elements():
    result = minify_xml_bytes(TOWN_TMX, "maps/town.tmx")

    assert result == (
        b'<?xml version="1.0" encoding="UTF-8"?>'
        b'<map version="1.10" orientation="orthogonal" width="2" height="2" tilewidth="16">'
        b'<tileset firstgid="1" source="tiles.tsx"/>'
        b'<layer id="1" name="Ground" width="2" height="2">'
        b'<data encoding="csv">1,2,\n3,4</data>'
        b"</layer>"
        b'<objectgroup id="2"><object id="1" x="0" y="0"/></objectgroup>'
        b"</map>"
    )


def test_is_idempotent():
    once = minify_xml_bytes(TOWN_TMX)

    assert minify_xml_bytes(once) == once


def test_keeps_comments_processing_instructions_and_cdata():
    source = b"""<tileset name="t">
  <!-- generated -->
  <?tiled hint?>
  <properties>
    <property name="script"><![CDATA[  keep <this> as-is  ]]></property>
  </properties>
</tileset>"""

    assert minify_xml_bytes(source) == (
        b'<tileset name="t"><!-- generated --><?tiled hint?>'
        b'<properties><property name="script"><![CDATA[  keep <this> as-is  ]]></property>'
        b"</properties></tileset>"
    )


def test_escapes_text_and_attributes():
    source = b'<p v="a &amp; &quot;b&quot; &lt;c&gt;" n="x&#10;y">\n 1 &lt; 2 &amp; 3 \n</p>'

    assert minify_xml_bytes(source) == (
        b'<p v="a &amp; &quot;b&quot; &lt;c&gt;" n="x&#10;y">1 &lt; 2 &amp; 3</p>'
    )


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        (b"<a>x&#10;</a>", b"<a>x&#10;</a>"),
        (b"<a>\n  &#32;x&#x9;\n</a>", b"<a>&#32;x&#x9;</a>"),
        (b"<a> &#10; </a>", b"<a>&#10;</a>"),
        (b"<a> caf&#233; </a>", b"<a>caf&#233;</a>"),
    ],
)
def test_character_references_are_kept_as_written(source, expected):
    assert minify_xml_bytes(source) == expected


def test_keeps_attribute_order():
    source = b'<object width="16" id="3" name="door" x="1"/>'

    assert minify_xml_bytes(source) == source


def test_keeps_standalone_declaration():
    source = b'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n<map/>\n'

    assert minify_xml_bytes(source) == (
        b'<?xml version="1.0" encoding="UTF-8" standalone="yes"?><map/>'
    )


def test_keeps_external_doctype():
    source = (
        b'<?xml version="1.0"?>\n'
        b'<!DOCTYPE map SYSTEM "http://mapeditor.org/dtd/1.0/map.dtd">\n'
        b"<map>\n</map>\n"
    )

    assert minify_xml_bytes(source) == (
        b'<?xml version="1.0"?>'
        b'<!DOCTYPE map SYSTEM "http://mapeditor.org/dtd/1.0/map.dtd">'
        b"<map/>"
    )


def test_keeps_internal_subset_and_entity_references():
    source = b"""<!DOCTYPE map [
  <!ENTITY tile "grass">
]>
<map> &tile; </map>"""

    assert minify_xml_bytes(source) == (
        b'<!DOCTYPE map [<!ENTITY tile "grass">]><map>&tile;</map>'
    )


def test_writes_back_in_declared_encoding():
    source = '<?xml version="1.0" encoding="ISO-8859-1"?>\n<name> caf\u00e9 </name>'.encode(
        "iso-8859-1"
    )

    result = minify_xml_bytes(source)

    assert result == b'<?xml version="1.0" encoding="ISO-8859-1"?><name>caf\xe9</name>'


def test_defaults_to_utf8():
    result = minify_xml_bytes("<name> caf\u00e9 </name>".encode())

    assert result == "<name>caf\u00e9</name>".encode()


@pytest.mark.parametrize(
    "source",
    [b"<map><layer></map>", b"<map", b"", b"<a></a><b/>", b"<a>&undefined;</a>"],
)
def test_malformed(source):
    with pytest.raises(XmlSyntaxError) as exc_info:
        minify_xml_bytes(source, "maps/broken.tmx")

    assert exc_info.value.path == "maps/broken.tmx"


def test_rewrites_file_in_place(tmp_path):
    path = tmp_path / "town.tmx"
    path.write_bytes(TOWN_TMX)

    minify_xml(path, "town.tmx")

    assert path.read_bytes() == minify_xml_bytes(TOWN_TMX)
    assert b"\n <" not in path.read_bytes()
