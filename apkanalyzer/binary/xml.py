"""
Compiled (binary) XML decoding.

Turns the chunk stream of a compiled XML file such as ``AndroidManifest.xml``
into an element tree and renders it back to text. Node chunks share a 16 byte
header (chunk header, line number, comment); the element-specific extension
follows at ``header_size``::

    ResXMLTree_attrExt (20 bytes)
        uint32_t ns
        uint32_t name
        uint16_t attributeStart
        uint16_t attributeSize
        uint16_t attributeCount
        uint16_t idIndex, classIndex, styleIndex

    ResXMLTree_attribute (20 bytes)
        uint32_t ns
        uint32_t name
        uint32_t rawValue
        Res_value typedValue (uint16 size, uint8 res0, uint8 dataType, uint32 data)
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from xml.sax.saxutils import escape

from ..core.exceptions import MalformedHeaderError
from ..core.logging import get_logger
from .chunk import ChunkCursor, ChunkHeader
from .constants import (
    ANDROID_NAMESPACE,
    COMPLEX_MANTISSA_MASK,
    COMPLEX_MANTISSA_SHIFT,
    COMPLEX_RADIX_MASK,
    COMPLEX_RADIX_SHIFT,
    COMPLEX_UNIT_MASK,
    DIMENSION_UNITS,
    FRACTION_UNITS,
    NO_INDEX,
    RES_STRING_POOL_TYPE,
    RES_XML_CDATA_TYPE,
    RES_XML_END_ELEMENT_TYPE,
    RES_XML_END_NAMESPACE_TYPE,
    RES_XML_RESOURCE_MAP_TYPE,
    RES_XML_START_ELEMENT_TYPE,
    RES_XML_START_NAMESPACE_TYPE,
    RES_XML_TYPE,
    TYPE_ATTRIBUTE,
    TYPE_DIMENSION,
    TYPE_FLOAT,
    TYPE_FRACTION,
    TYPE_INT_BOOLEAN,
    TYPE_INT_COLOR_ARGB4,
    TYPE_INT_COLOR_ARGB8,
    TYPE_INT_COLOR_RGB4,
    TYPE_INT_COLOR_RGB8,
    TYPE_INT_DEC,
    TYPE_INT_HEX,
    TYPE_NULL,
    TYPE_REFERENCE,
    TYPE_STRING,
)
from .string_pool import StringPool

logger = get_logger(__name__)

XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>'

_RADIX_MULTIPLIERS = (
    1.0 / (1 << COMPLEX_MANTISSA_SHIFT),
    1.0 / (1 << 7) / (1 << COMPLEX_MANTISSA_SHIFT),
    1.0 / (1 << 15) / (1 << COMPLEX_MANTISSA_SHIFT),
    1.0 / (1 << 23) / (1 << COMPLEX_MANTISSA_SHIFT),
)


@dataclass
class XmlAttribute:
    """A decoded attribute. ``prefix`` is the namespace prefix in scope, if any."""

    name: str
    value: str
    namespace: str = ""
    prefix: str = ""

    @property
    def qualified_name(self) -> str:
        return f"{self.prefix}:{self.name}" if self.prefix else self.name


@dataclass
class XmlElement:
    """A decoded element with its attributes, children and text content."""

    name: str
    attributes: list[XmlAttribute] = field(default_factory=list)
    children: list[XmlElement] = field(default_factory=list)
    namespaces: dict[str, str] = field(default_factory=dict)  # prefix -> uri declared here
    text: str = ""
    line: int = 0

    def get(self, name: str, namespace: str | None = ANDROID_NAMESPACE) -> str | None:
        """Attribute value by local name; ``namespace=None`` matches any namespace."""
        for attribute in self.attributes:
            if attribute.name != name:
                continue
            if namespace is None or attribute.namespace == namespace:
                return attribute.value
        return None

    def find_all(self, name: str) -> list[XmlElement]:
        """Direct children named ``name``."""
        return [child for child in self.children if child.name == name]

    def iter(self, name: str | None = None):
        """Depth-first iteration over this element and its descendants."""
        if name is None or self.name == name:
            yield self
        for child in self.children:
            yield from child.iter(name)

    def to_xml(self, indent: str = "  ") -> str:
        lines = [XML_DECLARATION]
        self._render(lines, 0, indent)
        return "\n".join(lines)

    def _render(self, lines: list[str], depth: int, indent: str) -> None:
        pad = indent * depth
        parts = [f"<{self.name}"]
        for prefix, uri in self.namespaces.items():
            parts.append(f' xmlns:{prefix}="{_escape_attr(uri)}"')
        for attribute in self.attributes:
            parts.append(f' {attribute.qualified_name}="{_escape_attr(attribute.value)}"')
        opening = "".join(parts)

        if not self.children and not self.text:
            lines.append(f"{pad}{opening} />")
            return
        if not self.children:
            lines.append(f"{pad}{opening}>{escape(self.text)}</{self.name}>")
            return

        lines.append(f"{pad}{opening}>")
        if self.text:
            lines.append(f"{pad}{indent}{escape(self.text)}")
        for child in self.children:
            child._render(lines, depth + 1, indent)
        lines.append(f"{pad}</{self.name}>")


def _escape_attr(value: str) -> str:
    return escape(value, {'"': "&quot;"})


def format_complex(value: int, fraction: bool) -> str:
    mantissa = value & (COMPLEX_MANTISSA_MASK << COMPLEX_MANTISSA_SHIFT)
    if mantissa & 0x80000000:
        mantissa -= 1 << 32
    radix = (value >> COMPLEX_RADIX_SHIFT) & COMPLEX_RADIX_MASK
    number = mantissa * _RADIX_MULTIPLIERS[radix]
    text = f"{number:f}".rstrip("0").rstrip(".") or "0"
    unit = value & COMPLEX_UNIT_MASK
    units = FRACTION_UNITS if fraction else DIMENSION_UNITS
    if fraction:
        text = f"{float(text) * 100:f}".rstrip("0").rstrip(".") or "0"
    suffix = units[unit] if unit < len(units) else f" (unit {unit})"
    return text + suffix


def format_value(data_type: int, data: int, strings: StringPool) -> str:
    """Render a typed Res_value the way aapt dumps it."""
    if data_type == TYPE_NULL:
        return ""
    if data_type == TYPE_REFERENCE:
        return "@null" if data == 0 else f"@0x{data:08x}"
    if data_type == TYPE_ATTRIBUTE:
        return f"?0x{data:08x}"
    if data_type == TYPE_STRING:
        return strings.get(data) or ""
    if data_type == TYPE_FLOAT:
        (number,) = struct.unpack("<f", struct.pack("<I", data))
        return repr(number)
    if data_type == TYPE_DIMENSION:
        return format_complex(data, fraction=False)
    if data_type == TYPE_FRACTION:
        return format_complex(data, fraction=True)
    if data_type == TYPE_INT_DEC:
        return str(data - (1 << 32) if data & 0x80000000 else data)
    if data_type == TYPE_INT_HEX:
        return f"0x{data:08x}"
    if data_type == TYPE_INT_BOOLEAN:
        return "true" if data else "false"
    if data_type in (TYPE_INT_COLOR_ARGB8, TYPE_INT_COLOR_ARGB4):
        return f"#{data:08x}"
    if data_type in (TYPE_INT_COLOR_RGB8, TYPE_INT_COLOR_RGB4):
        return f"#{data & 0xFFFFFF:06x}"
    return f"<0x{data_type:x}>0x{data:08x}"


class BinaryXmlDecoder:
    """Decode one compiled XML document."""

    def __init__(self, data: bytes) -> None:
        self.cursor = ChunkCursor(data)
        self.strings = StringPool()
        self.resource_ids: list[int] = []
        self._prefixes: dict[str, str] = {}  # uri -> prefix
        self._pending_namespaces: dict[str, str] = {}
        self._stack: list[XmlElement] = []
        self._root: XmlElement | None = None

    def decode(self) -> XmlElement:
        """Decode the document and return its root element.

        Raises:
            MalformedHeaderError: If the outer chunk is not an XML chunk or any
                nested chunk header is inconsistent.
            OutOfBoundsReadError: If a field lies beyond its chunk.
        """
        document = self.cursor.read_header(0)
        if document.chunk_type != RES_XML_TYPE:
            raise MalformedHeaderError(
                message=f"Not a compiled XML document (token {document.chunk_type:#06x})",
                offset=0,
            )

        for header in self.cursor.iter_chunks(document.data_offset, document.chunk_end):
            self._dispatch(header)

        if self._root is None:
            raise MalformedHeaderError(message="Compiled XML has no root element", offset=0)

        logger.debug(
            "Decoded binary XML",
            root=self._root.name,
            strings=len(self.strings),
            resource_ids=len(self.resource_ids),
        )
        return self._root

    def _dispatch(self, header: ChunkHeader) -> None:
        token = header.chunk_type
        if token == RES_STRING_POOL_TYPE:
            self.strings = StringPool.parse(self.cursor, header)
        elif token == RES_XML_RESOURCE_MAP_TYPE:
            count = header.payload_size // 4
            self.resource_ids = [
                self.cursor.read_u32(header, header.header_size + i * 4) for i in range(count)
            ]
        elif token == RES_XML_START_NAMESPACE_TYPE:
            prefix_index, uri_index = self.cursor.read_struct(header, header.header_size, "<II")
            prefix = self._string(prefix_index)
            uri = self._string(uri_index)
            self._prefixes[uri] = prefix
            self._pending_namespaces[prefix] = uri
        elif token == RES_XML_END_NAMESPACE_TYPE:
            _, uri_index = self.cursor.read_struct(header, header.header_size, "<II")
            self._prefixes.pop(self._string(uri_index), None)
        elif token == RES_XML_START_ELEMENT_TYPE:
            self._start_element(header)
        elif token == RES_XML_END_ELEMENT_TYPE:
            if not self._stack:
                raise MalformedHeaderError(message="Unbalanced end element", offset=header.offset)
            self._stack.pop()
        elif token == RES_XML_CDATA_TYPE:
            (text_index,) = self.cursor.read_struct(header, header.header_size, "<I")
            if self._stack:
                self._stack[-1].text += self._string(text_index)
        else:
            logger.debug("Skipping unknown XML chunk", token=f"{token:#06x}", offset=header.offset)

    def _start_element(self, header: ChunkHeader) -> None:
        (line,) = self.cursor.read_struct(header, 8, "<I")
        ext = header.header_size
        _, name_index, attr_start, attr_size, attr_count = self.cursor.read_struct(
            header, ext, "<IIHHH"
        )

        element = XmlElement(name=self._string(name_index), line=line)
        element.namespaces, self._pending_namespaces = self._pending_namespaces, {}

        for i in range(attr_count):
            position = ext + attr_start + i * attr_size
            ns_index, attr_name_index, raw_index, _, _, data_type, data = self.cursor.read_struct(
                header, position, "<IIIHBBI"
            )
            namespace = self._string(ns_index)
            name = self._string(attr_name_index)
            if not name and attr_name_index < len(self.resource_ids):
                name = f"0x{self.resource_ids[attr_name_index]:08x}"
            if raw_index != NO_INDEX:
                value = self._string(raw_index)
            else:
                value = format_value(data_type, data, self.strings)
            element.attributes.append(
                XmlAttribute(
                    name=name,
                    value=value,
                    namespace=namespace,
                    prefix=self._prefixes.get(namespace, ""),
                )
            )

        if self._stack:
            self._stack[-1].children.append(element)
        elif self._root is None:
            self._root = element
        else:
            raise MalformedHeaderError(message="Second root element", offset=header.offset)
        self._stack.append(element)

    def _string(self, index: int) -> str:
        if index == NO_INDEX:
            return ""
        return self.strings.get(index) or ""


def decode_xml(data: bytes) -> XmlElement:
    """Decode compiled XML bytes into an element tree."""
    return BinaryXmlDecoder(data).decode()


def decode_xml_text(data: bytes) -> str:
    """Decode compiled XML bytes and render them as indented XML text."""
    return decode_xml(data).to_xml()
