"""
String pool chunk decoding.

ResStringPool_header (28 bytes)::

    ResChunk_header header
    uint32_t stringCount
    uint32_t styleCount
    uint32_t flags
    uint32_t stringsStart
    uint32_t stylesStart
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..core.exceptions import MalformedHeaderError
from .chunk import ChunkCursor, ChunkHeader
from .constants import RES_STRING_POOL_TYPE, UTF8_FLAG

STRING_POOL_HEADER_SIZE = 28


@dataclass
class StringPool:
    """Decoded strings of one pool chunk."""

    strings: list[str] = field(default_factory=list)
    style_count: int = 0
    is_utf8: bool = False

    def __len__(self) -> int:
        return len(self.strings)

    def get(self, index: int) -> str | None:
        """Return the string at ``index`` or None for the 0xFFFFFFFF sentinel and bad indices."""
        if 0 <= index < len(self.strings):
            return self.strings[index]
        return None

    @classmethod
    def parse(cls, cursor: ChunkCursor, header: ChunkHeader) -> StringPool:
        if header.chunk_type != RES_STRING_POOL_TYPE:
            raise MalformedHeaderError(
                message=f"Expected a string pool chunk, found {header.chunk_type:#06x}",
                offset=header.offset,
            )
        if header.header_size < STRING_POOL_HEADER_SIZE:
            raise MalformedHeaderError(
                message=f"String pool header too small: {header.header_size}",
                offset=header.offset,
            )

        string_count, style_count, flags, strings_start, _ = cursor.read_struct(header, 8, "<IIIII")
        is_utf8 = bool(flags & UTF8_FLAG)

        strings = []
        for index in range(string_count):
            string_offset = cursor.read_u32(header, header.header_size + index * 4)
            position = strings_start + string_offset
            if is_utf8:
                strings.append(_read_utf8(cursor, header, position))
            else:
                strings.append(_read_utf16(cursor, header, position))

        return cls(strings=strings, style_count=style_count, is_utf8=is_utf8)


def _read_utf8_length(cursor: ChunkCursor, header: ChunkHeader, position: int) -> tuple[int, int]:
    (first,) = cursor.read_struct(header, position, "<B")
    if first & 0x80:
        (second,) = cursor.read_struct(header, position + 1, "<B")
        return ((first & 0x7F) << 8) | second, position + 2
    return first, position + 1


def _read_utf8(cursor: ChunkCursor, header: ChunkHeader, position: int) -> str:
    # UTF-16 length first, then the encoded byte length
    _, position = _read_utf8_length(cursor, header, position)
    byte_length, position = _read_utf8_length(cursor, header, position)
    raw = cursor.read_bytes(header, position, byte_length)
    return raw.decode("utf-8", errors="replace")


def _read_utf16(cursor: ChunkCursor, header: ChunkHeader, position: int) -> str:
    (length,) = cursor.read_struct(header, position, "<H")
    position += 2
    if length & 0x8000:
        (low,) = cursor.read_struct(header, position, "<H")
        length = ((length & 0x7FFF) << 16) | low
        position += 2
    raw = cursor.read_bytes(header, position, length * 2)
    return raw.decode("utf-16-le", errors="replace")
