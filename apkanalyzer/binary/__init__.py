"""Decoders for the chunked binary formats found in an APK."""

from .chunk import ChunkCursor, ChunkHeader, absolute, chunk_end, data_offset, next_chunk, read_header
from .resources import ResourceTableSummary, read_resource_table
from .string_pool import StringPool
from .xml import BinaryXmlDecoder, XmlAttribute, XmlElement, decode_xml, decode_xml_text

__all__ = [
    "ChunkCursor",
    "ChunkHeader",
    "absolute",
    "chunk_end",
    "data_offset",
    "next_chunk",
    "read_header",
    "ResourceTableSummary",
    "read_resource_table",
    "StringPool",
    "BinaryXmlDecoder",
    "XmlAttribute",
    "XmlElement",
    "decode_xml",
    "decode_xml_text",
]
