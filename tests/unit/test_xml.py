"""Unit tests for string pools and the binary XML decoder."""

import struct

import pytest

from apkanalyzer.binary.chunk import ChunkCursor
from apkanalyzer.binary.constants import (
    ANDROID_NAMESPACE,
    RES_XML_TYPE,
    TYPE_DIMENSION,
    TYPE_INT_COLOR_ARGB8,
    TYPE_INT_HEX,
    TYPE_REFERENCE,
)
from apkanalyzer.binary.string_pool import StringPool
from apkanalyzer.binary.xml import XML_DECLARATION, decode_xml, decode_xml_text, format_value
from apkanalyzer.core.exceptions import DecodeError, MalformedHeaderError
from tests.builders import compile_xml, make_chunk, make_string_pool


class TestStringPool:
    """Tests for string pool decoding."""

    @pytest.mark.parametrize("utf8", [False, True])
    def test_decodes_strings(self, utf8):
        data = make_string_pool(["manifest", "package", "héllo"], utf8=utf8)
        cursor = ChunkCursor(data)

        pool = StringPool.parse(cursor, cursor.read_header(0))

        assert pool.strings == ["manifest", "package", "héllo"]
        assert pool.is_utf8 is utf8
        assert len(pool) == 3

    def test_get_out_of_range(self):
        pool = StringPool(strings=["a"])
        assert pool.get(0) == "a"
        assert pool.get(1) is None
        assert pool.get(0xFFFFFFFF) is None

    def test_wrong_chunk_type(self):
        data = make_chunk(RES_XML_TYPE, b"\x00" * 20)
        cursor = ChunkCursor(data)
        with pytest.raises(MalformedHeaderError):
            StringPool.parse(cursor, cursor.read_header(0))


class TestBinaryXmlDecoder:
    """Tests for compiled XML decoding."""

    def test_decodes_manifest(self, manifest_bytes):
        """Element names, namespaced attributes and typed values are restored."""
        root = decode_xml(manifest_bytes)

        assert root.name == "manifest"
        assert root.get("package", namespace=None) == "com.example.app"
        assert root.get("versionCode") == "7"
        assert root.get("versionName") == "1.2"
        assert root.namespaces == {"android": ANDROID_NAMESPACE}

        application = root.find_all("application")[0]
        activity = application.find_all("activity")[0]
        assert activity.get("name") == ".MainActivity"
        assert activity.get("exported") == "true"
        assert [e.name for e in root.iter("action")] == ["action"]

    def test_renders_text(self, manifest_bytes):
        text = decode_xml_text(manifest_bytes)
        lines = text.splitlines()

        assert lines[0] == XML_DECLARATION
        assert lines[1].startswith(f'<manifest xmlns:android="{ANDROID_NAMESPACE}" package="com.example.app"')
        assert 'android:versionCode="7"' in lines[1]
        assert '  <uses-permission android:name="android.permission.INTERNET" />' in lines
        assert lines[-1] == "</manifest>"

    def test_attribute_prefix(self, manifest_bytes):
        root = decode_xml(manifest_bytes)
        attribute = root.attributes[1]
        assert attribute.qualified_name == "android:versionCode"

    def test_not_xml_document(self, resource_table_bytes):
        with pytest.raises(MalformedHeaderError):
            decode_xml(resource_table_bytes)

    def test_truncated_document(self, manifest_bytes):
        with pytest.raises(DecodeError):
            decode_xml(manifest_bytes[: len(manifest_bytes) // 2])

    def test_document_without_root(self):
        data = make_chunk(RES_XML_TYPE, b"", make_string_pool([]))
        with pytest.raises(MalformedHeaderError):
            decode_xml(data)

    def test_custom_namespace(self):
        data = compile_xml(
            ("layout", [("http://example.com/app", "theme", "dark")], []),
            namespaces={"app": "http://example.com/app"},
        )
        root = decode_xml(data)

        assert root.get("theme", namespace="http://example.com/app") == "dark"
        assert root.get("theme") is None
        assert root.attributes[0].qualified_name == "app:theme"


class TestFormatValue:
    """Tests for typed value rendering."""

    def test_reference(self):
        assert format_value(TYPE_REFERENCE, 0x7F010001, StringPool()) == "@0x7f010001"
        assert format_value(TYPE_REFERENCE, 0, StringPool()) == "@null"

    def test_hex_and_color(self):
        assert format_value(TYPE_INT_HEX, 0x10, StringPool()) == "0x00000010"
        assert format_value(TYPE_INT_COLOR_ARGB8, 0xFF00FF00, StringPool()) == "#ff00ff00"

    def test_dimension(self):
        # 16dp: mantissa 16, radix 0, unit 1
        value = (16 << 8) | 1
        assert format_value(TYPE_DIMENSION, value, StringPool()) == "16dp"

    def test_unknown_type(self):
        assert format_value(0x7E, 1, StringPool()) == "<0x7e>0x00000001"

    def test_negative_decimal(self):
        (data,) = struct.unpack("<I", struct.pack("<i", -3))
        assert format_value(0x10, data, StringPool()) == "-3"
