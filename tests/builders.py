"""Builders for synthetic APK contents.

Binary fixtures are assembled with ``struct`` so the decoders can be tested
without real Android build outputs.
"""

import struct
import zipfile
from pathlib import Path

from apkanalyzer.binary.constants import (
    ANDROID_NAMESPACE,
    NO_INDEX,
    RES_STRING_POOL_TYPE,
    RES_TABLE_PACKAGE_TYPE,
    RES_TABLE_TYPE,
    RES_TABLE_TYPE_SPEC_TYPE,
    RES_TABLE_TYPE_TYPE,
    RES_XML_END_ELEMENT_TYPE,
    RES_XML_END_NAMESPACE_TYPE,
    RES_XML_START_ELEMENT_TYPE,
    RES_XML_START_NAMESPACE_TYPE,
    RES_XML_TYPE,
    TYPE_INT_BOOLEAN,
    TYPE_INT_DEC,
    TYPE_STRING,
    UTF8_FLAG,
)


def make_chunk(chunk_type: int, header_ext: bytes = b"", body: bytes = b"") -> bytes:
    """A chunk whose header is the 8-byte chunk header followed by ``header_ext``."""
    header_size = 8 + len(header_ext)
    return struct.pack("<HHI", chunk_type, header_size, header_size + len(body)) + header_ext + body


def make_string_pool(strings: list[str], utf8: bool = False) -> bytes:
    """A string pool chunk holding ``strings`` (each shorter than 128 characters)."""
    offsets = []
    data = b""
    for value in strings:
        offsets.append(len(data))
        if utf8:
            encoded = value.encode("utf-8")
            data += bytes([len(value), len(encoded)]) + encoded + b"\x00"
        else:
            data += struct.pack("<H", len(value)) + value.encode("utf-16-le") + b"\x00\x00"
    data += b"\x00" * (-len(data) % 4)

    flags = UTF8_FLAG if utf8 else 0
    header_ext = struct.pack("<IIIII", len(strings), 0, flags, 28 + 4 * len(strings), 0)
    body = b"".join(struct.pack("<I", offset) for offset in offsets) + data
    return make_chunk(RES_STRING_POOL_TYPE, header_ext, body)


class BinaryXmlWriter:
    """Compile a small element tree into Android's binary XML format.

    Elements are ``(name, attributes, children)`` tuples; attributes are
    ``(namespace, name, value)`` where value is a str, int or bool.
    """

    def __init__(self) -> None:
        self.strings: list[str] = []

    def _index(self, value: str | None) -> int:
        if value is None:
            return NO_INDEX
        if value not in self.strings:
            self.strings.append(value)
        return self.strings.index(value)

    def _node(self, chunk_type: int, line: int, ext: bytes) -> bytes:
        return make_chunk(chunk_type, struct.pack("<II", line, NO_INDEX), ext)

    def _element(self, element: tuple, line: int) -> list[bytes]:
        name, attributes, children = element
        attr_bytes = b""
        for namespace, attr_name, value in attributes:
            ns_index = self._index(namespace)
            name_index = self._index(attr_name)
            if isinstance(value, bool):
                raw, data_type, data = NO_INDEX, TYPE_INT_BOOLEAN, 0xFFFFFFFF if value else 0
            elif isinstance(value, int):
                raw, data_type, data = NO_INDEX, TYPE_INT_DEC, value
            else:
                raw = self._index(value)
                data_type, data = TYPE_STRING, raw
            attr_bytes += struct.pack("<IIIHBBI", ns_index, name_index, raw, 8, 0, data_type, data)

        ext = struct.pack("<IIHHHHHH", NO_INDEX, self._index(name), 20, 20, len(attributes), 0, 0, 0)
        chunks = [self._node(RES_XML_START_ELEMENT_TYPE, line, ext + attr_bytes)]
        for child in children:
            chunks.extend(self._element(child, line + 1))
        chunks.append(self._node(RES_XML_END_ELEMENT_TYPE, line, struct.pack("<II", NO_INDEX, self._index(name))))
        return chunks

    def compile(self, root: tuple, namespaces: dict[str, str] | None = None) -> bytes:
        namespaces = namespaces if namespaces is not None else {"android": ANDROID_NAMESPACE}
        ns_ext = {prefix: struct.pack("<II", self._index(prefix), self._index(uri)) for prefix, uri in namespaces.items()}

        nodes = [self._node(RES_XML_START_NAMESPACE_TYPE, 1, ext) for ext in ns_ext.values()]
        nodes += self._element(root, 2)
        nodes += [self._node(RES_XML_END_NAMESPACE_TYPE, 1, ext) for ext in reversed(ns_ext.values())]

        return make_chunk(RES_XML_TYPE, b"", make_string_pool(self.strings) + b"".join(nodes))


def compile_xml(root: tuple, namespaces: dict[str, str] | None = None) -> bytes:
    return BinaryXmlWriter().compile(root, namespaces)


def make_resource_table(package_name: str = "com.example.app", package_id: int = 0x7F) -> bytes:
    """A resource table with one package holding one type spec and two type chunks."""
    name = package_name.encode("utf-16-le").ljust(256, b"\x00")
    package_ext = struct.pack("<I", package_id) + name + struct.pack("<IIIII", 0, 0, 0, 0, 0)
    type_spec = make_chunk(RES_TABLE_TYPE_SPEC_TYPE, struct.pack("<BBHI", 1, 0, 0, 2), b"\x00" * 8)
    type_chunk = make_chunk(RES_TABLE_TYPE_TYPE, struct.pack("<BBHII", 1, 0, 0, 0, 20))
    package_body = (
        make_string_pool(["string", "drawable"], utf8=True)
        + make_string_pool(["app_name"], utf8=True)
        + type_spec
        + type_chunk
        + type_chunk
    )
    package = make_chunk(RES_TABLE_PACKAGE_TYPE, package_ext, package_body)
    table_body = make_string_pool(["Example", "res/drawable/icon.png"], utf8=True) + package
    return make_chunk(RES_TABLE_TYPE, struct.pack("<I", 1), table_body)


def make_dex(
    strings: int = 10,
    types: int = 5,
    protos: int = 3,
    fields: int = 4,
    methods: int = 7,
    classes: int = 2,
) -> bytes:
    """A 112-byte DEX header declaring the given table sizes."""
    return struct.pack(
        "<8sI20s20I",
        b"dex\n035\x00",
        0,
        b"\x00" * 20,
        112, 0x70, 0x12345678, 0, 0, 0,
        strings, 0, types, 0, protos, 0, fields, 0, methods, 0, classes, 0,
        0, 0,
    )


SAMPLE_MANIFEST = (
    "manifest",
    [
        (None, "package", "com.example.app"),
        (ANDROID_NAMESPACE, "versionCode", 7),
        (ANDROID_NAMESPACE, "versionName", "1.2"),
    ],
    [
        ("uses-sdk", [(ANDROID_NAMESPACE, "minSdkVersion", 21), (ANDROID_NAMESPACE, "targetSdkVersion", 34)], []),
        ("uses-permission", [(ANDROID_NAMESPACE, "name", "android.permission.INTERNET")], []),
        (
            "application",
            [(ANDROID_NAMESPACE, "label", "Example")],
            [
                (
                    "activity",
                    [(ANDROID_NAMESPACE, "name", ".MainActivity"), (ANDROID_NAMESPACE, "exported", True)],
                    [
                        (
                            "intent-filter",
                            [],
                            [
                                ("action", [(ANDROID_NAMESPACE, "name", "android.intent.action.MAIN")], []),
                                ("category", [(ANDROID_NAMESPACE, "name", "android.intent.category.LAUNCHER")], []),
                            ],
                        )
                    ],
                ),
                ("service", [(ANDROID_NAMESPACE, "name", ".SyncService")], []),
                (
                    "provider",
                    [(ANDROID_NAMESPACE, "name", ".DataProvider"), (ANDROID_NAMESPACE, "authorities", "com.example.a;com.example.b")],
                    [],
                ),
            ],
        ),
    ],
)


def write_apk(path: Path, entries: dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return path
