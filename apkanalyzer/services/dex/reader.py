"""
DEX file readers.

Table sizes come straight from the 112-byte DEX header, which is enough for
reference counting. Declared classes and member references are read through
androguard and exposed as a :class:`~apkanalyzer.models.dex.DexSymbolSource`.
"""

from __future__ import annotations

import struct
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from ...core.exceptions import APKAnalyzerError, MalformedHeaderError
from ...core.logging import get_logger, quiet_androguard
from ...models.apk import DexFileStats
from ...models.dex import ClassSymbols, DexSymbolSource, MemberKind, MemberReference

logger = get_logger(__name__)

DEX_MAGIC_PREFIX = b"dex\n"
DEX_HEADER_FORMAT = "<8sI20s20I"
DEX_HEADER_SIZE = struct.calcsize(DEX_HEADER_FORMAT)

# What a truncated or corrupt DEX file makes the header parser or androguard raise
DEX_READ_ERRORS = (APKAnalyzerError, struct.error, ValueError, IndexError, KeyError, EOFError)


@dataclass(frozen=True)
class DexHeader:
    """Table sizes and offsets from a DEX header."""

    version: str
    file_size: int
    string_ids_size: int
    type_ids_size: int
    proto_ids_size: int
    field_ids_size: int
    method_ids_size: int
    class_defs_size: int

    @classmethod
    def parse(cls, data: bytes) -> DexHeader:
        """Parse the header at the start of ``data``.

        Raises:
            MalformedHeaderError: If the buffer is too short or the magic is wrong.
        """
        if len(data) < DEX_HEADER_SIZE:
            raise MalformedHeaderError(
                message=f"DEX file shorter than its {DEX_HEADER_SIZE} byte header",
                context={"size": len(data)},
                offset=0,
            )
        magic, _checksum, _signature, *sizes = struct.unpack_from(DEX_HEADER_FORMAT, data, 0)
        if not magic.startswith(DEX_MAGIC_PREFIX) or magic[7] != 0:
            raise MalformedHeaderError(message=f"Bad DEX magic {magic!r}", offset=0)

        (
            file_size, _header_size, _endian_tag, _link_size, _link_off, _map_off,
            string_ids_size, _string_ids_off, type_ids_size, _type_ids_off,
            proto_ids_size, _proto_ids_off, field_ids_size, _field_ids_off,
            method_ids_size, _method_ids_off, class_defs_size, _class_defs_off,
            _data_size, _data_off,
        ) = sizes

        return cls(
            version=magic[4:7].decode("ascii", errors="replace"),
            file_size=file_size,
            string_ids_size=string_ids_size,
            type_ids_size=type_ids_size,
            proto_ids_size=proto_ids_size,
            field_ids_size=field_ids_size,
            method_ids_size=method_ids_size,
            class_defs_size=class_defs_size,
        )


def _signature(name: str, descriptor: str) -> str:
    # androguard separates parameter types with spaces
    return name + descriptor.replace(" ", "")


class AndroguardDexSource:
    """Symbol source backed by androguard's DEX parser. Parsing is deferred to first use."""

    def __init__(self, name: str, data: bytes) -> None:
        self.name = name
        self._data = data
        self._dex: Any = None

    def _load(self) -> Any:
        if self._dex is None:
            from androguard.core.dex import DEX

            quiet_androguard()
            self._dex = DEX(self._data)
        return self._dex

    def classes(self) -> Iterator[ClassSymbols]:
        for class_def in self._load().get_classes():
            yield ClassSymbols(
                name=class_def.get_name(),
                methods=tuple(_signature(m.get_name(), m.get_descriptor()) for m in class_def.get_methods()),
                fields=tuple(f"{f.get_name()}:{f.get_descriptor()}" for f in class_def.get_fields()),
            )

    def references(self) -> Iterator[MemberReference]:
        dex = self._load()
        for method_id in dex.get_methods_id_item().gets():
            yield MemberReference(
                class_name=method_id.get_class_name(),
                signature=_signature(method_id.get_name(), method_id.get_descriptor()),
                kind=MemberKind.METHOD,
            )
        for field_id in dex.get_fields_id_item().gets():
            yield MemberReference(
                class_name=field_id.get_class_name(),
                signature=f"{field_id.get_name()}:{field_id.get_type()}",
                kind=MemberKind.FIELD,
            )


def dex_file_stats(name: str, data: bytes, source: DexSymbolSource | None = None) -> DexFileStats:
    """Reference counts from the header; definition counts from ``source`` when given."""
    header = DexHeader.parse(data)
    stats = DexFileStats(
        file_name=name,
        class_count=header.class_defs_size,
        referenced_method_count=header.method_ids_size,
        referenced_field_count=header.field_ids_size,
        string_count=header.string_ids_size,
        type_count=header.type_ids_size,
        file_size=len(data),
    )
    if source is not None:
        for symbols in source.classes():
            stats.defined_method_count += len(symbols.methods)
            stats.defined_field_count += len(symbols.fields)
    return stats
