"""
Mapping Service.

Loads ProGuard/R8 output into a :class:`SymbolMap`:

* ``mapping.txt`` fills the rename table::

      com.example.Foo -> a.b:
          int count -> a
          1:4:void run(int):12:15 -> b

* ``seeds.txt`` seeds the usage record with kept classes and members::

      com.example.Foo
      com.example.Foo: void run(int)
      com.example.Foo: int count
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path

from ...core.exceptions import InvalidMappingFormatError
from ...core.logging import get_logger
from ...models.dex import MemberKind
from .symbol_map import SymbolMap

logger = get_logger(__name__)

_CLASS_LINE = re.compile(r"^(?P<original>\S+)\s+->\s+(?P<obfuscated>\S+):$")
_MEMBER_LINE = re.compile(
    r"^\s+(?:\d+:\d+:)?(?P<type>\S+)\s+(?P<name>[^\s(]+)(?P<args>\([^)]*\))?"
    r"(?::\d+(?::\d+)?)?\s+->\s+(?P<obfuscated>\S+)$"
)
_CLASS_NAME = re.compile(r"^[\w$.\-]+$")


def parse_mapping(lines: Iterable[str], symbol_map: SymbolMap, source: str = "") -> SymbolMap:
    """Fill the rename table of ``symbol_map`` from mapping.txt lines.

    Raises:
        InvalidMappingFormatError: On a line that is neither a class nor a
            member mapping, or a member mapping before any class.
    """
    current_class: str | None = None
    for line_number, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        if not line[0].isspace():
            match = _CLASS_LINE.match(line)
            if match is None:
                raise InvalidMappingFormatError(
                    message=f"Unrecognized class mapping: {stripped!r}",
                    line_number=line_number,
                    source=source,
                )
            current_class = match.group("obfuscated")
            symbol_map.add_class_mapping(current_class, match.group("original"))
            continue

        match = _MEMBER_LINE.match(line)
        if match is None:
            raise InvalidMappingFormatError(
                message=f"Unrecognized member mapping: {stripped!r}",
                line_number=line_number,
                source=source,
            )
        if current_class is None:
            raise InvalidMappingFormatError(
                message="Member mapping before any class mapping",
                line_number=line_number,
                source=source,
            )
        # Inlined frames are written as owner.method; keep the simple name
        original = match.group("name").rsplit(".", 1)[-1]
        symbol_map.add_member_mapping(current_class, match.group("obfuscated"), original)

    return symbol_map


def parse_seeds(lines: Iterable[str], symbol_map: SymbolMap, source: str = "") -> SymbolMap:
    """Record kept classes and members from seeds.txt lines into the usage record."""
    for line_number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        class_name, _, member = line.partition(": ")
        class_name = class_name.strip()
        if not _CLASS_NAME.match(class_name):
            raise InvalidMappingFormatError(
                message=f"Unrecognized seed entry: {line!r}",
                line_number=line_number,
                source=source,
            )
        member = member.strip()
        if not member:
            symbol_map.record_usage(class_name)
            continue
        kind = MemberKind.METHOD if "(" in member else MemberKind.FIELD
        symbol_map.record_usage(class_name, member, kind)

    return symbol_map


def _read_lines(path: Path) -> list[str]:
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidMappingFormatError(
            message=f"Cannot read mapping source: {e}",
            source=str(path),
            cause=e,
        ) from e


def load_symbol_map(
    mapping_path: Path | None = None,
    seeds_path: Path | None = None,
    strict: bool = False,
) -> SymbolMap:
    """Load a SymbolMap from ProGuard/R8 output files.

    Args:
        mapping_path: Optional mapping.txt.
        seeds_path: Optional seeds.txt.
        strict: Re-raise InvalidMappingFormatError instead of falling back to
            an empty map.

    Returns:
        The loaded map, or an empty map (no renames, no usage data) when a
        source is malformed and ``strict`` is False.
    """
    symbol_map = SymbolMap()
    try:
        if mapping_path is not None:
            parse_mapping(_read_lines(mapping_path), symbol_map, source=str(mapping_path))
        if seeds_path is not None:
            parse_seeds(_read_lines(seeds_path), symbol_map, source=str(seeds_path))
    except InvalidMappingFormatError as e:
        if strict:
            raise
        logger.warning("Proceeding without deobfuscation", error=str(e))
        return SymbolMap()

    logger.info(
        "Loaded symbol map",
        renamed_classes=symbol_map.renamed_class_count,
        used_classes=symbol_map.used_class_count,
    )
    return symbol_map
