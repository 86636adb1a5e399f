"""
Package tree construction.

Merges the classes of one or more DEX files into a single
:class:`~apkanalyzer.models.tree.PackageTree`, deobfuscating names through a
:class:`~apkanalyzer.services.mapping.SymbolMap` when one is supplied.

A malformed class name only skips that class; a class declared in several
files is kept once and reported as a :class:`DuplicateClassWarning`.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from ...core.exceptions import DuplicateClassError, InvalidClassNameError
from ...core.logging import get_logger
from ...models.dex import (
    ClassSymbols,
    DexSymbolSource,
    MemberKind,
    descriptor_to_class_name,
    java_member_signature,
)
from ...models.tree import NodeKind, PackageNode, PackageTree
from ..mapping.symbol_map import SymbolMap, member_name

logger = get_logger(__name__)


class DuplicateClassPolicy(str, Enum):
    """What to do when a fully-qualified class name is seen a second time."""

    FIRST_WINS = "first_wins"
    LAST_WINS = "last_wins"
    ERROR = "error"


@dataclass(frozen=True)
class DuplicateClassWarning:
    """A class declared in more than one input file."""

    class_name: str
    kept_file: str
    duplicate_file: str
    policy: DuplicateClassPolicy = DuplicateClassPolicy.FIRST_WINS

    def __str__(self) -> str:
        return (
            f"Class {self.class_name} declared in both {self.kept_file} and "
            f"{self.duplicate_file} ({self.policy.value})"
        )


@dataclass
class PackageTreeResult:
    """A built tree plus the diagnostics collected while building it."""

    tree: PackageTree
    warnings: list[DuplicateClassWarning] = field(default_factory=list)
    errors: dict[str, list[InvalidClassNameError]] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return any(self.errors.values())

    @property
    def error_count(self) -> int:
        return sum(len(errors) for errors in self.errors.values())


def split_class_name(class_name: str, file_name: str = "") -> list[str]:
    """Split a dotted class name into package segments followed by the class segment.

    Raises:
        InvalidClassNameError: If the name is empty or has an empty segment.
    """
    segments = class_name.split(".")
    if not class_name or any(not segment for segment in segments):
        raise InvalidClassNameError(
            message=f"Cannot split class name {class_name!r} into package segments",
            class_name=class_name,
            file_name=file_name,
        )
    return segments


class PackageTreeBuilder:
    """Builds one PackageTree per call to :meth:`build`.

    Args:
        symbol_map: Optional deobfuscation map, shared read-only except for
            reference recording.
        duplicate_policy: Handling of classes declared in more than one file.
        record_references: Record every member reference of the inputs into
            the symbol map's usage record before building.
    """

    def __init__(
        self,
        symbol_map: SymbolMap | None = None,
        duplicate_policy: DuplicateClassPolicy = DuplicateClassPolicy.FIRST_WINS,
        record_references: bool = True,
    ) -> None:
        self.symbol_map = symbol_map if symbol_map is not None else SymbolMap()
        self.duplicate_policy = DuplicateClassPolicy(duplicate_policy)
        self.record_references = record_references

    def build(self, sources: Iterable[DexSymbolSource]) -> PackageTreeResult:
        """Merge ``sources`` (in order) into a new tree.

        Raises:
            DuplicateClassError: Only with the ERROR duplicate policy.
        """
        sources = list(sources)
        result = PackageTreeResult(tree=PackageTree())
        origins: dict[str, str] = {}

        if self.record_references:
            for source in sources:
                self._record_references(source)

        for source in sources:
            file_errors: list[InvalidClassNameError] = []
            for symbols in source.classes():
                try:
                    self._insert(result, origins, source.name, symbols)
                except InvalidClassNameError as e:
                    logger.warning("Skipping class", class_name=e.class_name, dex=source.name, error=e.message)
                    file_errors.append(e)
            if file_errors:
                result.errors[source.name] = file_errors

        result.tree.roll_up()
        logger.info(
            "Built package tree",
            files=len(sources),
            classes=result.tree.total_class_count(),
            methods=result.tree.total_method_count(),
            fields=result.tree.total_field_count(),
            duplicates=len(result.warnings),
            errors=result.error_count,
        )
        return result

    def _record_references(self, source: DexSymbolSource) -> None:
        for reference in source.references():
            self.symbol_map.record_usage(
                descriptor_to_class_name(reference.class_name),
                reference.signature,
                reference.kind,
            )

    def _insert(
        self,
        result: PackageTreeResult,
        origins: dict[str, str],
        file_name: str,
        symbols: ClassSymbols,
    ) -> None:
        bytecode_name = descriptor_to_class_name(symbols.name)
        resolved_name = self.symbol_map.resolve_class(bytecode_name)
        segments = split_class_name(resolved_name, file_name)

        parent = self._package_for(result.tree.root, segments[:-1], resolved_name, file_name)
        existing = parent.child(segments[-1])

        if existing is not None and not existing.is_class:
            raise InvalidClassNameError(
                message=f"Class {resolved_name} collides with a package of the same name",
                class_name=resolved_name,
                file_name=file_name,
            )

        if existing is not None:
            kept_file = origins.get(resolved_name, existing.dex_file or "")
            if self.duplicate_policy is DuplicateClassPolicy.ERROR:
                raise DuplicateClassError(
                    message=f"Class {resolved_name} already declared in {kept_file}",
                    class_name=resolved_name,
                    file_name=file_name,
                )
            warning = DuplicateClassWarning(
                class_name=resolved_name,
                kept_file=kept_file if self.duplicate_policy is DuplicateClassPolicy.FIRST_WINS else file_name,
                duplicate_file=file_name if self.duplicate_policy is DuplicateClassPolicy.FIRST_WINS else kept_file,
                policy=self.duplicate_policy,
            )
            logger.warning("Duplicate class", class_name=resolved_name, kept=warning.kept_file, dropped=warning.duplicate_file)
            result.warnings.append(warning)
            if self.duplicate_policy is DuplicateClassPolicy.FIRST_WINS:
                return
            node = existing
        else:
            node = parent.add_child(PackageNode(segments[-1], NodeKind.CLASS))

        origins[resolved_name] = file_name
        self._fill_class(node, symbols, bytecode_name, resolved_name, file_name)

    def _package_for(
        self,
        root: PackageNode,
        segments: list[str],
        class_name: str,
        file_name: str,
    ) -> PackageNode:
        node = root
        for segment in segments:
            child = node.child(segment)
            if child is None:
                child = node.add_child(PackageNode(segment, NodeKind.PACKAGE))
            elif child.is_class:
                raise InvalidClassNameError(
                    message=f"Package segment {segment!r} of {class_name} is already a class",
                    class_name=class_name,
                    file_name=file_name,
                )
            node = child
        return node

    def _fill_class(
        self,
        node: PackageNode,
        symbols: ClassSymbols,
        bytecode_name: str,
        resolved_name: str,
        file_name: str,
    ) -> None:
        node.declared_method_count = len(symbols.methods)
        node.declared_field_count = len(symbols.fields)
        node.own_referenced_method_count = self._referenced(
            symbols.methods, bytecode_name, resolved_name, MemberKind.METHOD
        )
        node.own_referenced_field_count = self._referenced(
            symbols.fields, bytecode_name, resolved_name, MemberKind.FIELD
        )
        node.dex_file = file_name
        node.source_file = symbols.source_file

    def _referenced(
        self,
        declared: tuple[str, ...],
        bytecode_name: str,
        resolved_name: str,
        kind: MemberKind,
    ) -> int:
        """Number of declared members found in the usage record.

        Bytecode references are keyed by the DEX signature under the bytecode
        class name, seeds by the source-form signature under the original one.
        """
        by_bytecode = self.symbol_map.referenced_members(bytecode_name, kind)
        by_original = self.symbol_map.referenced_members(resolved_name, kind)
        if not by_bytecode and not by_original:
            return 0
        return sum(
            1
            for signature in set(declared)
            if signature in by_bytecode
            or (by_original and self._source_signature(signature, bytecode_name, resolved_name) in by_original)
        )

    def _source_signature(self, signature: str, bytecode_name: str, resolved_name: str) -> str:
        if member_name(signature) == "<init>":
            # seeds.txt writes constructors as ClassName(args)
            source = java_member_signature(signature, resolve=self.symbol_map.resolve_class)
            return resolved_name.rsplit(".", 1)[-1] + source[source.index("(") :]
        original = member_name(self.symbol_map.resolve_member(bytecode_name, signature))
        return java_member_signature(signature, original, self.symbol_map.resolve_class)


def build_package_tree(
    sources: Iterable[DexSymbolSource],
    symbol_map: SymbolMap | None = None,
    duplicate_policy: DuplicateClassPolicy = DuplicateClassPolicy.FIRST_WINS,
) -> PackageTreeResult:
    """Convenience wrapper around :class:`PackageTreeBuilder`."""
    return PackageTreeBuilder(symbol_map, duplicate_policy).build(sources)
