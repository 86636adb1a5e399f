"""
Deobfuscation symbol map.

Two independent parts:

* the rename table, restoring original class and member names after a
  ProGuard/R8 build;
* the usage record, listing classes and members known to be kept or referenced.

Every query is total: an unknown class resolves to itself and is reported as
unused. Only :meth:`SymbolMap.record_usage` mutates the map once it is shared,
and it is safe to call from several threads.
"""

from __future__ import annotations

import threading

from ...models.dex import MemberKind


def member_name(signature: str) -> str:
    """Bare member name of a signature: ``run(I)V`` and ``count:I`` give ``run`` and ``count``."""
    return signature.split("(", 1)[0].split(":", 1)[0]


class SymbolMap:
    """Rename table plus usage record."""

    def __init__(self) -> None:
        self._classes: dict[str, str] = {}
        self._obfuscated_by_original: dict[str, str] = {}
        self._members: dict[str, dict[str, str]] = {}
        self._used_classes: set[str] = set()
        self._used_members: dict[MemberKind, dict[str, set[str]]] = {
            MemberKind.METHOD: {},
            MemberKind.FIELD: {},
        }
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"SymbolMap(classes={len(self._classes)}, "
            f"used_classes={len(self._used_classes)})"
        )

    @property
    def is_empty(self) -> bool:
        return not self._classes and not self._used_classes

    @property
    def renamed_class_count(self) -> int:
        return len(self._classes)

    @property
    def used_class_count(self) -> int:
        return len(self._used_classes)

    # Rename table

    def add_class_mapping(self, obfuscated: str, original: str) -> None:
        self._classes[obfuscated] = original
        self._obfuscated_by_original.setdefault(original, obfuscated)

    def add_member_mapping(self, obfuscated_class: str, obfuscated_member: str, original: str) -> None:
        # R8 emits one line per inlined frame for the same obfuscated name; the first names the method itself
        self._members.setdefault(obfuscated_class, {}).setdefault(obfuscated_member, original)

    def resolve_class(self, obfuscated_name: str) -> str:
        return self._classes.get(obfuscated_name, obfuscated_name)

    def resolve_member(self, class_name: str, obfuscated_signature: str) -> str:
        """Original member name, or the signature unchanged when unmapped.

        ``class_name`` may be the obfuscated or the original class name.
        """
        members = self._members.get(class_name)
        if members is None:
            obfuscated_class = self._obfuscated_by_original.get(class_name)
            members = self._members.get(obfuscated_class, {}) if obfuscated_class else {}
        if obfuscated_signature in members:
            return members[obfuscated_signature]
        return members.get(member_name(obfuscated_signature), obfuscated_signature)

    # Usage record

    def is_class_used(self, name: str) -> bool:
        return name in self._used_classes

    def is_member_used(self, class_name: str, signature: str, kind: MemberKind | None = None) -> bool:
        kinds = (kind,) if kind is not None else tuple(MemberKind)
        return any(signature in self._used_members[k].get(class_name, ()) for k in kinds)

    def referenced_members(self, class_name: str, kind: MemberKind) -> frozenset[str]:
        return frozenset(self._used_members[kind].get(class_name, ()))

    def record_usage(
        self,
        class_name: str,
        member_signature: str | None = None,
        kind: MemberKind = MemberKind.METHOD,
    ) -> None:
        """Mark a class (and optionally one of its members) as referenced. Idempotent."""
        with self._lock:
            self._used_classes.add(class_name)
            if member_signature is not None:
                self._used_members[kind].setdefault(class_name, set()).add(member_signature)
