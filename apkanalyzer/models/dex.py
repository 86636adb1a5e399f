"""
Symbol-level view of DEX files.

The tree builder only needs to enumerate declared classes with their members
and the member references each file makes. Any reader that satisfies
:class:`DexSymbolSource` can feed it; :class:`DexSymbols` is the plain
in-memory implementation.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable


class MemberKind(str, Enum):
    """Kind of a class member."""

    METHOD = "method"
    FIELD = "field"


@dataclass(frozen=True)
class ClassSymbols:
    """A class declared in a DEX file.

    ``name`` may be a type descriptor (``Lcom/example/Foo;``) or a dotted
    name. Method signatures are ``name + descriptor`` (``onCreate(Landroid/os/Bundle;)V``),
    field signatures ``name:type`` (``count:I``).
    """

    name: str
    methods: tuple[str, ...] = ()
    fields: tuple[str, ...] = ()
    source_file: str | None = None


@dataclass(frozen=True)
class MemberReference:
    """An entry of the method_ids or field_ids table: a member some code refers to."""

    class_name: str
    signature: str
    kind: MemberKind = MemberKind.METHOD


@runtime_checkable
class DexSymbolSource(Protocol):
    """What the package tree builder needs from one DEX file."""

    @property
    def name(self) -> str:
        """Identifier of the originating file (e.g. ``classes2.dex``)."""
        ...

    def classes(self) -> Iterable[ClassSymbols]:
        ...

    def references(self) -> Iterable[MemberReference]:
        ...


@dataclass
class DexSymbols:
    """In-memory symbol source."""

    name: str
    declared: list[ClassSymbols] = field(default_factory=list)
    referenced: list[MemberReference] = field(default_factory=list)

    def classes(self) -> Iterable[ClassSymbols]:
        return iter(self.declared)

    def references(self) -> Iterable[MemberReference]:
        return iter(self.referenced)


def descriptor_to_class_name(descriptor: str) -> str:
    """Convert ``Lcom/example/Foo;`` to ``com.example.Foo``. Dotted names pass through."""
    if descriptor.startswith("L") and descriptor.endswith(";"):
        return descriptor[1:-1].replace("/", ".")
    return descriptor


_PRIMITIVES = {
    "V": "void",
    "Z": "boolean",
    "B": "byte",
    "S": "short",
    "C": "char",
    "I": "int",
    "J": "long",
    "F": "float",
    "D": "double",
}


def split_type_descriptors(descriptors: str) -> list[str]:
    """Split concatenated type descriptors: ``I[JLjava/lang/String;`` gives three."""
    types = []
    position = 0
    while position < len(descriptors):
        start = position
        while position < len(descriptors) - 1 and descriptors[position] == "[":
            position += 1
        if descriptors[position] == "L":
            end = descriptors.find(";", position)
            position = len(descriptors) if end == -1 else end + 1
        else:
            position += 1
        types.append(descriptors[start:position])
    return types


def descriptor_to_java_type(descriptor: str, resolve: Callable[[str], str] | None = None) -> str:
    """Convert a type descriptor to its source form: ``[Lcom/example/Foo;`` gives ``com.example.Foo[]``.

    ``resolve`` maps dotted class names, e.g. to restore obfuscated ones.
    """
    dimensions = len(descriptor) - len(descriptor.lstrip("["))
    element = descriptor[dimensions:]
    if element in _PRIMITIVES:
        name = _PRIMITIVES[element]
    else:
        name = descriptor_to_class_name(element)
        if resolve is not None:
            name = resolve(name)
    return name + "[]" * dimensions


def java_member_signature(
    signature: str,
    name: str | None = None,
    resolve: Callable[[str], str] | None = None,
) -> str:
    """Source-form signature as written in seeds.txt and mapping.txt.

    ``run(ILjava/lang/String;)V`` gives ``void run(int,java.lang.String)`` and
    ``count:I`` gives ``int count``. ``name`` replaces the member name.
    """
    if "(" in signature:
        member, _, rest = signature.partition("(")
        params, _, return_type = rest.partition(")")
        args = ",".join(descriptor_to_java_type(t, resolve) for t in split_type_descriptors(params))
        return f"{descriptor_to_java_type(return_type, resolve)} {name or member}({args})"
    member, _, field_type = signature.partition(":")
    return f"{descriptor_to_java_type(field_type, resolve)} {name or member}"
