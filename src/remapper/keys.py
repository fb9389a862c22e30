# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Encode and decode member keys and type descriptors."""

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from remapper.errors import MalformedKeyError

CONSTRUCTOR_NAMES: frozenset[str] = frozenset({"<init>", "<clinit>"})

_PRIMITIVE_DESCRIPTORS: dict[str, str] = {
    "void": "V",
    "boolean": "Z",
    "byte": "B",
    "char": "C",
    "short": "S",
    "int": "I",
    "long": "J",
    "float": "F",
    "double": "D",
}


@dataclass(frozen=True)
class MemberKey:
    """Identify one field or method by owner, name and optional descriptor.

    Args:
        owner: Internal name of the declaring class.
        name: Simple member name.
        descriptor: Type descriptor; ``None`` for name-only field keys.
    """

    owner: str
    name: str
    descriptor: str | None = None

    def format(self) -> str:
        """Render the key in ``owner/name[ descriptor]`` form.

        Returns:
            Encoded key text.
        """
        if self.descriptor is None:
            return f"{self.owner}/{self.name}"
        return f"{self.owner}/{self.name} {self.descriptor}"

    def bare(self) -> "MemberKey":
        """Return the same key without its descriptor."""
        return MemberKey(owner=self.owner, name=self.name)


def parse_member_key(key: str) -> MemberKey:
    """Parse a field or method key.

    The descriptor starts after the first space; the owner is everything
    before the last slash of the remaining text.

    Args:
        key: Encoded key in ``owner/name[ descriptor]`` form.

    Returns:
        Decoded member key.

    Raises:
        MalformedKeyError: If the key has no owner separator.
    """
    head, space, descriptor = key.partition(" ")
    owner, slash, name = head.rpartition("/")
    if not slash or not owner or not name:
        raise MalformedKeyError(f"Member key has no owner: {key!r}")
    return MemberKey(owner=owner, name=name, descriptor=descriptor if space else None)


def parse_method_key(key: str) -> MemberKey:
    """Parse a method key, which always carries a descriptor.

    Args:
        key: Encoded key in ``owner/name descriptor`` form.

    Returns:
        Decoded member key.

    Raises:
        MalformedKeyError: If the key lacks a descriptor or an owner.
    """
    member_key = parse_member_key(key)
    if not member_key.descriptor:
        raise MalformedKeyError(f"Method key has no descriptor: {key!r}")
    return member_key


def remap_descriptor(
    descriptor: str | None, resolve: Callable[[str], str]
) -> str | None:
    """Rewrite every object type embedded in a descriptor.

    Args:
        descriptor: Field or method descriptor, or ``None``.
        resolve: Maps one internal class name to its replacement.

    Returns:
        Rewritten descriptor, or ``None`` when no descriptor was given.
    """
    if descriptor is None:
        return None
    parts: list[str] = []
    index = 0
    length = len(descriptor)
    while index < length:
        char = descriptor[index]
        if char == "L":
            end = descriptor.find(";", index)
            if end < 0:
                parts.append(descriptor[index:])
                break
            parts.append(f"L{resolve(descriptor[index + 1 : end])};")
            index = end + 1
            continue
        parts.append(char)
        index += 1
    return "".join(parts)


def to_internal_name(class_name: str) -> str:
    """Convert a dotted class name to slash-delimited internal form."""
    return class_name.replace(".", "/")


def display_to_descriptor(type_name: str) -> str:
    """Convert a Java display type such as ``int[]`` to a descriptor.

    Args:
        type_name: Primitive keyword or dotted class name with ``[]`` suffixes.

    Returns:
        Descriptor for the type.
    """
    dimensions = 0
    base = type_name.strip()
    while base.endswith("[]"):
        dimensions += 1
        base = base[:-2]
    primitive = _PRIMITIVE_DESCRIPTORS.get(base)
    element = primitive if primitive else f"L{to_internal_name(base)};"
    return "[" * dimensions + element


def method_descriptor(parameter_types: Iterable[str], return_type: str) -> str:
    """Build a method descriptor from display-style type names."""
    parameters = "".join(display_to_descriptor(name) for name in parameter_types)
    return f"({parameters}){display_to_descriptor(return_type)}"


def is_constructor(name: str) -> bool:
    """Check whether a method name denotes an instance or static initializer."""
    return name in CONSTRUCTOR_NAMES
