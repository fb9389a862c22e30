# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Hold one renaming table and answer lookups against it."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal

from remapper.keys import MemberKey, is_constructor, remap_descriptor

logger = logging.getLogger(__name__)

EntryKind = Literal["class", "field", "method"]
ROOT_PACKAGE = "."


@dataclass(frozen=True)
class MappingEntry:
    """Describe one renamed symbol with both identities and an optional note.

    Class entries leave ``*_owner`` and ``*_descriptor`` unset; their
    names are full internal class names.

    Args:
        kind: Symbol category.
        source_owner: Declaring class in the source namespace.
        source_name: Name in the source namespace.
        source_descriptor: Descriptor in the source namespace.
        target_owner: Declaring class in the target namespace.
        target_name: Name in the target namespace.
        target_descriptor: Descriptor in the target namespace.
        comment: Free-text annotation.
    """

    kind: EntryKind
    source_name: str
    target_name: str
    source_owner: str | None = None
    target_owner: str | None = None
    source_descriptor: str | None = None
    target_descriptor: str | None = None
    comment: str | None = None

    @classmethod
    def for_class(
        cls, source_name: str, target_name: str, comment: str | None = None
    ) -> "MappingEntry":
        return cls(
            kind="class",
            source_name=source_name,
            target_name=target_name,
            comment=comment,
        )

    @classmethod
    def for_member(
        cls,
        kind: Literal["field", "method"],
        source: MemberKey,
        target: MemberKey,
        comment: str | None = None,
    ) -> "MappingEntry":
        return cls(
            kind=kind,
            source_owner=source.owner,
            source_name=source.name,
            source_descriptor=source.descriptor,
            target_owner=target.owner,
            target_name=target.name,
            target_descriptor=target.descriptor,
            comment=comment,
        )

    @property
    def target_key(self) -> str:
        """Return the identity string of the renamed symbol."""
        if self.kind == "class":
            return self.target_name
        if self.kind == "field":
            return f"{self.target_owner}/{self.target_name}"
        return f"{self.target_owner}/{self.target_name} {self.target_descriptor}"

    @property
    def source_key(self) -> str:
        """Return the identity string of the symbol before renaming."""
        if self.kind == "class":
            return self.source_name
        if self.kind == "field":
            return f"{self.source_owner}/{self.source_name}"
        return f"{self.source_owner}/{self.source_name} {self.source_descriptor}"

    @property
    def has_comment(self) -> bool:
        return bool(self.comment)

    def reversed(self) -> "MappingEntry":
        """Return the entry with source and target identities swapped."""
        return MappingEntry(
            kind=self.kind,
            source_owner=self.target_owner,
            source_name=self.target_name,
            source_descriptor=self.target_descriptor,
            target_owner=self.source_owner,
            target_name=self.source_name,
            target_descriptor=self.source_descriptor,
            comment=self.comment,
        )


def canonical_package(name: str) -> str:
    """Normalize a package prefix to slash-delimited form ending in ``/``.

    Args:
        name: Dotted or slashed package name, with or without trailing separator.

    Returns:
        Canonical prefix, or ``"."`` for the root package.
    """
    stripped = name.strip()
    if stripped in ("", ".", "/", "./"):
        return ROOT_PACKAGE
    internal = stripped.replace(".", "/").strip("/")
    return f"{internal}/"


def resolve_nested_class(classes: Mapping[str, str], name: str) -> str:
    """Map a class name exactly, falling back through its enclosing classes.

    ``a/Outer$Inner`` without its own entry is renamed by mapping
    ``a/Outer`` and reattaching ``$Inner``.

    Args:
        classes: Source to target class names.
        name: Internal class name.

    Returns:
        Mapped class name, or ``name`` when nothing applies.
    """
    mapped = classes.get(name)
    if mapped is not None:
        return mapped
    outer, separator, inner = name.rpartition("$")
    if separator and outer:
        mapped_outer = resolve_nested_class(classes, outer)
        if mapped_outer != outer:
            return f"{mapped_outer}${inner}"
    return name


@dataclass(frozen=True)
class SymbolTable:
    """Store package, class, field and method renames for one naming hop.

    The maps are read-only once built. Only the excluded package set may
    grow afterwards.

    Args:
        packages: Canonical source to target package prefixes.
        classes: Source to target internal class names.
        fields: Field keys (``owner/name[ desc]``) to target names.
        methods: Method keys (``owner/name desc``) to target names.
        entries: Per-symbol entries keyed by kind and target identity.
        source_entries: The same entries keyed by kind and source identity.
    """

    packages: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    classes: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    fields: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    methods: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    entries: Mapping[tuple[EntryKind, str], MappingEntry] = field(
        default_factory=lambda: MappingProxyType({})
    )
    source_entries: Mapping[tuple[EntryKind, str], MappingEntry] = field(
        default_factory=lambda: MappingProxyType({}), compare=False, repr=False
    )
    _excluded: set[str] = field(default_factory=set, compare=False, repr=False)

    @property
    def class_count(self) -> int:
        return len(self.classes)

    @property
    def field_count(self) -> int:
        return len(self.fields)

    @property
    def method_count(self) -> int:
        return len(self.methods)

    @property
    def package_count(self) -> int:
        return len(self.packages)

    @property
    def excluded_packages(self) -> frozenset[str]:
        return frozenset(self._excluded)

    def add_excluded_package(self, package: str) -> None:
        """Exclude a package prefix from every later lookup.

        Args:
            package: Dotted or slashed package prefix.
        """
        prefix = canonical_package(package)
        if prefix == ROOT_PACKAGE:
            logger.warning("Ignoring exclusion of the root package")
            return
        self._excluded.add(prefix)

    def is_excluded(self, class_name: str) -> bool:
        return any(class_name.startswith(prefix) for prefix in self._excluded)

    def map_class(self, name: str) -> str:
        """Rename a class by exact entry, enclosing class, then package.

        Args:
            name: Internal class name in the source namespace.

        Returns:
            Target class name, or ``name`` when nothing applies.
        """
        if self.is_excluded(name):
            return name
        mapped = resolve_nested_class(self.classes, name)
        if mapped != name:
            return mapped
        return self._relocate_package(name)

    def map_class_exact(self, name: str) -> str:
        """Rename a class by exact entry only, honouring exclusions."""
        if self.is_excluded(name):
            return name
        return self.classes.get(name, name)

    def map_field(self, owner: str, name: str, descriptor: str | None = None) -> str:
        """Rename a field, preferring a descriptor-qualified entry.

        Args:
            owner: Declaring class in the source namespace.
            name: Field name.
            descriptor: Field type descriptor when known.

        Returns:
            Target field name, or ``name`` when unmapped.
        """
        if self.is_excluded(owner):
            return name
        if descriptor is not None:
            mapped = self.fields.get(MemberKey(owner, name, descriptor).format())
            if mapped is not None:
                return mapped
        return self.fields.get(MemberKey(owner, name).format(), name)

    def map_method(self, owner: str, name: str, descriptor: str) -> str:
        """Rename a method by its exact owner, name and descriptor.

        Args:
            owner: Declaring class in the source namespace.
            name: Method name.
            descriptor: Method descriptor in the source namespace.

        Returns:
            Target method name, or ``name`` when unmapped or a constructor.
        """
        if is_constructor(name) or self.is_excluded(owner):
            return name
        return self.methods.get(MemberKey(owner, name, descriptor).format(), name)

    def map_descriptor(self, descriptor: str | None) -> str | None:
        """Rewrite a descriptor through exact class entries, honouring exclusions."""
        return remap_descriptor(descriptor, self.map_class_exact)

    def rewrite_descriptor(self, descriptor: str | None) -> str | None:
        """Rewrite a descriptor through exact class entries, ignoring exclusions."""
        return remap_descriptor(descriptor, lambda name: self.classes.get(name, name))

    def class_entry(self, target_name: str) -> MappingEntry | None:
        return self.entries.get(("class", target_name))

    def field_entry(self, target_owner: str, target_name: str) -> MappingEntry | None:
        return self.entries.get(("field", f"{target_owner}/{target_name}"))

    def method_entry(
        self, target_owner: str, target_name: str, target_descriptor: str | None
    ) -> MappingEntry | None:
        key = f"{target_owner}/{target_name} {target_descriptor}"
        return self.entries.get(("method", key))

    def find_class_entry(self, source_name: str) -> MappingEntry | None:
        """Look up the entry of a class by its source name."""
        return self.source_entries.get(("class", source_name))

    def find_field_entry(
        self, owner: str, name: str, descriptor: str | None = None
    ) -> MappingEntry | None:
        """Look up the entry of a field by its source identity.

        A descriptor-qualified entry wins over one matched by name only.
        """
        if descriptor is not None:
            entry = self.source_entries.get(
                ("field", MemberKey(owner, name, descriptor).format())
            )
            if entry is not None:
                return entry
        return self.source_entries.get(("field", MemberKey(owner, name).format()))

    def find_method_entry(
        self, owner: str, name: str, descriptor: str | None
    ) -> MappingEntry | None:
        """Look up the entry of a method by its source identity."""
        key = MemberKey(owner, name, descriptor).format()
        return self.source_entries.get(("method", key))

    def _relocate_package(self, name: str) -> str:
        slash = name.rfind("/")
        if slash < 0:
            target = self.packages.get(ROOT_PACKAGE)
            if target is None or target == ROOT_PACKAGE:
                return name
            return f"{target}{name}"
        # Longest prefix wins; prefixes always end on a path separator.
        for prefix in sorted(self.packages, key=len, reverse=True):
            if prefix == ROOT_PACKAGE or not name.startswith(prefix):
                continue
            target = self.packages[prefix]
            remainder = name[len(prefix) :]
            if target == ROOT_PACKAGE:
                return remainder
            return f"{target}{remainder}"
        return name


class TableBuilder:
    """Accumulate renames and produce an immutable :class:`SymbolTable`."""

    def __init__(self) -> None:
        self._packages: dict[str, str] = {}
        self._classes: dict[str, str] = {}
        self._fields: dict[str, str] = {}
        self._methods: dict[str, str] = {}
        self._entries: dict[tuple[EntryKind, str], MappingEntry] = {}
        self._excluded: set[str] = set()

    @property
    def classes(self) -> Mapping[str, str]:
        return MappingProxyType(self._classes)

    @property
    def fields(self) -> Mapping[str, str]:
        return MappingProxyType(self._fields)

    @property
    def methods(self) -> Mapping[str, str]:
        return MappingProxyType(self._methods)

    def add_package(self, source: str, target: str) -> None:
        self._packages[canonical_package(source)] = canonical_package(target)

    def add_class(self, source: str, target: str, comment: str | None = None) -> None:
        """Record a class rename together with its entry."""
        self._classes[source] = target
        self.add_entry(MappingEntry.for_class(source, target, comment))

    def add_field(self, key: str, target_name: str) -> None:
        self._fields[key] = target_name

    def add_method(self, key: str, target_name: str) -> None:
        self._methods[key] = target_name

    def add_entry(self, entry: MappingEntry) -> None:
        self._entries[(entry.kind, entry.target_key)] = entry

    def exclude(self, packages: Iterable[str]) -> None:
        self._excluded.update(packages)

    def map_descriptor(self, descriptor: str | None) -> str | None:
        """Rewrite a descriptor through the classes recorded so far."""
        return remap_descriptor(descriptor, lambda name: self._classes.get(name, name))

    def build(self) -> SymbolTable:
        """Snapshot the accumulated renames.

        Returns:
            Table whose maps are detached from this builder.
        """
        source_entries: dict[tuple[EntryKind, str], MappingEntry] = {}
        for entry in self._entries.values():
            source_entries[(entry.kind, entry.source_key)] = entry
            if entry.kind == "field" and entry.source_descriptor is not None:
                qualified = f"{entry.source_key} {entry.source_descriptor}"
                source_entries[("field", qualified)] = entry
        return SymbolTable(
            packages=MappingProxyType(dict(self._packages)),
            classes=MappingProxyType(dict(self._classes)),
            fields=MappingProxyType(dict(self._fields)),
            methods=MappingProxyType(dict(self._methods)),
            entries=MappingProxyType(dict(self._entries)),
            source_entries=MappingProxyType(source_entries),
            _excluded=set(self._excluded),
        )
