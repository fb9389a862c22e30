# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Compose ordered renaming tables into one end-to-end table."""

import logging

from remapper.errors import EmptyChainError, MalformedKeyError
from remapper.keys import MemberKey, parse_member_key, parse_method_key
from remapper.loader import reverse_table
from remapper.table import MappingEntry, SymbolTable, TableBuilder, resolve_nested_class

logger = logging.getLogger(__name__)

COMMENT_SEPARATOR = " | "


class MappingChain:
    """Collect renaming hops and merge them left to right.

    Each hop's target namespace is expected to be the next hop's source
    namespace.
    """

    def __init__(self) -> None:
        self._hops: list[SymbolTable] = []

    def add(self, table: SymbolTable, reverse: bool = False) -> "MappingChain":
        """Append a hop, optionally reversed first.

        Args:
            table: Renaming table of the hop.
            reverse: Swap the hop's direction before appending it.

        Returns:
            This chain.
        """
        self._hops.append(reverse_table(table) if reverse else table)
        return self

    def __len__(self) -> int:
        return len(self._hops)

    @property
    def is_empty(self) -> bool:
        return not self._hops

    def merge(self) -> SymbolTable:
        """Fold every hop into a single table.

        Returns:
            The only hop unchanged, or the left-to-right composition.

        Raises:
            EmptyChainError: If no hop was added.
        """
        if not self._hops:
            raise EmptyChainError("Mapping chain has no hops")
        result = self._hops[0]
        if len(self._hops) == 1:
            logger.info("Mapping chain has a single hop")
            return result
        for position, hop in enumerate(self._hops[1:], start=2):
            result = compose(result, hop)
            logger.info(
                "Composed mapping hop (hop=%d classes=%d fields=%d methods=%d)",
                position,
                result.class_count,
                result.field_count,
                result.method_count,
            )
        return result


def compose(first: SymbolTable, second: SymbolTable) -> SymbolTable:
    """Compose two hops so that ``first`` is applied before ``second``.

    Args:
        first: Hop from the source namespace to the intermediate one.
        second: Hop from the intermediate namespace to the target one.

    Returns:
        Table renaming source names directly to target names.
    """
    builder = TableBuilder()
    _compose_packages(builder, first, second)
    _compose_classes(builder, first, second)
    _compose_fields(builder, first, second)
    _compose_methods(builder, first, second)
    builder.exclude(first.excluded_packages)
    return builder.build()


def merge_comments(first: str | None, second: str | None) -> str | None:
    """Join two annotations, dropping empty ones.

    Args:
        first: Annotation from the earlier hop.
        second: Annotation from the later hop.

    Returns:
        Both joined with ``" | "``, a single copy when they are equal,
        whichever one is present, or ``None``.
    """
    if first and second and first != second:
        return f"{first}{COMMENT_SEPARATOR}{second}"
    return first or second or None


def _compose_packages(builder: TableBuilder, first: SymbolTable, second: SymbolTable) -> None:
    intermediate_packages = set(first.packages.values())
    for source, intermediate in first.packages.items():
        builder.add_package(source, second.packages.get(intermediate, intermediate))
    for source, target in second.packages.items():
        if source not in intermediate_packages and source not in first.packages:
            builder.add_package(source, target)


def _compose_classes(builder: TableBuilder, first: SymbolTable, second: SymbolTable) -> None:
    for source, intermediate in first.classes.items():
        comment = merge_comments(
            _comment(first.find_class_entry(source)),
            _comment(second.find_class_entry(intermediate)),
        )
        builder.add_class(source, resolve_nested_class(second.classes, intermediate), comment)


def _compose_fields(builder: TableBuilder, first: SymbolTable, second: SymbolTable) -> None:
    for key, intermediate_name in first.fields.items():
        try:
            source_key = parse_member_key(key)
        except MalformedKeyError:
            logger.debug("Skipping malformed field key (key=%s)", key)
            continue
        first_entry = first.find_field_entry(
            source_key.owner, source_key.name, source_key.descriptor
        )
        source_descriptor = source_key.descriptor
        if source_descriptor is None and first_entry is not None:
            source_descriptor = first_entry.source_descriptor
        intermediate_owner = resolve_nested_class(first.classes, source_key.owner)
        intermediate_descriptor = first.rewrite_descriptor(source_descriptor)

        target_owner = resolve_nested_class(second.classes, intermediate_owner)
        target_name = _lookup_field(
            second, intermediate_owner, intermediate_name, intermediate_descriptor
        )
        second_entry = second.find_field_entry(
            intermediate_owner, intermediate_name, intermediate_descriptor
        )
        builder.add_field(key, target_name)
        builder.add_entry(
            MappingEntry.for_member(
                "field",
                MemberKey(source_key.owner, source_key.name, source_descriptor),
                MemberKey(
                    target_owner, target_name, second.rewrite_descriptor(intermediate_descriptor)
                ),
                merge_comments(_comment(first_entry), _comment(second_entry)),
            )
        )


def _compose_methods(builder: TableBuilder, first: SymbolTable, second: SymbolTable) -> None:
    for key, intermediate_name in first.methods.items():
        try:
            source_key = parse_method_key(key)
        except MalformedKeyError:
            logger.debug("Skipping malformed method key (key=%s)", key)
            continue
        intermediate_owner = resolve_nested_class(first.classes, source_key.owner)
        intermediate_descriptor = first.rewrite_descriptor(source_key.descriptor)
        intermediate_key = MemberKey(intermediate_owner, intermediate_name, intermediate_descriptor)

        target_owner = resolve_nested_class(second.classes, intermediate_owner)
        target_name = second.methods.get(intermediate_key.format(), intermediate_name)
        comment = merge_comments(
            _comment(first.find_method_entry(*_identity(source_key))),
            _comment(second.find_method_entry(*_identity(intermediate_key))),
        )
        builder.add_method(key, target_name)
        builder.add_entry(
            MappingEntry.for_member(
                "method",
                source_key,
                MemberKey(
                    target_owner, target_name, second.rewrite_descriptor(intermediate_descriptor)
                ),
                comment,
            )
        )


def _identity(key: MemberKey) -> tuple[str, str, str | None]:
    return key.owner, key.name, key.descriptor


def _lookup_field(
    table: SymbolTable, owner: str, name: str, descriptor: str | None
) -> str:
    if descriptor is not None:
        mapped = table.fields.get(MemberKey(owner, name, descriptor).format())
        if mapped is not None:
            return mapped
    return table.fields.get(MemberKey(owner, name).format(), name)


def _comment(entry: MappingEntry | None) -> str | None:
    return entry.comment if entry is not None else None
