# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Load renaming tables from the supported mapping notations.

Every notation is first parsed into a tier-neutral intermediate form
(:class:`ParsedMapping`) whose member descriptors are expressed in the
first tier's class names. Building a table then selects a source and a
target tier and translates descriptors into the source tier. The
structured YAML document is the exception: it is applied entry by entry
so that member signatures follow the classes declared before them.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml

from remapper.errors import FormatError, MalformedKeyError, NamespaceNotFoundError, RemapIOError
from remapper.keys import (
    MemberKey,
    display_to_descriptor,
    method_descriptor,
    parse_member_key,
    parse_method_key,
    remap_descriptor,
    to_internal_name,
)
from remapper.table import MappingEntry, SymbolTable, TableBuilder, resolve_nested_class

logger = logging.getLogger(__name__)

MappingFormat = Literal["yaml", "srg", "csrg", "tsrg", "tsrg2", "tiny1", "tiny2", "proguard"]

TWO_TIER_NAMESPACES = ("source", "target")

_EXTENSION_FORMATS: dict[str, MappingFormat] = {
    ".yaml": "yaml",
    ".yml": "yaml",
    ".srg": "srg",
    ".xsrg": "srg",
    ".csrg": "csrg",
}
_TIERED_FORMATS = frozenset({"tsrg2", "tiny1", "tiny2"})
_SRG_DIRECTIVE = re.compile(r"^(PK|CL|FD|MD):\s")
_PROGUARD_CLASS = re.compile(r"^(?P<original>\S+)\s+->\s+(?P<obfuscated>\S+):$")
_PROGUARD_MEMBER = re.compile(
    r"^\s+(?:\d+:\d+:)?(?P<type>\S+)\s+(?P<name>[^\s(]+)"
    r"(?:\((?P<arguments>[^)]*)\))?(?::\d+(?::\d+)?)?\s+->\s+(?P<obfuscated>\S+)$"
)
_JVM_NAME = re.compile(r"^[\w$/<>-]+$")
_TINY_ESCAPES = {"\\": "\\", "n": "\n", "r": "\r", "t": "\t", "0": "\0"}


@dataclass
class ParsedMember:
    """Hold one field or method row with one name per tier.

    Args:
        names: Member name per tier; ``None`` where a tier has no name.
        descriptor: Descriptor in first-tier class names, if known.
        comment: Attached annotation.
    """

    names: list[str | None]
    descriptor: str | None = None
    comment: str | None = None

    def name_at(self, tier: int) -> str | None:
        return self.names[tier] if tier < len(self.names) else None


@dataclass
class ParsedClass:
    """Hold one class and its members.

    ``declared`` is false for owners that only appear as member owners;
    such classes contribute members but no class rename.
    """

    names: list[str | None]
    declared: bool = False
    comment: str | None = None
    fields: list[ParsedMember] = field(default_factory=list)
    methods: list[ParsedMember] = field(default_factory=list)

    def name_at(self, tier: int) -> str | None:
        return self.names[tier] if tier < len(self.names) else None


@dataclass
class ParsedMapping:
    """Hold a parsed mapping file before tier selection."""

    format: MappingFormat
    namespaces: tuple[str, ...]
    packages: list[tuple[str, str]] = field(default_factory=list)
    classes: dict[str, ParsedClass] = field(default_factory=dict)

    def owner(self, first_name: str) -> ParsedClass:
        """Return the class keyed by its first-tier name, creating it on demand."""
        parsed = self.classes.get(first_name)
        if parsed is None:
            parsed = ParsedClass(names=[first_name] + [None] * (len(self.namespaces) - 1))
            self.classes[first_name] = parsed
        return parsed

    def declare(self, names: list[str | None], comment: str | None = None) -> ParsedClass:
        first_name = names[0]
        if not first_name:
            raise FormatError("Class row without a first-tier name")
        parsed = self.owner(first_name)
        parsed.names = names
        parsed.declared = True
        if comment:
            parsed.comment = comment
        return parsed


@dataclass(frozen=True)
class MappingSource:
    """Describe one mapping file of a chain and how to read it.

    Args:
        path: Mapping file.
        source_namespace: Tier to rename from, for multi-tier notations.
        target_namespace: Tier to rename to, for multi-tier notations.
        reverse: Swap the direction of the loaded table.
    """

    path: Path
    source_namespace: str | None = None
    target_namespace: str | None = None
    reverse: bool = False

    def load(self) -> SymbolTable:
        return load_mappings(
            self.path,
            source_namespace=self.source_namespace,
            target_namespace=self.target_namespace,
            reverse=self.reverse,
        )


def load_mappings(
    path: Path,
    source_namespace: str | None = None,
    target_namespace: str | None = None,
    reverse: bool = False,
) -> SymbolTable:
    """Read a mapping file and build a renaming table from it.

    Args:
        path: Mapping file in any supported notation.
        source_namespace: Tier to rename from, for multi-tier notations.
        target_namespace: Tier to rename to, for multi-tier notations.
        reverse: Swap the direction of the resulting table.

    Returns:
        Renaming table.

    Raises:
        RemapIOError: If the file cannot be read.
        FormatError: If the content matches no supported notation.
        NamespaceNotFoundError: If a requested tier is not declared.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Failed reading mapping file (path=%s error=%s)", path, exc)
        raise RemapIOError(f"Cannot read mapping file {path}: {exc}") from exc
    table = load_text(
        text,
        filename=path.name,
        source_namespace=source_namespace,
        target_namespace=target_namespace,
        reverse=reverse,
    )
    logger.info(
        "Loaded mapping (path=%s classes=%d fields=%d methods=%d packages=%d)",
        path,
        table.class_count,
        table.field_count,
        table.method_count,
        table.package_count,
    )
    return table


def load_text(
    text: str,
    filename: str | None = None,
    source_namespace: str | None = None,
    target_namespace: str | None = None,
    reverse: bool = False,
) -> SymbolTable:
    """Build a renaming table from in-memory mapping content.

    Args:
        text: Mapping content.
        filename: Optional file name used for notation detection.
        source_namespace: Tier to rename from, for multi-tier notations.
        target_namespace: Tier to rename to, for multi-tier notations.
        reverse: Swap the direction of the resulting table.

    Returns:
        Renaming table.
    """
    mapping_format = detect_format(filename, text)
    logger.debug("Detected mapping format (filename=%s format=%s)", filename, mapping_format)
    if mapping_format == "yaml":
        if source_namespace or target_namespace:
            logger.debug("Ignoring tier selection for structured mapping")
        table = _load_yaml(text)
    else:
        parsed = _PARSERS[mapping_format](text)
        table = build_table(parsed, source_namespace, target_namespace)
    return reverse_table(table) if reverse else table


def detect_format(filename: str | None, text: str) -> MappingFormat:
    """Decide the notation of mapping content.

    The file extension decides when it is unambiguous; otherwise the first
    meaningful line is inspected.

    Args:
        filename: File name, or ``None`` for anonymous content.
        text: Mapping content.

    Returns:
        Detected notation.

    Raises:
        FormatError: If no notation matches.
    """
    suffix = Path(filename).suffix.lower() if filename else ""
    if suffix in _EXTENSION_FORMATS:
        return _EXTENSION_FORMATS[suffix]

    lines = [line for line in text.splitlines() if line.strip() and not line.startswith("#")]
    if not lines:
        if suffix in (".tsrg", ".tiny"):
            return "tsrg" if suffix == ".tsrg" else "tiny2"
        raise FormatError(f"Mapping content is empty (filename={filename})")

    first = lines[0]
    if first.startswith("tiny\t2\t"):
        return "tiny2"
    if first.startswith("v1\t"):
        return "tiny1"
    if first.startswith("tsrg2 "):
        return "tsrg2"
    if suffix == ".tsrg":
        return "tsrg"
    if _SRG_DIRECTIVE.match(first):
        return "srg"
    if _PROGUARD_CLASS.match(first.rstrip()):
        return "proguard"
    if re.match(r"^(version|classes)\s*:", first):
        return "yaml"
    if any(line[0] in " \t" for line in lines):
        return "tsrg"
    if _looks_like_csrg(lines):
        return "csrg"
    raise FormatError(f"Unrecognized mapping format (filename={filename})")


def build_table(
    parsed: ParsedMapping,
    source_namespace: str | None = None,
    target_namespace: str | None = None,
) -> SymbolTable:
    """Select two tiers of a parsed mapping and build a renaming table.

    Args:
        parsed: Tier-neutral parse result.
        source_namespace: Tier to rename from; defaults to the first tier.
        target_namespace: Tier to rename to; defaults to the last tier.

    Returns:
        Renaming table.

    Raises:
        NamespaceNotFoundError: If a requested tier is not declared.
    """
    source_tier, target_tier = _select_tiers(parsed, source_namespace, target_namespace)
    builder = TableBuilder()
    for source, target in parsed.packages:
        builder.add_package(source, target)

    named: dict[str, str] = {}
    for parsed_class in parsed.classes.values():
        source_name = parsed_class.name_at(source_tier)
        target_name = parsed_class.name_at(target_tier)
        if parsed_class.declared and source_name and target_name:
            named[source_name] = target_name

    to_source: dict[str, str] = {}
    to_target: dict[str, str] = {}
    for first_name, parsed_class in parsed.classes.items():
        if not parsed_class.declared:
            continue
        source_name = parsed_class.name_at(source_tier)
        if not source_name:
            continue
        # Inner classes without a target name follow their enclosing class.
        target_name = parsed_class.name_at(target_tier) or resolve_nested_class(
            named, source_name
        )
        to_source[first_name] = source_name
        to_target[first_name] = target_name
        builder.add_class(source_name, target_name, parsed_class.comment)

    for first_name, parsed_class in parsed.classes.items():
        source_owner = parsed_class.name_at(source_tier) or resolve_nested_class(
            to_source, first_name
        )
        target_owner = parsed_class.name_at(target_tier) or resolve_nested_class(
            to_target, first_name
        )
        for member in parsed_class.fields:
            source_key, target_key = _member_keys(
                member, source_tier, target_tier, source_owner, target_owner, to_source, to_target
            )
            if source_key is None:
                continue
            builder.add_field(source_key.bare().format(), target_key.name)
            builder.add_entry(
                MappingEntry.for_member("field", source_key, target_key, member.comment)
            )
        for member in parsed_class.methods:
            source_key, target_key = _member_keys(
                member, source_tier, target_tier, source_owner, target_owner, to_source, to_target
            )
            if source_key is None:
                continue
            if source_key.descriptor is None:
                logger.warning(
                    "Skipping method without descriptor (owner=%s name=%s)",
                    source_owner,
                    source_key.name,
                )
                continue
            builder.add_method(source_key.format(), target_key.name)
            builder.add_entry(
                MappingEntry.for_member("method", source_key, target_key, member.comment)
            )
    return builder.build()


def reverse_table(table: SymbolTable) -> SymbolTable:
    """Swap the direction of a renaming table.

    Member keys are re-derived in the new source namespace: owners and
    descriptors are renamed through the original table's class entries.
    Excluded packages are not carried over because they name the old
    source namespace.

    Args:
        table: Table to reverse.

    Returns:
        Reversed table.
    """
    builder = TableBuilder()
    for source, target in table.packages.items():
        builder.add_package(target, source)
    for source, target in table.classes.items():
        builder.add_class(target, source)

    for key, target_name in table.fields.items():
        try:
            member_key = parse_member_key(key)
        except MalformedKeyError:
            logger.debug("Skipping malformed field key during reversal (key=%s)", key)
            continue
        reversed_key = MemberKey(
            owner=resolve_nested_class(table.classes, member_key.owner),
            name=target_name,
            descriptor=table.rewrite_descriptor(member_key.descriptor),
        )
        builder.add_field(reversed_key.format(), member_key.name)

    for key, target_name in table.methods.items():
        try:
            member_key = parse_method_key(key)
        except MalformedKeyError:
            logger.debug("Skipping malformed method key during reversal (key=%s)", key)
            continue
        reversed_key = MemberKey(
            owner=resolve_nested_class(table.classes, member_key.owner),
            name=target_name,
            descriptor=table.rewrite_descriptor(member_key.descriptor),
        )
        builder.add_method(reversed_key.format(), member_key.name)

    for entry in table.entries.values():
        builder.add_entry(entry.reversed())
    return builder.build()


def _select_tiers(
    parsed: ParsedMapping, source_namespace: str | None, target_namespace: str | None
) -> tuple[int, int]:
    if parsed.format not in _TIERED_FORMATS:
        if source_namespace or target_namespace:
            logger.debug("Ignoring tier selection (format=%s)", parsed.format)
        return 0, 1
    namespaces = parsed.namespaces
    source_tier = _tier_index(namespaces, source_namespace, default=0)
    target_tier = _tier_index(namespaces, target_namespace, default=len(namespaces) - 1)
    if source_tier == target_tier:
        logger.warning("Source and target tiers coincide (namespace=%s)", namespaces[source_tier])
    return source_tier, target_tier


def _tier_index(namespaces: tuple[str, ...], requested: str | None, default: int) -> int:
    if requested is None:
        return default
    try:
        return namespaces.index(requested)
    except ValueError as exc:
        raise NamespaceNotFoundError(
            f"Namespace {requested!r} not found; available: {', '.join(namespaces)}"
        ) from exc


def _member_keys(
    member: ParsedMember,
    source_tier: int,
    target_tier: int,
    source_owner: str,
    target_owner: str,
    to_source: dict[str, str],
    to_target: dict[str, str],
) -> tuple[MemberKey | None, MemberKey]:
    source_name = member.name_at(source_tier)
    target_name = member.name_at(target_tier) or source_name or ""
    source_key = None
    if source_name:
        source_key = MemberKey(
            owner=source_owner,
            name=source_name,
            descriptor=remap_descriptor(member.descriptor, lambda name: to_source.get(name, name)),
        )
    target_key = MemberKey(
        owner=target_owner,
        name=target_name,
        descriptor=remap_descriptor(member.descriptor, lambda name: to_target.get(name, name)),
    )
    return source_key, target_key


def _load_yaml(text: str) -> SymbolTable:
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        logger.warning("Failed parsing structured mapping (error=%s)", exc)
        raise FormatError(f"Invalid structured mapping: {exc}") from exc
    builder = TableBuilder()
    if document is None:
        return builder.build()
    if not isinstance(document, dict):
        raise FormatError("Structured mapping must be a mapping document")
    for class_item in document.get("classes") or []:
        if not isinstance(class_item, dict):
            logger.warning("Skipping malformed class item (item=%r)", class_item)
            continue
        _apply_yaml_class(builder, class_item)
    return builder.build()


def _apply_yaml_class(builder: TableBuilder, item: dict[str, Any]) -> None:
    obfuscated = item.get("obfuscated")
    readable = item.get("readable")
    if not obfuscated or not readable:
        logger.warning("Skipping class without names (item=%r)", item)
        return
    source_owner = to_internal_name(str(obfuscated))
    target_owner = to_internal_name(str(readable))
    existing = builder.classes.get(source_owner)
    if existing is not None and existing != target_owner:
        raise FormatError(
            f"Conflicting class mapping for {source_owner}: {existing} and {target_owner}"
        )
    if existing is None:
        builder.add_class(source_owner, target_owner, item.get("comment"))

    for field_item in item.get("fields") or []:
        name, target_name = _yaml_names(field_item)
        if name is None:
            logger.warning("Skipping field without names (owner=%s)", source_owner)
            continue
        descriptor = field_item.get("type")
        key = MemberKey(source_owner, name).format()
        _check_duplicate(builder.fields, key, target_name, "field")
        builder.add_field(key, target_name)
        builder.add_entry(
            MappingEntry.for_member(
                "field",
                MemberKey(source_owner, name, descriptor),
                MemberKey(target_owner, target_name, builder.map_descriptor(descriptor)),
                field_item.get("comment"),
            )
        )

    for method_item in item.get("methods") or []:
        name, target_name = _yaml_names(method_item)
        descriptor = method_item.get("descriptor")
        if name is None or not descriptor:
            logger.warning("Skipping method without names or descriptor (owner=%s)", source_owner)
            continue
        key = MemberKey(source_owner, name, descriptor).format()
        _check_duplicate(builder.methods, key, target_name, "method")
        builder.add_method(key, target_name)
        builder.add_entry(
            MappingEntry.for_member(
                "method",
                MemberKey(source_owner, name, descriptor),
                MemberKey(target_owner, target_name, builder.map_descriptor(descriptor)),
                method_item.get("comment"),
            )
        )


def _yaml_names(item: Any) -> tuple[str | None, str]:
    if not isinstance(item, dict):
        return None, ""
    obfuscated = item.get("obfuscated")
    readable = item.get("readable")
    if not obfuscated or not readable:
        return None, ""
    return str(obfuscated), str(readable)


def _check_duplicate(existing: Mapping[str, str], key: str, target_name: str, kind: str) -> None:
    previous = existing.get(key)
    if previous is not None and previous != target_name:
        raise FormatError(f"Conflicting {kind} mapping for {key}: {previous} and {target_name}")


def _parse_srg(text: str) -> ParsedMapping:
    parsed = ParsedMapping(format="srg", namespaces=TWO_TIER_NAMESPACES)
    for number, line in _content_lines(text):
        directive, _, rest = line.partition(":")
        tokens = rest.split()
        if directive == "PK" and len(tokens) == 2:
            parsed.packages.append((tokens[0], tokens[1]))
        elif directive == "CL" and len(tokens) == 2:
            parsed.declare([tokens[0], tokens[1]])
        elif directive == "FD" and len(tokens) in (2, 4):
            source = _srg_member(tokens[0], number)
            target = _srg_member(tokens[-2] if len(tokens) == 4 else tokens[1], number)
            owner = parsed.owner(source.owner)
            owner.names[1] = owner.names[1] or target.owner
            descriptor = tokens[1] if len(tokens) == 4 else None
            owner.fields.append(ParsedMember(names=[source.name, target.name], descriptor=descriptor))
        elif directive == "MD" and len(tokens) == 4:
            source = _srg_member(tokens[0], number)
            target = _srg_member(tokens[2], number)
            owner = parsed.owner(source.owner)
            owner.names[1] = owner.names[1] or target.owner
            owner.methods.append(ParsedMember(names=[source.name, target.name], descriptor=tokens[1]))
        else:
            raise FormatError(f"Unrecognized SRG line {number}: {line!r}")
    return parsed


def _srg_member(token: str, number: int) -> MemberKey:
    try:
        return parse_member_key(token)
    except MalformedKeyError as exc:
        raise FormatError(f"Member without owner on line {number}: {token!r}") from exc


def _parse_csrg(text: str) -> ParsedMapping:
    parsed = ParsedMapping(format="csrg", namespaces=TWO_TIER_NAMESPACES)
    for number, line in _content_lines(text):
        tokens = line.split()
        if len(tokens) == 2 and tokens[0].endswith("/"):
            parsed.packages.append((tokens[0], tokens[1]))
        elif len(tokens) == 2:
            parsed.declare([tokens[0], tokens[1]])
        elif len(tokens) == 3:
            parsed.owner(tokens[0]).fields.append(ParsedMember(names=[tokens[1], tokens[2]]))
        elif len(tokens) == 4 and tokens[2].startswith("("):
            parsed.owner(tokens[0]).methods.append(
                ParsedMember(names=[tokens[1], tokens[3]], descriptor=tokens[2])
            )
        else:
            raise FormatError(f"Unrecognized CSRG line {number}: {line!r}")
    return parsed


def _parse_tsrg(text: str) -> ParsedMapping:
    parsed = ParsedMapping(format="tsrg", namespaces=TWO_TIER_NAMESPACES)
    current: ParsedClass | None = None
    for number, line in _content_lines(text):
        tokens = line.split()
        if line[0] not in " \t":
            if len(tokens) != 2:
                raise FormatError(f"Unrecognized TSRG line {number}: {line!r}")
            if tokens[0].endswith("/"):
                parsed.packages.append((tokens[0], tokens[1]))
                current = None
            else:
                current = parsed.declare([tokens[0], tokens[1]])
            continue
        if current is None:
            raise FormatError(f"Member row outside a class on line {number}")
        if len(tokens) == 2:
            current.fields.append(ParsedMember(names=[tokens[0], tokens[1]]))
        elif len(tokens) == 3:
            current.methods.append(ParsedMember(names=[tokens[0], tokens[2]], descriptor=tokens[1]))
        else:
            raise FormatError(f"Unrecognized TSRG member on line {number}: {line!r}")
    return parsed


def _parse_tsrg2(text: str) -> ParsedMapping:
    lines = _content_lines(text)
    if not lines:
        raise FormatError("TSRG2 mapping has no header")
    header = lines[0][1].split()
    namespaces = tuple(header[1:])
    if header[0] != "tsrg2" or len(namespaces) < 2:
        raise FormatError(f"Invalid TSRG2 header: {lines[0][1]!r}")
    parsed = ParsedMapping(format="tsrg2", namespaces=namespaces)
    width = len(namespaces)
    current: ParsedClass | None = None
    for number, line in lines[1:]:
        depth = len(line) - len(line.lstrip("\t"))
        tokens = line.split()
        if depth == 0:
            if len(tokens) != width:
                raise FormatError(f"Class row with wrong column count on line {number}")
            current = parsed.declare(list(tokens))
            continue
        if depth > 1:
            # Parameter rows and static markers.
            continue
        if current is None:
            raise FormatError(f"Member row outside a class on line {number}")
        if len(tokens) == width:
            current.fields.append(ParsedMember(names=list(tokens)))
        elif len(tokens) == width + 1 and tokens[1].startswith("("):
            current.methods.append(
                ParsedMember(names=[tokens[0]] + tokens[2:], descriptor=tokens[1])
            )
        elif len(tokens) == width + 1:
            current.fields.append(ParsedMember(names=[tokens[0]] + tokens[2:], descriptor=tokens[1]))
        else:
            raise FormatError(f"Member row with wrong column count on line {number}")
    return parsed


def _parse_tiny1(text: str) -> ParsedMapping:
    lines = _content_lines(text)
    if not lines:
        raise FormatError("Tiny v1 mapping has no header")
    header = lines[0][1].split("\t")
    namespaces = tuple(header[1:])
    if header[0] != "v1" or len(namespaces) < 2:
        raise FormatError(f"Invalid tiny v1 header: {lines[0][1]!r}")
    parsed = ParsedMapping(format="tiny1", namespaces=namespaces)
    width = len(namespaces)
    for number, line in lines[1:]:
        columns = line.split("\t")
        kind = columns[0]
        if kind == "CLASS" and len(columns) == width + 1:
            parsed.declare(_tier_names(columns[1:]))
        elif kind == "FIELD" and len(columns) == width + 3:
            parsed.owner(columns[1]).fields.append(
                ParsedMember(names=_tier_names(columns[3:]), descriptor=columns[2])
            )
        elif kind == "METHOD" and len(columns) == width + 3:
            parsed.owner(columns[1]).methods.append(
                ParsedMember(names=_tier_names(columns[3:]), descriptor=columns[2])
            )
        else:
            raise FormatError(f"Unrecognized tiny v1 row on line {number}: {line!r}")
    return parsed


def _parse_tiny2(text: str) -> ParsedMapping:
    lines = _content_lines(text)
    if not lines:
        raise FormatError("Tiny v2 mapping has no header")
    header = lines[0][1].split("\t")
    namespaces = tuple(header[3:])
    if header[:3] != ["tiny", "2", "0"] or len(namespaces) < 2:
        raise FormatError(f"Invalid tiny v2 header: {lines[0][1]!r}")
    parsed = ParsedMapping(format="tiny2", namespaces=namespaces)
    width = len(namespaces)
    escaped_names = False
    current_class: ParsedClass | None = None
    current_member: ParsedMember | None = None
    for number, line in lines[1:]:
        depth = len(line) - len(line.lstrip("\t"))
        columns = line[depth:].split("\t")
        kind = columns[0]
        if current_class is None and depth == 1:
            if kind == "escaped-names":
                escaped_names = True
            continue
        if depth == 0:
            if kind != "c" or len(columns) != width + 1:
                raise FormatError(f"Unrecognized tiny v2 row on line {number}: {line!r}")
            names = _tier_names(columns[1:], escaped_names)
            current_class = parsed.declare(names)
            current_member = None
        elif depth == 1 and current_class is not None:
            current_member = None
            if kind == "c":
                current_class.comment = _unescape_tiny("\t".join(columns[1:]))
            elif kind in ("f", "m") and len(columns) == width + 2:
                current_member = ParsedMember(
                    names=_tier_names(columns[2:], escaped_names), descriptor=columns[1]
                )
                target = current_class.fields if kind == "f" else current_class.methods
                target.append(current_member)
            else:
                raise FormatError(f"Unrecognized tiny v2 member on line {number}: {line!r}")
        elif depth == 2 and kind == "c" and current_member is not None:
            current_member.comment = _unescape_tiny("\t".join(columns[1:]))
        # Parameters, locals and their comments carry nothing renameable.
    return parsed


def _parse_proguard(text: str) -> ParsedMapping:
    parsed = ParsedMapping(format="proguard", namespaces=("obfuscated", "original"))
    original_to_obfuscated: dict[str, str] = {}
    pending: list[tuple[ParsedMember, str | None, str]] = []
    current: ParsedClass | None = None
    for number, line in _content_lines(text):
        if line.lstrip().startswith("#"):
            continue
        class_match = _PROGUARD_CLASS.match(line.rstrip())
        if class_match:
            original = to_internal_name(class_match.group("original"))
            obfuscated = to_internal_name(class_match.group("obfuscated"))
            original_to_obfuscated[original] = obfuscated
            current = parsed.declare([obfuscated, original])
            continue
        member_match = _PROGUARD_MEMBER.match(line.rstrip())
        if member_match is None:
            raise FormatError(f"Unrecognized ProGuard line {number}: {line!r}")
        if current is None:
            raise FormatError(f"Member row outside a class on line {number}")
        name = member_match.group("name")
        if "." in name:
            # Inlined from another class.
            continue
        member = ParsedMember(names=[member_match.group("obfuscated"), name])
        arguments = member_match.group("arguments")
        if arguments is None:
            current.fields.append(member)
        else:
            current.methods.append(member)
        pending.append((member, arguments, member_match.group("type")))

    for member, arguments, type_name in pending:
        if arguments is None:
            descriptor = display_to_descriptor(type_name)
        else:
            parameters = [part.strip() for part in arguments.split(",") if part.strip()]
            descriptor = method_descriptor(parameters, type_name)
        member.descriptor = remap_descriptor(
            descriptor, lambda name: original_to_obfuscated.get(name, name)
        )
    return parsed


def _looks_like_csrg(lines: list[str]) -> bool:
    """Tell compact table rows apart from arbitrary short text.

    Every row must consist of name-shaped tokens, method rows need a
    descriptor, and at least one row must show a package path or a
    method descriptor.
    """
    structured = False
    for line in lines:
        tokens = line.split()
        if len(tokens) == 4:
            descriptor = tokens.pop(2)
            if not descriptor.startswith("(") or ")" not in descriptor:
                return False
            structured = True
        elif len(tokens) not in (2, 3):
            return False
        if not all(_JVM_NAME.match(token) for token in tokens):
            return False
        if "/" in tokens[0]:
            structured = True
    return structured


def _content_lines(text: str) -> list[tuple[int, str]]:
    return [
        (number, line.rstrip("\r\n"))
        for number, line in enumerate(text.splitlines(), start=1)
        if line.strip() and not line.startswith("#")
    ]


def _tier_names(columns: list[str], escaped: bool = False) -> list[str | None]:
    names: list[str | None] = []
    for column in columns:
        if not column:
            names.append(None)
        else:
            names.append(_unescape_tiny(column) if escaped else column)
    return names


def _unescape_tiny(value: str) -> str:
    if "\\" not in value:
        return value
    result: list[str] = []
    index = 0
    while index < len(value):
        char = value[index]
        if char == "\\" and index + 1 < len(value):
            result.append(_TINY_ESCAPES.get(value[index + 1], value[index + 1]))
            index += 2
            continue
        result.append(char)
        index += 1
    return "".join(result)


_PARSERS = {
    "srg": _parse_srg,
    "csrg": _parse_csrg,
    "tsrg": _parse_tsrg,
    "tsrg2": _parse_tsrg2,
    "tiny1": _parse_tiny1,
    "tiny2": _parse_tiny2,
    "proguard": _parse_proguard,
}
