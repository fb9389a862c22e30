# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Rewrite smali sources and trees with a renaming table.

Each line is processed by an ordered list of passes. A pass only touches
text outside string literals and outside spans an earlier pass already
rewrote, so a token is never renamed twice. Trailing ``#`` comments are
split off before the passes run and reattached verbatim.
"""

import concurrent.futures
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from remapper.errors import RemapIOError
from remapper.table import SymbolTable

logger = logging.getLogger(__name__)

FileStatus = Literal["changed", "unchanged", "unmodified"]
Span = tuple[int, int]

SMALI_SUFFIX = ".smali"

_CLASS_DECLARATION = re.compile(r"^\s*\.class\b[^\"]*?\bL(?P<name>[^\s;\"]+);")
_FIELD_DEFINITION = re.compile(
    r"^\s*\.field\s+(?:[\w-]+\s+)*(?P<name>[^\s:\"]+):(?P<type>\S+)"
)
_METHOD_DEFINITION = re.compile(
    r"^\s*\.method\s+(?:[\w-]+\s+)*(?P<name>[^\s(\"]+)"
    r"\((?P<parameters>[^)\s]*)\)(?P<returns>\S+)"
)
_MEMBER_REFERENCE = re.compile(
    r"L(?P<owner>[^\s;\"()\[\]{}:,]+);->(?P<name>[^\s(:\"]+)"
    r"(?:\((?P<parameters>[^)\s]*)\)(?P<returns>\[*(?:L[^;\s]+;|[VZBSCIJFD]))"
    r"|:(?P<type>\[*(?:L[^;\s]+;|[ZBSCIJFD])))"
)
_TYPE_TOKEN = re.compile(r"L(?P<name>[^\s;\"()\[\]{}:,=<>]+);")


@dataclass(frozen=True)
class LineState:
    """Carry one line's code part between passes.

    Args:
        text: Current code text of the line, comment excluded.
        rewritten: Spans of ``text`` produced by earlier passes.
        renamed: Number of tokens whose text changed so far.
    """

    text: str
    rewritten: tuple[Span, ...] = ()
    renamed: int = 0


@dataclass(frozen=True)
class RewriteContext:
    table: SymbolTable
    owner: str


@dataclass(frozen=True)
class SmaliRewriteResult:
    """Store the rewritten file and what it declared.

    Args:
        text: Rewritten smali source.
        class_name: Declared class before renaming; ``None`` without a declaration.
        mapped_class_name: Declared class after renaming.
        symbols_renamed: Count of tokens whose text changed.
    """

    text: str
    class_name: str | None
    mapped_class_name: str | None
    symbols_renamed: int

    @property
    def has_class(self) -> bool:
        return self.class_name is not None


@dataclass(frozen=True)
class FileOutcome:
    """Report what happened to one smali file of a tree.

    Args:
        source: Input file.
        destination: File written for it.
        status: ``changed``, ``unchanged`` or ``unmodified``.
        symbols_renamed: Count of tokens whose text changed.
    """

    source: Path
    destination: Path
    status: FileStatus
    symbols_renamed: int = 0


@dataclass(frozen=True)
class _Edit:
    start: int
    end: int
    replacement: str


RewritePass = Callable[[LineState, RewriteContext], LineState]


def find_class_name(text: str) -> str | None:
    """Return the internal name declared by the first ``.class`` line."""
    for line in text.split("\n"):
        code, _ = split_comment(line)
        match = _CLASS_DECLARATION.match(code)
        if match:
            return match.group("name")
    return None


def split_comment(line: str) -> tuple[str, str]:
    """Split a line into its code and its trailing ``#`` comment.

    A ``#`` inside a string literal does not start a comment; a backslash
    escapes the following character inside a literal.

    Args:
        line: One source line without its line terminator.

    Returns:
        Code part and comment part (empty when there is none).
    """
    in_string = False
    escaped = False
    for index, char in enumerate(line):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "#":
            return line[:index], line[index:]
    return line, ""


def string_spans(text: str) -> list[Span]:
    """Locate double-quoted literals, quotes included.

    An unterminated literal extends to the end of ``text``.
    """
    spans: list[Span] = []
    start = -1
    escaped = False
    for index, char in enumerate(text):
        if start < 0:
            if char == '"':
                start = index
            continue
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            spans.append((start, index + 1))
            start = -1
    if start >= 0:
        spans.append((start, len(text)))
    return spans


def rewrite_smali(text: str, table: SymbolTable) -> SmaliRewriteResult:
    """Rename every class, field and method reference in one smali file.

    Args:
        text: Smali source.
        table: Renaming table to apply.

    Returns:
        Rewritten source with the declared class before and after renaming.
        Files without a class declaration are returned unchanged.
    """
    owner = find_class_name(text)
    if owner is None:
        return SmaliRewriteResult(
            text=text, class_name=None, mapped_class_name=None, symbols_renamed=0
        )
    context = RewriteContext(table=table, owner=owner)
    renamed = 0
    lines: list[str] = []
    for raw_line in text.split("\n"):
        body = raw_line[:-1] if raw_line.endswith("\r") else raw_line
        ending = raw_line[len(body) :]
        code, comment = split_comment(body)
        state = LineState(text=code)
        for rewrite_pass in _PASSES:
            state = rewrite_pass(state, context)
        renamed += state.renamed
        lines.append(f"{state.text}{comment}{ending}")
    return SmaliRewriteResult(
        text="\n".join(lines),
        class_name=owner,
        mapped_class_name=table.map_class(owner),
        symbols_renamed=renamed,
    )


def remap_smali_tree(
    input_root: Path,
    output_root: Path,
    table: SymbolTable,
    max_workers: int = 4,
) -> list[FileOutcome]:
    """Rewrite every smali file below ``input_root`` into ``output_root``.

    Rewritten files are placed by their renamed class. Files without a
    class declaration, or not decodable as UTF-8, are copied to the same
    relative path. When both roots are the same directory, files are
    rewritten in place and superseded originals are removed.

    Args:
        input_root: Directory holding smali sources.
        output_root: Directory receiving rewritten sources.
        table: Renaming table to apply.
        max_workers: Number of worker threads.

    Returns:
        One outcome per input file, ordered by input path.

    Raises:
        ValueError: If ``max_workers`` is not greater than zero.
        RemapIOError: If the input cannot be read or an output cannot be written.
    """
    if max_workers <= 0:
        raise ValueError("max_workers must be > 0")
    if not input_root.is_dir():
        raise RemapIOError(f"Input path must be a directory: {input_root}")
    in_place = input_root.resolve() == output_root.resolve()
    files = sorted(input_root.rglob(f"*{SMALI_SUFFIX}"))
    logger.info(
        "Remapping smali tree (input=%s output=%s files=%d in_place=%s)",
        input_root,
        output_root,
        len(files),
        in_place,
    )

    # In-place renames may target a file that has not been read yet.
    payloads: dict[Path, bytes] = {}
    for file_path in files:
        try:
            payloads[file_path] = file_path.read_bytes()
        except OSError as exc:
            logger.warning("Failed reading file (path=%s error=%s)", file_path, exc)
            raise RemapIOError(f"Cannot read {file_path}: {exc}") from exc

    outcomes: dict[Path, FileOutcome] = {}
    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_path = {
            executor.submit(
                _remap_file, file_path, payloads[file_path], input_root, output_root, table
            ): file_path
            for file_path in files
        }
        for future in concurrent.futures.as_completed(future_to_path):
            file_path = future_to_path[future]
            outcomes[file_path] = future.result()

    ordered = [outcomes[file_path] for file_path in files]
    if in_place:
        _remove_superseded(ordered)
    changed = sum(1 for outcome in ordered if outcome.status == "changed")
    unmodified = sum(1 for outcome in ordered if outcome.status == "unmodified")
    logger.info(
        "Remapped smali tree (files=%d changed=%d unmodified=%d)",
        len(ordered),
        changed,
        unmodified,
    )
    return ordered


def _remap_file(
    file_path: Path,
    payload: bytes,
    input_root: Path,
    output_root: Path,
    table: SymbolTable,
) -> FileOutcome:
    relative = file_path.relative_to(input_root)
    try:
        source = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.warning("Copying undecodable file unchanged (path=%s error=%s)", file_path, exc)
        destination = output_root / relative
        _write_atomic(destination, payload)
        return FileOutcome(source=file_path, destination=destination, status="unmodified")

    result = rewrite_smali(source, table)
    if not result.has_class:
        logger.warning("Copying file without class declaration unchanged (path=%s)", file_path)
        destination = output_root / relative
        _write_atomic(destination, payload)
        return FileOutcome(source=file_path, destination=destination, status="unmodified")

    destination = output_root / f"{result.mapped_class_name}{SMALI_SUFFIX}"
    _write_atomic(destination, result.text.encode("utf-8"))
    moved = destination.relative_to(output_root) != relative
    status: FileStatus = "changed" if moved or result.text != source else "unchanged"
    return FileOutcome(
        source=file_path,
        destination=destination,
        status=status,
        symbols_renamed=result.symbols_renamed,
    )


def _write_atomic(destination: Path, payload: bytes) -> None:
    tmp_path = destination.with_suffix(f"{destination.suffix}.tmp")
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_bytes(payload)
        tmp_path.replace(destination)
    except OSError as exc:
        logger.warning("Failed writing file (path=%s error=%s)", destination, exc)
        tmp_path.unlink(missing_ok=True)
        raise RemapIOError(f"Cannot write {destination}: {exc}") from exc


def _remove_superseded(outcomes: list[FileOutcome]) -> None:
    written = {outcome.destination.resolve() for outcome in outcomes}
    for outcome in outcomes:
        source = outcome.source.resolve()
        if source in written:
            continue
        try:
            source.unlink()
        except OSError as exc:
            logger.warning("Failed removing superseded file (path=%s error=%s)", source, exc)
            raise RemapIOError(f"Cannot remove {source}: {exc}") from exc


def _field_definition_pass(state: LineState, context: RewriteContext) -> LineState:
    match = _FIELD_DEFINITION.match(state.text)
    if match is None or _blocked(state, match.span()):
        return state
    name = match.group("name")
    field_type = match.group("type")
    edits = [
        _Edit(
            *match.span("name"),
            context.table.map_field(context.owner, name, field_type),
        )
    ]
    edits.extend(_signature_edits(state.text, *match.span("type"), context.table))
    return _apply(state, edits)


def _method_definition_pass(state: LineState, context: RewriteContext) -> LineState:
    match = _METHOD_DEFINITION.match(state.text)
    if match is None or _blocked(state, match.span()):
        return state
    descriptor = f"({match.group('parameters')}){match.group('returns')}"
    edits = [
        _Edit(
            *match.span("name"),
            context.table.map_method(context.owner, match.group("name"), descriptor),
        )
    ]
    edits.extend(_signature_edits(state.text, *match.span("parameters"), context.table))
    edits.extend(_signature_edits(state.text, *match.span("returns"), context.table))
    return _apply(state, edits)


def _member_reference_pass(state: LineState, context: RewriteContext) -> LineState:
    table = context.table
    edits: list[_Edit] = []
    blocked = _blocked_spans(state)
    for match in _MEMBER_REFERENCE.finditer(state.text):
        if _overlaps(match.span(), blocked):
            continue
        owner = match.group("owner")
        name = match.group("name")
        if match.group("parameters") is not None:
            descriptor = f"({match.group('parameters')}){match.group('returns')}"
            mapped_name = table.map_method(owner, name, descriptor)
        else:
            mapped_name = table.map_field(owner, name)
        edits.append(_Edit(*match.span("owner"), table.map_class(owner)))
        edits.append(_Edit(*match.span("name"), mapped_name))
    return _apply(state, edits)


def _type_token_pass(state: LineState, context: RewriteContext) -> LineState:
    edits: list[_Edit] = []
    blocked = _blocked_spans(state)
    for match in _TYPE_TOKEN.finditer(state.text):
        if _overlaps(match.span(), blocked):
            continue
        name = match.group("name")
        mapped = context.table.map_class(name)
        if mapped != name:
            edits.append(_Edit(*match.span("name"), mapped))
    return _apply(state, edits)


def _signature_edits(text: str, start: int, end: int, table: SymbolTable) -> list[_Edit]:
    """Rename object types of a signature by exact class entries only."""
    edits: list[_Edit] = []
    for match in _TYPE_TOKEN.finditer(text, start, end):
        name = match.group("name")
        mapped = table.map_class_exact(name)
        if mapped != name:
            edits.append(_Edit(*match.span("name"), mapped))
    return edits


def _blocked_spans(state: LineState) -> list[Span]:
    return string_spans(state.text) + list(state.rewritten)


def _blocked(state: LineState, span: Span) -> bool:
    return _overlaps(span, _blocked_spans(state))


def _overlaps(span: Span, blocked: list[Span]) -> bool:
    start, end = span
    return any(start < blocked_end and blocked_start < end for blocked_start, blocked_end in blocked)


def _apply(state: LineState, edits: list[_Edit]) -> LineState:
    """Apply non-overlapping edits and protect the spans they produce."""
    if not edits:
        return state
    edits = sorted(edits, key=lambda edit: edit.start)
    pieces: list[str] = []
    new_spans: list[Span] = []
    renamed = state.renamed
    cursor = 0
    delta = 0
    for edit in edits:
        pieces.append(state.text[cursor : edit.start])
        pieces.append(edit.replacement)
        start = edit.start + delta
        new_spans.append((start, start + len(edit.replacement)))
        if edit.replacement != state.text[edit.start : edit.end]:
            renamed += 1
        delta += len(edit.replacement) - (edit.end - edit.start)
        cursor = edit.end
    pieces.append(state.text[cursor:])

    shifted: list[Span] = []
    for span_start, span_end in state.rewritten:
        shift = sum(
            len(edit.replacement) - (edit.end - edit.start)
            for edit in edits
            if edit.end <= span_start
        )
        shifted.append((span_start + shift, span_end + shift))
    return LineState(
        text="".join(pieces),
        rewritten=tuple(sorted(shifted + new_spans)),
        renamed=renamed,
    )


_PASSES: tuple[RewritePass, ...] = (
    _field_definition_pass,
    _method_definition_pass,
    _member_reference_pass,
    _type_token_pass,
)
