# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Run mapping chains against smali trees from the command line."""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import TextIO

from remapper import (
    MappingChain,
    MappingSource,
    RemapError,
    SymbolTable,
    remap_smali_tree,
)
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

logger = logging.getLogger(__name__)


class ValidationError(RuntimeError):
    """Represent user input validation failure."""


def configure_logging(level: int = logging.INFO) -> None:
    """Configure application logging with Rich handler.

    Args:
        level: Logging severity threshold.
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser instance.
    """
    parser = argparse.ArgumentParser(prog="smali-remapper")
    subparsers = parser.add_subparsers(dest="command", required=True)

    remap_parser = subparsers.add_parser("remap-smali")
    _add_mapping_arguments(remap_parser)
    remap_parser.add_argument(
        "--exclude-package",
        action="append",
        default=[],
        help="Package prefix left untouched; may be repeated.",
    )
    remap_parser.add_argument("--input", required=True, help="Input smali directory.")
    remap_parser.add_argument(
        "--output",
        required=True,
        help="Output directory; the input directory rewrites in place.",
    )
    remap_parser.add_argument(
        "--workers", type=int, default=4, help="Number of worker threads."
    )

    inspect_parser = subparsers.add_parser("inspect")
    _add_mapping_arguments(inspect_parser)
    inspect_parser.add_argument(
        "--class",
        dest="class_name",
        required=False,
        help="Source class whose target name and comment are printed.",
    )
    return parser


def run(argv: list[str], stdout: TextIO, stderr: TextIO) -> int:
    """Run CLI command.

    Args:
        argv: CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code.
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit:
        logger.warning("Argument parsing failed (argv=%s)", argv)
        return 2
    if args.command == "remap-smali":
        return _run_remap_smali(args=args, stdout=stdout, stderr=stderr)
    if args.command == "inspect":
        return _run_inspect(args=args, stdout=stdout, stderr=stderr)

    logger.warning("Unsupported command (command=%s)", args.command)
    stderr.write(f"Unsupported command: {args.command}\n")
    return 2


def _add_mapping_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--mapping",
        action="append",
        required=True,
        help="Mapping file; repeat in chain order.",
    )
    parser.add_argument(
        "--namespaces",
        default="",
        help="Comma-separated SRC:TGT tier pairs, one per mapping; empty sides use defaults.",
    )
    parser.add_argument(
        "--reverse",
        default="",
        help="Comma-separated zero-based indexes of mappings to reverse.",
    )


def _run_remap_smali(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    console = Console(file=stdout, force_terminal=False, color_system="truecolor")
    _emit_marker(console=console, phase="validation", state="start")
    try:
        sources = parse_mapping_sources(args.mapping, args.namespaces, args.reverse)
        input_path = Path(args.input).resolve()
        output_path = Path(args.output).resolve()
        if not input_path.is_dir():
            raise ValidationError(f"Input path must be a directory: {input_path}")
        if args.workers <= 0:
            raise ValidationError("Workers must be greater than zero")
    except ValidationError as exc:
        logger.warning("Validation failed (error=%s)", exc)
        stderr.write(f"{exc}\n")
        return 2
    _emit_marker(console=console, phase="validation", state="done")

    _emit_marker(console=console, phase="load", state="start")
    try:
        table = load_chain(sources)
    except RemapError as exc:
        logger.warning("Loading mappings failed (error=%s)", exc)
        stderr.write(f"Loading mappings failed: {exc}\n")
        return 2
    for package in args.exclude_package:
        table.add_excluded_package(package)
    _emit_marker(console=console, phase="load", state="done")
    _emit_summary(console=console, summary=_table_counters(table))

    _emit_marker(console=console, phase="remap", state="start")
    started = time.monotonic()
    try:
        outcomes = remap_smali_tree(
            input_root=input_path,
            output_root=output_path,
            table=table,
            max_workers=args.workers,
        )
    except RemapError as exc:
        logger.warning("Remap failed (error=%s)", exc)
        stderr.write(f"Remap failed: {exc}\n")
        return 2
    elapsed_ms = int(round((time.monotonic() - started) * 1000))
    _emit_marker(console=console, phase="remap", state="done")
    _emit_summary(
        console=console,
        summary={
            "smali_files_discovered": len(outcomes),
            "smali_files_changed": sum(1 for item in outcomes if item.status == "changed"),
            "smali_files_unchanged": sum(1 for item in outcomes if item.status == "unchanged"),
            "smali_files_unmodified": sum(
                1 for item in outcomes if item.status == "unmodified"
            ),
            "symbols_renamed": sum(item.symbols_renamed for item in outcomes),
            "elapsed_ms": elapsed_ms,
        },
    )
    console.print("status=success")
    return 0


def _run_inspect(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    try:
        sources = parse_mapping_sources(args.mapping, args.namespaces, args.reverse)
        table = load_chain(sources)
    except ValidationError as exc:
        logger.warning("Validation failed (error=%s)", exc)
        stderr.write(f"{exc}\n")
        return 2
    except RemapError as exc:
        logger.warning("Loading mappings failed (error=%s)", exc)
        stderr.write(f"Loading mappings failed: {exc}\n")
        return 2

    console = Console(file=stdout, force_terminal=False, color_system="truecolor")
    counters = Table(show_header=True, expand=False)
    counters.add_column("kind", overflow="fold")
    counters.add_column("count", justify="right")
    for kind, count in _table_counters(table).items():
        counters.add_row(kind, str(count))
    console.print(counters)

    if args.class_name:
        class_name = args.class_name.replace(".", "/")
        entry = table.find_class_entry(class_name)
        comment = entry.comment if entry is not None and entry.comment else ""
        console.print(f"class={class_name} target={table.map_class(class_name)}")
        if comment:
            console.print(f"comment={comment}", markup=False)
    return 0


def parse_mapping_sources(
    mappings: list[str], namespaces: str, reverse: str
) -> list[MappingSource]:
    """Combine mapping paths with their tier pairs and reverse flags.

    Args:
        mappings: Mapping file paths in chain order.
        namespaces: Comma-separated ``SRC:TGT`` pairs aligned with ``mappings``.
        reverse: Comma-separated zero-based indexes of reversed mappings.

    Returns:
        Mapping sources in chain order.

    Raises:
        ValidationError: If pairs or indexes do not fit the mapping list.
    """
    pairs = [item.strip() for item in namespaces.split(",")] if namespaces else []
    if len(pairs) > len(mappings):
        raise ValidationError("More namespace pairs than mappings")
    try:
        reversed_indexes = {int(item) for item in reverse.split(",") if item.strip()}
    except ValueError as exc:
        raise ValidationError(f"Invalid reverse index list: {reverse}") from exc
    invalid = sorted(index for index in reversed_indexes if not 0 <= index < len(mappings))
    if invalid:
        raise ValidationError(f"Reverse indexes out of range: {invalid}")

    sources: list[MappingSource] = []
    for index, mapping in enumerate(mappings):
        path = Path(mapping)
        if not path.is_file():
            raise ValidationError(f"Mapping path does not exist: {path}")
        source_namespace = target_namespace = None
        if index < len(pairs) and pairs[index]:
            if ":" not in pairs[index]:
                raise ValidationError(f"Namespace pair must be SRC:TGT: {pairs[index]}")
            source_text, _, target_text = pairs[index].partition(":")
            source_namespace = source_text or None
            target_namespace = target_text or None
        sources.append(
            MappingSource(
                path=path,
                source_namespace=source_namespace,
                target_namespace=target_namespace,
                reverse=index in reversed_indexes,
            )
        )
    return sources


def load_chain(sources: list[MappingSource]) -> SymbolTable:
    """Load every source in order and merge them into one table.

    Args:
        sources: Mapping sources in chain order.

    Returns:
        Merged table.

    Raises:
        RemapError: If any mapping fails to load or the chain is empty.
    """
    chain = MappingChain()
    for source in sources:
        chain.add(source.load())
    return chain.merge()


def _table_counters(table: SymbolTable) -> dict[str, int]:
    return {
        "packages": table.package_count,
        "classes": table.class_count,
        "fields": table.field_count,
        "methods": table.method_count,
    }


def _emit_marker(console: Console, phase: str, state: str) -> None:
    console.print(f"{phase}:{state}")


def _emit_summary(console: Console, summary: dict[str, int]) -> None:
    fields = " ".join(f"{key}={value}" for key, value in summary.items())
    console.print(fields)


def main() -> None:
    """Run the CLI application and exit."""
    configure_logging()
    exit_code = run(sys.argv[1:], stdout=sys.stdout, stderr=sys.stderr)
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
