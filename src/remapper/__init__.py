# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Public import surface for symbol remapping components."""

from remapper.chain import MappingChain, compose, merge_comments
from remapper.errors import (
    EmptyChainError,
    FormatError,
    MalformedKeyError,
    NamespaceNotFoundError,
    RemapError,
    RemapIOError,
)
from remapper.keys import MemberKey, parse_member_key, parse_method_key, remap_descriptor
from remapper.loader import (
    MappingFormat,
    MappingSource,
    detect_format,
    load_mappings,
    load_text,
    reverse_table,
)
from remapper.smali import FileOutcome, SmaliRewriteResult, remap_smali_tree, rewrite_smali
from remapper.table import MappingEntry, SymbolTable, TableBuilder

__all__ = [
    "EmptyChainError",
    "FileOutcome",
    "FormatError",
    "MalformedKeyError",
    "MappingChain",
    "MappingEntry",
    "MappingFormat",
    "MappingSource",
    "MemberKey",
    "NamespaceNotFoundError",
    "RemapError",
    "RemapIOError",
    "SmaliRewriteResult",
    "SymbolTable",
    "TableBuilder",
    "compose",
    "detect_format",
    "load_mappings",
    "load_text",
    "merge_comments",
    "parse_member_key",
    "parse_method_key",
    "remap_descriptor",
    "remap_smali_tree",
    "reverse_table",
    "rewrite_smali",
]
