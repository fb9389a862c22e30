# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Unit tests for member key and descriptor codec."""

import pytest

from remapper import MalformedKeyError, MemberKey, parse_member_key, parse_method_key
from remapper.keys import (
    display_to_descriptor,
    is_constructor,
    method_descriptor,
    remap_descriptor,
    to_internal_name,
)

_CLASSES = {"a/b": "com/example/TestClass", "a/c": "com/example/Helper"}


def _resolve(name: str) -> str:
    return _CLASSES.get(name, name)


def test_map_001_parse_member_key_splits_on_last_slash() -> None:
    key = parse_member_key("com/example/Outer$Inner/value")

    assert key == MemberKey(owner="com/example/Outer$Inner", name="value")
    assert key.descriptor is None


def test_map_002_parse_member_key_keeps_descriptor_after_first_space() -> None:
    key = parse_member_key("a/b/run (La/c;Ljava/lang/String;)V")

    assert key.owner == "a/b"
    assert key.name == "run"
    assert key.descriptor == "(La/c;Ljava/lang/String;)V"
    assert key.format() == "a/b/run (La/c;Ljava/lang/String;)V"


def test_map_003_parse_member_key_rejects_key_without_owner() -> None:
    with pytest.raises(MalformedKeyError):
        parse_member_key("orphan")


def test_map_004_parse_method_key_requires_descriptor() -> None:
    with pytest.raises(MalformedKeyError):
        parse_method_key("a/b/run")


def test_map_005_bare_and_qualified_keys_are_distinct() -> None:
    qualified = MemberKey("a/b", "x", "I")

    assert qualified.format() == "a/b/x I"
    assert qualified.bare().format() == "a/b/x"
    assert qualified != qualified.bare()


def test_map_006_remap_descriptor_renames_object_types_only() -> None:
    descriptor = "(I[[La/b;JLa/c$d;)La/c;"

    assert remap_descriptor(descriptor, _resolve) == (
        "(I[[Lcom/example/TestClass;JLa/c$d;)Lcom/example/Helper;"
    )


def test_map_007_remap_descriptor_copies_truncated_object_type() -> None:
    assert remap_descriptor("(ILa/b", _resolve) == "(ILa/b"
    assert remap_descriptor(None, _resolve) is None


def test_map_008_display_types_convert_to_descriptors() -> None:
    assert display_to_descriptor("int") == "I"
    assert display_to_descriptor("java.lang.String[][]") == "[[Ljava/lang/String;"
    assert method_descriptor(["long", "a.b"], "void") == "(JLa/b;)V"
    assert to_internal_name("com.example.Foo$Bar") == "com/example/Foo$Bar"


def test_map_009_constructor_names_are_detected() -> None:
    assert is_constructor("<init>")
    assert is_constructor("<clinit>")
    assert not is_constructor("init")
