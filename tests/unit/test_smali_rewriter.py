# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Unit tests for smali rewriting and tree remapping."""

from pathlib import Path

import pytest

from remapper import RemapIOError, SymbolTable, TableBuilder, load_text, remap_smali_tree
from remapper import rewrite_smali
from remapper.smali import find_class_name, split_comment, string_spans

_MAPPINGS = """\
version: "1.0"
classes:
  - obfuscated: a/b
    readable: com/example/TestClass
    fields:
      - obfuscated: a
        readable: mValue
        type: I
      - obfuscated: b
        readable: mHelper
        type: La/c;
    methods:
      - obfuscated: a
        readable: getValue
        descriptor: ()I
      - obfuscated: b
        readable: setHelper
        descriptor: (La/c;)V
  - obfuscated: a/b$a
    readable: com/example/TestClass$Handler
    fields:
      - obfuscated: a
        readable: callback
        type: Ljava/lang/Runnable;
    methods:
      - obfuscated: a
        readable: execute
        descriptor: ()V
  - obfuscated: a/b$b
    readable: com/example/TestClass$Builder
    methods:
      - obfuscated: a
        readable: build
        descriptor: ()La/b;
  - obfuscated: a/c
    readable: com/example/Helper
    fields:
      - obfuscated: x
        readable: data
        type: I
    methods:
      - obfuscated: m
        readable: doWork
        descriptor: ()V
"""

_TEST_CLASS = """\
.class public La/b;
.super Ljava/lang/Object;

.field private a:I

.field private b:La/c;

.method public constructor <init>()V
    .registers 1
    invoke-direct {p0}, Ljava/lang/Object;-><init>()V
    return-void
.end method

.method public a()I
    .registers 2
    iget v0, p0, La/b;->a:I
    return v0
.end method

.method public b(La/c;)V
    .registers 2
    iput-object p1, p0, La/b;->b:La/c;
    return-void
.end method
"""

_HANDLER = """\
.class public La/b$a;
.super Ljava/lang/Object;

.annotation system Ldalvik/annotation/EnclosingClass;
    value = La/b;
.end annotation

.annotation system Ldalvik/annotation/InnerClass;
    accessFlags = 0x1
    name = "a"
.end annotation

.field final synthetic this$0:La/b;

.field private a:Ljava/lang/Runnable;

.method public constructor <init>(La/b;)V
    .registers 2
    iput-object p1, p0, La/b$a;->this$0:La/b;
    invoke-direct {p0}, Ljava/lang/Object;-><init>()V
    return-void
.end method

.method public a()V
    .registers 2
    iget-object v0, p0, La/b$a;->this$0:La/b;
    invoke-virtual {v0}, La/b;->a()I
    return-void
.end method
"""

_HELPER = """\
.class public La/c;
.super Ljava/lang/Object;

.field public x:I

.method public m()V
    .registers 3
    new-instance v0, La/b;
    invoke-direct {v0}, La/b;-><init>()V
    invoke-virtual {v0}, La/b;->a()I
    new-instance v1, La/b$a;
    invoke-direct {v1, v0}, La/b$a;-><init>(La/b;)V
    invoke-virtual {v1}, La/b$a;->a()V
    const-string v0, "La/b;->a:I"
    const-string v1, "Class a/b has field a"
    return-void
.end method
"""


def _table() -> SymbolTable:
    return load_text(_MAPPINGS, filename="mappings.yaml")


def _write_file(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_map_401_rewrites_declarations_and_member_references() -> None:
    result = rewrite_smali(_TEST_CLASS, _table())

    assert result.class_name == "a/b"
    assert result.mapped_class_name == "com/example/TestClass"
    assert ".class public Lcom/example/TestClass;" in result.text
    assert ".field private mValue:I" in result.text
    assert ".field private mHelper:Lcom/example/Helper;" in result.text
    assert ".method public getValue()I" in result.text
    assert ".method public setHelper(Lcom/example/Helper;)V" in result.text
    assert ".method public constructor <init>()V" in result.text
    assert "iget v0, p0, Lcom/example/TestClass;->mValue:I" in result.text
    assert (
        "iput-object p1, p0, Lcom/example/TestClass;->mHelper:Lcom/example/Helper;"
        in result.text
    )
    assert "La/b;" not in result.text
    assert result.symbols_renamed > 0


def test_map_402_inner_class_references_follow_outer_class() -> None:
    result = rewrite_smali(_HANDLER, _table())

    assert result.mapped_class_name == "com/example/TestClass$Handler"
    assert ".class public Lcom/example/TestClass$Handler;" in result.text
    assert "value = Lcom/example/TestClass;" in result.text
    assert 'name = "a"' in result.text
    assert ".field final synthetic this$0:Lcom/example/TestClass;" in result.text
    assert ".field private callback:Ljava/lang/Runnable;" in result.text
    assert "<init>(Lcom/example/TestClass;)V" in result.text
    assert (
        "iput-object p1, p0, Lcom/example/TestClass$Handler;->this$0:Lcom/example/TestClass;"
        in result.text
    )
    assert ".method public execute()V" in result.text
    assert "invoke-virtual {v0}, Lcom/example/TestClass;->getValue()I" in result.text
    assert "La/b" not in result.text


def test_map_403_caller_rewrites_owners_and_keeps_string_literals() -> None:
    result = rewrite_smali(_HELPER, _table())

    assert ".class public Lcom/example/Helper;" in result.text
    assert ".field public data:I" in result.text
    assert ".method public doWork()V" in result.text
    assert "new-instance v0, Lcom/example/TestClass;" in result.text
    assert "invoke-direct {v0}, Lcom/example/TestClass;-><init>()V" in result.text
    assert "invoke-virtual {v0}, Lcom/example/TestClass;->getValue()I" in result.text
    assert "new-instance v1, Lcom/example/TestClass$Handler;" in result.text
    assert (
        "invoke-direct {v1, v0}, Lcom/example/TestClass$Handler;-><init>"
        "(Lcom/example/TestClass;)V" in result.text
    )
    assert "invoke-virtual {v1}, Lcom/example/TestClass$Handler;->execute()V" in result.text
    assert 'const-string v0, "La/b;->a:I"' in result.text
    assert 'const-string v1, "Class a/b has field a"' in result.text


def test_map_404_comments_are_preserved_verbatim() -> None:
    source = (
        ".class public La/b;\n"
        ".super Ljava/lang/Object;\n"
        "\n"
        "# Reference in comment: La/b;->a:I should not be remapped\n"
        ".field private a:I # inline comment\n"
        "\n"
        ".method public a()I\n"
        "    .registers 2\n"
        "    # Get the value from La/b;\n"
        "    iget v0, p0, La/b;->a:I # load field La/b;->a:I\n"
        "    return v0\n"
        ".end method\n"
    )

    result = rewrite_smali(source, _table())

    assert "# Reference in comment: La/b;->a:I should not be remapped" in result.text
    assert ".field private mValue:I # inline comment" in result.text
    assert "    # Get the value from La/b;\n" in result.text
    assert "iget v0, p0, Lcom/example/TestClass;->mValue:I # load field La/b;->a:I" in (
        result.text
    )


def test_map_405_escaped_quotes_do_not_end_string_literals() -> None:
    source = (
        ".class public La/c;\n"
        '    const-string v0, "say \\"La/b;\\" # not a comment"  # real La/b;\n'
        "    check-cast v0, La/b;\n"
    )

    result = rewrite_smali(source, _table())

    assert '"say \\"La/b;\\" # not a comment"  # real La/b;' in result.text
    assert "check-cast v0, Lcom/example/TestClass;" in result.text


def test_map_406_tokens_are_renamed_at_most_once() -> None:
    builder = TableBuilder()
    builder.add_class("a/b", "a/c")
    builder.add_class("a/c", "x/Y")
    table = builder.build()
    source = (
        ".class public La/b;\n"
        ".field private f:La/c;\n"
        ".method public run(La/b;)La/c;\n"
        "    invoke-static {p1}, La/b;->g(La/b;)V\n"
        "    new-array v0, v1, [La/b;\n"
    )

    result = rewrite_smali(source, table)

    assert result.text.splitlines() == [
        ".class public La/c;",
        ".field private f:Lx/Y;",
        ".method public run(La/c;)Lx/Y;",
        "    invoke-static {p1}, La/c;->g(La/c;)V",
        "    new-array v0, v1, [La/c;",
    ]


def test_map_407_line_endings_are_preserved() -> None:
    source = ".class public La/b;\r\n.field private a:I\r\n\n.end field"

    result = rewrite_smali(source, _table())

    assert result.text == (
        ".class public Lcom/example/TestClass;\r\n.field private mValue:I\r\n\n.end field"
    )


def test_map_408_file_without_class_declaration_is_untouched() -> None:
    source = "# no class here\n    iget v0, p0, La/b;->a:I\n"

    result = rewrite_smali(source, _table())

    assert result.text == source
    assert not result.has_class
    assert result.mapped_class_name is None


def test_map_409_excluded_package_is_left_alone() -> None:
    table = _table()
    table.add_excluded_package("a")

    result = rewrite_smali(_TEST_CLASS, table)

    assert result.text == _TEST_CLASS
    assert result.symbols_renamed == 0


def test_map_410_comment_and_string_helpers() -> None:
    assert split_comment('const-string v0, "#x" # tail') == ('const-string v0, "#x" ', "# tail")
    assert split_comment("return-void") == ("return-void", "")
    assert string_spans('a "b" c "d') == [(2, 5), (8, 10)]
    assert find_class_name("\n.class public final La/b$c;\n") == "a/b$c"


def test_map_411_tree_places_files_by_renamed_class(tmp_path: Path) -> None:
    input_root = tmp_path / "smali-input"
    output_root = tmp_path / "smali-output"
    _write_file(input_root / "a" / "b.smali", _TEST_CLASS)
    _write_file(input_root / "a" / "b$a.smali", _HANDLER)
    _write_file(input_root / "a" / "c.smali", _HELPER)
    _write_file(
        input_root / "a" / "b$c.smali",
        ".class La/b$c;\n.super Ljava/lang/Object;\n"
        ".field final synthetic this$0:La/b;\n",
    )
    _write_file(
        input_root / "unmapped" / "Foo.smali",
        ".class public Lunmapped/Foo;\n.super Ljava/lang/Object;\n",
    )

    outcomes = remap_smali_tree(input_root, output_root, _table(), max_workers=2)

    assert (output_root / "com/example/TestClass.smali").exists()
    assert (output_root / "com/example/TestClass$Handler.smali").exists()
    assert (output_root / "com/example/Helper.smali").exists()
    assert not (output_root / "a" / "b.smali").exists()
    inner = (output_root / "com/example/TestClass$c.smali").read_text(encoding="utf-8")
    assert ".class Lcom/example/TestClass$c;" in inner
    assert ".field final synthetic this$0:Lcom/example/TestClass;" in inner
    unmapped = (output_root / "unmapped" / "Foo.smali").read_text(encoding="utf-8")
    assert unmapped == ".class public Lunmapped/Foo;\n.super Ljava/lang/Object;\n"

    statuses = {outcome.source.name: outcome.status for outcome in outcomes}
    assert statuses["b.smali"] == "changed"
    assert statuses["Foo.smali"] == "unchanged"
    assert [outcome.source for outcome in outcomes] == sorted(input_root.rglob("*.smali"))


def test_map_412_tree_copies_unprocessable_files_unchanged(tmp_path: Path) -> None:
    input_root = tmp_path / "in"
    output_root = tmp_path / "out"
    _write_file(input_root / "notes" / "readme.smali", "# just a note\n")
    binary = input_root / "raw" / "blob.smali"
    binary.parent.mkdir(parents=True)
    binary.write_bytes(b"\xff\xfe.class La/b;\n")

    outcomes = remap_smali_tree(input_root, output_root, _table())

    assert {outcome.status for outcome in outcomes} == {"unmodified"}
    assert (output_root / "notes" / "readme.smali").read_text(encoding="utf-8") == (
        "# just a note\n"
    )
    assert (output_root / "raw" / "blob.smali").read_bytes() == b"\xff\xfe.class La/b;\n"


def test_map_413_tree_rewrites_in_place_and_removes_superseded_files(tmp_path: Path) -> None:
    root = tmp_path / "smali"
    _write_file(root / "a" / "b.smali", _TEST_CLASS)
    _write_file(root / "a" / "c.smali", _HELPER)

    outcomes = remap_smali_tree(root, root, _table())

    assert len(outcomes) == 2
    assert not (root / "a" / "b.smali").exists()
    assert not (root / "a" / "c.smali").exists()
    content = (root / "com/example/TestClass.smali").read_text(encoding="utf-8")
    assert ".method public getValue()I" in content
    assert not list(root.rglob("*.tmp"))


def test_map_414_tree_rejects_invalid_arguments(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        remap_smali_tree(tmp_path, tmp_path / "out", _table(), max_workers=0)
    with pytest.raises(RemapIOError):
        remap_smali_tree(tmp_path / "missing", tmp_path / "out", _table())


def test_map_415_tree_write_failure_keeps_finished_siblings(tmp_path: Path) -> None:
    input_root = tmp_path / "in"
    output_root = tmp_path / "out"
    _write_file(input_root / "a" / "b.smali", _TEST_CLASS)
    _write_file(input_root / "a" / "c.smali", _HELPER)
    blocker = output_root / "com/example/TestClass.smali"
    _write_file(blocker / "keep.txt", "occupied\n")

    with pytest.raises(RemapIOError):
        remap_smali_tree(input_root, output_root, _table(), max_workers=1)

    assert blocker.is_dir()
    assert (output_root / "com/example/Helper.smali").is_file()
    assert not list(output_root.rglob("*.tmp"))
