# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for request context assembly."""

import pytest

from victor_inline.completion import (
    ContextAssembler,
    DocumentSnapshot,
    OutOfRangePosition,
    Position,
    detect_language,
)


def _doc(text: str, uri: str = "file:///main.py", language: str = "python") -> DocumentSnapshot:
    return DocumentSnapshot(uri=uri, language=language, version=1, text=text)


class TestPositionResolution:
    """Valid positions resolve; invalid ones raise."""

    @pytest.mark.parametrize(
        "line,character,offset",
        [(0, 0, 0), (0, 17, 17), (1, 0, 18), (3, 1, 21), (4, 0, 22)],
    )
    def test_valid_positions(self, snapshot, line, character, offset):
        context = ContextAssembler().assemble(snapshot, Position(line, character))

        assert context.offset == offset
        assert context.prefix == snapshot.text[: context.offset]

    @pytest.mark.parametrize(
        "line,character",
        [(-1, 0), (5, 0), (0, -1), (0, 18), (1, 1)],
    )
    def test_invalid_positions(self, snapshot, line, character):
        with pytest.raises(OutOfRangePosition) as exc_info:
            ContextAssembler().assemble(snapshot, Position(line, character))

        assert exc_info.value.line == line
        assert exc_info.value.character == character

    def test_out_of_range_is_a_value_error(self, snapshot):
        with pytest.raises(ValueError):
            ContextAssembler().assemble(snapshot, Position(9, 9))

    def test_crlf_line_end_is_not_a_position(self):
        snapshot = _doc("ab\r\ncd")

        ContextAssembler().assemble(snapshot, Position(0, 2))
        with pytest.raises(OutOfRangePosition):
            ContextAssembler().assemble(snapshot, Position(0, 3))


class TestWindowing:
    """Prefix and suffix windows."""

    def test_prefix_and_suffix_split_at_cursor(self):
        snapshot = _doc("def f():\n    return 1\n")

        context = ContextAssembler().assemble(snapshot, Position(1, 4))

        assert context.prefix == "def f():\n    "
        assert context.suffix == "return 1\n"
        assert context.prefix + context.suffix == snapshot.text

    def test_window_limits_lines(self):
        text = "\n".join(f"line{i}" for i in range(10))
        snapshot = _doc(text)

        context = ContextAssembler(lines_before=2, lines_after=1).assemble(snapshot, Position(5, 2))

        assert context.prefix == "line3\nline4\nli"
        assert context.suffix == "ne5\nline6"

    def test_zero_window(self):
        snapshot = _doc("a\nbc\nd")

        context = ContextAssembler(lines_before=0, lines_after=0).assemble(snapshot, Position(1, 1))

        assert context.prefix == "b"
        assert context.suffix == "c"

    def test_deterministic(self, snapshot):
        assembler = ContextAssembler()

        first = assembler.assemble(snapshot, Position(1, 0))
        second = assembler.assemble(snapshot, Position(1, 0))

        assert first == second

    def test_negative_window_rejected(self):
        with pytest.raises(ValueError):
            ContextAssembler(lines_before=-1)


class TestLanguageDetection:
    """Language detection for snapshots without a language."""

    @pytest.mark.parametrize(
        "uri,expected",
        [
            ("file:///src/app.ts", "typescript"),
            ("file:///src/main.py", "python"),
            ("file:///notes.txt", "plaintext"),
            ("/tmp/script.SH", "shellscript"),
            ("file:///My%20Docs/readme.md", "markdown"),
            ("untitled:Untitled-1", "plaintext"),
        ],
    )
    def test_extension(self, uri, expected):
        assert detect_language(uri) == expected

    def test_shebang(self):
        assert detect_language("file:///bin/tool", "#!/usr/bin/env python3\nprint()") == "python"

    def test_assembler_fills_missing_language(self):
        snapshot = _doc("x = 1", uri="file:///a.py", language="")

        context = ContextAssembler().assemble(snapshot, Position(0, 0))

        assert context.language == "python"

    def test_assembler_keeps_declared_language(self, snapshot):
        context = ContextAssembler().assemble(snapshot, Position(1, 0))

        assert context.language == "javascript"
