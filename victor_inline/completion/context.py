# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Request context assembly.

Turns a document snapshot and a cursor position into a windowed
RequestContext. Pure: no I/O, same output for the same input.
"""

import logging
from dataclasses import replace
from pathlib import PurePosixPath
from urllib.parse import unquote, urlparse

from victor_inline.completion.protocol import (
    DocumentSnapshot,
    OutOfRangePosition,
    Position,
    RequestContext,
)

logger = logging.getLogger(__name__)

DEFAULT_LINES_BEFORE = 100
DEFAULT_LINES_AFTER = 20

_EXTENSION_LANGUAGES = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".jsx": "javascriptreact",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
    ".c": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".h": "c",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".kt": "kotlin",
    ".scala": "scala",
    ".r": "r",
    ".sql": "sql",
    ".sh": "shellscript",
    ".bash": "shellscript",
    ".zsh": "shellscript",
    ".md": "markdown",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".xml": "xml",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".txt": "plaintext",
}

_SHEBANG_LANGUAGES = (
    ("python", "python"),
    ("node", "javascript"),
    ("ruby", "ruby"),
    ("bash", "shellscript"),
    ("sh", "shellscript"),
)


def detect_language(uri: str, text: str = "") -> str:
    """Detect a language identifier from a document URI and content.

    Args:
        uri: Document URI or plain path
        text: Document text, used for shebang detection

    Returns:
        Language identifier, "plaintext" if unknown
    """
    path = unquote(urlparse(uri).path) if "://" in uri else uri
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in _EXTENSION_LANGUAGES:
        return _EXTENSION_LANGUAGES[suffix]

    if text.startswith("#!"):
        first_line = text.split("\n", 1)[0]
        for marker, language in _SHEBANG_LANGUAGES:
            if marker in first_line:
                return language

    return "plaintext"


def _line_length(line: str) -> int:
    return len(line) - 1 if line.endswith("\r") else len(line)


class ContextAssembler:
    """Builds windowed request contexts.

    The prefix holds up to ``lines_before`` lines above the cursor line plus
    the cursor line up to the cursor. The suffix holds the rest of the cursor
    line plus up to ``lines_after`` lines below it.
    """

    def __init__(
        self,
        lines_before: int = DEFAULT_LINES_BEFORE,
        lines_after: int = DEFAULT_LINES_AFTER,
    ):
        if lines_before < 0 or lines_after < 0:
            raise ValueError("Window sizes must be non-negative")
        self.lines_before = lines_before
        self.lines_after = lines_after

    def assemble(self, snapshot: DocumentSnapshot, position: Position) -> RequestContext:
        """Build the request context for a cursor position.

        Args:
            snapshot: Document snapshot
            position: Zero-based cursor position

        Returns:
            RequestContext with windowed prefix/suffix

        Raises:
            OutOfRangePosition: If the position does not resolve in the text
        """
        lines = snapshot.text.split("\n")
        offset = self.resolve_offset(lines, position)

        line, character = position.line, position.character
        current = lines[line]

        first = max(0, line - self.lines_before)
        prefix = "".join(f"{text}\n" for text in lines[first:line]) + current[:character]

        last = min(len(lines), line + 1 + self.lines_after)
        suffix = current[character:]
        if last > line + 1:
            suffix += "\n" + "\n".join(lines[line + 1 : last])

        if not snapshot.language:
            snapshot = replace(snapshot, language=detect_language(snapshot.uri, snapshot.text))

        return RequestContext(
            snapshot=snapshot,
            position=position,
            offset=offset,
            prefix=prefix,
            suffix=suffix,
        )

    @staticmethod
    def resolve_offset(lines: list[str], position: Position) -> int:
        """Resolve a position to an absolute offset.

        Raises:
            OutOfRangePosition: If line or character fall outside the text
        """
        line, character = position.line, position.character
        if line < 0 or line >= len(lines):
            raise OutOfRangePosition(line, character, f"document has {len(lines)} lines")
        length = _line_length(lines[line])
        if character < 0 or character > length:
            raise OutOfRangePosition(line, character, f"line {line} has {length} characters")
        return sum(len(text) + 1 for text in lines[:line]) + character
