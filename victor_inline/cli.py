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

"""CLI entry point for victor-inline.

Runs a single inline completion request against a file on disk, which is
handy for trying out a backend configuration without an editor.

Entry point:
    victor-inline complete FILE --line N --character N [--config PATH] [--offline]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from victor_inline.completion.coordinator import CompletionCoordinator
from victor_inline.completion.fetchers.http import HttpCompletionFetcher
from victor_inline.completion.protocol import (
    CompletionResult,
    DocumentSnapshot,
    OutOfRangePosition,
    Position,
)
from victor_inline.completion.services import InMemoryDocumentManager, StaticTokenAuthService
from victor_inline.config import load_settings

logger = logging.getLogger(__name__)

EXIT_OUT_OF_RANGE = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="victor-inline",
        description="Inline code completions from an OpenAI-compatible backend.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    complete_p = sub.add_parser("complete", help="Complete at a position in a file")
    complete_p.add_argument("file", help="File to complete in")
    complete_p.add_argument("--line", type=int, required=True, help="Zero-based line")
    complete_p.add_argument("--character", type=int, required=True, help="Zero-based character")
    complete_p.add_argument("--config", default=None, help="Settings file (YAML)")
    complete_p.add_argument(
        "--offline", action="store_true", help="Do not contact the backend"
    )
    return parser


def _print_result(console: Console, result: CompletionResult) -> None:
    if result.is_empty:
        console.print("[dim]No completions[/]")
        return

    table = Table(title="Inline completions")
    table.add_column("#", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Range")
    table.add_column("Text")
    for i, candidate in enumerate(result.candidates, 1):
        table.add_row(
            str(i),
            f"{candidate.score:.3f}",
            f"{candidate.range.start}-{candidate.range.end}",
            candidate.text,
        )
    console.print(table)
    if not result.is_final:
        console.print("[yellow]Backend indicated the completion was truncated[/]")


async def _cmd_complete(
    file_path: str,
    line: int,
    character: int,
    config_path: Optional[str] = None,
    offline: bool = False,
    console: Optional[Console] = None,
) -> int:
    """Run one completion request. Returns exit code."""
    console = console or Console()
    path = Path(file_path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Error reading {file_path}:[/] {e}")
        return 1

    settings = load_settings(config_path)
    snapshot = DocumentSnapshot(uri=path.resolve().as_uri(), language="", version=1, text=text)
    documents = InMemoryDocumentManager([snapshot])

    auth = StaticTokenAuthService(settings.backend.api_key)
    fetcher = None
    if not offline:
        fetcher = HttpCompletionFetcher(settings.backend, auth_service=auth)

    coordinator = CompletionCoordinator.from_settings(
        settings,
        offline=offline,
        workspace_root=Path.cwd(),
        fetcher=fetcher,
        auth_service=auth,
        document_manager=documents,
    )
    try:
        result = await coordinator.provide_inline_completions(snapshot, Position(line, character))
    except OutOfRangePosition as e:
        console.print(f"[red]Error:[/] {e}")
        return EXIT_OUT_OF_RANGE
    finally:
        if fetcher is not None:
            await fetcher.aclose()

    _print_result(console, result)
    logger.debug(f"Metrics: {coordinator.metrics.to_dict()}")
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s %(message)s", stream=sys.stderr)

    if args.command == "complete":
        code = asyncio.run(
            _cmd_complete(
                file_path=args.file,
                line=args.line,
                character=args.character,
                config_path=args.config,
                offline=args.offline,
            )
        )
    else:
        parser.print_help()
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
