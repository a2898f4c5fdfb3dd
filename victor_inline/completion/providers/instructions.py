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

"""Context from workspace instruction files."""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence

from victor_inline.completion.protocol import ContextFragment, ProviderTimeout, RequestContext
from victor_inline.completion.provider import CachingContextProvider

logger = logging.getLogger(__name__)

DEFAULT_INSTRUCTION_FILES = (
    ".github/copilot-instructions.md",
    ".victor/instructions.md",
    "AGENTS.md",
)


class InstructionsContextProvider(CachingContextProvider):
    """Contributes project instruction files found in the workspace root.

    Files are read in a worker thread and cached for ``cache_ttl`` seconds.
    """

    def __init__(
        self,
        workspace_root: Path,
        file_names: Optional[Sequence[str]] = None,
        priority: int = 80,
        max_chars: int = 2000,
        cache_ttl: float = 60.0,
    ):
        super().__init__(priority=priority, cache_ttl=cache_ttl)
        self._root = Path(workspace_root)
        self._file_names = tuple(file_names or DEFAULT_INSTRUCTION_FILES)
        self._max_chars = max_chars

    @property
    def name(self) -> str:
        return "instructions"

    def _cache_key(self, context: RequestContext) -> str:
        return str(self._root)

    async def _provide(self, context: RequestContext, deadline: float) -> list[ContextFragment]:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._read_files),
                timeout=self.remaining(deadline),
            )
        except asyncio.TimeoutError as e:
            raise ProviderTimeout(f"{self.name} did not read instructions in time") from e

    def _read_files(self) -> list[ContextFragment]:
        fragments = []
        for file_name in self._file_names:
            path = self._root / file_name
            if not path.is_file():
                continue
            try:
                content = path.read_text(encoding="utf-8", errors="replace").strip()
            except OSError as e:
                logger.warning(f"Could not read instructions {path}: {e}")
                continue
            if content:
                fragments.append(self.fragment(content[: self._max_chars], uri=path.as_uri()))
        return fragments
