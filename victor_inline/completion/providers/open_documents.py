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

"""Context from other open documents.

Neighbouring documents of the same language are ranked by identifier
overlap (Jaccard similarity) with the text around the cursor, and the most
similar ones are contributed as truncated fragments.
"""

import logging
import re

from victor_inline.completion.protocol import ContextFragment, RequestContext
from victor_inline.completion.provider import BaseContextProvider
from victor_inline.completion.services import DocumentManager

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]{2,}")


def _identifiers(text: str) -> set[str]:
    return set(_IDENTIFIER.findall(text))


def jaccard(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


class OpenDocumentsContextProvider(BaseContextProvider):
    """Contributes snippets of similar open documents."""

    def __init__(
        self,
        document_manager: DocumentManager,
        priority: int = 60,
        max_documents: int = 3,
        max_chars: int = 1500,
        min_similarity: float = 0.05,
    ):
        super().__init__(priority=priority)
        self._documents = document_manager
        self._max_documents = max_documents
        self._max_chars = max_chars
        self._min_similarity = min_similarity

    @property
    def name(self) -> str:
        return "open_documents"

    async def _provide(self, context: RequestContext, deadline: float) -> list[ContextFragment]:
        reference = _identifiers(context.prefix[-2000:] + context.suffix[:500])
        if not reference:
            return []

        scored: list[tuple[float, str, str]] = []
        for snapshot in self._documents.open_documents():
            if self.remaining(deadline) <= 0:
                logger.debug("Open documents scan stopped at the deadline")
                break
            if snapshot.uri == context.uri or snapshot.language != context.language:
                continue
            similarity = jaccard(reference, _identifiers(snapshot.text))
            if similarity >= self._min_similarity:
                scored.append((similarity, snapshot.uri, snapshot.text))

        scored.sort(key=lambda item: item[0], reverse=True)
        fragments = []
        for similarity, uri, text in scored[: self._max_documents]:
            fragments.append(
                self.fragment(
                    text[: self._max_chars],
                    uri=uri,
                    importance=int(similarity * 100),
                )
            )
        logger.debug(f"Open documents contributed {len(fragments)} fragment(s)")
        return fragments
