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

"""Context provider interface and base implementations.

Context providers contribute advisory fragments (related files, workspace
instructions, ...) to a completion request. They are time-boxed by the
coordinator: a provider that misses the deadline simply contributes nothing.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional, Protocol, runtime_checkable

from victor_inline.completion.protocol import ContextFragment, RequestContext

logger = logging.getLogger(__name__)


@runtime_checkable
class ContextProvider(Protocol):
    """Protocol for context providers."""

    @property
    def name(self) -> str:
        """Unique identifier for this provider."""
        ...

    @property
    def priority(self) -> int:
        """Provider priority (higher = fragments placed first)."""
        ...

    async def provide(self, context: RequestContext, deadline: float) -> list[ContextFragment]:
        """Provide fragments for a request.

        Args:
            context: The request context being assembled
            deadline: Event loop time (``loop.time()``) by which to finish

        Returns:
            Fragments, possibly empty
        """
        ...


class BaseContextProvider(ABC):
    """Abstract base class for context providers.

    Subclasses implement ``name`` and ``_provide``.
    """

    def __init__(self, priority: int = 50, languages: Optional[list[str]] = None):
        """Initialize the provider.

        Args:
            priority: Provider priority (default 50, range 0-100)
            languages: Languages to serve, empty or None for all
        """
        self._priority = max(0, min(100, priority))
        self._languages = [lang.lower() for lang in languages or []]
        self._enabled = True

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this provider."""
        ...

    @property
    def priority(self) -> int:
        return self._priority

    @priority.setter
    def priority(self, value: int) -> None:
        self._priority = max(0, min(100, value))

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value

    def supports_language(self, language: str) -> bool:
        """Check if this provider serves a language (empty list means all)."""
        if not self._languages:
            return True
        return language.lower() in self._languages

    async def provide(self, context: RequestContext, deadline: float) -> list[ContextFragment]:
        return await self._provide(context, deadline)

    @abstractmethod
    async def _provide(self, context: RequestContext, deadline: float) -> list[ContextFragment]:
        ...

    @staticmethod
    def remaining(deadline: float) -> float:
        """Seconds left until the deadline (never negative)."""
        return max(0.0, deadline - asyncio.get_running_loop().time())

    def fragment(
        self, content: str, uri: Optional[str] = None, importance: int = 0
    ) -> ContextFragment:
        return ContextFragment(provider=self.name, content=content, uri=uri, importance=importance)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, priority={self.priority})"


class CachingContextProvider(BaseContextProvider):
    """Base class for providers whose fragments can be reused across requests."""

    def __init__(
        self,
        priority: int = 50,
        languages: Optional[list[str]] = None,
        cache_ttl: float = 30.0,
        max_entries: int = 128,
    ):
        """Initialize with caching.

        Args:
            priority: Provider priority
            languages: Languages to serve
            cache_ttl: Cache time-to-live in seconds
            max_entries: Cache size; the oldest entries are dropped first
        """
        super().__init__(priority=priority, languages=languages)
        self._cache_ttl = cache_ttl
        self._max_entries = max(1, max_entries)
        self._cache: dict[str, tuple[float, list[ContextFragment]]] = {}

    def _cache_key(self, context: RequestContext) -> str:
        return f"{context.uri}:{context.snapshot.version}"

    async def provide(self, context: RequestContext, deadline: float) -> list[ContextFragment]:
        key = self._cache_key(context)
        cached = self._cache.get(key)
        if cached is not None:
            timestamp, fragments = cached
            if time.monotonic() - timestamp < self._cache_ttl:
                return list(fragments)
            self._cache.pop(key, None)

        fragments = await self._provide(context, deadline)
        self._store(key, fragments)
        return fragments

    def _store(self, key: str, fragments: list[ContextFragment]) -> None:
        now = time.monotonic()
        expired = [k for k, (timestamp, _) in self._cache.items() if now - timestamp >= self._cache_ttl]
        for k in expired:
            del self._cache[k]
        self._cache.pop(key, None)
        while len(self._cache) >= self._max_entries:
            del self._cache[next(iter(self._cache))]
        self._cache[key] = (now, list(fragments))

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        """Clear all cached fragments."""
        self._cache.clear()
