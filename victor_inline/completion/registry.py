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

"""Context provider registry.

Manages registration and lookup of context providers following
the Factory pattern.
"""

import logging
from typing import Callable, Optional

from victor_inline.completion.provider import BaseContextProvider

logger = logging.getLogger(__name__)


class ContextProviderRegistry:
    """Registry for context providers.

    Supports:
    - Manual registration of providers
    - Factory-based lazy instantiation
    - Priority-based provider ordering
    """

    def __init__(self):
        self._providers: dict[str, BaseContextProvider] = {}
        self._factories: dict[str, Callable[[], BaseContextProvider]] = {}

    def register(self, provider: BaseContextProvider) -> None:
        """Register a provider instance.

        Args:
            provider: The provider to register
        """
        if provider.name in self._providers:
            logger.warning(f"Overwriting existing context provider: {provider.name}")
        self._providers[provider.name] = provider
        logger.debug(f"Registered context provider: {provider.name}")

    def register_factory(
        self,
        name: str,
        factory: Callable[[], BaseContextProvider],
    ) -> None:
        """Register a factory function for lazy instantiation.

        Args:
            name: Provider name
            factory: Factory function that creates the provider
        """
        self._factories[name] = factory
        logger.debug(f"Registered context provider factory: {name}")

    def get_provider(self, name: str) -> Optional[BaseContextProvider]:
        """Get a provider by name, instantiating it from its factory if needed.

        Args:
            name: Provider name

        Returns:
            The provider instance or None if not found
        """
        if name in self._providers:
            return self._providers[name]

        if name in self._factories:
            try:
                provider = self._factories.pop(name)()
            except Exception as e:
                logger.error(f"Context provider factory failed for {name}: {e}")
                return None
            self._providers[name] = provider
            return provider

        return None

    def get_all_providers(self) -> list[BaseContextProvider]:
        """Get all registered providers, sorted by priority (highest first)."""
        for name in list(self._factories):
            self.get_provider(name)

        return sorted(
            self._providers.values(),
            key=lambda p: p.priority,
            reverse=True,
        )

    def get_providers_for_language(self, language: str) -> list[BaseContextProvider]:
        """Get enabled providers that support a language, by priority."""
        return [p for p in self.get_all_providers() if p.enabled and p.supports_language(language)]

    def unregister(self, name: str) -> bool:
        """Unregister a provider.

        Returns:
            True if provider was found and removed
        """
        found = self._providers.pop(name, None) is not None
        found = self._factories.pop(name, None) is not None or found
        return found

    def list_providers(self) -> list[str]:
        """List all registered provider names."""
        return sorted(set(self._providers) | set(self._factories))

    def clear(self) -> None:
        """Clear all registered providers."""
        self._providers.clear()
        self._factories.clear()

    def __len__(self) -> int:
        return len(set(self._providers) | set(self._factories))
