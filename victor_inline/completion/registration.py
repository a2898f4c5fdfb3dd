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

"""Registration of the inline completion provider with a host."""

import logging
from typing import Any, Optional, Protocol, runtime_checkable

from victor_inline.completion.capabilities import (
    CapabilitySet,
    HostFeature,
    RegistrationMetadata,
    negotiate,
)
from victor_inline.config import RegistrationSettings

logger = logging.getLogger(__name__)


@runtime_checkable
class InlineCompletionHost(Protocol):
    """Host surface accepting inline completion providers."""

    def register_inline_completion_provider(
        self,
        selector: str,
        provider: Any,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Any: ...


class InlineCompletionRegistrar:
    """Registers a provider with only the metadata the host supports.

    Negotiation happens once, when the registrar is created. Hosts without
    the extended metadata feature get the reduced two-argument call.
    """

    def __init__(self, capabilities: CapabilitySet, desired: RegistrationMetadata):
        self._capabilities = capabilities
        self._metadata = negotiate(capabilities, desired)
        if self._metadata != desired:
            logger.info(f"Host does not support all registration metadata; sending {self._metadata}")

    @classmethod
    def from_settings(
        cls,
        capabilities: CapabilitySet,
        settings: RegistrationSettings,
    ) -> "InlineCompletionRegistrar":
        desired = RegistrationMetadata(
            group_id=settings.group_id,
            excludes=tuple(settings.excludes) if settings.excludes else None,
            debounce_delay_ms=settings.debounce_delay_ms,
            display_name=settings.display_name,
            yield_to=tuple(settings.yield_to) if settings.yield_to else None,
        )
        return cls(capabilities, desired)

    @property
    def metadata(self) -> RegistrationMetadata:
        """Negotiated metadata."""
        return self._metadata

    @property
    def sends_metadata(self) -> bool:
        return (
            self._capabilities.supports(HostFeature.EXTENDED_METADATA)
            and not self._metadata.is_empty
        )

    def register(self, host: InlineCompletionHost, selector: str, provider: Any) -> Any:
        """Register ``provider`` for documents matching ``selector``.

        Returns:
            Whatever the host returns, typically a disposable handle
        """
        if self.sends_metadata:
            return host.register_inline_completion_provider(
                selector, provider, self._metadata.to_host_options()
            )
        logger.debug(f"Registering inline completion provider for {selector} without metadata")
        return host.register_inline_completion_provider(selector, provider)
