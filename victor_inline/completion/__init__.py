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

"""Inline completion pipeline for editor integration.

Turns a document snapshot and a cursor position into ranked ghost-text
suggestions:
- ContextAssembler windows the text around the cursor
- context providers contribute advisory fragments under a shared deadline
- a Fetcher asks the completion backend
- CompletionCoordinator ties it together and cancels superseded requests

Example usage:
    from victor_inline.completion import (
        CompletionCoordinator,
        DocumentSnapshot,
        Position,
    )
    from victor_inline.config import load_settings

    coordinator = CompletionCoordinator.from_settings(load_settings())

    snapshot = DocumentSnapshot(
        uri="file:///main.py",
        language="python",
        version=1,
        text="def hello():\n    ",
    )
    result = await coordinator.provide_inline_completions(snapshot, Position(1, 4))
    for candidate in result.candidates:
        print(candidate.text)
"""

from victor_inline.completion.protocol import (
    AuthenticationError,
    BackendChoice,
    BackendError,
    BackendResponse,
    CompletionCandidate,
    CompletionMetrics,
    CompletionResult,
    ContextFragment,
    Credentials,
    DocumentSnapshot,
    InlineCompletionError,
    OutOfRangePosition,
    Position,
    ProviderTimeout,
    Range,
    RenderFailure,
    RequestContext,
)
from victor_inline.completion.context import ContextAssembler, detect_language
from victor_inline.completion.capabilities import (
    CapabilitySet,
    HostFeature,
    RegistrationMetadata,
    negotiate,
)
from victor_inline.completion.services import (
    AuthService,
    CompletionStatus,
    DocumentManager,
    Fetcher,
    InMemoryDocumentManager,
    NullAuthService,
    NullStatusReporter,
    NullTelemetrySender,
    StaticTokenAuthService,
    StatusReporter,
    TelemetrySender,
)
from victor_inline.completion.provider import (
    BaseContextProvider,
    CachingContextProvider,
    ContextProvider,
)
from victor_inline.completion.registry import ContextProviderRegistry
from victor_inline.completion.coordinator import CompletionCoordinator, TelemetryEvent
from victor_inline.completion.registration import (
    InlineCompletionHost,
    InlineCompletionRegistrar,
)

__all__ = [
    # Protocol types
    "BackendChoice",
    "BackendResponse",
    "CompletionCandidate",
    "CompletionMetrics",
    "CompletionResult",
    "ContextFragment",
    "Credentials",
    "DocumentSnapshot",
    "Position",
    "Range",
    "RequestContext",
    # Errors
    "AuthenticationError",
    "BackendError",
    "InlineCompletionError",
    "OutOfRangePosition",
    "ProviderTimeout",
    "RenderFailure",
    # Context
    "ContextAssembler",
    "detect_language",
    # Capabilities
    "CapabilitySet",
    "HostFeature",
    "RegistrationMetadata",
    "negotiate",
    # Services
    "AuthService",
    "CompletionStatus",
    "DocumentManager",
    "Fetcher",
    "InMemoryDocumentManager",
    "NullAuthService",
    "NullStatusReporter",
    "NullTelemetrySender",
    "StaticTokenAuthService",
    "StatusReporter",
    "TelemetrySender",
    # Context providers
    "BaseContextProvider",
    "CachingContextProvider",
    "ContextProvider",
    "ContextProviderRegistry",
    # Coordinator
    "CompletionCoordinator",
    "TelemetryEvent",
    # Registration
    "InlineCompletionHost",
    "InlineCompletionRegistrar",
]
