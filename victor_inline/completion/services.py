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

"""Host service interfaces used by the completion coordinator.

Every collaborator has a null implementation describing what happens when
the host does not provide it. A coordinator built with no collaborators at
all is the offline configuration: it always resolves to an empty result.
"""

import logging
import threading
from enum import Enum
from typing import Any, Iterable, Optional, Protocol, runtime_checkable

from victor_inline.completion.protocol import (
    BackendResponse,
    Credentials,
    DocumentSnapshot,
    RequestContext,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class Fetcher(Protocol):
    """Backend that turns a request context into raw completions."""

    async def invoke(self, context: RequestContext) -> BackendResponse:
        """Fetch completions.

        Raises:
            BackendError: On transport or protocol failure
        """
        ...


@runtime_checkable
class AuthService(Protocol):
    """Supplies credentials for backend requests."""

    async def get_credentials(self) -> Optional[Credentials]:
        """Return credentials, or None for anonymous access.

        Raises:
            AuthenticationError: If credentials cannot be obtained
        """
        ...

    def invalidate(self) -> None:
        """Forget cached credentials after the backend rejected them."""
        ...


class NullAuthService:
    """Anonymous access: no credentials are attached."""

    async def get_credentials(self) -> Optional[Credentials]:
        return None

    def invalidate(self) -> None:
        pass


class StaticTokenAuthService:
    """Serves a fixed API token, typically from configuration."""

    def __init__(self, token: Optional[str], scheme: str = "Bearer"):
        self._token = token
        self._scheme = scheme

    async def get_credentials(self) -> Optional[Credentials]:
        if not self._token:
            return None
        return Credentials(token=self._token, scheme=self._scheme)

    def invalidate(self) -> None:
        # A static token cannot be refreshed
        logger.warning("Backend rejected the configured API token")


@runtime_checkable
class TelemetrySender(Protocol):
    """Fire-and-forget telemetry sink."""

    def send_event(
        self,
        name: str,
        properties: Optional[dict[str, str]] = None,
        measurements: Optional[dict[str, float]] = None,
    ) -> None: ...


class NullTelemetrySender:
    """Drops every event."""

    def send_event(
        self,
        name: str,
        properties: Optional[dict[str, str]] = None,
        measurements: Optional[dict[str, float]] = None,
    ) -> None:
        pass


class CompletionStatus(str, Enum):
    """Status shown by the host while completions run."""

    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    ERROR = "error"
    OFFLINE = "offline"


@runtime_checkable
class StatusReporter(Protocol):
    """Receives completion status changes."""

    def report(self, status: CompletionStatus, message: Optional[str] = None) -> None: ...


class NullStatusReporter:
    """Ignores status changes."""

    def report(self, status: CompletionStatus, message: Optional[str] = None) -> None:
        pass


@runtime_checkable
class DocumentManager(Protocol):
    """Read-only access to open documents."""

    def get_snapshot(self, uri: str) -> Optional[DocumentSnapshot]: ...

    def open_documents(self) -> list[DocumentSnapshot]: ...


class InMemoryDocumentManager:
    """Keeps the newest snapshot per URI.

    Older versions offered after a newer one are ignored, so the manager
    never moves a document backwards.
    """

    def __init__(self, snapshots: Optional[Iterable[DocumentSnapshot]] = None):
        self._lock = threading.Lock()
        self._documents: dict[str, DocumentSnapshot] = {}
        for snapshot in snapshots or ():
            self.update(snapshot)

    def update(self, snapshot: DocumentSnapshot) -> bool:
        """Store a snapshot.

        Returns:
            True if stored, False if an equal or newer version is present
        """
        with self._lock:
            current = self._documents.get(snapshot.uri)
            if current is not None and current.version > snapshot.version:
                logger.debug(
                    f"Ignoring stale snapshot {snapshot.uri} v{snapshot.version} "
                    f"(have v{current.version})"
                )
                return False
            self._documents[snapshot.uri] = snapshot
            return True

    def close(self, uri: str) -> bool:
        with self._lock:
            return self._documents.pop(uri, None) is not None

    def get_snapshot(self, uri: str) -> Optional[DocumentSnapshot]:
        with self._lock:
            return self._documents.get(uri)

    def open_documents(self) -> list[DocumentSnapshot]:
        with self._lock:
            return list(self._documents.values())


def describe_collaborators(**collaborators: Any) -> str:
    """Summarize which collaborators are configured, for logging."""
    parts = []
    for name, value in collaborators.items():
        state = "none" if value is None else type(value).__name__
        parts.append(f"{name}={state}")
    return ", ".join(parts)
