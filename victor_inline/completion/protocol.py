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

"""Inline completion protocol types.

Value types shared by the context assembler, the coordinator, the fetchers
and the host integration. Request-scoped values are frozen: a request
enriches its context by building a new value, never by mutating one that
another request could observe.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Optional

from victor_inline.errors import (  # noqa: F401
    AuthenticationError,
    BackendError,
    InlineCompletionError,
    OutOfRangePosition,
    ProviderTimeout,
    RenderFailure,
)


@dataclass(frozen=True)
class Position:
    """Zero-based line/character position in a document."""

    line: int
    character: int

    def __str__(self) -> str:
        return f"{self.line}:{self.character}"


@dataclass(frozen=True)
class Range:
    """A range in a document, end exclusive."""

    start: Position
    end: Position

    @classmethod
    def empty(cls, position: Position) -> "Range":
        """Zero-length range used for pure insertions."""
        return cls(start=position, end=position)

    @property
    def is_empty(self) -> bool:
        return self.start == self.end


@dataclass(frozen=True)
class DocumentSnapshot:
    """Immutable view of a document at one version."""

    uri: str
    language: str
    version: int
    text: str

    @property
    def line_count(self) -> int:
        return len(self.text.split("\n"))


@dataclass(frozen=True)
class ContextFragment:
    """Advisory context contributed by a context provider."""

    provider: str
    content: str
    uri: Optional[str] = None
    importance: int = 0  # Higher sorts first within one provider


@dataclass(frozen=True)
class Credentials:
    """Credentials attached to a backend request."""

    token: str
    scheme: str = "Bearer"

    def authorization_header(self) -> str:
        return f"{self.scheme} {self.token}"


@dataclass(frozen=True)
class RequestContext:
    """Everything a fetcher needs to produce completions for one request."""

    snapshot: DocumentSnapshot
    position: Position
    offset: int  # Absolute offset of the cursor in snapshot.text
    prefix: str  # Windowed text before the cursor
    suffix: str  # Windowed text after the cursor
    fragments: tuple[ContextFragment, ...] = ()
    credentials: Optional[Credentials] = None

    @property
    def language(self) -> str:
        return self.snapshot.language

    @property
    def uri(self) -> str:
        return self.snapshot.uri

    def with_fragments(self, fragments: list[ContextFragment]) -> "RequestContext":
        return replace(self, fragments=tuple(fragments))

    def with_credentials(self, credentials: Optional[Credentials]) -> "RequestContext":
        return replace(self, credentials=credentials)


@dataclass(frozen=True)
class CompletionCandidate:
    """A single inline suggestion."""

    text: str
    range: Range
    score: float = 0.0


@dataclass(frozen=True)
class CompletionResult:
    """Candidates handed back to the host for one request.

    Candidates are ordered by descending score. ``is_final`` is False when
    the backend indicated that a refinement may follow.
    """

    candidates: tuple[CompletionCandidate, ...] = ()
    is_final: bool = True
    cancelled: bool = False
    request_id: Optional[int] = None

    @classmethod
    def empty(cls, request_id: Optional[int] = None) -> "CompletionResult":
        return cls(candidates=(), is_final=True, request_id=request_id)

    @classmethod
    def cancelled_result(cls, request_id: Optional[int] = None) -> "CompletionResult":
        return cls(candidates=(), is_final=True, cancelled=True, request_id=request_id)

    @property
    def is_empty(self) -> bool:
        return not self.candidates

    def __len__(self) -> int:
        return len(self.candidates)


@dataclass(frozen=True)
class BackendChoice:
    """One raw choice returned by a fetcher.

    Either ``text`` or ``parts`` carries the suggestion; ``parts`` is an
    ordered sequence of content parts rendered by the content renderer.
    """

    text: Optional[str] = None
    parts: tuple[Any, ...] = ()
    range: Optional[Range] = None
    score: float = 0.0


@dataclass(frozen=True)
class BackendResponse:
    """Raw fetcher response."""

    choices: tuple[BackendChoice, ...] = ()
    is_final: bool = True
    model: Optional[str] = None
    tokens_used: int = 0


@dataclass
class CompletionMetrics:
    """Counters collected by the coordinator."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    cancelled_requests: int = 0
    empty_results: int = 0
    total_latency_ms: float = 0.0
    total_tokens_used: int = 0
    provider_timeouts: int = 0
    provider_errors: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def avg_latency_ms(self) -> float:
        """Average latency over completed (non-cancelled) requests."""
        completed = self.successful_requests + self.failed_requests
        if completed == 0:
            return 0.0
        return self.total_latency_ms / completed

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "cancelled_requests": self.cancelled_requests,
            "empty_results": self.empty_results,
            "avg_latency_ms": round(self.avg_latency_ms, 2),
            "total_tokens_used": self.total_tokens_used,
            "provider_timeouts": self.provider_timeouts,
            "provider_errors": self.provider_errors,
        }
