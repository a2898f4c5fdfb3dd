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

"""Completion request coordinator.

Owns the per-keystroke request lifecycle for inline completions:

- debouncing of rapid requests
- cancellation of requests superseded by a newer one for the same document
- time-boxed fan-out to context providers
- credential lookup and backend invocation
- normalization of backend choices into a ranked CompletionResult

A request always resolves to a CompletionResult. The only exception that
reaches the caller is OutOfRangePosition for an invalid cursor position.
"""

import asyncio
import itertools
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from victor_inline.completion.context import ContextAssembler
from victor_inline.completion.protocol import (
    AuthenticationError,
    BackendError,
    BackendResponse,
    CompletionCandidate,
    CompletionMetrics,
    CompletionResult,
    ContextFragment,
    DocumentSnapshot,
    Position,
    ProviderTimeout,
    Range,
    RequestContext,
)
from victor_inline.completion.provider import BaseContextProvider
from victor_inline.completion.registry import ContextProviderRegistry
from victor_inline.completion.services import (
    AuthService,
    CompletionStatus,
    DocumentManager,
    Fetcher,
    NullAuthService,
    NullStatusReporter,
    NullTelemetrySender,
    StatusReporter,
    TelemetrySender,
    describe_collaborators,
)
from victor_inline.config import InlineCompletionSettings
from victor_inline.content.renderer import ContentRenderer

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_TIMEOUT_MS = 150.0
DEFAULT_MAX_CANDIDATES = 3
MAX_TRACKED_DOCUMENTS = 256


class TelemetryEvent:
    REQUEST = "inlineCompletion/request"
    SUGGESTION = "inlineCompletion/suggestion"
    ERROR = "inlineCompletion/error"
    CANCELLED = "inlineCompletion/cancelled"


@dataclass(frozen=True)
class _DocumentState:
    sequence: int
    version: int
    active: bool = True


class CompletionCoordinator:
    """Coordinates inline completion requests.

    Collaborators are injected; each one is optional. With none configured
    the coordinator runs offline and every request resolves to an empty,
    final result.
    """

    def __init__(
        self,
        fetcher: Optional[Fetcher] = None,
        auth_service: Optional[AuthService] = None,
        telemetry: Optional[TelemetrySender] = None,
        status_reporter: Optional[StatusReporter] = None,
        document_manager: Optional[DocumentManager] = None,
        registry: Optional[ContextProviderRegistry] = None,
        assembler: Optional[ContextAssembler] = None,
        renderer: Optional[ContentRenderer] = None,
        debounce_ms: float = 0.0,
        provider_timeout_ms: float = DEFAULT_PROVIDER_TIMEOUT_MS,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
    ):
        """Initialize the coordinator.

        Args:
            fetcher: Completion backend; None means offline
            auth_service: Credential source (anonymous when None)
            telemetry: Telemetry sink (dropped when None)
            status_reporter: Status sink (ignored when None)
            document_manager: Snapshot lookup for ``complete_document``
            registry: Context providers to consult
            assembler: Context assembler (default window when None)
            renderer: Renderer for multi-part choices
            debounce_ms: Delay before a request proceeds; 0 disables
            provider_timeout_ms: Shared deadline for context providers
            max_candidates: Maximum candidates per result
        """
        self._fetcher = fetcher
        self._auth = auth_service or NullAuthService()
        self._telemetry = telemetry or NullTelemetrySender()
        self._status = status_reporter or NullStatusReporter()
        self._documents = document_manager
        self._registry = registry if registry is not None else ContextProviderRegistry()
        self._assembler = assembler or ContextAssembler()
        self._renderer = renderer or ContentRenderer()
        self._debounce_ms = max(0.0, debounce_ms)
        self._provider_timeout_ms = max(0.0, provider_timeout_ms)
        self._max_candidates = max(0, max_candidates)

        self._metrics = CompletionMetrics()
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)
        self._documents_state: dict[str, _DocumentState] = {}

        logger.debug(
            "Completion coordinator ready: "
            + describe_collaborators(
                fetcher=fetcher,
                auth_service=auth_service,
                telemetry=telemetry,
                document_manager=document_manager,
            )
        )

    @classmethod
    def offline(cls, **kwargs) -> "CompletionCoordinator":
        """Coordinator without a backend; every request yields no candidates."""
        kwargs.pop("fetcher", None)
        return cls(fetcher=None, **kwargs)

    @classmethod
    def from_settings(
        cls,
        settings: InlineCompletionSettings,
        offline: bool = False,
        workspace_root: Optional[Path] = None,
        **collaborators,
    ) -> "CompletionCoordinator":
        """Build a coordinator from settings.

        Creates an HTTP fetcher for the configured backend unless ``offline``
        is set or a fetcher is passed in, and registers the built-in context
        providers that the given collaborators make possible.
        """
        from victor_inline.completion.fetchers.http import HttpCompletionFetcher
        from victor_inline.completion.providers import (
            InstructionsContextProvider,
            OpenDocumentsContextProvider,
        )
        from victor_inline.completion.services import StaticTokenAuthService

        auth_service = collaborators.pop("auth_service", None)
        if auth_service is None and settings.backend.api_key:
            auth_service = StaticTokenAuthService(settings.backend.api_key)

        fetcher = collaborators.pop("fetcher", None)
        if offline:
            fetcher = None
        elif fetcher is None:
            fetcher = HttpCompletionFetcher(settings.backend, auth_service=auth_service)

        registry = collaborators.pop("registry", None)
        if registry is None:
            registry = ContextProviderRegistry()
        document_manager = collaborators.get("document_manager")
        if document_manager is not None and registry.get_provider("open_documents") is None:
            registry.register(OpenDocumentsContextProvider(document_manager))
        if workspace_root is not None and registry.get_provider("instructions") is None:
            registry.register(InstructionsContextProvider(workspace_root))

        return cls(
            fetcher=fetcher,
            auth_service=auth_service,
            registry=registry,
            assembler=ContextAssembler(settings.lines_before, settings.lines_after),
            debounce_ms=settings.debounce_ms,
            provider_timeout_ms=settings.provider_timeout_ms,
            max_candidates=settings.max_candidates,
            **collaborators,
        )

    @property
    def metrics(self) -> CompletionMetrics:
        return self._metrics

    @property
    def is_offline(self) -> bool:
        return self._fetcher is None

    def reset_metrics(self) -> None:
        self._metrics = CompletionMetrics()

    def register_provider(self, provider: BaseContextProvider) -> None:
        self._registry.register(provider)

    def unregister_provider(self, name: str) -> bool:
        return self._registry.unregister(name)

    async def complete_document(self, uri: str, line: int, character: int) -> CompletionResult:
        """Complete at a position in a document known to the document manager.

        Unknown documents (or no document manager) yield an empty result.
        """
        snapshot = self._documents.get_snapshot(uri) if self._documents is not None else None
        if snapshot is None:
            logger.warning(f"No open document for {uri}")
            return CompletionResult.empty()
        return await self.provide_inline_completions(snapshot, Position(line, character))

    async def provide_inline_completions(
        self,
        snapshot: DocumentSnapshot,
        position: Position,
    ) -> CompletionResult:
        """Produce inline completions for a cursor position.

        Args:
            snapshot: Document snapshot the request is made against
            position: Zero-based cursor position

        Returns:
            CompletionResult; cancelled if superseded by a newer request
            for the same document

        Raises:
            OutOfRangePosition: If the position is not inside the document
        """
        context = self._assembler.assemble(snapshot, position)

        request_id = self._begin(context.snapshot)
        if request_id is None:
            logger.debug(f"Dropping request for stale {snapshot.uri} v{snapshot.version}")
            self._metrics.cancelled_requests += 1
            return CompletionResult.cancelled_result()

        self._metrics.total_requests += 1
        self._report_status(CompletionStatus.IN_PROGRESS)
        self._send_telemetry(
            TelemetryEvent.REQUEST,
            {"languageId": context.language, "offline": str(self.is_offline)},
        )

        start_time = time.time()
        result: Optional[CompletionResult] = None
        failed = False
        try:
            result = await self._run(context, request_id)
        except asyncio.CancelledError:
            self._finish(context.uri, request_id, CompletionStatus.IDLE)
            raise
        except (BackendError, AuthenticationError) as e:
            failed = self._report_failure(context, request_id, e)
        except Exception as e:
            failed = self._report_failure(context, request_id, e, unexpected=True)
        finally:
            if result is None and not failed:
                # Superseded, or the host cancelled the task
                self._metrics.cancelled_requests += 1
            else:
                self._metrics.total_latency_ms += (time.time() - start_time) * 1000

        if failed:
            self._metrics.failed_requests += 1
            self._finish(context.uri, request_id, CompletionStatus.ERROR)
            return CompletionResult.empty(request_id)

        if result is None:
            self._send_telemetry(TelemetryEvent.CANCELLED, {"languageId": context.language})
            return CompletionResult.cancelled_result(request_id)

        self._metrics.successful_requests += 1
        if result.is_empty:
            self._metrics.empty_results += 1
        else:
            self._send_telemetry(
                TelemetryEvent.SUGGESTION,
                {"languageId": context.language},
                {
                    "candidates": float(len(result)),
                    "latencyMs": (time.time() - start_time) * 1000,
                },
            )
        self._finish(
            context.uri,
            request_id,
            CompletionStatus.OFFLINE if self.is_offline else CompletionStatus.IDLE,
        )
        return result

    def _report_failure(
        self,
        context: RequestContext,
        request_id: int,
        error: Exception,
        unexpected: bool = False,
    ) -> bool:
        """Log and report a failed request.

        Returns:
            False if a newer request had already superseded this one
        """
        if not self._is_current(context.uri, request_id):
            logger.debug(f"Ignoring failure of superseded request {context.uri} #{request_id}: {error}")
            return False
        if unexpected:
            logger.error(f"Unexpected inline completion failure for {context.uri}: {error}", exc_info=True)
        else:
            logger.warning(f"Inline completion failed for {context.uri}: {error}")
        self._send_telemetry(TelemetryEvent.ERROR, {"errorMessage": str(error)})
        return True

    async def _run(self, context: RequestContext, request_id: int) -> Optional[CompletionResult]:
        """Run one request; None means it was superseded."""
        if self._debounce_ms > 0:
            await asyncio.sleep(self._debounce_ms / 1000)
            if not self._is_current(context.uri, request_id):
                return None

        fragments = await self._gather_context(context)
        context = context.with_fragments(fragments)
        if not self._is_current(context.uri, request_id):
            return None

        if self._fetcher is None:
            return CompletionResult.empty(request_id)

        try:
            credentials = await self._auth.get_credentials()
        except AuthenticationError:
            raise
        except Exception as e:
            raise AuthenticationError(f"Could not obtain credentials: {e}") from e
        context = context.with_credentials(credentials)

        response = await self._fetcher.invoke(context)
        if not self._is_current(context.uri, request_id):
            logger.debug(f"Discarding superseded response for {context.uri} #{request_id}")
            return None
        if response is None:
            return CompletionResult.empty(request_id)

        self._metrics.total_tokens_used += response.tokens_used
        return self._normalize(response, context, request_id)

    async def _gather_context(self, context: RequestContext) -> list[ContextFragment]:
        """Consult context providers concurrently under one deadline."""
        providers = self._registry.get_providers_for_language(context.language)
        if not providers:
            return []

        loop = asyncio.get_running_loop()
        budget = self._provider_timeout_ms / 1000
        deadline = loop.time() + budget

        tasks: list[tuple[BaseContextProvider, asyncio.Future]] = []
        for provider in providers:
            try:
                tasks.append((provider, asyncio.ensure_future(provider.provide(context, deadline))))
            except Exception as e:
                self._record_provider_failure(provider, e)

        if not tasks:
            return []

        done: set[asyncio.Future] = set()
        try:
            done, _ = await asyncio.wait([task for _, task in tasks], timeout=budget)
        finally:
            for _, task in tasks:
                if not task.done():
                    task.cancel()

        fragments: list[ContextFragment] = []
        for provider, task in tasks:
            # Tasks cancelled above only finish once the loop runs them again
            if task not in done or task.cancelled():
                self._record_provider_failure(
                    provider,
                    ProviderTimeout(f"exceeded {self._provider_timeout_ms:.0f}ms budget"),
                )
                continue
            try:
                contributed = [f for f in task.result() or [] if isinstance(f, ContextFragment)]
            except Exception as e:
                self._record_provider_failure(provider, e)
                continue
            contributed.sort(key=lambda f: f.importance, reverse=True)
            fragments.extend(contributed)
        return fragments

    def _record_provider_failure(self, provider: BaseContextProvider, error: BaseException) -> None:
        if isinstance(error, ProviderTimeout):
            self._metrics.provider_timeouts += 1
        else:
            self._metrics.provider_errors += 1
        logger.warning(f"Context provider {provider.name} contributed nothing: {error}")

    def _normalize(
        self,
        response: BackendResponse,
        context: RequestContext,
        request_id: int,
    ) -> CompletionResult:
        """Turn backend choices into ranked candidates."""
        default_range = Range.empty(context.position)
        candidates = []
        for choice in response.choices:
            if choice.parts:
                text = self._renderer.render_to_string(choice.parts)
            else:
                text = choice.text or ""
            if not text:
                continue
            candidates.append(
                CompletionCandidate(
                    text=text,
                    range=choice.range or default_range,
                    score=choice.score,
                )
            )

        # sorted() is stable, so equal scores keep arrival order
        candidates = sorted(candidates, key=lambda c: c.score, reverse=True)
        return CompletionResult(
            candidates=tuple(candidates[: self._max_candidates]),
            is_final=response.is_final,
            request_id=request_id,
        )

    def _begin(self, snapshot: DocumentSnapshot) -> Optional[int]:
        """Register a request as the newest for its document.

        Returns:
            The request sequence number, or None if the snapshot is older
            than one already seen for the same document
        """
        with self._lock:
            state = self._documents_state.get(snapshot.uri)
            if state is not None and snapshot.version < state.version:
                return None
            sequence = next(self._sequence)
            # Re-insert so iteration order runs from least to most recently used
            self._documents_state.pop(snapshot.uri, None)
            self._documents_state[snapshot.uri] = _DocumentState(sequence, snapshot.version)
            self._evict_finished()
            return sequence

    def _evict_finished(self) -> None:
        excess = len(self._documents_state) - MAX_TRACKED_DOCUMENTS
        if excess <= 0:
            return
        stale = [uri for uri, state in self._documents_state.items() if not state.active][:excess]
        for uri in stale:
            del self._documents_state[uri]

    def forget_document(self, uri: str) -> None:
        """Drop tracking state for a closed document.

        A request still in flight for the document completes as superseded.
        """
        with self._lock:
            self._documents_state.pop(uri, None)

    def _is_current(self, uri: str, request_id: int) -> bool:
        with self._lock:
            state = self._documents_state.get(uri)
            return state is not None and state.sequence == request_id

    def _finish(self, uri: str, request_id: int, status: CompletionStatus) -> None:
        with self._lock:
            state = self._documents_state.get(uri)
            if state is None or state.sequence != request_id:
                return
            self._documents_state[uri] = _DocumentState(state.sequence, state.version, active=False)
        self._report_status(status)

    def is_pending(self, uri: str) -> bool:
        """Whether a request for the document is still in flight."""
        with self._lock:
            state = self._documents_state.get(uri)
            return state is not None and state.active

    def _report_status(self, status: CompletionStatus, message: Optional[str] = None) -> None:
        try:
            self._status.report(status, message)
        except Exception as e:
            logger.debug(f"Status reporter failed: {e}")

    def _send_telemetry(
        self,
        name: str,
        properties: Optional[dict[str, str]] = None,
        measurements: Optional[dict[str, float]] = None,
    ) -> None:
        try:
            self._telemetry.send_event(name, properties, measurements)
        except Exception as e:
            logger.debug(f"Telemetry event {name} dropped: {e}")
