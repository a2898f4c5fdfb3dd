# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for host services and protocol value types."""

import pytest

from victor_inline.completion import (
    AuthService,
    CompletionMetrics,
    CompletionResult,
    DocumentManager,
    DocumentSnapshot,
    Fetcher,
    InMemoryDocumentManager,
    NullAuthService,
    Position,
    Range,
    StaticTokenAuthService,
)
from victor_inline.completion.fetchers import HttpCompletionFetcher


def _snapshot(version: int, text: str = "x") -> DocumentSnapshot:
    return DocumentSnapshot(uri="file:///a.py", language="python", version=version, text=text)


class TestInMemoryDocumentManager:
    def test_keeps_newest_version(self):
        documents = InMemoryDocumentManager()

        assert documents.update(_snapshot(2, "new"))
        assert not documents.update(_snapshot(1, "old"))
        assert documents.get_snapshot("file:///a.py").text == "new"

    def test_close(self):
        documents = InMemoryDocumentManager([_snapshot(1)])

        assert documents.close("file:///a.py")
        assert documents.get_snapshot("file:///a.py") is None
        assert documents.open_documents() == []

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryDocumentManager(), DocumentManager)


class TestAuthServices:
    @pytest.mark.asyncio
    async def test_static_token(self):
        credentials = await StaticTokenAuthService("abc").get_credentials()

        assert credentials.authorization_header() == "Bearer abc"

    @pytest.mark.asyncio
    async def test_missing_token_is_anonymous(self):
        assert await StaticTokenAuthService(None).get_credentials() is None
        assert await NullAuthService().get_credentials() is None

    def test_satisfy_protocol(self):
        assert isinstance(NullAuthService(), AuthService)
        assert isinstance(StaticTokenAuthService("x"), AuthService)
        assert isinstance(HttpCompletionFetcher(), Fetcher)


class TestProtocolTypes:
    def test_result_helpers(self):
        assert CompletionResult.empty(3).request_id == 3
        assert CompletionResult.cancelled_result().cancelled
        assert len(CompletionResult()) == 0

    def test_empty_range(self):
        assert Range.empty(Position(2, 3)).is_empty
        assert str(Position(2, 3)) == "2:3"

    def test_metrics_average_excludes_cancelled(self):
        metrics = CompletionMetrics(
            successful_requests=3,
            failed_requests=1,
            cancelled_requests=10,
            total_latency_ms=200.0,
        )

        assert metrics.avg_latency_ms == 50.0
        assert metrics.to_dict()["cancelled_requests"] == 10
        assert CompletionMetrics().avg_latency_ms == 0.0
