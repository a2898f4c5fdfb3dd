# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Shared fixtures for victor-inline tests."""

import asyncio
from typing import Callable, Optional

import pytest

from victor_inline.completion.protocol import (
    BackendChoice,
    BackendResponse,
    DocumentSnapshot,
    RequestContext,
)
from victor_inline.completion.services import CompletionStatus

TEST_URI = "file:///test.txt"
TEST_TEXT = "function main() {\n\n\n}\n"


@pytest.fixture
def snapshot() -> DocumentSnapshot:
    """The small JavaScript document used across coordinator tests."""
    return DocumentSnapshot(uri=TEST_URI, language="javascript", version=1, text=TEST_TEXT)


def make_snapshot(version: int = 1, text: str = TEST_TEXT, uri: str = TEST_URI) -> DocumentSnapshot:
    return DocumentSnapshot(uri=uri, language="javascript", version=version, text=text)


class FakeFetcher:
    """Returns a fixed response and records every context it receives."""

    def __init__(self, response: Optional[BackendResponse] = None, error: Optional[Exception] = None):
        self.response = response or BackendResponse(choices=(BackendChoice(text="return 0;"),))
        self.error = error
        self.calls: list[RequestContext] = []

    async def invoke(self, context: RequestContext) -> BackendResponse:
        self.calls.append(context)
        if self.error is not None:
            raise self.error
        return self.response


class GatedFetcher:
    """Blocks each call until its gate is opened; call N answers ``call-N``."""

    def __init__(self):
        self.calls: list[RequestContext] = []
        self.gates: list[asyncio.Event] = []

    async def invoke(self, context: RequestContext) -> BackendResponse:
        self.calls.append(context)
        index = len(self.calls)
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        return BackendResponse(choices=(BackendChoice(text=f"call-{index}"),))


class RecordingTelemetry:
    def __init__(self):
        self.events: list[tuple[str, dict, dict]] = []

    def send_event(self, name, properties=None, measurements=None) -> None:
        self.events.append((name, properties or {}, measurements or {}))

    @property
    def names(self) -> list[str]:
        return [name for name, _, _ in self.events]


class RecordingStatus:
    def __init__(self):
        self.statuses: list[CompletionStatus] = []

    def report(self, status, message=None) -> None:
        self.statuses.append(status)


async def wait_until(condition: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until ``condition`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.001)
