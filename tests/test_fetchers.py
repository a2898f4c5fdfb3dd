# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Tests for FIM prompts and the HTTP completion fetcher."""

import json
from unittest.mock import MagicMock

import httpx
import pytest
import respx

from victor_inline.completion import (
    BackendError,
    ContextAssembler,
    ContextFragment,
    Credentials,
    DocumentSnapshot,
    Position,
)
from victor_inline.completion.fetchers import (
    HttpCompletionFetcher,
    build_fim_prompt,
    clean_completion,
    template_for_model,
)
from victor_inline.completion.fetchers.fim import comment_prefix, render_fragments
from victor_inline.config import BackendSettings

LOCAL_URL = "http://localhost:11434/v1/completions"


def _context(credentials=None):
    snapshot = DocumentSnapshot(
        uri="file:///main.py",
        language="python",
        version=1,
        text="def add(a, b):\n    ",
    )
    context = ContextAssembler().assemble(snapshot, Position(1, 4))
    return context.with_credentials(credentials)


def completions_response(*texts, finish_reason="stop", logprobs=None):
    choices = []
    for index, text in enumerate(texts):
        choice = {"text": text, "index": index, "finish_reason": finish_reason}
        if logprobs is not None:
            choice["logprobs"] = {"token_logprobs": logprobs[index]}
        choices.append(choice)
    return {
        "id": "cmpl-123",
        "object": "text_completion",
        "model": "qwen2.5-coder:1.5b",
        "choices": choices,
        "usage": {"prompt_tokens": 12, "completion_tokens": 5, "total_tokens": 17},
    }


class TestFimPrompt:
    """FIM prompt construction."""

    def test_qwen_prompt(self):
        prompt = build_fim_prompt("def f():\n", "\n", template="qwen")

        assert prompt == "<|fim_prefix|>def f():\n<|fim_suffix|>\n<|fim_middle|>"

    def test_unknown_template_uses_default(self):
        assert build_fim_prompt("a", "b", template="mystery") == "<PRE>a<SUF>b<MID>"

    def test_preamble_precedes_prefix(self):
        prompt = build_fim_prompt("x", "", template="starcoder", preamble="# ctx\n")

        assert prompt.startswith("<fim_prefix># ctx\nx<fim_suffix>")

    @pytest.mark.parametrize(
        "model,template",
        [
            ("qwen2.5-coder:1.5b", "qwen"),
            ("deepseek-coder-v2", "deepseek"),
            ("bigcode/starcoder2-3b", "starcoder"),
            ("CodeLlama-7b", "codellama"),
            ("gpt-3.5-turbo-instruct", "default"),
        ],
    )
    def test_template_for_model(self, model, template):
        assert template_for_model(model) == template

    def test_fetcher_template_follows_model(self):
        assert HttpCompletionFetcher(BackendSettings(model="starcoder2:3b")).fim_template == "starcoder"
        assert HttpCompletionFetcher(BackendSettings(model="gpt-3.5-turbo-instruct")).fim_template == "default"

    def test_explicit_template_wins(self):
        settings = BackendSettings(model="starcoder2:3b", fim_template="codellama")

        assert HttpCompletionFetcher(settings).fim_template == "codellama"

    def test_render_fragments(self):
        fragments = [ContextFragment(provider="p", content="import os\n", uri="file:///a.py")]

        assert render_fragments(fragments, "python") == "# Path: file:///a.py\n# import os\n#\n"
        assert render_fragments([], "python") == ""

    def test_comment_prefix(self):
        assert comment_prefix("python") == "#"
        assert comment_prefix("sql") == "--"
        assert comment_prefix("typescript") == "//"


class TestCleanCompletion:
    def test_strips_end_tokens_and_whitespace(self):
        assert clean_completion("return a + b<|endoftext|>", "") == "return a + b"
        assert clean_completion("return 1  \n\n", "") == "return 1"

    def test_strips_fim_tokens(self):
        assert clean_completion("<|fim_middle|>return 1", "") == "return 1"

    def test_removes_repeated_suffix(self):
        assert clean_completion("x = 1\n    return x", "    return x") == "x = 1"

    def test_keeps_closing_bracket_matching_short_suffix(self):
        assert clean_completion("a, len(b)", ")") == "a, len(b)"

    def test_overlap_must_end_the_completion(self):
        completion = "if done:\n        return result\n    log(x)"

        assert clean_completion(completion, "return result\n") == completion

    def test_removes_partial_suffix_overlap(self):
        assert clean_completion("total = compute(items", "compute(items)\n") == "total ="


class TestHttpCompletionFetcher:
    """Requests against an OpenAI-compatible endpoint."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_successful_completion(self):
        route = respx.post(LOCAL_URL).mock(
            return_value=httpx.Response(200, json=completions_response("return a + b"))
        )
        fetcher = HttpCompletionFetcher()

        response = await fetcher.invoke(_context(Credentials("tok")))
        await fetcher.aclose()

        assert [c.text for c in response.choices] == ["return a + b"]
        assert response.is_final
        assert response.tokens_used == 5
        assert response.model == "qwen2.5-coder:1.5b"

        request = route.calls.last.request
        body = json.loads(request.content)
        assert body["prompt"] == "<|fim_prefix|>def add(a, b):\n    <|fim_suffix|><|fim_middle|>"
        assert body["max_tokens"] == 200
        assert body["temperature"] == 0.2
        assert body["stop"] == ["\n\n", "```"]
        assert "n" not in body
        assert request.headers["Authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    @respx.mock
    async def test_anonymous_request_has_no_authorization(self):
        route = respx.post(LOCAL_URL).mock(
            return_value=httpx.Response(200, json=completions_response("pass"))
        )

        async with HttpCompletionFetcher() as fetcher:
            await fetcher.invoke(_context())

        assert "Authorization" not in route.calls.last.request.headers

    @pytest.mark.asyncio
    @respx.mock
    async def test_length_finish_is_not_final(self):
        respx.post(LOCAL_URL).mock(
            return_value=httpx.Response(200, json=completions_response("ret", finish_reason="length"))
        )

        async with HttpCompletionFetcher() as fetcher:
            response = await fetcher.invoke(_context())

        assert response.is_final is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_multiple_choices_scored_by_logprobs(self):
        route = respx.post(LOCAL_URL).mock(
            return_value=httpx.Response(
                200,
                json=completions_response("a", "", "b", logprobs=[[-0.5, -1.5], [-0.1], [None]]),
            )
        )

        async with HttpCompletionFetcher(n=3) as fetcher:
            response = await fetcher.invoke(_context())

        assert [(c.text, c.score) for c in response.choices] == [("a", -1.0), ("b", 0.0)]
        body = json.loads(route.calls.last.request.content)
        assert body["n"] == 3
        assert body["logprobs"] == 1

    @pytest.mark.parametrize("status_code", [401, 403])
    @pytest.mark.asyncio
    @respx.mock
    async def test_auth_failure_invalidates_credentials(self, status_code):
        respx.post(LOCAL_URL).mock(return_value=httpx.Response(status_code, text="denied"))
        auth = MagicMock()

        async with HttpCompletionFetcher(auth_service=auth) as fetcher:
            with pytest.raises(BackendError) as exc_info:
                await fetcher.invoke(_context(Credentials("stale")))

        assert exc_info.value.status_code == status_code
        auth.invalidate.assert_called_once()

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error(self):
        respx.post(LOCAL_URL).mock(return_value=httpx.Response(500, text="overloaded"))
        auth = MagicMock()

        async with HttpCompletionFetcher(auth_service=auth) as fetcher:
            with pytest.raises(BackendError) as exc_info:
                await fetcher.invoke(_context())

        assert exc_info.value.status_code == 500
        assert "overloaded" in str(exc_info.value)
        auth.invalidate.assert_not_called()

    @pytest.mark.parametrize("body", ["not json", json.dumps({"choices": "nope"})])
    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_body(self, body):
        respx.post(LOCAL_URL).mock(return_value=httpx.Response(200, text=body))

        async with HttpCompletionFetcher() as fetcher:
            with pytest.raises(BackendError, match="Malformed"):
                await fetcher.invoke(_context())

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error(self):
        respx.post(LOCAL_URL).mock(side_effect=httpx.ConnectError("Connection refused"))

        async with HttpCompletionFetcher() as fetcher:
            with pytest.raises(BackendError) as exc_info:
                await fetcher.invoke(_context())

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout(self):
        respx.post(LOCAL_URL).mock(side_effect=httpx.ReadTimeout("slow"))

        async with HttpCompletionFetcher() as fetcher:
            with pytest.raises(BackendError, match="timed out"):
                await fetcher.invoke(_context())

    @pytest.mark.asyncio
    @respx.mock
    async def test_azure_deployment(self):
        settings = BackendSettings(
            base_url="https://myres.openai.azure.com/",
            model="gpt-35-turbo-instruct",
        )
        url = (
            "https://myres.openai.azure.com/openai/deployments/gpt-35-turbo-instruct"
            "/completions?api-version=2024-12-01-preview"
        )
        route = respx.post(url).mock(
            return_value=httpx.Response(200, json=completions_response("x"))
        )

        async with HttpCompletionFetcher(settings) as fetcher:
            assert fetcher.endpoint_url == url
            await fetcher.invoke(_context(Credentials("azure-key")))

        headers = route.calls.last.request.headers
        assert headers["api-key"] == "azure-key"
        assert "Authorization" not in headers

    @pytest.mark.asyncio
    async def test_shared_client_is_not_closed(self):
        client = MagicMock(spec=httpx.AsyncClient)
        fetcher = HttpCompletionFetcher(client=client)

        await fetcher.aclose()

        client.aclose.assert_not_called()
