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

"""HTTP fetcher for OpenAI-compatible completions endpoints.

Sends a FIM prompt to ``{base_url}/completions`` (or the deployment URL of an
Azure OpenAI resource) and maps the returned choices to a BackendResponse.
Works with Ollama, vLLM, llama.cpp server, DashScope and Azure OpenAI.
"""

import logging
import time
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from victor_inline.completion.fetchers.fim import (
    build_fim_prompt,
    clean_completion,
    render_fragments,
    template_for_model,
)
from victor_inline.completion.protocol import (
    BackendChoice,
    BackendError,
    BackendResponse,
    RequestContext,
)
from victor_inline.completion.services import AuthService
from victor_inline.config import BackendSettings

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = (401, 403)


class _Logprobs(BaseModel):
    token_logprobs: list[Optional[float]] = Field(default_factory=list)


class _Choice(BaseModel):
    text: str = ""
    index: int = 0
    finish_reason: Optional[str] = None
    logprobs: Optional[_Logprobs] = None


class _Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0


class _CompletionsPayload(BaseModel):
    """Subset of the OpenAI completions response we rely on."""

    model: Optional[str] = None
    choices: list[_Choice] = Field(default_factory=list)
    usage: Optional[_Usage] = None


def is_azure_endpoint(url: str) -> bool:
    return ".openai.azure.com" in url or ".cognitiveservices.azure.com" in url


def _choice_score(choice: _Choice) -> float:
    """Mean token log-probability, or 0.0 when the server sends none."""
    if choice.logprobs is None:
        return 0.0
    values = [v for v in choice.logprobs.token_logprobs if v is not None]
    if not values:
        return 0.0
    return sum(values) / len(values)


class HttpCompletionFetcher:
    """Fetcher backed by an OpenAI-compatible ``/completions`` endpoint."""

    def __init__(
        self,
        settings: Optional[BackendSettings] = None,
        auth_service: Optional[AuthService] = None,
        client: Optional[httpx.AsyncClient] = None,
        n: int = 1,
    ):
        """Initialize the fetcher.

        Args:
            settings: Backend settings (defaults when None)
            auth_service: Notified when the backend rejects credentials
            client: Shared HTTP client; one is created lazily when None
            n: Number of choices to request
        """
        self.settings = settings or BackendSettings()
        self._auth_service = auth_service
        self._client = client
        self._owns_client = client is None
        self._n = max(1, n)

    @property
    def endpoint_url(self) -> str:
        base = self.settings.base_url.rstrip("/")
        if is_azure_endpoint(base):
            return (
                f"{base}/openai/deployments/{self.settings.model}/completions"
                f"?api-version={self.settings.azure_api_version}"
            )
        return f"{base}/completions"

    @property
    def fim_template(self) -> str:
        return self.settings.fim_template or template_for_model(self.settings.model)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.timeout_seconds)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpCompletionFetcher":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def build_payload(self, context: RequestContext) -> dict[str, Any]:
        """Build the JSON request body for a context."""
        prompt = build_fim_prompt(
            prefix=context.prefix,
            suffix=context.suffix,
            template=self.fim_template,
            preamble=render_fragments(context.fragments, context.language),
        )
        payload: dict[str, Any] = {
            "model": self.settings.model,
            "prompt": prompt,
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
            "stop": list(self.settings.stop),
        }
        if self._n > 1:
            payload["n"] = self._n
            payload["logprobs"] = 1
        return payload

    def build_headers(self, context: RequestContext) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        credentials = context.credentials
        if credentials is not None:
            if is_azure_endpoint(self.settings.base_url):
                headers["api-key"] = credentials.token
            else:
                headers["Authorization"] = credentials.authorization_header()
        return headers

    async def invoke(self, context: RequestContext) -> BackendResponse:
        """Request completions for a context.

        Raises:
            BackendError: On transport errors, non-200 responses or
                malformed bodies
        """
        start_time = time.time()
        logger.debug(
            f"Requesting completion at {context.uri}:{context.position} "
            f"from {self.endpoint_url}"
        )

        try:
            response = await self._get_client().post(
                self.endpoint_url,
                json=self.build_payload(context),
                headers=self.build_headers(context),
            )
        except httpx.TimeoutException as e:
            raise BackendError(f"Completion request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise BackendError(f"Completion request failed: {e}") from e

        if response.status_code in AUTH_FAILURE_STATUSES and self._auth_service is not None:
            self._auth_service.invalidate()

        if response.status_code != 200:
            raise BackendError(
                f"Completion API error: {response.status_code} {response.text[:500]}",
                status_code=response.status_code,
            )

        try:
            payload = _CompletionsPayload.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise BackendError(f"Malformed completion response: {e}") from e

        choices = []
        for choice in sorted(payload.choices, key=lambda c: c.index):
            text = clean_completion(choice.text, context.suffix)
            if text:
                choices.append(BackendChoice(text=text, score=_choice_score(choice)))

        elapsed_ms = (time.time() - start_time) * 1000
        logger.debug(f"Completion received in {elapsed_ms:.0f}ms: {len(choices)} choice(s)")

        return BackendResponse(
            choices=tuple(choices),
            is_final=all(c.finish_reason != "length" for c in payload.choices),
            model=payload.model or self.settings.model,
            tokens_used=payload.usage.completion_tokens if payload.usage else 0,
        )
