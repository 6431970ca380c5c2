"""adapters.openai_adapter

Concrete adapter that bridges :class:`ai_engine.core.abc.ProviderAdapter`
with the **OpenAI Chat Completions** API.

This implementation targets *openai==1.x* (the unified async client).
Canonical messages map 1:1 onto chat messages, system messages included.
SDK-level retries are disabled; retrying is the failover engine's job.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import openai

from ai_engine.core.abc import ProviderAdapter, ProviderRequest
from ai_engine.core.exceptions import GenerationTimeoutError, UpstreamError
from ai_engine.core.model_id import ProviderId
from ai_engine.registry.provider_registry import provider_registry

if TYPE_CHECKING:
    from ai_engine.core.types import GenerationResult, StreamSink

# ---------------------------------------------------------------------------
# Adapter implementation
# ---------------------------------------------------------------------------


class OpenAIAdapter(ProviderAdapter):
    """Adapter for OpenAI ChatCompletion API."""

    provider = ProviderId.openai

    base_url: str | None = None

    @asynccontextmanager
    async def _sdk(self, request: ProviderRequest) -> AsyncIterator[openai.AsyncOpenAI]:
        client = openai.AsyncOpenAI(
            api_key=request.credential,
            base_url=self.base_url,
            timeout=request.timeout,
            max_retries=0,
            http_client=self._http_client,
        )
        try:
            yield client
        except openai.APITimeoutError as exc:
            raise GenerationTimeoutError(f'Request timeout ({request.timeout:g}s)') from exc
        except openai.APIStatusError as exc:
            raise UpstreamError(exc.status_code, exc.response.text) from exc
        except openai.OpenAIError as exc:  # generic fallback
            raise UpstreamError(f'Upstream provider error: {exc}') from exc
        finally:
            # a shared http client belongs to the caller
            if self._http_client is None:
                await client.close()

    def _params(self, request: ProviderRequest) -> dict[str, Any]:
        return {
            'model': request.model,
            'messages': [{'role': m.role.value, 'content': m.content} for m in request.messages],
            'temperature': request.temperature,
            'max_tokens': request.max_tokens,
        }

    # ------------------------------------------------------------------
    # Unary path
    # ------------------------------------------------------------------

    async def _invoke(self, request: ProviderRequest) -> GenerationResult:
        async with self._sdk(request) as client:
            response = await client.chat.completions.create(**self._params(request))

        text = response.choices[0].message.content or ''
        tokens = response.usage.total_tokens if response.usage else 0
        return self._result(request, text, tokens)

    # ------------------------------------------------------------------
    # Streaming path
    # ------------------------------------------------------------------

    async def _invoke_stream(self, request: ProviderRequest, sink: StreamSink) -> GenerationResult:
        chunks: list[str] = []
        tokens = 0
        async with self._sdk(request) as client:
            stream = await client.chat.completions.create(
                **self._params(request),
                stream=True,
                stream_options={'include_usage': True},
            )
            async for chunk in stream:
                if chunk.usage:
                    tokens = chunk.usage.total_tokens
                if not chunk.choices:
                    continue
                if text := chunk.choices[0].delta.content:
                    chunks.append(text)
                    sink.write(text)
        return self._result(request, ''.join(chunks), tokens)


# ---------------------------------------------------------------------------
# Automatic registration
# ---------------------------------------------------------------------------

provider_registry.register(ProviderId.openai, OpenAIAdapter)
