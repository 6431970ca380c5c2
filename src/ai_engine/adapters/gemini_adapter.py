"""adapters.gemini_adapter

Concrete adapter that bridges :class:`ai_engine.core.abc.ProviderAdapter`
with the **Gemini generateContent** REST API (``v1beta``).

System handling: every system message is joined (blank-line separated) into
the single ``systemInstruction`` field; ``assistant`` turns are sent with the
``model`` role.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ai_engine.core.abc import ProviderAdapter, ProviderRequest, json_list, json_object
from ai_engine.core.exceptions import ResponseParseError
from ai_engine.core.model_id import ProviderId
from ai_engine.core.types import Role
from ai_engine.registry.provider_registry import provider_registry

if TYPE_CHECKING:
    from ai_engine.core.types import GenerationResult, StreamSink

GEMINI_BASE_URL = 'https://generativelanguage.googleapis.com/v1beta'


def _candidate_text(body: dict[str, Any]) -> str:
    candidates = json_list(body.get('candidates') or [], 'Gemini candidates')
    if not candidates:
        return ''
    candidate = json_object(candidates[0], 'Gemini candidate')
    content = json_object(candidate.get('content') or {}, 'Gemini candidate content')
    parts = json_list(content.get('parts') or [], 'Gemini content parts')
    return ''.join(json_object(part, 'Gemini part').get('text') or '' for part in parts)


def _usage_tokens(body: dict[str, Any]) -> int:
    usage = json_object(body.get('usageMetadata') or {}, 'Gemini usageMetadata')
    return int(usage.get('promptTokenCount') or 0) + int(usage.get('candidatesTokenCount') or 0)


class GeminiAdapter(ProviderAdapter):
    """Adapter for Google's Gemini API."""

    provider = ProviderId.gemini

    base_url: str = GEMINI_BASE_URL

    def _payload(self, request: ProviderRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            'contents': [
                {
                    'role': 'model' if m.role == Role.assistant else 'user',
                    'parts': [{'text': m.content}],
                }
                for m in request.conversation()
            ],
            'generationConfig': {
                'temperature': request.temperature,
                'maxOutputTokens': request.max_tokens,
            },
        }
        if system := request.system_text():
            payload['systemInstruction'] = {'parts': [{'text': system}]}
        return payload

    def _headers(self, request: ProviderRequest) -> dict[str, str]:
        return {'Content-Type': 'application/json', 'x-goog-api-key': request.credential or ''}

    # ------------------------------------------------------------------
    # Unary path
    # ------------------------------------------------------------------

    async def _invoke(self, request: ProviderRequest) -> GenerationResult:
        body = await self._post_json(
            f'{self.base_url}/models/{request.model}:generateContent',
            self._payload(request),
            self._headers(request),
            request.timeout,
        )
        if 'candidates' not in body:
            raise ResponseParseError('Gemini response has no candidates')
        return self._result(request, _candidate_text(body), _usage_tokens(body))

    # ------------------------------------------------------------------
    # Streaming path
    # ------------------------------------------------------------------

    async def _invoke_stream(self, request: ProviderRequest, sink: StreamSink) -> GenerationResult:
        chunks: list[str] = []
        tokens = 0
        async for event in self._stream_sse(
            f'{self.base_url}/models/{request.model}:streamGenerateContent?alt=sse',
            self._payload(request),
            self._headers(request),
            request.timeout,
        ):
            if text := _candidate_text(event):
                chunks.append(text)
                sink.write(text)
            if event.get('usageMetadata'):
                # usage is cumulative, the last event carries the total
                tokens = _usage_tokens(event)
        return self._result(request, ''.join(chunks), tokens)


# ---------------------------------------------------------------------------
# Automatic registration
# ---------------------------------------------------------------------------

provider_registry.register(ProviderId.gemini, GeminiAdapter)
