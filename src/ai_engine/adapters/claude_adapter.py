"""adapters.claude_adapter

Concrete adapter that bridges :class:`ai_engine.core.abc.ProviderAdapter`
with the **Anthropic Messages** HTTP API.

System handling: system messages are joined (blank-line separated) into the
top-level ``system`` field; the rest are sent as-is.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ai_engine.core.abc import ProviderAdapter, ProviderRequest, json_list, json_object
from ai_engine.core.exceptions import UpstreamError
from ai_engine.core.model_id import ProviderId
from ai_engine.registry.provider_registry import provider_registry

if TYPE_CHECKING:
    from ai_engine.core.types import GenerationResult, StreamSink

CLAUDE_MESSAGES_URL = 'https://api.anthropic.com/v1/messages'
CLAUDE_API_VERSION = '2023-06-01'


def _usage_tokens(usage: Any, *keys: str) -> int:
    usage = json_object(usage or {}, 'Claude usage')
    return sum(int(usage.get(key) or 0) for key in keys)


class ClaudeAdapter(ProviderAdapter):
    """Adapter for Anthropic's Claude models."""

    provider = ProviderId.claude

    url: str = CLAUDE_MESSAGES_URL

    def _payload(self, request: ProviderRequest, *, stream: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            'model': request.model,
            'max_tokens': request.max_tokens,
            'temperature': request.temperature,
            'messages': [{'role': m.role.value, 'content': m.content} for m in request.conversation()],
        }
        if system := request.system_text():
            payload['system'] = system
        if stream:
            payload['stream'] = True
        return payload

    def _headers(self, request: ProviderRequest) -> dict[str, str]:
        return {
            'Content-Type': 'application/json',
            'x-api-key': request.credential or '',
            'anthropic-version': CLAUDE_API_VERSION,
        }

    # ------------------------------------------------------------------
    # Unary path
    # ------------------------------------------------------------------

    async def _invoke(self, request: ProviderRequest) -> GenerationResult:
        body = await self._post_json(self.url, self._payload(request), self._headers(request), request.timeout)
        content = json_list(body.get('content'), 'Claude content')
        blocks = [json_object(block, 'Claude content block') for block in content]
        text = ''.join(block['text'] for block in blocks if block.get('type') == 'text')
        tokens = _usage_tokens(body.get('usage'), 'input_tokens', 'output_tokens')
        return self._result(request, text, tokens)

    # ------------------------------------------------------------------
    # Streaming path
    # ------------------------------------------------------------------

    async def _invoke_stream(self, request: ProviderRequest, sink: StreamSink) -> GenerationResult:
        chunks: list[str] = []
        tokens = 0
        async for event in self._stream_sse(
            self.url, self._payload(request, stream=True), self._headers(request), request.timeout
        ):
            match event.get('type'):
                case 'content_block_delta':
                    if text := json_object(event.get('delta') or {}, 'Claude delta').get('text'):
                        chunks.append(text)
                        sink.write(text)
                case 'message_start':
                    message = json_object(event.get('message') or {}, 'Claude message')
                    tokens += _usage_tokens(message.get('usage'), 'input_tokens')
                case 'message_delta':
                    tokens += _usage_tokens(event.get('usage'), 'output_tokens')
                case 'error':
                    error = json_object(event.get('error') or {}, 'Claude error')
                    raise UpstreamError(error.get('type', 'stream error'), error.get('message'))
        return self._result(request, ''.join(chunks), tokens)


# ---------------------------------------------------------------------------
# Automatic registration
# ---------------------------------------------------------------------------

provider_registry.register(ProviderId.claude, ClaudeAdapter)
