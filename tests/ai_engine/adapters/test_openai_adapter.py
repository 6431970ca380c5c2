from __future__ import annotations

import json

import httpx
import pytest

from ai_engine.adapters.openai_adapter import OpenAIAdapter
from ai_engine.core.exceptions import GenerationTimeoutError, MissingCredentialError, UpstreamError
from ai_engine.core.types import GenerationOptions, ListSink, Message, Role

MESSAGES = [
    Message(role=Role.system, content='Be brief.'),
    Message(role=Role.user, content='hello'),
]


def _adapter(make_resolver, seen: list[httpx.Request], response, values=None) -> OpenAIAdapter:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if isinstance(response, Exception):
            raise response
        return response

    resolver = make_resolver({'openai_api_key': 'sk-test', **(values or {})})
    return OpenAIAdapter(resolver, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def _chunk(content: str | None = None, usage: dict | None = None) -> dict:
    choices = [] if content is None else [{'index': 0, 'delta': {'content': content}, 'finish_reason': None}]
    return {
        'id': 'chatcmpl-1',
        'object': 'chat.completion.chunk',
        'created': 1,
        'model': 'gpt-4o-mini',
        'choices': choices,
        'usage': usage,
    }


@pytest.mark.asyncio
async def test_generate(make_resolver) -> None:
    seen: list[httpx.Request] = []
    body = {
        'id': 'chatcmpl-1',
        'object': 'chat.completion',
        'created': 1,
        'model': 'gpt-4o-mini',
        'choices': [{'index': 0, 'message': {'role': 'assistant', 'content': 'Hello'}, 'finish_reason': 'stop'}],
        'usage': {'prompt_tokens': 5, 'completion_tokens': 1, 'total_tokens': 6},
    }
    adapter = _adapter(make_resolver, seen, httpx.Response(200, json=body))

    result = await adapter.generate(MESSAGES, GenerationOptions(max_tokens=64))

    payload = json.loads(seen[0].content)
    assert seen[0].headers['authorization'] == 'Bearer sk-test'
    assert payload['messages'] == [
        {'role': 'system', 'content': 'Be brief.'},
        {'role': 'user', 'content': 'hello'},
    ]
    assert payload['max_tokens'] == 64  # noqa: PLR2004
    assert result.text == 'Hello'
    assert result.tokens_used == 6  # noqa: PLR2004
    assert result.model == 'openai/gpt-4o-mini'


@pytest.mark.asyncio
async def test_missing_credential(make_resolver) -> None:
    seen: list[httpx.Request] = []
    adapter = _adapter(make_resolver, seen, httpx.Response(200, json={}), {'openai_api_key': ''})
    with pytest.raises(MissingCredentialError):
        await adapter.generate(MESSAGES)
    assert seen == []


@pytest.mark.asyncio
async def test_status_error_maps_to_upstream(make_resolver) -> None:
    seen: list[httpx.Request] = []
    response = httpx.Response(500, json={'error': {'message': 'server melted', 'type': 'server_error'}})
    adapter = _adapter(make_resolver, seen, response)

    with pytest.raises(UpstreamError) as info:
        await adapter.generate(MESSAGES)

    assert info.value.status == 500  # noqa: PLR2004
    assert 'server melted' in info.value.body
    assert len(seen) == 1  # no SDK retries


@pytest.mark.asyncio
async def test_timeout(make_resolver) -> None:
    adapter = _adapter(make_resolver, [], httpx.ReadTimeout('slow'))
    with pytest.raises(GenerationTimeoutError):
        await adapter.generate(MESSAGES)


@pytest.mark.asyncio
async def test_streaming(make_resolver) -> None:
    seen: list[httpx.Request] = []
    usage = {'prompt_tokens': 4, 'completion_tokens': 2, 'total_tokens': 6}
    events = [_chunk('Hel'), _chunk('lo'), _chunk(None, usage)]
    stream = ''.join(f'data: {json.dumps(e)}\n\n' for e in events) + 'data: [DONE]\n\n'
    response = httpx.Response(200, content=stream.encode(), headers={'content-type': 'text/event-stream'})
    adapter = _adapter(make_resolver, seen, response)
    sink = ListSink()

    result = await adapter.generate_streaming(MESSAGES, None, sink)

    payload = json.loads(seen[0].content)
    assert payload['stream'] is True
    assert payload['stream_options'] == {'include_usage': True}
    assert sink.chunks == ['Hel', 'lo']
    assert result.text == 'Hello'
    assert result.tokens_used == 6  # noqa: PLR2004
