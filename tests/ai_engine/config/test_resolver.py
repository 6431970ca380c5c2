from __future__ import annotations

import pytest

from ai_engine.config.resolver import (
    BUILTIN_MODELS,
    DEFAULT_CHAT_MAX_TOKENS,
    DEFAULT_CHAT_TEMPERATURE,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    default_fallback,
)


@pytest.mark.asyncio
async def test_credential_prefers_config_store(make_resolver) -> None:
    resolver = make_resolver({'gemini_api_key': 'from-db'}, gemini_api_key='from-env')
    assert await resolver.get_api_credential('gemini') == 'from-db'


@pytest.mark.asyncio
async def test_credential_falls_back_to_environment(make_resolver) -> None:
    resolver = make_resolver({}, anthropic_api_key='env-key')
    assert await resolver.get_api_credential('claude') == 'env-key'
    assert await resolver.get_api_credential('openai') is None


@pytest.mark.asyncio
async def test_model_name_fallback_order(make_resolver) -> None:
    resolver = make_resolver({'claude_model': 'claude-db'}, gemini_model='gemini-env')
    assert await resolver.get_model_name('claude') == 'claude-db'
    assert await resolver.get_model_name('gemini') == 'gemini-env'
    assert await resolver.get_model_name('openai') == BUILTIN_MODELS['openai']


@pytest.mark.asyncio
async def test_generation_defaults(make_resolver) -> None:
    resolver = make_resolver({})
    assert await resolver.get_temperature() == DEFAULT_TEMPERATURE
    assert await resolver.get_max_tokens() == DEFAULT_MAX_TOKENS
    assert await resolver.get_timeout() == 120.0  # noqa: PLR2004

    tuned = make_resolver({'temperature': '0.7', 'max_tokens_per_request': '1024', 'request_timeout_seconds': '5'})
    options = await tuned.default_options()
    assert options.temperature == 0.7  # noqa: PLR2004
    assert options.max_tokens == 1024  # noqa: PLR2004
    assert await tuned.get_timeout() == 5.0  # noqa: PLR2004


@pytest.mark.asyncio
async def test_chat_options(make_resolver) -> None:
    options = await make_resolver({}).chat_options()
    assert options.temperature == DEFAULT_CHAT_TEMPERATURE
    assert options.max_tokens == DEFAULT_CHAT_MAX_TOKENS

    options = await make_resolver({'chat_temperature': '0.2', 'chat_max_tokens': '512'}).chat_options()
    assert options.temperature == 0.2  # noqa: PLR2004
    assert options.max_tokens == 512  # noqa: PLR2004


@pytest.mark.asyncio
async def test_enabled_flag_and_invalidate(make_resolver) -> None:
    resolver = make_resolver({'claude_enabled': 'false'})
    assert await resolver.is_provider_enabled('claude') is False
    assert await resolver.is_provider_enabled('gemini') is True

    await resolver.cache.store.update('claude_enabled', 'true')
    assert await resolver.is_provider_enabled('claude') is False  # still cached
    resolver.invalidate()
    assert await resolver.is_provider_enabled('claude') is True


def test_default_fallback_is_distinct() -> None:
    assert default_fallback('gemini') == 'claude'
    assert default_fallback('claude') == 'gemini'
    assert default_fallback('clawdbot') == 'gemini'
