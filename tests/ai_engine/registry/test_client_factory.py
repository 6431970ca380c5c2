from __future__ import annotations

import pytest

from ai_engine.adapters.claude_adapter import ClaudeAdapter
from ai_engine.adapters.clawdbot_adapter import ClawdbotAdapter
from ai_engine.adapters.gemini_adapter import GeminiAdapter
from ai_engine.adapters.openai_adapter import OpenAIAdapter
from ai_engine.core.exceptions import ProviderNotFoundError
from ai_engine.core.model_id import KNOWN_PROVIDERS, ProviderId
from ai_engine.registry.client_factory import AdapterFactory


def test_initialize_adapter_from_slug(make_resolver) -> None:
    adapter = AdapterFactory.initialize_adapter('Claude', make_resolver())
    assert isinstance(adapter, ClaudeAdapter)


def test_initialize_adapter_forwards_kwargs(make_resolver, tmp_path) -> None:
    adapter = AdapterFactory.initialize_adapter(ProviderId.clawdbot, make_resolver(), tmp_dir=tmp_path / 'prompts')
    assert isinstance(adapter, ClawdbotAdapter)
    assert adapter._tmp_dir == tmp_path / 'prompts'  # noqa: SLF001


def test_initialize_adapter_unknown(make_resolver) -> None:
    with pytest.raises(ProviderNotFoundError):
        AdapterFactory.initialize_adapter('mistral', make_resolver())


def test_initialize_all_builds_every_builtin(make_resolver, tmp_path) -> None:
    adapters = AdapterFactory.initialize_all(
        make_resolver(),
        overrides={ProviderId.clawdbot: {'tmp_dir': tmp_path}},
    )
    assert list(adapters) == list(KNOWN_PROVIDERS)
    assert isinstance(adapters[ProviderId.gemini], GeminiAdapter)
    assert isinstance(adapters[ProviderId.openai], OpenAIAdapter)
    assert adapters[ProviderId.clawdbot]._tmp_dir == tmp_path  # noqa: SLF001
