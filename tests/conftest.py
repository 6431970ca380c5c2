from __future__ import annotations

from collections.abc import Callable

import pytest

from ai_engine.config.resolver import ConfigResolver
from ai_engine.config.settings import EngineSettings
from ai_engine.config.store import ConfigCache, InMemoryConfigStore


@pytest.fixture
def settings(tmp_path) -> EngineSettings:
    """Settings isolated from the developer's environment."""
    return EngineSettings(
        GEMINI_API_KEY=None,
        ANTHROPIC_API_KEY=None,
        OPENAI_API_KEY=None,
        GEMINI_MODEL=None,
        CLAUDE_MODEL=None,
        OPENAI_MODEL=None,
        CLAWDBOT_MODEL=None,
        CLAWDBOT_COMMAND='clawdbot',
        CLAWDBOT_TMP_DIR=str(tmp_path),
        AI_REQUEST_TIMEOUT=120.0,
    )


@pytest.fixture
def make_resolver(settings: EngineSettings) -> Callable[..., ConfigResolver]:
    def _make(values: dict[str, str] | None = None, **overrides: object) -> ConfigResolver:
        env = settings.model_copy(update=overrides) if overrides else settings
        return ConfigResolver(ConfigCache(InMemoryConfigStore(values)), env)

    return _make
