"""config.resolver

Typed lookups over the cached config snapshot.

Every value falls back in the same order: config store -> environment
(:class:`EngineSettings`) -> built-in default.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ai_engine.config.settings import EngineSettings, get_settings
from ai_engine.core.model_id import ProviderId
from ai_engine.core.types import GenerationOptions

if TYPE_CHECKING:
    from ai_engine.config.store import ConfigCache, ConfigSnapshot

DEFAULT_PRIMARY = ProviderId.gemini
DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 4096
DEFAULT_CHAT_TEMPERATURE = 0.5
DEFAULT_CHAT_MAX_TOKENS = 8192

BUILTIN_MODELS: dict[str, str] = {
    ProviderId.gemini: 'gemini-2.0-flash',
    ProviderId.claude: 'claude-sonnet-4-20250514',
    ProviderId.clawdbot: 'default',
    ProviderId.openai: 'gpt-4o-mini',
}


def default_fallback(primary: str) -> str:
    """Deterministic fallback distinct from *primary*."""
    return ProviderId.claude if primary == ProviderId.gemini else ProviderId.gemini


class ConfigResolver:
    """Resolves provider credentials, models and generation defaults."""

    def __init__(self, cache: ConfigCache, settings: EngineSettings | None = None) -> None:
        self.cache = cache
        self.settings = settings or get_settings()

    async def get_config(self) -> ConfigSnapshot:
        return await self.cache.get()

    def invalidate(self) -> None:
        self.cache.invalidate()

    # ------------------------------------------------------------------
    # Provider lookups
    # ------------------------------------------------------------------

    async def is_provider_enabled(self, provider: str) -> bool:
        return (await self.get_config()).is_provider_enabled(provider)

    async def get_api_credential(self, provider: str) -> str | None:
        snapshot = await self.get_config()
        return snapshot.get(f'{provider}_api_key') or self.settings.credential_for(provider)

    async def get_model_name(self, provider: str) -> str:
        snapshot = await self.get_config()
        return (
            snapshot.get(f'{provider}_model')
            or self.settings.model_for(provider)
            or BUILTIN_MODELS.get(provider, 'default')
        )

    async def get_timeout(self) -> float:
        snapshot = await self.get_config()
        return snapshot.get_float('request_timeout_seconds', self.settings.request_timeout_seconds)

    async def get_value(self, key: str, default: str | None = None) -> str | None:
        return (await self.get_config()).get(key, default)

    # ------------------------------------------------------------------
    # Generation defaults
    # ------------------------------------------------------------------

    async def get_temperature(self) -> float:
        return (await self.get_config()).get_float('temperature', DEFAULT_TEMPERATURE)

    async def get_max_tokens(self) -> int:
        return (await self.get_config()).get_int('max_tokens_per_request', DEFAULT_MAX_TOKENS)

    async def default_options(self) -> GenerationOptions:
        return GenerationOptions(temperature=await self.get_temperature(), max_tokens=await self.get_max_tokens())

    async def chat_options(self) -> GenerationOptions:
        """Options used by interactive chat, which runs warmer and longer."""
        snapshot = await self.get_config()
        return GenerationOptions(
            temperature=snapshot.get_float('chat_temperature', DEFAULT_CHAT_TEMPERATURE),
            max_tokens=snapshot.get_int('chat_max_tokens', DEFAULT_CHAT_MAX_TOKENS),
        )
