"""registry.client_factory

Factory responsible for converting a provider slug (or ProviderId) into a
fully initialized adapter instance (subclass of ProviderAdapter).
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

from ai_engine.core.model_id import ProviderId
from ai_engine.registry.provider_registry import provider_registry

if TYPE_CHECKING:
    from collections.abc import Mapping

    import httpx

    from ai_engine.config.resolver import ConfigResolver
    from ai_engine.core.abc import ProviderAdapter

#: Adapter modules register themselves with the registry when imported.
BUILTIN_ADAPTER_MODULES: tuple[str, ...] = (
    'ai_engine.adapters.gemini_adapter',
    'ai_engine.adapters.claude_adapter',
    'ai_engine.adapters.clawdbot_adapter',
    'ai_engine.adapters.openai_adapter',
)


def load_builtin_adapters() -> None:
    for module in BUILTIN_ADAPTER_MODULES:
        importlib.import_module(module)


class AdapterFactory:
    """Factory for creating provider-specific adapters.

    This class is stateless; all information resides in provider_registry.
    """

    @staticmethod
    def initialize_adapter(
        provider: str | ProviderId,
        resolver: ConfigResolver,
        **adapter_kwargs: Any,
    ) -> ProviderAdapter:
        """Return a concrete adapter for provider.

        Parameters
        ----------
        provider
            Either a raw slug ("claude") or a ProviderId.
        resolver
            Config resolver the adapter reads credentials and defaults from.
        **adapter_kwargs
            Forwarded to the adapter's constructor (shared ``http_client``,
            ``tmp_dir`` for clawdbot, ...).

        """
        load_builtin_adapters()
        adapter_class = provider_registry.get_adapter_cls(ProviderId.parse(provider))
        return adapter_class(resolver, **adapter_kwargs)

    @staticmethod
    def initialize_all(
        resolver: ConfigResolver,
        *,
        http_client: httpx.AsyncClient | None = None,
        overrides: Mapping[ProviderId, Mapping[str, Any]] | None = None,
    ) -> dict[ProviderId, ProviderAdapter]:
        """Build one adapter per registered provider.

        *overrides* carries extra constructor kwargs for individual providers.
        """
        load_builtin_adapters()
        overrides = overrides or {}
        return {
            provider: AdapterFactory.initialize_adapter(
                provider, resolver, http_client=http_client, **overrides.get(provider, {})
            )
            for provider in provider_registry.available_providers()
        }
