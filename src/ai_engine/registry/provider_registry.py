"""registry.provider_registry

Global registry that maps provider identifiers (e.g. ``ProviderId.claude``)
to their concrete adapter classes (subclasses of ProviderAdapter).

The registry is a pure domain helper with no SDK imports, so adapter modules
can import it without circular-dependency trouble.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from ai_engine.core.abc import ProviderAdapter
from ai_engine.core.exceptions import ProviderNotFoundError
from ai_engine.core.model_id import KNOWN_PROVIDERS, ProviderId

if TYPE_CHECKING:
    from collections.abc import MutableMapping


class _ThreadSafeSingleton(type):
    """Metaclass ensuring a single registry instance across threads."""

    _instance: ProviderRegistry | None = None
    _lock = threading.Lock()

    def __call__(cls, *args: object, **kwargs: object) -> ProviderRegistry:
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__call__(*args, **kwargs)
        return cls._instance


class ProviderRegistry(metaclass=_ThreadSafeSingleton):
    """Centralised look-up and registration for provider -> adapter mappings.

    Usage (at the bottom of each adapter module):

    ```python
    provider_registry.register(ProviderId.gemini, GeminiAdapter)
    ```
    """

    _registry: MutableMapping[ProviderId, type[ProviderAdapter]]

    def __init__(self) -> None:  # pragma: no cover - called once via singleton
        self._registry = {}

    def register(self, provider: str | ProviderId, adapter_cls: type[ProviderAdapter]) -> None:
        """Register adapter_cls under provider.

        Raises
        ------
        ProviderNotFoundError
            If provider is not a known ProviderId.
        TypeError
            If adapter_cls does not subclass ProviderAdapter.

        """
        key = ProviderId.parse(provider)
        if not isinstance(adapter_cls, type) or not issubclass(adapter_cls, ProviderAdapter):
            raise TypeError('adapter_cls must subclass ProviderAdapter')
        self._registry[key] = adapter_cls

    def get_adapter_cls(self, provider: str | ProviderId) -> type[ProviderAdapter]:
        """Return the adapter class registered for provider.

        Raises
        ------
        ProviderNotFoundError
            If provider is unknown or has no adapter registered.

        """
        key = ProviderId.parse(provider)
        try:
            return self._registry[key]
        except KeyError as exc:
            raise ProviderNotFoundError(f'No adapter registered for provider: {provider}') from exc

    def available_providers(self) -> list[ProviderId]:
        """Registered providers in failover order."""
        return [p for p in KNOWN_PROVIDERS if p in self._registry]


# Re-export a module-level instance for ergonomic usage
provider_registry: ProviderRegistry = ProviderRegistry()
