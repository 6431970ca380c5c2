"""orchestration.chain

Builds the ordered provider list tried by one failover call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from ai_engine.config.resolver import DEFAULT_PRIMARY, default_fallback
from ai_engine.core.exceptions import NoProvidersEnabledError, ProviderNotFoundError
from ai_engine.core.model_id import KNOWN_PROVIDERS, ProviderId

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ai_engine.config.store import ConfigSnapshot

logger = structlog.get_logger(__name__)


def build_provider_chain(
    snapshot: ConfigSnapshot,
    override: str | None = None,
    known: Sequence[ProviderId] = KNOWN_PROVIDERS,
) -> list[ProviderId]:
    """Return ``[primary, fallback, *known]`` deduplicated and filtered to enabled providers.

    Slugs outside *known* are dropped with a warning. The result depends only
    on the arguments.

    Raises
    ------
    NoProvidersEnabledError
        If nothing is left after filtering.

    """
    primary = override or snapshot.get('primary_provider') or DEFAULT_PRIMARY
    fallback = snapshot.get('fallback_provider') or default_fallback(primary)

    chain: list[ProviderId] = []
    for raw in (primary, fallback, *known):
        try:
            provider = ProviderId.parse(raw)
        except ProviderNotFoundError:
            logger.warning('provider_unknown', provider=raw)
            continue
        if provider not in known:
            logger.warning('provider_unavailable', provider=provider.value)
            continue
        if provider in chain or not snapshot.is_provider_enabled(provider.value):
            continue
        chain.append(provider)

    if not chain:
        raise NoProvidersEnabledError('No AI providers are enabled')
    return chain
