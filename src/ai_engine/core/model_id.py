"""core.model_id

Provider identifiers and provider-qualified model names of the form

    "<provider>/<model_name>"

This module only depends on Pydantic so that it can live in the **core**
domain layer and be imported by any other layer without circular imports.
"""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from ai_engine.core.exceptions import ProviderNotFoundError

# ---------------------------------------------------------------------------
# Provider identifiers
# ---------------------------------------------------------------------------


class ProviderId(StrEnum):
    """Closed set of upstream providers, one adapter each."""

    gemini = 'gemini'
    claude = 'claude'
    clawdbot = 'clawdbot'
    openai = 'openai'

    @classmethod
    def parse(cls, raw: str | ProviderId) -> ProviderId:
        if isinstance(raw, ProviderId):
            return raw
        try:
            return cls(raw.strip().lower())
        except ValueError as exc:
            raise ProviderNotFoundError(f'Unsupported provider: {raw}') from exc


#: Order in which "remaining" providers are appended to a failover chain.
KNOWN_PROVIDERS: tuple[ProviderId, ...] = (
    ProviderId.gemini,
    ProviderId.claude,
    ProviderId.clawdbot,
    ProviderId.openai,
)

# ---------------------------------------------------------------------------
# Qualified model names
# ---------------------------------------------------------------------------

_QUALIFIED_REGEX: re.Pattern[str] = re.compile(r'^(?P<provider>[a-z0-9_-]+)/(?P<model>\S+)$', re.IGNORECASE)


class QualifiedModel(BaseModel):
    """Value-object for a model name tagged with the provider that served it.

    * `provider` … provider slug (e.g. ``claude``)
    * `model` … concrete model name (e.g. ``claude-sonnet-4-20250514``)
    """

    provider: str = Field(..., pattern=r'^[a-z0-9_-]+$', description='provider slug')
    model: str = Field(..., min_length=1, description='model name')

    model_config = {
        'frozen': True,
        'str_strip_whitespace': True,
    }

    @field_validator('provider', mode='before')
    @classmethod
    def _provider_to_lower(cls, v: str) -> str:
        return str(v).lower()

    @classmethod
    def parse(cls, raw: str) -> QualifiedModel:
        """Parse a ``provider/model`` string.

        >>> QualifiedModel.parse("gemini/gemini-2.0-flash")
        QualifiedModel(provider='gemini', model='gemini-2.0-flash')
        """
        if (m := _QUALIFIED_REGEX.match(raw.strip())) is None:
            raise ValueError(f"Invalid model format. Expected '<provider>/<model>', got: {raw}")
        return cls(provider=m.group('provider'), model=m.group('model'))

    def __str__(self) -> str:
        return f'{self.provider}/{self.model}'


def qualify(provider: str, model: str) -> str:
    """Render ``provider/model``."""
    return str(QualifiedModel(provider=provider, model=model))
