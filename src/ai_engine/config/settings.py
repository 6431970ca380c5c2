"""config.settings

Deployment defaults read from the process environment (and a local ``.env``).
These sit *below* the mutable config store: a value in the store always wins.
"""

from __future__ import annotations

import tempfile
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

DEFAULT_TIMEOUT_SECONDS = 120.0


class EngineSettings(BaseSettings):
    """Environment fallback for credentials, models and process options."""

    gemini_api_key: str | None = Field(None, validation_alias='GEMINI_API_KEY')
    anthropic_api_key: str | None = Field(None, validation_alias='ANTHROPIC_API_KEY')
    openai_api_key: str | None = Field(None, validation_alias='OPENAI_API_KEY')

    gemini_model: str | None = Field(None, validation_alias='GEMINI_MODEL')
    claude_model: str | None = Field(None, validation_alias='CLAUDE_MODEL')
    openai_model: str | None = Field(None, validation_alias='OPENAI_MODEL')
    clawdbot_model: str | None = Field(None, validation_alias='CLAWDBOT_MODEL')

    clawdbot_command: str = Field('clawdbot', validation_alias='CLAWDBOT_COMMAND')
    clawdbot_tmp_dir: str = Field(default_factory=tempfile.gettempdir, validation_alias='CLAWDBOT_TMP_DIR')

    request_timeout_seconds: float = Field(DEFAULT_TIMEOUT_SECONDS, gt=0, validation_alias='AI_REQUEST_TIMEOUT')

    model_config = SettingsConfigDict(extra='ignore', populate_by_name=True)

    def credential_for(self, provider: str) -> str | None:
        # Claude keys follow the vendor's env naming
        key = 'anthropic_api_key' if provider == 'claude' else f'{provider}_api_key'
        return getattr(self, key, None) or None

    def model_for(self, provider: str) -> str | None:
        return getattr(self, f'{provider}_model', None) or None


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    return EngineSettings()
