"""core.tokens

Rough token estimate used when a provider reports no usage metadata.
"""

from __future__ import annotations

import math

#: Approximate characters per token for the fallback estimate.
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Return ``ceil(len(text) / chars_per_token)``; empty text is 0 tokens."""
    if chars_per_token < 1:
        raise ValueError('chars_per_token must be >= 1')
    return math.ceil(len(text) / chars_per_token)
