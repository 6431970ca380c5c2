"""core.types

Shared DTOs used throughout *ai_engine*.

These models live in the **core** layer so that *adapters*, *orchestration*
and the *context* helpers can depend on them without causing circular imports.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Chat roles
# ---------------------------------------------------------------------------


class Role(StrEnum):
    system = 'system'
    user = 'user'
    assistant = 'assistant'


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class Message(BaseModel):
    """Single chat message. Position in the list is the turn order."""

    role: Role
    content: str

    # Immutable value-object
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Generation options (provider-agnostic)
#   Absent fields fall back to the cached config, then to built-in defaults.
# ---------------------------------------------------------------------------


class GenerationOptions(BaseModel):
    """Per-call overrides. Every field is optional."""

    provider: str | None = Field(None, description='Provider slug overriding the configured primary')
    temperature: float | None = Field(None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(None, ge=1, description='Maximum tokens in completion')
    model: str | None = Field(None, description="Overrides the provider's configured default model")

    model_config = ConfigDict(frozen=True)

    def merged(self, fallback: GenerationOptions) -> GenerationOptions:
        """Return a copy where fields set on *self* win over *fallback*."""
        return fallback.model_copy(update=self.model_dump(exclude_none=True))


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class GenerationResult(BaseModel):
    """Outcome of one successful generation call."""

    text: str
    tokens_used: int = Field(0, ge=0)
    model: str = Field(..., description='provider-qualified model, e.g. "gemini/gemini-2.0-flash"')
    provider: str
    failed_over: bool = False

    model_config = ConfigDict(frozen=True)

    def with_failover(self, failed_over: bool) -> GenerationResult:
        return self.model_copy(update={'failed_over': failed_over})


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


@runtime_checkable
class StreamSink(Protocol):
    """Append-only target for incremental text.

    End of stream is implied by the streaming call returning or raising; no
    explicit close is ever issued.
    """

    def write(self, chunk: str) -> None: ...


class ListSink:
    """Sink that keeps every chunk in memory, in arrival order."""

    def __init__(self) -> None:
        self.chunks: list[str] = []

    def write(self, chunk: str) -> None:
        self.chunks.append(chunk)

    @property
    def text(self) -> str:
        return ''.join(self.chunks)

    def flush_to(self, sink: StreamSink) -> None:
        for chunk in self.chunks:
            sink.write(chunk)

    def __len__(self) -> int:
        return len(self.chunks)
