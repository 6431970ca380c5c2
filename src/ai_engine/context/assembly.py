"""context.assembly

Glue between a context builder (live business data rendered as text) and the
failover engine.

Context is best-effort: a builder that raises or returns nothing never stops
the generation call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ai_engine.core.types import GenerationResult, Message, Role

if TYPE_CHECKING:
    from ai_engine.core.types import GenerationOptions, StreamSink
    from ai_engine.orchestration.engine import FailoverEngine

logger = structlog.get_logger(__name__)

UNAVAILABLE_SUMMARY = 'ctx: unavailable'


class ChatContext(BaseModel):
    """Text injected into the system prompt plus a short audit label."""

    context_text: str = ''
    context_summary: str = ''
    categories: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class ContextBuilder(Protocol):
    async def build(self, user_message: str) -> ChatContext: ...


class ContextualResult(BaseModel):
    """Generation result together with the summary of the context it was given."""

    result: GenerationResult
    context_summary: str

    model_config = ConfigDict(frozen=True)


def with_system_context(messages: list[Message], context_text: str) -> list[Message]:
    """Add *context_text* to the leading system message.

    The context is appended after the existing system text, separated by a
    blank line. Without a leading system message a new one is inserted.
    """
    if not context_text:
        return list(messages)
    if messages and messages[0].role == Role.system:
        head = messages[0]
        merged = f'{head.content}\n\n{context_text}' if head.content else context_text
        return [Message(role=Role.system, content=merged), *messages[1:]]
    return [Message(role=Role.system, content=context_text), *messages]


class ContextualGenerator:
    """Runs the failover engine with builder-supplied context."""

    def __init__(self, engine: FailoverEngine, builder: ContextBuilder) -> None:
        self.engine = engine
        self.builder = builder

    async def generate(
        self,
        messages: list[Message],
        user_message: str,
        options: GenerationOptions | None = None,
    ) -> ContextualResult:
        enriched, summary = await self._enrich(messages, user_message)
        result = await self.engine.generate_with_failover(enriched, options)
        return ContextualResult(result=result, context_summary=summary)

    async def stream(
        self,
        messages: list[Message],
        user_message: str,
        sink: StreamSink,
        options: GenerationOptions | None = None,
    ) -> ContextualResult:
        enriched, summary = await self._enrich(messages, user_message)
        result = await self.engine.stream_with_failover(enriched, sink, options)
        return ContextualResult(result=result, context_summary=summary)

    async def _enrich(self, messages: list[Message], user_message: str) -> tuple[list[Message], str]:
        try:
            context = await self.builder.build(user_message)
        except Exception as exc:  # noqa: BLE001
            logger.warning('context_build_failed', error=str(exc))
            return list(messages), UNAVAILABLE_SUMMARY
        return with_system_context(messages, context.context_text), context.context_summary
