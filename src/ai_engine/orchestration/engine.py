"""orchestration.engine

Failover engine: tries each provider of the chain in order, one attempt per
provider, until one succeeds.

Streaming delivery
==================
By default chunks reach the caller's sink as soon as the provider emits them.
If a provider fails mid-stream the bytes already written stay written and the
next provider's output follows them; ``AllProvidersFailedError.partial_output``
tells the caller whether anything was delivered before the final failure.

With ``buffer_stream=True`` each attempt writes into a private buffer that is
flushed to the caller's sink only once that provider has finished, so the
caller sees either one provider's complete output or nothing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from ai_engine.config.resolver import DEFAULT_PRIMARY
from ai_engine.core.exceptions import (
    AIEngineError,
    AllProvidersFailedError,
    NoProvidersEnabledError,
    ProviderNotFoundError,
)
from ai_engine.core.model_id import KNOWN_PROVIDERS, ProviderId
from ai_engine.core.types import GenerationOptions, ListSink
from ai_engine.orchestration.chain import build_provider_chain
from ai_engine.registry.client_factory import AdapterFactory

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from ai_engine.config.resolver import ConfigResolver
    from ai_engine.core.abc import ProviderAdapter
    from ai_engine.core.types import GenerationResult, Message, StreamSink

logger = structlog.get_logger(__name__)

#: Exceptions that count as "this provider failed, try the next one".
PROVIDER_FAILURES: tuple[type[BaseException], ...] = (AIEngineError, httpx.HTTPError, OSError)


class _CountingSink:
    """Pass-through sink remembering how many chunks went out."""

    def __init__(self, target: StreamSink) -> None:
        self._target = target
        self.written = 0

    def write(self, chunk: str) -> None:
        self._target.write(chunk)
        self.written += 1


class FailoverEngine:
    """Entry point for unary and streaming generation across providers."""

    def __init__(
        self,
        resolver: ConfigResolver,
        adapters: Mapping[ProviderId, ProviderAdapter] | None = None,
        *,
        buffer_stream: bool = False,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.resolver = resolver
        self.buffer_stream = buffer_stream
        if adapters is None:
            adapters = AdapterFactory.initialize_all(resolver, http_client=http_client)
        self._adapters = dict(adapters)
        self._known = tuple(p for p in KNOWN_PROVIDERS if p in self._adapters)

    # ------------------------------------------------------------------
    # Failover API
    # ------------------------------------------------------------------

    async def provider_chain(self, options: GenerationOptions | None = None) -> list[ProviderId]:
        snapshot = await self.resolver.get_config()
        override = options.provider if options else None
        return build_provider_chain(snapshot, override, self._known)

    async def generate_with_failover(
        self,
        messages: list[Message],
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        """Generate with the first provider of the chain that succeeds.

        Raises
        ------
        NoProvidersEnabledError
            Every known provider is disabled; nothing was attempted.
        AllProvidersFailedError
            Every provider in the chain failed.

        """
        _require_messages(messages)
        chain = await self.provider_chain(options)

        async def attempt(adapter: ProviderAdapter) -> GenerationResult:
            return await adapter.generate(messages, options)

        return await self._run_chain(chain, attempt)

    async def stream_with_failover(
        self,
        messages: list[Message],
        sink: StreamSink,
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        """Stream from the first provider of the chain that succeeds.

        Same failure policy as :meth:`generate_with_failover`.
        """
        _require_messages(messages)
        chain = await self.provider_chain(options)
        delivered = 0

        async def attempt(adapter: ProviderAdapter) -> GenerationResult:
            nonlocal delivered
            if self.buffer_stream:
                buffer = ListSink()
                result = await adapter.generate_streaming(messages, options, buffer)
                buffer.flush_to(sink)
                return result

            counting = _CountingSink(sink)
            try:
                return await adapter.generate_streaming(messages, options, counting)
            finally:
                if counting.written and delivered:
                    logger.warning('stream_output_concatenated', provider=adapter.provider.value)
                delivered += counting.written

        try:
            return await self._run_chain(chain, attempt)
        except AllProvidersFailedError as exc:
            exc.partial_output = delivered > 0
            raise

    # ------------------------------------------------------------------
    # Single-provider API
    # ------------------------------------------------------------------

    async def generate(self, messages: list[Message], options: GenerationOptions | None = None) -> GenerationResult:
        """Generate with exactly one provider; its error propagates unchanged."""
        _require_messages(messages)
        adapter = await self._single(options)
        return await adapter.generate(messages, options)

    async def stream(
        self,
        messages: list[Message],
        sink: StreamSink,
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        """Stream from exactly one provider; its error propagates unchanged."""
        _require_messages(messages)
        adapter = await self._single(options)
        return await adapter.generate_streaming(messages, options, sink)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _single(self, options: GenerationOptions | None) -> ProviderAdapter:
        snapshot = await self.resolver.get_config()
        override = options.provider if options else None
        provider = ProviderId.parse(override or snapshot.get('primary_provider') or DEFAULT_PRIMARY)
        if not snapshot.is_provider_enabled(provider.value):
            raise NoProvidersEnabledError(f'{provider.value} is disabled')
        return self._adapter(provider)

    def _adapter(self, provider: ProviderId) -> ProviderAdapter:
        try:
            return self._adapters[provider]
        except KeyError:
            raise ProviderNotFoundError(f'No adapter configured for provider: {provider.value}') from None

    async def _run_chain(
        self,
        chain: list[ProviderId],
        attempt: Callable[[ProviderAdapter], Awaitable[GenerationResult]],
    ) -> GenerationResult:
        failures: list[tuple[str, str]] = []
        for index, provider in enumerate(chain):
            try:
                result = await attempt(self._adapters[provider])
            except PROVIDER_FAILURES as exc:
                logger.warning(
                    'provider_failed',
                    provider=provider.value,
                    attempt=index + 1,
                    of=len(chain),
                    kind=type(exc).__name__,
                    error=str(exc),
                )
                failures.append((provider.value, str(exc)))
                continue
            if index > 0:
                logger.info('provider_failed_over', provider=provider.value, primary=chain[0].value)
            return result.with_failover(index > 0)

        logger.error('all_providers_failed', chain=[p.value for p in chain])
        raise AllProvidersFailedError(failures)


def _require_messages(messages: list[Message]) -> None:
    if not messages:
        raise ValueError('messages must not be empty')
