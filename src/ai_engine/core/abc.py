"""core.abc

Abstract base class that *all* provider adapters must implement.

Design goals
============
1. **Provider-agnostic public API** - callers interact exclusively via
    `generate()` / `generate_streaming()` passing domain models (`Message`,
    `GenerationOptions`). They never touch provider-specific payloads.
2. **Uniform failure surface** - the public methods resolve credentials and
    defaults, then translate transport and decoding failures into the
    *ai_engine* error taxonomy so the failover engine sees one shape.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import TYPE_CHECKING, Any, ClassVar

import httpx
import structlog
from pydantic import BaseModel, ConfigDict

from ai_engine.core.exceptions import (
    AIEngineError,
    GenerationTimeoutError,
    MissingCredentialError,
    ResponseParseError,
    UpstreamError,
)
from ai_engine.core.model_id import ProviderId, qualify
from ai_engine.core.tokens import CHARS_PER_TOKEN, estimate_tokens
from ai_engine.core.types import GenerationOptions, GenerationResult, Message, Role

if TYPE_CHECKING:
    from ai_engine.config.resolver import ConfigResolver
    from ai_engine.core.types import StreamSink

logger = structlog.get_logger(__name__)


def json_object(value: Any, what: str) -> dict[str, Any]:
    """Return *value* if it is a JSON object, else raise :class:`ResponseParseError`."""
    if not isinstance(value, dict):
        raise ResponseParseError(f'{what} is not an object: {type(value).__name__}')
    return value


def json_list(value: Any, what: str) -> list[Any]:
    """Return *value* if it is a JSON array, else raise :class:`ResponseParseError`."""
    if not isinstance(value, list):
        raise ResponseParseError(f'{what} is not an array: {type(value).__name__}')
    return value


class ProviderRequest(BaseModel):
    """Fully resolved inputs for one provider call."""

    messages: list[Message]
    model: str
    temperature: float
    max_tokens: int
    timeout: float
    credential: str | None = None

    model_config = ConfigDict(frozen=True)

    def system_text(self) -> str:
        """All system messages joined by a blank line."""
        return '\n\n'.join(m.content for m in self.messages if m.role == Role.system)

    def conversation(self) -> list[Message]:
        """Non-system messages in turn order."""
        return [m for m in self.messages if m.role != Role.system]


class ProviderAdapter(ABC):
    """Provider-independent adapter interface."""

    provider: ClassVar[ProviderId]
    #: Local providers need no API key.
    requires_credential: ClassVar[bool] = True
    #: Ratio used when the provider reports no usage.
    chars_per_token: ClassVar[int] = CHARS_PER_TOKEN

    # ---------------------------------------------------------------------
    # Construction
    # ---------------------------------------------------------------------

    def __init__(self, resolver: ConfigResolver, *, http_client: httpx.AsyncClient | None = None) -> None:
        """Store the config *resolver* and an optional shared HTTP client."""
        self._resolver = resolver
        self._http_client = http_client

    # ------------------------------------------------------------------
    # Public async API
    # ------------------------------------------------------------------

    async def generate(self, messages: list[Message], options: GenerationOptions | None = None) -> GenerationResult:
        """Generate a completion in one round trip.

        Subclasses **must not** override this - override `_invoke()` instead.
        """
        request = await self._prepare(messages, options)
        logger.info('provider_call_started', provider=self.provider.value, model=request.model, stream=False)
        with self._translate_errors(request):
            result = await self._invoke(request)
        logger.info('provider_call_finished', provider=self.provider.value, tokens=result.tokens_used)
        return result

    async def generate_streaming(
        self,
        messages: list[Message],
        options: GenerationOptions | None,
        sink: StreamSink,
    ) -> GenerationResult:
        """Forward text deltas to *sink* as they arrive; return the full result at the end.

        Subclasses **must not** override this - override `_invoke_stream()` instead.
        """
        request = await self._prepare(messages, options)
        logger.info('provider_call_started', provider=self.provider.value, model=request.model, stream=True)
        with self._translate_errors(request):
            result = await self._invoke_stream(request, sink)
        logger.info('provider_call_finished', provider=self.provider.value, tokens=result.tokens_used)
        return result

    # ------------------------------------------------------------------
    # Methods to implement in concrete adapters
    # ------------------------------------------------------------------

    @abstractmethod
    async def _invoke(self, request: ProviderRequest) -> GenerationResult:
        """Provider-specific unary call."""

    @abstractmethod
    async def _invoke_stream(self, request: ProviderRequest, sink: StreamSink) -> GenerationResult:
        """Provider-specific streaming call."""

    # ------------------------------------------------------------------
    # Helpers for concrete adapters
    # ------------------------------------------------------------------

    def _result(self, request: ProviderRequest, text: str, reported_tokens: int = 0) -> GenerationResult:
        tokens = reported_tokens or estimate_tokens(text, self.chars_per_token)
        return GenerationResult(
            text=text,
            tokens_used=tokens,
            model=qualify(self.provider.value, request.model),
            provider=self.provider.value,
        )

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the shared client, or a private one closed on exit."""
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient() as client:
            yield client

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        timeout: float,
    ) -> dict[str, Any]:
        async with self._client() as client:
            response = await client.post(url, json=payload, headers=headers, timeout=timeout)
        if not response.is_success:
            raise UpstreamError(response.status_code, response.text)
        return json_object(response.json(), f'{self.provider.value} response body')

    async def _stream_sse(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        timeout: float,
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield the decoded JSON body of every ``data:`` line of an SSE response.

        A successful response that carries no decodable event at all raises
        :class:`ResponseParseError`.
        """
        received = 0
        async with self._client() as client, client.stream(
            'POST', url, json=payload, headers=headers, timeout=timeout
        ) as response:
            if not response.is_success:
                body = await response.aread()
                raise UpstreamError(response.status_code, body)
            async for line in response.aiter_lines():
                if not line.startswith('data:'):
                    continue
                data = line[5:].strip()
                if not data or data == '[DONE]':
                    continue
                try:
                    event = json.loads(data)
                except json.JSONDecodeError:
                    logger.debug('sse_line_skipped', provider=self.provider.value, line=data[:120])
                    continue
                if isinstance(event, dict):
                    received += 1
                    yield event
        if not received:
            raise ResponseParseError(f'{self.provider.value} stream ended without any event')

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _prepare(self, messages: list[Message], options: GenerationOptions | None) -> ProviderRequest:
        if not messages:
            raise ValueError('messages must not be empty')
        options = options or GenerationOptions()
        resolver = self._resolver

        credential = None
        if self.requires_credential:
            credential = await resolver.get_api_credential(self.provider.value)
            if not credential:
                raise MissingCredentialError(f'{self.provider.value} API key not set')

        return ProviderRequest(
            messages=list(messages),
            model=options.model or await resolver.get_model_name(self.provider.value),
            temperature=options.temperature if options.temperature is not None else await resolver.get_temperature(),
            max_tokens=options.max_tokens or await resolver.get_max_tokens(),
            timeout=await resolver.get_timeout(),
            credential=credential,
        )

    @contextmanager
    def _translate_errors(self, request: ProviderRequest) -> Iterator[None]:
        try:
            yield
        except AIEngineError:
            raise
        except (httpx.TimeoutException, TimeoutError) as exc:
            raise GenerationTimeoutError(f'Request timeout ({request.timeout:g}s)') from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f'{type(exc).__name__}: {exc}') from exc
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as exc:
            raise ResponseParseError(f'Unexpected {self.provider.value} response: {exc}') from exc

    def __repr__(self) -> str:  # pragma: no cover - cosmetic
        return f'<{self.__class__.__name__} provider={self.provider.value!r}>'
