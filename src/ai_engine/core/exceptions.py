"""core.exceptions

Centralised exception hierarchy for *ai_engine*.

Each error carries an `http_status` attribute so that the route layer can
translate exceptions to HTTP responses (or SSE error events) *without*
scattering status-code logic throughout business code.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

#: Upstream bodies are cut to this many characters before landing in messages.
ERROR_BODY_LIMIT = 500


def truncate_body(body: str | bytes | None, limit: int = ERROR_BODY_LIMIT) -> str:
    """Return *body* as text, cut to *limit* characters."""
    if body is None:
        return ''
    if isinstance(body, bytes):
        body = body.decode('utf-8', errors='replace')
    return body[:limit]


# ---------------------------------------------------------------------------
# Base class with HTTP status information
# ---------------------------------------------------------------------------


class AIEngineError(Exception):
    """Base class for all *ai_engine* domain errors."""

    #: Default HTTP status if not overridden by subclass.
    http_status: ClassVar[HTTPStatus] = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__name__)

    @property
    def kind(self) -> str:
        return self.__class__.__name__

    def to_json(self) -> dict[str, dict[str, str]]:
        """Unified error body for the route layer."""
        return {'error': {'type': self.kind, 'message': str(self)}}


# ---------------------------------------------------------------------------
# Provider-level errors (advance the failover chain)
# ---------------------------------------------------------------------------


class ProviderNotFoundError(AIEngineError):
    """Raised when a provider slug does not name a known provider."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.NOT_IMPLEMENTED  # 501


class MissingCredentialError(AIEngineError):
    """Provider has no usable API key; no request was sent."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.SERVICE_UNAVAILABLE  # 503


class UpstreamError(AIEngineError):
    """Non-success HTTP status or helper-process exit code."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.BAD_GATEWAY  # 502

    def __init__(self, status: int | str, body: str | bytes | None = None) -> None:
        self.status = status
        self.body = truncate_body(body)
        message = f'HTTP {status}' if isinstance(status, int) else str(status)
        if self.body:
            message = f'{message}: {self.body}'
        super().__init__(message)


class GenerationTimeoutError(AIEngineError):
    """Raised when the hard per-call deadline is exceeded."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.GATEWAY_TIMEOUT  # 504


class ResponseParseError(AIEngineError):
    """A response arrived but not in the expected shape."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.BAD_GATEWAY  # 502


# ---------------------------------------------------------------------------
# Call-level errors (propagate to the caller)
# ---------------------------------------------------------------------------


class NoProvidersEnabledError(AIEngineError):
    """Every known provider is disabled in config; nothing was attempted."""

    http_status: ClassVar[HTTPStatus] = HTTPStatus.SERVICE_UNAVAILABLE  # 503


class AllProvidersFailedError(AIEngineError):
    """Every provider in the chain failed.

    ``attempts`` holds ``(provider, message)`` pairs in attempt order.
    ``partial_output`` is true when chunks already reached the caller's sink.
    """

    http_status: ClassVar[HTTPStatus] = HTTPStatus.BAD_GATEWAY  # 502

    def __init__(self, attempts: Sequence[tuple[str, str]], *, partial_output: bool = False) -> None:
        self.attempts = list(attempts)
        self.partial_output = partial_output
        reasons = '; '.join(f'{provider}: {message}' for provider, message in self.attempts)
        super().__init__(f'All AI providers failed. {reasons}')

    def to_json(self) -> dict[str, dict[str, str]]:
        body = super().to_json()
        body['error']['partial_output'] = 'true' if self.partial_output else 'false'
        return body


HTTP_STATUS_MAP: Mapping[type[AIEngineError], HTTPStatus] = {
    ProviderNotFoundError: ProviderNotFoundError.http_status,
    MissingCredentialError: MissingCredentialError.http_status,
    UpstreamError: UpstreamError.http_status,
    GenerationTimeoutError: GenerationTimeoutError.http_status,
    ResponseParseError: ResponseParseError.http_status,
    NoProvidersEnabledError: NoProvidersEnabledError.http_status,
    AllProvidersFailedError: AllProvidersFailedError.http_status,
}
