from __future__ import annotations

import pydantic
import pytest

from ai_engine.core.tokens import CHARS_PER_TOKEN, estimate_tokens
from ai_engine.core.types import GenerationOptions, GenerationResult, ListSink, Message, Role, StreamSink


def test_message_is_immutable() -> None:
    msg = Message(role=Role.user, content='hello')
    with pytest.raises(pydantic.ValidationError):
        msg.content = 'changed'  # type: ignore[misc]


def test_options_merge_prefers_explicit_fields() -> None:
    explicit = GenerationOptions(temperature=0.9, provider='claude')
    defaults = GenerationOptions(temperature=0.3, max_tokens=4096)
    merged = explicit.merged(defaults)
    assert merged.temperature == 0.9  # noqa: PLR2004
    assert merged.max_tokens == 4096  # noqa: PLR2004
    assert merged.provider == 'claude'
    assert merged.model is None


def test_options_validate_ranges() -> None:
    with pytest.raises(pydantic.ValidationError):
        GenerationOptions(temperature=3.0)
    with pytest.raises(pydantic.ValidationError):
        GenerationOptions(max_tokens=0)


def test_result_with_failover_copies() -> None:
    result = GenerationResult(text='hi', tokens_used=3, model='claude/x', provider='claude')
    flagged = result.with_failover(True)
    assert flagged.failed_over is True
    assert result.failed_over is False
    assert flagged.model_dump(exclude={'failed_over'}) == result.model_dump(exclude={'failed_over'})


def test_result_rejects_negative_tokens() -> None:
    with pytest.raises(pydantic.ValidationError):
        GenerationResult(text='', tokens_used=-1, model='a/b', provider='a')


def test_list_sink_collects_and_flushes() -> None:
    buffer = ListSink()
    buffer.write('ab')
    buffer.write('cd')
    assert isinstance(buffer, StreamSink)
    assert buffer.text == 'abcd'
    assert len(buffer) == 2  # noqa: PLR2004

    target = ListSink()
    buffer.flush_to(target)
    assert target.chunks == ['ab', 'cd']


def test_estimate_tokens() -> None:
    assert CHARS_PER_TOKEN == 4  # noqa: PLR2004
    assert estimate_tokens('') == 0
    assert estimate_tokens('abcd') == 1
    assert estimate_tokens('abcde') == 2  # noqa: PLR2004
    assert estimate_tokens('abcdef', chars_per_token=2) == 3  # noqa: PLR2004
    with pytest.raises(ValueError):  # noqa: PT011
        estimate_tokens('x', chars_per_token=0)
