"""adapters.clawdbot_adapter

Adapter for the **clawdbot** gateway, reached through a helper process on the
local host (``node clawdbot-call.mjs <prompt-file>`` in the stock setup).

The prompt is written to a private file, the helper is started with the file
path as its only argument, and its stdout is parsed as a single JSON object::

    {"text": "...", "model": "...", "usage": {"input_tokens": 1, "output_tokens": 2}}

``reply`` or ``content`` are accepted in place of ``text``, and a flat
``tokens_used`` in place of ``usage``. A helper reports failure as
``{"status": "error", "error": "..."}``, on stderr with a non-zero exit code
or on stdout.

Prompt file formats (config key ``clawdbot_prompt_format``):

``text`` (default)
    Plain message text: the joined system messages, a blank line, then the
    conversation. A lone user message is written as-is, longer conversations
    as ``User:`` / ``Assistant:`` lines.
``json``
    ``{"system", "messages", "model", "temperature", "max_tokens"}`` for
    helpers that want the structured request.

The helper cannot stream, so streaming mode runs the full call and then
replays the text to the sink in fixed-size chunks.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import os
import secrets
import shlex
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

import structlog

from ai_engine.core.abc import ProviderAdapter, ProviderRequest, json_object
from ai_engine.core.exceptions import GenerationTimeoutError, ResponseParseError, UpstreamError
from ai_engine.core.model_id import ProviderId
from ai_engine.core.types import Role
from ai_engine.registry.provider_registry import provider_registry

if TYPE_CHECKING:
    import httpx

    from ai_engine.config.resolver import ConfigResolver
    from ai_engine.core.types import GenerationResult, StreamSink

logger = structlog.get_logger(__name__)

PROMPT_FILE_PREFIX = 'clawdbot-prompt-'
PROMPT_FORMAT_TEXT = 'text'
PROMPT_FORMAT_JSON = 'json'
PROMPT_FILE_SUFFIXES = {PROMPT_FORMAT_TEXT: '.txt', PROMPT_FORMAT_JSON: '.json'}
DEFAULT_ARGS = '{prompt_file}'
STREAM_CHUNK_SIZE = 100

_ROLE_LABELS = {Role.user: 'User', Role.assistant: 'Assistant'}


def render_prompt(request: ProviderRequest, prompt_format: str = PROMPT_FORMAT_TEXT) -> str:
    """Serialise *request* the way the helper reads its prompt file."""
    if prompt_format == PROMPT_FORMAT_JSON:
        return json.dumps(
            {
                'system': request.system_text(),
                'messages': [{'role': m.role.value, 'content': m.content} for m in request.conversation()],
                'model': request.model,
                'temperature': request.temperature,
                'max_tokens': request.max_tokens,
            },
            ensure_ascii=False,
        )

    conversation = request.conversation()
    if len(conversation) == 1 and conversation[0].role == Role.user:
        dialogue = conversation[0].content
    else:
        dialogue = '\n'.join(f'{_ROLE_LABELS[m.role]}: {m.content}' for m in conversation)
    return '\n\n'.join(part for part in (request.system_text(), dialogue) if part)


def _helper_error(raw: bytes) -> str | None:
    """``error`` field of a ``{"status": "error"}`` report, if *raw* is one."""
    try:
        report = json.loads(raw.decode('utf-8', errors='replace').strip() or 'null')
    except json.JSONDecodeError:
        return None
    if isinstance(report, dict) and report.get('status') == 'error':
        return str(report.get('error') or 'unknown error')
    return None


class ClawdbotAdapter(ProviderAdapter):
    """Adapter for the local clawdbot helper process."""

    provider = ProviderId.clawdbot
    requires_credential: ClassVar[bool] = False
    stream_chunk_size: ClassVar[int] = STREAM_CHUNK_SIZE

    def __init__(
        self,
        resolver: ConfigResolver,
        *,
        http_client: httpx.AsyncClient | None = None,
        tmp_dir: str | os.PathLike[str] | None = None,
    ) -> None:
        super().__init__(resolver, http_client=http_client)
        self._tmp_dir = Path(tmp_dir or resolver.settings.clawdbot_tmp_dir)

    # ------------------------------------------------------------------
    # Unary path
    # ------------------------------------------------------------------

    async def _invoke(self, request: ProviderRequest) -> GenerationResult:
        prompt_format = await self._prompt_format()
        prompt_file = self._prompt_path(prompt_format)
        try:
            self._write_prompt_file(prompt_file, render_prompt(request, prompt_format))
            argv = await self._command_line(prompt_file)
            stdout = await self._run(argv, request.timeout)
            return self._parse(request, stdout)
        finally:
            prompt_file.unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Streaming path (simulated)
    # ------------------------------------------------------------------

    async def _invoke_stream(self, request: ProviderRequest, sink: StreamSink) -> GenerationResult:
        result = await self._invoke(request)
        size = self.stream_chunk_size
        for start in range(0, len(result.text), size):
            sink.write(result.text[start : start + size])
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _prompt_format(self) -> str:
        prompt_format = await self._resolver.get_value('clawdbot_prompt_format', PROMPT_FORMAT_TEXT)
        if prompt_format not in PROMPT_FILE_SUFFIXES:
            logger.warning('clawdbot_prompt_format_unknown', value=prompt_format)
            return PROMPT_FORMAT_TEXT
        return prompt_format

    def _prompt_path(self, prompt_format: str = PROMPT_FORMAT_TEXT) -> Path:
        self._tmp_dir.mkdir(parents=True, exist_ok=True)
        suffix = PROMPT_FILE_SUFFIXES[prompt_format]
        return self._tmp_dir / f'{PROMPT_FILE_PREFIX}{int(time.time() * 1000)}-{secrets.token_hex(6)}{suffix}'

    @staticmethod
    def _write_prompt_file(path: Path, prompt: str) -> None:
        # exclusive create, readable by the owner only
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, 'w', encoding='utf-8') as fh:
            fh.write(prompt)

    async def _command_line(self, prompt_file: Path) -> list[str]:
        resolver = self._resolver
        command = await resolver.get_value('clawdbot_command') or resolver.settings.clawdbot_command
        template = await resolver.get_value('clawdbot_args', DEFAULT_ARGS)
        args = [arg.replace('{prompt_file}', str(prompt_file)) for arg in shlex.split(template or '')]
        return [*shlex.split(command), *args]

    async def _run(self, argv: list[str], timeout: float) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise UpstreamError(f'cannot start {argv[0]}: {exc}') from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
        except TimeoutError as exc:
            raise GenerationTimeoutError(f'clawdbot timeout ({timeout:g}s)') from exc
        finally:
            # timeout or cancellation: the helper must not outlive the call
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        if process.returncode != 0:
            logger.warning('clawdbot_exit_nonzero', returncode=process.returncode)
            raise UpstreamError(f'exit {process.returncode}', _helper_error(stderr) or stderr or stdout)
        return stdout.decode('utf-8', errors='replace')

    def _parse(self, request: ProviderRequest, stdout: str) -> GenerationResult:
        body = json_object(json.loads(stdout.strip()), 'clawdbot output')
        if body.get('status') == 'error' or body.get('error'):
            raise UpstreamError('clawdbot error', str(body.get('error') or 'unknown error'))

        text = next((body[key] for key in ('text', 'reply', 'content') if isinstance(body.get(key), str)), None)
        if text is None:
            raise ResponseParseError('clawdbot output has no text field')

        usage = json_object(body.get('usage') or {}, 'clawdbot usage')
        tokens = int(body.get('tokens_used') or 0) or (
            int(usage.get('input_tokens') or 0) + int(usage.get('output_tokens') or 0)
        )
        if body.get('model'):
            request = request.model_copy(update={'model': str(body['model'])})
        return self._result(request, text, tokens)


# ---------------------------------------------------------------------------
# Automatic registration
# ---------------------------------------------------------------------------

provider_registry.register(ProviderId.clawdbot, ClawdbotAdapter)
