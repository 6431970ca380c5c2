"""context.keywords

Keyword-driven context builder.

Two tiers:

* a quick summary section, requested for every message;
* deep sections, one per business category whose keyword pattern matches
  the user's message. ``general`` expands to every category, and when nothing
  matches a cached daily snapshot section stands in.

Section bodies come from injected async callables; this module only decides
which ones to call and how to stitch their text together.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable, Mapping

import structlog

from ai_engine.context.assembly import ChatContext

logger = structlog.get_logger(__name__)

SectionProvider = Callable[[], Awaitable[str | None]]

CONTEXT_HEADER = '=== LIVE BUSINESS DATA (from database, use this in your response) ==='
SNAPSHOT_HEADER = '--- Cached Daily Snapshot ---'
GENERAL = 'general'
SNAPSHOT = 'snapshot'

CATEGORY_PATTERNS: dict[str, re.Pattern[str]] = {
    'revenue': re.compile(
        r'revenue|sales|invoice|billing|turnover|income|earning|business.*today|how.*doing|performance', re.I
    ),
    'collections': re.compile(
        r'collection|payment|received|paid|cash.*flow|recover|overdue|outstanding|due|debt|unpaid', re.I
    ),
    'staff': re.compile(
        r'staff|attendance|employee|worker|present|absent|break|overtime|late|team|hr|manpower|who.*working', re.I
    ),
    'leads': re.compile(r'lead|prospect|pipeline|follow.?up|customer.*new|inquiry|conversion|funnel', re.I),
    'inventory': re.compile(
        r'stock|inventory|product|item|reorder|warehouse|out.*stock|low.*stock|supply|brand', re.I
    ),
    'whatsapp': re.compile(r'whatsapp|campaign|marketing|message|broadcast', re.I),
    'insights': re.compile(r'insight|analysis|alert|warning|suggestion|problem|issue', re.I),
    GENERAL: re.compile(
        r'health.*check|overview|summary|everything|full.*report|how.*we.*doing|good\s*morning|brief\s*me', re.I
    ),
}


def detect_categories(message: str, patterns: Mapping[str, re.Pattern[str]] = CATEGORY_PATTERNS) -> list[str]:
    """Categories whose pattern matches *message*, in pattern order.

    A ``general`` match is replaced by every concrete category.
    """
    matched = [category for category, pattern in patterns.items() if pattern.search(message)]
    if GENERAL in matched:
        return [category for category in patterns if category != GENERAL]
    return matched


class KeywordContextBuilder:
    """Builds a :class:`ChatContext` from keyword-selected sections."""

    def __init__(
        self,
        sections: Mapping[str, SectionProvider],
        *,
        quick_summary: SectionProvider | None = None,
        snapshot: SectionProvider | None = None,
        patterns: Mapping[str, re.Pattern[str]] = CATEGORY_PATTERNS,
    ) -> None:
        self.sections = dict(sections)
        self.quick_summary = quick_summary
        self.snapshot = snapshot
        self.patterns = patterns

    async def build(self, user_message: str) -> ChatContext:
        parts: list[str] = []

        if quick := await self._section('quick_summary', self.quick_summary):
            parts.append(quick)

        categories = detect_categories(user_message, self.patterns)
        if not categories and (cached := await self._section(SNAPSHOT, self.snapshot)):
            parts.append(f'{SNAPSHOT_HEADER}\n{cached}')
            categories = [SNAPSHOT]

        deep = [c for c in categories if c in self.sections]
        bodies = await asyncio.gather(*(self._section(c, self.sections[c]) for c in deep))
        parts.extend(body for body in bodies if body)

        context_text = f'{CONTEXT_HEADER}\n\n' + '\n\n'.join(parts) if parts else ''
        summary = f'ctx: {",".join(categories)}' if categories else 'ctx: quick-only'
        return ChatContext(context_text=context_text, context_summary=summary, categories=categories)

    async def _section(self, name: str, provider: SectionProvider | None) -> str | None:
        if provider is None:
            return None
        try:
            return await provider()
        except Exception as exc:  # noqa: BLE001
            logger.warning('context_section_failed', section=name, error=str(exc))
            return None
