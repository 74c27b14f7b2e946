"""
Trending-keyword spike detector.

Tracks capitalised terms across a rolling two-hour window and emits a
``TrendingSignal`` when a term is mentioned often enough, by enough
distinct sources, and well above its own historical rate.

Usage:
    detector = TrendingKeywordDetector()
    detector.ingest_headlines(items)
    await detector.wait_for_pending()
    signals = detector.drain_trending_signals()
"""

import asyncio
import re
import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable

from loguru import logger
from pydantic import BaseModel, Field, field_validator

from newsradar.analysis.clustering import coerce_item
from newsradar.analysis.config import (
    COMMON_CAPITALIZED,
    MONTH_NAMES,
    STOP_WORDS,
    WEEKDAY_NAMES,
)
from newsradar.analysis.entities import EntityIndex, default_entity_index
from newsradar.analysis.types import RawItem, TrendingSignal

WINDOW_SECONDS = 2 * 3600
HISTORY_RETENTION_SECONDS = 7 * 24 * 3600
COOLDOWN_SECONDS = 2 * 3600
MIN_DISTINCT_SOURCES = 2
MIN_TERM_LENGTH = 3
MAX_SAMPLE_HEADLINES = 5

# (term, headlines) -> bool
SignificanceCheck = Callable[[str, list[str]], Awaitable[bool]]
# (term, headlines) -> summary text
Summarizer = Callable[[str, list[str]], Awaitable[str]]

_ATTRIBUTION_SUFFIX = re.compile(r"\s+[-|–—]\s+([^-|–—]+)$")
_MAX_ATTRIBUTION_WORDS = 4
_EDGE_PUNCTUATION = ".,:;!?\"'()[]{}“”‘’"
_EXCLUDED_TERMS = STOP_WORDS | frozenset(MONTH_NAMES) | frozenset(WEEKDAY_NAMES)


class TrendingConfig(BaseModel):
    blocked_terms: list[str] = Field(default_factory=list)
    min_spike_count: int = Field(default=5, ge=1)
    spike_multiplier: float = Field(default=3.0, ge=1.0)
    auto_summarize: bool = True

    @field_validator("blocked_terms")
    @classmethod
    def _normalize_terms(cls, value: list[str]) -> list[str]:
        terms: list[str] = []
        for term in value:
            term = term.strip().lower()
            if term and term not in terms:
                terms.append(term)
        return terms


class TrendingConfigUpdate(BaseModel):
    """Partial config update; unset fields keep their current value."""

    blocked_terms: list[str] | None = None
    min_spike_count: int | None = Field(default=None, ge=1)
    spike_multiplier: float | None = Field(default=None, ge=1.0)
    auto_summarize: bool | None = None


@dataclass
class _Mention:
    timestamp: float
    source: str
    headline: str
    mid_sentence: bool


def strip_attribution(title: str, source: str = "") -> str:
    """Drop a trailing ``" - Outlet"`` / ``" | Outlet"`` or the item's own source."""
    title = title.strip()
    if source:
        for sep in (" - ", " | ", " – ", " — "):
            suffix = f"{sep}{source}"
            if title.lower().endswith(suffix.lower()):
                return title[: -len(suffix)].rstrip()

    match = _ATTRIBUTION_SUFFIX.search(title)
    if match and len(match.group(1).split()) <= _MAX_ATTRIBUTION_WORDS:
        return title[: match.start()].rstrip()
    return title


def extract_candidate_terms(title: str) -> dict[str, tuple[str, bool]]:
    """
    Capitalised tokens and acronyms of a headline.

    Returns ``{term_lower: (display_form, seen_mid_sentence)}``.
    """
    terms: dict[str, tuple[str, bool]] = {}
    for position, raw in enumerate(title.split()):
        token = raw.strip(_EDGE_PUNCTUATION)
        if token.endswith("'s") or token.endswith("’s"):
            token = token[:-2]
        if len(token) < MIN_TERM_LENGTH or not token[0].isupper():
            continue
        if not token.replace("-", "").isalpha():
            continue

        key = token.lower()
        if key in _EXCLUDED_TERMS:
            continue

        display, mid = terms.get(key, (token, False))
        terms[key] = (display, mid or position > 0)
    return terms


def _headline_key(source: str, title: str) -> str:
    return f"{source.strip().lower()}|{' '.join(title.lower().split())}"


class TrendingKeywordDetector:
    """
    Rolling-window keyword spike detector.

    Signals are queued and handed out once by ``drain_trending_signals``.
    The significance check and optional summary run as asyncio tasks when
    an event loop is running, otherwise inline.
    """

    def __init__(
        self,
        config: TrendingConfig | None = None,
        *,
        entity_index: EntityIndex | None = None,
        significance_check: SignificanceCheck | None = None,
        summarizer: Summarizer | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config or TrendingConfig()
        self._index = entity_index or default_entity_index()
        self._significance_check = significance_check or self._is_significant_term
        self._summarizer = summarizer
        self._clock = clock

        self._mentions: dict[str, list[_Mention]] = defaultdict(list)
        self._display: dict[str, str] = {}
        self._seen_headlines: dict[str, float] = {}
        self._cooldowns: dict[str, float] = {}
        self._awaiting_check: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._signals: list[TrendingSignal] = []

    # ---------------------------------------------------------------- config

    def get_trending_config(self) -> TrendingConfig:
        return self._config.model_copy(deep=True)

    def update_trending_config(
        self, update: TrendingConfigUpdate | dict[str, Any]
    ) -> TrendingConfig:
        """
        Apply a partial update.

        Raises:
            pydantic.ValidationError: if any field is out of range
        """
        if not isinstance(update, TrendingConfigUpdate):
            update = TrendingConfigUpdate.model_validate(update)

        changes = update.model_dump(exclude_unset=True, exclude_none=True)
        merged = self._config.model_dump() | changes
        self._config = TrendingConfig.model_validate(merged)

        for term in self._config.blocked_terms:
            self._forget(term)

        logger.info(f"[Trending] Config updated: {changes}")
        return self.get_trending_config()

    def suppress_trending_term(self, term: str) -> None:
        """Block ``term`` from now on and drop its history."""
        blocked = [*self._config.blocked_terms, term]
        self.update_trending_config(TrendingConfigUpdate(blocked_terms=blocked))

    # ---------------------------------------------------------------- ingest

    def ingest_headlines(self, items: Iterable[RawItem | dict[str, Any]]) -> None:
        now = self._clock()
        self._prune(now)

        touched: set[str] = set()
        skipped = 0
        blocked = set(self._config.blocked_terms)

        for raw in items:
            item = coerce_item(raw)
            if item is None:
                skipped += 1
                continue

            title = strip_attribution(item.title, item.source)
            key = _headline_key(item.source, title)
            if key in self._seen_headlines:
                continue

            timestamp = min(item.published_at.timestamp(), now)
            if timestamp < now - HISTORY_RETENTION_SECONDS:
                continue
            self._seen_headlines[key] = timestamp

            for term, (display, mid) in extract_candidate_terms(title).items():
                if term in blocked:
                    continue
                self._display.setdefault(term, display)
                self._mentions[term].append(
                    _Mention(
                        timestamp=timestamp,
                        source=item.source,
                        headline=item.title,
                        mid_sentence=mid,
                    )
                )
                touched.add(term)

        if skipped:
            logger.warning(f"[Trending] Skipped {skipped} malformed items")

        for term in sorted(touched):
            candidate = self._evaluate(term, now)
            if candidate is not None:
                self._schedule(candidate)

    def _evaluate(self, term: str, now: float) -> TrendingSignal | None:
        if term in self._awaiting_check:
            return None
        if self._cooldowns.get(term, 0.0) > now:
            return None

        window_start = now - WINDOW_SECONDS
        mentions = self._mentions.get(term, [])
        current = [m for m in mentions if m.timestamp >= window_start]
        sources = {m.source for m in current}

        if len(current) < self._config.min_spike_count:
            return None
        if len(sources) < MIN_DISTINCT_SOURCES:
            return None
        if not any(m.mid_sentence for m in current):
            return None

        baseline = self._baseline(mentions, window_start)
        multiplier = len(current) / baseline if baseline > 0 else None
        if multiplier is not None and multiplier < self._config.spike_multiplier:
            return None

        display = self._display.get(term, term)
        headlines = [m.headline for m in current[-MAX_SAMPLE_HEADLINES:]]
        if multiplier is None:
            description = (
                f"{display} appeared in {len(current)} headlines from "
                f"{len(sources)} sources in the last 2h with no prior baseline"
            )
        else:
            description = (
                f"{display} appeared in {len(current)} headlines from "
                f"{len(sources)} sources in the last 2h, {multiplier:.1f}x its "
                f"usual rate of {baseline:.1f}"
            )

        return TrendingSignal(
            id=f"trending-{term}-{int(now)}",
            title=f'"{display}" trending: {len(current)} mentions across {len(sources)} sources',
            description=description,
            term=term,
            mention_count=len(current),
            source_count=len(sources),
            baseline=round(baseline, 2),
            multiplier=round(multiplier, 2) if multiplier is not None else None,
            confidence=self._confidence(len(sources), multiplier),
            sample_headlines=headlines,
            window_start=datetime.fromtimestamp(window_start, tz=timezone.utc),
            window_end=datetime.fromtimestamp(now, tz=timezone.utc),
        )

    @staticmethod
    def _baseline(mentions: list[_Mention], window_start: float) -> float:
        """Average mentions per window over the history before ``window_start``."""
        prior = [m.timestamp for m in mentions if m.timestamp < window_start]
        if not prior:
            return 0.0
        windows = max(1.0, (window_start - min(prior)) / WINDOW_SECONDS)
        return len(prior) / windows

    def _confidence(self, source_count: int, multiplier: float | None) -> float:
        confidence = 0.5 + 0.1 * min(source_count, 4)
        if multiplier is not None and multiplier >= 2 * self._config.spike_multiplier:
            confidence += 0.05
        return round(min(confidence, 0.95), 2)

    # ---------------------------------------------------------- significance

    def _schedule(self, candidate: TrendingSignal) -> None:
        self._awaiting_check.add(candidate.term)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._handle_spike(candidate))
            return

        task = loop.create_task(self._handle_spike(candidate))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle_spike(self, candidate: TrendingSignal) -> None:
        term = candidate.term
        try:
            significant = await self._significance_check(
                self._display.get(term, term), candidate.sample_headlines
            )
        except Exception as e:
            logger.warning(f"[Trending] Significance check failed for '{term}': {e}")
            significant = False

        try:
            self._cooldowns[term] = self._clock() + COOLDOWN_SECONDS
            if not significant:
                logger.debug(f"[Trending] '{term}' not significant, cooling down")
                return

            if self._config.auto_summarize and self._summarizer is not None:
                try:
                    summary = await self._summarizer(term, candidate.sample_headlines)
                    candidate = candidate.model_copy(update={"summary": summary})
                except Exception as e:
                    logger.warning(f"[Trending] Summary failed for '{term}': {e}")

            self._signals.append(candidate)
            logger.info(f"[Trending] Spike: {candidate.title}")
        finally:
            self._awaiting_check.discard(term)

    async def _is_significant_term(self, term: str, headlines: list[str]) -> bool:
        if self._index.lookup_by_alias(term) is not None:
            return True
        return term.lower() not in COMMON_CAPITALIZED

    async def wait_for_pending(self, timeout: float | None = None) -> bool:
        """
        Wait for scheduled significance checks.

        Returns False when ``timeout`` expires first. Unfinished checks keep
        running and their signals show up in a later drain.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._tasks:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return False
            await asyncio.wait(list(self._tasks), timeout=remaining)
        return True

    # ---------------------------------------------------------------- output

    def drain_trending_signals(self) -> list[TrendingSignal]:
        signals, self._signals = self._signals, []
        return signals

    def get_tracked_term_count(self) -> int:
        return len(self._mentions)

    def reset(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()
        self._mentions.clear()
        self._display.clear()
        self._seen_headlines.clear()
        self._cooldowns.clear()
        self._awaiting_check.clear()
        self._signals.clear()

    # --------------------------------------------------------------- helpers

    def _forget(self, term: str) -> None:
        self._mentions.pop(term, None)
        self._display.pop(term, None)

    def _prune(self, now: float) -> None:
        cutoff = now - HISTORY_RETENTION_SECONDS
        for term in list(self._mentions):
            kept = [m for m in self._mentions[term] if m.timestamp >= cutoff]
            if kept:
                self._mentions[term] = kept
            else:
                self._forget(term)
        self._seen_headlines = {
            k: ts for k, ts in self._seen_headlines.items() if ts >= cutoff
        }
        self._cooldowns = {t: until for t, until in self._cooldowns.items() if until > now}
