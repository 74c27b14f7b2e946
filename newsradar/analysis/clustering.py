"""
Cluster engine - groups headlines describing the same event.

Each headline is reduced to its set of words with four or more characters.
A headline joins the first cluster (in creation order) whose seed shares
more than 60% of the smaller word set; otherwise it seeds a new cluster.
"""

import hashlib
import re
from typing import Any, Iterable

from loguru import logger
from pydantic import ValidationError

from newsradar.analysis.config import contains_alert_keyword, get_source_tier
from newsradar.analysis.types import ClusteredEvent, RawItem
from newsradar.analysis.velocity import calculate_velocity

SIMILARITY_THRESHOLD = 0.6
MIN_WORD_LENGTH = 4
MAX_TOP_SOURCES = 5

_PUNCTUATION = re.compile(r"[^\w\s]")


def normalize_words(title: str) -> frozenset[str]:
    """Lowercased, punctuation-free words of at least four characters."""
    normalized = _PUNCTUATION.sub("", title.lower())
    return frozenset(w for w in normalized.split() if len(w) >= MIN_WORD_LENGTH)


def overlap_similarity(a: frozenset[str], b: frozenset[str]) -> float:
    """Shared words relative to the smaller set."""
    if not a or not b:
        return 0.0
    return len(a & b) / min(len(a), len(b))


def coerce_item(raw: Any) -> RawItem | None:
    """Accept a RawItem or a mapping; anything unusable yields None."""
    if isinstance(raw, RawItem):
        item = raw
    else:
        try:
            item = RawItem.model_validate(raw)
        except ValidationError:
            return None
    if not item.title.strip() or not item.source.strip():
        return None
    return item


class _ClusterBuilder:
    def __init__(self, seed: RawItem, words: frozenset[str]):
        self.seed_words = words
        self.items: list[RawItem] = [seed]

    def add(self, item: RawItem) -> None:
        self.items.append(item)


class ClusterEngine:
    """
    Incremental overlap clustering over one batch of headlines.

    Usage:
        engine = ClusterEngine()
        clusters = engine.cluster(items)
    """

    def __init__(
        self,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
        source_tiers: dict[str, int] | None = None,
    ):
        self.similarity_threshold = similarity_threshold
        self.source_tiers = source_tiers

    def cluster(self, items: Iterable[Any]) -> list[ClusteredEvent]:
        builders: list[_ClusterBuilder] = []
        skipped = 0

        for raw in items:
            item = coerce_item(raw)
            if item is None:
                skipped += 1
                continue

            words = normalize_words(item.title)
            if not words:
                skipped += 1
                continue

            target = None
            for builder in builders:
                if overlap_similarity(words, builder.seed_words) > self.similarity_threshold:
                    target = builder
                    break

            if target is None:
                builders.append(_ClusterBuilder(item, words))
            else:
                target.add(item)

        if skipped:
            logger.warning(f"[Cluster] Skipped {skipped} malformed or wordless items")

        seen_ids: set[str] = set()
        clusters = [self._build_event(b, seen_ids) for b in builders]
        logger.debug(
            f"[Cluster] {sum(len(b.items) for b in builders)} items -> {len(clusters)} clusters"
        )
        return clusters

    def _build_event(self, builder: _ClusterBuilder, seen_ids: set[str]) -> ClusteredEvent:
        items = builder.items
        seed = items[0]

        # Highest-tier source wins, most recent breaks ties
        primary = min(
            items,
            key=lambda i: (
                get_source_tier(i.source, self.source_tiers),
                -i.published_at.timestamp(),
            ),
        )

        sources: list[str] = []
        for item in sorted(
            items, key=lambda i: get_source_tier(i.source, self.source_tiers)
        ):
            if item.source not in sources:
                sources.append(item.source)

        cluster_id = self._make_id(seed, seen_ids)
        event = ClusteredEvent(
            id=cluster_id,
            primary_title=primary.title,
            primary_source=primary.source,
            primary_link=primary.link,
            source_count=len(sources),
            top_sources=sources[:MAX_TOP_SOURCES],
            first_seen=min(i.published_at for i in items),
            last_updated=max(i.published_at for i in items),
            all_items=list(items),
            is_alert=any(contains_alert_keyword(i.title)[0] for i in items),
        )

        if len(items) == 1:
            event.velocity = calculate_velocity(event)
        return event

    @staticmethod
    def _make_id(seed: RawItem, seen_ids: set[str]) -> str:
        digest = hashlib.md5(f"{seed.link}|{seed.title}".encode()).hexdigest()[:12]
        cluster_id = f"cluster-{digest}"
        suffix = 1
        while cluster_id in seen_ids:
            suffix += 1
            cluster_id = f"cluster-{digest}-{suffix}"
        seen_ids.add(cluster_id)
        return cluster_id


def cluster_items(
    items: Iterable[Any], source_tiers: dict[str, int] | None = None
) -> list[ClusteredEvent]:
    """Cluster one batch with the default threshold."""
    return ClusterEngine(source_tiers=source_tiers).cluster(items)
