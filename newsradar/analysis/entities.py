"""
Entity index and extractor - tags headlines and clusters with known
companies, countries, commodities and indices.
"""

import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from newsradar.analysis.entity_registry import ENTITY_REGISTRY
from newsradar.analysis.types import (
    ClusteredEvent,
    EntityEntry,
    EntityMatch,
    EntityMention,
    EntityNewsMatch,
    ExtractedEntity,
    NewsEntityContext,
)

MIN_ALIAS_LENGTH = 3
LONG_ALIAS_LENGTH = 4
LONG_ALIAS_CONFIDENCE = 0.95
SHORT_ALIAS_CONFIDENCE = 0.85
KEYWORD_CONFIDENCE = 0.7

CLUSTER_ITEM_LIMIT = 5
CLUSTER_ITEM_DISCOUNT = 0.9
RELATED_MATCH_DISCOUNT = 0.8


@dataclass
class EntityIndex:
    """Lookup tables over the registry; read-only once built."""

    by_id: dict[str, EntityEntry] = field(default_factory=dict)
    by_alias: dict[str, str] = field(default_factory=dict)
    by_keyword: dict[str, set[str]] = field(default_factory=dict)
    by_sector: dict[str, set[str]] = field(default_factory=dict)
    by_type: dict[str, set[str]] = field(default_factory=dict)
    _alias_patterns: list[tuple[str, str, re.Pattern]] = field(
        default_factory=list, repr=False
    )

    def lookup_by_alias(self, alias: str) -> EntityEntry | None:
        entity_id = self.by_alias.get(alias.lower())
        return self.by_id.get(entity_id) if entity_id else None

    def lookup_by_keyword(self, keyword: str) -> list[EntityEntry]:
        return self._resolve(self.by_keyword.get(keyword.lower(), ()))

    def lookup_by_sector(self, sector: str) -> list[EntityEntry]:
        return self._resolve(self.by_sector.get(sector.lower(), ()))

    def find_related(self, entity_id: str) -> list[EntityEntry]:
        entity = self.by_id.get(entity_id)
        if entity is None:
            return []
        return [self.by_id[r] for r in entity.related if r in self.by_id]

    def display_name(self, entity_id: str) -> str:
        entity = self.by_id.get(entity_id)
        return entity.name if entity else entity_id

    def find_entities_in_text(self, text: str) -> list[EntityMatch]:
        """
        Match aliases on word boundaries, then keywords as substrings.

        Each entity is reported once, by its first matching alias or keyword.
        Results are ordered by confidence, then by position in the text.
        """
        matches: list[EntityMatch] = []
        seen: set[str] = set()

        for alias, entity_id, pattern in self._alias_patterns:
            if entity_id in seen:
                continue
            found = pattern.search(text)
            if found is None:
                continue
            matches.append(
                EntityMatch(
                    entity_id=entity_id,
                    matched_text=found.group(0),
                    match_type="alias",
                    confidence=(
                        LONG_ALIAS_CONFIDENCE
                        if len(alias) > LONG_ALIAS_LENGTH
                        else SHORT_ALIAS_CONFIDENCE
                    ),
                    position=found.start(),
                )
            )
            seen.add(entity_id)

        text_lower = text.lower()
        for keyword, entity_ids in self.by_keyword.items():
            if len(keyword) < MIN_ALIAS_LENGTH:
                continue
            position = text_lower.find(keyword)
            if position < 0:
                continue
            for entity_id in sorted(entity_ids):
                if entity_id in seen:
                    continue
                matches.append(
                    EntityMatch(
                        entity_id=entity_id,
                        matched_text=keyword,
                        match_type="keyword",
                        confidence=KEYWORD_CONFIDENCE,
                        position=position,
                    )
                )
                seen.add(entity_id)

        matches.sort(key=lambda m: (-m.confidence, m.position))
        return matches

    def _resolve(self, ids: Iterable[str]) -> list[EntityEntry]:
        return [self.by_id[i] for i in sorted(ids) if i in self.by_id]


def build_entity_index(entries: Iterable[EntityEntry]) -> EntityIndex:
    index = EntityIndex()

    for entity in entries:
        index.by_id[entity.id] = entity

        for alias in entity.aliases:
            index.by_alias[alias.lower()] = entity.id
        index.by_alias[entity.id.lower()] = entity.id
        index.by_alias[entity.name.lower()] = entity.id

        for keyword in entity.keywords:
            index.by_keyword.setdefault(keyword.lower(), set()).add(entity.id)

        if entity.sector:
            index.by_sector.setdefault(entity.sector.lower(), set()).add(entity.id)

        index.by_type.setdefault(entity.type, set()).add(entity.id)

    for alias, entity_id in index.by_alias.items():
        if len(alias) < MIN_ALIAS_LENGTH:
            continue
        pattern = re.compile(rf"\b{re.escape(alias)}\b", re.IGNORECASE)
        index._alias_patterns.append((alias, entity_id, pattern))

    return index


def default_entity_index() -> EntityIndex:
    """Index over the bundled registry."""
    return build_entity_index(ENTITY_REGISTRY)


class EntityExtractor:
    """
    Attaches registry entities to headlines and clusters.

    Usage:
        extractor = EntityExtractor(default_entity_index())
        contexts = extractor.extract_entities_from_clusters(clusters)
        matches = extractor.find_news_for_entity("iran", contexts)
    """

    def __init__(self, index: EntityIndex | None = None):
        self.index = index or default_entity_index()

    def extract_entities_from_title(self, title: str) -> list[ExtractedEntity]:
        return [
            ExtractedEntity(
                entity_id=m.entity_id,
                name=self.index.display_name(m.entity_id),
                matched_text=m.matched_text,
                match_type=m.match_type,
                confidence=m.confidence,
            )
            for m in self.index.find_entities_in_text(title)
        ]

    def extract_entities_from_cluster(self, cluster: ClusteredEvent) -> NewsEntityContext:
        found: dict[str, ExtractedEntity] = {}

        for entity in self.extract_entities_from_title(cluster.primary_title):
            found.setdefault(entity.entity_id, entity)

        # Secondary titles add entities the primary title missed
        if len(cluster.all_items) > 1:
            for item in cluster.all_items[:CLUSTER_ITEM_LIMIT]:
                for entity in self.extract_entities_from_title(item.title):
                    if entity.entity_id in found:
                        continue
                    found[entity.entity_id] = entity.model_copy(
                        update={"confidence": entity.confidence * CLUSTER_ITEM_DISCOUNT}
                    )

        entities = sorted(found.values(), key=lambda e: -e.confidence)

        related: list[str] = []
        for entity in entities:
            for rel in self.index.find_related(entity.entity_id):
                if rel.id not in related:
                    related.append(rel.id)

        return NewsEntityContext(
            cluster_id=cluster.id,
            title=cluster.primary_title,
            entities=entities,
            primary_entity=entities[0].entity_id if entities else None,
            related_entity_ids=related,
        )

    def extract_entities_from_clusters(
        self, clusters: Iterable[ClusteredEvent]
    ) -> dict[str, NewsEntityContext]:
        return {c.id: self.extract_entities_from_cluster(c) for c in clusters}

    def find_news_for_entity(
        self, entity_id: str, contexts: Mapping[str, NewsEntityContext]
    ) -> list[EntityNewsMatch]:
        """Clusters mentioning the entity directly, or one of its related entities."""
        entity = self.index.by_id.get(entity_id)
        if entity is None:
            return []

        wanted = {entity_id, *entity.related}
        matches: list[EntityNewsMatch] = []

        for cluster_id, context in contexts.items():
            direct = next((e for e in context.entities if e.entity_id == entity_id), None)
            if direct is not None:
                matches.append(
                    EntityNewsMatch(
                        cluster_id=cluster_id,
                        title=context.title,
                        confidence=direct.confidence,
                    )
                )
                continue

            related = next((e for e in context.entities if e.entity_id in wanted), None)
            if related is not None:
                matches.append(
                    EntityNewsMatch(
                        cluster_id=cluster_id,
                        title=context.title,
                        confidence=related.confidence * RELATED_MATCH_DISCOUNT,
                    )
                )

        matches.sort(key=lambda m: -m.confidence)
        return matches

    def find_news_for_market_symbol(
        self, symbol: str, contexts: Mapping[str, NewsEntityContext]
    ) -> list[EntityNewsMatch]:
        return self.find_news_for_entity(symbol, contexts)

    def get_top_entities_from_news(
        self, contexts: Mapping[str, NewsEntityContext], limit: int = 10
    ) -> list[EntityMention]:
        counts: dict[str, int] = defaultdict(int)
        confidence: dict[str, float] = defaultdict(float)

        for context in contexts.values():
            for entity in context.entities:
                counts[entity.entity_id] += 1
                confidence[entity.entity_id] += entity.confidence

        mentions = [
            EntityMention(
                entity_id=entity_id,
                name=self.index.display_name(entity_id),
                mention_count=count,
                avg_confidence=confidence[entity_id] / count,
            )
            for entity_id, count in counts.items()
        ]
        mentions.sort(key=lambda m: -m.mention_count)
        return mentions[:limit]
