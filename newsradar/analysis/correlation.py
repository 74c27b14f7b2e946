"""
Correlation engine - links news clusters to markets and prediction markets.

Detects:
- Velocity spikes (clusters reported at six or more sources per hour)
- News leading markets (cluster entity or topic symbol moved 1.5%+)
- Prediction markets leading news (shared keywords, odds moved 5+ points)
- Keyword convergence (one topic across 3+ clusters from 3+ sources)
"""

import hashlib
import re
from collections import defaultdict
from typing import Iterable

from loguru import logger

from newsradar.analysis.config import (
    CORRELATION_TOPICS,
    STOP_WORDS,
    CorrelationTopic,
    detect_topics,
)
from newsradar.analysis.entities import EntityExtractor, EntityIndex
from newsradar.analysis.types import (
    ClusteredEvent,
    CorrelationKind,
    CorrelationSignal,
    MarketQuote,
    PredictionMarket,
)
from newsradar.analysis.velocity import SPIKE_THRESHOLD, calculate_velocity

_WORD = re.compile(r"[a-z][a-z'-]+")


def significant_keywords(text: str) -> set[str]:
    """Lowercased words of four or more letters that are not stop words."""
    return {
        w for w in _WORD.findall(text.lower()) if len(w) >= 4 and w not in STOP_WORDS
    }


def _signal_id(kind: str, *parts: str) -> str:
    digest = hashlib.sha1("|".join((kind, *parts)).encode()).hexdigest()[:12]
    return f"{kind}-{digest}"


class CorrelationEngine:
    """
    Cross-domain correlation over one pass of clusters, predictions and
    market quotes. Only the previous pass's prediction odds and market
    moves are remembered; ``reset`` forgets them.
    """

    MARKET_MOVE_THRESHOLD = 1.5
    PREDICTION_MOVE_THRESHOLD = 5.0
    MIN_SHARED_KEYWORDS = 2
    CONVERGENCE_MIN_CLUSTERS = 3
    CONVERGENCE_MIN_SOURCES = 3
    TOPIC_SYMBOL_CONFIDENCE = 0.7

    def __init__(self, entity_index: EntityIndex | None = None):
        self._extractor = EntityExtractor(entity_index)
        self._previous_odds: dict[str, float] = {}
        self._previous_moves: dict[str, float] = {}

    @staticmethod
    def _format_topic_name(topic_id: str) -> str:
        return topic_id.replace("-", " ").title()

    def analyze_correlations(
        self,
        clusters: list[ClusteredEvent],
        predictions: list[PredictionMarket],
        markets: list[MarketQuote],
    ) -> list[CorrelationSignal]:
        signals: dict[tuple[str, str, str], CorrelationSignal] = {}

        def emit(key_extra: str, signal: CorrelationSignal) -> None:
            key = (signal.kind, signal.related_cluster_id, key_extra)
            if key not in signals:
                signals[key] = signal

        quotes = {m.symbol.upper(): m for m in markets if m.change_percent is not None}

        for cluster in clusters:
            velocity_signal = self._velocity_spike(cluster)
            if velocity_signal:
                emit("", velocity_signal)

            for signal in self._news_leads_markets(cluster, quotes):
                emit(signal.related_market_symbol or "", signal)

            for title, signal in self._prediction_leads_news(cluster, predictions):
                emit(title, signal)

        for topic_id, signal in self._keyword_convergence(clusters):
            emit(topic_id, signal)

        self._previous_odds = {p.title: p.yes_price for p in predictions}
        self._previous_moves = {s: q.change_percent for s, q in quotes.items()}

        results = sorted(signals.values(), key=lambda s: (-s.strength, s.id))
        counts: dict[str, int] = defaultdict(int)
        for signal in results:
            counts[signal.kind] += 1
        logger.info(
            f"[Correlation] {len(results)} signals from {len(clusters)} clusters: "
            f"{dict(counts)}"
        )
        return results

    def reset(self) -> None:
        self._previous_odds.clear()
        self._previous_moves.clear()

    # ------------------------------------------------------------- detectors

    def _velocity_spike(self, cluster: ClusteredEvent) -> CorrelationSignal | None:
        velocity = cluster.velocity or calculate_velocity(cluster)
        if velocity.level != "spike":
            return None

        rate = velocity.sources_per_hour
        strength = min(1.0, 0.5 + (rate - SPIKE_THRESHOLD) / (2 * SPIKE_THRESHOLD))
        return self._signal(
            "velocity_spike",
            cluster,
            strength=strength,
            title=f"Velocity spike: {cluster.primary_title}",
            description=(
                f"{len(cluster.all_items)} reports from {cluster.source_count} "
                f"sources at {rate}/hr, trend {velocity.trend}"
            ),
        )

    def _news_leads_markets(
        self, cluster: ClusteredEvent, quotes: dict[str, MarketQuote]
    ) -> list[CorrelationSignal]:
        if not quotes:
            return []

        # symbol -> confidence of the link between cluster and symbol
        linked: dict[str, float] = {}
        entities = cluster.entities
        if entities is None:
            entities = self._extractor.extract_entities_from_cluster(cluster).entities
        for entity in entities:
            symbol = entity.entity_id.upper()
            if symbol in quotes:
                linked[symbol] = max(linked.get(symbol, 0.0), entity.confidence)
        for topic in self._topics_for(cluster):
            for symbol in topic.symbols:
                if symbol in quotes and symbol not in linked:
                    linked[symbol] = self.TOPIC_SYMBOL_CONFIDENCE

        found = []
        for symbol in sorted(linked):
            quote = quotes[symbol]
            change = quote.change_percent or 0.0
            if abs(change) < self.MARKET_MOVE_THRESHOLD:
                continue

            description = f"{quote.name or symbol} {change:+.2f}% alongside {cluster.source_count} sources"
            previous = self._previous_moves.get(symbol)
            if previous is not None:
                description += f" (previous pass {previous:+.2f}%)"

            found.append(
                self._signal(
                    "news_leads_markets",
                    cluster,
                    symbol=symbol,
                    strength=min(1.0, abs(change) / 5.0) * linked[symbol],
                    title=f"{symbol} moving on: {cluster.primary_title}",
                    description=description,
                )
            )
        return found

    def _prediction_leads_news(
        self, cluster: ClusteredEvent, predictions: Iterable[PredictionMarket]
    ) -> list[tuple[str, CorrelationSignal]]:
        cluster_words = significant_keywords(cluster.primary_title)
        found = []
        for market in predictions:
            previous = self._previous_odds.get(market.title)
            if previous is None:
                continue
            move = market.yes_price - previous
            if abs(move) < self.PREDICTION_MOVE_THRESHOLD:
                continue

            shared = cluster_words & significant_keywords(market.title)
            if len(shared) < self.MIN_SHARED_KEYWORDS:
                continue

            strength = min(1.0, abs(move) / 20.0 + 0.1 * len(shared))
            found.append(
                (
                    market.title,
                    self._signal(
                        "prediction_leads_news",
                        cluster,
                        extra=market.title,
                        strength=strength,
                        title=f"Prediction market moved: {market.title}",
                        description=(
                            f"Odds {previous:.0f}% -> {market.yes_price:.0f}% "
                            f"({move:+.0f} pts); shared: {', '.join(sorted(shared))}"
                        ),
                    ),
                )
            )
        return found

    def _keyword_convergence(
        self, clusters: list[ClusteredEvent]
    ) -> list[tuple[str, CorrelationSignal]]:
        by_topic: dict[str, list[ClusteredEvent]] = defaultdict(list)
        for cluster in clusters:
            for topic in self._topics_for(cluster):
                by_topic[topic.id].append(cluster)

        found = []
        for topic in CORRELATION_TOPICS:
            matched = by_topic.get(topic.id, [])
            if len(matched) < self.CONVERGENCE_MIN_CLUSTERS:
                continue
            sources = {item.source for c in matched for item in c.all_items}
            sources.update(c.primary_source for c in matched)
            if len(sources) < self.CONVERGENCE_MIN_SOURCES:
                continue

            anchor = max(matched, key=lambda c: (c.last_updated, c.id))
            strength = min(1.0, 0.3 + 0.1 * len(matched) + 0.05 * len(sources))
            found.append(
                (
                    topic.id,
                    self._signal(
                        "keyword_convergence",
                        anchor,
                        symbol=topic.symbols[0] if topic.symbols else None,
                        extra=topic.id,
                        strength=strength,
                        title=f"{self._format_topic_name(topic.id)} converging across {len(sources)} sources",
                        description=(
                            f"{len(matched)} clusters in {topic.category}: "
                            + "; ".join(c.primary_title for c in matched[:3])
                        ),
                    ),
                )
            )
        return found

    # --------------------------------------------------------------- helpers

    @staticmethod
    def _topics_for(cluster: ClusteredEvent) -> list[CorrelationTopic]:
        text = " ".join([cluster.primary_title, *(i.title for i in cluster.all_items)])
        return detect_topics(text)

    @staticmethod
    def _signal(
        kind: CorrelationKind,
        cluster: ClusteredEvent,
        *,
        strength: float,
        title: str,
        description: str,
        symbol: str | None = None,
        extra: str = "",
    ) -> CorrelationSignal:
        return CorrelationSignal(
            id=_signal_id(kind, cluster.id, symbol or "", extra),
            kind=kind,
            related_cluster_id=cluster.id,
            related_market_symbol=symbol,
            strength=round(max(0.0, strength), 3),
            title=title,
            description=description,
            timestamp=cluster.last_updated,
        )
