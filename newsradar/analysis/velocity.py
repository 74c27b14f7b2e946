"""
Velocity analyzer - publication rate, trend and tone of a cluster.
"""

import re
from typing import Awaitable, Callable

from loguru import logger

from newsradar.analysis.config import NEGATIVE_WORDS, POSITIVE_WORDS
from newsradar.analysis.types import ClusteredEvent, SentimentLabel, VelocityMetrics

HOUR_SECONDS = 3600.0
MIN_SPAN_HOURS = 0.25
ELEVATED_THRESHOLD = 3
SPIKE_THRESHOLD = 6
TREND_RATIO = 1.5

_TOKEN_SPLIT = re.compile(r"\W+")

# titles -> [{"label": "positive" | "negative" | "neutral", "score": float}]
SentimentClassifier = Callable[[list[str]], Awaitable[list[dict]]]


def analyze_sentiment(text: str) -> tuple[SentimentLabel, int]:
    """Lexicon score: +1 per positive token, -1 per negative token."""
    score = 0
    for word in _TOKEN_SPLIT.split(text.lower()):
        if word in NEGATIVE_WORDS:
            score -= 1
        if word in POSITIVE_WORDS:
            score += 1

    if score < -1:
        return "negative", score
    if score > 1:
        return "positive", score
    return "neutral", score


def get_velocity_level(sources_per_hour: float) -> str:
    if sources_per_hour >= SPIKE_THRESHOLD:
        return "spike"
    if sources_per_hour >= ELEVATED_THRESHOLD:
        return "elevated"
    return "normal"


def calculate_velocity(cluster: ClusteredEvent) -> VelocityMetrics:
    """Pure function of the cluster's items and time span."""
    items = cluster.all_items

    if len(items) <= 1:
        sentiment, score = analyze_sentiment(cluster.primary_title)
        return VelocityMetrics(
            sources_per_hour=0,
            level="normal",
            trend="stable",
            sentiment=sentiment,
            sentiment_score=score,
        )

    span_seconds = (cluster.last_updated - cluster.first_seen).total_seconds()
    span_hours = max(span_seconds / HOUR_SECONDS, MIN_SPAN_HOURS)
    sources_per_hour = len(items) / span_hours

    midpoint = cluster.first_seen.timestamp() + span_seconds / 2
    recent = sum(1 for i in items if i.published_at.timestamp() > midpoint)
    older = len(items) - recent

    trend = "stable"
    if recent > older * TREND_RATIO:
        trend = "rising"
    elif older > recent * TREND_RATIO:
        trend = "falling"

    sentiment, score = analyze_sentiment(" ".join(i.title for i in items))

    return VelocityMetrics(
        sources_per_hour=round(sources_per_hour, 1),
        level=get_velocity_level(sources_per_hour),
        trend=trend,
        sentiment=sentiment,
        sentiment_score=score,
    )


def enrich_with_velocity(clusters: list[ClusteredEvent]) -> list[ClusteredEvent]:
    """Copies of ``clusters`` with velocity filled in."""
    return [
        cluster.model_copy(update={"velocity": calculate_velocity(cluster)})
        for cluster in clusters
    ]


def _classifier_sentiment(result: dict | None) -> tuple[SentimentLabel, float] | None:
    """Classifier result as (label, signed score), or None if unusable."""
    if not isinstance(result, dict):
        return None
    label = str(result.get("label", "")).lower()
    try:
        score = float(result.get("score", 0.0))
    except (TypeError, ValueError):
        logger.warning(f"[Velocity] Ignoring classifier result with bad score: {result}")
        return None
    if label == "negative":
        return "negative", -score
    if label == "positive":
        return "positive", score
    if label == "neutral":
        return "neutral", score
    logger.warning(f"[Velocity] Ignoring classifier result with unknown label: {result}")
    return None


async def calculate_velocity_with_classifier(
    cluster: ClusteredEvent, classifier: SentimentClassifier | None
) -> VelocityMetrics:
    """Velocity with classifier sentiment, falling back to the lexicon."""
    base = calculate_velocity(cluster)
    if classifier is None:
        return base

    try:
        results = await classifier([cluster.primary_title])
    except Exception as e:
        logger.warning(f"[Velocity] Sentiment classifier failed, using lexicon: {e}")
        return base

    override = _classifier_sentiment(results[0] if results else None)
    if override is None:
        return base
    sentiment, score = override
    return base.model_copy(update={"sentiment": sentiment, "sentiment_score": score})


async def enrich_with_velocity_classifier(
    clusters: list[ClusteredEvent], classifier: SentimentClassifier | None
) -> list[ClusteredEvent]:
    """Batch variant of ``calculate_velocity_with_classifier``."""
    if classifier is None or not clusters:
        return enrich_with_velocity(clusters)

    try:
        results = await classifier([c.primary_title for c in clusters])
    except Exception as e:
        logger.warning(f"[Velocity] Sentiment classifier failed, using lexicon: {e}")
        return enrich_with_velocity(clusters)

    enriched = []
    for i, cluster in enumerate(clusters):
        velocity = calculate_velocity(cluster)
        override = _classifier_sentiment(results[i] if i < len(results) else None)
        if override is not None:
            sentiment, score = override
            velocity = velocity.model_copy(
                update={"sentiment": sentiment, "sentiment_score": score}
            )
        enriched.append(cluster.model_copy(update={"velocity": velocity}))
    return enriched
