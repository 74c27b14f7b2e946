"""
Signal pipeline - composes clustering, velocity, entities, trending
keywords, correlations and baselines into one pass over a batch.
"""

import asyncio
from typing import Any, Iterable

from loguru import logger
from pydantic import BaseModel, Field

from newsradar.analysis.baseline import TemporalBaselineService
from newsradar.analysis.clustering import cluster_items
from newsradar.analysis.entities import EntityExtractor
from newsradar.analysis.trending import TrendingKeywordDetector
from newsradar.analysis.types import (
    ClusteredEvent,
    CorrelationSignal,
    MarketQuote,
    MetricUpdate,
    NewsEntityContext,
    PredictionMarket,
    RawItem,
    TemporalAnomaly,
    TrendingSignal,
)
from newsradar.analysis.velocity import SentimentClassifier, enrich_with_velocity_classifier
from newsradar.analysis.worker import AnalysisWorkerManager
from newsradar.services.errors import WorkerError

# Upper bound on how long a batch waits for significance checks
CHECK_WAIT_SECONDS = 5.0


class PipelineResult(BaseModel):
    """Everything one pass produced."""

    clusters: list[ClusteredEvent] = Field(default_factory=list)
    entity_contexts: dict[str, NewsEntityContext] = Field(default_factory=dict)
    correlations: list[CorrelationSignal] = Field(default_factory=list)
    trending: list[TrendingSignal] = Field(default_factory=list)


class SignalPipeline:
    """
    Usage:
        pipeline = SignalPipeline(detector, worker, extractor, baseline)
        result = await pipeline.process_batch(items, predictions, markets)
        anomalies = await pipeline.check_counters(metrics)
    """

    def __init__(
        self,
        detector: TrendingKeywordDetector,
        worker: AnalysisWorkerManager,
        extractor: EntityExtractor,
        baseline: TemporalBaselineService,
        sentiment_classifier: SentimentClassifier | None = None,
        check_wait_seconds: float = CHECK_WAIT_SECONDS,
    ):
        self.detector = detector
        self.worker = worker
        self.extractor = extractor
        self.baseline = baseline
        self.sentiment_classifier = sentiment_classifier
        self.check_wait_seconds = check_wait_seconds

    async def process_batch(
        self,
        items: Iterable[RawItem | dict[str, Any]],
        predictions: list[PredictionMarket] | None = None,
        markets: list[MarketQuote] | None = None,
    ) -> PipelineResult:
        items = list(items)
        predictions = predictions or []
        markets = markets or []

        self.detector.ingest_headlines(items)

        try:
            clusters = await self.worker.cluster_news(items)
        except WorkerError as e:
            logger.warning(f"[Pipeline] Worker clustering failed, clustering in-process: {e}")
            clusters = await asyncio.to_thread(
                cluster_items, items, self.worker.source_tiers
            )

        clusters = await enrich_with_velocity_classifier(clusters, self.sentiment_classifier)

        contexts = self.extractor.extract_entities_from_clusters(clusters)
        clusters = [
            c.model_copy(update={"entities": contexts[c.id].entities}) for c in clusters
        ]

        try:
            correlations = await self.worker.analyze_correlations(
                clusters, predictions, markets
            )
        except WorkerError as e:
            logger.warning(f"[Pipeline] Correlation analysis failed: {e}")
            correlations = []

        # Slow checks stay scheduled and are drained by a later batch
        await self.detector.wait_for_pending(self.check_wait_seconds)
        trending = self.detector.drain_trending_signals()

        logger.info(
            f"[Pipeline] {len(items)} items -> {len(clusters)} clusters, "
            f"{len(correlations)} correlations, {len(trending)} trending"
        )
        return PipelineResult(
            clusters=clusters,
            entity_contexts=contexts,
            correlations=correlations,
            trending=trending,
        )

    async def check_counters(
        self, metrics: list[MetricUpdate | dict[str, Any]]
    ) -> list[TemporalAnomaly]:
        if not metrics:
            return []
        anomalies = await self.baseline.update_and_check(metrics)
        for anomaly in anomalies:
            logger.info(f"[Pipeline] Anomaly ({anomaly.severity}): {anomaly.message}")
        return anomalies

    def get_status(self) -> dict[str, Any]:
        return {
            "worker_ready": self.worker.ready,
            "baseline_store": self.baseline.get_status(),
            "tracked_terms": self.detector.get_tracked_term_count(),
        }

    async def close(self) -> None:
        self.worker.terminate()
        if not await self.detector.wait_for_pending(self.check_wait_seconds):
            self.detector.reset()
        await self.baseline.wait_for_pending()
