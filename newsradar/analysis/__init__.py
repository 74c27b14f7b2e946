"""
News signal analysis: clustering, velocity, entities, trending keywords,
correlations and temporal baselines.
"""

from newsradar.analysis.types import (
    RawItem,
    ClusteredEvent,
    VelocityMetrics,
    EntityEntry,
    ExtractedEntity,
    NewsEntityContext,
    TrendingSignal,
    CorrelationSignal,
    MarketQuote,
    PredictionMarket,
    BaselineEntry,
    MetricUpdate,
    TemporalAnomaly,
)
from newsradar.analysis.clustering import ClusterEngine, cluster_items
from newsradar.analysis.velocity import calculate_velocity, enrich_with_velocity
from newsradar.analysis.entities import (
    EntityExtractor,
    EntityIndex,
    build_entity_index,
    default_entity_index,
)
from newsradar.analysis.trending import (
    TrendingConfig,
    TrendingConfigUpdate,
    TrendingKeywordDetector,
)
from newsradar.analysis.correlation import CorrelationEngine
from newsradar.analysis.baseline import TemporalBaselineService
from newsradar.analysis.worker import AnalysisWorkerManager

__all__ = [
    # Types
    "RawItem",
    "ClusteredEvent",
    "VelocityMetrics",
    "EntityEntry",
    "ExtractedEntity",
    "NewsEntityContext",
    "TrendingSignal",
    "CorrelationSignal",
    "MarketQuote",
    "PredictionMarket",
    "BaselineEntry",
    "MetricUpdate",
    "TemporalAnomaly",
    # Engines
    "ClusterEngine",
    "cluster_items",
    "calculate_velocity",
    "enrich_with_velocity",
    "EntityExtractor",
    "EntityIndex",
    "build_entity_index",
    "default_entity_index",
    "TrendingConfig",
    "TrendingConfigUpdate",
    "TrendingKeywordDetector",
    "CorrelationEngine",
    "TemporalBaselineService",
    "AnalysisWorkerManager",
]
