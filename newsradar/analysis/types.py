"""
Analysis types using Pydantic models.
"""

import math
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

VelocityLevel = Literal["normal", "elevated", "spike"]
TrendDirection = Literal["rising", "stable", "falling"]
SentimentLabel = Literal["negative", "neutral", "positive"]
AnomalySeverity = Literal["medium", "high", "critical"]
TemporalEventType = Literal[
    "military_flights",
    "vessels",
    "protests",
    "news",
    "ais_gaps",
    "satellite_fires",
]
CorrelationKind = Literal[
    "velocity_spike",
    "news_leads_markets",
    "prediction_leads_news",
    "keyword_convergence",
]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RawItem(BaseModel):
    """A single ingested headline."""

    model_config = ConfigDict(frozen=True)

    source: str
    title: str
    link: str = ""
    published_at: datetime

    @field_validator("published_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class VelocityMetrics(BaseModel):
    """Publication rate, trend and tone of one cluster."""

    sources_per_hour: float = 0.0
    level: VelocityLevel = "normal"
    trend: TrendDirection = "stable"
    sentiment: SentimentLabel = "neutral"
    sentiment_score: float = 0.0


class EntityEntry(BaseModel):
    """Registry record for a company, country, commodity or index."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: Literal["company", "country", "commodity", "index", "organization", "person"]
    name: str
    aliases: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    sector: str | None = None
    related: tuple[str, ...] = ()


class EntityMatch(BaseModel):
    """Raw match of an entity inside a piece of text."""

    entity_id: str
    matched_text: str
    match_type: Literal["alias", "keyword", "name"]
    confidence: float
    position: int


class ExtractedEntity(BaseModel):
    """Entity found in a headline."""

    entity_id: str
    name: str
    matched_text: str
    match_type: Literal["alias", "keyword", "name"]
    confidence: float


class ClusteredEvent(BaseModel):
    """Group of headlines describing the same event."""

    id: str
    primary_title: str
    primary_source: str
    primary_link: str = ""
    source_count: int = 1
    top_sources: list[str] = Field(default_factory=list)
    first_seen: datetime
    last_updated: datetime
    all_items: list[RawItem] = Field(default_factory=list)
    is_alert: bool = False
    velocity: VelocityMetrics | None = None
    entities: list[ExtractedEntity] | None = None

    @field_validator("first_seen", "last_updated")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class NewsEntityContext(BaseModel):
    """Entities attached to one cluster."""

    cluster_id: str
    title: str
    entities: list[ExtractedEntity] = Field(default_factory=list)
    primary_entity: str | None = None
    related_entity_ids: list[str] = Field(default_factory=list)


class EntityNewsMatch(BaseModel):
    """Cluster that mentions a requested entity."""

    cluster_id: str
    title: str
    confidence: float


class TrendingSignal(BaseModel):
    """Keyword whose mention rate surged past its baseline."""

    id: str
    type: Literal["keyword_spike"] = "keyword_spike"
    title: str
    description: str
    term: str
    mention_count: int
    source_count: int
    baseline: float
    multiplier: float | None = None
    confidence: float
    sample_headlines: list[str] = Field(default_factory=list)
    window_start: datetime
    window_end: datetime
    summary: str | None = None


class CorrelationSignal(BaseModel):
    """Co-occurrence between a news cluster and another data domain."""

    id: str
    kind: CorrelationKind
    related_cluster_id: str
    related_market_symbol: str | None = None
    strength: float
    title: str
    description: str = ""
    timestamp: datetime


class MarketQuote(BaseModel):
    """Normalised market quote supplied by the market data service."""

    symbol: str
    name: str = ""
    price: float | None = None
    change_percent: float | None = None


class PredictionMarket(BaseModel):
    """Normalised prediction market; ``yes_price`` is a percentage."""

    title: str
    yes_price: float
    volume: float | None = None
    url: str | None = None


class BaselineEntry(BaseModel):
    """Running mean/variance for one (type, region, weekday, month) bucket."""

    key: str
    mean: float = 0.0
    m2: float = 0.0
    sample_count: int = 0
    last_updated: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def variance(self) -> float:
        if self.sample_count < 2:
            return 0.0
        return max(0.0, self.m2 / (self.sample_count - 1))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def std_dev(self) -> float:
        return math.sqrt(self.variance)

    def with_observation(self, count: float, now: datetime) -> "BaselineEntry":
        """Welford update; returns a new entry so mean and m2 change together."""
        n = self.sample_count + 1
        delta = count - self.mean
        mean = self.mean + delta / n
        m2 = self.m2 + delta * (count - mean)
        return BaselineEntry(
            key=self.key, mean=mean, m2=m2, sample_count=n, last_updated=now
        )


class MetricUpdate(BaseModel):
    """Observed count for one event type in one region."""

    type: TemporalEventType
    region: str = "global"
    count: float


class TemporalAnomaly(BaseModel):
    """Count that deviates from its learned baseline."""

    type: TemporalEventType
    region: str
    current_count: float
    expected_count: int
    z_score: float
    severity: AnomalySeverity
    message: str


class EntityMention(BaseModel):
    """Aggregate mention statistics for one entity across clusters."""

    entity_id: str
    name: str
    mention_count: int
    avg_confidence: float
