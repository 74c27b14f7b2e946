"""
Feed provider - pulls normalised headlines, quotes, prediction markets and
counters from collaborator JSON endpoints.

Each endpoint is fetched through ``ServiceClient`` so an unavailable one
yields its last good payload or an empty list.
"""

import asyncio
from dataclasses import replace
from datetime import timedelta
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from newsradar.analysis.types import MarketQuote, MetricUpdate, PredictionMarket, RawItem
from newsradar.services.circuit_breaker import CircuitBreakerConfig
from newsradar.services.client import ServiceClient

M = TypeVar("M", bound=BaseModel)


class FeedBatch(BaseModel):
    items: list[RawItem] = Field(default_factory=list)
    predictions: list[PredictionMarket] = Field(default_factory=list)
    markets: list[MarketQuote] = Field(default_factory=list)
    metrics: list[MetricUpdate] = Field(default_factory=list)


def parse_records(payload: Any, model: type[M], label: str) -> list[M]:
    """Validate each record, skipping malformed ones."""
    if isinstance(payload, dict):
        payload = payload.get("items") or payload.get("data") or []
    if not isinstance(payload, list):
        logger.warning(f"[Feeds] {label}: expected a list, got {type(payload).__name__}")
        return []

    records: list[M] = []
    skipped = 0
    for raw in payload:
        try:
            records.append(model.model_validate(raw))
        except ValidationError:
            skipped += 1
    if skipped:
        logger.warning(f"[Feeds] {label}: skipped {skipped} malformed records")
    return records


class JsonFeedProvider:
    """
    Usage:
        provider = JsonFeedProvider(client, headlines_url="https://...")
        batch = await provider()
    """

    def __init__(
        self,
        client: ServiceClient,
        headlines_url: str | None = None,
        markets_url: str | None = None,
        predictions_url: str | None = None,
        counters_url: str | None = None,
        breaker_config: CircuitBreakerConfig | None = None,
    ):
        self.client = client
        self.sources: dict[str, tuple[str | None, type[BaseModel]]] = {
            "headlines": (headlines_url, RawItem),
            "markets": (markets_url, MarketQuote),
            "predictions": (predictions_url, PredictionMarket),
            "counters": (counters_url, MetricUpdate),
        }

        # Cached feed payloads are served only when a fetch fails
        config = breaker_config or CircuitBreakerConfig()
        feed_config = replace(config, cache_ttl=timedelta(0))
        for service_id in self.sources:
            client.register_service(service_id, feed_config)

    async def _fetch(self, service_id: str) -> list[Any]:
        url, model = self.sources[service_id]
        if not url:
            return []
        payload = await self.client.fetch_json(service_id, url, fallback=[])
        return parse_records(payload, model, service_id)

    async def __call__(self) -> FeedBatch:
        items, markets, predictions, metrics = await asyncio.gather(
            self._fetch("headlines"),
            self._fetch("markets"),
            self._fetch("predictions"),
            self._fetch("counters"),
        )
        return FeedBatch(
            items=items, markets=markets, predictions=predictions, metrics=metrics
        )
