"""
newsradar entry point
Builds the signal pipeline from settings and runs it on a schedule.
"""

import asyncio
import sys
from datetime import timedelta

from loguru import logger

from newsradar.analysis.baseline import TemporalBaselineService
from newsradar.analysis.entities import EntityExtractor, default_entity_index
from newsradar.analysis.trending import TrendingConfig, TrendingKeywordDetector
from newsradar.analysis.worker import AnalysisWorkerManager
from newsradar.datastore.engine import Database
from newsradar.datastore.repositories import SqlJsonStore
from newsradar.feeds import JsonFeedProvider
from newsradar.pipeline import SignalPipeline
from newsradar.scheduler import PipelineScheduler
from newsradar.services.cache import CacheManager, JsonStore
from newsradar.services.circuit_breaker import CircuitBreakerConfig, CircuitBreakerRegistry
from newsradar.services.client import ServiceClient
from newsradar.settings import Settings, load_settings


def configure_logging(level: str) -> None:
    """Single stderr sink at ``level``."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def build_breaker_config(settings: Settings) -> CircuitBreakerConfig:
    return CircuitBreakerConfig(
        max_failures=settings.breaker_max_failures,
        cooldown=timedelta(seconds=settings.breaker_cooldown_seconds),
        cache_ttl=timedelta(seconds=settings.breaker_cache_ttl_seconds),
    )


async def main() -> None:
    """Main function."""
    settings = load_settings()
    configure_logging(settings.log_level)
    logger.info("Starting newsradar...")

    breaker_config = build_breaker_config(settings)
    registry = CircuitBreakerRegistry(breaker_config)
    client = ServiceClient(registry, default_timeout=settings.http_timeout_seconds)

    database: Database | None = None
    store: JsonStore
    if settings.baseline_store == "database":
        logger.info("Initializing database...")
        database = Database(settings.database_url, echo=settings.database_echo)
        await database.init()
        store = SqlJsonStore(database)
    else:
        store = CacheManager()

    index = default_entity_index()
    detector = TrendingKeywordDetector(
        TrendingConfig(
            blocked_terms=settings.trending_blocked_terms,
            min_spike_count=settings.trending_min_spike_count,
            spike_multiplier=settings.trending_spike_multiplier,
        ),
        entity_index=index,
    )
    worker = AnalysisWorkerManager(
        ready_timeout=settings.worker_ready_timeout_seconds,
        cluster_timeout=settings.cluster_timeout_seconds,
        correlation_timeout=settings.correlation_timeout_seconds,
    )
    baseline = TemporalBaselineService(
        store, registry, z_threshold=settings.baseline_z_threshold
    )
    pipeline = SignalPipeline(detector, worker, EntityExtractor(index), baseline)

    provider = JsonFeedProvider(
        client,
        headlines_url=settings.headlines_url,
        markets_url=settings.markets_url,
        predictions_url=settings.predictions_url,
        counters_url=settings.counters_url,
        breaker_config=breaker_config,
    )
    scheduler = PipelineScheduler(
        pipeline,
        provider,
        interval_minutes=settings.pipeline_interval_minutes,
        cleanup=store.cleanup_expired,
    )

    try:
        scheduler.start()

        # Keep running
        logger.info("newsradar is running. Press Ctrl+C to stop.")
        while True:
            await asyncio.sleep(60)

    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Received interrupt signal, shutting down...")
    finally:
        scheduler.stop()
        await pipeline.close()
        await client.close()
        if database is not None:
            logger.info("Closing database connections...")
            await database.close()
        logger.info("newsradar stopped")


if __name__ == "__main__":
    asyncio.run(main())
