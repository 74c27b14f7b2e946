import httpx
import pytest

from helpers import NOW
from newsradar.analysis.types import MarketQuote, RawItem
from newsradar.feeds import FeedBatch, JsonFeedProvider, parse_records
from newsradar.scheduler import PipelineScheduler
from newsradar.services.cache import CacheManager
from newsradar.services.circuit_breaker import CircuitBreakerRegistry
from newsradar.services.client import ServiceClient

HEADLINE = {"source": "AP", "title": "Earthquake shakes capital", "published_at": NOW.isoformat()}


def test_parse_records_skips_malformed():
    records = parse_records({"items": [HEADLINE, {"title": "no source"}]}, RawItem, "headlines")
    assert [r.title for r in records] == ["Earthquake shakes capital"]
    assert parse_records("oops", RawItem, "headlines") == []


@pytest.mark.asyncio
async def test_provider_collects_all_feeds(clock):
    payloads = {
        "/headlines": [HEADLINE],
        "/markets": {"data": [{"symbol": "USO", "change_percent": 2.1}]},
        "/predictions": [{"title": "Will Iran talks resume?", "yes_price": 41}],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payloads[request.url.path])

    client = ServiceClient(
        CircuitBreakerRegistry(clock=clock), transport=httpx.MockTransport(handler)
    )
    provider = JsonFeedProvider(
        client,
        headlines_url="https://feeds.test/headlines",
        markets_url="https://feeds.test/markets",
        predictions_url="https://feeds.test/predictions",
    )

    batch = await provider()

    assert [i.title for i in batch.items] == ["Earthquake shakes capital"]
    assert batch.markets == [MarketQuote(symbol="USO", change_percent=2.1)]
    assert batch.predictions[0].yes_price == 41
    # no counters URL configured
    assert batch.metrics == []
    await client.close()


@pytest.mark.asyncio
async def test_provider_refetches_and_keeps_last_payload_on_failure(clock):
    calls = 0
    failing = False

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        if failing:
            return httpx.Response(500)
        return httpx.Response(200, json=[HEADLINE])

    client = ServiceClient(
        CircuitBreakerRegistry(clock=clock), transport=httpx.MockTransport(handler)
    )
    provider = JsonFeedProvider(client, headlines_url="https://feeds.test/headlines")

    await provider()
    await provider()
    assert calls == 2

    failing = True
    batch = await provider()
    assert [i.title for i in batch.items] == ["Earthquake shakes capital"]
    await client.close()


class RecordingPipeline:
    def __init__(self):
        self.batches = []
        self.counters = []

    async def process_batch(self, items, predictions, markets):
        self.batches.append(items)
        return "result"

    async def check_counters(self, metrics):
        self.counters.append(metrics)
        return []


@pytest.mark.asyncio
async def test_run_once_feeds_pipeline():
    pipeline = RecordingPipeline()
    batch = FeedBatch(items=[RawItem.model_validate(HEADLINE)])

    async def provider():
        return batch

    scheduler = PipelineScheduler(pipeline, provider)
    assert await scheduler.run_once() == "result"
    assert scheduler.last_result == "result"
    assert pipeline.batches == [batch.items]
    assert pipeline.counters == [[]]


@pytest.mark.asyncio
async def test_failed_run_is_logged_not_raised():
    async def provider():
        raise RuntimeError("feed down")

    scheduler = PipelineScheduler(RecordingPipeline(), provider)
    await scheduler._pipeline_job()
    assert scheduler.last_result is None


@pytest.mark.asyncio
async def test_start_and_stop():
    async def provider():
        return FeedBatch()

    scheduler = PipelineScheduler(RecordingPipeline(), provider, interval_minutes=15)
    scheduler.start(run_immediately=False)
    try:
        job = scheduler.scheduler.get_job("signal_pipeline")
        assert job is not None
        assert job.next_run_time is not None
        scheduler.start()
    finally:
        scheduler.stop()
    assert not scheduler.scheduler.running


@pytest.mark.asyncio
async def test_cleanup_job_uses_store(clock):
    store = CacheManager(clock=clock)
    await store.set_json("old", 1, ttl_seconds=1)
    clock.advance(2)

    async def provider():
        return FeedBatch()

    scheduler = PipelineScheduler(RecordingPipeline(), provider, cleanup=store.cleanup_expired)
    scheduler.start(run_immediately=False)
    try:
        assert scheduler.scheduler.get_job("store_cleanup") is not None
        await scheduler._cleanup_job()
    finally:
        scheduler.stop()
    assert store.get_stats().size == 0


@pytest.mark.asyncio
async def test_failing_cleanup_is_logged():
    async def cleanup():
        raise ConnectionError("database locked")

    async def provider():
        return FeedBatch()

    scheduler = PipelineScheduler(RecordingPipeline(), provider, cleanup=cleanup)
    await scheduler._cleanup_job()
