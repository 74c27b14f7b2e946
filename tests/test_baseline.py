import asyncio
from datetime import timedelta

import pytest

from helpers import NOW
from newsradar.analysis.baseline import (
    BASELINE_TTL_SECONDS,
    TemporalBaselineService,
    format_anomaly_message,
    get_severity,
    make_baseline_key,
)
from newsradar.analysis.types import MetricUpdate
from newsradar.services.cache import CacheManager
from newsradar.services.circuit_breaker import CircuitBreakerRegistry

FLIGHTS_KEY = "baseline:military_flights:global:3:3"


class BrokenStore:
    def __init__(self):
        self.calls = 0

    async def get_json(self, key):
        self.calls += 1
        raise ConnectionError("store offline")

    async def mget_json(self, keys):
        self.calls += 1
        raise ConnectionError("store offline")

    async def set_json(self, key, value, ttl_seconds):
        self.calls += 1
        raise ConnectionError("store offline")


@pytest.fixture
def store(clock):
    return CacheManager(clock=clock)


@pytest.fixture
def service(store, clock):
    return TemporalBaselineService(store, CircuitBreakerRegistry(clock=clock), clock=clock)


async def seed(store, key, mean=10.0, m2=76.0, sample_count=20, last_updated=NOW):
    await store.set_json(
        key,
        {
            "key": key,
            "mean": mean,
            "m2": m2,
            "sample_count": sample_count,
            "last_updated": last_updated.isoformat(),
        },
        ttl_seconds=BASELINE_TTL_SECONDS,
    )


def test_key_and_severity():
    assert make_baseline_key("vessels", "baltic", 0, 12) == "baseline:vessels:baltic:0:12"
    assert get_severity(1.2) == "medium"
    assert get_severity(2.0) == "high"
    assert get_severity(3.5) == "critical"


def test_message_format():
    assert (
        format_anomaly_message("military_flights", 16, 10.0, 1.6, NOW)
        == "Military flights 1.6x normal for Wednesday (March) — 16 vs baseline 10"
    )
    sunday = NOW + timedelta(days=4)
    assert (
        format_anomaly_message("ais_gaps", 120, 9.6, 12.5, sunday)
        == "Dark ship activity 13x normal for Sunday (March) — 120 vs baseline 10"
    )


@pytest.mark.asyncio
async def test_welford_statistics(service, store):
    await service.report_metrics(
        [MetricUpdate(type="military_flights", count=c) for c in (2, 4, 4, 4, 5, 5, 7, 9)]
    )
    entry = await store.get_json(FLIGHTS_KEY)
    assert entry["sample_count"] == 8
    assert entry["mean"] == pytest.approx(5.0)
    assert entry["m2"] == pytest.approx(32.0)
    assert entry["last_updated"].startswith("2024-03-06T12:00:00")


@pytest.mark.asyncio
async def test_learning_until_ten_samples(service):
    await service.report_metrics([{"type": "vessels", "count": 10 + i % 3} for i in range(9)])
    assert await service.check_anomaly("vessels", None, 500) is None

    await service.report_metrics([{"type": "vessels", "count": 11}])
    anomaly = await service.check_anomaly("vessels", None, 500)
    assert anomaly is not None
    assert anomaly.region == "global"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "count,severity,z",
    [(16, "critical", 3.0), (14, "high", 2.0), (12, "medium", 1.0), (4, "critical", 3.0)],
)
async def test_severity_by_z_score(service, store, count, severity, z):
    await seed(store, FLIGHTS_KEY)

    anomaly = await service.check_anomaly("military_flights", "global", count)

    assert anomaly.severity == severity
    assert anomaly.z_score == z
    assert anomaly.expected_count == 10


@pytest.mark.asyncio
async def test_within_normal_range(service, store):
    await seed(store, FLIGHTS_KEY)
    assert await service.check_anomaly("military_flights", "global", 11) is None


@pytest.mark.asyncio
async def test_anomaly_message(service, store):
    await seed(store, FLIGHTS_KEY)
    anomaly = await service.check_anomaly("military_flights", "global", 16)
    assert anomaly.message == (
        "Military flights 1.6x normal for Wednesday (March) — 16 vs baseline 10"
    )


@pytest.mark.asyncio
async def test_zero_mean_baseline(store, clock):
    service = TemporalBaselineService(store, z_threshold=0, clock=clock)
    await seed(store, "baseline:protests:global:3:3", mean=0.0, m2=0.0)
    anomaly = await service.check_anomaly("protests", "global", 4)
    assert anomaly.message == "Protests 999x normal for Wednesday (March) — 4 vs baseline 0"


@pytest.mark.asyncio
async def test_invalid_checks_return_none(service, store):
    await seed(store, FLIGHTS_KEY)
    assert await service.check_anomaly("earthquakes", "global", 16) is None
    assert await service.check_anomaly("military_flights", "global", float("nan")) is None


@pytest.mark.asyncio
async def test_invalid_updates_are_skipped(service, store):
    await service.report_metrics(
        [
            {"type": "earthquakes", "count": 3},
            {"type": "protests"},
            {"type": "protests", "count": float("inf")},
            {"type": "protests", "count": 3},
        ]
    )
    entry = await store.get_json("baseline:protests:global:3:3")
    assert entry["sample_count"] == 1


@pytest.mark.asyncio
async def test_only_first_twenty_updates_apply(service, store):
    await service.report_metrics([{"type": "vessels", "count": 1}] * 25)
    entry = await store.get_json("baseline:vessels:global:3:3")
    assert entry["sample_count"] == 20


@pytest.mark.asyncio
async def test_stale_baseline_restarts(service, store):
    await seed(store, FLIGHTS_KEY, last_updated=NOW - timedelta(days=91))
    assert await service.check_anomaly("military_flights", "global", 16) is None

    await service.report_metrics([{"type": "military_flights", "count": 7}])
    entry = await store.get_json(FLIGHTS_KEY)
    assert entry["sample_count"] == 1
    assert entry["mean"] == 7


@pytest.mark.asyncio
async def test_concurrent_reports_are_serialised(service, store):
    await asyncio.gather(
        *(service.report_metrics([{"type": "news", "count": 5}]) for _ in range(10))
    )
    entry = await store.get_json("baseline:news:global:3:3")
    assert entry["sample_count"] == 10


@pytest.mark.asyncio
async def test_failing_store_degrades_to_learning(clock):
    store = BrokenStore()
    service = TemporalBaselineService(store, CircuitBreakerRegistry(clock=clock), clock=clock)

    await service.report_metrics([{"type": "news", "count": 5}])
    assert await service.check_anomaly("news", "global", 50) is None
    assert service.get_status().startswith("temporarily unavailable")

    # open circuit stops hitting the store
    calls = store.calls
    assert await service.check_anomaly("news", "global", 50) is None
    assert store.calls == calls


@pytest.mark.asyncio
async def test_update_and_check(service, store):
    await seed(store, FLIGHTS_KEY)
    await seed(store, "baseline:protests:global:3:3")

    anomalies = await service.update_and_check(
        [
            {"type": "protests", "count": 13},
            {"type": "military_flights", "count": 16},
            {"type": "vessels", "count": 5},
            {"type": "earthquakes", "count": 1},
        ]
    )
    await service.wait_for_pending()

    assert [a.type for a in anomalies] == ["military_flights", "protests"]
    entry = await store.get_json(FLIGHTS_KEY)
    assert entry["sample_count"] == 21
