import pytest
import pytest_asyncio

from newsradar.analysis.baseline import TemporalBaselineService
from newsradar.datastore import CachedJsonRepository, Database, SqlJsonStore


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'newsradar.db'}")
    await db.init()
    yield db
    await db.close()


@pytest.mark.asyncio
async def test_set_get_and_upsert(database, clock):
    store = SqlJsonStore(database, clock)

    await store.set_json("baseline:news:global:3:3", {"mean": 1.5}, ttl_seconds=60)
    await store.set_json("baseline:news:global:3:3", {"mean": 2.5}, ttl_seconds=60)

    assert await store.get_json("baseline:news:global:3:3") == {"mean": 2.5}
    assert await store.get_json("missing") is None


@pytest.mark.asyncio
async def test_mget_keeps_order_and_skips_expired(database, clock):
    store = SqlJsonStore(database, clock)
    await store.set_json("a", [1], ttl_seconds=10)
    await store.set_json("b", [2], ttl_seconds=1000)

    assert await store.mget_json(["b", "x", "a"]) == [[2], None, [1]]

    clock.advance(11)
    assert await store.mget_json(["a", "b"]) == [None, [2]]
    assert await store.cleanup_expired() == 1


@pytest.mark.asyncio
async def test_failed_session_rolls_back(database, clock):
    with pytest.raises(RuntimeError):
        async with database.session() as session:
            await CachedJsonRepository(session, clock).set("k", {"v": 1}, ttl_seconds=60)
            raise RuntimeError("abort")

    assert await SqlJsonStore(database, clock).get_json("k") is None


def test_uninitialized_database_raises(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'unused.db'}")
    with pytest.raises(RuntimeError, match="not initialized"):
        db.session_factory()


@pytest.mark.asyncio
async def test_baselines_persist_in_database(database, clock):
    service = TemporalBaselineService(SqlJsonStore(database, clock), clock=clock)
    await service.report_metrics([{"type": "vessels", "count": c} for c in range(10, 20)])

    fresh = TemporalBaselineService(SqlJsonStore(database, clock), clock=clock)
    anomaly = await fresh.check_anomaly("vessels", "global", 40)
    assert anomaly is not None
    assert anomaly.expected_count == 15
