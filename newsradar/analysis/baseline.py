"""
Temporal baseline service - learns normal activity levels per event type,
region, weekday and month, and flags counts that deviate from them.

Baselines are kept as Welford running statistics in a JSON store
(``CacheManager`` in memory, ``SqlJsonStore`` on disk). Every store call
goes through a circuit breaker so a failing store degrades to
"still learning" instead of raising.
"""

import asyncio
import math
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, get_args

from loguru import logger
from pydantic import ValidationError

from newsradar.analysis.types import (
    AnomalySeverity,
    BaselineEntry,
    MetricUpdate,
    TemporalAnomaly,
    TemporalEventType,
)
from newsradar.services.cache import JsonStore
from newsradar.services.circuit_breaker import (
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
)

MIN_SAMPLES = 10
BASELINE_TTL_SECONDS = 90 * 24 * 3600
MAX_UPDATES_PER_CALL = 20
Z_THRESHOLD_LOW = 1.0
Z_THRESHOLD_HIGH = 2.0
Z_THRESHOLD_CRITICAL = 3.0

BREAKER_NAME = "baseline-store"

VALID_EVENT_TYPES: tuple[str, ...] = get_args(TemporalEventType)

_STORED_FIELDS = {"key", "mean", "m2", "sample_count", "last_updated"}

TYPE_LABELS: dict[str, str] = {
    "military_flights": "Military flights",
    "vessels": "Naval vessels",
    "protests": "Protests",
    "news": "News velocity",
    "ais_gaps": "Dark ship activity",
    "satellite_fires": "Satellite fire detections",
}

# Indexed by Sunday-first weekday number used in baseline keys
WEEKDAY_LABELS = (
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
)
MONTH_LABELS = (
    "", "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
)


def make_baseline_key(event_type: str, region: str, weekday: int, month: int) -> str:
    return f"baseline:{event_type}:{region}:{weekday}:{month}"


def get_severity(z_score: float) -> AnomalySeverity:
    if z_score >= Z_THRESHOLD_CRITICAL:
        return "critical"
    if z_score >= Z_THRESHOLD_HIGH:
        return "high"
    return "medium"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _format_count(count: float) -> str:
    return str(int(count)) if float(count).is_integer() else f"{count:g}"


def format_anomaly_message(
    event_type: str, count: float, mean: float, multiplier: float, when: datetime
) -> str:
    weekday = WEEKDAY_LABELS[when.isoweekday() % 7]
    month = MONTH_LABELS[when.month]
    mult = f"{multiplier:.1f}x" if multiplier < 10 else f"{_round_half_up(multiplier)}x"
    label = TYPE_LABELS.get(event_type, event_type)
    return (
        f"{label} {mult} normal for {weekday} ({month}) — "
        f"{_format_count(count)} vs baseline {_round_half_up(mean)}"
    )


class TemporalBaselineService:
    """
    Usage:
        service = TemporalBaselineService(CacheManager())
        await service.report_metrics([MetricUpdate(type="vessels", count=42)])
        anomaly = await service.check_anomaly("vessels", "global", 80)
    """

    def __init__(
        self,
        store: JsonStore,
        registry: CircuitBreakerRegistry | None = None,
        *,
        z_threshold: float = Z_THRESHOLD_LOW,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._registry = registry or CircuitBreakerRegistry()
        self._breaker = self._registry.get(
            BREAKER_NAME, CircuitBreakerConfig(cache_results=False)
        )
        self.z_threshold = z_threshold
        self._clock = clock
        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _key_for(self, event_type: str, region: str, when: datetime) -> str:
        return make_baseline_key(event_type, region, when.isoweekday() % 7, when.month)

    def _is_stale(self, entry: BaselineEntry, now: datetime) -> bool:
        if entry.last_updated is None:
            return False
        return now - entry.last_updated > timedelta(seconds=BASELINE_TTL_SECONDS)

    @staticmethod
    def _parse(raw: Any) -> BaselineEntry | None:
        if raw is None:
            return None
        try:
            return BaselineEntry.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"[Baseline] Discarding malformed entry: {e}")
            return None

    async def report_metrics(
        self, updates: list[MetricUpdate | dict[str, Any]]
    ) -> None:
        """
        Fold one observation per update into its baseline.

        Never raises: malformed updates are skipped, store failures are
        absorbed by the breaker. Only the first 20 updates are applied.
        """
        try:
            await self._report(updates)
        except Exception as e:
            logger.warning(f"[Baseline] Update failed: {e}")

    async def _report(self, updates: list[MetricUpdate | dict[str, Any]]) -> None:
        if len(updates) > MAX_UPDATES_PER_CALL:
            logger.warning(
                f"[Baseline] {len(updates)} updates, applying first {MAX_UPDATES_PER_CALL}"
            )

        valid: list[MetricUpdate] = []
        for raw in updates[:MAX_UPDATES_PER_CALL]:
            try:
                update = raw if isinstance(raw, MetricUpdate) else MetricUpdate.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"[Baseline] Skipping invalid update: {e}")
                continue
            if not math.isfinite(update.count):
                continue
            valid.append(update)

        if not valid:
            return

        async with self._lock:
            now = self._now()
            keys = [self._key_for(u.type, u.region or "global", now) for u in valid]
            unique_keys = list(dict.fromkeys(keys))

            stored = await self._breaker.execute(
                lambda: self._store.mget_json(unique_keys), fallback=None
            )
            if stored is None:
                logger.warning("[Baseline] Store unavailable, skipping update")
                return

            entries: dict[str, BaselineEntry] = {}
            for key, raw in zip(unique_keys, stored):
                entry = self._parse(raw)
                if entry is None or self._is_stale(entry, now):
                    entry = BaselineEntry(key=key)
                entries[key] = entry

            for key, update in zip(keys, valid):
                entries[key] = entries[key].with_observation(update.count, now)

            for key, entry in entries.items():
                payload = entry.model_dump(mode="json", include=_STORED_FIELDS)
                await self._breaker.execute(
                    lambda key=key, payload=payload: self._store.set_json(
                        key, payload, BASELINE_TTL_SECONDS
                    ),
                    fallback=None,
                )

        logger.debug(f"[Baseline] Updated {len(entries)} baselines")

    async def check_anomaly(
        self, event_type: str, region: str | None, count: float
    ) -> TemporalAnomaly | None:
        """Anomaly for ``count``, or None while learning or within normal range."""
        if event_type not in VALID_EVENT_TYPES or not math.isfinite(count):
            logger.warning(f"[Baseline] Invalid check: type={event_type!r} count={count!r}")
            return None

        region = region or "global"
        now = self._now()
        key = self._key_for(event_type, region, now)

        entry = self._parse(
            await self._breaker.execute(lambda: self._store.get_json(key), fallback=None)
        )
        if entry is None or entry.sample_count < MIN_SAMPLES or self._is_stale(entry, now):
            return None

        std_dev = entry.std_dev
        z_score = abs(count - entry.mean) / std_dev if std_dev > 0 else 0.0
        if z_score < self.z_threshold:
            return None

        if entry.mean > 0:
            multiplier = round(count / entry.mean, 2)
        else:
            multiplier = 999.0 if count > 0 else 1.0

        return TemporalAnomaly(
            type=event_type,
            region=region,
            current_count=count,
            expected_count=_round_half_up(entry.mean),
            z_score=round(z_score, 2),
            severity=get_severity(z_score),
            message=format_anomaly_message(event_type, count, entry.mean, multiplier, now),
        )

    async def update_and_check(
        self, metrics: list[MetricUpdate | dict[str, Any]]
    ) -> list[TemporalAnomaly]:
        """
        Report ``metrics`` in the background and check each one now.

        Returns anomalies sorted by descending z-score.
        """
        task = asyncio.create_task(self.report_metrics(list(metrics)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        checks = []
        for raw in metrics:
            try:
                m = raw if isinstance(raw, MetricUpdate) else MetricUpdate.model_validate(raw)
            except ValidationError:
                continue
            checks.append(self.check_anomaly(m.type, m.region, m.count))

        results = await asyncio.gather(*checks, return_exceptions=True)
        anomalies = []
        for result in results:
            if isinstance(result, BaseException):
                logger.warning(f"[Baseline] Check failed: {result}")
            elif result is not None:
                anomalies.append(result)

        anomalies.sort(key=lambda a: -a.z_score)
        return anomalies

    async def wait_for_pending(self) -> None:
        """Wait for background reports started by ``update_and_check``."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def get_status(self) -> str:
        return self._breaker.get_status()
