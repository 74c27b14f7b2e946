"""
Pipeline scheduler - runs the signal pipeline on an interval and keeps the
baseline store tidy.
"""

from datetime import datetime
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from newsradar.feeds import FeedBatch
from newsradar.pipeline import PipelineResult, SignalPipeline

FeedProvider = Callable[[], Awaitable[FeedBatch]]
# Removes expired documents, returns how many
StoreCleanup = Callable[[], Awaitable[int]]

CLEANUP_INTERVAL_HOURS = 1


class PipelineScheduler:
    """
    Pulls a batch from the feed provider and runs it through the pipeline.

    Usage:
        scheduler = PipelineScheduler(pipeline, provider, cleanup=store.cleanup_expired)
        scheduler.start()
    """

    def __init__(
        self,
        pipeline: SignalPipeline,
        provider: FeedProvider,
        interval_minutes: int = 5,
        cleanup: StoreCleanup | None = None,
    ):
        self.scheduler = AsyncIOScheduler()
        self.pipeline = pipeline
        self.provider = provider
        self.interval_minutes = interval_minutes
        self.cleanup = cleanup
        self._is_running = False
        self.last_result: PipelineResult | None = None

    def start(self, run_immediately: bool = True) -> None:
        """Start the scheduler."""
        if self._is_running:
            logger.warning("PipelineScheduler is already running")
            return

        job_options = {}
        if run_immediately:
            # None would add the job paused, so only pass an explicit time
            job_options["next_run_time"] = datetime.now()

        self.scheduler.add_job(
            self._pipeline_job,
            trigger="interval",
            minutes=self.interval_minutes,
            id="signal_pipeline",
            name="Signal Pipeline",
            replace_existing=True,
            max_instances=1,
            **job_options,
        )
        logger.info(f"Pipeline job: every {self.interval_minutes} min")

        if self.cleanup is not None:
            self.scheduler.add_job(
                self._cleanup_job,
                trigger="interval",
                hours=CLEANUP_INTERVAL_HOURS,
                id="store_cleanup",
                name="Baseline Store Cleanup",
                replace_existing=True,
            )
            logger.info(f"Store cleanup job: every {CLEANUP_INTERVAL_HOURS}h")

        self.scheduler.start()
        self._is_running = True

    def stop(self) -> None:
        """Stop the scheduler."""
        if not self._is_running:
            return
        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("PipelineScheduler stopped")

    async def run_once(self) -> PipelineResult:
        batch = await self.provider()
        result = await self.pipeline.process_batch(
            batch.items, batch.predictions, batch.markets
        )
        await self.pipeline.check_counters(batch.metrics)
        self.last_result = result
        return result

    async def _pipeline_job(self) -> None:
        try:
            await self.run_once()
        except Exception as e:
            logger.error(f"Pipeline run failed: {e}")

    async def _cleanup_job(self) -> None:
        try:
            removed = await self.cleanup()
        except Exception as e:
            logger.error(f"Store cleanup failed: {e}")
            return
        if removed:
            logger.info(f"Store cleanup removed {removed} expired baselines")
