"""
AnalysisWorkerManager - async interface to the analysis worker process.

The process is spawned lazily on first use. A reader thread forwards its
responses to the event loop; each request resolves its own future.
"""

import asyncio
import itertools
import multiprocessing as mp
import queue
import threading
import time
from typing import Any, Iterable

from loguru import logger
from pydantic import ValidationError

from newsradar.analysis.config import SOURCE_TIERS
from newsradar.analysis.types import (
    ClusteredEvent,
    CorrelationSignal,
    MarketQuote,
    PredictionMarket,
    RawItem,
)
from newsradar.analysis.worker_process import (
    RESPONSE_ADAPTER,
    ClusterRequest,
    ClusterResult,
    CorrelationRequest,
    CorrelationResult,
    ErrorResponse,
    ReadyResponse,
    ResetRequest,
    run_worker,
)
from newsradar.services.errors import (
    WorkerCrashedError,
    WorkerError,
    WorkerNotReadyError,
    WorkerResetError,
    WorkerTerminatedError,
    WorkerTimeoutError,
)

READY_TIMEOUT_SECONDS = 10.0
CLUSTER_TIMEOUT_SECONDS = 30.0
CORRELATION_TIMEOUT_SECONDS = 10.0

_POLL_INTERVAL = 0.2
_JOIN_TIMEOUT = 2.0


class AnalysisWorkerManager:
    """
    Usage:
        manager = AnalysisWorkerManager()
        clusters = await manager.cluster_news(items)
        signals = await manager.analyze_correlations(clusters, predictions, markets)
        manager.terminate()
    """

    def __init__(
        self,
        ready_timeout: float = READY_TIMEOUT_SECONDS,
        cluster_timeout: float = CLUSTER_TIMEOUT_SECONDS,
        correlation_timeout: float = CORRELATION_TIMEOUT_SECONDS,
        source_tiers: dict[str, int] | None = None,
    ):
        self.ready_timeout = ready_timeout
        self.cluster_timeout = cluster_timeout
        self.correlation_timeout = correlation_timeout
        self.source_tiers = source_tiers or SOURCE_TIERS

        self._ctx = mp.get_context("spawn")
        self._ids = itertools.count(1)
        self._process = None
        self._requests = None
        self._responses = None
        self._reader: threading.Thread | None = None
        self._stop: threading.Event | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

        self._is_ready = False
        self._ready_future: asyncio.Future | None = None
        self._ready_timer: asyncio.TimerHandle | None = None
        self._pending: dict[str, asyncio.Future] = {}

    @property
    def ready(self) -> bool:
        return self._is_ready

    # ------------------------------------------------------------ lifecycle

    def _start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._requests = self._ctx.Queue()
        self._responses = self._ctx.Queue()
        self._stop = threading.Event()
        self._ready_future = self._loop.create_future()

        process = self._ctx.Process(
            target=run_worker,
            args=(self._requests, self._responses),
            name="analysis-worker",
            daemon=True,
        )
        process.start()
        self._process = process

        self._reader = threading.Thread(
            target=self._read_responses,
            args=(process, self._responses, self._stop, self._loop),
            name="analysis-worker-reader",
            daemon=True,
        )
        self._reader.start()

        self._ready_timer = self._loop.call_later(
            self.ready_timeout, self._on_ready_timeout, process
        )
        logger.info(f"[AnalysisWorker] Started worker process pid={process.pid}")

    def _read_responses(self, process, responses, stop: threading.Event, loop) -> None:
        while not stop.is_set():
            try:
                raw = responses.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if not process.is_alive():
                    self._post(loop, self._on_exit, process)
                    return
                continue
            except (EOFError, OSError, ValueError):
                self._post(loop, self._on_exit, process)
                return
            self._post(loop, self._on_message, process, raw)

    @staticmethod
    def _post(loop: asyncio.AbstractEventLoop, callback, *args) -> None:
        try:
            loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # Loop already closed; nobody is waiting
            pass

    async def _ensure_ready(self) -> None:
        if self._process is None:
            self._start()
        if self._is_ready:
            return
        assert self._ready_future is not None
        await asyncio.shield(self._ready_future)

    def _on_ready_timeout(self, process) -> None:
        if process is not self._process or self._is_ready:
            return
        message = f"Worker failed to become ready within {self.ready_timeout}s"
        logger.error(f"[AnalysisWorker] {message}")
        self._fail_all(WorkerNotReadyError(message))
        self._cleanup(wait=False)

    def _on_exit(self, process) -> None:
        if process is not self._process:
            return
        message = f"Worker process exited unexpectedly (code {process.exitcode})"
        logger.error(f"[AnalysisWorker] {message}")
        self._fail_all(WorkerCrashedError(message))
        self._cleanup(wait=False)

    def _on_message(self, process, raw: Any) -> None:
        if process is not self._process:
            return

        try:
            response = RESPONSE_ADAPTER.validate_python(raw)
        except ValidationError as e:
            logger.warning(f"[AnalysisWorker] Discarding malformed response: {e}")
            return

        if isinstance(response, ReadyResponse):
            self._is_ready = True
            if self._ready_timer is not None:
                self._ready_timer.cancel()
                self._ready_timer = None
            if self._ready_future is not None and not self._ready_future.done():
                self._ready_future.set_result(None)
            logger.info("[AnalysisWorker] Worker ready")
            return

        if isinstance(response, ErrorResponse):
            message = f"Worker error: {response.message}"
            logger.error(f"[AnalysisWorker] {message}")
            self._fail_all(WorkerCrashedError(message))
            self._cleanup(wait=False)
            return

        future = self._pending.pop(response.id, None)
        if future is None or future.done():
            return
        if isinstance(response, ClusterResult):
            future.set_result(response.clusters)
        elif isinstance(response, CorrelationResult):
            future.set_result(response.signals)

    def _fail_pending(self, error: WorkerError) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(error)

    def _fail_all(self, error: WorkerError) -> None:
        ready = self._ready_future
        if ready is not None and not ready.done():
            ready.set_exception(error)
            # Mark retrieved so an unobserved handshake failure is not logged
            ready.exception()
        self._fail_pending(error)

    def _cleanup(self, wait: bool = True) -> None:
        """
        Discard the current process. With ``wait=False`` (event-loop
        callbacks) the process is joined in an executor thread instead.
        """
        if self._ready_timer is not None:
            self._ready_timer.cancel()
        if self._stop is not None:
            self._stop.set()
        # The reader is a daemon and exits within one poll once stopped
        if wait and self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(_JOIN_TIMEOUT)

        process = self._process
        if process is not None and process.is_alive():
            process.terminate()
            if wait or self._loop is None:
                process.join(_JOIN_TIMEOUT)
            else:
                self._loop.run_in_executor(None, process.join, _JOIN_TIMEOUT)
        for q in (self._requests, self._responses):
            if q is not None:
                q.close()
                q.cancel_join_thread()

        self._process = None
        self._requests = None
        self._responses = None
        self._reader = None
        self._stop = None
        self._ready_timer = None
        self._ready_future = None
        self._is_ready = False

    # ------------------------------------------------------------- requests

    async def _request(self, request: ClusterRequest | CorrelationRequest, timeout: float):
        await self._ensure_ready()
        assert self._loop is not None and self._requests is not None

        future = self._loop.create_future()
        self._pending[request.id] = future
        self._requests.put(request.model_dump(mode="json"))

        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            self._pending.pop(request.id, None)
            logger.warning(
                f"[AnalysisWorker] {request.type} request {request.id} timed out"
            )
            raise WorkerTimeoutError(request.type, timeout) from None

    def _next_id(self) -> str:
        return f"req-{next(self._ids)}-{int(time.time() * 1000)}"

    async def cluster_news(
        self, items: Iterable[RawItem | dict[str, Any]]
    ) -> list[ClusteredEvent]:
        """
        Cluster headlines in the worker process.

        Raises:
            WorkerNotReadyError, WorkerTimeoutError, WorkerCrashedError,
            WorkerResetError, WorkerTerminatedError
        """
        payload = [
            item.model_dump(mode="json") if isinstance(item, RawItem) else item
            for item in items
        ]
        request = ClusterRequest(
            id=self._next_id(), items=payload, source_tiers=self.source_tiers
        )
        return await self._request(request, self.cluster_timeout)

    async def analyze_correlations(
        self,
        clusters: list[ClusteredEvent],
        predictions: list[PredictionMarket],
        markets: list[MarketQuote],
    ) -> list[CorrelationSignal]:
        request = CorrelationRequest(
            id=self._next_id(),
            clusters=clusters,
            predictions=predictions,
            markets=markets,
        )
        return await self._request(request, self.correlation_timeout)

    def reset(self) -> None:
        """Fail in-flight requests and clear the worker's correlation history."""
        self._fail_pending(WorkerResetError("Worker reset"))
        if self._requests is not None:
            self._requests.put(ResetRequest().model_dump(mode="json"))

    def terminate(self) -> None:
        """Fail everything in flight and stop the worker process."""
        self._fail_all(WorkerTerminatedError("Worker terminated"))
        if self._process is not None:
            logger.info("[AnalysisWorker] Terminating worker process")
        self._cleanup()
