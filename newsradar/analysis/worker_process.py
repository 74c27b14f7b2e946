"""
Analysis worker process - runs clustering and correlation off the event
loop's process.

Requests and responses cross the process boundary as plain dicts and are
validated into the envelope models below on arrival.
"""

from typing import Annotated, Any, Literal, Union

from loguru import logger
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from newsradar.analysis.clustering import ClusterEngine
from newsradar.analysis.correlation import CorrelationEngine
from newsradar.analysis.types import (
    ClusteredEvent,
    CorrelationSignal,
    MarketQuote,
    PredictionMarket,
)


# Requests


class ClusterRequest(BaseModel):
    type: Literal["cluster"] = "cluster"
    id: str
    items: list[Any]
    source_tiers: dict[str, int] = Field(default_factory=dict)


class CorrelationRequest(BaseModel):
    type: Literal["correlation"] = "correlation"
    id: str
    clusters: list[ClusteredEvent]
    predictions: list[PredictionMarket] = Field(default_factory=list)
    markets: list[MarketQuote] = Field(default_factory=list)


class ResetRequest(BaseModel):
    type: Literal["reset"] = "reset"


WorkerRequest = Annotated[
    Union[ClusterRequest, CorrelationRequest, ResetRequest],
    Field(discriminator="type"),
]


# Responses


class ReadyResponse(BaseModel):
    type: Literal["ready"] = "ready"


class ClusterResult(BaseModel):
    type: Literal["cluster-result"] = "cluster-result"
    id: str
    clusters: list[ClusteredEvent]


class CorrelationResult(BaseModel):
    type: Literal["correlation-result"] = "correlation-result"
    id: str
    signals: list[CorrelationSignal]


class ErrorResponse(BaseModel):
    type: Literal["error"] = "error"
    id: str | None = None
    message: str


WorkerResponse = Annotated[
    Union[ReadyResponse, ClusterResult, CorrelationResult, ErrorResponse],
    Field(discriminator="type"),
]

REQUEST_ADAPTER: TypeAdapter = TypeAdapter(WorkerRequest)
RESPONSE_ADAPTER: TypeAdapter = TypeAdapter(WorkerResponse)


def handle_request(
    request: ClusterRequest | CorrelationRequest | ResetRequest,
    correlation: CorrelationEngine,
) -> BaseModel | None:
    """Process one request; ``reset`` has no response."""
    if isinstance(request, ClusterRequest):
        engine = ClusterEngine(source_tiers=request.source_tiers or None)
        return ClusterResult(id=request.id, clusters=engine.cluster(request.items))

    if isinstance(request, CorrelationRequest):
        signals = correlation.analyze_correlations(
            request.clusters, request.predictions, request.markets
        )
        return CorrelationResult(id=request.id, signals=signals)

    correlation.reset()
    logger.info("[Worker] Correlation history reset")
    return None


def run_worker(requests, responses) -> None:
    """
    Worker process entry point.

    Announces readiness, then serves requests until it receives ``None``.
    """
    correlation = CorrelationEngine()
    responses.put(ReadyResponse().model_dump(mode="json"))

    while True:
        raw = requests.get()
        if raw is None:
            break

        try:
            request = REQUEST_ADAPTER.validate_python(raw)
        except ValidationError as e:
            request_id = raw.get("id") if isinstance(raw, dict) else None
            responses.put(
                ErrorResponse(id=request_id, message=f"Invalid request: {e}").model_dump(
                    mode="json"
                )
            )
            continue

        try:
            response = handle_request(request, correlation)
        except Exception as e:
            logger.exception(f"[Worker] {request.type} request failed")
            responses.put(
                ErrorResponse(id=getattr(request, "id", None), message=str(e)).model_dump(
                    mode="json"
                )
            )
            continue

        if response is not None:
            responses.put(response.model_dump(mode="json"))
