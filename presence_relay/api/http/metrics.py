"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get(
    "/metrics",
    response_class=Response,
    summary="Prometheus metrics endpoint",
    tags=["metrics"],
)
async def metrics() -> Response:
    """
    Expose Prometheus metrics for monitoring.

    Includes the presence gauges (open connections, registered users) and
    the relay counters (messages by outcome, store latency).
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
