# backend/greycat/routes/health.py
"""
Health and metrics endpoints.
"""

from typing import Dict

from fastapi import APIRouter, Response

from ..monitoring.prometheus_metrics import prometheus_metrics

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check() -> Dict[str, str]:
    return {"status": "ok"}


@router.get("/metrics")
def metrics() -> Response:
    """Prometheus exposition of service and broadcast metrics."""
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
