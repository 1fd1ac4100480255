from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from diet_agent.api.deps import get_metrics
from diet_agent.services.metrics import MetricsLogger

router = APIRouter(tags=["metrics"])


class UILatency(BaseModel):
    name: str = Field(..., description="Metric name, e.g., 'chat_render' or 'meal_plan_e2e'")
    duration_ms: float = Field(..., ge=0)
    extra: Optional[dict] = None


@router.post("/api/v1/metrics/ui")
def log_ui_latency(payload: UILatency, request: Request, metrics: MetricsLogger = Depends(get_metrics)):
    metrics.log_latency(
        payload.name,
        payload.duration_ms,
        origin="frontend",
        extra=payload.extra,
        user_id=request.headers.get("X-Device-Id"),
    )
    return {"ok": True}
