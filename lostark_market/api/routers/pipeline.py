"""Manual / external trigger for a pipeline run."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request, Response

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/run")
async def run_pipeline(request: Request) -> Response:
    """
    Run one sweep. Body is optional: {"categoryCode": 50000, "policy": "split"}.

    200 with an empty body on success, 500 "error" on any failure.
    """
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = {}

    ok = await request.app.state.runner.trigger(
        category_code=body.get("categoryCode"),
        policy=body.get("policy"),
    )
    if not ok:
        return Response(content="error", status_code=500)
    return Response(status_code=200)
