"""API router exposing the push scheduler invocation endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from .push.config import Settings, get_settings
from .push.utils import logger
from .runner import run_configured_cycle

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

router = APIRouter(tags=["scheduler"])


@router.api_route(
    "/push-scheduler",
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
)
def push_scheduler(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    """Run one evaluation cycle and report what was dispatched."""
    if request.method == "OPTIONS":
        return PlainTextResponse("ok", headers=CORS_HEADERS)

    try:
        outcome = run_configured_cycle(settings)
    except Exception as exc:
        logger.bind(method=request.method).exception("Evaluation cycle failed")
        return JSONResponse({"error": str(exc)}, status_code=400, headers=CORS_HEADERS)

    return JSONResponse(outcome.to_payload(), headers=CORS_HEADERS)
