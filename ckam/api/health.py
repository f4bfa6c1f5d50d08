"""Health check endpoint with account count and uptime."""

import time
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from ckam.core.storage import get_store
from ckam.schemas.health import HealthResponse
from ckam.services.account_store import AccountStore

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def get_health(
    request: Request,
    store: Annotated[AccountStore, Depends(get_store)],
) -> HealthResponse:
    """
    Return service health, number of accounts and process uptime.
    Used by load balancers and monitoring.
    """
    settings = request.app.state.settings
    started = request.app.state.started_at
    return HealthResponse(
        status="ok",
        service=settings.SERVICE_NAME,
        users=store.count(),
        environment=settings.APP_ENV,
        uptime=round(max(time.monotonic() - started, 0.0), 3),
        timestamp=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
    )
