"""FastAPI ingress over the application context.

Caller identity is resolved upstream and passed in ``X-Caller-Id``; requests
without it are limited by client host.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from src.context import AppContext
from src.core.exceptions import RateLimitExceeded, ReadError
from src.data.cache.keys import CacheKeys

logger = logging.getLogger(__name__)

DATA_UNAVAILABLE = "data unavailable"


def _caller_id(request: Request) -> Optional[str]:
    caller = request.headers.get("x-caller-id")
    if caller:
        return caller
    return request.client.host if request.client else None


def _envelope(data: Any, **metadata: Any) -> Dict[str, Any]:
    return {
        "status": "success",
        "data": data,
        "metadata": {"generated_at": datetime.now(timezone.utc).isoformat(), **metadata},
    }


def create_app(context: AppContext, manage_lifecycle: bool = True) -> FastAPI:
    """Build the ingress app.

    Args:
        context: Application context serving every route
        manage_lifecycle: Run ``context.init()``/``shutdown()`` in the app lifespan
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_lifecycle:
            await context.init()
        try:
            yield
        finally:
            if manage_lifecycle:
                await context.shutdown()

    app = FastAPI(
        title="Aave State API",
        description="Multi-chain Aave v3 account, health and market state.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.context = context
    pipeline = context.pipeline

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={"error": str(exc), "retryAfter": exc.retry_after},
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.get("/api/aave/account")
    async def get_account(
        request: Request,
        address: str = Query(...),
        chainId: int = Query(...),
        refresh: bool = Query(False),
    ):
        try:
            result = await pipeline.get_account_state(
                address, chainId, identifier=_caller_id(request), force_refresh=refresh
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if result is None:
            return JSONResponse(status_code=503, content={"error": DATA_UNAVAILABLE})
        return _envelope(result.to_dict(), chainId=chainId)

    @app.get("/api/aave/health")
    async def get_health(request: Request, address: str = Query(...), chainId: int = Query(...)):
        try:
            snapshot, from_cache = await pipeline.get_health_snapshot(
                address, chainId, identifier=_caller_id(request)
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ReadError as exc:
            logger.warning(f"Health read failed for {address} on {chainId}: {exc}")
            return JSONResponse(status_code=503, content={"error": DATA_UNAVAILABLE})
        return _envelope(snapshot, chainId=chainId, fromCache=from_cache)

    @app.get("/api/aave/market")
    async def get_market(request: Request, chainId: int = Query(...), dataType: str = Query("apys")):
        try:
            data, from_cache = await pipeline.get_market_data(
                chainId, dataType, identifier=_caller_id(request)
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except ReadError as exc:
            logger.warning(f"Market read failed for {dataType} on {chainId}: {exc}")
            return JSONResponse(status_code=503, content={"error": DATA_UNAVAILABLE})
        return _envelope(data, chainId=chainId, dataType=dataType, fromCache=from_cache)

    @app.get("/api/queue/stats")
    async def get_queue_stats():
        stats = await context.queue.get_all_stats()
        return _envelope([s.to_dict() for s in stats])

    @app.get("/api/queue/jobs/{job_id}")
    async def get_job(job_id: str):
        status = await context.queue.get_job_status(job_id)
        if status is None:
            raise HTTPException(status_code=404, detail=f"Unknown job id '{job_id}'")
        return _envelope(status)

    @app.get("/api/providers/status")
    async def get_provider_status(request: Request):
        # every check dials each configured endpoint
        context.limiter.consume(
            _caller_id(request), "providers", limit=context.settings.provider_status_rate_limit
        )
        statuses = await context.cache.with_dedup(
            CacheKeys.provider_status(),
            context.resolver.test_all_connections,
            ttl_seconds=context.settings.provider_status_ttl_seconds,
        )
        return _envelope(statuses)

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok", "cache": context.cache.stats()}

    return app
