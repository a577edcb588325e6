from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import defaultdict, deque
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from deepticker.config.settings import Settings, settings as default_settings
from deepticker.container import ServiceContainer, build_container
from deepticker.domain import Quote
from deepticker.errors import HoldingNotFoundError, NoSymbolsError
from deepticker.maintenance import CacheSweeper
from deepticker.observability import RequestTimer
from deepticker.portfolio import PortfolioHolding
from deepticker.schemas.portfolio import HoldingCreateSchema, HoldingSchema, HoldingUpdateSchema, PortfolioSchema
from deepticker.schemas.quote import QuoteResultSchema, QuoteSchema, QuotesResponseSchema
from deepticker.schemas.symbol import SearchResultSchema
from deepticker.services.quote_refresh_service import RefreshOutcome
from deepticker.utils.symbol_normalizer import normalize_symbol, parse_symbol_list

logger = logging.getLogger(__name__)
router = APIRouter()


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def error_response(schema_version: str, error_code: str, message: str, status_code: int = 400, **extra):
    payload = {
        "schema_version": schema_version,
        "status": "error",
        "error_code": error_code,
        "message": message,
        **extra,
    }
    return JSONResponse(payload, status_code=status_code)


def _flatten_validation_errors(exc: RequestValidationError) -> str:
    """Return a concise, stable validation message string."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(i) for i in err.get("loc", []) if i != "body")
        parts.append(f"{loc}: {err.get('msg', 'Invalid value')}")
    return "; ".join(parts)


def _quote_schema(schema_version: str, quote: Quote, stale: bool = False) -> QuoteSchema:
    return QuoteSchema(
        schema_version=schema_version,
        data_source="cache" if quote.is_cached else "live",
        stale=stale,
        **quote.model_dump(),
    )


def _outcome_schema(schema_version: str, outcome: RefreshOutcome) -> QuoteResultSchema:
    attempts = [{"provider": provider, "result": result} for provider, result in outcome.attempts]
    if outcome.ok:
        return QuoteResultSchema(
            symbol=outcome.symbol,
            status="ok",
            quote=_quote_schema(schema_version, outcome.quote, outcome.stale),
            attempts=attempts,
        )
    return QuoteResultSchema(
        symbol=outcome.symbol,
        status="error",
        error_code="ALL_SOURCES_FAILED",
        message=str(outcome.error),
        attempts=attempts,
    )


def _holding_schema(holding: PortfolioHolding) -> HoldingSchema:
    return HoldingSchema(
        total_value=holding.total_value,
        daily_change_percent=holding.daily_change_percent,
        gain_loss_percent=holding.gain_loss_percent,
        price_state=holding.price_state.value,
        **holding.model_dump(exclude={"price_state"}),
    )


def create_app(container: ServiceContainer | None = None, app_settings: Settings | None = None) -> FastAPI:
    app_settings = app_settings or (container.settings if container else default_settings)
    container = container or build_container(app_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper = CacheSweeper(container.cache, app_settings.cache_sweep_interval_seconds, container.observability)
        sweep_task = asyncio.create_task(sweeper.start())
        logger.info("Application started successfully")
        try:
            yield
        finally:
            await sweeper.stop()
            container.debouncer.cancel()
            sweep_task.cancel()
            try:
                await sweep_task
            except asyncio.CancelledError:
                pass
            logger.info("Shutdown complete")

    app = FastAPI(title=app_settings.app_name, version=app_settings.app_version, lifespan=lifespan)
    app.state.container = container
    request_buckets: dict[str, deque[float]] = defaultdict(deque)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(_: Request, exc: RequestValidationError):
        return error_response(app_settings.schema_version, "INVALID_INPUT", _flatten_validation_errors(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_: Request, exc: Exception):
        logger.error(f"Unhandled API exception: {exc}", exc_info=True)
        return error_response(app_settings.schema_version, "INTERNAL_ERROR", "Unexpected server error", status_code=500)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
        ip = request.client.host if request.client else "unknown"
        now = time.time()
        bucket = request_buckets[ip]
        while bucket and bucket[0] < now - 60:
            bucket.popleft()
        if len(bucket) >= app_settings.rate_limit_requests_per_minute:
            return error_response(app_settings.schema_version, "RATE_LIMITED", "Too many requests", status_code=429)
        bucket.append(now)

        response = None
        timer = RequestTimer()
        try:
            response = await call_next(request)
            return response
        finally:
            latency_ms = timer.elapsed_ms()
            container.observability.mark_request_timing(latency_ms, route=request.url.path)
            logger.info(
                "request_complete",
                extra={
                    "request_id": request_id,
                    "path": request.url.path,
                    "symbol": request.query_params.get("symbol") or request.query_params.get("symbols", ""),
                    "latency_ms": round(latency_ms, 2),
                    "status_code": response.status_code if response else None,
                },
            )

    app.include_router(router)
    return app


@router.get("/health")
def health(c: ServiceContainer = Depends(get_container)):
    return {
        "schema_version": c.settings.schema_version,
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime_seconds": round(c.observability.uptime_seconds(), 3),
    }


@router.get("/readiness")
def readiness(c: ServiceContainer = Depends(get_container)):
    return {
        "schema_version": c.settings.schema_version,
        "status": "ready",
        "cache": c.cache.metrics(),
        "seconds_since_last_sweep": c.observability.seconds_since_last_sweep(),
        "last_sweep": c.observability.sweep_status(),
    }


@router.get("/metrics")
def all_metrics(c: ServiceContainer = Depends(get_container)):
    output = c.metrics.global_metrics()
    output["requests"] = c.observability.request_metrics()
    output["cache"] = c.cache.metrics()
    output["schema_version"] = c.settings.schema_version
    return output


@router.get("/providers/status")
def providers_status(c: ServiceContainer = Depends(get_container)):
    health_state = c.health.snapshot()
    per_provider = c.metrics.provider_status()
    out = {}
    for provider in c.quotes.providers:
        pid = provider.provider_id
        item = per_provider.get(pid, {"failure_rate": 0.0, "average_latency_ms": 0.0})
        state = health_state.get(pid, {})
        out[pid] = {
            "enabled": state.get("enabled", True),
            "disabled_until": state.get("disabled_until"),
            "last_failure_kind": state.get("last_failure_kind"),
            "failure_rate": item["failure_rate"],
            "average_latency_ms": item["average_latency_ms"],
            "quote_ttl_seconds": provider.quote_ttl_seconds,
        }
    status = c.quotes.status()
    return {
        "schema_version": c.settings.schema_version,
        "providers": out,
        "last_source": status["last_source"],
        "last_refreshed_at": status["last_refreshed_at"],
    }


@router.get("/quotes", response_model=QuotesResponseSchema)
async def quotes(
    symbols: str = Query(...),
    timeout: float | None = Query(None, gt=0, le=60),
    c: ServiceContainer = Depends(get_container),
):
    version = c.settings.schema_version
    try:
        outcomes = await c.quotes.refresh(parse_symbol_list(symbols), timeout=timeout)
    except (ValueError, NoSymbolsError):
        return error_response(version, "INVALID_INPUT", "Invalid symbol list")

    results = {symbol: _outcome_schema(version, outcome) for symbol, outcome in outcomes.items()}
    succeeded = sum(1 for outcome in outcomes.values() if outcome.ok)
    return QuotesResponseSchema(
        schema_version=version,
        results=results,
        succeeded=succeeded,
        failed=len(outcomes) - succeeded,
    )


@router.get("/quote", response_model=QuoteSchema)
async def quote(
    symbol: str = Query(...),
    timeout: float | None = Query(None, gt=0, le=60),
    c: ServiceContainer = Depends(get_container),
):
    version = c.settings.schema_version
    try:
        clean_symbol = normalize_symbol(symbol)
    except ValueError:
        return error_response(version, "INVALID_INPUT", "Invalid symbol")

    outcome = (await c.quotes.refresh([clean_symbol], timeout=timeout))[clean_symbol]
    if not outcome.ok:
        return error_response(
            version,
            "ALL_SOURCES_FAILED",
            str(outcome.error),
            status_code=503,
            symbol=clean_symbol,
        )
    return _quote_schema(version, outcome.quote, outcome.stale)


@router.get("/search", response_model=list[SearchResultSchema])
async def search(
    query: str = Query(..., max_length=64),
    timeout: float | None = Query(None, gt=0, le=60),
    c: ServiceContainer = Depends(get_container),
):
    matches = await c.search.search(query, timeout=timeout)
    return [SearchResultSchema(schema_version=c.settings.schema_version, **m.model_dump()) for m in matches]


def _portfolio_payload(c: ServiceContainer) -> PortfolioSchema:
    store = c.portfolio
    return PortfolioSchema(
        schema_version=c.settings.schema_version,
        holdings=[_holding_schema(h) for h in store.holdings()],
        total_current_value=store.total_current_value,
        initial_value=store.initial_value,
        earnings_percent=store.earnings_percent,
        daily_change_percent=store.daily_change_percent,
        last_refresh=store.last_refresh,
        is_refreshing=store.is_refreshing,
    )


@router.get("/portfolio", response_model=PortfolioSchema)
def portfolio(c: ServiceContainer = Depends(get_container)):
    return _portfolio_payload(c)


@router.post("/portfolio/holdings", response_model=HoldingSchema, status_code=201)
def add_holding(body: HoldingCreateSchema, c: ServiceContainer = Depends(get_container)):
    try:
        symbol = normalize_symbol(body.symbol)
    except ValueError:
        return error_response(c.settings.schema_version, "INVALID_INPUT", "Invalid symbol")
    holding = c.portfolio.add(symbol, body.quantity, purchase_price=body.purchase_price, name=body.name)
    return _holding_schema(holding)


@router.patch("/portfolio/holdings/{holding_id}", response_model=HoldingSchema)
def update_holding(holding_id: str, body: HoldingUpdateSchema, c: ServiceContainer = Depends(get_container)):
    try:
        holding = c.portfolio.update(holding_id, quantity=body.quantity, purchase_price=body.purchase_price)
    except HoldingNotFoundError as exc:
        return error_response(c.settings.schema_version, "NOT_FOUND", f"Holding {exc.holding_id} not found", status_code=404)
    return _holding_schema(holding)


@router.delete("/portfolio/holdings/{holding_id}", status_code=204)
def delete_holding(holding_id: str, c: ServiceContainer = Depends(get_container)):
    try:
        c.portfolio.remove(holding_id)
    except HoldingNotFoundError as exc:
        return error_response(c.settings.schema_version, "NOT_FOUND", f"Holding {exc.holding_id} not found", status_code=404)
    return None


@router.post("/portfolio/refresh", response_model=PortfolioSchema)
async def refresh_portfolio(
    timeout: float | None = Query(None, gt=0, le=60),
    c: ServiceContainer = Depends(get_container),
):
    await c.portfolio.refresh_all_prices(timeout=timeout)
    return _portfolio_payload(c)
