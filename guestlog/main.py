"""
FastAPI Application Entry Point

Restaurant Guest Ledger - walk-in customer registry.

Endpoints:
    - POST /customers: Register a visit (create or update by contact number)
    - GET /customers: Admin customer list (search, date filter, sort, pages)
    - GET /health: System health check

The customer routes are also mounted under /api for the web client.
"""

import asyncio
import sys
import logging
from datetime import datetime
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import redis

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from guestlog.core.config import get_settings, setup_logging
from guestlog.core.exceptions import GuestlogError, ValidationError
from guestlog.core.security import require_admin
from guestlog.database import get_db, init_db, engine
from guestlog.schemas import (
    CustomerCreate,
    CustomerListResponse,
    CustomerQueryParams,
    CustomerResponse,
    CustomerUpsertResponse,
    ErrorResponse,
    HealthResponse,
)
from guestlog.services.ledger import CustomerLedger
from guestlog.services.query_engine import query_customers
from guestlog.tasks import queue_visit_export

settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()

    missing = settings.validate_production_config()
    if missing:
        logger.warning(f"Missing production config: {missing}")

    logger.info("Application ready")

    yield

    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Walk-in customer registry: deduplicates visitors by phone number "
        "and serves a searchable admin customer list."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

customers_router = APIRouter(prefix="/customers", tags=["Customers"])


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


def _ping_redis() -> None:
    r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
    try:
        r.ping()
    finally:
        r.close()


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify the database and Redis broker are reachable."""

    db_status = "healthy"
    try:
        await db.execute(select(1))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    redis_status = "healthy"
    try:
        await run_in_threadpool(_ping_redis)
    except redis.RedisError as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    overall = "operational" if db_status == redis_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        redis=redis_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# CUSTOMER ENDPOINTS
# =============================================================================

@customers_router.post(
    "",
    response_model=CustomerUpsertResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Register Visit",
)
async def register_visit(
    customer_data: CustomerCreate,
    db: AsyncSession = Depends(get_db),
) -> CustomerUpsertResponse:
    """
    Record a walk-in visit.

    A new contact number creates a customer; a known one refreshes the
    name and counts another visit.
    """
    ledger = CustomerLedger(db)
    record, is_new = await ledger.upsert(customer_data.name, customer_data.contact_number)

    # Broker publish blocks on the network
    await run_in_threadpool(queue_visit_export, record, is_new)

    return CustomerUpsertResponse(
        customer=CustomerResponse.from_record(record),
        is_new=is_new,
    )


@customers_router.get(
    "",
    response_model=CustomerListResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    dependencies=[Depends(require_admin)],
    summary="List Customers (Admin)",
)
async def list_customers(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    db: AsyncSession = Depends(get_db),
) -> CustomerListResponse:
    """Search, filter, sort and paginate the customer ledger."""
    raw = {
        "page": page,
        "limit": limit,
        "search": search,
        "sort_by": sort_by,
        "sort_order": sort_order,
        "date_from": date_from,
        "date_to": date_to,
    }
    try:
        params = CustomerQueryParams(**{k: v for k, v in raw.items() if v is not None})
    except PydanticValidationError as e:
        raise ValidationError("Invalid query parameters", detail=_first_error(e)) from e

    query = params.to_query(
        default_limit=settings.default_page_limit,
        max_limit=settings.max_page_limit,
    )

    snapshot = await CustomerLedger(db).list()
    result = query_customers(snapshot, query, tz=settings.tzinfo)

    logger.debug(
        f"Customer query {query} -> {len(result.items)} of {result.total}"
    )

    return CustomerListResponse(
        customers=[CustomerResponse.from_record(r) for r in result.items],
        total=result.total,
        page=result.page,
        total_pages=result.total_pages,
    )


app.include_router(customers_router)
app.include_router(customers_router, prefix="/api", include_in_schema=False)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def _first_error(exc: PydanticValidationError | RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    error = errors[0]
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
    return f"{location}: {message}" if location else message


@app.exception_handler(GuestlogError)
async def guestlog_exception_handler(request: Request, exc: GuestlogError) -> JSONResponse:
    """Translate ledger errors into their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{exc.error} on {request.url.path}: {exc.message}")

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 400."""
    return JSONResponse(
        status_code=400,
        content=ValidationError("Invalid request", detail=_first_error(exc)).to_dict(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
