import asyncio
from contextlib import asynccontextmanager

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import FastAPI, Depends, Request, Response, status
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from medquote.config import settings
from medquote.database import init_db, close_db, get_db
from medquote.logging_config import setup_logging
from medquote.middleware.correlation import CorrelationIdMiddleware
from medquote.services.http_client import close_http_client
from medquote.services.storage import get_r2_client

# Import models so they are registered with Base.metadata
import medquote.models  # noqa: F401

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("starting_medquote", env=settings.ENVIRONMENT)
    await init_db()
    yield
    await close_http_client()
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Global exception handlers. Every error leaves as
# {"error": {"code": "...", "message": "..."}}
# ---------------------------------------------------------------------------

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, str):
        detail = {"error": {"code": "HTTP_ERROR", "message": detail}}
    elif isinstance(detail, dict) and "error" not in detail:
        detail = {"error": detail}
    return JSONResponse(status_code=exc.status_code, content=detail, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": exc.errors(),
            }
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_exception", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}},
    )


app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "X-Request-ID"],
)


@app.get("/health", tags=["System"])
async def health(response: Response, db: AsyncSession = Depends(get_db)):
    health_status = {"status": "healthy", "version": settings.APP_VERSION, "checks": {}}

    try:
        await db.execute(text("SELECT 1"))
        health_status["checks"]["db"] = "ok"
    except Exception as e:
        logger.error("health_check_db_failed", error=str(e))
        health_status["checks"]["db"] = "error"
        health_status["status"] = "unhealthy"

    if settings.R2_ENDPOINT_URL:
        try:
            r2 = get_r2_client()
            await asyncio.to_thread(r2.s3.head_bucket, Bucket=r2.bucket)
            health_status["checks"]["storage"] = "ok"
        except (BotoCoreError, ClientError) as e:
            logger.error("health_check_storage_failed", error=str(e))
            health_status["checks"]["storage"] = "error"
            health_status["status"] = "unhealthy"
    else:
        health_status["checks"]["storage"] = "not_configured"

    if health_status["status"] == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return health_status


# --- Routers ---
from medquote.routes.users import router as users_router  # noqa: E402
from medquote.routes.categories import router as categories_router  # noqa: E402
from medquote.routes.products import router as products_router  # noqa: E402
from medquote.routes.vendor_quotations import router as vendor_quotations_router  # noqa: E402
from medquote.routes.rfqs import router as rfqs_router  # noqa: E402
from medquote.routes.quotations import router as quotations_router  # noqa: E402
from medquote.routes.approvals import router as approvals_router  # noqa: E402
from medquote.routes.orders import router as orders_router  # noqa: E402
from medquote.routes.ratings import router as ratings_router  # noqa: E402
from medquote.routes.analytics import router as analytics_router  # noqa: E402
from medquote.routes.notifications import router as notifications_router  # noqa: E402
from medquote.routes.group_buys import router as group_buys_router  # noqa: E402
from medquote.routes.files import router as files_router  # noqa: E402

app.include_router(users_router, prefix="/api/v1/users", tags=["Users"])
app.include_router(categories_router, prefix="/api/v1/categories", tags=["Categories"])
app.include_router(products_router, prefix="/api/v1/products", tags=["Products"])
app.include_router(
    vendor_quotations_router, prefix="/api/v1/vendor-quotations", tags=["Price Lists"]
)
app.include_router(rfqs_router, prefix="/api/v1/rfqs", tags=["RFQs"])
app.include_router(quotations_router, prefix="/api/v1/quotations", tags=["Quotations"])
app.include_router(approvals_router, prefix="/api/v1/approvals", tags=["Approvals"])
app.include_router(orders_router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(ratings_router, prefix="/api/v1/ratings", tags=["Ratings"])
app.include_router(analytics_router, prefix="/api/v1/analytics", tags=["Analytics"])
app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["Notifications"])
app.include_router(group_buys_router, prefix="/api/v1/group-buys", tags=["Group Buys"])
app.include_router(files_router, prefix="/api/v1/files", tags=["Files"])
