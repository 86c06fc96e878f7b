from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog
import time
import uvicorn

from app.core.config import get_settings
from app.core.circuit_breaker import db_circuit_breaker
from app.core.exceptions import CampaignError
from app.database.database import check_connection, close_db, init_db
from app.api.campaign import router as campaigns_router
from app.api.admin import router as admin_router
from app.cache.analysis_cache import RedisAnalysisCache
from app.services.analysis import get_analysis_pipeline
from app.middleware.tracing import init_tracing
from app.middleware.metrics import MetricsMiddleware, metrics_endpoint
from app.middleware.logging import logging_middleware

# Setup structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)
settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Campaign submission, trust scoring and moderation workflow",
    version="1.0.0",
    debug=settings.debug
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Must run before startup events
init_tracing(app)

app.add_middleware(MetricsMiddleware)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Logging middleware with trace correlation"""
    return await logging_middleware(request, call_next)


@app.exception_handler(CampaignError)
async def campaign_error_handler(request: Request, exc: CampaignError):
    """Typed lifecycle errors carry their own status code"""
    logger.info(
        "Request rejected",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        message=exc.message,
        path=request.url.path
    )
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error.get("loc", ())), "message": error.get("msg", "")}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Invalid request", "errors": errors})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Anything that is not a CampaignError is a server fault"""
    logger.error(
        "Unhandled error while serving request",
        error=str(exc),
        error_type=type(exc).__name__,
        method=request.method,
        path=request.url.path
    )
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


@app.on_event("startup")
async def startup_event():
    """Create tables and build the analysis pipeline before serving traffic"""
    try:
        init_db()
        pipeline = get_analysis_pipeline()
    except Exception as e:
        logger.error("Campaign moderation service failed to start", error=str(e))
        raise

    logger.info(
        "Campaign moderation service started",
        service_name=settings.service_name,
        analysis_cache=pipeline.cache.describe(),
        ai_configured=pipeline.completion_service is not None,
        ai_timeout_seconds=pipeline.timeout_seconds
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Release the analysis cache connection and the database engine"""
    try:
        get_analysis_pipeline().cache.close()
        close_db()
    except Exception as e:
        logger.error("Error while releasing resources on shutdown", error=str(e))
        return
    logger.info("Campaign moderation service stopped")


@app.get("/health")
async def health_check():
    """Liveness probe"""
    return {"status": "healthy", "service": settings.service_name, "timestamp": time.time()}


@app.get("/metrics")
async def metrics(request: Request):
    """Prometheus metrics endpoint"""
    return await metrics_endpoint(request)


@app.get("/health/ready")
async def readiness_check():
    """Readiness check with database, analysis cache and circuit breaker status"""
    pipeline = get_analysis_pipeline()
    breakers = [db_circuit_breaker.get_state()]
    ai_breaker = getattr(pipeline.completion_service, "breaker", None)
    if ai_breaker is not None:
        breakers.append(ai_breaker.get_state())

    health_status = {
        "status": "ready",
        "service": settings.service_name,
        "timestamp": time.time(),
        "database": "disconnected",
        "cache": pipeline.cache.describe(),
        "circuit_breakers": breakers
    }

    try:
        check_connection()
        health_status["database"] = "connected"
    except Exception as db_e:
        logger.warning("Database health check failed", error=str(db_e))
        health_status["database"] = f"error: {str(db_e)}"

    # Reported only; the analysis cache degrades to misses without Redis
    if isinstance(pipeline.cache, RedisAnalysisCache):
        try:
            health_status["cache_backend"] = "connected" if pipeline.cache.ping() else "not_initialized"
        except Exception as cache_e:
            logger.warning("Cache health check failed", error=str(cache_e))
            health_status["cache_backend"] = f"error: {str(cache_e)}"

    if health_status["database"] != "connected":
        health_status["status"] = "not ready"
        return JSONResponse(status_code=503, content=health_status)

    return health_status


app.include_router(campaigns_router)
app.include_router(admin_router)


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8002,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug"
    )
