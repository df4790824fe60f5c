"""
FastAPI backend for QuerySight
Main application entry point with middleware, routes, and startup configuration
"""

from contextlib import asynccontextmanager
from pathlib import Path
import asyncio

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST, Counter, Histogram

from backend.config.settings import get_settings
from backend.api import health, query
from backend.services.database import DatabaseService
from backend.services.llm_service import create_completion_service
from backend.services.query_session import SessionRegistry
from backend.utils.errors import (
    DatabaseUnavailableError,
    ErrorCode,
    QueryPipelineError,
    create_error_response,
    error_response,
)
from backend.utils.logging import setup_logging

# Setup structured logging
logger = structlog.get_logger(__name__)
settings = get_settings()

STATIC_DIR = Path(__file__).resolve().parent / "static"

# Prometheus metrics
request_count = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
request_duration = Histogram('http_request_duration_seconds', 'HTTP request duration')


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events"""
    # Startup
    setup_logging(settings.log_level, settings.log_format)
    logger.info("Starting QuerySight", environment=settings.environment)

    for issue in settings.validate_llm_configuration() + settings.validate_cors_configuration():
        logger.warning("Configuration issue", issue=issue)

    app.state.sessions = SessionRegistry(settings.max_sessions, settings.sequencing_policy)

    # Database connects in the background; requests get 503 until it is ready
    logger.info("Scheduling database service initialization (non-blocking)...")
    db_service = DatabaseService(settings)
    app.state.db = db_service

    async def init_db_background():
        try:
            await db_service.initialize()
            logger.info("Database service initialized successfully (background)")
        except DatabaseUnavailableError as e:
            logger.warning(
                "Running without database - queries will fail until restart",
                reason=e.log_message,
                error=str(e.cause) if e.cause else None,
            )

    db_task = asyncio.create_task(init_db_background())

    try:
        app.state.llm = create_completion_service(settings)
    except Exception as e:
        app.state.llm = None
        logger.error("Failed to initialize completion service", provider=settings.llm_provider, error=str(e))

    logger.info(
        "QuerySight startup complete",
        llm_provider=settings.llm_provider,
        llm_available=app.state.llm is not None,
    )

    yield

    # Shutdown
    logger.info("Shutting down QuerySight")
    if not db_task.done():
        db_task.cancel()
    await db_service.close()
    logger.info("Database connection closed")


# Create FastAPI application
app = FastAPI(
    title="QuerySight",
    description="Natural-language questions over a SQL dataset, answered as charts",
    version="1.0.0",
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
    lifespan=lifespan
)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Prometheus metrics collection middleware"""
    with request_duration.time():
        response = await call_next(request)

    route = request.scope.get("route")
    request_count.labels(
        method=request.method,
        endpoint=getattr(route, "path", request.url.path),
        status=response.status_code
    ).inc()

    return response


@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    """Request logging middleware"""
    logger.info(
        "HTTP request",
        method=request.method,
        path=request.url.path,
        client=request.client.host if request.client else None
    )

    response = await call_next(request)

    logger.info(
        "HTTP response",
        status_code=response.status_code,
        method=request.method,
        path=request.url.path
    )

    return response


@app.exception_handler(QueryPipelineError)
async def query_pipeline_exception_handler(request: Request, exc: QueryPipelineError) -> JSONResponse:
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Request validation failed", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=422,
        content=create_error_response(ErrorCode.VALIDATION_ERROR),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler"""
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        path=request.url.path,
        method=request.method
    )

    if settings.is_production:
        return JSONResponse(
            status_code=500,
            content=create_error_response(ErrorCode.INTERNAL_ERROR)
        )
    return JSONResponse(
        status_code=500,
        content=create_error_response(
            ErrorCode.INTERNAL_ERROR,
            details={"message": str(exc), "type": exc.__class__.__name__},
        )
    )


# Include routers
app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(query.router, prefix="/api", tags=["Query"])


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/", response_class=HTMLResponse)
async def root() -> HTMLResponse:
    """Browser page: question box, chart selector, chart and results table"""
    return HTMLResponse((STATIC_DIR / "index.html").read_text(encoding="utf-8"))


if __name__ == "__main__":
    uvicorn.run(
        "backend.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )
