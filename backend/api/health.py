"""
Health check endpoints for monitoring system status
"""

from datetime import datetime
from typing import Dict, Any
import asyncio

from fastapi import APIRouter, Request
import structlog

from backend.models.schemas import HealthCheck

router = APIRouter()
logger = structlog.get_logger(__name__)

VERSION = "1.0.0"


@router.get("")
@router.get("/")
async def health_check():
    """Cheap health check; does not touch downstream services"""
    return {"status": "healthy"}


@router.get("/liveness")
async def liveness_probe():
    """Kubernetes liveness probe endpoint"""
    return {"status": "alive", "timestamp": datetime.utcnow().isoformat()}


@router.get("/readiness")
async def readiness_probe(request: Request):
    """Kubernetes readiness probe endpoint"""
    db = getattr(request.app.state, "db", None)
    return {
        "status": "ready",
        "timestamp": datetime.utcnow().isoformat(),
        "database_available": bool(db is not None and db.is_ready),
        "llm_available": getattr(request.app.state, "llm", None) is not None,
    }


@router.get("/detailed", response_model=HealthCheck)
async def detailed_health_check(request: Request) -> HealthCheck:
    """Check the database and completion service in parallel"""
    health_tasks = {
        "database": _check_database(getattr(request.app.state, "db", None)),
        "llm_service": _check_llm_service(getattr(request.app.state, "llm", None)),
    }

    results = await asyncio.gather(*health_tasks.values(), return_exceptions=True)

    services = {}
    overall_status = "healthy"
    for service_name, result in zip(health_tasks.keys(), results):
        if isinstance(result, Exception):
            logger.error("Health check raised", service=service_name, error=str(result))
            result = {"status": "unhealthy", "error": "check failed"}
        result["timestamp"] = datetime.utcnow().isoformat()
        services[service_name] = result
        if result.get("status") != "healthy":
            overall_status = "degraded"

    return HealthCheck(
        status=overall_status,
        version=VERSION,
        timestamp=datetime.utcnow(),
        services=services,
    )


async def _check_database(db_service=None) -> Dict[str, Any]:
    """Check database connectivity"""
    if db_service is None or not db_service.is_ready:
        return {
            "status": "unavailable",
            "details": {"message": "Database service not initialized"}
        }
    return await db_service.health_check()


async def _check_llm_service(llm_service=None) -> Dict[str, Any]:
    """Check completion service availability"""
    if llm_service is None:
        return {
            "status": "unavailable",
            "details": {"message": "Completion service not initialized"}
        }
    return await llm_service.health_check()
