"""
Tests for health endpoints

Public probes return a minimal payload; /health/detailed reports per-service
status without leaking driver or provider error text.
"""

import inspect
from types import SimpleNamespace

import pytest
from unittest.mock import AsyncMock, MagicMock

from backend.api.health import (
    health_check,
    liveness_probe,
    readiness_probe,
    detailed_health_check,
    _check_database,
    _check_llm_service,
)


def _request(db=None, llm=None):
    return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(db=db, llm=llm)))


def _db(status="healthy", ready=True):
    db = MagicMock()
    db.is_ready = ready
    db.health_check = AsyncMock(return_value={"status": status})
    return db


def _llm(status="healthy"):
    llm = MagicMock()
    llm.health_check = AsyncMock(return_value={"status": status, "provider": "openai", "model_id": "gpt-3.5-turbo"})
    return llm


class TestPublicProbes:

    @pytest.mark.asyncio
    async def test_health_returns_status_only(self):
        assert await health_check() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_liveness_keys(self):
        result = await liveness_probe()

        assert set(result.keys()) == {"status", "timestamp"}
        assert result["status"] == "alive"

    @pytest.mark.asyncio
    async def test_readiness_reports_service_availability(self):
        result = await readiness_probe(_request(db=_db(), llm=None))

        assert result["status"] == "ready"
        assert result["database_available"] is True
        assert result["llm_available"] is False

    @pytest.mark.asyncio
    async def test_readiness_without_state(self):
        result = await readiness_probe(SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace())))

        assert result["database_available"] is False

    def test_readiness_source_has_no_exception_leak(self):
        source = inspect.getsource(readiness_probe)
        assert "str(e)" not in source


class TestDetailedHealth:

    @pytest.mark.asyncio
    async def test_all_healthy(self):
        result = await detailed_health_check(_request(db=_db(), llm=_llm()))

        assert result.status == "healthy"
        assert set(result.services) == {"database", "llm_service"}
        assert result.services["database"]["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_degraded_when_database_missing(self):
        result = await detailed_health_check(_request(db=None, llm=_llm()))

        assert result.status == "degraded"
        assert result.services["database"]["status"] == "unavailable"

    @pytest.mark.asyncio
    async def test_check_exception_is_sanitized(self):
        llm = MagicMock()
        llm.health_check = AsyncMock(side_effect=RuntimeError("secret endpoint https://internal"))

        result = await detailed_health_check(_request(db=_db(), llm=llm))

        assert result.status == "degraded"
        assert result.services["llm_service"]["status"] == "unhealthy"
        assert "internal" not in str(result.services)


class TestCheckHelpers:

    @pytest.mark.asyncio
    async def test_database_not_ready(self):
        result = await _check_database(_db(ready=False))

        assert result["status"] == "unavailable"

    @pytest.mark.asyncio
    async def test_database_delegates(self):
        db = _db(status="unhealthy")

        assert (await _check_database(db))["status"] == "unhealthy"
        db.health_check.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_llm_missing(self):
        assert (await _check_llm_service(None))["status"] == "unavailable"
