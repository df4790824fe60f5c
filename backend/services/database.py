"""
Database Service - Manages the MySQL connection pool and runs generated SQL
"""

import asyncio
import datetime
from decimal import Decimal
from typing import Dict, Any, Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
import structlog

from backend.services.query_result import QueryResult, ResultMetadata
from backend.utils.errors import DatabaseQueryError, DatabaseUnavailableError

logger = structlog.get_logger(__name__)


def format_time_delta(delta: datetime.timedelta) -> str:
    """MySQL TIME values arrive as timedeltas; render them as [-]HH:MM:SS[.ffffff]"""
    sign = "-" if delta < datetime.timedelta(0) else ""
    delta = abs(delta)
    hours, remainder = divmod(delta.days * 86400 + delta.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    text = f"{sign}{hours:02d}:{minutes:02d}:{seconds:02d}"
    if delta.microseconds:
        text += f".{delta.microseconds:06d}"
    return text


def normalize_value(value: Any) -> Any:
    """Convert driver values to JSON-native types."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return format_time_delta(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


class DatabaseService:
    """Service for executing generated SQL against the dataset"""

    def __init__(self, settings, engine: Optional[AsyncEngine] = None):
        self.settings = settings
        self.engine = engine

    @property
    def is_ready(self) -> bool:
        return self.engine is not None

    async def initialize(self):
        """Create the engine and verify connectivity"""
        url = self.settings.database_url
        logger.info("Initializing database connection", database_url=url.split('@')[1] if '@' in url else 'unknown')

        try:
            engine = create_async_engine(
                url,
                echo=self.settings.debug,
                pool_size=self.settings.db_pool_size,
                pool_pre_ping=True,
                pool_recycle=self.settings.db_pool_recycle,
            )
        except SQLAlchemyError as e:
            raise DatabaseUnavailableError("Invalid database configuration", cause=e) from e

        retries = max(1, self.settings.db_connect_retries)
        for attempt in range(retries):
            try:
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
                logger.info("Database connection test successful")
                break
            except (SQLAlchemyError, OSError) as e:
                if attempt < retries - 1:
                    logger.warning(
                        "Database connection attempt failed",
                        attempt=attempt + 1,
                        max_retries=retries,
                        delay_seconds=self.settings.db_connect_retry_delay,
                        error=str(e)
                    )
                    await asyncio.sleep(self.settings.db_connect_retry_delay)
                    continue
                logger.error("Exhausted database connection retries", attempts=retries, error=str(e))
                await engine.dispose()
                raise DatabaseUnavailableError("Database connection failed", cause=e) from e

        self.engine = engine
        logger.info("Database service initialized successfully")

    async def execute_query(self, sql: str, natural_language_query: str = "") -> QueryResult:
        """
        Run ``sql`` verbatim and return its rows in cursor column order.

        Raises:
            DatabaseUnavailableError: the engine was never initialized
            DatabaseQueryError: the driver rejected or failed the statement
        """
        if self.engine is None:
            raise DatabaseUnavailableError("Database engine is not initialized")

        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text(sql))
                if result.returns_rows:
                    columns = list(result.keys())
                    rows = result.fetchall()
                else:
                    columns, rows = [], []
        except SQLAlchemyError as e:
            raise DatabaseQueryError("Database query error", cause=e) from e

        records = [
            {column: normalize_value(value) for column, value in zip(columns, row)}
            for row in rows
        ]
        elapsed_ms = (loop.time() - started) * 1000

        logger.info("Query executed", rows=len(records), columns=len(columns), execution_time_ms=round(elapsed_ms, 1))

        return QueryResult(
            records=records,
            columns=columns,
            metadata=ResultMetadata(
                natural_language_query=natural_language_query,
                sql_query=sql,
                execution_time_ms=elapsed_ms,
            ),
        )

    async def health_check(self) -> Dict[str, Any]:
        if self.engine is None:
            return {"status": "unhealthy", "reason": "not initialized"}
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "healthy"}
        except SQLAlchemyError as e:
            logger.error("Database health check failed", error=str(e))
            return {"status": "unhealthy", "reason": "connection failed"}

    async def close(self):
        """Close database connections"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
