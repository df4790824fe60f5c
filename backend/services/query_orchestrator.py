"""
Query orchestrator - business logic layer.

Runs one natural-language question through SQL generation and execution.
Knows nothing about charts or HTTP; callers shape and present the result.
"""
import time
import structlog
from prometheus_client import Counter, Histogram

from backend.services.database import DatabaseService
from backend.services.query_result import QueryResult
from backend.services.text_to_sql_service import TextToSQLService
from backend.utils.errors import QueryPipelineError

logger = structlog.get_logger(__name__)

QUERY_OUTCOMES = Counter(
    "nl_query_outcomes_total",
    "Natural-language query pipeline outcomes",
    ["outcome"],
)
QUERY_DURATION = Histogram(
    "nl_query_duration_seconds",
    "Time from question to result rows",
)


class QueryOrchestrator:
    """
    Orchestrates the question -> SQL -> rows pipeline.

    Does NOT:
    - Validate or rewrite the generated SQL
    - Shape results for charts
    """

    def __init__(self, text_to_sql: TextToSQLService, database: DatabaseService):
        self.text_to_sql = text_to_sql
        self.database = database

    async def run(self, query: str) -> QueryResult:
        """
        Generate SQL for ``query`` and execute it.

        Raises:
            CompletionServiceError: SQL generation failed
            DatabaseQueryError / DatabaseUnavailableError: execution failed
        """
        started = time.perf_counter()
        try:
            generated = await self.text_to_sql.generate_sql(query)
            result = await self.database.execute_query(generated.sql, natural_language_query=query)
        except QueryPipelineError as e:
            QUERY_OUTCOMES.labels(outcome=e.code.value.lower()).inc()
            raise

        elapsed = time.perf_counter() - started
        QUERY_DURATION.observe(elapsed)
        QUERY_OUTCOMES.labels(outcome="empty" if result.is_empty else "success").inc()

        logger.info(
            "Query pipeline completed",
            query=query[:100],
            rows=result.row_count,
            duration_ms=round(elapsed * 1000, 1),
        )
        return result
