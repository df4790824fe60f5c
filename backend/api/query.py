"""
Query API endpoints

/api/query returns raw rows and the generated SQL. /api/visualize runs the
same pipeline for the browser page and keeps per-view state so chart changes
and overlapping submissions are handled server-side. /api/chart shapes rows
the caller already has.
"""

from typing import Any, Dict, List, Optional, Sequence

from fastapi import APIRouter, Depends, Request
import structlog

from backend.config.settings import Settings, get_settings
from backend.models.schemas import (
    ChartRequest,
    ChartResponse,
    ChartTypeRequest,
    QueryRequest,
    QueryResponse,
    VisualizationSnapshot,
    VisualizeRequest,
)
from backend.services.chart_data_builder import ChartDataBuilder, build_table
from backend.services.database import DatabaseService
from backend.services.query_orchestrator import QueryOrchestrator
from backend.services.query_session import SessionRegistry
from backend.services.result_shaper import ColumnDescriptor, ResultSchema, ShapedResult, shape_results
from backend.services.text_to_sql_service import TextToSQLService
from backend.utils.errors import (
    USER_FRIENDLY_MESSAGES,
    CompletionServiceError,
    DatabaseUnavailableError,
    EmptyResultError,
    ErrorCode,
    SessionNotFoundError,
    ShapingError,
    UpstreamError,
)

router = APIRouter()
logger = structlog.get_logger(__name__)


def get_orchestrator(request: Request) -> QueryOrchestrator:
    """Build the pipeline from the services created at startup"""
    db: Optional[DatabaseService] = getattr(request.app.state, "db", None)
    if db is None or not db.is_ready:
        raise DatabaseUnavailableError("Database service not initialized")

    llm = getattr(request.app.state, "llm", None)
    if llm is None:
        raise CompletionServiceError("Completion service not initialized")

    return QueryOrchestrator(TextToSQLService(llm), db)


def get_session_registry(request: Request) -> SessionRegistry:
    registry = getattr(request.app.state, "sessions", None)
    if registry is None:
        settings = get_settings()
        registry = SessionRegistry(settings.max_sessions, settings.sequencing_policy)
        request.app.state.sessions = registry
    return registry


def get_chart_builder(settings: Settings = Depends(get_settings)) -> ChartDataBuilder:
    return ChartDataBuilder.from_settings(settings)


def shape_rows(
    records: List[Dict[str, Any]],
    columns: Sequence[str],
    settings: Settings,
    category_field: Optional[str] = None,
    value_field: Optional[str] = None,
) -> ShapedResult:
    """Shape rows with the configured palette; column order comes from ``columns``"""
    if not records:
        raise EmptyResultError()
    schema = ResultSchema.from_columns(
        columns or list(records[0].keys()),
        records,
        category_field=category_field,
        value_field=value_field,
    )
    return shape_results(
        records,
        schema,
        base_color=settings.chart_base_color,
        light_color=settings.chart_light_color,
    )


def table_columns(records: List[Dict[str, Any]], columns: Sequence[str]) -> List[ColumnDescriptor]:
    """Table columns straight from the cursor, used when no chart schema exists"""
    names = list(columns) or (list(records[0].keys()) if records else [])
    return [ColumnDescriptor(header=name, accessor=name) for name in names]


@router.post("/query", response_model=QueryResponse)
async def run_query(
    body: QueryRequest,
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
):
    """Translate a question to SQL, execute it and return the rows"""
    result = await orchestrator.run(body.query)
    return result.to_dict()


@router.post("/visualize", response_model=VisualizationSnapshot)
async def visualize(
    body: VisualizeRequest,
    orchestrator: QueryOrchestrator = Depends(get_orchestrator),
    registry: SessionRegistry = Depends(get_session_registry),
    builder: ChartDataBuilder = Depends(get_chart_builder),
    settings: Settings = Depends(get_settings),
):
    """
    Run a question for a query view and return the view's snapshot.

    Results that cannot be charted leave the view in the failed state with a
    200 response; the rows are still returned as a table unless there were
    none. Upstream and unexpected failures also fail the view, then surface
    as error responses.
    """
    session = registry.get_or_create(body.sessionId)
    if body.chartType:
        session.select_chart_kind(body.chartType, builder)
    submission_id = session.submit(body.query)

    try:
        result = await orchestrator.run(body.query)
    except UpstreamError as e:
        session.fail(submission_id, e.user_message)
        raise
    except Exception:
        session.fail(submission_id, USER_FRIENDLY_MESSAGES[ErrorCode.INTERNAL_ERROR])
        raise

    sql_query = result.metadata.sql_query
    try:
        shaped = shape_rows(result.records, result.columns, settings)
    except ShapingError as e:
        logger.info(
            "Query results cannot be charted",
            session_id=session.session_id,
            code=e.code.value,
            reason=e.message,
        )
        accepted = session.fail(
            submission_id,
            e.user_message,
            sql_query=sql_query,
            results=result.records,
            columns=table_columns(result.records, result.columns),
        )
        return session.snapshot(stale=not accepted)

    accepted = session.display(submission_id, shaped, result.records, sql_query, builder)
    return session.snapshot(stale=not accepted)


@router.get("/visualize/{session_id}", response_model=VisualizationSnapshot)
async def get_visualization(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = registry.get(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session.snapshot()


@router.post("/visualize/{session_id}/chart-type", response_model=VisualizationSnapshot)
async def change_chart_type(
    session_id: str,
    body: ChartTypeRequest,
    registry: SessionRegistry = Depends(get_session_registry),
    builder: ChartDataBuilder = Depends(get_chart_builder),
):
    """Re-render the stored dataset with another chart kind"""
    session = registry.get(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    session.select_chart_kind(body.chartType, builder)
    return session.snapshot()


@router.post("/chart", response_model=ChartResponse)
async def build_chart(
    body: ChartRequest,
    builder: ChartDataBuilder = Depends(get_chart_builder),
    settings: Settings = Depends(get_settings),
):
    """
    Chart and table models for rows supplied by the caller.

    Rows that cannot be charted still come back as a table, with the reason
    in ``error``. An empty row set is a 422.
    """
    columns = list(body.results[0].keys()) if body.results else []
    try:
        shaped = shape_rows(
            body.results,
            columns,
            settings,
            category_field=body.categoryField,
            value_field=body.valueField,
        )
    except EmptyResultError:
        raise
    except ShapingError as e:
        logger.info("Supplied rows cannot be charted", code=e.code.value, reason=e.message)
        return {
            "chart": None,
            "table": build_table(body.results, table_columns(body.results, columns)),
            "error": e.user_message,
            "code": e.code.value,
        }

    return {
        "chart": builder.build_chart(shaped.chart, body.chartType),
        "table": build_table(body.results, shaped.columns),
    }
