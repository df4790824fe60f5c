"""
Pydantic models for API request/response schemas and data validation
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Literal
from pydantic import BaseModel, Field, field_validator

from backend.services.chart_data_builder import ChartKind
from backend.services.query_session import ViewStatus


def _strip_query(v: str) -> str:
    if not v.strip():
        raise ValueError('Query cannot be empty or whitespace only')
    return v.strip()


# Request Models
class QueryRequest(BaseModel):
    """Natural-language question"""
    query: str = Field(..., min_length=1, max_length=4000, description="Question about the dataset")

    @field_validator('query')
    @classmethod
    def validate_query(cls, v):
        return _strip_query(v)


class VisualizeRequest(BaseModel):
    """Question submitted from the visualization page"""
    query: str = Field(..., min_length=1, max_length=4000)
    chartType: Optional[str] = Field(None, description="Chart kind; unknown values render as a line chart")
    sessionId: Optional[str] = Field(None, max_length=64, description="Existing view session to update")

    @field_validator('query')
    @classmethod
    def validate_query(cls, v):
        return _strip_query(v)


class ChartTypeRequest(BaseModel):
    """Chart selector change"""
    chartType: str = Field(..., min_length=1)


class ChartRequest(BaseModel):
    """Shape already-fetched rows without running a query"""
    results: List[Dict[str, Any]]
    chartType: Optional[str] = None
    categoryField: Optional[str] = Field(None, description="Column for chart labels; defaults to the first")
    valueField: Optional[str] = Field(None, description="Column for chart values; defaults to the second")


# Response Models
class QueryResponse(BaseModel):
    """Rows plus the SQL that produced them"""
    results: List[Dict[str, Any]]
    sqlQuery: str


class ChartResponse(BaseModel):
    chart: Optional[Dict[str, Any]] = None
    table: Optional[Dict[str, Any]] = None
    error: Optional[str] = Field(None, description="Why no chart could be drawn for the rows")
    code: Optional[str] = None


class VisualizationSnapshot(BaseModel):
    """Current state of a query view"""
    sessionId: str
    submissionId: Optional[int] = None
    status: ViewStatus
    stale: bool = False
    query: Optional[str] = None
    sqlQuery: Optional[str] = None
    chartType: ChartKind = ChartKind.LINE
    chart: Optional[Dict[str, Any]] = None
    table: Optional[Dict[str, Any]] = None
    results: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None


class HealthCheck(BaseModel):
    """Health check response"""
    status: Literal["healthy", "unhealthy", "degraded"]
    version: str
    timestamp: datetime
    services: Dict[str, Dict[str, Any]]
