"""Models package for the QuerySight API"""

from .schemas import (
    # Request Models
    QueryRequest, VisualizeRequest, ChartTypeRequest, ChartRequest,

    # Response Models
    QueryResponse, ChartResponse, VisualizationSnapshot, HealthCheck,
)

__all__ = [
    # Request Models
    "QueryRequest", "VisualizeRequest", "ChartTypeRequest", "ChartRequest",

    # Response Models
    "QueryResponse", "ChartResponse", "VisualizationSnapshot", "HealthCheck",
]
