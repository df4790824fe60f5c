"""
Result set structure returned by the database executor.

Carries the rows in cursor column order together with the natural-language
question and the generated SQL that produced them.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional


Record = Dict[str, Any]


@dataclass
class ResultMetadata:
    """Metadata about how a result set was produced (display/debugging only)."""

    natural_language_query: str
    sql_query: str
    execution_time_ms: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class QueryResult:
    """
    Ordered records plus the column names reported by the cursor.

    ``columns`` is authoritative for field order even when ``records`` is empty.
    """

    records: List[Record]
    columns: List[str]
    metadata: ResultMetadata

    row_count: int = 0
    is_empty: bool = False

    def __post_init__(self):
        """Auto-compute derived fields."""
        self.row_count = len(self.records)
        self.is_empty = self.row_count == 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the ``/api/query`` response body."""
        return {
            "results": self.records,
            "sqlQuery": self.metadata.sql_query,
        }
