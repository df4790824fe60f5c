"""
Query view state for the visualization page.

A QuerySession tracks one browser view: the last question, the generated SQL,
the rows, the chart and table models, and any error. Submissions are numbered
so that a slow response for an older question can be told apart from the
answer to the newest one.
"""

from collections import OrderedDict
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
import uuid
import structlog

from backend.services.chart_data_builder import ChartDataBuilder, ChartKind, build_table
from backend.services.result_shaper import ColumnDescriptor, ShapedResult

logger = structlog.get_logger(__name__)


class ViewStatus(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    DISPLAYING = "displaying"
    FAILED = "failed"


class SequencingPolicy(str, Enum):
    """How responses to overlapping submissions are applied"""
    LATEST_SUBMISSION = "latest_submission"
    LAST_RESPONSE = "last_response"


class QuerySession:
    """State of one query view. Mutated only on the event loop thread."""

    def __init__(
        self,
        session_id: Optional[str] = None,
        policy: SequencingPolicy = SequencingPolicy.LATEST_SUBMISSION,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.policy = SequencingPolicy(policy)
        self.status = ViewStatus.IDLE
        self.latest_submission = 0
        self.displayed_submission: Optional[int] = None

        self.query: Optional[str] = None
        self.sql_query: Optional[str] = None
        self.chart_kind = ChartKind.LINE
        self.shaped: Optional[ShapedResult] = None
        self.results: List[Dict[str, Any]] = []
        self.chart: Optional[Dict[str, Any]] = None
        self.table: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None

    def submit(self, query: str) -> int:
        """Start a new submission and return its id"""
        self.latest_submission += 1
        self.query = query
        self.status = ViewStatus.SUBMITTING
        return self.latest_submission

    def _accepts(self, submission_id: int) -> bool:
        if self.policy == SequencingPolicy.LAST_RESPONSE:
            return True
        if submission_id < self.latest_submission:
            logger.info(
                "Discarding response for superseded submission",
                session_id=self.session_id,
                submission_id=submission_id,
                latest_submission=self.latest_submission,
            )
            return False
        return True

    def _settle(self, submission_id: int):
        self.displayed_submission = submission_id

    def display(
        self,
        submission_id: int,
        shaped: Optional[ShapedResult],
        results: List[Dict[str, Any]],
        sql_query: Optional[str],
        builder: ChartDataBuilder,
    ) -> bool:
        """
        Apply a successful response. Clears any previous error.

        Returns False when the response was discarded as superseded.
        """
        if not self._accepts(submission_id):
            return False

        self.shaped = shaped
        self.results = list(results)
        self.sql_query = sql_query
        self.error = None
        self._render(builder)
        self._settle(submission_id)
        self.status = ViewStatus.DISPLAYING
        return True

    def fail(
        self,
        submission_id: int,
        message: str,
        sql_query: Optional[str] = None,
        results: Optional[List[Dict[str, Any]]] = None,
        columns: Optional[Sequence[ColumnDescriptor]] = None,
    ) -> bool:
        """
        Apply a failed response. Clears the chart.

        Rows and columns are kept for the table when the query itself ran but
        its results cannot be charted; otherwise the table is cleared too.

        Returns False when the response was discarded as superseded.
        """
        if not self._accepts(submission_id):
            return False

        self.shaped = None
        self.results = list(results or [])
        self.chart = None
        self.table = build_table(self.results, columns or [])
        self.sql_query = sql_query
        self.error = message
        self._settle(submission_id)
        self.status = ViewStatus.FAILED
        return True

    def select_chart_kind(self, kind: Optional[str], builder: ChartDataBuilder):
        """Re-render the stored dataset with another chart kind; never re-queries"""
        self.chart_kind = ChartKind.parse(kind)
        if self.shaped is not None:
            self.chart = builder.build_chart(self.shaped.chart, self.chart_kind)

    def _render(self, builder: ChartDataBuilder):
        if self.shaped is None:
            self.chart = None
            self.table = None
            return
        self.chart = builder.build_chart(self.shaped.chart, self.chart_kind)
        self.table = build_table(self.results, self.shaped.columns)

    def snapshot(self, stale: bool = False) -> Dict[str, Any]:
        """
        Current view state. ``stale`` marks a response whose own result was
        discarded in favour of a newer submission.
        """
        return {
            "sessionId": self.session_id,
            "submissionId": self.displayed_submission,
            "status": self.status.value,
            "stale": stale,
            "query": self.query,
            "sqlQuery": self.sql_query,
            "chartType": self.chart_kind.value,
            "chart": self.chart,
            "table": self.table,
            "results": self.results,
            "error": self.error,
        }


class SessionRegistry:
    """In-memory bounded registry of query sessions; the oldest is evicted first"""

    def __init__(
        self,
        max_sessions: int = 1000,
        policy: SequencingPolicy = SequencingPolicy.LATEST_SUBMISSION,
    ):
        self.max_sessions = max(1, max_sessions)
        self.policy = SequencingPolicy(policy)
        self._sessions: "OrderedDict[str, QuerySession]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str) -> Optional[QuerySession]:
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions.move_to_end(session_id)
        return session

    def get_or_create(self, session_id: Optional[str] = None) -> QuerySession:
        if session_id:
            existing = self.get(session_id)
            if existing is not None:
                return existing

        session = QuerySession(session_id=session_id, policy=self.policy)
        self._sessions[session.session_id] = session
        while len(self._sessions) > self.max_sessions:
            evicted_id, _ = self._sessions.popitem(last=False)
            logger.debug("Evicted query session", session_id=evicted_id)
        return session
