"""
Tests for query view state: status transitions, overlapping submissions and
the bounded session registry.
"""

import pytest

from backend.services.chart_data_builder import ChartDataBuilder
from backend.services.query_session import (
    QuerySession,
    SequencingPolicy,
    SessionRegistry,
    ViewStatus,
)
from backend.services.result_shaper import ColumnDescriptor, shape_results

STATES = [{"state": "CA", "jobs": 12}, {"state": "NY", "jobs": 6}]


@pytest.fixture
def builder():
    return ChartDataBuilder()


def _display(session, submission_id, rows, builder, sql="SELECT 1"):
    return session.display(submission_id, shape_results(rows), rows, sql, builder)


class TestTransitions:

    def test_starts_idle(self):
        snapshot = QuerySession().snapshot()

        assert snapshot["status"] == "idle"
        assert snapshot["chart"] is None
        assert snapshot["table"] is None
        assert snapshot["results"] == []
        assert snapshot["chartType"] == "line"

    def test_submit_then_display(self, builder, jan_feb_rows):
        session = QuerySession()

        submission = session.submit("sales by month")
        assert session.status == ViewStatus.SUBMITTING

        assert _display(session, submission, jan_feb_rows, builder)
        snapshot = session.snapshot()
        assert snapshot["status"] == "displaying"
        assert snapshot["submissionId"] == submission
        assert snapshot["query"] == "sales by month"
        assert snapshot["sqlQuery"] == "SELECT 1"
        assert snapshot["chart"]["data"]["labels"] == ["Jan", "Feb"]
        assert snapshot["table"]["rows"] == jan_feb_rows
        assert snapshot["error"] is None

    def test_failure_clears_chart_and_table(self, builder, jan_feb_rows):
        session = QuerySession()
        _display(session, session.submit("q1"), jan_feb_rows, builder)

        assert session.fail(session.submit("q2"), "Database query error")

        snapshot = session.snapshot()
        assert snapshot["status"] == "failed"
        assert snapshot["error"] == "Database query error"
        assert snapshot["chart"] is None
        assert snapshot["table"] is None
        assert snapshot["results"] == []

    def test_unchartable_failure_keeps_table(self, builder, jan_feb_rows):
        session = QuerySession()
        _display(session, session.submit("q1"), jan_feb_rows, builder)
        rows = [{"total": 5}]

        assert session.fail(
            session.submit("q2"),
            "The query results cannot be charted.",
            sql_query="SELECT COUNT(*) AS total FROM requests",
            results=rows,
            columns=[ColumnDescriptor("total", "total")],
        )

        snapshot = session.snapshot()
        assert snapshot["status"] == "failed"
        assert snapshot["chart"] is None
        assert snapshot["results"] == rows
        assert snapshot["table"] == {"columns": [{"header": "total", "accessor": "total"}], "rows": rows}

        session.select_chart_kind("pie", builder)
        assert session.chart is None

    def test_display_clears_previous_error(self, builder, jan_feb_rows):
        session = QuerySession()
        session.fail(session.submit("q1"), "No data returned from the query.")

        _display(session, session.submit("q2"), jan_feb_rows, builder)

        assert session.snapshot()["error"] is None

    def test_submission_ids_increase(self):
        session = QuerySession()

        assert [session.submit("a"), session.submit("b"), session.submit("c")] == [1, 2, 3]


class TestChartKindSelection:

    def test_rerenders_without_requery(self, builder, jan_feb_rows):
        session = QuerySession()
        _display(session, session.submit("q"), jan_feb_rows, builder)
        table_before = session.table

        session.select_chart_kind("bar", builder)

        assert session.snapshot()["chartType"] == "bar"
        assert session.chart["type"] == "bar"
        assert session.chart["data"]["datasets"][0]["data"] == [1000.0, 2000.0]
        assert session.table == table_before

    def test_selection_before_any_result(self, builder, jan_feb_rows):
        session = QuerySession()
        session.select_chart_kind("radar", builder)

        assert session.chart is None

        _display(session, session.submit("q"), jan_feb_rows, builder)
        assert session.chart["type"] == "radar"

    def test_unknown_kind_is_line(self, builder):
        session = QuerySession()
        session.select_chart_kind("gantt", builder)

        assert session.snapshot()["chartType"] == "line"


class TestOverlappingSubmissions:

    def test_latest_submission_wins_when_older_arrives_last(self, builder, jan_feb_rows):
        session = QuerySession(policy=SequencingPolicy.LATEST_SUBMISSION)
        first = session.submit("sales by month")
        second = session.submit("jobs by state")

        assert _display(session, second, STATES, builder)
        assert not _display(session, first, jan_feb_rows, builder)

        snapshot = session.snapshot(stale=True)
        assert snapshot["submissionId"] == second
        assert snapshot["chart"]["data"]["labels"] == ["CA", "NY"]
        assert snapshot["stale"] is True

    def test_stale_flag_is_not_kept_on_the_session(self, builder, jan_feb_rows):
        session = QuerySession()
        first = session.submit("sales by month")
        second = session.submit("jobs by state")
        _display(session, second, STATES, builder)
        _display(session, first, jan_feb_rows, builder)

        session.select_chart_kind("bar", builder)

        snapshot = session.snapshot()
        assert snapshot["stale"] is False
        assert snapshot["submissionId"] == second
        assert snapshot["chart"]["type"] == "bar"

    def test_latest_submission_discards_older_arriving_first(self, builder, jan_feb_rows):
        session = QuerySession()
        first = session.submit("sales by month")
        second = session.submit("jobs by state")

        assert not _display(session, first, jan_feb_rows, builder)
        assert session.status == ViewStatus.SUBMITTING

        assert _display(session, second, STATES, builder)
        assert session.snapshot()["stale"] is False
        assert session.snapshot()["chart"]["data"]["labels"] == ["CA", "NY"]

    def test_stale_failure_is_discarded(self, builder):
        session = QuerySession()
        first = session.submit("q1")
        second = session.submit("q2")
        _display(session, second, STATES, builder)

        assert not session.fail(first, "Database query error")
        assert session.snapshot()["error"] is None

    def test_last_response_policy(self, builder, jan_feb_rows):
        session = QuerySession(policy=SequencingPolicy.LAST_RESPONSE)
        first = session.submit("sales by month")
        second = session.submit("jobs by state")

        assert _display(session, second, STATES, builder)
        assert _display(session, first, jan_feb_rows, builder)

        snapshot = session.snapshot()
        assert snapshot["submissionId"] == first
        assert snapshot["chart"]["data"]["labels"] == ["Jan", "Feb"]
        assert snapshot["stale"] is False


class TestSessionRegistry:

    def test_get_or_create_reuses_session(self):
        registry = SessionRegistry()
        session = registry.get_or_create()

        assert registry.get_or_create(session.session_id) is session
        assert registry.get(session.session_id) is session

    def test_unknown_id_creates_session_with_that_id(self):
        registry = SessionRegistry()

        assert registry.get_or_create("abc").session_id == "abc"

    def test_get_unknown(self):
        assert SessionRegistry().get("missing") is None

    def test_evicts_oldest(self):
        registry = SessionRegistry(max_sessions=2)
        a = registry.get_or_create("a")
        registry.get_or_create("b")
        registry.get("a")
        registry.get_or_create("c")

        assert len(registry) == 2
        assert registry.get("a") is a
        assert registry.get("b") is None

    def test_policy_applied_to_new_sessions(self):
        registry = SessionRegistry(policy="last_response")

        assert registry.get_or_create().policy == SequencingPolicy.LAST_RESPONSE
