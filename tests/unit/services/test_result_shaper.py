"""
Tests for Result Shaper

Covers value coercion, intensity normalization, point colors and the
category/value schema used to read arbitrary result sets.
"""

from decimal import Decimal

import pytest

from backend.services.color_interpolator import RGB
from backend.services.result_shaper import (
    ColumnDescriptor,
    FieldKind,
    ResultSchema,
    coerce_numeric,
    compute_intensities,
    shape_results,
)
from backend.utils.errors import (
    EmptyResultError,
    ErrorCode,
    InvalidResultShapeError,
    InvalidValueError,
)

BASE = RGB(121, 188, 67)
LIGHT = RGB(223, 242, 209)


class TestCoerceNumeric:

    @pytest.mark.parametrize("raw, expected", [
        (1000, 1000.0),
        (12.5, 12.5),
        (Decimal("99.95"), 99.95),
        ("$1,234.56", 1234.56),
        ("-$50", -50.0),
        ("  42 units", 42.0),
        (".5", 0.5),
        ("1.2.3", 1.2),
    ])
    def test_numeric_values(self, raw, expected):
        assert coerce_numeric(raw) == pytest.approx(expected)

    def test_null_stays_null(self):
        assert coerce_numeric(None) is None

    @pytest.mark.parametrize("raw", ["abc", "", "-", "N/A", True, float("nan"), float("inf"), [1]])
    def test_unreadable_values_raise(self, raw):
        with pytest.raises(InvalidValueError):
            coerce_numeric(raw, "Sales", 3)

    def test_error_names_field_and_value(self):
        with pytest.raises(InvalidValueError) as exc_info:
            coerce_numeric("twelve", "Sales", 1)

        exc = exc_info.value
        assert exc.field == "Sales"
        assert exc.value == "twelve"
        assert exc.code == ErrorCode.INVALID_VALUE
        assert "'twelve'" in exc.message
        assert "Sales" in exc.message
        assert exc.details == {"field": "Sales", "row": 1}


class TestComputeIntensities:

    def test_relative_to_maximum(self):
        assert compute_intensities([1000.0, 2000.0]) == [0.5, 1.0]

    def test_all_zero_values(self):
        assert compute_intensities([0.0, 0.0, 0.0]) == [0.0, 0.0, 0.0]

    def test_all_negative_values(self):
        assert compute_intensities([-5.0, -10.0]) == [0.0, 0.0]

    def test_negative_values_clamp_to_zero(self):
        assert compute_intensities([-50.0, 100.0]) == [0.0, 1.0]

    def test_nulls_get_zero(self):
        assert compute_intensities([None, 4.0, 2.0]) == [0.0, 1.0, 0.5]

    def test_only_nulls(self):
        assert compute_intensities([None, None]) == [0.0, 0.0]


class TestResultSchema:

    def test_defaults_to_first_two_columns(self):
        schema = ResultSchema.from_columns(["Month", "Sales", "Orders"])

        assert schema.category_field == "Month"
        assert schema.value_field == "Sales"
        assert schema.field_names == ["Month", "Sales", "Orders"]

    def test_axis_overrides(self):
        schema = ResultSchema.from_columns(
            ["Month", "Sales", "Orders"], category_field="Month", value_field="Orders"
        )

        assert schema.value_field == "Orders"

    def test_category_override_picks_next_value_column(self):
        schema = ResultSchema.from_columns(["id", "Month", "Sales"], category_field="Month")

        assert schema.category_field == "Month"
        assert schema.value_field == "id"

    def test_field_kinds_from_records(self):
        records = [{"Month": "Jan", "Sales": None, "Note": None}, {"Month": "Feb", "Sales": 5, "Note": None}]
        schema = ResultSchema.from_columns(["Month", "Sales", "Note"], records)

        kinds = {spec.name: spec.kind for spec in schema.fields}
        assert kinds == {"Month": FieldKind.TEXT, "Sales": FieldKind.NUMBER, "Note": FieldKind.NULL}

    def test_single_column_rejected(self):
        with pytest.raises(InvalidResultShapeError):
            ResultSchema.from_columns(["total"])

    def test_unknown_override_rejected(self):
        with pytest.raises(InvalidResultShapeError) as exc_info:
            ResultSchema.from_columns(["Month", "Sales"], value_field="Revenue")

        assert "Revenue" in exc_info.value.message

    def test_same_category_and_value_rejected(self):
        with pytest.raises(InvalidResultShapeError):
            ResultSchema.from_columns(["Month", "Sales"], category_field="Sales", value_field="Sales")

    def test_from_records_uses_key_order(self):
        schema = ResultSchema.from_records([{"b": 1, "a": "x"}])

        assert schema.category_field == "b"
        assert schema.value_field == "a"

    def test_from_records_empty(self):
        with pytest.raises(EmptyResultError):
            ResultSchema.from_records([])


class TestShapeResults:

    def test_monthly_sales(self, jan_feb_rows):
        shaped = shape_results(jan_feb_rows)
        chart = shaped.chart

        assert chart.labels == ["Jan", "Feb"]
        assert chart.values == [1000.0, 2000.0]
        assert chart.max_value == 2000.0
        assert chart.intensities == [0.5, 1.0]
        assert chart.colors == [RGB(172, 215, 138), LIGHT]
        assert chart.label == "Dataset for Sales"

    def test_sequences_match_record_count(self, revenue_rows):
        chart = shape_results(revenue_rows).chart

        assert len(chart.labels) == len(chart.values) == len(chart.colors) == len(revenue_rows)

    def test_currency_strings_and_nulls(self, revenue_rows):
        chart = shape_results(revenue_rows).chart

        assert chart.values[0] == pytest.approx(1234.56)
        assert chart.values[2] is None
        assert chart.intensities == pytest.approx([1.0, 0.5, 0.0])
        assert chart.colors[2] == BASE

    def test_columns_preserve_order(self, revenue_rows):
        shaped = shape_results(revenue_rows)

        assert shaped.columns == [
            ColumnDescriptor("state", "state"),
            ColumnDescriptor("customerInvoiceSubtotal", "customerInvoiceSubtotal"),
        ]
        assert shaped.columns[0].to_dict() == {"header": "state", "accessor": "state"}

    def test_all_zero_values_do_not_raise(self):
        chart = shape_results([{"m": "Jan", "v": 0}, {"m": "Feb", "v": 0}]).chart

        assert chart.intensities == [0.0, 0.0]
        assert chart.colors == [BASE, BASE]

    def test_empty_results(self):
        with pytest.raises(EmptyResultError) as exc_info:
            shape_results([])

        assert exc_info.value.message == "No data returned from the query."

    def test_unparseable_value(self):
        rows = [{"m": "Jan", "v": "10"}, {"m": "Feb", "v": "lots"}]

        with pytest.raises(InvalidValueError) as exc_info:
            shape_results(rows)

        assert exc_info.value.row_index == 1

    def test_explicit_schema(self):
        rows = [{"Month": "Jan", "Sales": 1, "Orders": 4}, {"Month": "Feb", "Sales": 2, "Orders": 2}]
        schema = ResultSchema.from_columns(["Month", "Sales", "Orders"], rows, value_field="Orders")

        chart = shape_results(rows, schema).chart

        assert chart.values == [4.0, 2.0]
        assert chart.label == "Dataset for Orders"

    def test_custom_palette(self, jan_feb_rows):
        chart = shape_results(jan_feb_rows, base_color="#000000", light_color="#ffffff").chart

        assert chart.colors == [RGB(128, 128, 128), RGB(255, 255, 255)]
