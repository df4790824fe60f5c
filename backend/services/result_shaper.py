"""
Result Shaper - turns an arbitrary tabular result into a chart dataset and a
table column list.

The category and value axes come from an explicit ResultSchema. By default the
schema is taken from the cursor column order (first column is the category,
second is the value), but callers can name either axis.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
from decimal import Decimal
import math
import numbers
import re
import structlog

from backend.services.color_interpolator import RGB, hex_to_rgb, interpolate_color
from backend.utils.errors import (
    EmptyResultError,
    InvalidResultShapeError,
    InvalidValueError,
)

logger = structlog.get_logger(__name__)

DEFAULT_BASE_COLOR = "#79bc43"
DEFAULT_LIGHT_COLOR = "#dff2d1"

NON_NUMERIC_CHARS = re.compile(r"[^0-9.\-]+")
LEADING_FLOAT = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")


class FieldKind(str, Enum):
    NUMBER = "number"
    TEXT = "text"
    NULL = "null"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: FieldKind


@dataclass(frozen=True)
class ColumnDescriptor:
    """One table column; header and accessor are both the field name."""
    header: str
    accessor: str

    def to_dict(self) -> Dict[str, str]:
        return {"header": self.header, "accessor": self.accessor}


def _field_kind(records: Sequence[Dict[str, Any]], name: str) -> FieldKind:
    for record in records:
        value = record.get(name)
        if value is None:
            continue
        if isinstance(value, numbers.Number) and not isinstance(value, bool):
            return FieldKind.NUMBER
        return FieldKind.TEXT
    return FieldKind.NULL


@dataclass(frozen=True)
class ResultSchema:
    """Named, typed fields plus the designated category and value axes."""

    fields: List[FieldSpec]
    category_field: str
    value_field: str

    @property
    def field_names(self) -> List[str]:
        return [spec.name for spec in self.fields]

    @classmethod
    def from_columns(
        cls,
        columns: Sequence[str],
        records: Sequence[Dict[str, Any]] = (),
        category_field: Optional[str] = None,
        value_field: Optional[str] = None,
    ) -> "ResultSchema":
        """
        Build a schema from cursor column names.

        Raises:
            InvalidResultShapeError: fewer than two columns, or an axis override
                that names a column the result does not have
        """
        columns = list(columns)
        if len(columns) < 2:
            raise InvalidResultShapeError(
                f"Query results need at least two columns to chart, got {len(columns)}."
            )

        for override in (category_field, value_field):
            if override is not None and override not in columns:
                raise InvalidResultShapeError(
                    f"Column '{override}' is not in the query results."
                )

        category = category_field or columns[0]
        if value_field:
            value = value_field
        else:
            value = next(name for name in columns if name != category)

        if category == value:
            raise InvalidResultShapeError("Category and value columns must differ.")

        return cls(
            fields=[FieldSpec(name, _field_kind(records, name)) for name in columns],
            category_field=category,
            value_field=value,
        )

    @classmethod
    def from_records(cls, records: Sequence[Dict[str, Any]], **overrides) -> "ResultSchema":
        """Schema from the key order of the first record."""
        if not records:
            raise EmptyResultError()
        return cls.from_columns(list(records[0].keys()), records, **overrides)


@dataclass
class ChartDataset:
    """Chart-ready sequences derived from one result set."""

    labels: List[Any]
    values: List[Optional[float]]
    intensities: List[float]
    colors: List[RGB]
    label: str
    category_field: str
    value_field: str

    @property
    def max_value(self) -> Optional[float]:
        present = [v for v in self.values if v is not None]
        return max(present) if present else None


@dataclass
class ShapedResult:
    chart: ChartDataset
    columns: List[ColumnDescriptor] = field(default_factory=list)


def coerce_numeric(value: Any, field_name: str = "value", row_index: int = 0) -> Optional[float]:
    """
    Coerce a raw cell to a number.

    Numbers pass through. Strings lose every character that is not a digit,
    minus sign or period, then the leading float is parsed, so ``"$1,234.56"``
    becomes 1234.56 and ``"-$50"`` becomes -50. ``None`` stays ``None``.

    Raises:
        InvalidValueError: for booleans, non-finite numbers, unparseable strings
            and other types
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidValueError(field_name, value, row_index)
    if isinstance(value, (numbers.Real, Decimal)):
        number = float(value)
        if math.isfinite(number):
            return number
        raise InvalidValueError(field_name, value, row_index)
    if isinstance(value, str):
        stripped = NON_NUMERIC_CHARS.sub("", value)
        match = LEADING_FLOAT.match(stripped)
        if match:
            return float(match.group(0))
    raise InvalidValueError(field_name, value, row_index)


def compute_intensities(values: Sequence[Optional[float]]) -> List[float]:
    """
    Normalize values against the maximum into [0, 1].

    A non-positive maximum (all zeros, all negatives) gives every point
    intensity 0.0 instead of dividing by zero; nulls also get 0.0.
    """
    present = [v for v in values if v is not None]
    max_value = max(present) if present else 0.0
    if max_value <= 0:
        return [0.0 for _ in values]
    return [
        0.0 if v is None else min(1.0, max(0.0, v / max_value))
        for v in values
    ]


def shape_results(
    records: Sequence[Dict[str, Any]],
    schema: Optional[ResultSchema] = None,
    base_color: str = DEFAULT_BASE_COLOR,
    light_color: str = DEFAULT_LIGHT_COLOR,
) -> ShapedResult:
    """
    Shape records into a chart dataset and table column descriptors.

    Args:
        records: Rows as ordered field -> value mappings
        schema: Explicit axes; derived from the first record's key order if omitted
        base_color: ``#rrggbb`` color at intensity 0.0
        light_color: ``#rrggbb`` color reached at intensity 1.0

    Raises:
        EmptyResultError: no records
        InvalidResultShapeError: fewer than two fields or unknown axis names
        InvalidValueError: a value cell cannot be read as a number
    """
    if not records:
        raise EmptyResultError()

    if schema is None:
        schema = ResultSchema.from_records(records)

    category, value_field = schema.category_field, schema.value_field
    labels = [record.get(category) for record in records]
    values = [
        coerce_numeric(record.get(value_field), value_field, index)
        for index, record in enumerate(records)
    ]
    intensities = compute_intensities(values)

    base_rgb, light_rgb = hex_to_rgb(base_color), hex_to_rgb(light_color)
    colors = [interpolate_color(base_rgb, light_rgb, intensity) for intensity in intensities]

    logger.debug(
        "Shaped query results",
        rows=len(records),
        category_field=category,
        value_field=value_field,
    )

    return ShapedResult(
        chart=ChartDataset(
            labels=labels,
            values=values,
            intensities=intensities,
            colors=colors,
            label=f"Dataset for {value_field}",
            category_field=category,
            value_field=value_field,
        ),
        columns=[ColumnDescriptor(header=name, accessor=name) for name in schema.field_names],
    )
