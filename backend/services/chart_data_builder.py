"""
Chart Data Builder - Converts shaped query results into Chart.js-compatible
configurations and table models
"""

from enum import Enum
from typing import Dict, Any, Optional, Sequence
import structlog

from backend.services.result_shaper import ChartDataset, ColumnDescriptor

logger = structlog.get_logger(__name__)

DEFAULT_BORDER_COLOR = "rgba(75, 192, 192, 1)"
DEFAULT_CURRENCY_MARKERS = ("subtotal", "amount")

CURRENCY_FORMAT = "currency"
NUMBER_FORMAT = "number"


class ChartKind(str, Enum):
    """Chart widgets the client can render"""
    LINE = "line"
    BAR = "bar"
    PIE = "pie"
    DOUGHNUT = "doughnut"
    RADAR = "radar"
    POLAR_AREA = "polarArea"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ChartKind":
        """Resolve a selector value; anything unrecognised renders as a line chart"""
        if isinstance(value, ChartKind):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.LINE


def is_currency_label(label: Optional[str], markers: Sequence[str] = DEFAULT_CURRENCY_MARKERS) -> bool:
    """A dataset label that mentions a subtotal or amount is formatted as money"""
    lowered = (label or "").lower()
    return any(marker in lowered for marker in markers)


def format_number(value: Any) -> str:
    """en-US grouping with at most three fraction digits, e.g. 1234.5 -> '1,234.5'"""
    if value is None:
        return ""
    text = f"{float(value):,.3f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def format_value(value: Any, currency: bool, currency_symbol: str = "$") -> str:
    """Tooltip / axis text for one value"""
    if value is None:
        return ""
    number = format_number(value)
    return f"{currency_symbol}{number}" if currency else number


class ChartDataBuilder:
    """
    Builds Chart.js-compatible chart configs from a ChartDataset.

    The tooltip and Y-axis formats are both derived from the dataset label but
    are computed separately, one per option block.
    """

    def __init__(
        self,
        border_color: str = DEFAULT_BORDER_COLOR,
        currency_symbol: str = "$",
        currency_markers: Sequence[str] = DEFAULT_CURRENCY_MARKERS,
    ):
        self.border_color = border_color
        self.currency_symbol = currency_symbol
        self.currency_markers = tuple(currency_markers)

    @classmethod
    def from_settings(cls, settings) -> "ChartDataBuilder":
        return cls(
            border_color=settings.chart_border_color,
            currency_symbol=settings.currency_symbol,
            currency_markers=settings.currency_markers,
        )

    def _value_format(self, label: str) -> str:
        return CURRENCY_FORMAT if is_currency_label(label, self.currency_markers) else NUMBER_FORMAT

    def _tooltip_options(self, dataset: ChartDataset) -> Dict[str, Any]:
        value_format = self._value_format(dataset.label)
        currency = value_format == CURRENCY_FORMAT
        return {
            "valueFormat": value_format,
            "currencySymbol": self.currency_symbol if currency else None,
            "labels": [format_value(v, currency, self.currency_symbol) for v in dataset.values],
        }

    def _y_axis_options(self, dataset: ChartDataset) -> Dict[str, Any]:
        value_format = self._value_format(dataset.label)
        return {
            "ticks": {
                "valueFormat": value_format,
                "currencySymbol": self.currency_symbol if value_format == CURRENCY_FORMAT else None,
            }
        }

    def build_chart(
        self,
        dataset: Optional[ChartDataset],
        chart_kind: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Build a Chart.js config for the selected chart kind.

        Args:
            dataset: Shaped chart dataset, or None after an error / before a query
            chart_kind: One of ChartKind values; defaults to line

        Returns:
            Chart.js config dict, or None when there is no dataset to draw
        """
        if dataset is None:
            return None

        kind = ChartKind.parse(chart_kind)

        chart = {
            "type": kind.value,
            "data": {
                "labels": list(dataset.labels),
                "datasets": [
                    {
                        "label": dataset.label,
                        "data": list(dataset.values),
                        "backgroundColor": [color.css() for color in dataset.colors],
                        "borderColor": self.border_color,
                        "borderWidth": 1,
                        "fill": True,
                    }
                ],
            },
            "options": {
                "plugins": {"tooltip": self._tooltip_options(dataset)},
                "scales": {"y": self._y_axis_options(dataset)},
            },
        }

        logger.debug(
            "Built chart config",
            chart_type=kind.value,
            points=len(dataset.values),
            value_format=chart["options"]["plugins"]["tooltip"]["valueFormat"],
        )
        return chart


def build_table(
    rows: Sequence[Dict[str, Any]],
    columns: Sequence[ColumnDescriptor],
) -> Optional[Dict[str, Any]]:
    """
    Table model for the generic results table.

    Rendered only when there are both rows and columns; independent of whether
    a chart could be drawn.
    """
    if not rows or not columns:
        return None
    return {
        "columns": [column.to_dict() for column in columns],
        "rows": list(rows),
    }
