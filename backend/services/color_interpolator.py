"""
Color interpolation for chart data points.

Points are shaded between a base color and a lighter reference color by their
relative magnitude.
"""

import math
import re
from typing import NamedTuple

HEX_COLOR_PATTERN = re.compile(r"^#([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")


class RGB(NamedTuple):
    """An 8-bit RGB triple"""
    r: int
    g: int
    b: int

    def css(self) -> str:
        """Render as a CSS ``rgb()`` color string, as Chart.js expects"""
        return f"rgb({self.r}, {self.g}, {self.b})"


def _round_half_up(value: float) -> int:
    # Browser-side Math.round semantics: .5 always rounds toward +infinity
    return int(math.floor(value + 0.5))


def interpolate_color(color_a: RGB, color_b: RGB, factor: float) -> RGB:
    """
    Linearly interpolate each channel from ``color_a`` toward ``color_b``.

    ``factor`` is expected in [0, 1] but is not clamped, and the resulting
    channels are not bounds-checked; callers supply the range.
    """
    return RGB(*(
        _round_half_up(a + factor * (b - a))
        for a, b in zip(color_a, color_b)
    ))


def hex_to_rgb(hex_color: str) -> RGB:
    """
    Convert a ``#rrggbb`` string to an RGB triple.

    Raises:
        ValueError: if the string is not exactly six hex digits after ``#``
    """
    match = HEX_COLOR_PATTERN.match(hex_color or "")
    if not match:
        raise ValueError(f"Expected a #rrggbb color, got {hex_color!r}")
    return RGB(*(int(pair, 16) for pair in match.groups()))
