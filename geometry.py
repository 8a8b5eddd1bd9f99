"""
Geometry primitives for sheet layouts.

Coordinates are in millimetres. The x axis runs along the sheet length (the
grain axis), the y axis along the sheet width.
"""

from dataclasses import dataclass
from typing import Optional

# Tolerance for float comparisons on millimetre coordinates
EPSILON = 1e-6


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle anchored at its lower-left corner."""

    x: float
    y: float
    length: float
    width: float

    @property
    def right(self) -> float:
        return self.x + self.length

    @property
    def top(self) -> float:
        return self.y + self.width

    @property
    def area(self) -> float:
        return self.length * self.width

    def intersects(self, other: "Rect", tolerance: float = EPSILON) -> bool:
        """
        Check whether two rectangles share interior area.

        Rectangles that only touch along an edge do not intersect.
        """
        return rects_overlap(self, other, tolerance)

    def within(self, bound_length: float, bound_width: float, tolerance: float = EPSILON) -> bool:
        """Check that the rectangle lies inside [0, bound_length] x [0, bound_width]."""
        return (self.x >= -tolerance and self.y >= -tolerance and
                self.right <= bound_length + tolerance and
                self.top <= bound_width + tolerance)

    def with_kerf_margin(self, kerf: float, bound_length: Optional[float] = None,
                         bound_width: Optional[float] = None) -> "Rect":
        """
        Grow the rectangle by the blade kerf on its +x and +y sides.

        The margin is clipped at the sheet edge when bounds are given, since no
        saw cut is needed along the outer edge of the stock.
        """
        right = self.right + kerf
        top = self.top + kerf
        if bound_length is not None:
            right = min(right, bound_length)
        if bound_width is not None:
            top = min(top, bound_width)
        return Rect(self.x, self.y, max(right - self.x, self.length), max(top - self.y, self.width))


def rects_overlap(a: Rect, b: Rect, tolerance: float = EPSILON) -> bool:
    """Return True when ``a`` and ``b`` overlap by more than ``tolerance`` on both axes."""
    overlap_x = min(a.right, b.right) - max(a.x, b.x)
    overlap_y = min(a.top, b.top) - max(a.y, b.y)
    return overlap_x > tolerance and overlap_y > tolerance


def fits_within(length: float, width: float, available_length: float, available_width: float,
                tolerance: float = EPSILON) -> bool:
    """Check whether a length x width piece fits an available length x width space."""
    return length <= available_length + tolerance and width <= available_width + tolerance
