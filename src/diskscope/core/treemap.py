"""Squarified treemap layout.

Implements the greedy row packing of Bruls, Huizing and van Wijk: children
are sorted by size, and rows are laid along the shorter side of the remaining
rectangle, growing each row while its worst aspect ratio does not get worse.
The layout is pure and deterministic; it knows nothing about the filesystem
and keys its output by whatever identifiers the caller passes in.
"""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from dataclasses import dataclass
from typing import TypeVar

K = TypeVar("K", bound=Hashable)


@dataclass(slots=True, frozen=True)
class Rect:
    """Rectangle bounds for treemap layout.

    Attributes:
        x: Left edge coordinate
        y: Top edge coordinate
        width: Rectangle width
        height: Rectangle height
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, other: Rect, tolerance: float = 1e-9) -> bool:
        """True if ``other`` lies entirely within this rectangle."""
        return (
            other.x >= self.x - tolerance
            and other.y >= self.y - tolerance
            and other.right <= self.right + tolerance
            and other.bottom <= self.bottom + tolerance
        )

    def intersects(self, other: Rect, tolerance: float = 1e-9) -> bool:
        """True if the interiors of the two rectangles overlap."""
        return (
            min(self.right, other.right) - max(self.x, other.x) > tolerance
            and min(self.bottom, other.bottom) - max(self.y, other.y) > tolerance
        )

    def inset(self, padding: float) -> Rect:
        """Create a new rectangle inset by padding on all sides."""
        return Rect(
            self.x + padding,
            self.y + padding,
            max(0.0, self.width - 2 * padding),
            max(0.0, self.height - 2 * padding),
        )


def layout(children: Sequence[tuple[K, int]], rect: Rect) -> dict[K, Rect]:
    """Compute a squarified treemap layout.

    Args:
        children: ``(id, size)`` pairs; ids must be unique
        rect: Rectangle to fill

    Returns:
        Mapping of every id to its rectangle. Areas are proportional to the
        sizes and sum to ``rect.area``; zero-size children (or every child,
        when ``rect`` has no area) get a zero-area rectangle at the origin of
        ``rect``.

    Examples:
        >>> layout([("a", 1)], Rect(0, 0, 4, 2))
        {'a': Rect(x=0, y=0, width=4, height=2)}
        >>> layout([], Rect(0, 0, 4, 2))
        {}
    """
    result: dict[K, Rect] = {}
    if not children:
        return result

    ordered = sorted(children, key=lambda item: item[1], reverse=True)
    positive = [(key, size) for key, size in ordered if size > 0]
    empty = Rect(rect.x, rect.y, 0.0, 0.0)

    if rect.width <= 0 or rect.height <= 0 or not positive:
        for key, _ in ordered:
            result[key] = empty
        return result

    if len(positive) == 1:
        result[positive[0][0]] = rect
    else:
        total = sum(size for _, size in positive)
        scale = rect.area / total
        items = [(key, size * scale) for key, size in positive]
        _squarify(items, rect, result)

    for key, size in ordered:
        if size <= 0:
            result[key] = empty
    return result


def _squarify(items: list[tuple[K, float]], rect: Rect, acc: dict[K, Rect]) -> None:
    """Greedy row packing of ``items`` (areas, descending) into ``rect``."""
    remaining = rect
    start = 0
    while start < len(items):
        short_side = min(remaining.width, remaining.height)
        if short_side <= 0:
            # Rounding used up the space; the leftovers are negligibly small
            for key, _ in items[start:]:
                acc[key] = Rect(remaining.x, remaining.y, 0.0, 0.0)
            return
        end = start + 1
        current = _worst_ratio(items[start:end], short_side)
        while end < len(items):
            candidate = _worst_ratio(items[start : end + 1], short_side)
            if candidate > current:
                break
            current = candidate
            end += 1

        is_last_row = end == len(items)
        remaining = _layout_row(items[start:end], remaining, acc, fill=is_last_row)
        start = end


def _layout_row(
    row: Sequence[tuple[K, float]],
    rect: Rect,
    acc: dict[K, Rect],
    *,
    fill: bool,
) -> Rect:
    """Lay out one row along the shorter side of ``rect``.

    Returns the rectangle left over after the row. When ``fill`` is set the
    row takes all of ``rect``, absorbing floating point residue.
    """
    row_area = sum(area for _, area in row)
    last = len(row) - 1

    if rect.width >= rect.height:
        # Column on the left edge, items stacked top to bottom
        thickness = rect.width if fill else min(row_area / rect.height, rect.width)
        y = rect.y
        for index, (key, area) in enumerate(row):
            height = rect.bottom - y if index == last else min(area / thickness, rect.bottom - y)
            acc[key] = Rect(rect.x, y, thickness, height)
            y += height
        return Rect(rect.x + thickness, rect.y, rect.width - thickness, rect.height)

    # Row on the top edge, items placed left to right
    thickness = rect.height if fill else min(row_area / rect.width, rect.height)
    x = rect.x
    for index, (key, area) in enumerate(row):
        width = rect.right - x if index == last else min(area / thickness, rect.right - x)
        acc[key] = Rect(x, rect.y, width, thickness)
        x += width
    return Rect(rect.x, rect.y + thickness, rect.width, rect.height - thickness)


def _worst_ratio(row: Sequence[tuple[K, float]], short_side: float) -> float:
    """Worst aspect ratio of ``row`` laid along a side of length ``short_side``."""
    total = sum(area for _, area in row)
    if total <= 0 or short_side <= 0:
        return float("inf")
    largest = max(area for _, area in row)
    smallest = min(area for _, area in row)
    side_sq = short_side * short_side
    total_sq = total * total
    return max(side_sq * largest / total_sq, total_sq / (side_sq * smallest))
