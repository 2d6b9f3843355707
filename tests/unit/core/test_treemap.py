"""Unit tests for the squarified treemap layout."""

import math

import pytest

from diskscope.core.treemap import Rect, layout


def _area_sum(rects: dict[str, Rect]) -> float:
    return sum(rect.area for rect in rects.values())


@pytest.mark.unit
class TestRect:
    """Test rectangle helpers."""

    def test_derived_edges(self) -> None:
        """right, bottom and area derive from position and size."""
        rect = Rect(1, 2, 3, 4)

        assert rect.right == 4
        assert rect.bottom == 6
        assert rect.area == 12

    def test_contains(self) -> None:
        """A rectangle contains itself and smaller inner rectangles."""
        outer = Rect(0, 0, 10, 10)

        assert outer.contains(outer)
        assert outer.contains(Rect(2, 2, 3, 3))
        assert not outer.contains(Rect(8, 8, 3, 3))

    def test_intersects_ignores_shared_edges(self) -> None:
        """Rectangles that only share an edge do not intersect."""
        left = Rect(0, 0, 5, 5)

        assert not left.intersects(Rect(5, 0, 5, 5))
        assert left.intersects(Rect(4, 4, 5, 5))

    def test_inset(self) -> None:
        """inset shrinks on all sides and never goes negative."""
        assert Rect(0, 0, 10, 6).inset(1) == Rect(1, 1, 8, 4)
        assert Rect(0, 0, 1, 1).inset(2).area == 0


@pytest.mark.unit
class TestLayout:
    """Test layout edge cases and the squarified packing."""

    def test_empty_input(self) -> None:
        """No children yields an empty mapping."""
        assert layout([], Rect(0, 0, 10, 10)) == {}

    def test_single_child_fills_rect(self) -> None:
        """A single child gets the whole rectangle."""
        rect = Rect(3, 4, 20, 10)

        assert layout([("only", 42)], rect) == {"only": rect}

    def test_zero_size_children_get_degenerate_rects(self) -> None:
        """Zero-size children sit at the origin with no area."""
        rect = Rect(5, 5, 10, 10)

        result = layout([("a", 10), ("z", 0), ("b", 30)], rect)

        assert result["z"] == Rect(5, 5, 0, 0)
        assert math.isclose(result["a"].area + result["b"].area, rect.area)

    def test_all_zero_sizes(self) -> None:
        """When every child is empty all rectangles are degenerate."""
        result = layout([("a", 0), ("b", 0)], Rect(0, 0, 4, 4))

        assert all(rect.area == 0 for rect in result.values())
        assert set(result) == {"a", "b"}

    def test_zero_area_rect(self) -> None:
        """A rectangle without area gives every child a degenerate rectangle."""
        result = layout([("a", 5), ("b", 3)], Rect(0, 0, 0, 10))

        assert result == {"a": Rect(0, 0, 0, 0), "b": Rect(0, 0, 0, 0)}

    def test_classic_example(self) -> None:
        """The example from the squarified treemap paper packs into three rows."""
        sizes = [6, 6, 4, 3, 2, 2, 1]
        rect = Rect(0, 0, 6, 4)

        result = layout([(str(i), size) for i, size in enumerate(sizes)], rect)

        assert math.isclose(_area_sum(result), 24)
        # The two largest items share the first column on the left
        assert math.isclose(result["0"].x, 0) and math.isclose(result["1"].x, 0)
        assert math.isclose(result["0"].width, 3) and math.isclose(result["0"].height, 2)
        for index, size in enumerate(sizes):
            assert math.isclose(result[str(index)].area, size, rel_tol=1e-9)

    def test_areas_proportional(self) -> None:
        """Each rectangle's share of the area equals its share of the total size."""
        children = [("a", 500), ("b", 250), ("c", 125), ("d", 125)]
        rect = Rect(0, 0, 100, 40)

        result = layout(children, rect)

        for key, size in children:
            assert math.isclose(result[key].area, rect.area * size / 1000, rel_tol=1e-9)

    def test_rectangles_do_not_overlap(self) -> None:
        """Laid out rectangles are pairwise disjoint and inside the input."""
        rect = Rect(0, 0, 80, 24)
        result = layout([(i, size) for i, size in enumerate([90, 70, 40, 33, 20, 8, 5, 2, 1])], rect)

        rects = list(result.values())
        for index, first in enumerate(rects):
            assert rect.contains(first)
            for second in rects[index + 1 :]:
                assert not first.intersects(second, tolerance=1e-6)

    def test_deterministic(self) -> None:
        """The same input always yields the same layout."""
        children = [("x", 3), ("y", 3), ("z", 3)]

        assert layout(children, Rect(0, 0, 9, 3)) == layout(children, Rect(0, 0, 9, 3))

    def test_input_order_irrelevant(self) -> None:
        """Children are sorted by size before packing."""
        rect = Rect(0, 0, 10, 10)

        assert layout([("a", 1), ("b", 9)], rect) == layout([("b", 9), ("a", 1)], rect)

    def test_aspect_ratios_reasonable(self) -> None:
        """Equal children in a square end up close to square."""
        result = layout([(i, 1) for i in range(16)], Rect(0, 0, 100, 100))

        for rect in result.values():
            ratio = max(rect.width / rect.height, rect.height / rect.width)
            assert ratio < 3
