"""
Tests für Auto-Constraint Heuristiken
=====================================

Run: pytest test/test_auto_constraints.py -v
"""

import math

import pytest

from techdraw.auto_constraints import (
    AutoConstraintThresholds, suggest_circle_constraint, suggest_constraint,
    suggest_constraints, suggest_line_constraint,
)
from techdraw.constraints import ConstraintType
from techdraw.geometry import LineEntity, Point2D

pytestmark = pytest.mark.fast


def _line_at(deg, id, length=10.0):
    rad = math.radians(deg)
    return LineEntity(Point2D(0, 0), Point2D(length * math.cos(rad), length * math.sin(rad)), id=id)


class TestLineSuggestions:

    def test_nearly_parallel(self):
        """Szenario D: 1° Unterschied -> PARALLEL."""
        params = suggest_line_constraint(_line_at(0, "l1"), _line_at(1, "l2"))
        assert params.type == ConstraintType.PARALLEL
        assert params.entity_ids == ["l1", "l2"]
        assert params.description == "Auto-suggested parallel constraint"

    def test_anti_parallel_counts_as_parallel(self):
        params = suggest_line_constraint(_line_at(0, "l1"), _line_at(178, "l2"))
        assert params.type == ConstraintType.PARALLEL

    @pytest.mark.parametrize("deg", [80, 90, 100, 270, -95])
    def test_nearly_perpendicular(self, deg):
        params = suggest_line_constraint(_line_at(0, "l1"), _line_at(deg, "l2"))
        assert params.type == ConstraintType.PERPENDICULAR

    @pytest.mark.parametrize("deg", [30, 45, 60, 135])
    def test_nothing_in_between(self, deg):
        assert suggest_line_constraint(_line_at(0, "l1"), _line_at(deg, "l2")) is None

    def test_custom_thresholds(self):
        narrow = AutoConstraintThresholds(parallel_angle=math.radians(0.5))
        assert suggest_line_constraint(_line_at(0, "l1"), _line_at(1, "l2"), narrow) is None


class TestCircleSuggestions:

    def test_concentric_when_centers_close(self, make_circle):
        params = suggest_circle_constraint(make_circle(0, 0, 5, id="c1"), make_circle(3, 4, 9, id="c2"))
        assert params.type == ConstraintType.CONCENTRIC
        assert params.description == "Auto-suggested concentric constraint"

    def test_equal_radius_when_far_apart(self, make_circle):
        params = suggest_circle_constraint(make_circle(0, 0, 5, id="c1"), make_circle(50, 0, 6, id="c2"))
        assert params.type == ConstraintType.EQUAL_RADIUS
        assert params.description == "Auto-suggested equal radius constraint"

    def test_concentric_wins_over_equal_radius(self, make_circle):
        params = suggest_circle_constraint(make_circle(0, 0, 5, id="c1"), make_circle(1, 0, 5, id="c2"))
        assert params.type == ConstraintType.CONCENTRIC

    def test_nothing_for_unrelated_circles(self, make_circle):
        assert suggest_circle_constraint(make_circle(0, 0, 5, id="c1"), make_circle(50, 0, 20, id="c2")) is None

    def test_arcs_count_as_circles(self, make_circle, make_arc):
        params = suggest_constraint(make_circle(0, 0, 5, id="c1"), make_arc(2, 0, 3, id="a1"))
        assert params.type == ConstraintType.CONCENTRIC


class TestPairs:

    def test_mixed_pair_yields_nothing(self, make_line, make_circle):
        assert suggest_constraint(make_line(id="l1"), make_circle(id="c1")) is None

    def test_every_unordered_pair(self):
        lines = [_line_at(0, "a"), _line_at(2, "b"), _line_at(91, "c")]
        found = {(p.type, tuple(p.entity_ids)) for p in suggest_constraints(lines)}
        assert found == {
            (ConstraintType.PARALLEL, ("a", "b")),
            (ConstraintType.PERPENDICULAR, ("a", "c")),
            (ConstraintType.PERPENDICULAR, ("b", "c")),
        }
