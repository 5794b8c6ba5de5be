"""
Tests für techdraw/geometry.py
==============================

Unveränderliche Entities, Referenzpunkte, Partial-Updates, Serialisierung.

Run: pytest test/test_geometry.py -v
"""

import dataclasses
import math

import numpy as np
import pytest

from techdraw.geometry import (
    Point2D, PointEntity, LineEntity, CircleEntity, ArcEntity, RectangleEntity, PolylineEntity,
    EntityType, apply_entity_update, apply_updates_to_snapshot, entity_center, entity_from_dict,
    entity_to_dict, merge_entity_updates, move_center_update, point_to_line_distance,
    project_point_on_line, reflect_point, signed_side, translate_entity_update,
)

pytestmark = pytest.mark.fast


class TestPoint2D:
    """Tests für Point2D."""

    def test_numpy_scalars_become_floats(self):
        """FIREWALL: NumPy-Skalare werden zu nativen Floats."""
        p = Point2D(np.float64(1.5), np.int32(2))
        assert type(p.x) is float
        assert type(p.y) is float
        assert p == Point2D(1.5, 2.0)

    def test_is_immutable(self):
        p = Point2D(1, 2)
        with pytest.raises(dataclasses.FrozenInstanceError):
            p.x = 5

    def test_distance_and_midpoint(self):
        a, b = Point2D(0, 0), Point2D(3, 4)
        assert a.distance_to(b) == pytest.approx(5.0)
        assert a.midpoint(b) == Point2D(1.5, 2.0)

    def test_from_array_roundtrip(self):
        p = Point2D.from_array(np.array([2.0, -1.0]))
        assert p.as_tuple() == (2.0, -1.0)


class TestLineEntity:
    """Tests für LineEntity Eigenschaften."""

    def test_angle_and_length(self, make_line):
        line = make_line(0, 0, 0, 10)
        assert line.length == pytest.approx(10.0)
        assert line.angle == pytest.approx(math.pi / 2)

    def test_direction_of_degenerate_line_is_plus_x(self, make_line):
        line = make_line(3, 3, 3, 3)
        assert line.direction == (1.0, 0.0)

    def test_entity_type(self, make_line):
        assert make_line().entity_type == EntityType.LINE


class TestHelpers:
    """Tests für die geometrischen Hilfsfunktionen."""

    def test_point_to_infinite_line(self, make_line):
        line = make_line(0, 0, 10, 0)
        # Jenseits des Segment-Endes: unendliche Gerade misst nur y
        assert point_to_line_distance(Point2D(20, 3), line) == pytest.approx(3.0)

    def test_point_to_segment_is_clamped(self, make_line):
        line = make_line(0, 0, 10, 0)
        assert point_to_line_distance(Point2D(13, 4), line, segment=True) == pytest.approx(5.0)

    def test_project_and_reflect(self, make_line):
        axis = make_line(0, 0, 0, 10)  # y-Achse
        assert project_point_on_line(Point2D(4, 2), axis) == Point2D(0, 2)
        reflected = reflect_point(Point2D(4, 2), axis)
        assert reflected.x == pytest.approx(-4.0)
        assert reflected.y == pytest.approx(2.0)

    def test_signed_side(self, make_line):
        line = make_line(0, 0, 10, 0)
        assert signed_side(Point2D(5, 1), line) == 1.0
        assert signed_side(Point2D(5, -1), line) == -1.0
        assert signed_side(Point2D(5, 0), line) == 0.0


class TestEntityCenter:
    """Referenzpunkte pro Entity-Typ."""

    def test_point(self, make_point):
        assert entity_center(make_point(2, 3)) == Point2D(2, 3)

    def test_line_midpoint(self, make_line):
        assert entity_center(make_line(0, 0, 10, 4)) == Point2D(5, 2)

    def test_circle_and_arc(self, make_circle, make_arc):
        assert entity_center(make_circle(1, 2)) == Point2D(1, 2)
        assert entity_center(make_arc(-1, 4)) == Point2D(-1, 4)

    def test_rectangle_center(self, make_rect):
        assert entity_center(make_rect(0, 0, 10, 4)) == Point2D(5, 2)

    def test_polyline_centroid(self):
        poly = PolylineEntity([Point2D(0, 0), Point2D(4, 0), Point2D(4, 4), Point2D(0, 4)], closed=True, id="pl")
        c = entity_center(poly)
        assert c.x == pytest.approx(2.0)
        assert c.y == pytest.approx(2.0)


class TestPartialUpdates:
    """Partial-Updates erzeugen neue Entities."""

    def test_apply_update_returns_new_entity(self, make_circle):
        circle = make_circle(radius=5)
        updated = apply_entity_update(circle, {"radius": 8.0})
        assert updated.radius == 8.0
        assert circle.radius == 5.0
        assert updated.id == circle.id

    def test_unknown_field_raises(self, make_circle):
        with pytest.raises(TypeError):
            apply_entity_update(make_circle(), {"width": 3})

    def test_translate_each_type(self, make_line, make_rect):
        line = apply_entity_update(make_line(0, 0, 10, 0), translate_entity_update(make_line(0, 0, 10, 0), 1, 2))
        assert line.start == Point2D(1, 2)
        assert line.end == Point2D(11, 2)

        rect = make_rect(0, 0, 10, 4)
        moved = apply_entity_update(rect, move_center_update(rect, Point2D(0, 0)))
        assert moved.center == Point2D(0, 0)
        assert moved.width == 10.0

    def test_merge_later_fields_win(self):
        merged = merge_entity_updates({}, {"l1": {"start": Point2D(0, 0), "end": Point2D(1, 1)}})
        merge_entity_updates(merged, {"l1": {"end": Point2D(2, 0)}})
        assert merged["l1"] == {"start": Point2D(0, 0), "end": Point2D(2, 0)}

    def test_snapshot_ignores_unknown_ids(self, make_circle):
        snapshot = {"c1": make_circle()}
        result = apply_updates_to_snapshot(snapshot, {"c1": {"radius": 2.0}, "ghost": {"radius": 1.0}})
        assert result["c1"].radius == 2.0
        assert "ghost" not in result
        assert snapshot["c1"].radius == 5.0


class TestSerialization:
    """to_dict / from_dict für Entities."""

    @pytest.mark.parametrize("entity", [
        PointEntity(Point2D(1, 2), id="p"),
        LineEntity(Point2D(0, 0), Point2D(3, 4), id="l"),
        CircleEntity(Point2D(1, 1), 2.5, id="c"),
        ArcEntity(Point2D(0, 0), 3.0, 0.0, math.pi / 2, id="a"),
        RectangleEntity(Point2D(0, 0), 5.0, 2.0, id="r"),
        PolylineEntity((Point2D(0, 0), Point2D(1, 1)), closed=False, id="pl"),
    ])
    def test_roundtrip(self, entity):
        assert entity_from_dict(entity_to_dict(entity)) == entity

    def test_dict_contains_type_name(self, make_circle):
        assert entity_to_dict(make_circle())["type"] == "CIRCLE"
