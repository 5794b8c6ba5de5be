"""
Tests für Constraint-Validierung
================================

Reihenfolge: IDs -> Kardinalität -> Entity-Typen -> Parameter.

Run: pytest test/test_constraint_validation.py -v
"""

import math

import pytest

from techdraw.constraints import ConstraintCreationParams, ConstraintType, build_parameters
from techdraw.geometry import Point2D
from techdraw.validation import (
    ConstraintValidationException, ValidationError, raise_for_validation, validate_constraint,
)

pytestmark = pytest.mark.fast


@pytest.fixture
def entities(make_line, make_circle, make_arc, make_point):
    return {
        "l1": make_line(0, 0, 10, 0, id="l1"),
        "l2": make_line(0, 5, 10, 8, id="l2"),
        "l3": make_line(5, -5, 5, 5, id="l3"),
        "c1": make_circle(0, 0, 5, id="c1"),
        "c2": make_circle(20, 0, 3, id="c2"),
        "a1": make_arc(0, 0, 4, id="a1"),
        "p1": make_point(1, 1, id="p1"),
    }


class TestEntityResolution:
    """Alle IDs müssen auflösbar sein."""

    def test_unknown_entity(self, entities):
        err = validate_constraint(ConstraintType.HORIZONTAL, ["nope"], {}, entities)
        assert isinstance(err, ValidationError)
        assert err.code == "ENTITY_NOT_FOUND"
        assert "nope" in err.reason

    def test_unknown_entity_checked_before_cardinality(self, entities):
        err = validate_constraint(ConstraintType.PARALLEL, ["l1", "ghost", "l2"], {}, entities)
        assert err.code == "ENTITY_NOT_FOUND"

    def test_callable_lookup(self, entities):
        assert validate_constraint(ConstraintType.HORIZONTAL, ["l1"], {}, entities.get) is None

    def test_unknown_type(self, entities):
        err = validate_constraint("SKEW", ["l1"], {}, entities)
        assert err.code == "UNKNOWN_TYPE"


class TestCardinality:
    """Anzahl der Entities pro Typ."""

    @pytest.mark.parametrize("ctype,ids", [
        (ConstraintType.HORIZONTAL, ["l1", "l2"]),
        (ConstraintType.PARALLEL, ["l1"]),
        (ConstraintType.SYMMETRIC, ["p1", "c1"]),
        (ConstraintType.COINCIDENT, ["p1"]),
        (ConstraintType.FIX, []),
    ])
    def test_wrong_count(self, entities, ctype, ids):
        err = validate_constraint(ctype, ids, {}, entities)
        assert err.code == "WRONG_CARDINALITY"

    def test_coincident_accepts_many(self, entities):
        assert validate_constraint(ConstraintType.COINCIDENT, ["p1", "c1", "c2", "l1"], {}, entities) is None

    def test_duplicate_ids_rejected(self, entities):
        err = validate_constraint(ConstraintType.PARALLEL, ["l1", "l1"], {}, entities)
        assert err.code == "WRONG_CARDINALITY"
        assert "distinct" in err.reason

    def test_exact_reason_text(self, entities):
        err = validate_constraint(ConstraintType.PERPENDICULAR, ["l1"], {}, entities)
        assert err.reason == "Requires exactly 2 entities"
        assert err.suggestions == ["Select 2 entities"]


class TestEntityTypes:
    """Typ-Kompatibilität."""

    def test_parallel_needs_lines(self, entities):
        err = validate_constraint(ConstraintType.PARALLEL, ["l1", "c1"], {}, entities)
        assert err.code == "WRONG_ENTITY_TYPE"
        assert err.reason == "Both entities must be lines"

    def test_radius_accepts_arc(self, entities):
        assert validate_constraint(ConstraintType.RADIUS, ["a1"], {"radius": 2.0}, entities) is None

    def test_radius_rejects_line(self, entities):
        err = validate_constraint(ConstraintType.RADIUS, ["l1"], {"radius": 2.0}, entities)
        assert err.code == "WRONG_ENTITY_TYPE"

    @pytest.mark.parametrize("ids", [["c1", "l1"], ["l1", "c1"], ["c1", "c2"], ["a1", "l2"]])
    def test_tangent_valid_combinations(self, entities, ids):
        assert validate_constraint(ConstraintType.TANGENT, ids, {}, entities) is None

    @pytest.mark.parametrize("ids", [["l1", "l2"], ["p1", "c1"]])
    def test_tangent_invalid_combinations(self, entities, ids):
        err = validate_constraint(ConstraintType.TANGENT, ids, {}, entities)
        assert err.code == "WRONG_ENTITY_TYPE"

    def test_symmetric_axis_must_be_line(self, entities):
        assert validate_constraint(ConstraintType.SYMMETRIC, ["p1", "c1", "l3"], {}, entities) is None
        err = validate_constraint(ConstraintType.SYMMETRIC, ["p1", "l3", "c1"], {}, entities)
        assert err.code == "WRONG_ENTITY_TYPE"

    def test_midpoint_second_must_be_line(self, entities):
        assert validate_constraint(ConstraintType.MIDPOINT, ["p1", "l1"], {}, entities) is None
        err = validate_constraint(ConstraintType.MIDPOINT, ["l1", "p1"], {}, entities)
        assert err.code == "WRONG_ENTITY_TYPE"

    def test_distance_accepts_any_types(self, entities):
        assert validate_constraint(ConstraintType.DISTANCE, ["p1", "c1"], {"distance": 3.0}, entities) is None


class TestParameters:
    """Numerische Parameter."""

    @pytest.mark.parametrize("ctype,ids,key", [
        (ConstraintType.DISTANCE, ["c1", "c2"], "distance"),
        (ConstraintType.RADIUS, ["c1"], "radius"),
        (ConstraintType.DIAMETER, ["c1"], "diameter"),
        (ConstraintType.LENGTH, ["l1"], "length"),
        (ConstraintType.OFFSET_DISTANCE, ["l1", "l2"], "distance"),
    ])
    def test_missing_value(self, entities, ctype, ids, key):
        err = validate_constraint(ctype, ids, {}, entities)
        assert err.code == "MISSING_PARAMETER"
        assert key in err.reason

    @pytest.mark.parametrize("value", [0.0, -2.0, float("nan"), float("inf"), "5", True])
    def test_non_positive_or_non_numeric(self, entities, value):
        err = validate_constraint(ConstraintType.RADIUS, ["c1"], {"radius": value}, entities)
        assert err.code == "INVALID_PARAMETER"
        assert err.reason == "Requires positive value"

    @pytest.mark.parametrize("angle", [0.0, -0.1, math.pi + 0.01])
    def test_angle_out_of_range(self, entities, angle):
        err = validate_constraint(ConstraintType.ANGLE, ["l1", "l2"], {"angle": angle}, entities)
        assert err.code == "INVALID_PARAMETER"

    def test_angle_pi_is_allowed(self, entities):
        assert validate_constraint(ConstraintType.ANGLE, ["l1", "l2"], {"angle": math.pi}, entities) is None


class TestBuildParameters:
    """Mapping von ConstraintCreationParams auf das parameters-Dict."""

    def test_angle_value_in_degrees(self):
        params = ConstraintCreationParams(ConstraintType.ANGLE, ["l1", "l2"], value=90)
        assert build_parameters(params)["angle"] == pytest.approx(math.pi / 2)

    def test_diameter_value(self):
        params = ConstraintCreationParams(ConstraintType.DIAMETER, ["c1"], value=12)
        assert build_parameters(params) == {"diameter": 12.0}

    def test_tangent_point_becomes_touch_point(self):
        params = ConstraintCreationParams(ConstraintType.TANGENT, ["c1", "l1"], point=Point2D(5, 0))
        assert build_parameters(params)["touch_point"] == Point2D(5, 0)

    def test_fix_anchor_from_current_position(self, entities):
        params = ConstraintCreationParams(ConstraintType.FIX, ["c2"])
        assert build_parameters(params, entities.get)["position"] == Point2D(20, 0)

    def test_non_numeric_value_is_passed_through(self, entities):
        params = ConstraintCreationParams(ConstraintType.LENGTH, ["l1"], value="abc")
        parameters = build_parameters(params)
        err = validate_constraint(ConstraintType.LENGTH, ["l1"], parameters, entities)
        assert err.code == "INVALID_PARAMETER"


class TestRaiseForValidation:

    def test_raises_with_error_attached(self, entities):
        err = validate_constraint(ConstraintType.HORIZONTAL, ["c1"], {}, entities)
        with pytest.raises(ConstraintValidationException) as exc_info:
            raise_for_validation(err)
        assert exc_info.value.error is err

    def test_none_is_noop(self):
        raise_for_validation(None)
