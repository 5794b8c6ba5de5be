import math

import pytest

from config.feature_flags import set_flag
from techdraw.geometry import Point2D, LineEntity, CircleEntity, ArcEntity, PointEntity, RectangleEntity
from techdraw.geometry_store import InMemoryGeometryStore
from techdraw.manager import ConstraintManager


# Global Feature Flag Defaults - Single Source of Truth for Test Isolation
# ========================================================================
# WICHTIG: Jeder Test muss mit sauberen Feature-Flags starten.
# Diese Defaults müssen mit config/feature_flags.py synchron gehalten werden.
FEATURE_FLAG_DEFAULTS = {
    # Debug-Modi
    "constraint_solver_debug": False,
    "constraint_manager_debug": False,

    # Solver-Varianten
    "symmetric_distance_solve": False,

    # Auto-Constraints
    "auto_constraints": True,
}


@pytest.fixture(autouse=True)
def _global_feature_flag_isolation():
    """
    Globale Feature-Flag-Isolation.

    Stellt sicher, dass jeder Test mit sauberen, deterministischen
    Feature-Flags startet.
    """
    for key, value in FEATURE_FLAG_DEFAULTS.items():
        set_flag(key, value)

    yield

    for key, value in FEATURE_FLAG_DEFAULTS.items():
        set_flag(key, value)


# ============================================================================
# Geometrie-Fabriken
# ============================================================================

@pytest.fixture
def make_line():
    """LineEntity aus Koordinaten."""
    def _create(x1=0.0, y1=0.0, x2=10.0, y2=0.0, id="l1"):
        return LineEntity(Point2D(x1, y1), Point2D(x2, y2), id=id)
    return _create


@pytest.fixture
def make_circle():
    """CircleEntity aus Koordinaten."""
    def _create(cx=0.0, cy=0.0, radius=5.0, id="c1"):
        return CircleEntity(Point2D(cx, cy), radius, id=id)
    return _create


@pytest.fixture
def make_arc():
    """ArcEntity, Winkel in Grad für lesbare Tests."""
    def _create(cx=0.0, cy=0.0, radius=5.0, start_deg=0.0, end_deg=90.0, id="a1"):
        return ArcEntity(Point2D(cx, cy), radius, math.radians(start_deg), math.radians(end_deg), id=id)
    return _create


@pytest.fixture
def make_point():
    def _create(x=0.0, y=0.0, id="p1"):
        return PointEntity(Point2D(x, y), id=id)
    return _create


@pytest.fixture
def make_rect():
    def _create(x=0.0, y=0.0, w=10.0, h=4.0, id="r1"):
        return RectangleEntity(Point2D(x, y), w, h, id=id)
    return _create


@pytest.fixture
def store_and_manager():
    """Leerer InMemoryGeometryStore + Manager, der auf ihn schreibt."""
    def _create(*entities, config=None):
        store = InMemoryGeometryStore(entities)
        manager = ConstraintManager(geometry_store=store, config=config)
        return store, manager
    return _create
