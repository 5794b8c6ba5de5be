"""
TechDraw Constraints Module
"""

from .geometry import (
    Point2D, PointEntity, LineEntity, CircleEntity, ArcEntity, RectangleEntity, PolylineEntity,
    Entity, EntityType, EntityUpdate,
    apply_entity_update, entity_center, entity_to_dict, entity_from_dict,
    point_to_line_distance, snapshot_from_entities,
)

from .constraints import (
    Constraint, ConstraintType, ConstraintPriority, ConstraintMetadata,
    ConstraintCreationParams, ConstraintSolution, ConstraintMarker,
    calculate_constraint_error, is_constraint_satisfied, get_constraint_symbol,
)

from .validation import (
    ValidationError, ConstraintValidationException, validate_constraint, raise_for_validation,
)

from .solver import ConstraintSolver, ConstraintSolveError, SolverConfig, DistanceMode

from .auto_constraints import AutoConstraintThresholds, suggest_constraint, suggest_constraints

from .geometry_store import IGeometryStore, InMemoryGeometryStore

from .manager import ConstraintManager, ConstraintCreationResult
