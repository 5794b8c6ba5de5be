"""
TechDraw Constraints - Auto-Constraint Heuristiken

Schlägt für ein Entity-Paar den Constraint vor, den es schon fast erfüllt.
Vorschläge sind reine ConstraintCreationParams; ob sie angelegt werden,
entscheidet der Manager.
"""

from dataclasses import dataclass
from itertools import combinations
from typing import Iterable, List, Optional
import math

from loguru import logger

from config.tolerances import Tolerances

from .constraints import ConstraintCreationParams, ConstraintType
from .geometry import Entity, LineEntity, is_circular


@dataclass
class AutoConstraintThresholds:
    """Schwellwerte für Vorschläge (Winkel in Radians, Abstände in Zeichnungseinheiten)"""
    parallel_angle: float = Tolerances.AUTO_PARALLEL_ANGLE
    perpendicular_angle: float = Tolerances.AUTO_PERPENDICULAR_ANGLE
    concentric_distance: float = Tolerances.AUTO_CONCENTRIC_DISTANCE
    equal_radius_delta: float = Tolerances.AUTO_EQUAL_RADIUS_DELTA


def _suggestion(constraint_type: ConstraintType, e1: Entity, e2: Entity) -> ConstraintCreationParams:
    return ConstraintCreationParams(
        type=constraint_type,
        entity_ids=[e1.id, e2.id],
        description=f"Auto-suggested {constraint_type.name.lower().replace('_', ' ')} constraint",
    )


def suggest_line_constraint(l1: LineEntity, l2: LineEntity,
                            thresholds: Optional[AutoConstraintThresholds] = None) -> Optional[ConstraintCreationParams]:
    """PARALLEL oder PERPENDICULAR, wenn die Ausrichtungen nah genug sind"""
    t = thresholds or AutoConstraintThresholds()
    # nur Ausrichtung zählt: Richtungsdifferenz nach [0, pi/2] falten
    delta = abs(l1.angle - l2.angle) % math.pi
    folded = min(delta, math.pi - delta)

    if folded < t.parallel_angle:
        return _suggestion(ConstraintType.PARALLEL, l1, l2)
    if abs(folded - math.pi / 2) < t.perpendicular_angle:
        return _suggestion(ConstraintType.PERPENDICULAR, l1, l2)
    return None


def suggest_circle_constraint(c1: Entity, c2: Entity,
                              thresholds: Optional[AutoConstraintThresholds] = None) -> Optional[ConstraintCreationParams]:
    """CONCENTRIC bei nahen Mittelpunkten, sonst EQUAL_RADIUS bei ähnlichen Radien"""
    t = thresholds or AutoConstraintThresholds()
    if c1.center.distance_to(c2.center) < t.concentric_distance:
        return _suggestion(ConstraintType.CONCENTRIC, c1, c2)
    if abs(c1.radius - c2.radius) < t.equal_radius_delta:
        return _suggestion(ConstraintType.EQUAL_RADIUS, c1, c2)
    return None


def suggest_constraint(e1: Entity, e2: Entity,
                       thresholds: Optional[AutoConstraintThresholds] = None) -> Optional[ConstraintCreationParams]:
    if isinstance(e1, LineEntity) and isinstance(e2, LineEntity):
        return suggest_line_constraint(e1, e2, thresholds)
    if is_circular(e1) and is_circular(e2):
        return suggest_circle_constraint(e1, e2, thresholds)
    return None


def suggest_constraints(entities: Iterable[Entity],
                        thresholds: Optional[AutoConstraintThresholds] = None) -> List[ConstraintCreationParams]:
    """suggest_constraint() für jedes ungeordnete Paar"""
    suggestions = []
    for e1, e2 in combinations(list(entities), 2):
        params = suggest_constraint(e1, e2, thresholds)
        if params is not None:
            logger.debug(f"[AutoConstraints] {params.type.name} für {e1.id}/{e2.id}")
            suggestions.append(params)
    return suggestions
