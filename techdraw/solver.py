"""
TechDraw Constraints - Constraint Solver
Sequenzieller Solver mit geschlossenen Korrekturen pro Constraint-Typ

Kein simultanes Gleichungssystem: jeder Constraint wird für sich gelöst,
in absteigender Priorität. Spätere Constraints sehen die bereits
korrigierte Geometrie früherer Constraints.

Ablauf pro Constraint:
    1. Entities auflösen (fehlend / falscher Typ -> ConstraintSolveError)
    2. Residuum prüfen (< tolerance -> erfüllt, keine Updates)
    3. Korrektur berechnen
    4. Verifizieren (Residuum weiterhin zu groß -> Updates verwerfen)
"""

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple
import math

import numpy as np
from loguru import logger

from config.feature_flags import is_enabled
from config.tolerances import Tolerances

from .constraints import (
    Constraint, ConstraintSolution, ConstraintType, calculate_constraint_error,
)
from .geometry import (
    Entity, EntityUpdate, LineEntity, Point2D,
    apply_entity_update, apply_updates_to_snapshot, entity_center,
    move_center_update, project_point_on_line, reflect_point, translate_entity_update,
)
from .validation import check_cardinality, check_entity_types


class ConstraintSolveError(Exception):
    """Ein einzelner Constraint konnte nicht gelöst werden"""
    pass


class DistanceMode(Enum):
    """Wie DISTANCE korrigiert wird"""
    MOVE_SECOND = auto()   # Erste Entity bleibt, zweite wird verschoben
    SYMMETRIC = auto()     # Beide Entities bewegen sich gedämpft aufeinander zu/voneinander weg


@dataclass
class SolverConfig:
    """Einstellungen für einen Solve-Durchlauf"""
    max_iterations: int = Tolerances.SOLVER_MAX_ITERATIONS
    tolerance: float = Tolerances.SOLVER_TOLERANCE
    damping_factor: float = Tolerances.SOLVER_DAMPING
    prioritize_constraints: bool = True
    distance_mode: DistanceMode = DistanceMode.MOVE_SECOND
    debug_mode: bool = False

    @classmethod
    def from_feature_flags(cls, **overrides) -> 'SolverConfig':
        """Config mit Defaults aus den Feature-Flags"""
        cfg = cls(
            debug_mode=is_enabled("constraint_solver_debug"),
            distance_mode=(DistanceMode.SYMMETRIC if is_enabled("symmetric_distance_solve")
                           else DistanceMode.MOVE_SECOND),
        )
        return replace(cfg, **overrides)


# Ergebnis einer Korrektur: (Updates pro Entity-ID, verbrauchte Iterationen)
Correction = Tuple[Dict[str, EntityUpdate], int]


def _nearest_angle(current: float, candidates: Sequence[float]) -> float:
    """Kandidat mit dem kleinsten Winkelabstand zu current"""
    def gap(a):
        d = (a - current) % (2 * math.pi)
        return min(d, 2 * math.pi - d)
    return min(candidates, key=gap)


def _rotate_end(line: LineEntity, angle: float) -> EntityUpdate:
    """Dreht die Linie um ihren Startpunkt auf angle, Länge bleibt erhalten"""
    length = line.length
    if length < Tolerances.EPSILON_MATH:
        raise ConstraintSolveError(f"Linie {line.id} hat Länge 0 und keine Richtung")
    return {"end": Point2D(line.start.x + length * math.cos(angle),
                           line.start.y + length * math.sin(angle))}


def _unit(vec: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(vec))
    if norm < Tolerances.EPSILON_MATH:
        return np.array([1.0, 0.0])
    return vec / norm


def _line_normal(line: LineEntity) -> np.ndarray:
    dx, dy = line.direction
    return np.array([-dy, dx])


def _relay_line(start: Point2D, direction: np.ndarray, length: float) -> EntityUpdate:
    end = start.as_array() + direction * length
    return {"start": start, "end": Point2D.from_array(end)}


class ConstraintSolver:
    """
    Sequenzieller Constraint-Solver.

    Zustandslos bis auf die Default-Config. Der übergebene Snapshot wird
    nie verändert; das Ergebnis sind Partial-Updates pro Constraint.
    """

    def __init__(self, config: Optional[SolverConfig] = None):
        self.config = config or SolverConfig()
        self._handlers: Dict[ConstraintType, Callable[[Constraint, List[Entity], SolverConfig], Correction]] = {
            ConstraintType.PARALLEL: self._solve_parallel,
            ConstraintType.PERPENDICULAR: self._solve_perpendicular,
            ConstraintType.HORIZONTAL: self._solve_horizontal,
            ConstraintType.VERTICAL: self._solve_vertical,
            ConstraintType.TANGENT: self._solve_tangent,
            ConstraintType.CONCENTRIC: self._solve_concentric,
            ConstraintType.COINCIDENT: self._solve_coincident,
            ConstraintType.DISTANCE: self._solve_distance,
            ConstraintType.ANGLE: self._solve_angle,
            ConstraintType.RADIUS: self._solve_radius,
            ConstraintType.DIAMETER: self._solve_diameter,
            ConstraintType.LENGTH: self._solve_length,
            ConstraintType.EQUAL_LENGTH: self._solve_equal_length,
            ConstraintType.EQUAL_RADIUS: self._solve_equal_radius,
            ConstraintType.COLLINEAR: self._solve_collinear,
            ConstraintType.MIDPOINT: self._solve_midpoint,
            ConstraintType.SYMMETRIC: self._solve_symmetric,
            ConstraintType.FIX: self._solve_fix,
            ConstraintType.OFFSET_DISTANCE: self._solve_offset_distance,
        }

    def supports(self, constraint_type: ConstraintType) -> bool:
        return constraint_type in self._handlers

    def solve(self, constraints: Sequence[Constraint], entities: Mapping[str, Entity],
              config: Optional[SolverConfig] = None) -> List[ConstraintSolution]:
        """
        Löst alle aktiven Constraints in einem Durchlauf.

        Args:
            constraints: Constraints (inaktive werden übersprungen)
            entities: ID -> Entity Snapshot
            config: überschreibt die Default-Config für diesen Durchlauf

        Returns:
            Eine ConstraintSolution pro aktivem Constraint, in Lösungsreihenfolge
        """
        cfg = config or self.config
        debug = cfg.debug_mode or is_enabled("constraint_solver_debug")

        ordered = [c for c in constraints if c.active]
        if cfg.prioritize_constraints:
            # sorted() ist stabil: gleiche Priorität -> Einfügereihenfolge
            ordered = sorted(ordered, key=lambda c: c.priority, reverse=True)

        working: Dict[str, Entity] = dict(entities)
        solutions: List[ConstraintSolution] = []

        for constraint in ordered:
            solution = self._solve_one(constraint, working, cfg, debug)
            if solution.satisfied and solution.entity_updates:
                working = apply_updates_to_snapshot(working, solution.entity_updates)
            solutions.append(solution)

        if debug:
            ok = sum(1 for s in solutions if s.satisfied)
            logger.debug(f"[ConstraintSolver] Durchlauf fertig: {ok}/{len(solutions)} erfüllt")
        return solutions

    def _solve_one(self, constraint: Constraint, working: Mapping[str, Entity],
                   cfg: SolverConfig, debug: bool) -> ConstraintSolution:
        try:
            handler = self._handlers.get(constraint.type)
            if handler is None:
                raise ConstraintSolveError(f"Unsupported constraint type: {constraint.type.name}")

            resolved = self._resolve_entities(constraint, working)
            residual = calculate_constraint_error(constraint, resolved)
            if residual < cfg.tolerance:
                if debug:
                    logger.debug(f"[ConstraintSolver] {constraint} bereits erfüllt (res={residual:.2e})")
                return ConstraintSolution(constraint.id, True, {}, 0, None, residual)

            updates, iterations = handler(constraint, resolved, cfg)

            corrected = [apply_entity_update(e, updates.get(e.id)) for e in resolved]
            final = calculate_constraint_error(constraint, corrected)
            if final >= cfg.tolerance:
                message = f"Did not converge after {iterations} iterations (residual {final:.3e})"
                logger.warning(f"[ConstraintSolver] {constraint}: {message}")
                return ConstraintSolution(constraint.id, False, {}, iterations, message, final)

            if debug:
                logger.debug(f"[ConstraintSolver] {constraint}: {residual:.3e} -> {final:.3e} "
                             f"in {iterations} it, Updates: {list(updates)}")
            return ConstraintSolution(constraint.id, True, updates, iterations, None, final)

        except ConstraintSolveError as e:
            logger.warning(f"[ConstraintSolver] {constraint}: {e}")
            return ConstraintSolution(constraint.id, False, {}, 0, str(e), math.inf)
        except Exception as e:
            logger.error(f"[ConstraintSolver] Unerwarteter Fehler bei {constraint}: {e}")
            return ConstraintSolution(constraint.id, False, {}, 0, f"{type(e).__name__}: {e}", math.inf)

    def _resolve_entities(self, constraint: Constraint, working: Mapping[str, Entity]) -> List[Entity]:
        resolved = []
        for entity_id in constraint.entity_ids:
            entity = working.get(entity_id)
            if entity is None:
                raise ConstraintSolveError(f"Entity {entity_id} not found")
            resolved.append(entity)

        error = check_cardinality(constraint.type, constraint.entity_ids)
        if error is None:
            error = check_entity_types(constraint.type, resolved)
        if error is not None:
            raise ConstraintSolveError(error.reason)
        return resolved

    def _parameter(self, constraint: Constraint, key: str) -> float:
        value = constraint.parameters.get(key)
        if value is None:
            raise ConstraintSolveError(f"Missing parameter '{key}'")
        return float(value)

    # =========================================================================
    # Orientierung
    # =========================================================================

    def _solve_parallel(self, constraint, entities, cfg) -> Correction:
        l1, l2 = entities
        target = _nearest_angle(l2.angle, [l1.angle, l1.angle + math.pi])
        return {l2.id: _rotate_end(l2, target)}, 1

    def _solve_perpendicular(self, constraint, entities, cfg) -> Correction:
        l1, l2 = entities
        target = _nearest_angle(l2.angle, [l1.angle + math.pi / 2, l1.angle - math.pi / 2])
        return {l2.id: _rotate_end(l2, target)}, 1

    def _solve_angle(self, constraint, entities, cfg) -> Correction:
        l1, l2 = entities
        theta = self._parameter(constraint, "angle")
        target = _nearest_angle(l2.angle, [l1.angle + theta, l1.angle - theta])
        return {l2.id: _rotate_end(l2, target)}, 1

    def _solve_horizontal(self, constraint, entities, cfg) -> Correction:
        line = entities[0]
        return {line.id: {"end": Point2D(line.end.x, line.start.y)}}, 1

    def _solve_vertical(self, constraint, entities, cfg) -> Correction:
        line = entities[0]
        return {line.id: {"end": Point2D(line.start.x, line.end.y)}}, 1

    def _solve_collinear(self, constraint, entities, cfg) -> Correction:
        l1, l2 = entities
        direction = np.array(l1.direction)
        # Richtungssinn von l2 beibehalten
        if float(np.dot(direction, np.array(l2.direction))) < 0:
            direction = -direction
        foot = project_point_on_line(l2.start, l1)
        return {l2.id: _relay_line(foot, direction, l2.length)}, 1

    def _solve_offset_distance(self, constraint, entities, cfg) -> Correction:
        l1, l2 = entities
        offset = self._parameter(constraint, "distance")
        direction = np.array(l1.direction)
        if float(np.dot(direction, np.array(l2.direction))) < 0:
            direction = -direction

        normal = _line_normal(l1)
        mid = l2.midpoint.as_array()
        side = float(np.dot(mid - l1.start.as_array(), normal))
        sign = 1.0 if side >= 0 else -1.0

        foot = project_point_on_line(l2.midpoint, l1).as_array()
        new_mid = foot + normal * sign * offset
        half = direction * l2.length / 2
        return {l2.id: {"start": Point2D.from_array(new_mid - half),
                        "end": Point2D.from_array(new_mid + half)}}, 1

    # =========================================================================
    # Kreise
    # =========================================================================

    def _solve_tangent(self, constraint, entities, cfg) -> Correction:
        e1, e2 = entities
        if isinstance(e1, LineEntity) or isinstance(e2, LineEntity):
            circle, line = (e2, e1) if isinstance(e1, LineEntity) else (e1, e2)
            return self._tangent_line_circle(line, circle), 1

        c1, c2 = e1, e2
        delta = c2.center.as_array() - c1.center.as_array()
        dist = float(np.linalg.norm(delta))
        external = c1.radius + c2.radius
        internal = abs(c1.radius - c2.radius)
        if internal < Tolerances.EPSILON_MATH:
            target = external
        else:
            target = external if abs(dist - external) <= abs(dist - internal) else internal
        new_center = c1.center.as_array() + _unit(delta) * target
        return {c2.id: {"center": Point2D.from_array(new_center)}}, 1

    def _tangent_line_circle(self, line: LineEntity, circle) -> Dict[str, EntityUpdate]:
        if line.length < Tolerances.EPSILON_MATH:
            raise ConstraintSolveError(f"Linie {line.id} hat Länge 0")
        normal = _line_normal(line)
        # Vorzeichenbehafteter Abstand des Mittelpunkts zur Geraden
        signed = float(np.dot(circle.center.as_array() - line.start.as_array(), normal))
        sign = 1.0 if signed >= 0 else -1.0
        shift = signed - sign * circle.radius
        return {line.id: translate_entity_update(line, shift * normal[0], shift * normal[1])}

    def _solve_concentric(self, constraint, entities, cfg) -> Correction:
        c1, c2 = entities
        return {c2.id: {"center": c1.center}}, 1

    def _solve_radius(self, constraint, entities, cfg) -> Correction:
        circle = entities[0]
        return {circle.id: {"radius": self._parameter(constraint, "radius")}}, 1

    def _solve_diameter(self, constraint, entities, cfg) -> Correction:
        circle = entities[0]
        return {circle.id: {"radius": self._parameter(constraint, "diameter") / 2}}, 1

    def _solve_equal_radius(self, constraint, entities, cfg) -> Correction:
        c1, c2 = entities
        return {c2.id: {"radius": c1.radius}}, 1

    # =========================================================================
    # Längen
    # =========================================================================

    def _solve_length(self, constraint, entities, cfg) -> Correction:
        line = entities[0]
        length = self._parameter(constraint, "length")
        return {line.id: _relay_line(line.start, np.array(line.direction), length)}, 1

    def _solve_equal_length(self, constraint, entities, cfg) -> Correction:
        l1, l2 = entities
        return {l2.id: _relay_line(l2.start, np.array(l2.direction), l1.length)}, 1

    # =========================================================================
    # Positionen
    # =========================================================================

    def _solve_coincident(self, constraint, entities, cfg) -> Correction:
        anchor = entity_center(entities[0])
        updates = {}
        for entity in entities[1:]:
            if entity_center(entity).distance_to(anchor) >= cfg.tolerance:
                updates[entity.id] = move_center_update(entity, anchor)
        return updates, 1

    def _solve_midpoint(self, constraint, entities, cfg) -> Correction:
        entity, line = entities
        return {entity.id: move_center_update(entity, line.midpoint)}, 1

    def _solve_symmetric(self, constraint, entities, cfg) -> Correction:
        e1, e2, axis = entities
        if axis.length < Tolerances.EPSILON_MATH:
            raise ConstraintSolveError(f"Symmetrie-Achse {axis.id} hat Länge 0")
        target = reflect_point(entity_center(e1), axis)
        return {e2.id: move_center_update(e2, target)}, 1

    def _solve_fix(self, constraint, entities, cfg) -> Correction:
        entity = entities[0]
        anchor = constraint.parameters.get("position")
        if anchor is None:
            raise ConstraintSolveError("FIX constraint has no anchor position")
        return {entity.id: move_center_update(entity, anchor)}, 1

    def _solve_distance(self, constraint, entities, cfg) -> Correction:
        e1, e2 = entities
        target = self._parameter(constraint, "distance")
        if cfg.distance_mode == DistanceMode.SYMMETRIC:
            return self._solve_distance_symmetric(e1, e2, target, cfg)

        p1 = entity_center(e1).as_array()
        p2 = entity_center(e2).as_array()
        # Zusammenfallende Punkte: Richtung +x
        new_p2 = p1 + _unit(p2 - p1) * target
        return {e2.id: move_center_update(e2, Point2D.from_array(new_p2))}, 1

    def _solve_distance_symmetric(self, e1: Entity, e2: Entity, target: float, cfg: SolverConfig) -> Correction:
        """
        Beide Entities bewegen sich entlang der Verbindungslinie,
        jede um damping * Fehler / 2 pro Iteration.

        Abbruch bei Konvergenz, max_iterations oder wenn der Fehler
        nicht mehr kleiner wird.
        """
        p1 = entity_center(e1).as_array()
        p2 = entity_center(e2).as_array()
        iterations = 0
        previous = math.inf

        while iterations < cfg.max_iterations:
            delta = p2 - p1
            err = float(np.linalg.norm(delta)) - target
            if abs(err) < cfg.tolerance or abs(err) >= previous:
                break
            previous = abs(err)

            step = _unit(delta) * (cfg.damping_factor * err / 2)
            p1 = p1 + step
            p2 = p2 - step
            iterations += 1

        return {
            e1.id: move_center_update(e1, Point2D.from_array(p1)),
            e2.id: move_center_update(e2, Point2D.from_array(p2)),
        }, iterations
