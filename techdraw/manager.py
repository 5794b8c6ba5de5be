"""
TechDraw Constraints - Constraint Manager
Verwaltet Constraints einer Zeichnung: Erstellen, Aktivieren, Lösen

Der Manager besitzt die Constraint-Map und eine Kopie des Entity-Snapshots.
Geometrie-Änderungen kommen über update_entities() herein, Solver-Updates
gehen über den injizierten IGeometryStore hinaus. Listener bekommen nach
jeder Änderung die vollständige Constraint-Liste (als Kopien).
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Union
import asyncio

from loguru import logger

from config.feature_flags import is_enabled
from config.version import get_version_info

from .auto_constraints import AutoConstraintThresholds, suggest_constraints
from .constraints import (
    Constraint, ConstraintCreationParams, ConstraintMarker, ConstraintMetadata,
    ConstraintPriority, ConstraintSolution, build_parameters, get_constraint_symbol,
)
from .geometry import (
    Entity, EntityUpdate, Point2D, apply_updates_to_snapshot, entity_center, merge_entity_updates,
)
from .geometry_store import IGeometryStore
from .solver import ConstraintSolver, SolverConfig
from .validation import ValidationError, validate_constraint


# Verzögerung für schedule_solve() in Sekunden
AUTO_SOLVE_DELAY = 0.1

ChangeListener = Callable[[List[Constraint]], None]


@dataclass
class ConstraintCreationResult:
    """Ergebnis von create_constraint(): ID oder ValidationError"""
    constraint_id: Optional[str] = None
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.constraint_id is not None


class ConstraintManager:
    """
    Constraint-Verwaltung einer Zeichnung.

    Args:
        geometry_store: Empfänger der Solver-Updates (optional)
        solver: Solver-Instanz (Default: ConstraintSolver mit config)
        config: SolverConfig (Default: aus Feature-Flags)
        thresholds: Schwellwerte für Auto-Constraints
    """

    def __init__(self, geometry_store: Optional[IGeometryStore] = None,
                 solver: Optional[ConstraintSolver] = None,
                 config: Optional[SolverConfig] = None,
                 thresholds: Optional[AutoConstraintThresholds] = None):
        self.config = config or SolverConfig.from_feature_flags()
        self.thresholds = thresholds or AutoConstraintThresholds()
        self._store = geometry_store
        self._solver = solver or ConstraintSolver(self.config)

        self._constraints: Dict[str, Constraint] = {}
        self._entity_index: Dict[str, Set[str]] = {}
        self._entities: Dict[str, Entity] = geometry_store.get_entities() if geometry_store is not None else {}
        self._listeners: List[ChangeListener] = []
        self._pending_solve: Optional[asyncio.Task] = None

    # =========================================================================
    # Geometrie
    # =========================================================================

    @property
    def entities(self) -> Dict[str, Entity]:
        """Kopie des aktuellen Entity-Snapshots"""
        return dict(self._entities)

    def update_entities(self, snapshot: Optional[Mapping[str, Entity]] = None) -> None:
        """
        Ersetzt den Entity-Snapshot.

        Ohne Argument wird der Snapshot aus dem injizierten Store gelesen.
        """
        if snapshot is None:
            if self._store is None:
                raise ValueError("update_entities() ohne Snapshot braucht einen GeometryStore")
            snapshot = self._store.get_entities()
        self._entities = dict(snapshot)
        if is_enabled("constraint_manager_debug"):
            logger.debug(f"[ConstraintManager] Snapshot aktualisiert: {len(self._entities)} Entities")

    # =========================================================================
    # CRUD
    # =========================================================================

    def create_constraint(self, params: ConstraintCreationParams) -> ConstraintCreationResult:
        """Validiert und speichert einen neuen Constraint."""
        parameters = build_parameters(params, self._entities.get)
        error = validate_constraint(params.type, params.entity_ids, parameters, self._entities)
        if error is not None:
            logger.warning(f"[ConstraintManager] Constraint abgelehnt ({getattr(params.type, 'name', params.type)}): "
                           f"{error.reason}")
            return ConstraintCreationResult(error=error)

        priority = params.priority if params.priority is not None else ConstraintPriority.NORMAL
        if isinstance(priority, ConstraintPriority):
            priority = priority.value
        constraint = Constraint(
            type=params.type,
            entity_ids=list(params.entity_ids),
            parameters=parameters,
            priority=int(priority),
            metadata=ConstraintMetadata(description=params.description or f"{params.type.name} constraint"),
        )
        self._constraints[constraint.id] = constraint
        self._index(constraint)

        logger.info(f"[ConstraintManager] Constraint erstellt: {constraint.id} {constraint}")
        self._notify()
        return ConstraintCreationResult(constraint_id=constraint.id)

    def remove_constraint(self, constraint_id: str) -> bool:
        constraint = self._constraints.pop(constraint_id, None)
        if constraint is None:
            return False
        self._unindex(constraint)
        logger.info(f"[ConstraintManager] Constraint entfernt: {constraint_id}")
        self._notify()
        return True

    def toggle_constraint(self, constraint_id: str, active: Optional[bool] = None) -> bool:
        """
        Aktiviert/deaktiviert einen Constraint (ohne Solve).

        Args:
            constraint_id: ID des Constraints
            active: neuer Zustand, None = umschalten

        Returns:
            False wenn die ID unbekannt ist
        """
        constraint = self._constraints.get(constraint_id)
        if constraint is None:
            return False
        constraint.active = (not constraint.active) if active is None else bool(active)
        constraint.metadata.touch()
        if is_enabled("constraint_manager_debug"):
            logger.debug(f"[ConstraintManager] {constraint_id} active={constraint.active}")
        self._notify()
        return True

    def update_constraint(self, constraint_id: str,
                          parameters: Optional[Dict[str, Any]] = None,
                          priority: Optional[Union[int, ConstraintPriority]] = None,
                          description: Optional[str] = None) -> Optional[ValidationError]:
        """Ändert Parameter/Priorität/Beschreibung; Parameter werden neu validiert."""
        constraint = self._constraints.get(constraint_id)
        if constraint is None:
            return ValidationError("CONSTRAINT_NOT_FOUND", f"Constraint {constraint_id} not found",
                                   ["Check constraint ID"])

        if parameters:
            merged = {**constraint.parameters, **parameters}
            error = validate_constraint(constraint.type, constraint.entity_ids, merged, self._entities)
            if error is not None:
                logger.warning(f"[ConstraintManager] Update von {constraint_id} abgelehnt: {error.reason}")
                return error
            constraint.parameters = merged
        if isinstance(priority, ConstraintPriority):
            priority = priority.value
        if priority is not None:
            constraint.priority = int(priority)
        if description is not None:
            constraint.metadata.description = description

        constraint.metadata.touch()
        self._notify()
        return None

    def remove_constraints_for_entity(self, entity_id: str) -> int:
        """Entfernt alle Constraints, die eine Entity referenzieren. Gibt die Anzahl zurück."""
        ids = [cid for cid in self._constraints if cid in self._entity_index.get(entity_id, ())]
        for cid in ids:
            self._unindex(self._constraints.pop(cid))
        if ids:
            logger.info(f"[ConstraintManager] {len(ids)} Constraints für Entity {entity_id} entfernt")
            self._notify()
        return len(ids)

    def clear(self) -> None:
        self._constraints.clear()
        self._entity_index.clear()
        self._notify()

    # =========================================================================
    # Abfragen (Kopien, keine Seiteneffekte)
    # =========================================================================

    def get_constraint(self, constraint_id: str) -> Optional[Constraint]:
        constraint = self._constraints.get(constraint_id)
        return constraint.copy() if constraint else None

    def get_all_constraints(self) -> List[Constraint]:
        return [c.copy() for c in self._constraints.values()]

    def get_constraints_for_entity(self, entity_id: str) -> List[Constraint]:
        ids = self._entity_index.get(entity_id, set())
        return [c.copy() for cid, c in self._constraints.items() if cid in ids]

    def get_active_constraints(self) -> List[Constraint]:
        return [c.copy() for c in self._constraints.values() if c.active]

    def find_dangling_constraints(self) -> List[Constraint]:
        """Constraints, deren Entities im aktuellen Snapshot fehlen"""
        return [c.copy() for c in self._constraints.values()
                if any(eid not in self._entities for eid in c.entity_ids)]

    def get_constraint_markers(self) -> List[ConstraintMarker]:
        """Symbol + Position pro Constraint (Mittel der Referenzpunkte)"""
        markers = []
        for constraint in self._constraints.values():
            entities = [self._entities.get(eid) for eid in constraint.entity_ids]
            if not entities or any(e is None for e in entities):
                continue
            centers = [entity_center(e) for e in entities]
            position = Point2D(sum(p.x for p in centers) / len(centers),
                               sum(p.y for p in centers) / len(centers))
            markers.append(ConstraintMarker(
                constraint_id=constraint.id,
                type=constraint.type,
                position=position,
                symbol=get_constraint_symbol(constraint.type),
                satisfied=constraint.satisfied,
                visible=constraint.active,
            ))
        return markers

    # =========================================================================
    # Solve
    # =========================================================================

    async def solve_constraints(self) -> List[ConstraintSolution]:
        """Ein Solve-Durchlauf über alle aktiven Constraints."""
        return self.solve_constraints_sync()

    def solve_constraints_sync(self) -> List[ConstraintSolution]:
        active = [c for c in self._constraints.values() if c.active]
        solutions = self._solver.solve(active, self._entities, self.config)

        merged: Dict[str, EntityUpdate] = {}
        for solution in solutions:
            constraint = self._constraints.get(solution.constraint_id)
            if constraint is not None:
                constraint.satisfied = solution.satisfied
            if solution.satisfied and solution.entity_updates:
                merge_entity_updates(merged, solution.entity_updates)

        if merged:
            self._entities = apply_updates_to_snapshot(self._entities, merged)
            if self._store is not None:
                self._store.apply_updates(merged)

        failed = [s for s in solutions if not s.satisfied]
        if failed:
            logger.warning(f"[ConstraintManager] Solve: {len(failed)}/{len(solutions)} Constraints nicht erfüllt")
        else:
            logger.debug(f"[ConstraintManager] Solve: {len(solutions)} Constraints erfüllt, "
                         f"{len(merged)} Entities aktualisiert")

        self._notify()
        return solutions

    def schedule_solve(self, delay: Optional[float] = None) -> asyncio.Task:
        """
        Verzögerter Solve auf der laufenden Event-Loop.

        Ein noch wartender Solve wird abgebrochen und durch den neuen ersetzt.
        Ein bereits laufender Solve wird nicht unterbrochen.
        """
        delay = AUTO_SOLVE_DELAY if delay is None else delay
        if self._pending_solve is not None and not self._pending_solve.done():
            self._pending_solve.cancel()

        async def _delayed():
            await asyncio.sleep(delay)
            return await self.solve_constraints()

        self._pending_solve = asyncio.get_running_loop().create_task(_delayed())
        return self._pending_solve

    # =========================================================================
    # Auto-Constraints
    # =========================================================================

    def create_auto_constraints(self, entity_ids: List[str]) -> List[str]:
        """
        Schlägt für jedes Entity-Paar einen Constraint vor und legt ihn an.

        Unbekannte IDs werden übersprungen, bereits vorhandene gleichartige
        Constraints nicht doppelt angelegt.
        """
        if not is_enabled("auto_constraints"):
            return []

        entities = []
        for entity_id in entity_ids:
            entity = self._entities.get(entity_id)
            if entity is None:
                logger.warning(f"[ConstraintManager] Auto-Constraints: Entity {entity_id} nicht gefunden")
                continue
            entities.append(entity)

        created = []
        for params in suggest_constraints(entities, self.thresholds):
            if self._has_equivalent(params):
                continue
            result = self.create_constraint(params)
            if result.ok:
                created.append(result.constraint_id)
        return created

    def _has_equivalent(self, params: ConstraintCreationParams) -> bool:
        wanted = set(params.entity_ids)
        return any(c.type == params.type and set(c.entity_ids) == wanted for c in self._constraints.values())

    # =========================================================================
    # Listener
    # =========================================================================

    def add_change_listener(self, listener: ChangeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.get_all_constraints()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"[ConstraintManager] Listener-Fehler: {e}")

    # =========================================================================
    # Serialisierung
    # =========================================================================

    def to_dict(self) -> dict:
        return {
            "version": get_version_info()["version"],
            "constraints": [c.to_dict() for c in self._constraints.values()],
        }

    def load_dict(self, data: dict) -> int:
        """
        Ersetzt alle Constraints durch die aus data.

        Es wird nicht gegen den Snapshot validiert; fehlende Entities
        liefert find_dangling_constraints().
        """
        self._constraints.clear()
        self._entity_index.clear()
        for item in data.get("constraints", []):
            constraint = Constraint.from_dict(item)
            self._constraints[constraint.id] = constraint
            self._index(constraint)
        logger.info(f"[ConstraintManager] {len(self._constraints)} Constraints geladen")
        self._notify()
        return len(self._constraints)

    # =========================================================================
    # Index
    # =========================================================================

    def _index(self, constraint: Constraint) -> None:
        for entity_id in constraint.entity_ids:
            self._entity_index.setdefault(entity_id, set()).add(constraint.id)

    def _unindex(self, constraint: Constraint) -> None:
        for entity_id in constraint.entity_ids:
            ids = self._entity_index.get(entity_id)
            if ids is None:
                continue
            ids.discard(constraint.id)
            if not ids:
                del self._entity_index[entity_id]

    def __len__(self) -> int:
        return len(self._constraints)

    def __repr__(self):
        active = sum(1 for c in self._constraints.values() if c.active)
        return f"ConstraintManager({len(self._constraints)} Constraints, {active} aktiv, {len(self._entities)} Entities)"
