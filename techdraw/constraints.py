"""
TechDraw Constraints - Constraint System
Geometrische Beziehungen zwischen Zeichnungs-Entities

Ein Constraint referenziert Entities nur über ihre IDs. Typ-spezifische Werte
(Abstand, Winkel, Radius, ...) liegen im generischen parameters-Dict.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from enum import Enum, auto
import copy
import math
import time
import uuid

from config.tolerances import Tolerances

from .geometry import (
    Entity, EntityUpdate, Point2D, LineEntity, is_circular,
    entity_center, point_to_line_distance, reflect_point,
)


class ConstraintPriority(Enum):
    """Prioritätsstufen für Constraints (höher = wird zuerst gelöst)"""
    LOW = 1
    NORMAL = 5
    HIGH = 10
    CRITICAL = 20


class ConstraintType(Enum):
    """Verfügbare Constraint-Typen"""
    # Linien-Constraints
    PARALLEL = auto()           # Zwei Linien parallel
    PERPENDICULAR = auto()      # Zwei Linien senkrecht
    HORIZONTAL = auto()         # Linie horizontal
    VERTICAL = auto()           # Linie vertikal
    COLLINEAR = auto()          # Zwei Linien auf einer Geraden
    EQUAL_LENGTH = auto()       # Zwei Linien gleich lang

    # Kreis-Constraints
    TANGENT = auto()            # Linie/Kreis oder Kreis/Kreis tangential
    CONCENTRIC = auto()         # Kreise konzentrisch
    EQUAL_RADIUS = auto()       # Kreise gleicher Radius

    # Positions-Constraints
    COINCIDENT = auto()         # Referenzpunkte zusammen
    SYMMETRIC = auto()          # Symmetrisch zu Achse
    MIDPOINT = auto()           # Auf Linienmitte
    FIX = auto()                # An Position fixiert
    PATTERN = auto()            # Muster (nur Modell, kein Solver)

    # Maß-Constraints (Dimensionen)
    DISTANCE = auto()           # Abstand der Referenzpunkte
    ANGLE = auto()              # Winkel zwischen Linien
    RADIUS = auto()             # Radius eines Kreises
    DIAMETER = auto()           # Durchmesser
    LENGTH = auto()             # Länge einer Linie
    OFFSET_DISTANCE = auto()    # Paralleler Versatz zweier Linien


# Anzahl der Entities pro Typ: (min, max), max=None -> unbegrenzt
REQUIRED_ENTITIES: Dict[ConstraintType, Tuple[int, Optional[int]]] = {
    ConstraintType.HORIZONTAL: (1, 1),
    ConstraintType.VERTICAL: (1, 1),
    ConstraintType.RADIUS: (1, 1),
    ConstraintType.DIAMETER: (1, 1),
    ConstraintType.LENGTH: (1, 1),
    ConstraintType.FIX: (1, 1),
    ConstraintType.PARALLEL: (2, 2),
    ConstraintType.PERPENDICULAR: (2, 2),
    ConstraintType.DISTANCE: (2, 2),
    ConstraintType.ANGLE: (2, 2),
    ConstraintType.TANGENT: (2, 2),
    ConstraintType.CONCENTRIC: (2, 2),
    ConstraintType.COLLINEAR: (2, 2),
    ConstraintType.EQUAL_LENGTH: (2, 2),
    ConstraintType.EQUAL_RADIUS: (2, 2),
    ConstraintType.MIDPOINT: (2, 2),
    ConstraintType.OFFSET_DISTANCE: (2, 2),
    ConstraintType.SYMMETRIC: (3, 3),
    ConstraintType.COINCIDENT: (2, None),
    ConstraintType.PATTERN: (2, None),
}

# Welcher Parameter den "value" einer Bemaßung aufnimmt
VALUE_PARAMETERS: Dict[ConstraintType, str] = {
    ConstraintType.DISTANCE: "distance",
    ConstraintType.ANGLE: "angle",
    ConstraintType.RADIUS: "radius",
    ConstraintType.DIAMETER: "diameter",
    ConstraintType.LENGTH: "length",
    ConstraintType.OFFSET_DISTANCE: "distance",
}

CONSTRAINT_SYMBOLS: Dict[ConstraintType, str] = {
    ConstraintType.PARALLEL: "∥",
    ConstraintType.PERPENDICULAR: "⊥",
    ConstraintType.HORIZONTAL: "─",
    ConstraintType.VERTICAL: "│",
    ConstraintType.TANGENT: "○",
    ConstraintType.CONCENTRIC: "◎",
    ConstraintType.COLLINEAR: "···",
    ConstraintType.COINCIDENT: "●",
    ConstraintType.EQUAL_LENGTH: "=",
    ConstraintType.EQUAL_RADIUS: "≈",
    ConstraintType.SYMMETRIC: "↔",
    ConstraintType.MIDPOINT: "⊡",
    ConstraintType.DISTANCE: "D",
    ConstraintType.ANGLE: "∠",
    ConstraintType.RADIUS: "R",
    ConstraintType.DIAMETER: "Ø",
    ConstraintType.LENGTH: "L",
    ConstraintType.FIX: "⊕",
    ConstraintType.PATTERN: "#",
    ConstraintType.OFFSET_DISTANCE: "↕",
}


def get_constraint_symbol(constraint_type: ConstraintType) -> str:
    """Anzeige-Symbol für einen Constraint-Typ ('?' wenn unbekannt)."""
    return CONSTRAINT_SYMBOLS.get(constraint_type, "?")


@dataclass
class ConstraintMetadata:
    """Zeitstempel und Beschreibung eines Constraints"""
    created: float = field(default_factory=time.time)
    modified: float = field(default_factory=time.time)
    description: Optional[str] = None

    def touch(self):
        self.modified = time.time()


@dataclass
class Constraint:
    """
    Eine geometrische Beziehung zwischen Entities.

    satisfied wird ausschließlich vom Solver gesetzt. Der Manager gibt nur
    Kopien heraus, damit Aufrufer den gespeicherten Zustand nicht verändern.
    """
    type: ConstraintType
    entity_ids: List[str] = field(default_factory=list)
    parameters: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    active: bool = True
    satisfied: bool = False
    priority: int = ConstraintPriority.NORMAL.value
    metadata: ConstraintMetadata = field(default_factory=ConstraintMetadata)

    @property
    def value(self) -> Optional[float]:
        """Bemaßungswert (Winkel in Radians) oder None"""
        key = VALUE_PARAMETERS.get(self.type)
        if key is None:
            return None
        return self.parameters.get(key)

    @property
    def description(self) -> Optional[str]:
        return self.metadata.description

    def copy(self) -> 'Constraint':
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        """Serialisiert zu Dictionary für JSON."""
        return {
            "id": self.id,
            "type": self.type.name,
            "entity_ids": list(self.entity_ids),
            "parameters": {k: _param_to_json(v) for k, v in self.parameters.items()},
            "active": self.active,
            "satisfied": self.satisfied,
            "priority": self.priority,
            "metadata": {
                "created": self.metadata.created,
                "modified": self.metadata.modified,
                "description": self.metadata.description,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Constraint':
        meta = data.get("metadata") or {}
        return cls(
            type=ConstraintType[data["type"]],
            entity_ids=list(data.get("entity_ids", [])),
            parameters={k: _param_from_json(v) for k, v in (data.get("parameters") or {}).items()},
            id=data.get("id") or str(uuid.uuid4())[:8],
            active=data.get("active", True),
            satisfied=data.get("satisfied", False),
            priority=data.get("priority", ConstraintPriority.NORMAL.value),
            metadata=ConstraintMetadata(
                created=meta.get("created", time.time()),
                modified=meta.get("modified", time.time()),
                description=meta.get("description"),
            ),
        )

    def __repr__(self):
        val = self.value
        if val is None:
            val_str = ""
        elif self.type == ConstraintType.ANGLE:
            val_str = f"={math.degrees(val):.2f}°"
        else:
            val_str = f"={val}"
        state = "" if self.active else " (inaktiv)"
        return f"{self.type.name}{val_str}[{', '.join(self.entity_ids)}]{state}"


def _param_to_json(value):
    if isinstance(value, Point2D):
        return {"x": value.x, "y": value.y}
    return value


def _param_from_json(value):
    if isinstance(value, dict) and set(value.keys()) == {"x", "y"}:
        return Point2D(value["x"], value["y"])
    return value


@dataclass
class ConstraintCreationParams:
    """
    Eingabe für ConstraintManager.create_constraint().

    value wird typ-abhängig gemappt (ANGLE in Grad, intern Radians),
    point wird zum touch_point (TANGENT) bzw. zur Anker-Position (FIX).
    """
    type: ConstraintType
    entity_ids: List[str]
    value: Optional[float] = None
    point: Optional[Point2D] = None
    priority: Optional[int] = None
    description: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None


@dataclass
class ConstraintSolution:
    """Ergebnis eines Constraints in einem Solve-Durchlauf"""
    constraint_id: str
    satisfied: bool
    entity_updates: Dict[str, EntityUpdate] = field(default_factory=dict)
    iterations: int = 0
    error: Optional[str] = None
    residual: float = 0.0

    def __repr__(self):
        status = "OK" if self.satisfied else f"FAIL({self.error})"
        return f"ConstraintSolution({self.constraint_id}: {status}, it={self.iterations}, res={self.residual:.2e})"


@dataclass
class ConstraintMarker:
    """Anzeige-Daten für ein Constraint-Symbol (kein Rendering)"""
    constraint_id: str
    type: ConstraintType
    position: Point2D
    symbol: str
    satisfied: bool
    visible: bool = True

    @property
    def color(self) -> str:
        return "#52c41a" if self.satisfied else "#1890ff"


def build_parameters(params: ConstraintCreationParams,
                     entity_lookup: Optional[Callable[[str], Optional[Entity]]] = None) -> Dict[str, Any]:
    """
    Baut das parameters-Dict aus den Erzeugungs-Parametern.

    Ein gesetzter value überschreibt den gleichnamigen Eintrag aus
    params.parameters.
    """
    parameters: Dict[str, Any] = dict(params.parameters or {})
    key = VALUE_PARAMETERS.get(params.type)
    if key is not None and params.value is not None:
        try:
            value = float(params.value)
        except (TypeError, ValueError):
            # Unverändert durchreichen, die Validierung meldet INVALID_PARAMETER
            parameters[key] = params.value
        else:
            if params.type == ConstraintType.ANGLE:
                value = math.radians(value)
            parameters[key] = value

    if params.point is not None:
        if params.type == ConstraintType.FIX:
            parameters["position"] = params.point
        elif params.type == ConstraintType.TANGENT:
            parameters["touch_point"] = params.point

    # FIX ohne expliziten Punkt: aktuelle Lage einfrieren
    if params.type == ConstraintType.FIX and "position" not in parameters and entity_lookup and params.entity_ids:
        entity = entity_lookup(params.entity_ids[0])
        if entity is not None:
            parameters["position"] = entity_center(entity)

    return parameters


# =============================================================================
# Fehlerberechnung (0 = erfüllt)
# =============================================================================

def _orientation_delta(l1: LineEntity, l2: LineEntity) -> float:
    """Richtungsunterschied zweier Linien modulo pi, in [0, pi/2]"""
    d = abs(l1.angle - l2.angle) % math.pi
    return min(d, math.pi - d)


def undirected_angle(l1: LineEntity, l2: LineEntity) -> float:
    """Winkel zwischen den Richtungen zweier Linien in [0, pi]"""
    d = abs(l2.angle - l1.angle) % (2 * math.pi)
    return min(d, 2 * math.pi - d)


def _tangent_error(e1: Entity, e2: Entity) -> float:
    if is_circular(e1) and is_circular(e2):
        d = e1.center.distance_to(e2.center)
        external = abs(d - (e1.radius + e2.radius))
        # Gleiche Radien: innere Berührung wäre Deckungsgleichheit, nur außen zählt
        if abs(e1.radius - e2.radius) < Tolerances.EPSILON_MATH:
            return external
        internal = abs(d - abs(e1.radius - e2.radius))
        return min(external, internal)
    circle, line = (e1, e2) if is_circular(e1) else (e2, e1)
    return abs(point_to_line_distance(circle.center, line) - circle.radius)


def calculate_constraint_error(constraint: Constraint, entities: Sequence[Entity]) -> float:
    """
    Berechnet den Fehler eines Constraints (0 = erfüllt).

    entities sind die aufgelösten Entities in der Reihenfolge von
    constraint.entity_ids. Wird vom Solver für Vorab-Check und Verifikation
    gleichermaßen genutzt.
    """
    ct = constraint.type
    p = constraint.parameters

    if ct == ConstraintType.PARALLEL:
        return _orientation_delta(entities[0], entities[1])

    elif ct == ConstraintType.PERPENDICULAR:
        return abs(_orientation_delta(entities[0], entities[1]) - math.pi / 2)

    elif ct == ConstraintType.HORIZONTAL:
        line = entities[0]
        return abs(line.end.y - line.start.y)

    elif ct == ConstraintType.VERTICAL:
        line = entities[0]
        return abs(line.end.x - line.start.x)

    elif ct == ConstraintType.TANGENT:
        return _tangent_error(entities[0], entities[1])

    elif ct == ConstraintType.CONCENTRIC:
        return entities[0].center.distance_to(entities[1].center)

    elif ct == ConstraintType.COINCIDENT:
        anchor = entity_center(entities[0])
        return max(entity_center(e).distance_to(anchor) for e in entities[1:])

    elif ct == ConstraintType.DISTANCE:
        current = entity_center(entities[0]).distance_to(entity_center(entities[1]))
        return abs(current - p["distance"])

    elif ct == ConstraintType.ANGLE:
        return abs(undirected_angle(entities[0], entities[1]) - p["angle"])

    elif ct == ConstraintType.RADIUS:
        return abs(entities[0].radius - p["radius"])

    elif ct == ConstraintType.DIAMETER:
        return abs(2 * entities[0].radius - p["diameter"])

    elif ct == ConstraintType.LENGTH:
        return abs(entities[0].length - p["length"])

    elif ct == ConstraintType.EQUAL_LENGTH:
        return abs(entities[0].length - entities[1].length)

    elif ct == ConstraintType.EQUAL_RADIUS:
        return abs(entities[0].radius - entities[1].radius)

    elif ct == ConstraintType.COLLINEAR:
        l1, l2 = entities[0], entities[1]
        return (_orientation_delta(l1, l2)
                + point_to_line_distance(l2.start, l1)
                + point_to_line_distance(l2.end, l1))

    elif ct == ConstraintType.MIDPOINT:
        return entity_center(entities[0]).distance_to(entities[1].midpoint)

    elif ct == ConstraintType.SYMMETRIC:
        mirrored = reflect_point(entity_center(entities[0]), entities[2])
        return entity_center(entities[1]).distance_to(mirrored)

    elif ct == ConstraintType.FIX:
        anchor = p.get("position")
        if anchor is None:
            return 0.0
        return entity_center(entities[0]).distance_to(anchor)

    elif ct == ConstraintType.OFFSET_DISTANCE:
        l1, l2 = entities[0], entities[1]
        return (_orientation_delta(l1, l2)
                + abs(point_to_line_distance(l2.midpoint, l1) - p["distance"]))

    # PATTERN: keine Fehlerfunktion, gilt als nie erfüllt
    return math.inf


def is_constraint_satisfied(constraint: Constraint, entities: Sequence[Entity], tolerance: float = 1e-6) -> bool:
    """Prüft ob ein Constraint erfüllt ist"""
    return calculate_constraint_error(constraint, entities) < tolerance
