"""
TechDraw Constraints - Geometrie-Primitives
Punkte, Linien, Kreise, Bögen, Rechtecke und Polylinien als unveränderliche Werte.

Entities werden nie in-place verändert. Der Solver liefert Partial-Updates
(Feldname -> neuer Wert), die über apply_entity_update() zu einer neuen
Entity zusammengeführt werden.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, ClassVar, Dict, Iterable, Mapping, Optional, Tuple, Union
from enum import Enum, auto
import math
import uuid

import numpy as np

from config.tolerances import Tolerances


def _short_id() -> str:
    return str(uuid.uuid4())[:8]


def _coerce_scalar(value) -> float:
    """NumPy-Skalare und andere Zahlentypen in native Floats wandeln."""
    item_attr = getattr(value, "item", None)
    if callable(item_attr):
        value = item_attr()
    return float(value)


class EntityType(Enum):
    """Geometrie-Typen einer Zeichnung"""
    POINT = auto()
    LINE = auto()
    CIRCLE = auto()
    ARC = auto()
    RECTANGLE = auto()
    POLYLINE = auto()


@dataclass(frozen=True)
class Point2D:
    """2D-Punkt - Grundbaustein aller Geometrie (Gehärtet)"""
    x: float = 0.0
    y: float = 0.0

    def __post_init__(self):
        """
        FIREWALL: Wandelt alles sofort in native Python-Floats um.
        Schützt das Modell vor NumPy-Rückgabewerten des Solvers.
        """
        object.__setattr__(self, "x", _coerce_scalar(self.x))
        object.__setattr__(self, "y", _coerce_scalar(self.y))

    @classmethod
    def from_array(cls, arr) -> 'Point2D':
        return cls(arr[0], arr[1])

    def distance_to(self, other: 'Point2D') -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def midpoint(self, other: 'Point2D') -> 'Point2D':
        return Point2D((self.x + other.x) / 2, (self.y + other.y) / 2)

    def translated(self, dx: float, dy: float) -> 'Point2D':
        return Point2D(self.x + dx, self.y + dy)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=float)

    def to_dict(self) -> dict:
        """Serialisiert zu Dictionary für JSON."""
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Point2D':
        return cls(data.get("x", 0.0), data.get("y", 0.0))

    def __repr__(self):
        return f"P({self.x:.2f}, {self.y:.2f})"


@dataclass(frozen=True)
class PointEntity:
    """Einzelner Punkt als eigenständige Entity"""
    position: Point2D
    id: str = field(default_factory=_short_id)
    entity_type: ClassVar[EntityType] = EntityType.POINT

    def __repr__(self):
        return f"PointEntity({self.id}: {self.position})"


@dataclass(frozen=True)
class LineEntity:
    """2D-Linie zwischen zwei Punkten"""
    start: Point2D
    end: Point2D
    id: str = field(default_factory=_short_id)
    entity_type: ClassVar[EntityType] = EntityType.LINE

    @property
    def length(self) -> float:
        """Länge der Linie"""
        return self.start.distance_to(self.end)

    @property
    def midpoint(self) -> Point2D:
        """Mittelpunkt der Linie"""
        return self.start.midpoint(self.end)

    @property
    def angle(self) -> float:
        """Winkel zur X-Achse in Radians"""
        return math.atan2(self.end.y - self.start.y, self.end.x - self.start.x)

    @property
    def direction(self) -> Tuple[float, float]:
        """Normierter Richtungsvektor, (1, 0) bei entarteter Linie"""
        length = self.length
        if length < Tolerances.EPSILON_MATH:
            return (1.0, 0.0)
        return ((self.end.x - self.start.x) / length, (self.end.y - self.start.y) / length)

    def __repr__(self):
        return f"LineEntity({self.id}: {self.start} -> {self.end})"


@dataclass(frozen=True)
class CircleEntity:
    """2D-Kreis"""
    center: Point2D
    radius: float
    id: str = field(default_factory=_short_id)
    entity_type: ClassVar[EntityType] = EntityType.CIRCLE

    def __post_init__(self):
        object.__setattr__(self, "radius", _coerce_scalar(self.radius))

    @property
    def diameter(self) -> float:
        return 2 * self.radius

    def __repr__(self):
        return f"CircleEntity({self.id}: {self.center}, r={self.radius:.2f})"


@dataclass(frozen=True)
class ArcEntity:
    """2D-Bogen, Winkel in Radians gegen den Uhrzeigersinn"""
    center: Point2D
    radius: float
    start_angle: float
    end_angle: float
    id: str = field(default_factory=_short_id)
    entity_type: ClassVar[EntityType] = EntityType.ARC

    def __post_init__(self):
        object.__setattr__(self, "radius", _coerce_scalar(self.radius))
        object.__setattr__(self, "start_angle", _coerce_scalar(self.start_angle))
        object.__setattr__(self, "end_angle", _coerce_scalar(self.end_angle))

    @property
    def start_point(self) -> Point2D:
        return Point2D(self.center.x + self.radius * math.cos(self.start_angle),
                       self.center.y + self.radius * math.sin(self.start_angle))

    @property
    def end_point(self) -> Point2D:
        return Point2D(self.center.x + self.radius * math.cos(self.end_angle),
                       self.center.y + self.radius * math.sin(self.end_angle))

    @property
    def sweep_angle(self) -> float:
        sweep = self.end_angle - self.start_angle
        while sweep < 0:
            sweep += 2 * math.pi
        return sweep

    def __repr__(self):
        return (f"ArcEntity({self.id}: {self.center}, r={self.radius:.2f}, "
                f"{math.degrees(self.start_angle):.1f}°-{math.degrees(self.end_angle):.1f}°)")


@dataclass(frozen=True)
class RectangleEntity:
    """Achsparalleles Rechteck, position ist die linke untere Ecke"""
    position: Point2D
    width: float
    height: float
    id: str = field(default_factory=_short_id)
    entity_type: ClassVar[EntityType] = EntityType.RECTANGLE

    def __post_init__(self):
        object.__setattr__(self, "width", _coerce_scalar(self.width))
        object.__setattr__(self, "height", _coerce_scalar(self.height))

    @property
    def center(self) -> Point2D:
        return Point2D(self.position.x + self.width / 2, self.position.y + self.height / 2)

    def __repr__(self):
        return f"RectangleEntity({self.id}: {self.position}, {self.width:.2f}x{self.height:.2f})"


@dataclass(frozen=True)
class PolylineEntity:
    """Offener oder geschlossener Linienzug"""
    points: Tuple[Point2D, ...]
    closed: bool = False
    id: str = field(default_factory=_short_id)
    entity_type: ClassVar[EntityType] = EntityType.POLYLINE

    def __post_init__(self):
        object.__setattr__(self, "points", tuple(self.points))

    @property
    def centroid(self) -> Point2D:
        if not self.points:
            return Point2D(0.0, 0.0)
        arr = np.array([p.as_tuple() for p in self.points], dtype=float)
        return Point2D.from_array(arr.mean(axis=0))

    def __repr__(self):
        return f"PolylineEntity({self.id}: {len(self.points)} Punkte)"


Entity = Union[PointEntity, LineEntity, CircleEntity, ArcEntity, RectangleEntity, PolylineEntity]

# Partial-Update einer Entity: Feldname -> neuer Wert
EntityUpdate = Dict[str, Any]

_ENTITY_CLASSES = {
    EntityType.POINT: PointEntity,
    EntityType.LINE: LineEntity,
    EntityType.CIRCLE: CircleEntity,
    EntityType.ARC: ArcEntity,
    EntityType.RECTANGLE: RectangleEntity,
    EntityType.POLYLINE: PolylineEntity,
}


def is_circular(entity: Optional[Entity]) -> bool:
    """Kreis oder Bogen (beide haben center + radius)"""
    return isinstance(entity, (CircleEntity, ArcEntity))


# =============================================================================
# Geometrische Hilfsfunktionen
# =============================================================================

def distance(p1: Point2D, p2: Point2D) -> float:
    return p1.distance_to(p2)


def line_angle(line: LineEntity) -> float:
    """Winkel der Linie zur X-Achse in Radians (-pi, pi]"""
    return line.angle


def normalize_angle(angle: float) -> float:
    """Normalisiert einen Winkel auf [0, 2*pi)"""
    return angle % (2 * math.pi)


def project_point_on_line(point: Point2D, line: LineEntity) -> Point2D:
    """Orthogonale Projektion auf die unendliche Gerade durch die Linie"""
    a = line.start.as_array()
    d = line.end.as_array() - a
    length_sq = float(np.dot(d, d))
    if length_sq < Tolerances.EPSILON_MATH:
        return line.start
    t = float(np.dot(point.as_array() - a, d)) / length_sq
    return Point2D.from_array(a + t * d)


def point_to_line_distance(point: Point2D, line: LineEntity, segment: bool = False) -> float:
    """
    Abstand Punkt -> Linie.

    Standard ist die unendliche Gerade (für TANGENT und COLLINEAR).
    Mit segment=True wird auf die Strecke geklemmt.
    """
    dx = line.end.x - line.start.x
    dy = line.end.y - line.start.y
    length_sq = dx * dx + dy * dy
    if length_sq < Tolerances.EPSILON_MATH:
        return line.start.distance_to(point)

    if segment:
        t = max(0.0, min(1.0, ((point.x - line.start.x) * dx + (point.y - line.start.y) * dy) / length_sq))
        proj = Point2D(line.start.x + t * dx, line.start.y + t * dy)
        return proj.distance_to(point)

    cross = dx * (point.y - line.start.y) - dy * (point.x - line.start.x)
    return abs(cross) / math.sqrt(length_sq)


def signed_side(point: Point2D, line: LineEntity) -> float:
    """Vorzeichen der Seite, auf der der Punkt relativ zur Linie liegt (+1 links, -1 rechts, 0 auf der Linie)"""
    dx = line.end.x - line.start.x
    dy = line.end.y - line.start.y
    cross = dx * (point.y - line.start.y) - dy * (point.x - line.start.x)
    if abs(cross) < Tolerances.EPSILON_MATH:
        return 0.0
    return math.copysign(1.0, cross)


def reflect_point(point: Point2D, axis: LineEntity) -> Point2D:
    """Spiegelt einen Punkt an der unendlichen Geraden durch axis"""
    foot = project_point_on_line(point, axis)
    return Point2D(2 * foot.x - point.x, 2 * foot.y - point.y)


def entity_center(entity: Entity) -> Point2D:
    """
    Referenzpunkt einer Entity.

    Point -> Position, Line -> Mittelpunkt, Circle/Arc -> Mittelpunkt,
    Rectangle -> geometrische Mitte, Polyline -> Schwerpunkt der Stützpunkte.
    """
    if isinstance(entity, PointEntity):
        return entity.position
    if isinstance(entity, LineEntity):
        return entity.midpoint
    if isinstance(entity, (CircleEntity, ArcEntity)):
        return entity.center
    if isinstance(entity, RectangleEntity):
        return entity.center
    if isinstance(entity, PolylineEntity):
        return entity.centroid
    raise TypeError(f"Unbekannter Entity-Typ: {type(entity).__name__}")


def translate_entity_update(entity: Entity, dx: float, dy: float) -> EntityUpdate:
    """Partial-Update, das die Entity starr um (dx, dy) verschiebt"""
    if isinstance(entity, (PointEntity, RectangleEntity)):
        return {"position": entity.position.translated(dx, dy)}
    if isinstance(entity, LineEntity):
        return {"start": entity.start.translated(dx, dy), "end": entity.end.translated(dx, dy)}
    if isinstance(entity, (CircleEntity, ArcEntity)):
        return {"center": entity.center.translated(dx, dy)}
    if isinstance(entity, PolylineEntity):
        return {"points": tuple(p.translated(dx, dy) for p in entity.points)}
    raise TypeError(f"Unbekannter Entity-Typ: {type(entity).__name__}")


def move_center_update(entity: Entity, target: Point2D) -> EntityUpdate:
    """Partial-Update, das den Referenzpunkt der Entity auf target legt"""
    center = entity_center(entity)
    return translate_entity_update(entity, target.x - center.x, target.y - center.y)


def apply_entity_update(entity: Entity, update: Optional[EntityUpdate]) -> Entity:
    """Neue Entity mit den Feldern aus update (unbekannte Felder -> TypeError)"""
    if not update:
        return entity
    return replace(entity, **update)


def merge_entity_updates(target: Dict[str, EntityUpdate], updates: Mapping[str, EntityUpdate]) -> Dict[str, EntityUpdate]:
    """Führt Partial-Updates pro Entity zusammen (spätere Felder gewinnen)"""
    for entity_id, update in updates.items():
        target.setdefault(entity_id, {}).update(update)
    return target


def apply_updates_to_snapshot(snapshot: Mapping[str, Entity],
                              updates: Mapping[str, EntityUpdate]) -> Dict[str, Entity]:
    """Neuer Snapshot mit angewendeten Updates; Updates für unbekannte IDs werden ignoriert"""
    result = dict(snapshot)
    for entity_id, update in updates.items():
        if entity_id in result:
            result[entity_id] = apply_entity_update(result[entity_id], update)
    return result


# =============================================================================
# Serialisierung
# =============================================================================

def _value_to_dict(value):
    if isinstance(value, Point2D):
        return value.to_dict()
    if isinstance(value, tuple):
        return [_value_to_dict(v) for v in value]
    return value


def entity_to_dict(entity: Entity) -> dict:
    """Serialisiert eine Entity zu Dictionary für JSON."""
    data = {"type": entity.entity_type.name}
    for f in fields(entity):
        name = f.name
        data[name] = _value_to_dict(getattr(entity, name))
    return data


def entity_from_dict(data: Mapping[str, Any]) -> Entity:
    """Deserialisiert eine Entity aus to_dict()-Format."""
    entity_type = EntityType[data["type"]]
    cls = _ENTITY_CLASSES[entity_type]
    kwargs = {}
    for f in fields(cls):
        name = f.name
        if name not in data:
            continue
        value = data[name]
        if name in ("position", "start", "end", "center"):
            value = Point2D.from_dict(value)
        elif name == "points":
            value = tuple(Point2D.from_dict(p) for p in value)
        kwargs[name] = value
    return cls(**kwargs)


def snapshot_from_entities(entities: Iterable[Entity]) -> Dict[str, Entity]:
    """Baut einen ID -> Entity Snapshot"""
    return {e.id: e for e in entities}
