"""
TechDraw Constraints - Constraint-Validierung

Prüft eine Constraint-Anfrage gegen den aktuellen Entity-Snapshot, bevor sie
gespeichert wird. Erwartete Verletzungen werden als ValidationError
zurückgegeben, nicht geworfen.

Reihenfolge der Prüfungen:
    1. alle Entity-IDs auflösbar
    2. Kardinalität (Anzahl unterschiedlicher Entities)
    3. Entity-Typen
    4. numerische Parameter
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union
import math

from .constraints import ConstraintType, REQUIRED_ENTITIES
from .geometry import Entity, LineEntity, is_circular


EntityLookup = Union[Callable[[str], Optional[Entity]], Mapping[str, Entity]]


@dataclass
class ValidationError:
    """Grund der Ablehnung plus Hinweise für den Benutzer"""
    code: str
    reason: str
    suggestions: List[str] = field(default_factory=list)

    def __str__(self):
        return f"{self.code}: {self.reason}"


class ConstraintValidationException(ValueError):
    """Wird von raise_for_validation() geworfen, für Aufrufer die Exceptions bevorzugen"""

    def __init__(self, error: ValidationError):
        super().__init__(str(error))
        self.error = error


def raise_for_validation(error: Optional[ValidationError]) -> None:
    if error is not None:
        raise ConstraintValidationException(error)


# Typen, deren Entities alle Linien bzw. Kreise/Bögen sein müssen
_LINE_TYPES = {
    ConstraintType.PARALLEL,
    ConstraintType.PERPENDICULAR,
    ConstraintType.ANGLE,
    ConstraintType.COLLINEAR,
    ConstraintType.EQUAL_LENGTH,
    ConstraintType.OFFSET_DISTANCE,
    ConstraintType.HORIZONTAL,
    ConstraintType.VERTICAL,
    ConstraintType.LENGTH,
}

_CIRCULAR_TYPES = {
    ConstraintType.RADIUS,
    ConstraintType.DIAMETER,
    ConstraintType.CONCENTRIC,
    ConstraintType.EQUAL_RADIUS,
}

# Numerische Parameter: vorhanden, endlich und > 0
_POSITIVE_PARAMETERS = {
    ConstraintType.DISTANCE: "distance",
    ConstraintType.RADIUS: "radius",
    ConstraintType.DIAMETER: "diameter",
    ConstraintType.LENGTH: "length",
    ConstraintType.OFFSET_DISTANCE: "distance",
}


def _as_lookup(entity_lookup: EntityLookup) -> Callable[[str], Optional[Entity]]:
    if isinstance(entity_lookup, Mapping):
        return entity_lookup.get
    return entity_lookup


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def check_cardinality(constraint_type: ConstraintType, entity_ids: Sequence[str]) -> Optional[ValidationError]:
    minimum, maximum = REQUIRED_ENTITIES[constraint_type]
    count = len(entity_ids)

    if maximum is None and count < minimum:
        return ValidationError(
            "WRONG_CARDINALITY",
            f"Requires at least {minimum} entities",
            [f"Select {minimum} or more entities"],
        )
    if maximum is not None and not (minimum <= count <= maximum):
        noun = "entity" if minimum == 1 else "entities"
        return ValidationError(
            "WRONG_CARDINALITY",
            f"Requires exactly {minimum} {noun}",
            [f"Select {minimum} {noun}"],
        )
    if len(set(entity_ids)) != count:
        return ValidationError(
            "WRONG_CARDINALITY",
            "Entities must be distinct",
            ["Select different entities"],
        )
    return None


def check_entity_types(constraint_type: ConstraintType, entities: List[Entity]) -> Optional[ValidationError]:
    if constraint_type in _LINE_TYPES:
        if not all(isinstance(e, LineEntity) for e in entities):
            reason = "Entity must be a line" if len(entities) == 1 else "Both entities must be lines"
            return ValidationError("WRONG_ENTITY_TYPE", reason, ["Select line entities only"])

    elif constraint_type in _CIRCULAR_TYPES:
        if not all(is_circular(e) for e in entities):
            reason = ("Entity must be a circle or arc" if len(entities) == 1
                      else "Both entities must be circles or arcs")
            return ValidationError("WRONG_ENTITY_TYPE", reason, ["Select circle or arc entities only"])

    elif constraint_type == ConstraintType.TANGENT:
        e1, e2 = entities
        ok = ((is_circular(e1) and is_circular(e2))
              or (is_circular(e1) and isinstance(e2, LineEntity))
              or (isinstance(e1, LineEntity) and is_circular(e2)))
        if not ok:
            return ValidationError(
                "WRONG_ENTITY_TYPE",
                "Tangent requires a circle or arc and a line, or two circles/arcs",
                ["Select a circle and a line", "Select two circles"],
            )

    elif constraint_type == ConstraintType.MIDPOINT:
        if not isinstance(entities[1], LineEntity):
            return ValidationError(
                "WRONG_ENTITY_TYPE",
                "Second entity must be a line",
                ["Select the entity first, then the line"],
            )

    elif constraint_type == ConstraintType.SYMMETRIC:
        if not isinstance(entities[2], LineEntity):
            return ValidationError(
                "WRONG_ENTITY_TYPE",
                "Third entity must be a line (symmetry axis)",
                ["Select two entities, then the axis line"],
            )

    return None


def check_parameters(constraint_type: ConstraintType, parameters: Dict[str, Any]) -> Optional[ValidationError]:
    key = _POSITIVE_PARAMETERS.get(constraint_type)
    if key is not None:
        value = parameters.get(key)
        if value is None:
            return ValidationError("MISSING_PARAMETER", f"Requires a value for '{key}'",
                                   ["Provide a positive numeric value"])
        if not _is_number(value) or value <= 0:
            return ValidationError("INVALID_PARAMETER", "Requires positive value",
                                   ["Provide a positive numeric value"])

    if constraint_type == ConstraintType.ANGLE:
        angle = parameters.get("angle")
        if angle is None:
            return ValidationError("MISSING_PARAMETER", "Requires a value for 'angle'",
                                   ["Provide an angle between 0° and 180°"])
        if not _is_number(angle) or not (0 < angle <= math.pi):
            return ValidationError("INVALID_PARAMETER", "Angle must be in (0°, 180°]",
                                   ["Provide an angle between 0° and 180°"])

    return None


def validate_constraint(constraint_type: ConstraintType,
                        entity_ids: Sequence[str],
                        parameters: Optional[Dict[str, Any]],
                        entity_lookup: EntityLookup) -> Optional[ValidationError]:
    """
    Validiert eine Constraint-Anfrage.

    Args:
        constraint_type: gewünschter Typ
        entity_ids: Entity-IDs in Reihenfolge
        parameters: Parameter-Dict aus build_parameters()
        entity_lookup: Callable id -> Entity (oder None), oder ein Mapping

    Returns:
        None wenn gültig, sonst der erste gefundene ValidationError
    """
    if not isinstance(constraint_type, ConstraintType):
        return ValidationError("UNKNOWN_TYPE", f"Unknown constraint type: {constraint_type!r}",
                               [f"Use one of: {', '.join(t.name for t in ConstraintType)}"])

    lookup = _as_lookup(entity_lookup)

    entities = []
    for entity_id in entity_ids:
        entity = lookup(entity_id)
        if entity is None:
            return ValidationError("ENTITY_NOT_FOUND", f"Entity {entity_id} not found", ["Check entity IDs"])
        entities.append(entity)

    error = check_cardinality(constraint_type, entity_ids)
    if error is not None:
        return error

    error = check_entity_types(constraint_type, entities)
    if error is not None:
        return error

    return check_parameters(constraint_type, parameters or {})
