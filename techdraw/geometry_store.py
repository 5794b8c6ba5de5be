"""
TechDraw Constraints - Geometry Store

Schnittstelle zwischen Constraint-Manager und der Geometrie-Haltung der
Zeichnung. Der Manager kennt nur IGeometryStore; die Zeichnung (oder ein
Test) injiziert die konkrete Implementierung.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, Mapping, Optional

from loguru import logger

from .geometry import Entity, EntityUpdate, apply_entity_update


class IGeometryStore(ABC):
    """Abstrakte Geometrie-Haltung, die Solver-Updates entgegennimmt."""

    @abstractmethod
    def get_entities(self) -> Dict[str, Entity]:
        """Aktueller Snapshot (ID -> Entity)."""
        pass

    @abstractmethod
    def apply_updates(self, updates: Mapping[str, EntityUpdate]) -> None:
        """Partial-Updates eines Solve-Durchlaufs übernehmen."""
        pass


class InMemoryGeometryStore(IGeometryStore):
    """
    Einfache Arena: Entities per ID in einem Dict.

    Updates für unbekannte IDs werden ignoriert (die Entity wurde zwischen
    Snapshot und Solve gelöscht).
    """

    def __init__(self, entities: Optional[Iterable[Entity]] = None):
        self._entities: Dict[str, Entity] = {}
        for entity in entities or ():
            self.add(entity)

    def add(self, entity: Entity) -> str:
        self._entities[entity.id] = entity
        return entity.id

    def remove(self, entity_id: str) -> bool:
        return self._entities.pop(entity_id, None) is not None

    def get(self, entity_id: str) -> Optional[Entity]:
        return self._entities.get(entity_id)

    def __contains__(self, entity_id: str) -> bool:
        return entity_id in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def get_entities(self) -> Dict[str, Entity]:
        return dict(self._entities)

    def apply_updates(self, updates: Mapping[str, EntityUpdate]) -> None:
        for entity_id, update in updates.items():
            entity = self._entities.get(entity_id)
            if entity is None:
                logger.debug(f"[GeometryStore] Update für unbekannte Entity {entity_id} ignoriert")
                continue
            self._entities[entity_id] = apply_entity_update(entity, update)
