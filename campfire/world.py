"""World container: entity placement, lookup and fuel burn."""

from __future__ import annotations

import itertools
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from .config import WorldSettings
from .entities import Bonfire, Inventory, WorldEntity, distance
from .logging_utils import log_deterministic
from .registry import Category, get_category
from .schemas import Item


class World:
    """Holds every entity and agent in the simulated area.

    Entities keep insertion order so lookups that break ties by order are
    deterministic. Agents are kept apart from passive entities but are
    still perceivable by each other.
    """

    def __init__(self, settings: Optional[WorldSettings] = None) -> None:
        self.settings = settings or WorldSettings()
        self.width = self.settings.width
        self.height = self.settings.height
        self.entities: Dict[str, WorldEntity] = {}
        self.agents: Dict[str, object] = {}
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def new_id(self, entity_type: str) -> str:
        while True:
            candidate = f"{entity_type}-{next(self._ids)}"
            if candidate not in self.entities and candidate not in self.agents:
                return candidate

    def add(self, entity: WorldEntity) -> WorldEntity:
        if entity.entity_id in self.entities or entity.entity_id in self.agents:
            raise ValueError(f"Duplicate entity id '{entity.entity_id}'")
        self.entities[entity.entity_id] = entity
        return entity

    def spawn(
        self,
        entity_type: str,
        x: float,
        y: float,
        *,
        items: Iterable[Item] = (),
        capacity: Optional[int] = None,
        entity_id: Optional[str] = None,
    ) -> WorldEntity:
        """Create and place a passive entity holding ``items``."""

        held = list(items)
        inventory = Inventory(capacity if capacity is not None else max(len(held), 1), held)
        entity = WorldEntity(
            entity_id=entity_id or self.new_id(entity_type),
            type=entity_type,
            x=x,
            y=y,
            inventory=inventory,
        )
        return self.add(entity)

    def spawn_bonfire(
        self,
        x: float,
        y: float,
        *,
        fuel: Optional[float] = None,
        entity_id: Optional[str] = None,
    ) -> Bonfire:
        max_fuel = self.settings.bonfire_max_fuel
        bonfire = Bonfire(
            entity_id=entity_id or self.new_id("bonfire"),
            type="bonfire",
            x=x,
            y=y,
            fuel=max_fuel if fuel is None else min(fuel, max_fuel),
            max_fuel=max_fuel,
        )
        self.add(bonfire)
        return bonfire

    def remove(self, entity_id: str) -> Optional[WorldEntity]:
        entity = self.entities.pop(entity_id, None)
        if entity is not None:
            log_deterministic(f"[World] Removed {entity.type} {entity_id}")
        return entity

    def add_agent(self, agent) -> None:
        if agent.entity_id in self.entities or agent.entity_id in self.agents:
            raise ValueError(f"Duplicate entity id '{agent.entity_id}'")
        self.agents[agent.entity_id] = agent

    def remove_agent(self, agent_id: str) -> None:
        self.agents.pop(agent_id, None)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, entity_id: str):
        return self.entities.get(entity_id) or self.agents.get(entity_id)

    def contains(self, entity) -> bool:
        return self.get(getattr(entity, "entity_id", "")) is entity

    def perceivable(self) -> Iterator:
        """Every entity and agent, in insertion order."""

        yield from self.entities.values()
        yield from self.agents.values()

    def of_type(self, entity_type: str) -> List[WorldEntity]:
        return [e for e in self.entities.values() if e.type == entity_type]

    def closest(
        self,
        x: float,
        y: float,
        *,
        predicate: Callable[[WorldEntity], bool],
    ) -> Optional[WorldEntity]:
        """Closest passive entity matching ``predicate``; ties keep insertion order."""

        origin = _Point(x, y)
        candidates = [e for e in self.entities.values() if predicate(e)]
        if not candidates:
            return None
        return min(candidates, key=lambda e: distance(origin, e))

    def warmth_sources(self) -> List[WorldEntity]:
        return [
            e for e in self.entities.values() if get_category(e.type) == Category.WARMTH
        ]

    def has_warmth_source(self) -> bool:
        return bool(self.warmth_sources())

    def nearest_warmth_source(self, x: float, y: float, *, burning_only: bool = False):
        def _matches(entity: WorldEntity) -> bool:
            if get_category(entity.type) != Category.WARMTH:
                return False
            return not burning_only or getattr(entity, "is_burning", True)

        return self.closest(x, y, predicate=_matches)

    # ------------------------------------------------------------------
    # Per-tick
    # ------------------------------------------------------------------

    def update(self, dt_ms: float) -> None:
        """Burn fuel in every bonfire."""

        for entity in self.entities.values():
            if isinstance(entity, Bonfire) and entity.is_burning:
                entity.burn(dt_ms, self.settings.bonfire_burn_rate)
                if not entity.is_burning:
                    log_deterministic(f"[World] {entity.entity_id} burned out")

    def clamp(self, x: float, y: float, padding: float = 0.0) -> tuple[float, float]:
        return (
            min(max(x, padding), self.width - padding),
            min(max(y, padding), self.height - padding),
        )


class _Point:
    __slots__ = ("x", "y")

    def __init__(self, x: float, y: float) -> None:
        self.x = x
        self.y = y


__all__ = ["World"]
