"""World entities, inventories and positional targets."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .registry import Category, interest_category
from .schemas import Item


class Inventory:
    """Bounded, ordered list of items. No stacking: one slot per item."""

    def __init__(self, capacity: int, items: Optional[Iterable[Item]] = None) -> None:
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self.capacity = capacity
        self._items: List[Item] = []
        for item in items or []:
            if not self.add(item):
                raise ValueError(f"Inventory over capacity ({capacity})")

    @property
    def items(self) -> Tuple[Item, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(tuple(self._items))

    def __contains__(self, item: object) -> bool:
        return any(existing is item for existing in self._items)

    @property
    def is_full(self) -> bool:
        return len(self._items) >= self.capacity

    @property
    def is_empty(self) -> bool:
        return not self._items

    def add(self, item: Item) -> bool:
        """Append ``item``; return False (and change nothing) when full."""

        if self.is_full:
            return False
        self._items.append(item)
        return True

    def has(self, item_type: str) -> bool:
        return any(item.type == item_type for item in self._items)

    def count(self, item_type: str) -> int:
        return sum(1 for item in self._items if item.type == item_type)

    def find(self, item_types: Iterable[str]) -> Optional[Item]:
        """First held item whose type is in ``item_types``."""

        wanted = set(item_types)
        for item in self._items:
            if item.type in wanted:
                return item
        return None

    def take(self, item_type: str) -> Optional[Item]:
        """Remove and return the first item of ``item_type``."""

        for index, item in enumerate(self._items):
            if item.type == item_type:
                return self._items.pop(index)
        return None

    def types(self) -> List[str]:
        return [item.type for item in self._items]


@dataclass(eq=False)
class WorldEntity:
    """Anything placed in the world: sources, ground items, structures, creatures."""

    entity_id: str
    type: str
    x: float
    y: float
    inventory: Optional[Inventory] = None

    @property
    def category(self) -> Optional[Category]:
        return interest_category(self.type)

    def holds(self, item_type: str) -> bool:
        return self.inventory is not None and self.inventory.has(item_type)

    def __repr__(self) -> str:
        return f"<{self.type} {self.entity_id} at ({self.x:.0f}, {self.y:.0f})>"


@dataclass(eq=False)
class Bonfire(WorldEntity):
    """Warmth source that burns fuel over time."""

    fuel: float = 100.0
    max_fuel: float = 100.0

    @property
    def is_burning(self) -> bool:
        return self.fuel > 0

    def add_fuel(self, amount: float) -> float:
        """Add fuel, clamped at ``max_fuel``. Returns the new level."""

        self.fuel = min(self.max_fuel, self.fuel + amount)
        return self.fuel

    def burn(self, dt_ms: float, rate_per_s: float) -> None:
        self.fuel = max(0.0, self.fuel - rate_per_s * dt_ms / 1000.0)


@dataclass
class PositionTarget:
    """Synthesized target: a bare position, optionally tagged with a type.

    ``from_memory`` marks targets built from a remembered location; the
    entity they stand for has to be looked up again on arrival.
    """

    x: float
    y: float
    type: Optional[str] = None
    from_memory: bool = False
    entity_id: Optional[str] = None

    @property
    def category(self) -> Optional[Category]:
        return interest_category(self.type) if self.type else None


def distance(a, b) -> float:
    """Euclidean distance between anything with ``x`` and ``y``."""

    return math.hypot(a.x - b.x, a.y - b.y)


__all__ = ["Inventory", "WorldEntity", "Bonfire", "PositionTarget", "distance"]
