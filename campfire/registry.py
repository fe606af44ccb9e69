"""Table-driven entity type definitions.

Every question about "what is this thing" goes through here: its category,
what it produces or is produced by, how much food or fuel it is worth and
which structures accept it. Searching for an item type resolves to the
entity type that holds it (an apple is found on a tree), so new entity types
only need a registry entry, not new code paths.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class Category(str, Enum):
    """Coarse classification used for interrupt-priority comparisons."""

    FOOD = "food"
    FUEL = "fuel"
    WARMTH = "warmth"
    THREAT = "threat"
    SOURCE = "source"
    AGENT = "agent"


class EntityKind(str, Enum):
    """How an entity exists in the world."""

    SOURCE = "source"        # Holds items it produces (trees, grass)
    ITEM = "item"            # Carried in inventories, lies on the ground when dropped
    STRUCTURE = "structure"  # Fixed installation (bonfire)
    CREATURE = "creature"    # Moves on its own (wolves, characters)


class EntitySpec(BaseModel):
    """Registry entry for one entity type."""

    type: str
    category: Category
    kind: EntityKind
    produces: List[str] = Field(default_factory=list)
    produced_by: Optional[str] = None
    food_value: float = 0.0
    fuel_value: float = 0.0
    usable_with: List[str] = Field(default_factory=list)
    accepts_fuel: List[str] = Field(default_factory=list)
    description: str = ""


class SearchTarget(BaseModel):
    """What to watch for when searching for an item type.

    ``direct`` is True when the searched type is itself the entity to find
    (sticks, bonfires); otherwise the search matches ``target_type`` entities
    whose inventory currently holds ``item_type``.
    """

    item_type: str
    target_type: str
    direct: bool


def _default_specs() -> Dict[str, EntitySpec]:
    specs = [
        EntitySpec(
            type="tree",
            category=Category.SOURCE,
            kind=EntityKind.SOURCE,
            produces=["apple"],
            description="apple tree",
        ),
        EntitySpec(
            type="grass",
            category=Category.SOURCE,
            kind=EntityKind.SOURCE,
            produces=["berry"],
            description="berry bush",
        ),
        EntitySpec(
            type="apple",
            category=Category.FOOD,
            kind=EntityKind.ITEM,
            produced_by="tree",
            food_value=30.0,
        ),
        EntitySpec(
            type="berry",
            category=Category.FOOD,
            kind=EntityKind.ITEM,
            produced_by="grass",
            food_value=20.0,
        ),
        EntitySpec(
            type="stick",
            category=Category.FUEL,
            kind=EntityKind.ITEM,
            fuel_value=10.0,
            usable_with=["bonfire"],
        ),
        EntitySpec(
            type="bonfire",
            category=Category.WARMTH,
            kind=EntityKind.STRUCTURE,
            accepts_fuel=["stick"],
        ),
        EntitySpec(type="wolf", category=Category.THREAT, kind=EntityKind.CREATURE),
        EntitySpec(type="character", category=Category.AGENT, kind=EntityKind.CREATURE),
    ]
    return {spec.type: spec for spec in specs}


_REGISTRY: Dict[str, EntitySpec] = _default_specs()


def register_entity_type(spec: EntitySpec) -> None:
    """Add or replace an entity type."""

    _REGISTRY[spec.type] = spec


def reset_registry() -> None:
    """Restore the built-in entity table."""

    _REGISTRY.clear()
    _REGISTRY.update(_default_specs())


def get_entity_spec(entity_type: str) -> Optional[EntitySpec]:
    return _REGISTRY.get(entity_type)


def get_category(entity_type: str) -> Optional[Category]:
    spec = _REGISTRY.get(entity_type)
    return spec.category if spec else None


def interest_category(entity_type: str) -> Optional[Category]:
    """Category an agent cares about when it sees ``entity_type``.

    A source is interesting for what it produces, so a tree classifies as
    food. Everything else keeps its own category.
    """

    spec = _REGISTRY.get(entity_type)
    if spec is None:
        return None
    if spec.category == Category.SOURCE and spec.produces:
        produced = _REGISTRY.get(spec.produces[0])
        if produced is not None:
            return produced.category
    return spec.category


def resolve_search_target(item_type: str) -> Optional[SearchTarget]:
    """Map a searched item type to the entity type that holds it."""

    spec = _REGISTRY.get(item_type)
    if spec is None or spec.kind == EntityKind.CREATURE:
        return None
    if spec.produced_by:
        return SearchTarget(item_type=item_type, target_type=spec.produced_by, direct=False)
    return SearchTarget(item_type=item_type, target_type=item_type, direct=True)


def searchable_types() -> List[str]:
    return [t for t in _REGISTRY if resolve_search_target(t) is not None]


def collectible_types() -> List[str]:
    return [t for t, spec in _REGISTRY.items() if spec.kind == EntityKind.ITEM]


def consumable_types() -> List[str]:
    return [t for t, spec in _REGISTRY.items() if spec.food_value > 0]


def fuel_types() -> List[str]:
    return [t for t, spec in _REGISTRY.items() if spec.fuel_value > 0]


def warmth_source_types() -> List[str]:
    return [t for t, spec in _REGISTRY.items() if spec.category == Category.WARMTH]


def is_collectible(entity_type: str) -> bool:
    spec = _REGISTRY.get(entity_type)
    return spec is not None and spec.kind == EntityKind.ITEM


def food_value(item_type: str) -> float:
    spec = _REGISTRY.get(item_type)
    return spec.food_value if spec else 0.0


def fuel_value(item_type: str) -> float:
    spec = _REGISTRY.get(item_type)
    return spec.fuel_value if spec else 0.0


def accepts_fuel(structure_type: str, item_type: str) -> bool:
    spec = _REGISTRY.get(structure_type)
    return spec is not None and item_type in spec.accepts_fuel


def produced_items(entity_type: str) -> List[str]:
    """Items a source yields, or the item itself for loose ground items."""

    spec = _REGISTRY.get(entity_type)
    if spec is None:
        return []
    if spec.produces:
        return list(spec.produces)
    if spec.kind == EntityKind.ITEM:
        return [spec.type]
    return []


__all__ = [
    "Category",
    "EntityKind",
    "EntitySpec",
    "SearchTarget",
    "register_entity_type",
    "reset_registry",
    "get_entity_spec",
    "get_category",
    "interest_category",
    "resolve_search_target",
    "searchable_types",
    "collectible_types",
    "consumable_types",
    "fuel_types",
    "warmth_source_types",
    "is_collectible",
    "food_value",
    "fuel_value",
    "accepts_fuel",
    "produced_items",
]
