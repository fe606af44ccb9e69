"""Turn numeric world state into the words the decision prompt uses.

Prompts carry no raw numbers: vitals become need words, distances become
"at hand"/"nearby"/"far", bonfire fuel becomes a flame word and remembered
places become compass directions with a walking time.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..config import TranslatorSettings
from ..entities import distance
from ..registry import Category, EntityKind, fuel_types, get_entity_spec, interest_category
from ..schemas import RememberedLocation, Vitals

NEED_WORDS = {
    "food": ("a little hungry", "hungry", "very hungry", "starving"),
    "energy": ("a little tired", "tired", "very tired", "exhausted"),
    "warmth": ("a little cold", "cold", "very cold", "freezing"),
    "health": ("a little hurt", "hurt", "badly hurt", "critical"),
}

# Counter-clockwise from east; screen y grows southwards
_DIRECTIONS = ("E", "SE", "S", "SW", "W", "NW", "N", "NE")

THREAT_PRIORITY = 100
WARMTH_PRIORITY = 10
DOMINANT_NEED_BOOST = 50
REST_SPOT_BOOST = 30
FUEL_BOOST = 20


@dataclass
class DescribedEntity:
    description: str
    distance: float
    priority: int = 0


def need_word(value: float, need: str, settings: Optional[TranslatorSettings] = None) -> Optional[str]:
    """Word for a need level, or ``None`` when the need is satisfied."""

    tiers = (settings or TranslatorSettings()).need_tiers
    words = NEED_WORDS[need]
    if value > tiers[0]:
        return None
    for word, threshold in zip(words, tiers[1:]):
        if value > threshold:
            return word
    return words[-1]


def describe_needs(vitals: Vitals, settings: Optional[TranslatorSettings] = None) -> List[str]:
    words = []
    for need, value in vitals.as_dict().items():
        word = need_word(value, need, settings)
        if word:
            words.append(word)
    return words


def dominant_need(vitals: Vitals) -> str:
    """The lowest vital; ties keep the earlier need."""

    values = vitals.as_dict()
    return min(values, key=values.__getitem__)


def distance_word(dist: float, settings: Optional[TranslatorSettings] = None) -> str:
    settings = settings or TranslatorSettings()
    if dist <= settings.at_hand_distance:
        return "at hand"
    if dist <= settings.nearby_distance:
        return "nearby"
    return "far"


def fuel_word(fuel: float, settings: Optional[TranslatorSettings] = None) -> str:
    settings = settings or TranslatorSettings()
    if fuel >= settings.fuel_blaze:
        return "blaze"
    if fuel >= settings.fuel_strong:
        return "strong"
    if fuel >= settings.fuel_low:
        return "low"
    return "fading"


def _plural(word: str, count: int) -> str:
    if count == 1:
        return word
    if word.endswith("y") and word[-2:-1] not in "aeiou":
        return word[:-1] + "ies"
    return word + "s"


def _held_items(entity) -> str:
    counts = Counter(entity.inventory.types())
    return ", ".join(f"{n} {_plural(item, n)}" for item, n in counts.items())


def describe_entity(entity, observer, settings: Optional[TranslatorSettings] = None) -> DescribedEntity:
    """Prompt line and base priority for one perceived entity."""

    dist = distance(entity, observer)
    where = distance_word(dist, settings)
    category = interest_category(entity.type)

    if category == Category.THREAT:
        return DescribedEntity(f"{entity.type.upper()} ({where}) ⚠️", dist, THREAT_PRIORITY)
    if hasattr(entity, "fuel"):
        text = f"{entity.type} ({where}, fuel: {fuel_word(entity.fuel, settings)})"
        return DescribedEntity(text, dist, WARMTH_PRIORITY)

    spec = get_entity_spec(entity.type)
    if spec is not None and spec.kind == EntityKind.SOURCE and getattr(entity, "inventory", None) is not None:
        held = _held_items(entity)
        text = f"{entity.type} ({where}, has: {held})" if held else f"{entity.type} ({where}, empty)"
        return DescribedEntity(text, dist)
    return DescribedEntity(f"{entity.type} ({where})", dist)


def _priority_boost(entity, need: str) -> int:
    category = interest_category(entity.type)
    boost = 0
    if need == "food" and category == Category.FOOD:
        boost += DOMINANT_NEED_BOOST
    if need == "warmth" and category == Category.WARMTH:
        boost += DOMINANT_NEED_BOOST
    if need == "energy" and category == Category.WARMTH:
        boost += REST_SPOT_BOOST

    fuels = fuel_types()
    inventory = getattr(entity, "inventory", None)
    if entity.type in fuels or (inventory is not None and inventory.find(fuels) is not None):
        boost += FUEL_BOOST
    return boost


def nearby_entities(
    entities: Iterable,
    observer,
    vitals: Vitals,
    settings: Optional[TranslatorSettings] = None,
) -> List[str]:
    """Up to ``nearby_cap`` descriptions ranked by relevance, then distance."""

    settings = settings or TranslatorSettings()
    need = dominant_need(vitals)
    described = []
    for entity in entities:
        item = describe_entity(entity, observer, settings)
        item.priority += _priority_boost(entity, need)
        described.append(item)
    described.sort(key=lambda d: (-d.priority, d.distance))
    return [d.description for d in described[: settings.nearby_cap]]


def relative_direction(from_x: float, from_y: float, to_x: float, to_y: float) -> str:
    """Eight-way compass direction with north at the top of the screen."""

    angle = math.degrees(math.atan2(to_y - from_y, to_x - from_x)) % 360
    return _DIRECTIONS[int(((angle + 22.5) % 360) // 45)]


def walk_time(dist: float, settings: Optional[TranslatorSettings] = None) -> str:
    minutes = round(dist / (settings or TranslatorSettings()).walk_px_per_minute)
    return "nearby" if minutes < 1 else f"{minutes}min walk"


def memory_hints(
    memories: Iterable[RememberedLocation],
    observer,
    vitals: Vitals,
    settings: Optional[TranslatorSettings] = None,
) -> List[str]:
    """Useful remembered places the agent cannot currently see.

    Food places matter when hungry, warmth when cold or tired, fuel always.
    A warmth source is also kept as a landmark when nothing else qualifies
    before it.
    """

    settings = settings or TranslatorSettings()
    wants_food = vitals.food < settings.useful_memory_below
    wants_rest = vitals.warmth < settings.useful_memory_below or vitals.energy < settings.useful_memory_below

    hints: List[str] = []
    for memory in memories:
        category = interest_category(memory.entity_type)
        if category == Category.WARMTH:
            useful = wants_rest or not hints
        elif category == Category.FOOD:
            useful = wants_food
        else:
            useful = category == Category.FUEL
        if not useful:
            continue

        direction = relative_direction(observer.x, observer.y, memory.x, memory.y)
        dist = math.hypot(memory.x - observer.x, memory.y - observer.y)
        hints.append(f"{memory.entity_type} {direction} ({walk_time(dist, settings)})")
    return hints


__all__ = [
    "NEED_WORDS",
    "DescribedEntity",
    "need_word",
    "describe_needs",
    "dominant_need",
    "distance_word",
    "fuel_word",
    "describe_entity",
    "nearby_entities",
    "relative_direction",
    "walk_time",
    "memory_hints",
]
