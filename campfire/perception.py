"""Visibility, spatial memory and "newly perceived" notifications.

Each agent keeps a perception set (what it sees right now, in the order it
first saw it) and a memory map from entity type to the last place one was
seen. Perception changes are broadcast through a per-agent observer
registry; subscribers hold a token and release it explicitly.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .entities import distance
from .schemas import RememberedLocation


EntityHandler = Callable[[object], None]


@dataclass(frozen=True)
class Subscription:
    """Token returned by ``PerceptionEvents.subscribe``."""

    key: int


class PerceptionEvents:
    """Typed observer registry for "entity newly perceived" events."""

    def __init__(self) -> None:
        self._handlers: Dict[int, EntityHandler] = {}
        self._keys = itertools.count(1)

    def subscribe(self, handler: EntityHandler) -> Subscription:
        token = Subscription(next(self._keys))
        self._handlers[token.key] = handler
        return token

    def unsubscribe(self, token: Optional[Subscription]) -> None:
        """Release ``token``. Unknown or already released tokens are ignored."""

        if token is not None:
            self._handlers.pop(token.key, None)

    def is_active(self, token: Subscription) -> bool:
        return token.key in self._handlers

    def emit(self, entity) -> None:
        # Iterate over a snapshot: handlers may unsubscribe (or subscribe) while running
        for key, handler in list(self._handlers.items()):
            if key in self._handlers:
                handler(entity)

    def __len__(self) -> int:
        return len(self._handlers)


def update_perception(agent, world, now: float, radius: float) -> List[object]:
    """Recompute what ``agent`` sees and remember where things are.

    Still-visible entities keep their perception order; newcomers are
    appended. The closest perceived entity of each type is written to the
    memory map. Returns the newly perceived entities after notifying
    subscribers about each of them.
    """

    previous = agent.perceived
    visible = {
        entity.entity_id: entity
        for entity in world.perceivable()
        if entity is not agent and distance(agent, entity) <= radius
    }

    perceived: Dict[str, object] = {
        entity_id: entity for entity_id, entity in previous.items() if entity_id in visible
    }
    newly_seen = []
    for entity_id, entity in visible.items():
        if entity_id not in perceived:
            perceived[entity_id] = entity
            newly_seen.append(entity)
    agent.perceived = perceived

    closest: Dict[str, object] = {}
    for entity in perceived.values():
        best = closest.get(entity.type)
        if best is None or distance(agent, entity) < distance(agent, best):
            closest[entity.type] = entity
    for entity_type, entity in closest.items():
        agent.memory[entity_type] = RememberedLocation(
            entity_type=entity_type,
            entity_id=entity.entity_id,
            x=entity.x,
            y=entity.y,
            seen_at=now,
        )

    for entity in newly_seen:
        agent.events.emit(entity)
    return newly_seen


def recall(agent, entity_type: str, now: float, horizon: float) -> Optional[RememberedLocation]:
    """Remembered location of ``entity_type`` if seen within ``horizon`` ms."""

    location = agent.memory.get(entity_type)
    if location is None or now - location.seen_at > horizon:
        return None
    return location


def forget(agent, entity_type: str) -> None:
    agent.memory.pop(entity_type, None)


def remembered_out_of_sight(agent, now: float, horizon: float) -> List[RememberedLocation]:
    """Fresh memories for types the agent cannot currently see."""

    visible_types = {entity.type for entity in agent.perceived.values()}
    return [
        location
        for entity_type, location in agent.memory.items()
        if entity_type not in visible_types and now - location.seen_at <= horizon
    ]


__all__ = [
    "Subscription",
    "PerceptionEvents",
    "update_perception",
    "recall",
    "forget",
    "remembered_out_of_sight",
]
