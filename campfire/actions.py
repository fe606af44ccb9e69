"""The ``Actionable`` capability set held by every agent.

``AgentActions`` wraps the agent's state machine and adds the effects that
change the world: collecting (navigate, wait out the harvest time, then
transfer one item), dropping, eating and fuelling a warmth source. Every
entry point takes a completion callback that is invoked exactly once,
unless the action is superseded by a newer one.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional, Protocol

from .config import SimulationSettings
from .entities import PositionTarget, distance
from .logging_utils import log_deterministic, log_error, log_success
from .movement import ActionCallback, ActionStateMachine
from .perception import forget
from .registry import accepts_fuel, food_value, fuel_types, fuel_value, is_collectible
from .schemas import ActionResult, CollectionProgress, ErrorKind, Item


class Actionable(Protocol):
    """Operations every agent exposes to the execution pipeline."""

    def collect(self, target, item_type: str, callback: Optional[ActionCallback] = None) -> None: ...

    def drop(self, item_type: str, callback: Optional[ActionCallback] = None) -> None: ...

    def eat(self, food_type: str, callback: Optional[ActionCallback] = None) -> None: ...

    def add_fuel(
        self, target, callback: Optional[ActionCallback] = None, item_type: Optional[str] = None
    ) -> None: ...

    def search_for(self, item_type: str, callback: Optional[ActionCallback] = None) -> None: ...

    def move_to(
        self, target, arrival_distance: Optional[float] = None, callback: Optional[ActionCallback] = None
    ) -> None: ...

    def wander(self, duration: Optional[float] = None, callback: Optional[ActionCallback] = None) -> None: ...

    def sleep(self, callback: Optional[ActionCallback] = None) -> None: ...

    def stop_current_action(self) -> None: ...


def _notify(callback: Optional[ActionCallback], result: ActionResult) -> None:
    if callback is not None:
        callback(result)


@dataclass
class _Collection:
    target: object
    item_type: str
    started_at: float
    duration: float
    callback: Optional[ActionCallback]


class AgentActions:
    """Default ``Actionable`` implementation for an agent."""

    def __init__(
        self,
        agent,
        *,
        world,
        clock,
        settings: Optional[SimulationSettings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.agent = agent
        self.world = world
        self.clock = clock
        self.settings = settings or SimulationSettings()
        self.rng = rng or random.Random()
        self.machine = ActionStateMachine(
            agent,
            world=world,
            clock=clock,
            settings=self.settings.movement,
            vitals=self.settings.vitals,
            rng=self.rng,
        )
        self._collection: Optional[_Collection] = None

    # ------------------------------------------------------------------
    # Collection progress (read-only view for renderers)
    # ------------------------------------------------------------------

    @property
    def is_collecting(self) -> bool:
        return self._collection is not None

    def collection_progress(self, now: Optional[float] = None) -> CollectionProgress:
        collection = self._collection
        if collection is None:
            return CollectionProgress()
        now = self.clock.now if now is None else now
        elapsed = now - collection.started_at
        progress = 1.0 if collection.duration <= 0 else min(1.0, max(0.0, elapsed / collection.duration))
        return CollectionProgress(
            active=True,
            item_type=collection.item_type,
            target_id=getattr(collection.target, "entity_id", None),
            started_at=collection.started_at,
            duration_ms=collection.duration,
            progress=progress,
        )

    # ------------------------------------------------------------------
    # Composite actions
    # ------------------------------------------------------------------

    def collect(self, target, item_type: str, callback: Optional[ActionCallback] = None) -> None:
        """Walk to ``target`` if needed, harvest for the type's duration, take one item."""

        if self.agent.is_dead:
            _notify(callback, ActionResult.fail(ErrorKind.ENTITY_DEAD))
            return
        if target is None:
            _notify(callback, ActionResult.fail(ErrorKind.INVALID_TARGET, "No target given"))
            return
        if self.agent.inventory.is_full:
            _notify(callback, ActionResult.fail(ErrorKind.INVENTORY_FULL, target=target))
            return

        if distance(self.agent, target) > self.settings.actions.interaction_range:
            self._navigate_then(target, callback, lambda live: self.collect(live, item_type, callback))
            return

        live = self._live_entity(target)
        if live is None:
            _notify(callback, ActionResult.fail(ErrorKind.TARGET_NOT_FOUND, target=target))
            return
        if live is not target and distance(self.agent, live) > self.settings.actions.interaction_range:
            self.collect(live, item_type, callback)
            return
        if getattr(live, "inventory", None) is None:
            _notify(callback, ActionResult.fail(ErrorKind.INVALID_TARGET, f"{live.type} holds nothing", target=live))
            return
        if not live.inventory.has(item_type):
            _notify(
                callback,
                ActionResult.fail(ErrorKind.ITEM_NOT_FOUND, f"No {item_type} on {live.type}", target=live),
            )
            return

        duration = self.settings.actions.harvest_ms.get(live.type, self.settings.actions.ground_pickup_ms)
        self._cancel_collection()
        self.machine.stop_current_action()
        self._collection = _Collection(
            target=live,
            item_type=item_type,
            started_at=self.clock.now,
            duration=duration,
            callback=callback,
        )
        log_deterministic(
            f"[{self.agent.name}] Collecting {item_type} from {live.type} ({duration / 1000:.1f}s)"
        )

    def add_fuel(
        self,
        target,
        callback: Optional[ActionCallback] = None,
        item_type: Optional[str] = None,
    ) -> None:
        """Walk to a warmth source if needed and feed it exactly one fuel item."""

        if self.agent.is_dead:
            _notify(callback, ActionResult.fail(ErrorKind.ENTITY_DEAD))
            return
        if item_type is None:
            held = self.agent.inventory.find(fuel_types())
            item_type = held.type if held else None
        if item_type is None or not self.agent.inventory.has(item_type):
            _notify(callback, ActionResult.fail(ErrorKind.NO_FUEL))
            return
        if target is None:
            _notify(callback, ActionResult.fail(ErrorKind.NO_WARMTH_SOURCE))
            return

        if distance(self.agent, target) > self.settings.actions.interaction_range:
            self._navigate_then(target, callback, lambda live: self.add_fuel(live, callback, item_type))
            return

        live = self._live_entity(target)
        if live is None:
            _notify(callback, ActionResult.fail(ErrorKind.TARGET_NOT_FOUND, target=target))
            return
        if live is not target and distance(self.agent, live) > self.settings.actions.interaction_range:
            self.add_fuel(live, callback, item_type)
            return
        if not accepts_fuel(live.type, item_type) or not hasattr(live, "add_fuel"):
            _notify(
                callback,
                ActionResult.fail(ErrorKind.INVALID_TARGET, f"{live.type} does not take {item_type}", target=live),
            )
            return

        self._cancel_collection()
        self.agent.inventory.take(item_type)
        level = live.add_fuel(fuel_value(item_type))
        log_success(f"[{self.agent.name}] Added {item_type} to {live.entity_id} (fuel {level:.0f}/{live.max_fuel:.0f})")
        _notify(callback, ActionResult.ok(target=live, fuel=level))

    # ------------------------------------------------------------------
    # Instantaneous effects
    # ------------------------------------------------------------------

    def drop(self, item_type: str, callback: Optional[ActionCallback] = None) -> None:
        if self.agent.is_dead:
            _notify(callback, ActionResult.fail(ErrorKind.ENTITY_DEAD))
            return
        if not self.agent.inventory.has(item_type):
            _notify(callback, ActionResult.fail(ErrorKind.ITEM_NOT_IN_INVENTORY, f"Not carrying {item_type}"))
            return

        self._cancel_collection()
        scatter = self.settings.actions.drop_scatter
        x = self.agent.x + (self.rng.random() - 0.5) * scatter
        y = self.agent.y + (self.rng.random() - 0.5) * scatter
        item = self.agent.inventory.take(item_type)
        ground = self.world.spawn(item.type, x, y, items=[item])
        log_deterministic(f"[{self.agent.name}] Dropped {item.type} at ({x:.0f}, {y:.0f})")
        _notify(callback, ActionResult.ok(target=ground, entity=ground))

    def eat(self, food_type: str, callback: Optional[ActionCallback] = None) -> None:
        if self.agent.is_dead:
            _notify(callback, ActionResult.fail(ErrorKind.ENTITY_DEAD))
            return
        value = food_value(food_type)
        if value <= 0:
            _notify(callback, ActionResult.fail(ErrorKind.NOT_EDIBLE, f"{food_type} is not food"))
            return
        if not self.agent.inventory.has(food_type):
            _notify(callback, ActionResult.fail(ErrorKind.ITEM_NOT_IN_INVENTORY, f"Not carrying {food_type}"))
            return

        self._cancel_collection()
        self.agent.inventory.take(food_type)
        self.agent.vitals.food = min(100.0, self.agent.vitals.food + value)
        log_success(f"[{self.agent.name}] Ate {food_type} (food {self.agent.vitals.food:.0f})")
        _notify(callback, ActionResult.ok(food=self.agent.vitals.food))

    # ------------------------------------------------------------------
    # Movement delegation
    # ------------------------------------------------------------------

    def search_for(self, item_type: str, callback: Optional[ActionCallback] = None) -> None:
        self._cancel_collection()
        self.machine.search_for(item_type, callback)

    def move_to(
        self,
        target,
        arrival_distance: Optional[float] = None,
        callback: Optional[ActionCallback] = None,
    ) -> None:
        self._cancel_collection()
        self.machine.move_to(target, arrival_distance, callback)

    def wander(self, duration: Optional[float] = None, callback: Optional[ActionCallback] = None) -> None:
        self._cancel_collection()
        self.machine.wander(duration, callback)

    def sleep(self, callback: Optional[ActionCallback] = None) -> None:
        self._cancel_collection()
        self.machine.sleep(callback)

    def stop_current_action(self) -> None:
        self._cancel_collection()
        self.machine.stop_current_action()

    # ------------------------------------------------------------------
    # Per-tick
    # ------------------------------------------------------------------

    def update(self, now: float) -> None:
        self.machine.update(now)
        self._poll_collection(now)

    def _poll_collection(self, now: float) -> None:
        collection = self._collection
        if collection is None:
            return
        if self.agent.is_dead:
            self._collection = None
            _notify(collection.callback, ActionResult.fail(ErrorKind.ENTITY_DEAD, interrupted=True))
            return
        if now - collection.started_at < collection.duration:
            return
        self._collection = None
        _notify(collection.callback, self._transfer(collection.target, collection.item_type))

    def _transfer(self, target, item_type: str) -> ActionResult:
        """Move one item from ``target`` to the agent without yielding in between."""

        if not self.world.contains(target) or not target.inventory.has(item_type):
            return ActionResult.fail(ErrorKind.ITEM_NOT_FOUND, f"{item_type} is gone", target=target)

        item: Item = target.inventory.take(item_type)
        if not self.agent.inventory.add(item):
            if not target.inventory.add(item):
                log_error(f"[{self.agent.name}] Could not return {item_type} to {target.entity_id}")
            return ActionResult.fail(
                ErrorKind.COLLECTION_FAILED, f"Could not carry {item_type}", target=target
            )

        if is_collectible(target.type) and target.inventory.is_empty:
            self.world.remove(target.entity_id)
        log_success(
            f"[{self.agent.name}] Collected {item_type} "
            f"({len(self.agent.inventory)}/{self.agent.inventory.capacity})"
        )
        return ActionResult.ok(target=target, item=item)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _cancel_collection(self) -> None:
        if self._collection is not None:
            log_deterministic(f"[{self.agent.name}] Collection of {self._collection.item_type} cancelled")
            self._collection = None

    def _navigate_then(self, target, callback: Optional[ActionCallback], act) -> None:
        def _arrived(result: ActionResult) -> None:
            if not result.success:
                _notify(
                    callback,
                    ActionResult.fail(ErrorKind.NAVIGATION_FAILED, inner=result, target=target),
                )
                return
            live = self._live_entity(target)
            if live is None:
                _notify(callback, ActionResult.fail(ErrorKind.TARGET_NOT_FOUND, target=target))
                return
            act(live)

        self.move_to(target, callback=_arrived)

    def _live_entity(self, target):
        """The world entity ``target`` stands for, or None if it is gone.

        Remembered positions are matched against what the agent sees on
        arrival; a stale memory is forgotten.
        """

        if not isinstance(target, PositionTarget):
            return target if self.world.contains(target) else None
        if target.type is None:
            return None

        if target.entity_id is not None:
            entity = self.agent.perceived.get(target.entity_id)
            if entity is not None:
                return entity
        reach = self.settings.actions.interaction_range
        candidates = [
            entity
            for entity in self.agent.perceived.values()
            if entity.type == target.type and distance(entity, target) <= reach
        ]
        if candidates:
            return min(candidates, key=lambda entity: distance(self.agent, entity))
        if target.from_memory:
            forget(self.agent, target.type)
        return None


__all__ = ["Actionable", "AgentActions"]
