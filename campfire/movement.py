"""Movement/action state machine and default straight-line locomotion.

Every agent has exactly one ``ActionState``. Entry operations replace the
current state; the replaced state's callback is dropped and its perception
subscription released, so a superseded action simply never calls back.
Deadlines are fixed once at entry and checked by ``update`` once per tick.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple

from .config import MovementSettings, VitalsSettings
from .entities import PositionTarget, distance
from .logging_utils import log_deterministic, log_success
from .perception import Subscription
from .registry import Category, SearchTarget, interest_category, resolve_search_target
from .schemas import ActionResult, ErrorKind


ActionCallback = Callable[[ActionResult], None]


# ============================================================================
# Action states
# ============================================================================


@dataclass(frozen=True)
class Idle:
    name: ClassVar[str] = "idle"
    moving: ClassVar[bool] = False


@dataclass(frozen=True)
class Wandering:
    deadline: float

    name: ClassVar[str] = "wandering"
    moving: ClassVar[bool] = True


@dataclass(frozen=True)
class Searching:
    item_type: str
    target_type: str
    category: Optional[Category]
    deadline: float
    direct: bool = False

    name: ClassVar[str] = "searching"
    moving: ClassVar[bool] = True

    def matches(self, entity) -> bool:
        if entity.type != self.target_type:
            return False
        if self.direct:
            return True
        inventory = getattr(entity, "inventory", None)
        return inventory is not None and inventory.has(self.item_type)


@dataclass(frozen=True)
class MovingTo:
    target: Any
    arrival_distance: float

    name: ClassVar[str] = "moving_to"
    moving: ClassVar[bool] = True


@dataclass(frozen=True)
class Sleeping:
    name: ClassVar[str] = "sleeping"
    moving: ClassVar[bool] = False


ActionState = Idle | Wandering | Searching | MovingTo | Sleeping

IDLE = Idle()


def _search_state(search: SearchTarget, deadline: float) -> Searching:
    return Searching(
        item_type=search.item_type,
        target_type=search.target_type,
        category=interest_category(search.item_type),
        deadline=deadline,
        direct=search.direct,
    )


# ============================================================================
# State machine
# ============================================================================


class ActionStateMachine:
    """Owns one agent's current ``ActionState`` and its completion callback."""

    def __init__(
        self,
        agent,
        *,
        world,
        clock,
        settings: Optional[MovementSettings] = None,
        vitals: Optional[VitalsSettings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.agent = agent
        self.world = world
        self.clock = clock
        self.settings = settings or MovementSettings()
        self.vitals = vitals or VitalsSettings()
        self.rng = rng or random.Random()
        self._state: ActionState = IDLE
        self._callback: Optional[ActionCallback] = None
        self._subscription: Optional[Subscription] = None
        self._idle_since: Optional[float] = clock.now

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ActionState:
        return self._state

    @property
    def is_idle(self) -> bool:
        return isinstance(self._state, Idle)

    @property
    def idle_since(self) -> Optional[float]:
        """Time the agent last became idle, or None while an action runs."""

        return self._idle_since if self.is_idle else None

    # ------------------------------------------------------------------
    # Entry operations
    # ------------------------------------------------------------------

    def wander(self, duration: Optional[float] = None, callback: Optional[ActionCallback] = None) -> None:
        if self._refuse_if_dead(callback):
            return
        if duration is None:
            duration = self.rng.uniform(self.settings.wander_min_ms, self.settings.wander_max_ms)
        self._enter(Wandering(deadline=self.clock.now + duration), callback)
        log_deterministic(f"[{self.agent.name}] Wandering for {duration / 1000:.1f}s")

    def move_to(
        self,
        target,
        arrival_distance: Optional[float] = None,
        callback: Optional[ActionCallback] = None,
    ) -> None:
        if self._refuse_if_dead(callback):
            return
        if arrival_distance is None:
            arrival_distance = self.settings.arrival_distance
        self._enter(MovingTo(target=target, arrival_distance=arrival_distance), callback)
        log_deterministic(
            f"[{self.agent.name}] Moving to {getattr(target, 'type', None) or 'position'} "
            f"({target.x:.0f}, {target.y:.0f})"
        )

    def search_for(self, item_type: str, callback: Optional[ActionCallback] = None) -> None:
        if self._refuse_if_dead(callback):
            return
        search = resolve_search_target(item_type)
        if search is None:
            if callback is not None:
                callback(
                    ActionResult.fail(
                        ErrorKind.UNKNOWN_ITEM_TYPE, f"Nothing is known to hold '{item_type}'"
                    )
                )
            return

        state = _search_state(search, self.clock.now + self.settings.search_duration_ms)
        for entity in self.agent.perceived.values():
            if state.matches(entity):
                self.stop_current_action()
                log_success(f"[{self.agent.name}] Found {item_type} immediately at {entity.type}")
                if callback is not None:
                    callback(ActionResult.ok(target=entity))
                return

        def _on_perceived(entity) -> None:
            if self._state is state and state.matches(entity):
                log_success(f"[{self.agent.name}] Found {item_type} at {entity.type}")
                self._finish(ActionResult.ok(target=entity))

        subscription = self.agent.events.subscribe(_on_perceived)
        self._enter(state, callback, subscription)
        log_deterministic(f"[{self.agent.name}] Searching for {item_type} ({search.target_type})")

    def sleep(self, callback: Optional[ActionCallback] = None) -> None:
        if self._refuse_if_dead(callback):
            return
        self._enter(Sleeping(), callback)
        self.agent.is_sleeping = True
        self.agent.is_running = False
        log_deterministic(f"[{self.agent.name}] Fell asleep")

    def stop_current_action(self) -> None:
        """Force ``Idle`` without calling back."""

        if self.is_idle and self._callback is None:
            return
        self._release()
        self._become_idle()

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def update(self, now: float) -> None:
        """Check the current state's completion conditions."""

        state = self._state
        if isinstance(state, Idle):
            return
        if self.agent.is_dead:
            self._finish(ActionResult.fail(ErrorKind.ENTITY_DEAD, interrupted=True))
            return

        if isinstance(state, Wandering):
            if now >= state.deadline:
                self._finish(ActionResult.ok())
        elif isinstance(state, Searching):
            if now >= state.deadline:
                log_deterministic(f"[{self.agent.name}] Search for {state.item_type} timed out")
                self._finish(
                    ActionResult.fail(ErrorKind.TIMEOUT, f"No {state.item_type} found in time")
                )
        elif isinstance(state, MovingTo):
            target = state.target
            if not isinstance(target, PositionTarget) and not self.world.contains(target):
                self._finish(
                    ActionResult.fail(ErrorKind.TARGET_NOT_FOUND, "Target no longer exists")
                )
            elif distance(self.agent, target) <= state.arrival_distance:
                self._finish(ActionResult.ok(target=target))
        elif isinstance(state, Sleeping):
            # Health first: the interruption wins over a same-tick wake-up
            if self.agent.vitals.health < self.vitals.sleep_interrupt_health:
                log_deterministic(f"[{self.agent.name}] Woke up: health critical")
                self._finish(ActionResult.fail(ErrorKind.HP_CRITICAL, interrupted=True))
            elif self.agent.vitals.energy > self.vitals.sleep_target_energy:
                log_success(f"[{self.agent.name}] Woke up rested")
                self._finish(ActionResult.ok())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _refuse_if_dead(self, callback: Optional[ActionCallback]) -> bool:
        if not self.agent.is_dead:
            return False
        if callback is not None:
            callback(ActionResult.fail(ErrorKind.ENTITY_DEAD))
        return True

    def _enter(
        self,
        state: ActionState,
        callback: Optional[ActionCallback],
        subscription: Optional[Subscription] = None,
    ) -> None:
        self._release()
        if self.agent.is_sleeping and not isinstance(state, Sleeping):
            self.agent.is_sleeping = False
        self._state = state
        self._callback = callback
        self._subscription = subscription
        self._idle_since = None

    def _release(self) -> None:
        self._callback = None
        if self._subscription is not None:
            self.agent.events.unsubscribe(self._subscription)
            self._subscription = None

    def _become_idle(self) -> None:
        if isinstance(self._state, Sleeping):
            self.agent.is_sleeping = False
        self._state = IDLE
        self._idle_since = self.clock.now
        self.agent.is_running = False

    def _finish(self, result: ActionResult) -> None:
        callback = self._callback
        self._release()
        self._become_idle()
        if callback is not None:
            callback(result)


# ============================================================================
# Locomotion
# ============================================================================


class Locomotion:
    """Default motion collaborator: straight lines and random wandering.

    Agents in ``MovingTo`` head straight for the target, running when far
    away and energy allows. Wandering and searching agents drift in a random
    heading that changes every ``direction_change_ms`` and bounces off the
    padded world edge.
    """

    def __init__(
        self,
        world,
        vitals_engine,
        settings: Optional[MovementSettings] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.world = world
        self.vitals_engine = vitals_engine
        self.settings = settings or MovementSettings()
        self.rng = rng or random.Random()
        self._headings: Dict[str, Tuple[float, float, float]] = {}

    def step(self, agent, state: ActionState, dt_ms: float, now: float) -> None:
        if agent.is_dead or agent.is_sleeping or not state.moving:
            agent.is_running = False
            return

        multiplier = self.vitals_engine.speed_multiplier(agent)
        base_step = self.settings.walk_speed * multiplier * dt_ms / 1000.0
        if base_step <= 0:
            return

        if isinstance(state, MovingTo):
            self._approach(agent, state.target, base_step)
        else:
            agent.is_running = False
            self._drift(agent, base_step, now)

    def forget(self, agent_id: str) -> None:
        self._headings.pop(agent_id, None)

    def _approach(self, agent, target, base_step: float) -> None:
        remaining = distance(agent, target)
        if remaining <= 0:
            agent.is_running = False
            return
        run = self.vitals_engine.can_run(agent) and remaining > self.settings.run_distance
        agent.is_running = run
        step = base_step * (self.settings.run_multiplier if run else 1.0)
        ratio = min(1.0, step / remaining)
        agent.x += (target.x - agent.x) * ratio
        agent.y += (target.y - agent.y) * ratio

    def _drift(self, agent, step: float, now: float) -> None:
        heading = self._headings.get(agent.entity_id)
        if heading is None or now - heading[2] >= self.settings.direction_change_ms:
            angle = self.rng.uniform(0.0, 2.0 * math.pi)
            heading = (math.cos(angle), math.sin(angle), now)
        dx, dy, changed_at = heading

        padding = self.settings.world_padding
        new_x = agent.x + dx * step
        new_y = agent.y + dy * step
        if padding <= new_x <= self.world.width - padding:
            agent.x = new_x
        else:
            dx = -dx
        if padding <= new_y <= self.world.height - padding:
            agent.y = new_y
        else:
            dy = -dy
        self._headings[agent.entity_id] = (dx, dy, changed_at)


__all__ = [
    "ActionCallback",
    "ActionState",
    "Idle",
    "Wandering",
    "Searching",
    "MovingTo",
    "Sleeping",
    "ActionStateMachine",
    "Locomotion",
]
