"""Smart entity: an agent with needs, an inventory and one action at a time."""

from __future__ import annotations

import random
from typing import Dict, Iterable, Optional

from .actions import AgentActions
from .config import SimulationSettings
from .entities import Inventory
from .movement import ActionCallback, ActionState
from .perception import PerceptionEvents
from .registry import Category
from .schemas import AgentSnapshot, Bubble, CollectionProgress, Item, RememberedLocation, Vitals


class Agent:
    """An autonomous survivor.

    The agent owns its data (position, vitals, inventory, perception and
    memory); behaviour lives in the ``AgentActions`` strategy it holds, and
    the ``Actionable`` methods below simply forward to it.
    """

    type = "character"
    category = Category.AGENT

    def __init__(
        self,
        agent_id: str,
        x: float,
        y: float,
        *,
        world,
        clock,
        settings: Optional[SimulationSettings] = None,
        name: Optional[str] = None,
        vitals: Optional[Vitals] = None,
        items: Iterable[Item] = (),
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or SimulationSettings()
        self.entity_id = agent_id
        self.name = name or agent_id
        self.x = float(x)
        self.y = float(y)

        v = self.settings.vitals
        self.vitals = vitals or Vitals(
            food=v.initial_food,
            energy=v.initial_energy,
            warmth=v.initial_warmth,
            health=v.initial_health,
        )
        self.inventory = Inventory(self.settings.actions.inventory_capacity, items)
        self.is_dead = False
        self.is_sleeping = False
        self.is_running = False

        self.perceived: Dict[str, object] = {}
        self.memory: Dict[str, RememberedLocation] = {}
        self.events = PerceptionEvents()

        self.actions = AgentActions(self, world=world, clock=clock, settings=self.settings, rng=rng)

    def __repr__(self) -> str:
        return f"<Agent {self.entity_id} at ({self.x:.0f}, {self.y:.0f})>"

    @property
    def agent_id(self) -> str:
        return self.entity_id

    @property
    def action_state(self) -> ActionState:
        return self.actions.machine.state

    @property
    def is_moving(self) -> bool:
        return self.action_state.moving and not self.is_sleeping

    @property
    def is_collecting(self) -> bool:
        return self.actions.is_collecting

    # ------------------------------------------------------------------
    # Actionable
    # ------------------------------------------------------------------

    def collect(self, target, item_type: str, callback: Optional[ActionCallback] = None) -> None:
        self.actions.collect(target, item_type, callback)

    def drop(self, item_type: str, callback: Optional[ActionCallback] = None) -> None:
        self.actions.drop(item_type, callback)

    def eat(self, food_type: str, callback: Optional[ActionCallback] = None) -> None:
        self.actions.eat(food_type, callback)

    def add_fuel(
        self,
        target,
        callback: Optional[ActionCallback] = None,
        item_type: Optional[str] = None,
    ) -> None:
        self.actions.add_fuel(target, callback, item_type)

    def search_for(self, item_type: str, callback: Optional[ActionCallback] = None) -> None:
        self.actions.search_for(item_type, callback)

    def move_to(
        self,
        target,
        arrival_distance: Optional[float] = None,
        callback: Optional[ActionCallback] = None,
    ) -> None:
        self.actions.move_to(target, arrival_distance, callback)

    def wander(self, duration: Optional[float] = None, callback: Optional[ActionCallback] = None) -> None:
        self.actions.wander(duration, callback)

    def sleep(self, callback: Optional[ActionCallback] = None) -> None:
        self.actions.sleep(callback)

    def stop_current_action(self) -> None:
        self.actions.stop_current_action()

    # ------------------------------------------------------------------
    # Rendering view
    # ------------------------------------------------------------------

    def collection_progress(self) -> CollectionProgress:
        return self.actions.collection_progress()

    def snapshot(self, *, intent: str = "", bubble: Optional[Bubble] = None) -> AgentSnapshot:
        return AgentSnapshot(
            agent_id=self.entity_id,
            name=self.name,
            x=self.x,
            y=self.y,
            vitals=self.vitals.model_copy(),
            is_dead=self.is_dead,
            is_sleeping=self.is_sleeping,
            is_running=self.is_running,
            action_state=self.action_state.name,
            inventory=self.inventory.types(),
            collection=self.collection_progress(),
            intent=intent,
            bubble=bubble,
        )


__all__ = ["Agent"]
