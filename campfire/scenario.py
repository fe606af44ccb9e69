"""
Scenario loading for JSON-defined simulation initialization.

A scenario fixes the initial conditions of a run: world size, placed
entities with their inventories, bonfire fuel, agents with their starting
positions, vitals and items, and optional settings overrides.

Scenario file structure:
```json
{
  "name": "Lone survivor",
  "description": "...",
  "ai_enabled": true,
  "world": {"width": 1280, "height": 800},
  "settings": {"vitals": {"food_decrease_rate": 0.2}},
  "entities": [
    {"type": "tree", "x": 300, "y": 200, "items": ["apple", "apple"], "capacity": 4},
    {"type": "bonfire", "x": 640, "y": 400, "fuel": 80}
  ],
  "agents": [
    {"id": "lira", "name": "Lira", "x": 600, "y": 380,
     "vitals": {"food": 70}, "items": ["stick"]}
  ]
}
```

Usage:
    scenario = load_scenario("lone_survivor")
    simulation = scenario.build_simulation(HeuristicDecisionService())
"""

from __future__ import annotations

import json
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .agent import Agent
from .clock import SimulationClock
from .config import Config, SimulationSettings, WorldSettings
from .registry import get_entity_spec
from .schemas import Item, Vitals
from .world import World


@dataclass
class Scenario:
    """A ready-to-run world plus the agents living in it."""

    name: str
    world: World
    agents: List[Agent]
    settings: SimulationSettings
    clock: SimulationClock
    description: str = ""
    ai_enabled: bool = True
    rng: random.Random = field(default_factory=random.Random)

    def build_simulation(self, decision_service=None, **kwargs):
        """Wrap the scenario in a ``Simulation`` sharing its clock."""

        from .simulation import Simulation

        return Simulation(
            self.world,
            self.agents,
            settings=self.settings,
            decision_service=decision_service,
            clock=self.clock,
            rng=self.rng,
            ai_enabled=kwargs.pop("ai_enabled", self.ai_enabled),
            **kwargs,
        )


class ScenarioLoader:
    """Load and validate scenarios from JSON files or dicts.

    Validation:
    - Required fields: name, agents
    - At least one agent
    - Entity and agent entries need a position; entity types must be known
      to the registry
    - Raises ValueError if validation fails
    """

    def __init__(self, scenarios_dir: Optional[Path] = None):
        self.scenarios_dir = scenarios_dir or Config.SCENARIOS_DIR

    def resolve_path(self, scenario: Union[str, Path]) -> Path:
        """Accept a file path or a bare scenario name from ``scenarios_dir``."""

        path = Path(scenario)
        if path.suffix == ".json" or path.exists():
            return path
        return self.scenarios_dir / f"{scenario}.json"

    def load(
        self,
        scenario: Union[str, Path, Dict[str, Any]],
        *,
        seed: Optional[int] = None,
    ) -> Scenario:
        if isinstance(scenario, dict):
            data = scenario
        else:
            path = self.resolve_path(scenario)
            if not path.exists():
                raise FileNotFoundError(f"Scenario '{scenario}' not found at {path}")
            data = json.loads(path.read_text(encoding="utf-8"))

        self._validate(data)

        settings = SimulationSettings.model_validate(data.get("settings", {}))
        if data.get("world"):
            settings.world = WorldSettings.model_validate({**settings.world.model_dump(), **data["world"]})

        rng = random.Random(seed if seed is not None else data.get("seed"))
        clock = SimulationClock()
        world = World(settings.world)

        for entry in data.get("entities", []):
            self._place_entity(world, entry)

        agents = [self._build_agent(world, clock, settings, rng, entry) for entry in data["agents"]]
        for agent in agents:
            world.add_agent(agent)

        return Scenario(
            name=data["name"],
            description=data.get("description", ""),
            world=world,
            agents=agents,
            settings=settings,
            clock=clock,
            ai_enabled=bool(data.get("ai_enabled", True)),
            rng=rng,
        )

    def _validate(self, data: Dict[str, Any]) -> None:
        missing = [key for key in ("name", "agents") if key not in data]
        if missing:
            raise ValueError(f"Scenario missing required fields: {missing}")
        if not data["agents"]:
            raise ValueError("Scenario must have at least one agent")

        for entry in data.get("entities", []) + data["agents"]:
            if "x" not in entry or "y" not in entry:
                raise ValueError(f"Scenario entry needs x and y: {entry}")
        for entry in data.get("entities", []):
            if get_entity_spec(entry.get("type", "")) is None:
                raise ValueError(f"Unknown entity type in scenario: {entry.get('type')!r}")

    def _place_entity(self, world: World, entry: Dict[str, Any]) -> None:
        entity_id = entry.get("id")
        if entry["type"] == "bonfire":
            world.spawn_bonfire(entry["x"], entry["y"], fuel=entry.get("fuel"), entity_id=entity_id)
            return
        items = [Item(type=item) for item in entry.get("items", [])]
        world.spawn(
            entry["type"],
            entry["x"],
            entry["y"],
            items=items,
            capacity=entry.get("capacity"),
            entity_id=entity_id,
        )

    def _build_agent(
        self,
        world: World,
        clock: SimulationClock,
        settings: SimulationSettings,
        rng: random.Random,
        entry: Dict[str, Any],
    ) -> Agent:
        agent_id = entry.get("id") or world.new_id("character")
        base = Vitals(
            food=settings.vitals.initial_food,
            energy=settings.vitals.initial_energy,
            warmth=settings.vitals.initial_warmth,
            health=settings.vitals.initial_health,
        )
        vitals = Vitals(**{**base.as_dict(), **entry.get("vitals", {})})
        return Agent(
            agent_id,
            entry["x"],
            entry["y"],
            world=world,
            clock=clock,
            settings=settings,
            name=entry.get("name"),
            vitals=vitals,
            items=[Item(type=item) for item in entry.get("items", [])],
            rng=rng,
        )


def load_scenario(
    scenario: Union[str, Path, Dict[str, Any]],
    *,
    scenarios_dir: Optional[Path] = None,
    seed: Optional[int] = None,
) -> Scenario:
    """Load a scenario from a name, a path or an already parsed dict."""

    return ScenarioLoader(scenarios_dir).load(scenario, seed=seed)


__all__ = ["Scenario", "ScenarioLoader", "load_scenario"]
