"""Tick-driven simulation loop.

Fully decoupled: the world, the agents, the settings and the decision
service are injected. Each ``step`` runs the deterministic pipeline for one
tick and then starts at most one decision task per eligible agent; the
decision requests are the only asynchronous work.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from .agent import Agent
from .clock import Scheduler, SimulationClock
from .cognition import DecisionEngine, DecisionService, HeuristicDecisionService, TriggerContext
from .config import Config, SimulationSettings
from .execution import ActionExecutor
from .logging_utils import log_deterministic, log_error, log_info
from .movement import Locomotion
from .perception import update_perception
from .schemas import EntitySnapshot, Item, NextAction, Vitals, WorldSnapshot
from .vitals import VitalsEngine

TickListener = Callable[[int, "Simulation"], None]


class DecisionFailuresError(Exception):
    """Raised when one or more decision requests failed during a tick.

    Contains a mapping of agent_id to the underlying exception for better
    diagnostics, along with guidance on common remediation steps.
    """

    def __init__(self, *, tick: int, errors: Dict[str, Exception]) -> None:
        self.tick = tick
        self.errors = errors
        message_lines = [
            f"One or more decision requests failed at tick {tick}.",
            "Agents that failed:",
        ]
        for agent_id, exc in errors.items():
            message_lines.append(f"  - {agent_id}: {type(exc).__name__}: {exc}")
        message_lines.extend(
            [
                "\nRemediation tips:",
                "  - Verify LLM configuration (LLM_PROVIDER, LLM_MODEL, API key)",
                "  - For a local model, check OLLAMA_BASE_URL and that the model is pulled",
                "  - Enable DEBUG_LLM=true to inspect prompts/responses",
                "  - Use HeuristicDecisionService to run without a model",
            ]
        )
        super().__init__("\n".join(message_lines))


class Simulation:
    """Owns the clock, the pipelines and the decision engine for one world."""

    def __init__(
        self,
        world,
        agents: Iterable[Agent] = (),
        *,
        settings: Optional[SimulationSettings] = None,
        decision_service: Optional[DecisionService] = None,
        clock: Optional[SimulationClock] = None,
        rng: Optional[random.Random] = None,
        ai_enabled: bool = True,
        raise_on_decision_error: bool = False,
        tick_listeners: Optional[List[TickListener]] = None,
    ) -> None:
        """Wire the pipelines together.

        Args:
            world: World holding passive entities and agents
            agents: Agents to add; they must share ``clock``
            settings: Tunables; defaults to ``SimulationSettings()``
            decision_service: Where decisions come from; defaults to the
                rule-based ``HeuristicDecisionService``
            clock: Simulated clock the agents were built with
            rng: Random source for locomotion
            ai_enabled: Enable decisions for the initial agents
            raise_on_decision_error: Raise ``DecisionFailuresError`` instead of
                only logging failed decision requests
            tick_listeners: Callables invoked after each tick with
                ``(tick, simulation)``
        """

        self.world = world
        self.settings = settings or SimulationSettings()
        self.clock = clock or SimulationClock()
        self.scheduler = Scheduler(self.clock)
        self.rng = rng or random.Random()
        self.vitals = VitalsEngine(self.settings.vitals, self.settings.movement)
        self.locomotion = Locomotion(world, self.vitals, self.settings.movement, self.rng)
        self.executor = ActionExecutor(world, self.clock, self.settings)
        self.engine = DecisionEngine(
            self.executor,
            decision_service if decision_service is not None else HeuristicDecisionService(),
            self.scheduler,
            settings=self.settings,
        )
        self.raise_on_decision_error = raise_on_decision_error
        self.tick_listeners = tick_listeners or []

        self.tick = 0
        self.decision_failures: List[Tuple[int, str, Exception]] = []
        self._tasks: Dict[str, asyncio.Task] = {}
        self._unreported: Dict[str, Exception] = {}
        self._critical: Dict[str, Set[str]] = {}
        self._health_low: Dict[str, bool] = {}

        for agent in agents:
            self.add_agent(agent, ai_enabled=ai_enabled)

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    @property
    def agents(self) -> Dict[str, Agent]:
        return self.world.agents

    def add_agent(self, agent: Agent, *, ai_enabled: bool = True) -> Agent:
        if agent.entity_id not in self.world.agents:
            self.world.add_agent(agent)
        self.engine.attach(agent)
        if ai_enabled:
            self.engine.enable(agent.entity_id)
        self._critical[agent.entity_id] = self.vitals.critical_needs(agent)
        self._health_low[agent.entity_id] = self._is_health_low(agent)
        log_info(f"Agent {agent.name} joined at ({agent.x:.0f}, {agent.y:.0f})")
        return agent

    def create_agent(
        self,
        agent_id: str,
        x: float,
        y: float,
        *,
        name: Optional[str] = None,
        vitals: Optional[Vitals] = None,
        items: Iterable[Item] = (),
        ai_enabled: bool = True,
    ) -> Agent:
        agent = Agent(
            agent_id,
            x,
            y,
            world=self.world,
            clock=self.clock,
            settings=self.settings,
            name=name,
            vitals=vitals,
            items=items,
            rng=self.rng,
        )
        return self.add_agent(agent, ai_enabled=ai_enabled)

    def remove_agent(self, agent_id: str) -> None:
        """Take an agent out of the world and drop its decision state."""

        agent = self.world.agents.get(agent_id)
        if agent is None:
            return
        task = self._tasks.pop(agent_id, None)
        if task is not None and not task.done():
            task.cancel()
        agent.stop_current_action()
        self.world.remove_agent(agent_id)
        self.engine.forget(agent_id)
        self.locomotion.forget(agent_id)
        self._critical.pop(agent_id, None)
        self._health_low.pop(agent_id, None)
        log_info(f"Agent {agent.name} left the simulation")

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def step(self, dt_ms: Optional[float] = None) -> int:
        """Advance the simulation by one tick. Returns the tick number."""

        dt_ms = Config.TICK_DURATION_MS if dt_ms is None else dt_ms
        self.tick += 1
        now = self.clock.advance(dt_ms)
        self.world.update(dt_ms)

        agents = list(self.world.agents.values())
        for agent in agents:
            self._tick_vitals(agent, dt_ms)

        for agent in agents:
            if not agent.is_dead:
                self.locomotion.step(agent, agent.action_state, dt_ms, now)
                update_perception(agent, self.world, now, self.settings.perception.visibility_radius)
            agent.actions.update(now)

        self.scheduler.run_due()

        self._harvest_tasks()
        for agent in agents:
            self._maybe_start_decision(agent, now)
        # Let freshly created decision tasks run up to their first real await
        await asyncio.sleep(0)
        self._harvest_tasks()

        for listener in self.tick_listeners:
            try:
                listener(self.tick, self)
            except Exception as exc:  # pragma: no cover - diagnostic hook
                log_error(f"Tick listener failed: {exc}")

        self._raise_failures()
        return self.tick

    async def settle(self) -> None:
        """Wait for outstanding decision requests and report their failures."""

        tasks = [task for task in self._tasks.values() if not task.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._harvest_tasks()
        self._raise_failures()

    async def run(self, num_ticks: int, dt_ms: Optional[float] = None) -> Dict[str, Any]:
        """Run ``num_ticks`` ticks, settling decisions after each one."""

        log_info(f"Starting simulation: {len(self.world.agents)} agents, {num_ticks} ticks")
        for _ in range(num_ticks):
            await self.step(dt_ms)
            await self.settle()
            if self.world.agents and all(agent.is_dead for agent in self.world.agents.values()):
                log_error(f"All agents are dead at tick {self.tick}; stopping")
                break

        summary = {
            "ticks": self.tick,
            "time_ms": self.clock.now,
            "alive": [a.entity_id for a in self.world.agents.values() if not a.is_dead],
            "dead": [a.entity_id for a in self.world.agents.values() if a.is_dead],
            "decisions": self.engine.stats(),
            "decision_failures": len(self.decision_failures),
        }
        log_info(f"Simulation finished after {self.tick} ticks")
        return summary

    def snapshot(self) -> WorldSnapshot:
        agents = []
        for agent in self.world.agents.values():
            state = self.engine.ai_states.peek(agent.entity_id)
            agents.append(
                agent.snapshot(
                    intent=state.intent if state else "",
                    bubble=state.bubble if state else None,
                )
            )
        entities = [
            EntitySnapshot(
                entity_id=entity.entity_id,
                type=entity.type,
                x=entity.x,
                y=entity.y,
                items=entity.inventory.types() if entity.inventory is not None else [],
                fuel=getattr(entity, "fuel", None),
            )
            for entity in self.world.entities.values()
        ]
        return WorldSnapshot(time_ms=self.clock.now, tick=self.tick, agents=agents, entities=entities)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _tick_vitals(self, agent: Agent, dt_ms: float) -> None:
        if agent.is_dead:
            return

        warmth_source = self.world.nearest_warmth_source(agent.x, agent.y, burning_only=True)
        self.vitals.tick(agent, dt_ms, warmth_source)
        if agent.is_dead:
            return

        critical = self.vitals.critical_needs(agent)
        for need in sorted(critical - self._critical.get(agent.entity_id, set())):
            self.engine.request(agent, TriggerContext.need_critical(need))
        self._critical[agent.entity_id] = critical

        health_low = self._is_health_low(agent)
        if health_low and not self._health_low.get(agent.entity_id, False):
            self.engine.request(agent, TriggerContext.health_low())
        self._health_low[agent.entity_id] = health_low

        if self.vitals.needs_forced_sleep(agent):
            log_deterministic(f"[{agent.name}] Exhausted; falling asleep")
            self.executor.execute_action(agent, NextAction(name="sleep"))

    def _is_health_low(self, agent: Agent) -> bool:
        return agent.vitals.health < self.settings.decision.health_low_threshold

    def _maybe_start_decision(self, agent: Agent, now: float) -> None:
        if agent.entity_id in self._tasks:
            return
        context = self.engine.evaluate(agent, now)
        if context is None:
            return
        self._tasks[agent.entity_id] = asyncio.create_task(
            self.engine.trigger_decision(agent, context),
            name=f"decision-{agent.entity_id}",
        )

    def _harvest_tasks(self) -> None:
        for agent_id, task in list(self._tasks.items()):
            if not task.done():
                continue
            del self._tasks[agent_id]
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                self.decision_failures.append((self.tick, agent_id, exc))
                self._unreported[agent_id] = exc

    def _raise_failures(self) -> None:
        if not self._unreported:
            return
        errors, self._unreported = self._unreported, {}
        if self.raise_on_decision_error:
            raise DecisionFailuresError(tick=self.tick, errors=errors)


__all__ = ["Simulation", "DecisionFailuresError", "TickListener"]
