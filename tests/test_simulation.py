"""Tests for the tick loop: pipeline order, decision tasks and failure reporting."""

import asyncio

import pytest

from campfire.clock import SimulationClock
from campfire.cognition import QueuedDecisionService
from campfire.schemas import Item, Vitals
from campfire.simulation import DecisionFailuresError, Simulation
from campfire.world import World


class BlockingService:
    def __init__(self, response):
        self.release = asyncio.Event()
        self.calls = 0
        self.response = response

    async def complete(self, system_prompt, user_prompt, *, context=None):
        self.calls += 1
        await self.release.wait()
        return self.response


def _simulation(service=None, *, ai_enabled=True, items=(), raise_on_decision_error=False, **vitals):
    world = World()
    clock = SimulationClock()
    simulation = Simulation(
        world,
        clock=clock,
        decision_service=service if service is not None else QueuedDecisionService(),
        raise_on_decision_error=raise_on_decision_error,
    )
    agent = simulation.create_agent(
        "lira",
        400,
        400,
        name="Lira",
        vitals=Vitals(**vitals),
        items=[Item(type=item) for item in items],
        ai_enabled=ai_enabled,
    )
    return simulation, agent


@pytest.mark.asyncio
async def test_at_most_one_decision_in_flight_per_agent():
    service = BlockingService('{"next_action": {"name": "wander", "args": {"duration": 60000}}}')
    simulation, agent = _simulation(service)

    for _ in range(5):
        await simulation.step(100)

    assert service.calls == 1
    assert simulation.engine.state_for(agent.entity_id).pending

    service.release.set()
    await simulation.settle()

    assert agent.action_state.name == "wandering"
    assert simulation.engine.stats()["calls"] == 1


@pytest.mark.asyncio
async def test_critical_need_triggers_a_decision():
    service = QueuedDecisionService([{"intent": "eat", "next_action": {"name": "eat", "args": {"foodType": "apple"}}}])
    simulation, agent = _simulation(service, items=["apple"], food=30.005)

    await simulation.step(100)
    await simulation.settle()

    assert "Your food just became critical." in service.prompts[0][1]
    assert agent.inventory.is_empty
    assert agent.vitals.food == pytest.approx(59.995)


@pytest.mark.asyncio
async def test_decision_failures_are_recorded():
    simulation, agent = _simulation()

    await simulation.step(100)
    await simulation.settle()

    assert len(simulation.decision_failures) == 1
    tick, agent_id, exc = simulation.decision_failures[0]
    assert (tick, agent_id) == (1, agent.entity_id)
    assert not simulation.engine.state_for(agent.entity_id).pending


@pytest.mark.asyncio
async def test_decision_failures_raise_when_strict():
    simulation, agent = _simulation(raise_on_decision_error=True)

    with pytest.raises(DecisionFailuresError) as excinfo:
        await simulation.step(100)
        await simulation.settle()

    assert agent.entity_id in excinfo.value.errors
    assert "Remediation tips" in str(excinfo.value)


@pytest.mark.asyncio
async def test_exhausted_agent_falls_asleep():
    simulation, agent = _simulation(ai_enabled=False, energy=5.0)

    await simulation.step(100)

    assert agent.is_sleeping
    assert agent.action_state.name == "sleeping"


@pytest.mark.asyncio
async def test_run_stops_when_everyone_is_dead():
    simulation, agent = _simulation(ai_enabled=False, food=0, warmth=0, health=0.05)

    summary = await simulation.run(10, 100)

    assert summary["ticks"] == 1
    assert summary["dead"] == [agent.entity_id]
    assert summary["alive"] == []


@pytest.mark.asyncio
async def test_bonfire_warms_nearby_agent_and_burns():
    simulation, agent = _simulation(ai_enabled=False, warmth=50)
    bonfire = simulation.world.spawn_bonfire(420, 400, fuel=50)

    await simulation.run(10, 100)

    assert agent.vitals.warmth > 50
    assert bonfire.fuel < 50


@pytest.mark.asyncio
async def test_tick_listeners_and_snapshot():
    service = QueuedDecisionService([{"next_action": {"name": "wander"}, "bubble": {"text": "hm", "emoji": "🤔"}}])
    simulation, agent = _simulation(service)
    simulation.world.spawn("tree", 300, 300, items=[Item(type="apple")], entity_id="tree-1")
    ticks = []
    simulation.tick_listeners.append(lambda tick, sim: ticks.append(tick))

    await simulation.step(100)
    await simulation.settle()
    snapshot = simulation.snapshot()

    assert ticks == [1]
    assert snapshot.tick == 1
    assert snapshot.time_ms == 100
    assert snapshot.agents[0].bubble.emoji == "🤔"
    assert snapshot.agents[0].action_state == "wandering"
    assert snapshot.entities[0].entity_id == "tree-1"
    assert snapshot.entities[0].items == ["apple"]


@pytest.mark.asyncio
async def test_removed_agent_leaves_world_and_engine():
    simulation, agent = _simulation(ai_enabled=False)

    simulation.remove_agent(agent.entity_id)
    await simulation.step(100)

    assert agent.entity_id not in simulation.agents
    assert len(agent.events) == 0


@pytest.mark.asyncio
async def test_invariants_hold_over_a_multi_tick_run():
    from campfire.cognition import HeuristicDecisionService

    world = World()
    clock = SimulationClock()
    simulation = Simulation(world, clock=clock, decision_service=HeuristicDecisionService())
    world.spawn_bonfire(400, 400, fuel=30)
    world.spawn("tree", 300, 350, items=[Item(type="apple") for _ in range(3)], capacity=4)
    world.spawn("grass", 480, 460, items=[Item(type="berry") for _ in range(2)], capacity=3)
    for n in range(3):
        world.spawn("stick", 350 + 40 * n, 420, items=[Item(type="stick")])
    simulation.create_agent("lira", 380, 380, vitals=Vitals(food=45, warmth=40))
    simulation.create_agent("oren", 420, 420, vitals=Vitals(food=70, energy=30))
    violations = []

    def check(tick, sim):
        for agent_id, agent in sim.agents.items():
            state = sim.engine.ai_states.peek(agent_id)
            if state is not None and state.pending and agent_id not in sim._tasks:
                violations.append((tick, agent_id, "pending without task"))
            if len(agent.inventory) > agent.inventory.capacity:
                violations.append((tick, agent_id, "inventory over capacity"))
        holders = [a.inventory for a in sim.agents.values()]
        holders += [e.inventory for e in sim.world.entities.values() if e.inventory is not None]
        held = [id(item) for inventory in holders for item in inventory]
        if len(held) != len(set(held)):
            violations.append((tick, None, "item in two inventories"))

    simulation.tick_listeners.append(check)
    summary = await simulation.run(300, 100)

    assert violations == []
    assert summary["decision_failures"] == 0
    assert summary["decisions"]["calls"] >= 2


@pytest.mark.asyncio
async def test_empty_scripted_service_is_kept_and_filled_later():
    service = QueuedDecisionService()
    simulation, agent = _simulation(service)

    assert simulation.engine.service is service

    service.push({"next_action": {"name": "wander", "args": {"duration": 60000}}})
    await simulation.step(100)
    await simulation.settle()

    assert simulation.decision_failures == []
    assert len(service.prompts) == 1
    assert agent.action_state.name == "wandering"
