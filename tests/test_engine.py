"""Tests for the decision trigger engine and the bundled decision services."""

import asyncio

import pytest

from campfire.agent import Agent
from campfire.clock import Scheduler, SimulationClock
from campfire.cognition import (
    DecisionEngine,
    HeuristicDecisionService,
    QueuedDecisionService,
    TriggerContext,
    TriggerKind,
)
from campfire.cognition.context import DecisionContext
from campfire.config import SimulationSettings
from campfire.errors import EmptyResponseError
from campfire.execution import ActionExecutor, ActionOption
from campfire.perception import update_perception
from campfire.schemas import Item, Vitals
from campfire.world import World


def _decision(name, **args):
    return {
        "intent": f"do {name}",
        "plan": [name],
        "next_action": {"name": name, "args": args},
        "bubble": {"text": name, "emoji": "🙂"},
    }


def _setup(service, *items, **vitals):
    settings = SimulationSettings()
    world = World()
    clock = SimulationClock()
    scheduler = Scheduler(clock)
    agent = Agent(
        "lira",
        100,
        100,
        world=world,
        clock=clock,
        settings=settings,
        name="Lira",
        vitals=Vitals(**vitals),
        items=[Item(type=item) for item in items],
    )
    world.add_agent(agent)
    executor = ActionExecutor(world, clock, settings)
    engine = DecisionEngine(executor, service, scheduler, settings=settings)
    engine.attach(agent)
    return engine, agent, clock, scheduler


class BlockingService:
    """Answers only once released, so a request can be observed in flight."""

    def __init__(self, response):
        self.release = asyncio.Event()
        self.calls = 0
        self.response = response

    async def complete(self, system_prompt, user_prompt, *, context=None):
        self.calls += 1
        await self.release.wait()
        return self.response


@pytest.mark.asyncio
async def test_disabled_agent_is_never_asked():
    service = QueuedDecisionService([_decision("wander")])
    engine, agent, _, _ = _setup(service)

    assert await engine.trigger_decision(agent) is None
    assert service.prompts == []


@pytest.mark.asyncio
async def test_decision_is_executed_and_remembered():
    service = QueuedDecisionService([_decision("eat", foodType="apple")])
    engine, agent, _, _ = _setup(service, "apple", food=40)
    engine.enable(agent.entity_id)

    decision = await engine.trigger_decision(agent)

    state = engine.state_for(agent.entity_id)
    assert decision.next_action.name == "eat"
    assert agent.vitals.food == pytest.approx(70)
    assert state.intent == "do eat"
    assert state.plan == ["eat"]
    assert state.bubble.text == "eat"
    assert state.calls == 1
    assert state.limiter.last_call == 0
    assert not state.pending
    system_prompt, user_prompt = service.prompts[0]
    assert "Lira" in system_prompt
    assert "AVAILABLE ACTIONS:" in user_prompt

    # Minimum spacing keeps an immediate second request out
    assert await engine.trigger_decision(agent) is None


@pytest.mark.asyncio
async def test_unparseable_answer_is_retried_once():
    service = QueuedDecisionService(["not json", _decision("wander")])
    engine, agent, _, _ = _setup(service)
    engine.enable(agent.entity_id)

    decision = await engine.trigger_decision(agent)

    assert decision.next_action.name == "wander"
    assert len(service.prompts) == 2
    assert "could not be used as a decision" in service.prompts[1][1]
    assert agent.action_state.name == "wandering"


@pytest.mark.asyncio
async def test_service_failure_is_counted_and_reraised():
    engine, agent, _, _ = _setup(QueuedDecisionService())
    engine.enable(agent.entity_id)

    with pytest.raises(EmptyResponseError):
        await engine.trigger_decision(agent)

    state = engine.state_for(agent.entity_id)
    assert state.failures == 1
    assert not state.pending
    assert engine.stats()["failures"] == 1


@pytest.mark.asyncio
async def test_only_one_request_in_flight_per_agent():
    service = BlockingService('{"next_action": {"name": "wander"}}')
    engine, agent, _, _ = _setup(service)
    engine.enable(agent.entity_id)

    task = asyncio.create_task(engine.trigger_decision(agent))
    await asyncio.sleep(0)

    assert engine.state_for(agent.entity_id).pending
    assert await engine.trigger_decision(agent, TriggerContext.manual()) is None

    service.release.set()
    decision = await task

    assert decision.next_action.name == "wander"
    assert service.calls == 1
    assert not engine.state_for(agent.entity_id).pending


@pytest.mark.asyncio
async def test_completion_queues_follow_up_after_delay():
    service = QueuedDecisionService([_decision("eat", foodType="apple")])
    engine, agent, clock, scheduler = _setup(service, "apple")
    engine.enable(agent.entity_id)

    await engine.trigger_decision(agent)
    assert engine.queued(agent.entity_id) == []

    clock.advance(engine.settings.actions.follow_up_delay_ms)
    scheduler.run_due()

    queued = engine.queued(agent.entity_id)
    assert [ctx.kind for ctx in queued] == [TriggerKind.ACTION_COMPLETED]
    assert queued[0].result.success


def test_rate_limited_urgent_context_waits_in_queue():
    engine, agent, _, _ = _setup(QueuedDecisionService())
    engine.enable(agent.entity_id)
    state = engine.state_for(agent.entity_id)
    state.limiter.record(0)
    agent.wander(120_000)

    engine.request(agent, TriggerContext.need_critical("food"))
    assert engine.evaluate(agent, 100) is None
    assert [ctx.kind for ctx in engine.queued(agent.entity_id)] == [TriggerKind.NEED_CRITICAL]

    chosen = engine.evaluate(agent, engine.settings.decision.min_call_spacing_ms)
    assert chosen.kind == TriggerKind.NEED_CRITICAL
    assert engine.queued(agent.entity_id) == []


def test_evaluate_prefers_most_urgent_context():
    engine, agent, _, _ = _setup(QueuedDecisionService())
    engine.enable(agent.entity_id)

    engine.request(agent, TriggerContext.periodic())
    engine.request(agent, TriggerContext.need_critical("warmth"))
    engine.request(agent, TriggerContext.health_low())

    assert engine.evaluate(agent, 0).kind == TriggerKind.HEALTH_LOW


def test_new_entities_queue_triggers_while_enabled():
    engine, agent, _, _ = _setup(QueuedDecisionService())
    tree = agent.actions.world.spawn("tree", 150, 100, items=[Item(type="apple")])

    update_perception(agent, agent.actions.world, 0, 150)
    assert engine.queued(agent.entity_id) == []

    engine.enable(agent.entity_id)
    agent.x = 900
    update_perception(agent, agent.actions.world, 100, 150)
    agent.x = 100
    update_perception(agent, agent.actions.world, 200, 150)

    queued = engine.queued(agent.entity_id)
    assert [ctx.kind for ctx in queued] == [TriggerKind.NEW_ENTITY]
    assert queued[0].entity is tree

    engine.disable(agent.entity_id)
    assert engine.queued(agent.entity_id) == []


def test_forget_releases_perception_subscription():
    engine, agent, _, _ = _setup(QueuedDecisionService())
    assert len(agent.events) == 1

    engine.forget(agent.entity_id)

    assert len(agent.events) == 0
    assert agent.entity_id not in engine.ai_states


def _heuristic_context(**fields):
    base = {
        "agent_id": "lira",
        "name": "Lira",
        "vitals": {"food": 100.0, "energy": 100.0, "warmth": 100.0, "health": 100.0},
        "actions": [ActionOption(name=name) for name in ("collect", "moveTo", "searchFor", "wander")],
    }
    base.update(fields)
    return DecisionContext(**base)


def test_heuristic_eats_when_hungry_and_holding_food():
    context = _heuristic_context(
        inventory=["apple"],
        vitals={"food": 30.0, "energy": 100.0, "warmth": 100.0, "health": 100.0},
        actions=[ActionOption(name="eat"), ActionOption(name="wander")],
    )

    decision = HeuristicDecisionService().decide(context)

    assert decision["next_action"] == {"name": "eat", "args": {"foodType": "apple"}}


def test_heuristic_collects_visible_food():
    context = _heuristic_context(
        vitals={"food": 30.0, "energy": 100.0, "warmth": 100.0, "health": 100.0},
        visible=[{"id": "tree-1", "type": "tree", "distance": 80.0, "items": ["apple"]}],
    )

    decision = HeuristicDecisionService().decide(context)

    assert decision["next_action"] == {"name": "collect", "args": {"target": "tree-1", "itemType": "apple"}}


def test_heuristic_searches_for_fire_when_cold():
    context = _heuristic_context(vitals={"food": 100.0, "energy": 100.0, "warmth": 20.0, "health": 100.0})

    decision = HeuristicDecisionService().decide(context)

    assert decision["next_action"] == {"name": "searchFor", "args": {"itemType": "bonfire"}}


@pytest.mark.asyncio
async def test_heuristic_service_needs_structured_context():
    with pytest.raises(EmptyResponseError):
        await HeuristicDecisionService().complete("system", "user")
