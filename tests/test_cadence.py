"""Tests for trigger contexts, rate limiting and the trigger policy."""

from campfire.agent import Agent
from campfire.clock import SimulationClock
from campfire.cognition.cadence import RateLimiter, TriggerContext, TriggerPolicy, pursuit_category
from campfire.cognition.state import AIStateRegistry
from campfire.config import DecisionSettings, SimulationSettings
from campfire.entities import PositionTarget, WorldEntity
from campfire.movement import IDLE, MovingTo, Searching, Wandering
from campfire.registry import Category
from campfire.schemas import ActionResult, ErrorKind, Vitals
from campfire.world import World


def _setup(**vitals):
    world = World()
    clock = SimulationClock()
    agent = Agent("lira", 100, 100, world=world, clock=clock, vitals=Vitals(**vitals))
    world.add_agent(agent)
    state = AIStateRegistry(SimulationSettings()).get(agent.entity_id)
    state.enabled = True
    return agent, state


def _entity(entity_type):
    return WorldEntity(entity_id=f"{entity_type}-1", type=entity_type, x=0, y=0)


def test_rate_limiter_window_boundary():
    limiter = RateLimiter(max_calls=2, window_ms=1000)
    limiter.record(0)
    limiter.record(100)

    assert not limiter.allows(999)
    # The call at t=0 leaves the window exactly window_ms later
    assert limiter.allows(1000)

    limiter.record(1000)
    assert limiter.calls_in_window(1000) == 2
    assert list(limiter.calls) == [100, 1000]


def test_rate_limiter_minimum_spacing():
    limiter = RateLimiter(max_calls=10, window_ms=10_000, min_spacing_ms=2000)
    assert limiter.allows(0)
    limiter.record(0)

    assert not limiter.allows(1999)
    assert limiter.allows(2000)
    assert limiter.last_call == 0


def test_gates_block_every_trigger_kind():
    agent, state = _setup()
    policy = TriggerPolicy()
    urgent = TriggerContext.manual()

    assert policy.should_trigger(agent, state, urgent, 0)

    state.pending = True
    assert not policy.should_trigger(agent, state, urgent, 0)
    state.pending = False

    assert not policy.should_trigger(agent, state, urgent, 0, is_collecting=True)

    agent.is_sleeping = True
    assert not policy.should_trigger(agent, state, urgent, 0)
    agent.is_sleeping = False

    state.enabled = False
    assert not policy.should_trigger(agent, state, urgent, 0)
    state.enabled = True

    state.limiter.record(0)
    assert not policy.should_trigger(agent, state, urgent, 100)

    agent.is_dead = True
    assert not policy.should_trigger(agent, state, urgent, 60_000)


def test_periodic_trigger_uses_idle_timer_then_heartbeat():
    agent, state = _setup()
    settings = DecisionSettings()
    policy = TriggerPolicy(settings)
    periodic = TriggerContext.periodic()

    state.limiter.record(0)
    agent.wander(120_000)
    assert not policy.should_trigger(agent, state, periodic, 3000)
    assert policy.should_trigger(agent, state, periodic, settings.heartbeat_ms)

    agent.stop_current_action()
    assert not policy.should_trigger(agent, state, periodic, 3000)
    assert policy.should_trigger(agent, state, periodic, settings.idle_trigger_ms)


def test_low_health_triggers_without_waiting():
    agent, state = _setup(health=20)
    policy = TriggerPolicy()
    state.limiter.record(0)
    agent.wander(120_000)

    assert policy.should_trigger(agent, state, TriggerContext.periodic(), 3000)


def test_new_entity_interrupts_only_when_relevant():
    agent, state = _setup()
    policy = TriggerPolicy()
    state.limiter.record(0)
    agent.search_for("apple")

    assert not policy.should_trigger(agent, state, TriggerContext.new_entity(_entity("grass")), 3000)
    assert policy.should_trigger(agent, state, TriggerContext.new_entity(_entity("bonfire")), 3000)
    assert policy.should_trigger(agent, state, TriggerContext.new_entity(_entity("wolf")), 3000)


def test_interrupt_rules():
    policy = TriggerPolicy()
    searching = Searching(item_type="apple", target_type="tree", category=Category.FOOD, deadline=0)
    to_fire = MovingTo(target=_entity("bonfire"), arrival_distance=20)
    to_spot = MovingTo(target=PositionTarget(x=1, y=1), arrival_distance=20)
    to_tree_memory = MovingTo(target=PositionTarget(x=1, y=1, type="tree", from_memory=True), arrival_distance=20)

    assert policy.interrupts(IDLE, _entity("wolf"))
    assert not policy.interrupts(IDLE, _entity("tree"))
    assert policy.interrupts(Wandering(deadline=0), _entity("stick"))
    assert not policy.interrupts(searching, _entity("tree"))
    assert policy.interrupts(searching, _entity("stick"))
    assert not policy.interrupts(to_fire, _entity("bonfire"))
    assert policy.interrupts(to_fire, _entity("grass"))
    assert policy.interrupts(to_spot, _entity("tree"))
    assert not policy.interrupts(to_tree_memory, _entity("grass"))
    assert not policy.interrupts(Wandering(deadline=0), _entity("rock"))


def test_pursuit_category():
    assert pursuit_category(IDLE) is None
    assert pursuit_category(MovingTo(target=_entity("grass"), arrival_distance=20)) == Category.FOOD
    assert (
        pursuit_category(Searching(item_type="stick", target_type="stick", category=None, deadline=0))
        == Category.FUEL
    )


def test_trigger_context_descriptions():
    failed = TriggerContext.action_completed("collect", ActionResult.fail(ErrorKind.ITEM_NOT_FOUND))
    assert failed.describe() == "Your last action (collect) failed: item_not_found."
    assert TriggerContext.action_completed("eat", ActionResult.ok()).describe() == "Your last action (eat) succeeded."
    assert TriggerContext.need_critical("warmth").describe() == "Your warmth just became critical."
    assert TriggerContext.new_entity(_entity("wolf")).describe() == "You just noticed a wolf."


def test_rate_limiter_accepts_exactly_the_limit_per_window():
    settings = DecisionSettings(min_call_spacing_ms=0)
    limiter = RateLimiter(settings.max_calls_per_window, settings.window_ms)
    accepted = []

    for now in range(0, 600, 100):
        if limiter.allows(now):
            limiter.record(now)
            accepted.append(now)

    assert accepted == [0, 100, 200, 300, 400]
    assert not limiter.allows(settings.window_ms - 1)
    assert limiter.allows(settings.window_ms)
