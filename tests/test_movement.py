"""Tests for the action state machine and default locomotion."""

import pytest

from campfire.agent import Agent
from campfire.clock import SimulationClock
from campfire.entities import PositionTarget
from campfire.movement import Locomotion, MovingTo
from campfire.perception import update_perception
from campfire.schemas import ErrorKind, Item, Vitals
from campfire.vitals import VitalsEngine
from campfire.world import World


def _setup(**vitals):
    world = World()
    clock = SimulationClock()
    agent = Agent("lira", 100, 100, world=world, clock=clock, vitals=Vitals(**vitals))
    world.add_agent(agent)
    return world, clock, agent


def test_wander_completes_at_deadline():
    _, clock, agent = _setup()
    results = []

    agent.wander(1000, results.append)
    assert agent.action_state.name == "wandering"
    assert agent.actions.machine.idle_since is None

    clock.advance(500)
    agent.actions.update(clock.now)
    assert results == []

    clock.advance(500)
    agent.actions.update(clock.now)
    assert [r.success for r in results] == [True]
    assert agent.actions.machine.is_idle
    assert agent.actions.machine.idle_since == 1000


def test_superseded_action_never_calls_back():
    _, clock, agent = _setup()
    first, second = [], []

    agent.move_to(PositionTarget(x=500, y=100), callback=first.append)
    agent.wander(100, second.append)
    clock.advance(100)
    agent.actions.update(clock.now)

    assert first == []
    assert len(second) == 1


def test_stop_current_action_is_silent():
    _, _, agent = _setup()
    results = []
    agent.wander(1000, results.append)

    agent.stop_current_action()

    assert agent.actions.machine.is_idle
    assert results == []


def test_search_finds_already_visible_holder_immediately():
    world, _, agent = _setup()
    tree = world.spawn("tree", 150, 100, items=[Item(type="apple")])
    update_perception(agent, world, 0, 150)
    results = []

    agent.search_for("apple", results.append)

    assert results[0].success
    assert results[0].target is tree
    assert agent.actions.machine.is_idle


def test_search_completes_when_match_comes_into_view():
    world, clock, agent = _setup()
    world.spawn("tree", 400, 100, items=[])
    tree = world.spawn("tree", 600, 100, items=[Item(type="apple")])
    results = []

    agent.search_for("apple", results.append)
    assert len(agent.events) == 1

    agent.x = 500
    update_perception(agent, world, clock.now, 150)

    assert len(results) == 1
    assert results[0].target is tree
    assert len(agent.events) == 0


def test_search_timeout_fires_once():
    _, clock, agent = _setup()
    results = []

    agent.search_for("berry", results.append)
    clock.advance(agent.settings.movement.search_duration_ms)
    agent.actions.update(clock.now)
    agent.actions.update(clock.now)

    assert len(results) == 1
    assert results[0].reason == ErrorKind.TIMEOUT


def test_search_for_unknown_type_fails_without_moving():
    _, _, agent = _setup()
    results = []

    agent.search_for("rock", results.append)

    assert results[0].reason == ErrorKind.UNKNOWN_ITEM_TYPE
    assert agent.actions.machine.is_idle


def test_sleep_health_interrupt_wins_over_wake_up():
    _, clock, agent = _setup(energy=95, health=10)
    results = []

    agent.sleep(results.append)
    agent.actions.update(clock.now)

    assert results[0].reason == ErrorKind.HP_CRITICAL
    assert results[0].interrupted
    assert not agent.is_sleeping


def test_sleep_ends_when_rested():
    _, clock, agent = _setup(energy=95)
    results = []

    agent.sleep(results.append)
    assert agent.is_sleeping
    agent.actions.update(clock.now)

    assert results[0].success
    assert not agent.is_sleeping


def test_move_to_arrival_and_vanished_target():
    world, clock, agent = _setup()
    stick = world.spawn("stick", 110, 100, items=[Item(type="stick")])
    arrived, vanished = [], []

    agent.move_to(stick, callback=arrived.append)
    agent.actions.update(clock.now)
    assert arrived[0].target is stick

    agent.move_to(stick, arrival_distance=1, callback=vanished.append)
    world.remove(stick.entity_id)
    agent.actions.update(clock.now)
    assert vanished[0].reason == ErrorKind.TARGET_NOT_FOUND


def test_dead_agent_refuses_actions():
    _, _, agent = _setup()
    agent.is_dead = True
    results = []

    agent.wander(1000, results.append)

    assert results[0].reason == ErrorKind.ENTITY_DEAD
    assert agent.actions.machine.is_idle


def test_locomotion_runs_toward_far_targets():
    world, _, agent = _setup()
    vitals = VitalsEngine()
    locomotion = Locomotion(world, vitals)
    state = MovingTo(target=PositionTarget(x=600, y=100), arrival_distance=20)

    locomotion.step(agent, state, 1000, 1000)

    movement = locomotion.settings
    assert agent.is_running
    assert agent.x == pytest.approx(100 + movement.walk_speed * movement.run_multiplier)
    assert agent.y == pytest.approx(100)


def test_locomotion_walks_when_tired_and_never_overshoots():
    world, _, agent = _setup(energy=20)
    locomotion = Locomotion(world, VitalsEngine())
    state = MovingTo(target=PositionTarget(x=130, y=100), arrival_distance=20)

    locomotion.step(agent, state, 1000, 1000)

    assert not agent.is_running
    assert agent.x == pytest.approx(130)
