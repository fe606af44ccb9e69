"""Tests for composite and instantaneous agent actions."""

import random

import pytest

from campfire.agent import Agent
from campfire.clock import SimulationClock
from campfire.schemas import ErrorKind, Item, Vitals
from campfire.world import World


def _setup(*items, x=100.0, y=100.0, **vitals):
    world = World()
    clock = SimulationClock()
    agent = Agent(
        "lira",
        x,
        y,
        world=world,
        clock=clock,
        vitals=Vitals(**vitals),
        items=[Item(type=item) for item in items],
        rng=random.Random(3),
    )
    world.add_agent(agent)
    return world, clock, agent


def _apples(world, x, y, count=2):
    return world.spawn("tree", x, y, items=[Item(type="apple") for _ in range(count)], capacity=4)


def test_collect_walks_to_far_target_then_harvests():
    world, clock, agent = _setup()
    tree = _apples(world, 300, 100)
    results = []

    agent.collect(tree, "apple", results.append)
    assert agent.action_state.name == "moving_to"
    assert not agent.is_collecting

    agent.x = 290
    agent.actions.update(clock.now)
    assert agent.is_collecting
    assert results == []

    clock.advance(agent.settings.actions.harvest_ms["tree"] / 2)
    agent.actions.update(clock.now)
    assert agent.collection_progress().progress == pytest.approx(0.5)

    clock.advance(agent.settings.actions.harvest_ms["tree"] / 2)
    agent.actions.update(clock.now)

    assert results[0].success
    assert agent.inventory.types() == ["apple"]
    assert tree.inventory.count("apple") == 1
    assert not agent.is_collecting


def test_collected_item_is_in_exactly_one_inventory():
    world, clock, agent = _setup()
    tree = _apples(world, 120, 100, count=1)
    results = []

    agent.collect(tree, "apple", results.append)
    clock.advance(agent.settings.actions.harvest_ms["tree"])
    agent.actions.update(clock.now)

    item = results[0].item
    assert item in agent.inventory
    assert item not in tree.inventory
    # Sources stay in the world when emptied
    assert world.contains(tree)


def test_collect_with_full_inventory_changes_nothing():
    world, _, agent = _setup("stick", "stick")
    tree = _apples(world, 300, 100)
    results = []

    agent.collect(tree, "apple", results.append)

    assert results[0].reason == ErrorKind.INVENTORY_FULL
    assert tree.inventory.count("apple") == 2
    assert agent.inventory.types() == ["stick", "stick"]
    assert agent.actions.machine.is_idle


def test_ground_item_disappears_once_picked_up():
    world, clock, agent = _setup()
    stick = world.spawn("stick", 110, 100, items=[Item(type="stick")])
    results = []

    agent.collect(stick, "stick", results.append)
    clock.advance(agent.settings.actions.ground_pickup_ms)
    agent.actions.update(clock.now)

    assert results[0].success
    assert not world.contains(stick)


def test_failed_transfer_returns_item_to_source():
    world, clock, agent = _setup("stick")
    tree = _apples(world, 120, 100)
    results = []

    agent.collect(tree, "apple", results.append)
    agent.inventory.add(Item(type="berry"))
    clock.advance(agent.settings.actions.harvest_ms["tree"])
    agent.actions.update(clock.now)

    assert results[0].reason == ErrorKind.COLLECTION_FAILED
    assert tree.inventory.count("apple") == 2
    assert agent.inventory.types() == ["stick", "berry"]


def test_new_action_cancels_collection_silently():
    world, clock, agent = _setup()
    tree = _apples(world, 120, 100)
    results = []

    agent.collect(tree, "apple", results.append)
    agent.wander(50_000)
    clock.advance(agent.settings.actions.harvest_ms["tree"])
    agent.actions.update(clock.now)

    assert results == []
    assert tree.inventory.count("apple") == 2


def test_collect_missing_item_fails():
    world, _, agent = _setup()
    tree = _apples(world, 120, 100)
    results = []

    agent.collect(tree, "berry", results.append)

    assert results[0].reason == ErrorKind.ITEM_NOT_FOUND


def test_add_fuel_consumes_one_item_and_clamps():
    world, _, agent = _setup("stick", "stick")
    bonfire = world.spawn_bonfire(120, 100, fuel=95)
    results = []

    agent.add_fuel(bonfire, results.append)

    assert results[0].success
    assert results[0].fuel == bonfire.max_fuel
    assert bonfire.fuel == bonfire.max_fuel
    assert agent.inventory.count("stick") == 1


def test_add_fuel_without_fuel_or_fire():
    world, _, agent = _setup("apple")
    bonfire = world.spawn_bonfire(120, 100, fuel=50)
    results = []

    agent.add_fuel(bonfire, results.append)
    agent.inventory.add(Item(type="stick"))
    agent.add_fuel(None, results.append)

    assert [r.reason for r in results] == [ErrorKind.NO_FUEL, ErrorKind.NO_WARMTH_SOURCE]
    assert bonfire.fuel == 50


def test_eat_restores_food_and_rejects_non_food():
    _, _, agent = _setup("apple", "stick", food=50)
    results = []

    agent.eat("apple", results.append)
    agent.eat("stick", results.append)
    agent.eat("berry", results.append)

    assert results[0].success
    assert agent.vitals.food == pytest.approx(80)
    assert results[1].reason == ErrorKind.NOT_EDIBLE
    assert results[2].reason == ErrorKind.ITEM_NOT_IN_INVENTORY
    assert agent.inventory.types() == ["stick"]


def test_drop_places_item_near_agent():
    world, _, agent = _setup("stick")
    results = []

    agent.drop("stick", results.append)

    ground = results[0].entity
    scatter = agent.settings.actions.drop_scatter / 2
    assert world.contains(ground)
    assert ground.inventory.types() == ["stick"]
    assert abs(ground.x - agent.x) <= scatter
    assert abs(ground.y - agent.y) <= scatter
    assert agent.inventory.is_empty


def test_drop_unknown_item_fails():
    _, _, agent = _setup()
    results = []

    agent.drop("stick", results.append)

    assert results[0].reason == ErrorKind.ITEM_NOT_IN_INVENTORY


def test_repeated_add_fuel_never_exceeds_max():
    world, _, agent = _setup("stick", "stick")
    bonfire = world.spawn_bonfire(120, 100, fuel=85)
    levels = []

    for _ in range(3):
        agent.add_fuel(bonfire, lambda result: levels.append(result.fuel if result.success else result.reason))

    assert levels == [95, bonfire.max_fuel, ErrorKind.NO_FUEL]
    assert agent.inventory.is_empty


@pytest.mark.parametrize("action", ["collect", "add_fuel"])
def test_target_lost_on_the_way_reports_navigation_failure(action):
    world, clock, agent = _setup("stick")
    if action == "collect":
        target = _apples(world, 300, 100)
        start = lambda callback: agent.collect(target, "apple", callback)
    else:
        target = world.spawn_bonfire(300, 100, fuel=50)
        start = lambda callback: agent.add_fuel(target, callback)
    results = []

    start(results.append)
    assert agent.action_state.name == "moving_to"
    world.remove(target.entity_id)
    agent.actions.update(clock.now)

    assert results[0].reason == ErrorKind.NAVIGATION_FAILED
    assert results[0].inner.reason == ErrorKind.TARGET_NOT_FOUND
    assert results[0].summary() == "navigation_failed (target_not_found)"
    assert agent.inventory.types() == ["stick"]
