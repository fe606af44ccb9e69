"""Tests for inventories, bonfires, the world container and simulated time."""

import pytest

from campfire.clock import Scheduler, SimulationClock
from campfire.entities import Bonfire, Inventory
from campfire.schemas import Item
from campfire.world import World


def test_inventory_refuses_items_when_full():
    inventory = Inventory(2, [Item(type="apple")])
    assert inventory.add(Item(type="stick"))
    assert not inventory.add(Item(type="berry"))
    assert inventory.types() == ["apple", "stick"]
    assert inventory.is_full


def test_inventory_take_removes_first_of_type():
    first = Item(type="stick")
    second = Item(type="stick")
    inventory = Inventory(3, [first, Item(type="apple"), second])

    assert inventory.take("stick") is first
    assert inventory.count("stick") == 1
    assert inventory.take("berry") is None


def test_inventory_rejects_over_capacity_initial_items():
    with pytest.raises(ValueError):
        Inventory(1, [Item(type="apple"), Item(type="apple")])


def test_bonfire_fuel_is_clamped():
    bonfire = Bonfire(entity_id="bonfire-1", type="bonfire", x=0, y=0, fuel=95.0)
    assert bonfire.add_fuel(10.0) == 100.0
    bonfire.burn(dt_ms=1_000_000, rate_per_s=1.0)
    assert bonfire.fuel == 0.0
    assert not bonfire.is_burning


def test_world_burns_bonfires_and_rejects_duplicate_ids():
    world = World()
    bonfire = world.spawn_bonfire(100, 100, fuel=10.0, entity_id="fire")
    world.update(2000)
    assert bonfire.fuel == pytest.approx(10.0 - world.settings.bonfire_burn_rate * 2)

    with pytest.raises(ValueError):
        world.spawn("tree", 0, 0, entity_id="fire")


def test_world_closest_breaks_ties_by_insertion_order():
    world = World()
    first = world.spawn("tree", 110, 100, items=[Item(type="apple")])
    world.spawn("tree", 90, 100, items=[Item(type="apple")])

    found = world.closest(100, 100, predicate=lambda e: e.type == "tree")
    assert found is first


def test_scheduler_runs_due_callbacks_in_order():
    clock = SimulationClock()
    scheduler = Scheduler(clock)
    calls = []

    scheduler.call_later(200, calls.append, "late")
    scheduler.call_later(100, calls.append, "early")
    cancelled = scheduler.call_later(100, calls.append, "cancelled")
    cancelled.cancel()

    clock.advance(150)
    assert scheduler.run_due() == 1
    clock.advance(50)
    scheduler.run_due()

    assert calls == ["early", "late"]
    assert len(scheduler) == 0


def test_clock_never_goes_backwards():
    clock = SimulationClock()
    with pytest.raises(ValueError):
        clock.advance(-1)
