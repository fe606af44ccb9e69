"""Vitals engine: per-tick needs update and the flags derived from it.

The engine only mutates vitals and the ``is_dead`` flag. Forced sleep and
death interruption are read by the state machine and the trigger engine;
nothing here stops an action.
"""

from __future__ import annotations

from typing import Optional, Set

from .config import MovementSettings, VitalsSettings
from .entities import distance
from .logging_utils import log_error


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


class VitalsEngine:
    """Applies the need rates from ``VitalsSettings`` to agents."""

    def __init__(
        self,
        settings: Optional[VitalsSettings] = None,
        movement: Optional[MovementSettings] = None,
    ) -> None:
        self.settings = settings or VitalsSettings()
        self.movement = movement or MovementSettings()

    def tick(self, agent, dt_ms: float, warmth_source=None) -> None:
        """Advance ``agent``'s vitals by ``dt_ms`` simulated milliseconds.

        ``warmth_source`` is the nearest warmth-giving entity, if any. It only
        warms while burning and within ``warmth_radius``.
        """

        if agent.is_dead or dt_ms <= 0:
            return

        s = self.settings
        seconds = dt_ms / 1000.0
        vitals = agent.vitals

        food = vitals.food - s.food_decrease_rate * seconds

        if agent.is_sleeping:
            energy = vitals.energy + s.energy_sleep_rate * seconds
        elif agent.is_moving:
            rate = s.energy_run_rate if agent.is_running else s.energy_walk_rate
            energy = vitals.energy - rate * seconds
        else:
            energy = vitals.energy - s.energy_idle_rate * seconds

        if self._is_warmed(agent, warmth_source):
            warmth = vitals.warmth + s.warmth_increase_rate * seconds
        else:
            warmth = vitals.warmth - s.warmth_decrease_rate * seconds

        food, energy, warmth = _clamp(food), _clamp(energy), _clamp(warmth)

        critical = int(food < s.food_critical) + int(warmth < s.warmth_critical)
        health = vitals.health
        if critical:
            health -= s.health_decrease_rate * critical * seconds
        elif food > s.food_met and warmth > s.warmth_met and energy > s.energy_met:
            health += s.health_regen_rate * seconds
        health = _clamp(health)

        vitals.food = food
        vitals.energy = energy
        vitals.warmth = warmth
        vitals.health = health

        if health <= 0.0 and not agent.is_dead:
            agent.is_dead = True
            agent.is_sleeping = False
            agent.is_running = False
            log_error(f"[Vitals] {agent.name} has died")

    def _is_warmed(self, agent, warmth_source) -> bool:
        if warmth_source is None:
            return False
        if not getattr(warmth_source, "is_burning", True):
            return False
        return distance(agent, warmth_source) <= self.settings.warmth_radius

    # ------------------------------------------------------------------
    # Flags
    # ------------------------------------------------------------------

    def needs_forced_sleep(self, agent) -> bool:
        return (
            not agent.is_dead
            and not agent.is_sleeping
            and agent.vitals.energy <= self.settings.energy_force_sleep
        )

    def critical_needs(self, agent) -> Set[str]:
        needs = set()
        if agent.vitals.food < self.settings.food_critical:
            needs.add("food")
        if agent.vitals.warmth < self.settings.warmth_critical:
            needs.add("warmth")
        return needs

    def is_critical(self, agent) -> bool:
        return bool(self.critical_needs(agent))

    def speed_multiplier(self, agent) -> float:
        if agent.is_dead or agent.is_sleeping:
            return 0.0
        if agent.vitals.energy <= self.settings.energy_slow_walk:
            return self.movement.slow_multiplier
        return 1.0

    def can_run(self, agent) -> bool:
        return not agent.is_dead and agent.vitals.energy > self.settings.energy_no_run


__all__ = ["VitalsEngine"]
