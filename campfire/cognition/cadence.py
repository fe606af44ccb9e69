"""When to consult the decision service.

Three pieces live here:

* ``TriggerContext`` describes why an evaluation is happening (an action
  just finished, a need turned critical, something new came into view...).
* ``RateLimiter`` bounds calls per agent: at most N in a sliding window and
  a minimum gap between consecutive calls.
* ``TriggerPolicy`` is the pure decision. It reads agent and bookkeeping
  state and never mutates either; recording the call is the engine's job.

Interrupt comparisons for newly perceived entities go through exactly one
pair of functions: ``pursuit_category`` for what the agent is after and
``interest_category`` (from the registry) for what it just saw.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Deque, Optional

from ..config import DecisionSettings
from ..movement import ActionState, Idle, MovingTo, Searching, Wandering
from ..registry import Category, interest_category
from ..schemas import ActionResult


class TriggerKind(str, Enum):
    ACTION_COMPLETED = "action_completed"
    NEED_CRITICAL = "need_critical"
    HEALTH_LOW = "health_low"
    NEW_ENTITY = "new_entity"
    PERIODIC = "periodic"
    MANUAL = "manual"


# Contexts that trigger as soon as the gates pass
URGENT_KINDS = frozenset(
    {
        TriggerKind.ACTION_COMPLETED,
        TriggerKind.NEED_CRITICAL,
        TriggerKind.HEALTH_LOW,
        TriggerKind.MANUAL,
    }
)


@dataclass(frozen=True)
class TriggerContext:
    """Why a decision is being considered for an agent."""

    kind: TriggerKind = TriggerKind.PERIODIC
    action_name: Optional[str] = None
    result: Optional[ActionResult] = None
    entity: Any = None
    need: Optional[str] = None

    @classmethod
    def action_completed(cls, action_name: str, result: ActionResult) -> "TriggerContext":
        return cls(TriggerKind.ACTION_COMPLETED, action_name=action_name, result=result)

    @classmethod
    def need_critical(cls, need: str) -> "TriggerContext":
        return cls(TriggerKind.NEED_CRITICAL, need=need)

    @classmethod
    def health_low(cls) -> "TriggerContext":
        return cls(TriggerKind.HEALTH_LOW)

    @classmethod
    def new_entity(cls, entity: Any) -> "TriggerContext":
        return cls(TriggerKind.NEW_ENTITY, entity=entity)

    @classmethod
    def periodic(cls) -> "TriggerContext":
        return cls(TriggerKind.PERIODIC)

    @classmethod
    def manual(cls) -> "TriggerContext":
        return cls(TriggerKind.MANUAL)

    def describe(self) -> str:
        """One line for the prompt explaining why the agent is deciding now."""

        if self.kind == TriggerKind.ACTION_COMPLETED:
            outcome = "succeeded" if self.result and self.result.success else "failed"
            text = f"Your last action ({self.action_name}) {outcome}"
            if self.result is not None and not self.result.success:
                text += f": {self.result.summary()}"
            return text + "."
        if self.kind == TriggerKind.NEED_CRITICAL:
            return f"Your {self.need} just became critical."
        if self.kind == TriggerKind.HEALTH_LOW:
            return "Your health is dangerously low."
        if self.kind == TriggerKind.NEW_ENTITY:
            return f"You just noticed a {getattr(self.entity, 'type', 'thing')}."
        if self.kind == TriggerKind.MANUAL:
            return "Decide what to do."
        return "Time to reconsider what you are doing."


class RateLimiter:
    """Sliding-window call limiter with a minimum spacing between calls.

    ``allows`` is a pure check; ``record`` prunes expired calls and logs a
    new one.
    """

    def __init__(self, max_calls: int, window_ms: float, min_spacing_ms: float = 0.0) -> None:
        self.max_calls = max_calls
        self.window_ms = window_ms
        self.min_spacing_ms = min_spacing_ms
        self.calls: Deque[float] = deque()
        self.last_call: Optional[float] = None

    def calls_in_window(self, now: float) -> int:
        return sum(1 for t in self.calls if now - t < self.window_ms)

    def allows(self, now: float) -> bool:
        if self.calls_in_window(now) >= self.max_calls:
            return False
        if self.last_call is not None and now - self.last_call < self.min_spacing_ms:
            return False
        return True

    def record(self, now: float) -> None:
        while self.calls and now - self.calls[0] >= self.window_ms:
            self.calls.popleft()
        self.calls.append(now)
        self.last_call = now


def pursuit_category(state: ActionState) -> Optional[Category]:
    """Category of whatever the agent is currently after, if anything.

    Searching uses the searched item's category. Moving uses the target's
    category, looked up from its type when the target carries none.
    """

    if isinstance(state, Searching):
        return state.category or interest_category(state.item_type)
    if isinstance(state, MovingTo):
        target_type = getattr(state.target, "type", None)
        return interest_category(target_type) if target_type else None
    return None


class TriggerPolicy:
    """Pure trigger rules over one agent's state and bookkeeping."""

    def __init__(self, settings: Optional[DecisionSettings] = None) -> None:
        self.settings = settings or DecisionSettings()

    def gates_pass(self, agent, ai_state, now: float, is_collecting: bool) -> bool:
        """Conditions that must hold before any trigger is considered."""

        if not ai_state.enabled or ai_state.pending or agent.is_dead:
            return False
        if not ai_state.limiter.allows(now):
            return False
        # Collecting and sleeping suppress every kind of trigger
        return not (is_collecting or agent.is_sleeping)

    def should_trigger(
        self,
        agent,
        ai_state,
        context: TriggerContext,
        now: float,
        is_collecting: bool = False,
    ) -> bool:
        if not self.gates_pass(agent, ai_state, now, is_collecting):
            return False

        if context.kind in URGENT_KINDS:
            return True
        if agent.vitals.health < self.settings.health_low_threshold:
            return True
        if context.kind == TriggerKind.NEW_ENTITY and context.entity is not None:
            if self.interrupts(agent.action_state, context.entity):
                return True

        idle_since = agent.actions.machine.idle_since
        if idle_since is not None and now - idle_since >= self.settings.idle_trigger_ms:
            return True

        last_call = ai_state.limiter.last_call
        return last_call is None or now - last_call >= self.settings.heartbeat_ms

    def interrupts(self, state: ActionState, entity) -> bool:
        """Whether seeing ``entity`` should interrupt the current pursuit."""

        seen = interest_category(getattr(entity, "type", ""))
        if seen == Category.THREAT:
            return True
        if seen is None or isinstance(state, Idle):
            return False
        if isinstance(state, Wandering):
            return True

        pursuing = pursuit_category(state)
        if pursuing is None:
            # Heading for a bare position is as aimless as wandering
            return isinstance(state, (Searching, MovingTo))
        return seen != pursuing


__all__ = [
    "TriggerKind",
    "TriggerContext",
    "RateLimiter",
    "TriggerPolicy",
    "pursuit_category",
]
