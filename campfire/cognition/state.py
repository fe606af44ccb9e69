"""Per-agent decision bookkeeping."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterator, List, Optional, Tuple

from ..config import SimulationSettings
from ..schemas import ActionRecord, ActionResult, Bubble, Decision
from .cadence import RateLimiter


@dataclass
class AgentAIState:
    """Everything the trigger engine remembers about one agent."""

    limiter: RateLimiter
    history: Deque[ActionRecord]
    enabled: bool = False
    pending: bool = False
    last_decision: Optional[Decision] = None
    intent: str = ""
    plan: List[str] = field(default_factory=list)
    bubble: Optional[Bubble] = None
    last_result: Optional[ActionResult] = None
    current_record: Optional[ActionRecord] = None
    calls: int = 0
    failures: int = 0

    def recent_history(self, limit: int) -> List[ActionRecord]:
        if limit <= 0:
            return []
        return list(self.history)[-limit:]


class AIStateRegistry:
    """Lazily creates ``AgentAIState`` on first reference."""

    def __init__(self, settings: Optional[SimulationSettings] = None) -> None:
        self.settings = settings or SimulationSettings()
        self._states: Dict[str, AgentAIState] = {}

    def get(self, agent_id: str) -> AgentAIState:
        state = self._states.get(agent_id)
        if state is None:
            decision = self.settings.decision
            state = AgentAIState(
                limiter=RateLimiter(
                    decision.max_calls_per_window,
                    decision.window_ms,
                    decision.min_call_spacing_ms,
                ),
                history=deque(maxlen=self.settings.actions.history_limit),
            )
            self._states[agent_id] = state
        return state

    def peek(self, agent_id: str) -> Optional[AgentAIState]:
        """The state if it exists, without creating one."""

        return self._states.get(agent_id)

    def remove(self, agent_id: str) -> None:
        self._states.pop(agent_id, None)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    def items(self) -> Iterator[Tuple[str, AgentAIState]]:
        return iter(list(self._states.items()))


__all__ = ["AgentAIState", "AIStateRegistry"]
