"""Context assembly for decision prompts.

``build_decision_context`` gathers everything the decision service is shown
about one agent: need words, inventory, ranked nearby entities, useful
remembered places, recent action outcomes, the current intent/plan, why the
agent is deciding now and the menu of legal actions. ``DecisionContext``
then offers the text and JSON views the prompt templates draw from.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config import SimulationSettings
from ..entities import distance
from ..execution import ActionOption, legal_actions
from ..perception import remembered_out_of_sight
from ..schemas import ActionRecord
from .cadence import TriggerContext
from .translator import describe_needs, memory_hints, nearby_entities


def history_line(record: ActionRecord) -> str:
    if record.pending and not record.superseded:
        mark = "⏳"
    elif record.result is not None and record.result.success:
        mark = "✅"
    else:
        mark = "❌"
    return f"{mark} {record.describe()}"


@dataclass
class DecisionContext:
    """Structured context passed to the decide prompt."""

    agent_id: str
    name: str
    needs: List[str] = field(default_factory=list)
    inventory: List[str] = field(default_factory=list)
    capacity: int = 0
    nearby: List[str] = field(default_factory=list)
    memories: List[str] = field(default_factory=list)
    history: List[str] = field(default_factory=list)
    intent: str = ""
    plan: List[str] = field(default_factory=list)
    trigger: str = ""
    actions: List[ActionOption] = field(default_factory=list)
    # Raw state for rule-based services; never rendered into prompts
    vitals: Dict[str, float] = field(default_factory=dict)
    visible: List[Dict[str, Any]] = field(default_factory=list)
    remembered: List[str] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def action_names(self) -> List[str]:
        return [option.name for option in self.actions]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "name": self.name,
            "needs": self.needs,
            "inventory": self.inventory,
            "capacity": self.capacity,
            "nearby": self.nearby,
            "memories": self.memories,
            "history": self.history,
            "intent": self.intent,
            "plan": self.plan,
            "trigger": self.trigger,
            "actions": [option.model_dump() for option in self.actions],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), indent=2, ensure_ascii=False)

    def situation_text(self) -> str:
        feeling = ", ".join(self.needs) if self.needs else "fine"
        return f"You feel {feeling}.\n{self.trigger}".rstrip()

    def inventory_text(self) -> str:
        if not self.inventory:
            return f"empty (room for {self.capacity})"
        return f"{', '.join(self.inventory)} ({len(self.inventory)}/{self.capacity})"

    def nearby_text(self) -> str:
        return "\n".join(f"- {line}" for line in self.nearby) if self.nearby else "- nothing useful"

    def memories_text(self) -> str:
        return ", ".join(self.memories) if self.memories else "nothing useful"

    def history_text(self) -> str:
        return "\n".join(self.history) if self.history else "- (none yet)"

    def plan_text(self) -> str:
        if not self.intent and not self.plan:
            return "none"
        steps = " → ".join(self.plan) if self.plan else "(no steps)"
        return f"{self.intent or '(no intent)'}: {steps}"

    def actions_text(self) -> str:
        lines = []
        for option in self.actions:
            args = ", ".join(f"{key}: {hint}" for key, hint in option.args.items())
            signature = f"{option.name}({args})" if args else option.name
            lines.append(f"- {signature}: {option.description}")
        return "\n".join(lines)

    def summary(self) -> str:
        """Human-readable situation, one section per heading."""

        return "\n\n".join(
            [
                f"CURRENT SITUATION:\n{self.situation_text()}",
                f"INVENTORY:\n{self.inventory_text()}",
                f"WHAT YOU SEE:\n{self.nearby_text()}",
                f"REMEMBERED LOCATIONS:\n{self.memories_text()}",
                f"RECENT ACTIONS:\n{self.history_text()}",
                f"CURRENT PLAN:\n{self.plan_text()}",
            ]
        )


def build_decision_context(
    agent,
    ai_state,
    trigger: Optional[TriggerContext],
    world,
    settings: SimulationSettings,
    now: float,
) -> DecisionContext:
    """Assemble the prompt context for ``agent`` at simulated time ``now``."""

    translator = settings.translator
    perceived = list(agent.perceived.values())
    memories = remembered_out_of_sight(agent, now, settings.perception.memory_horizon_ms)
    records = ai_state.recent_history(settings.decision.history_in_prompt)

    return DecisionContext(
        agent_id=agent.agent_id,
        name=agent.name,
        needs=describe_needs(agent.vitals, translator),
        inventory=agent.inventory.types(),
        capacity=agent.inventory.capacity,
        nearby=nearby_entities(perceived, agent, agent.vitals, translator),
        memories=memory_hints(memories, agent, agent.vitals, translator),
        history=[history_line(record) for record in records],
        intent=ai_state.intent,
        plan=list(ai_state.plan),
        trigger=trigger.describe() if trigger is not None else "",
        actions=legal_actions(agent, world, settings),
        vitals=agent.vitals.as_dict(),
        visible=[_visible_entry(entity, agent) for entity in perceived],
        remembered=[memory.entity_type for memory in memories],
    )


def _visible_entry(entity, agent) -> Dict[str, Any]:
    inventory = getattr(entity, "inventory", None)
    entry: Dict[str, Any] = {
        "id": entity.entity_id,
        "type": entity.type,
        "distance": distance(entity, agent),
        "items": inventory.types() if inventory is not None else [],
    }
    if hasattr(entity, "fuel"):
        entry["fuel"] = entity.fuel
    return entry


__all__ = ["DecisionContext", "build_decision_context", "history_line"]
