"""Decision services: where decisions come from.

Every service answers ``complete(system_prompt, user_prompt)`` with raw
text; parsing happens in ``campfire.llm_utils`` so all services share the
same fence tolerance and retry-with-feedback behaviour.

* ``LLMDecisionService`` asks a hosted or local model.
* ``QueuedDecisionService`` replays scripted responses (manual play and tests).
* ``HeuristicDecisionService`` applies fixed survival rules to the context,
  useful for running scenarios without any model.
"""

from __future__ import annotations

import json
from collections import deque
from typing import Any, Deque, Dict, Iterable, List, Optional, Protocol, Tuple, runtime_checkable

from ..config import Config, DecisionSettings
from ..errors import EmptyResponseError
from ..llm_utils import complete_text
from ..registry import Category, consumable_types, fuel_types, interest_category, warmth_source_types
from .context import DecisionContext


@runtime_checkable
class DecisionService(Protocol):
    """Anything that can answer a rendered decision prompt."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        context: Optional[DecisionContext] = None,
    ) -> str: ...


class LLMDecisionService:
    """Decision service backed by an LLM provider (mirascope or Ollama)."""

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        self.provider = provider or Config.LLM_PROVIDER
        self.model = model or Config.LLM_MODEL
        self.timeout = timeout if timeout is not None else DecisionSettings().request_timeout_s

    def __repr__(self) -> str:
        return f"LLMDecisionService({self.provider}/{self.model})"

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        context: Optional[DecisionContext] = None,
    ) -> str:
        return await complete_text(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            llm_provider=self.provider,
            llm_model=self.model,
            timeout=self.timeout,
        )


class QueuedDecisionService:
    """Replays responses in order; dicts are serialised to JSON.

    Prompts it receives are kept in ``prompts`` so callers can inspect what
    would have been sent to a model.
    """

    def __init__(self, responses: Iterable[Any] = ()) -> None:
        self._responses: Deque[str] = deque()
        self.prompts: List[Tuple[str, str]] = []
        self.extend(responses)

    def push(self, response: Any) -> None:
        self._responses.append(response if isinstance(response, str) else json.dumps(response))

    def extend(self, responses: Iterable[Any]) -> None:
        for response in responses:
            self.push(response)

    def __len__(self) -> int:
        return len(self._responses)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        context: Optional[DecisionContext] = None,
    ) -> str:
        self.prompts.append((system_prompt, user_prompt))
        if not self._responses:
            raise EmptyResponseError("No queued decision left")
        return self._responses.popleft()


class HeuristicDecisionService:
    """Fixed survival rules over the decision context. No model involved."""

    def __init__(
        self,
        *,
        hungry_below: float = 60.0,
        cold_below: float = 60.0,
        tired_below: float = 25.0,
        fire_close: float = 80.0,
    ) -> None:
        self.hungry_below = hungry_below
        self.cold_below = cold_below
        self.tired_below = tired_below
        self.fire_close = fire_close

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        context: Optional[DecisionContext] = None,
    ) -> str:
        if context is None:
            raise EmptyResponseError("Heuristic decisions need the structured context")
        return json.dumps(self.decide(context), ensure_ascii=False)

    def decide(self, context: DecisionContext) -> Dict[str, Any]:
        vitals = context.vitals
        legal = set(context.action_names)
        held = set(context.inventory)

        food = sorted(held & set(consumable_types()))
        if "eat" in legal and food and vitals.get("food", 100) < self.hungry_below:
            return _decision("Eat before I starve", "eat", {"foodType": food[0]}, "Food time", "🍎")

        if "sleep" in legal and vitals.get("energy", 100) < self.tired_below:
            return _decision("Rest to get my energy back", "sleep", {}, "So sleepy", "😴")

        cold = vitals.get("warmth", 100) < self.cold_below
        hungry = vitals.get("food", 100) < self.hungry_below
        if cold and (not hungry or vitals["warmth"] <= vitals["food"]):
            return self._warm_up(context, legal)
        if hungry:
            return self._find_food(context, legal)

        stick = self._visible_holding(context, fuel_types())
        if "collect" in legal and stick is not None and not held & set(fuel_types()):
            item = next(t for t in stick["items"] if t in fuel_types())
            return _decision(
                "Gather fuel for the fire", "collect", {"target": stick["id"], "itemType": item}, "Sticks!", "🪵"
            )
        if "addFuel" in legal:
            return _decision("Keep the fire going", "addFuel", {}, "Feed the fire", "🔥")
        return _decision("Look around", "wander", {}, "Exploring", "👣")

    def _warm_up(self, context: DecisionContext, legal) -> Dict[str, Any]:
        fire = self._nearest(context, warmth_source_types())
        if fire is None:
            if any(t in warmth_source_types() for t in context.remembered):
                target = next(t for t in context.remembered if t in warmth_source_types())
                return _decision("Get back to the fire", "moveTo", {"target": target}, "Back to the fire", "🔥")
            return _decision(
                "Find a fire to warm up", "searchFor", {"itemType": warmth_source_types()[0]}, "So cold", "🥶"
            )
        if "addFuel" in legal and fire.get("fuel", 100) < 70:
            return _decision("Feed the fire", "addFuel", {"target": fire["id"]}, "More fuel", "🔥")
        if fire["distance"] > self.fire_close:
            return _decision("Warm up by the fire", "moveTo", {"target": fire["id"]}, "To the fire", "🔥")
        stick = self._visible_holding(context, fuel_types())
        if "collect" in legal and stick is not None:
            item = next(t for t in stick["items"] if t in fuel_types())
            return _decision(
                "Gather fuel near the fire", "collect", {"target": stick["id"], "itemType": item}, "Sticks", "🪵"
            )
        if "sleep" in legal:
            return _decision("Rest by the fire", "sleep", {}, "Cozy", "😴")
        return _decision("Stay by the fire", "moveTo", {"target": fire["id"]}, "Warm", "🔥")

    def _find_food(self, context: DecisionContext, legal) -> Dict[str, Any]:
        source = self._visible_holding(context, consumable_types())
        if "collect" in legal and source is not None:
            item = next(t for t in source["items"] if t in consumable_types())
            return _decision(
                "Gather food", "collect", {"target": source["id"], "itemType": item}, "Food!", "🍎"
            )
        remembered = [t for t in context.remembered if interest_category(t) == Category.FOOD]
        if remembered:
            return _decision("Go back to food I saw", "moveTo", {"target": remembered[0]}, "I remember food", "🍎")
        return _decision("Find something to eat", "searchFor", {"itemType": consumable_types()[0]}, "Hungry", "😋")

    @staticmethod
    def _nearest(context: DecisionContext, types) -> Optional[Dict[str, Any]]:
        candidates = [entry for entry in context.visible if entry["type"] in types]
        return min(candidates, key=lambda entry: entry["distance"], default=None)

    @staticmethod
    def _visible_holding(context: DecisionContext, item_types) -> Optional[Dict[str, Any]]:
        wanted = set(item_types)
        candidates = [
            entry
            for entry in context.visible
            if entry["type"] != "character" and wanted & set(entry["items"])
        ]
        return min(candidates, key=lambda entry: entry["distance"], default=None)


def _decision(intent: str, name: str, args: Dict[str, Any], text: str, emoji: str) -> Dict[str, Any]:
    return {
        "intent": intent,
        "plan": [intent],
        "next_action": {"name": name, "args": args},
        "bubble": {"text": text, "emoji": emoji},
    }


__all__ = [
    "DecisionService",
    "LLMDecisionService",
    "QueuedDecisionService",
    "HeuristicDecisionService",
]
