"""Action validation and execution pipeline.

Turns a ``Decision`` (action name plus loosely typed arguments) into a call
on the agent's ``Actionable`` interface:

1. ``validate_action`` checks the name against the closed set, the
   arguments, and the agent/world state. The first failing check wins and
   nothing is mutated.
2. ``resolve_target`` turns a target spec into something with a position:
   an explicit ``{x, y}``, a perceived entity id, the closest perceived
   entity of a type, or a position remembered from earlier.
3. ``ActionExecutor`` records the attempt, dispatches it and wraps the
   completion callback so the result lands in history exactly once and
   completion listeners (the trigger engine) hear about it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from .config import SimulationSettings
from .entities import PositionTarget, distance
from .logging_utils import log_deterministic, log_error, log_info, log_success
from .perception import recall
from .registry import (
    collectible_types,
    consumable_types,
    food_value,
    fuel_types,
    get_entity_spec,
    is_collectible,
    produced_items,
    resolve_search_target,
    warmth_source_types,
)
from .schemas import ActionRecord, ActionResult, Decision, ErrorKind, NextAction

if TYPE_CHECKING:
    from .cognition.state import AgentAIState, AIStateRegistry


ACTION_NAMES = ("collect", "drop", "eat", "moveTo", "searchFor", "addFuel", "sleep", "wander")
TARGETED_ACTIONS = frozenset({"collect", "moveTo", "addFuel"})

CompletionListener = Callable[[Any, ActionRecord, ActionResult], None]


class ValidationResult(BaseModel):
    valid: bool
    reason: Optional[ErrorKind] = None
    detail: str = ""

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, reason: ErrorKind, detail: str = "") -> "ValidationResult":
        return cls(valid=False, reason=reason, detail=detail)


class ActionOption(BaseModel):
    """One entry in the action menu offered to the decision service."""

    name: str
    args: Dict[str, str] = Field(default_factory=dict)
    description: str = ""


# ============================================================================
# Argument helpers
# ============================================================================

_ARG_ALIASES: Dict[str, tuple[str, ...]] = {
    "itemType": ("itemType", "item_type", "item"),
    "foodType": ("foodType", "food_type", "itemType", "item_type", "food"),
    "arrivalDistance": ("arrivalDistance", "arrival_distance"),
    "target": ("target",),
    "duration": ("duration",),
}


def get_arg(args: Dict[str, Any], name: str) -> Any:
    """Look up ``name`` under its camelCase or snake_case spelling."""

    for key in _ARG_ALIASES.get(name, (name,)):
        value = args.get(key)
        if value is not None and value != "":
            return value
    return None


def _positive_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _is_target_spec(value: Any) -> bool:
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, dict):
        if "x" in value or "y" in value:
            return _is_number(value.get("x")) and _is_number(value.get("y"))
        return isinstance(value.get("type") or value.get("id"), str)
    return False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _target_type(spec: Any, world) -> Optional[str]:
    """Entity type a target spec refers to, when it can be told without resolving."""

    if isinstance(spec, dict):
        spec = spec.get("type") or spec.get("id")
    if not isinstance(spec, str):
        return None
    entity = world.get(spec)
    if entity is not None:
        return entity.type
    return spec if get_entity_spec(spec) is not None else None


def collect_item_type(args: Dict[str, Any], world) -> Optional[str]:
    """``itemType`` argument, or what the target yields when it is omitted."""

    item_type = get_arg(args, "itemType")
    if item_type is not None:
        return str(item_type)
    target_type = _target_type(get_arg(args, "target"), world)
    produced = produced_items(target_type) if target_type else []
    return produced[0] if produced else None


# ============================================================================
# Validation
# ============================================================================


def validate_action(action: NextAction, agent, world) -> ValidationResult:
    """Check an action against the closed action set and current state."""

    name = action.name
    args = action.args or {}

    if name not in ACTION_NAMES:
        return ValidationResult.fail(ErrorKind.UNKNOWN_ACTION, f"Unknown action: {name}")
    if agent.is_dead:
        return ValidationResult.fail(ErrorKind.ENTITY_DEAD)

    if name == "collect":
        target = get_arg(args, "target")
        if target is None:
            return ValidationResult.fail(ErrorKind.MISSING_ARGUMENT, "collect requires target")
        if not _is_target_spec(target):
            return ValidationResult.fail(ErrorKind.INVALID_TARGET, f"Bad target: {target!r}")
        item_type = collect_item_type(args, world)
        if item_type is None:
            return ValidationResult.fail(ErrorKind.MISSING_ARGUMENT, "collect requires itemType")
        if not is_collectible(item_type):
            return ValidationResult.fail(ErrorKind.UNKNOWN_ITEM_TYPE, f"Cannot collect {item_type}")
        if agent.inventory.is_full:
            return ValidationResult.fail(ErrorKind.INVENTORY_FULL, "Inventory full")

    elif name == "drop":
        item_type = get_arg(args, "itemType")
        if item_type is None:
            return ValidationResult.fail(ErrorKind.MISSING_ARGUMENT, "drop requires itemType")
        if not agent.inventory.has(item_type):
            return ValidationResult.fail(ErrorKind.ITEM_NOT_IN_INVENTORY, f"No {item_type} in inventory")

    elif name == "eat":
        food_type = get_arg(args, "foodType")
        if food_type is None:
            return ValidationResult.fail(ErrorKind.MISSING_ARGUMENT, "eat requires foodType")
        if food_value(food_type) <= 0:
            return ValidationResult.fail(ErrorKind.NOT_EDIBLE, f"{food_type} is not food")
        if not agent.inventory.has(food_type):
            return ValidationResult.fail(ErrorKind.ITEM_NOT_IN_INVENTORY, f"No {food_type} in inventory")

    elif name == "moveTo":
        target = get_arg(args, "target")
        if target is None:
            return ValidationResult.fail(ErrorKind.MISSING_ARGUMENT, "moveTo requires target")
        if not _is_target_spec(target):
            return ValidationResult.fail(ErrorKind.INVALID_TARGET, f"Bad target: {target!r}")
        arrival = get_arg(args, "arrivalDistance")
        if arrival is not None and _positive_number(arrival) is None:
            return ValidationResult.fail(ErrorKind.INVALID_ARGUMENT, "arrivalDistance must be > 0")

    elif name == "searchFor":
        item_type = get_arg(args, "itemType")
        if item_type is None:
            return ValidationResult.fail(ErrorKind.MISSING_ARGUMENT, "searchFor requires itemType")
        if resolve_search_target(item_type) is None:
            return ValidationResult.fail(ErrorKind.UNKNOWN_ITEM_TYPE, f"Cannot search for {item_type}")

    elif name == "addFuel":
        item_type = get_arg(args, "itemType")
        if item_type is not None and item_type not in fuel_types():
            return ValidationResult.fail(ErrorKind.INVALID_ARGUMENT, f"{item_type} is not fuel")
        held = agent.inventory.has(item_type) if item_type else agent.inventory.find(fuel_types())
        if not held:
            return ValidationResult.fail(ErrorKind.NO_FUEL, "No fuel in inventory")
        if not world.has_warmth_source():
            return ValidationResult.fail(ErrorKind.NO_WARMTH_SOURCE, "No warmth source in world")

    elif name == "wander":
        duration = get_arg(args, "duration")
        if duration is not None and _positive_number(duration) is None:
            return ValidationResult.fail(ErrorKind.INVALID_ARGUMENT, "duration must be > 0")

    return ValidationResult.ok()


# ============================================================================
# Target resolution
# ============================================================================


def resolve_target(spec: Any, agent, world, now: float, horizon: Optional[float] = None):
    """Resolve a target spec to an entity or ``PositionTarget``; None if unknown.

    Order: explicit position; perceived entity id; closest perceived entity
    of the type (ties keep perception order); remembered location.
    """

    if spec is None:
        return None
    if isinstance(spec, PositionTarget):
        return spec
    if isinstance(spec, dict):
        if "x" in spec and "y" in spec:
            if not (_is_number(spec["x"]) and _is_number(spec["y"])):
                return None
            return PositionTarget(x=float(spec["x"]), y=float(spec["y"]), type=spec.get("type"))
        spec = spec.get("id") or spec.get("type")
    if not isinstance(spec, str):
        return None

    entity = agent.perceived.get(spec)
    if entity is not None:
        return entity

    candidates = [e for e in agent.perceived.values() if e.type == spec]
    if candidates:
        return min(candidates, key=lambda e: distance(agent, e))

    remembered = (
        agent.memory.get(spec) if horizon is None else recall(agent, spec, now, horizon)
    )
    if remembered is not None:
        return PositionTarget(
            x=remembered.x,
            y=remembered.y,
            type=spec,
            from_memory=True,
            entity_id=remembered.entity_id,
        )
    return None


def _resolve_warmth_source(agent, world, now: float):
    for warmth_type in warmth_source_types():
        target = resolve_target(warmth_type, agent, world, now)
        if target is not None:
            return target
    return world.nearest_warmth_source(agent.x, agent.y)


# ============================================================================
# Legal action menu
# ============================================================================


def _holds_any(entity, item_types) -> bool:
    inventory = getattr(entity, "inventory", None)
    return inventory is not None and inventory.find(item_types) is not None


def legal_actions(agent, world, settings: Optional[SimulationSettings] = None) -> List[ActionOption]:
    """Actions worth offering right now, each gated on the current state."""

    settings = settings or SimulationSettings()
    if agent.is_dead:
        return []

    collectible = set(collectible_types())
    perceived = list(agent.perceived.values())
    options: List[ActionOption] = []

    collectible_in_view = any(
        _holds_any(entity, collectible) for entity in perceived if entity.type != agent.type
    )
    if not agent.inventory.is_full and collectible_in_view:
        options.append(
            ActionOption(
                name="collect",
                args={"target": "entity id or type", "itemType": "item to take"},
                description="Walk to the target and take one item from it.",
            )
        )

    if agent.inventory.find(fuel_types()) is not None and any(
        entity.type in warmth_source_types() for entity in perceived
    ):
        options.append(
            ActionOption(name="addFuel", description="Feed one fuel item to the nearest fire.")
        )

    if agent.inventory.find(consumable_types()) is not None:
        options.append(
            ActionOption(name="eat", args={"foodType": "food you carry"}, description="Eat one food item.")
        )

    if agent.vitals.energy < settings.vitals.sleep_target_energy:
        options.append(ActionOption(name="sleep", description="Sleep until rested."))

    if not agent.inventory.is_empty:
        options.append(
            ActionOption(name="drop", args={"itemType": "item you carry"}, description="Put an item down.")
        )

    options.extend(
        [
            ActionOption(
                name="moveTo",
                args={"target": "entity id, type or {x, y}", "arrivalDistance": "optional px"},
                description="Walk to a target.",
            ),
            ActionOption(
                name="searchFor",
                args={"itemType": "item to look for"},
                description="Wander until something holding the item comes into view.",
            ),
            ActionOption(
                name="wander",
                args={"duration": "optional ms"},
                description="Walk around aimlessly for a while.",
            ),
        ]
    )
    return options


# ============================================================================
# Executor
# ============================================================================


class ActionExecutor:
    """Validates, records and dispatches actions for agents."""

    def __init__(
        self,
        world,
        clock,
        settings: Optional[SimulationSettings] = None,
        ai_states: Optional["AIStateRegistry"] = None,
    ) -> None:
        self.world = world
        self.clock = clock
        self.settings = settings or SimulationSettings()
        if ai_states is None:
            from .cognition.state import AIStateRegistry

            ai_states = AIStateRegistry(self.settings)
        self.ai_states = ai_states
        self._listeners: List[CompletionListener] = []

    def add_completion_listener(self, listener: CompletionListener) -> None:
        self._listeners.append(listener)

    def remove_completion_listener(self, listener: CompletionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def execute(self, decision: Decision, agent) -> ActionRecord:
        action = decision.next_action
        log_info(f"[{agent.name}] Decision: {decision.intent or '(no intent)'} -> {action.name}({action.args})")
        return self.execute_action(agent, action)

    def execute_action(self, agent, action: NextAction) -> ActionRecord:
        """Run one action. Failures come back in the returned record, never raised."""

        state = self.ai_states.get(agent.entity_id)
        now = self.clock.now

        validation = validate_action(action, agent, self.world)
        if not validation.valid:
            log_error(f"[{agent.name}] Invalid action {action.name}: {validation.reason.value} {validation.detail}".rstrip())
            return self._record_failure(state, action, now, validation.reason, validation.detail)

        target = None
        if action.name in TARGETED_ACTIONS:
            spec = get_arg(action.args, "target")
            if action.name == "addFuel" and spec is None:
                target = _resolve_warmth_source(agent, self.world, now)
            else:
                target = resolve_target(spec, agent, self.world, now)
            if target is None:
                log_error(f"[{agent.name}] Target not found: {spec!r}")
                return self._record_failure(state, action, now, ErrorKind.TARGET_NOT_FOUND, f"{spec!r}")

        record = self._begin(state, action, now)
        callback = self._completion(agent, state, record)
        try:
            self._dispatch(agent, action, target, callback)
        except Exception as exc:
            log_error(f"[{agent.name}] Error executing {action.name}: {exc}")
            callback(ActionResult.fail(ErrorKind.EXECUTION_ERROR, str(exc)))
        return record

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _dispatch(self, agent, action: NextAction, target, callback) -> None:
        args = action.args or {}
        name = action.name
        log_deterministic(f"[{agent.name}] Executing {name}")
        if name == "collect":
            agent.collect(target, collect_item_type(args, self.world), callback)
        elif name == "drop":
            agent.drop(get_arg(args, "itemType"), callback)
        elif name == "eat":
            agent.eat(get_arg(args, "foodType"), callback)
        elif name == "moveTo":
            agent.move_to(target, _positive_number(get_arg(args, "arrivalDistance")), callback)
        elif name == "searchFor":
            agent.search_for(get_arg(args, "itemType"), callback)
        elif name == "addFuel":
            agent.add_fuel(target, callback, get_arg(args, "itemType"))
        elif name == "sleep":
            agent.sleep(callback)
        elif name == "wander":
            agent.wander(_positive_number(get_arg(args, "duration")), callback)
        else:
            raise ValueError(f"Unknown action '{name}'")

    def _begin(self, state: "AgentAIState", action: NextAction, now: float) -> ActionRecord:
        current = state.current_record
        if current is not None and current.pending:
            current.pending = False
            current.superseded = True
            current.finished_at = now
        record = ActionRecord(name=action.name, args=dict(action.args or {}), started_at=now)
        state.history.append(record)
        state.current_record = record
        return record

    def _record_failure(
        self,
        state: "AgentAIState",
        action: NextAction,
        now: float,
        reason: ErrorKind,
        detail: str,
    ) -> ActionRecord:
        result = ActionResult.fail(reason, detail or None)
        record = ActionRecord(
            name=action.name,
            args=dict(action.args or {}),
            started_at=now,
            pending=False,
            finished_at=now,
            result=result,
        )
        state.history.append(record)
        state.last_result = result
        return record

    def _completion(self, agent, state: "AgentAIState", record: ActionRecord):
        fired = False

        def _done(result: ActionResult) -> None:
            nonlocal fired
            if fired:
                return
            fired = True
            record.pending = False
            record.finished_at = self.clock.now
            record.result = result
            state.last_result = result
            if state.current_record is record:
                state.current_record = None

            if result.success:
                log_success(f"[{agent.name}] {record.name} succeeded")
            else:
                log_error(f"[{agent.name}] {record.name} failed: {result.summary()}")

            for listener in list(self._listeners):
                listener(agent, record, result)

        return _done


__all__ = [
    "ACTION_NAMES",
    "TARGETED_ACTIONS",
    "ActionExecutor",
    "ActionOption",
    "CompletionListener",
    "ValidationResult",
    "collect_item_type",
    "get_arg",
    "legal_actions",
    "resolve_target",
    "validate_action",
]
