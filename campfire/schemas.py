"""
Pydantic schemas for the Campfire simulation.

Value objects that cross component boundaries live here: items, vitals,
decisions returned by the external service, action results and history
records, and the read-only snapshots handed to rendering collaborators.
Mutable runtime objects (agents, world entities, action states) are plain
classes in their own modules.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Items and vitals
# ============================================================================


class Item(BaseModel):
    """A single collectible thing. Immutable; items never stack."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Registry type tag ('apple', 'stick', ...)")
    properties: Dict[str, Any] = Field(default_factory=dict)


class Vitals(BaseModel):
    """The four bounded needs. Low is always bad.

    Assignment is validated so a value outside [0, 100] can never be stored;
    the vitals engine clamps before writing.
    """

    model_config = ConfigDict(validate_assignment=True)

    food: float = Field(100.0, ge=0.0, le=100.0)
    energy: float = Field(100.0, ge=0.0, le=100.0)
    warmth: float = Field(100.0, ge=0.0, le=100.0)
    health: float = Field(100.0, ge=0.0, le=100.0)

    def as_dict(self) -> Dict[str, float]:
        return {
            "food": self.food,
            "energy": self.energy,
            "warmth": self.warmth,
            "health": self.health,
        }


# ============================================================================
# Action results
# ============================================================================


class ErrorKind(str, Enum):
    """Reasons reported through ``ActionResult.reason``."""

    # Validation errors: the action never starts
    INVALID_TARGET = "invalid_target"
    UNKNOWN_ACTION = "unknown_action"
    MISSING_ARGUMENT = "missing_argument"
    INVALID_ARGUMENT = "invalid_argument"
    # State conflicts: retry with different arguments
    INVENTORY_FULL = "inventory_full"
    ITEM_NOT_FOUND = "item_not_found"
    ITEM_NOT_IN_INVENTORY = "item_not_in_inventory"
    NOT_EDIBLE = "not_edible"
    NO_FUEL = "no_fuel"
    NO_WARMTH_SOURCE = "no_warmth_source"
    UNKNOWN_ITEM_TYPE = "unknown_item_type"
    TARGET_NOT_FOUND = "target_not_found"
    # Navigation and timing
    NAVIGATION_FAILED = "navigation_failed"
    TIMEOUT = "timeout"
    # Vitals
    ENTITY_DEAD = "entity_dead"
    HP_CRITICAL = "hp_critical"
    # Effects
    COLLECTION_FAILED = "collection_failed"
    EXECUTION_ERROR = "execution_error"


class ActionResult(BaseModel):
    """Universal completion payload handed to every action callback.

    Extra keyword fields are allowed so effects can attach what they produced
    (the dropped ground entity, the new fuel level, ...).
    """

    model_config = ConfigDict(extra="allow", arbitrary_types_allowed=True)

    success: bool
    reason: Optional[ErrorKind] = None
    detail: Optional[str] = None
    interrupted: bool = False
    inner: Optional["ActionResult"] = None
    target: Any = None

    @classmethod
    def ok(cls, **extra: Any) -> "ActionResult":
        return cls(success=True, **extra)

    @classmethod
    def fail(cls, reason: ErrorKind, detail: Optional[str] = None, **extra: Any) -> "ActionResult":
        return cls(success=False, reason=reason, detail=detail, **extra)

    def summary(self) -> str:
        """Compact text used in logs and prompts."""

        if self.success:
            return "ok"
        text = self.reason.value if self.reason else "failed"
        if self.inner is not None and not self.inner.success:
            text += f" ({self.inner.summary()})"
        return text


# ============================================================================
# Decisions from the external service
# ============================================================================


class NextAction(BaseModel):
    """Action name plus free-form arguments chosen by the decision service."""

    name: str
    args: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("args", mode="before")
    @classmethod
    def _null_args(cls, value: Any) -> Any:
        return {} if value is None else value


class Bubble(BaseModel):
    """Short thought shown above the agent by renderers."""

    text: str = ""
    emoji: str = ""


class Decision(BaseModel):
    """Structured output of one decision request.

    ``next_action`` is the only required field; intent and plan are kept per
    agent for prompt continuity.
    """

    intent: str = ""
    plan: List[str] = Field(default_factory=list)
    next_action: NextAction = Field(
        ..., validation_alias=AliasChoices("next_action", "nextAction")
    )
    bubble: Optional[Bubble] = None

    @field_validator("plan", mode="before")
    @classmethod
    def _plan_as_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


# ============================================================================
# History and bookkeeping
# ============================================================================


class ActionRecord(BaseModel):
    """One attempted action in an agent's bounded history."""

    name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    started_at: float
    pending: bool = True
    superseded: bool = False
    finished_at: Optional[float] = None
    result: Optional[ActionResult] = None

    def describe(self) -> str:
        args = ", ".join(f"{key}={value!r}" for key, value in self.args.items())
        text = f"{self.name}({args})"
        if self.superseded:
            return f"{text} -> interrupted"
        if self.pending or self.result is None:
            return f"{text} -> in progress"
        return f"{text} -> {self.result.summary()}"


class RememberedLocation(BaseModel):
    """Last known whereabouts of an entity type."""

    entity_type: str
    entity_id: Optional[str] = None
    x: float
    y: float
    seen_at: float


class CollectionProgress(BaseModel):
    """Read-only view of an in-progress collection for renderers."""

    active: bool = False
    item_type: Optional[str] = None
    target_id: Optional[str] = None
    started_at: Optional[float] = None
    duration_ms: float = 0.0
    progress: float = Field(0.0, ge=0.0, le=1.0)


class AgentSnapshot(BaseModel):
    """Everything a rendering collaborator may read about an agent."""

    agent_id: str
    name: str
    x: float
    y: float
    vitals: Vitals
    is_dead: bool
    is_sleeping: bool
    is_running: bool
    action_state: str
    inventory: List[str] = Field(default_factory=list)
    collection: CollectionProgress = Field(default_factory=CollectionProgress)
    intent: str = ""
    bubble: Optional[Bubble] = None


class EntitySnapshot(BaseModel):
    """Passive world entity as seen by renderers."""

    entity_id: str
    type: str
    x: float
    y: float
    items: List[str] = Field(default_factory=list)
    fuel: Optional[float] = None


class WorldSnapshot(BaseModel):
    """One frame of the simulation for rendering collaborators."""

    time_ms: float
    tick: int
    agents: List[AgentSnapshot] = Field(default_factory=list)
    entities: List[EntitySnapshot] = Field(default_factory=list)


ActionResult.model_rebuild()
