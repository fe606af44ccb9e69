"""
Campfire - autonomous survival agents driven by an LLM decision service.

Agents with needs, a small inventory and one action at a time live in a 2D
world, perceive and remember what is around them, and periodically ask a
decision service what to do next.

No file I/O required. No database required. All dependencies injected by user.
"""

__version__ = "0.1.0"

# Main simulation components
from .simulation import Simulation, DecisionFailuresError
from .world import World
from .agent import Agent
from .clock import SimulationClock, Scheduler, TimerHandle

# Pipelines
from .vitals import VitalsEngine
from .movement import (
    ActionStateMachine,
    Idle,
    Wandering,
    Searching,
    MovingTo,
    Sleeping,
    Locomotion,
)
from .actions import AgentActions, Actionable
from .execution import ActionExecutor, validate_action, resolve_target, legal_actions
from .perception import PerceptionEvents, update_perception, recall
from .registry import (
    Category,
    EntityKind,
    EntitySpec,
    register_entity_type,
    reset_registry,
    interest_category,
    resolve_search_target,
)
from .entities import Inventory, WorldEntity, Bonfire, PositionTarget

# Decision engine
from .cognition import (
    DecisionEngine,
    TriggerContext,
    TriggerKind,
    TriggerPolicy,
    RateLimiter,
    DecisionService,
    LLMDecisionService,
    QueuedDecisionService,
    HeuristicDecisionService,
    PromptLibrary,
    PromptTemplate,
    DEFAULT_PROMPTS,
)
from .llm_utils import parse_decision

# Core schemas
from .schemas import (
    Item,
    Vitals,
    ErrorKind,
    ActionResult,
    NextAction,
    Bubble,
    Decision,
    ActionRecord,
    AgentSnapshot,
    WorldSnapshot,
)
from .errors import (
    DecisionServiceError,
    DecisionTimeoutError,
    EmptyResponseError,
    DecisionParseError,
)

# Configuration
from .config import Config, SimulationSettings, load_settings

# Scenario loader helpers
from .scenario import load_scenario, ScenarioLoader, Scenario

__all__ = [
    # Main classes
    "Simulation",
    "DecisionFailuresError",
    "World",
    "Agent",
    "SimulationClock",
    "Scheduler",
    "TimerHandle",
    # Pipelines
    "VitalsEngine",
    "ActionStateMachine",
    "Idle",
    "Wandering",
    "Searching",
    "MovingTo",
    "Sleeping",
    "Locomotion",
    "AgentActions",
    "Actionable",
    "ActionExecutor",
    "validate_action",
    "resolve_target",
    "legal_actions",
    "PerceptionEvents",
    "update_perception",
    "recall",
    "Category",
    "EntityKind",
    "EntitySpec",
    "register_entity_type",
    "reset_registry",
    "interest_category",
    "resolve_search_target",
    "Inventory",
    "WorldEntity",
    "Bonfire",
    "PositionTarget",
    # Decision engine
    "DecisionEngine",
    "TriggerContext",
    "TriggerKind",
    "TriggerPolicy",
    "RateLimiter",
    "DecisionService",
    "LLMDecisionService",
    "QueuedDecisionService",
    "HeuristicDecisionService",
    "PromptLibrary",
    "PromptTemplate",
    "DEFAULT_PROMPTS",
    "parse_decision",
    # Schemas
    "Item",
    "Vitals",
    "ErrorKind",
    "ActionResult",
    "NextAction",
    "Bubble",
    "Decision",
    "ActionRecord",
    "AgentSnapshot",
    "WorldSnapshot",
    # Errors
    "DecisionServiceError",
    "DecisionTimeoutError",
    "EmptyResponseError",
    "DecisionParseError",
    # Configuration
    "Config",
    "SimulationSettings",
    "load_settings",
    # Scenario helpers
    "load_scenario",
    "ScenarioLoader",
    "Scenario",
]
