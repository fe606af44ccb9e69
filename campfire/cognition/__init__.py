"""Decision trigger engine for Campfire agents.

This package decides when an agent consults the decision service, builds
and renders the prompt context, talks to the service and hands the result
to the action executor.
"""

from .cadence import RateLimiter, TriggerContext, TriggerKind, TriggerPolicy, pursuit_category
from .context import DecisionContext, build_decision_context
from .engine import DecisionEngine
from .prompts import DEFAULT_PROMPTS, PromptLibrary, PromptTemplate
from .renderers import RenderedPrompt, render_prompt
from .service import (
    DecisionService,
    HeuristicDecisionService,
    LLMDecisionService,
    QueuedDecisionService,
)
from .state import AgentAIState, AIStateRegistry

__all__ = [
    "RateLimiter",
    "TriggerContext",
    "TriggerKind",
    "TriggerPolicy",
    "pursuit_category",
    "DecisionContext",
    "build_decision_context",
    "DecisionEngine",
    "PromptLibrary",
    "PromptTemplate",
    "DEFAULT_PROMPTS",
    "RenderedPrompt",
    "render_prompt",
    "DecisionService",
    "LLMDecisionService",
    "QueuedDecisionService",
    "HeuristicDecisionService",
    "AgentAIState",
    "AIStateRegistry",
]
