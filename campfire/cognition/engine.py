"""Decision trigger engine.

Decides when each agent consults the decision service and runs the request:
gate, record the call, mark the agent pending, build and render the
context, ask the service (retrying unparseable answers), store the
intent/plan/bubble and hand the decision to the action executor.

Trigger contexts arrive from three places and are queued per agent until
the simulation evaluates them:

* action completions, reported by the executor and delayed slightly so the
  world can settle first,
* newly perceived entities, via each attached agent's perception events,
* vitals transitions (critical need, low health), reported by the loop.

Every evaluation also considers a periodic context, which covers the idle
timer and the heartbeat.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Dict, List, Optional

from ..config import SimulationSettings
from ..llm_utils import request_decision
from ..logging_utils import log_error, log_info, log_llm
from ..perception import Subscription
from ..schemas import ActionRecord, ActionResult, Decision
from .cadence import URGENT_KINDS, TriggerContext, TriggerKind, TriggerPolicy
from .context import build_decision_context
from .prompts import DEFAULT_PROMPTS, PromptLibrary
from .renderers import render_prompt
from .service import DecisionService
from .state import AgentAIState, AIStateRegistry

# Urgent contexts first; among equals the queue order is kept
_KIND_ORDER = {
    TriggerKind.MANUAL: 0,
    TriggerKind.HEALTH_LOW: 1,
    TriggerKind.NEED_CRITICAL: 2,
    TriggerKind.ACTION_COMPLETED: 3,
    TriggerKind.NEW_ENTITY: 4,
    TriggerKind.PERIODIC: 5,
}


class DecisionEngine:
    """Per-agent trigger evaluation and decision requests."""

    def __init__(
        self,
        executor,
        service: DecisionService,
        scheduler,
        *,
        settings: Optional[SimulationSettings] = None,
        prompt_library: Optional[PromptLibrary] = None,
        template_name: str = "decide",
    ) -> None:
        self.executor = executor
        self.service = service
        self.scheduler = scheduler
        self.world = executor.world
        self.clock = executor.clock
        self.settings = settings or executor.settings
        self.ai_states: AIStateRegistry = executor.ai_states
        self.policy = TriggerPolicy(self.settings.decision)
        self.prompt_library = prompt_library or DEFAULT_PROMPTS
        self.template_name = template_name

        self._queued: Dict[str, List[TriggerContext]] = {}
        self._subscriptions: Dict[str, Subscription] = {}
        self._agents: Dict[str, Any] = {}
        self._follow_ups: Dict[str, Any] = {}

        executor.add_completion_listener(self._on_action_completed)

    # ------------------------------------------------------------------
    # Enablement
    # ------------------------------------------------------------------

    def enable(self, agent_id: str) -> None:
        self.ai_states.get(agent_id).enabled = True
        log_info(f"AI enabled for {agent_id}")

    def disable(self, agent_id: str) -> None:
        state = self.ai_states.peek(agent_id)
        if state is not None:
            state.enabled = False
        self._queued.pop(agent_id, None)
        self._cancel_follow_up(agent_id)
        log_info(f"AI disabled for {agent_id}")

    def is_enabled(self, agent_id: str) -> bool:
        state = self.ai_states.peek(agent_id)
        return state is not None and state.enabled

    def attach(self, agent) -> None:
        """Listen to the agent's perception so new entities queue a trigger."""

        self.detach(agent.entity_id)
        self._agents[agent.entity_id] = agent
        self._subscriptions[agent.entity_id] = agent.events.subscribe(
            lambda entity, agent=agent: self._on_entity_seen(agent, entity)
        )

    def detach(self, agent_id: str) -> None:
        agent = self._agents.pop(agent_id, None)
        token = self._subscriptions.pop(agent_id, None)
        if agent is not None:
            agent.events.unsubscribe(token)

    def forget(self, agent_id: str) -> None:
        """Drop everything known about an agent (it left the simulation)."""

        self.detach(agent_id)
        self._queued.pop(agent_id, None)
        self._cancel_follow_up(agent_id)
        self.ai_states.remove(agent_id)

    def state_for(self, agent_id: str) -> AgentAIState:
        return self.ai_states.get(agent_id)

    def stats(self) -> Dict[str, int]:
        states = [state for _, state in self.ai_states.items()]
        return {
            "agents": len(states),
            "enabled": sum(1 for state in states if state.enabled),
            "pending": sum(1 for state in states if state.pending),
            "calls": sum(state.calls for state in states),
            "failures": sum(state.failures for state in states),
        }

    # ------------------------------------------------------------------
    # Trigger sources
    # ------------------------------------------------------------------

    def request(self, agent, context: TriggerContext) -> None:
        """Queue ``context`` for the next evaluation of ``agent``."""

        if not self.is_enabled(agent.entity_id):
            return
        self._queued.setdefault(agent.entity_id, []).append(context)

    def queued(self, agent_id: str) -> List[TriggerContext]:
        return list(self._queued.get(agent_id, []))

    def due_contexts(self, agent) -> List[TriggerContext]:
        """Drain the agent's queue, most urgent first, plus a periodic check."""

        contexts = self._queued.pop(agent.entity_id, [])
        contexts.append(TriggerContext.periodic())
        return sorted(contexts, key=lambda ctx: _KIND_ORDER[ctx.kind])

    def should_trigger(self, agent, context: TriggerContext, now: Optional[float] = None) -> bool:
        now = self.clock.now if now is None else now
        state = self.ai_states.get(agent.entity_id)
        return self.policy.should_trigger(agent, state, context, now, agent.is_collecting)

    def evaluate(self, agent, now: Optional[float] = None) -> Optional[TriggerContext]:
        """First due context that should trigger, if any.

        An urgent context held back only by the rate limiter stays queued so
        it fires once the limiter allows; everything else that does not
        trigger now is dropped.
        """

        now = self.clock.now if now is None else now
        state = self.ai_states.get(agent.entity_id)
        held: Optional[TriggerContext] = None
        chosen: Optional[TriggerContext] = None
        for context in self.due_contexts(agent):
            if chosen is None and self.should_trigger(agent, context, now):
                chosen = context
            elif context.kind in URGENT_KINDS and held is None and self._rate_limited_only(agent, state, now):
                held = context
        if chosen is None and held is not None:
            self._queued.setdefault(agent.entity_id, []).insert(0, held)
        return chosen

    def _rate_limited_only(self, agent, state: AgentAIState, now: float) -> bool:
        return (
            state.enabled
            and not state.pending
            and not agent.is_dead
            and not agent.is_sleeping
            and not agent.is_collecting
            and not state.limiter.allows(now)
        )

    # ------------------------------------------------------------------
    # Decision request
    # ------------------------------------------------------------------

    async def trigger_decision(self, agent, context: Optional[TriggerContext] = None) -> Optional[Decision]:
        """Request and execute one decision for ``agent``.

        Returns ``None`` without calling the service when the gates do not
        allow a trigger. Service, parse and execution failures are logged and
        re-raised; the pending flag is cleared either way.
        """

        context = context or TriggerContext.manual()
        now = self.clock.now
        if not self.should_trigger(agent, context, now):
            return None

        state = self.ai_states.get(agent.entity_id)
        # Both happen before the first await so a second trigger is gated out
        state.limiter.record(now)
        state.pending = True
        state.calls += 1
        try:
            decision_context = build_decision_context(agent, state, context, self.world, self.settings, now)
            rendered = render_prompt(self._template(), decision_context, include_default=False)
            log_llm(f"[{agent.name}] Requesting decision ({context.kind.value})")

            decision, _raw = await request_decision(
                partial(self.service.complete, context=decision_context),
                system_prompt=rendered.system,
                user_prompt=rendered.user,
                max_attempts=self.settings.decision.parse_attempts,
                label=agent.name,
            )

            state.last_decision = decision
            state.intent = decision.intent
            state.plan = list(decision.plan)
            state.bubble = decision.bubble
            self.executor.execute(decision, agent)
            return decision
        except Exception as exc:
            state.failures += 1
            log_error(f"[{agent.name}] Decision failed: {type(exc).__name__}: {exc}")
            raise
        finally:
            state.pending = False

    def _template(self):
        try:
            return self.prompt_library.get(self.template_name)
        except KeyError:
            return DEFAULT_PROMPTS.get("decide")

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def _on_action_completed(self, agent, record: ActionRecord, result: ActionResult) -> None:
        if not self.is_enabled(agent.entity_id) or agent.is_dead:
            return
        self._cancel_follow_up(agent.entity_id)
        context = TriggerContext.action_completed(record.name, result)
        self._follow_ups[agent.entity_id] = self.scheduler.call_later(
            self.settings.actions.follow_up_delay_ms, self.request, agent, context
        )

    def _on_entity_seen(self, agent, entity) -> None:
        self.request(agent, TriggerContext.new_entity(entity))

    def _cancel_follow_up(self, agent_id: str) -> None:
        handle = self._follow_ups.pop(agent_id, None)
        if handle is not None:
            handle.cancel()


__all__ = ["DecisionEngine"]
