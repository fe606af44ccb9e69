"""Prompt rendering utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from .context import DecisionContext
from .prompts import DEFAULT_PROMPTS, RESPONSE_FORMAT, PromptTemplate


@dataclass
class RenderedPrompt:
    system: str
    user: str


def render_prompt(
    template: PromptTemplate | None,
    context: DecisionContext,
    *,
    include_default: bool = True,
) -> RenderedPrompt:
    """Render a prompt template using the supplied context.

    Placeholders use ``{{double_brace}}`` syntax so JSON braces in the
    templates need no escaping. Unknown placeholders are left as-is.

    Parameters
    ----------
    template:
        PromptTemplate to render. When ``None`` and ``include_default`` is True,
        the ``decide`` template from ``DEFAULT_PROMPTS`` is used.
    context:
        Decision context assembled by the trigger engine.
    include_default:
        Whether to fall back to ``DEFAULT_PROMPTS`` when template is missing.
    """

    if template is None and include_default:
        template = DEFAULT_PROMPTS.get("decide")
    elif template is None:
        raise ValueError("Prompt template not provided and defaults disabled")

    replacements: Dict[str, str] = {
        "{{agent_name}}": context.name,
        "{{agent_id}}": context.agent_id,
        "{{context_summary}}": context.summary(),
        "{{context_json}}": context.to_json(),
        "{{action_menu}}": context.actions_text(),
        "{{memories_text}}": context.memories_text(),
        "{{history_text}}": context.history_text(),
        "{{trigger}}": context.trigger,
        "{{response_format}}": RESPONSE_FORMAT,
    }
    for key, value in context.extra.items():
        replacements.setdefault("{{" + key + "}}", str(value))

    system = template.system
    user = template.user
    for placeholder, value in replacements.items():
        system = system.replace(placeholder, value)
        user = user.replace(placeholder, value)

    return RenderedPrompt(system=system, user=user)


__all__ = ["RenderedPrompt", "render_prompt"]
