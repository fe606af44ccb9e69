"""Prompt templates for the decision service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass
class PromptTemplate:
    """Represents a templated prompt with placeholders."""

    name: str
    system: str
    user: str
    description: str = ""


class PromptLibrary:
    """Container for named prompt templates."""

    def __init__(self) -> None:
        self.templates: Dict[str, PromptTemplate] = {}

    def register(self, template: PromptTemplate) -> None:
        self.templates[template.name] = template

    def get(self, name: str) -> PromptTemplate:
        return self.templates[name]

    def __contains__(self, name: object) -> bool:
        return name in self.templates


RESPONSE_FORMAT = (
    "RESPONSE FORMAT (JSON only):\n"
    "{\n"
    '  "intent": "one sentence describing your goal",\n'
    '  "plan": ["step1", "step2", "step3"],\n'
    '  "next_action": {\n'
    '    "name": "actionName",\n'
    '    "args": {"param": "value"}\n'
    "  },\n"
    '  "bubble": {\n'
    '    "text": "max 8 words showing your thought",\n'
    '    "emoji": "one emoji"\n'
    "  }\n"
    "}\n\n"
    "Examples:\n"
    '- moveTo something visible: {"name": "moveTo", "args": {"target": "tree"}}\n'
    '- collect: {"name": "collect", "args": {"target": "tree", "itemType": "apple"}}\n'
    '- searchFor: {"name": "searchFor", "args": {"itemType": "bonfire"}}\n'
    '- eat: {"name": "eat", "args": {"foodType": "apple"}}'
)


DEFAULT_PROMPTS = PromptLibrary()

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="decide",
        system=(
            "You are {{agent_name}}, a survivor alone in a cold forest. Keep yourself fed, warm and rested. "
            "Health only recovers while food, warmth and energy are all comfortable. The bonfire warms you "
            "when you stand close to it and burns down unless you feed it sticks. "
            "Choose exactly one next action from the list you are given and answer with JSON only."
        ),
        user=(
            "{{context_summary}}\n\n"
            "AVAILABLE ACTIONS:\n{{action_menu}}\n\n"
            "{{response_format}}\n\n"
            "What do you do next?"
        ),
        description="Survival decision for one agent.",
    )
)

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="decide_json",
        system=(
            "You control a survival agent in a 2D world. Read the JSON context and return the next decision "
            "as JSON only."
        ),
        user="Context:\n{{context_json}}\n\n{{response_format}}",
        description="Compact variant that passes the raw context as JSON.",
    )
)


__all__ = ["PromptTemplate", "PromptLibrary", "DEFAULT_PROMPTS", "RESPONSE_FORMAT"]
