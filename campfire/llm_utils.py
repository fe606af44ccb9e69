"""Helpers for talking to the decision service: calls, parsing and retries."""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from mirascope import llm
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from .errors import DecisionParseError, DecisionTimeoutError, EmptyResponseError
from .local_llm import call_ollama_chat
from .logging_utils import debug_llm_enabled, log_error, log_llm
from .schemas import Decision

LLM_TIMEOUT_SECONDS = 120.0

# Whole response wrapped in a fence, optionally tagged ``json``
_CODE_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL | re.IGNORECASE)


@dataclass(slots=True)
class ValidationFeedback:
    """Structured feedback for retrying a response that failed to parse."""

    llm_text: str
    issues: Sequence[str]


def _truncate_preview(value: Any, *, limit: int = 80) -> str:
    """Return a compact preview of the offending input value."""

    if value is None:
        return "null"
    text = repr(value)
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def validation_issues(error: ValidationError) -> list[str]:
    """Flatten a pydantic error into ``path: message [type] | received`` lines."""

    issues: list[str] = []
    for err in error.errors(include_url=False):
        loc = ".".join(str(part) for part in err.get("loc", [])) or "root"
        details = f"{loc}: {err.get('msg', 'validation error')}"
        if err.get("type"):
            details += f" [type={err['type']}]"
        if "input" in err:
            preview = _truncate_preview(err.get("input"))
            if preview:
                details += f" | received={preview}"
        issues.append(details)
    return issues or ["root: response did not match the expected schema"]


def inject_validation_feedback(error: DecisionParseError) -> ValidationFeedback:
    """Produce guidance for the model plus structured issues for logging.

    The feedback is appended to the original user prompt on retry so the
    model keeps its full context while seeing what needs correcting.
    """

    issues = list(error.issues) or ["root: response did not match the expected schema"]
    instructions = [
        "Your previous response could not be used as a decision.",
        "Produce a corrected response that strictly matches the response format.",
        "Do not include explanations or code fences. Return only valid JSON.",
        "Issues detected:",
    ]
    instructions.extend(f"- {issue}" for issue in issues)
    return ValidationFeedback(llm_text="\n".join(instructions), issues=issues)


def strip_code_fence(text: str) -> str:
    match = _CODE_FENCE_RE.match(text)
    return match.group(1).strip() if match else text.strip()


def parse_decision(text: str | None) -> Decision:
    """Turn a raw service response into a ``Decision``.

    A surrounding code fence is tolerated. Anything that is not a JSON object
    of the decision shape raises ``DecisionParseError``; an empty response
    raises ``EmptyResponseError``.
    """

    if text is None or not text.strip():
        raise EmptyResponseError("Decision service returned an empty response")

    body = strip_code_fence(text)
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise DecisionParseError(
            f"Response is not valid JSON: {exc.msg}",
            raw=text,
            issues=[f"root: invalid JSON ({exc.msg} at line {exc.lineno} column {exc.colno})"],
        ) from exc

    if not isinstance(payload, dict):
        raise DecisionParseError(
            "Response JSON is not an object",
            raw=text,
            issues=[f"root: expected a JSON object | received={_truncate_preview(payload)}"],
        )

    try:
        return Decision.model_validate(payload)
    except ValidationError as exc:
        raise DecisionParseError(
            "Response does not match the decision schema",
            raw=text,
            issues=validation_issues(exc),
        ) from exc


def _combine(system_prompt: str, user_prompt: str) -> str:
    return "\n\n".join(section for section in (system_prompt, user_prompt) if section)


async def complete_text(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_provider: str,
    llm_model: str,
    timeout: float = LLM_TIMEOUT_SECONDS,
) -> str:
    """Send one prompt to the configured provider and return the raw text.

    ``ollama`` goes to the local HTTP API; every other provider goes through
    mirascope. Timeouts surface as ``DecisionTimeoutError`` and are never
    retried here.
    """

    system_prompt = system_prompt.strip()
    user_prompt = user_prompt.strip()

    try:
        if llm_provider.lower() == "ollama":
            text = await asyncio.wait_for(
                call_ollama_chat(
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    llm_model=llm_model,
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        else:

            @llm.call(provider=llm_provider, model=llm_model)
            async def _invoke(prompt: str) -> str:
                return prompt

            response = await asyncio.wait_for(
                _invoke(_combine(system_prompt, user_prompt)),
                timeout=timeout,
            )
            text = response if isinstance(response, str) else getattr(response, "content", "")
    except asyncio.TimeoutError as exc:
        log_error(f"Decision request to {llm_provider}/{llm_model} timed out after {timeout:g}s")
        raise DecisionTimeoutError(timeout) from exc

    if not text or not text.strip():
        raise EmptyResponseError(f"{llm_provider}/{llm_model} returned an empty response")
    return text


async def request_decision(
    complete: Callable[[str, str], Any],
    *,
    system_prompt: str,
    user_prompt: str,
    max_attempts: int = 2,
    label: str = "agent",
    feedback_builder: Callable[[DecisionParseError], ValidationFeedback] = inject_validation_feedback,
) -> tuple[Decision, str]:
    """Ask for a decision, retrying unparseable responses with feedback.

    ``complete`` is an async ``(system, user) -> str`` callable, normally a
    decision service's ``complete``. Only ``DecisionParseError`` is retried;
    service errors, timeouts and empty responses propagate immediately.
    Returns the decision together with the raw text it came from.
    """

    base_user_prompt = user_prompt.strip()
    feedback: ValidationFeedback | None = None
    attempt_number = 0

    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(DecisionParseError),
        stop=stop_after_attempt(max_attempts),
        reraise=True,
    ):
        with attempt:
            attempt_number += 1
            if attempt_number > 1:
                log_llm(f"Retry {attempt_number}/{max_attempts} for {label}; asking for corrected JSON")

            prompt = base_user_prompt
            if feedback is not None:
                prompt = f"{base_user_prompt}\n\n{feedback.llm_text}"

            if debug_llm_enabled():
                log_llm(f"Prompt for {label}:\n{system_prompt}\n\n{prompt}")

            raw = await complete(system_prompt, prompt)

            if debug_llm_enabled():
                log_llm(f"Raw response for {label}:\n{raw}")

            try:
                return parse_decision(raw), raw
            except DecisionParseError as exc:
                feedback = feedback_builder(exc)
                log_error(
                    f"Unusable decision for {label} (attempt {attempt_number}/{max_attempts}): {exc}"
                )
                for issue in feedback.issues:
                    log_error(f"    - {issue}")
                raise

    raise RuntimeError("Decision retry loop exited unexpectedly")


__all__ = [
    "LLM_TIMEOUT_SECONDS",
    "ValidationFeedback",
    "inject_validation_feedback",
    "validation_issues",
    "strip_code_fence",
    "parse_decision",
    "complete_text",
    "request_decision",
]
