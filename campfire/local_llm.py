"""Decision requests against a locally hosted model (Ollama).

The blocking HTTP round trip runs in a worker thread. Its failures map onto
the decision service errors so a local model fails the same way a hosted one
does: unreachable servers raise ``LocalLLMError``, socket timeouts raise
``DecisionTimeoutError`` and replies without assistant text raise
``EmptyResponseError``.
"""

from __future__ import annotations

import asyncio
import json
import os
import socket
from typing import Any
from urllib import error, request

from .errors import DecisionServiceError, DecisionTimeoutError, EmptyResponseError

DEFAULT_OLLAMA_BASE_URL = "http://127.0.0.1:11434"
_CHAT_ENDPOINT = "/api/chat"


class LocalLLMError(DecisionServiceError):
    """Raised when the local model server cannot be used."""


def build_chat_payload(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_model: str,
    json_mode: bool = True,
    temperature: float | None = None,
) -> dict[str, Any]:
    """Non-streaming ``/api/chat`` body for one decision request.

    ``json_mode`` constrains the output to JSON, which small local models
    otherwise tend to wrap in prose.
    """

    user_prompt = user_prompt.strip()
    if not user_prompt:
        raise LocalLLMError("Cannot call Ollama with an empty user prompt.")

    messages: list[dict[str, str]] = []
    if system_prompt.strip():
        messages.append({"role": "system", "content": system_prompt.strip()})
    messages.append({"role": "user", "content": user_prompt})

    payload: dict[str, Any] = {"model": llm_model, "messages": messages, "stream": False}
    if json_mode:
        payload["format"] = "json"
    if temperature is not None:
        payload["options"] = {"temperature": temperature}
    return payload


def extract_content(reply: dict[str, Any], llm_model: str) -> str:
    """Assistant text of a chat reply."""

    if reply.get("error"):
        raise LocalLLMError(f"Ollama model {llm_model} failed: {reply['error']}")
    content = (reply.get("message") or {}).get("content") or ""
    if not content.strip():
        raise EmptyResponseError(f"ollama/{llm_model} returned no assistant content")
    return content


def _perform_ollama_request(
    payload: dict[str, Any],
    base_url: str,
    timeout: float,
) -> dict[str, Any]:
    """POST ``payload`` and return the decoded JSON reply."""

    url = f"{base_url.rstrip('/')}{_CHAT_ENDPOINT}"
    req = request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )

    try:
        with request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8")
    except error.HTTPError as exc:
        body = exc.read().decode("utf-8", errors="ignore") if exc.fp else ""
        raise LocalLLMError(f"Ollama returned status {exc.code}: {body or exc.reason}") from exc
    except error.URLError as exc:
        if isinstance(exc.reason, socket.timeout):
            raise DecisionTimeoutError(timeout) from exc
        raise LocalLLMError(f"Could not reach Ollama at {url}: {exc.reason}") from exc
    except socket.timeout as exc:
        raise DecisionTimeoutError(timeout) from exc

    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LocalLLMError("Ollama returned a non-JSON reply.") from exc


async def call_ollama_chat(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_model: str,
    base_url: str | None = None,
    timeout: float = 120.0,
    json_mode: bool = True,
    temperature: float | None = None,
) -> str:
    """Ask a local Ollama model for a decision and return the assistant text."""

    payload = build_chat_payload(
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        llm_model=llm_model,
        json_mode=json_mode,
        temperature=temperature,
    )
    resolved_base = (base_url or os.getenv("OLLAMA_BASE_URL") or DEFAULT_OLLAMA_BASE_URL).rstrip("/")
    reply = await asyncio.to_thread(_perform_ollama_request, payload, resolved_base, timeout)
    return extract_content(reply, llm_model)


__all__ = [
    "DEFAULT_OLLAMA_BASE_URL",
    "LocalLLMError",
    "build_chat_payload",
    "call_ollama_chat",
    "extract_content",
]
