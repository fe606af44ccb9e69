import socket
from urllib import error

import pytest

from campfire.errors import DecisionTimeoutError, EmptyResponseError
from campfire.local_llm import (
    LocalLLMError,
    _perform_ollama_request,
    build_chat_payload,
    call_ollama_chat,
    extract_content,
)


def _reply(content):
    return {"model": "llama3.1", "message": {"role": "assistant", "content": content}, "done": True}


@pytest.mark.asyncio
async def test_call_ollama_chat_sends_json_mode_payload(monkeypatch):
    captured: dict[str, object] = {}

    def fake_request(payload, base_url, timeout):
        captured.update(payload=payload, base_url=base_url, timeout=timeout)
        return _reply('{"next_action": {"name": "wander"}}')

    monkeypatch.setattr("campfire.local_llm._perform_ollama_request", fake_request)

    result = await call_ollama_chat(
        system_prompt="You are Lira.",
        user_prompt="You are cold.",
        llm_model="llama3.1",
        base_url="http://localhost:11434/",
        timeout=30,
    )

    assert result == '{"next_action": {"name": "wander"}}'
    assert captured["payload"] == {
        "model": "llama3.1",
        "messages": [
            {"role": "system", "content": "You are Lira."},
            {"role": "user", "content": "You are cold."},
        ],
        "stream": False,
        "format": "json",
    }
    assert captured["base_url"] == "http://localhost:11434"
    assert captured["timeout"] == 30


def test_payload_options():
    payload = build_chat_payload(
        system_prompt="  ",
        user_prompt="Hi",
        llm_model="llama3.1",
        json_mode=False,
        temperature=0.2,
    )

    assert "format" not in payload
    assert payload["messages"] == [{"role": "user", "content": "Hi"}]
    assert payload["options"] == {"temperature": 0.2}


def test_payload_requires_user_prompt():
    with pytest.raises(LocalLLMError):
        build_chat_payload(system_prompt="System", user_prompt="  ", llm_model="llama3.1")


def test_extract_content_maps_bad_replies():
    assert extract_content(_reply("ok"), "llama3.1") == "ok"

    with pytest.raises(EmptyResponseError):
        extract_content(_reply("   "), "llama3.1")
    with pytest.raises(EmptyResponseError):
        extract_content({"done": True}, "llama3.1")
    with pytest.raises(LocalLLMError, match="model not found"):
        extract_content({"error": "model not found"}, "llama3.1")


@pytest.mark.asyncio
async def test_empty_local_reply_is_an_empty_response(monkeypatch):
    monkeypatch.setattr("campfire.local_llm._perform_ollama_request", lambda *args: _reply(""))

    with pytest.raises(EmptyResponseError):
        await call_ollama_chat(system_prompt="", user_prompt="Decide.", llm_model="llama3.1")


def test_transport_errors(monkeypatch):
    def timed_out(req, timeout):
        raise error.URLError(socket.timeout("timed out"))

    def refused(req, timeout):
        raise error.URLError(ConnectionRefusedError(111, "Connection refused"))

    monkeypatch.setattr("campfire.local_llm.request.urlopen", timed_out)
    with pytest.raises(DecisionTimeoutError):
        _perform_ollama_request({}, "http://localhost:11434", 5)

    monkeypatch.setattr("campfire.local_llm.request.urlopen", refused)
    with pytest.raises(LocalLLMError, match="Could not reach Ollama"):
        _perform_ollama_request({}, "http://localhost:11434", 5)
