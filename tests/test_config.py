"""Tests for environment configuration and simulation settings files."""

import json

import pytest

from campfire.config import Config, SimulationSettings, load_settings


def test_settings_file_overrides_only_given_keys(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps({"vitals": {"food_decrease_rate": 0.3}, "actions": {"inventory_capacity": 4}}),
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.vitals.food_decrease_rate == 0.3
    assert settings.vitals.warmth_decrease_rate == SimulationSettings().vitals.warmth_decrease_rate
    assert settings.actions.inventory_capacity == 4


def test_defaults_without_settings_file(monkeypatch):
    monkeypatch.setattr(Config, "SETTINGS_PATH", None)
    assert load_settings() == SimulationSettings()


def test_validate_accepts_ollama_without_keys(monkeypatch):
    monkeypatch.setattr(Config, "LLM_PROVIDER", "ollama")
    monkeypatch.setattr(Config, "OPENAI_API_KEY", None)
    Config.validate()


def test_validate_requires_provider_key(monkeypatch):
    monkeypatch.setattr(Config, "LLM_PROVIDER", "openai")
    monkeypatch.setattr(Config, "OPENAI_API_KEY", None)
    with pytest.raises(ValueError, match="OPENAI_API_KEY"):
        Config.validate()

    monkeypatch.setattr(Config, "LLM_PROVIDER", "carrier-pigeon")
    with pytest.raises(ValueError, match="Unsupported"):
        Config.validate()


def test_display_lists_provider_and_model(monkeypatch):
    monkeypatch.setattr(Config, "LLM_PROVIDER", "anthropic")
    monkeypatch.setattr(Config, "LLM_MODEL", "claude-test")
    text = Config.display()
    assert "LLM Provider: anthropic" in text
    assert "LLM Model: claude-test" in text
