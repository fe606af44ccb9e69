"""
Campfire Configuration

Two layers:

* ``Config`` loads process-level settings (LLM provider, keys, tick length)
  from environment variables with sensible defaults.
* ``SimulationSettings`` groups every numeric constant the simulation core
  consumes (rates, thresholds, durations). Nothing in the core hardcodes
  these; pass a customised ``SimulationSettings`` or point
  ``CAMPFIRE_SETTINGS`` at a JSON file.
"""

import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env file if it exists
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # LLM Provider Configuration
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o-mini")

    # API Keys
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    GOOGLE_API_KEY: str | None = os.getenv("GOOGLE_API_KEY")

    # Local LLM Configuration (Ollama)
    OLLAMA_BASE_URL: str | None = os.getenv("OLLAMA_BASE_URL")

    # Simulation Configuration
    DEFAULT_TICK_COUNT: int = int(os.getenv("DEFAULT_TICK_COUNT", "600"))
    # 60 fps visual updates in the original game; the core is happy with coarser ticks
    TICK_DURATION_MS: float = float(os.getenv("TICK_DURATION_MS", "100"))

    # Optional JSON file with SimulationSettings overrides
    SETTINGS_PATH: str | None = os.getenv("CAMPFIRE_SETTINGS")

    # Project Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent
    SCENARIOS_DIR: Path = PROJECT_ROOT / "examples" / "scenarios"

    _KEYS_BY_PROVIDER = {
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "google": "GOOGLE_API_KEY",
    }

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if required values are missing."""
        provider = cls.LLM_PROVIDER.lower()
        if provider == "ollama":
            return

        key_name = cls._KEYS_BY_PROVIDER.get(provider)
        if key_name is None:
            raise ValueError(
                f"Unsupported LLM_PROVIDER '{cls.LLM_PROVIDER}'. "
                "Use one of: openai, anthropic, google, ollama."
            )
        if not getattr(cls, key_name):
            raise ValueError(
                f"{key_name} is required when using the '{provider}' provider. "
                "For a local model, set LLM_PROVIDER=ollama instead."
            )

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "Campfire Configuration:",
            f"  LLM Provider: {cls.LLM_PROVIDER}",
            f"  LLM Model: {cls.LLM_MODEL}",
            f"  Default Ticks: {cls.DEFAULT_TICK_COUNT}",
            f"  Tick Duration: {cls.TICK_DURATION_MS}ms",
            f"  Settings File: {cls.SETTINGS_PATH or '(defaults)'}",
        ]
        return "\n".join(lines)


# ============================================================================
# Simulation tunables
# ============================================================================
# Scale for all vitals is 0-100 and LOW IS ALWAYS BAD. Rates are per simulated
# second, durations are simulated milliseconds, distances are world pixels.


class VitalsSettings(BaseModel):
    """Rates and thresholds for the per-tick needs update."""

    initial_food: float = 100.0
    initial_energy: float = 100.0
    initial_warmth: float = 100.0
    initial_health: float = 100.0

    food_critical: float = Field(30.0, description="Below this, health starts decreasing")
    warmth_critical: float = Field(30.0, description="Below this, health starts decreasing")
    energy_no_run: float = Field(30.0, description="At or below this, the agent cannot run")
    energy_slow_walk: float = Field(15.0, description="At or below this, the agent walks slowly")
    energy_force_sleep: float = Field(5.0, description="At or below this, the agent must sleep")

    # Needs "met" for health regeneration
    food_met: float = 50.0
    warmth_met: float = 50.0
    energy_met: float = 50.0

    food_decrease_rate: float = 0.1
    energy_idle_rate: float = 0.05
    energy_walk_rate: float = 0.15
    energy_run_rate: float = 0.3
    energy_sleep_rate: float = 1.5
    warmth_decrease_rate: float = 0.2
    warmth_increase_rate: float = 0.5
    health_decrease_rate: float = Field(0.5, description="Per critical need per second")
    health_regen_rate: float = 0.3

    warmth_radius: float = Field(100.0, description="Distance to a warmth source that warms")

    sleep_target_energy: float = Field(90.0, description="Sleep until energy rises above this")
    sleep_interrupt_health: float = Field(20.0, description="Wake up if health drops below this")


class MovementSettings(BaseModel):
    """Locomotion speeds and movement-state durations."""

    walk_speed: float = Field(90.0, description="Pixels per second at normal pace")
    run_multiplier: float = 2.0
    run_distance: float = Field(200.0, description="Run toward targets farther than this")
    slow_multiplier: float = 0.5
    direction_change_ms: float = 4000.0
    arrival_distance: float = 20.0
    wander_min_ms: float = 3000.0
    wander_max_ms: float = 7000.0
    search_duration_ms: float = 10000.0
    world_padding: float = 50.0


class ActionSettings(BaseModel):
    """Constants for instantaneous and composite actions."""

    interaction_range: float = 50.0
    inventory_capacity: int = 2
    ground_pickup_ms: float = Field(100.0, description="Pickup time for items lying on the ground")
    harvest_ms: Dict[str, float] = Field(
        default_factory=lambda: {"tree": 3000.0, "grass": 2500.0},
        description="Harvest time keyed by source entity type",
    )
    drop_scatter: float = Field(30.0, description="Dropped items land within +/- scatter/2")
    history_limit: int = 20
    follow_up_delay_ms: float = Field(
        100.0, description="Delay before re-evaluating triggers after an action completes"
    )


class PerceptionSettings(BaseModel):
    """Visibility radius and how long remembered locations stay relevant."""

    visibility_radius: float = 150.0
    # Two in-game days at the original 240x time multiplier
    memory_horizon_ms: float = 2 * 24 * 3600 * 1000 / 240


class DecisionSettings(BaseModel):
    """Rate limiting and trigger timings for the external decision service."""

    max_calls_per_window: int = 5
    window_ms: float = 10000.0
    min_call_spacing_ms: float = 2000.0
    idle_trigger_ms: float = 5000.0
    heartbeat_ms: float = 30000.0
    health_low_threshold: float = 30.0
    history_in_prompt: int = 5
    parse_attempts: int = Field(2, ge=1, description="Attempts when a response fails to parse")
    request_timeout_s: float = 120.0


class TranslatorSettings(BaseModel):
    """Thresholds for turning numbers into prompt words."""

    need_tiers: tuple[float, float, float, float] = (75.0, 50.0, 25.0, 10.0)
    at_hand_distance: float = 50.0
    nearby_distance: float = 120.0
    fuel_blaze: float = 90.0
    fuel_strong: float = 70.0
    fuel_low: float = 30.0
    nearby_cap: int = 3
    walk_px_per_minute: float = 1350.0
    useful_memory_below: float = 80.0


class WorldSettings(BaseModel):
    """Bounds of the world and warmth-source behaviour."""

    width: float = 1280.0
    height: float = 800.0
    bonfire_max_fuel: float = 100.0
    bonfire_burn_rate: float = Field(0.05, description="Fuel burned per second")


class SimulationSettings(BaseModel):
    """Every tunable the simulation core consumes."""

    vitals: VitalsSettings = Field(default_factory=VitalsSettings)
    movement: MovementSettings = Field(default_factory=MovementSettings)
    actions: ActionSettings = Field(default_factory=ActionSettings)
    perception: PerceptionSettings = Field(default_factory=PerceptionSettings)
    decision: DecisionSettings = Field(default_factory=DecisionSettings)
    translator: TranslatorSettings = Field(default_factory=TranslatorSettings)
    world: WorldSettings = Field(default_factory=WorldSettings)

    @classmethod
    def from_file(cls, path: str | Path) -> "SimulationSettings":
        """Load settings from a JSON file; missing keys keep their defaults."""

        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))


def load_settings(path: Optional[str | Path] = None) -> SimulationSettings:
    """Return settings from ``path``, ``CAMPFIRE_SETTINGS`` or the defaults."""

    resolved = path or Config.SETTINGS_PATH
    if not resolved:
        return SimulationSettings()
    return SimulationSettings.from_file(resolved)
