"""Logging utilities for Campfire simulations.

Provides color-coded output to distinguish deterministic state changes
(vitals, action states, pipeline) from calls to the external decision service.
"""

import os
from enum import Enum


class Color(Enum):
    """ANSI color codes for terminal output."""

    # Colors for operation types
    BLUE = "\033[94m"      # Deterministic operations (state machine, pipeline)
    YELLOW = "\033[93m"    # Decision service calls
    RED = "\033[91m"       # Errors and failed actions
    GREEN = "\033[92m"     # Success/completion
    CYAN = "\033[96m"      # Info/metadata

    # Formatting
    BOLD = "\033[1m"
    RESET = "\033[0m"


# Markers for operation types (color-blind accessible)
LOG_TAG_DETERMINISTIC = "[•]"
LOG_TAG_LLM = "[AI]"
LOG_TAG_ERROR = "[!]"
LOG_TAG_SUCCESS = "[✓]"
LOG_TAG_INFO = "[i]"


def _enabled(var: str) -> bool:
    return os.getenv(var, "").lower() in ("1", "true", "yes")


def debug_llm_enabled() -> bool:
    """Return True when prompts and raw responses should be dumped."""

    return _enabled("DEBUG_LLM")


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Wrap text in ANSI color codes if colors are enabled.

    Args:
        text: Text to colorize
        color: Color to apply
        bold: Whether to make text bold

    Returns:
        Colorized text unless CAMPFIRE_NO_COLOR is set, otherwise plain text
    """
    if os.getenv("CAMPFIRE_NO_COLOR"):
        return text

    prefix = color.value
    if bold:
        prefix = Color.BOLD.value + prefix

    return f"{prefix}{text}{Color.RESET.value}"


def _emit(tag: str, message: str, color: Color) -> None:
    if _enabled("CAMPFIRE_QUIET"):
        return
    print(colored(f"{tag} {message}", color))


def log_deterministic(message: str) -> None:
    """Log a deterministic operation (blue)."""
    _emit(LOG_TAG_DETERMINISTIC, message, Color.BLUE)


def log_llm(message: str) -> None:
    """Log a decision service operation (yellow)."""
    _emit(LOG_TAG_LLM, message, Color.YELLOW)


def log_error(message: str) -> None:
    """Log an error (red). Never silenced by CAMPFIRE_QUIET."""
    print(colored(f"{LOG_TAG_ERROR} {message}", Color.RED))


def log_success(message: str) -> None:
    """Log a success (green)."""
    _emit(LOG_TAG_SUCCESS, message, Color.GREEN)


def log_info(message: str) -> None:
    """Log metadata/info (cyan)."""
    _emit(LOG_TAG_INFO, message, Color.CYAN)
