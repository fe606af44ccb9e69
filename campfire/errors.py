"""Exceptions raised across the decision service boundary.

Action outcomes never raise; they travel as ``ActionResult`` values. The
classes below cover the external decision service, whose failures are
propagated to whoever drives the trigger loop.
"""

from __future__ import annotations

from typing import Optional, Sequence


class DecisionServiceError(RuntimeError):
    """Base class for failures talking to the external decision service."""


class DecisionTimeoutError(DecisionServiceError):
    """The service did not answer within the configured timeout."""

    def __init__(self, timeout_s: float) -> None:
        self.timeout_s = timeout_s
        super().__init__(f"Decision request timed out after {timeout_s:g}s")


class EmptyResponseError(DecisionServiceError):
    """The service answered with nothing usable."""


class DecisionParseError(DecisionServiceError):
    """A response could not be turned into a ``Decision``.

    ``issues`` lists human-readable problems (field path plus message) so the
    retry helper can feed them back to the model.
    """

    def __init__(
        self,
        message: str,
        *,
        raw: str = "",
        issues: Optional[Sequence[str]] = None,
    ) -> None:
        self.raw = raw
        self.issues = list(issues or [message])
        super().__init__(message)


__all__ = [
    "DecisionServiceError",
    "DecisionTimeoutError",
    "EmptyResponseError",
    "DecisionParseError",
]
