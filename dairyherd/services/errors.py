"""
Exceptions raised by the lifecycle and breeding engine.

Ineligibility and "not yet due" outcomes are not errors; they come back as
normal results. Only malformed input and illegal status changes raise.
"""
from typing import Optional


class EngineError(Exception):
    """Base class for engine errors."""


class ValidationError(EngineError, ValueError):
    """A required input is missing, malformed or out of range."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class InvalidTransitionError(EngineError):
    """A status change was requested from the wrong source state."""

    def __init__(self, current: Optional[str], target: str, message: str):
        self.current = current
        self.target = target
        self.message = message
        super().__init__(message)
