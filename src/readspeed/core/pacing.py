"""Pacing primitives shared by the timed drills.

Drills never own a timer. Callers pass the current time in milliseconds to
tick(now_ms), so any clock (a UI loop, the CLI, a test) can drive them.
"""

from __future__ import annotations


class DrillStateError(Exception):
    """Raised when a drill operation is not valid in the current mode."""

    def __init__(self, operation: str, mode: str):
        self.operation = operation
        self.mode = mode
        super().__init__(f"Cannot {operation} while drill is in '{mode}' mode")


class DrillConfigError(Exception):
    """Raised when drill settings or input text are out of range."""


def flash_interval_ms(wpm: float) -> int:
    """Milliseconds each word stays on screen at a given words-per-minute.

    Raises:
        ValueError: If wpm is not positive
    """
    if wpm <= 0:
        raise ValueError(f"wpm must be positive, got {wpm}")
    return round(60000 / wpm)


def words_per_minute(word_count: int, duration_ms: float) -> int:
    """Observed reading rate; 0 when no time has elapsed."""
    if duration_ms <= 0:
        return 0
    return round(word_count / duration_ms * 60000)
