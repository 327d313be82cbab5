"""Progressive-speed "3-2-1" reading drill.

The reader reads the same passage three times while a pacer moves through
it: a normal round, a faster round and a sprint. Each round is shorter and
the pacer's multiplier higher, pushing the reader past their comfortable
speed.

Mode flow:
    setup -> round1 -> setup -> round2 -> setup -> round3 -> results
with paused reachable from any running round.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from readspeed.core.pacing import DrillConfigError, DrillStateError
from readspeed.utils.text_utils import count_words

logger = structlog.get_logger(__name__)

TICK_MS = 100
TICKS_PER_SECOND = 1000 // TICK_MS
MIN_TEXT_LENGTH = 200
MAX_TEXT_LENGTH = 2000

DEFAULT_TEXT = (
    "The rapid advancement of technology has fundamentally changed how we communicate, "
    "work, and live. Social media platforms connect billions of people worldwide, enabling "
    "instant communication across vast distances. However, this connectivity comes with "
    "challenges including privacy concerns, misinformation, and digital addiction.\n\n"
    "As we navigate this digital landscape, we must balance the benefits of technological "
    "progress with the need to preserve human connection and mental well-being. Artificial "
    "intelligence is becoming increasingly sophisticated, capable of performing tasks that "
    "once required human intelligence. Machine learning algorithms can now recognize "
    "patterns, make predictions, and even create content.\n\n"
    "The future will likely bring even more dramatic changes as these technologies become "
    "more prevalent in our daily lives. Virtual and augmented reality are creating new forms "
    "of entertainment and education. Blockchain technology is revolutionizing how we think "
    "about trust and verification in digital transactions.\n\n"
    "Despite these advances, it's important to remember that technology should serve "
    "humanity, not the other way around. We must ensure that as we embrace these "
    "innovations, we don't lose sight of what makes us fundamentally human: our capacity "
    "for empathy, creativity, and meaningful connection with one another.\n\n"
    "The key to thriving in this technological age is to remain adaptable while staying "
    "grounded in our core values. By doing so, we can harness the power of technology to "
    "create a better world for everyone."
)


class DrillMode(str, Enum):
    SETUP = "setup"
    ROUND1 = "round1"
    ROUND2 = "round2"
    ROUND3 = "round3"
    PAUSED = "paused"
    RESULTS = "results"


ROUND_MODES = (DrillMode.ROUND1, DrillMode.ROUND2, DrillMode.ROUND3)


@dataclass(frozen=True)
class RoundConfig:
    """Duration and pacer multiplier for one round."""

    name: str
    duration: int  # seconds
    multiplier: float


DEFAULT_ROUNDS: tuple[RoundConfig, ...] = (
    RoundConfig("Normal", 180, 1.0),
    RoundConfig("Faster", 120, 1.5),
    RoundConfig("Sprint", 60, 2.0),
)


@dataclass
class RoundResult:
    """Outcome of one completed round."""

    round: int
    name: str
    duration: int
    multiplier: float
    words_read: int
    reading_speed: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "round": self.round,
            "name": self.name,
            "duration": self.duration,
            "multiplier": self.multiplier,
            "words_read": self.words_read,
            "reading_speed": self.reading_speed,
        }


def round_reading_speed(words_read: int, duration: int, multiplier: float) -> int:
    """Paced reading speed for a round in words per minute."""
    return round(words_read / duration * 60 * multiplier)


def rounds_from_config(config: dict[str, Any]) -> tuple[RoundConfig, ...]:
    """Read round definitions from an exercise config, falling back to defaults.

    Raises:
        DrillConfigError: If the config does not define exactly three rounds
    """
    raw = config.get("rounds")
    if not raw:
        return DEFAULT_ROUNDS
    if len(raw) != len(DEFAULT_ROUNDS):
        raise DrillConfigError(f"Expected {len(DEFAULT_ROUNDS)} rounds, got {len(raw)}")
    rounds = []
    for i, entry in enumerate(raw):
        duration = int(entry.get("duration", DEFAULT_ROUNDS[i].duration))
        multiplier = float(entry.get("multiplier", entry.get("speed_multiplier", 1.0)))
        if duration <= 0 or multiplier <= 0:
            raise DrillConfigError("Round duration and multiplier must be positive")
        rounds.append(RoundConfig(entry.get("name", DEFAULT_ROUNDS[i].name), duration, multiplier))
    return tuple(rounds)


class ThreeTwoOneDrill:
    """Three-round pacer driven by tick(now_ms).

    The pacer moves word_count / duration * multiplier words per second,
    applied in 100 ms steps. A round ends when its duration elapses;
    reading speed is then credited for the full passage.
    """

    def __init__(
        self,
        text: str = DEFAULT_TEXT,
        rounds: tuple[RoundConfig, ...] = DEFAULT_ROUNDS,
        min_text_length: int = MIN_TEXT_LENGTH,
        max_text_length: int = MAX_TEXT_LENGTH,
    ):
        self.min_text_length = min_text_length
        self.max_text_length = max_text_length
        self.rounds = rounds
        self.text = DEFAULT_TEXT
        self.word_count = count_words(DEFAULT_TEXT)
        self.reset()
        if text != DEFAULT_TEXT:
            self.set_text(text)

    def reset(self) -> None:
        """Return to a clean setup state, keeping the text."""
        self.mode = DrillMode.SETUP
        self.round_results: list[RoundResult] = []
        self.position = 0.0
        self.remaining_ms = 0
        self._active_mode: DrillMode | None = None
        self._last_tick_at: float | None = None
        self._elapsed_ms = 0

    def set_text(self, text: str) -> None:
        """Use custom text for all rounds.

        Raises:
            DrillStateError: If a round is in progress
            DrillConfigError: If the text length is outside the allowed range
        """
        if self._active_mode is not None:
            raise DrillStateError("change text", self.mode.value)
        stripped = text.strip()
        if not self.min_text_length <= len(stripped) <= self.max_text_length:
            raise DrillConfigError(
                f"Text must be between {self.min_text_length} and "
                f"{self.max_text_length} characters, got {len(stripped)}"
            )
        self.text = stripped
        self.word_count = count_words(stripped)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def completed_rounds(self) -> int:
        return len(self.round_results)

    @property
    def current_round(self) -> RoundConfig | None:
        """Config for the running or paused round."""
        if self._active_mode is None:
            return None
        return self.rounds[ROUND_MODES.index(self._active_mode)]

    @property
    def next_round_number(self) -> int | None:
        """1-based number of the round start_next_round() would start."""
        if self.completed_rounds >= len(self.rounds):
            return None
        return self.completed_rounds + 1

    @property
    def words_per_second(self) -> float:
        config = self.current_round
        if config is None:
            return 0.0
        return self.word_count / config.duration * config.multiplier

    @property
    def average_speed(self) -> int:
        if not self.round_results:
            return 0
        return round(sum(r.reading_speed for r in self.round_results) / len(self.round_results))

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def start_next_round(self, now_ms: float) -> DrillMode:
        """Start the round after the last completed one.

        Raises:
            DrillStateError: Unless in setup with rounds left
        """
        if self.mode is not DrillMode.SETUP or self.next_round_number is None:
            raise DrillStateError("start a round", self.mode.value)

        number = self.next_round_number
        config = self.rounds[number - 1]
        self.mode = ROUND_MODES[number - 1]
        self._active_mode = self.mode
        self.position = 0.0
        self.remaining_ms = config.duration * 1000
        self._elapsed_ms = 0
        self._last_tick_at = now_ms
        logger.debug("three_two_one.round_started", round=number, name=config.name)
        return self.mode

    def pause(self) -> None:
        if self.mode not in ROUND_MODES:
            raise DrillStateError("pause", self.mode.value)
        self.mode = DrillMode.PAUSED

    def resume(self, now_ms: float) -> None:
        if self.mode is not DrillMode.PAUSED or self._active_mode is None:
            raise DrillStateError("resume", self.mode.value)
        self.mode = self._active_mode
        self._last_tick_at = now_ms

    def tick(self, now_ms: float) -> DrillMode:
        """Advance the pacer by every whole 100 ms step since the last tick."""
        if self.mode not in ROUND_MODES or self._last_tick_at is None:
            return self.mode

        step_words = self.words_per_second / TICKS_PER_SECOND
        while self.mode in ROUND_MODES and now_ms - self._last_tick_at >= TICK_MS:
            self._last_tick_at += TICK_MS
            self._elapsed_ms += TICK_MS
            self.position = min(self.position + step_words, float(self.word_count))
            self.remaining_ms = max(0, self.current_round.duration * 1000 - self._elapsed_ms)
            if self.remaining_ms == 0:
                self._complete_round()
        return self.mode

    def _complete_round(self) -> None:
        config = self.current_round
        if config is None:
            raise DrillStateError("complete a round", self.mode.value)
        number = self.completed_rounds + 1
        result = RoundResult(
            round=number,
            name=config.name,
            duration=config.duration,
            multiplier=config.multiplier,
            words_read=self.word_count,
            reading_speed=round_reading_speed(self.word_count, config.duration, config.multiplier),
        )
        self.round_results.append(result)
        self._active_mode = None
        self._last_tick_at = None
        self.mode = DrillMode.RESULTS if number == len(self.rounds) else DrillMode.SETUP
        logger.debug(
            "three_two_one.round_completed",
            round=number,
            reading_speed=result.reading_speed,
        )

    @property
    def pacer_word_index(self) -> int:
        """Index of the word under the pacer."""
        return min(int(self.position), max(self.word_count - 1, 0))

    def to_result_payload(self) -> dict[str, Any]:
        """Exercise-result payload for the results endpoint.

        Raises:
            DrillStateError: Unless all rounds are complete
        """
        if self.mode is not DrillMode.RESULTS:
            raise DrillStateError("read results", self.mode.value)
        average = self.average_speed
        return {
            "score": average,
            "wpm": average,
            "accuracy_percentage": 100,
            "total_attempts": len(self.round_results),
            "correct_count": len(self.round_results),
            "completion_time": sum(r.duration for r in self.round_results),
            "metadata": {
                "round_results": [r.to_dict() for r in self.round_results],
                "word_count": self.word_count,
            },
        }
