"""Word-flash drills.

Two drills live here:

- WordFlashDrill: flashes single vocabulary words; after each flash the
  reader types what they saw (recall).
- RapidReader: streams a passage in chunks of 1-5 words at a target WPM,
  with touch-gesture controls for speed, chunk size and play/pause.

Both are driven by tick(now_ms) and never sleep.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from readspeed.core.pacing import (
    DrillConfigError,
    DrillStateError,
    flash_interval_ms,
    words_per_minute,
)
from readspeed.core.vocabulary import VOCABULARY_LEVELS, pick_words
from readspeed.utils.text_utils import split_words

logger = structlog.get_logger(__name__)

__all__ = [
    "FlashMode",
    "FlashSettings",
    "FlashResults",
    "WordFlashDrill",
    "Gesture",
    "classify_gesture",
    "Reveal",
    "ReaderResult",
    "RapidReader",
    "flash_interval_ms",
]


# =============================================================================
# RECALL DRILL
# =============================================================================


class FlashMode(str, Enum):
    """Recall drill modes."""

    SETUP = "setup"
    PLAYING = "playing"
    INPUT = "input"
    RESULTS = "results"


@dataclass
class FlashSettings:
    """Recall drill settings.

    flash_speed_ms must fall in [min_speed_ms, max_speed_ms].
    """

    flash_speed_ms: int = 200
    vocabulary_level: str = "foundation"
    words_per_round: int = 15
    min_speed_ms: int = 50
    max_speed_ms: int = 500
    accuracy_threshold: float = 75.0
    speed_adjustment_ms: int = 10

    @classmethod
    def from_wpm(cls, wpm: float, **kwargs: Any) -> FlashSettings:
        """Settings whose flash duration matches a words-per-minute rate."""
        return cls(flash_speed_ms=flash_interval_ms(wpm), **kwargs)

    @classmethod
    def from_exercise_config(cls, config: dict[str, Any], **overrides: Any) -> FlashSettings:
        """Build settings from an exercise's stored config JSON."""
        values: dict[str, Any] = {
            "flash_speed_ms": config.get("default_speed", 200),
            "min_speed_ms": config.get("min_speed", 50),
            "max_speed_ms": config.get("max_speed", 500),
            "accuracy_threshold": config.get("accuracy_threshold", 75),
            "speed_adjustment_ms": config.get("speed_adjustment", 10),
        }
        values.update(overrides)
        return cls(**values)

    def validate(self) -> None:
        if not self.min_speed_ms <= self.flash_speed_ms <= self.max_speed_ms:
            raise DrillConfigError(
                f"Flash speed must be between {self.min_speed_ms} and "
                f"{self.max_speed_ms} ms, got {self.flash_speed_ms}"
            )
        if self.vocabulary_level not in VOCABULARY_LEVELS:
            raise DrillConfigError(f"Unknown vocabulary level '{self.vocabulary_level}'")
        if self.words_per_round < 1:
            raise DrillConfigError("words_per_round must be at least 1")


@dataclass
class FlashResults:
    """Outcome of a finished recall drill."""

    words_shown: list[str]
    user_answers: list[str]
    response_times: list[int]
    correct_count: int
    duration_ms: int

    @property
    def total(self) -> int:
        return len(self.words_shown)

    @property
    def accuracy(self) -> float:
        if not self.words_shown:
            return 0.0
        return self.correct_count / self.total * 100

    @property
    def average_response_ms(self) -> float:
        if not self.response_times:
            return 0.0
        return sum(self.response_times) / len(self.response_times)


class WordFlashDrill:
    """Flash-then-recall vocabulary drill.

    Mode flow: setup -> playing -> input -> playing -> ... -> results.

    Example:
        drill = WordFlashDrill(FlashSettings(flash_speed_ms=200), rng=random.Random(1))
        drill.start(now_ms=0)
        drill.tick(now_ms=200)          # word hidden, mode is input
        drill.submit_answer("the", now_ms=900)
    """

    def __init__(
        self,
        settings: FlashSettings | None = None,
        rng: random.Random | None = None,
    ):
        self.settings = settings or FlashSettings()
        self.settings.validate()
        self._rng = rng or random.Random()
        self.reset()

    def reset(self) -> None:
        """Return to a clean setup state."""
        self.mode = FlashMode.SETUP
        self.words: list[str] = []
        self.index = 0
        self.user_answers: list[str] = []
        self.response_times: list[int] = []
        self.correct_count = 0
        self._word_started_at: float | None = None
        self._started_at: float | None = None
        self._ended_at: float | None = None

    @property
    def current_word(self) -> str | None:
        """The word on screen; None unless a word is being flashed."""
        if self.mode is FlashMode.PLAYING:
            return self.words[self.index]
        return None

    @property
    def target_word(self) -> str | None:
        """The word being asked for, during playing and input."""
        if self.mode in (FlashMode.PLAYING, FlashMode.INPUT):
            return self.words[self.index]
        return None

    def start(self, now_ms: float, words: list[str] | None = None) -> str:
        """Pick words and flash the first one.

        Args:
            now_ms: Current time in milliseconds
            words: Explicit word list; defaults to a random pick at the
                configured vocabulary level

        Returns:
            The first word shown
        """
        if self.mode not in (FlashMode.SETUP, FlashMode.RESULTS):
            raise DrillStateError("start", self.mode.value)
        self.reset()
        self.words = list(words) if words else pick_words(
            self.settings.vocabulary_level, self.settings.words_per_round, self._rng
        )
        if not self.words:
            raise DrillConfigError("No words to flash")
        self.mode = FlashMode.PLAYING
        self._started_at = now_ms
        self._word_started_at = now_ms
        return self.words[0]

    def tick(self, now_ms: float) -> FlashMode:
        """Hide the word once its flash duration has elapsed."""
        if (
            self.mode is FlashMode.PLAYING
            and self._word_started_at is not None
            and now_ms - self._word_started_at >= self.settings.flash_speed_ms
        ):
            self.mode = FlashMode.INPUT
        return self.mode

    def submit_answer(self, answer: str, now_ms: float) -> bool | None:
        """Record the reader's answer for the current word.

        Matching ignores case and surrounding whitespace. Response time is
        measured from when the word was first shown.

        Returns:
            True/False for correct/incorrect, None when the answer was
            blank and ignored
        """
        if self.mode is not FlashMode.INPUT:
            raise DrillStateError("submit an answer", self.mode.value)

        cleaned = answer.strip()
        if not cleaned:
            return None

        word = self.words[self.index]
        correct = cleaned.lower() == word.lower()
        self.user_answers.append(cleaned)
        self.response_times.append(round(now_ms - (self._word_started_at or now_ms)))
        if correct:
            self.correct_count += 1

        if self.index + 1 < len(self.words):
            self.index += 1
            self.mode = FlashMode.PLAYING
            self._word_started_at = now_ms
        else:
            self.mode = FlashMode.RESULTS
            self._ended_at = now_ms
            logger.debug(
                "word_flash.completed",
                words=len(self.words),
                correct=self.correct_count,
            )
        return correct

    def results(self) -> FlashResults:
        if self.mode is not FlashMode.RESULTS:
            raise DrillStateError("read results", self.mode.value)
        return FlashResults(
            words_shown=list(self.words),
            user_answers=list(self.user_answers),
            response_times=list(self.response_times),
            correct_count=self.correct_count,
            duration_ms=round((self._ended_at or 0) - (self._started_at or 0)),
        )

    def suggest_next_speed(self) -> int:
        """Flash duration for the next round.

        Shortens the flash when accuracy met the threshold, lengthens it
        otherwise, clamped to the configured range.
        """
        results = self.results()
        s = self.settings
        if results.accuracy >= s.accuracy_threshold:
            return max(s.min_speed_ms, s.flash_speed_ms - s.speed_adjustment_ms)
        return min(s.max_speed_ms, s.flash_speed_ms + s.speed_adjustment_ms)

    def to_result_payload(self) -> dict[str, Any]:
        """Exercise-result payload for the results endpoint."""
        results = self.results()
        return {
            "score": round(results.accuracy, 2),
            "accuracy_percentage": round(results.accuracy, 2),
            "avg_response_time": round(results.average_response_ms, 2),
            "total_attempts": results.total,
            "correct_count": results.correct_count,
            "completion_time": round(results.duration_ms / 1000),
            "metadata": {
                "words_shown": results.words_shown,
                "user_answers": results.user_answers,
                "response_times": results.response_times,
                "flash_speed_ms": self.settings.flash_speed_ms,
                "vocabulary_level": self.settings.vocabulary_level,
            },
        }


# =============================================================================
# GESTURES
# =============================================================================


class Gesture(str, Enum):
    """Touch gestures understood by the rapid reader."""

    SWIPE_LEFT = "swipe_left"
    SWIPE_RIGHT = "swipe_right"
    SWIPE_UP = "swipe_up"
    SWIPE_DOWN = "swipe_down"
    TAP = "tap"


MAX_GESTURE_MS = 300
MIN_SWIPE_DISTANCE = 50
MAX_SWIPE_DRIFT = 100
MAX_TAP_DISTANCE = 20


def classify_gesture(dx: float, dy: float, dt_ms: float) -> Gesture | None:
    """Classify a touch from its displacement and duration.

    dx/dy use screen coordinates (positive dy points down).

    Returns:
        The gesture, or None for touches that are too slow or ambiguous
    """
    if dt_ms > MAX_GESTURE_MS:
        return None
    if abs(dx) > MIN_SWIPE_DISTANCE and abs(dy) < MAX_SWIPE_DRIFT:
        return Gesture.SWIPE_RIGHT if dx > 0 else Gesture.SWIPE_LEFT
    if abs(dy) > MIN_SWIPE_DISTANCE and abs(dx) < MAX_SWIPE_DRIFT:
        return Gesture.SWIPE_DOWN if dy > 0 else Gesture.SWIPE_UP
    if abs(dx) < MAX_TAP_DISTANCE and abs(dy) < MAX_TAP_DISTANCE:
        return Gesture.TAP
    return None


# =============================================================================
# RAPID READER
# =============================================================================

MIN_SPEED = 50
MAX_SPEED = 1000
SPEED_STEP = 50
MIN_CHUNK = 1
MAX_CHUNK = 5


@dataclass
class Reveal:
    """One step of a reveal schedule."""

    offset_ms: int
    index: int
    words: list[str] = field(default_factory=list)


@dataclass
class ReaderResult:
    """Outcome of reading a passage to the end."""

    wpm: int
    accuracy: int
    duration: int
    words: int


class RapidReader:
    """Chunked word streamer driven by tick(now_ms)."""

    def __init__(self, text: str, speed: int = 300, chunk: int = 1):
        self.words = split_words(text)
        self.speed = _clamp(speed, MIN_SPEED, MAX_SPEED)
        self.chunk = _clamp(chunk, MIN_CHUNK, MAX_CHUNK)
        self.reset()

    def reset(self) -> None:
        self.index = 0
        self.is_playing = False
        self.result: ReaderResult | None = None
        self._started_at: float | None = None
        self._last_step_at: float | None = None

    @property
    def interval_ms(self) -> int:
        return flash_interval_ms(self.speed)

    @property
    def is_complete(self) -> bool:
        return self.result is not None

    @property
    def progress(self) -> float:
        """Percent of the passage passed, 0-100."""
        if not self.words:
            return 0.0
        return self.index / len(self.words) * 100

    @property
    def current_words(self) -> list[str]:
        """The chunk ending at the current index."""
        start = max(0, self.index - self.chunk + 1)
        return self.words[start : self.index + 1]

    def play(self, now_ms: float) -> None:
        if not self.words:
            raise DrillConfigError("No text to read")
        if self.is_complete:
            self.reset()
        if self._started_at is None:
            self._started_at = now_ms
        self._last_step_at = now_ms
        self.is_playing = True

    def pause(self) -> None:
        self.is_playing = False

    def toggle(self, now_ms: float) -> None:
        if self.is_playing:
            self.pause()
        else:
            self.play(now_ms)

    def set_speed(self, speed: int) -> int:
        self.speed = _clamp(speed, MIN_SPEED, MAX_SPEED)
        return self.speed

    def set_chunk(self, chunk: int) -> int:
        self.chunk = _clamp(chunk, MIN_CHUNK, MAX_CHUNK)
        return self.chunk

    def tick(self, now_ms: float) -> list[str]:
        """Advance by whole intervals elapsed since the last step.

        Returns:
            The words now on screen
        """
        if not self.is_playing or self._last_step_at is None:
            return self.current_words

        interval = self.interval_ms
        while self.is_playing and now_ms - self._last_step_at >= interval:
            self._last_step_at += interval
            next_index = self.index + self.chunk
            if next_index >= len(self.words):
                self.index = len(self.words) - 1
                self._complete(self._last_step_at)
            else:
                self.index = next_index
        return self.current_words

    def _complete(self, now_ms: float) -> None:
        self.is_playing = False
        duration = now_ms - (self._started_at or now_ms)
        self.result = ReaderResult(
            wpm=words_per_minute(len(self.words), duration),
            accuracy=100,
            duration=round(duration / 1000),
            words=len(self.words),
        )
        logger.debug("rapid_reader.completed", wpm=self.result.wpm, words=len(self.words))

    def apply_gesture(self, gesture: Gesture | None, now_ms: float) -> None:
        """Apply a classified gesture. None is ignored."""
        if gesture is Gesture.SWIPE_RIGHT:
            self.set_speed(self.speed - SPEED_STEP)
        elif gesture is Gesture.SWIPE_LEFT:
            self.set_speed(self.speed + SPEED_STEP)
        elif gesture is Gesture.SWIPE_DOWN:
            self.set_chunk(self.chunk - 1)
        elif gesture is Gesture.SWIPE_UP:
            self.set_chunk(self.chunk + 1)
        elif gesture is Gesture.TAP:
            self.toggle(now_ms)

    def interval_schedule(self) -> list[Reveal]:
        """Reveal offsets for reading the whole passage at the current settings.

        The schedule depends only on the text, speed and chunk size, so two
        runs with the same inputs get identical sequences. When the chunk
        stride skips past the last word, the final step shows the trailing
        words, matching what tick() puts on screen.
        """
        interval = self.interval_ms
        schedule: list[Reveal] = []
        index = 0
        step = 0
        while index < len(self.words):
            schedule.append(self._reveal(step * interval, index))
            index += self.chunk
            step += 1
        last = len(self.words) - 1
        if schedule and schedule[-1].index < last:
            schedule.append(self._reveal(step * interval, last))
        return schedule

    @property
    def duration_ms(self) -> int:
        """Milliseconds from play() to completion at the current settings."""
        steps = -(-len(self.words) // self.chunk)
        return steps * self.interval_ms

    def _reveal(self, offset_ms: int, index: int) -> Reveal:
        start = max(0, index - self.chunk + 1)
        return Reveal(offset_ms=offset_ms, index=index, words=self.words[start : index + 1])


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))
