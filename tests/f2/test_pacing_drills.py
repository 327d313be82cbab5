"""Tests for the timed drills (F2).

Drills are driven with explicit millisecond timestamps, so no test sleeps.
"""

import random

import pytest

from readspeed.core.pacing import (
    DrillConfigError,
    DrillStateError,
    flash_interval_ms,
    words_per_minute,
)
from readspeed.core.three_two_one import (
    DEFAULT_ROUNDS,
    DrillMode,
    ThreeTwoOneDrill,
    round_reading_speed,
    rounds_from_config,
)
from readspeed.core.vocabulary import (
    VOCABULARY_WORDS,
    UnknownVocabularyLevelError,
    pick_words,
)
from readspeed.core.word_flasher import (
    FlashMode,
    FlashSettings,
    Gesture,
    RapidReader,
    WordFlashDrill,
    classify_gesture,
)

SIXTY_WORDS = " ".join(["reading"] * 60)
TEN_WORDS = "one two three four five six seven eight nine ten"


class TestPacing:
    """Tests for interval and rate helpers."""

    @pytest.mark.parametrize("wpm,expected", [(300, 200), (60, 1000), (1000, 60), (50, 1200)])
    def test_flash_interval(self, wpm, expected):
        """Interval is 60000 / wpm milliseconds."""
        assert flash_interval_ms(wpm) == expected

    def test_flash_interval_rejects_zero(self):
        with pytest.raises(ValueError):
            flash_interval_ms(0)

    def test_words_per_minute(self):
        assert words_per_minute(100, 20000) == 300
        assert words_per_minute(100, 0) == 0


class TestVocabulary:
    """Tests for pick_words."""

    def test_words_are_distinct_and_from_level(self):
        words = pick_words("intermediate", 10, random.Random(7))
        assert len(words) == len(set(words)) == 10
        assert set(words) <= set(VOCABULARY_WORDS["intermediate"])

    def test_seeded_pick_is_reproducible(self):
        assert pick_words("advanced", 5, random.Random(3)) == pick_words(
            "advanced", 5, random.Random(3)
        )

    def test_count_capped_at_list_size(self):
        words = pick_words("foundation", 10_000, random.Random(1))
        assert len(words) == len(VOCABULARY_WORDS["foundation"])

    def test_unknown_level(self):
        with pytest.raises(UnknownVocabularyLevelError, match="expert"):
            pick_words("expert", 3)


class TestWordFlashDrill:
    """Tests for the flash-then-recall drill."""

    def test_flash_hides_after_duration(self):
        """The word stays up for exactly flash_speed_ms."""
        drill = WordFlashDrill(FlashSettings(flash_speed_ms=200))
        assert drill.start(0, words=["alpha", "beta"]) == "alpha"
        assert drill.tick(199) is FlashMode.PLAYING
        assert drill.current_word == "alpha"
        assert drill.tick(200) is FlashMode.INPUT
        assert drill.current_word is None
        assert drill.target_word == "alpha"

    def test_full_round(self):
        """Answers are matched ignoring case, blanks are ignored."""
        drill = WordFlashDrill(FlashSettings(flash_speed_ms=200))
        drill.start(0, words=["alpha", "beta"])
        drill.tick(200)
        assert drill.submit_answer(" ALPHA ", 700) is True
        assert drill.mode is FlashMode.PLAYING
        drill.tick(900)
        assert drill.submit_answer("   ", 950) is None
        assert drill.submit_answer("gamma", 1000) is False
        assert drill.mode is FlashMode.RESULTS

        results = drill.results()
        assert results.accuracy == 50
        assert results.response_times == [700, 300]
        assert results.duration_ms == 1000

        payload = drill.to_result_payload()
        assert payload["score"] == 50.0
        assert payload["total_attempts"] == 2
        assert payload["correct_count"] == 1
        assert payload["completion_time"] == 1
        assert payload["metadata"]["user_answers"] == ["ALPHA", "gamma"]

    def test_suggest_slower_after_low_accuracy(self):
        drill = WordFlashDrill(FlashSettings(flash_speed_ms=200))
        drill.start(0, words=["alpha"])
        drill.tick(200)
        drill.submit_answer("wrong", 300)
        assert drill.suggest_next_speed() == 210

    def test_suggest_faster_clamped(self):
        """Perfect rounds speed up but never below the minimum."""
        drill = WordFlashDrill(FlashSettings(flash_speed_ms=55, min_speed_ms=50))
        drill.start(0, words=["alpha"])
        drill.tick(55)
        drill.submit_answer("alpha", 100)
        assert drill.suggest_next_speed() == 50

    def test_answer_while_playing_rejected(self):
        drill = WordFlashDrill()
        drill.start(0, words=["alpha"])
        with pytest.raises(DrillStateError, match="playing"):
            drill.submit_answer("alpha", 10)

    def test_results_before_finish_rejected(self):
        drill = WordFlashDrill()
        with pytest.raises(DrillStateError):
            drill.results()

    def test_random_words_from_level(self):
        settings = FlashSettings(vocabulary_level="advanced", words_per_round=4)
        drill = WordFlashDrill(settings, rng=random.Random(11))
        drill.start(0)
        assert len(drill.words) == 4
        assert set(drill.words) <= set(VOCABULARY_WORDS["advanced"])

    def test_from_wpm(self):
        assert FlashSettings.from_wpm(300).flash_speed_ms == 200

    def test_speed_out_of_range(self):
        """600 ms per word exceeds the 500 ms maximum."""
        with pytest.raises(DrillConfigError):
            WordFlashDrill(FlashSettings.from_wpm(100))

    def test_from_exercise_config(self):
        settings = FlashSettings.from_exercise_config(
            {"default_speed": 150, "min_speed": 80, "accuracy_threshold": 90},
            vocabulary_level="intermediate",
        )
        assert settings.flash_speed_ms == 150
        assert settings.min_speed_ms == 80
        assert settings.accuracy_threshold == 90
        assert settings.vocabulary_level == "intermediate"


class TestThreeTwoOneDrill:
    """Tests for the three-round pacer."""

    def _run_round(self, drill, start_ms):
        drill.start_next_round(start_ms)
        duration = drill.current_round.duration * 1000
        drill.tick(start_ms + duration)
        return start_ms + duration

    def test_round_speeds(self):
        """Speed is words / duration * 60 * multiplier."""
        assert round_reading_speed(60, 180, 1.0) == 20
        assert round_reading_speed(60, 120, 1.5) == 45
        assert round_reading_speed(60, 60, 2.0) == 120

    def test_full_cycle(self):
        """setup -> round1 -> setup -> round2 -> setup -> round3 -> results."""
        drill = ThreeTwoOneDrill(SIXTY_WORDS)
        assert drill.word_count == 60
        assert drill.mode is DrillMode.SETUP

        now = self._run_round(drill, 0)
        assert drill.mode is DrillMode.SETUP
        assert drill.next_round_number == 2
        now = self._run_round(drill, now)
        assert drill.mode is DrillMode.SETUP
        self._run_round(drill, now)
        assert drill.mode is DrillMode.RESULTS

        assert [r.reading_speed for r in drill.round_results] == [20, 45, 120]
        payload = drill.to_result_payload()
        assert payload["score"] == 62
        assert payload["completion_time"] == 360
        assert len(payload["metadata"]["round_results"]) == 3

    def test_round_not_over_early(self):
        drill = ThreeTwoOneDrill(SIXTY_WORDS)
        drill.start_next_round(0)
        assert drill.tick(179_900) is DrillMode.ROUND1
        assert drill.remaining_ms == 100

    def test_pacer_advances(self):
        """60 words over 180 s moves one word every 3 s."""
        drill = ThreeTwoOneDrill(SIXTY_WORDS)
        drill.start_next_round(0)
        drill.tick(30_000)
        assert drill.position == pytest.approx(10.0)

    def test_pause_excludes_time(self):
        drill = ThreeTwoOneDrill(SIXTY_WORDS)
        drill.start_next_round(0)
        drill.tick(1000)
        drill.pause()
        assert drill.tick(100_000) is DrillMode.PAUSED
        drill.resume(100_000)
        drill.tick(101_000)
        assert drill.remaining_ms == 178_000

    def test_start_during_round_rejected(self):
        drill = ThreeTwoOneDrill(SIXTY_WORDS)
        drill.start_next_round(0)
        with pytest.raises(DrillStateError):
            drill.start_next_round(10)

    def test_text_change_during_round_rejected(self):
        drill = ThreeTwoOneDrill(SIXTY_WORDS)
        drill.start_next_round(0)
        with pytest.raises(DrillStateError):
            drill.set_text(SIXTY_WORDS)

    def test_complete_without_round_rejected(self):
        drill = ThreeTwoOneDrill(SIXTY_WORDS)
        with pytest.raises(DrillStateError):
            drill._complete_round()
        assert drill.round_results == []

    def test_default_passage(self):
        drill = ThreeTwoOneDrill()
        assert drill.text.endswith("create a better world for everyone.")
        assert drill.text.count("\n\n") == 4

    def test_text_too_short(self):
        with pytest.raises(DrillConfigError, match="between 200 and 2000"):
            ThreeTwoOneDrill("far too short")

    def test_results_before_finish(self):
        with pytest.raises(DrillStateError):
            ThreeTwoOneDrill().to_result_payload()

    def test_rounds_from_config(self):
        rounds = rounds_from_config(
            {
                "rounds": [
                    {"name": "Warm", "duration": 90, "speed_multiplier": 1.0},
                    {"duration": 60, "multiplier": 1.25},
                    {"duration": 30, "multiplier": 2.5},
                ]
            }
        )
        assert rounds[0].name == "Warm"
        assert rounds[1].name == DEFAULT_ROUNDS[1].name
        assert rounds[2].multiplier == 2.5

    def test_rounds_from_config_defaults_and_errors(self):
        assert rounds_from_config({}) == DEFAULT_ROUNDS
        with pytest.raises(DrillConfigError):
            rounds_from_config({"rounds": [{"duration": 10}]})


class TestGestures:
    """Tests for classify_gesture."""

    @pytest.mark.parametrize(
        "dx,dy,dt,expected",
        [
            (80, 10, 200, Gesture.SWIPE_RIGHT),
            (-80, 10, 200, Gesture.SWIPE_LEFT),
            (0, -80, 100, Gesture.SWIPE_UP),
            (0, 80, 100, Gesture.SWIPE_DOWN),
            (5, 5, 100, Gesture.TAP),
            (80, 10, 400, None),
            (30, 30, 100, None),
        ],
    )
    def test_classify(self, dx, dy, dt, expected):
        assert classify_gesture(dx, dy, dt) is expected


class TestRapidReader:
    """Tests for the chunked word streamer."""

    def test_reads_to_end(self):
        """Ten words at 300 wpm take 2 s and report 300 wpm."""
        reader = RapidReader(TEN_WORDS, speed=300)
        reader.play(0)
        assert reader.tick(199) == ["one"]
        assert reader.tick(200) == ["two"]
        reader.tick(2000)
        assert reader.is_complete
        assert not reader.is_playing
        assert reader.result.wpm == 300
        assert reader.result.duration == 2
        assert reader.result.words == 10

    def test_chunks(self):
        reader = RapidReader(TEN_WORDS, speed=300, chunk=3)
        reader.play(0)
        assert reader.tick(200) == ["two", "three", "four"]

    def test_clamping(self):
        reader = RapidReader(TEN_WORDS, speed=5000, chunk=9)
        assert reader.speed == 1000
        assert reader.chunk == 5
        assert reader.set_speed(10) == 50

    def test_gestures(self):
        reader = RapidReader(TEN_WORDS, speed=300, chunk=2)
        reader.apply_gesture(Gesture.SWIPE_LEFT, 0)
        assert reader.speed == 350
        reader.apply_gesture(Gesture.SWIPE_RIGHT, 0)
        assert reader.speed == 300
        reader.apply_gesture(Gesture.SWIPE_UP, 0)
        assert reader.chunk == 3
        reader.apply_gesture(Gesture.SWIPE_DOWN, 0)
        assert reader.chunk == 2
        reader.apply_gesture(Gesture.TAP, 0)
        assert reader.is_playing
        reader.apply_gesture(None, 0)
        assert reader.is_playing

    def test_schedule_is_deterministic(self):
        """Same text and settings give the same reveal sequence."""
        text = "a b c d e"
        first = RapidReader(text, speed=300, chunk=2).interval_schedule()
        second = RapidReader(text, speed=300, chunk=2).interval_schedule()
        assert first == second
        assert [r.offset_ms for r in first] == [0, 200, 400]
        assert [r.words for r in first] == [["a"], ["b", "c"], ["d", "e"]]

    @pytest.mark.parametrize("count,chunk", [(6, 4), (5, 4), (7, 3), (3, 1)])
    def test_schedule_matches_ticks(self, count, chunk):
        """Every index tick() reaches appears in the schedule at the same offset."""
        reader = RapidReader(" ".join(f"w{i}" for i in range(count)), speed=300, chunk=chunk)
        schedule = [(r.offset_ms, r.index) for r in reader.interval_schedule()]

        reader.play(0)
        seen = [(0, reader.index)]
        now = 0
        while not reader.is_complete:
            now += reader.interval_ms
            reader.tick(now)
            if reader.index != seen[-1][1]:
                seen.append((now, reader.index))

        assert schedule == seen
        assert now == reader.duration_ms

    def test_schedule_shows_tail_words(self):
        reader = RapidReader("a b c d e f", speed=300, chunk=4)
        schedule = reader.interval_schedule()
        assert [r.offset_ms for r in schedule] == [0, 200, 400]
        assert schedule[-1].index == 5
        assert schedule[-1].words == ["c", "d", "e", "f"]

    def test_empty_text(self):
        reader = RapidReader("   ")
        assert reader.interval_schedule() == []
        with pytest.raises(DrillConfigError):
            reader.play(0)
