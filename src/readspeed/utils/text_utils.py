"""Text processing utilities.

Word counting and splitting shared by the drills and content admin.
"""

import re

WHITESPACE = re.compile(r"\s+")


def split_words(text: str) -> list[str]:
    """Split text on runs of whitespace, dropping empty tokens."""
    return [w for w in WHITESPACE.split(text.strip()) if w]


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len(split_words(text))


def reading_wpm(word_count: int, seconds: float) -> int:
    """Words per minute for word_count words read in seconds.

    Returns 0 when no time has elapsed.
    """
    if seconds <= 0:
        return 0
    return round(word_count / (seconds / 60))
