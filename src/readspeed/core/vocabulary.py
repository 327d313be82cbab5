"""Word lists for the recall drill, by vocabulary level."""

from __future__ import annotations

import random

VOCABULARY_LEVELS = ("foundation", "intermediate", "advanced")

VOCABULARY_WORDS: dict[str, list[str]] = {
    "foundation": [
        "the", "and", "you", "that", "was", "for", "are", "with", "his", "they",
        "have", "one", "had", "word", "but", "not", "what", "all", "were", "when",
        "your", "can", "said", "each", "which", "she", "how", "will", "now", "many",
        "some", "time", "very", "come", "here", "could", "see", "him", "two", "more",
        "go", "no", "way", "find", "use", "may", "say", "part", "over", "new",
        "sound", "take", "only", "little", "work", "know", "place", "year", "live", "me",
    ],
    "intermediate": [
        "analyze", "approach", "available", "benefit", "concept", "consist", "context", "create",
        "data", "define", "derive", "distribute", "economy", "environment", "establish", "estimate",
        "evidence", "export", "factor", "finance", "formula", "function", "identify", "income",
        "indicate", "individual", "interpret", "involve", "issue", "labor", "legal", "major",
        "method", "occur", "percent", "period", "policy", "principle", "proceed", "process",
        "require", "research", "respond", "role", "section", "significant", "similar", "source",
        "specific", "structure", "theory", "variable", "achieve", "acquire", "administrate", "affect",
        "appropriate", "area", "aspect", "assist", "assume", "authority",
    ],
    "advanced": [
        "accommodate", "acknowledge", "aggregate", "albeit", "ambiguous", "analogy", "anticipate", "arbitrary",
        "attribute", "coherent", "coincide", "collapse", "colloquial", "complement", "comprehensive", "comprise",
        "conceive", "concurrent", "confer", "configuration", "confine", "consequent", "considerable", "contemporary",
        "contradict", "controversy", "convention", "correspond", "criteria", "crucial", "deduce", "demonstrate",
        "denote", "differentiate", "dimension", "discrete", "discriminate", "displace", "diverse", "domain",
        "elaborate", "emerge", "emphasis", "empirical", "enable", "encounter", "enhance", "enormous",
        "entity", "equate", "equivalent", "erroneous", "establish", "evaluate", "eventual", "evident",
    ],
}


class UnknownVocabularyLevelError(Exception):
    """Raised for a level outside VOCABULARY_LEVELS."""

    def __init__(self, level: str):
        self.level = level
        super().__init__(
            f"Unknown vocabulary level '{level}'. Expected one of: {', '.join(VOCABULARY_LEVELS)}"
        )


def pick_words(level: str, count: int, rng: random.Random | None = None) -> list[str]:
    """Pick count distinct words from a level, in random order.

    Args:
        level: foundation, intermediate or advanced
        count: Words wanted; capped at the list size
        rng: Random source (seed it for reproducible drills)

    Raises:
        UnknownVocabularyLevelError: If level is not known
    """
    if level not in VOCABULARY_WORDS:
        raise UnknownVocabularyLevelError(level)
    rng = rng or random.Random()
    words = VOCABULARY_WORDS[level]
    return rng.sample(words, min(count, len(words)))
