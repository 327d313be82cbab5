"""Default catalog data: exercises, sample texts, tier limits, plans and flags.

Every step checks for existing rows first, so seeding can be re-run.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from readspeed.db import exercises_repository as exercises_repo
from readspeed.db import platform_repository as platform
from readspeed.utils.text_utils import count_words

logger = structlog.get_logger(__name__)


JUST_READ_MORE = """The Most Important Principle: Just Read More

This isn't an exercise; it's the foundation of all reading improvement. The most scientifically-backed way to boost your reading speed, comprehension, and memory is simple: read consistently.

People who say "speed reading didn't work" often tried a few exercises but missed this crucial step. Here's the science behind why volume is the key.

1. You Get Faster, Automatically
The more you see a word, the faster your brain recognizes it. This process, called automaticity, becomes effortless. It frees up your mental energy to focus on understanding big ideas instead of just decoding individual words.

2. You Understand More, Effortlessly
Reading is the best way to grow your vocabulary, and a larger vocabulary is directly linked to better comprehension. You also build a library of background knowledge in your mind, which helps you grasp new topics much faster.

3. You Remember Better, Scientifically
Consistent reading physically changes your brain. This process, known as neuroplasticity, strengthens the neural pathways for language and memory. The more you read, the more efficient your brain becomes at storing what you've learned.

The Takeaway: The exercises in this app are powerful tools. But they are most effective when combined with the fundamental habit of consistent reading. Submit your pages daily to build the most important skill of all."""


DEFAULT_EXERCISES = [
    {
        "type": "mindset",
        "title": "Just Read More",
        "description": (
            "The Most Important Principle: Understanding the Foundation of "
            "Reading Improvement"
        ),
        "instructions": (
            "Read through this foundational content about the importance of "
            "consistent reading. It is the key principle behind all reading "
            "improvement."
        ),
        "difficulty": "beginner",
        "min_subscription_tier": "free",
        "tags": ["mindset"],
        "config": {"content": JUST_READ_MORE},
    },
    {
        "type": "word_flasher",
        "title": "Word Flasher",
        "description": "Flash words one at a time in the center of the screen for focus training",
        "instructions": (
            "Words will flash briefly on screen. Type each word you see as "
            "accurately as possible. The speed will adapt based on your accuracy."
        ),
        "difficulty": "beginner",
        "min_subscription_tier": "reader",
        "tags": ["focus", "vocabulary"],
        "config": {
            "default_speed": 200,
            "min_speed": 50,
            "max_speed": 500,
            "words_per_round": 15,
            "accuracy_threshold": 75,
            "speed_adjustment": 10,
            "vocabulary_levels": {
                "foundation": "Common everyday words",
                "intermediate": "Academic and business vocabulary",
                "advanced": "Complex and technical terms",
            },
        },
    },
    {
        "type": "3-2-1",
        "title": "3-2-1 Speed Exercise",
        "description": "Three rounds of reading the same text at increasing speeds",
        "instructions": (
            "Read the same passage three times: first at normal pace (3 min), "
            "then faster (2 min), then at maximum speed (1 min). A visual pacer "
            "will guide your reading speed."
        ),
        "difficulty": "intermediate",
        "min_subscription_tier": "reader",
        "tags": ["speed", "pacer"],
        "config": {
            "rounds": [
                {"name": "Normal", "duration": 180, "multiplier": 1.0},
                {"name": "Faster", "duration": 120, "multiplier": 1.5},
                {"name": "Sprint", "duration": 60, "multiplier": 2.0},
            ],
            "allow_custom_text": True,
            "min_text_length": 200,
            "max_text_length": 2000,
        },
    },
]


SAMPLE_TEXTS = [
    (
        "Technology and Society",
        "intermediate",
        "The rapid advancement of technology has fundamentally changed how we "
        "communicate, work, and live. Social media platforms connect billions of "
        "people worldwide, enabling instant communication across vast distances. "
        "However, this connectivity comes with challenges including privacy "
        "concerns, misinformation, and digital addiction. As we navigate this "
        "digital landscape, we must balance the benefits of technological progress "
        "with the need to preserve human connection and mental well-being. The "
        "future will likely bring even more dramatic changes as artificial "
        "intelligence, virtual reality, and other emerging technologies become "
        "more prevalent in our daily lives.",
    ),
    (
        "Climate Change Basics",
        "intermediate",
        "Climate change refers to long-term shifts in global temperatures and "
        "weather patterns. While climate variations occur naturally, scientific "
        "evidence shows that human activities have been the main driver of climate "
        "change since the 1800s. The burning of fossil fuels generates greenhouse "
        "gas emissions that trap heat in our atmosphere. The consequences include "
        "rising sea levels, extreme weather events, and threats to food security. "
        "Addressing climate change requires global cooperation, renewable energy "
        "adoption, and changes in how we produce food, transport goods, and power "
        "our communities.",
    ),
    (
        "The Benefits of Reading",
        "beginner",
        "Reading regularly provides numerous cognitive and emotional benefits. "
        "Studies show that reading improves vocabulary, enhances critical thinking "
        "skills, and increases empathy by exposing us to diverse perspectives and "
        "experiences. Reading fiction helps develop emotional intelligence and "
        "social understanding. Non-fiction reading expands knowledge and keeps our "
        "minds sharp. Regular reading has even been linked to reduced stress levels "
        "and better sleep quality. Whether you prefer physical books, e-readers, or "
        "audiobooks, incorporating reading into your daily routine can "
        "significantly improve your mental health and intellectual capacity.",
    ),
]


# None means unlimited.
DEFAULT_LIMITS = {
    "free": {
        "max_submissions_per_month": 30,
        "max_custom_texts": 0,
        "max_exercises": 1,
        "can_see_leaderboard": True,
        "can_join_leaderboard": False,
        "can_see_book_stats": False,
        "can_export_data": False,
    },
    "reader": {
        "max_submissions_per_month": None,
        "max_custom_texts": 10,
        "max_exercises": None,
        "can_see_leaderboard": True,
        "can_join_leaderboard": True,
        "can_see_book_stats": True,
        "can_export_data": False,
    },
    "pro": {
        "max_submissions_per_month": None,
        "max_custom_texts": None,
        "max_exercises": None,
        "can_see_leaderboard": True,
        "can_join_leaderboard": True,
        "can_see_book_stats": True,
        "can_export_data": True,
    },
}

DEFAULT_PLANS = [
    ("free", "Free", ["Reading log", "Leaderboard view", "Mindset lesson"], 0),
    ("reader", "Reader", ["Unlimited submissions", "Leaderboard", "All exercises"], 1),
    ("pro", "Pro", ["Everything in Reader", "Unlimited custom texts", "Data export"], 2),
]

DEFAULT_FLAGS = [
    ("leaderboard", "Public reading leaderboard", True, "free"),
    ("progress_comparison", "Compare reading progress with other readers", True, "reader"),
    ("exercises", "Speed reading exercises", True, "free"),
    ("assessments", "Timed reading assessments", True, "free"),
    ("custom_texts", "Practice with your own texts", True, "reader"),
    ("data_export", "Export reading history", False, "pro"),
]


@dataclass
class SeedReport:
    """Rows inserted by one seeding run."""

    exercises: int = 0
    texts: int = 0
    limits: int = 0
    plans: int = 0
    flags: int = 0

    @property
    def total(self) -> int:
        return self.exercises + self.texts + self.limits + self.plans + self.flags


def _seed_exercises(report: SeedReport) -> None:
    existing = {(e.type, e.title) for e in exercises_repo.list_exercises(include_inactive=True)}
    for data in DEFAULT_EXERCISES:
        if (data["type"], data["title"]) in existing:
            continue
        exercises_repo.insert_exercise(**data)
        report.exercises += 1


def _seed_texts(report: SeedReport) -> None:
    existing = {t.title for t in exercises_repo.list_exercise_texts() if not t.is_custom}
    for title, difficulty, content in SAMPLE_TEXTS:
        if title in existing:
            continue
        exercises_repo.insert_exercise_text(
            text_content=content,
            word_count=count_words(content),
            title=title,
            difficulty_level=difficulty,
        )
        report.texts += 1


def _seed_limits(report: SeedReport) -> None:
    for tier, values in DEFAULT_LIMITS.items():
        if platform.get_limits(tier) is None:
            platform.upsert_limits(tier, **values)
            report.limits += 1


def _seed_plans(report: SeedReport) -> None:
    for name, display_name, features, sort_order in DEFAULT_PLANS:
        if platform.get_plan_by_name(name) is None:
            platform.upsert_plan(
                name,
                display_name,
                features=features,
                limits=DEFAULT_LIMITS[name],
                sort_order=sort_order,
            )
            report.plans += 1


def _seed_flags(report: SeedReport) -> None:
    for name, description, enabled, tier in DEFAULT_FLAGS:
        if platform.get_flag(name) is None:
            platform.insert_flag(
                name,
                description=description,
                enabled=enabled,
                requires_subscription=tier,
            )
            report.flags += 1


def seed_defaults() -> SeedReport:
    """Insert missing default rows.

    Returns:
        Counts of rows inserted in this run (all zero on a re-run)
    """
    report = SeedReport()
    _seed_exercises(report)
    _seed_texts(report)
    _seed_limits(report)
    _seed_plans(report)
    _seed_flags(report)
    logger.info(
        "seed.completed",
        exercises=report.exercises,
        texts=report.texts,
        limits=report.limits,
        plans=report.plans,
        flags=report.flags,
    )
    return report
