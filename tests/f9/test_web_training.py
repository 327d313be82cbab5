"""Tests for exercise and assessment endpoints (F9)."""

import pytest

from readspeed.config.app_config import clear_config_cache
from readspeed.core import assessments
from readspeed.core.seed import seed_defaults
from readspeed.db import exercises_repository


@pytest.fixture
def catalog(db):
    seed_defaults()
    return {e.type: e for e in exercises_repository.list_exercises(include_inactive=True)}


@pytest.fixture
def passage(db):
    return assessments.create_assessment(
        {
            "title": "The Lighthouse",
            "content": " ".join(["word"] * 200),
            "questions": [
                {"question": "Where?", "options": ["sea", "desert"], "correct_answer": "sea"},
                {"question": "When?", "options": ["night", "noon"], "correct_answer": "night"},
            ],
        }
    )


class TestExerciseEndpoints:
    """Tests for /api/exercises."""

    def test_list_by_tier(self, client, login, catalog):
        _, headers = login()
        response = client.get("/api/exercises", headers=headers)
        assert response.status_code == 200
        assert [e["type"] for e in response.json()["exercises"]] == ["mindset"]

    def test_get_requires_tier(self, client, login, catalog):
        _, headers = login()
        response = client.get(f"/api/exercises/{catalog['3-2-1'].id}", headers=headers)
        assert response.status_code == 403
        assert "reader" in response.json()["detail"]

    def test_submit_result_and_stats(self, client, login, catalog):
        _, headers = login(tier="reader")
        response = client.post(
            "/api/exercises/results",
            json={
                "exercise_id": catalog["word_flasher"].id,
                "score": 80,
                "accuracy_percentage": 80,
                "completion_time": 45,
                "metadata": {"words_shown": ["a", "b"]},
            },
            headers=headers,
        )
        assert response.status_code == 201
        assert response.json()["stats"]["total_sessions"] == 1

        stats = client.get("/api/exercises/stats", headers=headers).json()
        assert [s["exercise_type"] for s in stats] == ["word_flasher"]

    def test_submit_unknown_exercise(self, client, login, catalog):
        _, headers = login()
        response = client.post(
            "/api/exercises/results", json={"exercise_id": "missing"}, headers=headers
        )
        assert response.status_code == 404

    def test_custom_text_limit(self, client, login, catalog):
        _, headers = login()
        response = client.post(
            "/api/exercises/texts", json={"text_content": "my own passage"}, headers=headers
        )
        assert response.status_code == 403
        assert response.json()["action"] == "custom_text"

    def test_custom_texts_are_private(self, client, login, catalog):
        _, owner = login(tier="reader")
        _, other = login(tier="reader")
        created = client.post(
            "/api/exercises/texts", json={"text_content": "my own passage"}, headers=owner
        ).json()

        owner_ids = {t["id"] for t in client.get("/api/exercises/texts", headers=owner).json()}
        other_ids = {t["id"] for t in client.get("/api/exercises/texts", headers=other).json()}
        assert created["id"] in owner_ids
        assert created["id"] not in other_ids

    def test_disabled(self, client, login, catalog, monkeypatch):
        _, headers = login()
        monkeypatch.setenv("FEATURES_EXERCISES", "false")
        clear_config_cache()
        response = client.get("/api/exercises", headers=headers)
        assert response.status_code == 403


class TestAssessmentEndpoints:
    """Tests for /api/assessments."""

    def test_list_hides_answers(self, client, login, passage):
        _, headers = login()
        response = client.get("/api/assessments", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total_available"] == 1
        for question in data["assessments"][0]["questions"]:
            assert "correct_answer" not in question
            assert question["options"]

    def test_get_hides_answers(self, client, login, passage):
        _, headers = login()
        response = client.get(f"/api/assessments/{passage.id}", headers=headers)
        assert "correct_answer" not in response.json()["questions"][0]

    def test_graded_on_server(self, client, login, passage):
        """200 words in 60 seconds with one of two right."""
        _, headers = login()
        response = client.post(
            "/api/assessments/results",
            json={"assessment_id": passage.id, "time_taken": 60, "answers": ["sea", "noon"]},
            headers=headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["wpm"] == 200
        assert data["comprehension_percentage"] == 50
        assert data["percentile"] == 50

        results = client.get("/api/assessments/results", headers=headers).json()
        assert results[0]["id"] == data["id"]

    def test_client_values_kept(self, client, login, passage):
        _, headers = login()
        response = client.post(
            "/api/assessments/results",
            json={
                "assessment_id": passage.id,
                "time_taken": 60,
                "answers": [],
                "wpm": 321,
                "comprehension_percentage": 90,
            },
            headers=headers,
        )
        assert response.json()["wpm"] == 321

    def test_bad_question_index(self, client, login, passage):
        _, headers = login()
        response = client.post(
            "/api/assessments/results",
            json={
                "assessment_id": passage.id,
                "time_taken": 60,
                "answers": [{"question_index": None, "answer": "sea"}],
            },
            headers=headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "validation_failed"
        assert response.json()["field"] == "answers"

    def test_unknown_assessment(self, client, login, db):
        _, headers = login()
        response = client.post(
            "/api/assessments/results",
            json={"assessment_id": "missing", "time_taken": 60, "answers": []},
            headers=headers,
        )
        assert response.status_code == 404

    def test_bad_mode(self, client, login, db):
        _, headers = login()
        response = client.get("/api/assessments", params={"mode": "hardest"}, headers=headers)
        assert response.status_code == 422
