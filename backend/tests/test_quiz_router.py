"""
Tests for quiz generation and submission endpoints.
"""

from unittest.mock import patch

import pytest

from skillpath.models.models import QuizAttempt, DomainSkillLevel
from skillpath.services import storage
from tests.mocks.openai_mocks import MOCK_QUIZ_RESPONSE, mock_openai_completion


def _questions(n=5):
    return [
        {"question": f"Question {i}?", "options": ["A", "B", "C", "D"], "correctAnswer": i % 4}
        for i in range(n)
    ]


class TestGenerateQuiz:

    @pytest.mark.api
    def test_generate_without_api_key_serves_fallback(self, client):
        response = client.post("/api/quiz/generate", json={"domains": ["Web Development"]})

        assert response.status_code == 200
        data = response.json()
        assert data["domain"] == "Web Development"
        assert data["source"] == "fallback"
        assert len(data["questions"]) == 5
        for q in data["questions"]:
            assert len(q["options"]) == 4
            assert 0 <= q["correctAnswer"] < 4

    @pytest.mark.api
    def test_generate_with_mocked_ai(self, client, mock_openai):
        mock_openai.chat.completions.create.return_value = mock_openai_completion(MOCK_QUIZ_RESPONSE)

        data = client.post("/api/quiz/generate", json={"domains": ["Data Science", "DevOps"]}).json()

        assert data["source"] == "generated"
        assert data["domain"] == "Data Science"
        assert len(data["questions"]) == 10

    @pytest.mark.api
    def test_domains_default_to_user_selection(self, client, test_user):
        data = client.post("/api/quiz/generate", json={"userId": test_user.id}).json()
        assert data["domain"] == "Data Science"

    @pytest.mark.api
    def test_no_domains_is_400(self, client):
        response = client.post("/api/quiz/generate", json={"domains": []})
        assert response.status_code == 400

    @pytest.mark.api
    def test_unknown_user_404_before_generation(self, client, mock_openai):
        response = client.post("/api/quiz/generate", json={"userId": "ghost", "domains": ["DevOps"]})
        assert response.status_code == 404
        mock_openai.chat.completions.create.assert_not_called()


class TestSubmitQuiz:

    @pytest.mark.api
    def test_four_of_five_is_advanced(self, client, db, test_user):
        """4 of 5 correct is 80% and classifies as Advanced"""
        questions = _questions(5)
        answers = [0, 1, 2, 3, 3]  # last one wrong

        response = client.post(
            "/api/quiz/submit",
            json={"userId": test_user.id, "domain": "Web Development", "questions": questions, "answers": answers}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["score"] == 4
        assert data["totalQuestions"] == 5
        assert data["percentage"] == 80.0
        assert data["skillLevel"] == "Advanced"
        assert [r["isCorrect"] for r in data["results"]] == [True, True, True, True, False]

        attempt = db.query(QuizAttempt).filter(QuizAttempt.id == data["attemptId"]).first()
        assert attempt.score == 4
        assert attempt.skill_level_determined == "Advanced"

        skills = client.get(f"/api/user/{test_user.id}/skills").json()
        assert skills["Web Development"] == "Advanced"

    @pytest.mark.api
    def test_resubmission_replaces_current_level(self, client, test_user):
        questions = _questions(5)
        payload = {"userId": test_user.id, "domain": "DevOps", "questions": questions}

        client.post("/api/quiz/submit", json={**payload, "answers": [0, 1, 2, 3, 0]})
        client.post("/api/quiz/submit", json={**payload, "answers": [None, None, None, None, 0]})

        skills = client.get(f"/api/user/{test_user.id}/skills").json()
        assert skills["DevOps"] == "Beginner"

    @pytest.mark.api
    def test_unanswered_sentinel(self, client, db, test_user):
        data = client.post(
            "/api/quiz/submit",
            json={"userId": test_user.id, "domain": "DevOps", "questions": _questions(2), "answers": [-1, 1]}
        ).json()

        assert data["score"] == 1
        assert data["results"][0]["userAnswer"] is None
        attempt = db.query(QuizAttempt).filter(QuizAttempt.id == data["attemptId"]).first()
        assert attempt.answers == [None, 1]

    @pytest.mark.api
    def test_empty_quiz_is_400_and_nothing_written(self, client, db, test_user):
        response = client.post(
            "/api/quiz/submit",
            json={"userId": test_user.id, "domain": "DevOps", "questions": [], "answers": []}
        )
        assert response.status_code == 400
        assert db.query(QuizAttempt).count() == 0
        assert db.query(DomainSkillLevel).count() == 0

    @pytest.mark.api
    def test_answer_count_mismatch_is_400(self, client, test_user):
        response = client.post(
            "/api/quiz/submit",
            json={"userId": test_user.id, "domain": "DevOps", "questions": _questions(3), "answers": [0]}
        )
        assert response.status_code == 400

    @pytest.mark.api
    def test_out_of_range_answer_is_400(self, client, test_user):
        response = client.post(
            "/api/quiz/submit",
            json={"userId": test_user.id, "domain": "DevOps", "questions": _questions(1), "answers": [7]}
        )
        assert response.status_code == 400

    @pytest.mark.api
    def test_unknown_user_404(self, client):
        response = client.post(
            "/api/quiz/submit",
            json={"userId": "ghost", "domain": "DevOps", "questions": _questions(1), "answers": [0]}
        )
        assert response.status_code == 404

    @pytest.mark.api
    @pytest.mark.parametrize("questions,answers", [
        ([], []),
        (_questions(3), [0]),
        (_questions(1), [7]),
    ])
    def test_invalid_submission_rejected_before_user_lookup(self, client, questions, answers):
        with patch.object(storage, "get_user", wraps=storage.get_user) as get_user:
            response = client.post(
                "/api/quiz/submit",
                json={"userId": "ghost", "domain": "DevOps", "questions": questions, "answers": answers}
            )

        assert response.status_code == 400
        get_user.assert_not_called()

    @pytest.mark.api
    def test_answer_count_mismatch_names_answers(self, client, test_user):
        response = client.post(
            "/api/quiz/submit",
            json={"userId": test_user.id, "domain": "DevOps", "questions": _questions(2), "answers": [0]}
        )
        assert response.status_code == 400
        assert "answers" in response.json()["detail"]
