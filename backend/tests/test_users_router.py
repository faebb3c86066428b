"""
Tests for user profile, onboarding and per-user read endpoints.
"""

import pytest

from skillpath.services import storage


class TestProfile:

    @pytest.mark.api
    def test_get_profile(self, client, test_user):
        response = client.get(f"/api/user/{test_user.id}")
        assert response.status_code == 200
        data = response.json()
        assert data["userId"] == test_user.id
        assert data["username"] == "learner"
        assert data["fullName"] == "Test Learner"
        assert data["selectedDomains"] == ["Data Science", "Web Development"]
        assert "passwordHash" not in data

    @pytest.mark.api
    def test_unknown_user_404(self, client):
        assert client.get("/api/user/does-not-exist").status_code == 404

    @pytest.mark.api
    def test_update_profile(self, client, test_user):
        response = client.patch(
            f"/api/user/{test_user.id}",
            json={"fullName": "Renamed Learner", "email": "renamed@skillpath.dev"}
        )
        assert response.status_code == 200
        assert response.json()["fullName"] == "Renamed Learner"
        assert response.json()["email"] == "renamed@skillpath.dev"

    @pytest.mark.api
    def test_update_to_taken_email(self, client, test_user, other_user):
        response = client.patch(f"/api/user/{test_user.id}", json={"email": other_user.email})
        assert response.status_code == 400


class TestOnboarding:

    @pytest.mark.api
    def test_onboard_saves_domains_in_order(self, client, db, test_user):
        response = client.post(
            "/api/user/onboard",
            json={"userId": test_user.id, "domains": ["DevOps", "Hardware", "DevOps"]}
        )
        assert response.status_code == 200
        assert response.json() == {"userId": test_user.id, "selectedDomains": ["DevOps", "Hardware"]}

        db.refresh(test_user)
        assert test_user.selected_domains == ["DevOps", "Hardware"]

    @pytest.mark.api
    def test_onboard_requires_domains(self, client, test_user):
        response = client.post("/api/user/onboard", json={"userId": test_user.id, "domains": []})
        assert response.status_code == 400

    @pytest.mark.api
    def test_onboard_unknown_user(self, client):
        response = client.post("/api/user/onboard", json={"userId": "ghost", "domains": ["DevOps"]})
        assert response.status_code == 404


class TestUserReads:

    @pytest.mark.api
    def test_skills_map_uses_latest(self, client, test_user, test_skills):
        response = client.get(f"/api/user/{test_user.id}/skills")
        assert response.json() == {"Data Science": "Advanced", "Web Development": "Intermediate"}

    @pytest.mark.api
    def test_skills_empty_for_new_user(self, client, test_user):
        assert client.get(f"/api/user/{test_user.id}/skills").json() == {}

    @pytest.mark.api
    def test_skills_history_newest_first(self, client, test_user, test_skills):
        history = client.get(f"/api/user/{test_user.id}/skills/history").json()
        assert [h["skillLevel"] for h in history] == ["Advanced", "Intermediate", "Beginner"]

    @pytest.mark.api
    def test_quiz_attempts_filtered_by_domain(self, client, db, test_user):
        question = {"question": "Q", "options": ["a", "b", "c", "d"], "correctAnswer": 0}
        storage.save_quiz_attempt(db, test_user.id, "DevOps", [question], [0], 1, 1, "Advanced")
        storage.save_quiz_attempt(db, test_user.id, "Hardware", [question], [1], 0, 1, "Beginner")

        attempts = client.get(f"/api/user/{test_user.id}/quiz-attempts", params={"domain": "DevOps"}).json()
        assert len(attempts) == 1
        assert attempts[0]["skillLevel"] == "Advanced"
        assert attempts[0]["totalQuestions"] == 1

    @pytest.mark.api
    def test_enrolled_courses(self, client, test_user, test_enrollment):
        data = client.get(f"/api/user/{test_user.id}/enrolled").json()
        assert len(data["courses"]) == 1
        course = data["courses"][0]
        assert course["title"] == "Introduction to Pandas"
        assert course["provider"] == "Kaggle Learn"
        assert course["progress"] == 0
        assert course["completed"] is False

    @pytest.mark.api
    def test_chat_history(self, client, db, test_user):
        storage.save_chat_message(db, test_user.id, "user", "hello")
        data = client.get(f"/api/user/{test_user.id}/chat-history").json()
        assert [(m["role"], m["content"]) for m in data] == [("user", "hello")]

    @pytest.mark.api
    def test_courses_lists_enrollments(self, client, test_user, test_enrollment):
        data = client.get(f"/api/user/{test_user.id}/courses").json()
        assert [c["id"] for c in data["courses"]] == [test_enrollment.id]

    @pytest.mark.api
    def test_schedules_listed_by_due_date(self, client, db, test_user):
        from datetime import datetime, timedelta

        now = datetime.utcnow()
        later = storage.create_schedule(db, user_id=test_user.id, title="Later", due_date=now + timedelta(days=5))
        sooner = storage.create_schedule(db, user_id=test_user.id, title="Sooner", due_date=now + timedelta(days=1))

        data = client.get(f"/api/user/{test_user.id}/schedules").json()

        assert [i["id"] for i in data["items"]] == [sooner.id, later.id]

    @pytest.mark.api
    def test_list_aliases_unknown_user_404(self, client):
        assert client.get("/api/user/ghost/courses").status_code == 404
        assert client.get("/api/user/ghost/schedules").status_code == 404
