"""
Tests for the learning schedule endpoints and the schedule planner.
"""

from datetime import date, datetime, timedelta

import pytest

from skillpath.models.models import LearningSchedule
from skillpath.services.schedule_planner import fallback_plan, parse_plan, plan_schedule
from tests.mocks.openai_mocks import MOCK_SCHEDULE_RESPONSE, mock_openai_completion


class TestSchedulePlanner:

    @pytest.mark.unit
    def test_fallback_plan_offsets(self):
        plan = fallback_plan(date(2026, 1, 1))
        assert [p.due_date.date() for p in plan] == [
            date(2026, 1, 3), date(2026, 1, 6), date(2026, 1, 11), date(2026, 1, 15)
        ]
        assert plan[0].title == "Review core concepts and fundamentals"

    @pytest.mark.unit
    def test_parse_drops_bad_items(self):
        items = parse_plan({"scheduleItems": [
            {"title": "Good", "dueDate": "2026-02-01"},
            {"title": "", "dueDate": "2026-02-02"},
            {"title": "No date"},
            {"title": "Bad date", "dueDate": "next Tuesday"},
            {"title": "Zulu", "dueDate": "2026-02-03T10:00:00Z"},
        ]})
        assert [i.title for i in items] == ["Good", "Zulu"]
        assert items[1].due_date.tzinfo is None

    @pytest.mark.unit
    def test_generated_plan(self, mock_openai):
        mock_openai.chat.completions.create.return_value = mock_openai_completion(MOCK_SCHEDULE_RESPONSE)
        items = plan_schedule("Get a data job", {"Data Science": "Beginner"}, 1)
        assert len(items) == 5
        assert items[0].title == "Finish pandas basics"

    @pytest.mark.unit
    def test_unusable_generation_falls_back(self, mock_openai):
        mock_openai.chat.completions.create.return_value = mock_openai_completion({"scheduleItems": []})
        assert len(plan_schedule("Learn Go", {}, 0)) == 4


class TestScheduleEndpoints:

    @pytest.mark.api
    def test_create_and_list(self, client, test_user):
        due = (datetime.utcnow() + timedelta(days=3)).replace(microsecond=0)
        response = client.post(
            "/api/schedule",
            json={"userId": test_user.id, "title": "Finish module 1", "dueDate": due.isoformat()}
        )
        assert response.status_code == 201
        item_id = response.json()["id"]

        items = client.get(f"/api/schedule/{test_user.id}").json()["items"]
        assert [i["id"] for i in items] == [item_id]
        assert items[0]["completed"] is False

    @pytest.mark.api
    def test_create_linked_to_enrollment(self, client, test_user, test_enrollment):
        response = client.post(
            "/api/schedule",
            json={"userId": test_user.id, "courseId": test_enrollment.id, "title": "Pandas chapter 2"}
        )
        assert response.status_code == 201
        assert response.json()["courseId"] == test_enrollment.id

    @pytest.mark.api
    def test_create_with_unknown_enrollment(self, client, test_user):
        response = client.post(
            "/api/schedule",
            json={"userId": test_user.id, "courseId": "missing", "title": "Nope"}
        )
        assert response.status_code == 404

    @pytest.mark.api
    def test_patch_completion(self, client, db, test_user):
        item_id = client.post("/api/schedule", json={"userId": test_user.id, "title": "Read"}).json()["id"]

        response = client.patch(f"/api/schedule/{item_id}", json={"completed": True})

        assert response.json() == {"success": True}
        assert db.query(LearningSchedule).filter(LearningSchedule.id == item_id).first().completed is True

    @pytest.mark.api
    def test_complete_endpoint(self, client, test_user):
        item_id = client.post("/api/schedule", json={"userId": test_user.id, "title": "Read"}).json()["id"]
        assert client.post(f"/api/schedule/{item_id}/complete").json() == {"success": True}
        items = client.get(f"/api/schedule/{test_user.id}").json()["items"]
        assert items[0]["completed"] is True

    @pytest.mark.api
    def test_unknown_item_404(self, client):
        assert client.patch("/api/schedule/missing", json={"completed": True}).status_code == 404
        assert client.post("/api/schedule/missing/complete").status_code == 404

    @pytest.mark.api
    def test_generate_fallback_creates_four_items(self, client, test_user):
        response = client.post(
            "/api/schedule/generate",
            json={"userId": test_user.id, "goals": "Become a data analyst"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["itemsCreated"] == 4
        assert len(client.get(f"/api/schedule/{test_user.id}").json()["items"]) == 4

    @pytest.mark.api
    def test_generate_requires_goals(self, client, test_user):
        response = client.post("/api/schedule/generate", json={"userId": test_user.id})
        assert response.status_code == 400
