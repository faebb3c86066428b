"""
Tests for the mentor chat and recommendations endpoints.
"""

import pytest

from skillpath.models.models import ChatMessage
from skillpath.services.mentor import FALLBACK_REPLIES, Intent, WELCOME_MESSAGE
from tests.mocks.openai_mocks import MOCK_MENTOR_REPLY, mock_openai_completion


class TestChatEndpoint:

    @pytest.mark.api
    def test_fallback_reply(self, client, db, test_user):
        response = client.post(
            "/api/chat",
            json={
                "userId": test_user.id,
                "message": "What should I do next?",
                "conversationHistory": [{"role": "assistant", "content": WELCOME_MESSAGE}],
            }
        )

        assert response.status_code == 200
        assert response.json() == {"response": FALLBACK_REPLIES[Intent.NEXT_STEPS], "source": "fallback"}
        assert db.query(ChatMessage).filter(ChatMessage.user_id == test_user.id).count() == 2

    @pytest.mark.api
    def test_generated_reply_excludes_welcome(self, client, test_user, mock_openai):
        mock_openai.chat.completions.create.return_value = mock_openai_completion(MOCK_MENTOR_REPLY)

        response = client.post(
            "/api/chat",
            json={
                "userId": test_user.id,
                "message": "Any tips?",
                "conversationHistory": [
                    {"role": "assistant", "content": WELCOME_MESSAGE},
                    {"role": "user", "content": "Earlier question"},
                    {"role": "assistant", "content": "Earlier answer"},
                ],
            }
        )

        assert response.json()["source"] == "generated"
        messages = mock_openai.chat.completions.create.call_args.kwargs["messages"]
        assert all(m["content"] != WELCOME_MESSAGE for m in messages)
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]

    @pytest.mark.api
    def test_blank_message_is_400(self, client, test_user):
        response = client.post("/api/chat", json={"userId": test_user.id, "message": "   "})
        assert response.status_code == 400

    @pytest.mark.api
    def test_unknown_user_404(self, client):
        response = client.post("/api/chat", json={"userId": "ghost", "message": "hi"})
        assert response.status_code == 404


class TestMentorRecommendationsEndpoint:

    @pytest.mark.api
    def test_recommendations(self, client, test_user):
        response = client.get(f"/api/mentor/recommendations/{test_user.id}")
        assert response.status_code == 200
        recs = response.json()["recommendations"]
        assert any(r["type"] == "assessment" for r in recs)
        assert all(r["link"].startswith("/") for r in recs)
