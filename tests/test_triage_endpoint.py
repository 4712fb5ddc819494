from uuid import uuid4

import pytest

from app.config import settings

from conftest import auth_headers, make_conversation, make_tenant, make_user


def _request(conversation_id):
    return {"conversationId": str(conversation_id), "lastMessageId": str(uuid4()), "channel": "whatsapp"}


class TestTriageEndpoint:
    def test_anonymous_caller(self, client, db_session):
        tenant = make_tenant(db_session)
        conversation = make_conversation(db_session, tenant, text="el producto llegó dañado")

        response = client.post("/ai/triage", json=_request(conversation.id))

        assert response.status_code == 200
        body = response.json()
        assert body["intent"] == "reclamo"
        assert body["confidence"] == 0.9
        assert body["missingFields"] == ["orderNumber", "description"]
        assert body["autopilotEligible"] is False

    def test_internal_token_is_not_tenant_scoped(self, client, db_session, monkeypatch):
        monkeypatch.setattr(settings, "internal_api_token", "svc-token")
        tenant = make_tenant(db_session)
        conversation = make_conversation(db_session, tenant)

        response = client.post(
            "/ai/triage", json=_request(conversation.id), headers={"Authorization": "Bearer svc-token"}
        )

        assert response.status_code == 200

    def test_user_token_of_other_tenant_gets_404(self, client, db_session):
        owner = make_tenant(db_session, slug="owner")
        other = make_tenant(db_session, slug="other")
        user = make_user(db_session, other)
        conversation = make_conversation(db_session, owner)

        response = client.post("/ai/triage", json=_request(conversation.id), headers=auth_headers(user))

        assert response.status_code == 404
        assert response.json() == {"error": "Conversation not found"}

    def test_user_token_of_owner(self, client, db_session):
        tenant = make_tenant(db_session)
        user = make_user(db_session, tenant)
        conversation = make_conversation(db_session, tenant)

        response = client.post("/ai/triage", json=_request(conversation.id), headers=auth_headers(user))

        assert response.status_code == 200

    def test_unknown_conversation(self, client):
        response = client.post("/ai/triage", json=_request(uuid4()))
        assert response.status_code == 404

    def test_invalid_token(self, client, db_session):
        tenant = make_tenant(db_session)
        conversation = make_conversation(db_session, tenant)

        response = client.post(
            "/ai/triage", json=_request(conversation.id), headers={"Authorization": "Bearer garbage"}
        )

        assert response.status_code == 401

    @pytest.mark.parametrize("channel", ["sms", ""])
    def test_invalid_channel(self, client, channel):
        response = client.post(
            "/ai/triage",
            json={"conversationId": str(uuid4()), "lastMessageId": str(uuid4()), "channel": channel},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"
