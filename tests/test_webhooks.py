from unittest.mock import patch
from uuid import UUID

from app.models import CallSession, Conversation, Customer, EventLog, Message, Ticket, TicketEvent
from app.services.result import Result

from conftest import make_tenant

WHATSAPP_URL = "/webhooks/builderbot/whatsapp"
VOICE_URL = "/webhooks/elevenlabs/post-call"
PHONE = "+5491112345678"
AUTOPILOT_TRACKING = {"aiMode": "AUTOPILOT", "autopilotCategories": ["TRACKING"], "confidenceThreshold": 0.7}


def whatsapp_payload(text, phone=PHONE):
    return {"event": "message.received", "data": {"from": phone, "body": text}}


def voice_payload(**overrides):
    payload = {
        "call_id": "conv_123",
        "phone_number": PHONE,
        "started_at": "2026-10-18T10:00:00Z",
        "ended_at": "2026-10-18T10:03:25Z",
        "outcome": "completed",
        "summary": "El cliente consultó por el seguimiento de su pedido ABC123456",
        "transcript": "Agente: hola...",
    }
    payload.update(overrides)
    return payload


class TestWhatsAppWebhook:
    def test_tracking_message_is_triaged(self, client, db_session):
        make_tenant(db_session)

        response = client.post(WHATSAPP_URL, json=whatsapp_payload("necesito el seguimiento de mi pedido ABC123456"))

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "processed"
        message = db_session.get(Message, UUID(body["messageId"]))
        assert message.direction == "INBOUND"
        assert message.message_metadata["intent"] == "tracking"
        assert message.message_metadata["confidence"] == 0.8
        assert message.message_metadata["suggestedActions"] == [
            {"type": "lookup_tracking", "payload": {"trackingNumber": "ABC123456"}}
        ]
        ticket = db_session.query(Ticket).one()
        assert str(ticket.id) == body["ticketId"]
        assert ticket.category == "TRACKING"

    def test_reclamo_creates_high_priority_ticket(self, client, db_session):
        make_tenant(db_session)

        response = client.post(WHATSAPP_URL, json=whatsapp_payload("el producto llegó dañado, quiero reembolso"))

        assert response.status_code == 200
        ticket = db_session.query(Ticket).one()
        assert ticket.priority == "HIGH"
        assert ticket.category == "RECLAMO"
        message = db_session.query(Message).one()
        assert message.message_metadata["missingFields"] == ["orderNumber", "description"]

    def test_autopilot_reply_when_tenant_allows(self, client, db_session, fake_adapter):
        make_tenant(db_session, settings=AUTOPILOT_TRACKING)

        response = client.post(WHATSAPP_URL, json=whatsapp_payload("necesito el seguimiento de mi pedido ABC123456"))

        assert response.status_code == 200
        fake_adapter.send_text.assert_called_once()
        outbound = db_session.query(Message).filter(Message.direction == "OUTBOUND").one()
        assert outbound.message_metadata["autopilot"] is True
        assert db_session.query(Conversation).one().status == "PENDING"

    def test_assisted_tenant_gets_no_autopilot(self, client, db_session, fake_adapter):
        make_tenant(db_session)

        client.post(WHATSAPP_URL, json=whatsapp_payload("necesito el seguimiento de mi pedido ABC123456"))

        fake_adapter.send_text.assert_not_called()
        assert db_session.query(Message).filter(Message.direction == "OUTBOUND").count() == 0

    def test_autopilot_tenant_without_categories_does_not_reply(self, client, db_session, fake_adapter):
        make_tenant(db_session, settings={"aiMode": "AUTOPILOT"})

        response = client.post(WHATSAPP_URL, json=whatsapp_payload("seguimiento pedido ABC123456"))

        assert response.status_code == 200
        fake_adapter.send_text.assert_not_called()
        assert db_session.query(Message).filter(Message.direction == "OUTBOUND").count() == 0

    def test_raw_payload_keeps_original_shape(self, client, db_session):
        make_tenant(db_session)

        client.post(WHATSAPP_URL, json=whatsapp_payload("hola"))

        raw = db_session.query(Message).one().raw_payload
        assert raw == {"event": "message.received", "data": {"from": PHONE, "body": "hola"}}
        assert db_session.query(EventLog).one().raw_payload == raw

    def test_event_name_is_used_as_event_type(self, client, db_session):
        make_tenant(db_session)
        payload = {"eventName": "message.incoming", "data": {"from": PHONE, "body": "hola"}}

        client.post(WHATSAPP_URL, json=payload)

        assert db_session.query(EventLog).one().type == "message.incoming"

    def test_autopilot_send_failure_still_processes(self, client, db_session, fake_adapter):
        make_tenant(db_session, settings=AUTOPILOT_TRACKING)
        fake_adapter.send_text.return_value = Result.failure("HTTP 502", "provider_error")

        response = client.post(WHATSAPP_URL, json=whatsapp_payload("seguimiento pedido ABC123456"))

        assert response.status_code == 200
        assert response.json()["status"] == "processed"
        assert db_session.query(Conversation).one().status == "OPEN"

    def test_redelivery_is_skipped(self, client, db_session):
        make_tenant(db_session)
        payload = whatsapp_payload("quiero una factura")

        first = client.post(WHATSAPP_URL, json=payload)
        second = client.post(WHATSAPP_URL, json=payload)

        assert first.json()["status"] == "processed"
        assert second.status_code == 200
        assert second.json()["status"] == "already_processed"
        assert "eventId" in second.json()
        assert db_session.query(Message).count() == 1
        assert db_session.query(EventLog).one().status == "processed"

    def test_same_customer_reuses_conversation(self, client, db_session):
        make_tenant(db_session)

        client.post(WHATSAPP_URL, json=whatsapp_payload("hola"))
        client.post(WHATSAPP_URL, json=whatsapp_payload("quería hacer una consulta"))

        assert db_session.query(Customer).count() == 1
        assert db_session.query(Conversation).count() == 1
        assert db_session.query(Message).count() == 2

    def test_closed_conversation_starts_new_one(self, client, db_session):
        make_tenant(db_session)
        client.post(WHATSAPP_URL, json=whatsapp_payload("hola"))
        conversation = db_session.query(Conversation).one()
        conversation.status = "CLOSED"
        db_session.commit()

        client.post(WHATSAPP_URL, json=whatsapp_payload("hola de nuevo"))

        assert db_session.query(Conversation).count() == 2

    def test_nested_message_text(self, client, db_session):
        make_tenant(db_session)

        client.post(
            WHATSAPP_URL,
            json={"event": "message.received", "data": {"from": PHONE, "message": {"text": "precio del envío"}}},
        )

        assert db_session.query(Message).one().text == "precio del envío"

    def test_message_without_text(self, client, db_session):
        make_tenant(db_session)

        response = client.post(WHATSAPP_URL, json={"data": {"from": PHONE}})

        assert response.status_code == 200
        message = db_session.query(Message).one()
        assert message.text is None
        assert message.message_metadata["intent"] == "otro"

    def test_empty_database_bootstraps_tenant(self, client, db_session):
        response = client.post(WHATSAPP_URL, json=whatsapp_payload("hola"))

        assert response.status_code == 200
        assert db_session.query(Customer).one().tenant_id is not None

    def test_account_key_header_is_bound(self, client, db_session):
        tenant = make_tenant(db_session)

        client.post(WHATSAPP_URL, json=whatsapp_payload("hola"), headers={"x-account-key": "builderbot_ventas"})

        account = tenant.channel_accounts[0]
        assert account.account_key == "builderbot_ventas"
        assert account.channel == "whatsapp-bot"

    def test_missing_sender_is_rejected(self, client, db_session):
        response = client.post(WHATSAPP_URL, json={"event": "message.received", "data": {"body": "hola"}})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid payload"
        assert body["details"]
        assert db_session.query(Message).count() == 0

    def test_invalid_json_is_rejected(self, client):
        response = client.post(WHATSAPP_URL, content=b"{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid JSON payload"

    def test_failure_after_message_keeps_message(self, client, db_session):
        make_tenant(db_session)

        with patch("app.services.inbound_service.project_triage", side_effect=RuntimeError("ticket insert failed")):
            response = client.post(WHATSAPP_URL, json=whatsapp_payload("una consulta"))

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to process webhook"
        assert db_session.query(Message).count() == 1
        event_log = db_session.query(EventLog).one()
        assert event_log.status == "failed"
        assert "ticket insert failed" in event_log.error

    def test_failed_event_can_be_redelivered(self, client, db_session):
        make_tenant(db_session)
        payload = whatsapp_payload("una consulta")
        with patch("app.services.inbound_service.project_triage", side_effect=RuntimeError("boom")):
            client.post(WHATSAPP_URL, json=payload)

        response = client.post(WHATSAPP_URL, json=payload)

        assert response.json()["status"] == "processed"
        event_log = db_session.query(EventLog).one()
        assert event_log.status == "processed"
        assert event_log.retry_count == 1


class TestVoiceCallWebhook:
    def test_call_is_recorded(self, client, db_session):
        make_tenant(db_session)

        response = client.post(VOICE_URL, json=voice_payload())

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "processed"
        call = db_session.query(CallSession).one()
        assert str(call.id) == body["callSessionId"]
        assert call.duration_seconds == 205
        assert call.outcome == "completed"
        message = db_session.query(Message).one()
        assert message.channel == "CALL"
        assert message.text.startswith("El cliente consultó")
        event = db_session.query(TicketEvent).filter(TicketEvent.type == "call.completed").one()
        assert event.payload["duration"] == 205

    def test_followup_sent_when_enabled(self, client, db_session, fake_adapter):
        make_tenant(db_session, settings={"aiMode": "ASSISTED", "autopilotCallFollowup": True})

        client.post(VOICE_URL, json=voice_payload())

        fake_adapter.send_text.assert_called_once()
        followup = db_session.query(Message).filter(Message.direction == "OUTBOUND").one()
        assert followup.message_metadata["callFollowup"] is True

    def test_end_before_start_is_rejected(self, client, db_session):
        response = client.post(
            VOICE_URL, json=voice_payload(started_at="2026-10-18T10:05:00Z", ended_at="2026-10-18T10:00:00Z")
        )

        assert response.status_code == 400
        assert db_session.query(CallSession).count() == 0

    def test_missing_phone_is_rejected(self, client):
        payload = voice_payload()
        del payload["phone_number"]

        response = client.post(VOICE_URL, json=payload)

        assert response.status_code == 400
        assert "details" in response.json()
