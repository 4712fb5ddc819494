from unittest.mock import Mock

from app.models import Message
from app.models.enums import AIMode
from app.schemas.triage import TriageResult
from app.services.autopilot_service import run_autopilot, send_call_followup, should_autopilot
from app.services.result import Result
from app.services.tenant_service import TenantSettings

from conftest import make_conversation, make_tenant

AUTOPILOT = TenantSettings(aiMode=AIMode.AUTOPILOT, autopilotCategories=["TRACKING"])
ELIGIBLE = TriageResult(
    intent="tracking",
    confidence=0.8,
    suggestedReply="Perfecto, voy a consultar el estado de tu pedido.",
    autopilotEligible=True,
)


class TestShouldAutopilot:
    def test_assisted_mode_never_fires(self):
        assert should_autopilot(TenantSettings(aiMode=AIMode.ASSISTED), ELIGIBLE) == (False, "ai_mode_assisted")

    def test_not_eligible(self):
        result = ELIGIBLE.model_copy(update={"autopilotEligible": False})
        assert should_autopilot(AUTOPILOT, result) == (False, "not_eligible")

    def test_empty_reply(self):
        result = ELIGIBLE.model_copy(update={"suggestedReply": "  "})
        assert should_autopilot(AUTOPILOT, result) == (False, "empty_reply")

    def test_eligible(self):
        assert should_autopilot(AUTOPILOT, ELIGIBLE) == (True, "eligible")


class TestRunAutopilot:
    def test_sends_and_marks_conversation_pending(self, db_session, fake_adapter):
        tenant = make_tenant(db_session)
        conversation = make_conversation(db_session, tenant)

        outcome = run_autopilot(
            db_session,
            fake_adapter,
            tenant_settings=AUTOPILOT,
            conversation=conversation,
            customer=conversation.customer,
            result=ELIGIBLE,
        )

        assert outcome.sent is True
        fake_adapter.send_text.assert_called_once_with("+5491112345678", ELIGIBLE.suggestedReply)
        assert conversation.status == "PENDING"
        assert outcome.message.direction == "OUTBOUND"
        assert outcome.message.message_metadata == {
            "autopilot": True,
            "messageId": "bb-msg-1",
            "intent": "tracking",
            "confidence": 0.8,
        }

    def test_send_failure_stores_nothing(self, db_session):
        tenant = make_tenant(db_session)
        conversation = make_conversation(db_session, tenant)
        adapter = Mock()
        adapter.send_text.return_value = Result.failure("HTTP 500", "provider_error")

        outcome = run_autopilot(
            db_session,
            adapter,
            tenant_settings=AUTOPILOT,
            conversation=conversation,
            customer=conversation.customer,
            result=ELIGIBLE,
        )

        assert outcome.sent is False
        assert outcome.reason == "send_failed"
        assert conversation.status == "OPEN"
        assert db_session.query(Message).filter(Message.direction == "OUTBOUND").count() == 0

    def test_assisted_mode_does_not_call_adapter(self, db_session, fake_adapter):
        tenant = make_tenant(db_session)
        conversation = make_conversation(db_session, tenant)

        outcome = run_autopilot(
            db_session,
            fake_adapter,
            tenant_settings=TenantSettings(),
            conversation=conversation,
            customer=conversation.customer,
            result=ELIGIBLE,
        )

        assert outcome.sent is False
        fake_adapter.send_text.assert_not_called()


class TestCallFollowup:
    def test_disabled_by_default(self, db_session, fake_adapter):
        tenant = make_tenant(db_session)
        conversation = make_conversation(db_session, tenant, channel="CALL")

        outcome = send_call_followup(
            db_session,
            fake_adapter,
            tenant_settings=TenantSettings(),
            conversation=conversation,
            customer=conversation.customer,
            call_id="call-1",
            summary="Consultó por su envío",
        )

        assert outcome.reason == "followup_disabled"
        fake_adapter.send_text.assert_not_called()

    def test_sends_summary_when_enabled(self, db_session, fake_adapter):
        tenant = make_tenant(db_session)
        conversation = make_conversation(db_session, tenant, channel="CALL")

        outcome = send_call_followup(
            db_session,
            fake_adapter,
            tenant_settings=TenantSettings(autopilotCallFollowup=True),
            conversation=conversation,
            customer=conversation.customer,
            call_id="call-1",
            summary="Consultó por su envío",
        )

        assert outcome.sent is True
        sent_text = fake_adapter.send_text.call_args[0][1]
        assert "Consultó por su envío" in sent_text
        assert outcome.message.channel == "WHATSAPP"
        assert outcome.message.message_metadata["callFollowup"] is True

    def test_no_summary_skips(self, db_session, fake_adapter):
        tenant = make_tenant(db_session)
        conversation = make_conversation(db_session, tenant, channel="CALL")

        outcome = send_call_followup(
            db_session,
            fake_adapter,
            tenant_settings=TenantSettings(autopilotCallFollowup=True),
            conversation=conversation,
            customer=conversation.customer,
            call_id="call-1",
            summary=None,
        )

        assert outcome.reason == "no_summary"
