from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import Conversation, Customer, Message
from app.models.enums import AIMode, ConversationStatus, Direction, MessageChannel
from app.schemas.triage import TriageResult
from app.services.channels import ChannelAdapter
from app.services.conversation_service import add_message, update_conversation_status
from app.services.tenant_service import TenantSettings

logger = get_logger("autopilot_service")

CALL_FOLLOWUP_TEMPLATE = "Gracias por tu llamada. Resumen: {summary}. ¿Hay algo más en lo que podamos ayudarte?"


@dataclass
class AutopilotOutcome:
    sent: bool
    reason: str
    message: Optional[Message] = None


def should_autopilot(tenant_settings: TenantSettings, result: TriageResult) -> tuple[bool, str]:
    if tenant_settings.aiMode != AIMode.AUTOPILOT:
        return False, "ai_mode_assisted"
    if not result.autopilotEligible:
        return False, "not_eligible"
    if not result.suggestedReply or not result.suggestedReply.strip():
        return False, "empty_reply"
    return True, "eligible"


def run_autopilot(
    db: Session,
    adapter: ChannelAdapter,
    *,
    tenant_settings: TenantSettings,
    conversation: Conversation,
    customer: Customer,
    result: TriageResult,
) -> AutopilotOutcome:
    """Send the suggested reply when the tenant allows it.

    A failed send is logged and leaves every earlier write in place.
    """
    allowed, reason = should_autopilot(tenant_settings, result)
    if not allowed:
        logger.info(
            "Autopilot skipped",
            extra={"context": {"conversation_id": str(conversation.id), "reason": reason}},
        )
        return AutopilotOutcome(sent=False, reason=reason)

    send_result = adapter.send_text(customer.phone_number, result.suggestedReply)
    if not send_result.ok:
        logger.warning(
            "Autopilot send failed",
            extra={
                "context": {
                    "conversation_id": str(conversation.id),
                    "error": send_result.error,
                    "error_code": send_result.error_code,
                }
            },
        )
        return AutopilotOutcome(sent=False, reason="send_failed")

    message = add_message(
        db,
        conversation,
        channel=MessageChannel.WHATSAPP.value,
        direction=Direction.OUTBOUND,
        text=result.suggestedReply,
        metadata={
            "autopilot": True,
            "messageId": send_result.value,
            "intent": result.intent,
            "confidence": result.confidence,
        },
    )
    update_conversation_status(db, conversation, ConversationStatus.PENDING)
    logger.info(
        "Autopilot reply sent",
        extra={"context": {"conversation_id": str(conversation.id), "message_id": str(message.id)}},
    )
    return AutopilotOutcome(sent=True, reason=reason, message=message)


def send_call_followup(
    db: Session,
    adapter: ChannelAdapter,
    *,
    tenant_settings: TenantSettings,
    conversation: Conversation,
    customer: Customer,
    call_id: str,
    summary: Optional[str],
) -> AutopilotOutcome:
    """WhatsApp recap after a voice call, when the tenant enabled it."""
    if not tenant_settings.autopilotCallFollowup:
        return AutopilotOutcome(sent=False, reason="followup_disabled")
    if not summary or not summary.strip():
        return AutopilotOutcome(sent=False, reason="no_summary")

    text = CALL_FOLLOWUP_TEMPLATE.format(summary=summary)
    send_result = adapter.send_text(customer.phone_number, text)
    if not send_result.ok:
        logger.warning(
            "Call follow-up send failed",
            extra={"context": {"call_id": call_id, "error": send_result.error}},
        )
        return AutopilotOutcome(sent=False, reason="send_failed")

    message = add_message(
        db,
        conversation,
        channel=MessageChannel.WHATSAPP.value,
        direction=Direction.OUTBOUND,
        text=text,
        metadata={"callFollowup": True, "callId": call_id, "messageId": send_result.value},
    )
    return AutopilotOutcome(sent=True, reason="followup_sent", message=message)
