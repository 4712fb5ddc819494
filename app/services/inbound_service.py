"""Inbound webhook pipeline shared by the WhatsApp and voice-call channels.

tenant -> dedupe -> customer -> conversation -> message -> triage -> ticket -> reply

Each stage commits on its own, so a failure late in the run leaves the
stored message (and anything before it) in place; only the event log records
the failure.
"""

from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.errors import FatalError, HelpdeskError
from app.logging_config import bind_logger
from app.models import CallSession, Conversation, Customer, Message, Ticket
from app.models.enums import Direction, MessageChannel
from app.schemas.triage import TriageResult
from app.schemas.webhook import VoiceCallWebhookPayload, WhatsAppWebhookPayload
from app.services import event_log_service
from app.services.autopilot_service import AutopilotOutcome, run_autopilot, send_call_followup
from app.services.channels import ChannelAdapter
from app.services.conversation_service import add_message, get_or_create_conversation, get_or_create_customer
from app.services.state_machine import PipelineRun, PipelineStage
from app.services.tenant_service import TenantSettings, get_tenant_settings, resolve_or_provision_tenant
from app.services.ticket_service import add_ticket_event, project_triage
from app.services.triage_service import build_triage_result, classify_text, triage_conversation

WHATSAPP_SOURCE = "builderbot_whatsapp"
VOICE_SOURCE = "elevenlabs_post_call"
DEFAULT_WHATSAPP_ACCOUNT_KEY = "builderbot_whatsapp_main"
DEFAULT_VOICE_ACCOUNT_KEY = "elevenlabs_calls_main"
WHATSAPP_DEFAULT_EVENT = "message.received"
VOICE_EVENT = "call.completed"


@dataclass
class PipelineContext:
    tenant_id: UUID
    tenant_settings: TenantSettings
    customer: Customer
    conversation: Conversation
    message: Message
    triage: Optional[TriageResult] = None
    ticket: Optional[Ticket] = None
    call_session: Optional[CallSession] = None


@dataclass
class PipelineOutcome:
    status: str
    run: PipelineRun
    event_id: Optional[UUID] = None
    context: Optional[PipelineContext] = None
    autopilot: Optional[AutopilotOutcome] = None

    def to_response(self) -> dict[str, Any]:
        if self.status == "already_processed":
            return {"status": self.status, "eventId": str(self.event_id)}
        ctx = self.context
        body = {
            "status": self.status,
            "conversationId": str(ctx.conversation.id),
            "ticketId": str(ctx.ticket.id) if ctx.ticket else None,
            "messageId": str(ctx.message.id),
        }
        if ctx.call_session is not None:
            body["callSessionId"] = str(ctx.call_session.id)
        return body


class InboundPipeline:
    """One inbound provider event. Subclasses supply the channel-specific pieces."""

    source: str
    event_type: str
    channel: MessageChannel

    def __init__(self, db: Session, adapter: ChannelAdapter, account_key: Optional[str] = None):
        self.db = db
        self.adapter = adapter
        self.account_key = account_key
        self.run_state = PipelineRun()
        self.logger = bind_logger("inbound", source=self.source, account_key=account_key)

    # Channel hooks

    def tenant_hint(self) -> Optional[UUID]:
        return None

    def audit_payload(self) -> Any:
        raise NotImplementedError

    def phone_number(self) -> str:
        raise NotImplementedError

    def customer_name(self) -> Optional[str]:
        return None

    def message_text(self) -> Optional[str]:
        raise NotImplementedError

    def store_extras(self, ctx: PipelineContext) -> None:
        pass

    def after_ticket(self, ctx: PipelineContext) -> None:
        pass

    def respond(self, ctx: PipelineContext) -> AutopilotOutcome:
        raise NotImplementedError

    # Shared stages

    def _triage(self, ctx: PipelineContext) -> TriageResult:
        try:
            return triage_conversation(self.db, ctx.conversation.id)
        except HelpdeskError:
            raise
        except Exception as e:
            # Rule-based fallback, never auto-replied.
            self.logger.warning("Triage failed, using fallback", context={"error": str(e)})
            classification = classify_text(ctx.message.text, customer_id=ctx.customer.id)
            return build_triage_result(classification, ctx.tenant_settings).model_copy(update={"autopilotEligible": False})

    def process(self) -> PipelineOutcome:
        db = self.db
        run = self.run_state

        tenant_id = resolve_or_provision_tenant(db, account_key=self.account_key, tenant_id=self.tenant_hint())
        db.commit()
        run.advance(PipelineStage.TENANT_RESOLVED)
        self.logger = bind_logger("inbound", source=self.source, tenant_id=str(tenant_id))

        intake = event_log_service.intake_event(
            db,
            tenant_id=tenant_id,
            source=self.source,
            event_type=self.event_type,
            payload=self.audit_payload(),
        )
        run.advance(PipelineStage.DEDUPE_CHECKED)
        if intake.already_processed:
            run.advance(PipelineStage.SKIPPED)
            return PipelineOutcome(status="already_processed", run=run, event_id=intake.event_log.id)

        event_log = intake.event_log
        try:
            outcome = self._process_claimed(tenant_id)
        except Exception as e:
            db.rollback()
            run.fail(str(e))
            self.logger.error(
                "Inbound event failed",
                exc_info=True,
                context={"stage": run.history[-2].value, "message_stored": run.message_stored},
            )
            event_log_service.mark_failed(db, event_log, str(e) or e.__class__.__name__)
            if isinstance(e, HelpdeskError):
                raise
            raise FatalError("Failed to process webhook", str(e)) from e

        event_log_service.mark_processed(db, event_log)
        outcome.event_id = event_log.id if event_log else None
        return outcome

    def _process_claimed(self, tenant_id: UUID) -> PipelineOutcome:
        db = self.db
        run = self.run_state
        tenant_settings = get_tenant_settings(db, tenant_id)

        customer = get_or_create_customer(db, tenant_id, self.phone_number(), self.customer_name())
        run.advance(PipelineStage.CUSTOMER_RESOLVED)

        conversation = get_or_create_conversation(db, tenant_id, customer.id, self.channel.value)
        run.advance(PipelineStage.CONVERSATION_RESOLVED)

        message = add_message(
            db,
            conversation,
            channel=self.channel.value,
            direction=Direction.INBOUND,
            text=self.message_text(),
            raw_payload=self.audit_payload(),
        )
        ctx = PipelineContext(
            tenant_id=tenant_id,
            tenant_settings=tenant_settings,
            customer=customer,
            conversation=conversation,
            message=message,
        )
        self.store_extras(ctx)
        db.commit()
        run.advance(PipelineStage.MESSAGE_STORED)

        ctx.triage = self._triage(ctx)
        run.advance(PipelineStage.TRIAGED)

        ctx.ticket = project_triage(db, conversation, message, ctx.triage)
        self.after_ticket(ctx)
        db.commit()
        run.advance(PipelineStage.TICKET_PROJECTED)

        autopilot = self.respond(ctx)
        db.commit()
        run.advance(PipelineStage.AUTOPILOT_SENT if autopilot.sent else PipelineStage.AUTOPILOT_SKIPPED)

        run.advance(PipelineStage.PROCESSED)
        self.logger.info(
            "Inbound event processed",
            context={
                "conversation_id": str(conversation.id),
                "ticket_id": str(ctx.ticket.id),
                "intent": ctx.triage.intent,
                "autopilot": autopilot.reason,
            },
        )
        return PipelineOutcome(status="processed", run=run, context=ctx, autopilot=autopilot)


class WhatsAppPipeline(InboundPipeline):
    source = WHATSAPP_SOURCE
    channel = MessageChannel.WHATSAPP

    def __init__(self, db: Session, adapter: ChannelAdapter, payload: WhatsAppWebhookPayload, account_key: Optional[str] = None):
        self.payload = payload
        self.event_type = payload.event or payload.eventName or WHATSAPP_DEFAULT_EVENT
        super().__init__(db, adapter, account_key or DEFAULT_WHATSAPP_ACCOUNT_KEY)

    def tenant_hint(self) -> Optional[UUID]:
        return self.payload.tenantId

    def audit_payload(self) -> Any:
        return self.payload.model_dump(mode="json", by_alias=True, exclude_none=True)

    def phone_number(self) -> str:
        return self.payload.data.from_

    def customer_name(self) -> Optional[str]:
        return self.payload.data.name

    def message_text(self) -> Optional[str]:
        return self.payload.data.extract_text()

    def respond(self, ctx: PipelineContext) -> AutopilotOutcome:
        return run_autopilot(
            self.db,
            self.adapter,
            tenant_settings=ctx.tenant_settings,
            conversation=ctx.conversation,
            customer=ctx.customer,
            result=ctx.triage,
        )


class VoiceCallPipeline(InboundPipeline):
    source = VOICE_SOURCE
    event_type = VOICE_EVENT
    channel = MessageChannel.CALL

    def __init__(self, db: Session, adapter: ChannelAdapter, payload: VoiceCallWebhookPayload, account_key: Optional[str] = None):
        self.payload = payload
        super().__init__(db, adapter, account_key or DEFAULT_VOICE_ACCOUNT_KEY)

    def tenant_hint(self) -> Optional[UUID]:
        return self.payload.tenantId

    def audit_payload(self) -> Any:
        return self.payload.model_dump(mode="json", exclude_none=True)

    def phone_number(self) -> str:
        return self.payload.phone_number

    def message_text(self) -> Optional[str]:
        return self.payload.summary or self.payload.transcript

    def store_extras(self, ctx: PipelineContext) -> None:
        payload = self.payload
        ctx.call_session = CallSession(
            tenant_id=ctx.tenant_id,
            conversation_id=ctx.conversation.id,
            customer_id=ctx.customer.id,
            external_call_id=payload.call_id,
            phone_number=payload.phone_number,
            started_at=payload.started_at,
            ended_at=payload.ended_at,
            duration_seconds=payload.duration_seconds,
            outcome=payload.outcome,
            transcript=payload.transcript,
            summary=payload.summary,
            call_metadata=payload.metadata or {},
        )
        self.db.add(ctx.call_session)
        self.db.flush()

    def after_ticket(self, ctx: PipelineContext) -> None:
        add_ticket_event(
            self.db,
            ctx.ticket,
            VOICE_EVENT,
            {
                "callId": str(ctx.call_session.id),
                "externalCallId": self.payload.call_id,
                "duration": self.payload.duration_seconds,
                "outcome": self.payload.outcome,
                "summary": self.payload.summary,
            },
        )

    def respond(self, ctx: PipelineContext) -> AutopilotOutcome:
        return send_call_followup(
            self.db,
            self.adapter,
            tenant_settings=ctx.tenant_settings,
            conversation=ctx.conversation,
            customer=ctx.customer,
            call_id=str(ctx.call_session.id),
            summary=self.payload.summary,
        )


def process_whatsapp_event(
    db: Session, adapter: ChannelAdapter, payload: WhatsAppWebhookPayload, account_key: Optional[str] = None
) -> PipelineOutcome:
    return WhatsAppPipeline(db, adapter, payload, account_key).process()


def process_voice_call_event(
    db: Session, adapter: ChannelAdapter, payload: VoiceCallWebhookPayload, account_key: Optional[str] = None
) -> PipelineOutcome:
    return VoiceCallPipeline(db, adapter, payload, account_key).process()
