"""Inbound provider webhooks: Builderbot WhatsApp messages and ElevenLabs post-call reports."""

from typing import Any, Optional, Type, TypeVar

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.database import get_db
from app.errors import FatalError, HelpdeskError, PayloadValidationError, format_validation_errors
from app.logging_config import get_logger
from app.schemas.webhook import VoiceCallWebhookPayload, WhatsAppWebhookPayload
from app.services.channels import ChannelAdapter, get_whatsapp_adapter
from app.services.inbound_service import process_voice_call_event, process_whatsapp_event

logger = get_logger("webhook")

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

PayloadT = TypeVar("PayloadT", bound=BaseModel)


async def _parse_payload(request: Request, model: Type[PayloadT]) -> PayloadT:
    try:
        body: Any = await request.json()
    except ValueError as exc:
        raw = await request.body()
        logger.warning(
            "Webhook payload is not valid JSON",
            extra={"context": {"path": request.url.path, "body_preview": raw[:200].decode("utf-8", "ignore")}},
        )
        raise PayloadValidationError("Invalid JSON payload", str(exc)) from exc

    try:
        return model.model_validate(body)
    except ValidationError as exc:
        logger.info(
            "Webhook payload rejected",
            extra={"context": {"path": request.url.path, "errors": exc.error_count()}},
        )
        raise PayloadValidationError("Invalid payload", format_validation_errors(exc.errors())) from exc


async def _run(handler, *args):
    try:
        outcome = await run_in_threadpool(handler, *args)
    except HelpdeskError:
        raise
    except Exception as exc:
        logger.error("Webhook processing crashed", exc_info=True)
        raise FatalError("Internal server error", str(exc)) from exc
    return outcome.to_response()


@router.post("/builderbot/whatsapp")
async def builderbot_whatsapp(
    request: Request,
    x_account_key: Optional[str] = Header(default=None, alias="x-account-key"),
    db: Session = Depends(get_db),
    adapter: ChannelAdapter = Depends(get_whatsapp_adapter),
):
    """Inbound WhatsApp message relayed by Builderbot."""
    payload = await _parse_payload(request, WhatsAppWebhookPayload)
    return await _run(process_whatsapp_event, db, adapter, payload, x_account_key)


@router.post("/elevenlabs/post-call")
async def elevenlabs_post_call(
    request: Request,
    x_account_key: Optional[str] = Header(default=None, alias="x-account-key"),
    db: Session = Depends(get_db),
    adapter: ChannelAdapter = Depends(get_whatsapp_adapter),
):
    """Post-call report from the voice agent. Follow-ups go out over WhatsApp."""
    payload = await _parse_payload(request, VoiceCallWebhookPayload)
    return await _run(process_voice_call_event, db, adapter, payload, x_account_key)
