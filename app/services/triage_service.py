"""Intent triage for inbound customer messages.

Classification is a first-match keyword scan. Rule order matters: a message
mentioning both a shipment and damage is a tracking request, because the
tracking rule is checked before the complaint rule.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.errors import NotFoundError
from app.logging_config import get_logger
from app.models import Conversation
from app.schemas.triage import SuggestedAction, TriageResult
from app.services.conversation_service import get_latest_message
from app.services.llm import get_llm_provider
from app.services.tenant_service import TenantSettings, get_tenant_settings

logger = get_logger("triage_service")

LLM_TRIAGE_MODEL = "gpt-3.5-turbo"
LLM_TRIAGE_TEMPERATURE = 0.3
LLM_TRIAGE_MAX_TOKENS = 200
LLM_TRIAGE_PROMPT = (
    "Eres un asistente de atención al cliente. Analiza el mensaje y determina la intención "
    "(reclamo, info, facturacion, tracking, cotizacion, otro) con un nivel de confianza (0-1)."
)

# Runs on the original text: tracking numbers are upper-case tokens.
TRACKING_NUMBER_PATTERN = re.compile(r"\b[A-Z0-9]{6,}\b")

NO_TEXT_CONFIDENCE = 0.3
FALLBACK_CONFIDENCE = 0.5


class Intent(str, Enum):
    TRACKING = "tracking"
    FACTURACION = "facturacion"
    RECLAMO = "reclamo"
    COTIZACION = "cotizacion"
    INFO = "info"
    OTRO = "otro"


@dataclass(frozen=True)
class IntentRule:
    intent: Intent
    keywords: tuple[str, ...]
    confidence: float


INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule(Intent.TRACKING, ("seguimiento", "tracking", "pedido", "envío"), 0.8),
    IntentRule(Intent.FACTURACION, ("factura", "deuda", "pago", "cuenta"), 0.8),
    IntentRule(Intent.RECLAMO, ("reclamo", "problema", "dañado", "defectuoso", "reembolso"), 0.9),
    IntentRule(Intent.COTIZACION, ("cotización", "precio", "costo"), 0.7),
    IntentRule(Intent.INFO, ("info", "información", "consulta"), 0.6),
)

REPLY_NEED_MORE_INFO = "Por favor, proporciona más información sobre tu consulta."
REPLY_TRACKING_MISSING = (
    "Hola! Para ayudarte con el seguimiento, necesito el número de tracking de tu pedido. ¿Podrías compartirlo?"
)
REPLY_TRACKING_FOUND = "Perfecto, voy a consultar el estado de tu pedido. Te responderé en breve."
REPLIES = {
    Intent.FACTURACION: "Te ayudo con tu consulta de facturación. Estoy revisando tu información.",
    Intent.RECLAMO: (
        "Lamento el inconveniente. Voy a crear un ticket para tu reclamo "
        "y un agente se pondrá en contacto contigo pronto."
    ),
    Intent.COTIZACION: "Con gusto te ayudo con una cotización. ¿Podrías darme más detalles sobre lo que necesitas?",
    Intent.INFO: "Con gusto te doy la información que necesitas. En breve te respondo con los detalles.",
    Intent.OTRO: "Gracias por contactarnos. Estoy procesando tu consulta y te responderé pronto.",
}


@dataclass
class Classification:
    intent: Intent
    confidence: float
    missing_fields: list[str] = field(default_factory=list)
    actions: list[SuggestedAction] = field(default_factory=list)
    reply: str = ""

    @property
    def category(self) -> str:
        return self.intent.value.upper()


def match_intent_rule(text: str) -> Optional[IntentRule]:
    normalized = text.lower()
    for rule in INTENT_RULES:
        if any(keyword in normalized for keyword in rule.keywords):
            return rule
    return None


def extract_tracking_number(text: str) -> Optional[str]:
    match = TRACKING_NUMBER_PATTERN.search(text)
    return match.group(0) if match else None


def classify_text(text: Optional[str], customer_id: Optional[UUID] = None) -> Classification:
    """Rule-based classification of one message. Deterministic for a given text."""
    if not text or not text.strip():
        return Classification(intent=Intent.OTRO, confidence=NO_TEXT_CONFIDENCE, reply=REPLY_NEED_MORE_INFO)

    rule = match_intent_rule(text)
    if rule is None:
        return Classification(intent=Intent.OTRO, confidence=FALLBACK_CONFIDENCE, reply=REPLIES[Intent.OTRO])

    result = Classification(intent=rule.intent, confidence=rule.confidence)

    if rule.intent == Intent.TRACKING:
        tracking_number = extract_tracking_number(text)
        if tracking_number:
            result.actions.append(
                SuggestedAction(type="lookup_tracking", payload={"trackingNumber": tracking_number})
            )
            result.reply = REPLY_TRACKING_FOUND
        else:
            result.missing_fields.append("trackingNumber")
            result.actions.append(SuggestedAction(type="request_tracking_number", payload={}))
            result.reply = REPLY_TRACKING_MISSING
        return result

    if rule.intent == Intent.FACTURACION:
        result.actions.append(
            SuggestedAction(type="fetch_invoices", payload={"customerId": str(customer_id) if customer_id else None})
        )
    elif rule.intent == Intent.RECLAMO:
        result.missing_fields.extend(["orderNumber", "description"])
        result.actions.append(SuggestedAction(type="create_ticket", payload={"category": "RECLAMO", "priority": "HIGH"}))
    elif rule.intent == Intent.COTIZACION:
        result.actions.append(SuggestedAction(type="create_quote", payload={}))

    result.reply = REPLIES[rule.intent]
    return result


def is_autopilot_eligible(classification: Classification, tenant_settings: TenantSettings) -> bool:
    return (
        classification.category in tenant_settings.autopilotCategories
        and classification.confidence >= tenant_settings.confidenceThreshold
        and not classification.missing_fields
    )


def build_triage_result(
    classification: Classification,
    tenant_settings: TenantSettings,
    has_text: bool = True,
) -> TriageResult:
    return TriageResult(
        intent=classification.intent.value,
        confidence=classification.confidence,
        missingFields=list(classification.missing_fields),
        suggestedActions=list(classification.actions),
        suggestedReply=classification.reply,
        autopilotEligible=has_text and is_autopilot_eligible(classification, tenant_settings),
    )


def refine_with_llm(text: str) -> Optional[str]:
    """Ask the model for an intent opinion. Advisory only; never raises."""
    provider = get_llm_provider()
    if provider is None:
        return None
    try:
        response = provider.generate(
            messages=[
                {"role": "system", "content": LLM_TRIAGE_PROMPT},
                {"role": "user", "content": f'Mensaje del cliente: "{text}"'},
            ],
            model=LLM_TRIAGE_MODEL,
            temperature=LLM_TRIAGE_TEMPERATURE,
            max_tokens=LLM_TRIAGE_MAX_TOKENS,
        )
    except Exception as e:
        logger.warning("LLM triage failed, using rule-based result", extra={"context": {"error": str(e)}})
        return None
    logger.debug("LLM triage opinion", extra={"context": {"content": response.content[:200]}})
    return response.content


def triage_conversation(db: Session, conversation_id: UUID, tenant_id: Optional[UUID] = None) -> TriageResult:
    """Triage the latest message of a conversation.

    When tenant_id is given, a conversation of another tenant is reported as missing.
    """
    query = db.query(Conversation).filter(Conversation.id == conversation_id)
    if tenant_id is not None:
        query = query.filter(Conversation.tenant_id == tenant_id)
    conversation = query.first()
    if conversation is None:
        raise NotFoundError("Conversation not found")

    tenant_settings = get_tenant_settings(db, conversation.tenant_id)
    latest = get_latest_message(db, conversation.id)
    text = latest.text if latest else None

    classification = classify_text(text, customer_id=conversation.customer_id)
    has_text = bool(text and text.strip())
    if has_text:
        refine_with_llm(text)

    result = build_triage_result(classification, tenant_settings, has_text=has_text)
    logger.info(
        "Message triaged",
        extra={
            "context": {
                "conversation_id": str(conversation.id),
                "intent": result.intent,
                "confidence": result.confidence,
                "autopilot_eligible": result.autopilotEligible,
            }
        },
    )
    return result
