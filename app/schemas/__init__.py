from app.schemas.triage import SuggestedAction, TriageRequest, TriageResult
from app.schemas.webhook import VoiceCallWebhookPayload, WhatsAppWebhookPayload

__all__ = [
    "SuggestedAction",
    "TriageRequest",
    "TriageResult",
    "VoiceCallWebhookPayload",
    "WhatsAppWebhookPayload",
]
