from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class WhatsAppMessageBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    text: Optional[str] = None
    body: Optional[str] = None


class WhatsAppEventData(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    from_: str = Field(validation_alias=AliasChoices("from", "from_"), serialization_alias="from", min_length=1)
    name: Optional[str] = None
    body: Optional[str] = None
    answer: Optional[str] = None
    message: Optional[WhatsAppMessageBody] = None

    def extract_text(self) -> Optional[str]:
        for candidate in (
            self.body,
            self.answer,
            self.message.text if self.message else None,
            self.message.body if self.message else None,
        ):
            if isinstance(candidate, str) and candidate.strip():
                return candidate
        return None


class WhatsAppWebhookPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    event: Optional[str] = None
    eventName: Optional[str] = None
    data: WhatsAppEventData
    tenantId: Optional[UUID] = Field(default=None, validation_alias=AliasChoices("tenantId", "tenant_id"))


class VoiceCallWebhookPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    call_id: str = Field(min_length=1)
    phone_number: str = Field(min_length=1)
    started_at: datetime
    ended_at: datetime
    outcome: str
    transcript: Optional[str] = None
    summary: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    tenantId: Optional[UUID] = Field(default=None, validation_alias=AliasChoices("tenantId", "tenant_id"))

    @field_validator("started_at", "ended_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("outcome")
    @classmethod
    def _outcome_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("outcome must not be empty")
        return value

    @model_validator(mode="after")
    def _ended_after_start(self) -> "VoiceCallWebhookPayload":
        if self.ended_at < self.started_at:
            raise ValueError("ended_at must not be before started_at")
        return self

    @property
    def duration_seconds(self) -> int:
        return int((self.ended_at - self.started_at).total_seconds())


class WebhookProcessedResponse(BaseModel):
    status: str = "processed"
    conversationId: Optional[UUID] = None
    ticketId: Optional[UUID] = None
    messageId: Optional[UUID] = None
    callSessionId: Optional[UUID] = None


class WebhookSkippedResponse(BaseModel):
    status: str = "already_processed"
    eventId: UUID
