from typing import Any, Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field


class SuggestedAction(BaseModel):
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)


class TriageRequest(BaseModel):
    conversationId: UUID = Field(validation_alias=AliasChoices("conversationId", "conversation_id"))
    lastMessageId: UUID = Field(validation_alias=AliasChoices("lastMessageId", "last_message_id"))
    channel: Literal["whatsapp", "call", "email", "chat"]


class TriageResult(BaseModel):
    intent: str
    confidence: float
    missingFields: list[str] = Field(default_factory=list)
    suggestedActions: list[SuggestedAction] = Field(default_factory=list)
    suggestedReply: str = ""
    autopilotEligible: bool = False

    @property
    def category(self) -> str:
        return self.intent.upper()
