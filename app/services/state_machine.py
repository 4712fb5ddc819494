from enum import Enum
from typing import Optional


class PipelineStage(str, Enum):
    RECEIVED = "received"
    TENANT_RESOLVED = "tenant_resolved"
    DEDUPE_CHECKED = "dedupe_checked"
    SKIPPED = "skipped"
    CUSTOMER_RESOLVED = "customer_resolved"
    CONVERSATION_RESOLVED = "conversation_resolved"
    MESSAGE_STORED = "message_stored"
    TRIAGED = "triaged"
    TICKET_PROJECTED = "ticket_projected"
    AUTOPILOT_SENT = "autopilot_sent"
    AUTOPILOT_SKIPPED = "autopilot_skipped"
    PROCESSED = "processed"
    FAILED = "failed"


TERMINAL_STAGES = {PipelineStage.SKIPPED, PipelineStage.PROCESSED, PipelineStage.FAILED}

VALID_TRANSITIONS = {
    PipelineStage.RECEIVED: [PipelineStage.TENANT_RESOLVED],
    PipelineStage.TENANT_RESOLVED: [PipelineStage.DEDUPE_CHECKED],
    PipelineStage.DEDUPE_CHECKED: [PipelineStage.SKIPPED, PipelineStage.CUSTOMER_RESOLVED],
    PipelineStage.CUSTOMER_RESOLVED: [PipelineStage.CONVERSATION_RESOLVED],
    PipelineStage.CONVERSATION_RESOLVED: [PipelineStage.MESSAGE_STORED],
    PipelineStage.MESSAGE_STORED: [PipelineStage.TRIAGED],
    PipelineStage.TRIAGED: [PipelineStage.TICKET_PROJECTED],
    PipelineStage.TICKET_PROJECTED: [PipelineStage.AUTOPILOT_SENT, PipelineStage.AUTOPILOT_SKIPPED],
    PipelineStage.AUTOPILOT_SENT: [PipelineStage.PROCESSED],
    PipelineStage.AUTOPILOT_SKIPPED: [PipelineStage.PROCESSED],
}


class InvalidTransitionError(Exception):
    def __init__(self, from_stage: PipelineStage, to_stage: PipelineStage):
        self.from_stage = from_stage
        self.to_stage = to_stage
        super().__init__(f"Invalid transition: {from_stage.value} -> {to_stage.value}")


def can_transition(from_stage: PipelineStage, to_stage: PipelineStage) -> bool:
    """Check if transition is valid. Any non-terminal stage may fail."""
    if to_stage == PipelineStage.FAILED:
        return from_stage not in TERMINAL_STAGES
    return to_stage in VALID_TRANSITIONS.get(from_stage, [])


def transition(from_stage: PipelineStage, to_stage: PipelineStage) -> PipelineStage:
    """Perform stage transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_stage, to_stage):
        raise InvalidTransitionError(from_stage, to_stage)
    return to_stage


class PipelineRun:
    """Tracks one inbound event through the pipeline."""

    def __init__(self):
        self.stage = PipelineStage.RECEIVED
        self.history: list[PipelineStage] = [PipelineStage.RECEIVED]
        self.error: Optional[str] = None

    def advance(self, to_stage: PipelineStage) -> PipelineStage:
        self.stage = transition(self.stage, to_stage)
        self.history.append(self.stage)
        return self.stage

    def fail(self, error: str) -> PipelineStage:
        self.error = error
        return self.advance(PipelineStage.FAILED)

    @property
    def message_stored(self) -> bool:
        return PipelineStage.MESSAGE_STORED in self.history

    @property
    def finished(self) -> bool:
        return self.stage in TERMINAL_STAGES
