from app.services.conversation_service import (
    add_message,
    get_or_create_conversation,
    get_or_create_customer,
    update_conversation_status,
)
from app.services.state_machine import (
    InvalidTransitionError,
    PipelineRun,
    PipelineStage,
    can_transition,
    transition,
)
