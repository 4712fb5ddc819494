import pytest

from app.services.state_machine import (
    InvalidTransitionError,
    PipelineRun,
    PipelineStage,
    can_transition,
    transition,
)


class TestValidTransitions:
    def test_received_to_tenant_resolved(self):
        result = transition(PipelineStage.RECEIVED, PipelineStage.TENANT_RESOLVED)
        assert result == PipelineStage.TENANT_RESOLVED

    def test_dedupe_checked_to_skipped(self):
        result = transition(PipelineStage.DEDUPE_CHECKED, PipelineStage.SKIPPED)
        assert result == PipelineStage.SKIPPED

    def test_ticket_projected_to_either_autopilot_stage(self):
        assert transition(PipelineStage.TICKET_PROJECTED, PipelineStage.AUTOPILOT_SENT) == PipelineStage.AUTOPILOT_SENT
        assert (
            transition(PipelineStage.TICKET_PROJECTED, PipelineStage.AUTOPILOT_SKIPPED)
            == PipelineStage.AUTOPILOT_SKIPPED
        )

    def test_any_open_stage_can_fail(self):
        for stage in (PipelineStage.RECEIVED, PipelineStage.MESSAGE_STORED, PipelineStage.AUTOPILOT_SENT):
            assert transition(stage, PipelineStage.FAILED) == PipelineStage.FAILED


class TestInvalidTransitions:
    def test_cannot_skip_message_storage(self):
        with pytest.raises(InvalidTransitionError):
            transition(PipelineStage.CONVERSATION_RESOLVED, PipelineStage.TRIAGED)

    def test_terminal_stage_cannot_fail(self):
        with pytest.raises(InvalidTransitionError):
            transition(PipelineStage.PROCESSED, PipelineStage.FAILED)

    def test_same_stage(self):
        with pytest.raises(InvalidTransitionError):
            transition(PipelineStage.TRIAGED, PipelineStage.TRIAGED)


class TestCanTransition:
    def test_valid_returns_true(self):
        assert can_transition(PipelineStage.MESSAGE_STORED, PipelineStage.TRIAGED) is True

    def test_invalid_returns_false(self):
        assert can_transition(PipelineStage.SKIPPED, PipelineStage.CUSTOMER_RESOLVED) is False


class TestPipelineRun:
    def test_full_run_history(self):
        run = PipelineRun()
        for stage in (
            PipelineStage.TENANT_RESOLVED,
            PipelineStage.DEDUPE_CHECKED,
            PipelineStage.CUSTOMER_RESOLVED,
            PipelineStage.CONVERSATION_RESOLVED,
            PipelineStage.MESSAGE_STORED,
            PipelineStage.TRIAGED,
            PipelineStage.TICKET_PROJECTED,
            PipelineStage.AUTOPILOT_SKIPPED,
            PipelineStage.PROCESSED,
        ):
            run.advance(stage)

        assert run.finished is True
        assert run.message_stored is True
        assert run.history[0] == PipelineStage.RECEIVED
        assert run.history[-1] == PipelineStage.PROCESSED

    def test_failure_after_message_stored_keeps_flag(self):
        run = PipelineRun()
        for stage in (
            PipelineStage.TENANT_RESOLVED,
            PipelineStage.DEDUPE_CHECKED,
            PipelineStage.CUSTOMER_RESOLVED,
            PipelineStage.CONVERSATION_RESOLVED,
            PipelineStage.MESSAGE_STORED,
        ):
            run.advance(stage)

        run.fail("ticket insert failed")

        assert run.stage == PipelineStage.FAILED
        assert run.error == "ticket insert failed"
        assert run.message_stored is True
        assert run.finished is True

    def test_new_run_is_not_finished(self):
        run = PipelineRun()
        assert run.finished is False
        assert run.message_stored is False
