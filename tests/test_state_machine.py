"""Tests for the time entry day state machine."""

import pytest

from timecard_engine.errors import ValidationError
from timecard_engine.services.state_machine import (
    InvalidTransitionError,
    TimeEntryDayStateMachine,
    TimeEntryStatus,
)


class TestTimeEntryDayStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # draft → pending (submitted for review)
        assert TimeEntryDayStateMachine.can_transition("draft", "pending") is True

        # draft → approved (auto approval)
        assert TimeEntryDayStateMachine.can_transition("draft", "approved") is True

        # pending → approved | denied
        assert TimeEntryDayStateMachine.can_transition("pending", "approved") is True
        assert TimeEntryDayStateMachine.can_transition("pending", "denied") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        assert TimeEntryDayStateMachine.can_transition("draft", "denied") is False
        assert TimeEntryDayStateMachine.can_transition("pending", "draft") is False

        # Decided days only move through an admin edit
        assert TimeEntryDayStateMachine.can_transition("approved", "pending") is False
        assert TimeEntryDayStateMachine.can_transition("denied", "approved") is False

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            TimeEntryDayStateMachine.validate_transition("approved", TimeEntryStatus.DENIED)

        assert exc_info.value.from_status == "approved"
        assert exc_info.value.to_status == "denied"
        assert exc_info.value.allowed_statuses == []
        assert exc_info.value.status_code == 409
        assert isinstance(exc_info.value, ValidationError)

    def test_error_payload(self):
        """The API payload names both ends of the transition."""
        error = InvalidTransitionError("pending", "draft", "day is not pending")
        payload = error.to_dict()
        assert payload["code"] == "INVALID_TRANSITION"
        assert payload["fromStatus"] == "pending"
        assert payload["toStatus"] == "draft"
        assert payload["allowedStatuses"] == ["approved", "denied"]
        assert "day is not pending" in payload["detail"]

    def test_admin_edit_allowed_from_every_status(self):
        """Admin edits are accepted regardless of status."""
        for status in TimeEntryStatus:
            TimeEntryDayStateMachine.validate_admin_edit(status.value)

        with pytest.raises(InvalidTransitionError):
            TimeEntryDayStateMachine.validate_admin_edit("archived")

    def test_is_reopen(self):
        """Reopen means a decided day going back to pending."""
        assert TimeEntryDayStateMachine.is_reopen("approved", "pending") is True
        assert TimeEntryDayStateMachine.is_reopen("denied", "pending") is True
        assert TimeEntryDayStateMachine.is_reopen("pending", "pending") is False

    def test_tutor_edit_only_in_draft(self):
        """Tutors only change sessions of draft days."""
        assert TimeEntryDayStateMachine.can_tutor_edit("draft") is True
        for status in ("pending", "approved", "denied"):
            assert TimeEntryDayStateMachine.can_tutor_edit(status) is False

    def test_get_next_statuses(self):
        """Test getting next valid statuses."""
        assert set(TimeEntryDayStateMachine.get_next_statuses("draft")) == {
            "pending",
            "approved",
        }
        assert TimeEntryDayStateMachine.get_next_statuses("approved") == []
