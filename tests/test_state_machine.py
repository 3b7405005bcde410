"""Tests for the pure lifecycle transition rules."""
import pytest

from lifecycle.results import Reason
from lifecycle.state_machine import LifecycleEvent, Rejected, Transition, allowed_events, transition
from lifecycle.statuses import PaymentStatus, TaskStatus


class TestAssignment:

    def test_direct_acceptance_opens_pending_payment(self):
        outcome = transition(TaskStatus.OPEN, None, LifecycleEvent.BID_ACCEPTED)
        assert outcome == Transition(TaskStatus.ASSIGNED, PaymentStatus.PENDING)

    def test_acceptance_blocked_by_existing_payment(self):
        outcome = transition(TaskStatus.OPEN, PaymentStatus.PENDING, LifecycleEvent.BID_ACCEPTED)
        assert not outcome.allowed
        assert outcome.reason == Reason.PAYMENT_GATE_ACTIVE

    @pytest.mark.parametrize('status', [TaskStatus.ASSIGNED, TaskStatus.CANCELLED, TaskStatus.COMPLETED])
    def test_acceptance_requires_open_task(self, status):
        outcome = transition(status, None, LifecycleEvent.BID_ACCEPTED)
        assert isinstance(outcome, Rejected)
        assert outcome.reason == Reason.TASK_NOT_OPEN

    def test_payment_confirmation_assigns_and_holds(self):
        outcome = transition(TaskStatus.OPEN, PaymentStatus.PENDING, LifecycleEvent.PAYMENT_CONFIRMED)
        assert outcome == Transition(TaskStatus.ASSIGNED, PaymentStatus.PENDING)

    def test_payment_confirmation_needs_payment_row(self):
        outcome = transition(TaskStatus.OPEN, None, LifecycleEvent.PAYMENT_CONFIRMED)
        assert outcome.reason == Reason.PAYMENT_MISSING

    def test_late_confirmation_after_assignment(self):
        outcome = transition(TaskStatus.ASSIGNED, PaymentStatus.PENDING, LifecycleEvent.PAYMENT_CONFIRMED)
        assert outcome.reason == Reason.TASK_NOT_OPEN


class TestWork:

    def test_start_only_from_assigned(self):
        assert transition(TaskStatus.ASSIGNED, PaymentStatus.PENDING, LifecycleEvent.WORK_STARTED).task_status == TaskStatus.IN_PROGRESS
        assert not transition(TaskStatus.IN_PROGRESS, PaymentStatus.PENDING, LifecycleEvent.WORK_STARTED).allowed

    @pytest.mark.parametrize('status', [TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS])
    def test_submit_moves_to_review(self, status):
        outcome = transition(status, PaymentStatus.PENDING, LifecycleEvent.WORK_SUBMITTED)
        assert outcome == Transition(TaskStatus.UNDER_REVIEW, PaymentStatus.PENDING)

    def test_submit_rejected_when_open(self):
        assert transition(TaskStatus.OPEN, None, LifecycleEvent.WORK_SUBMITTED).reason == Reason.WRONG_STATE

    def test_reject_sends_work_back(self):
        outcome = transition(TaskStatus.UNDER_REVIEW, PaymentStatus.PENDING, LifecycleEvent.WORK_REJECTED)
        assert outcome.task_status == TaskStatus.IN_PROGRESS

    def test_approve_releases_payment(self):
        outcome = transition(TaskStatus.UNDER_REVIEW, PaymentStatus.PENDING, LifecycleEvent.WORK_APPROVED)
        assert outcome == Transition(TaskStatus.COMPLETED, PaymentStatus.RELEASED)

    def test_approve_requires_held_payment(self):
        assert transition(TaskStatus.UNDER_REVIEW, None, LifecycleEvent.WORK_APPROVED).reason == Reason.PAYMENT_MISSING
        assert transition(
            TaskStatus.UNDER_REVIEW, PaymentStatus.RELEASED, LifecycleEvent.WORK_APPROVED,
        ).reason == Reason.PAYMENT_NOT_PENDING

    def test_approve_requires_review(self):
        assert not transition(TaskStatus.IN_PROGRESS, PaymentStatus.PENDING, LifecycleEvent.WORK_APPROVED).allowed


class TestDisputes:

    @pytest.mark.parametrize('status', [TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS, TaskStatus.UNDER_REVIEW])
    def test_open_from_active_states(self, status):
        outcome = transition(status, PaymentStatus.PENDING, LifecycleEvent.DISPUTE_OPENED)
        assert outcome == Transition(TaskStatus.IN_DISPUTE, PaymentStatus.DISPUTED)

    @pytest.mark.parametrize('status', [TaskStatus.OPEN, TaskStatus.COMPLETED, TaskStatus.CANCELLED, TaskStatus.IN_DISPUTE])
    def test_open_rejected_elsewhere(self, status):
        outcome = transition(status, PaymentStatus.PENDING, LifecycleEvent.DISPUTE_OPENED)
        assert outcome.reason == Reason.TASK_NOT_DISPUTABLE

    def test_resolutions(self):
        assert transition(
            TaskStatus.IN_DISPUTE, PaymentStatus.DISPUTED, LifecycleEvent.DISPUTE_RESOLVED_RELEASE,
        ) == Transition(TaskStatus.COMPLETED, PaymentStatus.RELEASED)
        assert transition(
            TaskStatus.IN_DISPUTE, PaymentStatus.DISPUTED, LifecycleEvent.DISPUTE_RESOLVED_REFUND,
        ) == Transition(TaskStatus.CANCELLED, PaymentStatus.REFUNDED)

    def test_resolution_requires_hold(self):
        outcome = transition(TaskStatus.IN_DISPUTE, PaymentStatus.RELEASED, LifecycleEvent.DISPUTE_RESOLVED_REFUND)
        assert outcome.reason == Reason.PAYMENT_NOT_HELD

    def test_cancel_restores_previous_status(self):
        outcome = transition(
            TaskStatus.IN_DISPUTE, PaymentStatus.DISPUTED, LifecycleEvent.DISPUTE_CANCELLED,
            restore_status=TaskStatus.UNDER_REVIEW,
        )
        assert outcome == Transition(TaskStatus.UNDER_REVIEW, PaymentStatus.PENDING)

    def test_cancel_without_restore_status_raises(self):
        with pytest.raises(ValueError):
            transition(TaskStatus.IN_DISPUTE, PaymentStatus.DISPUTED, LifecycleEvent.DISPUTE_CANCELLED)

    def test_cancel_to_undisputable_status_raises(self):
        with pytest.raises(ValueError):
            transition(
                TaskStatus.IN_DISPUTE, PaymentStatus.DISPUTED, LifecycleEvent.DISPUTE_CANCELLED,
                restore_status=TaskStatus.OPEN,
            )


class TestTaskCancellation:

    def test_open_task_can_be_cancelled(self):
        assert transition(TaskStatus.OPEN, None, LifecycleEvent.TASK_CANCELLED).task_status == TaskStatus.CANCELLED

    def test_uncaptured_payment_is_kept(self):
        outcome = transition(TaskStatus.OPEN, PaymentStatus.PENDING, LifecycleEvent.TASK_CANCELLED)
        assert outcome == Transition(TaskStatus.CANCELLED, PaymentStatus.PENDING)

    def test_assigned_task_cannot_be_cancelled(self):
        assert transition(TaskStatus.ASSIGNED, PaymentStatus.PENDING, LifecycleEvent.TASK_CANCELLED).reason == Reason.TASK_NOT_OPEN


class TestInputs:

    def test_accepts_raw_strings(self):
        outcome = transition('UNDER_REVIEW', 'PENDING', 'WORK_APPROVED')
        assert outcome.task_status == TaskStatus.COMPLETED

    def test_unknown_status_raises(self):
        with pytest.raises(ValueError):
            transition('ARCHIVED', None, LifecycleEvent.WORK_STARTED)

    def test_unknown_event_raises(self):
        with pytest.raises(ValueError):
            transition(TaskStatus.OPEN, None, 'TASK_ARCHIVED')


class TestAllowedEvents:

    def test_open_task_without_payment(self):
        assert allowed_events(TaskStatus.OPEN, None) == [LifecycleEvent.BID_ACCEPTED, LifecycleEvent.TASK_CANCELLED]

    def test_open_task_with_checkout(self):
        assert allowed_events(TaskStatus.OPEN, PaymentStatus.PENDING) == [
            LifecycleEvent.PAYMENT_CONFIRMED, LifecycleEvent.TASK_CANCELLED,
        ]

    def test_disputed_task(self):
        assert allowed_events(TaskStatus.IN_DISPUTE, PaymentStatus.DISPUTED) == [
            LifecycleEvent.DISPUTE_RESOLVED_REFUND,
            LifecycleEvent.DISPUTE_RESOLVED_RELEASE,
            LifecycleEvent.DISPUTE_CANCELLED,
        ]

    def test_terminal_states_allow_nothing(self):
        assert allowed_events(TaskStatus.COMPLETED, PaymentStatus.RELEASED) == []
        assert allowed_events(TaskStatus.CANCELLED, PaymentStatus.REFUNDED) == []
