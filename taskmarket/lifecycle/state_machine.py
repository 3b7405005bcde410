"""
Pure transition rules for the assignment lifecycle.

Nothing here touches the database. Services read the current task and payment
status inside their transaction, ask :func:`transition` what the next state is,
and either write the result or turn the rejection into an error result.
"""
import enum
from dataclasses import dataclass
from typing import Optional, Union

from .results import Reason
from .statuses import DISPUTABLE_TASK_STATUSES, PaymentStatus, TaskStatus


class LifecycleEvent(str, enum.Enum):
    BID_ACCEPTED = 'BID_ACCEPTED'
    PAYMENT_CONFIRMED = 'PAYMENT_CONFIRMED'
    WORK_STARTED = 'WORK_STARTED'
    WORK_SUBMITTED = 'WORK_SUBMITTED'
    WORK_REJECTED = 'WORK_REJECTED'
    WORK_APPROVED = 'WORK_APPROVED'
    DISPUTE_OPENED = 'DISPUTE_OPENED'
    DISPUTE_RESOLVED_REFUND = 'DISPUTE_RESOLVED_REFUND'
    DISPUTE_RESOLVED_RELEASE = 'DISPUTE_RESOLVED_RELEASE'
    DISPUTE_CANCELLED = 'DISPUTE_CANCELLED'
    TASK_CANCELLED = 'TASK_CANCELLED'


@dataclass(frozen=True)
class Transition:
    task_status: TaskStatus
    payment_status: Optional[PaymentStatus]

    @property
    def allowed(self):
        return True


@dataclass(frozen=True)
class Rejected:
    reason: Reason
    message: str

    @property
    def allowed(self):
        return False


Outcome = Union[Transition, Rejected]


def _coerce_task(value) -> TaskStatus:
    return value if isinstance(value, TaskStatus) else TaskStatus(value)


def _coerce_payment(value) -> Optional[PaymentStatus]:
    if value is None or isinstance(value, PaymentStatus):
        return value
    return PaymentStatus(value)


def _require_pending(payment):
    if payment is None:
        return Rejected(Reason.PAYMENT_MISSING, "No escrow payment exists for this task.")
    if payment != PaymentStatus.PENDING:
        return Rejected(Reason.PAYMENT_NOT_PENDING, f"Payment is {payment}, expected {PaymentStatus.PENDING}.")
    return None


def transition(task_status, payment_status, event, *, restore_status=None) -> Outcome:
    """
    Compute the next (task, payment) status pair for ``event``.

    ``payment_status`` is ``None`` when the task has no Payment row.
    ``restore_status`` is only read for DISPUTE_CANCELLED and names the task
    status remembered when the dispute was opened.

    Unknown status strings raise ``ValueError``; disallowed transitions are
    returned as :class:`Rejected`.
    """
    task = _coerce_task(task_status)
    payment = _coerce_payment(payment_status)
    event = LifecycleEvent(event)

    if event == LifecycleEvent.BID_ACCEPTED:
        if task != TaskStatus.OPEN:
            return Rejected(Reason.TASK_NOT_OPEN, f"Task is {task}, bids can only be accepted while OPEN.")
        if payment is not None:
            return Rejected(
                Reason.PAYMENT_GATE_ACTIVE,
                "An escrow payment exists for this task; the bid is accepted when the payment is confirmed.",
            )
        # Direct acceptance opens a PENDING payment that is settled off-processor.
        return Transition(TaskStatus.ASSIGNED, PaymentStatus.PENDING)

    if event == LifecycleEvent.PAYMENT_CONFIRMED:
        if task != TaskStatus.OPEN:
            return Rejected(Reason.TASK_NOT_OPEN, f"Task is {task}, payment can only be confirmed while OPEN.")
        rejected = _require_pending(payment)
        if rejected:
            return rejected
        return Transition(TaskStatus.ASSIGNED, PaymentStatus.PENDING)

    if event == LifecycleEvent.WORK_STARTED:
        if task != TaskStatus.ASSIGNED:
            return Rejected(Reason.WRONG_STATE, f"Work can only be started on an ASSIGNED task, not {task}.")
        return Transition(TaskStatus.IN_PROGRESS, payment)

    if event == LifecycleEvent.WORK_SUBMITTED:
        if task not in (TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS):
            return Rejected(Reason.WRONG_STATE, f"Work cannot be submitted while the task is {task}.")
        return Transition(TaskStatus.UNDER_REVIEW, payment)

    if event == LifecycleEvent.WORK_REJECTED:
        if task != TaskStatus.UNDER_REVIEW:
            return Rejected(Reason.WRONG_STATE, f"Only work UNDER_REVIEW can be rejected, task is {task}.")
        return Transition(TaskStatus.IN_PROGRESS, payment)

    if event == LifecycleEvent.WORK_APPROVED:
        if task != TaskStatus.UNDER_REVIEW:
            return Rejected(Reason.WRONG_STATE, f"Only work UNDER_REVIEW can be approved, task is {task}.")
        rejected = _require_pending(payment)
        if rejected:
            return rejected
        return Transition(TaskStatus.COMPLETED, PaymentStatus.RELEASED)

    if event == LifecycleEvent.DISPUTE_OPENED:
        if task not in DISPUTABLE_TASK_STATUSES:
            return Rejected(Reason.TASK_NOT_DISPUTABLE, f"A task that is {task} cannot be disputed.")
        rejected = _require_pending(payment)
        if rejected:
            return rejected
        return Transition(TaskStatus.IN_DISPUTE, PaymentStatus.DISPUTED)

    if event in (
        LifecycleEvent.DISPUTE_RESOLVED_REFUND,
        LifecycleEvent.DISPUTE_RESOLVED_RELEASE,
        LifecycleEvent.DISPUTE_CANCELLED,
    ):
        if task != TaskStatus.IN_DISPUTE:
            return Rejected(Reason.NOT_IN_DISPUTE, f"Task is {task}, not IN_DISPUTE.")
        if payment != PaymentStatus.DISPUTED:
            return Rejected(Reason.PAYMENT_NOT_HELD, f"Payment is {payment}, not held by the dispute.")
        if event == LifecycleEvent.DISPUTE_RESOLVED_REFUND:
            return Transition(TaskStatus.CANCELLED, PaymentStatus.REFUNDED)
        if event == LifecycleEvent.DISPUTE_RESOLVED_RELEASE:
            return Transition(TaskStatus.COMPLETED, PaymentStatus.RELEASED)
        if restore_status is None:
            raise ValueError("restore_status is required to cancel a dispute")
        restored = _coerce_task(restore_status)
        if restored not in DISPUTABLE_TASK_STATUSES:
            raise ValueError(f"{restored} is not a status a dispute can be opened from")
        return Transition(restored, PaymentStatus.PENDING)

    if event == LifecycleEvent.TASK_CANCELLED:
        if task != TaskStatus.OPEN:
            return Rejected(Reason.TASK_NOT_OPEN, f"Only OPEN tasks can be cancelled, task is {task}.")
        return Transition(TaskStatus.CANCELLED, payment)

    raise ValueError(f"Unhandled lifecycle event: {event}")


def allowed_events(task_status, payment_status):
    """Events that would currently succeed, in declaration order."""
    events = []
    for event in LifecycleEvent:
        if event == LifecycleEvent.DISPUTE_CANCELLED:
            # Outcome of a cancel depends on the remembered status, which is always valid.
            outcome = transition(task_status, payment_status, event, restore_status=TaskStatus.ASSIGNED)
        else:
            outcome = transition(task_status, payment_status, event)
        if outcome.allowed:
            events.append(event)
    return events
