import logging
import uuid

from django.db import IntegrityError, transaction
from django.utils import timezone

from disputes.models import Dispute
from escrow.services import settle_release
from lifecycle.events import Notification, task_updated
from lifecycle.results import DomainError, ErrorKind, OperationResult, Reason
from lifecycle.state_machine import LifecycleEvent, transition
from lifecycle.statuses import BidStatus, DisputeStatus, PaymentStatus, SubmissionStatus, TaskStatus
from payments.models import Payment

from .models import Submission
from .selectors import apply_outcome, lock_bid, lock_payment_for, lock_task, require_doer, require_poster
from .utils import assignment_events, submission_events, task_link

logger = logging.getLogger(__name__)


class BidAcceptanceService:
    """Direct OPEN -> ASSIGNED path, used when the poster does not pay through the processor."""

    def accept_bid(self, bid_id, task_id, acting_user):
        try:
            with transaction.atomic():
                task = lock_task(task_id)
                require_poster(task, acting_user, "accept bids")
                bid = lock_bid(task, bid_id)
                if bid.bidder_id == acting_user.id:
                    raise DomainError(
                        ErrorKind.UNAUTHORIZED, Reason.SELF_ACCEPTANCE,
                        "You cannot accept your own bid.", bid_id=bid.id,
                    )

                payment = lock_payment_for(task)
                apply_outcome(
                    transition(task.status, payment.status if payment else None, LifecycleEvent.BID_ACCEPTED),
                    LifecycleEvent.BID_ACCEPTED, task, payment,
                )
                if bid.status != BidStatus.PENDING:
                    raise DomainError(
                        ErrorKind.INVALID_STATE, Reason.BID_NOT_PENDING,
                        f"Bid is {bid.status}.", bid_id=bid.id,
                    )

                rejected_bidder_ids = task.assign_to(bid)
                payment = Payment.objects.create(
                    task=task,
                    bid=bid,
                    sender_id=task.poster_id,
                    receiver_id=bid.bidder_id,
                    amount=bid.amount,
                    status=PaymentStatus.PENDING,
                    correlation_id=str(uuid.uuid4()),
                    provider='direct',
                )
        except DomainError as e:
            logger.info(f"Accepting bid {bid_id} on task {task_id} refused: {e.reason.value}")
            return OperationResult.from_error(e)
        except IntegrityError as e:
            logger.warning(f"Concurrent assignment of task {task_id}: {str(e)}")
            return OperationResult.failure(
                ErrorKind.CONFLICT, Reason.DUPLICATE_PAYMENT,
                "The task was changed by another request. Please reload and retry.",
            )

        logger.info(f"Task {task.id} assigned to user {task.doer_id} via bid {bid.id}")
        notifications, broadcasts = assignment_events(task, bid, rejected_bidder_ids)
        return OperationResult.success(
            "Bid accepted and task assigned.",
            data={'task_id': task.id, 'bid_id': bid.id, 'doer_id': task.doer_id, 'payment_id': payment.id},
            notifications=notifications,
            broadcasts=broadcasts,
        )


class CompletionService:
    """
    Work execution and settlement: ASSIGNED -> IN_PROGRESS -> UNDER_REVIEW -> COMPLETED.
    Approval is the only place outside dispute resolution where a doer is credited.
    """

    def start_work(self, task_id, acting_user):
        try:
            with transaction.atomic():
                task = lock_task(task_id)
                require_doer(task, acting_user, "start work")
                outcome = apply_outcome(
                    transition(task.status, None, LifecycleEvent.WORK_STARTED),
                    LifecycleEvent.WORK_STARTED, task,
                )
                task.status = outcome.task_status
                task.save(update_fields=['status', 'updated_at'])
        except DomainError as e:
            return OperationResult.from_error(e)

        logger.info(f"Work started on task {task.id}")
        return OperationResult.success(
            "Work started.",
            data={'task_id': task.id, 'status': task.status},
            broadcasts=[task_updated(task)],
        )

    def submit_work(self, task_id, acting_user, content, attachments=None):
        try:
            with transaction.atomic():
                task = lock_task(task_id)
                require_doer(task, acting_user, "submit work")
                outcome = apply_outcome(
                    transition(task.status, None, LifecycleEvent.WORK_SUBMITTED),
                    LifecycleEvent.WORK_SUBMITTED, task,
                )
                submission = Submission.objects.create(
                    task=task,
                    author_id=acting_user.id,
                    content=content,
                    attachments=list(attachments or []),
                )
                task.status = outcome.task_status
                task.save(update_fields=['status', 'updated_at'])
        except DomainError as e:
            return OperationResult.from_error(e)

        logger.info(f"Submission {submission.id} recorded, task {task.id} under review")
        notifications, broadcasts = submission_events(task, submission, urgent=True)
        return OperationResult.success(
            "Work submitted for review.",
            data={'task_id': task.id, 'submission_id': submission.id, 'status': task.status},
            notifications=notifications,
            broadcasts=broadcasts,
        )

    def reject_work(self, task_id, acting_user, feedback=''):
        try:
            with transaction.atomic():
                task = lock_task(task_id)
                require_poster(task, acting_user, "reject submitted work")
                outcome = apply_outcome(
                    transition(task.status, None, LifecycleEvent.WORK_REJECTED),
                    LifecycleEvent.WORK_REJECTED, task,
                )
                submission = self._review_latest(task, SubmissionStatus.REJECTED, feedback)
                task.status = outcome.task_status
                task.save(update_fields=['status', 'updated_at'])
        except DomainError as e:
            return OperationResult.from_error(e)

        logger.info(f"Work on task {task.id} sent back for changes")
        if submission is None:
            return OperationResult.success(
                "Work rejected.", data={'task_id': task.id, 'status': task.status},
                broadcasts=[task_updated(task)],
            )
        notifications, broadcasts = submission_events(task, submission)
        return OperationResult.success(
            "Work rejected.",
            data={'task_id': task.id, 'submission_id': submission.id, 'status': task.status},
            notifications=notifications,
            broadcasts=broadcasts,
        )

    def approve_work(self, task_id, acting_user):
        """
        Release the held payment to the doer and complete the task, in one
        transaction. A retry after success credits nothing.
        """
        try:
            with transaction.atomic():
                task = lock_task(task_id)
                require_poster(task, acting_user, "approve work")

                if Dispute.objects.filter(task=task, status=DisputeStatus.OPEN).exists():
                    raise DomainError(
                        ErrorKind.INVALID_STATE, Reason.DISPUTE_OPEN,
                        "Work cannot be approved while a dispute is open.",
                        task_id=task.id,
                    )

                payment = lock_payment_for(task)
                if task.status == TaskStatus.COMPLETED and payment and payment.status == PaymentStatus.RELEASED:
                    return OperationResult.already_processed(
                        "Work was already approved and paid.",
                        data={'task_id': task.id, 'payment_id': payment.id},
                    )

                outcome = apply_outcome(
                    transition(task.status, payment.status if payment else None, LifecycleEvent.WORK_APPROVED),
                    LifecycleEvent.WORK_APPROVED, task, payment,
                )
                settle_release(payment, task)

                task.status = outcome.task_status
                task.completed_at = timezone.now()
                task.save(update_fields=['status', 'completed_at', 'updated_at'])
                submission = self._review_latest(task, SubmissionStatus.APPROVED)
        except DomainError as e:
            logger.info(f"Approval of task {task_id} refused: {e.reason.value}")
            return OperationResult.from_error(e)

        logger.info(f"Task {task.id} completed, {payment.amount} credited to user {task.doer_id}")
        notifications = [Notification(
            kind='payment_released',
            target_user_id=task.doer_id,
            title="Payment Released",
            message=f'Your work on "{task.title}" was approved and {payment.amount} has been added to your balance.',
            link=task_link(task),
            payload={'task_id': task.id, 'payment_id': payment.id, 'amount': str(payment.amount)},
        )]
        broadcasts = [task_updated(task)]
        if submission is not None:
            _, submission_broadcasts = submission_events(task, submission)
            broadcasts.extend(submission_broadcasts[1:])
        return OperationResult.success(
            "Work approved and payment released.",
            data={'task_id': task.id, 'payment_id': payment.id, 'amount': str(payment.amount)},
            notifications=notifications,
            broadcasts=broadcasts,
        )

    def cancel_task(self, task_id, acting_user):
        try:
            with transaction.atomic():
                task = lock_task(task_id)
                require_poster(task, acting_user, "cancel this task")
                payment = lock_payment_for(task)
                outcome = apply_outcome(
                    transition(task.status, payment.status if payment else None, LifecycleEvent.TASK_CANCELLED),
                    LifecycleEvent.TASK_CANCELLED, task, payment,
                )
                pending = task.bids.filter(status=BidStatus.PENDING)
                rejected_bidder_ids = list(pending.values_list('bidder_id', flat=True))
                pending.update(status=BidStatus.REJECTED)

                task.status = outcome.task_status
                task.save(update_fields=['status', 'updated_at'])
        except DomainError as e:
            return OperationResult.from_error(e)

        logger.info(f"Task {task.id} cancelled by its poster")
        notifications = [
            Notification(
                kind='task_cancelled',
                target_user_id=bidder_id,
                title="Task Cancelled",
                message=f'"{task.title}" was cancelled by its poster.',
                link=task_link(task),
                payload={'task_id': task.id},
            )
            for bidder_id in rejected_bidder_ids
        ]
        return OperationResult.success(
            "Task cancelled.",
            data={'task_id': task.id, 'status': task.status},
            notifications=notifications,
            broadcasts=[task_updated(task)],
        )

    def _review_latest(self, task, status, feedback=''):
        submission = task.submissions.filter(status=SubmissionStatus.PENDING).first()
        if submission is None:
            return None
        submission.status = status
        submission.feedback = feedback or ''
        submission.reviewed_at = timezone.now()
        submission.save(update_fields=['status', 'feedback', 'reviewed_at'])
        return submission
