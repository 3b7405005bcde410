import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from assignments.selectors import apply_outcome, lock_payment_for, lock_task
from escrow.services import settle_refund, settle_release
from lifecycle.events import Notification, task_updated
from lifecycle.results import DomainError, ErrorKind, OperationResult, Reason
from lifecycle.state_machine import LifecycleEvent, transition
from lifecycle.statuses import DisputeStatus, ResolutionOutcome

from .models import Dispute, DisputeFollowUp

logger = logging.getLogger(__name__)

User = get_user_model()

RESOLUTIONS = {
    ResolutionOutcome.RELEASE: (DisputeStatus.RESOLVED_RELEASE, LifecycleEvent.DISPUTE_RESOLVED_RELEASE),
    ResolutionOutcome.REFUND: (DisputeStatus.RESOLVED_REFUND, LifecycleEvent.DISPUTE_RESOLVED_REFUND),
}


def normalize_evidence(items):
    """Evidence entries as ``{url, name, type}`` dicts; ``type`` defaults to ``file``."""
    evidence = []
    for item in items or []:
        if isinstance(item, str):
            item = {'url': item}
        url = item.get('url')
        if not url:
            continue
        evidence.append({
            'url': url,
            'name': item.get('name') or url.rsplit('/', 1)[-1],
            'type': item.get('type') or 'file',
        })
    return evidence


def _notify(user_ids, kind, title, message, task, dispute):
    return [
        Notification(
            kind=kind,
            target_user_id=user_id,
            title=title,
            message=message,
            link=f"/disputes/{dispute.id}",
            payload={'task_id': task.id, 'dispute_id': dispute.id, 'status': dispute.status},
        )
        for user_id in user_ids
        if user_id is not None
    ]


class DisputeService:
    """
    Opening a dispute freezes the task's payment. Only an admin ruling
    (release or refund) or a cancellation lifts the freeze.
    """

    def open_dispute(self, task_id, acting_user, reason, evidence=None, dispute_type='other'):
        try:
            with transaction.atomic():
                task = lock_task(task_id)
                if not task.is_party(acting_user.id):
                    raise DomainError(
                        ErrorKind.UNAUTHORIZED, Reason.NOT_A_PARTY,
                        "Only the task poster or doer can open a dispute.", task_id=task.id,
                    )
                if Dispute.objects.filter(task=task, status=DisputeStatus.OPEN).exists():
                    raise DomainError(
                        ErrorKind.INVALID_STATE, Reason.DISPUTE_OPEN,
                        "A dispute is already open for this task.", task_id=task.id,
                    )

                payment = lock_payment_for(task)
                outcome = apply_outcome(
                    transition(task.status, payment.status if payment else None, LifecycleEvent.DISPUTE_OPENED),
                    LifecycleEvent.DISPUTE_OPENED, task, payment,
                )

                dispute = Dispute.objects.create(
                    task=task,
                    payment=payment,
                    initiator_id=acting_user.id,
                    dispute_type=dispute_type,
                    reason=reason,
                    evidence=normalize_evidence(evidence),
                    pre_dispute_status=task.status,
                )
                task.status = outcome.task_status
                task.save(update_fields=['status', 'updated_at'])
                payment.status = outcome.payment_status
                payment.save(update_fields=['status', 'updated_at'])
        except DomainError as e:
            logger.info(f"Opening a dispute on task {task_id} refused: {e.reason.value}")
            return OperationResult.from_error(e)
        except IntegrityError as e:
            logger.warning(f"Concurrent dispute on task {task_id}: {str(e)}")
            return OperationResult.failure(
                ErrorKind.CONFLICT, Reason.DUPLICATE_DISPUTE,
                "A dispute was opened for this task at the same time.",
            )

        logger.info(f"Dispute {dispute.id} opened on task {task.id} by user {acting_user.id}, payment {payment.id} held")

        admin_ids = User.objects.filter(role=User.Role.ADMIN, is_active=True).values_list('id', flat=True)
        recipients = [task.other_party_id(acting_user.id)]
        recipients += [admin_id for admin_id in admin_ids if admin_id not in recipients and admin_id != acting_user.id]
        notifications = _notify(
            recipients, 'dispute_opened', "Dispute Opened",
            f'A dispute was opened on "{task.title}": {reason}',
            task, dispute,
        )
        return OperationResult.success(
            "Dispute opened. The payment is on hold until it is resolved.",
            data={'dispute_id': dispute.id, 'task_id': task.id, 'status': dispute.status},
            notifications=notifications,
            broadcasts=[task_updated(task, dispute_id=dispute.id)],
        )

    def respond(self, dispute_id, acting_user, response, evidence=None):
        try:
            with transaction.atomic():
                dispute, task, _ = self._lock_aggregate(dispute_id)
                self._require_party(task, acting_user)
                if acting_user.id == dispute.initiator_id:
                    raise DomainError(
                        ErrorKind.UNAUTHORIZED, Reason.FORBIDDEN,
                        "Only the other party can respond to a dispute.", dispute_id=dispute.id,
                    )
                self._require_open(dispute)
                if dispute.response is not None:
                    raise DomainError(
                        ErrorKind.INVALID_STATE, Reason.ALREADY_RESPONDED,
                        "This dispute already has a response.", dispute_id=dispute.id,
                    )

                dispute.response = response
                dispute.response_evidence = normalize_evidence(evidence)
                dispute.responded_at = timezone.now()
                dispute.save(update_fields=['response', 'response_evidence', 'responded_at', 'updated_at'])
        except DomainError as e:
            return OperationResult.from_error(e)

        logger.info(f"Dispute {dispute.id} answered by user {acting_user.id}")
        return OperationResult.success(
            "Response recorded.",
            data={'dispute_id': dispute.id},
            notifications=_notify(
                [dispute.initiator_id], 'dispute_response', "Dispute Response Received",
                f'The other party responded to your dispute on "{task.title}".',
                task, dispute,
            ),
        )

    def add_follow_up(self, dispute_id, acting_user, message, evidence=None):
        try:
            with transaction.atomic():
                dispute, task, _ = self._lock_aggregate(dispute_id)
                self._require_party(task, acting_user)
                self._require_open(dispute)
                follow_up = DisputeFollowUp.objects.create(
                    dispute=dispute,
                    sender_id=acting_user.id,
                    message=message,
                    evidence=normalize_evidence(evidence),
                )
        except DomainError as e:
            return OperationResult.from_error(e)

        return OperationResult.success(
            "Follow-up added.",
            data={'dispute_id': dispute.id, 'follow_up_id': follow_up.id},
            notifications=_notify(
                [task.other_party_id(acting_user.id)], 'dispute_follow_up', "New Dispute Follow-up",
                f'A new follow-up was added to the dispute on "{task.title}".',
                task, dispute,
            ),
        )

    def resolve(self, dispute_id, acting_user, outcome, notes=''):
        """
        Admin ruling. ``release`` pays the doer, ``refund`` returns the funds to
        the poster and cancels the task. Repeating the same ruling is a no-op.
        """
        try:
            if not acting_user.is_admin:
                raise DomainError(
                    ErrorKind.UNAUTHORIZED, Reason.ADMIN_ONLY,
                    "Only administrators can resolve disputes.", dispute_id=dispute_id,
                )
            try:
                outcome = ResolutionOutcome(outcome)
            except ValueError:
                raise DomainError(
                    ErrorKind.INVALID_STATE, Reason.UNKNOWN_OUTCOME,
                    f"Unknown resolution '{outcome}', expected one of: {', '.join(ResolutionOutcome.values)}.",
                    dispute_id=dispute_id,
                )
            target_status, event = RESOLUTIONS[outcome]
            with transaction.atomic():
                dispute, task, payment = self._lock_aggregate(dispute_id)

                if dispute.status == target_status:
                    return OperationResult.already_processed(
                        "Dispute was already resolved with this outcome.",
                        data={'dispute_id': dispute.id, 'status': dispute.status},
                    )
                if not dispute.is_open:
                    raise DomainError(
                        ErrorKind.INVALID_STATE, Reason.DISPUTE_ALREADY_RESOLVED,
                        f"Dispute is {dispute.status}.", dispute_id=dispute.id,
                    )

                result = apply_outcome(transition(task.status, payment.status, event), event, task, payment)
                parties = [task.poster_id, task.doer_id]
                now = timezone.now()
                if outcome == ResolutionOutcome.RELEASE:
                    settle_release(payment, task)
                    task.completed_at = now
                else:
                    settle_refund(payment)
                    task.clear_assignment()
                task.status = result.task_status
                task.save(update_fields=['status', 'doer', 'accepted_bid', 'completed_at', 'updated_at'])

                dispute.status = target_status
                dispute.resolution = notes or ''
                dispute.resolved_by_id = acting_user.id
                dispute.resolved_at = now
                dispute.closed_at = now
                dispute.save(update_fields=['status', 'resolution', 'resolved_by', 'resolved_at', 'closed_at', 'updated_at'])
        except DomainError as e:
            logger.info(f"Resolving dispute {dispute_id} refused: {e.reason.value}")
            return OperationResult.from_error(e)

        logger.info(f"Dispute {dispute.id} resolved as {target_status} by admin {acting_user.id}")
        verdict = "released to the doer" if outcome == ResolutionOutcome.RELEASE else "refunded to the poster"
        return OperationResult.success(
            f"Dispute resolved, payment {verdict}.",
            data={'dispute_id': dispute.id, 'status': dispute.status, 'task_status': task.status},
            notifications=_notify(
                parties, 'dispute_resolved', "Dispute Resolved",
                f'The dispute on "{task.title}" was resolved and the payment {verdict}.'
                + (f" Notes: {notes}" if notes else ""),
                task, dispute,
            ),
            broadcasts=[task_updated(task, dispute_id=dispute.id)],
        )

    def cancel(self, dispute_id, acting_user):
        """Withdraw an open dispute; the task returns to where it was and the hold is lifted."""
        try:
            with transaction.atomic():
                dispute, task, payment = self._lock_aggregate(dispute_id)
                if not (task.is_party(acting_user.id) or acting_user.is_admin):
                    raise DomainError(
                        ErrorKind.UNAUTHORIZED, Reason.NOT_A_PARTY,
                        "Only the parties or an administrator can cancel a dispute.", dispute_id=dispute.id,
                    )
                self._require_open(dispute)

                result = apply_outcome(
                    transition(
                        task.status, payment.status, LifecycleEvent.DISPUTE_CANCELLED,
                        restore_status=dispute.pre_dispute_status,
                    ),
                    LifecycleEvent.DISPUTE_CANCELLED, task, payment,
                )
                task.status = result.task_status
                task.save(update_fields=['status', 'updated_at'])
                payment.status = result.payment_status
                payment.save(update_fields=['status', 'updated_at'])

                dispute.status = DisputeStatus.CANCELLED
                dispute.closed_at = timezone.now()
                dispute.save(update_fields=['status', 'closed_at', 'updated_at'])
        except DomainError as e:
            return OperationResult.from_error(e)

        logger.info(f"Dispute {dispute.id} cancelled by user {acting_user.id}, task {task.id} back to {task.status}")
        recipients = [user_id for user_id in (task.poster_id, task.doer_id) if user_id != acting_user.id]
        return OperationResult.success(
            "Dispute cancelled.",
            data={'dispute_id': dispute.id, 'status': dispute.status, 'task_status': task.status},
            notifications=_notify(
                recipients, 'dispute_cancelled', "Dispute Cancelled",
                f'The dispute on "{task.title}" was cancelled and work can continue.',
                task, dispute,
            ),
            broadcasts=[task_updated(task, dispute_id=dispute.id)],
        )

    def _lock_aggregate(self, dispute_id):
        """Lock task, payment and dispute, in that order. Every dispute write locks through here."""
        task_id = Dispute.objects.filter(pk=dispute_id).values_list('task_id', flat=True).first()
        if task_id is None:
            raise DomainError(ErrorKind.NOT_FOUND, Reason.DISPUTE_NOT_FOUND, "Dispute not found.", dispute_id=dispute_id)
        task = lock_task(task_id)
        payment = lock_payment_for(task)
        dispute = Dispute.objects.select_for_update().get(pk=dispute_id)
        return dispute, task, payment

    def _require_party(self, task, acting_user):
        if not task.is_party(acting_user.id):
            raise DomainError(
                ErrorKind.UNAUTHORIZED, Reason.NOT_A_PARTY,
                "Only the task poster or doer can take part in this dispute.", task_id=task.id,
            )

    def _require_open(self, dispute):
        if not dispute.is_open:
            raise DomainError(
                ErrorKind.INVALID_STATE, Reason.DISPUTE_NOT_OPEN,
                f"Dispute is {dispute.status}.", dispute_id=dispute.id,
            )
