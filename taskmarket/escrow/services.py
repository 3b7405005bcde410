import logging
import uuid

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from assignments.selectors import apply_outcome, lock_bid, lock_payment_for, lock_task, require_poster
from assignments.utils import assignment_events
from lifecycle.results import DomainError, ErrorKind, OperationResult, Reason
from lifecycle.state_machine import LifecycleEvent, transition
from lifecycle.statuses import BidStatus, PaymentStatus, TaskStatus
from payments.models import Payment
from payments.services import PaymentService

logger = logging.getLogger(__name__)

User = get_user_model()


def settle_release(payment, task):
    """
    Credit the doer with the held amount and mark the payment RELEASED.

    Runs inside the caller's transaction with ``payment`` and ``task`` locked.
    Raising rolls back every write the caller has made.
    """
    if payment.status not in (PaymentStatus.PENDING, PaymentStatus.DISPUTED):
        raise DomainError(
            ErrorKind.INVALID_STATE, Reason.PAYMENT_NOT_PENDING,
            f"Payment is {payment.status} and cannot be released.",
            payment_id=payment.id,
        )
    if task.doer_id is None or task.doer_id != payment.receiver_id:
        raise DomainError(
            ErrorKind.CONFLICT, Reason.WRONG_STATE,
            "Payment receiver does not match the task's doer.",
            payment_id=payment.id, task_id=task.id,
        )

    credited = User.objects.filter(pk=payment.receiver_id).update(
        account_balance=F('account_balance') + payment.amount,
    )
    if credited != 1:
        raise DomainError(
            ErrorKind.CONFLICT, Reason.WRONG_STATE, "Doer account could not be credited.",
            payment_id=payment.id,
        )

    payment.status = PaymentStatus.RELEASED
    payment.released_at = timezone.now()
    payment.save(update_fields=['status', 'released_at', 'updated_at'])
    logger.info(f"Released {payment.amount} from payment {payment.id} to user {payment.receiver_id}")


def settle_refund(payment):
    """Mark a disputed payment REFUNDED. Nobody's balance changes."""
    if payment.status != PaymentStatus.DISPUTED:
        raise DomainError(
            ErrorKind.INVALID_STATE, Reason.PAYMENT_NOT_HELD,
            f"Payment is {payment.status} and cannot be refunded.",
            payment_id=payment.id,
        )
    payment.status = PaymentStatus.REFUNDED
    payment.refunded_at = timezone.now()
    payment.save(update_fields=['status', 'refunded_at', 'updated_at'])
    logger.info(f"Refunded payment {payment.id} of {payment.amount} to user {payment.sender_id}")


class EscrowService:
    """
    Pay-before-assign flow: the poster funds a chosen bid, and the task is
    assigned only when the processor's signed callback confirms the charge.
    """

    def __init__(self, payment_service=None):
        self.payment_service = payment_service or PaymentService()

    def initiate(self, task_id, bid_id, acting_user):
        """
        Create or re-arm the task's Payment for ``bid_id`` and return the
        processor checkout descriptor. The task stays OPEN.
        """
        try:
            with transaction.atomic():
                task = lock_task(task_id)
                require_poster(task, acting_user, "pay for this task")
                if task.status != TaskStatus.OPEN:
                    raise DomainError(
                        ErrorKind.INVALID_STATE, Reason.TASK_NOT_OPEN,
                        f"Task is {task.status}, payment can only be started while OPEN.",
                        task_id=task.id,
                    )
                bid = lock_bid(task, bid_id)
                if bid.bidder_id == acting_user.id:
                    raise DomainError(
                        ErrorKind.UNAUTHORIZED, Reason.SELF_ACCEPTANCE,
                        "You cannot pay for your own bid.", bid_id=bid.id,
                    )
                if bid.status != BidStatus.PENDING:
                    raise DomainError(
                        ErrorKind.INVALID_STATE, Reason.BID_NOT_PENDING,
                        f"Bid is {bid.status}.", bid_id=bid.id,
                    )

                correlation_id = str(uuid.uuid4())
                payment, created = Payment.objects.update_or_create(
                    task=task,
                    defaults={
                        'bid': bid,
                        'sender_id': task.poster_id,
                        'receiver_id': bid.bidder_id,
                        'amount': bid.amount,
                        'status': PaymentStatus.PENDING,
                        'correlation_id': correlation_id,
                        'provider': self.payment_service.default_provider_name,
                        'external_reference': '',
                        'verification_payload': None,
                        'captured_at': None,
                    },
                )
        except DomainError as e:
            logger.info(f"Payment initiation for task {task_id} refused: {e.reason.value}")
            return OperationResult.from_error(e)
        except IntegrityError as e:
            logger.warning(f"Concurrent payment initiation for task {task_id}: {str(e)}")
            return OperationResult.failure(
                ErrorKind.CONFLICT, Reason.DUPLICATE_PAYMENT,
                "Another payment for this task was created at the same time. Please retry.",
            )

        logger.info(f"{'Created' if created else 'Re-armed'} payment {payment.id} ({correlation_id}) for task {task_id}")

        checkout = self.payment_service.init_charge(
            correlation_id=payment.correlation_id,
            amount=payment.amount,
            provider_name=payment.provider,
        )
        return OperationResult.success(
            "Payment initiated. Complete the checkout to assign the task.",
            data={
                'payment_id': payment.id,
                'correlation_id': payment.correlation_id,
                'amount': str(payment.amount),
                'provider': payment.provider,
                'payment_url': checkout.get('payment_url'),
                'form_data': checkout.get('form_data'),
            },
        )

    def confirm_callback(self, correlation_id, external_status, verification_payload):
        """
        Apply a processor callback reporting a completed charge.

        The signed payload must name the same transaction, report it COMPLETE
        and carry the payment's exact amount. Safe to replay: a callback for an
        already captured payment returns ALREADY_PROCESSED and writes nothing.
        A charge that lands after the task was cancelled is recorded and the
        payment marked REFUNDED; the task is not reopened or assigned.
        """
        payment = Payment.objects.filter(correlation_id=correlation_id).first() if correlation_id else None
        if payment is None:
            logger.warning(f"Payment callback for unknown transaction {correlation_id}")
            return OperationResult.failure(
                ErrorKind.NOT_FOUND, Reason.PAYMENT_NOT_FOUND, "Payment not found.",
            )

        if str(external_status or '').upper() != 'COMPLETE':
            logger.info(f"Payment {payment.id} reported as {external_status}, nothing applied")
            return OperationResult.failure(
                ErrorKind.INVALID_STATE, Reason.PAYMENT_NOT_CONFIRMED,
                "The payment processor did not confirm this payment.",
                external_status=external_status,
            )

        if not self.payment_service.validate_callback(verification_payload):
            logger.warning(f"Invalid callback signature for transaction {correlation_id}")
            return OperationResult.failure(
                ErrorKind.SIGNATURE_INVALID, Reason.INVALID_SIGNATURE,
                "Payment verification failed.",
            )

        signed_correlation_id, signed_status, external_reference = self.payment_service.callback_fields(
            verification_payload,
        )
        if signed_correlation_id != correlation_id or str(signed_status or '').upper() != 'COMPLETE':
            logger.warning(f"Callback for transaction {correlation_id} does not match its signed payload")
            return OperationResult.failure(
                ErrorKind.SIGNATURE_INVALID, Reason.INVALID_SIGNATURE,
                "Payment verification failed.",
            )

        if not payment.is_captured and self._status_check_enabled():
            verified = self.payment_service.verify_payment(
                correlation_id=payment.correlation_id,
                amount=payment.amount,
            )
            if not verified:
                return OperationResult.failure(
                    ErrorKind.INVALID_STATE, Reason.PROCESSOR_UNVERIFIED,
                    "The payment processor could not confirm this payment.",
                )

        try:
            with transaction.atomic():
                task = lock_task(payment.task_id)
                payment = lock_payment_for(task)

                if payment is None:
                    raise DomainError(ErrorKind.NOT_FOUND, Reason.PAYMENT_NOT_FOUND, "Payment not found.")
                if payment.correlation_id != correlation_id:
                    raise DomainError(
                        ErrorKind.CONFLICT, Reason.STALE_CALLBACK,
                        "This payment was superseded by a newer checkout.",
                        task_id=task.id,
                    )
                paid_amount = self.payment_service.callback_amount(verification_payload)
                if paid_amount != payment.amount:
                    raise DomainError(
                        ErrorKind.INVALID_STATE, Reason.AMOUNT_MISMATCH,
                        "The amount paid does not match the payment.",
                        payment_id=payment.id, expected=str(payment.amount), paid=str(paid_amount),
                    )
                if payment.is_captured:
                    logger.info(f"Duplicate callback for transaction {correlation_id} ignored")
                    return OperationResult.already_processed(
                        "Payment already confirmed.",
                        data={'task_id': task.id, 'payment_id': payment.id, 'payment_status': payment.status},
                    )

                cancelled = task.status == TaskStatus.CANCELLED
                if cancelled:
                    # Charged after the poster cancelled: keep the capture on record and owe it back.
                    self._record_capture(payment, external_reference, verification_payload)
                    payment.status = PaymentStatus.REFUNDED
                    payment.refunded_at = payment.captured_at
                    payment.save(update_fields=['status', 'refunded_at', 'updated_at'])
                else:
                    apply_outcome(
                        transition(task.status, payment.status, LifecycleEvent.PAYMENT_CONFIRMED),
                        LifecycleEvent.PAYMENT_CONFIRMED, task, payment,
                    )
                    self._record_capture(payment, external_reference, verification_payload)
                    bid = lock_bid(task, payment.bid_id)
                    rejected_bidder_ids = task.assign_to(bid)
        except DomainError as e:
            logger.info(f"Payment callback {correlation_id} refused: {e.reason.value}")
            return OperationResult.from_error(e)

        if cancelled:
            logger.warning(f"Payment {payment.id} captured after task {task.id} was cancelled, marked {payment.status}")
            return OperationResult.failure(
                ErrorKind.INVALID_STATE, Reason.TASK_NOT_OPEN,
                "The task was cancelled before the payment completed. The payment is refunded to the poster.",
                task_id=task.id, payment_id=payment.id,
            )

        logger.info(f"Payment {payment.id} captured, task {task.id} assigned to user {task.doer_id}")
        notifications, broadcasts = assignment_events(task, bid, rejected_bidder_ids, via_payment=True)
        return OperationResult.success(
            "Payment confirmed and task assigned.",
            data={'task_id': task.id, 'payment_id': payment.id, 'doer_id': task.doer_id},
            notifications=notifications,
            broadcasts=broadcasts,
        )

    def record_failure(self, payload):
        """The processor's failure redirect. Nothing is changed."""
        correlation_id = None
        if payload:
            correlation_id, _, _ = self.payment_service.callback_fields(payload)
        logger.info(f"Payment processor reported a failed or cancelled checkout ({correlation_id or 'unknown'})")
        return OperationResult.failure(
            ErrorKind.INVALID_STATE, Reason.PAYMENT_NOT_CONFIRMED,
            "Payment was not completed.",
        )

    def _status_check_enabled(self):
        return bool(settings.ESEWA.get('VERIFY_STATUS'))

    def _record_capture(self, payment, external_reference, verification_payload):
        payment.captured_at = timezone.now()
        payment.external_reference = external_reference or ''
        payment.verification_payload = verification_payload
        payment.save(update_fields=['captured_at', 'external_reference', 'verification_payload', 'updated_at'])
