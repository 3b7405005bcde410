from lifecycle.results import DomainError, ErrorKind, Reason
from payments.models import Payment

from .models import Bid, Task


def lock_task(task_id):
    """Fetch the task with a row lock. Only valid inside ``transaction.atomic``."""
    try:
        return Task.objects.select_for_update().get(pk=task_id)
    except Task.DoesNotExist:
        raise DomainError(ErrorKind.NOT_FOUND, Reason.TASK_NOT_FOUND, "Task not found.", task_id=task_id)


def lock_bid(task, bid_id):
    try:
        return Bid.objects.select_for_update().get(pk=bid_id, task=task)
    except Bid.DoesNotExist:
        raise DomainError(
            ErrorKind.NOT_FOUND, Reason.BID_NOT_FOUND, "Bid not found for this task.",
            task_id=task.id, bid_id=bid_id,
        )


def lock_payment_for(task):
    """The task's payment row, locked, or ``None``."""
    return Payment.objects.select_for_update().filter(task=task).first()


def require_poster(task, acting_user, action):
    if task.poster_id != acting_user.id:
        raise DomainError(
            ErrorKind.UNAUTHORIZED, Reason.FORBIDDEN, f"Only the task poster can {action}.",
            task_id=task.id,
        )


def require_doer(task, acting_user, action):
    if task.doer_id is None or task.doer_id != acting_user.id:
        raise DomainError(
            ErrorKind.UNAUTHORIZED, Reason.FORBIDDEN, f"Only the assigned doer can {action}.",
            task_id=task.id,
        )


def apply_outcome(outcome, event, task, payment=None):
    """Raise for a rejected transition; return the transition otherwise."""
    if not outcome.allowed:
        raise DomainError(
            ErrorKind.INVALID_STATE, outcome.reason, outcome.message,
            event=event.value,
            task_status=task.status,
            payment_status=payment.status if payment else None,
        )
    return outcome
