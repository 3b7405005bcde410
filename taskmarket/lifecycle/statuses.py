from django.db import models


class TaskStatus(models.TextChoices):
    OPEN = 'OPEN', 'Open'
    ASSIGNED = 'ASSIGNED', 'Assigned'
    IN_PROGRESS = 'IN_PROGRESS', 'In progress'
    UNDER_REVIEW = 'UNDER_REVIEW', 'Under review'
    COMPLETED = 'COMPLETED', 'Completed'
    CANCELLED = 'CANCELLED', 'Cancelled'
    IN_DISPUTE = 'IN_DISPUTE', 'In dispute'


class BidStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    ACCEPTED = 'accepted', 'Accepted'
    REJECTED = 'rejected', 'Rejected'


class SubmissionStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'


class PaymentStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending (held in escrow)'
    RELEASED = 'RELEASED', 'Released to doer'
    DISPUTED = 'DISPUTED', 'Held by dispute'
    REFUNDED = 'REFUNDED', 'Refunded to poster'


class DisputeStatus(models.TextChoices):
    OPEN = 'OPEN', 'Open'
    RESOLVED_REFUND = 'RESOLVED_REFUND', 'Resolved with refund'
    RESOLVED_RELEASE = 'RESOLVED_RELEASE', 'Resolved with release'
    CANCELLED = 'CANCELLED', 'Cancelled'


class ResolutionOutcome(models.TextChoices):
    REFUND = 'refund', 'Refund poster'
    RELEASE = 'release', 'Release to doer'


# Statuses in which a doer is attached to the task.
ACTIVE_TASK_STATUSES = frozenset({
    TaskStatus.ASSIGNED,
    TaskStatus.IN_PROGRESS,
    TaskStatus.UNDER_REVIEW,
    TaskStatus.COMPLETED,
    TaskStatus.IN_DISPUTE,
})

DISPUTABLE_TASK_STATUSES = frozenset({
    TaskStatus.ASSIGNED,
    TaskStatus.IN_PROGRESS,
    TaskStatus.UNDER_REVIEW,
})
