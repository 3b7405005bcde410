from django.db import models
from django.db.models import Q
from django.contrib.auth import get_user_model
from django.utils import timezone

from lifecycle.statuses import ACTIVE_TASK_STATUSES, BidStatus, SubmissionStatus, TaskStatus

User = get_user_model()


class Task(models.Model):
    """
    A unit of work published by a poster.

    ``doer`` and ``accepted_bid`` are set together, and only while the task is
    past OPEN and not CANCELLED.
    """
    poster = models.ForeignKey(User, related_name='posted_tasks', on_delete=models.PROTECT)
    doer = models.ForeignKey(User, related_name='assigned_tasks', on_delete=models.PROTECT, null=True, blank=True)
    title = models.CharField(max_length=255)
    description = models.TextField()
    budget = models.DecimalField(max_digits=10, decimal_places=2)
    deadline = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=TaskStatus.choices, default=TaskStatus.OPEN)
    accepted_bid = models.ForeignKey(
        'Bid', related_name='+', on_delete=models.PROTECT, null=True, blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} ({self.poster} -> {self.doer})"

    def is_party(self, user_id):
        return user_id in (self.poster_id, self.doer_id)

    def other_party_id(self, user_id):
        return self.doer_id if user_id == self.poster_id else self.poster_id

    def assignment_is_consistent(self):
        has_doer = self.doer_id is not None
        if has_doer != (self.accepted_bid_id is not None):
            return False
        return has_doer == (self.status in ACTIVE_TASK_STATUSES)

    def assign_to(self, bid):
        """
        Accept ``bid`` and reject every other pending bid on this task.

        Must run inside a transaction holding the task's row lock. Returns the
        ids of the bidders whose bids were rejected.
        """
        now = timezone.now()
        bid.status = BidStatus.ACCEPTED
        bid.accepted_at = now
        bid.save(update_fields=['status', 'accepted_at'])

        siblings = self.bids.filter(status=BidStatus.PENDING).exclude(id=bid.id)
        rejected_bidder_ids = list(siblings.values_list('bidder_id', flat=True))
        siblings.update(status=BidStatus.REJECTED)

        self.doer_id = bid.bidder_id
        self.accepted_bid = bid
        self.status = TaskStatus.ASSIGNED
        self.save(update_fields=['doer', 'accepted_bid', 'status', 'updated_at'])
        return rejected_bidder_ids

    def clear_assignment(self):
        """Detach the doer after a refund; the accepted bid is marked rejected."""
        if self.accepted_bid_id:
            Bid.objects.filter(id=self.accepted_bid_id).update(status=BidStatus.REJECTED)
        self.doer = None
        self.accepted_bid = None


class Bid(models.Model):
    task = models.ForeignKey(Task, on_delete=models.PROTECT, related_name='bids')
    bidder = models.ForeignKey(User, on_delete=models.PROTECT, related_name='bids')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    message = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=BidStatus.choices, default=BidStatus.PENDING)
    created_at = models.DateTimeField(auto_now_add=True)
    accepted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['created_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['task'],
                condition=Q(status='accepted'),
                name='unique_accepted_bid_per_task',
            ),
        ]

    def __str__(self):
        return f"Bid {self.id} by {self.bidder} on task {self.task_id} ({self.status})"


class Submission(models.Model):
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name='submissions')
    author = models.ForeignKey(User, on_delete=models.PROTECT, related_name='submissions')
    content = models.TextField()
    attachments = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=SubmissionStatus.choices, default=SubmissionStatus.PENDING)
    feedback = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"Submission {self.id} for task {self.task_id} ({self.status})"
