from django.db import models
from django.db.models import Q

from accounts.models import CustomUser
from assignments.models import Task
from lifecycle.statuses import DisputeStatus, TaskStatus
from payments.models import Payment


class Dispute(models.Model):
    DISPUTE_TYPE_CHOICES = (
        ('payment', 'Payment Issue'),
        ('quality', 'Work Quality'),
        ('delay', 'Task Delay'),
        ('other', 'Other'),
    )

    task = models.ForeignKey(Task, on_delete=models.PROTECT, related_name='disputes')
    payment = models.ForeignKey(Payment, on_delete=models.PROTECT, related_name='disputes')
    initiator = models.ForeignKey(CustomUser, on_delete=models.PROTECT, related_name='disputes')

    dispute_type = models.CharField(max_length=20, choices=DISPUTE_TYPE_CHOICES, default='other')
    reason = models.TextField()
    evidence = models.JSONField(default=list, blank=True)

    status = models.CharField(max_length=20, choices=DisputeStatus.choices, default=DisputeStatus.OPEN)
    # Task status to go back to if the dispute is cancelled.
    pre_dispute_status = models.CharField(max_length=20, choices=TaskStatus.choices)

    response = models.TextField(null=True, blank=True)
    response_evidence = models.JSONField(default=list, blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)

    resolution = models.TextField(blank=True)
    resolved_by = models.ForeignKey(CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='resolved_disputes')
    resolved_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['task'],
                condition=Q(status='OPEN'),
                name='unique_open_dispute_per_task',
            ),
        ]

    @property
    def is_open(self):
        return self.status == DisputeStatus.OPEN

    def __str__(self):
        return f"Dispute for {self.task.title} by {self.initiator}"


class DisputeFollowUp(models.Model):
    """A message or evidence added to an open dispute. Never edited or removed."""

    dispute = models.ForeignKey(Dispute, on_delete=models.PROTECT, related_name='follow_ups')
    sender = models.ForeignKey(CustomUser, on_delete=models.PROTECT)
    message = models.TextField()
    evidence = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'id']

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Dispute follow-ups are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Dispute follow-ups are append-only.")

    def __str__(self):
        return f"Follow-up {self.id} on dispute {self.dispute_id} by {self.sender}"
