from django.db import models
from django.contrib.auth import get_user_model
from auditlog.registry import auditlog
from auditlog.models import AuditlogHistoryField

from assignments.models import Bid, Task
from lifecycle.statuses import PaymentStatus

User = get_user_model()


class Payment(models.Model):
    """
    Escrow record for a task's payment. There is at most one per task.

    The row is created (or re-armed) when the poster starts checkout and stays
    PENDING while funds are held. ``captured_at`` is set once the processor
    has confirmed the charge. Payments opened by a direct bid acceptance use
    the ``direct`` provider and are never captured.
    """
    PROVIDER_CHOICES = (
        ('esewa', 'eSewa'),
        ('direct', 'Direct settlement'),
    )

    task = models.OneToOneField(Task, on_delete=models.PROTECT, related_name='payment')
    bid = models.ForeignKey(Bid, on_delete=models.PROTECT, related_name='payments')
    sender = models.ForeignKey(User, on_delete=models.PROTECT, related_name='sent_payments')
    receiver = models.ForeignKey(User, on_delete=models.PROTECT, related_name='received_payments')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    correlation_id = models.CharField(max_length=64, unique=True)
    provider = models.CharField(max_length=50, choices=PROVIDER_CHOICES, default='esewa')
    external_reference = models.CharField(max_length=255, blank=True)
    verification_payload = models.JSONField(null=True, blank=True)
    captured_at = models.DateTimeField(null=True, blank=True)
    released_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    history = AuditlogHistoryField()

    @property
    def is_captured(self):
        return self.captured_at is not None

    def __str__(self):
        return f"Payment {self.correlation_id} of {self.amount} for task {self.task_id} ({self.status})"


auditlog.register(Payment, exclude_fields=['verification_payload'])
