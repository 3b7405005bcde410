from rest_framework.permissions import BasePermission

from .models import Dispute


class IsDisputeParticipantOrAdmin(BasePermission):
    """
    Allows access only to the task's poster, the payment's receiver (the doer,
    kept even after a refund detaches them from the task), or an admin.
    This permission is checked against a single Dispute object.
    """
    def has_object_permission(self, request, view, obj: Dispute):
        user = request.user
        if getattr(user, 'is_admin_role', False):
            return True
        return user.id in (obj.task.poster_id, obj.payment.receiver_id)
