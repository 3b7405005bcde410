from django.contrib import admin

from .models import Dispute, DisputeFollowUp


class DisputeFollowUpInline(admin.TabularInline):
    model = DisputeFollowUp
    extra = 0
    can_delete = False
    readonly_fields = ('sender', 'message', 'evidence', 'created_at')

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Dispute)
class DisputeAdmin(admin.ModelAdmin):
    list_display = ('id', 'task', 'initiator', 'dispute_type', 'status', 'resolved_by', 'created_at')
    list_filter = ('status', 'dispute_type')
    search_fields = ('task__title', 'initiator__email', 'reason')
    readonly_fields = ('status', 'pre_dispute_status', 'resolved_by', 'resolved_at', 'closed_at')
    inlines = [DisputeFollowUpInline]
