from django.contrib import admin

from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('id', 'task', 'sender', 'receiver', 'amount', 'provider', 'status', 'captured_at', 'created_at')
    list_filter = ('provider', 'status')
    search_fields = ('correlation_id', 'external_reference', 'sender__email', 'receiver__email')
    readonly_fields = ('correlation_id', 'verification_payload', 'captured_at', 'released_at', 'refunded_at')
