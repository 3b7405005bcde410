from rest_framework import serializers

from .models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    sender = serializers.StringRelatedField()
    receiver = serializers.StringRelatedField()

    class Meta:
        model = Payment
        fields = [
            'id', 'task', 'bid', 'sender', 'receiver', 'amount', 'status', 'provider',
            'correlation_id', 'external_reference', 'captured_at', 'released_at', 'refunded_at',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields
