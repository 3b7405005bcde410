from rest_framework import serializers

from lifecycle.statuses import ResolutionOutcome
from .models import Dispute, DisputeFollowUp


class EvidenceItemSerializer(serializers.Serializer):
    url = serializers.CharField(max_length=2048)
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    type = serializers.CharField(max_length=50, required=False, default='file')


class DisputeCreateSerializer(serializers.Serializer):
    """
    Request body for opening a dispute. The task comes from the URL.
    """
    dispute_type = serializers.ChoiceField(choices=Dispute.DISPUTE_TYPE_CHOICES, default='other')
    reason = serializers.CharField()
    evidence = EvidenceItemSerializer(many=True, required=False)


class DisputeRespondSerializer(serializers.Serializer):
    response = serializers.CharField()
    evidence = EvidenceItemSerializer(many=True, required=False)


class DisputeFollowUpCreateSerializer(serializers.Serializer):
    message = serializers.CharField()
    evidence = EvidenceItemSerializer(many=True, required=False)


class DisputeResolveSerializer(serializers.Serializer):
    outcome = serializers.ChoiceField(choices=ResolutionOutcome.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class DisputeFollowUpSerializer(serializers.ModelSerializer):
    sender = serializers.StringRelatedField()

    class Meta:
        model = DisputeFollowUp
        fields = ['id', 'sender', 'message', 'evidence', 'created_at']
        read_only_fields = fields


class DisputeDetailSerializer(serializers.ModelSerializer):
    """
    Serializer for retrieving a single dispute with all its details and follow-ups.
    """
    task = serializers.StringRelatedField()
    task_id = serializers.IntegerField(read_only=True)
    initiator = serializers.StringRelatedField()
    resolved_by = serializers.StringRelatedField()
    payment_status = serializers.CharField(source='payment.status', read_only=True)
    follow_ups = DisputeFollowUpSerializer(many=True, read_only=True)

    class Meta:
        model = Dispute
        fields = [
            'id', 'task', 'task_id', 'initiator', 'dispute_type', 'reason', 'evidence', 'status',
            'pre_dispute_status', 'payment_status', 'response', 'response_evidence', 'responded_at',
            'resolution', 'resolved_by', 'resolved_at', 'closed_at', 'follow_ups', 'created_at', 'updated_at',
        ]
        read_only_fields = fields
