from rest_framework import serializers
from django.utils import timezone

from lifecycle.state_machine import allowed_events
from lifecycle.statuses import BidStatus, TaskStatus
from .models import Bid, Submission, Task


class TaskCreateSerializer(serializers.ModelSerializer):
    poster = serializers.StringRelatedField(read_only=True)

    class Meta:
        model = Task
        fields = ['id', 'title', 'description', 'budget', 'deadline', 'poster', 'status', 'created_at']
        read_only_fields = ['id', 'poster', 'status', 'created_at']

    def validate_budget(self, value):
        if value <= 0:
            raise serializers.ValidationError("Budget must be greater than zero.")
        return value

    def validate_deadline(self, value):
        if value and value <= timezone.now():
            raise serializers.ValidationError("Deadline must be in the future.")
        return value

    def create(self, validated_data):
        return Task.objects.create(poster=self.context['request'].user, **validated_data)


class BidSerializer(serializers.ModelSerializer):
    bidder = serializers.StringRelatedField(read_only=True)

    class Meta:
        model = Bid
        fields = ['id', 'task', 'bidder', 'amount', 'message', 'status', 'created_at', 'accepted_at']
        read_only_fields = ['id', 'task', 'bidder', 'status', 'created_at', 'accepted_at']

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Bid amount must be greater than zero.")
        return value

    def validate(self, attrs):
        task = self.context['task']
        user = self.context['request'].user

        if task.status != TaskStatus.OPEN:
            raise serializers.ValidationError("Bids can only be placed on open tasks.")
        if task.poster_id == user.id:
            raise serializers.ValidationError("You cannot bid on your own task.")
        if task.bids.filter(bidder=user, status=BidStatus.PENDING).exists():
            raise serializers.ValidationError("You already have a pending bid on this task.")
        return attrs

    def create(self, validated_data):
        return Bid.objects.create(task=self.context['task'], bidder=self.context['request'].user, **validated_data)


class SubmissionSerializer(serializers.ModelSerializer):
    author = serializers.StringRelatedField()

    class Meta:
        model = Submission
        fields = ['id', 'author', 'content', 'attachments', 'status', 'feedback', 'created_at', 'reviewed_at']
        read_only_fields = fields


class TaskDetailSerializer(serializers.ModelSerializer):
    poster = serializers.StringRelatedField()
    doer = serializers.StringRelatedField()
    payment_status = serializers.SerializerMethodField()
    available_actions = serializers.SerializerMethodField()
    bids = BidSerializer(many=True, read_only=True)
    submissions = SubmissionSerializer(many=True, read_only=True)

    class Meta:
        model = Task
        fields = [
            'id', 'title', 'description', 'budget', 'deadline', 'status', 'poster', 'doer', 'accepted_bid',
            'payment_status', 'available_actions', 'bids', 'submissions', 'created_at', 'updated_at', 'completed_at',
        ]
        read_only_fields = fields

    def _payment(self, obj):
        return getattr(obj, 'payment', None)

    def get_payment_status(self, obj):
        payment = self._payment(obj)
        return payment.status if payment else None

    def get_available_actions(self, obj):
        return [event.value for event in allowed_events(obj.status, self.get_payment_status(obj))]


class SubmitWorkSerializer(serializers.Serializer):
    content = serializers.CharField()
    attachments = serializers.ListField(child=serializers.CharField(max_length=2048), required=False, default=list)


class RejectWorkSerializer(serializers.Serializer):
    feedback = serializers.CharField(required=False, allow_blank=True, default='')
