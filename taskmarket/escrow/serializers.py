from rest_framework import serializers


class PaymentInitiateSerializer(serializers.Serializer):
    task_id = serializers.IntegerField(min_value=1)
    bid_id = serializers.IntegerField(min_value=1)


class ProcessorCallbackSerializer(serializers.Serializer):
    """The processor redirect carries its result as one base64 ``data`` parameter."""
    data = serializers.CharField(max_length=8192, trim_whitespace=True)
