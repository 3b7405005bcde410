import logging

from django.shortcuts import get_object_or_404
from rest_framework import generics, permissions, views
from rest_framework_simplejwt.authentication import JWTAuthentication
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from accounts.identity import acting_user_from_request
from lifecycle.responses import result_response
from lifecycle.results import ErrorKind, OperationResult, Reason
from payments.models import Payment
from payments.serializers import PaymentSerializer
from .serializers import PaymentInitiateSerializer, ProcessorCallbackSerializer
from .services import EscrowService

logger = logging.getLogger(__name__)

CALLBACK_PARAMETER = openapi.Parameter(
    'data', openapi.IN_QUERY, description="Base64 encoded JSON sent by the payment processor", type=openapi.TYPE_STRING,
)


class InitiatePaymentView(views.APIView):
    """
    Starts checkout for a bid. The task stays OPEN until the processor
    confirms the payment through the success callback.
    """
    permission_classes = [permissions.IsAuthenticated]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(
        operation_summary="Initiate escrow payment for a bid",
        request_body=PaymentInitiateSerializer,
        responses={
            200: openapi.Response(description="Checkout form for the payment processor"),
            400: "Task is not open or bid is not pending",
            403: "Forbidden",
            404: "Not found",
            409: "Concurrent initiation",
        }
    )
    def post(self, request):
        serializer = PaymentInitiateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = EscrowService().initiate(
            serializer.validated_data['task_id'],
            serializer.validated_data['bid_id'],
            acting_user_from_request(request),
        )
        return result_response(result)


class PaymentSuccessCallbackView(views.APIView):
    """Redirect target for completed checkouts. Authenticated by the payload signature."""
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    @swagger_auto_schema(
        operation_summary="Payment processor success callback",
        manual_parameters=[CALLBACK_PARAMETER],
        responses={
            200: openapi.Response(description="Payment confirmed, or already confirmed"),
            400: "Invalid, unsigned or unconfirmed callback",
            404: "Unknown transaction",
            409: "Superseded checkout",
        }
    )
    def get(self, request):
        serializer = ProcessorCallbackSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)

        service = EscrowService()
        try:
            payload = service.payment_service.parse_callback(serializer.validated_data['data'])
        except ValueError as e:
            logger.warning(f"Undecodable payment callback: {str(e)}")
            return result_response(OperationResult.failure(
                ErrorKind.SIGNATURE_INVALID, Reason.INVALID_SIGNATURE, "Payment verification failed.",
            ))

        correlation_id, external_status, _ = service.payment_service.callback_fields(payload)
        result = service.confirm_callback(correlation_id, external_status, payload)
        return result_response(result)


class PaymentFailureCallbackView(views.APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    @swagger_auto_schema(
        operation_summary="Payment processor failure callback",
        manual_parameters=[CALLBACK_PARAMETER],
        responses={400: "Payment was not completed"},
    )
    def get(self, request):
        service = EscrowService()
        payload = None
        raw = request.query_params.get('data')
        if raw:
            try:
                payload = service.payment_service.parse_callback(raw)
            except ValueError:
                payload = None
        return result_response(service.record_failure(payload))


class TaskPaymentDetailView(generics.RetrieveAPIView):
    serializer_class = PaymentSerializer
    permission_classes = [permissions.IsAuthenticated]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(
        operation_summary="Retrieve the escrow payment of a task",
        responses={200: PaymentSerializer(), 403: "Forbidden", 404: "Not found"}
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_object(self):
        payment = get_object_or_404(
            Payment.objects.select_related('sender', 'receiver'),
            task_id=self.kwargs['task_id'],
        )
        user = self.request.user
        if user.id not in (payment.sender_id, payment.receiver_id) and not getattr(user, 'is_admin_role', False):
            self.permission_denied(self.request, message="Not authorised to access this payment.")
        return payment
