from rest_framework import generics, filters, status
from rest_framework import views as drf_views
from rest_framework_simplejwt.authentication import JWTAuthentication
from django.db.models import Q
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework.permissions import IsAuthenticated
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from accounts.identity import acting_user_from_request
from lifecycle.responses import result_response
from . import serializers as my_serializers
from .models import Dispute
from .permissions import IsDisputeParticipantOrAdmin
from .services import DisputeService

RESULT_RESPONSES = {
    200: openapi.Response(description="Operation applied, or already applied"),
    400: "Not allowed in the current state",
    403: "Not allowed for this user",
    404: "Not found",
}


class CreateDisputeAPIView(drf_views.APIView):
    """
    Allows the task's poster or doer to open a dispute, putting the payment on hold.
    """
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(
        operation_summary="Open a dispute on a task",
        request_body=my_serializers.DisputeCreateSerializer,
        responses={**RESULT_RESPONSES, 201: openapi.Response(description="Dispute opened"), 409: "Concurrent dispute"},
    )
    def post(self, request, task_id):
        serializer = my_serializers.DisputeCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = DisputeService().open_dispute(
            task_id,
            acting_user_from_request(request),
            reason=data['reason'],
            evidence=data.get('evidence'),
            dispute_type=data['dispute_type'],
        )
        return result_response(result, success_status=status.HTTP_201_CREATED)


class ListDisputesAPIView(generics.ListAPIView):
    """
    List disputes.
    - Admins see all disputes.
    - Posters and doers see only disputes on their tasks.
    """
    serializer_class = my_serializers.DisputeDetailSerializer
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]
    filter_backends = [filters.OrderingFilter, DjangoFilterBackend]
    filterset_fields = ['status', 'dispute_type']
    ordering_fields = ['created_at', 'updated_at']
    ordering = ['-updated_at']

    @swagger_auto_schema(
        operation_summary="List disputes with optional filtering",
        manual_parameters=[
            openapi.Parameter(
                'status',
                openapi.IN_QUERY,
                description="Filter disputes by status",
                type=openapi.TYPE_STRING
            ),
            openapi.Parameter(
                'dispute_type',
                openapi.IN_QUERY,
                description="Filter disputes by dispute type",
                type=openapi.TYPE_STRING
            ),
        ],
        responses={200: my_serializers.DisputeDetailSerializer(many=True)}
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        user = self.request.user
        queryset = Dispute.objects.select_related('task', 'payment', 'initiator', 'resolved_by').prefetch_related('follow_ups__sender')
        if getattr(user, 'is_admin_role', False):
            return queryset

        return queryset.filter(Q(task__poster=user) | Q(payment__receiver=user)).distinct()


class RetrieveDisputeAPIView(generics.RetrieveAPIView):
    """
    Retrieve a single dispute's details and follow-ups.
    Accessible only by the parties or an admin.
    """
    serializer_class = my_serializers.DisputeDetailSerializer
    permission_classes = [IsAuthenticated, IsDisputeParticipantOrAdmin]
    authentication_classes = [JWTAuthentication]
    queryset = Dispute.objects.select_related('task', 'payment', 'initiator', 'resolved_by')
    lookup_url_kwarg = 'dispute_id'

    @swagger_auto_schema(operation_summary="Retrieve a dispute")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class RespondDisputeAPIView(drf_views.APIView):
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(
        operation_summary="Respond to a dispute (the non-initiating party, once)",
        request_body=my_serializers.DisputeRespondSerializer,
        responses=RESULT_RESPONSES,
    )
    def post(self, request, dispute_id):
        serializer = my_serializers.DisputeRespondSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = DisputeService().respond(
            dispute_id,
            acting_user_from_request(request),
            response=serializer.validated_data['response'],
            evidence=serializer.validated_data.get('evidence'),
        )
        return result_response(result)


class DisputeFollowUpAPIView(drf_views.APIView):
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(
        operation_summary="Add a follow-up message or evidence to an open dispute",
        request_body=my_serializers.DisputeFollowUpCreateSerializer,
        responses={**RESULT_RESPONSES, 201: openapi.Response(description="Follow-up added")},
    )
    def post(self, request, dispute_id):
        serializer = my_serializers.DisputeFollowUpCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = DisputeService().add_follow_up(
            dispute_id,
            acting_user_from_request(request),
            message=serializer.validated_data['message'],
            evidence=serializer.validated_data.get('evidence'),
        )
        return result_response(result, success_status=status.HTTP_201_CREATED)


class ResolveDisputeAPIView(drf_views.APIView):
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(
        operation_summary="Resolve a dispute by releasing or refunding the payment (admins only)",
        request_body=my_serializers.DisputeResolveSerializer,
        responses=RESULT_RESPONSES,
    )
    def post(self, request, dispute_id):
        serializer = my_serializers.DisputeResolveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = DisputeService().resolve(
            dispute_id,
            acting_user_from_request(request),
            outcome=serializer.validated_data['outcome'],
            notes=serializer.validated_data['notes'],
        )
        return result_response(result)


class CancelDisputeAPIView(drf_views.APIView):
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(operation_summary="Cancel an open dispute", responses=RESULT_RESPONSES)
    def post(self, request, dispute_id):
        result = DisputeService().cancel(dispute_id, acting_user_from_request(request))
        return result_response(result)
