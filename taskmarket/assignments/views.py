from rest_framework import views as drf_views, generics, status, filters
from rest_framework.response import Response
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from accounts.identity import acting_user_from_request
from lifecycle.responses import result_response
from . import serializers as my_serializers
from .models import Task
from .services import BidAcceptanceService, CompletionService

RESULT_RESPONSES = {
    200: openapi.Response(description="Operation applied, or already applied"),
    400: "Not allowed in the current state",
    403: "Not allowed for this user",
    404: "Not found",
}

TASK_PATH_PARAMETER = openapi.Parameter('task_id', openapi.IN_PATH, description="Task ID", type=openapi.TYPE_INTEGER)


class TaskListCreateAPIView(generics.ListCreateAPIView):
    """
    GET lists the caller's tasks (posted or assigned); POST publishes a new OPEN task.
    """
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]
    filter_backends = [filters.OrderingFilter, DjangoFilterBackend]
    filterset_fields = ['status']
    ordering_fields = ['created_at', 'budget', 'deadline']

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return my_serializers.TaskCreateSerializer
        return my_serializers.TaskDetailSerializer

    def get_queryset(self):
        user = self.request.user
        return (
            Task.objects.filter(poster=user) | Task.objects.filter(doer=user)
        ).select_related('poster', 'doer').prefetch_related('bids__bidder', 'submissions__author')

    @swagger_auto_schema(operation_summary="Publish a new task", request_body=my_serializers.TaskCreateSerializer)
    def post(self, request, *args, **kwargs):
        serializer = my_serializers.TaskCreateSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        serializer.save()

        return Response({
            'detail': "Task created successfully.",
            'task': serializer.data
        }, status=status.HTTP_201_CREATED)


class RetrieveTaskAPIView(generics.RetrieveAPIView):
    serializer_class = my_serializers.TaskDetailSerializer
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]
    queryset = Task.objects.select_related('poster', 'doer', 'payment')
    lookup_url_kwarg = 'task_id'

    @swagger_auto_schema(operation_summary="Retrieve a task with its bids, submissions and available actions")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class CreateBidAPIView(generics.CreateAPIView):
    serializer_class = my_serializers.BidSerializer
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]

    def get_task(self):
        return get_object_or_404(Task, id=self.kwargs['task_id'])

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if getattr(self, 'swagger_fake_view', False):
            return context
        context['task'] = self.get_task()
        return context

    @swagger_auto_schema(operation_summary="Place a bid on an open task", manual_parameters=[TASK_PATH_PARAMETER])
    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)

        return Response({
            'detail': "Bid placed.",
            'bid': serializer.data
        }, status=status.HTTP_201_CREATED)


class AcceptBidAPIView(drf_views.APIView):
    """Direct acceptance: assigns the task to the bidder without a processor checkout."""
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(operation_summary="Accept a bid and assign the task", responses={**RESULT_RESPONSES, 409: "Conflict"})
    def post(self, request, task_id, bid_id):
        result = BidAcceptanceService().accept_bid(bid_id, task_id, acting_user_from_request(request))
        return result_response(result)


class StartWorkAPIView(drf_views.APIView):
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(operation_summary="Start work on an assigned task (doer)", responses=RESULT_RESPONSES)
    def post(self, request, task_id):
        result = CompletionService().start_work(task_id, acting_user_from_request(request))
        return result_response(result)


class SubmitWorkAPIView(drf_views.APIView):
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(
        operation_summary="Submit work for review (doer)",
        request_body=my_serializers.SubmitWorkSerializer,
        responses={**RESULT_RESPONSES, 201: openapi.Response(description="Submission recorded")},
    )
    def post(self, request, task_id):
        serializer = my_serializers.SubmitWorkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = CompletionService().submit_work(
            task_id,
            acting_user_from_request(request),
            content=serializer.validated_data['content'],
            attachments=serializer.validated_data['attachments'],
        )
        return result_response(result, success_status=status.HTTP_201_CREATED)


class RejectWorkAPIView(drf_views.APIView):
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(
        operation_summary="Send submitted work back for changes (poster)",
        request_body=my_serializers.RejectWorkSerializer,
        responses=RESULT_RESPONSES,
    )
    def post(self, request, task_id):
        serializer = my_serializers.RejectWorkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = CompletionService().reject_work(
            task_id, acting_user_from_request(request), feedback=serializer.validated_data['feedback'],
        )
        return result_response(result)


class ApproveWorkAPIView(drf_views.APIView):
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(operation_summary="Approve work and release the payment (poster)", responses=RESULT_RESPONSES)
    def post(self, request, task_id):
        result = CompletionService().approve_work(task_id, acting_user_from_request(request))
        return result_response(result)


class CancelTaskAPIView(drf_views.APIView):
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(operation_summary="Cancel an open task (poster)", responses=RESULT_RESPONSES)
    def post(self, request, task_id):
        result = CompletionService().cancel_task(task_id, acting_user_from_request(request))
        return result_response(result)
