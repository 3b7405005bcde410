from django.urls import path

from . import views as my_views


urlpatterns = [
    path('tasks/<int:task_id>/disputes/', my_views.CreateDisputeAPIView.as_view(), name='dispute-create'),
    path('disputes/', my_views.ListDisputesAPIView.as_view(), name='dispute-list'),
    path('disputes/<int:dispute_id>/', my_views.RetrieveDisputeAPIView.as_view(), name='dispute-detail'),
    path('disputes/<int:dispute_id>/respond/', my_views.RespondDisputeAPIView.as_view(), name='dispute-respond'),
    path('disputes/<int:dispute_id>/follow-ups/', my_views.DisputeFollowUpAPIView.as_view(), name='dispute-follow-up'),
    path('disputes/<int:dispute_id>/resolve/', my_views.ResolveDisputeAPIView.as_view(), name='dispute-resolve'),
    path('disputes/<int:dispute_id>/cancel/', my_views.CancelDisputeAPIView.as_view(), name='dispute-cancel'),
]
