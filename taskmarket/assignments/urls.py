from django.urls import path

from . import views as my_views


urlpatterns = [
    path('tasks/', my_views.TaskListCreateAPIView.as_view(), name='task-list-create'),
    path('tasks/<int:task_id>/', my_views.RetrieveTaskAPIView.as_view(), name='task-detail'),
    path('tasks/<int:task_id>/bids/', my_views.CreateBidAPIView.as_view(), name='bid-create'),
    path('tasks/<int:task_id>/bids/<int:bid_id>/accept/', my_views.AcceptBidAPIView.as_view(), name='bid-accept'),
    path('tasks/<int:task_id>/start/', my_views.StartWorkAPIView.as_view(), name='task-start'),
    path('tasks/<int:task_id>/submit/', my_views.SubmitWorkAPIView.as_view(), name='task-submit'),
    path('tasks/<int:task_id>/reject/', my_views.RejectWorkAPIView.as_view(), name='task-reject'),
    path('tasks/<int:task_id>/approve/', my_views.ApproveWorkAPIView.as_view(), name='task-approve'),
    path('tasks/<int:task_id>/cancel/', my_views.CancelTaskAPIView.as_view(), name='task-cancel'),
]
