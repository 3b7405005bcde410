from django.urls import path

from . import views

urlpatterns = [
    path("initiate/", views.InitiatePaymentView.as_view(), name="escrow-initiate"),
    path("callback/success/", views.PaymentSuccessCallbackView.as_view(), name="escrow-callback-success"),
    path("callback/failure/", views.PaymentFailureCallbackView.as_view(), name="escrow-callback-failure"),
    path("tasks/<int:task_id>/payment/", views.TaskPaymentDetailView.as_view(), name="escrow-task-payment"),
]
