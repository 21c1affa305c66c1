from django.urls import path

from payments import views

app_name = "payments"

urlpatterns = [
    path("initiate/", views.InitiatePaymentView.as_view(), name="initiate"),
    path("verify/", views.VerifyPaymentView.as_view(), name="verify"),
    path("refund/", views.ProcessRefundView.as_view(), name="refund"),
    path("refund/<int:order_id>/", views.RefundStatusView.as_view(), name="refund-status"),
    path("stripe/webhook/", views.stripe_webhook, name="stripe-webhook"),
    path("<int:order_id>/", views.PaymentDetailsView.as_view(), name="details"),
]
