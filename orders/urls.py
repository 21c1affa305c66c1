from django.urls import path

from orders import views

app_name = "orders"

urlpatterns = [
    path("", views.OrderCreateView.as_view(), name="create"),
    path("<int:order_id>/", views.OrderDetailView.as_view(), name="detail"),
    path("<int:order_id>/status/", views.OrderStatusView.as_view(), name="status"),
    path("<int:order_id>/cancel/", views.OrderCancelView.as_view(), name="cancel"),
    path("<int:order_id>/track/", views.OrderTrackView.as_view(), name="track"),
    path("<int:order_id>/tracking/", views.OrderTrackingUpdateView.as_view(), name="tracking"),
    path("<int:order_id>/reorder/", views.OrderReorderView.as_view(), name="reorder"),
]
