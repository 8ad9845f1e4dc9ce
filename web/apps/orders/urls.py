from django.urls import path

from .views import CancelOrderView, OrderDetailView, OrdersCollectionView, ValidateCartView

app_name = "orders"

urlpatterns = [
    path("", OrdersCollectionView.as_view(), name="orders-collection"),  # GET list / POST create
    path("validate-cart/", ValidateCartView.as_view(), name="validate-cart"),
    path("<uuid:oid>/", OrderDetailView.as_view(), name="orders-detail"),
    path("<uuid:oid>/cancel/", CancelOrderView.as_view(), name="orders-cancel"),
]
