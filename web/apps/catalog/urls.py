from django.urls import path

from .views import ProductCollectionView, ProductDetailView, ProductStockView

app_name = "catalog"

urlpatterns = [
    path("", ProductCollectionView.as_view(), name="products-collection"),
    path("<uuid:pid>/", ProductDetailView.as_view(), name="products-detail"),
    path("<uuid:pid>/stock/", ProductStockView.as_view(), name="products-stock"),
]
