"""Read-only product endpoints plus the staff stock adjustment."""

from django.core.paginator import Paginator
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from gateway.envelope import success

from .models import Product
from .repository import ProductRepository
from .schemas import ProductListQuery, ProductOut, StockAdjustmentIn
from .services import adjust_stock


def _product_body(product: Product) -> dict:
    return ProductOut.model_validate(product).model_dump(mode="json")


class ProductCollectionView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "products"

    def get(self, request):
        query = ProductListQuery.model_validate(request.query_params.dict())
        qs = Product.objects.order_by("-created_at")
        if query.status:
            qs = qs.filter(status=query.status)
        p = Paginator(qs, query.limit)
        page_obj = p.get_page(query.page)
        return success(
            {
                "products": [_product_body(o) for o in page_obj.object_list],
                "pagination": {
                    "page": page_obj.number,
                    "limit": query.limit,
                    "total": p.count,
                    "total_pages": p.num_pages,
                },
            },
            "Products retrieved successfully",
        )


class ProductDetailView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "products"

    def get(self, request, pid):
        return success(_product_body(ProductRepository().get(pid)), "Product retrieved successfully")


class ProductStockView(APIView):
    permission_classes = [IsAuthenticated, IsAdminUser]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "products"

    def post(self, request, pid):
        dto = StockAdjustmentIn.model_validate(request.data)
        product = adjust_stock(pid, dto.operation, dto.quantity)
        return success(_product_body(product), "Stock updated successfully")
