"""HTTP views for the orders app.

Views are kept intentionally small: they validate requests with the
pydantic schemas, map them to domain DTOs, delegate to ``OrderService`` and
wrap the result in the response envelope. Errors are not handled here; they
propagate to ``gateway.envelope.api_exception_handler``, which maps the
typed domain errors to status codes.

The service comes from ``get_order_service()``, which picks the HTTP payment
client or the in-process stub depending on settings.
"""

from rest_framework import status
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from gateway.authentication import caller_for
from gateway.envelope import success

from .domain import OrderFilters
from .providers import get_order_service
from .schemas import (
    CartValidationOut,
    CreateOrderDTO,
    DeleteOrderDTO,
    ListOrdersQuery,
    OrderReadDTO,
    UpdateOrderDTO,
    ValidateCartDTO,
)


def _order_body(order) -> dict:
    return OrderReadDTO.from_domain(order).model_dump(mode="json")


class OrdersCollectionView(APIView):
    """List the caller's orders (GET) or create a new order (POST)."""

    throttle_classes = [ScopedRateThrottle]

    def get_throttles(self):
        # DRF evaluates throttles in initial(), before get/post.
        self.throttle_scope = "orders_list" if self.request.method == "GET" else "orders_create"
        return [throttle() for throttle in self.throttle_classes]

    def get(self, request):
        query = ListOrdersQuery.model_validate(request.query_params.dict())
        page = get_order_service().list(
            caller_for(request),
            OrderFilters(status=query.status, payment_status=query.payment_status, user_id=query.user_id),
            page=query.page,
            limit=query.limit,
        )
        return success(
            {
                "orders": [_order_body(o) for o in page.items],
                "pagination": {
                    "page": page.page,
                    "limit": page.limit,
                    "total": page.total,
                    "total_pages": page.total_pages,
                },
            },
            "Orders retrieved successfully",
        )

    def post(self, request):
        """Create an order for the authenticated user.

        Returns:
            Response: 201 with the created order. Validation, stock and
            payment failures answer 400, unknown products 404.
        """
        dto = CreateOrderDTO.model_validate(request.data)
        order = get_order_service().create(dto.to_domain(request.user.pk))
        return success(_order_body(order), "Order created successfully", status.HTTP_201_CREATED)


class OrderDetailView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_detail"

    def get(self, request, oid):
        order = get_order_service().get(oid, caller_for(request))
        return success(_order_body(order), "Order retrieved successfully")

    def put(self, request, oid):
        dto = UpdateOrderDTO.model_validate(request.data)
        changes = dto.model_dump(exclude_unset=True)
        if changes.get("status") is None:
            changes.pop("status", None)
        order = get_order_service().update(oid, caller_for(request), changes)
        return success(_order_body(order), "Order updated successfully")

    def delete(self, request, oid):
        dto = DeleteOrderDTO.model_validate(request.data or {})
        get_order_service().delete(oid, caller_for(request), restore_stock=dto.restore_stock)
        return success(None, "Order deleted successfully")


class CancelOrderView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_detail"

    def post(self, request, oid):
        order = get_order_service().cancel(oid, caller_for(request))
        return success(_order_body(order), "Order cancelled successfully")


class ValidateCartView(APIView):
    """Check a cart against current products without reserving anything."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_list"

    def post(self, request):
        dto = ValidateCartDTO.model_validate(request.data)
        result = get_order_service().validate_cart(dto.to_domain())
        body = CartValidationOut.from_domain(result).model_dump(mode="json")
        body["valid"] = not result.invalid_items
        return success(body, "Cart validated")
