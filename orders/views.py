"""
Order API Views.

Implements:
- POST /orders/ - Checkout: turn the caller's cart into an order
- GET /orders/ - Caller's orders, newest first
- GET /orders/{id}/ - Order detail (owner or admin)
- PATCH /orders/{id}/cancel/ - Cancel own pending order
- GET /admin/orders/ - All orders with filters and sorting
- PATCH /admin/orders/{id}/status/ - Move an order along its status flow
- GET /admin/orders/stats/ - Order statistics
"""
import logging

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from core.permissions import IsAdmin
from core.responses import success, success_list
from . import services
from .serializers import (
    OrderCreateSerializer,
    OrderQuerySerializer,
    OrderSerializer,
    OrderStatusUpdateSerializer,
    UserOrderQuerySerializer,
)

logger = logging.getLogger(__name__)


def _render(order, user):
    return OrderSerializer(services.get_order(user, order.pk)).data


class OrderListCreateView(APIView):
    """
    GET: List the caller's orders

    Query Parameters (GET):
        - status: Filter by status

    POST: Create an order from the cart
    {
        "shipping_address": "optional",
        "notes": "optional"
    }
    """

    def get(self, request):
        query = UserOrderQuerySerializer(data=request.query_params.dict())
        query.is_valid(raise_exception=True)
        orders = services.list_user_orders(request.user, query.validated_data.get('status'))
        return success_list(OrderSerializer(orders, many=True).data)

    def post(self, request):
        """
        Returns:
            - 201: Order created (pending)
            - 400: Empty cart or validation error
            - 409: A cart line no longer fits current stock
        """
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = services.create_order(request.user, **serializer.validated_data)
        return success(
            _render(order, request.user),
            message='Order created successfully',
            status=status.HTTP_201_CREATED,
        )


class OrderDetailView(APIView):
    def get(self, request, pk):
        return success(OrderSerializer(services.get_order(request.user, pk)).data)


class OrderCancelView(APIView):
    def patch(self, request, pk):
        order = services.cancel_order(request.user, pk)
        return success(_render(order, request.user), message='Order cancelled successfully')


class AdminOrderListView(APIView):
    """
    GET: List all orders

    Query Parameters:
        - status: Filter by status
        - user_id: Filter by owner
        - sort_by: created_at, updated_at, total, status or order_number
        - order: asc or desc (default desc)
    """
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request):
        query = OrderQuerySerializer(data=request.query_params.dict())
        query.is_valid(raise_exception=True)
        orders = services.list_orders(request.user, query.to_options())
        return success_list(OrderSerializer(orders, many=True).data)


class AdminOrderStatusView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def patch(self, request, pk):
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = services.update_order_status(request.user, pk, serializer.validated_data['status'])
        return success(_render(order, request.user), message='Order status updated successfully')


class AdminOrderStatsView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request):
        return success(services.order_stats(request.user))
