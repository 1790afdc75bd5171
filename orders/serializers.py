"""
Serializers for order models.
"""
from rest_framework import serializers

from accounts.serializers import UserMinimalSerializer
from .models import Order, OrderItem
from .services import SORT_FIELDS, OrderQueryOptions


class OrderItemSerializer(serializers.ModelSerializer):
    """Snapshot of one ordered line."""
    product_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = OrderItem
        fields = ['id', 'product_id', 'product_name', 'price', 'quantity', 'subtotal']
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """
    Serializer for Order model with nested items.
    Expects ``items`` prefetched and ``user`` selected.
    """
    items = OrderItemSerializer(many=True, read_only=True)
    item_count = serializers.SerializerMethodField()
    user = UserMinimalSerializer(read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'user', 'status', 'total',
            'shipping_address', 'notes', 'items', 'item_count',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_item_count(self, obj):
        # Use prefetched items count if available
        if hasattr(obj, '_prefetched_objects_cache') and 'items' in obj._prefetched_objects_cache:
            return len(obj.items.all())
        return obj.items.count()


class OrderCreateSerializer(serializers.Serializer):
    """
    Checkout request for POST /orders/; the items come from the cart.

    {
        "shipping_address": "221B Baker Street",
        "notes": "Leave at the door"
    }
    """
    shipping_address = serializers.CharField(required=False, allow_blank=True, max_length=500)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=1000)


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.CharField()


class UserOrderQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.Status.choices, required=False)


class OrderQuerySerializer(serializers.Serializer):
    """Admin list query parameters; maps onto OrderQueryOptions."""
    status = serializers.ChoiceField(choices=Order.Status.choices, required=False)
    user_id = serializers.UUIDField(required=False)
    sort_by = serializers.ChoiceField(choices=SORT_FIELDS, default='created_at')
    order = serializers.ChoiceField(choices=['asc', 'desc'], default='desc')

    def to_options(self):
        data = dict(self.validated_data)
        descending = data.pop('order') == 'desc'
        return OrderQueryOptions(descending=descending, **data)
