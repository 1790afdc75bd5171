"""
Serializers for cart endpoints.
"""
from rest_framework import serializers

from .models import Cart, CartItem


class CartItemSerializer(serializers.ModelSerializer):
    product_id = serializers.UUIDField(read_only=True, allow_null=True)

    class Meta:
        model = CartItem
        fields = ['id', 'product_id', 'product_name', 'price', 'quantity', 'subtotal', 'added_at']
        read_only_fields = fields


class CartSerializer(serializers.ModelSerializer):
    """Cart with its line items; expects ``items`` to be prefetched."""
    items = CartItemSerializer(many=True, read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Cart
        fields = ['id', 'items', 'item_count', 'total', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_item_count(self, obj):
        return len(obj.items.all())


class AddItemSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class UpdateItemSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
