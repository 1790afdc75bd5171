"""
Serializers for review endpoints.
"""
from rest_framework import serializers

from accounts.serializers import UserMinimalSerializer
from inventory.serializers import ProductMinimalSerializer
from .models import Review


class ReviewSerializer(serializers.ModelSerializer):
    """Review as seen on a product page."""
    user = UserMinimalSerializer(read_only=True)
    product_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'product_id', 'user', 'rating', 'comment', 'created_at']
        read_only_fields = fields


class MyReviewSerializer(serializers.ModelSerializer):
    """Review as seen by its author, with the product summary."""
    product = ProductMinimalSerializer(read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'product', 'rating', 'comment', 'created_at']
        read_only_fields = fields


class ReviewCreateSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(min_length=10, max_length=2000)
