"""
Serializers for catalog models.
Provides data validation and JSON conversion for API endpoints.
"""
from rest_framework import serializers

from accounts.serializers import UserMinimalSerializer
from .models import Category, Product


class CategorySerializer(serializers.ModelSerializer):
    """Serializer for Category; ``product_count`` is annotated by the service."""
    product_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Category
        fields = ['id', 'name', 'description', 'product_count', 'created_at', 'updated_at']
        read_only_fields = fields


class CategoryMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested category representation."""
    class Meta:
        model = Category
        fields = ['id', 'name', 'description']


class CategoryWriteSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=100)
    description = serializers.CharField(required=False, allow_blank=True, max_length=500)


class ProductSerializer(serializers.ModelSerializer):
    """Serializer for Product with nested category and owner."""
    category = CategoryMinimalSerializer(read_only=True)
    created_by = UserMinimalSerializer(read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'description', 'price', 'quantity', 'in_stock',
            'is_low_stock', 'images', 'category', 'created_by',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class ProductMinimalSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ['id', 'name', 'price', 'quantity', 'in_stock']


class ProductWriteSerializer(serializers.Serializer):
    """Create/update payload; use ``partial=True`` for updates."""
    name = serializers.CharField(min_length=2, max_length=200)
    description = serializers.CharField(required=False, allow_blank=True)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    quantity = serializers.IntegerField(min_value=0, required=False)
    in_stock = serializers.BooleanField(required=False)
    images = serializers.ListField(
        child=serializers.URLField(max_length=500),
        required=False,
        max_length=10,
    )
    category_id = serializers.UUIDField()


class ProductQuerySerializer(serializers.Serializer):
    """
    Parses product list query parameters into ProductQueryOptions kwargs.

    Feed it ``request.query_params.dict()``: a QueryDict would turn a
    missing boolean into False.
    """
    category_id = serializers.UUIDField(required=False)
    in_stock = serializers.BooleanField(required=False)
    min_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    max_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    search = serializers.CharField(required=False, allow_blank=True, max_length=100)

    def validate(self, attrs):
        low, high = attrs.get('min_price'), attrs.get('max_price')
        if low is not None and high is not None and low > high:
            raise serializers.ValidationError({'min_price': 'min_price cannot exceed max_price'})
        return attrs


class TopProductsQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=100, default=10)


class LowStockQuerySerializer(serializers.Serializer):
    threshold = serializers.IntegerField(min_value=0, required=False)


class CategoryStatsSerializer(serializers.Serializer):
    category_id = serializers.UUIDField()
    category_name = serializers.CharField(source='category__name')
    total_products = serializers.IntegerField()
    avg_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    min_price = serializers.DecimalField(max_digits=10, decimal_places=2)
    max_price = serializers.DecimalField(max_digits=10, decimal_places=2)
    total_stock = serializers.IntegerField()
