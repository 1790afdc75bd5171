"""
Catalog API Views.

Implements:
- Category list/detail (public) and create/update/delete (admin)
- Product list with filters and detail (public)
- Product create (vendor/admin), update/delete (owner or admin)
- Vendor "my products"
- Product statistics: per-category aggregates, top products, low stock,
  price distribution
"""
from django.conf import settings
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView

from core.permissions import IsAdmin, IsVendor, ReadOnlyOrAdmin, ReadOnlyOrVendorOrAdmin
from core.responses import success, success_list
from . import services
from .serializers import (
    CategorySerializer,
    CategoryStatsSerializer,
    CategoryWriteSerializer,
    LowStockQuerySerializer,
    ProductQuerySerializer,
    ProductSerializer,
    ProductWriteSerializer,
    TopProductsQuerySerializer,
)


# =============================================================================
# Category Views
# =============================================================================

class CategoryListCreateView(APIView):
    """
    GET: List all categories
    POST: Create a new category (admin)
    """
    permission_classes = [ReadOnlyOrAdmin]

    def get(self, request):
        return success_list(CategorySerializer(services.list_categories(), many=True).data)

    def post(self, request):
        serializer = CategoryWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        category = services.create_category(request.user, **serializer.validated_data)
        return success(
            CategorySerializer(category).data,
            message='Category created successfully',
            status=status.HTTP_201_CREATED,
        )


class CategoryDetailView(APIView):
    """
    GET: Retrieve a category
    PUT/PATCH: Update a category (admin)
    DELETE: Delete a category without products (admin)
    """
    permission_classes = [ReadOnlyOrAdmin]

    def get(self, request, pk):
        return success(CategorySerializer(services.get_category(pk)).data)

    def put(self, request, pk):
        serializer = CategoryWriteSerializer(data=request.data, partial=request.method == 'PATCH')
        serializer.is_valid(raise_exception=True)
        category = services.update_category(request.user, pk, **serializer.validated_data)
        return success(CategorySerializer(category).data, message='Category updated successfully')

    patch = put

    def delete(self, request, pk):
        services.delete_category(request.user, pk)
        return success(message='Category deleted successfully')


# =============================================================================
# Product Views
# =============================================================================

class ProductListCreateView(APIView):
    """
    GET: List products

    Query Parameters:
        - category_id: Filter by category
        - in_stock: true/false
        - min_price / max_price: Price range
        - search: Keyword in name, description or category name

    POST: Create a product owned by the caller (vendor/admin)
    """
    permission_classes = [ReadOnlyOrVendorOrAdmin]

    def get(self, request):
        query = ProductQuerySerializer(data=request.query_params.dict())
        query.is_valid(raise_exception=True)
        options = services.ProductQueryOptions(**query.validated_data)
        return success_list(ProductSerializer(services.list_products(options), many=True).data)

    def post(self, request):
        serializer = ProductWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        product = services.create_product(request.user, **serializer.validated_data)
        return success(
            ProductSerializer(product).data,
            message='Product created successfully',
            status=status.HTTP_201_CREATED,
        )


class ProductDetailView(APIView):
    """
    GET: Retrieve a product
    PUT/PATCH: Update a product (owner or admin)
    DELETE: Delete a product (owner or admin)
    """
    permission_classes = [ReadOnlyOrVendorOrAdmin]

    def get(self, request, pk):
        return success(ProductSerializer(services.get_product(pk)).data)

    def put(self, request, pk):
        serializer = ProductWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        product = services.update_product(request.user, pk, **serializer.validated_data)
        return success(ProductSerializer(product).data, message='Product updated successfully')

    patch = put

    def delete(self, request, pk):
        services.delete_product(request.user, pk)
        return success(message='Product deleted successfully')


class VendorProductListView(APIView):
    """GET: Products owned by the calling vendor, newest first."""
    permission_classes = [IsAuthenticated, IsVendor]

    def get(self, request):
        products = services.list_vendor_products(request.user)
        return success_list(ProductSerializer(products, many=True).data)


# =============================================================================
# Product Statistics Views
# =============================================================================

class ProductStatsView(APIView):
    """GET: Per-category aggregates (admin)."""
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request):
        return success(CategoryStatsSerializer(services.category_stats(), many=True).data)


class TopProductsView(APIView):
    """GET: Most expensive products. Query: limit (default 10)."""
    permission_classes = [AllowAny]

    def get(self, request):
        query = TopProductsQuerySerializer(data=request.query_params.dict())
        query.is_valid(raise_exception=True)
        products = services.top_products(query.validated_data['limit'])
        return success_list(ProductSerializer(products, many=True).data)


class LowStockProductsView(APIView):
    """GET: Products at or below the stock threshold (admin). Query: threshold."""
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request):
        query = LowStockQuerySerializer(data=request.query_params.dict())
        query.is_valid(raise_exception=True)
        threshold = query.validated_data.get('threshold')
        products = services.low_stock_products(threshold)
        return success_list(
            ProductSerializer(products, many=True).data,
            threshold=threshold if threshold is not None else settings.LOW_STOCK_THRESHOLD,
        )


class PriceDistributionView(APIView):
    """GET: Product counts per price bucket."""
    permission_classes = [AllowAny]

    def get(self, request):
        return success(services.price_distribution())
