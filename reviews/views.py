"""
Review API Views.

Implements:
- POST /reviews/ - Review a product (one per user and product)
- GET /reviews/products/{product_id}/ - A product's reviews (public)
- GET /reviews/users/me/ - Caller's reviews
- DELETE /reviews/{id}/ - Delete own review (admin: any)
"""
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.views import APIView

from core.responses import success, success_list
from . import services
from .serializers import MyReviewSerializer, ReviewCreateSerializer, ReviewSerializer


class ReviewCreateView(APIView):
    def post(self, request):
        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review = services.create_review(request.user, **serializer.validated_data)
        return success(
            ReviewSerializer(review).data,
            message='Review created successfully',
            status=status.HTTP_201_CREATED,
        )


class ProductReviewListView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, product_id):
        reviews = services.list_product_reviews(product_id)
        return success_list(ReviewSerializer(reviews, many=True).data)


class MyReviewListView(APIView):
    def get(self, request):
        reviews = services.list_user_reviews(request.user)
        return success_list(MyReviewSerializer(reviews, many=True).data)


class ReviewDetailView(APIView):
    def delete(self, request, pk):
        services.delete_review(request.user, pk)
        return success(message='Review deleted successfully')
