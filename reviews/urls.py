"""
URL routing for review API endpoints.
"""
from django.urls import path
from . import views

app_name = 'reviews'

urlpatterns = [
    path('reviews/', views.ReviewCreateView.as_view(), name='review-create'),
    path('reviews/<uuid:pk>/', views.ReviewDetailView.as_view(), name='review-detail'),
    path('reviews/products/<uuid:product_id>/', views.ProductReviewListView.as_view(), name='product-reviews'),
    path('reviews/users/me/', views.MyReviewListView.as_view(), name='my-reviews'),
]
