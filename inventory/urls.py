"""
URL routing for catalog API endpoints.
"""
from django.urls import path
from . import views

app_name = 'inventory'

urlpatterns = [
    # Categories
    path('categories/', views.CategoryListCreateView.as_view(), name='category-list'),
    path('categories/<uuid:pk>/', views.CategoryDetailView.as_view(), name='category-detail'),

    # Products
    path('products/', views.ProductListCreateView.as_view(), name='product-list'),
    path('products/<uuid:pk>/', views.ProductDetailView.as_view(), name='product-detail'),
    path('products/vendor/my-products/', views.VendorProductListView.as_view(), name='vendor-products'),

    # Statistics
    path('products/stats/', views.ProductStatsView.as_view(), name='product-stats'),
    path('products/top/', views.TopProductsView.as_view(), name='product-top'),
    path('products/low-stock/', views.LowStockProductsView.as_view(), name='product-low-stock'),
    path('products/price-distribution/', views.PriceDistributionView.as_view(), name='product-price-distribution'),
]
