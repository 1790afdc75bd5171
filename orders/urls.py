"""
URL routing for order API endpoints.
"""
from django.urls import path
from . import views

app_name = 'orders'

urlpatterns = [
    path('orders/', views.OrderListCreateView.as_view(), name='order-list'),
    path('orders/<uuid:pk>/', views.OrderDetailView.as_view(), name='order-detail'),
    path('orders/<uuid:pk>/cancel/', views.OrderCancelView.as_view(), name='order-cancel'),

    # Admin
    path('admin/orders/', views.AdminOrderListView.as_view(), name='admin-order-list'),
    path('admin/orders/stats/', views.AdminOrderStatsView.as_view(), name='admin-order-stats'),
    path('admin/orders/<uuid:pk>/status/', views.AdminOrderStatusView.as_view(), name='admin-order-status'),
]
