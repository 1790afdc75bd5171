"""
URL routing for cart API endpoints.
"""
from django.urls import path
from . import views

app_name = 'cart'

urlpatterns = [
    path('cart/', views.CartView.as_view(), name='cart-detail'),
    path('cart/items/', views.CartItemListView.as_view(), name='cart-item-list'),
    path('cart/items/<uuid:item_id>/', views.CartItemDetailView.as_view(), name='cart-item-detail'),
]
