"""
URL configuration for the Storefront API.
"""
from django.contrib import admin
from django.urls import path, include

from core.views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path('health/', health_check, name='health-check'),
    path('api/', include('accounts.urls')),
    path('api/', include('inventory.urls')),
    path('api/', include('cart.urls')),
    path('api/', include('orders.urls')),
    path('api/', include('reviews.urls')),
    path('api/', include('notifications.urls')),
]
