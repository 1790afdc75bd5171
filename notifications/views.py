"""
Admin dashboard notification counts.

Implements:
- GET /notifications/count/ - New orders, customers, categories and
  products, plus pending orders and low-stock products
"""
from datetime import timedelta

from django.conf import settings
from django.utils import timezone
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from accounts.models import User
from core.permissions import IsAdmin, Role
from core.responses import success
from inventory.models import Category, Product
from orders.models import Order


def notification_counts(now=None) -> dict:
    now = now or timezone.now()
    last_hour = now - timedelta(hours=1)
    last_day = now - timedelta(days=1)
    customers = User.objects.filter(role=Role.CUSTOMER)

    counts = {
        'orders': {
            'new_last_hour': Order.objects.filter(created_at__gte=last_hour).count(),
            'new_today': Order.objects.filter(created_at__gte=last_day).count(),
            'pending': Order.objects.filter(status=Order.Status.PENDING).count(),
        },
        'users': {
            'new_last_hour': customers.filter(created_at__gte=last_hour).count(),
            'new_today': customers.filter(created_at__gte=last_day).count(),
        },
        'categories': {
            'new_today': Category.objects.filter(created_at__gte=last_day).count(),
        },
        'products': {
            'new_today': Product.objects.filter(created_at__gte=last_day).count(),
            'low_stock': Product.objects.filter(quantity__lt=settings.LOW_STOCK_THRESHOLD).count(),
        },
    }
    counts['total'] = (
        counts['orders']['new_last_hour']
        + counts['users']['new_last_hour']
        + counts['categories']['new_today']
        + counts['products']['new_today']
        + counts['orders']['pending']
    )
    return counts


class NotificationCountView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request):
        return success(notification_counts())
