"""
URL routing for notification endpoints.
"""
from django.urls import path
from . import views

app_name = 'notifications'

urlpatterns = [
    path('notifications/count/', views.NotificationCountView.as_view(), name='notification-count'),
]
