"""
Tests for transactional email and admin notification counts.

Test Cases:
1. Email bodies
2. Task behaviour for missing and cancelled orders
3. Dispatch only after commit, and never failing the caller
4. Notification count endpoint
"""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.core import mail
from django.db import transaction
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import User
from core.permissions import Role
from inventory.models import Category, Product
from notifications import dispatch, emails, tasks
from notifications.views import notification_counts
from orders.models import Order, OrderItem


def make_user(email, role=Role.CUSTOMER):
    return User.objects.create_user(
        email=email,
        password='password123',
        first_name='Nora',
        last_name='Notify',
        role=role,
    )


class NotificationTestMixin:

    def setUp(self):
        self.customer = make_user('nora@example.com')
        self.category = Category.objects.create(name='Books')
        self.product = Product.objects.create(
            name='Django Book',
            price=Decimal('30.00'),
            quantity=20,
            category=self.category,
        )
        self.order = Order.objects.create(user=self.customer, total=Decimal('60.00'))
        OrderItem.objects.create(
            order=self.order,
            product=self.product,
            product_name='Django Book',
            price=Decimal('30.00'),
            quantity=2,
            subtotal=Decimal('60.00'),
        )


class EmailBodyTestCase(NotificationTestMixin, TestCase):

    def test_order_confirmation_lists_items(self):
        subject, body = emails.order_confirmation(self.order, 'Nora')

        self.assertIn(self.order.order_number, subject)
        self.assertIn('2x Django Book @ $30.00 = $60.00', body)
        self.assertIn('Total: $60.00', body)

    def test_status_update_uses_status_message(self):
        _, body = emails.order_status_update(self.order, 'Nora', 'shipped')

        self.assertIn('Great news! Your order has been shipped!', body)

    def test_password_reset_links_token(self):
        _, body = emails.password_reset(self.customer, 'abc123')

        self.assertIn('/reset-password?token=abc123', body)


class EmailTaskTestCase(NotificationTestMixin, TestCase):

    def test_send_order_confirmation(self):
        result = tasks.send_order_confirmation(str(self.order.id))

        self.assertEqual(result['status'], 'success')
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['nora@example.com'])
        self.assertIn(self.order.order_number, mail.outbox[0].subject)

    def test_confirmation_for_missing_order(self):
        order_id = str(self.order.id)
        Order.objects.filter(pk=order_id).delete()

        result = tasks.send_order_confirmation(order_id)

        self.assertEqual(result['status'], 'error')
        self.assertEqual(len(mail.outbox), 0)

    def test_confirmation_skipped_for_cancelled_order(self):
        """
        Given: The order was cancelled before the worker ran
        When: The confirmation task executes
        Then: No email is sent
        """
        Order.objects.filter(pk=self.order.pk).update(status=Order.Status.CANCELLED)

        result = tasks.send_order_confirmation(str(self.order.id))

        self.assertEqual(result['status'], 'skipped')
        self.assertEqual(len(mail.outbox), 0)

    def test_send_order_status_update(self):
        result = tasks.send_order_status_update(str(self.order.id), 'delivered')

        self.assertEqual(result['new_status'], 'delivered')
        self.assertIn('Your order has been delivered!', mail.outbox[0].body)

    def test_welcome_for_missing_user(self):
        user_id = str(self.customer.id)
        User.objects.filter(pk=user_id).delete()

        result = tasks.send_welcome_email(user_id)

        self.assertEqual(result['status'], 'error')
        self.assertEqual(len(mail.outbox), 0)


class DispatchTestCase(NotificationTestMixin, TestCase):

    def test_nothing_sent_before_commit(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            dispatch.order_confirmation(self.order)

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 0)

    def test_sent_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            dispatch.welcome_email(self.customer)

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, 'Welcome to Storefront!')

    def test_rolled_back_transaction_sends_nothing(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            try:
                with transaction.atomic():
                    dispatch.order_status_update(self.order)
                    raise RuntimeError('rollback')
            except RuntimeError:
                pass

        self.assertEqual(len(callbacks), 0)
        self.assertEqual(len(mail.outbox), 0)

    def test_queue_failure_is_swallowed(self):
        broken = MagicMock()
        broken.name = 'notifications.tasks.send_welcome_email'
        broken.delay.side_effect = ConnectionError('broker down')

        with patch('notifications.tasks.send_welcome_email', broken):
            with self.captureOnCommitCallbacks(execute=True):
                dispatch.welcome_email(self.customer)

        broken.delay.assert_called_once_with(str(self.customer.id))
        self.assertEqual(len(mail.outbox), 0)


class NotificationCountTestCase(NotificationTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.admin = make_user('admin@example.com', Role.ADMIN)
        Product.objects.create(
            name='Last Copy',
            price=Decimal('15.00'),
            quantity=1,
            category=self.category,
        )

    def test_counts(self):
        Order.objects.filter(pk=self.order.pk).update(created_at=timezone.now() - timedelta(hours=3))

        counts = notification_counts()

        self.assertEqual(counts['orders']['new_last_hour'], 0)
        self.assertEqual(counts['orders']['new_today'], 1)
        self.assertEqual(counts['orders']['pending'], 1)
        self.assertEqual(counts['users']['new_last_hour'], 1)
        self.assertEqual(counts['categories']['new_today'], 1)
        self.assertEqual(counts['products']['new_today'], 2)
        self.assertEqual(counts['products']['low_stock'], 1)
        self.assertEqual(counts['total'], 0 + 1 + 1 + 2 + 1)

    def test_admin_only(self):
        client = APIClient()
        client.force_authenticate(user=self.customer)
        self.assertEqual(client.get('/api/notifications/count/').status_code, 403)

        client.force_authenticate(user=self.admin)
        response = client.get('/api/notifications/count/')

        self.assertEqual(response.status_code, 200)
        self.assertIn('total', response.data['data'])
