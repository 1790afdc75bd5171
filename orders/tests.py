"""
Tests for checkout and the order status state machine.

Test Cases:
1. Checkout snapshots the cart, reserves stock and deletes the cart
2. Checkout fails atomically: no order, no stock change, cart intact
3. Customer cancel releases stock exactly once
4. Admin transitions follow the state machine; terminal states are final
5. Confirmation / status emails are queued after commit and never fail
   the order
6. Concurrent checkouts of the last unit never oversell
7. HTTP endpoints and the error envelope
"""
import threading
from decimal import Decimal
from unittest import skipUnless
from unittest.mock import MagicMock, patch

from django.core import mail
from django.db import connection
from django.test import TestCase, TransactionTestCase
from rest_framework.test import APIClient

from accounts.models import User
from cart import services as cart_services
from cart.models import Cart
from core.exceptions import (
    EmptyCart,
    Forbidden,
    InsufficientStock,
    InvalidTransition,
    OutOfStock,
    ProductGone,
    ValidationFailed,
)
from core.permissions import Role
from inventory.models import Category, Product
from orders.models import Order, OrderItem
from orders.services import (
    OrderQueryOptions,
    cancel_order,
    create_order,
    get_order,
    list_orders,
    order_stats,
    update_order_status,
)


def make_user(email, role=Role.CUSTOMER):
    return User.objects.create_user(
        email=email,
        password='password123',
        first_name='Test',
        last_name='User',
        role=role,
    )


class OrderTestMixin:
    """Shared catalog: P1 has 5 units at 10.00."""

    def setUp(self):
        self.customer = make_user('customer@example.com')
        self.admin = make_user('admin@example.com', role=Role.ADMIN)
        self.category = Category.objects.create(name='Test Category')
        self.product1 = Product.objects.create(
            name='Test Product 1',
            price=Decimal('10.00'),
            quantity=5,
            category=self.category,
        )
        self.product2 = Product.objects.create(
            name='Test Product 2',
            price=Decimal('25.00'),
            quantity=50,
            category=self.category,
        )

    def refresh(self, *products):
        for product in products:
            product.refresh_from_db()

    def place_order(self, *lines, user=None):
        user = user or self.customer
        for product, quantity in lines:
            cart_services.add_item(user, product.id, quantity)
        return create_order(user)


class CreateOrderTestCase(OrderTestMixin, TestCase):

    def test_checkout_reserves_stock_and_deletes_cart(self):
        """
        Given: Cart with 2x P1 at 10.00, P1 has 5 units
        When: Creating the order
        Then: Pending order totalling 20.00, P1 down to 3, cart gone
        """
        cart_services.add_item(self.customer, self.product1.id, 2)

        order = create_order(self.customer, shipping_address='1 Main St', notes='Ring twice')

        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.total, Decimal('20.00'))
        self.assertEqual(order.shipping_address, '1 Main St')
        self.assertTrue(order.order_number.startswith('ORD-'))
        self.refresh(self.product1)
        self.assertEqual(self.product1.quantity, 3)
        self.assertTrue(self.product1.in_stock)
        self.assertFalse(Cart.objects.filter(user=self.customer).exists())

    def test_items_are_snapshots(self):
        order = self.place_order((self.product1, 1), (self.product2, 2))

        Product.objects.filter(pk=self.product2.pk).update(price=Decimal('99.00'), name='Renamed')

        item = order.items.get(product=self.product2)
        self.assertEqual(item.product_name, 'Test Product 2')
        self.assertEqual(item.price, Decimal('25.00'))
        self.assertEqual(item.subtotal, Decimal('50.00'))
        self.assertEqual(order.total, Decimal('60.00'))

    def test_last_unit_flips_in_stock(self):
        self.place_order((self.product1, 5))

        self.refresh(self.product1)
        self.assertEqual(self.product1.quantity, 0)
        self.assertFalse(self.product1.in_stock)

    def test_missing_cart(self):
        with self.assertRaises(EmptyCart):
            create_order(self.customer)

    def test_empty_cart(self):
        cart_services.get_cart(self.customer)

        with self.assertRaises(EmptyCart):
            create_order(self.customer)
        self.assertFalse(Order.objects.exists())

    def test_insufficient_stock_leaves_everything_untouched(self):
        """
        Given: Cart holds 2x P1 but P1 dropped to 1 unit
        When: Creating the order
        Then: InsufficientStock, cart untouched, P1 still 1
        """
        cart_services.add_item(self.customer, self.product1.id, 2)
        Product.objects.filter(pk=self.product1.pk).update(quantity=1)

        with self.assertRaises(InsufficientStock) as context:
            create_order(self.customer)

        self.assertIn('Test Product 1', str(context.exception.detail))
        self.refresh(self.product1)
        self.assertEqual(self.product1.quantity, 1)
        cart = Cart.objects.get(user=self.customer)
        self.assertEqual(cart.items.get().quantity, 2)
        self.assertFalse(Order.objects.exists())

    def test_third_of_four_items_failing_rolls_back(self):
        products = [
            Product.objects.create(
                name=f'Item {i}', price=Decimal('5.00'), quantity=10, category=self.category
            )
            for i in range(4)
        ]
        for product in products:
            cart_services.add_item(self.customer, product.id, 3)
        Product.objects.filter(pk=products[2].pk).update(quantity=2)

        with self.assertRaises(InsufficientStock) as context:
            create_order(self.customer)

        self.assertIn('Item 2', str(context.exception.detail))
        self.assertFalse(Order.objects.exists())
        self.assertFalse(OrderItem.objects.exists())
        self.assertEqual(
            [p.quantity for p in Product.objects.filter(pk__in=[p.pk for p in products]).order_by('name')],
            [10, 10, 2, 10],
        )
        self.assertEqual(Cart.objects.get(user=self.customer).items.count(), 4)

    def test_out_of_stock_product(self):
        cart_services.add_item(self.customer, self.product1.id, 1)
        Product.objects.filter(pk=self.product1.pk).update(in_stock=False)

        with self.assertRaises(OutOfStock):
            create_order(self.customer)

    def test_deleted_product(self):
        cart_services.add_item(self.customer, self.product1.id, 1)
        Product.objects.filter(pk=self.product1.pk).delete()

        with self.assertRaises(ProductGone):
            create_order(self.customer)
        self.assertEqual(Cart.objects.get(user=self.customer).items.count(), 1)

    def test_reservation_race_rolls_back_whole_checkout(self):
        """
        Given: Validation sees stale stock (as a concurrent checkout would)
        When: The conditional update finds too few units for the second line
        Then: InsufficientStock and the first line's reservation is undone
        """
        cart_services.add_item(self.customer, self.product1.id, 2)
        cart_services.add_item(self.customer, self.product2.id, 5)
        Product.objects.filter(pk=self.product2.pk).update(quantity=4)
        stale = {
            self.product1.pk: Product(pk=self.product1.pk, quantity=100, in_stock=True),
            self.product2.pk: Product(pk=self.product2.pk, quantity=100, in_stock=True),
        }

        with patch('orders.services.lock_products', return_value=stale):
            with self.assertRaises(InsufficientStock):
                create_order(self.customer)

        self.refresh(self.product1, self.product2)
        self.assertEqual(self.product1.quantity, 5)
        self.assertEqual(self.product2.quantity, 4)
        self.assertFalse(Order.objects.exists())
        self.assertTrue(Cart.objects.filter(user=self.customer).exists())


class CancelOrderTestCase(OrderTestMixin, TestCase):

    def test_cancel_releases_stock(self):
        """
        Given: Pending order for 2x P1
        When: The owner cancels it
        Then: Order cancelled, P1 back up by 2 and in stock
        """
        order = self.place_order((self.product1, 2))

        order = cancel_order(self.customer, order.id)

        self.assertEqual(order.status, Order.Status.CANCELLED)
        self.refresh(self.product1)
        self.assertEqual(self.product1.quantity, 5)
        self.assertTrue(self.product1.in_stock)

    def test_cancel_restores_in_stock_flag(self):
        order = self.place_order((self.product1, 5))
        self.refresh(self.product1)
        self.assertFalse(self.product1.in_stock)

        cancel_order(self.customer, order.id)

        self.refresh(self.product1)
        self.assertEqual(self.product1.quantity, 5)
        self.assertTrue(self.product1.in_stock)

    def test_double_cancel_releases_once(self):
        order = self.place_order((self.product1, 2))
        cancel_order(self.customer, order.id)

        with self.assertRaises(InvalidTransition) as context:
            cancel_order(self.customer, order.id)

        self.assertIn('cancelled', str(context.exception.detail))
        self.refresh(self.product1)
        self.assertEqual(self.product1.quantity, 5)

    def test_only_pending_orders_can_be_cancelled(self):
        order = self.place_order((self.product1, 2))
        update_order_status(self.admin, order.id, Order.Status.CONFIRMED)

        with self.assertRaises(InvalidTransition) as context:
            cancel_order(self.customer, order.id)

        self.assertIn('confirmed', str(context.exception.detail))
        self.refresh(self.product1)
        self.assertEqual(self.product1.quantity, 3)

    def test_other_customer_cannot_cancel(self):
        order = self.place_order((self.product1, 2))
        intruder = make_user('intruder@example.com')

        with self.assertRaises(Forbidden):
            cancel_order(intruder, order.id)

        order.refresh_from_db()
        self.assertEqual(order.status, Order.Status.PENDING)

    def test_cancel_with_deleted_product_skips_release(self):
        order = self.place_order((self.product1, 1), (self.product2, 2))
        OrderItem.objects.filter(product=self.product1).update(product=None)

        cancel_order(self.customer, order.id)

        self.refresh(self.product2)
        self.assertEqual(self.product2.quantity, 50)


class OrderStatusTestCase(OrderTestMixin, TestCase):

    def test_happy_path_to_delivered(self):
        order = self.place_order((self.product1, 1))

        for new_status in ('confirmed', 'shipped', 'delivered'):
            order = update_order_status(self.admin, order.id, new_status)
            self.assertEqual(order.status, new_status)

        self.refresh(self.product1)
        self.assertEqual(self.product1.quantity, 4)

    def test_cancel_from_every_live_state_releases_exact_quantities(self):
        paths = {
            'pending': [],
            'confirmed': ['confirmed'],
            'shipped': ['confirmed', 'shipped'],
        }
        for state, steps in paths.items():
            with self.subTest(state=state):
                self.refresh(self.product1, self.product2)
                before = (self.product1.quantity, self.product2.quantity)
                order = self.place_order((self.product1, 2), (self.product2, 3))
                for step in steps:
                    update_order_status(self.admin, order.id, step)

                update_order_status(self.admin, order.id, Order.Status.CANCELLED)

                self.refresh(self.product1, self.product2)
                self.assertEqual((self.product1.quantity, self.product2.quantity), before)

    def test_terminal_states_reject_every_status(self):
        """
        Given: A delivered order and a cancelled order
        When: Changing their status to anything
        Then: InvalidTransition and nothing changes
        """
        delivered = self.place_order((self.product1, 1))
        for step in ('confirmed', 'shipped', 'delivered'):
            update_order_status(self.admin, delivered.id, step)
        cancelled = self.place_order((self.product2, 1))
        update_order_status(self.admin, cancelled.id, 'cancelled')
        self.refresh(self.product1, self.product2)
        stock = (self.product1.quantity, self.product2.quantity)

        for order in (delivered, cancelled):
            for new_status in Order.Status.values:
                with self.subTest(order=order.status, new_status=new_status):
                    with self.assertRaises(InvalidTransition):
                        update_order_status(self.admin, order.id, new_status)

        delivered.refresh_from_db()
        cancelled.refresh_from_db()
        self.assertEqual(delivered.status, Order.Status.DELIVERED)
        self.assertEqual(cancelled.status, Order.Status.CANCELLED)
        self.refresh(self.product1, self.product2)
        self.assertEqual((self.product1.quantity, self.product2.quantity), stock)

    def test_delivered_order_cannot_be_cancelled(self):
        order = self.place_order((self.product1, 2))
        Order.objects.filter(pk=order.pk).update(status=Order.Status.DELIVERED)

        with self.assertRaises(InvalidTransition):
            update_order_status(self.admin, order.id, Order.Status.CANCELLED)

        self.refresh(self.product1)
        self.assertEqual(self.product1.quantity, 3)

    def test_skipping_a_state_is_invalid(self):
        order = self.place_order((self.product1, 1))

        with self.assertRaises(InvalidTransition):
            update_order_status(self.admin, order.id, Order.Status.DELIVERED)

    def test_unknown_status(self):
        order = self.place_order((self.product1, 1))

        with self.assertRaises(ValidationFailed):
            update_order_status(self.admin, order.id, 'lost')

    def test_requires_admin(self):
        order = self.place_order((self.product1, 1))

        with self.assertRaises(Forbidden):
            update_order_status(self.customer, order.id, Order.Status.CONFIRMED)


class OrderQueryTestCase(OrderTestMixin, TestCase):

    def test_get_order_owner_or_admin(self):
        order = self.place_order((self.product1, 1))

        self.assertEqual(get_order(self.customer, order.id).pk, order.pk)
        self.assertEqual(get_order(self.admin, order.id).pk, order.pk)
        with self.assertRaises(Forbidden):
            get_order(make_user('other@example.com'), order.id)

    def test_list_orders_filters_and_sorts(self):
        other = make_user('other@example.com')
        cheap = self.place_order((self.product1, 1))
        pricey = self.place_order((self.product2, 2), user=other)
        update_order_status(self.admin, pricey.id, 'confirmed')

        by_total = list(list_orders(self.admin, OrderQueryOptions(sort_by='total')))
        self.assertEqual([o.pk for o in by_total], [pricey.pk, cheap.pk])

        ascending = list(list_orders(self.admin, OrderQueryOptions(sort_by='total', descending=False)))
        self.assertEqual([o.pk for o in ascending], [cheap.pk, pricey.pk])

        confirmed = list(list_orders(self.admin, OrderQueryOptions(status='confirmed')))
        self.assertEqual([o.pk for o in confirmed], [pricey.pk])

        mine = list(list_orders(self.admin, OrderQueryOptions(user_id=self.customer.pk)))
        self.assertEqual([o.pk for o in mine], [cheap.pk])

    def test_list_orders_rejects_unknown_sort_field(self):
        with self.assertRaises(ValidationFailed):
            list(list_orders(self.admin, OrderQueryOptions(sort_by='password')))

    def test_order_stats(self):
        self.place_order((self.product1, 1))
        cancelled = self.place_order((self.product2, 1))
        update_order_status(self.admin, cancelled.id, 'cancelled')

        stats = order_stats(self.admin)

        self.assertEqual(stats['total_orders'], 2)
        self.assertEqual(stats['pending_orders'], 1)
        self.assertEqual(stats['cancelled_orders'], 1)
        self.assertEqual(Decimal(stats['total_revenue']), Decimal('10.00'))


class OrderNotificationTestCase(OrderTestMixin, TestCase):

    def test_confirmation_email_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            order = self.place_order((self.product1, 2))

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(order.order_number, mail.outbox[0].subject)
        self.assertEqual(mail.outbox[0].to, ['customer@example.com'])
        self.assertIn('Test Product 1', mail.outbox[0].body)

    def test_no_email_when_checkout_fails(self):
        cart_services.add_item(self.customer, self.product1.id, 2)
        Product.objects.filter(pk=self.product1.pk).update(quantity=1)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(InsufficientStock):
                create_order(self.customer)

        self.assertEqual(callbacks, [])
        self.assertEqual(mail.outbox, [])

    def test_queue_failure_does_not_fail_order(self):
        broken = MagicMock()
        broken.delay.side_effect = ConnectionError('broker unavailable')

        with patch('notifications.tasks.send_order_confirmation', broken):
            with self.captureOnCommitCallbacks(execute=True):
                order = self.place_order((self.product1, 2))

        broken.delay.assert_called_once_with(str(order.pk))
        self.assertTrue(Order.objects.filter(pk=order.pk).exists())
        self.refresh(self.product1)
        self.assertEqual(self.product1.quantity, 3)

    def test_status_update_email(self):
        order = self.place_order((self.product1, 1))

        with self.captureOnCommitCallbacks(execute=True):
            update_order_status(self.admin, order.id, Order.Status.CONFIRMED)

        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('confirmed', mail.outbox[0].body)

    def test_customer_cancel_email(self):
        order = self.place_order((self.product1, 1))

        with self.captureOnCommitCallbacks(execute=True):
            cancel_order(self.customer, order.id)

        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(order.order_number, mail.outbox[0].subject)
        self.assertIn('Your order has been cancelled.', mail.outbox[0].body)


@skipUnless(connection.vendor == 'postgresql', 'Row locks require PostgreSQL')
class ConcurrentCheckoutTestCase(TransactionTestCase):
    """
    Two customers race for the last unit.
    Uses TransactionTestCase for proper multi-threading support.
    """

    def setUp(self):
        self.category = Category.objects.create(name='Concurrent Test Category')
        self.product = Product.objects.create(
            name='Limited Stock Product',
            price=Decimal('50.00'),
            quantity=1,
            category=self.category,
        )
        self.buyers = [make_user(f'buyer{i}@example.com') for i in range(2)]
        for buyer in self.buyers:
            cart_services.add_item(buyer, self.product.id, 1)

    def test_concurrent_checkouts_no_overselling(self):
        """
        Given: 1 unit in stock, in two carts
        When: Both customers check out at once
        Then: Exactly one order, the other fails on stock, quantity 0
        """
        results = {}
        barrier = threading.Barrier(2)

        def checkout(buyer):
            try:
                barrier.wait()
                results[buyer.email] = create_order(buyer).status
            except (InsufficientStock, OutOfStock) as e:
                results[buyer.email] = type(e).__name__
            finally:
                connection.close()

        threads = [threading.Thread(target=checkout, args=(buyer,)) for buyer in self.buyers]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.product.refresh_from_db()
        self.assertEqual(sorted(results.values()).count(Order.Status.PENDING), 1)
        self.assertEqual(Order.objects.count(), 1)
        self.assertEqual(self.product.quantity, 0)
        self.assertFalse(self.product.in_stock)


class OrderAPITestCase(OrderTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.client.force_authenticate(user=self.customer)

    def test_checkout_endpoint(self):
        cart_services.add_item(self.customer, self.product1.id, 2)

        response = self.client.post('/api/orders/', {'notes': 'fragile'}, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data['success'])
        data = response.data['data']
        self.assertEqual(data['status'], 'pending')
        self.assertEqual(data['total'], '20.00')
        self.assertEqual(data['item_count'], 1)
        self.assertEqual(data['items'][0]['product_name'], 'Test Product 1')

    def test_checkout_empty_cart(self):
        response = self.client.post('/api/orders/', {}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {'success': False, 'error': 'Cart is empty. Cannot create order.'})

    def test_checkout_insufficient_stock(self):
        cart_services.add_item(self.customer, self.product1.id, 2)
        Product.objects.filter(pk=self.product1.pk).update(quantity=1)

        response = self.client.post('/api/orders/', {}, format='json')

        self.assertEqual(response.status_code, 409)
        self.assertFalse(response.data['success'])

    def test_list_detail_and_cancel(self):
        order = self.place_order((self.product1, 1))

        response = self.client.get('/api/orders/')
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(f'/api/orders/{order.id}/')
        self.assertEqual(response.data['data']['order_number'], order.order_number)

        response = self.client.patch(f'/api/orders/{order.id}/cancel/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['status'], 'cancelled')

        response = self.client.patch(f'/api/orders/{order.id}/cancel/')
        self.assertEqual(response.status_code, 409)

    def test_cancel_someone_elses_order(self):
        order = self.place_order((self.product1, 1), user=make_user('other@example.com'))

        response = self.client.patch(f'/api/orders/{order.id}/cancel/')

        self.assertEqual(response.status_code, 403)

    def test_unknown_order(self):
        response = self.client.get('/api/orders/00000000-0000-0000-0000-000000000000/')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error'], 'Order not found')

    def test_customer_cannot_use_admin_endpoints(self):
        self.assertEqual(self.client.get('/api/admin/orders/').status_code, 403)
        self.assertEqual(self.client.get('/api/admin/orders/stats/').status_code, 403)

    def test_unauthenticated(self):
        response = APIClient().get('/api/orders/')

        self.assertEqual(response.status_code, 401)

    def test_admin_status_and_list(self):
        order = self.place_order((self.product1, 1))
        admin_client = APIClient()
        admin_client.force_authenticate(user=self.admin)

        response = admin_client.patch(
            f'/api/admin/orders/{order.id}/status/', {'status': 'confirmed'}, format='json'
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['status'], 'confirmed')

        response = admin_client.patch(
            f'/api/admin/orders/{order.id}/status/', {'status': 'bogus'}, format='json'
        )
        self.assertEqual(response.status_code, 400)

        response = admin_client.get('/api/admin/orders/', {'status': 'confirmed', 'sort_by': 'total'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 1)

        response = admin_client.get('/api/admin/orders/', {'sort_by': 'password'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('sort_by', response.data['details'])

        response = admin_client.get('/api/admin/orders/stats/')
        self.assertEqual(response.data['data']['confirmed_orders'], 1)
