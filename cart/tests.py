"""
Tests for the cart aggregate.

Test Cases:
1. Lazy cart creation
2. Add / merge with price re-snapshot
3. Stock checks on add and update
4. Deleted product lines
5. Total always equals the sum of line subtotals
6. HTTP endpoints
"""
from decimal import Decimal

from django.db.models import Sum
from django.test import TestCase
from rest_framework.test import APIClient

from accounts.models import User
from core.exceptions import InsufficientStock, NotFound, ProductGone
from inventory.models import Category, Product
from cart import services
from cart.models import Cart, CartItem


class CartTestMixin:

    def setUp(self):
        self.user = User.objects.create_user(
            email='shopper@example.com',
            password='password123',
            first_name='Sam',
            last_name='Shopper',
        )
        self.category = Category.objects.create(name='Books')
        self.book = Product.objects.create(
            name='Django Book',
            price=Decimal('30.00'),
            quantity=10,
            category=self.category,
        )
        self.pen = Product.objects.create(
            name='Pen',
            price=Decimal('2.50'),
            quantity=100,
            category=self.category,
        )

    def assertTotalConsistent(self, cart):
        cart.refresh_from_db()
        expected = cart.items.aggregate(total=Sum('subtotal'))['total'] or Decimal('0.00')
        self.assertEqual(cart.total, expected)


class CartServiceTestCase(CartTestMixin, TestCase):

    def test_get_cart_creates_empty_cart_once(self):
        cart = services.get_cart(self.user)
        again = services.get_cart(self.user)

        self.assertEqual(cart.pk, again.pk)
        self.assertEqual(cart.total, Decimal('0.00'))
        self.assertEqual(Cart.objects.filter(user=self.user).count(), 1)

    def test_add_item_snapshots_name_and_price(self):
        cart = services.add_item(self.user, self.book.id, 2)

        item = cart.items.get()
        self.assertEqual(item.product_name, 'Django Book')
        self.assertEqual(item.price, Decimal('30.00'))
        self.assertEqual(item.subtotal, Decimal('60.00'))
        self.assertTotalConsistent(cart)

    def test_add_same_product_merges_and_reprices(self):
        """
        Given: A line for the book at 30.00
        When: The price changes and the book is added again
        Then: One line with merged quantity at the current price
        """
        services.add_item(self.user, self.book.id, 1)
        Product.objects.filter(pk=self.book.pk).update(price=Decimal('25.00'))

        cart = services.add_item(self.user, self.book.id, 2)

        item = cart.items.get()
        self.assertEqual(item.quantity, 3)
        self.assertEqual(item.price, Decimal('25.00'))
        self.assertEqual(item.subtotal, Decimal('75.00'))
        self.assertTotalConsistent(cart)

    def test_add_unknown_product(self):
        with self.assertRaises(NotFound):
            services.add_item(self.user, '00000000-0000-0000-0000-000000000000', 1)

    def test_add_more_than_available(self):
        with self.assertRaises(InsufficientStock):
            services.add_item(self.user, self.book.id, 11)

    def test_add_counts_existing_cart_quantity(self):
        services.add_item(self.user, self.book.id, 8)

        with self.assertRaises(InsufficientStock):
            services.add_item(self.user, self.book.id, 3)

        item = CartItem.objects.get(cart__user=self.user)
        self.assertEqual(item.quantity, 8)

    def test_add_out_of_stock_product(self):
        Product.objects.filter(pk=self.book.pk).update(in_stock=False)

        with self.assertRaises(InsufficientStock):
            services.add_item(self.user, self.book.id, 1)

    def test_update_item_uses_snapshot_price(self):
        cart = services.add_item(self.user, self.book.id, 1)
        item = cart.items.get()
        Product.objects.filter(pk=self.book.pk).update(price=Decimal('99.00'))

        cart = services.update_item(self.user, item.id, 4)

        item.refresh_from_db()
        self.assertEqual(item.quantity, 4)
        self.assertEqual(item.subtotal, Decimal('120.00'))
        self.assertTotalConsistent(cart)

    def test_update_item_checks_current_stock(self):
        cart = services.add_item(self.user, self.book.id, 1)
        item = cart.items.get()
        Product.objects.filter(pk=self.book.pk).update(quantity=3)

        with self.assertRaises(InsufficientStock):
            services.update_item(self.user, item.id, 4)

    def test_update_item_of_deleted_product(self):
        cart = services.add_item(self.user, self.book.id, 1)
        item = cart.items.get()
        Product.objects.filter(pk=self.book.pk).delete()

        with self.assertRaises(ProductGone):
            services.update_item(self.user, item.id, 2)

    def test_update_unknown_item(self):
        services.get_cart(self.user)

        with self.assertRaises(NotFound):
            services.update_item(self.user, '00000000-0000-0000-0000-000000000000', 1)

    def test_remove_and_clear_require_a_cart(self):
        with self.assertRaises(NotFound):
            services.clear_cart(self.user)
        with self.assertRaises(NotFound):
            services.remove_item(self.user, '00000000-0000-0000-0000-000000000000')

    def test_total_consistent_after_every_operation(self):
        cart = services.add_item(self.user, self.book.id, 2)
        self.assertTotalConsistent(cart)
        cart = services.add_item(self.user, self.pen.id, 4)
        self.assertTotalConsistent(cart)
        self.assertEqual(cart.total, Decimal('70.00'))

        pen_line = cart.items.get(product=self.pen)
        cart = services.update_item(self.user, pen_line.id, 1)
        self.assertTotalConsistent(cart)
        self.assertEqual(cart.total, Decimal('62.50'))

        cart = services.remove_item(self.user, pen_line.id)
        self.assertTotalConsistent(cart)
        self.assertEqual(cart.total, Decimal('60.00'))

        cart = services.clear_cart(self.user)
        self.assertTotalConsistent(cart)
        self.assertEqual(cart.total, Decimal('0.00'))
        self.assertFalse(cart.items.exists())

    def test_prune_product_recomputes_totals(self):
        services.add_item(self.user, self.book.id, 1)
        cart = services.add_item(self.user, self.pen.id, 2)

        touched = services.prune_product(self.book.id)

        self.assertEqual(touched, 1)
        cart.refresh_from_db()
        self.assertEqual(cart.total, Decimal('5.00'))
        self.assertEqual(cart.items.count(), 1)


class CartAPITestCase(CartTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.client.force_authenticate(user=self.user)

    def test_get_cart(self):
        response = self.client.get('/api/cart/')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data']['items'], [])
        self.assertEqual(response.data['data']['total'], '0.00')

    def test_add_update_remove_item(self):
        response = self.client.post(
            '/api/cart/items/',
            {'product_id': str(self.book.id), 'quantity': 2},
            format='json',
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['data']['total'], '60.00')
        item_id = response.data['data']['items'][0]['id']

        response = self.client.patch(f'/api/cart/items/{item_id}/', {'quantity': 3}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['total'], '90.00')

        response = self.client.delete(f'/api/cart/items/{item_id}/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['item_count'], 0)

    def test_add_item_insufficient_stock_envelope(self):
        response = self.client.post(
            '/api/cart/items/',
            {'product_id': str(self.book.id), 'quantity': 50},
            format='json',
        )

        self.assertEqual(response.status_code, 409)
        self.assertFalse(response.data['success'])
        self.assertIn('Insufficient stock', response.data['error'])

    def test_add_item_validation_error(self):
        response = self.client.post(
            '/api/cart/items/',
            {'product_id': str(self.book.id), 'quantity': 0},
            format='json',
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn('quantity', response.data['details'])

    def test_clear_cart(self):
        self.client.post(
            '/api/cart/items/',
            {'product_id': str(self.pen.id), 'quantity': 1},
            format='json',
        )

        response = self.client.delete('/api/cart/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['total'], '0.00')

    def test_requires_authentication(self):
        response = APIClient().get('/api/cart/')

        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.data['success'])
