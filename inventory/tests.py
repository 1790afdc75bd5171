"""
Tests for the inventory ledger and the catalog.

Test Cases:
1. reserve / release move quantity and keep in_stock consistent
2. Quantity never goes negative
3. Category uniqueness and protected deletion
4. Product ownership rules and cart pruning on delete
5. Product filters and statistics
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework.test import APIClient

from accounts.models import User
from cart import services as cart_services
from cart.models import Cart
from core.exceptions import Conflict, Forbidden, InsufficientStock, NotFound, OutOfStock, ProductGone
from core.permissions import Role
from inventory import ledger, services
from inventory.models import Category, Product
from orders.models import Order
from orders.services import create_order, update_order_status


def make_user(email, role=Role.CUSTOMER):
    return User.objects.create_user(
        email=email,
        password='password123',
        first_name='Test',
        last_name='User',
        role=role,
    )


class LedgerTestCase(TestCase):
    """Stock movements through reserve() and release()."""

    def setUp(self):
        self.category = Category.objects.create(name='Ledger Category')
        self.product = Product.objects.create(
            name='Ledger Product',
            price=Decimal('10.00'),
            quantity=5,
            category=self.category,
        )

    def test_reserve_decrements(self):
        ledger.reserve(self.product.id, 2)

        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 3)
        self.assertTrue(self.product.in_stock)

    def test_reserve_last_units_marks_out_of_stock(self):
        ledger.reserve(self.product.id, 5)

        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 0)
        self.assertFalse(self.product.in_stock)

    def test_reserve_more_than_available(self):
        with self.assertRaises(InsufficientStock) as context:
            ledger.reserve(self.product.id, 6)

        self.assertIn('Only 5 available', str(context.exception.detail))
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 5)

    def test_reserve_when_flagged_out_of_stock(self):
        Product.objects.filter(pk=self.product.pk).update(in_stock=False)

        with self.assertRaises(OutOfStock):
            ledger.reserve(self.product.id, 1)

    def test_reserve_missing_product(self):
        with self.assertRaises(ProductGone):
            ledger.reserve('00000000-0000-0000-0000-000000000000', 1)

    def test_reserve_rejects_non_positive_quantity(self):
        with self.assertRaises(ValueError):
            ledger.reserve(self.product.id, 0)

    def test_release_always_sets_in_stock(self):
        """
        Given: A product an owner switched off by hand
        When: Releasing units to it
        Then: Quantity grows and in_stock is back on
        """
        Product.objects.filter(pk=self.product.pk).update(in_stock=False)

        self.assertTrue(ledger.release(self.product.id, 2))

        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 7)
        self.assertTrue(self.product.in_stock)

    def test_release_missing_product(self):
        self.assertFalse(ledger.release('00000000-0000-0000-0000-000000000000', 1))

    def test_quantity_never_negative(self):
        sequence = [('reserve', 3), ('reserve', 3), ('release', 1), ('reserve', 3),
                    ('reserve', 1), ('release', 4), ('reserve', 5), ('reserve', 4)]
        for operation, qty in sequence:
            try:
                getattr(ledger, operation)(self.product.id, qty)
            except (InsufficientStock, OutOfStock):
                pass
            self.product.refresh_from_db()
            self.assertGreaterEqual(self.product.quantity, 0)
            self.assertEqual(self.product.in_stock, self.product.quantity > 0)

        self.assertEqual(self.product.quantity, 0)

    def test_lock_products_skips_missing(self):
        locked = ledger.lock_products([self.product.id, None])

        self.assertEqual(list(locked), [self.product.pk])


class CategoryServiceTestCase(TestCase):

    def setUp(self):
        self.admin = make_user('admin@example.com', role=Role.ADMIN)
        self.vendor = make_user('vendor@example.com', role=Role.VENDOR)

    def test_create_category(self):
        category = services.create_category(self.admin, name='  Garden ', description='Outdoor')

        self.assertEqual(category.name, 'Garden')
        self.assertEqual(category.created_by, self.admin)
        self.assertEqual(category.product_count, 0)

    def test_duplicate_name_is_case_insensitive(self):
        services.create_category(self.admin, name='Garden')

        with self.assertRaises(Conflict):
            services.create_category(self.admin, name='garden')

    def test_only_admin_creates(self):
        with self.assertRaises(Forbidden):
            services.create_category(self.vendor, name='Garden')

    def test_rename_to_taken_name(self):
        services.create_category(self.admin, name='Garden')
        tools = services.create_category(self.admin, name='Tools')

        with self.assertRaises(Conflict):
            services.update_category(self.admin, tools.id, name='GARDEN')

    def test_delete_refused_while_products_exist(self):
        category = services.create_category(self.admin, name='Garden')
        Product.objects.create(name='Rake', price=Decimal('12.00'), category=category)

        with self.assertRaises(Conflict):
            services.delete_category(self.admin, category.id)
        self.assertTrue(Category.objects.filter(pk=category.pk).exists())

    def test_delete_empty_category(self):
        category = services.create_category(self.admin, name='Garden')

        services.delete_category(self.admin, category.id)

        self.assertFalse(Category.objects.filter(pk=category.pk).exists())


class ProductServiceTestCase(TestCase):

    def setUp(self):
        self.admin = make_user('admin@example.com', role=Role.ADMIN)
        self.vendor = make_user('vendor@example.com', role=Role.VENDOR)
        self.rival = make_user('rival@example.com', role=Role.VENDOR)
        self.customer = make_user('customer@example.com')
        self.category = Category.objects.create(name='Tools')
        self.product = services.create_product(
            self.vendor,
            name='Hammer',
            price=Decimal('15.00'),
            quantity=20,
            category_id=self.category.id,
        )

    def test_create_sets_owner(self):
        self.assertEqual(self.product.created_by, self.vendor)
        self.assertEqual(self.product.category, self.category)

    def test_customer_cannot_create(self):
        with self.assertRaises(Forbidden):
            services.create_product(
                self.customer, name='Saw', price=Decimal('9.00'), category_id=self.category.id
            )

    def test_create_with_unknown_category(self):
        with self.assertRaises(NotFound):
            services.create_product(
                self.vendor, name='Saw', price=Decimal('9.00'),
                category_id='00000000-0000-0000-0000-000000000000',
            )

    def test_owner_and_admin_can_update(self):
        services.update_product(self.vendor, self.product.id, price=Decimal('17.50'))
        product = services.update_product(self.admin, self.product.id, name='Claw Hammer')

        self.assertEqual(product.price, Decimal('17.50'))
        self.assertEqual(product.name, 'Claw Hammer')

    def test_other_vendor_cannot_update_or_delete(self):
        with self.assertRaises(Forbidden):
            services.update_product(self.rival, self.product.id, price=Decimal('1.00'))
        with self.assertRaises(Forbidden):
            services.delete_product(self.rival, self.product.id)

    def test_delete_prunes_carts(self):
        """
        Given: The product sits in a cart next to another product
        When: The owner deletes it
        Then: The line is gone and the cart total is recomputed
        """
        pliers = services.create_product(
            self.vendor, name='Pliers', price=Decimal('4.00'), quantity=10,
            category_id=self.category.id,
        )
        cart_services.add_item(self.customer, self.product.id, 2)
        cart_services.add_item(self.customer, pliers.id, 1)

        services.delete_product(self.vendor, self.product.id)

        cart = Cart.objects.get(user=self.customer)
        self.assertEqual(cart.total, Decimal('4.00'))
        self.assertEqual(list(cart.items.values_list('product_name', flat=True)), ['Pliers'])
        self.assertFalse(Product.objects.filter(pk=self.product.pk).exists())

    def test_delete_refused_with_open_orders(self):
        cart_services.add_item(self.customer, self.product.id, 1)
        order = create_order(self.customer)

        with self.assertRaises(Conflict):
            services.delete_product(self.admin, self.product.id)

        update_order_status(self.admin, order.id, Order.Status.CANCELLED)
        services.delete_product(self.admin, self.product.id)

        self.assertIsNone(order.items.get().product)

    def test_vendor_products(self):
        services.create_product(
            self.rival, name='Wrench', price=Decimal('8.00'), category_id=self.category.id
        )

        names = [p.name for p in services.list_vendor_products(self.vendor)]

        self.assertEqual(names, ['Hammer'])

    def test_list_filters(self):
        garden = Category.objects.create(name='Garden')
        Product.objects.create(name='Shovel', price=Decimal('30.00'), quantity=0,
                               in_stock=False, category=garden)
        Product.objects.create(name='Gloves', price=Decimal('5.00'), quantity=3,
                               description='Leather work gloves', category=garden)

        def names(**filters):
            options = services.ProductQueryOptions(**filters)
            return sorted(p.name for p in services.list_products(options))

        self.assertEqual(names(category_id=garden.id), ['Gloves', 'Shovel'])
        self.assertEqual(names(in_stock=False), ['Shovel'])
        self.assertEqual(names(min_price=Decimal('10'), max_price=Decimal('20')), ['Hammer'])
        self.assertEqual(names(search='leather'), ['Gloves'])
        self.assertEqual(names(search='garden'), ['Gloves', 'Shovel'])


class ProductStatsTestCase(TestCase):

    def setUp(self):
        self.tools = Category.objects.create(name='Tools')
        self.books = Category.objects.create(name='Books')
        for name, price, quantity, category in [
            ('Hammer', '15.00', 20, self.tools),
            ('Drill', '120.00', 4, self.tools),
            ('Saw', '45.00', 10, self.tools),
            ('Novel', '12.00', 50, self.books),
            ('Piano Manual', '6000.00', 1, self.books),
        ]:
            Product.objects.create(name=name, price=Decimal(price), quantity=quantity, category=category)

    def test_category_stats(self):
        stats = {row['category__name']: row for row in services.category_stats()}

        self.assertEqual(stats['Tools']['total_products'], 3)
        self.assertEqual(stats['Tools']['total_stock'], 34)
        self.assertEqual(stats['Tools']['min_price'], Decimal('15.00'))
        self.assertEqual(stats['Tools']['max_price'], Decimal('120.00'))
        self.assertEqual(stats['Books']['total_products'], 2)

    def test_top_products(self):
        names = [p.name for p in services.top_products(limit=2)]

        self.assertEqual(names, ['Piano Manual', 'Drill'])

    def test_low_stock_default_threshold(self):
        names = [p.name for p in services.low_stock_products()]

        self.assertEqual(names, ['Piano Manual', 'Drill', 'Saw'])

    def test_low_stock_custom_threshold(self):
        names = [p.name for p in services.low_stock_products(threshold=4)]

        self.assertEqual(names, ['Piano Manual', 'Drill'])

    def test_price_distribution(self):
        buckets = {b['bucket']: b['count'] for b in services.price_distribution()}

        self.assertEqual(buckets, {
            '0-50': 3,
            '50-100': 0,
            '100-500': 1,
            '500-1000': 0,
            '1000-5000': 0,
            '5000+': 1,
        })


class CatalogAPITestCase(TestCase):

    def setUp(self):
        self.admin = make_user('admin@example.com', role=Role.ADMIN)
        self.vendor = make_user('vendor@example.com', role=Role.VENDOR)
        self.customer = make_user('customer@example.com')
        self.category = Category.objects.create(name='Tools')
        self.client = APIClient()

    def test_public_product_list(self):
        Product.objects.create(name='Hammer', price=Decimal('15.00'), quantity=3, category=self.category)

        response = self.client.get('/api/products/', {'in_stock': 'true', 'max_price': '20'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['data'][0]['category']['name'], 'Tools')

    def test_invalid_price_range(self):
        response = self.client.get('/api/products/', {'min_price': '50', 'max_price': '10'})

        self.assertEqual(response.status_code, 400)
        self.assertIn('min_price', response.data['details'])

    def test_vendor_creates_product(self):
        self.client.force_authenticate(user=self.vendor)

        response = self.client.post('/api/products/', {
            'name': 'Drill',
            'price': '120.00',
            'quantity': 4,
            'category_id': str(self.category.id),
        }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['data']['created_by']['email'], 'vendor@example.com')

    def test_customer_cannot_create_product(self):
        self.client.force_authenticate(user=self.customer)

        response = self.client.post('/api/products/', {
            'name': 'Drill', 'price': '120.00', 'category_id': str(self.category.id),
        }, format='json')

        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.data['success'])

    def test_anonymous_write_is_unauthenticated(self):
        response = self.client.post('/api/categories/', {'name': 'Garden'}, format='json')

        self.assertEqual(response.status_code, 401)

    def test_category_conflict(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post('/api/categories/', {'name': 'tools'}, format='json')

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error'], 'Category with this name already exists')

    def test_vendor_only_my_products(self):
        self.client.force_authenticate(user=self.customer)

        response = self.client.get('/api/products/vendor/my-products/')

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['error'], 'This endpoint is only for vendors')

    def test_stats_endpoints(self):
        Product.objects.create(name='Hammer', price=Decimal('15.00'), quantity=3, category=self.category)

        self.assertEqual(self.client.get('/api/products/top/').status_code, 200)
        self.assertEqual(self.client.get('/api/products/price-distribution/').status_code, 200)

        self.client.force_authenticate(user=self.admin)
        response = self.client.get('/api/products/low-stock/')
        self.assertEqual(response.data['threshold'], 10)
        self.assertEqual(response.data['count'], 1)

        response = self.client.get('/api/products/stats/')
        self.assertEqual(response.data['data'][0]['category_name'], 'Tools')
        self.assertEqual(response.data['data'][0]['avg_price'], '15.00')
