"""
Management command to seed the database with sample data.

Generates:
- One admin, one vendor and one customer account
- Categories
- Products with random prices and stock, owned by the vendor

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing catalog and orders first
"""
import random
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from accounts.models import User
from core.permissions import Role
from inventory.models import Category, Product

SEED_PASSWORD = 'password123'

SEED_USERS = [
    ('admin@example.com', 'Ada', 'Admin', Role.ADMIN),
    ('vendor@example.com', 'Victor', 'Vendor', Role.VENDOR),
    ('customer@example.com', 'Carla', 'Customer', Role.CUSTOMER),
]

PRODUCT_TEMPLATES = {
    'Electronics': [
        'Noise Cancelling Earbuds', 'Portable Projector', 'HDMI Switch',
        'Solar Charger', 'Fitness Tracker', 'Tablet Case', 'Desk Microphone',
        'Trackball', 'Numeric Keypad', 'E-Reader',
    ],
    'Clothing': [
        'Linen Shirt', 'Chino Trousers', 'Fleece Hoodie', 'Windbreaker',
        'Trail Sneakers', 'Canvas Cap', 'Merino Socks', 'Summer Skirt',
        'Swim Trunks', 'Puffer Vest',
    ],
    'Home & Garden': [
        'Watering Can', 'Herb Planter', 'Table Lamp', 'Cushion Cover',
        'Door Mat', 'Cutting Board', 'Duvet Cover', 'Alarm Clock',
        'Mirror Set', 'Laundry Basket',
    ],
    'Sports & Outdoors': [
        'Resistance Bands', 'Kettlebell', 'Jump Rope', 'Insulated Flask',
        'Sleeping Bag', 'Trekking Poles', 'Climbing Chalk Bag', 'Frisbee',
        'Badminton Set', 'Snorkel Mask',
    ],
    'Books': [
        'Mystery Novel', 'Poetry Collection', 'Baking Handbook', 'Memoir',
        'Fantasy Saga', 'Atlas', 'Data Science Primer', 'Photography Book',
        'Phrasebook', 'Picture Book',
    ],
}

ADJECTIVES = [
    'Everyday', 'Signature', 'Studio', 'Heritage', 'Urban',
    'Rustic', 'Recycled', 'Slim', 'Travel', 'Core',
]


class Command(BaseCommand):
    help = 'Seed the database with sample users, categories and products'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing catalog, carts and orders before seeding',
        )
        parser.add_argument(
            '--products',
            type=int,
            default=100,
            help='Number of products to create (default: 100)',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            users = self._create_users()
            categories = self._create_categories(users[Role.ADMIN])
            self._create_products(options['products'], categories, users[Role.VENDOR])

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))
        self.stdout.write(f'All seed accounts use the password "{SEED_PASSWORD}"')

    def _clear_data(self):
        """Clear catalog, carts and orders; accounts are kept."""
        from cart.models import Cart
        from orders.models import Order
        from reviews.models import Review

        Order.objects.all().delete()
        Cart.objects.all().delete()
        Review.objects.all().delete()
        Product.objects.all().delete()
        Category.objects.all().delete()

        self.stdout.write(self.style.WARNING('All existing catalog data cleared.'))

    def _create_users(self):
        users = {}
        for email, first_name, last_name, role in SEED_USERS:
            user = User.objects.filter(email=email).first()
            if user is None:
                user = User.objects.create_user(
                    email=email,
                    password=SEED_PASSWORD,
                    first_name=first_name,
                    last_name=last_name,
                    role=role,
                    is_staff=role == Role.ADMIN,
                )
                self.stdout.write(f'  Created {role}: {email}')
            users[role] = user
        return users

    def _create_categories(self, admin):
        categories = []
        for name in PRODUCT_TEMPLATES:
            category, created = Category.objects.get_or_create(
                name=name,
                defaults={'description': f'{name} products', 'created_by': admin},
            )
            categories.append(category)
            if created:
                self.stdout.write(f'  Created category: {name}')

        self.stdout.write(self.style.SUCCESS(f'Created {len(categories)} categories'))
        return categories

    def _create_products(self, count, categories, vendor):
        """Create sample products; roughly one in ten starts out of stock."""
        products = []
        self.stdout.write(f'Creating {count} products...')

        for i in range(count):
            category = random.choice(categories)
            base_name = random.choice(PRODUCT_TEMPLATES[category.name])
            quantity = 0 if random.random() < 0.1 else random.randint(1, 200)

            products.append(Product(
                name=f"{random.choice(ADJECTIVES)} {base_name} #{i + 1}",
                description=f"{base_name} from our {category.name.lower()} range.",
                price=Decimal(str(round(random.uniform(5, 1500), 2))),
                quantity=quantity,
                in_stock=quantity > 0,
                category=category,
                created_by=vendor,
            ))

        Product.objects.bulk_create(products)
        self.stdout.write(self.style.SUCCESS(f'Created {len(products)} products'))
        return products
