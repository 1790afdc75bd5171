"""
Catalog Service Layer - categories, products and product statistics.

Stock movements do not live here (see inventory.ledger); owners may still
set quantity and in_stock directly when editing a product.

Deleting a product:
    - refused while a non-cancelled order still references it
    - removes it from every cart and recomputes those carts' totals
    - runs as one transaction
"""
import bisect
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Avg, Count, Max, Min, Q, Sum

from cart.services import prune_product
from core.exceptions import Conflict, NotFound
from core.permissions import Role, ensure_owner_or_admin, ensure_role
from .models import Category, Product

logger = logging.getLogger(__name__)

PRICE_BUCKETS = [0, 50, 100, 500, 1000, 5000]


@dataclass
class ProductQueryOptions:
    """Typed product list filters, parsed from query parameters."""
    category_id: Optional[uuid.UUID] = None
    in_stock: Optional[bool] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    search: str = ''


# =============================================================================
# Categories
# =============================================================================

def list_categories():
    return Category.objects.annotate(product_count=Count('products'))


def get_category(category_id) -> Category:
    category = list_categories().filter(pk=category_id).first()
    if category is None:
        raise NotFound('Category not found')
    return category


def _ensure_category_name_free(name, exclude_id=None):
    clash = Category.objects.filter(name__iexact=name)
    if exclude_id is not None:
        clash = clash.exclude(pk=exclude_id)
    if clash.exists():
        raise Conflict('Category with this name already exists')


@transaction.atomic
def create_category(actor, *, name, description='') -> Category:
    ensure_role(actor, Role.ADMIN)
    name = name.strip()
    _ensure_category_name_free(name)
    try:
        with transaction.atomic():
            category = Category.objects.create(
                name=name,
                description=description.strip(),
                created_by=actor,
            )
    except IntegrityError:
        raise Conflict('Category with this name already exists')

    logger.info(f"Category {category.name} created by {actor.pk}")
    return get_category(category.pk)


@transaction.atomic
def update_category(actor, category_id, **changes) -> Category:
    ensure_role(actor, Role.ADMIN)
    category = Category.objects.select_for_update().filter(pk=category_id).first()
    if category is None:
        raise NotFound('Category not found')

    if 'name' in changes:
        changes['name'] = changes['name'].strip()
        _ensure_category_name_free(changes['name'], exclude_id=category.pk)
    for field, value in changes.items():
        setattr(category, field, value)
    category.save()
    return get_category(category.pk)


@transaction.atomic
def delete_category(actor, category_id) -> None:
    ensure_role(actor, Role.ADMIN)
    category = Category.objects.select_for_update().filter(pk=category_id).first()
    if category is None:
        raise NotFound('Category not found')
    if category.products.exists():
        raise Conflict('Cannot delete category with existing products')

    category.delete()
    logger.info(f"Category {category_id} deleted by {actor.pk}")


# =============================================================================
# Products
# =============================================================================

def _products():
    return Product.objects.select_related('category', 'created_by')


def list_products(options: ProductQueryOptions = None):
    options = options or ProductQueryOptions()
    queryset = _products()

    if options.category_id:
        queryset = queryset.filter(category_id=options.category_id)
    if options.in_stock is not None:
        queryset = queryset.filter(in_stock=options.in_stock)
    if options.min_price is not None:
        queryset = queryset.filter(price__gte=options.min_price)
    if options.max_price is not None:
        queryset = queryset.filter(price__lte=options.max_price)
    if options.search:
        queryset = queryset.filter(
            Q(name__icontains=options.search) |
            Q(description__icontains=options.search) |
            Q(category__name__icontains=options.search)
        )
    return queryset


def get_product(product_id) -> Product:
    product = _products().filter(pk=product_id).first()
    if product is None:
        raise NotFound('Product not found')
    return product


def _category_or_404(category_id) -> Category:
    category = Category.objects.filter(pk=category_id).first()
    if category is None:
        raise NotFound('Category not found')
    return category


@transaction.atomic
def create_product(actor, *, name, price, category_id, description='',
                   quantity=0, in_stock=True, images=None) -> Product:
    ensure_role(actor, Role.VENDOR, Role.ADMIN)
    category = _category_or_404(category_id)

    product = Product.objects.create(
        name=name.strip(),
        description=description.strip(),
        price=price,
        quantity=quantity,
        in_stock=in_stock,
        images=images or [],
        category=category,
        created_by=actor,
    )
    logger.info(f"Product {product.name} created by {actor.role} {actor.pk}")
    return get_product(product.pk)


@transaction.atomic
def update_product(actor, product_id, **changes) -> Product:
    """Owner-or-admin edit of catalog fields, including manual stock levels."""
    product = Product.objects.select_for_update().filter(pk=product_id).first()
    if product is None:
        raise NotFound('Product not found')
    ensure_role(actor, Role.VENDOR, Role.ADMIN)
    ensure_owner_or_admin(
        actor, product.created_by_id,
        'Access denied. You can only update your own products.',
    )

    if 'category_id' in changes:
        product.category = _category_or_404(changes.pop('category_id'))
    for field in ('name', 'description'):
        if field in changes:
            changes[field] = changes[field].strip()
    for field, value in changes.items():
        setattr(product, field, value)
    product.save()

    logger.info(f"Product {product.pk} updated by {actor.pk}")
    return get_product(product.pk)


@transaction.atomic
def delete_product(actor, product_id) -> None:
    from orders.models import Order, OrderItem

    product = Product.objects.select_for_update().filter(pk=product_id).first()
    if product is None:
        raise NotFound('Product not found')
    ensure_role(actor, Role.VENDOR, Role.ADMIN)
    ensure_owner_or_admin(
        actor, product.created_by_id,
        'Access denied. You can only delete your own products.',
    )

    open_orders = OrderItem.objects.filter(product=product).exclude(
        order__status=Order.Status.CANCELLED
    )
    if open_orders.exists():
        raise Conflict('Cannot delete a product referenced by open orders')

    pruned = prune_product(product.pk)
    product.delete()
    logger.info(f"Product {product_id} deleted by {actor.pk}; pruned from {pruned} carts")


def list_vendor_products(actor):
    ensure_role(actor, Role.VENDOR)
    return _products().filter(created_by=actor).order_by('-created_at')


# =============================================================================
# Statistics
# =============================================================================

def category_stats():
    """Per-category product count, price range and total stock."""
    return list(
        Product.objects.values('category_id', 'category__name')
        .annotate(
            total_products=Count('id'),
            avg_price=Avg('price'),
            min_price=Min('price'),
            max_price=Max('price'),
            total_stock=Sum('quantity'),
        )
        .order_by('-total_products', 'category__name')
    )


def top_products(limit=10):
    return _products().order_by('-price', 'name')[:limit]


def low_stock_products(threshold=None):
    if threshold is None:
        threshold = settings.LOW_STOCK_THRESHOLD
    return _products().filter(quantity__lte=threshold).order_by('quantity', 'name')


def _bucket_label(index):
    if index == len(PRICE_BUCKETS) - 1:
        return f"{PRICE_BUCKETS[-1]}+"
    return f"{PRICE_BUCKETS[index]}-{PRICE_BUCKETS[index + 1]}"


def price_distribution():
    """
    Group products into the fixed price buckets.

    Every bucket is reported, empty ones with a zero count.
    """
    buckets = [
        {'bucket': _bucket_label(i), 'min_price': lower, 'count': 0, 'products': []}
        for i, lower in enumerate(PRICE_BUCKETS)
    ]
    for row in Product.objects.values('name', 'price').order_by('price', 'name'):
        index = bisect.bisect_right(PRICE_BUCKETS, row['price']) - 1
        bucket = buckets[max(index, 0)]
        bucket['count'] += 1
        bucket['products'].append({'name': row['name'], 'price': row['price']})
    return buckets
