"""
Inventory Ledger - the only code path that moves product stock.

reserve():
    Single conditional UPDATE (compare-and-swap on quantity): decrements only
    if the product is in stock and holds enough units, flipping in_stock off
    when the last unit goes. Concurrent reservations can never drive
    quantity below zero, whatever the isolation level.

release():
    Increments quantity and always sets in_stock back on, even if the product
    had been switched off by hand.

Both run inside the caller's transaction so they roll back with it.
"""
import logging
from typing import Dict, Iterable

from django.db import transaction
from django.db.models import Case, F, Value, When
from django.utils import timezone

from core.exceptions import InsufficientStock, OutOfStock, ProductGone
from .models import Product

logger = logging.getLogger(__name__)


def lock_products(product_ids: Iterable) -> Dict:
    """
    Lock product rows for the rest of the current transaction.

    Rows are locked in primary-key order so two checkouts touching the same
    products cannot deadlock. Missing ids are simply absent from the result.
    """
    ids = {pid for pid in product_ids if pid is not None}
    products = Product.objects.select_for_update().filter(pk__in=ids).order_by('pk')
    return {p.pk: p for p in products}


@transaction.atomic
def reserve(product_id, qty: int, label: str = None) -> None:
    """
    Take ``qty`` units of a product.

    Raises:
        ProductGone: product no longer exists
        OutOfStock: product is flagged out of stock
        InsufficientStock: fewer than ``qty`` units available
    """
    if qty < 1:
        raise ValueError("Reservation quantity must be positive")

    updated = Product.objects.filter(
        pk=product_id,
        in_stock=True,
        quantity__gte=qty,
    ).update(
        quantity=F('quantity') - qty,
        in_stock=Case(
            When(quantity__gt=qty, then=Value(True)),
            default=Value(False),
        ),
        updated_at=timezone.now(),
    )
    if updated:
        logger.debug(f"Reserved {qty} of product {product_id}")
        return

    product = Product.objects.filter(pk=product_id).only('name', 'quantity', 'in_stock').first()
    name = label or (product.name if product else str(product_id))
    if product is None:
        raise ProductGone(f"Product {name} no longer exists")
    if not product.in_stock:
        raise OutOfStock(f"Product {name} is out of stock")
    raise InsufficientStock(
        f"Insufficient stock for {name}. Only {product.quantity} available."
    )


@transaction.atomic
def release(product_id, qty: int) -> bool:
    """
    Return ``qty`` units to a product and mark it in stock.

    Returns False when the product has been deleted in the meantime.
    """
    if qty < 1:
        raise ValueError("Release quantity must be positive")

    updated = Product.objects.filter(pk=product_id).update(
        quantity=F('quantity') + qty,
        in_stock=True,
        updated_at=timezone.now(),
    )
    if not updated:
        logger.warning(f"Cannot release {qty} units: product {product_id} no longer exists")
        return False
    logger.debug(f"Released {qty} of product {product_id}")
    return True
