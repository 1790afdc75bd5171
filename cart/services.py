"""
Cart Service Layer - the per-user cart aggregate.

Every mutation runs in a transaction with the cart row locked, and ends by
recomputing the total from the line subtotals, so
``cart.total == sum(item.subtotal)`` holds after each call.

Carts never hold stock: availability is checked against the product's
current quantity here, and only enforced for real at checkout.
"""
import logging

from django.db import transaction

from core.exceptions import InsufficientStock, NotFound, ProductGone
from inventory.models import Product
from .models import Cart, CartItem

logger = logging.getLogger(__name__)


def get_cart(user) -> Cart:
    """Return the user's cart, creating an empty one on first use."""
    cart, created = Cart.objects.get_or_create(user=user)
    if created:
        logger.debug(f"Created cart for user {user.pk}")
    return cart


def _locked_cart(user, create=False) -> Cart:
    if create:
        get_cart(user)
    try:
        return Cart.objects.select_for_update().get(user=user)
    except Cart.DoesNotExist:
        raise NotFound('Cart not found')


def _cart_item(cart, item_id) -> CartItem:
    try:
        return cart.items.select_related('product').get(pk=item_id)
    except CartItem.DoesNotExist:
        raise NotFound('Item not found in cart')


@transaction.atomic
def add_item(user, product_id, quantity: int) -> Cart:
    """
    Add ``quantity`` of a product, merging with an existing line.

    A merged line is re-priced from the current product price; a new line
    snapshots name and price.

    Raises:
        NotFound: product does not exist
        InsufficientStock: product out of stock or not enough units for the
            combined cart quantity
    """
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise NotFound('Product not found')
    if not product.in_stock or product.quantity < quantity:
        raise InsufficientStock('Insufficient stock')

    cart = _locked_cart(user, create=True)
    item = cart.items.filter(product=product).first()

    if item is not None:
        new_quantity = item.quantity + quantity
        if product.quantity < new_quantity:
            raise InsufficientStock('Insufficient stock for requested quantity')
        item.set_quantity(new_quantity, price=product.price)
        item.save(update_fields=['quantity', 'price', 'subtotal'])
    else:
        item = CartItem(
            cart=cart,
            product=product,
            product_name=product.name,
            price=product.price,
        )
        item.set_quantity(quantity)
        item.save()

    cart.recalculate()
    logger.info(f"User {user.pk} added {quantity}x {product.name} to cart")
    return cart


@transaction.atomic
def update_item(user, item_id, quantity: int) -> Cart:
    """
    Set a line's quantity, re-checking the product's current stock.

    Raises:
        NotFound: no cart, or item not in cart
        ProductGone: the line's product was deleted
        InsufficientStock: not enough units for ``quantity``
    """
    cart = _locked_cart(user)
    item = _cart_item(cart, item_id)

    product = item.product
    if product is None:
        raise ProductGone(f"Product {item.product_name} no longer exists")
    if not product.in_stock or product.quantity < quantity:
        raise InsufficientStock('Insufficient stock')

    item.set_quantity(quantity)
    item.save(update_fields=['quantity', 'subtotal'])
    cart.recalculate()
    return cart


@transaction.atomic
def remove_item(user, item_id) -> Cart:
    cart = _locked_cart(user)
    _cart_item(cart, item_id).delete()
    cart.recalculate()
    return cart


@transaction.atomic
def clear_cart(user) -> Cart:
    cart = _locked_cart(user)
    cart.items.all().delete()
    cart.recalculate()
    return cart


def prune_product(product_id) -> int:
    """
    Drop a product from every cart and fix the affected totals.

    Call inside the transaction that deletes the product. Returns the number
    of carts touched.
    """
    cart_ids = list(
        CartItem.objects.filter(product_id=product_id)
        .values_list('cart_id', flat=True)
        .distinct()
    )
    if not cart_ids:
        return 0

    CartItem.objects.filter(product_id=product_id).delete()
    for cart in Cart.objects.select_for_update().filter(pk__in=cart_ids):
        cart.recalculate()
    logger.info(f"Removed product {product_id} from {len(cart_ids)} carts")
    return len(cart_ids)
