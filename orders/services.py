"""
Order Service Layer - checkout and the order status state machine.

create_order() runs as one transaction:
1. Lock the user's cart; fail with EmptyCart if missing or empty
2. Lock product rows (ordered by id) and re-validate every line against
   current stock
3. Snapshot items into a pending order
4. Reserve stock per line through the inventory ledger
5. Delete the cart
Any failure rolls back all of it. The confirmation email is queued on commit
and never affects the order.

cancel_order() / update_order_status() lock the order row before checking
its status, so two transitions on one order are serialised and stock is
released at most once.
"""
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.db import transaction
from django.db.models import Avg, Count, Q, Sum

from cart.models import Cart
from core.exceptions import (
    EmptyCart,
    Forbidden,
    InsufficientStock,
    InvalidTransition,
    NotFound,
    OutOfStock,
    ProductGone,
    ValidationFailed,
)
from core.permissions import Role, ensure_role, is_admin
from inventory.ledger import lock_products, release, reserve
from notifications import dispatch
from .models import Order, OrderItem

logger = logging.getLogger(__name__)

SORT_FIELDS = ('created_at', 'updated_at', 'total', 'status', 'order_number')


@dataclass
class OrderQueryOptions:
    """Typed admin order list filters, parsed from query parameters."""
    status: Optional[str] = None
    user_id: Optional[uuid.UUID] = None
    sort_by: str = 'created_at'
    descending: bool = True


def _validate_line(line, product) -> None:
    """Check one cart line against the product's current, locked state."""
    if product is None:
        raise ProductGone(f"Product {line.product_name} no longer exists")
    if not product.in_stock:
        raise OutOfStock(f"Product {line.product_name} is out of stock")
    if product.quantity < line.quantity:
        raise InsufficientStock(
            f"Insufficient stock for {line.product_name}. Only {product.quantity} available."
        )


def create_order(user, shipping_address: str = '', notes: str = '') -> Order:
    """
    Turn the user's cart into a pending order.

    Raises:
        EmptyCart: no cart, or a cart without items
        ProductGone / OutOfStock / InsufficientStock: a line no longer fits
            current stock; the message names the item
    """
    with transaction.atomic():
        cart = Cart.objects.select_for_update().filter(user=user).first()
        if cart is None:
            raise EmptyCart()
        lines = list(cart.items.all())
        if not lines:
            raise EmptyCart()

        products = lock_products(line.product_id for line in lines)
        for line in lines:
            _validate_line(line, products.get(line.product_id))

        order = Order.objects.create(
            user=user,
            status=Order.Status.PENDING,
            total=sum((line.subtotal for line in lines), Decimal('0.00')),
            shipping_address=(shipping_address or '').strip(),
            notes=(notes or '').strip(),
        )
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product_id=line.product_id,
                product_name=line.product_name,
                price=line.price,
                quantity=line.quantity,
                subtotal=line.subtotal,
            )
            for line in lines
        ])

        for line in lines:
            reserve(line.product_id, line.quantity, label=line.product_name)

        cart.delete()

        logger.info(
            f"Order {order.order_number} created for user {user.pk}: "
            f"{len(lines)} items, total ${order.total}"
        )
        # Don't fail the order if task queuing fails
        dispatch.order_confirmation(order)

    return order


def _locked_order(order_id) -> Order:
    order = Order.objects.select_for_update().filter(pk=order_id).first()
    if order is None:
        raise NotFound('Order not found')
    return order


def _release_items(order) -> None:
    items = list(order.items.all())
    lock_products(item.product_id for item in items)
    for item in items:
        if item.product_id is None:
            logger.warning(
                f"Order {order.order_number}: {item.product_name} was deleted, "
                f"{item.quantity} units not returned to stock"
            )
            continue
        release(item.product_id, item.quantity)


@transaction.atomic
def cancel_order(user, order_id) -> Order:
    """
    Customer cancellation: owner only, and only while pending.

    Every line is returned to stock in the same transaction as the status
    write; the customer is emailed after commit.
    """
    order = _locked_order(order_id)
    if order.user_id != user.pk:
        raise Forbidden('Access denied. You can only cancel your own orders.')
    if order.status != Order.Status.PENDING:
        raise InvalidTransition(
            f"Cannot cancel order with status: {order.status}. "
            "Only pending orders can be cancelled."
        )

    _release_items(order)
    order.status = Order.Status.CANCELLED
    order.save(update_fields=['status', 'updated_at'])

    logger.info(f"Order {order.order_number} cancelled by customer {user.pk}")
    dispatch.order_status_update(order)
    return order


@transaction.atomic
def update_order_status(actor, order_id, new_status) -> Order:
    """
    Admin status change along the state machine.

    Raises:
        ValidationFailed: unknown status
        InvalidTransition: order is delivered/cancelled, or the move is not
            an allowed transition
    """
    ensure_role(actor, Role.ADMIN)
    if new_status not in Order.Status.values:
        raise ValidationFailed(
            f"Invalid status. Must be one of: {', '.join(Order.Status.values)}"
        )

    order = _locked_order(order_id)
    if order.is_terminal:
        raise InvalidTransition(f"Cannot update order with status: {order.status}")
    if not order.can_transition_to(new_status):
        raise InvalidTransition(
            f"Cannot change order status from {order.status} to {new_status}"
        )

    previous = order.status
    if new_status == Order.Status.CANCELLED:
        _release_items(order)
    order.status = new_status
    order.save(update_fields=['status', 'updated_at'])

    logger.info(f"Order {order.order_number}: {previous} -> {new_status} by admin {actor.pk}")
    dispatch.order_status_update(order)
    return order


def _with_items(queryset):
    return queryset.select_related('user').prefetch_related('items')


def get_order(user, order_id) -> Order:
    """Owner or admin read."""
    order = _with_items(Order.objects.filter(pk=order_id)).first()
    if order is None:
        raise NotFound('Order not found')
    if not is_admin(user) and order.user_id != user.pk:
        raise Forbidden('Access denied. You can only view your own orders.')
    return order


def list_user_orders(user, status: Optional[str] = None):
    queryset = Order.objects.filter(user=user)
    if status:
        queryset = queryset.filter(status=status)
    return _with_items(queryset).order_by('-created_at')


def list_orders(actor, options: OrderQueryOptions = None):
    ensure_role(actor, Role.ADMIN)
    options = options or OrderQueryOptions()
    if options.sort_by not in SORT_FIELDS:
        raise ValidationFailed(f"Cannot sort by {options.sort_by}")

    queryset = Order.objects.all()
    if options.status:
        queryset = queryset.filter(status=options.status)
    if options.user_id:
        queryset = queryset.filter(user_id=options.user_id)

    ordering = f"-{options.sort_by}" if options.descending else options.sort_by
    return _with_items(queryset).order_by(ordering, 'id')


def order_stats(actor) -> dict:
    """Order counts per status and revenue over non-cancelled orders."""
    ensure_role(actor, Role.ADMIN)
    live = ~Q(status=Order.Status.CANCELLED)
    stats = Order.objects.aggregate(
        total_orders=Count('id'),
        pending_orders=Count('id', filter=Q(status=Order.Status.PENDING)),
        confirmed_orders=Count('id', filter=Q(status=Order.Status.CONFIRMED)),
        shipped_orders=Count('id', filter=Q(status=Order.Status.SHIPPED)),
        delivered_orders=Count('id', filter=Q(status=Order.Status.DELIVERED)),
        cancelled_orders=Count('id', filter=Q(status=Order.Status.CANCELLED)),
        total_revenue=Sum('total', filter=live),
        avg_order_value=Avg('total', filter=live),
    )

    # Handle None values
    stats['total_revenue'] = str(stats['total_revenue'] or '0.00')
    stats['avg_order_value'] = str(round(stats['avg_order_value'] or 0, 2))
    return stats
