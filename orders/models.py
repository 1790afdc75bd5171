"""
Order Models - Order and OrderItem entities with status tracking.

Order Status Flow:
    pending -> confirmed | cancelled
    confirmed -> shipped | cancelled
    shipped -> delivered | cancelled
    delivered, cancelled: terminal

Leaving for ``cancelled`` returns every line's quantity to stock.
"""
import secrets
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from inventory.models import Product


def generate_order_number() -> str:
    """Human-readable order reference, e.g. ``ORD-20240131-9F3A1C``."""
    return f"ORD-{timezone.now():%Y%m%d}-{secrets.token_hex(3).upper()}"


class Order(models.Model):
    """
    Customer order created from a cart at checkout.

    Items and total are snapshots taken at creation; only ``status`` changes
    afterwards.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        CONFIRMED = 'confirmed', 'Confirmed'
        SHIPPED = 'shipped', 'Shipped'
        DELIVERED = 'delivered', 'Delivered'
        CANCELLED = 'cancelled', 'Cancelled'

    TRANSITIONS = {
        Status.PENDING: {Status.CONFIRMED, Status.CANCELLED},
        Status.CONFIRMED: {Status.SHIPPED, Status.CANCELLED},
        Status.SHIPPED: {Status.DELIVERED, Status.CANCELLED},
        Status.DELIVERED: set(),
        Status.CANCELLED: set(),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(
        max_length=32,
        unique=True,
        default=generate_order_number,
        editable=False,
        help_text="Human-readable order reference"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='orders',
        help_text="Customer who placed the order"
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
        help_text="Current order status"
    )
    total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Sum of item subtotals, fixed at creation"
    )
    shipping_address = models.TextField(blank=True, default='')
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Order'
        verbose_name_plural = 'Orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'status'], name='order_user_status_idx'),
            models.Index(fields=['status', 'created_at'], name='order_status_created_idx'),
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return not self.TRANSITIONS[self.status]

    def can_transition_to(self, new_status) -> bool:
        return new_status in self.TRANSITIONS[self.status]


class OrderItem(models.Model):
    """
    Immutable line of an order.

    Name, price and subtotal are copied from the cart line; ``product`` is
    kept for stock releases and becomes NULL if the product is later deleted.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Parent order"
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        related_name='order_items',
        help_text="Ordered product"
    )
    product_name = models.CharField(max_length=200)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Price per unit at time of order"
    )
    quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Quantity ordered"
    )
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        verbose_name = 'Order Item'
        verbose_name_plural = 'Order Items'
        ordering = ['product_name', 'id']

    def __str__(self):
        return f"{self.quantity}x {self.product_name} @ ${self.price}"
