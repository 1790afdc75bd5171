"""
Cart Models - one mutable cart per user, with price-snapshotted line items.

The cart total is stored for cheap reads but is always recomputed from the
line subtotals after a mutation (see Cart.recalculate).
"""
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Sum

from inventory.models import Product


class Cart(models.Model):
    """
    Shopping cart bound to a user; at most one per user.

    Created lazily on first use, deleted at checkout.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='cart',
    )
    total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Sum of item subtotals"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Cart'
        verbose_name_plural = 'Carts'

    def __str__(self):
        return f"Cart of {self.user_id} (${self.total})"

    def recalculate(self, save=True) -> Decimal:
        """Recompute ``total`` from the persisted line subtotals."""
        self.total = self.items.aggregate(total=Sum('subtotal'))['total'] or Decimal('0.00')
        if save:
            self.save(update_fields=['total', 'updated_at'])
        return self.total

    @property
    def item_count(self) -> int:
        return self.items.count()


class CartItem(models.Model):
    """
    Line item in a cart.

    ``product_name`` and ``price`` are snapshots taken when the line was added
    (or merged); ``product`` becomes NULL if the product is deleted behind the
    cart's back.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    cart = models.ForeignKey(
        Cart,
        on_delete=models.CASCADE,
        related_name='items',
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        related_name='cart_items',
    )
    product_name = models.CharField(max_length=200)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Unit price when added to the cart"
    )
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Cart Item'
        verbose_name_plural = 'Cart Items'
        ordering = ['added_at', 'id']

    def __str__(self):
        return f"{self.quantity}x {self.product_name} @ ${self.price}"

    def set_quantity(self, quantity: int, price: Decimal = None):
        if price is not None:
            self.price = price
        self.quantity = quantity
        self.subtotal = self.price * quantity
