"""
Inventory Models - Catalog entities and their stock levels.

Models:
    - Category: Product categorization, unique by name
    - Product: Items available for sale; carries the stock quantity and the
      in_stock flag that the ledger (inventory.ledger) keeps consistent
"""
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinLengthValidator, MinValueValidator
from django.db import models


class Category(models.Model):
    """
    Product category for organizing products.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        validators=[MinLengthValidator(2)],
        help_text="Unique category name"
    )
    description = models.TextField(blank=True, default='')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='categories',
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Category'
        verbose_name_plural = 'Categories'
        ordering = ['name']

    def __str__(self):
        return self.name


class Product(models.Model):
    """
    Product entity representing items available for sale.

    ``quantity`` and ``in_stock`` are only moved by stock reservations and
    releases (see inventory.ledger); owners may still edit them directly
    through the catalog endpoints.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(
        max_length=200,
        db_index=True,
        validators=[MinLengthValidator(2)],
        help_text="Product name for display and search"
    )
    description = models.TextField(
        blank=True,
        default='',
        help_text="Optional product description"
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))],
        db_index=True,
        help_text="Unit price (never negative)"
    )
    quantity = models.PositiveIntegerField(
        default=0,
        help_text="Units currently available"
    )
    in_stock = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether product can be ordered"
    )
    images = models.JSONField(
        default=list,
        blank=True,
        help_text="Image URLs on the external asset host"
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        related_name='products',
        help_text="Product category"
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products',
        help_text="Vendor or admin who owns the product"
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        ordering = ['name']
        indexes = [
            models.Index(fields=['category', 'in_stock'], name='product_category_stock_idx'),
            models.Index(fields=['price', 'created_at'], name='product_price_created_idx'),
        ]

    def __str__(self):
        return f"{self.name} (${self.price})"

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= settings.LOW_STOCK_THRESHOLD

    @property
    def is_out_of_stock(self) -> bool:
        return not self.in_stock or self.quantity == 0
