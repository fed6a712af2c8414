"""
Inventory Models - Core data entities for warehouse stock.

Models:
    - Category: Optional catalogue of item categories
    - Item: Stock-keeping unit with on-hand quantity and reorder threshold
"""
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from . import ledger


class Category(models.Model):
    """
    Item category shown in pickers. Items carry the category name as text.
    """
    name = models.CharField(
        max_length=100,
        unique=True,
        db_index=True,
        help_text="Unique category name"
    )
    description = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Category'
        verbose_name_plural = 'Categories'
        ordering = ['name']

    def __str__(self):
        return self.name


class Item(models.Model):
    """
    Stock item.

    status is a cached projection of quantity/min_quantity: save() always
    recomputes it, so it can never diverge from the quantities.
    """

    class Status(models.TextChoices):
        IN_STOCK = ledger.IN_STOCK, 'In stock'
        LOW_STOCK = ledger.LOW_STOCK, 'Low stock'
        OUT_OF_STOCK = ledger.OUT_OF_STOCK, 'Out of stock'

    name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Item name for display and search"
    )
    description = models.TextField(blank=True, default='')
    category = models.CharField(
        max_length=100,
        default='other',
        db_index=True
    )
    unit = models.CharField(max_length=20, default='pcs')
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    quantity = models.PositiveIntegerField(
        default=0,
        help_text="Current on-hand quantity"
    )
    min_quantity = models.PositiveIntegerField(
        default=0,
        help_text="Reorder threshold for low stock"
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.OUT_OF_STOCK,
        db_index=True,
        editable=False
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="False once the item is soft-deleted"
    )
    last_restocked = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Item'
        verbose_name_plural = 'Items'
        ordering = ['name']
        indexes = [
            models.Index(fields=['name', 'is_active'], name='item_name_active_idx'),
            models.Index(fields=['status', 'is_active'], name='item_status_active_idx'),
        ]

    def __str__(self):
        return f"{self.name}: {self.quantity} {self.unit} ({self.status})"

    def save(self, *args, **kwargs):
        self.status = ledger.derive_status(self.quantity, self.min_quantity)
        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | {'status', 'updated_at'}
        super().save(*args, **kwargs)

    @property
    def is_low_stock(self) -> bool:
        return self.status == self.Status.LOW_STOCK

    @property
    def is_out_of_stock(self) -> bool:
        return self.status == self.Status.OUT_OF_STOCK
