from decimal import Decimal

from django.conf import settings
from django.db import models

from farmops.farms.models import Farm


class FeedInventory(models.Model):
    """A lot of feed stock on a farm; quantity_kg is the running balance"""
    CATEGORY_CHOICES = [
        ('concentrates', 'Concentrates'),
        ('roughage', 'Roughage'),
        ('minerals', 'Minerals'),
        ('supplements', 'Supplements'),
    ]

    farm = models.ForeignKey(Farm, on_delete=models.CASCADE, related_name='feed_inventory')
    feed_type = models.CharField(max_length=255)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, blank=True, null=True, help_text="Empty counts as roughage")
    quantity_kg = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    unit = models.CharField(max_length=30, default='kg')
    weight_per_unit = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True)
    cost_per_unit = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    reorder_threshold = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    expiry_date = models.DateField(blank=True, null=True)
    supplier = models.CharField(max_length=255, blank=True, null=True)
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    last_updated = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.feed_type} ({self.quantity_kg} kg)"

    class Meta:
        db_table = 'feed_inventory'
        ordering = ['created_at', 'id']
        verbose_name_plural = 'feed inventory'
        indexes = [
            models.Index(fields=['farm', 'created_at'], name='feed_invent_farm_id_0b7d3c_idx'),
        ]


class FeedStockTransaction(models.Model):
    """Ledger entry for a change to a feed lot"""
    TRANSACTION_TYPE_CHOICES = [
        ('addition', 'Addition'),
        ('consumption', 'Consumption'),
        ('adjustment', 'Adjustment'),
    ]

    feed_inventory = models.ForeignKey(FeedInventory, on_delete=models.CASCADE, related_name='transactions')
    transaction_type = models.CharField(max_length=20, choices=TRANSACTION_TYPE_CHOICES)
    quantity_change_kg = models.DecimalField(max_digits=12, decimal_places=2, help_text="Negative for consumption")
    balance_after = models.DecimalField(max_digits=12, decimal_places=2)
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.transaction_type} {self.quantity_change_kg} kg on {self.feed_inventory.feed_type}"

    class Meta:
        db_table = 'feed_stock_transactions'
        ordering = ['-created_at', '-id']
