from django.conf import settings
from django.db import models

from farmops.animals.models import MilkingRecord
from farmops.farms.models import Farm


class FarmRevenue(models.Model):
    """Money received by a farm"""
    SOURCE_CHOICES = [
        ('milk_sale', 'Milk Sale'),
        ('animal_sale', 'Animal Sale'),
        ('other', 'Other'),
    ]

    farm = models.ForeignKey(Farm, on_delete=models.CASCADE, related_name='revenues')
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default='other')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    transaction_date = models.DateField()
    linked_milk_log = models.ForeignKey(MilkingRecord, on_delete=models.SET_NULL, null=True, blank=True, related_name='revenues')
    notes = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.get_source_display()} {self.amount} on {self.transaction_date}"

    class Meta:
        db_table = 'farm_revenues'
        ordering = ['-transaction_date', '-created_at']
        indexes = [
            models.Index(fields=['farm', 'transaction_date'], name='farm_revenu_farm_id_7a9c1e_idx'),
        ]
