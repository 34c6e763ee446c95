from django.conf import settings
from django.db import models
from django.utils import timezone

from farmops.farms.models import Farm


class PendingActivity(models.Model):
    """A farmhand's activity waiting for an owner or manager to review it"""
    ACTIVITY_TYPE_CHOICES = [
        ('milking', 'Milking'),
        ('feeding', 'Feeding'),
        ('weight_measurement', 'Weight Measurement'),
        ('health_observation', 'Health Observation'),
        ('injection', 'Injection'),
    ]

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
        ('auto_approved', 'Auto-Approved'),
    ]

    farm = models.ForeignKey(Farm, on_delete=models.CASCADE, related_name='pending_activities')
    submitted_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='submitted_activities')
    activity_type = models.CharField(max_length=30, choices=ACTIVITY_TYPE_CHOICES)
    activity_data = models.JSONField(default=dict, blank=True)
    animal_ids = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    reviewed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='reviewed_activities')
    reviewed_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True, null=True)
    auto_approve_at = models.DateTimeField(null=True, blank=True)
    submitted_at = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"{self.get_activity_type_display()} #{self.id} ({self.status})"

    class Meta:
        db_table = 'pending_activities'
        ordering = ['-submitted_at']
        verbose_name_plural = 'pending activities'
        indexes = [
            models.Index(fields=['farm', 'status'], name='pending_act_farm_id_2d8e5b_idx'),
            models.Index(fields=['status', 'auto_approve_at'], name='pending_act_status_f41a7c_idx'),
        ]
