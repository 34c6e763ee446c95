from django.conf import settings
from django.db import models

from farmops.farms.models import Farm


class QueueItem(models.Model):
    """An action buffered on a device while offline, replayed on the server"""
    ITEM_TYPE_CHOICES = [
        ('voice_activity', 'Voice Activity'),
        ('animal_form', 'Animal Form'),
        ('bulk_milk', 'Bulk Milk'),
        ('single_milk', 'Single Milk'),
        ('bulk_feed', 'Bulk Feed'),
        ('bulk_health', 'Bulk Health'),
        ('single_health', 'Single Health'),
    ]

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('processing', 'Processing'),
        ('awaiting_confirmation', 'Awaiting Confirmation'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
    ]

    client_id = models.CharField(max_length=100, db_index=True, help_text="Device the item was recorded on")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='queue_items')
    farm = models.ForeignKey(Farm, on_delete=models.CASCADE, related_name='queue_items', null=True, blank=True)
    item_type = models.CharField(max_length=30, choices=ITEM_TYPE_CHOICES)
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default='pending')
    retries = models.PositiveIntegerField(default=0)
    error = models.TextField(blank=True, null=True)
    optimistic_id = models.CharField(max_length=64, unique=True)
    server_response = models.JSONField(blank=True, null=True)
    next_attempt_at = models.DateTimeField(blank=True, null=True)
    processed_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.get_item_type_display()} {self.optimistic_id} ({self.status})"

    class Meta:
        db_table = 'offline_queue'
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['client_id', 'status'], name='offline_que_client__5b1e2a_idx'),
            models.Index(fields=['client_id', 'created_at'], name='offline_que_client__c83d40_idx'),
        ]


class TranscriptionCorrection(models.Model):
    """A user's correction of a voice transcription, kept to improve recognition"""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='transcription_corrections')
    farm = models.ForeignKey(Farm, on_delete=models.SET_NULL, null=True, blank=True, related_name='transcription_corrections')
    original_text = models.TextField()
    corrected_text = models.TextField()
    context = models.JSONField(blank=True, null=True)
    audio_duration = models.FloatField(blank=True, null=True, help_text="Seconds")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Correction #{self.id} by {self.user_id}"

    class Meta:
        db_table = 'transcription_corrections'
        ordering = ['-created_at']
