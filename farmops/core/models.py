from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Extended user model with additional fields"""
    phone = models.CharField(max_length=20, blank=True, null=True)
    full_name = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'

    def get_display_name(self):
        return self.full_name or self.get_full_name() or self.email or self.username


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('user_create', 'User Created'),
        ('invitation_send', 'Invitation Sent'),
        ('invitation_accept', 'Invitation Accepted'),
        ('activity_submit', 'Activity Submitted'),
        ('activity_approve', 'Activity Approved'),
        ('activity_auto_approve', 'Activity Auto-Approved'),
        ('activity_reject', 'Activity Rejected'),
        ('feed_stock_add', 'Feed Stock Added'),
        ('feed_stock_adjust', 'Feed Stock Adjusted'),
        ('feed_consume', 'Feed Consumed'),
        ('weight_populate', 'Weights Populated'),
        ('milk_sale', 'Milk Sale'),
        ('queue_sync', 'Offline Queue Synced'),
        ('queue_retry', 'Offline Queue Retry'),
        ('correction_submit', 'Transcription Correction'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., ear tag, feed type)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., farm id, invitation token)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_5b1f0d_idx'),
            models.Index(fields=['action'], name='audit_logs_action_9c2e4a_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_n_3d7a61_idx'),
            models.Index(fields=['object_reference'], name='audit_logs_object__e8a4b2_idx'),
        ]


class Notification(models.Model):
    """In-app notification shown to a single user"""
    TYPE_CHOICES = [
        ('activity_approved', 'Activity Approved'),
        ('activity_rejected', 'Activity Rejected'),
        ('activity_submitted', 'Activity Submitted'),
        ('invitation_accepted', 'Invitation Accepted'),
        ('sync_completed', 'Sync Completed'),
        ('sync_failed', 'Sync Failed'),
        ('low_feed_stock', 'Low Feed Stock'),
    ]

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=50, choices=TYPE_CHOICES)
    title = models.CharField(max_length=255)
    body = models.TextField(blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.title} -> {self.user}"

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notificatio_user_id_4c6f2e_idx'),
        ]
