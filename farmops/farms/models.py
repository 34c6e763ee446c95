import secrets
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

INVITATION_TTL_DAYS = 7


def generate_invitation_token():
    return secrets.token_urlsafe(32)


def default_invitation_expiry():
    return timezone.now() + timedelta(days=INVITATION_TTL_DAYS)


class Farm(models.Model):
    """A farm owned by one user and worked by its members"""
    LIVESTOCK_TYPE_CHOICES = [
        ('cattle', 'Cattle'),
        ('goat', 'Goat'),
        ('sheep', 'Sheep'),
        ('carabao', 'Carabao'),
        ('mixed', 'Mixed'),
    ]

    name = models.CharField(max_length=255)
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='owned_farms')
    livestock_type = models.CharField(max_length=20, choices=LIVESTOCK_TYPE_CHOICES, default='cattle')
    region = models.CharField(max_length=255, blank=True, null=True)
    gps_lat = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    gps_lng = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'farms'
        ordering = ['name']


class FarmMembership(models.Model):
    """A user's role in a farm; pending rows are invitations"""
    ROLE_CHOICES = [
        ('farmer_owner', 'Farmer Owner'),
        ('farm_manager', 'Farm Manager'),
        ('farmhand', 'Farmhand'),
    ]
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('declined', 'Declined'),
    ]

    farm = models.ForeignKey(Farm, on_delete=models.CASCADE, related_name='memberships')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, null=True, blank=True, related_name='farm_memberships')
    role_in_farm = models.CharField(max_length=20, choices=ROLE_CHOICES, default='farmhand')
    invited_email = models.EmailField(blank=True, null=True)
    invited_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='sent_invitations')
    invitation_token = models.CharField(max_length=64, unique=True, default=generate_invitation_token)
    invitation_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    expires_at = models.DateTimeField(default=default_invitation_expiry)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        who = self.user.username if self.user_id else self.invited_email
        return f"{who} @ {self.farm.name} ({self.role_in_farm})"

    @property
    def is_expired(self):
        return self.expires_at is not None and self.expires_at < timezone.now()

    class Meta:
        db_table = 'farm_memberships'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['farm', 'invitation_status'], name='farm_member_farm_id_7a3c1e_idx'),
            models.Index(fields=['user', 'invitation_status'], name='farm_member_user_id_2b9d4f_idx'),
        ]


class FarmApprovalSettings(models.Model):
    """Per-farm rules for farmhand activity approval"""
    farm = models.OneToOneField(Farm, on_delete=models.CASCADE, related_name='approval_settings')
    auto_approve_enabled = models.BooleanField(default=True)
    auto_approve_hours = models.PositiveIntegerField(default=48)
    require_approval_for = models.JSONField(default=list, blank=True, help_text="Activity types that need owner approval; empty means all")
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Approval settings for {self.farm.name}"

    class Meta:
        db_table = 'farm_approval_settings'
