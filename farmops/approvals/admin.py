from django.contrib import admin
from .models import PendingActivity


@admin.register(PendingActivity)
class PendingActivityAdmin(admin.ModelAdmin):
    list_display = ['id', 'farm', 'activity_type', 'submitted_by', 'status', 'submitted_at', 'auto_approve_at', 'reviewed_by']
    list_filter = ['status', 'activity_type']
    search_fields = ['farm__name', 'submitted_by__username', 'submitted_by__email']
    readonly_fields = ['submitted_at', 'reviewed_at']
