from django.contrib import admin
from .models import QueueItem, TranscriptionCorrection


@admin.register(QueueItem)
class QueueItemAdmin(admin.ModelAdmin):
    list_display = ['id', 'client_id', 'user', 'farm', 'item_type', 'status', 'retries', 'next_attempt_at', 'created_at']
    list_filter = ['status', 'item_type']
    search_fields = ['client_id', 'optimistic_id', 'user__username']
    readonly_fields = ['created_at', 'processed_at']


@admin.register(TranscriptionCorrection)
class TranscriptionCorrectionAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'farm', 'original_text', 'corrected_text', 'created_at']
    search_fields = ['original_text', 'corrected_text', 'user__username']
    readonly_fields = ['created_at']
