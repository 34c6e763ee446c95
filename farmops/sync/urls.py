from django.urls import path
from .views import (
    queue_list_upload, queue_item_detail, queue_counts, queue_sync, queue_item_retry,
    queue_retry_all, queue_item_confirm, queue_clear_completed, submit_correction,
)

urlpatterns = [
    path('offline-queue/', queue_list_upload, name='offline-queue-list-upload'),
    path('offline-queue/counts/', queue_counts, name='offline-queue-counts'),
    path('offline-queue/sync/', queue_sync, name='offline-queue-sync'),
    path('offline-queue/retry-all/', queue_retry_all, name='offline-queue-retry-all'),
    path('offline-queue/clear-completed/', queue_clear_completed, name='offline-queue-clear-completed'),
    path('offline-queue/<int:pk>/', queue_item_detail, name='offline-queue-item-detail'),
    path('offline-queue/<int:pk>/retry/', queue_item_retry, name='offline-queue-item-retry'),
    path('offline-queue/<int:pk>/confirm/', queue_item_confirm, name='offline-queue-item-confirm'),

    # Function endpoints
    path('functions/submit-correction/', submit_correction, name='fn-submit-correction'),
]
