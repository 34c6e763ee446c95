from django.urls import path
from .views import (
    feed_inventory_list_create, feed_inventory_detail, feed_inventory_restock,
    feed_inventory_adjust, feed_transaction_list, feed_summary,
)

urlpatterns = [
    path('feed-inventory/', feed_inventory_list_create, name='feed-inventory-list-create'),
    path('feed-inventory/<int:pk>/', feed_inventory_detail, name='feed-inventory-detail'),
    path('feed-inventory/<int:pk>/restock/', feed_inventory_restock, name='feed-inventory-restock'),
    path('feed-inventory/<int:pk>/adjust/', feed_inventory_adjust, name='feed-inventory-adjust'),
    path('farms/<int:farm_id>/feed-transactions/', feed_transaction_list, name='feed-transaction-list'),
    path('farms/<int:farm_id>/feed-summary/', feed_summary, name='feed-summary'),
]
