from django.contrib import admin
from .models import FeedInventory, FeedStockTransaction


class FeedStockTransactionInline(admin.TabularInline):
    model = FeedStockTransaction
    extra = 0
    fields = ['transaction_type', 'quantity_change_kg', 'balance_after', 'notes', 'created_at']
    readonly_fields = fields
    can_delete = False


@admin.register(FeedInventory)
class FeedInventoryAdmin(admin.ModelAdmin):
    list_display = ['feed_type', 'farm', 'category', 'quantity_kg', 'unit', 'cost_per_unit', 'reorder_threshold', 'last_updated']
    list_filter = ['category']
    search_fields = ['feed_type', 'farm__name', 'supplier']
    readonly_fields = ['quantity_kg', 'created_at', 'last_updated']
    inlines = [FeedStockTransactionInline]


@admin.register(FeedStockTransaction)
class FeedStockTransactionAdmin(admin.ModelAdmin):
    list_display = ['feed_inventory', 'transaction_type', 'quantity_change_kg', 'balance_after', 'created_at']
    list_filter = ['transaction_type']
    search_fields = ['feed_inventory__feed_type', 'notes']
