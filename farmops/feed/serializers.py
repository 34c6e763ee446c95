from decimal import Decimal

from rest_framework import serializers
from .models import FeedInventory, FeedStockTransaction


class FeedInventorySerializer(serializers.ModelSerializer):
    is_low_stock = serializers.SerializerMethodField()

    class Meta:
        model = FeedInventory
        fields = [
            'id', 'farm', 'feed_type', 'category', 'quantity_kg', 'unit', 'weight_per_unit',
            'cost_per_unit', 'reorder_threshold', 'expiry_date', 'supplier', 'notes',
            'is_low_stock', 'created_by', 'created_at', 'last_updated',
        ]
        read_only_fields = ['farm', 'quantity_kg', 'created_by', 'created_at', 'last_updated']

    def get_is_low_stock(self, obj):
        return bool(obj.reorder_threshold) and obj.quantity_kg <= obj.reorder_threshold


class FeedStockCreateSerializer(serializers.ModelSerializer):
    farm_id = serializers.IntegerField(write_only=True)
    quantity_kg = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)

    class Meta:
        model = FeedInventory
        fields = [
            'farm_id', 'feed_type', 'category', 'quantity_kg', 'unit', 'weight_per_unit',
            'cost_per_unit', 'reorder_threshold', 'expiry_date', 'supplier', 'notes',
        ]


class FeedStockTransactionSerializer(serializers.ModelSerializer):
    feed_type = serializers.CharField(source='feed_inventory.feed_type', read_only=True)
    created_by_name = serializers.CharField(source='created_by.get_display_name', read_only=True, default=None)

    class Meta:
        model = FeedStockTransaction
        fields = ['id', 'feed_inventory', 'feed_type', 'transaction_type', 'quantity_change_kg',
                  'balance_after', 'notes', 'created_by', 'created_by_name', 'created_at']
        read_only_fields = fields


class RestockSerializer(serializers.Serializer):
    quantity_kg = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    notes = serializers.CharField(required=False, allow_blank=True)


class AdjustStockSerializer(serializers.Serializer):
    new_quantity_kg = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True)
