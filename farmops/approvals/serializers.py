from rest_framework import serializers
from .models import PendingActivity


class PendingActivitySerializer(serializers.ModelSerializer):
    submitted_by_name = serializers.CharField(source='submitted_by.get_display_name', read_only=True)
    reviewed_by_name = serializers.CharField(source='reviewed_by.get_display_name', read_only=True, default=None)

    class Meta:
        model = PendingActivity
        fields = [
            'id', 'farm', 'submitted_by', 'submitted_by_name', 'activity_type', 'activity_data',
            'animal_ids', 'status', 'reviewed_by', 'reviewed_by_name', 'reviewed_at',
            'rejection_reason', 'auto_approve_at', 'submitted_at',
        ]
        read_only_fields = fields


class ActivitySubmitSerializer(serializers.Serializer):
    farm_id = serializers.IntegerField()
    activity_type = serializers.ChoiceField(choices=PendingActivity.ACTIVITY_TYPE_CHOICES)
    activity_data = serializers.DictField(required=False, default=dict)
    animal_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
