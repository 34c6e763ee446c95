from rest_framework import serializers
from .models import QueueItem


class QueueItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = QueueItem
        fields = [
            'id', 'client_id', 'farm', 'item_type', 'payload', 'status', 'retries', 'error',
            'optimistic_id', 'server_response', 'next_attempt_at', 'processed_at', 'created_at',
        ]
        read_only_fields = fields


class QueueUploadItemSerializer(serializers.Serializer):
    item_type = serializers.ChoiceField(choices=QueueItem.ITEM_TYPE_CHOICES)
    farm_id = serializers.IntegerField(required=False, allow_null=True)
    payload = serializers.DictField(required=False, default=dict)
    optimistic_id = serializers.CharField(max_length=64, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=['pending', 'awaiting_confirmation'], required=False, default='pending')


class QueueUploadSerializer(serializers.Serializer):
    client_id = serializers.CharField(max_length=80)
    items = QueueUploadItemSerializer(many=True, allow_empty=False)


class ConfirmTranscriptionSerializer(serializers.Serializer):
    transcription = serializers.CharField()
    activity_type = serializers.CharField(required=False, allow_null=True)
    activity_data = serializers.DictField(required=False, allow_null=True)
    animal_ids = serializers.ListField(child=serializers.IntegerField(), required=False, allow_null=True)


class SubmitCorrectionSerializer(serializers.Serializer):
    originalText = serializers.CharField()
    correctedText = serializers.CharField()
    farmId = serializers.IntegerField(required=False, allow_null=True)
    context = serializers.JSONField(required=False, allow_null=True)
    audioDuration = serializers.FloatField(required=False, allow_null=True, min_value=0)
