import logging

from django.db import transaction
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from farmops.core.exceptions import ServiceError, validation_error_response
from farmops.core.ratelimit import rate_limit
from farmops.core.utils import create_audit_log
from farmops.farms.permissions import get_farm_for_user
from .models import QueueItem, TranscriptionCorrection
from .serializers import (
    QueueItemSerializer, QueueUploadSerializer, ConfirmTranscriptionSerializer,
    SubmitCorrectionSerializer,
)
from . import queue
from .service import sync_queue

logger = logging.getLogger(__name__)


def scoped_client_id(user, client_id):
    """Device ids are namespaced per user so two accounts never share a queue"""
    return f"{user.pk}:{client_id}"


def _request_client_id(request):
    client_id = (
        request.data.get('client_id') if request.method != 'GET' else None
    ) or request.query_params.get('client_id') or request.headers.get('X-Client-Id')
    if not client_id:
        return None
    return scoped_client_id(request.user, client_id)


def _missing_client_id():
    return Response({'error': 'client_id is required'}, status=status.HTTP_400_BAD_REQUEST)


def _own_item(request, pk):
    item = QueueItem.objects.filter(pk=pk, user=request.user).first()
    if item is None:
        raise queue.QueueItemError('Queue item not found', status.HTTP_404_NOT_FOUND)
    return item


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def queue_list_upload(request):
    """List a device's queue or upload items buffered while offline"""
    if request.method == 'GET':
        client_id = _request_client_id(request)
        if client_id is None:
            return _missing_client_id()
        status_filter = request.query_params.get('status')
        if status_filter == 'pending':
            items = queue.get_all_pending(client_id)
        elif status_filter == 'failed':
            items = queue.get_all_failed(client_id)
        elif status_filter:
            items = [item for item in queue.get_all(client_id) if item.status == status_filter]
        else:
            items = queue.get_all(client_id)
        return Response(QueueItemSerializer(items, many=True).data)

    serializer = QueueUploadSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    data = serializer.validated_data
    client_id = scoped_client_id(request.user, data['client_id'])

    try:
        with transaction.atomic():
            stored = []
            for entry in data['items']:
                farm_id = entry.get('farm_id') or entry['payload'].get('farmId')
                farm = get_farm_for_user(farm_id, request.user) if farm_id else None
                stored.append(queue.add_to_queue(
                    request.user, client_id, entry['item_type'],
                    payload=entry['payload'], farm=farm,
                    optimistic_id=entry.get('optimistic_id') or None,
                    status=entry['status'],
                ))
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)

    logger.info(f"User {request.user.pk} uploaded {len(stored)} queue items for client {client_id}")
    return Response(QueueItemSerializer(stored, many=True).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def queue_item_detail(request, pk):
    try:
        item = _own_item(request, pk)
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)

    if request.method == 'GET':
        return Response(QueueItemSerializer(item).data)

    queue.remove_item(item.id)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def queue_counts(request):
    client_id = _request_client_id(request)
    if client_id is None:
        return _missing_client_id()
    items = QueueItem.objects.filter(client_id=client_id)
    return Response({
        'total': queue.get_queue_count(client_id),
        'pending': queue.get_pending_count(client_id),
        'awaiting_confirmation': items.filter(status='awaiting_confirmation').count(),
        'failed': items.filter(status='failed').count(),
        'completed': items.filter(status='completed').count(),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def queue_sync(request):
    """Replay the device's pending items"""
    client_id = _request_client_id(request)
    if client_id is None:
        return _missing_client_id()

    try:
        result = sync_queue(client_id)
    except Exception as e:
        logger.error(f'Error syncing offline queue of client {client_id}: {str(e)}', exc_info=True)
        return Response({'error': str(e)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if result['processed']:
        create_audit_log(
            request=request,
            action='queue_sync',
            model_name='QueueItem',
            object_id=client_id,
            object_name='offline queue',
            changes=result,
        )
    return Response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def queue_item_retry(request, pk):
    try:
        item = _own_item(request, pk)
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)
    if item.status not in ('failed', 'pending', 'processing'):
        return Response({'error': f'Cannot retry an item that is {item.status}'}, status=status.HTTP_400_BAD_REQUEST)

    item = queue.reset_for_retry(item.id)
    create_audit_log(
        request=request,
        action='queue_retry',
        model_name='QueueItem',
        object_id=item.id,
        object_name=item.item_type,
        changes={'status': item.status},
    )
    return Response(QueueItemSerializer(item).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def queue_retry_all(request):
    client_id = _request_client_id(request)
    if client_id is None:
        return _missing_client_id()

    reset = queue.reset_all_failed(client_id)
    if reset:
        create_audit_log(
            request=request,
            action='queue_retry',
            model_name='QueueItem',
            object_id=client_id,
            object_name='offline queue',
            changes={'reset': reset},
        )
    return Response({'reset': reset})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def queue_item_confirm(request, pk):
    """Confirm or correct the transcription of a voice item"""
    serializer = ConfirmTranscriptionSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    data = serializer.validated_data

    try:
        item = _own_item(request, pk)
        item = queue.confirm_transcription(
            item.id, data['transcription'],
            activityType=data.get('activity_type'),
            activityData=data.get('activity_data'),
            animalIds=data.get('animal_ids'),
        )
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)
    return Response(QueueItemSerializer(item).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def queue_clear_completed(request):
    client_id = _request_client_id(request)
    if client_id is None:
        return _missing_client_id()
    return Response({'removed': queue.clear_completed(client_id)})


# Function endpoints
@api_view(['POST'])
@permission_classes([IsAuthenticated])
@rate_limit('submit-correction')
def submit_correction(request):
    """Store a user's correction of a voice transcription"""
    serializer = SubmitCorrectionSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    data = serializer.validated_data

    try:
        farm = get_farm_for_user(data['farmId'], request.user) if data.get('farmId') else None
        correction = TranscriptionCorrection.objects.create(
            user=request.user,
            farm=farm,
            original_text=data['originalText'],
            corrected_text=data['correctedText'],
            context=data.get('context'),
            audio_duration=data.get('audioDuration'),
        )
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)
    except Exception as e:
        logger.error(f'Error in submit-correction: {str(e)}', exc_info=True)
        return Response({'error': str(e)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(
        request=request,
        action='correction_submit',
        model_name='TranscriptionCorrection',
        object_id=correction.id,
        object_name=correction.corrected_text[:100],
        object_reference=str(farm.id) if farm else None,
    )
    return Response({'success': True, 'id': correction.id})
