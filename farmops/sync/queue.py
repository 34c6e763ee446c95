"""
Offline queue storage

Each device (client_id) owns a bounded FIFO of QueueItem rows. Items
start pending, go through processing and end completed or failed; voice
items wait in awaiting_confirmation until the user confirms the
transcription.
"""
import logging
import uuid

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.status import HTTP_409_CONFLICT

from farmops.core.exceptions import ServiceError
from .models import QueueItem

logger = logging.getLogger(__name__)

ITEM_TYPES = [choice[0] for choice in QueueItem.ITEM_TYPE_CHOICES]
STATUSES = [choice[0] for choice in QueueItem.STATUS_CHOICES]
FINAL_STATUSES = ('completed', 'failed')


class QueueItemError(ServiceError):
    pass


def max_queue_size():
    return settings.OFFLINE_QUEUE_MAX_SIZE


def _client_items(client_id):
    return QueueItem.objects.filter(client_id=client_id)


def get_item(item_id, client_id=None):
    items = QueueItem.objects.all() if client_id is None else _client_items(client_id)
    item = items.filter(pk=item_id).first()
    if item is None:
        raise QueueItemError('Queue item not found', status.HTTP_404_NOT_FOUND)
    return item


def add_to_queue(user, client_id, item_type, payload=None, farm=None, optimistic_id=None, status='pending'):
    """
    Append an item to a client's queue.

    When the client already holds the maximum number of items the oldest
    one is dropped to make room. Returns the stored item; its
    optimistic_id is generated when the client did not send one.
    """
    if item_type not in ITEM_TYPES:
        raise QueueItemError(f'Unknown queue item type: {item_type}')
    if status not in STATUSES:
        raise QueueItemError(f'Unknown queue item status: {status}')
    if not client_id:
        raise QueueItemError('client_id is required')

    optimistic_id = optimistic_id or str(uuid.uuid4())
    existing = QueueItem.objects.filter(optimistic_id=optimistic_id).first()
    if existing is not None:
        # Re-upload of an item the server already holds
        if existing.client_id != client_id:
            raise QueueItemError('optimistic_id already used by another device', HTTP_409_CONFLICT)
        return existing

    with transaction.atomic():
        if _client_items(client_id).count() >= max_queue_size():
            oldest = _client_items(client_id).order_by('created_at', 'id').first()
            if oldest is not None:
                logger.warning(f"Queue for client {client_id} is full, evicting item {oldest.id} ({oldest.status})")
                oldest.delete()

        item = QueueItem.objects.create(
            client_id=client_id,
            user=user,
            farm=farm,
            item_type=item_type,
            payload=payload or {},
            status=status,
            retries=0,
            optimistic_id=optimistic_id,
        )
    logger.info(f"Queued {item_type} item {item.id} for client {client_id}")
    return item


def get_all_pending(client_id):
    """Pending items of a client, oldest first"""
    return list(_client_items(client_id).filter(status='pending').order_by('created_at', 'id'))


def get_all(client_id):
    return list(_client_items(client_id).order_by('created_at', 'id'))


def get_all_failed(client_id):
    return list(_client_items(client_id).filter(status='failed').order_by('created_at', 'id'))


def update_status(item_id, status, error=None):
    item = get_item(item_id)
    item.status = status
    item.error = error
    fields = ['status', 'error']
    if status in FINAL_STATUSES:
        item.processed_at = timezone.now()
        fields.append('processed_at')
    item.save(update_fields=fields)
    return item


def increment_retries(item_id):
    """Bump the retry counter; returns the new count"""
    item = get_item(item_id)
    item.retries += 1
    item.save(update_fields=['retries'])
    return item.retries


def remove_item(item_id, client_id=None):
    get_item(item_id, client_id).delete()


def clear_completed(client_id):
    """Drop the client's completed items; returns how many were removed"""
    deleted, _ = _client_items(client_id).filter(status='completed').delete()
    return deleted


def get_queue_count(client_id):
    return _client_items(client_id).count()


def get_pending_count(client_id):
    return _client_items(client_id).filter(status='pending').count()


def _reset(item):
    item.status = 'pending'
    item.retries = 0
    item.error = None
    item.next_attempt_at = None
    item.save(update_fields=['status', 'retries', 'error', 'next_attempt_at'])


def reset_for_retry(item_id, client_id=None):
    """Put a failed item back in line with its retries reset"""
    item = get_item(item_id, client_id)
    _reset(item)
    return item


def recover_stuck_items(client_id):
    """
    Return items left in processing to pending; returns how many.

    Only safe while holding the client's sync lock, when no other sync of
    the client can be running.
    """
    return QueueItem.objects.filter(client_id=client_id, status='processing').update(
        status='pending', next_attempt_at=None,
    )


def reset_all_failed(client_id):
    """Reset every failed item of a client; returns how many were reset"""
    failed = get_all_failed(client_id)
    for item in failed:
        _reset(item)
    return len(failed)


def update_item(item_id, **changes):
    item = get_item(item_id)
    for field, value in changes.items():
        setattr(item, field, value)
    item.save(update_fields=list(changes.keys()))
    return item


def update_payload(item_id, **payload_changes):
    """Merge keys into an item's payload"""
    item = get_item(item_id)
    payload = dict(item.payload or {})
    payload.update(payload_changes)
    item.payload = payload
    item.save(update_fields=['payload'])
    return item


def set_awaiting_confirmation(item_id, transcription=None):
    """Hold a voice item until its transcription is confirmed"""
    item = get_item(item_id)
    if transcription is not None:
        item.payload = {**(item.payload or {}), 'transcription': transcription}
    item.status = 'awaiting_confirmation'
    item.retries = 0
    item.error = None
    item.save(update_fields=['payload', 'status', 'retries', 'error'])
    return item


def confirm_transcription(item_id, transcription, client_id=None, **extracted):
    """
    Confirm (and possibly correct) a voice transcription.

    Extra keyword arguments, such as activity_type and activity_data
    extracted on the device, are merged into the payload.
    """
    if not (transcription or '').strip():
        raise QueueItemError('transcription is required')
    item = get_item(item_id, client_id)
    if item.item_type != 'voice_activity':
        raise QueueItemError('Only voice activities have a transcription to confirm')
    if item.status == 'completed':
        raise QueueItemError('Queue item was already processed')

    payload = dict(item.payload or {})
    payload.update({key: value for key, value in extracted.items() if value is not None})
    payload['transcription'] = transcription.strip()
    payload['transcriptionConfirmed'] = True
    item.payload = payload
    item.status = 'pending'
    item.next_attempt_at = None
    item.save(update_fields=['payload', 'status', 'next_attempt_at'])
    return item
