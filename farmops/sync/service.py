"""
Offline queue sync

Replays a client's pending items one at a time, oldest first. A failing
item is retried with exponential backoff and marked failed after
OFFLINE_QUEUE_MAX_RETRIES attempts; the user can reset it by hand.
"""
import json
import logging
from datetime import timedelta

from django.conf import settings
from django.core.cache import cache
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.utils import timezone

from farmops.core.exceptions import ServiceError
from farmops.core.utils import notify_user
from . import queue
from .models import QueueItem
from .processors import process_item

logger = logging.getLogger(__name__)

SYNC_LOCK_PREFIX = "offline_sync_lock"
SYNC_LOCK_TIMEOUT = 300

ERROR_MESSAGES = {
    'FARM_ID_MISSING': 'This entry is not linked to a farm. Please record it again.',
    'NEEDS_ACTIVITY_TYPE': 'Please choose what kind of activity this recording is.',
    'TRANSCRIPTION_NOT_CONFIRMED': 'Please confirm the transcription before syncing.',
}
GENERIC_ERROR_MESSAGE = 'Something went wrong while syncing. Please try again.'


def max_retries():
    return settings.OFFLINE_QUEUE_MAX_RETRIES


def retry_delay(retries):
    """Seconds to wait before the next attempt after `retries` failures"""
    delays = settings.OFFLINE_QUEUE_RETRY_DELAYS
    index = min(max(retries, 1), len(delays)) - 1
    return delays[index]


def translate_error(error):
    """User-facing message for a sync failure"""
    if isinstance(error, ServiceError):
        return ERROR_MESSAGES.get(error.message, error.message)
    return GENERIC_ERROR_MESSAGE


def _json_safe(data):
    # Decimals and dates in handler results
    return json.loads(json.dumps(data, cls=DjangoJSONEncoder))


def needs_confirmation(item):
    payload = item.payload or {}
    return item.item_type == 'voice_activity' and not (
        payload.get('transcription') and payload.get('transcriptionConfirmed')
    )


def _sync_lock_key(client_id):
    return f"{SYNC_LOCK_PREFIX}:{client_id}"


def sync_item(item):
    """Process one item; returns True on success"""
    queue.update_status(item.id, 'processing')
    try:
        with transaction.atomic():
            response = process_item(item)
    except Exception as e:
        if isinstance(e, ServiceError):
            logger.warning(f"Failed to sync queue item {item.id} ({item.item_type}): {e.message}")
        else:
            logger.error(f"Failed to sync queue item {item.id} ({item.item_type}): {str(e)}", exc_info=True)

        retries = queue.increment_retries(item.id)
        if retries >= max_retries():
            queue.update_status(item.id, 'failed', translate_error(e))
            notify_user(
                item.user,
                'sync_failed',
                'Sync Failed',
                f"An offline {item.get_item_type_display().lower()} entry could not be synced after {retries} attempts.",
            )
        else:
            queue.update_item(
                item.id,
                status='pending',
                error=translate_error(e),
                next_attempt_at=timezone.now() + timedelta(seconds=retry_delay(retries)),
            )
        return False

    queue.update_item(item.id, server_response=_json_safe(response), next_attempt_at=None)
    queue.update_status(item.id, 'completed')
    return True


def sync_queue(client_id, now=None):
    """
    Process the pending items of one client.

    Items still backing off and voice items without a confirmed
    transcription are skipped. Returns {processed, succeeded, failed,
    skipped}; in_progress is set when another sync of the same client
    holds the lock.
    """
    result = {'processed': 0, 'succeeded': 0, 'failed': 0, 'skipped': 0}
    lock_key = _sync_lock_key(client_id)
    if not cache.add(lock_key, True, SYNC_LOCK_TIMEOUT):
        logger.info(f"Sync already in progress for client {client_id}, skipping")
        return {**result, 'in_progress': True}

    try:
        now = now or timezone.now()
        recovered = queue.recover_stuck_items(client_id)
        if recovered:
            logger.warning(f"Recovered {recovered} items stuck in processing for client {client_id}")
        pending = queue.get_all_pending(client_id)
        logger.info(f"Found {len(pending)} pending items for client {client_id}")

        for item in pending:
            if item.next_attempt_at and item.next_attempt_at > now:
                result['skipped'] += 1
                continue
            if needs_confirmation(item):
                queue.set_awaiting_confirmation(item.id)
                result['skipped'] += 1
                continue

            if sync_item(item):
                result['succeeded'] += 1
            else:
                result['failed'] += 1
            result['processed'] += 1
    finally:
        cache.delete(lock_key)

    if result['succeeded'] and pending:
        notify_user(
            pending[0].user,
            'sync_completed',
            'Sync Complete',
            f"{result['succeeded']} offline {'entry' if result['succeeded'] == 1 else 'entries'} synced.",
        )
    logger.info(
        f"Sync of client {client_id} complete: {result['succeeded']} succeeded, "
        f"{result['failed']} failed, {result['skipped']} skipped"
    )
    return result


def sync_all_clients(now=None):
    """Sync every client that has pending items; keyed by client id"""
    client_ids = (
        QueueItem.objects.filter(status__in=['pending', 'processing'])
        .values_list('client_id', flat=True)
        .distinct()
        .order_by('client_id')
    )
    return {client_id: sync_queue(client_id, now=now) for client_id in client_ids}
