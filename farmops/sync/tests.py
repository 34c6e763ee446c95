"""
Test suite for the sync app
Tests: queue storage, replay of each item type, retries and backoff, voice confirmation and the queue endpoints
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase, SimpleTestCase, override_settings
from django.utils import timezone
from rest_framework import status

from farmops.core.models import AuditLog, Notification
from farmops.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from farmops.animals.models import FeedingRecord, HealthRecord, MilkingRecord
from farmops.approvals.models import PendingActivity
from farmops.feed.models import FeedStockTransaction
from farmops.sync import queue
from farmops.sync.models import QueueItem, TranscriptionCorrection
from farmops.sync.service import (
    GENERIC_ERROR_MESSAGE, SYNC_LOCK_PREFIX, retry_delay, sync_queue, translate_error,
)
from farmops.sync.queue import QueueItemError

CLIENT = 'device-1'


class RetryPolicyTests(SimpleTestCase):

    def test_retry_delay(self):
        self.assertEqual([retry_delay(n) for n in (0, 1, 2, 3, 7)], [1, 1, 2, 4, 4])

    def test_translate_error(self):
        self.assertEqual(
            translate_error(QueueItemError('NEEDS_ACTIVITY_TYPE')),
            'Please choose what kind of activity this recording is.',
        )
        self.assertEqual(translate_error(QueueItemError('diagnosis is required')), 'diagnosis is required')
        self.assertEqual(translate_error(ValueError('boom')), GENERIC_ERROR_MESSAGE)


class QueueStorageTests(TestCase):
    """Test the per-device queue"""

    def setUp(self):
        self.user = TestDataFactory.create_user()

    def test_add_to_queue(self):
        item = queue.add_to_queue(self.user, CLIENT, 'bulk_milk', {'milkRecords': []})
        self.assertEqual(item.status, 'pending')
        self.assertEqual(item.retries, 0)
        self.assertTrue(item.optimistic_id)

    def test_add_validates_input(self):
        with self.assertRaises(QueueItemError):
            queue.add_to_queue(self.user, CLIENT, 'bulk_eggs')
        with self.assertRaises(QueueItemError):
            queue.add_to_queue(self.user, '', 'bulk_milk')
        with self.assertRaises(QueueItemError):
            queue.add_to_queue(self.user, CLIENT, 'bulk_milk', status='archived')

    @override_settings(OFFLINE_QUEUE_MAX_SIZE=3)
    def test_full_queue_evicts_oldest(self):
        items = [queue.add_to_queue(self.user, CLIENT, 'single_milk') for _ in range(4)]
        self.assertEqual(queue.get_queue_count(CLIENT), 3)
        self.assertFalse(QueueItem.objects.filter(pk=items[0].id).exists())
        self.assertEqual([i.id for i in queue.get_all(CLIENT)], [i.id for i in items[1:]])

    @override_settings(OFFLINE_QUEUE_MAX_SIZE=3)
    def test_eviction_is_per_client(self):
        for _ in range(3):
            queue.add_to_queue(self.user, CLIENT, 'single_milk')
        queue.add_to_queue(self.user, 'device-2', 'single_milk')
        self.assertEqual(queue.get_queue_count(CLIENT), 3)

    def test_reupload_is_idempotent(self):
        first = queue.add_to_queue(self.user, CLIENT, 'single_milk', optimistic_id='abc-123')
        again = queue.add_to_queue(self.user, CLIENT, 'single_milk', optimistic_id='abc-123')
        self.assertEqual(first.id, again.id)
        self.assertEqual(queue.get_queue_count(CLIENT), 1)

    def test_optimistic_id_of_another_client(self):
        queue.add_to_queue(self.user, CLIENT, 'single_milk', optimistic_id='abc-123')
        with self.assertRaises(QueueItemError) as ctx:
            queue.add_to_queue(self.user, 'device-2', 'single_milk', optimistic_id='abc-123')
        self.assertEqual(ctx.exception.status_code, 409)

    def test_status_helpers(self):
        first = queue.add_to_queue(self.user, CLIENT, 'single_milk')
        second = queue.add_to_queue(self.user, CLIENT, 'single_milk')
        third = queue.add_to_queue(self.user, CLIENT, 'single_milk')
        queue.update_status(first.id, 'completed')
        queue.update_status(second.id, 'failed', 'nope')

        self.assertEqual([i.id for i in queue.get_all_pending(CLIENT)], [third.id])
        self.assertEqual(queue.get_pending_count(CLIENT), 1)
        self.assertIsNotNone(queue.get_item(first.id).processed_at)

        self.assertEqual(queue.reset_all_failed(CLIENT), 1)
        second.refresh_from_db()
        self.assertEqual((second.status, second.retries, second.error), ('pending', 0, None))

        self.assertEqual(queue.clear_completed(CLIENT), 1)
        self.assertEqual(queue.get_queue_count(CLIENT), 2)

    def test_increment_retries(self):
        item = queue.add_to_queue(self.user, CLIENT, 'single_milk')
        self.assertEqual(queue.increment_retries(item.id), 1)
        self.assertEqual(queue.increment_retries(item.id), 2)

    def test_update_payload_merges(self):
        item = queue.add_to_queue(self.user, CLIENT, 'voice_activity', {'farmId': 1})
        item = queue.update_payload(item.id, transcription='fed the cows')
        self.assertEqual(item.payload, {'farmId': 1, 'transcription': 'fed the cows'})

    def test_confirm_transcription(self):
        item = queue.add_to_queue(self.user, CLIENT, 'voice_activity', {'farmId': 1}, status='awaiting_confirmation')
        item = queue.confirm_transcription(item.id, ' milked cow 7 ', activityType='milking', animalIds=None)
        self.assertEqual(item.status, 'pending')
        self.assertEqual(item.payload['transcription'], 'milked cow 7')
        self.assertTrue(item.payload['transcriptionConfirmed'])
        self.assertEqual(item.payload['activityType'], 'milking')
        self.assertNotIn('animalIds', item.payload)

    def test_confirm_rejects_other_items(self):
        milk = queue.add_to_queue(self.user, CLIENT, 'single_milk')
        with self.assertRaises(QueueItemError):
            queue.confirm_transcription(milk.id, 'text')
        voice = queue.add_to_queue(self.user, CLIENT, 'voice_activity')
        with self.assertRaises(QueueItemError):
            queue.confirm_transcription(voice.id, '   ')


class SyncServiceTests(TestCase):
    """Test replaying queued items"""

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.farm = TestDataFactory.create_farm(owner=self.owner)
        self.farmhand = TestDataFactory.create_user()
        TestDataFactory.add_member(self.farm, self.farmhand, role='farmhand')
        self.cow = TestDataFactory.create_animal(self.farm, ear_tag='COW-1')
        self.heifer = TestDataFactory.create_animal(self.farm, ear_tag='COW-2')

    def later(self, seconds=10):
        return timezone.now() + timedelta(seconds=seconds)

    def test_bulk_milk(self):
        payload = {'milkRecords': [
            {'animalId': self.cow.id, 'liters': 5, 'recordDate': '2024-04-01', 'session': 'morning'},
            {'animalId': self.heifer.id, 'liters': '4.5', 'recordDate': '2024-04-01', 'session': 'PM'},
        ]}
        item = queue.add_to_queue(self.owner, CLIENT, 'bulk_milk', payload, farm=self.farm)

        result = sync_queue(CLIENT)
        self.assertEqual(result, {'processed': 1, 'succeeded': 1, 'failed': 0, 'skipped': 0})

        item.refresh_from_db()
        self.assertEqual(item.status, 'completed')
        self.assertIsNotNone(item.processed_at)
        self.assertEqual(item.server_response['count'], 2)
        self.assertEqual(MilkingRecord.objects.get(animal=self.cow).session, 'AM')
        self.assertTrue(Notification.objects.filter(user=self.owner, type='sync_completed').exists())

    def test_single_milk_uses_payload_farm(self):
        payload = {'farmId': self.farm.id, 'singleMilk': {'animalId': self.cow.id, 'liters': 3}}
        queue.add_to_queue(self.owner, CLIENT, 'single_milk', payload)
        self.assertEqual(sync_queue(CLIENT)['succeeded'], 1)
        self.assertEqual(MilkingRecord.objects.get(animal=self.cow).liters, Decimal('3.00'))

    def test_bulk_feed_deducts_inventory(self):
        TestDataFactory.create_feed_lot(self.farm, feed_type='Napier Grass', quantity_kg='20.00', category='roughage')
        payload = {
            'feedType': 'napier grass',
            'recordDate': '2024-04-01',
            'feedRecords': [
                {'animalId': self.cow.id, 'kilograms': 7},
                {'animalId': self.heifer.id, 'kilograms': 5},
            ],
        }
        item = queue.add_to_queue(self.owner, CLIENT, 'bulk_feed', payload, farm=self.farm)
        sync_queue(CLIENT)

        item.refresh_from_db()
        self.assertEqual(item.status, 'completed')
        self.assertEqual(item.server_response['inventory']['deducted_kg'], 12.0)
        self.assertEqual(FeedingRecord.objects.filter(feed_type='napier grass').count(), 2)
        entry = FeedStockTransaction.objects.get(transaction_type='consumption')
        self.assertEqual(entry.notes, 'Offline sync: Bulk feeding 2 animals')
        self.assertEqual(entry.balance_after, Decimal('8.00'))

    def test_single_health(self):
        payload = {'singleHealth': {'animalId': self.cow.id, 'visitDate': '2024-04-03', 'diagnosis': 'Mastitis'}}
        queue.add_to_queue(self.owner, CLIENT, 'single_health', payload, farm=self.farm)
        sync_queue(CLIENT)
        self.assertEqual(HealthRecord.objects.get(animal=self.cow).diagnosis, 'Mastitis')

    def test_animal_form(self):
        payload = {
            'formData': {'ear_tag': 'NEW-1', 'livestock_type': 'goat', 'gender': 'male'},
            'initialWeight': {'weight_kg': 18, 'measurement_date': '2024-04-01'},
        }
        item = queue.add_to_queue(self.owner, CLIENT, 'animal_form', payload, farm=self.farm)
        sync_queue(CLIENT)
        item.refresh_from_db()
        self.assertEqual(item.status, 'completed')
        self.assertEqual(item.server_response['ear_tag'], 'NEW-1')

    def test_failed_item_backs_off_then_fails(self):
        item = queue.add_to_queue(
            self.farmhand, CLIENT, 'voice_activity',
            {'transcription': 'something about the cows', 'transcriptionConfirmed': True}, farm=self.farm,
        )

        result = sync_queue(CLIENT)
        self.assertEqual(result['failed'], 1)
        item.refresh_from_db()
        self.assertEqual(item.status, 'pending')
        self.assertEqual(item.retries, 1)
        self.assertEqual(item.error, 'Please choose what kind of activity this recording is.')
        self.assertIsNotNone(item.next_attempt_at)

        # Still backing off
        self.assertEqual(sync_queue(CLIENT)['skipped'], 1)

        sync_queue(CLIENT, now=self.later())
        sync_queue(CLIENT, now=self.later())
        item.refresh_from_db()
        self.assertEqual(item.status, 'failed')
        self.assertEqual(item.retries, 3)
        self.assertTrue(Notification.objects.filter(user=self.farmhand, type='sync_failed').exists())

        # Failed items are left alone until reset
        self.assertEqual(sync_queue(CLIENT, now=self.later())['processed'], 0)

    def test_one_failure_does_not_block_the_rest(self):
        bad = queue.add_to_queue(self.owner, CLIENT, 'single_health', {'singleHealth': {'animalId': self.cow.id}}, farm=self.farm)
        good = queue.add_to_queue(
            self.owner, CLIENT, 'single_milk', {'singleMilk': {'animalId': self.cow.id, 'liters': 2}}, farm=self.farm,
        )
        result = sync_queue(CLIENT)
        self.assertEqual((result['succeeded'], result['failed']), (1, 1))
        bad.refresh_from_db()
        good.refresh_from_db()
        self.assertEqual(bad.error, 'diagnosis is required')
        self.assertEqual(good.status, 'completed')
        self.assertFalse(HealthRecord.objects.exists())

    def test_missing_farm(self):
        item = queue.add_to_queue(self.owner, CLIENT, 'single_milk', {'singleMilk': {'animalId': self.cow.id, 'liters': 2}})
        sync_queue(CLIENT)
        item.refresh_from_db()
        self.assertEqual(item.error, 'This entry is not linked to a farm. Please record it again.')

    def test_farmhand_cannot_write_records_directly(self):
        item = queue.add_to_queue(
            self.farmhand, CLIENT, 'single_milk', {'singleMilk': {'animalId': self.cow.id, 'liters': 2}}, farm=self.farm,
        )
        sync_queue(CLIENT)
        item.refresh_from_db()
        self.assertEqual(item.error, 'Only farm owners and managers can perform this action')
        self.assertFalse(MilkingRecord.objects.exists())

    def test_unconfirmed_voice_waits_for_confirmation(self):
        item = queue.add_to_queue(self.farmhand, CLIENT, 'voice_activity', {'transcription': 'milked'}, farm=self.farm)
        result = sync_queue(CLIENT)
        self.assertEqual(result, {'processed': 0, 'succeeded': 0, 'failed': 0, 'skipped': 1})
        item.refresh_from_db()
        self.assertEqual(item.status, 'awaiting_confirmation')

    def test_confirmed_voice_submits_activity(self):
        item = queue.add_to_queue(self.farmhand, CLIENT, 'voice_activity', {'timestamp': 1712000000000}, farm=self.farm)
        queue.confirm_transcription(
            item.id, 'Milked COW-1, five liters',
            activityType='milking', activityData={'quantity': 5}, animalIds=[self.cow.id],
        )
        sync_queue(CLIENT)

        item.refresh_from_db()
        self.assertEqual(item.status, 'completed')
        activity = PendingActivity.objects.get(pk=item.server_response['pending_activity_id'])
        self.assertEqual(activity.status, 'pending')
        self.assertEqual(activity.submitted_by, self.farmhand)
        self.assertEqual(activity.animal_ids, [self.cow.id])
        self.assertEqual(activity.activity_data['transcription'], 'Milked COW-1, five liters')
        self.assertEqual(int(activity.submitted_at.timestamp()), 1712000000)

    def test_assistant_query_is_skipped(self):
        item = queue.add_to_queue(
            self.farmhand, CLIENT, 'voice_activity',
            {'transcription': 'Doc Aga, what should I feed a sick calf?', 'transcriptionConfirmed': True},
            farm=self.farm,
        )
        sync_queue(CLIENT)
        item.refresh_from_db()
        self.assertEqual(item.status, 'completed')
        self.assertEqual(item.server_response, {'skipped': True, 'reason': 'assistant_query'})
        self.assertFalse(PendingActivity.objects.exists())

    def test_concurrent_sync_is_refused(self):
        queue.add_to_queue(self.owner, CLIENT, 'single_milk', {'singleMilk': {'animalId': self.cow.id, 'liters': 2}}, farm=self.farm)
        cache.add(f'{SYNC_LOCK_PREFIX}:{CLIENT}', True)
        result = sync_queue(CLIENT)
        self.assertTrue(result['in_progress'])
        self.assertEqual(queue.get_pending_count(CLIENT), 1)

    def test_item_stuck_in_processing_is_recovered(self):
        item = queue.add_to_queue(self.owner, CLIENT, 'single_milk', {'singleMilk': {'animalId': self.cow.id, 'liters': 2}}, farm=self.farm)
        queue.update_status(item.id, 'processing')

        result = sync_queue(CLIENT)
        self.assertEqual(result, {'processed': 1, 'succeeded': 1, 'failed': 0, 'skipped': 0})
        item.refresh_from_db()
        self.assertEqual(item.status, 'completed')
        self.assertEqual(MilkingRecord.objects.filter(animal=self.cow).count(), 1)

    def test_processing_items_are_left_alone_while_locked(self):
        item = queue.add_to_queue(self.owner, CLIENT, 'single_milk', {'singleMilk': {'animalId': self.cow.id, 'liters': 2}}, farm=self.farm)
        queue.update_status(item.id, 'processing')
        cache.add(f'{SYNC_LOCK_PREFIX}:{CLIENT}', True)
        sync_queue(CLIENT)
        item.refresh_from_db()
        self.assertEqual(item.status, 'processing')

    def test_management_command(self):
        queue.add_to_queue(self.owner, CLIENT, 'single_milk', {'singleMilk': {'animalId': self.cow.id, 'liters': 2}}, farm=self.farm)
        out = StringIO()
        call_command('sync_offline_queue', stdout=out)
        self.assertIn(f'{CLIENT}: 1 succeeded, 0 failed, 0 skipped', out.getvalue())


class QueueAPITests(TestCase):
    """Test offline queue endpoints"""

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.farm = TestDataFactory.create_farm(owner=self.owner)
        self.cow = TestDataFactory.create_animal(self.farm)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.scoped = f'{self.owner.pk}:{CLIENT}'

    def upload(self, *items):
        return self.client.post('/api/v1/offline-queue/', {'client_id': CLIENT, 'items': list(items)}, format='json')

    def milk_item(self, **extra):
        item = {
            'item_type': 'single_milk',
            'farm_id': self.farm.id,
            'payload': {'singleMilk': {'animalId': self.cow.id, 'liters': 3}},
        }
        item.update(extra)
        return item

    def test_upload(self):
        response = self.upload(self.milk_item(optimistic_id='opt-1'))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data[0]['client_id'], self.scoped)
        self.assertEqual(response.data[0]['optimistic_id'], 'opt-1')

    def test_upload_to_foreign_farm(self):
        other_farm = TestDataFactory.create_farm()
        response = self.upload(self.milk_item(farm_id=other_farm.id))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(QueueItem.objects.exists())

    def test_list_requires_client_id(self):
        response = self.client.get('/api/v1/offline-queue/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_with_header(self):
        self.upload(self.milk_item(), self.milk_item())
        response = self.client.get('/api/v1/offline-queue/?status=pending', HTTP_X_CLIENT_ID=CLIENT)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_queues_are_scoped_per_user(self):
        self.upload(self.milk_item())
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get(f'/api/v1/offline-queue/?client_id={CLIENT}')
        self.assertEqual(response.data, [])

        item = QueueItem.objects.get()
        response = self.client.get(f'/api/v1/offline-queue/{item.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_sync_and_counts(self):
        self.upload(self.milk_item())
        response = self.client.post('/api/v1/offline-queue/sync/', {'client_id': CLIENT}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['succeeded'], 1)
        self.assertTrue(AuditLog.objects.filter(action='queue_sync', object_id=self.scoped).exists())

        response = self.client.get(f'/api/v1/offline-queue/counts/?client_id={CLIENT}')
        self.assertEqual(response.data['total'], 1)
        self.assertEqual(response.data['completed'], 1)
        self.assertEqual(response.data['pending'], 0)

        response = self.client.post('/api/v1/offline-queue/clear-completed/', {'client_id': CLIENT}, format='json')
        self.assertEqual(response.data, {'removed': 1})

    def test_retry(self):
        self.upload(self.milk_item())
        item = QueueItem.objects.get()
        queue.update_item(item.id, status='failed', retries=3, error='boom')

        response = self.client.post(f'/api/v1/offline-queue/{item.id}/retry/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['retries'], 0)

        queue.update_status(item.id, 'completed')
        response = self.client.post(f'/api/v1/offline-queue/{item.id}/retry/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_retry_stuck_item(self):
        self.upload(self.milk_item())
        item = QueueItem.objects.get()
        queue.update_status(item.id, 'processing')

        response = self.client.post(f'/api/v1/offline-queue/{item.id}/retry/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'pending')

    def test_retry_all(self):
        self.upload(self.milk_item(), self.milk_item())
        QueueItem.objects.update(status='failed', retries=3)
        response = self.client.post('/api/v1/offline-queue/retry-all/', {'client_id': CLIENT}, format='json')
        self.assertEqual(response.data, {'reset': 2})

    def test_confirm(self):
        self.upload({'item_type': 'voice_activity', 'farm_id': self.farm.id, 'status': 'awaiting_confirmation'})
        item = QueueItem.objects.get()
        response = self.client.post(
            f'/api/v1/offline-queue/{item.id}/confirm/',
            {'transcription': 'weighed cow', 'activity_type': 'weight_measurement'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'pending')
        self.assertEqual(response.data['payload']['activityType'], 'weight_measurement')

    def test_delete(self):
        self.upload(self.milk_item())
        item = QueueItem.objects.get()
        response = self.client.delete(f'/api/v1/offline-queue/{item.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(QueueItem.objects.exists())


class SubmitCorrectionTests(TestCase):
    """Test the submit-correction function endpoint"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.farm = TestDataFactory.create_farm(owner=self.user)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.data = {
            'originalText': 'milked cow sebben',
            'correctedText': 'milked cow seven',
            'farmId': self.farm.id,
            'context': {'screen': 'voice'},
            'audioDuration': 3.2,
        }

    def test_submit(self):
        response = self.client.post('/api/v1/functions/submit-correction/', self.data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        correction = TranscriptionCorrection.objects.get(pk=response.data['id'])
        self.assertEqual(correction.corrected_text, 'milked cow seven')
        self.assertEqual(correction.farm, self.farm)
        self.assertTrue(AuditLog.objects.filter(action='correction_submit').exists())

    def test_missing_text(self):
        response = self.client.post('/api/v1/functions/submit-correction/', {'originalText': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('correctedText', response.data['fields'])

    def test_foreign_farm(self):
        self.data['farmId'] = TestDataFactory.create_farm().id
        response = self.client.post('/api/v1/functions/submit-correction/', self.data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(TranscriptionCorrection.objects.exists())

    @override_settings(RATE_LIMITS={'submit-correction': (1, 60)})
    def test_rate_limited(self):
        self.client.post('/api/v1/functions/submit-correction/', self.data, format='json')
        response = self.client.post('/api/v1/functions/submit-correction/', self.data, format='json')
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertIn('error', response.data)
        self.assertIn('Retry-After', response)
