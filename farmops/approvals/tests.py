"""
Test suite for the approvals app
Tests: activity submission, approve/reject, feed deduction on approval, the auto-approval sweep and endpoints
"""
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.conf import settings
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from farmops.core.exceptions import NotFoundError, PermissionDeniedError
from farmops.core.models import AuditLog, Notification
from farmops.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from farmops.animals.models import FeedingRecord, MilkingRecord, WeightRecord
from farmops.approvals.models import PendingActivity
from farmops.approvals.services import (
    ActivityReviewError, approve_activity, process_auto_approvals, reject_activity,
    review_pending_activity, submit_activity,
)
from farmops.feed.models import FeedStockTransaction


class ApprovalTestMixin:

    def setUp(self):
        cache.clear()
        self.owner = TestDataFactory.create_user()
        self.farm = TestDataFactory.create_farm(owner=self.owner)
        self.farmhand = TestDataFactory.create_user()
        TestDataFactory.add_member(self.farm, self.farmhand, role='farmhand')
        self.cow = TestDataFactory.create_animal(self.farm, ear_tag='COW-1')
        self.heifer = TestDataFactory.create_animal(self.farm, ear_tag='COW-2')


class SubmitActivityTests(ApprovalTestMixin, TestCase):
    """Test farmhand submissions"""

    def test_submission_waits_for_review(self):
        activity = submit_activity(self.farm, self.farmhand, 'milking', {'quantity': 5}, [self.cow.id])
        self.assertEqual(activity.status, 'pending')
        expected = activity.submitted_at + timedelta(hours=settings.DEFAULT_AUTO_APPROVE_HOURS)
        self.assertEqual(activity.auto_approve_at, expected)
        self.assertFalse(MilkingRecord.objects.exists())
        self.assertTrue(Notification.objects.filter(user=self.owner, type='activity_submitted').exists())
        self.assertFalse(Notification.objects.filter(user=self.farmhand).exists())

    def test_farm_settings_set_deadline(self):
        TestDataFactory.create_approval_settings(self.farm, auto_approve_hours=6, require_approval_for=['milking'])
        activity = submit_activity(self.farm, self.farmhand, 'milking', {'quantity': 5}, [self.cow.id])
        self.assertEqual(activity.auto_approve_at, activity.submitted_at + timedelta(hours=6))

    def test_types_without_approval_are_approved_immediately(self):
        TestDataFactory.create_approval_settings(self.farm, require_approval_for=['feeding'])
        activity = submit_activity(self.farm, self.farmhand, 'milking', {'quantity': 5}, [self.cow.id])
        self.assertEqual(activity.status, 'auto_approved')
        self.assertEqual(MilkingRecord.objects.filter(animal=self.cow).count(), 1)

    def test_outsider_cannot_submit(self):
        with self.assertRaises(PermissionDeniedError):
            submit_activity(self.farm, TestDataFactory.create_user(), 'milking', {'quantity': 5}, [self.cow.id])

    def test_animals_must_belong_to_farm(self):
        stranger = TestDataFactory.create_animal(TestDataFactory.create_farm())
        with self.assertRaises(ActivityReviewError):
            submit_activity(self.farm, self.farmhand, 'milking', {'quantity': 5}, [stranger.id])
        self.assertFalse(PendingActivity.objects.exists())

    def test_unknown_activity_type(self):
        with self.assertRaises(ActivityReviewError):
            submit_activity(self.farm, self.farmhand, 'shearing', {}, [self.cow.id])


class ReviewActivityTests(ApprovalTestMixin, TestCase):
    """Test approving and rejecting activities"""

    def test_approve_milking_writes_one_record_per_animal(self):
        activity = TestDataFactory.create_pending_activity(
            self.farm, self.farmhand, 'milking',
            {'quantity': '6.5', 'session': 'evening', 'validated_date': '2024-04-02'},
            [self.cow.id, self.heifer.id],
        )
        result = approve_activity(activity.id, reviewer=self.owner)
        self.assertEqual(result, {'success': True, 'activity_id': activity.id})

        records = MilkingRecord.objects.filter(record_date='2024-04-02')
        self.assertEqual(records.count(), 2)
        self.assertTrue(all(r.session == 'PM' and r.liters == Decimal('6.50') for r in records))

        activity.refresh_from_db()
        self.assertEqual(activity.status, 'approved')
        self.assertEqual(activity.reviewed_by, self.owner)
        self.assertIsNotNone(activity.reviewed_at)
        self.assertTrue(Notification.objects.filter(user=self.farmhand, type='activity_approved').exists())

    def test_approve_weight_updates_current_weight(self):
        activity = TestDataFactory.create_pending_activity(
            self.farm, self.farmhand, 'weight_measurement', {'quantity': 312}, [self.cow.id],
        )
        approve_activity(activity.id, reviewer=self.owner)
        self.assertEqual(WeightRecord.objects.get(animal=self.cow).weight_kg, Decimal('312.00'))
        self.cow.refresh_from_db()
        self.assertEqual(self.cow.current_weight_kg, Decimal('312.00'))

    def test_approve_feeding_deducts_inventory(self):
        older = TestDataFactory.create_feed_lot(self.farm, feed_type='Corn Silage', quantity_kg='10.00')
        newer = TestDataFactory.create_feed_lot(self.farm, feed_type='Corn Silage', quantity_kg='30.00')
        activity = TestDataFactory.create_pending_activity(
            self.farm, self.farmhand, 'feeding',
            {
                'feed_type': 'corn silage',
                'distributions': [
                    {'animal_id': self.cow.id, 'feed_amount': 8},
                    {'animal_id': self.heifer.id, 'feed_amount': 6},
                ],
            },
        )
        result = approve_activity(activity.id, reviewer=self.owner)

        self.assertEqual(FeedingRecord.objects.get(animal=self.heifer).kilograms, Decimal('6.00'))
        self.assertEqual(result['inventory']['deducted_kg'], 14.0)
        older.refresh_from_db()
        newer.refresh_from_db()
        self.assertEqual(older.quantity_kg, Decimal('0.00'))
        self.assertEqual(newer.quantity_kg, Decimal('26.00'))

    def test_auto_approved_feeding_note(self):
        TestDataFactory.create_feed_lot(self.farm, feed_type='Hay Bales', quantity_kg='50.00', category='roughage')
        activity = TestDataFactory.create_pending_activity(
            self.farm, self.farmhand, 'feeding', {'feed_type': 'hay', 'quantity': 4, 'unit': 'kg'}, [self.cow.id],
        )
        approve_activity(activity.id, is_auto=True)
        entry = FeedStockTransaction.objects.get(transaction_type='consumption')
        self.assertEqual(entry.notes, 'Auto-approved feeding: 4 kg distributed')
        activity.refresh_from_db()
        self.assertEqual(activity.status, 'auto_approved')
        self.assertIsNone(activity.reviewed_by)

    def test_approve_twice(self):
        activity = TestDataFactory.create_pending_activity(self.farm, self.farmhand, 'milking', {'quantity': 4}, [self.cow.id])
        approve_activity(activity.id, reviewer=self.owner)
        result = approve_activity(activity.id, reviewer=self.owner)
        self.assertFalse(result['success'])
        self.assertEqual(MilkingRecord.objects.count(), 1)

    def test_invalid_data_leaves_activity_pending(self):
        activity = TestDataFactory.create_pending_activity(self.farm, self.farmhand, 'milking', {}, [self.cow.id])
        with self.assertRaises(ActivityReviewError):
            approve_activity(activity.id, reviewer=self.owner)
        activity.refresh_from_db()
        self.assertEqual(activity.status, 'pending')

    def test_reject(self):
        activity = TestDataFactory.create_pending_activity(self.farm, self.farmhand, 'milking', {'quantity': 4}, [self.cow.id])
        reject_activity(activity.id, self.owner)
        activity.refresh_from_db()
        self.assertEqual(activity.status, 'rejected')
        self.assertEqual(activity.rejection_reason, 'No reason provided')
        notification = Notification.objects.get(user=self.farmhand, type='activity_rejected')
        self.assertIn('No reason provided', notification.body)

    def test_reject_processed_activity(self):
        activity = TestDataFactory.create_pending_activity(self.farm, self.farmhand, 'milking', {'quantity': 4}, [self.cow.id])
        reject_activity(activity.id, self.owner, 'Wrong cow')
        with self.assertRaises(ActivityReviewError):
            reject_activity(activity.id, self.owner)

    def test_review_validation(self):
        with self.assertRaises(ActivityReviewError):
            review_pending_activity(None, 'approve', self.owner)
        with self.assertRaises(ActivityReviewError):
            review_pending_activity(1, 'maybe', self.owner)
        with self.assertRaises(NotFoundError):
            review_pending_activity(999999, 'approve', self.owner)

    def test_farmhand_cannot_review(self):
        activity = TestDataFactory.create_pending_activity(self.farm, self.farmhand, 'milking', {'quantity': 4}, [self.cow.id])
        with self.assertRaises(PermissionDeniedError):
            review_pending_activity(activity.id, 'approve', self.farmhand)

    def test_manager_can_review(self):
        manager = TestDataFactory.create_user()
        TestDataFactory.add_member(self.farm, manager, role='farm_manager')
        activity = TestDataFactory.create_pending_activity(self.farm, self.farmhand, 'milking', {'quantity': 4}, [self.cow.id])
        result = review_pending_activity(activity.id, 'reject', manager, 'Duplicate')
        self.assertEqual(result, {'success': True, 'message': 'Activity rejected'})


class AutoApprovalTests(ApprovalTestMixin, TestCase):
    """Test the auto-approval sweep"""

    def test_due_activities_are_approved(self):
        past = timezone.now() - timedelta(minutes=1)
        due = TestDataFactory.create_pending_activity(
            self.farm, self.farmhand, 'milking', {'quantity': 4}, [self.cow.id], auto_approve_at=past,
        )
        later = TestDataFactory.create_pending_activity(self.farm, self.farmhand, 'milking', {'quantity': 4}, [self.cow.id])

        result = process_auto_approvals()
        self.assertEqual(result['processed'], 1)
        self.assertEqual(result['succeeded'], 1)
        due.refresh_from_db()
        later.refresh_from_db()
        self.assertEqual(due.status, 'auto_approved')
        self.assertEqual(later.status, 'pending')
        self.assertTrue(AuditLog.objects.filter(action='activity_auto_approve', object_id=str(due.id)).exists())

    def test_disabled_farms_are_skipped(self):
        TestDataFactory.create_approval_settings(self.farm, auto_approve_enabled=False)
        activity = TestDataFactory.create_pending_activity(
            self.farm, self.farmhand, 'milking', {'quantity': 4}, [self.cow.id],
            auto_approve_at=timezone.now() - timedelta(hours=1),
        )
        result = process_auto_approvals()
        self.assertEqual(result['processed'], 0)
        activity.refresh_from_db()
        self.assertEqual(activity.status, 'pending')

    def test_invalid_activity_counts_as_failed(self):
        past = timezone.now() - timedelta(hours=1)
        TestDataFactory.create_pending_activity(self.farm, self.farmhand, 'milking', {}, [self.cow.id], auto_approve_at=past)
        TestDataFactory.create_pending_activity(
            self.farm, self.farmhand, 'milking', {'quantity': 3}, [self.cow.id], auto_approve_at=past,
        )
        result = process_auto_approvals()
        self.assertEqual(result['processed'], 2)
        self.assertEqual(result['succeeded'], 1)
        self.assertEqual(result['failed'], 1)
        failed = [r for r in result['results'] if not r['success']][0]
        self.assertEqual(failed['error'], 'quantity is required for milking')

    def test_management_command(self):
        TestDataFactory.create_pending_activity(
            self.farm, self.farmhand, 'milking', {'quantity': 4}, [self.cow.id],
            auto_approve_at=timezone.now() - timedelta(hours=1),
        )
        out = StringIO()
        call_command('process_auto_approvals', stdout=out)
        self.assertIn('Processed 1: 1 succeeded, 0 failed', out.getvalue())


class ApprovalAPITests(ApprovalTestMixin, TestCase):
    """Test approval endpoints"""

    def setUp(self):
        super().setUp()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.activity = TestDataFactory.create_pending_activity(
            self.farm, self.farmhand, 'milking', {'quantity': 4}, [self.cow.id],
        )

    def test_submit_endpoint(self):
        self.client.authenticate_user(self.farmhand)
        data = {
            'farm_id': self.farm.id,
            'activity_type': 'health_observation',
            'activity_data': {'notes': 'Limping'},
            'animal_ids': [self.cow.id],
        }
        response = self.client.post('/api/v1/pending-activities/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'pending')

    def test_list_filters(self):
        reject_activity(self.activity.id, self.owner)
        TestDataFactory.create_pending_activity(self.farm, self.farmhand, 'milking', {'quantity': 2}, [self.cow.id])
        response = self.client.get(f'/api/v1/pending-activities/?farm={self.farm.id}&status=pending')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

        self.client.authenticate_user(self.farmhand)
        response = self.client.get('/api/v1/pending-activities/?mine=true')
        self.assertEqual(len(response.data), 2)

    def test_review_approve(self):
        response = self.client.post(
            '/api/v1/functions/review-pending-activity/',
            {'pendingId': self.activity.id, 'action': 'approve'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Activity approved')
        self.assertTrue(response.data['data']['success'])
        self.assertTrue(AuditLog.objects.filter(action='activity_approve').exists())

    def test_review_reject_with_reason(self):
        response = self.client.post(
            '/api/v1/functions/review-pending-activity/',
            {'pendingId': self.activity.id, 'action': 'reject', 'rejectionReason': 'Wrong animal'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.activity.refresh_from_db()
        self.assertEqual(self.activity.rejection_reason, 'Wrong animal')

    def test_review_missing_fields(self):
        response = self.client.post('/api/v1/functions/review-pending-activity/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'pendingId and action are required'})

    def test_review_unknown_activity(self):
        response = self.client.post(
            '/api/v1/functions/review-pending-activity/', {'pendingId': 999999, 'action': 'approve'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_review_by_farmhand(self):
        self.client.authenticate_user(self.farmhand)
        response = self.client.post(
            '/api/v1/functions/review-pending-activity/',
            {'pendingId': self.activity.id, 'action': 'approve'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_review_requires_authentication(self):
        self.client.logout()
        response = self.client.post(
            '/api/v1/functions/review-pending-activity/',
            {'pendingId': self.activity.id, 'action': 'approve'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('error', response.data)

    def test_process_auto_approvals_is_staff_only(self):
        response = self.client.post('/api/v1/functions/process-auto-approvals/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(TestDataFactory.create_user(is_staff=True))
        response = self.client.post('/api/v1/functions/process-auto-approvals/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['processed'], 0)
