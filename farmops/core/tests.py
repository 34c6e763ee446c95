"""
Test suite for the core app
Tests: error envelope, rate limiting, audit logging, notifications, auth and CORS
"""
from concurrent.futures import ThreadPoolExecutor
from io import StringIO
from unittest import mock

from django.contrib.auth.models import Group
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase, SimpleTestCase, override_settings
from rest_framework import status

from farmops.core.exceptions import (
    NotFoundError, PermissionDeniedError, ServiceError, _flatten_detail, validation_error_response,
)
from farmops.core.models import AuditLog, Notification
from farmops.core.ratelimit import check_rate_limit, reset_rate_limit
from farmops.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from farmops.core.utils import (
    SUPER_ADMIN_GROUP, add_user_to_group, create_audit_log, is_super_admin, notify_user,
)


class ErrorEnvelopeTests(SimpleTestCase):
    """Test the {"error": ...} envelope helpers"""

    def test_service_error_status(self):
        self.assertEqual(ServiceError('bad').status_code, 400)
        self.assertEqual(ServiceError('gone', 410).status_code, 410)
        self.assertEqual(NotFoundError('missing').status_code, 404)
        self.assertEqual(PermissionDeniedError('no').status_code, 403)

    def test_flatten_detail(self):
        self.assertEqual(_flatten_detail({'detail': 'Not found.'}), 'Not found.')
        self.assertEqual(
            _flatten_detail({'email': ['Enter a valid email address.'], 'non_field_errors': ['Bad input.']}),
            'email: Enter a valid email address.; Bad input.',
        )

    def test_validation_error_response(self):
        response = validation_error_response({'liters': ['This field is required.']})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'liters: This field is required.')
        self.assertEqual(response.data['fields'], {'liters': ['This field is required.']})


@override_settings(RATE_LIMITS={'test-endpoint': (2, 60)})
class RateLimitTests(SimpleTestCase):
    """Test the sliding-window limiter"""

    def setUp(self):
        cache.clear()

    def test_window(self):
        self.assertEqual(check_rate_limit('u1', 'test-endpoint', now=1000), (True, 0))
        self.assertEqual(check_rate_limit('u1', 'test-endpoint', now=1001), (True, 0))
        self.assertEqual(check_rate_limit('u1', 'test-endpoint', now=1002), (False, 58))
        # The first hit has left the window
        self.assertEqual(check_rate_limit('u1', 'test-endpoint', now=1061), (True, 0))

    def test_identifiers_are_independent(self):
        check_rate_limit('u1', 'test-endpoint', now=1000)
        check_rate_limit('u1', 'test-endpoint', now=1000)
        self.assertTrue(check_rate_limit('u2', 'test-endpoint', now=1000)[0])

    def test_concurrent_hits_respect_the_limit(self):
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: check_rate_limit('u1', 'test-endpoint', now=1000)[0], range(10)))
        self.assertEqual(results.count(True), 2)
        self.assertIsNone(cache.get('ratelimit:test-endpoint:u1:lock'))

    def test_held_lock_is_not_released_by_others(self):
        cache.add('ratelimit:test-endpoint:u1:lock', 1)
        with mock.patch('farmops.core.ratelimit.LOCK_WAIT_SECONDS', 0):
            self.assertEqual(check_rate_limit('u1', 'test-endpoint', now=1000), (True, 0))
        self.assertEqual(cache.get('ratelimit:test-endpoint:u1:lock'), 1)

    def test_reset(self):
        check_rate_limit('u1', 'test-endpoint', now=1000)
        check_rate_limit('u1', 'test-endpoint', now=1000)
        reset_rate_limit('u1', 'test-endpoint')
        self.assertTrue(check_rate_limit('u1', 'test-endpoint', now=1001)[0])


class CoreUtilsTests(TestCase):
    """Test audit logging, notifications and role groups"""

    def setUp(self):
        self.user = TestDataFactory.create_user()

    def test_create_audit_log(self):
        log = create_audit_log(user=self.user, action='create', model_name='Farm', object_id=7, changes={'name': 'A'})
        self.assertEqual(log.object_id, '7')
        self.assertEqual(log.user, self.user)

    def test_audit_log_skips_incomplete_entries(self):
        self.assertIsNone(create_audit_log(user=self.user, action='create', model_name='Farm'))
        self.assertFalse(AuditLog.objects.exists())

    def test_notify_user(self):
        notification = notify_user(self.user, 'sync_completed', 'Sync Complete', '2 entries synced.')
        self.assertFalse(notification.is_read)
        self.assertIsNone(notify_user(None, 'sync_completed', 'Sync Complete'))

    def test_super_admin(self):
        self.assertFalse(is_super_admin(self.user))
        add_user_to_group(self.user, SUPER_ADMIN_GROUP)
        self.assertTrue(is_super_admin(self.user))
        self.assertTrue(is_super_admin(TestDataFactory.create_user(is_superuser=True)))

    def test_create_user_groups_command(self):
        out = StringIO()
        call_command('create_user_groups', stdout=out)
        self.assertEqual(
            set(Group.objects.values_list('name', flat=True)),
            {'SuperAdmin', 'FarmerOwner', 'Farmhand', 'Government', 'Merchant'},
        )
        self.assertIn('5 groups created', out.getvalue())


class AuthAPITests(TestCase):
    """Test login, the current-user endpoint and the error envelope on auth failures"""

    def setUp(self):
        self.user = TestDataFactory.create_user(username='farmer', password='testpass123')
        self.client = AuthenticatedAPIClient()

    def test_login(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'farmer', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_login_failure_uses_envelope(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'farmer', 'password': 'wrong'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(list(response.data.keys()), ['error'])

    def test_me(self):
        farm = TestDataFactory.create_farm()
        TestDataFactory.add_member(farm, self.user, role='farm_manager')
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_super_admin'])
        self.assertEqual(response.data['farms'], [
            {'id': farm.id, 'name': farm.name, 'role_in_farm': 'farm_manager', 'is_owner': False},
        ])

    def test_unauthenticated(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('error', response.data)

    @override_settings(CORS_ALLOW_ALL_ORIGINS=True)
    def test_cors_preflight(self):
        response = self.client.options(
            '/api/v1/functions/submit-correction/',
            HTTP_ORIGIN='https://app.example.com',
            HTTP_ACCESS_CONTROL_REQUEST_METHOD='POST',
            HTTP_ACCESS_CONTROL_REQUEST_HEADERS='authorization, content-type',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Access-Control-Allow-Origin'], '*')


class NotificationAPITests(TestCase):
    """Test notification and audit log endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.first = notify_user(self.user, 'activity_approved', 'Activity Approved')
        self.second = notify_user(self.user, 'activity_rejected', 'Activity Rejected')
        notify_user(TestDataFactory.create_user(), 'activity_approved', 'Not yours')

    def test_list(self):
        response = self.client.get('/api/v1/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 2)
        self.assertEqual(response.data['unread_count'], 2)

    def test_mark_read(self):
        response = self.client.post(f'/api/v1/notifications/{self.first.id}/read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_read'])
        response = self.client.get('/api/v1/notifications/?unread=true')
        self.assertEqual([n['id'] for n in response.data['results']], [self.second.id])

    def test_mark_all_read(self):
        response = self.client.post('/api/v1/notifications/read-all/')
        self.assertEqual(response.data, {'updated': 2})
        self.assertEqual(Notification.objects.filter(user=self.user, is_read=False).count(), 0)

    def test_other_users_notification(self):
        other = Notification.objects.exclude(user=self.user).get()
        response = self.client.post(f'/api/v1/notifications/{other.id}/read/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_audit_logs_are_scoped(self):
        own = create_audit_log(user=self.user, action='create', model_name='Farm', object_id=1)
        other = create_audit_log(user=TestDataFactory.create_user(), action='create', model_name='Farm', object_id=2)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual([log['id'] for log in response.data], [own.id])
        response = self.client.get(f'/api/v1/audit-logs/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
