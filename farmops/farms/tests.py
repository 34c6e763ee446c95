"""
Test suite for the farms app
Tests: farm access roles, invitations, approval settings and the admin-create-user function
"""
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status

from farmops.core.exceptions import NotFoundError, PermissionDeniedError
from farmops.core.models import AuditLog
from farmops.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from farmops.core.utils import FARMHAND_GROUP, FARMER_OWNER_GROUP
from farmops.farms.models import Farm, FarmMembership, FarmApprovalSettings
from farmops.farms.permissions import (
    accessible_farms, can_manage_farm, get_farm_for_user, get_farm_role, is_farm_member,
)
from farmops.farms.services import (
    InvitationError, accept_invitation, auto_approve_deadline, create_farm, create_invitation,
    requires_approval,
)

User = get_user_model()


class FarmPermissionTests(TestCase):
    """Test farm roles"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.farm = TestDataFactory.create_farm(owner=self.owner)
        self.manager = TestDataFactory.create_user()
        TestDataFactory.add_member(self.farm, self.manager, role='farm_manager')
        self.farmhand = TestDataFactory.create_user()
        TestDataFactory.add_member(self.farm, self.farmhand, role='farmhand')
        self.outsider = TestDataFactory.create_user()

    def test_roles(self):
        self.assertEqual(get_farm_role(self.owner, self.farm), 'farmer_owner')
        self.assertEqual(get_farm_role(self.farmhand, self.farm), 'farmhand')
        self.assertIsNone(get_farm_role(self.outsider, self.farm))

    def test_manage_and_membership(self):
        self.assertTrue(can_manage_farm(self.manager, self.farm))
        self.assertFalse(can_manage_farm(self.farmhand, self.farm))
        self.assertTrue(is_farm_member(self.farmhand, self.farm))
        self.assertFalse(is_farm_member(self.outsider, self.farm))

    def test_pending_invitation_grants_nothing(self):
        FarmMembership.objects.create(farm=self.farm, user=self.outsider, invited_email=self.outsider.email)
        self.assertFalse(is_farm_member(self.outsider, self.farm))

    def test_super_admin_manages_everything(self):
        admin = TestDataFactory.create_super_admin()
        self.assertTrue(can_manage_farm(admin, self.farm))
        self.assertIn(self.farm, accessible_farms(admin))

    def test_get_farm_for_user(self):
        self.assertEqual(get_farm_for_user(self.farm.id, self.farmhand), self.farm)
        with self.assertRaises(PermissionDeniedError):
            get_farm_for_user(self.farm.id, self.farmhand, manage=True)
        with self.assertRaises(PermissionDeniedError):
            get_farm_for_user(self.farm.id, self.outsider)

    def test_deleted_farm_is_not_found(self):
        self.farm.is_deleted = True
        self.farm.save()
        with self.assertRaises(NotFoundError):
            get_farm_for_user(self.farm.id, self.owner)
        self.assertNotIn(self.farm, accessible_farms(self.owner))


class ApprovalSettingsServiceTests(TestCase):
    """Test approval rules"""

    def setUp(self):
        self.farm = TestDataFactory.create_farm()

    def test_no_settings_requires_approval(self):
        self.assertTrue(requires_approval(self.farm, 'milking'))

    def test_empty_list_requires_approval(self):
        TestDataFactory.create_approval_settings(self.farm, require_approval_for=[])
        self.assertTrue(requires_approval(self.farm, 'feeding'))

    def test_listed_types_only(self):
        TestDataFactory.create_approval_settings(self.farm, require_approval_for=['feeding'])
        self.assertTrue(requires_approval(self.farm, 'feeding'))
        self.assertFalse(requires_approval(self.farm, 'milking'))

    @override_settings(DEFAULT_AUTO_APPROVE_HOURS=24)
    def test_deadline_without_settings(self):
        submitted = timezone.now()
        self.assertEqual(auto_approve_deadline(self.farm, submitted), submitted + timedelta(hours=24))

    def test_deadline_from_settings(self):
        TestDataFactory.create_approval_settings(self.farm, auto_approve_hours=12)
        submitted = timezone.now()
        self.assertEqual(auto_approve_deadline(self.farm, submitted), submitted + timedelta(hours=12))


class InvitationServiceTests(TestCase):
    """Test invitations"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.farm = create_farm(self.owner, name='Green Acres')
        self.invitee = TestDataFactory.create_user(email='hand@example.com')

    def test_create_farm_sets_up_owner(self):
        membership = FarmMembership.objects.get(farm=self.farm, user=self.owner)
        self.assertEqual(membership.role_in_farm, 'farmer_owner')
        self.assertEqual(membership.invitation_status, 'accepted')
        self.assertTrue(FarmApprovalSettings.objects.filter(farm=self.farm).exists())
        self.assertTrue(self.owner.groups.filter(name=FARMER_OWNER_GROUP).exists())

    def test_accept(self):
        invitation = create_invitation(self.farm, ' Hand@Example.com ', 'farmhand', self.owner)
        self.assertEqual(invitation.invited_email, 'hand@example.com')
        membership = accept_invitation(invitation.invitation_token, self.invitee)
        self.assertEqual(membership.user, self.invitee)
        self.assertTrue(is_farm_member(self.invitee, self.farm))
        self.assertTrue(self.owner.notifications.filter(type='invitation_accepted').exists())

    def test_duplicate_invitation(self):
        create_invitation(self.farm, 'hand@example.com', 'farmhand', self.owner)
        with self.assertRaises(InvitationError):
            create_invitation(self.farm, 'hand@example.com', 'farmhand', self.owner)

    def test_declined_invitation_is_replaced(self):
        first = create_invitation(self.farm, 'hand@example.com', 'farmhand', self.owner)
        first.invitation_status = 'declined'
        first.save()
        second = create_invitation(self.farm, 'hand@example.com', 'farm_manager', self.owner)
        self.assertNotEqual(first.invitation_token, second.invitation_token)
        self.assertFalse(FarmMembership.objects.filter(pk=first.pk).exists())

    def test_accept_with_other_email(self):
        invitation = create_invitation(self.farm, 'someone@example.com', 'farmhand', self.owner)
        with self.assertRaises(InvitationError) as ctx:
            accept_invitation(invitation.invitation_token, self.invitee)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_accept_expired(self):
        invitation = create_invitation(self.farm, 'hand@example.com', 'farmhand', self.owner)
        invitation.expires_at = timezone.now() - timedelta(minutes=1)
        invitation.save()
        with self.assertRaises(InvitationError) as ctx:
            accept_invitation(invitation.invitation_token, self.invitee)
        self.assertEqual(ctx.exception.status_code, 400)

    def test_accept_unknown_token(self):
        with self.assertRaises(InvitationError) as ctx:
            accept_invitation('nope', self.invitee)
        self.assertEqual(ctx.exception.status_code, 404)


class FarmAPITests(TestCase):
    """Test farm, member and approval settings endpoints"""

    def setUp(self):
        self.owner = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)
        self.farm = create_farm(self.owner, name='Green Acres')
        self.farmhand = TestDataFactory.create_user()
        TestDataFactory.add_member(self.farm, self.farmhand)

    def test_create_farm(self):
        response = self.client.post('/api/v1/farms/', {'name': 'Hillside', 'livestock_type': 'goat'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        farm = Farm.objects.get(pk=response.data['id'])
        self.assertEqual(farm.owner, self.owner)
        self.assertTrue(AuditLog.objects.filter(model_name='Farm', action='create').exists())

    def test_list_farms(self):
        TestDataFactory.create_farm()
        response = self.client.get('/api/v1/farms/')
        self.assertEqual([f['id'] for f in response.data], [self.farm.id])

    def test_farmhand_cannot_edit(self):
        self.client.authenticate_user(self.farmhand)
        response = self.client.patch(f'/api/v1/farms/{self.farm.id}/', {'name': 'Mine'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('error', response.data)

    def test_only_owner_deletes(self):
        manager = TestDataFactory.create_user()
        TestDataFactory.add_member(self.farm, manager, role='farm_manager')
        self.client.authenticate_user(manager)
        response = self.client.delete(f'/api/v1/farms/{self.farm.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.owner)
        response = self.client.delete(f'/api/v1/farms/{self.farm.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.farm.refresh_from_db()
        self.assertTrue(self.farm.is_deleted)

    def test_invite_member(self):
        response = self.client.post(
            f'/api/v1/farms/{self.farm.id}/members/', {'email': 'new@example.com', 'role': 'farm_manager'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['invitation_token'])

        response = self.client.get(f'/api/v1/farms/{self.farm.id}/members/?status=pending')
        self.assertEqual([m['invited_email'] for m in response.data], ['new@example.com'])

    def test_invite_invalid_email(self):
        response = self.client.post(f'/api/v1/farms/{self.farm.id}/members/', {'email': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data['fields'])

    def test_owner_cannot_be_removed(self):
        owner_membership = FarmMembership.objects.get(farm=self.farm, user=self.owner)
        response = self.client.delete(f'/api/v1/farms/{self.farm.id}/members/{owner_membership.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_remove_member(self):
        membership = FarmMembership.objects.get(farm=self.farm, user=self.farmhand)
        response = self.client.delete(f'/api/v1/farms/{self.farm.id}/members/{membership.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(is_farm_member(self.farmhand, self.farm))

    def test_accept_invitation_endpoint(self):
        invitee = TestDataFactory.create_user(email='joiner@example.com')
        invitation = create_invitation(self.farm, 'joiner@example.com', 'farmhand', self.owner)
        self.client.authenticate_user(invitee)
        response = self.client.post('/api/v1/functions/accept-invitation/', {'token': invitation.invitation_token}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['farmId'], self.farm.id)
        self.assertEqual(response.data['role'], 'farmhand')

    def test_accept_invitation_without_token(self):
        response = self.client.post('/api/v1/functions/accept-invitation/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'Invitation token is required'})

    def test_approval_settings(self):
        response = self.client.get(f'/api/v1/farms/{self.farm.id}/approval-settings/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['auto_approve_enabled'])

        response = self.client.patch(
            f'/api/v1/farms/{self.farm.id}/approval-settings/',
            {'require_approval_for': ['feeding'], 'auto_approve_hours': 12},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(requires_approval(self.farm, 'milking'))

    def test_approval_settings_validation(self):
        response = self.client.patch(
            f'/api/v1/farms/{self.farm.id}/approval-settings/', {'require_approval_for': ['dancing']}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_farmhand_cannot_change_approval_settings(self):
        self.client.authenticate_user(self.farmhand)
        response = self.client.patch(
            f'/api/v1/farms/{self.farm.id}/approval-settings/', {'auto_approve_enabled': False}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AdminCreateUserTests(TestCase):
    """Test the admin-create-user function endpoint"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_super_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.url = '/api/v1/functions/admin-create-user/'

    def test_requires_super_admin(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post(self.url, {'email': 'a@example.com', 'password': 'Sturdy-pass-91'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data, {'error': 'Forbidden - Super admin access required'})

    def test_requires_email_and_password(self):
        response = self.client.post(self.url, {'email': 'a@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'Email and password are required'})

    def test_create_user(self):
        response = self.client.post(self.url, {'email': 'Hand@Example.com', 'password': 'Sturdy-pass-91'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])
        user = User.objects.get(pk=response.data['userId'])
        self.assertEqual(user.email, 'hand@example.com')
        self.assertTrue(user.check_password('Sturdy-pass-91'))
        self.assertTrue(user.groups.filter(name=FARMHAND_GROUP).exists())
        self.assertTrue(AuditLog.objects.filter(action='user_create').exists())

    def test_create_user_with_invitation(self):
        owner = TestDataFactory.create_user()
        farm = create_farm(owner, name='Riverside')
        invitation = create_invitation(farm, 'hand@example.com', 'farmhand', owner)
        data = {'email': 'hand@example.com', 'password': 'Sturdy-pass-91', 'invitationToken': invitation.invitation_token}
        response = self.client.post(self.url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        invitation.refresh_from_db()
        self.assertEqual(invitation.invitation_status, 'accepted')
        self.assertEqual(invitation.user_id, response.data['userId'])

    def test_unknown_invitation(self):
        data = {'email': 'hand@example.com', 'password': 'Sturdy-pass-91', 'invitationToken': 'missing'}
        response = self.client.post(self.url, data, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(User.objects.filter(email='hand@example.com').exists())

    def test_duplicate_email(self):
        TestDataFactory.create_user(email='taken@example.com')
        response = self.client.post(self.url, {'email': 'taken@example.com', 'password': 'Sturdy-pass-91'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(RATE_LIMITS={'admin-create-user': (1, 60)})
    def test_rate_limited(self):
        self.client.post(self.url, {'email': 'one@example.com', 'password': 'Sturdy-pass-91'}, format='json')
        response = self.client.post(self.url, {'email': 'two@example.com', 'password': 'Sturdy-pass-91'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
