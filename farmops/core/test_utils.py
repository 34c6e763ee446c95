"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from farmops.core.utils import add_user_to_group, SUPER_ADMIN_GROUP
from farmops.farms.models import Farm, FarmMembership, FarmApprovalSettings
from farmops.animals.models import Animal, WeightRecord, MilkingRecord
from farmops.feed.services import add_stock
from farmops.approvals.models import PendingActivity
from decimal import Decimal
from datetime import date, timedelta
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )
        return user

    @staticmethod
    def create_super_admin(**kwargs):
        """Create a user in the SuperAdmin group"""
        user = TestDataFactory.create_user(**kwargs)
        add_user_to_group(user, SUPER_ADMIN_GROUP)
        return user

    @staticmethod
    def create_farm(owner=None, name=None, livestock_type='cattle'):
        """Create a test farm"""
        if not owner:
            owner = TestDataFactory.create_user()
        if not name:
            name = f'Farm_{TestDataFactory.random_string(6)}'
        return Farm.objects.create(name=name, owner=owner, livestock_type=livestock_type)

    @staticmethod
    def add_member(farm, user, role='farmhand'):
        """Attach a user to a farm with an accepted membership"""
        return FarmMembership.objects.create(
            farm=farm,
            user=user,
            role_in_farm=role,
            invited_email=user.email,
            invitation_status='accepted',
        )

    @staticmethod
    def create_approval_settings(farm, auto_approve_enabled=True, auto_approve_hours=48, require_approval_for=None):
        return FarmApprovalSettings.objects.create(
            farm=farm,
            auto_approve_enabled=auto_approve_enabled,
            auto_approve_hours=auto_approve_hours,
            require_approval_for=require_approval_for or [],
        )

    @staticmethod
    def create_animal(farm, ear_tag=None, livestock_type='cattle', gender='female', birth_date=None, **fields):
        """Create a test animal"""
        if not ear_tag:
            ear_tag = f'TAG-{TestDataFactory.random_string(5).upper()}'
        return Animal.objects.create(
            farm=farm,
            ear_tag=ear_tag,
            name=fields.pop('name', f'Animal {ear_tag}'),
            livestock_type=livestock_type,
            gender=gender,
            birth_date=birth_date,
            **fields
        )

    @staticmethod
    def create_weight_record(animal, weight_kg, measurement_date=None, method='actual'):
        return WeightRecord.objects.create(
            animal=animal,
            weight_kg=Decimal(str(weight_kg)),
            measurement_date=measurement_date or date.today(),
            measurement_method=method,
        )

    @staticmethod
    def create_milking_record(animal, liters, record_date=None, session='AM', user=None):
        return MilkingRecord.objects.create(
            animal=animal,
            liters=Decimal(str(liters)),
            record_date=record_date or date.today(),
            session=session,
            created_by=user,
        )

    @staticmethod
    def create_feed_lot(farm, feed_type=None, quantity_kg='100.00', category='concentrates', user=None, **fields):
        """Create a feed lot with its opening ledger entry"""
        if not feed_type:
            feed_type = f'Feed {TestDataFactory.random_string(5)}'
        data = {'feed_type': feed_type, 'quantity_kg': Decimal(str(quantity_kg)), 'category': category}
        data.update(fields)
        return add_stock(farm, data, user=user)

    @staticmethod
    def create_pending_activity(farm, submitted_by, activity_type='milking', activity_data=None,
                                animal_ids=None, auto_approve_at=None):
        """Create a pending activity without running the submission workflow"""
        return PendingActivity.objects.create(
            farm=farm,
            submitted_by=submitted_by,
            activity_type=activity_type,
            activity_data=activity_data or {},
            animal_ids=animal_ids or [],
            auto_approve_at=auto_approve_at or timezone.now() + timedelta(hours=48),
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
