"""Farm membership, invitation and account services"""
import logging
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone
from rest_framework import status

from farmops.core.exceptions import ServiceError
from farmops.core.utils import (
    FARMHAND_GROUP, FARMER_OWNER_GROUP, GOVERNMENT_GROUP, MERCHANT_GROUP,
    add_user_to_group, notify_user,
)
from .models import Farm, FarmMembership, FarmApprovalSettings

logger = logging.getLogger(__name__)

User = get_user_model()

ROLE_TO_GROUP = {
    'farmhand': FARMHAND_GROUP,
    'farmer_owner': FARMER_OWNER_GROUP,
    'government': GOVERNMENT_GROUP,
    'merchant': MERCHANT_GROUP,
}


class InvitationError(ServiceError):
    pass


def create_farm(owner, **fields):
    """Create a farm with its owner membership and default approval settings"""
    with transaction.atomic():
        farm = Farm.objects.create(owner=owner, **fields)
        FarmMembership.objects.create(
            farm=farm,
            user=owner,
            role_in_farm='farmer_owner',
            invited_email=owner.email or None,
            invitation_status='accepted',
        )
        FarmApprovalSettings.objects.create(
            farm=farm,
            auto_approve_hours=settings.DEFAULT_AUTO_APPROVE_HOURS,
        )
        add_user_to_group(owner, FARMER_OWNER_GROUP)
    logger.info(f"Farm {farm.id} created by user {owner.id}")
    return farm


def create_invitation(farm, email, role, invited_by):
    """Create a pending membership addressed to an email"""
    email = email.strip().lower()
    existing = FarmMembership.objects.filter(farm=farm, invited_email__iexact=email).first()
    if existing:
        if existing.invitation_status == 'pending':
            raise InvitationError('An invitation has already been sent to this email')
        if existing.invitation_status == 'accepted':
            raise InvitationError('This user is already a member of your farm')
        # Declined invitations are replaced by a fresh one
        existing.delete()

    membership = FarmMembership.objects.create(
        farm=farm,
        invited_email=email,
        role_in_farm=role,
        invitation_status='pending',
        invited_by=invited_by,
    )
    logger.info(f"Invitation {membership.id} sent to {email} for farm {farm.id}")
    return membership


def accept_invitation(token, user):
    """
    Attach the user to the pending membership identified by token.

    The invitation must be pending, unexpired and addressed to the
    user's email.
    """
    if not token:
        raise InvitationError('Invitation token is required')

    with transaction.atomic():
        membership = (
            FarmMembership.objects.select_for_update()
            .select_related('farm')
            .filter(invitation_token=token, invitation_status='pending')
            .first()
        )
        if membership is None:
            raise InvitationError('Invalid or expired invitation link.', status.HTTP_404_NOT_FOUND)
        if membership.is_expired:
            raise InvitationError('This invitation has expired.')
        if (user.email or '').strip().lower() != (membership.invited_email or '').strip().lower():
            raise InvitationError(
                f'This invitation was sent to {membership.invited_email}. Please log in with that email address.',
                status.HTTP_403_FORBIDDEN,
            )

        membership.user = user
        membership.invitation_status = 'accepted'
        membership.save(update_fields=['user', 'invitation_status'])

    if membership.invited_by_id and membership.invited_by_id != user.id:
        notify_user(
            membership.invited_by,
            'invitation_accepted',
            'Invitation accepted',
            f"{user.get_display_name()} joined {membership.farm.name}",
        )
    logger.info(f"User {user.id} accepted invitation {membership.id} for farm {membership.farm_id}")
    return membership


def admin_create_user(email, password, invitation_token=None, role=None):
    """
    Create an account on behalf of an invitee.

    The new user is attached to the invitation (when a token is given)
    and added to the global group for ``role`` (farmhand by default).
    """
    email = email.strip().lower()
    group_name = ROLE_TO_GROUP.get(role or 'farmhand')
    if group_name is None:
        raise ServiceError(f'Unknown role: {role}')
    if User.objects.filter(email__iexact=email).exists() or User.objects.filter(username=email).exists():
        raise ServiceError('A user with this email already exists')

    with transaction.atomic():
        membership = None
        if invitation_token:
            membership = (
                FarmMembership.objects.select_for_update()
                .filter(invitation_token=invitation_token)
                .first()
            )
            if membership is None:
                raise InvitationError('Invitation not found', status.HTTP_404_NOT_FOUND)

        user = User.objects.create_user(
            username=email,
            email=email,
            password=password,
            full_name=email.split('@')[0],
        )

        if membership is not None:
            membership.user = user
            membership.invitation_status = 'accepted'
            membership.save(update_fields=['user', 'invitation_status'])

        add_user_to_group(user, group_name)

    logger.info(f"Admin created user {user.id} ({email}) with role {role or 'farmhand'}")
    return user, membership


def get_approval_settings(farm):
    """Return the farm's approval settings, or None when never configured"""
    return FarmApprovalSettings.objects.filter(farm=farm).first()


def requires_approval(farm, activity_type):
    approval_settings = get_approval_settings(farm)
    if approval_settings is None or not approval_settings.require_approval_for:
        return True
    return activity_type in approval_settings.require_approval_for


def auto_approve_deadline(farm, submitted_at=None):
    """Moment a pending activity of this farm becomes eligible for auto-approval"""
    approval_settings = get_approval_settings(farm)
    hours = approval_settings.auto_approve_hours if approval_settings else settings.DEFAULT_AUTO_APPROVE_HOURS
    return (submitted_at or timezone.now()) + timedelta(hours=hours)
