"""
Farm-scoped authorization helpers.

A user's standing in a farm comes from ownership or an accepted
membership. Super admins can see and manage every farm.
"""
from django.db.models import Q

from farmops.core.exceptions import NotFoundError, PermissionDeniedError
from farmops.core.utils import is_super_admin
from .models import Farm, FarmMembership

MANAGER_ROLES = ('farmer_owner', 'farm_manager')


def get_farm_role(user, farm):
    """Return the user's role in the farm, or None when not a member"""
    if not user or not user.is_authenticated:
        return None
    if farm.owner_id == user.id:
        return 'farmer_owner'
    membership = FarmMembership.objects.filter(
        farm=farm, user=user, invitation_status='accepted'
    ).only('role_in_farm').first()
    return membership.role_in_farm if membership else None


def is_farm_member(user, farm):
    return is_super_admin(user) or get_farm_role(user, farm) is not None


def can_manage_farm(user, farm):
    """Owners and managers review activities and change farm data"""
    return is_super_admin(user) or get_farm_role(user, farm) in MANAGER_ROLES


def accessible_farms(user):
    """Farms the user owns or has joined"""
    queryset = Farm.objects.filter(is_deleted=False)
    if is_super_admin(user):
        return queryset
    return queryset.filter(
        Q(owner=user) | Q(memberships__user=user, memberships__invitation_status='accepted')
    ).distinct()


def get_farm_for_user(farm_id, user, manage=False):
    """
    Load a live farm and check the user's access to it.

    Raises NotFoundError for unknown or deleted farms and
    PermissionDeniedError when the user lacks the needed role.
    """
    farm = Farm.objects.filter(pk=farm_id, is_deleted=False).select_related('owner').first()
    if farm is None:
        raise NotFoundError('Farm not found')
    allowed = can_manage_farm(user, farm) if manage else is_farm_member(user, farm)
    if not allowed:
        raise PermissionDeniedError('You do not have access to this farm' if not manage
                                    else 'Only farm owners and managers can perform this action')
    return farm
