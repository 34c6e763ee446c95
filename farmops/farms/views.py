import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404

from farmops.core.exceptions import ServiceError, validation_error_response
from farmops.core.ratelimit import check_rate_limit, rate_limited_response
from farmops.core.utils import create_audit_log, is_super_admin
from .models import FarmMembership, FarmApprovalSettings
from .permissions import accessible_farms, get_farm_for_user, can_manage_farm
from .serializers import (
    FarmSerializer, FarmMembershipSerializer, InvitationCreateSerializer,
    FarmApprovalSettingsSerializer, AdminCreateUserSerializer, AcceptInvitationSerializer,
)
from . import services

logger = logging.getLogger(__name__)


# Farm views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def farm_list_create(request):
    """List the farms the user can access or create a new farm"""
    if request.method == 'GET':
        farms = accessible_farms(request.user).select_related('owner')
        serializer = FarmSerializer(farms, many=True)
        return Response(serializer.data)

    serializer = FarmSerializer(data=request.data)
    if serializer.is_valid():
        farm = services.create_farm(request.user, **serializer.validated_data)
        create_audit_log(
            request=request,
            action='create',
            model_name='Farm',
            object_id=farm.id,
            object_name=farm.name,
            object_reference=str(farm.id),
            changes={'name': farm.name, 'livestock_type': farm.livestock_type},
        )
        return Response(FarmSerializer(farm).data, status=status.HTTP_201_CREATED)
    return validation_error_response(serializer.errors)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def farm_detail(request, pk):
    """Retrieve, update or soft-delete a farm"""
    farm = get_farm_for_user(pk, request.user, manage=request.method != 'GET')

    if request.method == 'GET':
        return Response(FarmSerializer(farm).data)
    elif request.method == 'PATCH':
        serializer = FarmSerializer(farm, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Farm',
                object_id=farm.id,
                object_name=farm.name,
                object_reference=str(farm.id),
                changes={k: str(v) for k, v in serializer.validated_data.items()},
            )
            return Response(serializer.data)
        return validation_error_response(serializer.errors)
    else:  # DELETE
        if farm.owner_id != request.user.id and not is_super_admin(request.user):
            return Response({'error': 'Only the farm owner can delete a farm'}, status=status.HTTP_403_FORBIDDEN)
        farm.is_deleted = True
        farm.save(update_fields=['is_deleted', 'updated_at'])
        create_audit_log(
            request=request,
            action='delete',
            model_name='Farm',
            object_id=farm.id,
            object_name=farm.name,
            object_reference=str(farm.id),
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# Membership views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def farm_member_list_invite(request, farm_id):
    """List a farm's team or invite a new member by email"""
    if request.method == 'GET':
        farm = get_farm_for_user(farm_id, request.user)
        memberships = FarmMembership.objects.filter(farm=farm).select_related('user')
        status_filter = request.query_params.get('status', None)
        if status_filter:
            memberships = memberships.filter(invitation_status=status_filter)
        return Response(FarmMembershipSerializer(memberships, many=True).data)

    farm = get_farm_for_user(farm_id, request.user, manage=True)
    serializer = InvitationCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    membership = services.create_invitation(
        farm,
        serializer.validated_data['email'],
        serializer.validated_data['role'],
        request.user,
    )
    create_audit_log(
        request=request,
        action='invitation_send',
        model_name='FarmMembership',
        object_id=membership.id,
        object_name=membership.invited_email,
        object_reference=str(farm.id),
        changes={'role_in_farm': membership.role_in_farm},
    )
    data = FarmMembershipSerializer(membership).data
    # The token is only handed out to the inviter, to build the invite link
    data['invitation_token'] = membership.invitation_token
    return Response(data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def farm_member_remove(request, farm_id, pk):
    """Remove a member or revoke a pending invitation"""
    farm = get_farm_for_user(farm_id, request.user, manage=True)
    membership = get_object_or_404(FarmMembership, pk=pk, farm=farm)
    if membership.user_id and membership.user_id == farm.owner_id:
        return Response({'error': 'The farm owner cannot be removed'}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(
        request=request,
        action='delete',
        model_name='FarmMembership',
        object_id=membership.id,
        object_name=membership.invited_email,
        object_reference=str(farm.id),
    )
    membership.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def approval_settings_detail(request, farm_id):
    """Read or change a farm's approval settings"""
    farm = get_farm_for_user(farm_id, request.user)
    approval_settings, _ = FarmApprovalSettings.objects.get_or_create(farm=farm)

    if request.method == 'GET':
        return Response(FarmApprovalSettingsSerializer(approval_settings).data)

    if not can_manage_farm(request.user, farm):
        return Response({'error': 'Only farm owners and managers can change approval settings'}, status=status.HTTP_403_FORBIDDEN)
    serializer = FarmApprovalSettingsSerializer(approval_settings, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        create_audit_log(
            request=request,
            action='update',
            model_name='FarmApprovalSettings',
            object_id=approval_settings.id,
            object_name=farm.name,
            object_reference=str(farm.id),
            changes=serializer.validated_data,
        )
        return Response(serializer.data)
    return validation_error_response(serializer.errors)


# Function endpoints
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def admin_create_user(request):
    """Create a user account for an invitee (super admins only)"""
    if not is_super_admin(request.user):
        return Response({'error': 'Forbidden - Super admin access required'}, status=status.HTTP_403_FORBIDDEN)

    allowed, retry_after = check_rate_limit(request.user.pk, 'admin-create-user')
    if not allowed:
        logger.warning(f"Rate limit exceeded for admin-create-user by {request.user.pk}")
        return rate_limited_response(retry_after)

    if not request.data.get('email') or not request.data.get('password'):
        return Response({'error': 'Email and password are required'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = AdminCreateUserSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        user, membership = services.admin_create_user(
            data['email'],
            data['password'],
            invitation_token=data.get('invitationToken') or None,
            role=data.get('role'),
        )
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)
    except Exception as e:
        logger.error(f'Error in admin_create_user: {str(e)}', exc_info=True)
        return Response({'error': str(e)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(
        request=request,
        action='user_create',
        model_name='User',
        object_id=user.id,
        object_name=user.email,
        object_reference=str(membership.farm_id) if membership else None,
        changes={'role': data.get('role') or 'farmhand'},
    )
    return Response({'success': True, 'userId': user.id})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def accept_invitation(request):
    """Join a farm through an invitation addressed to the caller's email"""
    serializer = AcceptInvitationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'error': 'Invitation token is required'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        membership = services.accept_invitation(serializer.validated_data['token'], request.user)
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)
    except Exception as e:
        logger.error(f'Error in accept_invitation: {str(e)}', exc_info=True)
        return Response({'error': 'Failed to accept invitation. Please try again.'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(
        request=request,
        action='invitation_accept',
        model_name='FarmMembership',
        object_id=membership.id,
        object_name=membership.invited_email,
        object_reference=str(membership.farm_id),
        changes={'role_in_farm': membership.role_in_farm},
    )
    return Response({
        'success': True,
        'farmId': membership.farm_id,
        'farmName': membership.farm.name,
        'role': membership.role_in_farm,
    })
