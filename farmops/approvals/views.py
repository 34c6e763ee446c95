import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from farmops.core.exceptions import ServiceError, validation_error_response
from farmops.core.utils import create_audit_log, is_super_admin
from farmops.farms.permissions import accessible_farms, get_farm_for_user
from .filters import PendingActivityFilter
from .models import PendingActivity
from .serializers import PendingActivitySerializer, ActivitySubmitSerializer
from . import services

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def pending_activity_list_create(request):
    """List activities of the user's farms or submit a new one for review"""
    if request.method == 'GET':
        queryset = PendingActivity.objects.filter(
            farm__in=accessible_farms(request.user)
        ).select_related('submitted_by', 'reviewed_by')
        filterset = PendingActivityFilter(request.query_params, queryset=queryset, request=request)
        if not filterset.is_valid():
            return validation_error_response(filterset.errors)
        return Response(PendingActivitySerializer(filterset.qs, many=True).data)

    serializer = ActivitySubmitSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    data = serializer.validated_data
    farm = get_farm_for_user(data['farm_id'], request.user)

    try:
        activity = services.submit_activity(
            farm, request.user, data['activity_type'],
            activity_data=data.get('activity_data'), animal_ids=data.get('animal_ids'),
        )
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)

    create_audit_log(
        request=request,
        action='activity_submit',
        model_name='PendingActivity',
        object_id=activity.id,
        object_name=activity.activity_type,
        object_reference=str(farm.id),
        changes={'animal_ids': activity.animal_ids, 'status': activity.status},
    )
    return Response(PendingActivitySerializer(activity).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def pending_activity_detail(request, pk):
    activity = get_object_or_404(PendingActivity.objects.select_related('submitted_by', 'reviewed_by'), pk=pk)
    get_farm_for_user(activity.farm_id, request.user)
    return Response(PendingActivitySerializer(activity).data)


# Function endpoints
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def review_pending_activity(request):
    """Approve or reject a pending activity"""
    pending_id = request.data.get('pendingId')
    action = request.data.get('action')
    rejection_reason = request.data.get('rejectionReason')

    try:
        result = services.review_pending_activity(pending_id, action, request.user, rejection_reason)
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)
    except Exception as e:
        logger.error(f'Error in review-pending-activity: {str(e)}', exc_info=True)
        return Response({'error': str(e)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if action == 'approve' and not result['data'].get('success'):
        return Response(result)

    activity = PendingActivity.objects.get(pk=pending_id)
    create_audit_log(
        request=request,
        action='activity_approve' if action == 'approve' else 'activity_reject',
        model_name='PendingActivity',
        object_id=activity.id,
        object_name=activity.activity_type,
        object_reference=str(activity.farm_id),
        changes={'status': activity.status, 'rejection_reason': activity.rejection_reason},
    )
    return Response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def process_auto_approvals(request):
    """Run the auto-approval sweep (staff only)"""
    if not (request.user.is_staff or is_super_admin(request.user)):
        return Response({'error': 'Forbidden - Staff access required'}, status=status.HTTP_403_FORBIDDEN)

    try:
        return Response(services.process_auto_approvals())
    except Exception as e:
        logger.error(f'Fatal error in auto-approval process: {str(e)}', exc_info=True)
        return Response({'error': str(e)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
