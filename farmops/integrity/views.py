import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from farmops.core.exceptions import NotFoundError, ServiceError
from farmops.core.utils import create_audit_log, is_super_admin
from farmops.farms.models import Farm
from farmops.farms.permissions import get_farm_for_user
from .checks import run_all_integrity_checks
from .repairs import run_all_repairs

logger = logging.getLogger(__name__)


def _is_admin(user):
    return user.is_staff or is_super_admin(user)


def _report(farm, checks):
    return {
        'farm_id': farm.id,
        'farm_name': farm.name,
        'passed': all(check['passed'] for check in checks),
        'checks': checks,
    }


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def farm_integrity_report(request, farm_id):
    """
    GET runs every integrity check on a farm (staff, owners and managers).
    POST repairs weight and milk revenue drift, then re-runs the checks
    (staff and super admins only).
    """
    if request.method == 'POST' and not _is_admin(request.user):
        return Response({'error': 'Forbidden - Super admin access required'}, status=status.HTTP_403_FORBIDDEN)

    try:
        if _is_admin(request.user):
            farm = Farm.objects.filter(pk=farm_id, is_deleted=False).first()
            if farm is None:
                raise NotFoundError('Farm not found')
        else:
            farm = get_farm_for_user(farm_id, request.user, manage=True)
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)

    if request.method == 'GET':
        return Response(_report(farm, run_all_integrity_checks(farm)), status=status.HTTP_200_OK)

    try:
        repairs = run_all_repairs(farm, user=request.user)
    except Exception as e:
        logger.error(f"Integrity repair failed on farm {farm.id}: {str(e)}", exc_info=True)
        return Response({'error': str(e)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(
        request=request,
        action='integrity_fix',
        model_name='Farm',
        object_id=farm.id,
        object_name=farm.name,
        changes={repair['check_name']: repair['fixed_count'] for repair in repairs},
    )
    return Response({**_report(farm, run_all_integrity_checks(farm)), 'repairs': repairs}, status=status.HTTP_200_OK)
