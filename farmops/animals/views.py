import logging

from django.core.paginator import Paginator
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from farmops.core.exceptions import ServiceError, validation_error_response
from farmops.core.ratelimit import check_rate_limit, rate_limited_response
from farmops.core.utils import create_audit_log
from farmops.farms.models import Farm
from farmops.farms.permissions import accessible_farms, get_farm_for_user, can_manage_farm
from .filters import AnimalFilter
from .growth import calculate_adg, calculate_overall_adg, format_adg
from .models import (
    Animal, WeightRecord, MilkingRecord, FeedingRecord, HealthRecord,
    InjectionRecord, BodyConditionRecord, VaccinationSchedule,
)
from .serializers import (
    AnimalSerializer, AnimalCreateSerializer, WeightRecordSerializer, MilkingRecordSerializer,
    FeedingRecordSerializer, HealthRecordSerializer, InjectionRecordSerializer,
    BodyConditionRecordSerializer, VaccinationScheduleSerializer, PopulateWeightsSerializer,
)
from . import services

logger = logging.getLogger(__name__)


def _get_animal_for_user(pk, user, manage=False):
    animal = get_object_or_404(Animal.objects.select_related('farm'), pk=pk, is_deleted=False)
    get_farm_for_user(animal.farm_id, user, manage=manage)
    return animal


# Animal views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def animal_list_create(request):
    """List animals across the user's farms or register a new one"""
    if request.method == 'GET':
        queryset = Animal.objects.filter(
            is_deleted=False, farm__in=accessible_farms(request.user)
        ).select_related('farm')
        filterset = AnimalFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return validation_error_response(filterset.errors)
        queryset = filterset.qs.order_by('ear_tag', 'id')

        page = int(request.query_params.get('page', 1))
        limit = int(request.query_params.get('limit', 50))
        paginator = Paginator(queryset, limit)
        page_obj = paginator.get_page(page)
        return Response({
            'results': AnimalSerializer(page_obj, many=True).data,
            'count': paginator.count,
            'next': page_obj.next_page_number() if page_obj.has_next() else None,
            'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
            'page': page_obj.number,
            'page_size': limit,
            'total_pages': paginator.num_pages,
        })

    serializer = AnimalCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    data = dict(serializer.validated_data)
    farm = get_farm_for_user(data.pop('farm_id'), request.user)
    initial_weight = data.pop('initial_weight_kg', None)

    try:
        animal = services.create_animal(farm, data, user=request.user, initial_weight_kg=initial_weight)
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)

    create_audit_log(
        request=request,
        action='create',
        model_name='Animal',
        object_id=animal.id,
        object_name=str(animal),
        object_reference=str(farm.id),
        changes={'ear_tag': animal.ear_tag, 'livestock_type': animal.livestock_type},
    )
    animal.refresh_from_db()
    return Response(AnimalSerializer(animal).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def animal_detail(request, pk):
    """Retrieve, update or soft-delete an animal"""
    animal = _get_animal_for_user(pk, request.user, manage=request.method == 'DELETE')

    if request.method == 'GET':
        return Response(AnimalSerializer(animal).data)
    elif request.method == 'PATCH':
        serializer = AnimalSerializer(animal, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Animal',
                object_id=animal.id,
                object_name=str(animal),
                object_reference=str(animal.farm_id),
                changes={k: str(v) for k, v in serializer.validated_data.items()},
            )
            return Response(serializer.data)
        return validation_error_response(serializer.errors)
    else:  # DELETE
        animal.is_deleted = True
        animal.save(update_fields=['is_deleted', 'updated_at'])
        create_audit_log(
            request=request,
            action='delete',
            model_name='Animal',
            object_id=animal.id,
            object_name=str(animal),
            object_reference=str(animal.farm_id),
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# Record views
RECORD_TYPES = {
    'weights': (WeightRecord, WeightRecordSerializer, 'recorded_by'),
    'milkings': (MilkingRecord, MilkingRecordSerializer, 'created_by'),
    'feedings': (FeedingRecord, FeedingRecordSerializer, 'created_by'),
    'health': (HealthRecord, HealthRecordSerializer, 'created_by'),
    'injections': (InjectionRecord, InjectionRecordSerializer, 'created_by'),
    'body-condition': (BodyConditionRecord, BodyConditionRecordSerializer, 'assessor'),
    'vaccinations': (VaccinationSchedule, VaccinationScheduleSerializer, None),
}


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def animal_record_list_create(request, pk, record_type):
    """
    List or add records of one type for an animal.

    Farm members can read records; direct writes are for owners and
    managers, farmhands submit through pending activities.
    """
    if record_type not in RECORD_TYPES:
        return Response({'error': f'Unknown record type: {record_type}'}, status=status.HTTP_404_NOT_FOUND)
    model, serializer_class, user_field = RECORD_TYPES[record_type]
    animal = _get_animal_for_user(pk, request.user, manage=request.method == 'POST')

    if request.method == 'GET':
        records = model.objects.filter(animal=animal)
        return Response(serializer_class(records, many=True).data)

    serializer = serializer_class(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    extra = {user_field: request.user} if user_field else {}
    record = serializer.save(animal=animal, **extra)
    create_audit_log(
        request=request,
        action='create',
        model_name=model.__name__,
        object_id=record.id,
        object_name=str(animal),
        object_reference=str(animal.farm_id),
    )
    return Response(serializer_class(record).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def animal_ovr(request, pk):
    """OVR rating, breakdown, trend and status aura for an animal"""
    animal = _get_animal_for_user(pk, request.user)
    refresh = request.query_params.get('refresh', '').lower() in ('1', 'true', 'yes')
    return Response(services.compute_animal_ovr(animal, use_cache=not refresh))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def animal_growth(request, pk):
    """Overall ADG plus the gain between the two latest weighings"""
    animal = _get_animal_for_user(pk, request.user)
    records = list(WeightRecord.objects.filter(animal=animal).order_by('-measurement_date', '-created_at'))
    args = (animal.livestock_type, animal.gender, animal.life_stage)

    overall = calculate_overall_adg(records, *args)
    latest = calculate_adg(records[0], records[1], *args) if len(records) >= 2 else None
    return Response({
        'animal_id': animal.id,
        'record_count': len(records),
        'overall': overall,
        'latest': latest,
        'overall_display': format_adg(overall['adg_grams']) if overall else None,
    })


# Function endpoints
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def populate_weights(request):
    """Fill in estimated weights for a farm's animals that have none"""
    farm_id = request.data.get('farmId')
    farm = Farm.objects.filter(pk=farm_id, is_deleted=False).first() if farm_id else None
    if farm is not None and not can_manage_farm(request.user, farm):
        return Response({'error': 'Forbidden - Farm owner or manager access required'}, status=status.HTTP_403_FORBIDDEN)

    allowed, retry_after = check_rate_limit(request.user.pk, 'populate-weights')
    if not allowed:
        logger.warning(f"Rate limit exceeded for populate-weights by {request.user.pk}")
        return rate_limited_response(retry_after)

    serializer = PopulateWeightsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'error': 'farmId is required'}, status=status.HTTP_400_BAD_REQUEST)
    if farm is None:
        return Response({'error': 'Farm not found'}, status=status.HTTP_404_NOT_FOUND)

    try:
        result = services.populate_weights(farm, user=request.user)
    except Exception as e:
        logger.error(f'Error in populate_weights: {str(e)}', exc_info=True)
        return Response({'error': str(e)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(
        request=request,
        action='weight_populate',
        model_name='Farm',
        object_id=farm.id,
        object_name=farm.name,
        object_reference=str(farm.id),
        changes={'populated': result['populated'], 'total': result['total']},
    )
    return Response(result)
