import logging

from django.db.models import Sum
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from farmops.core.exceptions import ServiceError, validation_error_response
from farmops.core.utils import create_audit_log
from farmops.farms.permissions import accessible_farms, get_farm_for_user
from .models import FarmRevenue
from .serializers import FarmRevenueSerializer, MilkSaleSerializer
from . import services

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def revenue_list_create(request):
    """List revenues of the user's farms or book a new one"""
    if request.method == 'GET':
        queryset = FarmRevenue.objects.filter(farm__in=accessible_farms(request.user))
        farm_id = request.query_params.get('farm', None)
        if farm_id:
            queryset = queryset.filter(farm_id=farm_id)
        source = request.query_params.get('source', None)
        if source:
            queryset = queryset.filter(source=source)
        date_from = request.query_params.get('date_from', None)
        date_to = request.query_params.get('date_to', None)
        if date_from:
            queryset = queryset.filter(transaction_date__gte=date_from)
        if date_to:
            queryset = queryset.filter(transaction_date__lte=date_to)

        total = queryset.aggregate(total=Sum('amount'))['total'] or 0
        return Response({
            'results': FarmRevenueSerializer(queryset, many=True).data,
            'total_amount': total,
        })

    serializer = FarmRevenueSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    get_farm_for_user(serializer.validated_data['farm'].id, request.user, manage=True)
    revenue = serializer.save(created_by=request.user)
    create_audit_log(
        request=request,
        action='create',
        model_name='FarmRevenue',
        object_id=revenue.id,
        object_name=revenue.get_source_display(),
        object_reference=str(revenue.farm_id),
        changes={'amount': str(revenue.amount), 'source': revenue.source},
    )
    return Response(FarmRevenueSerializer(revenue).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def revenue_detail(request, pk):
    revenue = get_object_or_404(FarmRevenue, pk=pk)
    get_farm_for_user(revenue.farm_id, request.user, manage=request.method == 'DELETE')

    if request.method == 'GET':
        return Response(FarmRevenueSerializer(revenue).data)

    create_audit_log(
        request=request,
        action='delete',
        model_name='FarmRevenue',
        object_id=revenue.id,
        object_name=revenue.get_source_display(),
        object_reference=str(revenue.farm_id),
        changes={'amount': str(revenue.amount)},
    )
    revenue.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def milk_sale_create(request):
    """Sell milk by record ids or FIFO by liters"""
    serializer = MilkSaleSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    data = serializer.validated_data
    farm = get_farm_for_user(data['farm_id'], request.user, manage=True)

    try:
        result = services.record_milk_sale(
            farm,
            data['price_per_liter'],
            record_ids=data.get('record_ids'),
            liters=data.get('liters'),
            livestock_type=data.get('livestock_type') or None,
            transaction_date=data.get('transaction_date'),
            user=request.user,
            notes=data.get('notes') or None,
        )
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)

    create_audit_log(
        request=request,
        action='milk_sale',
        model_name='FarmRevenue',
        object_id=result['revenue_ids'][0],
        object_name=f"{result['total_liters']}L milk",
        object_reference=str(farm.id),
        changes={
            'records_sold': result['records_sold'],
            'total_liters': str(result['total_liters']),
            'total_amount': str(result['total_amount']),
        },
    )
    return Response(result, status=status.HTTP_201_CREATED)
