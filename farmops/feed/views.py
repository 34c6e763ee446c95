import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from farmops.core.exceptions import ServiceError, validation_error_response
from farmops.core.utils import create_audit_log
from farmops.farms.permissions import get_farm_for_user
from .filters import FeedInventoryFilter, FeedTransactionFilter
from .models import FeedInventory, FeedStockTransaction
from .serializers import (
    FeedInventorySerializer, FeedStockCreateSerializer, FeedStockTransactionSerializer,
    RestockSerializer, AdjustStockSerializer,
)
from . import services

logger = logging.getLogger(__name__)


def _get_lot_for_user(pk, user, manage=False):
    lot = get_object_or_404(FeedInventory.objects.select_related('farm'), pk=pk)
    get_farm_for_user(lot.farm_id, user, manage=manage)
    return lot


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def feed_inventory_list_create(request):
    """List a farm's feed lots (oldest first) or add a new lot"""
    if request.method == 'GET':
        farm_id = request.query_params.get('farm')
        if not farm_id:
            return Response({'error': 'farm query parameter is required'}, status=status.HTTP_400_BAD_REQUEST)
        farm = get_farm_for_user(farm_id, request.user)
        filterset = FeedInventoryFilter(request.query_params, queryset=FeedInventory.objects.filter(farm=farm))
        if not filterset.is_valid():
            return validation_error_response(filterset.errors)
        return Response(FeedInventorySerializer(filterset.qs.order_by('created_at', 'id'), many=True).data)

    serializer = FeedStockCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)
    data = dict(serializer.validated_data)
    farm = get_farm_for_user(data.pop('farm_id'), request.user, manage=True)

    try:
        lot = services.add_stock(farm, data, user=request.user)
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)

    create_audit_log(
        request=request,
        action='feed_stock_add',
        model_name='FeedInventory',
        object_id=lot.id,
        object_name=lot.feed_type,
        object_reference=str(farm.id),
        changes={'quantity_kg': str(lot.quantity_kg), 'category': lot.category},
    )
    return Response(FeedInventorySerializer(lot).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def feed_inventory_detail(request, pk):
    """Retrieve a lot, edit its details or delete it"""
    lot = _get_lot_for_user(pk, request.user, manage=request.method != 'GET')

    if request.method == 'GET':
        return Response(FeedInventorySerializer(lot).data)
    elif request.method == 'PATCH':
        serializer = FeedInventorySerializer(lot, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='FeedInventory',
                object_id=lot.id,
                object_name=lot.feed_type,
                object_reference=str(lot.farm_id),
                changes={k: str(v) for k, v in serializer.validated_data.items()},
            )
            return Response(serializer.data)
        return validation_error_response(serializer.errors)
    else:  # DELETE
        create_audit_log(
            request=request,
            action='delete',
            model_name='FeedInventory',
            object_id=lot.id,
            object_name=lot.feed_type,
            object_reference=str(lot.farm_id),
        )
        lot.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def feed_inventory_restock(request, pk):
    """Add stock to an existing lot"""
    lot = _get_lot_for_user(pk, request.user, manage=True)
    serializer = RestockSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    try:
        lot, entry = services.restock(
            lot.id, serializer.validated_data['quantity_kg'], user=request.user,
            notes=serializer.validated_data.get('notes'),
        )
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)

    create_audit_log(
        request=request,
        action='feed_stock_add',
        model_name='FeedInventory',
        object_id=lot.id,
        object_name=lot.feed_type,
        object_reference=str(lot.farm_id),
        changes={'quantity_change_kg': str(entry.quantity_change_kg), 'balance_after': str(entry.balance_after)},
    )
    return Response(FeedStockTransactionSerializer(entry).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def feed_inventory_adjust(request, pk):
    """Correct a lot to a counted quantity"""
    lot = _get_lot_for_user(pk, request.user, manage=True)
    serializer = AdjustStockSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error_response(serializer.errors)

    try:
        lot, entry = services.adjust_stock(
            lot.id, serializer.validated_data['new_quantity_kg'], user=request.user,
            notes=serializer.validated_data.get('notes'),
        )
    except ServiceError as e:
        return Response({'error': e.message}, status=e.status_code)

    create_audit_log(
        request=request,
        action='feed_stock_adjust',
        model_name='FeedInventory',
        object_id=lot.id,
        object_name=lot.feed_type,
        object_reference=str(lot.farm_id),
        changes={'quantity_change_kg': str(entry.quantity_change_kg), 'balance_after': str(entry.balance_after)},
    )
    return Response(FeedStockTransactionSerializer(entry).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def feed_transaction_list(request, farm_id):
    """Stock ledger of a farm, newest first"""
    farm = get_farm_for_user(farm_id, request.user)
    queryset = FeedStockTransaction.objects.filter(feed_inventory__farm=farm).select_related('feed_inventory', 'created_by')
    filterset = FeedTransactionFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        return validation_error_response(filterset.errors)
    return Response(FeedStockTransactionSerializer(filterset.qs, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def feed_summary(request, farm_id):
    """Cached inventory totals, days of stock and value for a farm"""
    farm = get_farm_for_user(farm_id, request.user)
    refresh = request.query_params.get('refresh', '').lower() in ('1', 'true', 'yes')
    return Response(services.get_feed_summary(farm, use_cache=not refresh))
