"""
Food and fluid chart endpoints for one resident.

``GET`` without a date returns today's live chart.  ``?date=YYYY-MM-DD``
returns that day's entries; ``?archived=1`` limits to locked entries.
"""
from __future__ import annotations

import datetime

from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from ..exceptions import CareAppError, ErrorType
from ..models import FoodFluidLog
from ..permissions import CanDelete, IsStaff, check_permission
from ..serializers.notes import FoodFluidLogSerializer
from ..services import food_fluid as svc
from .common import bool_param, int_param, iso, resident_for


def _serialize(log: FoodFluidLog) -> dict:
    return {
        'id': log.id,
        'residentId': log.resident_id,
        'timestamp': iso(log.timestamp),
        'section': log.section,
        'typeOfFoodDrink': log.type_of_food_drink,
        'portionServed': log.portion_served,
        'amountEaten': log.amount_eaten or None,
        'fluidConsumedMl': log.fluid_consumed_ml,
        'signature': log.signature,
        'date': iso(log.date),
        'isArchived': log.is_archived,
        'archivedAt': iso(log.archived_at),
        'createdBy': log.created_by_id,
        'createdAt': iso(log.created_at),
    }


def _date_param(request):
    raw = request.query_params.get('date')
    if not raw:
        return None
    try:
        return datetime.date.fromisoformat(raw)
    except ValueError:
        raise CareAppError('date must be YYYY-MM-DD', ErrorType.VALIDATION, context={'field': 'date'})


@api_view(['GET', 'POST'])
@permission_classes([IsStaff])
def food_fluid_logs(request, resident_id: int):
    user, resident = resident_for(request, resident_id)
    if request.method == 'GET':
        check_permission(user, 'view_food_fluid')
        day = _date_param(request)
        if day is None:
            qs = svc.current_day_logs(resident.id)
        else:
            qs = svc.logs_for_date(resident.id, day, include_archived=bool_param(request, 'archived'))
        return Response([_serialize(log) for log in qs])
    s = FoodFluidLogSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    log = svc.create_log(user, resident, **s.validated_data)
    return Response(_serialize(log), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsStaff])
def food_fluid_archived(request, resident_id: int):
    user, resident = resident_for(request, resident_id)
    check_permission(user, 'view_food_fluid')
    limit = int_param(request, 'limit', svc.ARCHIVED_LIMIT, maximum=500)
    return Response([_serialize(log) for log in svc.archived_logs(resident.id, limit=limit)])


@api_view(['GET'])
@permission_classes([IsStaff])
def food_fluid_summary(request, resident_id: int):
    user, resident = resident_for(request, resident_id)
    check_permission(user, 'view_food_fluid')
    day = _date_param(request) or timezone.localdate()
    return Response({'date': day.isoformat(), **svc.daily_summary(resident.id, day)})


@api_view(['GET', 'PATCH', 'PUT', 'DELETE'])
@permission_classes([IsStaff, CanDelete])
def food_fluid_detail(request, resident_id: int, pk: int):
    user, resident = resident_for(request, resident_id)
    log = get_object_or_404(FoodFluidLog, pk=pk, resident=resident)
    if request.method == 'GET':
        return Response(_serialize(log))
    if request.method == 'DELETE':
        svc.delete_log(user, log)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = FoodFluidLogSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    log = svc.update_log(user, log, **s.validated_data)
    return Response(_serialize(log))
