"""
Care home dashboard endpoint.

One call returning the counters shown on the manager landing page:
active residents, audit work due, action plan totals and the caller's
unread notifications.  Scoped to the caller's organization and, with
``?teamId=``, to one team.
"""
from __future__ import annotations

from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from ..models import AuditResponse, FoodFluidLog, Resident
from ..permissions import IsAuditRole
from ..services import action_plans, audits, notifications
from .common import current_user, int_param


@api_view(['GET'])
@permission_classes([IsAuditRole])
def dashboard(request):
    user = current_user(request)
    team_id = int_param(request, 'teamId')
    now = timezone.now()

    residents = Resident.objects.filter(organization_id=user.organization_id, is_active=True)
    open_audits = AuditResponse.objects.filter(
        organization_id=user.organization_id, status__in=AuditResponse.OPEN_STATUSES
    )
    if team_id is not None:
        residents = residents.filter(team_id=team_id)
        open_audits = open_audits.filter(team_id=team_id)

    return Response({
        'residents': residents.count(),
        'audits': {
            'overdue': len(audits.overdue_audits(user.organization_id, team_id=team_id, now=now)),
            'upcoming': len(audits.upcoming_audits(user.organization_id, team_id=team_id, now=now)),
            'open': open_audits.count(),
        },
        'actionPlans': action_plans.plan_stats(team_id, organization_id=user.organization_id, now=now),
        'foodFluidEntriesToday': FoodFluidLog.objects.filter(
            organization_id=user.organization_id, date=timezone.localdate(now), is_archived=False
        ).count(),
        'unreadNotifications': notifications.unread_count(user),
        'generatedAt': now.isoformat(),
    })
