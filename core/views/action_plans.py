from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import CareAppError, ErrorType
from ..models import ActionPlan, AuditResponse, User
from ..permissions import CanDelete, IsAuditRole, IsStaff
from ..serializers.audits import ActionPlanSerializer
from ..services import action_plans as svc
from .common import current_user, int_param, iso, scoped_object


def _serialize(p: ActionPlan) -> dict:
    return {
        'id': p.id,
        'auditResponseId': p.audit_response_id,
        'templateId': p.template_id,
        'teamId': p.team_id,
        'description': p.description,
        'assignedTo': p.assigned_to_id,
        'assignedToName': p.assigned_to.display_name() if p.assigned_to else None,
        'priority': p.priority,
        'dueDate': iso(p.due_date),
        'status': p.status,
        'latestComment': p.latest_comment,
        'createdBy': p.created_by_id,
        'createdByName': p.created_by.display_name() if p.created_by else None,
        'completedAt': iso(p.completed_at),
        'createdAt': iso(p.created_at),
        'updatedAt': iso(p.updated_at),
    }


def _assignee(user: User, assignee_id):
    if assignee_id is None:
        return None
    return get_object_or_404(User, pk=assignee_id, organization_id=user.organization_id)


@api_view(['GET', 'POST'])
@permission_classes([IsAuditRole])
def action_plans_list(request):
    """List by ``auditId`` / ``templateId`` / ``assigneeId`` / ``teamId``, or create."""
    user = current_user(request)
    if request.method == 'GET':
        params = request.query_params
        if params.get('auditId'):
            qs = svc.plans_for_audit(int_param(request, 'auditId'))
        elif params.get('templateId'):
            qs = svc.plans_for_template(int_param(request, 'templateId'))
        elif params.get('assigneeId'):
            qs = svc.plans_for_assignee(int_param(request, 'assigneeId'))
        elif params.get('teamId'):
            qs = svc.plans_for_team(int_param(request, 'teamId'))
        else:
            qs = ActionPlan.objects.order_by('-created_at')
        qs = qs.filter(organization_id=user.organization_id).select_related('assigned_to', 'created_by')
        return Response([_serialize(p) for p in qs])

    s = ActionPlanSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    if 'auditResponseId' not in v:
        raise CareAppError('auditResponseId is required', ErrorType.VALIDATION, context={'field': 'auditResponseId'})
    response = scoped_object(AuditResponse, v['auditResponseId'], user)
    plan = svc.create_action_plan(
        user, response,
        description=v['description'],
        assigned_to=_assignee(user, v.get('assignedTo')),
        priority=v.get('priority', 'Medium'),
        due_date=v.get('dueDate'),
    )
    return Response(_serialize(plan), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'PUT', 'DELETE'])
@permission_classes([IsAuditRole, CanDelete])
def action_plan_detail(request, pk: int):
    user = current_user(request)
    plan = scoped_object(ActionPlan, pk, user)
    if request.method == 'GET':
        return Response(_serialize(plan))
    if request.method == 'DELETE':
        svc.delete_action_plan(user, plan)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = ActionPlanSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    fields = {}
    if 'description' in v:
        fields['description'] = v['description']
    if 'assignedTo' in v:
        fields['assigned_to'] = _assignee(user, v['assignedTo'])
    if 'priority' in v:
        fields['priority'] = v['priority']
    if 'dueDate' in v:
        fields['due_date'] = v['dueDate']
    if 'status' in v:
        fields['status'] = v['status']
    if 'latestComment' in v:
        fields['latest_comment'] = v['latestComment']
    plan = svc.update_action_plan(user, plan, **fields)
    return Response(_serialize(plan))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaff])
def action_plan_complete(request, pk: int):
    user = current_user(request)
    plan = scoped_object(ActionPlan, pk, user)
    return Response(_serialize(svc.complete_action_plan(user, plan)))


@api_view(['GET'])
@permission_classes([IsStaff])
def my_action_plans(request):
    user = current_user(request)
    qs = svc.plans_for_assignee(user.id).select_related('assigned_to', 'created_by')
    return Response([_serialize(p) for p in qs])


@api_view(['GET'])
@permission_classes([IsAuditRole])
def overdue_action_plans(request):
    user = current_user(request)
    qs = svc.overdue_plans(int_param(request, 'teamId'), organization_id=user.organization_id)
    return Response([_serialize(p) for p in qs])


@api_view(['GET'])
@permission_classes([IsAuditRole])
def action_plan_stats(request):
    user = current_user(request)
    return Response(svc.plan_stats(int_param(request, 'teamId'), organization_id=user.organization_id))
