"""
Follow-up action plans raised from audit completions.
"""
from __future__ import annotations

from typing import Optional

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from core.exceptions import CareAppError, ErrorType, with_error_handling
from core.models import ActionPlan, AuditResponse, User
from core.permissions import check_permission
from core.services.audit import log_action
from core.services.notifications import notify
from core.services.security import sanitize_input


def _audit_link(plan: ActionPlan) -> str:
    return f"/dashboard/careo-audit/{plan.audit_response.category}/{plan.audit_response_id}/view"


def _metadata(plan: ActionPlan) -> dict:
    return {
        'actionPlanId': plan.id,
        'auditId': plan.audit_response_id,
        'templateId': plan.template_id,
        'priority': plan.priority,
    }


def create_action_plan(user: User, response: AuditResponse, *, description: str, assigned_to: Optional[User] = None,
                       priority: str = 'Medium', due_date=None) -> ActionPlan:
    check_permission(user, 'create_action_plan')
    description = sanitize_input(description)
    if not description:
        raise CareAppError('Description is required', ErrorType.VALIDATION, context={'field': 'description'})
    if assigned_to is not None and assigned_to.organization_id != response.organization_id:
        raise CareAppError('Assignee is not a member of this care home', ErrorType.VALIDATION)
    with transaction.atomic():
        plan = ActionPlan.objects.create(
            audit_response=response,
            template_id=response.template_id,
            organization_id=response.organization_id,
            team_id=response.team_id,
            description=description,
            assigned_to=assigned_to,
            priority=priority,
            due_date=due_date,
            status=ActionPlan.STATUS_PENDING,
            created_by=user,
        )
        if assigned_to is not None:
            notify(
                recipient=assigned_to,
                sender=user,
                type='action_plan',
                title='New Action Plan Assigned',
                message=f'{user.display_name() or "A manager"} assigned you an action plan for '
                        f'{response.template_name or "audit"}: "{description}"',
                link=_audit_link(plan),
                metadata=_metadata(plan),
                team=response.team,
            )
        log_action(user=user, action='action_plan_create', object_type='action_plan', object_id=plan.id,
                   detail={'auditId': response.id})
    return plan


def update_action_plan(user: User, plan: ActionPlan, **fields) -> ActionPlan:
    check_permission(user, 'edit_action_plan')
    if 'description' in fields:
        plan.description = sanitize_input(fields.pop('description'))
    if 'latest_comment' in fields:
        plan.latest_comment = sanitize_input(fields.pop('latest_comment'))
    completing = fields.get('status') == ActionPlan.STATUS_COMPLETED and plan.status != ActionPlan.STATUS_COMPLETED
    if completing:
        fields.pop('status')
    for key in ('assigned_to', 'priority', 'due_date', 'status'):
        if key in fields:
            setattr(plan, key, fields.pop(key))
    plan.save()
    if completing:
        # notifies the creator
        return complete_action_plan(user, plan)
    return plan


def complete_action_plan(user: User, plan: ActionPlan) -> ActionPlan:
    """Mark completed and tell the creator. Assignees may complete their own plans."""
    if plan.assigned_to_id != user.id:
        check_permission(user, 'edit_action_plan')
    if plan.status == ActionPlan.STATUS_COMPLETED:
        return plan
    with transaction.atomic():
        plan.status = ActionPlan.STATUS_COMPLETED
        plan.completed_at = timezone.now()
        plan.save(update_fields=['status', 'completed_at', 'updated_at'])
        if plan.created_by is not None:
            who = user.display_name() or (plan.assigned_to.display_name() if plan.assigned_to else '') or 'A staff member'
            notify(
                recipient=plan.created_by,
                sender=user,
                type='action_plan_completed',
                title='Action Plan Completed',
                message=f'{who} completed the action plan for '
                        f'{plan.audit_response.template_name or "audit"}: "{plan.description}"',
                link=_audit_link(plan),
                metadata=_metadata(plan),
                team=plan.team,
            )
        log_action(user=user, action='action_plan_complete', object_type='action_plan', object_id=plan.id)
    return plan


def delete_action_plan(user: User, plan: ActionPlan) -> None:
    check_permission(user, 'delete_action_plan')
    plan_id = plan.id
    plan.delete()
    log_action(user=user, action='action_plan_delete', object_type='action_plan', object_id=plan_id)


def _overdue_q(now) -> Q:
    return ~Q(status=ActionPlan.STATUS_COMPLETED) & Q(due_date__isnull=False, due_date__lt=now)


def plans_for_audit(response_id):
    return ActionPlan.objects.filter(audit_response_id=response_id).order_by('-created_at')


def plans_for_template(template_id):
    return ActionPlan.objects.filter(template_id=template_id).order_by('-created_at')


def plans_for_assignee(user_id):
    return ActionPlan.objects.filter(assigned_to_id=user_id).order_by('due_date', '-created_at')


def plans_for_team(team_id):
    return ActionPlan.objects.filter(team_id=team_id).order_by('-created_at')


def overdue_plans(team_id=None, *, organization_id=None, now=None):
    qs = ActionPlan.objects.filter(_overdue_q(now or timezone.now()))
    if team_id is not None:
        qs = qs.filter(team_id=team_id)
    if organization_id is not None:
        qs = qs.filter(organization_id=organization_id)
    return qs.order_by('due_date')


def plan_stats(team_id=None, *, organization_id=None, now=None) -> dict:
    now = now or timezone.now()
    qs = ActionPlan.objects.all()
    if team_id is not None:
        qs = qs.filter(team_id=team_id)
    if organization_id is not None:
        qs = qs.filter(organization_id=organization_id)
    open_q = ~Q(status=ActionPlan.STATUS_COMPLETED)
    agg = qs.aggregate(
        total=Count('id'),
        pending=Count('id', filter=Q(status=ActionPlan.STATUS_PENDING)),
        inProgress=Count('id', filter=Q(status=ActionPlan.STATUS_IN_PROGRESS)),
        completed=Count('id', filter=Q(status=ActionPlan.STATUS_COMPLETED)),
        overdue=Count('id', filter=_overdue_q(now)),
        highPriority=Count('id', filter=Q(priority='High') & open_q),
    )
    return {k: agg[k] or 0 for k in ('total', 'pending', 'inProgress', 'completed', 'overdue', 'highPriority')}


@with_error_handling('mark_overdue_action_plans')
def mark_overdue_action_plans(now=None) -> int:
    """Flip open plans past their due date to ``overdue``."""
    now = now or timezone.now()
    return ActionPlan.objects.filter(
        status__in=(ActionPlan.STATUS_PENDING, ActionPlan.STATUS_IN_PROGRESS),
        due_date__lt=now,
    ).update(status=ActionPlan.STATUS_OVERDUE, updated_at=now)
