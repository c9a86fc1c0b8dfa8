"""
Audit templates and their completions.

All five audit families (resident, care file, governance, clinical,
environment) share one template table and one response table; the
``category`` column tells them apart.  A response is *scoped* to the
template's organization and, where given, a team and a resident.  Care
file audits are always scoped to a resident.

Completion stamps ``next_audit_due`` from the response frequency and
then prunes the history so that only the most recent completions
(``settings.AUDIT_RETENTION``, 10 by default) are kept per
(template, team), or per (template, resident) for care file audits.
"""
from __future__ import annotations

import datetime
import logging
from typing import Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from core.exceptions import CareAppError, ErrorType
from core.models import AuditResponse, AuditTemplate, Resident, User
from core.permissions import check_permission
from core.services.audit import log_action
from core.services.notifications import broadcast_audit_change
from core.services.resilience import measure_performance
from core.services.security import sanitize_input

logger = logging.getLogger(__name__)

FREQUENCY_DAYS = {
    'daily': 1,
    'weekly': 7,
    'monthly': 30,
    'quarterly': 90,
    '3months': 90,
    '6months': 180,
    'yearly': 365,
}
NO_DUE_FREQUENCIES = {'adhoc'}
UPCOMING_WINDOW_DAYS = 7
QUESTION_TYPES = ('compliance', 'yesno', 'checkbox', 'notes')


def next_audit_due(frequency: Optional[str], category: str, now: datetime.datetime) -> Optional[datetime.datetime]:
    """Due date of the next audit, or ``None`` when there is no schedule."""
    if not frequency or frequency in NO_DUE_FREQUENCIES:
        return None
    default = 180 if category == AuditTemplate.CATEGORY_CAREFILE else 30
    return now + datetime.timedelta(days=FREQUENCY_DAYS.get(frequency, default))


def retention_limit() -> int:
    return getattr(settings, 'AUDIT_RETENTION', 10)


# ---------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------
def clean_questions(questions: Iterable[dict]) -> list[dict]:
    cleaned = []
    seen = set()
    for q in questions or []:
        qid = str(q.get('id') or '').strip()
        text = sanitize_input(q.get('text'))
        qtype = q.get('type')
        if not qid or not text:
            raise CareAppError('Each question needs an id and text', ErrorType.VALIDATION)
        if qtype not in QUESTION_TYPES:
            raise CareAppError(f'Invalid question type: {qtype}', ErrorType.VALIDATION, context={'questionId': qid})
        if qid in seen:
            raise CareAppError(f'Duplicate question id: {qid}', ErrorType.VALIDATION)
        seen.add(qid)
        cleaned.append({'id': qid, 'text': text, 'type': qtype})
    return cleaned


def create_template(user: User, *, name: str, category: str, questions=(), frequency: str = 'monthly',
                    description: str = '', team=None) -> AuditTemplate:
    check_permission(user, 'create_audit_template')
    template = AuditTemplate.objects.create(
        organization_id=user.organization_id,
        team=team,
        name=sanitize_input(name),
        description=sanitize_input(description),
        category=category,
        questions=clean_questions(questions),
        frequency=frequency,
        created_by=user,
    )
    log_action(user=user, action='audit_template_create', object_type='audit_template', object_id=template.id,
               detail={'category': category})
    return template


def update_template(user: User, template: AuditTemplate, **fields) -> AuditTemplate:
    check_permission(user, 'edit_audit_template')
    if 'questions' in fields:
        template.questions = clean_questions(fields.pop('questions'))
    for key in ('name', 'description'):
        if key in fields:
            setattr(template, key, sanitize_input(fields.pop(key)))
    for key in ('frequency', 'is_active', 'team'):
        if key in fields:
            setattr(template, key, fields.pop(key))
    template.save()
    return template


def templates_for_organization(organization_id, category: Optional[str] = None):
    qs = AuditTemplate.objects.filter(organization_id=organization_id, is_active=True)
    if category:
        qs = qs.filter(category=category)
    return qs.order_by('name')


def templates_for_team(team_id, category: Optional[str] = None):
    qs = AuditTemplate.objects.filter(team_id=team_id, is_active=True)
    if category:
        qs = qs.filter(category=category)
    return qs.order_by('name')


def archive_template(user: User, template: AuditTemplate) -> AuditTemplate:
    check_permission(user, 'edit_audit_template')
    template.is_active = False
    template.save(update_fields=['is_active', 'updated_at'])
    log_action(user=user, action='audit_template_archive', object_type='audit_template', object_id=template.id)
    return template


def delete_template(user: User, template: AuditTemplate) -> None:
    check_permission(user, 'delete_audit_template')
    template_id = template.id
    template.delete()
    log_action(user=user, action='audit_template_delete', object_type='audit_template', object_id=template_id)


# ---------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------
def response_scope(template: AuditTemplate, *, team_id=None, resident_id=None) -> Q:
    """Filter selecting the responses that share history with one another."""
    q = Q(template=template, organization_id=template.organization_id)
    if resident_id is not None:
        q &= Q(resident_id=resident_id)
    elif template.category == AuditTemplate.CATEGORY_CAREFILE:
        raise CareAppError('Care file audits need a resident', ErrorType.VALIDATION)
    if team_id is not None and resident_id is None:
        q &= Q(team_id=team_id)
    return q


def completed_for_template(template: AuditTemplate, *, team_id=None, resident_id=None, limit: int = 10):
    qs = AuditResponse.objects.filter(
        response_scope(template, team_id=team_id, resident_id=resident_id),
        status=AuditResponse.STATUS_COMPLETED,
    )
    return list(qs.order_by('-completed_at', '-id')[:limit])


def drafts_for_template(template: AuditTemplate, *, team_id=None, resident_id=None):
    qs = AuditResponse.objects.filter(
        response_scope(template, team_id=team_id, resident_id=resident_id),
        status__in=AuditResponse.OPEN_STATUSES,
    )
    return list(qs.order_by('-updated_at', '-id'))


def latest_completion(template: AuditTemplate, *, team_id=None, resident_id=None) -> Optional[AuditResponse]:
    found = completed_for_template(template, team_id=team_id, resident_id=resident_id, limit=1)
    return found[0] if found else None


def latest_per_template(organization_id, *, team_id=None, category: Optional[str] = None) -> list[AuditResponse]:
    """The most recent completion of every template (listing pages)."""
    qs = AuditResponse.objects.filter(organization_id=organization_id, status=AuditResponse.STATUS_COMPLETED)
    if team_id is not None:
        qs = qs.filter(team_id=team_id)
    if category:
        qs = qs.filter(category=category)
    latest: dict[int, AuditResponse] = {}
    for r in qs.order_by('template_id', '-completed_at', '-id'):
        latest.setdefault(r.template_id, r)
    return list(latest.values())


def _completed_in(organization_id, team_id=None):
    qs = AuditResponse.objects.filter(
        organization_id=organization_id,
        status=AuditResponse.STATUS_COMPLETED,
        next_audit_due__isnull=False,
    )
    if team_id is not None:
        qs = qs.filter(team_id=team_id)
    return qs


def overdue_audits(organization_id, *, team_id=None, now=None) -> list[AuditResponse]:
    now = now or timezone.now()
    return list(_completed_in(organization_id, team_id).filter(next_audit_due__lt=now).order_by('next_audit_due'))


def upcoming_audits(organization_id, *, team_id=None, now=None, days: int = UPCOMING_WINDOW_DAYS) -> list[AuditResponse]:
    now = now or timezone.now()
    horizon = now + datetime.timedelta(days=days)
    return list(
        _completed_in(organization_id, team_id)
        .filter(next_audit_due__gte=now, next_audit_due__lte=horizon)
        .order_by('next_audit_due')
    )


def drafts_for_team(team_id) -> list[AuditResponse]:
    return list(
        AuditResponse.objects.filter(team_id=team_id, status__in=AuditResponse.OPEN_STATUSES)
        .order_by('-updated_at')
    )


def apply_retention(response: AuditResponse) -> int:
    """Delete completions beyond the retention limit; returns how many went."""
    # history is kept per resident whenever the audit is about one resident
    if response.resident_id is not None or response.category == AuditTemplate.CATEGORY_CAREFILE:
        scope = Q(template_id=response.template_id, resident_id=response.resident_id)
    else:
        scope = Q(template_id=response.template_id, team_id=response.team_id)
    keep = retention_limit()
    stale_ids = list(
        AuditResponse.objects.filter(scope, status=AuditResponse.STATUS_COMPLETED)
        .order_by('-completed_at', '-id')
        .values_list('id', flat=True)[keep:]
    )
    if stale_ids:
        AuditResponse.objects.filter(id__in=stale_ids).delete()
        logger.info('pruned %s old completions of template %s', len(stale_ids), response.template_id,
                    extra={'operation': 'audit_retention'})
    return len(stale_ids)


def complete_response(user: User, response: AuditResponse, *, items=None,
                      overall_notes: Optional[str] = None, now=None) -> AuditResponse:
    from core.services.drafts import content_hash_for

    check_permission(user, 'edit_audit')
    now = now or timezone.now()
    with measure_performance('complete_response'), transaction.atomic():
        locked = AuditResponse.objects.select_for_update().get(pk=response.pk)
        if locked.status == AuditResponse.STATUS_COMPLETED:
            raise CareAppError('This audit has already been completed', ErrorType.VALIDATION,
                               context={'responseId': locked.id})
        if items is not None:
            locked.items = items
        if overall_notes is not None:
            locked.overall_notes = sanitize_input(overall_notes)
        locked.status = AuditResponse.STATUS_COMPLETED
        locked.completed_at = now
        locked.next_audit_due = next_audit_due(locked.frequency, locked.category, now)
        locked.content_hash = content_hash_for(locked.items, locked.overall_notes)
        locked.save()
        apply_retention(locked)
        log_action(user=user, action='audit_complete', object_type='audit_response', object_id=locked.id,
                   resident=locked.resident, detail={'templateId': locked.template_id})
    broadcast_audit_change(locked, 'completed')
    return locked


def delete_response(user: User, response: AuditResponse) -> None:
    check_permission(user, 'delete_audit')
    response_id = response.id
    response.delete()
    log_action(user=user, action='audit_delete', object_type='audit_response', object_id=response_id)


def get_resident_for_audit(user: User, resident_id) -> Optional[Resident]:
    if resident_id in (None, ''):
        return None
    from core.permissions import can_access_resident
    return can_access_resident(user, resident_id)
