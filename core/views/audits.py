"""
Audit template and audit response endpoints.

The editor flow is: ``POST /api/audits/drafts`` to open (or resume) the
draft for a template, ``POST .../autosave`` every few seconds while the
auditor works, then ``POST .../complete``.  Autosave answers 409 when
the draft was changed by someone else since the client last saw it.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from ..models import AuditResponse, AuditTemplate, Team
from ..permissions import CanDelete, IsAuditRole
from ..serializers.audits import (
    AuditTemplateSerializer,
    AutosaveSerializer,
    CompleteSerializer,
    DraftRequestSerializer,
)
from ..services import audits as svc
from ..services import drafts
from .common import current_user, int_param, iso, scoped_object


def serialize_template(t: AuditTemplate) -> dict:
    return {
        'id': t.id,
        'name': t.name,
        'description': t.description,
        'category': t.category,
        'questions': t.questions,
        'frequency': t.frequency,
        'isActive': t.is_active,
        'teamId': t.team_id,
        'organizationId': t.organization_id,
        'createdBy': t.created_by_id,
        'createdAt': iso(t.created_at),
        'updatedAt': iso(t.updated_at),
    }


def serialize_response(r: AuditResponse) -> dict:
    return {
        'id': r.id,
        'templateId': r.template_id,
        'templateName': r.template_name,
        'category': r.category,
        'organizationId': r.organization_id,
        'teamId': r.team_id,
        'residentId': r.resident_id,
        'items': r.items,
        'overallNotes': r.overall_notes,
        'status': r.status,
        'auditedBy': r.audited_by_id,
        'auditedByName': r.audited_by.display_name() if r.audited_by else None,
        'auditedAt': iso(r.audited_at),
        'frequency': r.frequency,
        'completedAt': iso(r.completed_at),
        'nextAuditDue': iso(r.next_audit_due),
        'hash': r.content_hash,
        'createdAt': iso(r.created_at),
        'updatedAt': iso(r.updated_at),
    }


def _team_for(user, team_id):
    if team_id is None:
        return None
    return get_object_or_404(Team, pk=team_id, organization_id=user.organization_id)


# ---------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------
@api_view(['GET', 'POST'])
@permission_classes([IsAuditRole])
def templates_list(request):
    user = current_user(request)
    if request.method == 'GET':
        category = request.query_params.get('category')
        team_id = int_param(request, 'teamId')
        if team_id is not None:
            qs = svc.templates_for_team(team_id, category).filter(organization_id=user.organization_id)
        else:
            qs = svc.templates_for_organization(user.organization_id, category)
        return Response([serialize_template(t) for t in qs])
    s = AuditTemplateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    template = svc.create_template(
        user,
        name=v['name'],
        category=v['category'],
        questions=v.get('questions', []),
        frequency=v.get('frequency', 'monthly'),
        description=v.get('description', ''),
        team=_team_for(user, v.get('team_id')),
    )
    return Response(serialize_template(template), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'PUT', 'DELETE'])
@permission_classes([IsAuditRole, CanDelete])
def template_detail(request, pk: int):
    user = current_user(request)
    template = scoped_object(AuditTemplate, pk, user)
    if request.method == 'GET':
        return Response(serialize_template(template))
    if request.method == 'DELETE':
        svc.delete_template(user, template)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = AuditTemplateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    fields = dict(s.validated_data)
    if 'team_id' in fields:
        fields['team'] = _team_for(user, fields.pop('team_id'))
    fields.pop('category', None)  # category is fixed once responses exist
    template = svc.update_template(user, template, **fields)
    return Response(serialize_template(template))


@api_view(['POST'])
@permission_classes([IsAuditRole])
def template_archive(request, pk: int):
    user = current_user(request)
    template = scoped_object(AuditTemplate, pk, user)
    return Response(serialize_template(svc.archive_template(user, template)))


def _scope_params(request, user):
    resident_id = int_param(request, 'residentId')
    if resident_id is not None:
        svc.get_resident_for_audit(user, resident_id)
    return {'team_id': int_param(request, 'teamId'), 'resident_id': resident_id}


@api_view(['GET'])
@permission_classes([IsAuditRole])
def template_responses(request, pk: int):
    """The last completions of a template (newest first)."""
    user = current_user(request)
    template = scoped_object(AuditTemplate, pk, user)
    limit = int_param(request, 'limit', 10, maximum=svc.retention_limit())
    found = svc.completed_for_template(template, limit=limit, **_scope_params(request, user))
    return Response([serialize_response(r) for r in found])


@api_view(['GET'])
@permission_classes([IsAuditRole])
def template_drafts(request, pk: int):
    user = current_user(request)
    template = scoped_object(AuditTemplate, pk, user)
    found = svc.drafts_for_template(template, **_scope_params(request, user))
    return Response([serialize_response(r) for r in found])


@api_view(['GET'])
@permission_classes([IsAuditRole])
def template_latest(request, pk: int):
    user = current_user(request)
    template = scoped_object(AuditTemplate, pk, user)
    found = svc.latest_completion(template, **_scope_params(request, user))
    return Response(serialize_response(found) if found else None)


# ---------------------------------------------------------------------
# Drafts & responses
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([IsAuditRole])
def open_draft(request):
    """Resume the open draft for the scope or create it (201)."""
    user = current_user(request)
    s = DraftRequestSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    template = scoped_object(AuditTemplate, v['templateId'], user, is_active=True)
    resident = svc.get_resident_for_audit(user, v.get('residentId'))
    team = _team_for(user, v.get('teamId'))
    draft, created = drafts.get_or_create_draft(
        template, user, resident=resident, team_id=team.id if team else None
    )
    return Response(
        {'created': created, 'response': serialize_response(draft)},
        status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )


@api_view(['GET'])
@permission_classes([IsAuditRole])
def draft_state(request):
    user = current_user(request)
    template = scoped_object(AuditTemplate, int_param(request, 'templateId'), user)
    key = drafts.draft_key(template, template.organization_id, int_param(request, 'teamId'),
                           int_param(request, 'residentId'))
    return Response({'key': key, 'state': drafts.draft_state(key)})


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuditRole, CanDelete])
def response_detail(request, pk: int):
    user = current_user(request)
    response = scoped_object(AuditResponse, pk, user)
    if request.method == 'DELETE':
        svc.delete_response(user, response)
        return Response(status=status.HTTP_204_NO_CONTENT)
    return Response(serialize_response(response))


@api_view(['POST'])
@permission_classes([IsAuditRole])
def response_autosave(request, pk: int):
    user = current_user(request)
    response = scoped_object(AuditResponse, pk, user)
    s = AutosaveSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    result = drafts.autosave(
        user, response, [dict(i) for i in v['items']],
        overall_notes=v.get('overallNotes'),
        base_hash=v.get('baseHash') or None,
    )
    return Response(result)

# ScopedRateThrottle reads the scope from the wrapped APIView class
response_autosave.cls.throttle_scope = 'autosave'


@api_view(['POST'])
@permission_classes([IsAuditRole])
def response_complete(request, pk: int):
    user = current_user(request)
    response = scoped_object(AuditResponse, pk, user)
    s = CompleteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    v = s.validated_data
    items = [dict(i) for i in v['items']] if 'items' in v else None
    response = svc.complete_response(user, response, items=items, overall_notes=v.get('overallNotes'))
    return Response(serialize_response(response))


@api_view(['GET'])
@permission_classes([IsAuditRole])
def latest_per_template(request):
    user = current_user(request)
    found = svc.latest_per_template(
        user.organization_id,
        team_id=int_param(request, 'teamId'),
        category=request.query_params.get('category'),
    )
    return Response([serialize_response(r) for r in found])


@api_view(['GET'])
@permission_classes([IsAuditRole])
def overdue(request):
    user = current_user(request)
    found = svc.overdue_audits(user.organization_id, team_id=int_param(request, 'teamId'))
    return Response([serialize_response(r) for r in found])


@api_view(['GET'])
@permission_classes([IsAuditRole])
def upcoming(request):
    user = current_user(request)
    found = svc.upcoming_audits(user.organization_id, team_id=int_param(request, 'teamId'))
    return Response([serialize_response(r) for r in found])


@api_view(['GET'])
@permission_classes([IsAuditRole])
def team_drafts(request, team_id: int):
    user = current_user(request)
    team = _team_for(user, team_id)
    return Response([serialize_response(r) for r in svc.drafts_for_team(team.id)])
