"""
Progress note and MDT note endpoints, nested under a resident.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from ..models import CareTeamMember, MultidisciplinaryNote, ProgressNote
from ..permissions import CanDelete, IsClinicalRole, IsStaff, check_permission
from ..serializers.notes import CareTeamMemberSerializer, MdtNoteSerializer, ProgressNoteSerializer
from ..services import notes as svc
from .common import current_user, int_param, iso, resident_for


def _serialize_progress(n: ProgressNote) -> dict:
    return {
        'id': n.id,
        'residentId': n.resident_id,
        'type': n.type,
        'subject': n.subject,
        'note': n.note,
        'mood': n.mood or None,
        'participation': n.participation or None,
        'authorId': n.author_id,
        'authorName': n.author_name,
        'createdAt': iso(n.created_at),
        'updatedAt': iso(n.updated_at),
    }


def _serialize_member(m: CareTeamMember) -> dict:
    return {
        'id': m.id,
        'residentId': m.resident_id,
        'name': m.name,
        'specialty': m.specialty,
        'organizationName': m.organization_name,
        'phone': m.phone,
        'email': m.email,
    }


def _serialize_mdt(n: MultidisciplinaryNote) -> dict:
    return {
        'id': n.id,
        'residentId': n.resident_id,
        'teamMemberId': n.team_member_id,
        'teamMemberName': n.team_member_name,
        'reasonForVisit': n.reason_for_visit,
        'outcome': n.outcome,
        'relativeInformed': n.relative_informed,
        'relativeInformedDetails': n.relative_informed_details,
        'signature': n.signature,
        'date': iso(n.note_date),
        'time': n.note_time.strftime('%H:%M') if n.note_time else None,
        'createdBy': n.created_by_id,
        'updatedBy': n.updated_by_id,
        'createdAt': iso(n.created_at),
        'updatedAt': iso(n.updated_at),
    }


# ---------------------------------------------------------------------
# Progress notes
# ---------------------------------------------------------------------
@api_view(['GET', 'POST'])
@permission_classes([IsStaff])
def progress_notes(request, resident_id: int):
    """GET supports ``type`` and ``q`` (search in subject and note)."""
    user, resident = resident_for(request, resident_id)
    if request.method == 'GET':
        check_permission(user, 'view_progress_note')
        qs = svc.search_progress_notes(
            resident.id, request.query_params.get('q'), type=request.query_params.get('type')
        )
        return Response([_serialize_progress(n) for n in qs])
    s = ProgressNoteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    note = svc.create_progress_note(user, resident, **s.validated_data)
    return Response(_serialize_progress(note), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'PUT', 'DELETE'])
@permission_classes([IsStaff, CanDelete])
def progress_note_detail(request, resident_id: int, pk: int):
    user, resident = resident_for(request, resident_id)
    note = get_object_or_404(ProgressNote, pk=pk, resident=resident)
    if request.method == 'GET':
        return Response(_serialize_progress(note))
    if request.method == 'DELETE':
        svc.delete_progress_note(user, note)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = ProgressNoteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    note = svc.update_progress_note(user, note, **s.validated_data)
    return Response(_serialize_progress(note))


@api_view(['GET'])
@permission_classes([IsStaff])
def recent_progress_notes(request):
    user = current_user(request)
    limit = int_param(request, 'limit', svc.RECENT_LIMIT, maximum=200)
    return Response([_serialize_progress(n) for n in svc.recent_progress_notes(user.organization_id, limit)])


# ---------------------------------------------------------------------
# MDT
# ---------------------------------------------------------------------
@api_view(['GET', 'POST'])
@permission_classes([IsClinicalRole])
def care_team(request, resident_id: int):
    user, resident = resident_for(request, resident_id)
    if request.method == 'GET':
        return Response([_serialize_member(m) for m in resident.care_team.order_by('name')])
    s = CareTeamMemberSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    member = svc.add_care_team_member(user, resident, **s.validated_data)
    return Response(_serialize_member(member), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'PUT', 'DELETE'])
@permission_classes([IsClinicalRole, CanDelete])
def care_team_member_detail(request, resident_id: int, pk: int):
    user, resident = resident_for(request, resident_id)
    member = get_object_or_404(CareTeamMember, pk=pk, resident=resident)
    if request.method == 'GET':
        return Response(_serialize_member(member))
    if request.method == 'DELETE':
        svc.remove_care_team_member(user, member)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = CareTeamMemberSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    member = svc.update_care_team_member(user, member, **s.validated_data)
    return Response(_serialize_member(member))


def _mdt_fields(resident, validated: dict) -> dict:
    fields = dict(validated)
    if 'teamMemberId' in fields:
        member_id = fields.pop('teamMemberId')
        fields['team_member'] = (
            get_object_or_404(CareTeamMember, pk=member_id, resident=resident) if member_id else None
        )
    return fields


@api_view(['GET', 'POST'])
@permission_classes([IsClinicalRole])
def mdt_notes(request, resident_id: int):
    """GET supports ``teamMemberId`` to list one professional's notes."""
    user, resident = resident_for(request, resident_id)
    if request.method == 'GET':
        member_id = int_param(request, 'teamMemberId')
        if member_id is not None:
            qs = svc.mdt_notes_for_member(member_id).filter(resident=resident)
        else:
            qs = svc.mdt_notes_for_resident(resident.id)
        return Response([_serialize_mdt(n) for n in qs])
    s = MdtNoteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    note = svc.create_mdt_note(user, resident, **_mdt_fields(resident, s.validated_data))
    return Response(_serialize_mdt(note), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'PUT', 'DELETE'])
@permission_classes([IsClinicalRole, CanDelete])
def mdt_note_detail(request, resident_id: int, pk: int):
    user, resident = resident_for(request, resident_id)
    note = get_object_or_404(MultidisciplinaryNote, pk=pk, resident=resident)
    if request.method == 'GET':
        return Response(_serialize_mdt(note))
    if request.method == 'DELETE':
        svc.delete_mdt_note(user, note)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = MdtNoteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    note = svc.update_mdt_note(user, note, **_mdt_fields(resident, s.validated_data))
    return Response(_serialize_mdt(note))
