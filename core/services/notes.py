"""
Progress notes and multidisciplinary team (MDT) notes.
"""
from __future__ import annotations

from django.db.models import Q

from core.exceptions import CareAppError, ErrorType, validate_required
from core.models import CareTeamMember, MultidisciplinaryNote, ProgressNote, Resident, User
from core.permissions import check_permission
from core.services.audit import log_action
from core.services.security import check_rate_limit, sanitize_input

PROGRESS_TEXT_FIELDS = ('subject', 'note')
MDT_TEXT_FIELDS = ('team_member_name', 'reason_for_visit', 'outcome', 'relative_informed_details', 'signature')
RECENT_LIMIT = 50
# incident reports per user per hour
INCIDENT_LIMIT = 10


# ---------------------------------------------------------------------
# Progress notes
# ---------------------------------------------------------------------
def create_progress_note(user: User, resident: Resident, *, type: str, subject: str, note: str,
                         mood: str = '', participation: str = '') -> ProgressNote:
    check_permission(user, 'create_progress_note')
    if type == 'incident':
        check_rate_limit(user, 'incident_create', max_requests=INCIDENT_LIMIT)
    obj = ProgressNote.objects.create(
        resident=resident,
        type=type,
        subject=validate_required(sanitize_input(subject), 'subject'),
        note=validate_required(sanitize_input(note), 'note'),
        mood=mood or '',
        participation=participation or '',
        author=user,
        author_name=user.display_name(),
    )
    log_action(user=user, action='progress_note_create', object_type='progress_note', object_id=obj.id,
               resident=resident)
    return obj


def update_progress_note(user: User, obj: ProgressNote, **fields) -> ProgressNote:
    check_permission(user, 'edit_progress_note')
    for key in PROGRESS_TEXT_FIELDS:
        if key in fields:
            setattr(obj, key, validate_required(sanitize_input(fields[key]), key))
    for key in ('type', 'mood', 'participation'):
        if key in fields:
            setattr(obj, key, fields[key] or '')
    obj.save()
    log_action(user=user, action='progress_note_update', object_type='progress_note', object_id=obj.id,
               resident=obj.resident)
    return obj


def delete_progress_note(user: User, obj: ProgressNote) -> None:
    check_permission(user, 'delete_progress_note')
    note_id, resident = obj.id, obj.resident
    obj.delete()
    log_action(user=user, action='progress_note_delete', object_type='progress_note', object_id=note_id,
               resident=resident)


def progress_notes_for_resident(resident_id, *, type: str | None = None):
    qs = ProgressNote.objects.filter(resident_id=resident_id)
    if type:
        qs = qs.filter(type=type)
    return qs.order_by('-created_at', '-id')


def recent_progress_notes(organization_id, limit: int = RECENT_LIMIT):
    return (
        ProgressNote.objects.filter(resident__organization_id=organization_id)
        .select_related('resident')
        .order_by('-created_at', '-id')[:limit]
    )


def search_progress_notes(resident_id, term: str, *, type: str | None = None):
    term = (term or '').strip()
    qs = progress_notes_for_resident(resident_id, type=type)
    if not term:
        return qs
    return qs.filter(Q(subject__icontains=term) | Q(note__icontains=term))


# ---------------------------------------------------------------------
# MDT
# ---------------------------------------------------------------------
def add_care_team_member(user: User, resident: Resident, *, name: str, specialty: str = '',
                         organization_name: str = '', phone: str = '', email: str = '') -> CareTeamMember:
    check_permission(user, 'create_mdt_note')
    return CareTeamMember.objects.create(
        resident=resident,
        name=validate_required(sanitize_input(name), 'name'),
        specialty=sanitize_input(specialty),
        organization_name=sanitize_input(organization_name),
        phone=sanitize_input(phone),
        email=email or '',
    )


def update_care_team_member(user: User, member: CareTeamMember, **fields) -> CareTeamMember:
    check_permission(user, 'edit_mdt_note')
    if 'name' in fields:
        member.name = validate_required(sanitize_input(fields['name']), 'name')
    for key in ('specialty', 'organization_name', 'phone'):
        if key in fields:
            setattr(member, key, sanitize_input(fields[key]))
    if 'email' in fields:
        member.email = fields['email'] or ''
    member.save()
    return member


def remove_care_team_member(user: User, member: CareTeamMember) -> None:
    check_permission(user, 'delete_mdt_note')
    member.delete()


def create_mdt_note(user: User, resident: Resident, **fields) -> MultidisciplinaryNote:
    check_permission(user, 'create_mdt_note')
    data = {k: sanitize_input(fields.get(k)) for k in MDT_TEXT_FIELDS}
    for key in ('team_member_name', 'reason_for_visit', 'outcome', 'signature'):
        validate_required(data[key], key)
    if fields.get('relative_informed') not in ('yes', 'no'):
        raise CareAppError('relative_informed must be yes or no', ErrorType.VALIDATION)
    note = MultidisciplinaryNote.objects.create(
        resident=resident,
        team_member=fields.get('team_member'),
        relative_informed=fields['relative_informed'],
        note_date=fields['note_date'],
        note_time=fields['note_time'],
        created_by=user,
        **data,
    )
    log_action(user=user, action='mdt_note_create', object_type='mdt_note', object_id=note.id, resident=resident)
    return note


def update_mdt_note(user: User, note: MultidisciplinaryNote, **fields) -> MultidisciplinaryNote:
    check_permission(user, 'edit_mdt_note')
    for key in MDT_TEXT_FIELDS:
        if key in fields:
            setattr(note, key, sanitize_input(fields[key]))
    for key in ('team_member', 'relative_informed', 'note_date', 'note_time'):
        if key in fields:
            setattr(note, key, fields[key])
    note.updated_by = user
    note.save()
    log_action(user=user, action='mdt_note_update', object_type='mdt_note', object_id=note.id,
               resident=note.resident)
    return note


def delete_mdt_note(user: User, note: MultidisciplinaryNote) -> None:
    check_permission(user, 'delete_mdt_note')
    note_id, resident = note.id, note.resident
    note.delete()
    log_action(user=user, action='mdt_note_delete', object_type='mdt_note', object_id=note_id, resident=resident)


def mdt_notes_for_resident(resident_id):
    return MultidisciplinaryNote.objects.filter(resident_id=resident_id).order_by('-note_date', '-note_time', '-id')


def mdt_notes_for_member(member_id):
    return MultidisciplinaryNote.objects.filter(team_member_id=member_id).order_by('-note_date', '-note_time')
