from __future__ import annotations

from django.db import transaction

from core.models import EmergencyContact, Resident, User
from core.permissions import check_permission
from core.services.audit import log_action
from core.services.security import sanitize_fields

RESIDENT_TEXT_FIELDS = (
    'first_name', 'last_name', 'phone_number', 'room_number', 'gp_name', 'gp_address', 'gp_phone',
    'care_manager_name', 'care_manager_address', 'care_manager_phone', 'allergies', 'medications',
    'medical_conditions', 'health_conditions', 'risks',
)
CONTACT_TEXT_FIELDS = ('name', 'phone_number', 'relationship', 'address')


def create_resident(user: User, data: dict, contacts: list[dict] = ()) -> Resident:
    check_permission(user, 'create_resident')
    data = sanitize_fields(data, RESIDENT_TEXT_FIELDS)
    with transaction.atomic():
        resident = Resident.objects.create(organization_id=user.organization_id, created_by=user, **data)
        _replace_contacts(resident, contacts)
        log_action(user=user, action='resident_create', object_type='resident', object_id=resident.id,
                   resident=resident)
    return resident


def _replace_contacts(resident: Resident, contacts) -> None:
    resident.emergency_contacts.all().delete()
    for contact in contacts or ():
        EmergencyContact.objects.create(resident=resident, **sanitize_fields(contact, CONTACT_TEXT_FIELDS))


def update_resident(user: User, resident: Resident, data: dict, contacts=None) -> Resident:
    check_permission(user, 'edit_resident')
    data = sanitize_fields(data, RESIDENT_TEXT_FIELDS)
    with transaction.atomic():
        for key, value in data.items():
            setattr(resident, key, value)
        resident.save()
        if contacts is not None:
            _replace_contacts(resident, contacts)
        log_action(user=user, action='resident_update', object_type='resident', object_id=resident.id,
                   resident=resident, detail={'fields': sorted(data)})
    return resident


def deactivate_resident(user: User, resident: Resident) -> Resident:
    check_permission(user, 'edit_resident')
    resident.is_active = False
    resident.save(update_fields=['is_active', 'updated_at'])
    log_action(user=user, action='resident_deactivate', object_type='resident', object_id=resident.id,
               resident=resident)
    return resident


def residents_for_organization(organization_id, team_id=None):
    qs = Resident.objects.filter(organization_id=organization_id, is_active=True)
    if team_id:
        qs = qs.filter(team_id=team_id)
    return qs.order_by('last_name', 'first_name')
