"""
Resident endpoints.

Residents belong to one care home; every handler resolves the resident
through :func:`core.permissions.can_access_resident` so staff of another
organization get a 403 rather than the record.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from ..models import AuditEvent, Resident
from ..permissions import IsClinicalRole, IsStaff, check_permission
from ..serializers.residents import ResidentSerializer
from ..services import residents as svc
from ..services.audit import client_ip, log_action
from .common import current_user, iso, resident_for


def _serialize_contact(c) -> dict:
    return {
        'id': c.id,
        'name': c.name,
        'phoneNumber': c.phone_number,
        'relationship': c.relationship,
        'address': c.address,
        'isPrimary': c.is_primary,
    }


def _serialize(r: Resident, with_contacts: bool = False) -> dict:
    data = {
        'id': r.id,
        'firstName': r.first_name,
        'lastName': r.last_name,
        'fullName': r.full_name,
        'dateOfBirth': iso(r.date_of_birth),
        'phoneNumber': r.phone_number,
        'roomNumber': r.room_number,
        'admissionDate': iso(r.admission_date),
        'nhsHealthNumber': r.nhs_health_number,
        'teamId': r.team_id,
        'organizationId': r.organization_id,
        'gpName': r.gp_name,
        'gpAddress': r.gp_address,
        'gpPhone': r.gp_phone,
        'careManagerName': r.care_manager_name,
        'careManagerAddress': r.care_manager_address,
        'careManagerPhone': r.care_manager_phone,
        'healthConditions': r.health_conditions,
        'risks': r.risks,
        'dependencies': r.dependencies,
        'allergies': r.allergies,
        'medications': r.medications,
        'medicalConditions': r.medical_conditions,
        'isActive': r.is_active,
        'createdAt': iso(r.created_at),
        'updatedAt': iso(r.updated_at),
    }
    if with_contacts:
        data['emergencyContacts'] = [_serialize_contact(c) for c in r.emergency_contacts.all()]
    return data


@api_view(['GET', 'POST'])
@permission_classes([IsStaff])
def residents_list(request):
    user = current_user(request)
    if request.method == 'GET':
        check_permission(user, 'view_resident')
        qs = svc.residents_for_organization(user.organization_id, request.query_params.get('teamId'))
        return Response([_serialize(r) for r in qs])
    s = ResidentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    data = dict(s.validated_data)
    contacts = data.pop('emergencyContacts', [])
    resident = svc.create_resident(user, data, contacts)
    return Response(_serialize(resident, with_contacts=True), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsStaff])
def resident_detail(request, resident_id: int):
    user, resident = resident_for(request, resident_id)
    if request.method == 'GET':
        check_permission(user, 'view_resident')
        log_action(user=user, action='resident_view', object_type='resident', object_id=resident.id,
                   resident=resident, ip=client_ip(request))
        return Response(_serialize(resident, with_contacts=True))
    if request.method == 'DELETE':
        svc.deactivate_resident(user, resident)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = ResidentSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    data = dict(s.validated_data)
    contacts = data.pop('emergencyContacts', None)
    resident = svc.update_resident(user, resident, data, contacts)
    return Response(_serialize(resident, with_contacts=True))


@api_view(['GET'])
@permission_classes([IsClinicalRole])
def resident_audit_trail(request, resident_id: int):
    """Data-access events recorded for one resident (newest first)."""
    user, resident = resident_for(request, resident_id)
    check_permission(user, 'view_audit_trail')
    events = AuditEvent.objects.filter(resident=resident).select_related('user').order_by('-created_at')[:200]
    return Response([
        {
            'id': e.id,
            'action': e.action,
            'objectType': e.object_type,
            'objectId': e.object_id,
            'userId': e.user_id,
            'userName': e.user.display_name() if e.user else None,
            'detail': e.detail,
            'createdAt': iso(e.created_at),
        }
        for e in events
    ])
