"""
Role based access control.

Staff roles are grouped the same way everywhere:

* audit roles: owner, manager, admin (templates, audits, action plans)
* clinical roles: audit roles + nurse
* staff roles: clinical roles + care assistant (notes, food/fluid)

Only the owner (or a SaaS admin) may delete records.  The DRF permission
classes below are used on the views; the plain helpers raise
:class:`~core.exceptions.CareAppError` from service code.
"""
from __future__ import annotations

from rest_framework.permissions import BasePermission

from .exceptions import CareAppError, ErrorType
from .models import Resident, User

AUDIT_ROLES = {User.ROLE_OWNER, User.ROLE_MANAGER, User.ROLE_ADMIN}
CLINICAL_ROLES = AUDIT_ROLES | {User.ROLE_NURSE}
STAFF_ROLES = CLINICAL_ROLES | {User.ROLE_CARE_ASSISTANT}
DELETE_ROLES = {User.ROLE_OWNER}

# Resources a nurse may not touch (management-level records).
MANAGEMENT_RESOURCES = {'audit', 'audit_template', 'action_plan', 'team', 'user'}
# Resources a care assistant may create.
CARE_ASSISTANT_RESOURCES = {'progress_note', 'food_fluid', 'incident'}

ROLE_ACTIONS = {
    User.ROLE_OWNER: {'create', 'view', 'edit', 'delete'},
    User.ROLE_ADMIN: {'create', 'view', 'edit'},
    User.ROLE_MANAGER: {'create', 'view', 'edit'},
    User.ROLE_NURSE: {'create', 'view', 'edit'},
    User.ROLE_CARE_ASSISTANT: {'create', 'view'},
}


def _is_staff_user(user, roles) -> bool:
    if not (user and getattr(user, 'is_authenticated', False)):
        return False
    return bool(getattr(user, 'is_saas_admin', False) or getattr(user, 'role', None) in roles)


class IsAuditRole(BasePermission):
    """Owners, managers and administrators."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _is_staff_user(getattr(request, 'user', None), AUDIT_ROLES)


class IsClinicalRole(BasePermission):
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _is_staff_user(getattr(request, 'user', None), CLINICAL_ROLES)


class IsStaff(BasePermission):
    """Any member of a care home's staff."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _is_staff_user(getattr(request, 'user', None), STAFF_ROLES)


class CanDelete(BasePermission):
    """DELETE is reserved for owners (and SaaS admins); other methods pass."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        if request.method != 'DELETE':
            return True
        return _is_staff_user(getattr(request, 'user', None), DELETE_ROLES)


# ---------------------------------------------------------------------
# Helpers used by services
# ---------------------------------------------------------------------
def get_authenticated_user(request) -> User:
    user = getattr(request, 'user', None)
    if not (user and getattr(user, 'is_authenticated', False)):
        raise CareAppError('You must be logged in to perform this action', ErrorType.AUTHENTICATION)
    if not user.organization_id and not user.is_saas_admin:
        raise CareAppError(
            'User account not found. Please contact support.',
            ErrorType.NOT_FOUND,
            context={'user_id': user.id},
        )
    return user


def can_access_resident(user: User, resident_id) -> Resident:
    """Return the resident if ``user`` may see it."""
    resident = Resident.objects.filter(pk=resident_id).first()
    if resident is None:
        raise CareAppError('Resident not found', ErrorType.NOT_FOUND, context={'resident_id': resident_id})
    if user.is_saas_admin:
        return resident
    if resident.organization_id != user.organization_id:
        raise CareAppError(
            'You do not have access to this resident',
            ErrorType.AUTHORIZATION,
            context={'resident_id': resident_id},
        )
    return resident


def has_permission(user: User, permission: str) -> bool:
    """Evaluate ``<action>_<resource>`` (e.g. ``delete_incident``) for ``user``."""
    if user.is_saas_admin:
        return True
    action, _, resource = permission.partition('_')
    if action not in ROLE_ACTIONS.get(user.role, set()):
        return False
    if user.role == User.ROLE_NURSE:
        return resource not in MANAGEMENT_RESOURCES
    if user.role == User.ROLE_CARE_ASSISTANT:
        if action == 'view':
            return resource not in MANAGEMENT_RESOURCES
        return resource in CARE_ASSISTANT_RESOURCES
    return True


def check_permission(user: User, permission: str) -> None:
    if not has_permission(user, permission):
        raise CareAppError(
            f'You do not have permission to {permission.replace("_", " ")}',
            ErrorType.AUTHORIZATION,
            context={'permission': permission, 'role': user.role},
        )


def ensure_same_organization(user: User, obj) -> None:
    """Hide records of other care homes behind a NOT_FOUND."""
    if user.is_saas_admin:
        return
    if getattr(obj, 'organization_id', None) != user.organization_id:
        raise CareAppError('The requested record could not be found.', ErrorType.NOT_FOUND)
