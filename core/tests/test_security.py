from unittest import mock

import pytest
from django.urls import reverse
from rest_framework.test import APIClient

from core.exceptions import CareAppError, ErrorType
from core.models import AuditEvent, User
from core.permissions import can_access_resident, has_permission
from core.services import security
from core.services.security import check_rate_limit, sanitize_fields, sanitize_input

pytestmark = pytest.mark.django_db


# ---------------------------------------------------------------------
# Sanitizer
# ---------------------------------------------------------------------
@pytest.mark.parametrize('raw,clean', [
    (None, ''),
    ('', ''),
    ('  plain text  ', 'plain text'),
    ('<script>alert("x")</script>Hello', 'Hello'),
    ('<b>Bold</b> and <i>italic</i>', 'Bold and italic'),
    ('Tom &amp; Jerry', 'Tom & Jerry'),
    ('<img src=x onerror=alert(1)>Pic', 'Pic'),
])
def test_sanitize_input(raw, clean):
    assert sanitize_input(raw) == clean


def test_sanitize_fields_only_touches_named_fields():
    data = {'name': '<b>Ann</b>', 'tags': ['<i>a</i>', 3], 'raw': '<b>keep</b>'}
    out = sanitize_fields(data, ['name', 'tags', 'missing'])
    assert out == {'name': 'Ann', 'tags': ['a', 3], 'raw': '<b>keep</b>'}
    assert data['name'] == '<b>Ann</b>'


# ---------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------
def test_rate_limit_blocks_after_max_requests(carer):
    for _ in range(10):
        check_rate_limit(carer)
    with pytest.raises(CareAppError) as exc:
        check_rate_limit(carer)
    assert exc.value.type == ErrorType.RATE_LIMIT
    assert exc.value.status_code == 429
    assert str(exc.value) == 'Rate limit exceeded. You can perform this action again in 60 minutes.'


def test_rate_limit_is_per_user_and_operation(carer, nurse):
    for _ in range(3):
        check_rate_limit(carer, 'export', max_requests=3)
    check_rate_limit(nurse, 'export', max_requests=3)
    check_rate_limit(carer, 'other', max_requests=3)
    with pytest.raises(CareAppError):
        check_rate_limit(carer, 'export', max_requests=3)


def test_rate_limit_window_resets(carer):
    with mock.patch.object(security, 'time') as clock:
        clock.time.return_value = 1_000.0
        check_rate_limit(carer, 'op', max_requests=1, window_seconds=60)
        clock.time.return_value = 1_030.0
        with pytest.raises(CareAppError) as exc:
            check_rate_limit(carer, 'op', max_requests=1, window_seconds=60)
        assert 'in 1 minutes' in str(exc.value)
        clock.time.return_value = 1_061.0
        check_rate_limit(carer, 'op', max_requests=1, window_seconds=60)


# ---------------------------------------------------------------------
# Role table
# ---------------------------------------------------------------------
@pytest.mark.parametrize('role,permission,allowed', [
    (User.ROLE_OWNER, 'delete_resident', True),
    (User.ROLE_ADMIN, 'delete_resident', False),
    (User.ROLE_MANAGER, 'create_audit', True),
    (User.ROLE_MANAGER, 'delete_audit', False),
    (User.ROLE_NURSE, 'create_progress_note', True),
    (User.ROLE_NURSE, 'edit_mdt_note', True),
    (User.ROLE_NURSE, 'create_audit', False),
    (User.ROLE_NURSE, 'view_action_plan', False),
    (User.ROLE_CARE_ASSISTANT, 'create_progress_note', True),
    (User.ROLE_CARE_ASSISTANT, 'create_food_fluid', True),
    (User.ROLE_CARE_ASSISTANT, 'view_resident', True),
    (User.ROLE_CARE_ASSISTANT, 'create_resident', False),
    (User.ROLE_CARE_ASSISTANT, 'edit_food_fluid', False),
    (User.ROLE_CARE_ASSISTANT, 'view_audit', False),
])
def test_role_permissions(role, permission, allowed):
    assert has_permission(User(role=role), permission) is allowed


def test_saas_admin_has_every_permission():
    assert has_permission(User(role=User.ROLE_CARE_ASSISTANT, is_saas_admin=True), 'delete_audit_template')


def test_resident_access_is_scoped_to_organization(resident, nurse, outsider):
    assert can_access_resident(nurse, resident.id) == resident
    with pytest.raises(CareAppError) as exc:
        can_access_resident(outsider, resident.id)
    assert exc.value.type == ErrorType.AUTHORIZATION
    with pytest.raises(CareAppError) as exc:
        can_access_resident(nurse, 999999)
    assert exc.value.type == ErrorType.NOT_FOUND

    outsider.is_saas_admin = True
    assert can_access_resident(outsider, resident.id) == resident


# ---------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------
def test_no_role_bypass_in_login(nurse):
    client = APIClient()
    r = client.post(reverse('login_view'), {'username': 'nurse1', 'password': 'P@ssw0rd1', 'role': 'owner'},
                    format='json')
    assert r.status_code == 200
    assert r.data['role'] == User.ROLE_NURSE
    nurse.refresh_from_db()
    assert nurse.role == User.ROLE_NURSE


def test_login_returns_jwt_and_legacy_token(manager):
    client = APIClient()
    r = client.post(reverse('login_view'), {'account': 'manager1', 'password': 'P@ssw0rd1'}, format='json')
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert r.data['token'] and r.data['jwt_access'] and r.data['jwt_refresh']
    assert r.data['user']['organizationId'] == manager.organization_id

    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    me = client.get(reverse('me_view'))
    assert me.status_code == 200
    assert me.data['username'] == 'manager1'

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['jwt_access']}")
    assert client.get(reverse('me_view')).status_code == 200


def test_failed_login_is_401_and_audited(manager):
    client = APIClient()
    r = client.post(reverse('login_view'), {'username': 'manager1', 'password': 'wrong'}, format='json')
    assert r.status_code == 401
    assert r.data['ok'] is False
    assert r.data['error']['type'] == 'AUTHENTICATION_ERROR'
    event = AuditEvent.objects.get(action='login')
    assert event.user is None
    assert event.detail == {'result': 'fail', 'username': 'manager1'}


def test_login_is_throttled(manager):
    client = APIClient()
    statuses = [
        client.post(reverse('login_view'), {'username': 'manager1', 'password': 'wrong'}, format='json').status_code
        for _ in range(11)
    ]
    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429


def test_logout_revokes_legacy_token(manager):
    client = APIClient()
    r = client.post(reverse('login_view'), {'username': 'manager1', 'password': 'P@ssw0rd1'}, format='json')
    client.credentials(HTTP_AUTHORIZATION=f"Token {r.data['token']}")
    out = client.post(reverse('jwt_logout_view'), {'refresh': r.data['jwt_refresh']}, format='json')
    assert out.status_code == 200
    assert out.data['blacklisted'] == 1
    assert client.get(reverse('me_view')).status_code == 401
