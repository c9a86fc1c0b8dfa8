import datetime

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from core.models import AuditResponse, AuditTemplate, Organization, Resident, Team, User


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttles, rate limits and draft locks all live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def org(db):
    return Organization.objects.create(name='Rose House')


@pytest.fixture
def other_org(db):
    return Organization.objects.create(name='Elm Lodge')


@pytest.fixture
def team(org):
    return Team.objects.create(organization=org, name='Ground Floor')


def make_user(username, role, org=None, team=None, **extra):
    return User.objects.create_user(
        username=username, password='P@ssw0rd1', role=role, organization=org, team=team, **extra
    )


@pytest.fixture
def owner(org, team):
    return make_user('owner1', User.ROLE_OWNER, org, team, first_name='Olive', last_name='Owner')


@pytest.fixture
def manager(org, team):
    return make_user('manager1', User.ROLE_MANAGER, org, team, first_name='Mary', last_name='Manager')


@pytest.fixture
def nurse(org, team):
    return make_user('nurse1', User.ROLE_NURSE, org, team)


@pytest.fixture
def carer(org, team):
    return make_user('carer1', User.ROLE_CARE_ASSISTANT, org, team, first_name='Carl', last_name='Carer')


@pytest.fixture
def outsider(other_org):
    return make_user('outsider', User.ROLE_MANAGER, other_org)


@pytest.fixture
def resident(org, team, manager):
    return Resident.objects.create(
        organization=org,
        team=team,
        first_name='Edith',
        last_name='Crawley',
        date_of_birth=datetime.date(1940, 3, 2),
        admission_date=datetime.date(2023, 1, 5),
        room_number='12',
        created_by=manager,
    )


@pytest.fixture
def governance_template(org, team, manager):
    return AuditTemplate.objects.create(
        organization=org,
        team=team,
        name='Fire safety',
        category=AuditTemplate.CATEGORY_GOVERNANCE,
        questions=[{'id': 'q1', 'text': 'Fire doors closed', 'type': 'yesno'}],
        frequency='monthly',
        created_by=manager,
    )


@pytest.fixture
def carefile_template(org, manager):
    return AuditTemplate.objects.create(
        organization=org,
        name='Care file review',
        category=AuditTemplate.CATEGORY_CAREFILE,
        frequency='6months',
        created_by=manager,
    )


def open_response(template, user, status=AuditResponse.STATUS_DRAFT, **fields):
    """An open response created directly, bypassing the draft service."""
    defaults = {
        'template': template,
        'template_name': template.name,
        'category': template.category,
        'organization_id': template.organization_id,
        'team_id': template.team_id,
        'status': status,
        'audited_by': user,
        'frequency': template.frequency,
    }
    defaults.update(fields)
    return AuditResponse.objects.create(**defaults)


@pytest.fixture
def api():
    return APIClient()


@pytest.fixture
def make_response():
    return open_response


@pytest.fixture
def user_factory(db):
    return make_user
