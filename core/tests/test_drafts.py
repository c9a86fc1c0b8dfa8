"""
Draft reconciliation, autosave and completion of audit responses.
"""
import datetime
from unittest import mock

import pytest
from django.core.cache import cache
from django.db import DatabaseError
from django.utils import timezone

from core.exceptions import CareAppError, ConflictError, ErrorType
from core.models import AuditResponse, AuditTemplate, Resident
from core.services import audits, drafts

pytestmark = pytest.mark.django_db


# ---------------------------------------------------------------------
# Single-flight draft creation
# ---------------------------------------------------------------------
def test_first_open_creates_draft_and_marks_key_created(governance_template, manager):
    draft, created = drafts.get_or_create_draft(governance_template, manager)
    assert created is True
    assert draft.status == AuditResponse.STATUS_DRAFT
    assert draft.team_id == manager.team_id
    assert draft.content_hash == drafts.content_hash_for([], '')

    key = drafts.draft_key(governance_template, governance_template.organization_id, manager.team_id)
    assert drafts.draft_state(key) == drafts.STATE_CREATED
    assert cache.get(f'{key}:lock') is None


def test_second_open_resumes_the_same_draft(governance_template, manager, owner):
    first, _ = drafts.get_or_create_draft(governance_template, manager)
    second, created = drafts.get_or_create_draft(governance_template, owner)
    assert created is False
    assert second.pk == first.pk
    assert AuditResponse.objects.filter(template=governance_template).count() == 1


def test_losing_caller_waits_for_the_winners_draft(governance_template, manager, make_response):
    key = drafts.draft_key(governance_template, governance_template.organization_id, manager.team_id)
    # another request holds the lock and is mid-insert
    assert cache.add(f'{key}:lock', 'other', timeout=30)
    landed = {}

    def winner_commits(seconds):
        landed['draft'] = make_response(governance_template, manager)

    with mock.patch('core.services.resilience.time.sleep', side_effect=winner_commits) as sleep:
        draft, created = drafts.get_or_create_draft(governance_template, manager)

    assert created is False
    assert draft.pk == landed['draft'].pk
    sleep.assert_called_once_with(drafts.REREAD_DELAY)
    assert AuditResponse.objects.filter(template=governance_template).count() == 1


def test_losing_caller_gives_up_when_no_draft_appears(governance_template, manager):
    key = drafts.draft_key(governance_template, governance_template.organization_id, manager.team_id)
    cache.add(f'{key}:lock', 'other', timeout=30)
    with mock.patch('core.services.resilience.time.sleep'):
        with pytest.raises(CareAppError) as exc:
            drafts.get_or_create_draft(governance_template, manager)
    assert exc.value.type == ErrorType.UNKNOWN
    assert str(exc.value) == f'Operation failed after {drafts.REREAD_ATTEMPTS} attempts'


def test_failed_insert_releases_lock_back_to_idle(governance_template, manager):
    key = drafts.draft_key(governance_template, governance_template.organization_id, manager.team_id)
    with mock.patch('core.services.drafts._insert_draft', side_effect=DatabaseError('disk full')):
        with pytest.raises(DatabaseError):
            drafts.get_or_create_draft(governance_template, manager)
    assert drafts.draft_state(key) == drafts.STATE_IDLE
    assert cache.get(f'{key}:lock') is None

    # the next attempt goes through
    draft, created = drafts.get_or_create_draft(governance_template, manager)
    assert created is True


def test_carefile_drafts_are_per_resident(carefile_template, manager, resident):
    draft, created = drafts.get_or_create_draft(carefile_template, manager, resident=resident)
    assert created is True
    assert draft.resident_id == resident.id
    with pytest.raises(CareAppError) as exc:
        drafts.get_or_create_draft(carefile_template, manager)
    assert exc.value.type == ErrorType.VALIDATION


def test_nurse_cannot_open_audit_drafts(governance_template, nurse):
    with pytest.raises(CareAppError) as exc:
        drafts.get_or_create_draft(governance_template, nurse)
    assert exc.value.type == ErrorType.AUTHORIZATION


# ---------------------------------------------------------------------
# Autosave
# ---------------------------------------------------------------------
ITEMS = [{'questionId': 'q1', 'status': 'yes', 'notes': ''}]


def test_content_hash_ignores_key_order():
    assert drafts.content_hash({'a': 1, 'b': [1, 2]}) == drafts.content_hash({'b': [1, 2], 'a': 1})
    assert drafts.content_hash({'a': 1}) != drafts.content_hash({'a': 2})


def test_autosave_writes_then_skips_unchanged_content(governance_template, manager):
    draft, _ = drafts.get_or_create_draft(governance_template, manager)
    first = drafts.autosave(manager, draft, ITEMS, base_hash=draft.content_hash)
    assert first['saved'] is True
    assert first['status'] == AuditResponse.STATUS_IN_PROGRESS
    assert first['hash'] == drafts.content_hash_for(ITEMS, '')

    again = drafts.autosave(manager, draft, ITEMS, base_hash=first['hash'])
    assert again['saved'] is False
    assert again['hash'] == first['hash']

    draft.refresh_from_db()
    assert draft.items == ITEMS


def test_autosave_with_stale_base_hash_conflicts(governance_template, manager):
    draft, _ = drafts.get_or_create_draft(governance_template, manager)
    stale = draft.content_hash
    drafts.autosave(manager, draft, ITEMS, base_hash=stale)

    with pytest.raises(ConflictError) as exc:
        drafts.autosave(manager, draft, [{'questionId': 'q1', 'status': 'no'}], base_hash=stale)
    assert exc.value.status_code == 409
    draft.refresh_from_db()
    assert draft.items == ITEMS


def test_autosave_rejects_completed_responses(governance_template, manager):
    draft, _ = drafts.get_or_create_draft(governance_template, manager)
    audits.complete_response(manager, draft, items=ITEMS)
    with pytest.raises(CareAppError) as exc:
        drafts.autosave(manager, draft, [{'questionId': 'q1', 'status': 'no'}])
    assert exc.value.type == ErrorType.VALIDATION


def test_autosave_sanitizes_overall_notes(governance_template, manager):
    draft, _ = drafts.get_or_create_draft(governance_template, manager)
    drafts.autosave(manager, draft, ITEMS, overall_notes='<b>All</b> good<script>x()</script>')
    draft.refresh_from_db()
    assert draft.overall_notes == 'All good'


# ---------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------
NOW = datetime.datetime(2025, 6, 1, 9, 0, tzinfo=datetime.timezone.utc)


@pytest.mark.parametrize('frequency,days', [
    ('daily', 1),
    ('weekly', 7),
    ('monthly', 30),
    ('quarterly', 90),
    ('3months', 90),
    ('6months', 180),
    ('yearly', 365),
])
def test_next_audit_due_by_frequency(frequency, days):
    assert audits.next_audit_due(frequency, 'governance', NOW) == NOW + datetime.timedelta(days=days)


def test_next_audit_due_fallbacks():
    assert audits.next_audit_due('fortnightly', AuditTemplate.CATEGORY_CAREFILE, NOW) == NOW + datetime.timedelta(days=180)
    assert audits.next_audit_due('fortnightly', 'clinical', NOW) == NOW + datetime.timedelta(days=30)
    assert audits.next_audit_due('adhoc', 'clinical', NOW) is None
    assert audits.next_audit_due('', 'clinical', NOW) is None


def test_complete_response_stamps_dates(governance_template, manager, make_response):
    response = make_response(governance_template, manager)
    done = audits.complete_response(manager, response, items=ITEMS, overall_notes='ok', now=NOW)
    assert done.status == AuditResponse.STATUS_COMPLETED
    assert done.completed_at == NOW
    assert done.next_audit_due == NOW + datetime.timedelta(days=30)
    assert done.content_hash == drafts.content_hash_for(ITEMS, 'ok')

    with pytest.raises(CareAppError):
        audits.complete_response(manager, done, now=NOW)


def test_retention_keeps_ten_completions_per_team(governance_template, manager, make_response):
    ids = []
    for i in range(11):
        response = make_response(governance_template, manager)
        audits.complete_response(manager, response, now=NOW + datetime.timedelta(days=i))
        ids.append(response.id)

    kept = AuditResponse.objects.filter(template=governance_template, status=AuditResponse.STATUS_COMPLETED)
    assert kept.count() == 10
    assert not kept.filter(id=ids[0]).exists()
    assert audits.latest_completion(governance_template).id == ids[-1]


def test_retention_for_carefile_is_per_resident(carefile_template, manager, resident, make_response, org):
    neighbour = Resident.objects.create(
        organization=org, first_name='Albert', last_name='Finch',
        date_of_birth=datetime.date(1938, 1, 1), admission_date=datetime.date(2024, 2, 2),
    )
    other = make_response(carefile_template, manager, resident=neighbour)
    audits.complete_response(manager, other, now=NOW)
    for i in range(11):
        response = make_response(carefile_template, manager, resident=resident)
        audits.complete_response(manager, response, now=NOW + datetime.timedelta(days=i + 1))

    assert AuditResponse.objects.filter(resident=resident, status='completed').count() == 10
    assert AuditResponse.objects.filter(pk=other.pk).exists()


def test_retention_for_resident_audits_is_per_resident(org, team, manager):
    template = AuditTemplate.objects.create(organization=org, team=team, name='Weight check',
                                            category=AuditTemplate.CATEGORY_RESIDENT, frequency='monthly')
    residents = [
        Resident.objects.create(organization=org, team=team, first_name=f'Resident{i}', last_name='Test',
                                date_of_birth=datetime.date(1940, 1, 1), admission_date=datetime.date(2024, 1, 1))
        for i in range(11)
    ]
    for i, resident in enumerate(residents):
        draft, _ = drafts.get_or_create_draft(template, manager, resident=resident)
        audits.complete_response(manager, draft, now=NOW + datetime.timedelta(days=i))

    assert AuditResponse.objects.filter(template=template, status='completed').count() == 11
    first = audits.latest_completion(template, resident_id=residents[0].id)
    assert first is not None and first.resident_id == residents[0].id


def test_overdue_and_upcoming(org, team, manager, make_response):
    now = timezone.now()
    weekly = AuditTemplate.objects.create(organization=org, team=team, name='Kitchen', category='environment',
                                          frequency='weekly')
    later = AuditTemplate.objects.create(organization=org, team=team, name='Bathrooms', category='environment',
                                         frequency='weekly')
    audits.complete_response(manager, make_response(weekly, manager), now=now - datetime.timedelta(days=10))
    audits.complete_response(manager, make_response(later, manager), now=now - datetime.timedelta(days=3))

    assert [r.template_id for r in audits.overdue_audits(org.id, now=now)] == [weekly.id]
    assert [r.template_id for r in audits.upcoming_audits(org.id, now=now)] == [later.id]
    latest = {r.template_id for r in audits.latest_per_template(org.id, category='environment')}
    assert latest == {weekly.id, later.id}


def test_question_validation(manager):
    with pytest.raises(CareAppError):
        audits.clean_questions([{'id': 'q1', 'text': 'x', 'type': 'essay'}])
    with pytest.raises(CareAppError):
        audits.clean_questions([{'id': 'q1', 'text': 'a', 'type': 'yesno'}, {'id': 'q1', 'text': 'b', 'type': 'notes'}])
    assert audits.clean_questions([{'id': ' q1 ', 'text': '<i>Clean</i>', 'type': 'notes'}]) == [
        {'id': 'q1', 'text': 'Clean', 'type': 'notes'}
    ]
