import datetime
import io
import json
import logging
from unittest import mock

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError
from django.utils import timezone

from core.exceptions import CareAppError, ErrorType, log_error, user_error_message, with_error_handling
from core.log import StructuredFormatter
from core.models import ActionPlan, AuditEvent, FoodFluidLog, Notification
from core.services import action_plans, care_files, food_fluid, notes
from core.services.resilience import retry_operation, safe_database_operation

pytestmark = pytest.mark.django_db


# ---------------------------------------------------------------------
# Food / fluid
# ---------------------------------------------------------------------
def _log(user, resident, **fields):
    data = {'section': '7am-12pm', 'type_of_food_drink': 'Tea', 'fluid_consumed_ml': 200, 'signature': 'CC'}
    data.update(fields)
    return food_fluid.create_log(user, resident, **data)


def test_food_fluid_create_is_dated_today_and_audited(carer, resident):
    log = _log(carer, resident)
    assert log.date == timezone.localdate()
    assert log.organization_id == resident.organization_id
    assert AuditEvent.objects.filter(action='food_fluid_create', object_id=str(log.id)).exists()


@pytest.mark.parametrize('fields,message,field', [
    ({'type_of_food_drink': '  '}, 'Food/drink type is required', 'typeOfFoodDrink'),
    ({'type_of_food_drink': 'x' * 101}, 'Food/drink type must not exceed 100 characters', 'typeOfFoodDrink'),
    ({'fluid_consumed_ml': 2001}, 'Fluid volume must be between 0-2000ml', 'fluidConsumedMl'),
    ({'fluid_consumed_ml': -1}, 'Fluid volume must be between 0-2000ml', 'fluidConsumedMl'),
    ({'signature': ''}, 'Signature is required', 'signature'),
    ({'signature': 's' * 51}, 'Signature must not exceed 50 characters', 'signature'),
    ({'section': 'brunch'}, 'Invalid section: brunch', 'section'),
    ({'amount_eaten': 'most'}, 'Invalid amount eaten: most', 'amountEaten'),
])
def test_food_fluid_validation(carer, resident, fields, message, field):
    with pytest.raises(CareAppError) as exc:
        _log(carer, resident, **fields)
    assert exc.value.type == ErrorType.VALIDATION
    assert str(exc.value) == message
    assert exc.value.context['field'] == field
    assert not FoodFluidLog.objects.exists()


def test_archived_entries_are_locked(owner, carer, resident):
    log = _log(carer, resident)
    yesterday = timezone.localdate() - datetime.timedelta(days=1)
    FoodFluidLog.objects.filter(pk=log.pk).update(date=yesterday)

    result = food_fluid.archive_previous_day_logs()
    assert result['archivedCount'] == 1
    assert result['targetDate'] == yesterday.isoformat()

    log.refresh_from_db()
    assert log.is_archived and log.archived_at is not None
    with pytest.raises(CareAppError, match='Cannot update archived log entries'):
        food_fluid.update_log(owner, log, signature='XX')
    with pytest.raises(CareAppError, match='Cannot delete archived log entries'):
        food_fluid.delete_log(owner, log)

    assert list(food_fluid.current_day_logs(resident.id)) == []
    assert [l.id for l in food_fluid.archived_logs(resident.id)] == [log.id]


def test_archive_command(carer, resident):
    log = _log(carer, resident)
    out = io.StringIO()
    call_command('archive_food_fluid_logs', '--date', log.date.isoformat(), stdout=out)
    assert f'archived 1 entries for {log.date.isoformat()}' in out.getvalue()
    log.refresh_from_db()
    assert log.is_archived

    with pytest.raises(CommandError):
        call_command('archive_food_fluid_logs', '--date', 'yesterday')


def test_care_assistant_cannot_edit_logs(carer, resident):
    log = _log(carer, resident)
    with pytest.raises(CareAppError) as exc:
        food_fluid.update_log(carer, log, signature='XX')
    assert exc.value.type == ErrorType.AUTHORIZATION


def test_daily_summary(carer, nurse, resident):
    _log(carer, resident, section='7am-12pm', type_of_food_drink='Tea', fluid_consumed_ml=200)
    _log(carer, resident, section='12pm-5pm', type_of_food_drink='Sandwich', fluid_consumed_ml=None,
         amount_eaten='All')
    last = _log(nurse, resident, section='12pm-5pm', type_of_food_drink='Soup', fluid_consumed_ml=150,
                amount_eaten='1/2')

    summary = food_fluid.daily_summary(resident.id, timezone.localdate())
    assert summary['totalEntries'] == 3
    assert summary['foodEntries'] == 2
    assert summary['fluidEntries'] == 2
    assert summary['totalFluidIntakeMl'] == 350
    assert summary['sectionBreakdown'] == {'7am-12pm': 1, '12pm-5pm': 2}
    assert summary['lastRecorded'] == last.timestamp.isoformat()


# ---------------------------------------------------------------------
# Action plans
# ---------------------------------------------------------------------
@pytest.fixture
def completed_audit(governance_template, manager, make_response):
    from core.services.audits import complete_response

    return complete_response(manager, make_response(governance_template, manager))


def test_action_plan_assignment_and_completion_notify(completed_audit, manager, nurse):
    plan = action_plans.create_action_plan(
        manager, completed_audit, description='Replace door closer', assigned_to=nurse, priority='High',
    )
    assert plan.status == ActionPlan.STATUS_PENDING
    note = Notification.objects.get(recipient=nurse)
    assert note.title == 'New Action Plan Assigned'
    assert note.type == 'action_plan'
    assert note.link == f'/dashboard/careo-audit/governance/{completed_audit.id}/view'
    assert note.metadata['actionPlanId'] == plan.id

    # the assignee may complete their own plan even without edit rights on plans
    action_plans.complete_action_plan(nurse, plan)
    plan.refresh_from_db()
    assert plan.status == ActionPlan.STATUS_COMPLETED
    assert plan.completed_at is not None
    done = Notification.objects.get(recipient=manager)
    assert done.title == 'Action Plan Completed'
    assert done.type == 'action_plan_completed'


def test_action_plan_stats_and_overdue(completed_audit, manager, nurse):
    now = timezone.now()
    past = now - datetime.timedelta(days=2)
    future = now + datetime.timedelta(days=2)
    late = action_plans.create_action_plan(manager, completed_audit, description='a', priority='High', due_date=past)
    action_plans.create_action_plan(manager, completed_audit, description='b', due_date=future)
    done = action_plans.create_action_plan(manager, completed_audit, description='c', priority='High', due_date=past)
    action_plans.complete_action_plan(manager, done)
    action_plans.update_action_plan(manager, late, status=ActionPlan.STATUS_IN_PROGRESS)

    stats = action_plans.plan_stats(organization_id=completed_audit.organization_id, now=now)
    assert stats == {'total': 3, 'pending': 1, 'inProgress': 1, 'completed': 1, 'overdue': 1, 'highPriority': 1}
    assert [p.id for p in action_plans.overdue_plans(organization_id=completed_audit.organization_id, now=now)] == [late.id]

    assert action_plans.mark_overdue_action_plans(now=now) == 1
    late.refresh_from_db()
    assert late.status == ActionPlan.STATUS_OVERDUE


def test_action_plan_needs_description(completed_audit, manager):
    with pytest.raises(CareAppError):
        action_plans.create_action_plan(manager, completed_audit, description='<b></b>')


# ---------------------------------------------------------------------
# Care files
# ---------------------------------------------------------------------
def test_care_file_status_map(settings, tmp_path, nurse, resident):
    settings.MEDIA_ROOT = tmp_path
    care_files.submit_form(nurse, resident, 'dnacpr', {'decision': 'pending'}, saved_as_draft=True)
    care_files.submit_form(nurse, resident, 'peep', {'plan': 'two staff'})
    older = care_files.submit_form(nurse, resident, 'pain-assessment', {'score': 4}, saved_as_draft=True)
    latest = care_files.submit_form(nurse, resident, 'pain-assessment', {'score': 2})
    care_files.attach_pdf(nurse, latest, SimpleUploadedFile('pain.pdf', b'%PDF-1.4', content_type='application/pdf'))

    states = care_files.care_file_status(resident.id)
    assert set(states) == set(care_files.CareFileForm.FORM_KEYS)
    assert states['admission-form']['status'] == 'not-started'
    assert states['admission-form']['hasData'] is False
    assert states['dnacpr']['status'] == 'in-progress'
    assert states['peep']['status'] == 'pdf-generating'
    assert states['pain-assessment']['status'] == 'completed'
    assert states['pain-assessment']['completedAt'] == latest.created_at.isoformat()
    assert older.id != latest.id

    assert care_files.is_form_in_progress(states, 'dnacpr')
    assert care_files.is_form_completed(states, 'pain-assessment')
    assert care_files.can_download_pdf(states, 'pain-assessment')
    assert not care_files.can_download_pdf(states, 'peep')
    assert care_files.overall_progress(states) == {'completed': 1, 'total': 18, 'percentage': 6}


def test_care_file_rejects_unknown_form_and_bad_uploads(settings, tmp_path, nurse, resident):
    settings.MEDIA_ROOT = tmp_path
    with pytest.raises(CareAppError):
        care_files.submit_form(nurse, resident, 'tax-return', {})
    form = care_files.submit_form(nurse, resident, 'peep', {})
    with pytest.raises(CareAppError, match='Unsupported file type'):
        care_files.attach_pdf(nurse, form, SimpleUploadedFile('x.exe', b'MZ', content_type='application/octet-stream'))
    settings.UPLOAD_MAX_MB = 0
    with pytest.raises(CareAppError, match='too large'):
        care_files.attach_pdf(nurse, form, SimpleUploadedFile('x.pdf', b'%PDF', content_type='application/pdf'))


# ---------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------
def test_progress_note_search_and_filter(carer, resident):
    notes.create_progress_note(carer, resident, type='daily', subject='Breakfast', note='Ate well')
    notes.create_progress_note(carer, resident, type='medical', subject='GP visit', note='Chest <b>clear</b>')
    assert [n.subject for n in notes.progress_notes_for_resident(resident.id, type='medical')] == ['GP visit']
    found = list(notes.search_progress_notes(resident.id, 'CLEAR'))
    assert len(found) == 1 and found[0].note == 'Chest clear'
    assert found[0].author_name == 'Carl Carer'


def test_incident_notes_are_rate_limited(carer, resident):
    for i in range(notes.INCIDENT_LIMIT):
        notes.create_progress_note(carer, resident, type='incident', subject=f'Fall {i}', note='Found on floor')
    with pytest.raises(CareAppError) as exc:
        notes.create_progress_note(carer, resident, type='incident', subject='Another', note='...')
    assert exc.value.type == ErrorType.RATE_LIMIT
    # other note types are unaffected
    notes.create_progress_note(carer, resident, type='daily', subject='Lunch', note='Fine')


def test_mdt_note_requires_fields(nurse, resident):
    member = notes.add_care_team_member(nurse, resident, name='Dr Patel', specialty='GP')
    note = notes.create_mdt_note(
        nurse, resident, team_member=member, team_member_name='Dr Patel', reason_for_visit='Review',
        outcome='Stable', relative_informed='yes', signature='NN',
        note_date=datetime.date(2025, 5, 1), note_time=datetime.time(10, 30),
    )
    assert list(notes.mdt_notes_for_member(member.id)) == [note]
    with pytest.raises(CareAppError, match='outcome is required'):
        notes.create_mdt_note(
            nurse, resident, team_member_name='Dr Patel', reason_for_visit='Review', outcome='',
            relative_informed='no', signature='NN', note_date=datetime.date(2025, 5, 1),
            note_time=datetime.time(10, 30),
        )


# ---------------------------------------------------------------------
# Errors, retry and logging
# ---------------------------------------------------------------------
def test_retry_backs_off_linearly_then_succeeds():
    calls, sleeps = [], []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise ConnectionError('down')
        return 'ok'

    assert retry_operation(flaky, max_retries=3, delay=1.0, sleep=sleeps.append) == 'ok'
    assert sleeps == [1.0, 2.0]


def test_retry_does_not_repeat_validation_errors():
    calls = []

    def invalid():
        calls.append(1)
        raise CareAppError('bad', ErrorType.VALIDATION)

    with pytest.raises(CareAppError) as exc:
        retry_operation(invalid, sleep=lambda s: None)
    assert exc.value.type == ErrorType.VALIDATION
    assert len(calls) == 1


def test_retry_gives_up_after_max_attempts():
    sleeps = []
    with pytest.raises(CareAppError) as exc:
        retry_operation(lambda: 1 / 0, max_retries=3, delay=0.5, sleep=sleeps.append)
    assert str(exc.value) == 'Operation failed after 3 attempts'
    assert exc.value.type == ErrorType.UNKNOWN
    assert isinstance(exc.value.__cause__, ZeroDivisionError)
    assert sleeps == [0.5, 1.0]


def test_safe_database_operation_wraps_database_errors():
    def broken():
        raise DatabaseError('connection reset')

    with pytest.raises(CareAppError) as exc:
        safe_database_operation(broken, 'Could not load residents')
    assert exc.value.type == ErrorType.DATABASE
    assert str(exc.value) == 'Could not load residents'


def test_with_error_handling_hides_unexpected_errors():
    @with_error_handling('import')
    def explode():
        raise KeyError('secret')

    @with_error_handling('import')
    def refuse():
        raise CareAppError('nope', ErrorType.AUTHORIZATION)

    with pytest.raises(CareAppError) as exc:
        explode()
    assert exc.value.type == ErrorType.UNKNOWN
    assert user_error_message(exc.value) == 'An unexpected error occurred. Please try again.'
    assert isinstance(exc.value.__cause__, KeyError)

    with pytest.raises(CareAppError) as exc:
        refuse()
    assert exc.value.type == ErrorType.AUTHORIZATION
    assert user_error_message(exc.value) == 'nope'
    assert user_error_message(ValueError('x')) == 'An unexpected error occurred. Please try again.'


def test_log_error_returns_record():
    record = log_error(CareAppError('gone', ErrorType.NOT_FOUND, context={'id': 3}), 'lookup', {'extra': 1})
    assert record['type'] == 'NOT_FOUND_ERROR'
    assert record['operation'] == 'lookup'
    assert record['context'] == {'id': 3, 'extra': 1}


def test_structured_formatter_emits_json():
    record = logging.LogRecord('core.drafts', logging.WARNING, __file__, 10, 'slow %s', ('save',), None)
    record.operation = 'autosave'
    record.execution_time = 1.5
    payload = json.loads(StructuredFormatter().format(record))
    assert payload['level'] == 'WARNING'
    assert payload['logger'] == 'core.drafts'
    assert payload['message'] == 'slow save'
    assert payload['operation'] == 'autosave'
    assert payload['execution_time'] == 1.5
    assert 'user_id' not in payload


# ---------------------------------------------------------------------
# Follow-ups: care team edits, combined filters, completion paths
# ---------------------------------------------------------------------
def test_care_team_member_update(nurse, carer, resident):
    member = notes.add_care_team_member(nurse, resident, name='Dr Patel', specialty='GP')
    notes.update_care_team_member(nurse, member, specialty='<b>Geriatrics</b>', phone='0289 000')
    member.refresh_from_db()
    assert member.specialty == 'Geriatrics'
    assert member.phone == '0289 000'
    assert member.name == 'Dr Patel'

    with pytest.raises(CareAppError, match='name is required'):
        notes.update_care_team_member(nurse, member, name='  ')
    with pytest.raises(CareAppError) as exc:
        notes.update_care_team_member(carer, member, phone='x')
    assert exc.value.type == ErrorType.AUTHORIZATION


def test_search_respects_note_type(carer, resident):
    notes.create_progress_note(carer, resident, type='daily', subject='Garden', note='Walked outside')
    notes.create_progress_note(carer, resident, type='medical', subject='Garden fall', note='Grazed knee')
    found = list(notes.search_progress_notes(resident.id, 'garden', type='medical'))
    assert [n.subject for n in found] == ['Garden fall']


def test_completing_through_update_notifies_once(completed_audit, manager, nurse):
    plan = action_plans.create_action_plan(manager, completed_audit, description='Fix alarm', assigned_to=nurse)
    action_plans.update_action_plan(manager, plan, status=ActionPlan.STATUS_COMPLETED, priority='High')
    plan.refresh_from_db()
    assert plan.status == ActionPlan.STATUS_COMPLETED
    assert plan.priority == 'High'
    assert plan.completed_at is not None

    action_plans.complete_action_plan(manager, plan)
    action_plans.update_action_plan(manager, plan, status=ActionPlan.STATUS_COMPLETED)
    assert Notification.objects.filter(recipient=manager, type='action_plan_completed').count() == 1


def test_new_notification_goes_to_recipient_only(django_capture_on_commit_callbacks, nurse, manager):
    from core.services.notifications import notify

    with mock.patch('core.services.notifications.send_to_user') as to_user, \
            mock.patch('core.services.notifications.broadcast') as to_org:
        with django_capture_on_commit_callbacks(execute=True):
            notify(recipient=nurse, sender=manager, type='info', title='Rota', message='Swap on Friday')

    to_org.assert_not_called()
    to_user.assert_called_once()
    user_id, event, payload = to_user.call_args.args
    assert (user_id, event) == (nurse.id, 'notification.created')
    assert payload['recipientId'] == nurse.id
