import pytest

from core.serializers.care_files import CareFileSubmitSerializer

VALUABLES = {
    'residentName': 'Edith Crawley',
    'bedroomNumber': '12',
    'date': 1717228800000,
    'completedBy': 'Mary Manager',
    'witnessedBy': 'Nina Nurse',
    'valuables': [{'value': 'Wedding ring'}],
    'n20': 1,
    'p50': 3,
    'total': '21.50',
    'clothing': [],
    'other': [],
}


def submit(form_key, data, draft=False):
    return CareFileSubmitSerializer(data={'formKey': form_key, 'data': data, 'savedAsDraft': draft})


def test_valuables_total_must_match_money_counted():
    s = submit('resident-valuables-form', VALUABLES)
    assert s.is_valid(), s.errors
    assert s.validated_data['data']['total'] == 21.5

    s = submit('resident-valuables-form', {**VALUABLES, 'total': '25.00'})
    assert not s.is_valid()
    assert 'total' in s.errors['data']


def test_valuables_reject_negative_counts():
    s = submit('resident-valuables-form', {**VALUABLES, 'n5': -1})
    assert not s.is_valid()
    assert 'n5' in s.errors['data']


def test_life_story_requires_agreement():
    s = submit('timl-form', {'agree': False, 'firstName': 'Edith'}, draft=True)
    assert not s.is_valid()
    assert s.errors['data']['agree'] == ['You must agree before continuing']


def test_drafts_may_be_incomplete():
    s = submit('admission-form', {'firstName': 'Edith', 'kinEmail': 'son@example.com'}, draft=True)
    assert s.is_valid(), s.errors

    s = submit('admission-form', {'firstName': 'Edith'})
    assert not s.is_valid()
    assert s.errors['data']['bedroomNumber'] == ['Bedroom number is required']


def test_bad_next_of_kin_email():
    s = submit('admission-form', {'kinEmail': 'not-an-email'}, draft=True)
    assert not s.is_valid()
    assert s.errors['data']['kinEmail'] == ['Valid email is required']


@pytest.mark.parametrize('form_key', ['peep', 'dnacpr', 'pain-assessment'])
def test_other_forms_are_free_form(form_key):
    s = submit(form_key, {'anything': ['goes']})
    assert s.is_valid(), s.errors


def test_unknown_form_key():
    assert not submit('tax-return', {}).is_valid()
