import pytest

from offline_sync.config import ValidationRules
from offline_sync.exceptions import InvalidCollectionError, SyncValidationError
from offline_sync.models import SyncDocument
from offline_sync.services.validation import type_matches, validate_document, validate_documents

pytestmark = pytest.mark.django_db


@pytest.mark.parametrize('value,expected,ok', [
    ('x', 'string', True),
    (1, 'string', False),
    (1.5, 'number', True),
    (True, 'number', False),
    (float('nan'), 'number', False),
    (False, 'boolean', True),
    ({}, 'object', True),
    ([], 'array', True),
    ('x', 'date', True),
])
def test_type_matches(value, expected, ok):
    assert type_matches(value, expected) is ok


def test_validate_document_reports_every_problem():
    rules = ValidationRules(required=('full_name', 'facility_id'), types={'full_name': 'string'})
    assert validate_document(rules, {'full_name': 'A', 'facility_id': 'F1'}) == []
    errors = validate_document(rules, {'full_name': 7, 'facility_id': ''})
    assert errors == ['Field "facility_id" is required', 'Field "full_name" expected type string']


def test_validate_mode_writes_nothing(doctor_access):
    body = validate_documents(doctor_access, 'patients', [
        {'$id': 'p1', 'full_name': 'A', 'facility_id': 'F1'},
        {'$id': 'p2', 'full_name': 'B'},
    ])
    assert body['totals'] == {'valid': 1, 'invalid': 1, 'processed': 2}
    assert body['results'][1]['errors'] == ['Field "facility_id" is required']
    assert SyncDocument.objects.count() == 0


def test_upsert_creates_then_updates(doctor_access):
    doc = {'$id': 'p1', 'full_name': 'A', 'facility_id': 'F1'}
    created = validate_documents(doctor_access, 'patients', [doc], mode='upsert')
    assert created['results'][0]['operation'] == 'create'
    updated = validate_documents(doctor_access, 'patients', [{**doc, 'full_name': 'A2'}], mode='upsert')
    assert updated['results'][0]['operation'] == 'update'
    stored = SyncDocument.objects.get(document_id='p1')
    assert stored.data == {'full_name': 'A2', 'facility_id': 'F1'}


def test_upsert_into_another_facility_is_reported_invalid(doctor_access, other_facility):
    body = validate_documents(doctor_access, 'patients', [
        {'$id': 'p1', 'full_name': 'A', 'facility_id': 'F2'},
    ], mode='upsert')
    assert body['totals'] == {'valid': 0, 'invalid': 1, 'processed': 1}
    assert body['results'][0]['errors'][0].startswith('Upsert failed')
    assert SyncDocument.objects.count() == 0


def test_collection_without_rules_is_rejected(admin_access):
    with pytest.raises(SyncValidationError):
        validate_documents(admin_access, 'vaccines', [{'name': 'BCG'}])
    with pytest.raises(InvalidCollectionError):
        validate_documents(admin_access, 'lab_results', [])
    with pytest.raises(SyncValidationError):
        validate_documents(admin_access, 'patients', [], mode='replace')
