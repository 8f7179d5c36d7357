from datetime import timedelta

import pytest
from django.db import OperationalError

from offline_sync.exceptions import AccessDeniedError, RateLimitError, SyncValidationError
from offline_sync.models import DeletionLogEntry, QueueProcessingLog, SyncDocument
from offline_sync.services.queue import is_retryable, process_queue
from offline_sync.services.store import to_iso

pytestmark = pytest.mark.django_db


def test_mixed_queue_is_processed_operation_by_operation(doctor_access, store):
    existing, _ = store.create('patients', 'p1', {'full_name': 'A', 'facility_id': 'F1'})
    ops = [
        {'id': 'op1', 'type': 'create', 'collection': 'patients', 'documentId': 'p2',
         'data': {'full_name': 'B', 'facility_id': 'F1'}},
        {'id': 'op2', 'type': 'update', 'collection': 'patients', 'documentId': 'p1',
         'data': {'contact_phone': '555'}, 'timestamp': to_iso(existing.updated_at + timedelta(seconds=1))},
        {'id': 'op3', 'type': 'teleport', 'collection': 'patients', 'documentId': 'p1'},
        {'id': 'op4', 'type': 'create', 'collection': 'lab_results', 'documentId': 'x'},
    ]
    report = process_queue(doctor_access, 'dev-1', ops)
    body = report.to_dict()
    assert body['processed'] == 4
    assert body['successful'] == 2
    assert body['failed'] == 2
    assert body['results'][0]['result']['operation'] == 'created'
    assert body['results'][1]['result']['operation'] == 'updated'
    assert body['results'][2]['code'] == 'INVALID_REQUEST'
    assert body['results'][2]['retryable'] is False
    assert body['results'][3]['code'] == 'INVALID_COLLECTION'
    assert SyncDocument.objects.get(document_id='p1').data['contact_phone'] == '555'

    log = QueueProcessingLog.objects.get()
    assert (log.total_operations, log.success_count, log.failure_count) == (4, 2, 2)
    assert log.device_id == 'dev-1'


def test_replayed_create_does_not_duplicate(doctor_access):
    op = {'id': 'op1', 'type': 'create', 'collection': 'patients', 'documentId': 'p9',
          'data': {'full_name': 'C', 'facility_id': 'F1'}}
    process_queue(doctor_access, 'dev-1', [op])
    report = process_queue(doctor_access, 'dev-1', [op])
    assert report.results[0]['success'] is True
    assert report.results[0]['result']['operation'] == 'updated'
    assert SyncDocument.objects.filter(document_id='p9').count() == 1


def test_delete_records_ledger_and_is_idempotent(admin_access, store):
    store.create('vaccines', 'v1', {'name': 'BCG'})
    op = {'id': 'd1', 'type': 'delete', 'collection': 'vaccines', 'documentId': 'v1'}
    first = process_queue(admin_access, 'dev-1', [op]).results[0]
    assert first['result'] == {'deleted': True, 'documentId': 'v1', 'alreadyDeleted': False}
    entry = DeletionLogEntry.objects.get(document_id='v1')
    assert entry.device_id == 'dev-1'
    assert entry.deleted_by_id == admin_access.user_id

    again = process_queue(admin_access, 'dev-1', [op]).results[0]
    assert again['success'] is True
    assert again['result']['alreadyDeleted'] is True
    assert DeletionLogEntry.objects.count() == 1


def test_denied_operation_does_not_block_the_rest(doctor_access, store):
    store.create('vaccines', 'v1', {'name': 'BCG'})
    ops = [
        {'id': 'a', 'type': 'delete', 'collection': 'vaccines', 'documentId': 'v1'},
        {'id': 'b', 'type': 'create', 'collection': 'notifications', 'documentId': 'n1',
         'data': {'message': 'due'}},
    ]
    report = process_queue(doctor_access, 'dev-1', ops)
    assert report.results[0]['code'] == 'COLLECTION_ACCESS_DENIED'
    assert report.results[1]['success'] is True
    assert SyncDocument.objects.filter(document_id='v1').exists()


def test_operation_without_document_id_fails(doctor_access):
    report = process_queue(doctor_access, 'dev-1', [{'type': 'create', 'collection': 'patients'}])
    assert report.results[0]['success'] is False
    assert report.results[0]['operationId'] is None


def test_queue_requires_device_and_list(doctor_access):
    with pytest.raises(SyncValidationError):
        process_queue(doctor_access, '', [])
    with pytest.raises(SyncValidationError):
        process_queue(doctor_access, 'dev-1', {'type': 'create'})


def test_retryable_classification():
    assert is_retryable(RateLimitError()) is True
    assert is_retryable(OperationalError('database is locked')) is True
    assert is_retryable(RuntimeError('Network unreachable')) is True
    assert is_retryable(RuntimeError('request timeout')) is True
    assert is_retryable(AccessDeniedError('nope')) is False
    assert is_retryable(SyncValidationError('bad payload')) is False
