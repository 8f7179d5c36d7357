"""
Offline queue processor.

Replays the writes a device queued while disconnected.  Every operation
is applied in its own savepoint and reported on its own; one bad
operation never blocks the rest of the queue.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.db import DatabaseError, OperationalError, transaction

from ..config import SyncConfig, get_sync_config
from ..exceptions import InvalidCollectionError, SyncError, SyncValidationError
from ..models import QueueProcessingLog
from .access import AccessContext, ensure_collection_access, ensure_facility_writable
from .audit import best_effort
from .reconcile import reconcile
from .store import DocumentStore, default_store, owning_facility, sanitize_document_data

logger = logging.getLogger(__name__)

OPERATION_TYPES = ('create', 'update', 'delete')

RETRYABLE_MARKERS = ('network', 'timeout', 'temporary', 'rate limit', 'too many')


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, SyncError):
        if exc.retryable:
            return True
    elif isinstance(exc, OperationalError):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in RETRYABLE_MARKERS)


@dataclass
class QueueReport:
    device_id: str
    results: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r['success'])

    @property
    def failed(self) -> int:
        return self.processed - self.successful

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': True,
            'processed': self.processed,
            'successful': self.successful,
            'failed': self.failed,
            'results': self.results,
        }


def _apply_create(access, op, device_id, config, store):
    collection, document_id = op['collection'], op['documentId']
    payload = sanitize_document_data(op.get('data'))
    existing = store.get(collection, document_id)
    if existing is None:
        ensure_collection_access(access, collection, 'create')
        ensure_facility_writable(access, owning_facility(collection, document_id, payload))
        doc, created = store.create(collection, document_id, payload)
        return {'operation': 'created' if created else 'updated', 'document': doc.as_dict()}
    # Replayed create: patch the existing document instead of duplicating it.
    ensure_collection_access(access, collection, 'update')
    ensure_facility_writable(access, existing.facility_id)
    ensure_facility_writable(access, owning_facility(collection, document_id, {**existing.data, **payload}))
    doc = store.update(collection, document_id, payload)
    return {'operation': 'updated', 'document': doc.as_dict()}


def _apply_update(access, op, device_id, config, store):
    outcome = reconcile(
        op['collection'], op['documentId'], op.get('data'), op.get('timestamp'),
        access=access, device_id=device_id, config=config, store=store,
    )
    return outcome.to_dict()


def _apply_delete(access, op, device_id, config, store):
    collection, document_id = op['collection'], op['documentId']
    ensure_collection_access(access, collection, 'delete')
    existing = store.get(collection, document_id)
    if existing is None:
        return {'deleted': True, 'documentId': document_id, 'alreadyDeleted': True}
    ensure_facility_writable(access, existing.facility_id)
    removed = store.delete(collection, document_id, deleted_by=access.user_id, device_id=device_id)
    return {'deleted': True, 'documentId': document_id, 'alreadyDeleted': not removed}


_HANDLERS = {
    'create': _apply_create,
    'update': _apply_update,
    'delete': _apply_delete,
}


def apply_operation(access: AccessContext, op: Dict[str, Any], device_id: str, *,
                    config: SyncConfig, store: DocumentStore) -> Dict[str, Any]:
    if not isinstance(op, dict):
        raise SyncValidationError('queued operation must be an object')
    handler = _HANDLERS.get(op.get('type'))
    if handler is None:
        raise SyncValidationError(f"Unknown operation type: {op.get('type')}")
    if not config.is_known_collection(op.get('collection')):
        raise InvalidCollectionError(op.get('collection'))
    if not op.get('documentId'):
        raise SyncValidationError('documentId is required')
    return handler(access, op, device_id, config, store)


def process_queue(
    access: AccessContext,
    device_id: str,
    operations: List[Dict[str, Any]],
    *,
    config: Optional[SyncConfig] = None,
    store: Optional[DocumentStore] = None,
) -> QueueReport:
    if not device_id:
        raise SyncValidationError('Device ID is required')
    if not isinstance(operations, list):
        raise SyncValidationError('queuedOperations must be a list')
    config = config or get_sync_config()
    store = store or default_store

    report = QueueReport(device_id=device_id)
    for op in operations:
        op_id = op.get('id') if isinstance(op, dict) else None
        try:
            with transaction.atomic():
                result = apply_operation(access, op, device_id, config=config, store=store)
        except (SyncError, DatabaseError) as exc:
            retryable = is_retryable(exc)
            logger.warning('failed to process operation %s from %s: %s%s',
                           op_id or '(no-id)', device_id, exc, ' (retryable)' if retryable else '')
            entry = {'operationId': op_id, 'success': False, 'error': str(exc), 'retryable': retryable}
            if isinstance(exc, SyncError):
                entry['code'] = exc.code
            report.results.append(entry)
            continue
        report.results.append({'operationId': op_id, 'success': True, 'result': result})

    best_effort('queue processing', lambda: QueueProcessingLog.objects.create(
        device_id=device_id,
        user_id=access.user_id,
        facility_id=access.facility_id or '',
        total_operations=report.processed,
        success_count=report.successful,
        failure_count=report.failed,
        results=report.results,
    ))
    logger.info('processed %d queued operations from %s: %d success, %d failures',
                report.processed, device_id, report.successful, report.failed)
    return report
