"""
Configured field validation for incoming documents, with optional upsert.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from django.db import DatabaseError, transaction

from ..config import SyncConfig, ValidationRules, get_sync_config
from ..exceptions import InvalidCollectionError, SyncError, SyncValidationError
from .access import AccessContext, ensure_collection_access, ensure_facility_writable
from .store import DocumentStore, default_store, owning_facility, sanitize_document_data

logger = logging.getLogger(__name__)

MODE_VALIDATE = 'validate'
MODE_UPSERT = 'upsert'
MODES = (MODE_VALIDATE, MODE_UPSERT)


def type_matches(value: Any, expected: str) -> bool:
    if expected == 'string':
        return isinstance(value, str)
    if expected == 'number':
        return isinstance(value, (int, float)) and not isinstance(value, bool) and not (
            isinstance(value, float) and math.isnan(value))
    if expected == 'boolean':
        return isinstance(value, bool)
    if expected == 'object':
        return isinstance(value, dict)
    if expected == 'array':
        return isinstance(value, list)
    return True


def validate_document(rules: ValidationRules, data: Dict[str, Any]) -> List[str]:
    errors = []
    for name in rules.required:
        if data.get(name) in (None, ''):
            errors.append(f'Field "{name}" is required')
    for name, expected in rules.types.items():
        value = data.get(name)
        if value is not None and not type_matches(value, expected):
            errors.append(f'Field "{name}" expected type {expected}')
    return errors


def _upsert(access: AccessContext, collection: str, document_id: str, data: Dict[str, Any],
            store: DocumentStore) -> Dict[str, Any]:
    existing = store.get(collection, document_id)
    if existing is not None:
        ensure_collection_access(access, collection, 'update')
        ensure_facility_writable(access, existing.facility_id)
        ensure_facility_writable(access, owning_facility(collection, document_id, {**existing.data, **data}))
        doc = store.update(collection, document_id, data)
        return {'id': document_id, 'valid': True, 'operation': 'update', 'updatedAt': doc.as_dict()['$updatedAt']}
    ensure_collection_access(access, collection, 'create')
    ensure_facility_writable(access, owning_facility(collection, document_id, data))
    doc, _ = store.create(collection, document_id, data)
    return {'id': document_id, 'valid': True, 'operation': 'create', 'createdAt': doc.as_dict()['$createdAt']}


def validate_documents(
    access: AccessContext,
    collection: str,
    documents: List[Dict[str, Any]],
    mode: str = MODE_VALIDATE,
    *,
    config: Optional[SyncConfig] = None,
    store: Optional[DocumentStore] = None,
) -> Dict[str, Any]:
    config = config or get_sync_config()
    store = store or default_store
    if not config.is_known_collection(collection):
        raise InvalidCollectionError(collection)
    if mode not in MODES:
        raise SyncValidationError(f'Unknown mode: {mode}')
    rules = config.validation_rules.get(collection)
    if rules is None:
        raise SyncValidationError(f'No validation rules configured for {collection}')

    results = []
    valid = invalid = 0
    for doc in documents:
        doc = doc if isinstance(doc, dict) else {}
        document_id = doc.get('$id') or None
        data = sanitize_document_data(doc)
        errors = validate_document(rules, data)
        if errors:
            invalid += 1
            results.append({'id': document_id, 'valid': False, 'errors': errors})
            continue
        valid += 1
        if mode != MODE_UPSERT or not document_id:
            results.append({'id': document_id, 'valid': True})
            continue
        try:
            with transaction.atomic():
                results.append(_upsert(access, collection, str(document_id), data, store))
        except (SyncError, DatabaseError) as exc:
            logger.warning('upsert of %s/%s failed: %s', collection, document_id, exc)
            valid -= 1
            invalid += 1
            results.append({'id': document_id, 'valid': False, 'errors': [f'Upsert failed: {exc}']})

    return {
        'success': True,
        'collection': collection,
        'mode': mode,
        'totals': {'valid': valid, 'invalid': invalid, 'processed': len(documents)},
        'results': results,
    }
