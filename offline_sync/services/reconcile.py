"""
Conflict detection and resolution for device writes.

A device submits its copy of a document together with the timestamp of
the server version it edited from.  When the server copy has been
modified since, the collection's configured strategy decides what is
stored.  Concurrency is optimistic: nothing is locked, and two devices
resolving the same conflict produce the same result.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Dict, Optional

from django.utils.dateparse import parse_datetime

from ..config import SyncConfig, get_sync_config
from ..exceptions import InvalidCollectionError, SyncValidationError
from .access import AccessContext, ensure_collection_access, ensure_facility_writable
from .audit import record_conflict
from .store import DocumentStore, default_store, owning_facility, sanitize_document_data
from .strategies import ResolutionContext, ResolutionStrategy

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)

OPERATION_CREATED = 'created'
OPERATION_UPDATED = 'updated'
OPERATION_CONFLICT_RESOLVED = 'conflict_resolved'


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or epoch milliseconds into an aware datetime.

    Returns None for empty values; raises ``ValueError`` for garbage.
    """
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = EPOCH + timedelta(milliseconds=value)
    elif isinstance(value, str):
        parsed = parse_datetime(value.strip())
        if parsed is None:
            raise ValueError(f'invalid timestamp: {value!r}')
    else:
        raise ValueError(f'invalid timestamp: {value!r}')
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_timezone.utc)
    return parsed


def resolve_client_timestamp(client_timestamp: Any, client_data: Optional[Dict[str, Any]]) -> datetime:
    """Timestamp the client edited from.

    Falls back to ``updatedAt`` then ``$updatedAt`` inside the client data,
    then to the epoch, in which case any existing server copy is newer.
    """
    client_data = client_data or {}
    for candidate in (client_timestamp, client_data.get('updatedAt'), client_data.get('$updatedAt')):
        try:
            parsed = parse_timestamp(candidate)
        except ValueError as exc:
            raise SyncValidationError(str(exc)) from exc
        if parsed is not None:
            return parsed
    return EPOCH


def truncate_to_millis(value: datetime) -> datetime:
    """Devices keep millisecond clocks; compare server times at that precision."""
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


@dataclass(frozen=True)
class ReconcileOutcome:
    operation: str
    document: Dict[str, Any]
    strategy: Optional[ResolutionStrategy] = None
    server_version: Optional[Dict[str, Any]] = None
    client_version: Optional[Dict[str, Any]] = None

    @property
    def conflict_resolved(self) -> bool:
        return self.operation == OPERATION_CONFLICT_RESOLVED

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'success': True,
            'conflictResolved': self.conflict_resolved,
            'operation': self.operation,
            'resolvedDocument': self.document,
        }
        if self.conflict_resolved:
            data.update({
                'strategy': self.strategy.value if self.strategy else None,
                'serverVersion': self.server_version,
                'clientVersion': self.client_version,
            })
        return data


def reconcile(
    collection: str,
    document_id: str,
    client_data: Optional[Dict[str, Any]],
    client_timestamp: Any = None,
    *,
    access: AccessContext,
    device_id: str = '',
    config: Optional[SyncConfig] = None,
    store: Optional[DocumentStore] = None,
) -> ReconcileOutcome:
    """Apply one device write to the store.

    Detected conflicts are a normal outcome; only the final store write
    may raise.
    """
    config = config or get_sync_config()
    store = store or default_store
    if not config.is_known_collection(collection):
        raise InvalidCollectionError(collection)
    if not document_id:
        raise SyncValidationError('documentId is required')
    client_data = client_data if isinstance(client_data, dict) else {}

    server = store.get(collection, document_id)
    if server is None:
        ensure_collection_access(access, collection, 'create')
        payload = sanitize_document_data(client_data)
        ensure_facility_writable(access, owning_facility(collection, document_id, payload))
        created, _ = store.create(collection, document_id, payload)
        logger.info('created %s/%s from device %s', collection, document_id, device_id)
        return ReconcileOutcome(operation=OPERATION_CREATED, document=created.as_dict())

    ensure_collection_access(access, collection, 'update')
    ensure_facility_writable(access, server.facility_id)
    client_ts = resolve_client_timestamp(client_timestamp, client_data)

    if truncate_to_millis(server.updated_at) <= client_ts:
        payload = sanitize_document_data(client_data)
        ensure_facility_writable(access, owning_facility(collection, document_id, {**server.data, **payload}))
        updated = store.update(collection, document_id, payload)
        logger.info('updated %s/%s from device %s', collection, document_id, device_id)
        return ReconcileOutcome(operation=OPERATION_UPDATED, document=updated.as_dict())

    strategy = config.strategy_for(collection)
    server_doc = server.as_dict()
    context = ResolutionContext(
        collection=collection,
        device_id=device_id,
        user_id=access.user_id,
        ownership=config.ownership_for(collection),
    )
    resolved = strategy.resolve(server_doc, client_data, context)
    payload = sanitize_document_data(resolved)
    ensure_facility_writable(access, owning_facility(collection, document_id, {**server.data, **payload}))

    record_conflict(
        collection=collection,
        document_id=document_id,
        facility_id=server.facility_id,
        server_data=server_doc,
        client_data=client_data,
        resolved_data=resolved,
        strategy=strategy.value,
        device_id=device_id,
        user_id=access.user_id,
    )

    stored = store.update(collection, document_id, payload)
    logger.info('conflict resolved for %s/%s using %s', collection, document_id, strategy.value)
    return ReconcileOutcome(
        operation=OPERATION_CONFLICT_RESOLVED,
        document=stored.as_dict(),
        strategy=strategy,
        server_version=server_doc,
        client_version=client_data,
    )
