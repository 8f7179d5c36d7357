"""
Conflict audit trail and other best-effort sync records.

Audit writes never change what the caller sees.  Each writer returns an
:class:`AuditResult`; a failed write is logged here and reported through
that result instead of being raised.  Writes run in their own savepoint
so a failure cannot poison an enclosing transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from django.db import DatabaseError, transaction
from django.db.models import Model

from ..models import ConflictLog, SecurityEvent, SyncOperationLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditResult:
    ok: bool
    record_id: Optional[int] = None
    error: Optional[str] = None


def best_effort(kind: str, write: Callable[[], Model]) -> AuditResult:
    try:
        with transaction.atomic():
            obj = write()
    except (DatabaseError, ValueError, TypeError) as exc:
        logger.warning('failed to write %s record: %s', kind, exc, exc_info=True)
        return AuditResult(ok=False, error=str(exc))
    return AuditResult(ok=True, record_id=obj.pk)


def _user_id(user_id) -> Optional[int]:
    return user_id if isinstance(user_id, int) else None


def record_conflict(
    *,
    collection: str,
    document_id: str,
    facility_id: str,
    server_data: Dict[str, Any],
    client_data: Dict[str, Any],
    resolved_data: Dict[str, Any],
    strategy: str,
    device_id: str,
    user_id: Optional[int],
) -> AuditResult:
    return best_effort('conflict', lambda: ConflictLog.objects.create(
        collection=collection,
        document_id=document_id,
        facility_id=facility_id or '',
        server_data=server_data,
        client_data=client_data,
        resolved_data=resolved_data,
        strategy=strategy,
        device_id=device_id or '',
        user_id=_user_id(user_id),
    ))


def record_sync_session(
    *,
    device_id: str,
    user_id: Optional[int],
    facility_id: Optional[str],
    role: str,
    sync_timestamp: datetime,
    last_sync_timestamp: datetime,
    collections: Iterable[str],
    status: str,
    results: Dict[str, Any],
    execution_time_ms: int,
) -> AuditResult:
    return best_effort('sync session', lambda: SyncOperationLog.objects.create(
        device_id=device_id,
        user_id=_user_id(user_id),
        facility_id=facility_id or '',
        role=role,
        sync_timestamp=sync_timestamp,
        last_sync_timestamp=last_sync_timestamp,
        collections=list(collections),
        status=status,
        results=results,
        execution_time_ms=max(0, int(execution_time_ms)),
    ))


def log_security_event(action: str, *, user_id: Optional[int] = None, device_id: str = '',
                       detail: Optional[Dict[str, Any]] = None) -> AuditResult:
    return best_effort('security event', lambda: SecurityEvent.objects.create(
        user_id=_user_id(user_id),
        action=action,
        device_id=device_id or '',
        detail=detail or {},
    ))


def list_conflicts(access, *, collection: Optional[str] = None, document_id: Optional[str] = None,
                   device_id: Optional[str] = None, since: Optional[datetime] = None,
                   limit: int = 50) -> List[Dict[str, Any]]:
    """Conflict records visible to ``access``, newest first."""
    qs = ConflictLog.objects.all()
    if access.facility_scoped:
        qs = qs.filter(facility_id=access.facility_id)
    if collection:
        qs = qs.filter(collection=collection)
    if document_id:
        qs = qs.filter(document_id=document_id)
    if device_id:
        qs = qs.filter(device_id=device_id)
    if since:
        qs = qs.filter(timestamp__gt=since)
    return [format_conflict(c) for c in qs.order_by('-timestamp', '-id')[:limit]]


def format_conflict(conflict: ConflictLog, *, full: bool = True) -> Dict[str, Any]:
    data = {
        'id': conflict.id,
        'collection': conflict.collection,
        'documentId': conflict.document_id,
        'strategy': conflict.strategy,
        'deviceId': conflict.device_id,
        'userId': conflict.user_id,
        'timestamp': conflict.timestamp.isoformat(),
    }
    if full:
        data.update({
            'serverData': conflict.server_data,
            'clientData': conflict.client_data,
            'resolvedData': conflict.resolved_data,
        })
    return data
