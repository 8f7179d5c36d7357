"""
Sync status aggregator.

Read-only health summary over the sync trace tables for a recent time
window, with optional device, user and facility filters.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from django.db.models import Count, Q, Sum
from django.utils import timezone

from ..config import SyncConfig, get_sync_config
from ..models import (
    ActiveSyncSession,
    ConflictLog,
    DeletionLogEntry,
    QueueProcessingLog,
    RealtimeNotification,
    SyncNotification,
    SyncOperationLog,
)
from .access import AccessContext
from .store import to_iso

HEALTHY = 'healthy'
WARNING = 'warning'
DEGRADED = 'degraded'

DETAIL_LIMIT = 10


def classify_health(failure_rate: float, conflicts: int) -> str:
    """Threshold ladder; ``degraded`` is checked before ``warning``."""
    if failure_rate > 10 or conflicts > 25:
        return DEGRADED
    if failure_rate > 2 or conflicts > 5:
        return WARNING
    return HEALTHY


def failure_rate_percent(total: int, failed: int) -> float:
    if not total:
        return 0.0
    return round(100.0 * failed / total, 2)


@dataclass
class SyncHealthSummary:
    timestamp: datetime
    window_minutes: int
    filters: Dict[str, Any]
    health: str
    metrics: Dict[str, Any]
    details: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': to_iso(self.timestamp),
            'windowMinutes': self.window_minutes,
            'filters': self.filters,
            'health': self.health,
            'metrics': self.metrics,
            'details': self.details,
        }


def _common_filter(*, device_id=None, user_id=None, facility_id=None) -> Q:
    q = Q()
    if device_id:
        q &= Q(device_id=device_id)
    if user_id:
        q &= Q(user_id=user_id)
    if facility_id:
        q &= Q(facility_id=facility_id)
    return q


def summarize(
    window_minutes: int = 60,
    *,
    device_id: Optional[str] = None,
    user_id: Optional[int] = None,
    facility_id: Optional[str] = None,
    access: Optional[AccessContext] = None,
    now: Optional[datetime] = None,
    config: Optional[SyncConfig] = None,
) -> SyncHealthSummary:
    """Compute the health summary for ``[now - window_minutes, now]``.

    When ``access`` is facility scoped, the facility filter is forced to
    the caller's own facility whatever was requested.
    """
    config = config or get_sync_config()
    now = now or timezone.now()
    window_minutes = max(1, int(window_minutes))
    since = now - timedelta(minutes=window_minutes)
    if access is not None and access.facility_scoped:
        facility_id = access.facility_id

    common = _common_filter(device_id=device_id, user_id=user_id, facility_id=facility_id)

    syncs = SyncOperationLog.objects.filter(common, sync_timestamp__gt=since, sync_timestamp__lte=now)
    queue = QueueProcessingLog.objects.filter(common, processed_at__gt=since, processed_at__lte=now)
    conflicts = ConflictLog.objects.filter(common, timestamp__gt=since, timestamp__lte=now)
    sessions = ActiveSyncSession.objects.filter(
        common,
        status=ActiveSyncSession.STATUS_ACTIVE,
        last_heartbeat__gt=now - timedelta(seconds=config.heartbeat_window_seconds),
    )
    deletions = DeletionLogEntry.objects.filter(deleted_at__gt=since, deleted_at__lte=now)
    if facility_id:
        deletions = deletions.filter(facility_id=facility_id)
    if device_id:
        deletions = deletions.filter(device_id=device_id)
    if user_id:
        deletions = deletions.filter(deleted_by_id=user_id)

    notifs = SyncNotification.objects.filter(
        _common_filter(device_id=device_id, user_id=user_id), timestamp__gt=since, timestamp__lte=now,
    )
    pushes = RealtimeNotification.objects.filter(created_at__gt=since, created_at__lte=now)
    if device_id:
        pushes = pushes.filter(device_id=device_id)
    if facility_id or user_id:
        # Notifications carry no facility; narrow them through the device's session.
        devices = ActiveSyncSession.objects.filter(
            _common_filter(user_id=user_id, facility_id=facility_id)
        ).values('device_id')
        notifs = notifs.filter(device_id__in=devices)
        pushes = pushes.filter(device_id__in=devices)

    per_collection: Dict[str, int] = {}
    for cols in syncs.values_list('collections', flat=True):
        for name in cols or []:
            per_collection[name] = per_collection.get(name, 0) + 1

    queue_totals = queue.aggregate(
        total=Sum('total_operations'), success=Sum('success_count'), failed=Sum('failure_count'),
    )
    total_ops = queue_totals['total'] or 0
    failed_ops = queue_totals['failed'] or 0
    rate = failure_rate_percent(total_ops, failed_ops)
    conflict_count = conflicts.count()
    push_counts = pushes.aggregate(
        n_delivered=Count('id', filter=Q(delivered=True)),
        n_undelivered=Count('id', filter=Q(delivered=False)),
    )

    metrics = {
        'syncOperations': {
            'total': syncs.count(),
            'perCollection': per_collection,
        },
        'queueProcessing': {
            'totalOperations': total_ops,
            'success': queue_totals['success'] or 0,
            'failed': failed_ops,
            'failureRatePercent': rate,
        },
        'conflicts': {'total': conflict_count},
        'realtime': {
            'activeSessions': sessions.count(),
            'syncNotificationsPending': notifs.filter(status='pending').count(),
            'realtimeDelivered': push_counts['n_delivered'],
            'realtimeUndelivered': push_counts['n_undelivered'],
        },
        'deletions': {'total': deletions.count()},
    }

    details = {
        'recentSyncs': [
            {
                'id': s.id,
                'deviceId': s.device_id,
                'userId': s.user_id,
                'timestamp': to_iso(s.sync_timestamp),
                'collections': s.collections,
                'status': s.status,
            }
            for s in syncs.order_by('-sync_timestamp', '-id')[:DETAIL_LIMIT]
        ],
        'recentConflicts': [
            {
                'id': c.id,
                'collection': c.collection,
                'documentId': c.document_id,
                'strategy': c.strategy,
                'timestamp': to_iso(c.timestamp),
            }
            for c in conflicts.order_by('-timestamp', '-id')[:DETAIL_LIMIT]
        ],
        'activeSessions': [
            {
                'id': s.id,
                'deviceId': s.device_id,
                'userId': s.user_id,
                'lastHeartbeat': to_iso(s.last_heartbeat),
                'collections': s.collections,
            }
            for s in sessions.order_by('-last_heartbeat')[:DETAIL_LIMIT]
        ],
    }

    return SyncHealthSummary(
        timestamp=now,
        window_minutes=window_minutes,
        filters={'deviceId': device_id, 'userId': user_id, 'facilityId': facility_id},
        health=classify_health(rate, conflict_count),
        metrics=metrics,
        details=details,
    )
