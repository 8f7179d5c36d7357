"""
Real-time change notifications for devices with an active sync session.

A device keeps an :class:`ActiveSyncSession` alive with heartbeats.  When
a document changes, every live session listening on that collection gets
a pending :class:`SyncNotification`, a pollable
:class:`RealtimeNotification` and a push over the channel layer.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import DatabaseError, transaction
from django.utils import timezone

from ..config import SyncConfig, get_sync_config
from ..exceptions import AccessDeniedError, SyncValidationError
from ..models import ActiveSyncSession, RealtimeNotification, SyncNotification, User
from .access import AccessContext
from .store import to_iso

logger = logging.getLogger(__name__)

EVENT_TYPE = 'sync.update'


def device_group(device_id: str) -> str:
    return f'sync.device.{device_id}'


def can_listen(user, device_id: str) -> bool:
    """Whether ``user`` may subscribe to pushes for ``device_id``.

    Administrators may listen to any device; everyone else only to a
    device whose session they registered.
    """
    if user is None or not user.is_authenticated or not device_id:
        return False
    if getattr(user, 'role', '') == User.ROLE_ADMINISTRATOR:
        return True
    return ActiveSyncSession.objects.filter(device_id=device_id, user_id=user.id).exists()


def live_sessions(*, now: Optional[datetime] = None, config: Optional[SyncConfig] = None):
    config = config or get_sync_config()
    now = now or timezone.now()
    cutoff = now - timedelta(seconds=config.heartbeat_window_seconds)
    return ActiveSyncSession.objects.filter(
        status=ActiveSyncSession.STATUS_ACTIVE, last_heartbeat__gt=cutoff,
    )


def heartbeat(access: AccessContext, device_id: str, collections: Iterable[str], *,
              now: Optional[datetime] = None, config: Optional[SyncConfig] = None) -> ActiveSyncSession:
    """Create or refresh the device's session and reactivate it if it had expired."""
    if not device_id:
        raise SyncValidationError('Device ID is required')
    config = config or get_sync_config()
    session = ActiveSyncSession.objects.filter(device_id=device_id).first()
    if session is not None and session.user_id not in (None, access.user_id) and access.facility_scoped:
        raise AccessDeniedError('device is registered to another user')
    session, _ = ActiveSyncSession.objects.update_or_create(
        device_id=device_id,
        defaults={
            'user_id': access.user_id,
            'facility_id': access.facility_id or '',
            'collections': [c for c in collections if config.is_known_collection(c)],
            'status': ActiveSyncSession.STATUS_ACTIVE,
            'last_heartbeat': now or timezone.now(),
        },
    )
    return session


def notify_document_change(collection: str, document_id: str, operation: str, *,
                           facility_id: str = '', now: Optional[datetime] = None,
                           config: Optional[SyncConfig] = None) -> int:
    """Notify live sessions listening on ``collection``; returns how many were notified.

    Sessions bound to another facility are skipped for facility-owned
    documents.  A failure for one session is logged and does not stop the
    others.
    """
    now = now or timezone.now()
    notified = 0
    for session in live_sessions(now=now, config=config):
        if collection not in (session.collections or []):
            continue
        if facility_id and session.facility_id and session.facility_id != facility_id:
            continue
        event = {
            'type': 'sync_update',
            'collection': collection,
            'document_id': document_id,
            'operation': operation,
            'timestamp': to_iso(now),
        }
        try:
            with transaction.atomic():
                SyncNotification.objects.create(
                    device_id=session.device_id,
                    user_id=session.user_id,
                    collection=collection,
                    document_id=document_id,
                    operation=operation,
                )
                RealtimeNotification.objects.create(device_id=session.device_id, data=event)
        except DatabaseError:
            logger.warning('failed to notify session %s', session.device_id, exc_info=True)
            continue
        push(session.device_id, event)
        notified += 1
    if notified:
        logger.info('notified %d sessions of %s %s/%s', notified, operation, collection, document_id)
    return notified


def push(device_id: str, event: Dict[str, Any]) -> bool:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return False
    try:
        async_to_sync(channel_layer.group_send)(device_group(device_id), {'type': EVENT_TYPE, 'payload': event})
    except Exception:
        # Devices that miss a push still poll their realtime notifications.
        logger.warning('channel push to %s failed', device_id, exc_info=True)
        return False
    return True


def pending_notifications(access: AccessContext, device_id: str, *, limit: int = 100) -> List[Dict[str, Any]]:
    """Return undelivered notifications for the device and mark them delivered."""
    if not device_id:
        raise SyncValidationError('Device ID is required')
    session = ActiveSyncSession.objects.filter(device_id=device_id).first()
    if access.facility_scoped and (session is None or session.user_id != access.user_id):
        raise AccessDeniedError('device is not registered to this user')
    rows = list(
        RealtimeNotification.objects.filter(device_id=device_id, delivered=False)
        .order_by('created_at', 'id')[:limit]
    )
    if rows:
        RealtimeNotification.objects.filter(id__in=[r.id for r in rows]).update(delivered=True)
    return [{'id': r.id, 'createdAt': to_iso(r.created_at), **(r.data or {})} for r in rows]


def expire_stale_sessions(*, now: Optional[datetime] = None, config: Optional[SyncConfig] = None) -> int:
    config = config or get_sync_config()
    now = now or timezone.now()
    cutoff = now - timedelta(seconds=config.heartbeat_window_seconds)
    return ActiveSyncSession.objects.filter(
        status=ActiveSyncSession.STATUS_ACTIVE, last_heartbeat__lte=cutoff,
    ).update(status=ActiveSyncSession.STATUS_INACTIVE)
