from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.db import transaction
from django.utils import timezone

from offline_sync.exceptions import AccessDeniedError, SyncValidationError
from offline_sync.models import ActiveSyncSession, RealtimeNotification, SyncNotification
from offline_sync.services import realtime
from offline_sync.services.access import resolve_access
from offline_sync.services.realtime import (
    device_group,
    expire_stale_sessions,
    heartbeat,
    notify_document_change,
    pending_notifications,
)

pytestmark = pytest.mark.django_db


@pytest.fixture
def pushed(monkeypatch):
    sent = []
    monkeypatch.setattr(realtime, 'push', lambda device_id, event: sent.append((device_id, event)) or True)
    return sent


def test_heartbeat_creates_and_refreshes_session(doctor_access):
    first = heartbeat(doctor_access, 'dev-1', ['patients', 'lab_results'])
    assert first.collections == ['patients']
    assert first.facility_id == 'F1'
    ActiveSyncSession.objects.filter(pk=first.pk).update(status=ActiveSyncSession.STATUS_INACTIVE)
    again = heartbeat(doctor_access, 'dev-1', ['vaccines'])
    assert again.pk == first.pk
    assert again.status == ActiveSyncSession.STATUS_ACTIVE
    assert again.collections == ['vaccines']


def test_heartbeat_rejects_foreign_device(doctor_access, make_user):
    heartbeat(doctor_access, 'dev-1', ['patients'])
    nurse = resolve_access(make_user('nurse', 'user'))
    with pytest.raises(AccessDeniedError):
        heartbeat(nurse, 'dev-1', ['patients'])
    with pytest.raises(SyncValidationError):
        heartbeat(nurse, '', [])


def test_change_notifies_live_listeners_only(doctor_access, admin_access, pushed):
    heartbeat(doctor_access, 'listening', ['patients'])
    heartbeat(admin_access, 'other-collection', ['vaccines'])
    stale = heartbeat(admin_access, 'stale', ['patients'])
    ActiveSyncSession.objects.filter(pk=stale.pk).update(last_heartbeat=timezone.now() - timedelta(hours=1))

    assert notify_document_change('patients', 'p1', 'update', facility_id='F1') == 1
    assert [device for device, _ in pushed] == ['listening']
    assert pushed[0][1]['document_id'] == 'p1'
    notification = SyncNotification.objects.get()
    assert (notification.device_id, notification.operation, notification.status) == ('listening', 'update', 'pending')
    assert RealtimeNotification.objects.get().data['collection'] == 'patients'


def test_other_facility_sessions_are_skipped(doctor_access, admin_access, pushed):
    heartbeat(doctor_access, 'f1-tablet', ['patients'])
    heartbeat(admin_access, 'hq', ['patients'])
    assert notify_document_change('patients', 'p2', 'create', facility_id='F2') == 1
    assert [device for device, _ in pushed] == ['hq']


def test_document_save_triggers_notification(doctor_access, store, pushed, django_capture_on_commit_callbacks):
    heartbeat(doctor_access, 'dev-1', ['patients'])
    with django_capture_on_commit_callbacks(execute=True):
        store.create('patients', 'p1', {'full_name': 'A', 'facility_id': 'F1'})
        store.update('patients', 'p1', {'contact_phone': '1'})
        store.delete('patients', 'p1')
    assert list(SyncNotification.objects.order_by('id').values_list('operation', flat=True)) == [
        'create', 'update', 'delete',
    ]
    assert len(pushed) == 3


def test_rolled_back_write_is_not_announced(doctor_access, store, pushed, django_capture_on_commit_callbacks):
    heartbeat(doctor_access, 'dev-1', ['patients'])
    store.create('patients', 'p1', {'full_name': 'A', 'facility_id': 'F1'})
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        with pytest.raises(RuntimeError):
            with transaction.atomic():
                store.update('patients', 'p1', {'contact_phone': '1'})
                raise RuntimeError('abort')
    assert callbacks == []
    assert SyncNotification.objects.count() == 0
    assert pushed == []


def test_pending_notifications_are_delivered_once(doctor_access, pushed):
    heartbeat(doctor_access, 'dev-1', ['patients'])
    notify_document_change('patients', 'p1', 'update')
    notify_document_change('patients', 'p2', 'create')
    first = pending_notifications(doctor_access, 'dev-1')
    assert [n['document_id'] for n in first] == ['p1', 'p2']
    assert pending_notifications(doctor_access, 'dev-1') == []
    assert RealtimeNotification.objects.filter(delivered=True).count() == 2


def test_pending_notifications_require_owned_device(doctor_access):
    with pytest.raises(AccessDeniedError):
        pending_notifications(doctor_access, 'never-registered')


def test_push_uses_device_group(monkeypatch):
    sent = []

    class Layer:
        async def group_send(self, group, message):
            sent.append((group, message))

    monkeypatch.setattr(realtime, 'get_channel_layer', lambda: Layer())
    assert realtime.push('dev-1', {'collection': 'patients'}) is True
    assert sent == [('sync.device.dev-1', {'type': 'sync.update', 'payload': {'collection': 'patients'}})]
    assert device_group('dev-1') == 'sync.device.dev-1'


def test_push_failure_is_not_fatal(monkeypatch):
    class Layer:
        async def group_send(self, group, message):
            raise ConnectionError('redis down')

    monkeypatch.setattr(realtime, 'get_channel_layer', lambda: Layer())
    assert realtime.push('dev-1', {}) is False


def test_expire_stale_sessions(doctor_access):
    heartbeat(doctor_access, 'fresh', ['patients'])
    old = heartbeat(doctor_access, 'old', ['patients'])
    ActiveSyncSession.objects.filter(pk=old.pk).update(last_heartbeat=timezone.now() - timedelta(minutes=10))
    assert expire_stale_sessions() == 1
    assert ActiveSyncSession.objects.get(device_id='old').status == ActiveSyncSession.STATUS_INACTIVE
    assert ActiveSyncSession.objects.get(device_id='fresh').status == ActiveSyncSession.STATUS_ACTIVE


def test_expire_command(doctor_access):
    old = heartbeat(doctor_access, 'old', ['patients'])
    ActiveSyncSession.objects.filter(pk=old.pk).update(last_heartbeat=timezone.now() - timedelta(minutes=10))
    out = StringIO()
    call_command('expire_sync_sessions', stdout=out)
    assert '1' in out.getvalue()
