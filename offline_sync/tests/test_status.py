from datetime import timedelta

import pytest
from django.utils import timezone

from offline_sync.models import (
    ActiveSyncSession,
    ConflictLog,
    QueueProcessingLog,
    RealtimeNotification,
    SyncOperationLog,
)
from offline_sync.services.access import resolve_access
from offline_sync.services.status import (
    DEGRADED,
    HEALTHY,
    WARNING,
    classify_health,
    failure_rate_percent,
    summarize,
)

pytestmark = pytest.mark.django_db


def add_conflicts(n, facility_id='F1'):
    ConflictLog.objects.bulk_create([
        ConflictLog(collection='patients', document_id=f'p{i}', facility_id=facility_id, strategy='server_wins')
        for i in range(n)
    ])


def add_sync(device_id, collections, facility_id='F1', when=None):
    when = when or timezone.now()
    return SyncOperationLog.objects.create(
        device_id=device_id, facility_id=facility_id, role='doctor',
        sync_timestamp=when, last_sync_timestamp=when - timedelta(hours=1), collections=collections,
    )


@pytest.mark.parametrize('rate,conflicts,expected', [
    (0, 0, HEALTHY),
    (2, 5, HEALTHY),
    (2.01, 0, WARNING),
    (0, 6, WARNING),
    (10, 25, WARNING),
    (10.5, 0, DEGRADED),
    (0, 26, DEGRADED),
    (50, 100, DEGRADED),
])
def test_health_ladder(rate, conflicts, expected):
    assert classify_health(rate, conflicts) == expected


def test_failure_rate_rounding():
    assert failure_rate_percent(0, 0) == 0.0
    assert failure_rate_percent(3, 1) == 33.33


def test_high_failure_rate_and_conflicts_are_degraded():
    QueueProcessingLog.objects.create(device_id='d1', facility_id='F1', total_operations=100,
                                      success_count=88, failure_count=12)
    add_conflicts(30)
    summary = summarize(60)
    assert summary.health == DEGRADED
    queue = summary.metrics['queueProcessing']
    assert queue == {'totalOperations': 100, 'success': 88, 'failed': 12, 'failureRatePercent': 12.0}
    assert summary.metrics['conflicts']['total'] == 30
    assert len(summary.details['recentConflicts']) == 10


def test_empty_window_is_healthy():
    summary = summarize(60).to_dict()
    assert summary['health'] == HEALTHY
    assert summary['metrics']['queueProcessing']['failureRatePercent'] == 0.0
    assert summary['windowMinutes'] == 60


def test_records_outside_the_window_are_ignored():
    add_conflicts(30)
    ConflictLog.objects.update(timestamp=timezone.now() - timedelta(hours=3))
    add_sync('d1', ['patients'], when=timezone.now() - timedelta(hours=2))
    summary = summarize(60)
    assert summary.metrics['conflicts']['total'] == 0
    assert summary.metrics['syncOperations']['total'] == 0
    assert summary.health == HEALTHY
    assert summarize(240).metrics['conflicts']['total'] == 30


def test_per_collection_counts_and_active_sessions():
    add_sync('d1', ['patients', 'vaccines'])
    add_sync('d2', ['patients'])
    now = timezone.now()
    ActiveSyncSession.objects.create(device_id='d1', facility_id='F1', collections=['patients'], last_heartbeat=now)
    ActiveSyncSession.objects.create(device_id='d-stale', facility_id='F1', collections=['patients'],
                                     last_heartbeat=now - timedelta(hours=1))
    summary = summarize(60)
    assert summary.metrics['syncOperations']['perCollection'] == {'patients': 2, 'vaccines': 1}
    assert summary.metrics['realtime']['activeSessions'] == 1
    assert [s['deviceId'] for s in summary.details['activeSessions']] == ['d1']


def test_device_filter(store, facility):
    add_sync('d1', ['patients'])
    add_sync('d2', ['patients'])
    RealtimeNotification.objects.create(device_id='d1', data={}, delivered=True)
    RealtimeNotification.objects.create(device_id='d2', data={})
    store.create('vaccines', 'v1', {'name': 'BCG'})
    store.delete('vaccines', 'v1', device_id='d1')
    summary = summarize(60, device_id='d2')
    assert summary.metrics['syncOperations']['total'] == 1
    assert summary.metrics['realtime']['realtimeDelivered'] == 0
    assert summary.metrics['realtime']['realtimeUndelivered'] == 1
    assert summary.metrics['deletions']['total'] == 0
    assert summary.filters['deviceId'] == 'd2'
    assert summarize(60, device_id='d1').metrics['deletions']['total'] == 1


def test_delivered_and_undelivered_pushes_are_counted():
    RealtimeNotification.objects.create(device_id='d1', data={}, delivered=True)
    RealtimeNotification.objects.create(device_id='d1', data={}, delivered=True)
    RealtimeNotification.objects.create(device_id='d1', data={})
    realtime = summarize(60).metrics['realtime']
    assert (realtime['realtimeDelivered'], realtime['realtimeUndelivered']) == (2, 1)


def test_user_filter_applies_to_deletions(store, doctor_user, admin_user):
    store.create('vaccines', 'v1', {'name': 'BCG'})
    store.create('vaccines', 'v2', {'name': 'OPV'})
    store.delete('vaccines', 'v1', deleted_by=doctor_user)
    store.delete('vaccines', 'v2', deleted_by=admin_user)
    assert summarize(60, user_id=doctor_user.id).metrics['deletions']['total'] == 1
    assert summarize(60).metrics['deletions']['total'] == 2


def test_supervisor_is_held_to_own_facility(make_user, other_facility):
    add_sync('d1', ['patients'], facility_id='F1')
    add_sync('d2', ['patients'], facility_id='F2')
    add_conflicts(3, facility_id='F2')
    supervisor = resolve_access(make_user('sup', 'supervisor'))
    summary = summarize(60, facility_id='F2', access=supervisor)
    assert summary.filters['facilityId'] == 'F1'
    assert summary.metrics['syncOperations']['total'] == 1
    assert summary.metrics['conflicts']['total'] == 0


def test_administrator_may_filter_any_facility(admin_access, other_facility):
    add_sync('d1', ['patients'], facility_id='F1')
    add_sync('d2', ['patients'], facility_id='F2')
    assert summarize(60, facility_id='F2', access=admin_access).metrics['syncOperations']['total'] == 1
    assert summarize(60, access=admin_access).metrics['syncOperations']['total'] == 2
