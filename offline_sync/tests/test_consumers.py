import pytest
from asgiref.sync import async_to_sync
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser

from offline_sync.realtime.consumers import SyncUpdatesConsumer
from offline_sync.services.access import resolve_access
from offline_sync.services.realtime import can_listen, heartbeat

pytestmark = pytest.mark.django_db


def open_socket(user, device_id):
    """Connect to the device's update stream; returns (connected, close code or welcome frame)."""
    async def run():
        communicator = WebsocketCommunicator(SyncUpdatesConsumer.as_asgi(), f'/ws/sync/{device_id}/')
        communicator.scope['user'] = user
        communicator.scope['url_route'] = {'args': (), 'kwargs': {'device_id': device_id}}
        connected, code = await communicator.connect()
        if not connected:
            return False, code
        welcome = await communicator.receive_json_from()
        await communicator.disconnect()
        return True, welcome
    return async_to_sync(run)()


def test_owner_may_listen(doctor_user):
    heartbeat(resolve_access(doctor_user), 'tablet-1', ['patients'])
    connected, welcome = open_socket(doctor_user, 'tablet-1')
    assert connected is True
    assert welcome == {'type': 'welcome', 'deviceId': 'tablet-1'}


def test_other_users_device_is_refused(doctor_user, make_user):
    heartbeat(resolve_access(doctor_user), 'tablet-1', ['patients'])
    nurse = make_user('nurse', 'user')
    assert open_socket(nurse, 'tablet-1') == (False, 4003)


def test_unregistered_device_is_refused(doctor_user):
    assert open_socket(doctor_user, 'never-seen') == (False, 4003)


def test_administrator_may_listen_to_any_device(admin_user):
    connected, _ = open_socket(admin_user, 'never-seen')
    assert connected is True


def test_anonymous_is_refused():
    assert open_socket(AnonymousUser(), 'tablet-1') == (False, 4401)


def test_can_listen(doctor_user, admin_user, make_user):
    heartbeat(resolve_access(doctor_user), 'tablet-1', ['patients'])
    assert can_listen(doctor_user, 'tablet-1') is True
    assert can_listen(make_user('nurse', 'user'), 'tablet-1') is False
    assert can_listen(admin_user, 'anything') is True
    assert can_listen(AnonymousUser(), 'tablet-1') is False
    assert can_listen(doctor_user, '') is False
