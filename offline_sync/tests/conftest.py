from datetime import datetime, timezone as dt_timezone

import pytest
from django.core.cache import cache

from offline_sync.models import Facility, User
from offline_sync.services.access import AccessContext, resolve_access
from offline_sync.services.store import default_store

EPOCH = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)


@pytest.fixture(autouse=True)
def _clear_cache():
    # Rate-limit windows live in the cache and would leak between tests.
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def facility(db):
    return Facility.objects.create(id='F1', name='Central Clinic', district='North')


@pytest.fixture
def other_facility(db):
    return Facility.objects.create(id='F2', name='River Clinic', district='South')


@pytest.fixture
def make_user(db, facility):
    def _make(username, role, **kwargs):
        kwargs.setdefault('facility', facility)
        return User.objects.create_user(username=username, password='P@ssw0rd1', role=role, **kwargs)
    return _make


@pytest.fixture
def admin_user(make_user):
    return make_user('admin1', User.ROLE_ADMINISTRATOR, facility=None)


@pytest.fixture
def doctor_user(make_user):
    return make_user('doctor1', User.ROLE_DOCTOR)


@pytest.fixture
def admin_access(admin_user) -> AccessContext:
    return resolve_access(admin_user)


@pytest.fixture
def doctor_access(doctor_user) -> AccessContext:
    return resolve_access(doctor_user)


@pytest.fixture
def store():
    return default_store


@pytest.fixture
def epoch():
    return EPOCH
