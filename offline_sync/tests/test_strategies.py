import pytest

from offline_sync.services.strategies import (
    FieldOwnership,
    ResolutionContext,
    ResolutionStrategy,
)

SERVER = {
    '$id': 'p1',
    '$collectionId': 'patients',
    '$createdAt': '2024-01-01T00:00:00.000000Z',
    '$updatedAt': '2024-03-01T10:00:00.000000Z',
    'full_name': 'Amina Okafor',
    'facility_id': 'F1',
    'contact_phone': '000',
    'health_worker_id': 'hw-1',
}

CLIENT = {
    '$id': 'forged',
    '$updatedAt': '2024-02-01T00:00:00.000000Z',
    'full_name': 'Amina O.',
    'facility_id': 'F2',
    'contact_phone': '555-1',
    'address': '12 Market Rd',
}

PATIENT_OWNERSHIP = FieldOwnership(
    client_fields=('contact_phone', 'address', 'town_village'),
    server_fields=('facility_id', 'health_worker_id'),
)


def ctx(collection='patients', ownership=None):
    return ResolutionContext(collection=collection, device_id='dev-1', user_id=1, ownership=ownership)


def test_server_wins_returns_server_document():
    out = ResolutionStrategy.SERVER_WINS.resolve(SERVER, CLIENT, ctx())
    assert out == SERVER
    assert out is not SERVER


def test_client_wins_keeps_server_identity_fields():
    out = ResolutionStrategy.CLIENT_WINS.resolve(SERVER, CLIENT, ctx())
    assert out['$id'] == 'p1'
    assert out['$createdAt'] == SERVER['$createdAt']
    assert out['$updatedAt'] == SERVER['$updatedAt']
    assert out['full_name'] == 'Amina O.'
    assert out['facility_id'] == 'F2'
    assert 'health_worker_id' not in out


def test_merge_with_server_priority_takes_server_on_disagreement():
    out = ResolutionStrategy.MERGE_WITH_SERVER_PRIORITY.resolve(SERVER, CLIENT, ctx())
    assert out['full_name'] == 'Amina Okafor'
    assert out['facility_id'] == 'F1'
    assert out['$id'] == 'p1'
    # client-only field survives
    assert out['address'] == '12 Market Rd'
    # server-only field survives
    assert out['health_worker_id'] == 'hw-1'


def test_merge_with_client_priority_overlays_client_except_identity():
    out = ResolutionStrategy.MERGE_WITH_CLIENT_PRIORITY.resolve(SERVER, CLIENT, ctx())
    assert out['full_name'] == 'Amina O.'
    assert out['facility_id'] == 'F2'
    assert out['$id'] == 'p1'
    assert out['$updatedAt'] == SERVER['$updatedAt']
    assert out['health_worker_id'] == 'hw-1'


def test_field_level_merge_respects_ownership():
    out = ResolutionStrategy.FIELD_LEVEL_MERGE.resolve(SERVER, CLIENT, ctx(ownership=PATIENT_OWNERSHIP))
    assert out['contact_phone'] == '555-1'
    assert out['address'] == '12 Market Rd'
    assert out['facility_id'] == 'F1'
    # neither list: server value kept
    assert out['full_name'] == 'Amina Okafor'


def test_field_level_merge_without_ownership_is_server_wins():
    out = ResolutionStrategy.FIELD_LEVEL_MERGE.resolve(SERVER, CLIENT, ctx('vaccines'))
    assert out == SERVER


@pytest.mark.parametrize('strategy', list(ResolutionStrategy))
def test_strategies_are_deterministic(strategy):
    context = ctx(ownership=PATIENT_OWNERSHIP)
    first = strategy.resolve(SERVER, CLIENT, context)
    second = strategy.resolve(SERVER, CLIENT, context)
    assert first == second


@pytest.mark.parametrize('strategy', list(ResolutionStrategy))
def test_strategies_do_not_mutate_inputs(strategy):
    server, client = dict(SERVER), dict(CLIENT)
    strategy.resolve(server, client, ctx(ownership=PATIENT_OWNERSHIP))
    assert server == SERVER
    assert client == CLIENT


def test_parse_known_and_unknown_names():
    assert ResolutionStrategy.parse('client_wins') is ResolutionStrategy.CLIENT_WINS
    with pytest.raises(ValueError):
        ResolutionStrategy.parse('last_writer_wins')
