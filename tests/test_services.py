import pytest

from config import NETWORK_CONFIG, Settings, resolve_oracle_params
from core.exceptions import (
    InsufficientBalance,
    InvalidConsumer,
    InvalidSubscription,
    NoParticipants,
    NonexistentRequest,
    OracleError,
)
from services.oracle_service import BASE_FEE, GAS_PRICE_LINK, MockVRFCoordinator, RemoteVRFCoordinator
from services.units import format_ether, parse_ether
from services.winner_service import pick_winner_index
from main import build_coordinator
from tests.conftest import CONSUMER, KEY_HASH


# ============ WinnerService ============

def test_pick_winner_index_is_modulo():
    assert pick_winner_index(7, 1) == 0
    assert pick_winner_index(7, 4) == 3
    assert pick_winner_index(2 ** 256 - 1, 10) == (2 ** 256 - 1) % 10


def test_pick_winner_index_requires_participants():
    with pytest.raises(NoParticipants):
        pick_winner_index(7, 0)


# ============ Units ============

def test_ether_conversion():
    assert parse_ether("0.01") == 10 ** 16
    assert parse_ether("10") == 10 ** 19
    assert format_ether(10 ** 16) == "0.01"
    assert format_ether(10 ** 19) == "10"
    assert format_ether(0) == "0"

    with pytest.raises(ValueError):
        parse_ether("abc")
    with pytest.raises(ValueError):
        parse_ether("0.0000000000000000001")


# ============ Config ============

def test_resolve_oracle_params_uses_network_defaults():
    params = resolve_oracle_params(Settings(chain_id=4))
    assert params.network_name == "rinkeby"
    assert params.subscription_id == NETWORK_CONFIG[4]["subscription_id"]
    assert params.request_confirmations == 3
    assert not params.is_development


def test_resolve_oracle_params_explicit_settings_win():
    params = resolve_oracle_params(Settings(chain_id=31337, callback_gas_limit=100000))
    assert params.is_development
    assert params.callback_gas_limit == 100000
    assert params.subscription_id is None


def test_resolve_oracle_params_unknown_chain_needs_key_hash():
    with pytest.raises(ValueError):
        resolve_oracle_params(Settings(chain_id=999))


# ============ MockVRFCoordinator ============

def _request(coordinator, subscription_id, num_words=1):
    return coordinator.request_random_words(
        key_hash=KEY_HASH,
        subscription_id=subscription_id,
        request_confirmations=1,
        callback_gas_limit=500000,
        num_words=num_words,
        consumer=CONSUMER,
    )


def test_mock_request_ids_start_at_one(oracle):
    assert _request(oracle, 1) == 1
    assert _request(oracle, 1) == 2
    assert oracle.pending_request_ids() == [1, 2]


def test_mock_rejects_unknown_subscription():
    with pytest.raises(InvalidSubscription):
        _request(MockVRFCoordinator(), 42)


def test_mock_rejects_unfunded_subscription():
    coordinator = MockVRFCoordinator()
    subscription_id = coordinator.create_subscription()
    coordinator.add_consumer(subscription_id, CONSUMER)
    with pytest.raises(InsufficientBalance):
        _request(coordinator, subscription_id)


def test_mock_rejects_unregistered_consumer():
    coordinator = MockVRFCoordinator()
    subscription_id = coordinator.create_subscription()
    coordinator.fund_subscription(subscription_id, parse_ether("10"))

    with pytest.raises(InvalidConsumer):
        _request(coordinator, subscription_id)

    coordinator.add_consumer(subscription_id, CONSUMER)
    assert _request(coordinator, subscription_id) == 1


def test_mock_fulfill_nonexistent_request(oracle):
    with pytest.raises(NonexistentRequest, match="nonexistent request"):
        oracle.fulfill_random_words(0, lambda rid, words: None)
    with pytest.raises(NonexistentRequest):
        oracle.fulfill_random_words(1, lambda rid, words: None)


def test_mock_fulfill_calls_consumer_and_charges(oracle):
    request_id = _request(oracle, 1, num_words=2)
    balance_before = oracle.get_subscription(1).balance
    received = []

    words = oracle.fulfill_random_words(request_id, lambda rid, w: received.append((rid, w)))

    assert received == [(request_id, words)]
    assert words == MockVRFCoordinator.derive_random_words(request_id, 2)
    assert oracle.pending_request_ids() == []
    assert oracle.get_subscription(1).balance == balance_before - (BASE_FEE + GAS_PRICE_LINK * 500000)


def test_mock_keeps_request_when_consumer_fails(oracle):
    request_id = _request(oracle, 1)

    def failing_consumer(rid, words):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        oracle.fulfill_random_words(request_id, failing_consumer)
    assert oracle.pending_request_ids() == [request_id]


def test_mock_override_words_must_match_count(oracle):
    request_id = _request(oracle, 1)
    with pytest.raises(OracleError):
        oracle.fulfill_random_words(request_id, lambda rid, w: None, words=[1, 2])


# ============ RemoteVRFCoordinator ============

class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    def post(self, url, json, timeout):
        self.calls.append((url, json))
        return FakeResponse(self.payload)


def test_remote_coordinator_posts_request():
    session = FakeSession({"requestId": "17"})
    client = RemoteVRFCoordinator("http://vrf.local/", session=session)

    assert _request(client, 7928) == 17
    url, payload = session.calls[0]
    assert url == "http://vrf.local/requests"
    assert payload["subId"] == 7928
    assert payload["numWords"] == 1
    assert payload["consumer"] == CONSUMER


def test_remote_coordinator_rejects_malformed_response():
    client = RemoteVRFCoordinator("http://vrf.local", session=FakeSession({}))
    with pytest.raises(OracleError):
        _request(client, 7928)


# ============ build_coordinator ============

def test_build_coordinator_registers_raffle_on_development_chain():
    coordinator = build_coordinator(Settings(chain_id=31337))

    subscription = coordinator.oracle.get_subscription(coordinator.params.subscription_id)
    assert subscription.consumers == [coordinator.params.consumer]
    assert subscription.balance == parse_ether("10")
    assert _request(coordinator.oracle, subscription.subscription_id) == 1


def test_build_coordinator_requires_callback_secret_on_live_network():
    settings = Settings(chain_id=4, vrf_coordinator_url="http://vrf.local", vrf_callback_secret=None)
    with pytest.raises(RuntimeError):
        build_coordinator(settings)
