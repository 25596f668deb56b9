import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  註冊所有 table
from config import OracleParams
from database import Base
from core.round_coordinator import RoundCoordinator
from services.oracle_service import MockVRFCoordinator
from services.round_clock import RoundClock
from services.units import parse_ether

ENTRANCE_FEE = parse_ether("0.01")
INTERVAL = 30
KEY_HASH = "0xd89b2bf150e3b9e13446986e571fb9cab24b13cea0a43ea20a6049a85cc807cc"
CONSUMER = "raffle-keeper"
CALLBACK_SECRET = "test-callback-secret"


class FakeTime:
    """可以手動推進的時間來源"""

    def __init__(self, start):
        self.value = start

    def __call__(self):
        return self.value

    def advance(self, seconds):
        self.value += seconds


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def fake_time():
    return FakeTime(1_700_000_000)


@pytest.fixture
def oracle():
    coordinator = MockVRFCoordinator()
    subscription_id = coordinator.create_subscription()
    coordinator.fund_subscription(subscription_id, parse_ether("10"))
    coordinator.add_consumer(subscription_id, CONSUMER)
    return coordinator


@pytest.fixture
def params():
    return OracleParams(
        network_name="hardhat",
        key_hash=KEY_HASH,
        subscription_id=1,
        callback_gas_limit=500000,
        request_confirmations=1,
        num_words=1,
        consumer=CONSUMER,
    )


@pytest.fixture
def coordinator(db, oracle, params, fake_time):
    coordinator = RoundCoordinator(oracle, params, RoundClock(fake_time))
    coordinator.bootstrap(db, ENTRANCE_FEE, INTERVAL)
    return coordinator


@pytest.fixture
def ready_round(db, coordinator, fake_time):
    """一位參加者入場且時間已到：upkeep 成立"""
    coordinator.enter(db, "alice", ENTRANCE_FEE)
    fake_time.advance(INTERVAL + 1)
    return coordinator
