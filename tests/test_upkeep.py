import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from database import Base, use_immediate_transactions
from models import EventLog, PendingRequest, RaffleState
from core.entry_ledger import EntryLedger
from core.exceptions import InsufficientBalance, RoundNotOpen, UpkeepNotNeeded
from core.locks import with_raffle_lock
from core.round_coordinator import RoundCoordinator
from services.oracle_service import MockVRFCoordinator
from services.round_clock import RoundClock
from services.upkeep_service import check_upkeep
from tests.conftest import CONSUMER, ENTRANCE_FEE, INTERVAL


@pytest.mark.parametrize("state, elapsed, pool, players, reason", [
    (RaffleState.CALCULATING, 31, 1, 1, "raffle not open"),
    (RaffleState.OPEN, 29, 1, 1, "interval not elapsed"),
    (RaffleState.OPEN, 31, 0, 1, "no balance"),
    (RaffleState.OPEN, 31, 1, 0, "no players"),
])
def test_check_upkeep_false_cases(state, elapsed, pool, players, reason):
    result = check_upkeep(state, elapsed, 30, pool, players)
    assert result.upkeep_needed is False
    assert result.reason == reason


def test_check_upkeep_true_when_all_conditions_hold():
    result = check_upkeep(RaffleState.OPEN, 30, 30, 1, 1)
    assert result.upkeep_needed is True
    assert result.reason == "ok"


def test_false_without_players_even_after_interval(db, coordinator, fake_time):
    fake_time.advance(INTERVAL + 1)
    upkeep_needed, _ = coordinator.check_upkeep(db)
    assert not upkeep_needed


def test_false_before_interval(db, coordinator, fake_time):
    coordinator.enter(db, "alice", ENTRANCE_FEE)
    fake_time.advance(INTERVAL - 1)
    upkeep_needed, _ = coordinator.check_upkeep(db)
    assert not upkeep_needed


def test_true_and_echoes_check_data(db, ready_round):
    upkeep_needed, perform_data = ready_round.check_upkeep(db, b"\x01\x02")
    assert upkeep_needed
    assert perform_data == b"\x01\x02"


def test_false_while_calculating(db, ready_round):
    ready_round.perform_upkeep(db)
    upkeep_needed, _ = ready_round.check_upkeep(db)
    assert not upkeep_needed


def test_check_upkeep_is_side_effect_free(db, ready_round, oracle):
    events_before = db.query(EventLog).count()
    for _ in range(10):
        ready_round.check_upkeep(db)

    assert db.query(EventLog).count() == events_before
    assert db.query(PendingRequest).count() == 0
    assert oracle.pending_request_ids() == []
    assert ready_round.get_lottery_state(db) == RaffleState.OPEN


def test_perform_upkeep_rejected_when_not_needed(db, coordinator):
    with pytest.raises(UpkeepNotNeeded) as exc_info:
        coordinator.perform_upkeep(db)

    assert exc_info.value.num_players == 0
    assert exc_info.value.balance == 0
    assert coordinator.get_lottery_state(db) == RaffleState.OPEN
    assert coordinator.get_pending_request_id(db) is None


def test_perform_upkeep_opens_exactly_one_request(db, ready_round, oracle):
    request_id = ready_round.perform_upkeep(db)

    assert request_id == 1
    assert ready_round.get_lottery_state(db) == RaffleState.CALCULATING
    assert ready_round.get_pending_request_id(db) == request_id
    assert db.query(PendingRequest).count() == 1
    assert oracle.pending_request_ids() == [1]


def test_perform_upkeep_twice_is_rejected(db, ready_round, oracle):
    ready_round.perform_upkeep(db)

    with pytest.raises(UpkeepNotNeeded):
        ready_round.start_close(db)
    assert db.query(PendingRequest).count() == 1
    assert oracle.pending_request_ids() == [1]


def test_oracle_failure_keeps_raffle_open(db, params, fake_time):
    # subscription 沒有儲值
    oracle = MockVRFCoordinator()
    subscription_id = oracle.create_subscription()
    oracle.add_consumer(subscription_id, CONSUMER)
    coordinator = RoundCoordinator(oracle, params, RoundClock(fake_time))
    coordinator.bootstrap(db, ENTRANCE_FEE, INTERVAL)
    coordinator.enter(db, "alice", ENTRANCE_FEE)
    fake_time.advance(INTERVAL + 1)

    with pytest.raises(InsufficientBalance):
        coordinator.perform_upkeep(db)

    assert coordinator.get_lottery_state(db) == RaffleState.OPEN
    assert coordinator.get_pending_request_id(db) is None
    upkeep_needed, _ = coordinator.check_upkeep(db)
    assert upkeep_needed


@pytest.fixture
def file_sessions(tmp_path):
    """同一個 SQLite 檔案上的兩個獨立 session（模擬兩個同時進來的請求）"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'raffle.db'}",
        connect_args={"check_same_thread": False, "timeout": 0.1}
    )
    use_immediate_transactions(engine)
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    first, second = Session(), Session()
    yield first, second
    first.close()
    second.close()
    engine.dispose()


def test_close_cannot_interleave_with_entry_on_sqlite(file_sessions, oracle, params, fake_time):
    db_a, db_b = file_sessions
    coordinator = RoundCoordinator(oracle, params, RoundClock(fake_time))
    coordinator.bootstrap(db_a, ENTRANCE_FEE, INTERVAL)
    coordinator.enter(db_a, "alice", ENTRANCE_FEE)
    fake_time.advance(INTERVAL + 1)

    # A 鎖定 Raffle 並加入 bob，還沒 commit
    raffle = with_raffle_lock(db_a).first()
    EntryLedger.enter(db_a, raffle, "bob", ENTRANCE_FEE)

    # B 拿不到寫入鎖，不能在 A 的檢查之後偷偷關閉回合
    with pytest.raises(OperationalError):
        coordinator.perform_upkeep(db_b)
    assert oracle.pending_request_ids() == []

    db_a.commit()

    # A commit 之後 B 才在鎖內重新檢查並關閉回合
    request_id = coordinator.perform_upkeep(db_b)

    with pytest.raises(RoundNotOpen):
        coordinator.enter(db_a, "carol", ENTRANCE_FEE)
    with pytest.raises(UpkeepNotNeeded):
        coordinator.perform_upkeep(db_a)

    assert coordinator.get_players(db_a) == ["alice", "bob"]
    assert coordinator.get_raffle(db_a).pool == 2 * ENTRANCE_FEE
    assert oracle.pending_request_ids() == [request_id]
