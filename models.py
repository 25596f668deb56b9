"""
資料模型

所有需要在重啟後保留的狀態都在這裡：
- Raffle：唯一的一筆 round 記錄（階段、開始時間、間隔、入場費、獎池）
- Entry：本回合的參加者序列（position 就是插入順序）
- PendingRequest：唯一一筆進行中的亂數請求
- EventLog：對外可觀察的通知（Entered / RandomnessRequested / WinnerPicked）
- RoundResult：已完成回合的歷史
- Account：得獎者的餘額
"""
import enum
from datetime import datetime

from sqlalchemy import (
    Boolean, Column, DateTime, Enum, Integer, JSON, String,
    UniqueConstraint,
)
from sqlalchemy.types import TypeDecorator

from database import Base


class WeiAmount(TypeDecorator):
    """
    以十進位字串儲存 wei 金額

    wei 很容易超過 64-bit（10 ETH = 10^19 wei），所以不用 BigInteger
    """
    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class RaffleState(str, enum.Enum):
    OPEN = "OPEN"
    CALCULATING = "CALCULATING"


class EventType(str, enum.Enum):
    ENTERED = "Entered"
    RANDOMNESS_REQUESTED = "RandomnessRequested"
    WINNER_PICKED = "WinnerPicked"


class Raffle(Base):
    __tablename__ = "raffle"

    id = Column(Integer, primary_key=True)
    state = Column(Enum(RaffleState), nullable=False, default=RaffleState.OPEN)
    round_number = Column(Integer, nullable=False, default=1)
    last_timestamp = Column(Integer, nullable=False)
    interval = Column(Integer, nullable=False)
    entrance_fee = Column(WeiAmount, nullable=False)
    pool = Column(WeiAmount, nullable=False, default=0)
    recent_winner = Column(String(128), nullable=True)


class Entry(Base):
    __tablename__ = "entries"
    __table_args__ = (
        UniqueConstraint("round_number", "position", name="uq_entry_position"),
    )

    id = Column(Integer, primary_key=True)
    round_number = Column(Integer, nullable=False, index=True)
    position = Column(Integer, nullable=False)
    participant = Column(String(128), nullable=False)
    value = Column(WeiAmount, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class PendingRequest(Base):
    __tablename__ = "pending_requests"

    request_id = Column(Integer, primary_key=True, autoincrement=False)
    round_number = Column(Integer, nullable=False, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True)
    round_number = Column(Integer, nullable=False, index=True)
    event_type = Column(Enum(EventType), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)


class RoundResult(Base):
    __tablename__ = "round_results"

    round_number = Column(Integer, primary_key=True, autoincrement=False)
    request_id = Column(Integer, nullable=False)
    random_word = Column(String(80), nullable=False)
    winner = Column(String(128), nullable=False)
    winner_index = Column(Integer, nullable=False)
    prize = Column(WeiAmount, nullable=False)
    participant_count = Column(Integer, nullable=False)
    started_at = Column(Integer, nullable=False)
    finished_at = Column(Integer, nullable=False)


class Account(Base):
    __tablename__ = "accounts"

    address = Column(String(128), primary_key=True)
    balance = Column(WeiAmount, nullable=False, default=0)
    accepts_payments = Column(Boolean, nullable=False, default=True)
