"""
Entry Ledger：本回合的參加者序列與獎池

職責：
1. 接受入場（檢查金額與回合階段）
2. 查詢參加者
3. 派彩後清空序列與獎池

注意：
- 呼叫者必須先鎖定 Raffle（with_raffle_lock），這裡不開 transaction
- position 是插入順序，得獎者用 random % count 選出，順序不能改變
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from models import Entry, EventType, Raffle, RaffleState
from core.event_log import emit
from core.exceptions import (
    InsufficientValue,
    PlayerIndexOutOfRange,
    RoundNotOpen,
)

logger = logging.getLogger(__name__)


class EntryLedger:
    """參加者序列與獎池"""

    @staticmethod
    def enter(db: Session, raffle: Raffle, participant: str, value: int) -> Entry:
        """
        加入一筆參加記錄

        前置條件（依序檢查）：
        1. Raffle 狀態必須是 OPEN
        2. value >= entrance_fee

        流程：
        1. 驗證前置條件
        2. 以目前數量作為 position 新增 Entry
        3. 獎池加上整筆 value
        4. 記錄 Entered 通知

        異常：
            RoundNotOpen: 回合正在等待亂數（不論金額多少）
            InsufficientValue: 金額不足
        """
        if raffle.state != RaffleState.OPEN:
            raise RoundNotOpen(
                f"Raffle round {raffle.round_number} is not open (state: {raffle.state.value})"
            )

        if value < raffle.entrance_fee:
            raise InsufficientValue(value, raffle.entrance_fee)

        position = EntryLedger.count(db, raffle)
        entry = Entry(
            round_number=raffle.round_number,
            position=position,
            participant=participant,
            value=value
        )
        db.add(entry)
        raffle.pool = raffle.pool + value

        emit(db, raffle.round_number, EventType.ENTERED, {"participant": participant})

        logger.info(
            f"{participant} entered round {raffle.round_number} at position {position} "
            f"with {value} wei (pool={raffle.pool})"
        )
        return entry

    @staticmethod
    def count(db: Session, raffle: Raffle) -> int:
        return db.query(Entry).filter(Entry.round_number == raffle.round_number).count()

    @staticmethod
    def get_player(db: Session, raffle: Raffle, index: int) -> str:
        """
        取得第 index 筆參加者

        異常：
            PlayerIndexOutOfRange: index 不存在
        """
        entry = None
        if index >= 0:
            entry = db.query(Entry).filter(
                Entry.round_number == raffle.round_number,
                Entry.position == index
            ).first()

        if not entry:
            raise PlayerIndexOutOfRange(index, EntryLedger.count(db, raffle))
        return entry.participant

    @staticmethod
    def list_players(db: Session, raffle: Raffle) -> List[str]:
        entries = db.query(Entry).filter(
            Entry.round_number == raffle.round_number
        ).order_by(Entry.position).all()
        return [entry.participant for entry in entries]

    @staticmethod
    def reset(db: Session, raffle: Raffle) -> None:
        """
        清空本回合的參加者並把獎池歸零

        只有 RoundCoordinator 在派彩時會呼叫
        """
        db.query(Entry).filter(
            Entry.round_number == raffle.round_number
        ).delete(synchronize_session=False)
        raffle.pool = 0
        db.flush()
