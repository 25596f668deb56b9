"""
Round Coordinator：管理 Raffle 回合的完整生命週期

職責：
1. 建立 Raffle（bootstrap）
2. 接受入場（委派給 EntryLedger）
3. 回答 keeper 的 check_upkeep（純讀取）
4. perform_upkeep：OPEN -> CALCULATING，送出亂數請求
5. fulfill_random_words：選出得獎者、派彩、重設，CALCULATING -> OPEN

並發安全：
- 三個會修改狀態的入口都用 @transactional + with_raffle_lock
- 前置條件一律在鎖內重新檢查，不相信呼叫者先前讀到的結果
- 任何異常都 rollback，不會留下部分修改
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from config import OracleParams
from database import transactional
from models import EventType, Raffle, RaffleState, RoundResult
from core.entry_ledger import EntryLedger
from core.event_log import emit
from core.exceptions import (
    RaffleNotInitialized,
    TransferFailed,
    UpkeepNotNeeded,
)
from core.locks import with_raffle_lock
from core.randomness_gateway import RandomnessGateway
from core.state_machine import RaffleStateMachine
from services.payout_service import transfer
from services.round_clock import RoundClock
from services.upkeep_service import UpkeepResult, check_upkeep
from services.winner_service import pick_winner_index

logger = logging.getLogger(__name__)


class RoundCoordinator:
    """Raffle 狀態機的擁有者"""

    def __init__(self, oracle, params: OracleParams, clock: Optional[RoundClock] = None):
        self.clock = clock or RoundClock()
        self.params = params
        self.gateway = RandomnessGateway(oracle, params)

    @property
    def oracle(self):
        return self.gateway.oracle

    # =============== Bootstrap ===============

    @transactional
    def bootstrap(self, db: Session, entrance_fee: int, interval: int) -> Raffle:
        """
        建立 Raffle（已存在則直接返回）

        entrance_fee 和 interval 只在第一次建立時寫入；
        之後以資料庫內的值為準
        """
        raffle = db.query(Raffle).order_by(Raffle.id).first()
        if raffle:
            if raffle.entrance_fee != entrance_fee or raffle.interval != interval:
                logger.warning(
                    f"Configured entrance fee/interval ({entrance_fee}, {interval}) differ from "
                    f"persisted values ({raffle.entrance_fee}, {raffle.interval}); keeping persisted"
                )
            return raffle

        raffle = Raffle(
            state=RaffleState.OPEN,
            round_number=1,
            last_timestamp=self.clock.now(),
            interval=interval,
            entrance_fee=entrance_fee,
            pool=0,
        )
        db.add(raffle)
        db.flush()

        logger.info(f"Created raffle with entrance fee {entrance_fee} wei and interval {interval}s")
        return raffle

    # =============== 入場 ===============

    @transactional
    def enter(self, db: Session, participant: str, value: int):
        """
        入場

        異常：
            InsufficientValue: 金額低於 entrance fee
            RoundNotOpen: 回合正在等待亂數
        """
        raffle = self._lock_raffle(db)
        return EntryLedger.enter(db, raffle, participant, value)

    # =============== Upkeep ===============

    def evaluate_upkeep(self, db: Session, raffle: Optional[Raffle] = None) -> UpkeepResult:
        """計算 upkeep 條件（不修改任何狀態）"""
        if raffle is None:
            raffle = self.get_raffle(db)
        return check_upkeep(
            state=raffle.state,
            elapsed=self.clock.elapsed(raffle),
            interval=raffle.interval,
            pool=raffle.pool,
            num_players=EntryLedger.count(db, raffle),
        )

    def check_upkeep(self, db: Session, check_data: bytes = b"") -> Tuple[bool, bytes]:
        """
        keeper 輪詢用（純讀取，可以任意頻率呼叫）

        返回：
            (upkeep_needed, perform_data)，perform_data 原樣回傳 check_data
        """
        result = self.evaluate_upkeep(db)
        return result.upkeep_needed, check_data

    @transactional
    def perform_upkeep(self, db: Session, perform_data: bytes = b"") -> int:
        """
        關閉回合並送出亂數請求（OPEN -> CALCULATING）

        任何人都可以呼叫；perform_data 不影響行為

        流程：
        1. 鎖定 Raffle
        2. 重新檢查 upkeep 條件（keeper 看到的結果可能已經過期）
        3. 狀態轉換為 CALCULATING
        4. 透過 RandomnessGateway 送出請求

        返回：
            request id

        異常：
            UpkeepNotNeeded: 條件不成立，狀態維持 OPEN
            OracleError: oracle 拒絕，整個轉換 rollback
        """
        raffle = self._lock_raffle(db)
        num_players = EntryLedger.count(db, raffle)
        result = self.evaluate_upkeep(db, raffle)
        if not result.upkeep_needed:
            raise UpkeepNotNeeded(raffle.pool, num_players, raffle.state, result.reason)

        RaffleStateMachine.transition(raffle, RaffleState.CALCULATING)
        return self.gateway.request(db, raffle)

    def start_close(self, db: Session) -> int:
        return self.perform_upkeep(db, b"")

    # =============== Fulfill ===============

    @transactional
    def fulfill_random_words(self, db: Session, request_id: int, random_words: List[int]) -> str:
        """
        Oracle callback：選出得獎者並派彩（CALCULATING -> OPEN）

        流程：
        1. 鎖定 Raffle
        2. 消耗 PendingRequest（request id 對不上就拒絕）
        3. random_words[0] % 參加者數量 -> 得獎者
        4. 整個獎池轉給得獎者
        5. 清空參加者、獎池歸零、重設時鐘、回合數 +1
        6. 狀態轉換為 OPEN，記錄 WinnerPicked

        返回：
            得獎者

        異常：
            UnknownRequest: request id 不是目前進行中的請求
            NoParticipants: 沒有參加者（正常流程下不會發生）
            TransferFailed: 得獎者拒收；整個 transaction rollback，回合維持 CALCULATING
            ValueError: random_words 是空的
        """
        if not random_words:
            raise ValueError("random_words must not be empty")

        raffle = self._lock_raffle(db)
        self.gateway.consume(db, raffle, request_id)

        players = EntryLedger.list_players(db, raffle)
        random_word = random_words[0]
        winner_index = pick_winner_index(random_word, len(players))
        winner = players[winner_index]
        prize = raffle.pool

        try:
            transfer(db, winner, prize)
        except TransferFailed as e:
            logger.error(
                f"Payout failed for round {raffle.round_number} (request {request_id}): "
                f"{prize} wei to {winner}: {e.reason}. Round stays CALCULATING."
            )
            raise

        finished_round = raffle.round_number
        started_at = raffle.last_timestamp
        EntryLedger.reset(db, raffle)
        finished_at = self.clock.restart(raffle)

        db.add(RoundResult(
            round_number=finished_round,
            request_id=request_id,
            random_word=str(random_word),
            winner=winner,
            winner_index=winner_index,
            prize=prize,
            participant_count=len(players),
            started_at=started_at,
            finished_at=finished_at,
        ))

        raffle.recent_winner = winner
        raffle.round_number = finished_round + 1
        RaffleStateMachine.transition(raffle, RaffleState.OPEN)
        emit(db, finished_round, EventType.WINNER_PICKED, {"winner": winner})

        logger.info(
            f"Round {finished_round} winner: {winner} (index {winner_index} of {len(players)}), "
            f"prize {prize} wei"
        )
        return winner

    # =============== 查詢 ===============

    @staticmethod
    def get_raffle(db: Session) -> Raffle:
        """
        取得 Raffle（不鎖定）

        異常：
            RaffleNotInitialized: 尚未 bootstrap
        """
        raffle = db.query(Raffle).order_by(Raffle.id).first()
        if not raffle:
            raise RaffleNotInitialized()
        return raffle

    @staticmethod
    def _lock_raffle(db: Session) -> Raffle:
        raffle = with_raffle_lock(db).first()
        if not raffle:
            raise RaffleNotInitialized()
        return raffle

    def get_entrance_fee(self, db: Session) -> int:
        return self.get_raffle(db).entrance_fee

    def get_player(self, db: Session, index: int) -> str:
        return EntryLedger.get_player(db, self.get_raffle(db), index)

    def get_players(self, db: Session) -> List[str]:
        return EntryLedger.list_players(db, self.get_raffle(db))

    def get_num_players(self, db: Session) -> int:
        return EntryLedger.count(db, self.get_raffle(db))

    def get_lottery_state(self, db: Session) -> RaffleState:
        return self.get_raffle(db).state

    def get_recent_winner(self, db: Session) -> Optional[str]:
        return self.get_raffle(db).recent_winner

    def get_last_timestamp(self, db: Session) -> int:
        return self.get_raffle(db).last_timestamp

    def get_interval(self, db: Session) -> int:
        return self.get_raffle(db).interval

    def get_pending_request_id(self, db: Session) -> Optional[int]:
        pending = self.gateway.get_pending(db)
        return pending.request_id if pending else None

    def get_num_words(self) -> int:
        return self.params.num_words

    def get_request_confirmations(self) -> int:
        return self.params.request_confirmations
