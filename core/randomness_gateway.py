"""
Randomness Gateway：管理唯一一筆進行中的亂數請求

職責：
1. 在回合關閉時送出亂數請求，並記錄成 PendingRequest
2. 亂數回來時比對 request id，成功就消耗掉 PendingRequest

規則：
- 每個回合最多一筆 PendingRequest
- request id 對不上（從未請求、已被消耗、屬於其他回合）一律拒絕，不修改任何狀態
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from config import OracleParams
from models import EventType, PendingRequest, Raffle, RaffleState
from core.event_log import emit
from core.exceptions import InvalidStateTransition, UnknownRequest

logger = logging.getLogger(__name__)


class RandomnessGateway:
    """亂數請求 / 回應的對應"""

    def __init__(self, oracle, params: OracleParams):
        self.oracle = oracle
        self.params = params

    def request(self, db: Session, raffle: Raffle) -> int:
        """
        向 oracle 送出亂數請求

        前置條件：
        - Raffle 已經轉成 CALCULATING（同一個 transaction 內）
        - 目前沒有 PendingRequest

        返回：
            oracle 給的 request id

        異常：
            InvalidStateTransition: 前置條件不成立
            OracleError: oracle 拒絕（例如 subscription 餘額不足）

        注意：
            任何異常都會讓外層 transaction rollback，狀態維持 OPEN
        """
        if raffle.state != RaffleState.CALCULATING:
            raise InvalidStateTransition(
                f"Randomness can only be requested while closing, state is {raffle.state.value}"
            )

        existing = self.get_pending(db)
        if existing:
            raise InvalidStateTransition(
                f"Request {existing.request_id} is already pending for round {existing.round_number}"
            )

        request_id = self.oracle.request_random_words(
            key_hash=self.params.key_hash,
            subscription_id=self.params.subscription_id,
            request_confirmations=self.params.request_confirmations,
            callback_gas_limit=self.params.callback_gas_limit,
            num_words=self.params.num_words,
            consumer=self.params.consumer,
        )

        db.add(PendingRequest(request_id=request_id, round_number=raffle.round_number))
        emit(db, raffle.round_number, EventType.RANDOMNESS_REQUESTED, {"request_id": request_id})

        logger.info(f"Requested randomness for round {raffle.round_number}: request {request_id}")
        return request_id

    def consume(self, db: Session, raffle: Raffle, request_id: int) -> PendingRequest:
        """
        消耗與 request_id 對應的 PendingRequest

        異常：
            UnknownRequest: 不是目前回合唯一進行中的請求
        """
        pending = db.query(PendingRequest).filter(
            PendingRequest.request_id == request_id,
            PendingRequest.round_number == raffle.round_number
        ).first()

        if not pending or raffle.state != RaffleState.CALCULATING:
            logger.warning(
                f"Rejected fulfillment for unknown request {request_id} "
                f"(round {raffle.round_number}, state {raffle.state.value})"
            )
            raise UnknownRequest(request_id)

        db.delete(pending)
        db.flush()
        return pending

    @staticmethod
    def get_pending(db: Session) -> Optional[PendingRequest]:
        return db.query(PendingRequest).first()
