"""
狀態機：集中管理 Raffle 的所有狀態轉換

合法轉換：
    OPEN -> CALCULATING   （perform_upkeep 成功送出亂數請求）
    CALCULATING -> OPEN   （fulfill 成功並派彩）

其他轉換（包含 CALCULATING -> CALCULATING）一律拒絕
"""
import logging

from models import Raffle, RaffleState
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


class RaffleStateMachine:
    """Raffle 狀態機"""

    TRANSITIONS = {
        RaffleState.OPEN: {RaffleState.CALCULATING},
        RaffleState.CALCULATING: {RaffleState.OPEN},
    }

    @classmethod
    def can_transition(cls, current: RaffleState, target: RaffleState) -> bool:
        return target in cls.TRANSITIONS.get(current, set())

    @classmethod
    def transition(cls, raffle: Raffle, target: RaffleState) -> Raffle:
        """
        轉換 Raffle 狀態

        參數：
            raffle: 已鎖定的 Raffle
            target: 目標狀態

        返回：
            更新後的 Raffle

        異常：
            InvalidStateTransition: 不合法的轉換
        """
        current = raffle.state
        if not cls.can_transition(current, target):
            raise InvalidStateTransition(
                f"Cannot transition raffle from {current.value} to {target.value}"
            )

        raffle.state = target
        logger.info(
            f"Raffle round {raffle.round_number}: {current.value} -> {target.value}"
        )
        return raffle
