"""
Upkeep 服務：判斷回合是否應該關閉

純計算邏輯，不讀寫資料庫、不發出亂數請求
外部 keeper 可以用任意頻率輪詢
"""
from dataclasses import dataclass

from models import RaffleState


@dataclass(frozen=True)
class UpkeepResult:
    upkeep_needed: bool
    reason: str


def check_upkeep(
    state: RaffleState,
    elapsed: int,
    interval: int,
    pool: int,
    num_players: int
) -> UpkeepResult:
    """
    判斷回合是否可以關閉

    四個條件同時成立才回傳 True：
    1. state == OPEN
    2. elapsed >= interval
    3. pool > 0
    4. num_players > 0

    參數：
        state: 目前回合階段
        elapsed: 回合已經過的秒數
        interval: 回合最短持續秒數
        pool: 獎池（wei）
        num_players: 參加者數量

    返回：
        UpkeepResult，reason 是第一個不成立的條件（全部成立時為 "ok"）

    範例：
        check_upkeep(RaffleState.OPEN, 31, 30, 10**16, 1) -> (True, "ok")
        check_upkeep(RaffleState.OPEN, 29, 30, 10**16, 1) -> (False, "interval not elapsed")
    """
    if state != RaffleState.OPEN:
        return UpkeepResult(False, "raffle not open")
    if elapsed < interval:
        return UpkeepResult(False, "interval not elapsed")
    if pool <= 0:
        return UpkeepResult(False, "no balance")
    if num_players <= 0:
        return UpkeepResult(False, "no players")
    return UpkeepResult(True, "ok")
