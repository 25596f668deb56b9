"""
得獎者服務：把亂數對應到一筆參加記錄

純計算邏輯

注意：
    random_value % participant_count 在 participant_count 不能整除亂數值域時
    會有些微偏差；參加者數量小時可以忽略，這裡不做 rejection sampling
"""
from core.exceptions import NoParticipants


def pick_winner_index(random_value: int, participant_count: int) -> int:
    """
    計算得獎者 index

    參數：
        random_value: oracle 提供的亂數（非負整數）
        participant_count: 參加記錄數量（重複參加算多筆）

    返回：
        random_value % participant_count

    異常：
        NoParticipants: participant_count <= 0
        ValueError: random_value < 0

    範例：
        pick_winner_index(7, 1) -> 0
        pick_winner_index(7, 4) -> 3
    """
    if participant_count <= 0:
        raise NoParticipants("Cannot pick a winner without participants")
    if random_value < 0:
        raise ValueError(f"Random value must be non-negative, got {random_value}")
    return random_value % participant_count
