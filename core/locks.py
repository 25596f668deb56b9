"""
並發控制工具

提供 Database-level 的鎖定機制，防止競態條件（Race Condition）

主要使用 PostgreSQL 的 SELECT ... FOR UPDATE 來實現悲觀鎖（Pessimistic Locking）
SQLite 會忽略 FOR UPDATE；database.use_immediate_transactions 讓每個 transaction
以 BEGIN IMMEDIATE 開始，鎖定查詢本身就會取得整個資料庫的寫入鎖
"""
from sqlalchemy.orm import Session, Query

from models import Raffle


def with_raffle_lock(db: Session) -> Query:
    """
    鎖定 Raffle 記錄（行級鎖）

    使用場景：
    - enter / perform_upkeep / fulfill_random_words 這三個會修改狀態的入口
    - 呼叫者先前讀到的狀態可能已經過期（例如 keeper 看到 upkeep_needed=True），
      所以每個入口都要在鎖內重新檢查前置條件

    範例：
        raffle = with_raffle_lock(db).first()
        if raffle.state != RaffleState.OPEN:
            raise RoundNotOpen(...)

    參數：
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(Raffle).order_by(Raffle.id).with_for_update(nowait=False)
