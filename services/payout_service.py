"""
派彩服務：把獎池轉給得獎者

目前的實作是資料庫帳本：把金額加到得獎者的 Account.balance
不改變 Raffle 的狀態（由 RoundCoordinator 負責）
"""
import logging

from sqlalchemy.orm import Session

from models import Account
from core.exceptions import TransferFailed

logger = logging.getLogger(__name__)


def get_or_create_account(db: Session, address: str) -> Account:
    account = db.query(Account).filter(Account.address == address).first()
    if not account:
        account = Account(address=address, balance=0, accepts_payments=True)
        db.add(account)
        db.flush()
    return account


def get_balance(db: Session, address: str) -> int:
    """查詢帳戶餘額（帳戶不存在時為 0）"""
    account = db.query(Account).filter(Account.address == address).first()
    return account.balance if account else 0


def transfer(db: Session, recipient: str, amount: int) -> Account:
    """
    轉帳給得獎者

    參數：
        db: SQLAlchemy Session
        recipient: 收款地址
        amount: 金額（wei）

    返回：
        更新後的 Account

    異常：
        TransferFailed: 收款帳戶拒收（accepts_payments=False）或金額不合法

    注意：
        - 只 flush 不 commit，失敗時由外層 transaction 整個 rollback
    """
    if amount < 0:
        raise TransferFailed(recipient, amount, "negative amount")

    account = get_or_create_account(db, recipient)
    if not account.accepts_payments:
        raise TransferFailed(recipient, amount, "recipient does not accept payments")

    account.balance = account.balance + amount
    db.flush()

    logger.info(f"Transferred {amount} wei to {recipient}")
    return account
