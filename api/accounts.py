"""
Account API Endpoints

職責：
1. 查詢得獎者餘額
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from schemas import AccountResponse
from services.payout_service import get_balance
from services.units import format_ether

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


@router.get("/{address}", response_model=AccountResponse)
def get_account(address: str, db: Session = Depends(get_db)):
    """帳戶不存在時餘額為 0"""
    balance = get_balance(db, address)
    return AccountResponse(address=address, balance=balance, balance_ether=format_ether(balance))
