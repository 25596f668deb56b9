"""
Upkeep API Endpoints - keeper 輪詢版

重點：
1. check 是純讀取，可以任意頻率呼叫，不會送出亂數請求
2. perform 會在鎖內重新檢查條件，keeper 看到的結果過期也不會出錯
3. 任何人都可以呼叫 perform
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import CheckUpkeepResponse, PerformUpkeepRequest, PerformUpkeepResponse
from api.dependencies import get_coordinator
from core.round_coordinator import RoundCoordinator
from core.exceptions import OracleError, RaffleNotInitialized, UpkeepNotNeeded

router = APIRouter(prefix="/api/upkeep", tags=["upkeep"])
logger = logging.getLogger(__name__)


def decode_hex(data: str) -> bytes:
    """
    "0x1234" -> b"\\x12\\x34"

    異常：
        ValueError: 不是合法的 hex 字串
    """
    if data.startswith("0x") or data.startswith("0X"):
        data = data[2:]
    return bytes.fromhex(data)


def encode_hex(data: bytes) -> str:
    return "0x" + data.hex()


@router.get("/check", response_model=CheckUpkeepResponse)
def check_upkeep(
    check_data: str = Query("0x"),
    db: Session = Depends(get_db),
    coordinator: RoundCoordinator = Depends(get_coordinator)
):
    """
    keeper 輪詢：回合是否可以關閉

    返回：
        - upkeep_needed: OPEN 且時間已到且有獎池且有參加者
        - perform_data: 原樣回傳 check_data
        - reason: 第一個不成立的條件（成立時為 "ok"）
    """
    try:
        data = decode_hex(check_data)
        result = coordinator.evaluate_upkeep(db)
        return CheckUpkeepResponse(
            upkeep_needed=result.upkeep_needed,
            perform_data=encode_hex(data),
            reason=result.reason
        )

    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid check_data: {e}")
    except RaffleNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to check upkeep: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/perform", response_model=PerformUpkeepResponse)
def perform_upkeep(
    upkeep_data: PerformUpkeepRequest,
    db: Session = Depends(get_db),
    coordinator: RoundCoordinator = Depends(get_coordinator)
):
    """
    關閉回合並送出亂數請求（OPEN -> CALCULATING）

    前置條件：
    - check_upkeep 在執行當下必須成立

    失敗時狀態維持 OPEN，呼叫者可以重試
    """
    try:
        data = decode_hex(upkeep_data.perform_data)
        request_id = coordinator.perform_upkeep(db, data)
        return PerformUpkeepResponse(request_id=request_id)

    except UpkeepNotNeeded as e:
        raise HTTPException(status_code=409, detail=str(e))
    except OracleError as e:
        logger.error(f"Randomness request failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid perform_data: {e}")
    except RaffleNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to perform upkeep: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
