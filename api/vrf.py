"""
VRF API Endpoints

職責：
1. Oracle callback：接收亂數並結算回合
2. 開發鏈專用：透過 MockVRFCoordinator 手動完成請求

兩個 endpoint 都只接受帶有正確 X-VRF-Callback-Token 的呼叫（verify_oracle_callback），
通過之後 request id 還必須對得上目前進行中的請求
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import FulfillRequest, FulfillResponse, MockFulfillRequest
from api.dependencies import get_coordinator, verify_oracle_callback
from core.round_coordinator import RoundCoordinator
from core.exceptions import (
    NoParticipants,
    NonexistentRequest,
    OracleError,
    RaffleNotInitialized,
    TransferFailed,
    UnknownRequest,
)
from services.oracle_service import MockVRFCoordinator

router = APIRouter(prefix="/api/vrf", tags=["vrf"])
logger = logging.getLogger(__name__)


@router.post(
    "/fulfill",
    response_model=FulfillResponse,
    dependencies=[Depends(verify_oracle_callback)]
)
def fulfill_random_words(
    fulfill_data: FulfillRequest,
    db: Session = Depends(get_db),
    coordinator: RoundCoordinator = Depends(get_coordinator)
):
    """
    Oracle callback（CALCULATING -> OPEN）

    前置條件：
    - X-VRF-Callback-Token 與 vrf_callback_secret 相符（否則 401）
    - request_id 必須是目前唯一進行中的請求

    效果：
    - 得獎者 = players[random_words[0] % 參加者數量]
    - 整個獎池轉給得獎者，清空參加者，重設時鐘

    重複送同一個 request_id 會被拒絕（404）
    """
    try:
        winner = coordinator.fulfill_random_words(
            db, fulfill_data.request_id, fulfill_data.random_words
        )
        return FulfillResponse(request_id=fulfill_data.request_id, winner=winner)

    except UnknownRequest as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TransferFailed as e:
        raise HTTPException(status_code=502, detail=str(e))
    except NoParticipants as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RaffleNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to fulfill random words: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post(
    "/mock/{request_id}/fulfill",
    response_model=FulfillResponse,
    dependencies=[Depends(verify_oracle_callback)]
)
def mock_fulfill_random_words(
    request_id: int,
    mock_data: MockFulfillRequest,
    db: Session = Depends(get_db),
    coordinator: RoundCoordinator = Depends(get_coordinator)
):
    """
    開發鏈專用：讓 MockVRFCoordinator 完成請求並回呼 Raffle

    random_words 不填則由 request id 推導
    """
    oracle = coordinator.oracle
    if not isinstance(oracle, MockVRFCoordinator):
        raise HTTPException(status_code=404, detail="Mock coordinator is not enabled")

    winners = []

    def consumer(rid, words):
        winners.append(coordinator.fulfill_random_words(db, rid, words))

    try:
        oracle.fulfill_random_words(request_id, consumer, words=mock_data.random_words)
        return FulfillResponse(request_id=request_id, winner=winners[0])

    except (NonexistentRequest, UnknownRequest) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (TransferFailed, OracleError) as e:
        raise HTTPException(status_code=502, detail=str(e))
    except NoParticipants as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RaffleNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to fulfill mock request: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
