"""
Raffle API Endpoints

職責：
1. 參加者入場
2. 唯讀查詢：entrance fee、參加者、回合狀態、最近得獎者、歷史、通知
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import get_db
from models import EventType
from schemas import (
    EnterRequest,
    EnterResponse,
    EntranceFeeResponse,
    EventResponse,
    IntervalResponse,
    LastTimestampResponse,
    NumPlayersResponse,
    NumWordsResponse,
    PlayerResponse,
    PlayersResponse,
    RaffleStateResponse,
    RecentWinnerResponse,
    RequestConfirmationsResponse,
    RoundHistoryItem,
)
from api.dependencies import get_coordinator
from core.round_coordinator import RoundCoordinator
from core.event_log import list_events
from core.exceptions import (
    InsufficientValue,
    PlayerIndexOutOfRange,
    RaffleNotInitialized,
    RoundNotOpen,
)
from services.history_service import get_round_history
from services.units import format_ether

router = APIRouter(prefix="/api/raffle", tags=["raffle"])
logger = logging.getLogger(__name__)


@router.post("/enter", response_model=EnterResponse)
def enter_raffle(
    entry_data: EnterRequest,
    db: Session = Depends(get_db),
    coordinator: RoundCoordinator = Depends(get_coordinator)
):
    """
    入場（參加者 endpoint）

    前置條件：
    - value >= entrance fee
    - 回合狀態必須是 OPEN

    同一個參加者可以重複入場，每次入場都是一筆獨立的中獎機會
    """
    try:
        entry = coordinator.enter(db, entry_data.participant, entry_data.value)
        return EnterResponse(
            participant=entry.participant,
            position=entry.position,
            round_number=entry.round_number
        )

    except InsufficientValue as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RoundNotOpen as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RaffleNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to enter raffle: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/entrance-fee", response_model=EntranceFeeResponse)
def get_entrance_fee(
    db: Session = Depends(get_db),
    coordinator: RoundCoordinator = Depends(get_coordinator)
):
    try:
        fee = coordinator.get_entrance_fee(db)
        return EntranceFeeResponse(entrance_fee=fee, entrance_fee_ether=format_ether(fee))
    except RaffleNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/players/{index}", response_model=PlayerResponse)
def get_player(
    index: int,
    db: Session = Depends(get_db),
    coordinator: RoundCoordinator = Depends(get_coordinator)
):
    """取得第 index 筆參加者（0 開始，依入場順序）"""
    try:
        participant = coordinator.get_player(db, index)
        return PlayerResponse(index=index, participant=participant)
    except PlayerIndexOutOfRange as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RaffleNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/players", response_model=PlayersResponse)
def get_players(
    db: Session = Depends(get_db),
    coordinator: RoundCoordinator = Depends(get_coordinator)
):
    try:
        raffle = coordinator.get_raffle(db)
        return PlayersResponse(
            round_number=raffle.round_number,
            players=coordinator.get_players(db)
        )
    except RaffleNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/num-players", response_model=NumPlayersResponse)
def get_num_players(
    db: Session = Depends(get_db),
    coordinator: RoundCoordinator = Depends(get_coordinator)
):
    try:
        return NumPlayersResponse(num_players=coordinator.get_num_players(db))
    except RaffleNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/state", response_model=RaffleStateResponse)
def get_raffle_state(
    db: Session = Depends(get_db),
    coordinator: RoundCoordinator = Depends(get_coordinator)
):
    """
    取得回合狀態

    返回：
        - state: OPEN / CALCULATING
        - pool: 獎池（wei）
        - pending_request_id: 等待中的亂數請求（OPEN 時為 null）
    """
    try:
        raffle = coordinator.get_raffle(db)
        return RaffleStateResponse(
            state=raffle.state,
            round_number=raffle.round_number,
            pool=raffle.pool,
            pool_ether=format_ether(raffle.pool),
            num_players=coordinator.get_num_players(db),
            last_timestamp=raffle.last_timestamp,
            interval=raffle.interval,
            recent_winner=raffle.recent_winner,
            pending_request_id=coordinator.get_pending_request_id(db)
        )
    except RaffleNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/recent-winner", response_model=RecentWinnerResponse)
def get_recent_winner(
    db: Session = Depends(get_db),
    coordinator: RoundCoordinator = Depends(get_coordinator)
):
    try:
        return RecentWinnerResponse(recent_winner=coordinator.get_recent_winner(db))
    except RaffleNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/last-timestamp", response_model=LastTimestampResponse)
def get_last_timestamp(
    db: Session = Depends(get_db),
    coordinator: RoundCoordinator = Depends(get_coordinator)
):
    try:
        return LastTimestampResponse(last_timestamp=coordinator.get_last_timestamp(db))
    except RaffleNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/interval", response_model=IntervalResponse)
def get_interval(
    db: Session = Depends(get_db),
    coordinator: RoundCoordinator = Depends(get_coordinator)
):
    try:
        return IntervalResponse(interval=coordinator.get_interval(db))
    except RaffleNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/num-words", response_model=NumWordsResponse)
def get_num_words(coordinator: RoundCoordinator = Depends(get_coordinator)):
    """每次請求的 random word 數量"""
    return NumWordsResponse(num_words=coordinator.get_num_words())


@router.get("/request-confirmations", response_model=RequestConfirmationsResponse)
def get_request_confirmations(coordinator: RoundCoordinator = Depends(get_coordinator)):
    """oracle 回應前需要等待的確認數"""
    return RequestConfirmationsResponse(
        request_confirmations=coordinator.get_request_confirmations()
    )


@router.get("/history", response_model=list[RoundHistoryItem])
def get_history(limit: int = Query(10, ge=1, le=100), db: Session = Depends(get_db)):
    """已完成回合（新到舊）"""
    return [RoundHistoryItem(**item) for item in get_round_history(db, limit=limit)]


@router.get("/events", response_model=list[EventResponse])
def get_events(
    after_id: int = Query(0, ge=0),
    event_type: Optional[EventType] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db)
):
    """
    取得通知（依發生順序）

    短輪詢：用上次拿到的最後一個 id 當 after_id
    """
    events = list_events(db, after_id=after_id, event_type=event_type, limit=limit)
    return [
        EventResponse(
            id=event.id,
            round_number=event.round_number,
            event_type=event.event_type,
            data=event.data,
            created_at=event.created_at
        )
        for event in events
    ]
