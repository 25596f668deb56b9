from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, conint

from models import EventType, RaffleState


# VRF random word：uint256
RandomWord = conint(ge=0, lt=2 ** 256)


# ============ Raffle ============

class EnterRequest(BaseModel):
    participant: str = Field(..., min_length=1, max_length=128)
    value: int = Field(..., ge=0, description="Amount paid, in wei")


class EnterResponse(BaseModel):
    participant: str
    position: int
    round_number: int


class EntranceFeeResponse(BaseModel):
    entrance_fee: int
    entrance_fee_ether: str


class PlayerResponse(BaseModel):
    index: int
    participant: str


class PlayersResponse(BaseModel):
    round_number: int
    players: List[str]


class NumPlayersResponse(BaseModel):
    num_players: int


class RaffleStateResponse(BaseModel):
    state: RaffleState
    round_number: int
    pool: int
    pool_ether: str
    num_players: int
    last_timestamp: int
    interval: int
    recent_winner: Optional[str] = None
    pending_request_id: Optional[int] = None


class RecentWinnerResponse(BaseModel):
    recent_winner: Optional[str] = None


class LastTimestampResponse(BaseModel):
    last_timestamp: int


class IntervalResponse(BaseModel):
    interval: int


class NumWordsResponse(BaseModel):
    num_words: int


class RequestConfirmationsResponse(BaseModel):
    request_confirmations: int


class RoundHistoryItem(BaseModel):
    round_number: int
    request_id: int
    winner: str
    winner_index: int
    prize: int
    prize_ether: str
    participant_count: int
    started_at: int
    finished_at: int


class EventResponse(BaseModel):
    id: int
    round_number: int
    event_type: EventType
    data: Dict[str, Any]
    created_at: datetime


# ============ Upkeep ============

class CheckUpkeepResponse(BaseModel):
    upkeep_needed: bool
    perform_data: str
    reason: str


class PerformUpkeepRequest(BaseModel):
    perform_data: str = "0x"


class PerformUpkeepResponse(BaseModel):
    request_id: int


# ============ VRF ============

class FulfillRequest(BaseModel):
    request_id: int
    random_words: List[RandomWord] = Field(..., min_length=1)


class FulfillResponse(BaseModel):
    request_id: int
    winner: str


class MockFulfillRequest(BaseModel):
    random_words: Optional[List[RandomWord]] = None


# ============ Account ============

class AccountResponse(BaseModel):
    address: str
    balance: int
    balance_ether: str


class ActionResponse(BaseModel):
    status: str
