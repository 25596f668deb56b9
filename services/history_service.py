"""
Round history service.

Builds the list of completed rounds (winner, prize, participant count)
straight from the persisted RoundResult records.
"""
from typing import List, Dict, Any

from sqlalchemy.orm import Session

from models import RoundResult
from services.units import format_ether


def get_round_history(db: Session, limit: int = 10) -> List[Dict[str, Any]]:
    """
    Return the most recent completed rounds, newest first.
    """
    rows = (
        db.query(RoundResult)
        .order_by(RoundResult.round_number.desc())
        .limit(limit)
        .all()
    )

    return [
        {
            "round_number": row.round_number,
            "request_id": row.request_id,
            "winner": row.winner,
            "winner_index": row.winner_index,
            "prize": row.prize,
            "prize_ether": format_ether(row.prize),
            "participant_count": row.participant_count,
            "started_at": row.started_at,
            "finished_at": row.finished_at,
        }
        for row in rows
    ]
