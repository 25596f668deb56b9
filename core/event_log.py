"""
Event Log：對外可觀察的通知

通知只會新增、不會修改，id 就是順序
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from models import EventLog, EventType


def emit(db: Session, round_number: int, event_type: EventType, data: Dict[str, Any]) -> EventLog:
    """新增一筆通知（flush 但不 commit，跟隨外層 transaction）"""
    event = EventLog(round_number=round_number, event_type=event_type, data=data)
    db.add(event)
    db.flush()
    return event


def list_events(
    db: Session,
    after_id: int = 0,
    event_type: Optional[EventType] = None,
    limit: int = 100
) -> List[EventLog]:
    query = db.query(EventLog).filter(EventLog.id > after_id)
    if event_type is not None:
        query = query.filter(EventLog.event_type == event_type)
    return query.order_by(EventLog.id).limit(limit).all()
