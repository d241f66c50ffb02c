"""Outbox staging for events consumed by the notification/approval workers."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from autogift.extensions import db
from autogift.platform.outbox.models import OutboxMessage

STATUS_PENDING = "pending"


def enqueue(
    event_name: str,
    payload: dict,
    user_id: Optional[int],
    available_at: Optional[datetime] = None,
) -> OutboxMessage:
    """
    Stage an event in the outbox. Caller should commit alongside domain changes.
    """
    message = OutboxMessage(
        event_type=event_name,
        payload=payload or {},
        user_id=user_id,
        available_at=available_at or datetime.utcnow(),
        status=STATUS_PENDING,
        attempts=0,
    )
    db.session.add(message)
    return message


def list_pending(
    event_type: Optional[str] = None,
    user_id: Optional[int] = None,
    limit: int = 50,
) -> List[OutboxMessage]:
    """Return pending messages oldest-first for downstream dispatchers."""
    query = OutboxMessage.query.filter(OutboxMessage.status == STATUS_PENDING)
    if event_type:
        query = query.filter(OutboxMessage.event_type == event_type)
    if user_id is not None:
        query = query.filter(OutboxMessage.user_id == user_id)
    return query.order_by(OutboxMessage.available_at, OutboxMessage.id).limit(limit).all()
