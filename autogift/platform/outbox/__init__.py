"""Transactional outbox models and helpers."""

from autogift.platform.outbox.models import OutboxMessage
from autogift.platform.outbox.services import enqueue, list_pending

__all__ = [
    "OutboxMessage",
    "enqueue",
    "list_pending",
]
