"""Store interfaces the engine reads from and writes through.

The engine never touches the ORM directly. Production wiring uses the SQL
implementations in ``sql_stores``; tests inject in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from autogift.core.intelligence.schemas import (
    AutoGiftRuleRecord,
    ConnectionRecord,
    GiftingHistory,
    MessageRecord,
    ProfilePreferences,
    RuleIntelligenceSnapshot,
    WishlistRecord,
)


@dataclass(frozen=True)
class StagedEvent:
    """Domain event committed in the same transaction as a store write."""

    event_type: str
    payload: Dict[str, Any] = field(default_factory=dict)


class ConnectionStore(Protocol):
    def get_connection(self, owner_id: int, recipient_id: int) -> Optional[ConnectionRecord]:
        ...

    def list_accepted_connections(self, user_id: int) -> List[ConnectionRecord]:
        """Accepted connections with the connected user's special dates attached."""
        ...


class MessageStore(Protocol):
    def list_recent_messages(self, user_a: int, user_b: int, limit: int) -> List[MessageRecord]:
        """Messages in either direction, newest first."""
        ...


class ProfileStore(Protocol):
    def get_preferences(self, user_id: int) -> Optional[ProfilePreferences]:
        ...

    def save_gifting_history(
        self,
        user_id: int,
        history: GiftingHistory,
        event: Optional[StagedEvent] = None,
    ) -> None:
        ...


class WishlistStore(Protocol):
    def list_public_wishlists(self, user_id: int) -> List[WishlistRecord]:
        ...


class RuleStore(Protocol):
    def create_rule(
        self,
        *,
        user_id: int,
        recipient_id: int,
        date_type: str,
        snapshot: RuleIntelligenceSnapshot,
        budget_limit: Optional[float] = None,
        gift_preferences: Optional[Dict[str, Any]] = None,
        event: Optional[StagedEvent] = None,
    ) -> AutoGiftRuleRecord:
        ...

    def get_rule(self, user_id: int, rule_id: int) -> Optional[AutoGiftRuleRecord]:
        ...

    def update_rule_intelligence(
        self,
        rule_id: int,
        snapshot: RuleIntelligenceSnapshot,
        event: Optional[StagedEvent] = None,
    ) -> AutoGiftRuleRecord:
        ...


@dataclass
class EngineStores:
    connections: ConnectionStore
    messages: MessageStore
    profiles: ProfileStore
    wishlists: WishlistStore
    rules: Optional[RuleStore] = None
