"""In-memory stores for exercising the engine without a database."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from itertools import count
from typing import Any, Dict, Iterable, List, Optional, Tuple

from autogift.core.intelligence.errors import UpstreamFetchFailure
from autogift.core.intelligence.schemas import (
    AutoGiftRuleRecord,
    ConnectionRecord,
    GiftingHistory,
    MessageRecord,
    ProfilePreferences,
    RuleIntelligenceSnapshot,
    SpecialDateRecord,
    WishlistItemRecord,
    WishlistRecord,
)
from autogift.core.intelligence.stores import EngineStores, StagedEvent

FIXED_NOW = datetime(2026, 6, 1, 12, 0, 0)


class FakeBackend:
    """One object implementing every store protocol over plain dicts.

    Add a store name ("connections", "messages", "profiles", "wishlists",
    "rules") to ``failing`` to make its reads raise ``UpstreamFetchFailure``.
    """

    def __init__(self) -> None:
        self.connections: Dict[Tuple[int, int], ConnectionRecord] = {}
        self.special_dates: Dict[int, List[SpecialDateRecord]] = {}
        self.messages: List[MessageRecord] = []
        self.profiles: Dict[int, ProfilePreferences] = {}
        self.wishlists: Dict[int, List[WishlistRecord]] = {}
        self.rules: Dict[int, AutoGiftRuleRecord] = {}
        self.events: List[StagedEvent] = []
        self.failing: set = set()
        self.calls: Counter = Counter()
        self._ids = count(1)

    def stores(self) -> EngineStores:
        return EngineStores(
            connections=self,
            messages=self,
            profiles=self,
            wishlists=self,
            rules=self,
        )

    # ---- seeding helpers ----

    def add_connection(
        self,
        owner_id: int,
        recipient_id: int,
        relationship_type: str = "friend",
        created_at: Optional[datetime] = None,
        status: str = "accepted",
        permissions: Optional[Dict[str, Any]] = None,
        dates: Iterable[Tuple[str, str]] = (),
    ) -> ConnectionRecord:
        record = ConnectionRecord(
            id=next(self._ids),
            owner_id=owner_id,
            recipient_id=recipient_id,
            relationship_type=relationship_type,
            status=status,
            created_at=created_at or datetime(2020, 1, 1),
            data_access_permissions=permissions or {},
        )
        self.connections[(owner_id, recipient_id)] = record
        for date_type, value in dates:
            self.add_special_date(recipient_id, date_type, value)
        return record

    def add_special_date(self, user_id: int, date_type: str, value: str) -> None:
        self.special_dates.setdefault(user_id, []).append(
            SpecialDateRecord(owner_id=user_id, date_type=date_type, value=value)
        )

    def add_messages(self, sender_id: int, recipient_id: int, timestamps: Iterable[datetime]) -> None:
        for created_at in timestamps:
            self.messages.append(
                MessageRecord(sender_id=sender_id, recipient_id=recipient_id, created_at=created_at)
            )

    def set_profile(self, user_id: int, **fields: Any) -> ProfilePreferences:
        profile = ProfilePreferences.model_validate({"user_id": user_id, **fields})
        self.profiles[user_id] = profile
        return profile

    def add_wishlist(
        self,
        user_id: int,
        category: Optional[str] = None,
        items: Iterable[Tuple[str, Optional[float]]] = (),
        is_public: bool = True,
    ) -> WishlistRecord:
        record = WishlistRecord(
            id=next(self._ids),
            owner_id=user_id,
            category=category,
            is_public=is_public,
            items=[WishlistItemRecord(name=name, price=price) for name, price in items],
        )
        self.wishlists.setdefault(user_id, []).append(record)
        return record

    def _check(self, store: str) -> None:
        self.calls[store] += 1
        if store in self.failing:
            raise UpstreamFetchFailure(store, "simulated outage")

    # ---- ConnectionStore ----

    def get_connection(self, owner_id: int, recipient_id: int) -> Optional[ConnectionRecord]:
        self._check("connections")
        return self.connections.get((owner_id, recipient_id))

    def list_accepted_connections(self, user_id: int) -> List[ConnectionRecord]:
        self._check("connections")
        return [
            connection.model_copy(
                update={"special_dates": list(self.special_dates.get(connection.recipient_id, []))}
            )
            for (owner_id, _), connection in self.connections.items()
            if owner_id == user_id and connection.status == "accepted"
        ]

    # ---- MessageStore ----

    def list_recent_messages(self, user_a: int, user_b: int, limit: int) -> List[MessageRecord]:
        self._check("messages")
        pair = {user_a, user_b}
        between = [m for m in self.messages if {m.sender_id, m.recipient_id} == pair]
        return sorted(between, key=lambda m: m.created_at, reverse=True)[:limit]

    # ---- ProfileStore ----

    def get_preferences(self, user_id: int) -> Optional[ProfilePreferences]:
        self._check("profiles")
        return self.profiles.get(user_id)

    def save_gifting_history(
        self,
        user_id: int,
        history: GiftingHistory,
        event: Optional[StagedEvent] = None,
    ) -> None:
        self._check("profiles")
        profile = self.profiles.get(user_id) or ProfilePreferences(user_id=user_id)
        self.profiles[user_id] = profile.model_copy(update={"gifting_history": history})
        if event is not None:
            self.events.append(event)

    # ---- WishlistStore ----

    def list_public_wishlists(self, user_id: int) -> List[WishlistRecord]:
        self._check("wishlists")
        return [w for w in self.wishlists.get(user_id, []) if w.is_public]

    # ---- RuleStore ----

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
        self._check("rules")
        rule = AutoGiftRuleRecord(
            id=next(self._ids),
            user_id=user_id,
            recipient_id=recipient_id,
            date_type=date_type,
            budget_limit=budget_limit,
            gift_preferences=gift_preferences or {},
            **snapshot.model_dump(),
        )
        self.rules[rule.id] = rule
        if event is not None:
            self.events.append(
                StagedEvent(event.event_type, {**event.payload, "rule_id": rule.id})
            )
        return rule

    def get_rule(self, user_id: int, rule_id: int) -> Optional[AutoGiftRuleRecord]:
        self._check("rules")
        rule = self.rules.get(rule_id)
        return rule if rule is not None and rule.user_id == user_id else None

    def update_rule_intelligence(
        self,
        rule_id: int,
        snapshot: RuleIntelligenceSnapshot,
        event: Optional[StagedEvent] = None,
    ) -> AutoGiftRuleRecord:
        self._check("rules")
        rule = self.rules[rule_id].model_copy(update=snapshot.model_dump())
        self.rules[rule_id] = rule
        if event is not None:
            self.events.append(event)
        return rule
