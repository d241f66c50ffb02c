"""SQLAlchemy-backed stores.

Every database error surfaces as ``UpstreamFetchFailure`` so the engine can
apply its fallback policy without knowing about the ORM. Writes stage their
outbox event in the same transaction as the domain change.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from autogift.core.intelligence.errors import UpstreamFetchFailure
from autogift.core.intelligence.schemas import (
    AutoGiftRuleRecord,
    ConnectionRecord,
    GiftingHistory,
    GiftPreferences,
    MessageRecord,
    ProfilePreferences,
    RuleIntelligenceSnapshot,
    SpecialDateRecord,
    WishlistItemRecord,
    WishlistRecord,
)
from autogift.core.intelligence.stores import EngineStores, StagedEvent
from autogift.domains.autogifting.models.rule_models import AutoGiftingRule
from autogift.domains.connections.models.connection_models import UserConnection, UserSpecialDate
from autogift.domains.messaging.models.message_models import Message
from autogift.domains.profiles.models.profile_models import Profile
from autogift.domains.wishlists.models.wishlist_models import Wishlist
from autogift.extensions import db
from autogift.platform.outbox import enqueue as enqueue_outbox

logger = logging.getLogger(__name__)

CONNECTION_STATUS_ACCEPTED = "accepted"

M = TypeVar("M", bound=BaseModel)


def _parse_blob(model: Type[M], raw: Any, *, user_id: int, field: str) -> M:
    """Validate a stored JSON blob, falling back to the model's typed defaults."""
    try:
        return model.model_validate(raw if isinstance(raw, dict) else {})
    except ValidationError:
        logger.warning("Ignoring malformed %s for user %s", field, user_id)
        return model()


def _to_connection_record(connection: UserConnection, dates: List[UserSpecialDate]) -> ConnectionRecord:
    return ConnectionRecord(
        id=connection.id,
        owner_id=connection.user_id,
        recipient_id=connection.connected_user_id,
        relationship_type=connection.relationship_type,
        status=connection.status,
        created_at=connection.created_at,
        data_access_permissions=connection.data_access_permissions or {},
        special_dates=[
            SpecialDateRecord(owner_id=row.user_id, date_type=row.date_type, value=row.date)
            for row in dates
        ],
    )


def _to_rule_record(rule: AutoGiftingRule) -> AutoGiftRuleRecord:
    return AutoGiftRuleRecord(
        id=rule.id,
        user_id=rule.user_id,
        recipient_id=rule.recipient_id,
        date_type=rule.date_type,
        is_active=rule.is_active,
        budget_limit=float(rule.budget_limit) if rule.budget_limit is not None else None,
        gift_preferences=rule.gift_preferences,
        relationship_context=rule.relationship_context,
        recipient_lifestyle_factors=rule.recipient_lifestyle_factors,
        seasonal_adjustment_factors=rule.seasonal_adjustment_factors,
        success_metrics=rule.success_metrics,
        created_at=rule.created_at,
        updated_at=rule.updated_at,
    )


def _stage(event: Optional[StagedEvent], user_id: int, **extra: Any) -> None:
    if event is not None:
        enqueue_outbox(event.event_type, {**event.payload, **extra}, user_id=user_id)


class SqlConnectionStore:
    def get_connection(self, owner_id: int, recipient_id: int) -> Optional[ConnectionRecord]:
        try:
            connection = UserConnection.query.filter_by(
                user_id=owner_id,
                connected_user_id=recipient_id,
            ).first()
        except SQLAlchemyError as exc:
            raise UpstreamFetchFailure("connections", str(exc)) from exc
        if connection is None:
            return None
        return _to_connection_record(connection, [])

    def list_accepted_connections(self, user_id: int) -> List[ConnectionRecord]:
        try:
            rows = (
                db.session.query(UserConnection, UserSpecialDate)
                .outerjoin(UserSpecialDate, UserSpecialDate.user_id == UserConnection.connected_user_id)
                .filter(
                    UserConnection.user_id == user_id,
                    UserConnection.status == CONNECTION_STATUS_ACCEPTED,
                )
                .order_by(UserConnection.id, UserSpecialDate.id)
                .all()
            )
        except SQLAlchemyError as exc:
            raise UpstreamFetchFailure("connections", str(exc)) from exc

        grouped: "OrderedDict[int, tuple]" = OrderedDict()
        for connection, special_date in rows:
            _, dates = grouped.setdefault(connection.id, (connection, []))
            if special_date is not None:
                dates.append(special_date)
        return [_to_connection_record(connection, dates) for connection, dates in grouped.values()]


class SqlMessageStore:
    def list_recent_messages(self, user_a: int, user_b: int, limit: int) -> List[MessageRecord]:
        try:
            rows = (
                Message.query.filter(
                    or_(
                        and_(Message.sender_id == user_a, Message.recipient_id == user_b),
                        and_(Message.sender_id == user_b, Message.recipient_id == user_a),
                    )
                )
                .order_by(Message.created_at.desc(), Message.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as exc:
            raise UpstreamFetchFailure("messages", str(exc)) from exc
        return [
            MessageRecord(sender_id=row.sender_id, recipient_id=row.recipient_id, created_at=row.created_at)
            for row in rows
        ]


class SqlProfileStore:
    def get_preferences(self, user_id: int) -> Optional[ProfilePreferences]:
        try:
            profile = db.session.get(Profile, user_id)
        except SQLAlchemyError as exc:
            raise UpstreamFetchFailure("profiles", str(exc)) from exc
        if profile is None:
            return None
        return ProfilePreferences(
            user_id=user_id,
            interests=profile.interests or [],
            gift_preferences=_parse_blob(
                GiftPreferences, profile.gift_preferences, user_id=user_id, field="gift_preferences"
            ),
            gifting_history=_parse_blob(
                GiftingHistory, profile.gifting_history, user_id=user_id, field="gifting_history"
            ),
        )

    def save_gifting_history(
        self,
        user_id: int,
        history: GiftingHistory,
        event: Optional[StagedEvent] = None,
    ) -> None:
        try:
            profile = db.session.get(Profile, user_id)
            if profile is None:
                profile = Profile(user_id=user_id, interests=[], gift_preferences={})
                db.session.add(profile)
            profile.gifting_history = history.model_dump(mode="json")
            profile.updated_at = datetime.utcnow()
            _stage(event, user_id)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise UpstreamFetchFailure("profiles", str(exc)) from exc


class SqlWishlistStore:
    def list_public_wishlists(self, user_id: int) -> List[WishlistRecord]:
        try:
            wishlists = (
                Wishlist.query.options(selectinload(Wishlist.items))
                .filter(Wishlist.user_id == user_id, Wishlist.is_public.is_(True))
                .order_by(Wishlist.id)
                .all()
            )
        except SQLAlchemyError as exc:
            raise UpstreamFetchFailure("wishlists", str(exc)) from exc
        return [
            WishlistRecord(
                id=wishlist.id,
                owner_id=wishlist.user_id,
                category=wishlist.category,
                is_public=wishlist.is_public,
                items=[
                    WishlistItemRecord(
                        name=item.name,
                        brand=item.brand,
                        price=float(item.price) if item.price is not None else None,
                    )
                    for item in sorted(wishlist.items, key=lambda i: i.id)
                ],
            )
            for wishlist in wishlists
        ]


class SqlRuleStore:
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
        try:
            rule = AutoGiftingRule(
                user_id=user_id,
                recipient_id=recipient_id,
                date_type=date_type,
                is_active=True,
                budget_limit=budget_limit,
                gift_preferences=gift_preferences or {},
                relationship_context=snapshot.relationship_context,
                recipient_lifestyle_factors=snapshot.recipient_lifestyle_factors,
                seasonal_adjustment_factors=snapshot.seasonal_adjustment_factors,
                success_metrics=snapshot.success_metrics,
            )
            db.session.add(rule)
            db.session.flush()
            _stage(event, user_id, rule_id=rule.id)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise UpstreamFetchFailure("rules", str(exc)) from exc
        return _to_rule_record(rule)

    def get_rule(self, user_id: int, rule_id: int) -> Optional[AutoGiftRuleRecord]:
        try:
            rule = AutoGiftingRule.query.filter_by(id=rule_id, user_id=user_id).first()
        except SQLAlchemyError as exc:
            raise UpstreamFetchFailure("rules", str(exc)) from exc
        return _to_rule_record(rule) if rule is not None else None

    def update_rule_intelligence(
        self,
        rule_id: int,
        snapshot: RuleIntelligenceSnapshot,
        event: Optional[StagedEvent] = None,
    ) -> AutoGiftRuleRecord:
        try:
            rule = db.session.get(AutoGiftingRule, rule_id)
            if rule is None:
                raise UpstreamFetchFailure("rules", f"rule {rule_id} disappeared")
            rule.relationship_context = snapshot.relationship_context
            rule.recipient_lifestyle_factors = snapshot.recipient_lifestyle_factors
            rule.seasonal_adjustment_factors = snapshot.seasonal_adjustment_factors
            rule.success_metrics = snapshot.success_metrics
            _stage(event, rule.user_id)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise UpstreamFetchFailure("rules", str(exc)) from exc
        return _to_rule_record(rule)


def sql_stores() -> EngineStores:
    return EngineStores(
        connections=SqlConnectionStore(),
        messages=SqlMessageStore(),
        profiles=SqlProfileStore(),
        wishlists=SqlWishlistStore(),
        rules=SqlRuleStore(),
    )
