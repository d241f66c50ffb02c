"""Injected cache for the expensive intelligence computations.

Values are stored as JSON-compatible data and re-validated on read, so every
backend (no-op, process memory, database rows) behaves the same way. A miss is
always satisfied by recomputation; a failing backend degrades to a miss.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from threading import Lock
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from autogift.core.intelligence.clock import Clock, utcnow
from autogift.domains.autogifting.models.cache_models import GiftIntelligenceCache
from autogift.extensions import db

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300

# Width of gift_intelligence_cache.intelligence_type
MAX_INTELLIGENCE_TYPE_LENGTH = 64


@dataclass(frozen=True)
class CacheKey:
    requester_id: int
    recipient_id: Optional[int]
    intelligence_type: str


def qualified_type(intelligence_type: str, qualifier: str) -> str:
    """``type:qualifier``, hashing the qualifier when the result would not fit the column."""
    qualified = f"{intelligence_type}:{qualifier}"
    if len(qualified) <= MAX_INTELLIGENCE_TYPE_LENGTH:
        return qualified
    digest = hashlib.sha1(qualifier.encode("utf-8")).hexdigest()
    return f"{intelligence_type}:{digest}"[:MAX_INTELLIGENCE_TYPE_LENGTH]


class IntelligenceCache:
    """Base cache: subclasses implement storage, this class implements policy."""

    backend = "base"

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock: Clock = utcnow) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def get(self, key: CacheKey) -> Any:
        raise NotImplementedError

    def set(self, key: CacheKey, value: Any, expires_at: datetime) -> None:
        raise NotImplementedError

    def expire(self, key: CacheKey) -> None:
        raise NotImplementedError

    def invalidate(self, requester_id: int) -> int:
        """Drop every entry computed for ``requester_id``; returns entries removed."""
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def cached(
        self,
        key: CacheKey,
        compute: Callable[[], Optional[T]],
        adapter: TypeAdapter,
    ) -> Optional[T]:
        """Return the cached value for ``key`` or compute and store it.

        ``None`` results are returned but never stored.
        """
        raw = self.get(key)
        if raw is not None:
            try:
                return adapter.validate_python(raw)
            except ValidationError:
                logger.warning("Discarding unreadable cache entry %s", key)
                self.expire(key)

        value = compute()
        if value is not None:
            expires_at = self._clock() + timedelta(seconds=self.ttl_seconds)
            self.set(key, adapter.dump_python(value, mode="json"), expires_at)
        return value


class NullIntelligenceCache(IntelligenceCache):
    backend = "none"

    def get(self, key: CacheKey) -> Any:
        return None

    def set(self, key: CacheKey, value: Any, expires_at: datetime) -> None:
        return None

    def expire(self, key: CacheKey) -> None:
        return None

    def invalidate(self, requester_id: int) -> int:
        return 0

    def clear(self) -> None:
        return None


class InMemoryIntelligenceCache(IntelligenceCache):
    """Process-local entries; expired ones are pruned on every write."""

    backend = "memory"

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock: Clock = utcnow) -> None:
        super().__init__(ttl_seconds=ttl_seconds, clock=clock)
        self._lock = Lock()
        self._entries: Dict[CacheKey, Tuple[Any, datetime]] = {}

    def get(self, key: CacheKey) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: CacheKey, value: Any, expires_at: datetime) -> None:
        with self._lock:
            self._prune(self._clock())
            self._entries[key] = (value, expires_at)

    def purge_expired(self) -> int:
        with self._lock:
            return self._prune(self._clock())

    def _prune(self, now: datetime) -> int:
        stale = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def expire(self, key: CacheKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate(self, requester_id: int) -> int:
        with self._lock:
            stale = [key for key in self._entries if key.requester_id == requester_id]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DatabaseIntelligenceCache(IntelligenceCache):
    """Rows in ``gift_intelligence_cache``; one live row per key."""

    backend = "database"

    @staticmethod
    def _query(key: CacheKey):
        query = GiftIntelligenceCache.query.filter(
            GiftIntelligenceCache.user_id == key.requester_id,
            GiftIntelligenceCache.intelligence_type == key.intelligence_type,
        )
        if key.recipient_id is None:
            return query.filter(GiftIntelligenceCache.recipient_id.is_(None))
        return query.filter(GiftIntelligenceCache.recipient_id == key.recipient_id)

    def get(self, key: CacheKey) -> Any:
        try:
            row = (
                self._query(key)
                .filter(GiftIntelligenceCache.expires_at > self._clock())
                .order_by(GiftIntelligenceCache.created_at.desc(), GiftIntelligenceCache.id.desc())
                .first()
            )
        except SQLAlchemyError:
            db.session.rollback()
            logger.warning("Intelligence cache read failed for %s", key, exc_info=True)
            return None
        if row is None:
            return None
        return (row.cache_data or {}).get("value")

    def set(self, key: CacheKey, value: Any, expires_at: datetime) -> None:
        try:
            self._query(key).delete(synchronize_session=False)
            db.session.add(
                GiftIntelligenceCache(
                    user_id=key.requester_id,
                    recipient_id=key.recipient_id,
                    intelligence_type=key.intelligence_type,
                    cache_data={"value": value},
                    expires_at=expires_at,
                    created_at=self._clock(),
                )
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.warning("Intelligence cache write failed for %s", key, exc_info=True)

    def expire(self, key: CacheKey) -> None:
        try:
            self._query(key).delete(synchronize_session=False)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.warning("Intelligence cache expire failed for %s", key, exc_info=True)

    def invalidate(self, requester_id: int) -> int:
        try:
            removed = GiftIntelligenceCache.query.filter(
                GiftIntelligenceCache.user_id == requester_id
            ).delete(synchronize_session=False)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.warning("Intelligence cache invalidate failed for user %s", requester_id, exc_info=True)
            return 0
        return int(removed or 0)

    def purge_expired(self) -> int:
        removed = GiftIntelligenceCache.query.filter(
            GiftIntelligenceCache.expires_at <= self._clock()
        ).delete(synchronize_session=False)
        db.session.commit()
        return int(removed or 0)

    def clear(self) -> None:
        GiftIntelligenceCache.query.delete(synchronize_session=False)
        db.session.commit()
