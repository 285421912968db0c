"""Durable local key-value store backed by SQLite.

Handles the database connection, session management and the handful of
keys the application persists: the two reading lists, the external
recommendations cache, the per-email magic-link markers and password-reset
cooldowns.
"""

import json
import logging
import math
import os
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Generator, Optional
from uuid import uuid4

from pydantic import ValidationError
from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base, KeyValue
from .schemas import BookLists, CachedRecommendations, Recommendation, utcnow

logger = logging.getLogger(__name__)

LISTS_KEY = "booktracker_v1"
RECOMMENDATIONS_CACHE_KEY = "leafnote_recos_cache"
MAGIC_LINK_KEY_PREFIX = "leafnote_magic_link:"
PASSWORD_RESET_KEY_PREFIX = "leafnote_password_reset:"
ANON_ID_KEY = "leafnote_anon_id"
SESSION_KEY = "leafnote_session"


def normalize_email(email: str) -> str:
    """Normalize an e-mail address for use in a store key."""
    return (email or "").strip().lower()


class LocalStore:
    """Key-value store operations manager."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses
                     LEAFNOTE_DB_PATH env var or default location.
        """
        if db_path is None:
            db_path = os.environ.get(
                "LEAFNOTE_DB_PATH",
                str(Path.home() / ".leafnote" / "leafnote.db"),
            )

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # For in-memory databases, use StaticPool to reuse the same connection
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================================================================
    # Raw Key Operations
    # ========================================================================

    def get_raw(self, key: str) -> Optional[str]:
        """Return the stored string for `key`, or None."""
        with self.get_session() as session:
            row = session.get(KeyValue, key)
            return row.value if row else None

    def set_raw(self, key: str, value: str) -> None:
        """Write `value` under `key` in a single transaction."""
        with self.get_session() as session:
            row = session.get(KeyValue, key)
            if row:
                row.value = value
            else:
                session.add(KeyValue(key=key, value=value))

    def delete(self, key: str) -> None:
        """Remove `key` if present."""
        with self.get_session() as session:
            session.execute(delete(KeyValue).where(KeyValue.key == key))

    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys, optionally filtered by prefix."""
        with self.get_session() as session:
            stmt = select(KeyValue.key).order_by(KeyValue.key)
            if prefix:
                stmt = stmt.where(KeyValue.key.startswith(prefix))
            return list(session.execute(stmt).scalars().all())

    def get_json(self, key: str) -> Optional[Any]:
        """Return the decoded JSON document under `key`.

        Raises:
            json.JSONDecodeError: If the stored value is not valid JSON
        """
        raw = self.get_raw(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set_json(self, key: str, value: Any) -> None:
        self.set_raw(key, json.dumps(value))

    # ========================================================================
    # Reading Lists
    # ========================================================================

    def load_lists(self) -> BookLists:
        """Load both reading lists.

        Unparseable data resets both lists to empty rather than failing.
        """
        try:
            data = self.get_json(LISTS_KEY)
        except json.JSONDecodeError:
            logger.warning("Local list data is corrupt; starting with empty lists")
            return BookLists()

        if not isinstance(data, dict):
            if data is not None:
                logger.warning("Local list data has unexpected shape; starting with empty lists")
            return BookLists()

        try:
            return BookLists.model_validate({
                "readBooks": data.get("readBooks") if isinstance(data.get("readBooks"), list) else [],
                "toReadBooks": data.get("toReadBooks") if isinstance(data.get("toReadBooks"), list) else [],
                "owner": data.get("owner"),
            })
        except ValidationError as e:
            logger.warning("Local list data failed validation (%s); starting with empty lists", e.error_count())
            return BookLists()

    def save_lists(self, lists: BookLists) -> None:
        """Persist both reading lists."""
        self.set_json(LISTS_KEY, lists.to_json())

    # ========================================================================
    # External Recommendations Cache
    # ========================================================================

    def load_recommendation_cache(self) -> Optional[CachedRecommendations]:
        """Load cached external results, or None if absent or unreadable."""
        try:
            data = self.get_json(RECOMMENDATIONS_CACHE_KEY)
        except json.JSONDecodeError:
            logger.warning("Recommendation cache is corrupt; ignoring it")
            return None

        if not data:
            return None

        try:
            return CachedRecommendations.model_validate(data)
        except ValidationError:
            logger.warning("Recommendation cache has unexpected shape; ignoring it")
            return None

    def save_recommendation_cache(
        self,
        results: list[Recommendation],
        ts: Optional[datetime] = None,
    ) -> CachedRecommendations:
        """Store external results stamped with `ts` (defaults to now)."""
        entry = CachedRecommendations(ts=ts or utcnow(), results=results)
        self.set_json(RECOMMENDATIONS_CACHE_KEY, {
            "ts": entry.ts.isoformat(),
            "results": [r.to_json() for r in entry.results],
        })
        return entry

    def clear_recommendation_cache(self) -> None:
        self.delete(RECOMMENDATIONS_CACHE_KEY)

    # ========================================================================
    # Magic-link Markers
    # ========================================================================

    def _magic_link_key(self, email: str) -> str:
        return f"{MAGIC_LINK_KEY_PREFIX}{normalize_email(email)}"

    def has_magic_link_marker(self, email: str) -> bool:
        """True if a magic link was already sent to this address."""
        return self.get_raw(self._magic_link_key(email)) is not None

    def mark_magic_link_sent(self, email: str) -> None:
        self.set_raw(self._magic_link_key(email), utcnow().isoformat())

    def clear_magic_link_marker(self, email: str) -> None:
        self.delete(self._magic_link_key(email))

    # ========================================================================
    # Password-reset Cooldown
    # ========================================================================

    def _password_reset_key(self, email: str) -> str:
        return f"{PASSWORD_RESET_KEY_PREFIX}{normalize_email(email)}"

    def password_reset_wait(self, email: str, cooldown: int, now: Optional[datetime] = None) -> int:
        """Seconds left before another reset e-mail may go to this address."""
        raw = self.get_raw(self._password_reset_key(email))
        if not raw:
            return 0
        try:
            sent_at = datetime.fromisoformat(raw)
        except ValueError:
            return 0
        elapsed = ((now or utcnow()) - sent_at).total_seconds()
        return max(0, math.ceil(cooldown - elapsed))

    def mark_password_reset_sent(self, email: str, ts: Optional[datetime] = None) -> None:
        self.set_raw(self._password_reset_key(email), (ts or utcnow()).isoformat())

    # ========================================================================
    # Anonymous Identity
    # ========================================================================

    def get_or_create_anon_id(self) -> str:
        """Return the persistent anonymous device id, creating it once."""
        anon_id = self.get_raw(ANON_ID_KEY)
        if not anon_id:
            anon_id = str(uuid4())
            self.set_raw(ANON_ID_KEY, anon_id)
        return anon_id


# Global store instance
_store: Optional[LocalStore] = None


def get_store(db_path: Optional[str] = None) -> LocalStore:
    """Get or create the global store instance."""
    global _store
    if _store is None:
        _store = LocalStore(db_path)
        _store.create_tables()
    return _store


def reset_store() -> None:
    """Reset the global store instance. Used for testing."""
    global _store
    _store = None
