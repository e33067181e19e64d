"""
Database abstraction for Postgres and an in-memory implementation.

Both clients keep two invariants the HTTP layer relies on:

* at most one challenge has ``is_active`` set; activating a challenge clears
  every other active challenge inside the same critical section/transaction.
* prayer and challenge counters are incremented with a single
  read-modify-write against the store, so concurrent increments never lose
  updates.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    Text,
    create_engine,
    delete,
    select,
    text,
    true,
    update,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IntentionCounter(str, Enum):
    """The per-intention prayer counters."""

    HAIL_MARY_COUNT = "hailMaryCount"
    OUR_FATHER_COUNT = "ourFatherCount"
    ROSARY_COUNT = "rosaryCount"


class PrayerType(str, Enum):
    """Prayer tags accepted by the pray endpoint."""

    HAIL_MARY = "hailMary"
    OUR_FATHER = "ourFather"
    ROSARY = "rosary"

    @property
    def counter(self) -> IntentionCounter:
        return _PRAYER_COUNTERS[self]


_PRAYER_COUNTERS: Dict[PrayerType, IntentionCounter] = {
    PrayerType.HAIL_MARY: IntentionCounter.HAIL_MARY_COUNT,
    PrayerType.OUR_FATHER: IntentionCounter.OUR_FATHER_COUNT,
    PrayerType.ROSARY: IntentionCounter.ROSARY_COUNT,
}


def _require_positive_delta(delta: int) -> None:
    if isinstance(delta, bool) or not isinstance(delta, int) or delta <= 0:
        raise ValueError(f"delta must be a positive integer, got {delta!r}")


@dataclass
class IntentionRecord:
    id: int
    content: str
    name: Optional[str] = None
    prayer_type: Optional[str] = None
    hail_mary_count: int = 0
    our_father_count: int = 0
    rosary_count: int = 0
    is_printed: bool = False
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class ChallengeRecord:
    id: int
    title: str
    prayer_type: str
    total_target: int
    current_count: int = 0
    is_active: bool = True
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class ChallengeChanges:
    """Partial update for a challenge. ``None`` leaves a field unchanged."""

    title: Optional[str] = None
    prayer_type: Optional[str] = None
    total_target: Optional[int] = None
    is_active: Optional[bool] = None

    def as_values(self) -> dict:
        values = {}
        if self.title is not None:
            values["title"] = self.title
        if self.prayer_type is not None:
            values["prayer_type"] = self.prayer_type
        if self.total_target is not None:
            values["total_target"] = self.total_target
        if self.is_active is not None:
            values["is_active"] = self.is_active
        return values


class DbClient(Protocol):
    """Interface for database access."""

    def create_intention(
        self,
        content: str,
        name: Optional[str] = None,
        prayer_type: Optional[str] = None,
        *,
        hail_mary_count: int = 0,
        our_father_count: int = 0,
        rosary_count: int = 0,
    ) -> IntentionRecord:
        ...

    def get_intention(self, intention_id: int) -> Optional[IntentionRecord]:
        ...

    def list_intentions(self) -> list[IntentionRecord]:
        ...

    def increment_intention_counter(
        self, intention_id: int, counter: IntentionCounter, delta: int = 1
    ) -> Optional[IntentionRecord]:
        ...

    def mark_intention_printed(
        self, intention_id: int
    ) -> Optional[IntentionRecord]:
        ...

    def create_challenge(
        self,
        title: str,
        prayer_type: str,
        total_target: int,
        *,
        is_active: bool = True,
        current_count: int = 0,
    ) -> ChallengeRecord:
        ...

    def get_challenge(self, challenge_id: int) -> Optional[ChallengeRecord]:
        ...

    def list_challenges(self) -> list[ChallengeRecord]:
        ...

    def get_active_challenge(self) -> Optional[ChallengeRecord]:
        ...

    def update_challenge(
        self, challenge_id: int, changes: ChallengeChanges
    ) -> Optional[ChallengeRecord]:
        ...

    def delete_challenge(self, challenge_id: int) -> bool:
        ...

    def increment_challenge(
        self, challenge_id: int, delta: int = 1
    ) -> Optional[ChallengeRecord]:
        ...


def _newest_first(records):
    return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)


class InMemoryDbClient:
    """
    Simple in-memory database for development and tests.

    Every mutation runs under one lock, which makes clear-others-then-set and
    read-modify-write increments atomic with respect to other request threads.
    Records handed out are copies.
    """

    def __init__(self):
        self.intentions: Dict[int, IntentionRecord] = {}
        self.challenges: Dict[int, ChallengeRecord] = {}
        self._next_intention_id = 1
        self._next_challenge_id = 1
        self._lock = threading.RLock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.intentions.clear()
            self.challenges.clear()
            self._next_intention_id = 1
            self._next_challenge_id = 1

    # Intentions

    def create_intention(
        self,
        content: str,
        name: Optional[str] = None,
        prayer_type: Optional[str] = None,
        *,
        hail_mary_count: int = 0,
        our_father_count: int = 0,
        rosary_count: int = 0,
    ) -> IntentionRecord:
        with self._lock:
            record = IntentionRecord(
                id=self._next_intention_id,
                content=content,
                name=name,
                prayer_type=prayer_type,
                hail_mary_count=hail_mary_count,
                our_father_count=our_father_count,
                rosary_count=rosary_count,
            )
            self._next_intention_id += 1
            self.intentions[record.id] = record
            return replace(record)

    def get_intention(self, intention_id: int) -> Optional[IntentionRecord]:
        with self._lock:
            record = self.intentions.get(intention_id)
            return replace(record) if record else None

    def list_intentions(self) -> list[IntentionRecord]:
        with self._lock:
            return [replace(r) for r in _newest_first(self.intentions.values())]

    def increment_intention_counter(
        self, intention_id: int, counter: IntentionCounter, delta: int = 1
    ) -> Optional[IntentionRecord]:
        counter = IntentionCounter(counter)
        _require_positive_delta(delta)
        with self._lock:
            record = self.intentions.get(intention_id)
            if not record:
                return None
            if counter is IntentionCounter.HAIL_MARY_COUNT:
                record.hail_mary_count += delta
            elif counter is IntentionCounter.OUR_FATHER_COUNT:
                record.our_father_count += delta
            elif counter is IntentionCounter.ROSARY_COUNT:
                record.rosary_count += delta
            return replace(record)

    def mark_intention_printed(
        self, intention_id: int
    ) -> Optional[IntentionRecord]:
        with self._lock:
            record = self.intentions.get(intention_id)
            if not record:
                return None
            record.is_printed = True
            return replace(record)

    # Challenges

    def _deactivate_others(self, keep_id: Optional[int] = None) -> int:
        cleared = 0
        for challenge in self.challenges.values():
            if challenge.is_active and challenge.id != keep_id:
                challenge.is_active = False
                cleared += 1
        return cleared

    def create_challenge(
        self,
        title: str,
        prayer_type: str,
        total_target: int,
        *,
        is_active: bool = True,
        current_count: int = 0,
    ) -> ChallengeRecord:
        with self._lock:
            if is_active:
                cleared = self._deactivate_others()
                if cleared:
                    logger.info("Deactivated %d challenge(s) for new active challenge", cleared)
            record = ChallengeRecord(
                id=self._next_challenge_id,
                title=title,
                prayer_type=prayer_type,
                total_target=total_target,
                current_count=current_count,
                is_active=is_active,
            )
            self._next_challenge_id += 1
            self.challenges[record.id] = record
            return replace(record)

    def get_challenge(self, challenge_id: int) -> Optional[ChallengeRecord]:
        with self._lock:
            record = self.challenges.get(challenge_id)
            return replace(record) if record else None

    def list_challenges(self) -> list[ChallengeRecord]:
        with self._lock:
            return [replace(r) for r in _newest_first(self.challenges.values())]

    def get_active_challenge(self) -> Optional[ChallengeRecord]:
        with self._lock:
            for record in self.challenges.values():
                if record.is_active:
                    return replace(record)
            return None

    def update_challenge(
        self, challenge_id: int, changes: ChallengeChanges
    ) -> Optional[ChallengeRecord]:
        with self._lock:
            record = self.challenges.get(challenge_id)
            if not record:
                return None
            if changes.is_active:
                cleared = self._deactivate_others(keep_id=challenge_id)
                if cleared:
                    logger.info(
                        "Deactivated %d challenge(s) to activate challenge %s",
                        cleared,
                        challenge_id,
                    )
            if changes.title is not None:
                record.title = changes.title
            if changes.prayer_type is not None:
                record.prayer_type = changes.prayer_type
            if changes.total_target is not None:
                record.total_target = changes.total_target
            if changes.is_active is not None:
                record.is_active = changes.is_active
            return replace(record)

    def delete_challenge(self, challenge_id: int) -> bool:
        with self._lock:
            removed = self.challenges.pop(challenge_id, None)
        if removed:
            logger.info("Deleted challenge %s", challenge_id)
        return removed is not None

    def increment_challenge(
        self, challenge_id: int, delta: int = 1
    ) -> Optional[ChallengeRecord]:
        _require_positive_delta(delta)
        with self._lock:
            record = self.challenges.get(challenge_id)
            if not record:
                return None
            record.current_count += delta
            return replace(record)


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation for PostgreSQL, or SQLite for tests/local runs.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_intention_record(self, row: "IntentionRow") -> IntentionRecord:
        return IntentionRecord(
            id=row.id,
            content=row.content,
            name=row.name,
            prayer_type=row.prayer_type,
            hail_mary_count=row.hail_mary_count,
            our_father_count=row.our_father_count,
            rosary_count=row.rosary_count,
            is_printed=row.is_printed,
            created_at=row.created_at,
        )

    def _to_challenge_record(self, row: "ChallengeRow") -> ChallengeRecord:
        return ChallengeRecord(
            id=row.id,
            title=row.title,
            prayer_type=row.prayer_type,
            total_target=row.total_target,
            current_count=row.current_count,
            is_active=row.is_active,
            created_at=row.created_at,
        )

    # Intentions

    def create_intention(
        self,
        content: str,
        name: Optional[str] = None,
        prayer_type: Optional[str] = None,
        *,
        hail_mary_count: int = 0,
        our_father_count: int = 0,
        rosary_count: int = 0,
    ) -> IntentionRecord:
        with self.Session() as session:
            row = IntentionRow(
                content=content,
                name=name,
                prayer_type=prayer_type,
                hail_mary_count=hail_mary_count,
                our_father_count=our_father_count,
                rosary_count=rosary_count,
                is_printed=False,
                created_at=_utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_intention_record(row)

    def get_intention(self, intention_id: int) -> Optional[IntentionRecord]:
        with self.Session() as session:
            row = session.get(IntentionRow, intention_id)
            if not row:
                return None
            return self._to_intention_record(row)

    def list_intentions(self) -> list[IntentionRecord]:
        with self.Session() as session:
            stmt = select(IntentionRow).order_by(
                IntentionRow.created_at.desc(), IntentionRow.id.desc()
            )
            return [self._to_intention_record(row) for row in session.scalars(stmt)]

    def increment_intention_counter(
        self, intention_id: int, counter: IntentionCounter, delta: int = 1
    ) -> Optional[IntentionRecord]:
        column = _INTENTION_COUNTER_COLUMNS[IntentionCounter(counter)]
        _require_positive_delta(delta)
        # Single UPDATE ... SET col = col + delta; the database serializes it.
        stmt = (
            update(IntentionRow)
            .where(IntentionRow.id == intention_id)
            .values({column: column + delta})
            .returning(IntentionRow)
        )
        with self.Session() as session:
            row = session.scalars(stmt).one_or_none()
            session.commit()
            if not row:
                return None
            return self._to_intention_record(row)

    def mark_intention_printed(
        self, intention_id: int
    ) -> Optional[IntentionRecord]:
        stmt = (
            update(IntentionRow)
            .where(IntentionRow.id == intention_id)
            .values(is_printed=True)
            .returning(IntentionRow)
        )
        with self.Session() as session:
            row = session.scalars(stmt).one_or_none()
            session.commit()
            if not row:
                return None
            return self._to_intention_record(row)

    # Challenges

    def _deactivate_others(
        self, session: Session, keep_id: Optional[int] = None
    ) -> int:
        """
        Clear ``is_active`` on every other challenge within ``session``'s transaction.

        On Postgres the table lock serializes concurrent activations until commit;
        SQLite already allows a single writer at a time.
        """
        if self.engine.dialect.name == "postgresql":
            session.execute(text("LOCK TABLE challenges IN SHARE ROW EXCLUSIVE MODE"))
        stmt = update(ChallengeRow).where(ChallengeRow.is_active == true())
        if keep_id is not None:
            stmt = stmt.where(ChallengeRow.id != keep_id)
        result = session.execute(
            stmt.values(is_active=False),
            execution_options={"synchronize_session": False},
        )
        return result.rowcount or 0

    def create_challenge(
        self,
        title: str,
        prayer_type: str,
        total_target: int,
        *,
        is_active: bool = True,
        current_count: int = 0,
    ) -> ChallengeRecord:
        with self.Session() as session:
            if is_active:
                cleared = self._deactivate_others(session)
                if cleared:
                    logger.info("Deactivated %d challenge(s) for new active challenge", cleared)
            row = ChallengeRow(
                title=title,
                prayer_type=prayer_type,
                total_target=total_target,
                current_count=current_count,
                is_active=is_active,
                created_at=_utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_challenge_record(row)

    def get_challenge(self, challenge_id: int) -> Optional[ChallengeRecord]:
        with self.Session() as session:
            row = session.get(ChallengeRow, challenge_id)
            if not row:
                return None
            return self._to_challenge_record(row)

    def list_challenges(self) -> list[ChallengeRecord]:
        with self.Session() as session:
            stmt = select(ChallengeRow).order_by(
                ChallengeRow.created_at.desc(), ChallengeRow.id.desc()
            )
            return [self._to_challenge_record(row) for row in session.scalars(stmt)]

    def get_active_challenge(self) -> Optional[ChallengeRecord]:
        with self.Session() as session:
            stmt = (
                select(ChallengeRow)
                .where(ChallengeRow.is_active == true())
                .order_by(ChallengeRow.created_at.desc())
                .limit(1)
            )
            row = session.scalars(stmt).one_or_none()
            if not row:
                return None
            return self._to_challenge_record(row)

    def update_challenge(
        self, challenge_id: int, changes: ChallengeChanges
    ) -> Optional[ChallengeRecord]:
        values = changes.as_values()
        if not values:
            return self.get_challenge(challenge_id)
        with self.Session() as session:
            cleared = 0
            if changes.is_active:
                cleared = self._deactivate_others(session, keep_id=challenge_id)
            stmt = (
                update(ChallengeRow)
                .where(ChallengeRow.id == challenge_id)
                .values(**values)
                .returning(ChallengeRow)
            )
            row = session.scalars(stmt).one_or_none()
            if not row:
                # Unknown id: undo the deactivation as well.
                session.rollback()
                return None
            session.commit()
            if cleared:
                logger.info(
                    "Deactivated %d challenge(s) to activate challenge %s",
                    cleared,
                    challenge_id,
                )
            return self._to_challenge_record(row)

    def delete_challenge(self, challenge_id: int) -> bool:
        with self.Session() as session:
            result = session.execute(
                delete(ChallengeRow).where(ChallengeRow.id == challenge_id),
                execution_options={"synchronize_session": False},
            )
            session.commit()
            deleted = bool(result.rowcount)
        if deleted:
            logger.info("Deleted challenge %s", challenge_id)
        return deleted

    def increment_challenge(
        self, challenge_id: int, delta: int = 1
    ) -> Optional[ChallengeRecord]:
        _require_positive_delta(delta)
        stmt = (
            update(ChallengeRow)
            .where(ChallengeRow.id == challenge_id)
            .values(current_count=ChallengeRow.current_count + delta)
            .returning(ChallengeRow)
        )
        with self.Session() as session:
            row = session.scalars(stmt).one_or_none()
            session.commit()
            if not row:
                return None
            return self._to_challenge_record(row)


Base = declarative_base()


class IntentionRow(Base):
    __tablename__ = "intentions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    content = Column(Text, nullable=False)
    name = Column(Text, nullable=True)
    prayer_type = Column(Text, nullable=True)
    hail_mary_count = Column(Integer, nullable=False, default=0)
    our_father_count = Column(Integer, nullable=False, default=0)
    rosary_count = Column(Integer, nullable=False, default=0)
    is_printed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)


class ChallengeRow(Base):
    __tablename__ = "challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    prayer_type = Column(Text, nullable=False)
    total_target = Column(Integer, nullable=False)
    current_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)


# At most one row may carry is_active = true. Partial on PostgreSQL and SQLite
# only; other dialects would make this a full unique index on is_active.
Index(
    "uq_challenges_single_active",
    ChallengeRow.is_active,
    unique=True,
    postgresql_where=ChallengeRow.is_active == true(),
    sqlite_where=ChallengeRow.is_active == true(),
)


_INTENTION_COUNTER_COLUMNS = {
    IntentionCounter.HAIL_MARY_COUNT: IntentionRow.hail_mary_count,
    IntentionCounter.OUR_FATHER_COUNT: IntentionRow.our_father_count,
    IntentionCounter.ROSARY_COUNT: IntentionRow.rosary_count,
}
