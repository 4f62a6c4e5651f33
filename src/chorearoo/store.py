"""Persistence and SQLModel definitions for the Chorearoo entity store."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator, List, Optional, Type, TypeVar
from uuid import uuid4

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Field, Session, SQLModel, create_engine, select

from .clock import now
from .config import DEFAULT_AVATAR_COLOR, DEFAULT_ITEM_IMAGE, DEFAULT_WEEKLY_CAP, SQLITE_FILE_NAME
from .exceptions import PersistenceError
from .models import CompletionStatus, JarSplit
from .money import from_cents, to_cents


def _new_id() -> str:
    return str(uuid4())


# ---------------------------------------------------------------------------
# Database models
# ---------------------------------------------------------------------------
class Parent(SQLModel, table=True):
    id: str = Field(default_factory=_new_id, primary_key=True)
    first_name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    role: str = "parent"
    profile_image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)


class ParentChildLink(SQLModel, table=True):
    parent_id: str = Field(primary_key=True)
    child_id: str = Field(primary_key=True)


class Child(SQLModel, table=True):
    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str
    age: int = 0
    pin: str = ""
    avatar_color: str = DEFAULT_AVATAR_COLOR
    spending_cents: int = 0
    savings_cents: int = 0
    giving_cents: int = 0
    weekly_cap_cents: int = Field(default_factory=lambda: to_cents(DEFAULT_WEEKLY_CAP))
    created_at: datetime = Field(default_factory=now)

    @property
    def spending_balance(self) -> Decimal:
        return from_cents(self.spending_cents)

    @property
    def savings_balance(self) -> Decimal:
        return from_cents(self.savings_cents)

    @property
    def giving_balance(self) -> Decimal:
        return from_cents(self.giving_cents)

    @property
    def total_balance(self) -> Decimal:
        return from_cents(self.spending_cents + self.savings_cents + self.giving_cents)

    @property
    def weekly_cap(self) -> Decimal:
        return from_cents(self.weekly_cap_cents)


class Chore(SQLModel, table=True):
    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str
    description: Optional[str] = None
    amount_cents: int
    is_active: bool = True
    created_at: datetime = Field(default_factory=now)

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)


class StoreItem(SQLModel, table=True):
    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str
    description: Optional[str] = None
    price_cents: int
    image_name: str = DEFAULT_ITEM_IMAGE
    is_available: bool = True
    created_at: datetime = Field(default_factory=now)

    @property
    def price(self) -> Decimal:
        return from_cents(self.price_cents)


class ChoreCompletion(SQLModel, table=True):
    id: str = Field(default_factory=_new_id, primary_key=True)
    status: str = CompletionStatus.PENDING.value  # pending|approved|rejected
    kind: Optional[str] = None  # chore|bonus|expense|purchase; NULL on legacy rows
    description: Optional[str] = None
    completed_at: datetime = Field(default_factory=now)
    approved_at: Optional[datetime] = None
    week_start_date: Optional[datetime] = None
    is_bonus: bool = False
    spending_cents: int = 0
    savings_cents: int = 0
    giving_cents: int = 0
    child_id: Optional[str] = Field(default=None, index=True)
    chore_id: Optional[str] = None
    store_item_id: Optional[str] = None
    approved_by_id: Optional[str] = None

    @property
    def split(self) -> JarSplit:
        return JarSplit.from_cents(self.spending_cents, self.savings_cents, self.giving_cents)

    def assign_split(self, split: JarSplit) -> None:
        self.spending_cents, self.savings_cents, self.giving_cents = split.as_cents()


ModelT = TypeVar("ModelT", bound=SQLModel)


# ---------------------------------------------------------------------------
# Entity store
# ---------------------------------------------------------------------------
class EntityStore:
    """Session-backed repository used by the allowance engine.

    A single long-lived session plays the part of the app's object context:
    records handed out stay attached, mutations are tracked, and ``save`` or
    :meth:`unit_of_work` commits them. A failed commit rolls the session back,
    which expires every loaded record so in-memory state matches the database
    again.
    """

    def __init__(self, url: str | None = None, *, in_memory: bool = False, echo: bool = False) -> None:
        self.engine = _build_engine(url, in_memory=in_memory, echo=echo)
        SQLModel.metadata.create_all(self.engine)
        run_migrations(self.engine)
        self.session = Session(self.engine, expire_on_commit=False)

    def create(self, model: Type[ModelT], **fields: Any) -> ModelT:
        record = model(**fields)
        self.session.add(record)
        return record

    def add(self, record: ModelT) -> ModelT:
        self.session.add(record)
        return record

    def get(self, model: Type[ModelT], record_id: str) -> Optional[ModelT]:
        return self.session.get(model, record_id)

    def fetch(self, model: Type[ModelT], *criteria: Any, order_by: Any = None) -> List[ModelT]:
        query = select(model)
        for criterion in criteria:
            query = query.where(criterion)
        if order_by is not None:
            query = query.order_by(order_by)
        return list(self.session.exec(query).all())

    def delete(self, record: SQLModel) -> None:
        self.session.delete(record)

    def save(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.rollback()
            raise PersistenceError(f"Could not save changes: {exc}") from exc

    def rollback(self) -> None:
        # Pending records are dropped even when no transaction has begun yet.
        for record in list(self.session.new):
            self.session.expunge(record)
        self.session.rollback()
        self.session.expire_all()

    @contextmanager
    def unit_of_work(self) -> Iterator[Session]:
        """Commit everything done inside the block, or nothing at all."""

        try:
            yield self.session
        except BaseException:
            self.rollback()
            raise
        self.save()

    def close(self) -> None:
        self.session.close()
        self.engine.dispose()


def _build_engine(url: str | None, *, in_memory: bool, echo: bool) -> Engine:
    if in_memory:
        return create_engine(
            "sqlite://",
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    target = url or f"sqlite:///{SQLITE_FILE_NAME}"
    connect_args = {"check_same_thread": False} if target.startswith("sqlite") else {}
    return create_engine(target, echo=echo, connect_args=connect_args)


# ---------------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------------
def _column_exists(conn: Connection, table: str, column: str) -> bool:
    rows = conn.exec_driver_sql(f"PRAGMA table_info({table});").fetchall()
    return any(row[1] == column for row in rows)


def run_migrations(engine: Engine) -> None:
    """Bring SQLite files written by older releases up to the current schema."""

    if engine.dialect.name != "sqlite":
        return
    with engine.begin() as conn:
        if not _column_exists(conn, "child", "weekly_cap_cents"):
            conn.exec_driver_sql("ALTER TABLE child ADD COLUMN weekly_cap_cents INTEGER DEFAULT 0;")
        if not _column_exists(conn, "chorecompletion", "kind"):
            conn.exec_driver_sql("ALTER TABLE chorecompletion ADD COLUMN kind TEXT;")
        if not _column_exists(conn, "chorecompletion", "description"):
            conn.exec_driver_sql("ALTER TABLE chorecompletion ADD COLUMN description TEXT;")
        if not _column_exists(conn, "chorecompletion", "store_item_id"):
            conn.exec_driver_sql("ALTER TABLE chorecompletion ADD COLUMN store_item_id TEXT;")
        if not _column_exists(conn, "chorecompletion", "is_bonus"):
            conn.exec_driver_sql("ALTER TABLE chorecompletion ADD COLUMN is_bonus BOOLEAN DEFAULT 0;")
        # Children created before weekly caps existed get the default cap.
        conn.exec_driver_sql(
            "UPDATE child SET weekly_cap_cents = ? WHERE IFNULL(weekly_cap_cents, 0) = 0;",
            (to_cents(DEFAULT_WEEKLY_CAP),),
        )


__all__ = [
    "Parent",
    "ParentChildLink",
    "Child",
    "Chore",
    "StoreItem",
    "ChoreCompletion",
    "EntityStore",
    "run_migrations",
]
