"""
Database abstraction for SQL backends and an in-memory test implementation.

Stories are stored as one JSON document per locale. Every mutation reads
the whole document, changes it in memory and writes it back; there is no
concurrency token, so the last writer wins.
"""

from __future__ import annotations

import copy
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Protocol

from sqlalchemy import JSON, Column, Float, String, create_engine, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from storybook.documents import Collection, Story
from storybook.errors import StoreError


class DbClient(Protocol):
    """Interface for database access."""

    def find_collection(self, locale: str) -> Optional[Collection]:
        ...

    def create_collection(self, locale: str, stories: List[Story]) -> Collection:
        ...

    def save_collection(self, collection: Collection) -> None:
        ...

    def get_admin(self, username: str) -> Optional["AdminRecord"]:
        ...

    def save_admin(self, admin: "AdminRecord") -> None:
        ...

    def find_subscriber(self, email: str) -> Optional["SubscriberRecord"]:
        ...

    def add_subscriber(self, subscriber: "SubscriberRecord") -> bool:
        ...

    def list_subscribers(self) -> List["SubscriberRecord"]:
        ...


@dataclass
class AdminRecord:
    username: str
    password_hash: str
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class SubscriberRecord:
    email: str
    subscribed_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {"email": self.email, "subscribed_at": self.subscribed_at}


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.collections: Dict[str, dict] = {}
        self.admins: Dict[str, AdminRecord] = {}
        self.subscribers: Dict[str, SubscriberRecord] = {}

    def find_collection(self, locale: str) -> Optional[Collection]:
        document = self.collections.get(locale)
        if document is None:
            return None
        return Collection.from_dict(copy.deepcopy(document))

    def create_collection(self, locale: str, stories: List[Story]) -> Collection:
        collection = Collection(language=locale, stories=list(stories))
        self.collections[locale] = collection.as_dict()
        return collection

    def save_collection(self, collection: Collection) -> None:
        self.collections[collection.language] = collection.as_dict()

    def get_admin(self, username: str) -> Optional[AdminRecord]:
        return self.admins.get(username)

    def save_admin(self, admin: AdminRecord) -> None:
        self.admins[admin.username] = admin

    def find_subscriber(self, email: str) -> Optional[SubscriberRecord]:
        return self.subscribers.get(email)

    def add_subscriber(self, subscriber: SubscriberRecord) -> bool:
        if subscriber.email in self.subscribers:
            return False
        self.subscribers[subscriber.email] = subscriber
        return True

    def list_subscribers(self) -> List[SubscriberRecord]:
        return sorted(self.subscribers.values(), key=lambda s: s.subscribed_at)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.collections.clear()
        self.admins.clear()
        self.subscribers.clear()


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
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

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to {action}", details=str(exc)) from exc

    def find_collection(self, locale: str) -> Optional[Collection]:
        with self._session("load stories") as session:
            row = session.get(CollectionRow, locale)
            if not row:
                return None
            return Collection.from_dict(row.document)

    def create_collection(self, locale: str, stories: List[Story]) -> Collection:
        collection = Collection(language=locale, stories=list(stories))
        with self._session("create story collection") as session:
            session.add(
                CollectionRow(
                    language=locale,
                    document=collection.as_dict(),
                    updated_at=time.time(),
                )
            )
            session.commit()
        return collection

    def save_collection(self, collection: Collection) -> None:
        with self._session("save stories") as session:
            row = session.get(CollectionRow, collection.language)
            if row:
                row.document = collection.as_dict()
                row.updated_at = time.time()
            else:
                session.add(
                    CollectionRow(
                        language=collection.language,
                        document=collection.as_dict(),
                        updated_at=time.time(),
                    )
                )
            session.commit()

    def get_admin(self, username: str) -> Optional[AdminRecord]:
        with self._session("load admin") as session:
            row = session.get(AdminRow, username)
            if not row:
                return None
            return AdminRecord(
                username=row.username,
                password_hash=row.password_hash,
                created_at=row.created_at,
            )

    def save_admin(self, admin: AdminRecord) -> None:
        with self._session("save admin") as session:
            row = session.get(AdminRow, admin.username)
            if row:
                row.password_hash = admin.password_hash
            else:
                session.add(
                    AdminRow(
                        username=admin.username,
                        password_hash=admin.password_hash,
                        created_at=admin.created_at,
                    )
                )
            session.commit()

    def find_subscriber(self, email: str) -> Optional[SubscriberRecord]:
        with self._session("load subscriber") as session:
            row = session.get(SubscriberRow, email)
            if not row:
                return None
            return SubscriberRecord(email=row.email, subscribed_at=row.subscribed_at)

    def add_subscriber(self, subscriber: SubscriberRecord) -> bool:
        with self._session("save subscriber") as session:
            session.add(
                SubscriberRow(
                    email=subscriber.email, subscribed_at=subscriber.subscribed_at
                )
            )
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
            return True

    def list_subscribers(self) -> List[SubscriberRecord]:
        with self._session("list subscribers") as session:
            rows = session.execute(
                select(SubscriberRow).order_by(SubscriberRow.subscribed_at.asc())
            ).scalars()
            return [
                SubscriberRecord(email=row.email, subscribed_at=row.subscribed_at)
                for row in rows
            ]


Base = declarative_base()


class CollectionRow(Base):
    __tablename__ = "story_collections"

    language = Column(String, primary_key=True)
    document = Column(JSON, nullable=False)
    updated_at = Column(Float, nullable=False)


class AdminRow(Base):
    __tablename__ = "admins"

    username = Column(String, primary_key=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(Float, nullable=False)


class SubscriberRow(Base):
    __tablename__ = "subscribers"

    email = Column(String, primary_key=True)
    subscribed_at = Column(Float, nullable=False)
