"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    create_engine,
    func,
    select,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from travelbook.errors import DuplicateAccount


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back; every stored value is UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class DbClient(Protocol):
    """Interface for database access."""

    def create_account(
        self,
        *,
        full_name: str,
        email: str,
        password_hash: str,
        external_id: Optional[str] = None,
        profile_image_url: Optional[str] = None,
        email_verified: bool = False,
    ) -> "AccountRecord":
        ...

    def get_account(self, account_id: str) -> Optional["AccountRecord"]:
        ...

    def get_account_by_email(self, email: str) -> Optional["AccountRecord"]:
        ...

    def update_account(self, account: "AccountRecord") -> None:
        ...

    def create_story(
        self,
        *,
        owner_id: str,
        title: str,
        story: str,
        visited_locations: list[str],
        image_url: str,
        visited_date: datetime,
    ) -> "StoryRecord":
        ...

    def get_story(self, story_id: str) -> Optional["StoryRecord"]:
        ...

    def get_owned_story(self, owner_id: str, story_id: str) -> Optional["StoryRecord"]:
        ...

    def list_stories(
        self,
        owner_id: str,
        *,
        visited_from: Optional[datetime] = None,
        visited_to: Optional[datetime] = None,
    ) -> list["StoryRecord"]:
        ...

    def update_story(self, story: "StoryRecord") -> None:
        ...

    def delete_story(self, owner_id: str, story_id: str) -> Optional["StoryRecord"]:
        ...

    def count_image_references(self, image_url: str) -> int:
        """Count stories (any owner) and profiles that point at ``image_url``."""
        ...


@dataclass
class AccountRecord:
    account_id: str
    full_name: str
    email: str
    password_hash: str
    external_id: Optional[str] = None
    profile_image_url: Optional[str] = None
    email_verified: bool = False
    created_on: datetime = field(default_factory=utc_now)

    def as_dict(self) -> dict:
        return {
            "_id": self.account_id,
            "fullName": self.full_name,
            "email": self.email,
            "profileImageUrl": self.profile_image_url,
            "isEmailVerified": self.email_verified,
            "createdOn": self.created_on.isoformat(),
        }


@dataclass
class StoryRecord:
    story_id: str
    owner_id: str
    title: str
    story: str
    visited_locations: list[str]
    image_url: str
    visited_date: datetime
    is_favourite: bool = False
    created_on: datetime = field(default_factory=utc_now)

    def as_dict(self) -> dict:
        return {
            "_id": self.story_id,
            "userId": self.owner_id,
            "title": self.title,
            "story": self.story,
            "visitedLocation": list(self.visited_locations),
            "imageUrl": self.image_url,
            "visitedDate": self.visited_date.isoformat(),
            "isFavourite": self.is_favourite,
            "createdOn": self.created_on.isoformat(),
        }


def favourites_first(stories: list[StoryRecord]) -> list[StoryRecord]:
    """Stable sort keeping creation order inside each group."""
    return sorted(stories, key=lambda s: not s.is_favourite)


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.accounts: Dict[str, AccountRecord] = {}
        self.stories: Dict[str, StoryRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.accounts.clear()
        self.stories.clear()

    def create_account(
        self,
        *,
        full_name: str,
        email: str,
        password_hash: str,
        external_id: Optional[str] = None,
        profile_image_url: Optional[str] = None,
        email_verified: bool = False,
    ) -> AccountRecord:
        if self.get_account_by_email(email):
            raise DuplicateAccount(f"Email {email} is already registered")
        record = AccountRecord(
            account_id=uuid.uuid4().hex,
            full_name=full_name,
            email=email,
            password_hash=password_hash,
            external_id=external_id,
            profile_image_url=profile_image_url,
            email_verified=email_verified,
        )
        self.accounts[record.account_id] = record
        return record

    def get_account(self, account_id: str) -> Optional[AccountRecord]:
        return self.accounts.get(account_id)

    def get_account_by_email(self, email: str) -> Optional[AccountRecord]:
        for account in self.accounts.values():
            if account.email == email:
                return account
        return None

    def update_account(self, account: AccountRecord) -> None:
        if account.account_id in self.accounts:
            self.accounts[account.account_id] = account

    def create_story(
        self,
        *,
        owner_id: str,
        title: str,
        story: str,
        visited_locations: list[str],
        image_url: str,
        visited_date: datetime,
    ) -> StoryRecord:
        record = StoryRecord(
            story_id=uuid.uuid4().hex,
            owner_id=owner_id,
            title=title,
            story=story,
            visited_locations=list(visited_locations),
            image_url=image_url,
            visited_date=visited_date,
        )
        self.stories[record.story_id] = record
        return record

    def get_story(self, story_id: str) -> Optional[StoryRecord]:
        return self.stories.get(story_id)

    def get_owned_story(self, owner_id: str, story_id: str) -> Optional[StoryRecord]:
        story = self.stories.get(story_id)
        if story is None or story.owner_id != owner_id:
            return None
        return story

    def list_stories(
        self,
        owner_id: str,
        *,
        visited_from: Optional[datetime] = None,
        visited_to: Optional[datetime] = None,
    ) -> list[StoryRecord]:
        items = []
        for story in self.stories.values():
            if story.owner_id != owner_id:
                continue
            if visited_from is not None and story.visited_date < visited_from:
                continue
            if visited_to is not None and story.visited_date > visited_to:
                continue
            items.append(story)
        return favourites_first(items)

    def update_story(self, story: StoryRecord) -> None:
        if story.story_id in self.stories:
            self.stories[story.story_id] = story

    def delete_story(self, owner_id: str, story_id: str) -> Optional[StoryRecord]:
        story = self.get_owned_story(owner_id, story_id)
        if story is None:
            return None
        return self.stories.pop(story_id)

    def count_image_references(self, image_url: str) -> int:
        stories = sum(1 for s in self.stories.values() if s.image_url == image_url)
        profiles = sum(
            1 for a in self.accounts.values() if a.profile_image_url == image_url
        )
        return stories + profiles


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
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

    def _to_account_record(self, row: "AccountRow") -> AccountRecord:
        return AccountRecord(
            account_id=row.account_id,
            full_name=row.full_name,
            email=row.email,
            password_hash=row.password_hash,
            external_id=row.external_id,
            profile_image_url=row.profile_image_url,
            email_verified=bool(row.email_verified),
            created_on=_as_utc(row.created_on),
        )

    def _to_story_record(self, row: "StoryRow") -> StoryRecord:
        return StoryRecord(
            story_id=row.story_id,
            owner_id=row.owner_id,
            title=row.title,
            story=row.story,
            visited_locations=list(row.visited_locations or []),
            image_url=row.image_url,
            visited_date=_as_utc(row.visited_date),
            is_favourite=bool(row.is_favourite),
            created_on=_as_utc(row.created_on),
        )

    def create_account(
        self,
        *,
        full_name: str,
        email: str,
        password_hash: str,
        external_id: Optional[str] = None,
        profile_image_url: Optional[str] = None,
        email_verified: bool = False,
    ) -> AccountRecord:
        with self.Session() as session:
            row = AccountRow(
                account_id=uuid.uuid4().hex,
                full_name=full_name,
                email=email,
                password_hash=password_hash,
                external_id=external_id,
                profile_image_url=profile_image_url,
                email_verified=email_verified,
                created_on=utc_now(),
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateAccount(f"Email {email} is already registered") from exc
            session.refresh(row)
            return self._to_account_record(row)

    def get_account(self, account_id: str) -> Optional[AccountRecord]:
        with self.Session() as session:
            row = session.get(AccountRow, account_id)
            return self._to_account_record(row) if row else None

    def get_account_by_email(self, email: str) -> Optional[AccountRecord]:
        with self.Session() as session:
            stmt = select(AccountRow).where(AccountRow.email == email)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_account_record(row) if row else None

    def update_account(self, account: AccountRecord) -> None:
        with self.Session() as session:
            row = session.get(AccountRow, account.account_id)
            if not row:
                return
            row.full_name = account.full_name
            row.password_hash = account.password_hash
            row.external_id = account.external_id
            row.profile_image_url = account.profile_image_url
            row.email_verified = account.email_verified
            session.commit()

    def create_story(
        self,
        *,
        owner_id: str,
        title: str,
        story: str,
        visited_locations: list[str],
        image_url: str,
        visited_date: datetime,
    ) -> StoryRecord:
        with self.Session() as session:
            row = StoryRow(
                story_id=uuid.uuid4().hex,
                owner_id=owner_id,
                title=title,
                story=story,
                visited_locations=list(visited_locations),
                image_url=image_url,
                visited_date=visited_date,
                is_favourite=False,
                created_on=utc_now(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_story_record(row)

    def get_story(self, story_id: str) -> Optional[StoryRecord]:
        with self.Session() as session:
            row = session.get(StoryRow, story_id)
            return self._to_story_record(row) if row else None

    def get_owned_story(self, owner_id: str, story_id: str) -> Optional[StoryRecord]:
        with self.Session() as session:
            row = session.get(StoryRow, story_id)
            if not row or row.owner_id != owner_id:
                return None
            return self._to_story_record(row)

    def list_stories(
        self,
        owner_id: str,
        *,
        visited_from: Optional[datetime] = None,
        visited_to: Optional[datetime] = None,
    ) -> list[StoryRecord]:
        with self.Session() as session:
            stmt = select(StoryRow).where(StoryRow.owner_id == owner_id)
            if visited_from is not None:
                stmt = stmt.where(StoryRow.visited_date >= visited_from)
            if visited_to is not None:
                stmt = stmt.where(StoryRow.visited_date <= visited_to)
            stmt = stmt.order_by(
                StoryRow.is_favourite.desc(), StoryRow.created_on.asc()
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_story_record(row) for row in rows]

    def update_story(self, story: StoryRecord) -> None:
        with self.Session() as session:
            row = session.get(StoryRow, story.story_id)
            if not row:
                return
            row.title = story.title
            row.story = story.story
            row.visited_locations = list(story.visited_locations)
            row.image_url = story.image_url
            row.visited_date = story.visited_date
            row.is_favourite = story.is_favourite
            session.commit()

    def delete_story(self, owner_id: str, story_id: str) -> Optional[StoryRecord]:
        with self.Session() as session:
            row = session.get(StoryRow, story_id)
            if not row or row.owner_id != owner_id:
                return None
            record = self._to_story_record(row)
            session.delete(row)
            session.commit()
            return record

    def count_image_references(self, image_url: str) -> int:
        with self.Session() as session:
            stories = session.execute(
                select(func.count())
                .select_from(StoryRow)
                .where(StoryRow.image_url == image_url)
            ).scalar_one()
            profiles = session.execute(
                select(func.count())
                .select_from(AccountRow)
                .where(AccountRow.profile_image_url == image_url)
            ).scalar_one()
            return stories + profiles


Base = declarative_base()


class AccountRow(Base):
    __tablename__ = "accounts"

    account_id = Column(String, primary_key=True)
    full_name = Column(String, nullable=False, default="")
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    external_id = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    created_on = Column(DateTime(timezone=True), nullable=False)


class StoryRow(Base):
    __tablename__ = "travel_stories"

    story_id = Column(String, primary_key=True)
    owner_id = Column(
        String, ForeignKey("accounts.account_id"), nullable=False, index=True
    )
    title = Column(String, nullable=False)
    story = Column(Text, nullable=False)
    visited_locations = Column(JSON, nullable=False, default=list)
    image_url = Column(String, nullable=False)
    visited_date = Column(DateTime(timezone=True), nullable=False)
    is_favourite = Column(Boolean, nullable=False, default=False)
    created_on = Column(DateTime(timezone=True), nullable=False)
