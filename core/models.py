"""
Core data models for the Channel & Session API

Defines the SQLModel tables (accounts, videos, subscriptions, watch history)
and the pydantic read models returned to API clients.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional
from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import SQLModel, Field
from pydantic import BaseModel


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def timestamp_field():
    """Timezone-aware timestamp column defaulting to the current UTC time"""
    return Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class Account(SQLModel, table=True):
    """
    Registered identity. `password_hash` and `refresh_token` never leave the
    service layer; use `AccountPublic` for anything returned to a caller.
    """

    __tablename__ = "accounts"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    username: str = Field(unique=True, index=True, max_length=64)
    email: str = Field(unique=True, index=True, max_length=255)
    full_name: str = Field(index=True, max_length=255)
    avatar: str = Field(max_length=1024)
    cover_image: str = Field(default="", max_length=1024)
    password_hash: str = Field(max_length=255)
    refresh_token: Optional[str] = Field(default=None, max_length=2048)
    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()


class Video(SQLModel, table=True):
    """Video record owned by the video subsystem; read-only here."""

    __tablename__ = "videos"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    video_file: str = Field(max_length=1024)
    thumbnail: str = Field(max_length=1024)
    title: str = Field(max_length=255)
    description: str = Field(default="")
    duration: float = Field(default=0)
    views: int = Field(default=0)
    is_published: bool = Field(default=True)
    owner_id: Optional[str] = Field(default=None, foreign_key="accounts.id", index=True)
    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()


class Subscription(SQLModel, table=True):
    """Directed follow edge: `subscriber_id` follows `channel_id`."""

    __tablename__ = "subscriptions"
    __table_args__ = (UniqueConstraint("subscriber_id", "channel_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    subscriber_id: str = Field(foreign_key="accounts.id", index=True)
    channel_id: str = Field(foreign_key="accounts.id", index=True)
    created_at: datetime = timestamp_field()


class WatchHistoryEntry(SQLModel, table=True):
    """
    One watched video in an account's history. The autoincrement id is the
    watch order; the same video may appear more than once.
    """

    __tablename__ = "watch_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    account_id: str = Field(foreign_key="accounts.id", index=True)
    video_id: str = Field(index=True, max_length=32)
    watched_at: datetime = timestamp_field()


class AccountPublic(BaseModel):
    """Account projection without password hash or refresh token."""

    id: str
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str = ""
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "AccountPublic":
        return cls(
            id=account.id,
            username=account.username,
            email=account.email,
            full_name=account.full_name,
            avatar=account.avatar,
            cover_image=account.cover_image or "",
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class ChannelProfile(BaseModel):
    full_name: str
    username: str
    subscribers_count: int
    channels_subscribed_to_count: int
    is_subscribed: bool
    avatar: str
    cover_image: str = ""
    email: str


class VideoOwner(BaseModel):
    id: str
    full_name: str
    username: str
    avatar: str


class WatchHistoryItem(BaseModel):
    id: str
    video_file: str
    thumbnail: str
    title: str
    description: str
    duration: float
    views: int
    is_published: bool
    created_at: datetime
    owner: Optional[VideoOwner] = None


class ApiResponse(BaseModel):
    """Success envelope shared by all user endpoints"""

    status_code: int
    data: Any = None
    message: str = "Success"
    success: bool = True

    @classmethod
    def ok(cls, data: Any, message: str, status_code: int = 200) -> "ApiResponse":
        return cls(
            status_code=status_code,
            data=data,
            message=message,
            success=status_code < 400,
        )
