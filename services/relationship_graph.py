"""
Relationship Graph Read Models.

`RelationshipGraphEngine` derives per-user views from the normalized tables:

- `channel_profile`: a channel's public profile with subscriber counts and
  whether the viewer follows it.
- `watch_history`: the viewer's watched videos in stored order, each with its
  owner's public fields.

Each query is one SQL statement: counts and the subscription flag are
correlated subqueries, and the watch history is a join across
watch_history -> videos -> accounts. Callers never observe a partially built
result.
"""

import asyncio
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import aliased

from core.exceptions import InternalError, NotFoundError, ValidationError
from core.logging_config import get_logger
from core.models import (
    Account,
    ChannelProfile,
    Subscription,
    Video,
    VideoOwner,
    WatchHistoryEntry,
    WatchHistoryItem,
)

logger = get_logger(__name__)


class RelationshipGraphEngine:
    """Read-only aggregate and join queries over accounts and subscriptions"""

    def __init__(self, session_factory: async_sessionmaker, timeout: float = 5.0):
        self._session_factory = session_factory
        self.timeout = timeout

    async def _fetch(self, operation: str, statement):
        async def work():
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return result.all()

        try:
            return await asyncio.wait_for(work(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Storage timeout during {operation}")
            raise InternalError(operation, "storage timeout")
        except SQLAlchemyError as e:
            logger.error(f"Storage failure during {operation}: {type(e).__name__}")
            raise InternalError(operation, "storage failure")

    async def channel_profile(
        self, viewer_id: Optional[str], username: str
    ) -> ChannelProfile:
        handle = (username or "").strip().lower()
        if not handle:
            raise ValidationError("username", "username is missing")

        subscribers_count = (
            select(func.count(Subscription.id))
            .where(Subscription.channel_id == Account.id)
            .scalar_subquery()
        )
        subscribed_to_count = (
            select(func.count(Subscription.id))
            .where(Subscription.subscriber_id == Account.id)
            .scalar_subquery()
        )
        is_subscribed = (
            select(Subscription.id)
            .where(
                Subscription.channel_id == Account.id,
                Subscription.subscriber_id == viewer_id,
            )
            .exists()
        )

        statement = (
            select(
                Account.full_name,
                Account.username,
                Account.avatar,
                Account.cover_image,
                Account.email,
                subscribers_count.label("subscribers_count"),
                subscribed_to_count.label("channels_subscribed_to_count"),
                is_subscribed.label("is_subscribed"),
            )
            .where(Account.username == handle)
            .limit(1)
        )

        rows = await self._fetch("channel_profile", statement)
        if not rows:
            raise NotFoundError("channel does not exist")

        row = rows[0]
        return ChannelProfile(
            full_name=row.full_name,
            username=row.username,
            subscribers_count=row.subscribers_count or 0,
            channels_subscribed_to_count=row.channels_subscribed_to_count or 0,
            is_subscribed=bool(viewer_id) and bool(row.is_subscribed),
            avatar=row.avatar,
            cover_image=row.cover_image or "",
            email=row.email,
        )

    async def watch_history(self, viewer_id: str) -> List[WatchHistoryItem]:
        owner = aliased(Account, name="owner")
        statement = (
            select(
                Video,
                owner.id.label("owner_id"),
                owner.full_name.label("owner_full_name"),
                owner.username.label("owner_username"),
                owner.avatar.label("owner_avatar"),
            )
            .select_from(WatchHistoryEntry)
            .join(Video, Video.id == WatchHistoryEntry.video_id)
            .outerjoin(owner, owner.id == Video.owner_id)
            .where(WatchHistoryEntry.account_id == viewer_id)
            .order_by(WatchHistoryEntry.id)
        )

        rows = await self._fetch("watch_history", statement)

        history = []
        for row in rows:
            video = row.Video
            video_owner = None
            if row.owner_id is not None:
                video_owner = VideoOwner(
                    id=row.owner_id,
                    full_name=row.owner_full_name,
                    username=row.owner_username,
                    avatar=row.owner_avatar,
                )
            history.append(
                WatchHistoryItem(
                    id=video.id,
                    video_file=video.video_file,
                    thumbnail=video.thumbnail,
                    title=video.title,
                    description=video.description,
                    duration=video.duration,
                    views=video.views,
                    is_published=video.is_published,
                    created_at=video.created_at,
                    owner=video_owner,
                )
            )

        logger.debug(f"Watch history for {viewer_id}: {len(history)} entries")
        return history
