"""
Account Repository.

`UserDirectory` is the only component that reads or writes `Account` rows.
Every call opens its own session from the injected `async_sessionmaker`, runs
inside one transaction, and is bounded by a timeout. Storage failures surface
as `InternalError` without driver detail; unique-constraint violations on
username or email surface as `ConflictError`.

Refresh credential writes are single `UPDATE` statements:
- `update_refresh_credential` overwrites unconditionally (login, logout).
- `swap_refresh_credential` only writes when the stored value still equals the
  expected one (rotation), so two concurrent rotations of the same token can
  never both succeed.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.exceptions import ChannelAPIException, ConflictError, InternalError
from core.logging_config import get_logger
from core.models import Account, AccountPublic, WatchHistoryEntry, utc_now

logger = get_logger(__name__)

T = TypeVar("T")


class UserDirectory:
    """Storage-backed repository for account records"""

    def __init__(self, session_factory: async_sessionmaker, timeout: float = 5.0):
        self._session_factory = session_factory
        self.timeout = timeout

    async def _run(self, operation: str, work: Callable[[], Awaitable[T]]) -> T:
        try:
            return await asyncio.wait_for(work(), timeout=self.timeout)
        except ChannelAPIException:
            raise
        except asyncio.TimeoutError:
            logger.error(f"Storage timeout during {operation}")
            raise InternalError(operation, "storage timeout")
        except SQLAlchemyError as e:
            logger.error(f"Storage failure during {operation}: {type(e).__name__}")
            raise InternalError(operation, "storage failure")

    # Reads

    async def find_by_handle_or_contact(
        self, username: Optional[str] = None, email: Optional[str] = None
    ) -> Optional[Account]:
        """Find an account by username or email, including secret fields.

        Only `SessionAuthority` should call this; the result carries the
        password hash.
        """
        conditions = []
        if username:
            conditions.append(Account.username == username.strip().lower())
        if email:
            conditions.append(Account.email == email.strip().lower())
        if not conditions:
            return None

        async def work():
            async with self._session_factory() as session:
                result = await session.execute(select(Account).where(or_(*conditions)))
                return result.scalars().first()

        return await self._run("find_by_handle_or_contact", work)

    async def find_by_id_with_secrets(self, account_id: str) -> Optional[Account]:
        async def work():
            async with self._session_factory() as session:
                return await session.get(Account, account_id)

        return await self._run("find_by_id", work)

    async def find_by_id(self, account_id: str) -> Optional[AccountPublic]:
        """Find an account by id, without password hash or refresh token"""
        account = await self.find_by_id_with_secrets(account_id)
        return self.public_projection(account) if account else None

    @staticmethod
    def public_projection(account: Account) -> AccountPublic:
        return AccountPublic.from_account(account)

    async def exists(
        self, username: Optional[str] = None, email: Optional[str] = None,
        exclude_id: Optional[str] = None,
    ) -> bool:
        conditions = []
        if username:
            conditions.append(Account.username == username)
        if email:
            conditions.append(Account.email == email)
        if not conditions:
            return False

        async def work():
            statement = select(Account.id).where(or_(*conditions))
            if exclude_id:
                statement = statement.where(Account.id != exclude_id)
            async with self._session_factory() as session:
                result = await session.execute(statement.limit(1))
                return result.first() is not None

        return await self._run("exists", work)

    # Writes

    async def create(
        self,
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        avatar: str,
        cover_image: str = "",
    ) -> AccountPublic:
        """Insert a new account; `ConflictError` if username or email is taken"""
        if await self.exists(username=username, email=email):
            raise ConflictError()

        account = Account(
            username=username,
            email=email,
            full_name=full_name,
            password_hash=password_hash,
            avatar=avatar,
            cover_image=cover_image or "",
        )

        async def work():
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        session.add(account)
            except IntegrityError:
                raise ConflictError()
            return self.public_projection(account)

        created = await self._run("create", work)
        logger.info(f"Created account {created.id}")
        return created

    async def _update(self, operation: str, account_id: str, *criteria, **values: Any) -> bool:
        values["updated_at"] = utc_now()
        statement = (
            update(Account)
            .where(Account.id == account_id, *criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        async def work():
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        result = await session.execute(statement)
                        return result.rowcount == 1
            except IntegrityError:
                raise ConflictError()

        return await self._run(operation, work)

    async def update_refresh_credential(
        self, account_id: str, value: Optional[str]
    ) -> bool:
        """Overwrite (or clear, with None) the stored refresh credential"""
        return await self._update("update_refresh_credential", account_id, refresh_token=value)

    async def swap_refresh_credential(
        self, account_id: str, expected: str, new_value: str
    ) -> bool:
        """Replace the refresh credential only if it still equals `expected`"""
        return await self._update(
            "swap_refresh_credential",
            account_id,
            Account.refresh_token == expected,
            refresh_token=new_value,
        )

    async def update_password(
        self, account_id: str, password_hash: str, revoke_sessions: bool = True
    ) -> bool:
        values = {"password_hash": password_hash}
        if revoke_sessions:
            values["refresh_token"] = None
        return await self._update("update_password", account_id, **values)

    async def update_details(
        self, account_id: str, full_name: str, email: str
    ) -> Optional[AccountPublic]:
        if await self.exists(email=email, exclude_id=account_id):
            raise ConflictError("User with email already exists")
        if not await self._update("update_details", account_id, full_name=full_name, email=email):
            return None
        return await self.find_by_id(account_id)

    async def update_avatar(self, account_id: str, avatar: str) -> Optional[AccountPublic]:
        if not await self._update("update_avatar", account_id, avatar=avatar):
            return None
        return await self.find_by_id(account_id)

    async def update_cover_image(
        self, account_id: str, cover_image: str
    ) -> Optional[AccountPublic]:
        if not await self._update("update_cover_image", account_id, cover_image=cover_image):
            return None
        return await self.find_by_id(account_id)

    async def record_watch(self, account_id: str, video_id: str) -> WatchHistoryEntry:
        """Append a video to the end of an account's watch history.

        Entry point for the video subsystem when an account plays a video;
        no route in this service writes history itself.
        """
        entry = WatchHistoryEntry(account_id=account_id, video_id=video_id)

        async def work():
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(entry)
            return entry

        return await self._run("record_watch", work)
