"""
Unit tests for UserDirectory

Runs against a real SQLite file so unique constraints and conditional updates
behave as they do in production.
"""
import asyncio
import pytest
from unittest.mock import patch

from sqlalchemy import DateTime, select

from core.exceptions import ConflictError, InternalError
from core.models import Account, AccountPublic, Subscription, Video, WatchHistoryEntry


async def create_alice(directory, **overrides):
    fields = dict(
        username="alice",
        email="alice@x.com",
        full_name="Alice Doe",
        password_hash="$2b$04$hash",
        avatar="https://cdn.example.com/a.png",
    )
    fields.update(overrides)
    return await directory.create(**fields)


def required_fields(model):
    return {
        Account: dict(
            username="u", email="u@x.com", full_name="U", avatar="a", password_hash="h"
        ),
        Video: dict(video_file="v.mp4", thumbnail="v.jpg", title="V"),
        Subscription: dict(subscriber_id="a", channel_id="b"),
        WatchHistoryEntry: dict(account_id="a", video_id="v"),
    }[model]


class TestUserDirectory:
    @pytest.mark.asyncio
    async def test_create_returns_public_projection(self, directory):
        account = await create_alice(directory)

        assert isinstance(account, AccountPublic)
        assert account.username == "alice"
        assert account.cover_image == ""
        assert "password_hash" not in account.model_dump()
        assert "refresh_token" not in account.model_dump()

    @pytest.mark.asyncio
    async def test_duplicate_username_conflicts(self, directory):
        await create_alice(directory)
        with pytest.raises(ConflictError):
            await create_alice(directory, email="other@x.com")

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, directory):
        await create_alice(directory)
        with pytest.raises(ConflictError):
            await create_alice(directory, username="other")

    @pytest.mark.asyncio
    async def test_unique_constraint_race_maps_to_conflict(self, directory):
        await create_alice(directory)
        # Skip the up-front check so the insert hits the unique index
        with patch.object(directory, "exists", return_value=False):
            with pytest.raises(ConflictError):
                await create_alice(directory)

    @pytest.mark.asyncio
    async def test_find_by_handle_or_contact(self, directory):
        created = await create_alice(directory)

        by_name = await directory.find_by_handle_or_contact(username="ALICE ")
        by_email = await directory.find_by_handle_or_contact(email="Alice@X.com")

        assert by_name.id == created.id
        assert by_email.id == created.id
        assert by_name.password_hash == "$2b$04$hash"

    @pytest.mark.asyncio
    async def test_find_by_handle_or_contact_without_input(self, directory):
        await create_alice(directory)
        assert await directory.find_by_handle_or_contact() is None

    @pytest.mark.asyncio
    async def test_find_by_id_omits_secrets(self, directory):
        created = await create_alice(directory)
        await directory.update_refresh_credential(created.id, "token-1")

        public = await directory.find_by_id(created.id)
        private = await directory.find_by_id_with_secrets(created.id)

        assert isinstance(public, AccountPublic)
        assert not hasattr(public, "refresh_token")
        assert private.refresh_token == "token-1"

    @pytest.mark.asyncio
    async def test_find_unknown_id(self, directory):
        assert await directory.find_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_update_refresh_credential_overwrites_and_clears(self, directory):
        created = await create_alice(directory)

        assert await directory.update_refresh_credential(created.id, "token-1")
        assert await directory.update_refresh_credential(created.id, "token-2")
        assert (await directory.find_by_id_with_secrets(created.id)).refresh_token == "token-2"

        assert await directory.update_refresh_credential(created.id, None)
        assert (await directory.find_by_id_with_secrets(created.id)).refresh_token is None

    @pytest.mark.asyncio
    async def test_update_unknown_account(self, directory):
        assert not await directory.update_refresh_credential("missing", "token")

    @pytest.mark.asyncio
    async def test_swap_refresh_credential(self, directory):
        created = await create_alice(directory)
        await directory.update_refresh_credential(created.id, "token-1")

        assert await directory.swap_refresh_credential(created.id, "token-1", "token-2")
        assert not await directory.swap_refresh_credential(created.id, "token-1", "token-3")
        assert (await directory.find_by_id_with_secrets(created.id)).refresh_token == "token-2"

    @pytest.mark.asyncio
    async def test_swap_fails_after_clear(self, directory):
        created = await create_alice(directory)
        await directory.update_refresh_credential(created.id, "token-1")
        await directory.update_refresh_credential(created.id, None)

        assert not await directory.swap_refresh_credential(created.id, "token-1", "token-2")

    @pytest.mark.asyncio
    async def test_concurrent_swaps_single_winner(self, directory):
        created = await create_alice(directory)
        await directory.update_refresh_credential(created.id, "token-1")

        results = await asyncio.gather(
            directory.swap_refresh_credential(created.id, "token-1", "token-a"),
            directory.swap_refresh_credential(created.id, "token-1", "token-b"),
        )

        assert sorted(results) == [False, True]
        stored = (await directory.find_by_id_with_secrets(created.id)).refresh_token
        assert stored == ("token-a" if results[0] else "token-b")

    @pytest.mark.asyncio
    async def test_update_password_revokes_sessions(self, directory):
        created = await create_alice(directory)
        await directory.update_refresh_credential(created.id, "token-1")

        await directory.update_password(created.id, "$2b$04$new")

        account = await directory.find_by_id_with_secrets(created.id)
        assert account.password_hash == "$2b$04$new"
        assert account.refresh_token is None

    @pytest.mark.asyncio
    async def test_update_details(self, directory):
        created = await create_alice(directory)
        before = await directory.find_by_id(created.id)

        updated = await directory.update_details(created.id, "Alice D.", "a@x.com")

        assert updated.full_name == "Alice D."
        assert updated.email == "a@x.com"
        assert updated.updated_at >= before.updated_at

    @pytest.mark.asyncio
    async def test_update_details_email_conflict(self, directory):
        created = await create_alice(directory)
        await create_alice(directory, username="bob", email="bob@x.com")

        with pytest.raises(ConflictError):
            await directory.update_details(created.id, "Alice", "bob@x.com")

    @pytest.mark.asyncio
    async def test_update_avatar_and_cover(self, directory):
        created = await create_alice(directory)

        with_avatar = await directory.update_avatar(created.id, "https://cdn/new.png")
        with_cover = await directory.update_cover_image(created.id, "https://cdn/cover.png")

        assert with_avatar.avatar == "https://cdn/new.png"
        assert with_cover.cover_image == "https://cdn/cover.png"
        assert await directory.update_avatar("missing", "x") is None

    @pytest.mark.asyncio
    async def test_record_watch_keeps_order_and_duplicates(self, directory, session_factory):
        created = await create_alice(directory)
        for video_id in ["v1", "v2", "v1"]:
            await directory.record_watch(created.id, video_id)

        async with session_factory() as session:
            result = await session.execute(
                select(WatchHistoryEntry.video_id)
                .where(WatchHistoryEntry.account_id == created.id)
                .order_by(WatchHistoryEntry.id)
            )
            assert result.scalars().all() == ["v1", "v2", "v1"]

    @pytest.mark.asyncio
    async def test_storage_timeout_is_internal_error(self, directory):
        directory.timeout = 0.01

        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(InternalError):
            await directory._run("slow", slow)

    @pytest.mark.asyncio
    async def test_create_and_update_bind_aware_timestamps(self, directory):
        created = await create_alice(directory)

        assert created.created_at.tzinfo is not None
        assert created.updated_at.tzinfo is not None
        assert await directory.update_refresh_credential(created.id, "token-1")
        assert await directory.swap_refresh_credential(created.id, "token-1", "token-2")

    @pytest.mark.parametrize(
        "model, column",
        [
            (Account, "created_at"),
            (Account, "updated_at"),
            (Video, "created_at"),
            (Video, "updated_at"),
            (Subscription, "created_at"),
            (WatchHistoryEntry, "watched_at"),
        ],
    )
    def test_timestamp_columns_are_timezone_aware(self, model, column):
        column_type = model.__table__.c[column].type

        assert isinstance(column_type, DateTime)
        assert column_type.timezone is True
        assert getattr(model(**required_fields(model)), column).tzinfo is not None

    @pytest.mark.asyncio
    async def test_public_projection(self):
        account = Account(
            username="carol",
            email="carol@x.com",
            full_name="Carol",
            avatar="a",
            password_hash="h",
            refresh_token="t",
        )
        projection = AccountPublic.from_account(account)

        assert projection.username == "carol"
        assert "password_hash" not in projection.model_dump()
