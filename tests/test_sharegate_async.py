"""Tests for ShareGateAsync — sessions, rollback, management operations."""

from __future__ import annotations

import logging

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from sharegate import (
    AccessType,
    ConflictError,
    EngineConfig,
    NotFoundError,
    ShareGateAsync,
    ShareGateError,
    ShareType,
    StoreUnavailableError,
    ValidationError,
)
from sharegate.models import UserBase
from sharegate.store.database_store import DatabaseGrantStore


class AuditUser(UserBase, table=True):
    __tablename__ = "audit_users"


# ==================================================================
# Lifecycle
# ==================================================================


class TestLifecycle:
    def test_requires_engine_or_factory(self):
        with pytest.raises(ValueError, match="Provide engine or session_factory"):
            ShareGateAsync()

    def test_rejects_both(self, async_engine):
        factory = async_sessionmaker(async_engine, class_=AsyncSession)
        with pytest.raises(ValueError, match="not both"):
            ShareGateAsync(engine=async_engine, session_factory=factory)

    async def test_context_manager(self, async_engine):
        async with ShareGateAsync(engine=async_engine) as sg:
            await sg.create_user("u1")
            assert (await sg.get_user("u1")).user_id == "u1"

    async def test_closed_raises(self, sharegate):
        await sharegate.close()
        with pytest.raises(ShareGateError, match="closed"):
            await sharegate.list_users()

    async def test_session_factory_mode(self, async_engine):
        factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
        sg = ShareGateAsync(session_factory=factory, dialect="sqlite")
        await sg.open()
        await sg.create_user("u1")
        assert [u.user_id for u in await sg.list_users()] == ["u1"]

    async def test_custom_user_model(self, async_engine):
        sg = ShareGateAsync(engine=async_engine, user_model=AuditUser)
        await sg.open()
        await sg.create_user("u1", email="u1@example.com")

        factory = async_sessionmaker(async_engine, class_=AsyncSession)
        async with factory() as session:
            result = await session.execute(select(AuditUser))
            assert [u.user_id for u in result.scalars().all()] == ["u1"]

    def test_config_property(self, async_engine):
        config = EngineConfig(max_concurrency=2)
        sg = ShareGateAsync(engine=async_engine, config=config)
        assert sg.config is config


# ==================================================================
# Transactions
# ==================================================================


class TestTransactions:
    async def test_commits_across_calls(self, sharegate):
        await sharegate.create_user("u1")
        await sharegate.create_resource("r1", "u1")
        await sharegate.share_resource("r1", "user", "u1", shared_by="u1")

        access = await sharegate.resolve_resource_access("r1")
        assert access.user_ids == ["u1"]

    async def test_failed_global_share_rolls_back_touch(self, sharegate, monkeypatch):
        await sharegate.create_resource("r1", "owner")
        before = (await sharegate.get_resource("r1")).updated_at

        async def failing_put_grant(self, *args, **kwargs):
            raise StoreUnavailableError("put_grant failed: connection lost")

        monkeypatch.setattr(DatabaseGrantStore, "put_grant", failing_put_grant)
        with pytest.raises(StoreUnavailableError, match="connection lost"):
            await sharegate.share_resource("r1", "global", None, shared_by="owner")
        monkeypatch.undo()

        resource = await sharegate.get_resource("r1")
        assert resource.is_global is False
        assert resource.updated_at == before
        assert await sharegate.list_shares("r1") == []

    async def test_rollback_logged_at_debug(self, sharegate, caplog):
        with caplog.at_level(logging.DEBUG, logger="sharegate._sharegate_async"):
            with pytest.raises(NotFoundError):
                await sharegate.get_user("ghost")
        assert "Rolling back" in caplog.text

    async def test_errors_reraised_unchanged(self, sharegate):
        await sharegate.create_resource("r1", "owner")
        with pytest.raises(ValidationError):
            await sharegate.share_resource("r1", "team", "x", shared_by="owner")


# ==================================================================
# Resolution and grants
# ==================================================================


class TestResolution:
    async def test_resolve_user_resources(self, sharegate):
        await sharegate.create_user("u1")
        await sharegate.create_group("g1")
        await sharegate.add_member("u1", "g1")
        await sharegate.create_resource("r1", "owner")
        await sharegate.create_resource("r2", "owner")
        await sharegate.share_resource("r1", "group", "g1", shared_by="owner")
        await sharegate.share_resource(
            "r2", ShareType.GLOBAL, None, shared_by="owner", permissions=["read"]
        )

        rl = await sharegate.resolve_user_resources("u1")
        assert rl.resource_ids == ["r1", "r2"]
        assert [r.access_type for r in rl.resources] == [AccessType.GROUP, AccessType.GLOBAL]

    async def test_resolve_missing(self, sharegate):
        with pytest.raises(NotFoundError):
            await sharegate.resolve_resource_access("r404")
        with pytest.raises(NotFoundError):
            await sharegate.resolve_user_resources("u404")

    async def test_aggregates(self, sharegate):
        await sharegate.create_user("u1")
        await sharegate.create_user("u2")
        await sharegate.create_resource("r1", "u1")
        await sharegate.share_resource("r1", "user", "u2", shared_by="u1")

        rows = await sharegate.resources_with_user_count()
        assert [(r.resource.resource_id, r.user_count) for r in rows] == [("r1", 1)]
        users = await sharegate.users_with_resource_count()
        assert [(u.user.user_id, u.resource_count) for u in users] == [("u1", 0), ("u2", 1)]

    async def test_share_returns_grant(self, sharegate):
        await sharegate.create_user("u1")
        await sharegate.create_resource("r1", "owner")
        grant = await sharegate.share_resource(
            "r1", "user", "u1", shared_by="owner", permissions=["read", "write"]
        )
        assert grant.share_type is ShareType.USER
        assert grant.permissions == ["read", "write"]

    async def test_list_shares(self, sharegate):
        await sharegate.create_user("u1")
        await sharegate.create_group("g1")
        await sharegate.create_resource("r1", "owner")
        await sharegate.share_resource("r1", "user", "u1", shared_by="owner")
        await sharegate.share_resource("r1", "group", "g1", shared_by="owner")

        shares = await sharegate.list_shares("r1")
        assert [(s.share_type, s.target_id) for s in shares] == [
            (ShareType.USER, "u1"),
            (ShareType.GROUP, "g1"),
        ]

    async def test_list_shares_missing_resource(self, sharegate):
        with pytest.raises(NotFoundError):
            await sharegate.list_shares("r404")

    async def test_unshare_invalid_type(self, sharegate):
        with pytest.raises(ValidationError):
            await sharegate.unshare_resource("r1", "everyone", None)


# ==================================================================
# Management
# ==================================================================


class TestUsers:
    async def test_create_and_get(self, sharegate):
        created = await sharegate.create_user("u1", email="u1@example.com", name="User One")
        assert created.email == "u1@example.com"
        fetched = await sharegate.get_user("u1")
        assert fetched.name == "User One"

    async def test_duplicate(self, sharegate):
        await sharegate.create_user("u1")
        with pytest.raises(ConflictError):
            await sharegate.create_user("u1")

    async def test_get_missing(self, sharegate):
        with pytest.raises(NotFoundError, match="ghost"):
            await sharegate.get_user("ghost")

    async def test_delete(self, sharegate):
        await sharegate.create_user("u1")
        assert await sharegate.delete_user("u1") is True
        assert await sharegate.delete_user("u1") is False
        assert await sharegate.list_users() == []

    async def test_update_sets_supplied_fields(self, sharegate):
        created = await sharegate.create_user("u1", email="old@example.com", name="Old")
        updated = await sharegate.update_user("u1", name="New")
        assert updated.name == "New"
        assert updated.email == "old@example.com"
        assert updated.updated_at > created.updated_at

        fetched = await sharegate.get_user("u1")
        assert (fetched.email, fetched.name) == ("old@example.com", "New")
        assert fetched.created_at == created.created_at

    async def test_update_missing(self, sharegate):
        with pytest.raises(NotFoundError, match="ghost"):
            await sharegate.update_user("ghost", name="x")


class TestGroups:
    async def test_create_list_delete(self, sharegate):
        await sharegate.create_group("g1", name="Engineering", description="eng")
        await sharegate.create_group("g2")
        assert [g.group_id for g in await sharegate.list_groups()] == ["g1", "g2"]
        assert (await sharegate.get_group("g1")).name == "Engineering"
        assert await sharegate.delete_group("g2") is True
        with pytest.raises(NotFoundError):
            await sharegate.get_group("g2")

    async def test_duplicate(self, sharegate):
        await sharegate.create_group("g1")
        with pytest.raises(ConflictError):
            await sharegate.create_group("g1")

    async def test_update(self, sharegate):
        created = await sharegate.create_group("g1", name="Eng", description="eng")
        updated = await sharegate.update_group("g1", description="engineering")
        assert (updated.name, updated.description) == ("Eng", "engineering")
        assert updated.updated_at > created.updated_at
        assert (await sharegate.get_group("g1")).description == "engineering"

        with pytest.raises(NotFoundError, match="ghost"):
            await sharegate.update_group("ghost", name="x")

    async def test_add_member_validates_both_sides(self, sharegate):
        await sharegate.create_user("u1")
        await sharegate.create_group("g1")
        with pytest.raises(NotFoundError, match="User"):
            await sharegate.add_member("ghost", "g1")
        with pytest.raises(NotFoundError, match="Group"):
            await sharegate.add_member("u1", "ghost")

    async def test_add_member_idempotent(self, sharegate):
        await sharegate.create_user("u1")
        await sharegate.create_group("g1")
        assert await sharegate.add_member("u1", "g1") is True
        assert await sharegate.add_member("u1", "g1") is False

    async def test_list_members_and_groups(self, sharegate):
        for uid in ("u1", "u2"):
            await sharegate.create_user(uid)
        for gid in ("g1", "g2"):
            await sharegate.create_group(gid)
        await sharegate.add_member("u1", "g1")
        await sharegate.add_member("u2", "g1")
        await sharegate.add_member("u1", "g2")

        assert [u.user_id for u in await sharegate.list_group_members("g1")] == ["u1", "u2"]
        assert [g.group_id for g in await sharegate.list_user_groups("u1")] == ["g1", "g2"]

    async def test_list_members_skips_deleted_users(self, sharegate):
        await sharegate.create_user("u1")
        await sharegate.create_user("u2")
        await sharegate.create_group("g1")
        await sharegate.add_member("u1", "g1")
        await sharegate.add_member("u2", "g1")
        await sharegate.delete_user("u1")

        assert [u.user_id for u in await sharegate.list_group_members("g1")] == ["u2"]

    async def test_list_members_missing_group(self, sharegate):
        with pytest.raises(NotFoundError):
            await sharegate.list_group_members("ghost")
        with pytest.raises(NotFoundError):
            await sharegate.list_user_groups("ghost")

    async def test_remove_member(self, sharegate):
        await sharegate.create_user("u1")
        await sharegate.create_group("g1")
        await sharegate.add_member("u1", "g1")
        assert await sharegate.remove_member("u1", "g1") is True
        assert await sharegate.remove_member("u1", "g1") is False
        assert await sharegate.list_group_members("g1") == []


class TestResources:
    async def test_create_and_get(self, sharegate):
        created = await sharegate.create_resource(
            "r1", "alice", type="report", name="Q3", description="quarterly"
        )
        assert created.is_global is False
        fetched = await sharegate.get_resource("r1")
        assert fetched.type == "report"
        assert fetched.owner_id == "alice"

    async def test_duplicate(self, sharegate):
        await sharegate.create_resource("r1", "alice")
        with pytest.raises(ConflictError):
            await sharegate.create_resource("r1", "bob")

    async def test_update_keeps_global_flag(self, sharegate):
        created = await sharegate.create_resource("r1", "alice", type="doc", name="Draft")
        await sharegate.share_resource("r1", "global", None, shared_by="alice")

        updated = await sharegate.update_resource("r1", name="Final", description="done")
        assert (updated.type, updated.name, updated.description) == ("doc", "Final", "done")
        assert updated.is_global is True
        assert updated.owner_id == "alice"
        assert updated.updated_at > created.updated_at

    async def test_update_without_fields_bumps_timestamp(self, sharegate):
        created = await sharegate.create_resource("r1", "alice", name="Draft")
        updated = await sharegate.update_resource("r1")
        assert updated.name == "Draft"
        assert updated.updated_at > created.updated_at

    async def test_update_missing(self, sharegate):
        with pytest.raises(NotFoundError, match="ghost"):
            await sharegate.update_resource("ghost", name="x")

    async def test_list_by_owner_with_global_flag(self, sharegate):
        await sharegate.create_resource("r1", "alice")
        await sharegate.create_resource("r2", "bob")
        await sharegate.create_resource("r3", "alice")
        await sharegate.share_resource("r3", "global", None, shared_by="alice")

        owned = await sharegate.list_resources("alice")
        assert [(r.resource_id, r.is_global) for r in owned] == [("r1", False), ("r3", True)]
        assert len(await sharegate.list_resources()) == 3

    async def test_delete(self, sharegate):
        await sharegate.create_resource("r1", "alice")
        assert await sharegate.delete_resource("r1") is True
        assert await sharegate.delete_resource("r1") is False
        with pytest.raises(NotFoundError):
            await sharegate.get_resource("r1")
