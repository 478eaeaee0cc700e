"""Shared fixtures for ShareGate tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from sharegate._sharegate_async import ShareGateAsync
from sharegate.models import Group, Resource, User
from sharegate.store.database_store import DatabaseGrantStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterable

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session, rolled back after each test."""
    factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def store(async_session: AsyncSession) -> DatabaseGrantStore:
    """DatabaseGrantStore bound to the test session (flushes, never commits)."""
    return DatabaseGrantStore(async_session)


@pytest.fixture
def seed(store: DatabaseGrantStore) -> Callable[..., Awaitable[None]]:
    """Populate the store in one call.

    ``grants`` are ``(resource_id, share_type, target_id)`` triples or
    ``(resource_id, share_type, target_id, permissions)`` quadruples,
    written in order so store order matches argument order.
    """

    async def _seed(
        *,
        users: Iterable[str] = (),
        groups: Iterable[str] = (),
        members: Iterable[tuple[str, str]] = (),
        resources: Iterable[str] = (),
        grants: Iterable[tuple] = (),
        owner: str = "owner",
    ) -> None:
        for uid in users:
            await store.add_user(User(user_id=uid, email=f"{uid}@example.com", name=uid))
        for gid in groups:
            await store.add_group(Group(group_id=gid, name=gid))
        for uid, gid in members:
            await store.add_membership(uid, gid)
        for rid in resources:
            await store.add_resource(Resource(resource_id=rid, owner_id=owner, name=rid))
        for grant in grants:
            rid, share_type, target_id, *rest = grant
            perms = list(rest[0]) if rest else ["read"]
            await store.put_grant(rid, share_type, target_id, owner, perms)

    return _seed


@pytest.fixture
async def sharegate(async_engine: AsyncEngine) -> AsyncIterator[ShareGateAsync]:
    """ShareGateAsync over the in-memory engine, one session per call."""
    sg = ShareGateAsync(engine=async_engine)
    await sg.open()
    yield sg
    await sg.close()
