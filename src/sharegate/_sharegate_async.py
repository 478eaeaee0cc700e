"""ShareGateAsync — primary async class wiring store, resolvers and events."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sharegate.access.aggregator import Aggregator
from sharegate.access.forward import ForwardResolver
from sharegate.access.mutator import GrantMutator
from sharegate.access.reverse import ReverseResolver
from sharegate.access.types import (
    GrantInfo,
    GroupInfo,
    ResourceInfo,
    UserInfo,
    parse_target,
)
from sharegate.config import EngineConfig
from sharegate.events import AccessEvent, EventBus, EventType
from sharegate.store.database_store import DatabaseGrantStore, StoreModels, translate_errors
from sharegate.store.dialect import get_dialect
from sharegate.store.exceptions import NotFoundError, ShareGateError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable, Iterable

    from sqlalchemy.ext.asyncio import AsyncEngine

    from sharegate.access.types import (
        AccessList,
        ResourceList,
        ResourceUserCount,
        ShareType,
        UserResourceCount,
    )
    from sharegate.models import (
        GroupBase,
        MembershipBase,
        ResourceBase,
        ShareGrantBase,
        UserBase,
    )

logger = logging.getLogger(__name__)


def _supplied(**fields: str | None) -> dict[str, str]:
    """Keep only the fields the caller actually passed."""
    return {k: v for k, v in fields.items() if v is not None}


class ShareGateAsync:
    """Async facade over the access resolution engine.

    Every public call runs in its own session: committed on success,
    rolled back on any exception.  Events for mutations are emitted only
    after the commit succeeds.

    Engine-based (creates tables on ``open()``)::

        engine = create_async_engine("postgresql+asyncpg://...")
        async with ShareGateAsync(engine=engine) as sg:
            await sg.share_resource("r1", "group", "eng", shared_by="alice")
            access = await sg.resolve_resource_access("r1")

    Session-factory based (tables managed elsewhere)::

        sg = ShareGateAsync(session_factory=my_factory, dialect="postgresql")
    """

    def __init__(
        self,
        *,
        engine: AsyncEngine | None = None,
        session_factory: Callable[..., AsyncSession] | None = None,
        config: EngineConfig | None = None,
        dialect: str = "sqlite",
        db_schema: str | None = None,
        user_model: type[UserBase] | None = None,
        group_model: type[GroupBase] | None = None,
        membership_model: type[MembershipBase] | None = None,
        resource_model: type[ResourceBase] | None = None,
        grant_model: type[ShareGrantBase] | None = None,
    ) -> None:
        if engine is not None and session_factory is not None:
            raise ValueError("Provide engine or session_factory, not both")
        if engine is None and session_factory is None:
            raise ValueError("Provide engine or session_factory")

        self._engine = engine
        if engine is not None:
            self._session_factory: Callable[..., AsyncSession] = async_sessionmaker(
                engine, class_=AsyncSession, expire_on_commit=False
            )
            self._dialect = get_dialect(engine)
        else:
            assert session_factory is not None
            self._session_factory = session_factory
            self._dialect = dialect

        self._schema = db_schema
        self._config = config or EngineConfig()
        defaults = StoreModels()
        self._models = StoreModels(
            user=user_model or defaults.user,
            group=group_model or defaults.group,
            membership=membership_model or defaults.membership,
            resource=resource_model or defaults.resource,
            grant=grant_model or defaults.grant,
        )

        self._event_bus = EventBus()
        self._forward = ForwardResolver(self._config)
        self._reverse = ReverseResolver(self._config)
        self._mutator = GrantMutator(self._config)
        self._aggregator = Aggregator(self._forward, self._reverse, self._config)
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create the model tables if configured and an engine is available."""
        if self._engine is None or not self._config.create_tables:
            return
        tables = [m.__table__ for m in self._models.all()]  # type: ignore[attr-defined]
        with translate_errors("create_tables"):
            async with self._engine.begin() as conn:
                for table in tables:
                    await conn.run_sync(
                        lambda c, t=table: t.create(c, checkfirst=True)
                    )

    async def close(self) -> None:
        """Mark closed.  The engine belongs to the caller and is not disposed."""
        self._closed = True

    async def __aenter__(self) -> ShareGateAsync:
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    # ------------------------------------------------------------------
    # Session Management (per-operation only)
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _store(self) -> AsyncGenerator[DatabaseGrantStore]:
        """Yield a store bound to a fresh session; commit or roll back."""
        if self._closed:
            raise ShareGateError("ShareGateAsync is closed")
        session = self._session_factory()
        try:
            yield DatabaseGrantStore(
                session, models=self._models, dialect=self._dialect, schema=self._schema
            )
            with translate_errors("commit"):
                await session.commit()
        except Exception:
            logger.debug("Rolling back failed operation", exc_info=True)
            await session.rollback()
            raise
        finally:
            await session.close()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_resource_access(self, resource_id: str) -> AccessList:
        """Every user with access to *resource_id*, with provenance."""
        async with self._store() as store:
            return await self._forward.resolve(store, resource_id)

    async def resolve_user_resources(self, user_id: str) -> ResourceList:
        """Every resource *user_id* can reach, with provenance."""
        async with self._store() as store:
            return await self._reverse.resolve(store, user_id)

    async def resources_with_user_count(self) -> list[ResourceUserCount]:
        async with self._store() as store:
            return await self._aggregator.resources_with_user_count(store)

    async def users_with_resource_count(self) -> list[UserResourceCount]:
        async with self._store() as store:
            return await self._aggregator.users_with_resource_count(store)

    # ------------------------------------------------------------------
    # Grant mutation
    # ------------------------------------------------------------------

    async def share_resource(
        self,
        resource_id: str,
        share_type: ShareType | str,
        target_id: str | None,
        shared_by: str,
        permissions: Iterable[str] | None = None,
    ) -> GrantInfo:
        """Share *resource_id* with a user, a group, or everyone (upsert)."""
        target = parse_target(share_type, target_id)
        async with self._store() as store:
            grant = await self._mutator.share(store, resource_id, target, shared_by, permissions)
        await self._event_bus.emit(
            AccessEvent(
                EventType.GRANT_CREATED,
                resource_id=resource_id,
                share_type=grant.share_type.value,
                target_id=grant.target_id,
            )
        )
        return grant

    async def unshare_resource(
        self,
        resource_id: str,
        share_type: ShareType | str,
        target_id: str | None = None,
    ) -> bool:
        """Remove a grant.  Returns False if there was nothing to remove."""
        target = parse_target(share_type, target_id)
        async with self._store() as store:
            removed = await self._mutator.unshare(store, resource_id, target)
        if removed:
            await self._event_bus.emit(
                AccessEvent(
                    EventType.GRANT_REMOVED,
                    resource_id=resource_id,
                    share_type=target.share_type.value,
                    target_id=target.target_id,
                )
            )
        return removed

    async def list_shares(self, resource_id: str) -> list[GrantInfo]:
        """All grants on *resource_id*."""
        async with self._store() as store:
            if await store.get_resource(resource_id) is None:
                raise NotFoundError(f"Resource not found: {resource_id}")
            grants = await store.list_grants_of_resource(resource_id)
            return [GrantInfo.from_record(g) for g in grants]

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(self, user_id: str, *, email: str = "", name: str = "") -> UserInfo:
        async with self._store() as store:
            user = await store.add_user(
                self._models.user(user_id=user_id, email=email, name=name)
            )
            return UserInfo.from_record(user)

    async def get_user(self, user_id: str) -> UserInfo:
        async with self._store() as store:
            user = await store.get_user(user_id)
            if user is None:
                raise NotFoundError(f"User not found: {user_id}")
            return UserInfo.from_record(user)

    async def update_user(
        self, user_id: str, *, email: str | None = None, name: str | None = None
    ) -> UserInfo:
        """Set the supplied fields on *user_id* and bump ``updated_at``."""
        async with self._store() as store:
            user = await store.update_user(user_id, _supplied(email=email, name=name))
            if user is None:
                raise NotFoundError(f"User not found: {user_id}")
            return UserInfo.from_record(user)

    async def list_users(self) -> list[UserInfo]:
        async with self._store() as store:
            return [UserInfo.from_record(u) for u in await store.list_users()]

    async def delete_user(self, user_id: str) -> bool:
        """Delete a user.  Grants and memberships that name it are left dangling."""
        async with self._store() as store:
            return await store.delete_user(user_id)

    # ------------------------------------------------------------------
    # Groups and memberships
    # ------------------------------------------------------------------

    async def create_group(
        self, group_id: str, *, name: str = "", description: str = ""
    ) -> GroupInfo:
        async with self._store() as store:
            group = await store.add_group(
                self._models.group(group_id=group_id, name=name, description=description)
            )
            return GroupInfo.from_record(group)

    async def get_group(self, group_id: str) -> GroupInfo:
        async with self._store() as store:
            group = await store.get_group(group_id)
            if group is None:
                raise NotFoundError(f"Group not found: {group_id}")
            return GroupInfo.from_record(group)

    async def update_group(
        self, group_id: str, *, name: str | None = None, description: str | None = None
    ) -> GroupInfo:
        async with self._store() as store:
            group = await store.update_group(
                group_id, _supplied(name=name, description=description)
            )
            if group is None:
                raise NotFoundError(f"Group not found: {group_id}")
            return GroupInfo.from_record(group)

    async def list_groups(self) -> list[GroupInfo]:
        async with self._store() as store:
            return [GroupInfo.from_record(g) for g in await store.list_groups()]

    async def delete_group(self, group_id: str) -> bool:
        async with self._store() as store:
            return await store.delete_group(group_id)

    async def add_member(self, user_id: str, group_id: str) -> bool:
        """Add *user_id* to *group_id*.  Returns False if already a member."""
        async with self._store() as store:
            if await store.get_user(user_id) is None:
                raise NotFoundError(f"User not found: {user_id}")
            if await store.get_group(group_id) is None:
                raise NotFoundError(f"Group not found: {group_id}")
            if await store.get_membership(user_id, group_id) is not None:
                return False
            await store.add_membership(user_id, group_id)
        await self._event_bus.emit(
            AccessEvent(EventType.MEMBER_ADDED, user_id=user_id, group_id=group_id)
        )
        return True

    async def remove_member(self, user_id: str, group_id: str) -> bool:
        async with self._store() as store:
            removed = await store.delete_membership(user_id, group_id)
        if removed:
            await self._event_bus.emit(
                AccessEvent(EventType.MEMBER_REMOVED, user_id=user_id, group_id=group_id)
            )
        return removed

    async def list_group_members(self, group_id: str) -> list[UserInfo]:
        async with self._store() as store:
            if await store.get_group(group_id) is None:
                raise NotFoundError(f"Group not found: {group_id}")
            members: list[UserInfo] = []
            for m in await store.list_members_of_group(group_id):
                user = await store.get_user(m.user_id)
                if user is not None:
                    members.append(UserInfo.from_record(user))
            return members

    async def list_user_groups(self, user_id: str) -> list[GroupInfo]:
        async with self._store() as store:
            if await store.get_user(user_id) is None:
                raise NotFoundError(f"User not found: {user_id}")
            groups: list[GroupInfo] = []
            for m in await store.list_memberships_of_user(user_id):
                group = await store.get_group(m.group_id)
                if group is not None:
                    groups.append(GroupInfo.from_record(group))
            return groups

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def create_resource(
        self,
        resource_id: str,
        owner_id: str,
        *,
        type: str = "",
        name: str = "",
        description: str = "",
    ) -> ResourceInfo:
        async with self._store() as store:
            resource = await store.add_resource(
                self._models.resource(
                    resource_id=resource_id,
                    owner_id=owner_id,
                    type=type,
                    name=name,
                    description=description,
                )
            )
            return ResourceInfo.from_record(resource)

    async def get_resource(self, resource_id: str) -> ResourceInfo:
        async with self._store() as store:
            resource = await store.get_resource(resource_id)
            if resource is None:
                raise NotFoundError(f"Resource not found: {resource_id}")
            return ResourceInfo.from_record(
                resource, is_global=await store.has_global_grant(resource_id)
            )

    async def update_resource(
        self,
        resource_id: str,
        *,
        type: str | None = None,
        name: str | None = None,
        description: str | None = None,
    ) -> ResourceInfo:
        """Set the supplied metadata fields on *resource_id*.

        Global visibility is not a field here: share or unshare with the
        ``global`` share type instead.
        """
        async with self._store() as store:
            resource = await store.update_resource(
                resource_id, _supplied(type=type, name=name, description=description)
            )
            if resource is None:
                raise NotFoundError(f"Resource not found: {resource_id}")
            return ResourceInfo.from_record(
                resource, is_global=await store.has_global_grant(resource_id)
            )

    async def list_resources(self, owner_id: str | None = None) -> list[ResourceInfo]:
        """List resources, optionally only those owned by *owner_id*."""
        async with self._store() as store:
            resources = await store.list_resources(owner_id)
            global_ids = {r.resource_id for r in await store.list_global_resources()}
            return [
                ResourceInfo.from_record(r, is_global=r.resource_id in global_ids)
                for r in resources
            ]

    async def delete_resource(self, resource_id: str) -> bool:
        """Delete a resource.  Its grants are left dangling and skipped on read."""
        async with self._store() as store:
            return await store.delete_resource(resource_id)

