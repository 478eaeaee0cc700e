"""DatabaseGrantStore — SQL-backed GrantStore bound to one session.

Receives the concrete models at construction (via ``StoreModels``) so
callers can use custom SQLModel subclasses with different table names,
following the same pattern as the model base classes.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from sharegate.models import Group, Membership, Resource, ShareGrant, User
from sharegate.models.columns import utc_now

from .dialect import upsert_grant
from .exceptions import ConflictError, StoreUnavailableError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.ext.asyncio import AsyncSession

    from sharegate.models import (
        GroupBase,
        MembershipBase,
        ResourceBase,
        ShareGrantBase,
        UserBase,
    )

logger = logging.getLogger(__name__)

_GLOBAL = "global"


@dataclass(frozen=True)
class StoreModels:
    """Concrete table classes used by a DatabaseGrantStore."""

    user: type[UserBase] = User
    group: type[GroupBase] = Group
    membership: type[MembershipBase] = Membership
    resource: type[ResourceBase] = Resource
    grant: type[ShareGrantBase] = ShareGrant

    def all(self) -> list[type[Any]]:
        return [self.user, self.group, self.membership, self.resource, self.grant]


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Re-raise SQLAlchemy failures as ShareGate store errors."""
    try:
        yield
    except IntegrityError as e:
        raise ConflictError(f"{operation}: {e.orig}") from e
    except (SQLAlchemyError, OSError) as e:
        raise StoreUnavailableError(f"{operation} failed: {e}") from e


class DatabaseGrantStore:
    """GrantStore over a single ``AsyncSession``.

    Statements are serialized with an ``asyncio.Lock`` because one
    ``AsyncSession`` cannot run statements concurrently; the engine's
    fan-out may still submit lookups from several tasks at once.

    Writes flush but never commit.  The caller owns the transaction.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        models: StoreModels | None = None,
        dialect: str = "sqlite",
        schema: str | None = None,
    ) -> None:
        self._session = session
        self._models = models or StoreModels()
        self.dialect = dialect
        self.schema = schema
        self._lock = asyncio.Lock()

    @property
    def models(self) -> StoreModels:
        return self._models

    # ------------------------------------------------------------------
    # Session helpers
    # ------------------------------------------------------------------

    async def _scalars(self, stmt: Any, operation: str) -> list[Any]:
        async with self._lock:
            with translate_errors(operation):
                result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def _scalar(self, stmt: Any, operation: str) -> Any:
        async with self._lock:
            with translate_errors(operation):
                result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def _flush(self, operation: str) -> None:
        async with self._lock:
            with translate_errors(operation):
                await self._session.flush()

    async def _delete(self, obj: Any, operation: str) -> None:
        async with self._lock:
            with translate_errors(operation):
                await self._session.delete(obj)
                await self._session.flush()

    # ------------------------------------------------------------------
    # Users / groups
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> UserBase | None:
        model = self._models.user
        return await self._scalar(select(model).where(model.user_id == user_id), "get_user")

    async def list_users(self) -> list[UserBase]:
        model = self._models.user
        stmt = select(model).order_by(model.created_at, model.user_id)  # type: ignore[arg-type]
        return await self._scalars(stmt, "list_users")

    async def get_group(self, group_id: str) -> GroupBase | None:
        model = self._models.group
        return await self._scalar(select(model).where(model.group_id == group_id), "get_group")

    async def list_groups(self) -> list[GroupBase]:
        model = self._models.group
        stmt = select(model).order_by(model.created_at, model.group_id)  # type: ignore[arg-type]
        return await self._scalars(stmt, "list_groups")

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def get_resource(self, resource_id: str) -> ResourceBase | None:
        model = self._models.resource
        stmt = select(model).where(model.resource_id == resource_id)
        return await self._scalar(stmt, "get_resource")

    async def list_resources(self, owner_id: str | None = None) -> list[ResourceBase]:
        """List resources, optionally only those owned by *owner_id*."""
        model = self._models.resource
        stmt = select(model)
        if owner_id is not None:
            stmt = stmt.where(model.owner_id == owner_id)
        stmt = stmt.order_by(model.created_at, model.resource_id)  # type: ignore[arg-type]
        return await self._scalars(stmt, "list_resources")

    async def list_global_resources(self) -> list[ResourceBase]:
        """Resources with a global grant, derived by joining on the grant table."""
        rmodel = self._models.resource
        gmodel = self._models.grant
        stmt = (
            select(rmodel)
            .join(gmodel, gmodel.resource_id == rmodel.resource_id)  # type: ignore[arg-type]
            .where(gmodel.share_type == _GLOBAL)
            .order_by(rmodel.created_at, rmodel.resource_id)  # type: ignore[arg-type]
        )
        return await self._scalars(stmt, "list_global_resources")

    async def has_global_grant(self, resource_id: str) -> bool:
        model = self._models.grant
        stmt = (
            select(model.id)
            .where(model.resource_id == resource_id, model.share_type == _GLOBAL)
            .limit(1)
        )
        return await self._scalar(stmt, "has_global_grant") is not None

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    async def get_membership(self, user_id: str, group_id: str) -> MembershipBase | None:
        model = self._models.membership
        stmt = select(model).where(model.user_id == user_id, model.group_id == group_id)
        return await self._scalar(stmt, "get_membership")

    async def list_memberships(self) -> list[MembershipBase]:
        model = self._models.membership
        stmt = select(model).order_by(
            model.joined_at, model.user_id, model.group_id  # type: ignore[arg-type]
        )
        return await self._scalars(stmt, "list_memberships")

    async def list_memberships_of_user(self, user_id: str) -> list[MembershipBase]:
        model = self._models.membership
        stmt = (
            select(model)
            .where(model.user_id == user_id)
            .order_by(model.joined_at, model.group_id)  # type: ignore[arg-type]
        )
        return await self._scalars(stmt, "list_memberships_of_user")

    async def list_members_of_group(self, group_id: str) -> list[MembershipBase]:
        model = self._models.membership
        stmt = (
            select(model)
            .where(model.group_id == group_id)
            .order_by(model.joined_at, model.user_id)  # type: ignore[arg-type]
        )
        return await self._scalars(stmt, "list_members_of_group")

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    async def get_grant(
        self, resource_id: str, share_type: str, target_id: str
    ) -> ShareGrantBase | None:
        model = self._models.grant
        stmt = (
            select(model)
            .where(
                model.resource_id == resource_id,
                model.share_type == share_type,
                model.target_id == target_id,
            )
            .execution_options(populate_existing=True)
        )
        return await self._scalar(stmt, "get_grant")

    async def list_grants_of_resource(self, resource_id: str) -> list[ShareGrantBase]:
        model = self._models.grant
        stmt = (
            select(model)
            .where(model.resource_id == resource_id)
            .order_by(model.shared_at, model.target_id)  # type: ignore[arg-type]
        )
        return await self._scalars(stmt, "list_grants_of_resource")

    async def list_grants_targeting(
        self,
        target_id: str,
        share_type: str | None = None,
    ) -> list[ShareGrantBase]:
        """List grants whose target is *target_id*, optionally of one share type."""
        model = self._models.grant
        stmt = select(model).where(model.target_id == target_id)
        if share_type is not None:
            stmt = stmt.where(model.share_type == share_type)
        stmt = stmt.order_by(model.shared_at, model.resource_id)  # type: ignore[arg-type]
        return await self._scalars(stmt, "list_grants_targeting")

    async def put_grant(
        self,
        resource_id: str,
        share_type: str,
        target_id: str,
        shared_by: str,
        permissions: list[str],
    ) -> ShareGrantBase:
        """Upsert a grant and return the stored row. Flushes but does not commit."""
        values = {
            "id": str(uuid.uuid4()),
            "resource_id": resource_id,
            "share_type": share_type,
            "target_id": target_id,
            "shared_by": shared_by,
            "shared_at": utc_now(),
            "permissions": list(permissions),
        }
        async with self._lock:
            with translate_errors("put_grant"):
                await upsert_grant(
                    self._session,
                    self.dialect,
                    values,
                    model=self._models.grant,
                    schema=self.schema,
                )
        grant = await self.get_grant(resource_id, share_type, target_id)
        if grant is None:
            raise StoreUnavailableError(
                f"put_grant: grant ({resource_id}, {share_type}, {target_id}) missing after upsert"
            )
        return grant

    async def delete_grant(self, resource_id: str, share_type: str, target_id: str) -> bool:
        """Remove an exact grant match. Returns True if found."""
        grant = await self.get_grant(resource_id, share_type, target_id)
        if grant is None:
            return False
        await self._delete(grant, "delete_grant")
        return True

    async def touch_resource(self, resource_id: str) -> None:
        """Bump ``updated_at`` on a resource. No-op if it does not exist."""
        resource = await self.get_resource(resource_id)
        if resource is None:
            return
        resource.updated_at = utc_now()
        await self._flush("touch_resource")

    # ------------------------------------------------------------------
    # Management writes
    # ------------------------------------------------------------------

    async def _add(self, obj: Any, operation: str) -> Any:
        async with self._lock:
            self._session.add(obj)
        await self._flush(operation)
        return obj

    async def _update(self, obj: Any, changes: dict[str, Any], operation: str) -> Any:
        """Apply *changes* to a loaded row, bump ``updated_at`` and flush."""
        for name, value in changes.items():
            setattr(obj, name, value)
        obj.updated_at = utc_now()
        await self._flush(operation)
        return obj

    async def add_user(self, user: UserBase) -> UserBase:
        if await self.get_user(user.user_id) is not None:
            raise ConflictError(f"User already exists: {user.user_id}")
        return await self._add(user, "add_user")

    async def update_user(self, user_id: str, changes: dict[str, Any]) -> UserBase | None:
        user = await self.get_user(user_id)
        if user is None:
            return None
        return await self._update(user, changes, "update_user")

    async def delete_user(self, user_id: str) -> bool:
        user = await self.get_user(user_id)
        if user is None:
            return False
        await self._delete(user, "delete_user")
        return True

    async def add_group(self, group: GroupBase) -> GroupBase:
        if await self.get_group(group.group_id) is not None:
            raise ConflictError(f"Group already exists: {group.group_id}")
        return await self._add(group, "add_group")

    async def update_group(self, group_id: str, changes: dict[str, Any]) -> GroupBase | None:
        group = await self.get_group(group_id)
        if group is None:
            return None
        return await self._update(group, changes, "update_group")

    async def delete_group(self, group_id: str) -> bool:
        group = await self.get_group(group_id)
        if group is None:
            return False
        await self._delete(group, "delete_group")
        return True

    async def add_membership(self, user_id: str, group_id: str) -> MembershipBase:
        if await self.get_membership(user_id, group_id) is not None:
            raise ConflictError(f"Membership already exists: ({user_id}, {group_id})")
        membership = self._models.membership(user_id=user_id, group_id=group_id)
        return await self._add(membership, "add_membership")

    async def delete_membership(self, user_id: str, group_id: str) -> bool:
        membership = await self.get_membership(user_id, group_id)
        if membership is None:
            return False
        await self._delete(membership, "delete_membership")
        return True

    async def add_resource(self, resource: ResourceBase) -> ResourceBase:
        if await self.get_resource(resource.resource_id) is not None:
            raise ConflictError(f"Resource already exists: {resource.resource_id}")
        return await self._add(resource, "add_resource")

    async def update_resource(
        self, resource_id: str, changes: dict[str, Any]
    ) -> ResourceBase | None:
        resource = await self.get_resource(resource_id)
        if resource is None:
            return None
        return await self._update(resource, changes, "update_resource")

    async def delete_resource(self, resource_id: str) -> bool:
        resource = await self.get_resource(resource_id)
        if resource is None:
            return False
        await self._delete(resource, "delete_resource")
        return True
