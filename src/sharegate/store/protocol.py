"""GrantStore protocol — the persistence surface the engine reads and writes.

Split into a read protocol used by the resolvers and a write protocol
used by the mutator and the management helpers, so read-only stores
(replicas, snapshots) can implement just ``GrantReader``.

All methods may raise ``StoreUnavailableError``; write methods may raise
``ConflictError``.  Missing rows are reported as ``None`` or an empty list,
never as an exception.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sharegate.models import (
        GroupBase,
        MembershipBase,
        ResourceBase,
        ShareGrantBase,
        UserBase,
    )


@runtime_checkable
class GrantReader(Protocol):
    """Point and range lookups over users, groups, resources and grants."""

    # ------------------------------------------------------------------
    # Users / groups
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> UserBase | None: ...

    async def list_users(self) -> list[UserBase]: ...

    async def get_group(self, group_id: str) -> GroupBase | None: ...

    async def list_groups(self) -> list[GroupBase]: ...

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def get_resource(self, resource_id: str) -> ResourceBase | None: ...

    async def list_resources(self, owner_id: str | None = None) -> list[ResourceBase]: ...

    async def list_global_resources(self) -> list[ResourceBase]:
        """Resources that currently have a global grant."""
        ...

    async def has_global_grant(self, resource_id: str) -> bool: ...

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    async def get_membership(self, user_id: str, group_id: str) -> MembershipBase | None: ...

    async def list_memberships(self) -> list[MembershipBase]: ...

    async def list_memberships_of_user(self, user_id: str) -> list[MembershipBase]: ...

    async def list_members_of_group(self, group_id: str) -> list[MembershipBase]: ...

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    async def get_grant(
        self, resource_id: str, share_type: str, target_id: str
    ) -> ShareGrantBase | None: ...

    async def list_grants_of_resource(self, resource_id: str) -> list[ShareGrantBase]: ...

    async def list_grants_targeting(
        self,
        target_id: str,
        share_type: str | None = None,
    ) -> list[ShareGrantBase]: ...


@runtime_checkable
class GrantWriter(Protocol):
    """Mutations.  Callers own the transaction boundary."""

    async def put_grant(
        self,
        resource_id: str,
        share_type: str,
        target_id: str,
        shared_by: str,
        permissions: list[str],
    ) -> ShareGrantBase:
        """Insert or overwrite the grant keyed by (resource, type, target)."""
        ...

    async def delete_grant(self, resource_id: str, share_type: str, target_id: str) -> bool: ...

    async def touch_resource(self, resource_id: str) -> None: ...

    async def add_user(self, user: UserBase) -> UserBase: ...

    async def update_user(self, user_id: str, changes: dict[str, Any]) -> UserBase | None:
        """Set *changes* and bump ``updated_at``. None if the user is missing."""
        ...

    async def delete_user(self, user_id: str) -> bool: ...

    async def add_group(self, group: GroupBase) -> GroupBase: ...

    async def update_group(self, group_id: str, changes: dict[str, Any]) -> GroupBase | None: ...

    async def delete_group(self, group_id: str) -> bool: ...

    async def add_membership(self, user_id: str, group_id: str) -> MembershipBase: ...

    async def delete_membership(self, user_id: str, group_id: str) -> bool: ...

    async def add_resource(self, resource: ResourceBase) -> ResourceBase: ...

    async def update_resource(
        self, resource_id: str, changes: dict[str, Any]
    ) -> ResourceBase | None: ...

    async def delete_resource(self, resource_id: str) -> bool: ...


@runtime_checkable
class GrantStore(GrantReader, GrantWriter, Protocol):
    """Full read/write store."""
