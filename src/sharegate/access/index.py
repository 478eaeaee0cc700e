"""MembershipIndex and ResourceCatalog — prefetched state for batch resolution.

Built once per aggregation pass so that resolving N entities costs one
scan of users, groups and memberships instead of one membership query
per entity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sharegate.models import GroupBase, ResourceBase, UserBase
    from sharegate.store.protocol import GrantReader

logger = logging.getLogger(__name__)


@dataclass
class MembershipIndex:
    """In-memory view of users, groups and the edges between them.

    Memberships that reference a missing user or group are dropped at
    build time, so every id the index hands out refers to a live entity.
    Dict and list order follows store order.
    """

    users: dict[str, UserBase] = field(default_factory=dict)
    groups: dict[str, GroupBase] = field(default_factory=dict)
    members_by_group: dict[str, list[str]] = field(default_factory=dict)
    groups_by_user: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    async def build(cls, store: GrantReader) -> MembershipIndex:
        users = await store.list_users()
        groups = await store.list_groups()
        memberships = await store.list_memberships()

        index = cls(
            users={u.user_id: u for u in users},
            groups={g.group_id: g for g in groups},
        )
        skipped = 0
        for m in memberships:
            if m.user_id not in index.users or m.group_id not in index.groups:
                skipped += 1
                continue
            index.members_by_group.setdefault(m.group_id, []).append(m.user_id)
            index.groups_by_user.setdefault(m.user_id, []).append(m.group_id)

        logger.debug(
            "Built membership index: %d users, %d groups, %d memberships (%d dangling)",
            len(index.users),
            len(index.groups),
            len(memberships) - skipped,
            skipped,
        )
        return index

    def get_user(self, user_id: str) -> UserBase | None:
        return self.users.get(user_id)

    def has_group(self, group_id: str) -> bool:
        return group_id in self.groups

    def members_of(self, group_id: str) -> list[str] | None:
        """Member ids of *group_id*, or None if the group does not exist."""
        if not self.has_group(group_id):
            return None
        return list(self.members_by_group.get(group_id, []))

    def groups_of(self, user_id: str) -> list[str]:
        return list(self.groups_by_user.get(user_id, []))


@dataclass
class ResourceCatalog:
    """All resources plus the ids of the globally shared ones."""

    resources: dict[str, ResourceBase] = field(default_factory=dict)
    global_ids: list[str] = field(default_factory=list)

    @classmethod
    async def build(cls, store: GrantReader) -> ResourceCatalog:
        resources = await store.list_resources()
        global_resources = await store.list_global_resources()
        return cls(
            resources={r.resource_id: r for r in resources},
            global_ids=[r.resource_id for r in global_resources],
        )

    def get(self, resource_id: str) -> ResourceBase | None:
        return self.resources.get(resource_id)

    def global_resources(self) -> list[ResourceBase]:
        return [self.resources[rid] for rid in self.global_ids if rid in self.resources]

