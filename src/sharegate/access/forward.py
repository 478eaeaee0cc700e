"""ForwardResolver — who can reach a resource, and why.

Stateless: holds only configuration and receives the store per call.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from sharegate.config import EngineConfig
from sharegate.store.exceptions import NotFoundError

from .fanout import gather_bounded
from .types import AccessEntry, AccessList, AccessType, ShareType, UserInfo

if TYPE_CHECKING:
    from sharegate.models import ResourceBase, ShareGrantBase, UserBase
    from sharegate.store.protocol import GrantReader

    from .index import MembershipIndex

logger = logging.getLogger(__name__)


class ForwardResolver:
    """Expands a resource's grants into a deduplicated access list.

    Resolution order is fixed: if a global grant exists every user has
    global access; otherwise user grants are applied first, then group
    grants, each in store order.  The first path recorded for a user wins
    and is never overwritten by a later one.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or EngineConfig()

    async def resolve(
        self,
        store: GrantReader,
        resource_id: str,
        *,
        index: MembershipIndex | None = None,
    ) -> AccessList:
        """Resolve access for *resource_id*. Raises ``NotFoundError`` if missing."""
        resource = await store.get_resource(resource_id)
        if resource is None:
            raise NotFoundError(f"Resource not found: {resource_id}")
        return await self.resolve_resource(store, resource, index=index)

    async def resolve_resource(
        self,
        store: GrantReader,
        resource: ResourceBase,
        *,
        index: MembershipIndex | None = None,
    ) -> AccessList:
        """Resolve access for an already-fetched *resource*.

        When *index* is given, users and group members come from it instead
        of per-grant store lookups.
        """
        resource_id = resource.resource_id
        grants = await store.list_grants_of_resource(resource_id)

        if any(g.share_type == ShareType.GLOBAL for g in grants):
            return await self._global_access(store, resource_id, index)

        user_grants = [g for g in grants if g.share_type == ShareType.USER]
        group_grants = [g for g in grants if g.share_type == ShareType.GROUP]

        limit = self._config.max_concurrency
        member_lists = await gather_bounded(
            [partial(self._members_of, store, g.target_id, index) for g in group_grants],
            limit,
        )

        candidates = list(
            dict.fromkeys(
                [g.target_id for g in user_grants]
                + [uid for members in member_lists for uid in members]
            )
        )
        users = await self._lookup_users(store, candidates, index)

        seen: set[str] = set()
        entries: list[AccessEntry] = []

        for grant in user_grants:
            user = users.get(grant.target_id)
            if user is None:
                logger.debug(
                    "Skipping dangling user grant %s -> %s", resource_id, grant.target_id
                )
                continue
            if grant.target_id in seen:
                continue
            seen.add(grant.target_id)
            entries.append(_entry(user, AccessType.DIRECT, grant))

        for grant, members in zip(group_grants, member_lists, strict=True):
            for uid in members:
                user = users.get(uid)
                if user is None or uid in seen:
                    continue
                seen.add(uid)
                entries.append(_entry(user, AccessType.GROUP, grant, group_id=grant.target_id))

        logger.debug(
            "Resolved %s: %d users from %d user grants and %d group grants",
            resource_id,
            len(seen),
            len(user_grants),
            len(group_grants),
        )
        return AccessList(
            resource_id=resource_id,
            access_type=AccessType.SPECIFIC,
            total_users=len(seen),
            entries=entries,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _global_access(
        self,
        store: GrantReader,
        resource_id: str,
        index: MembershipIndex | None,
    ) -> AccessList:
        users = list(index.users.values()) if index is not None else await store.list_users()
        entries = [
            AccessEntry(
                user_id=u.user_id,
                access_type=AccessType.GLOBAL,
                user=UserInfo.from_record(u),
            )
            for u in users
        ]
        return AccessList(
            resource_id=resource_id,
            access_type=AccessType.GLOBAL,
            total_users=len(entries),
            entries=entries,
        )

    async def _members_of(
        self,
        store: GrantReader,
        group_id: str,
        index: MembershipIndex | None,
    ) -> list[str]:
        if index is not None:
            members = index.members_of(group_id)
        elif await store.get_group(group_id) is None:
            members = None
        else:
            members = [m.user_id for m in await store.list_members_of_group(group_id)]

        if members is None:
            logger.debug("Skipping dangling group grant -> %s", group_id)
            return []
        return members

    async def _lookup_users(
        self,
        store: GrantReader,
        user_ids: list[str],
        index: MembershipIndex | None,
    ) -> dict[str, UserBase]:
        if index is not None:
            return {uid: u for uid in user_ids if (u := index.get_user(uid)) is not None}
        records = await gather_bounded(
            [partial(store.get_user, uid) for uid in user_ids],
            self._config.max_concurrency,
        )
        return {uid: u for uid, u in zip(user_ids, records, strict=True) if u is not None}


def _entry(
    user: UserBase,
    access_type: AccessType,
    grant: ShareGrantBase,
    *,
    group_id: str | None = None,
) -> AccessEntry:
    return AccessEntry(
        user_id=user.user_id,
        access_type=access_type,
        user=UserInfo.from_record(user),
        group_id=group_id,
        shared_by=grant.shared_by,
        shared_at=grant.shared_at,
        permissions=list(grant.permissions),
    )
