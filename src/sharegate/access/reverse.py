"""ReverseResolver — which resources a user can reach, and why."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from sharegate.config import EngineConfig
from sharegate.store.exceptions import NotFoundError

from .fanout import gather_bounded
from .types import AccessType, ResourceAccess, ResourceInfo, ResourceList, ShareType

if TYPE_CHECKING:
    from sharegate.models import ResourceBase, ShareGrantBase, UserBase
    from sharegate.store.protocol import GrantReader

    from .index import MembershipIndex, ResourceCatalog

logger = logging.getLogger(__name__)


class ReverseResolver:
    """Collects every resource reachable by a user.

    Merge order is direct grants, then group grants (in membership order),
    then global resources.  Dedup is by resource id, first writer wins, the
    same tie-break the forward resolver uses.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or EngineConfig()

    async def resolve(
        self,
        store: GrantReader,
        user_id: str,
        *,
        index: MembershipIndex | None = None,
        catalog: ResourceCatalog | None = None,
    ) -> ResourceList:
        """Resolve resources for *user_id*. Raises ``NotFoundError`` if missing."""
        user = await store.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")
        return await self.resolve_user(store, user, index=index, catalog=catalog)

    async def resolve_user(
        self,
        store: GrantReader,
        user: UserBase,
        *,
        index: MembershipIndex | None = None,
        catalog: ResourceCatalog | None = None,
    ) -> ResourceList:
        """Resolve resources for an already-fetched *user*."""
        user_id = user.user_id
        limit = self._config.max_concurrency
        group_ids = await self._groups_of(store, user_id, index)

        direct, *per_group = await gather_bounded(
            [partial(store.list_grants_targeting, user_id, ShareType.USER.value)]
            + [
                partial(store.list_grants_targeting, gid, ShareType.GROUP.value)
                for gid in group_ids
            ],
            limit,
        )

        if catalog is not None:
            global_resources = catalog.global_resources()
        else:
            global_resources = await store.list_global_resources()
        global_ids = {r.resource_id for r in global_resources}

        granted_ids = list(
            dict.fromkeys(
                [g.resource_id for g in direct]
                + [g.resource_id for grants in per_group for g in grants]
            )
        )
        resources = await self._lookup_resources(store, granted_ids, catalog)

        seen: set[str] = set()
        out: list[ResourceAccess] = []

        def _add(grant: ShareGrantBase, access_type: AccessType, group_id: str | None) -> None:
            resource = resources.get(grant.resource_id)
            if resource is None:
                logger.debug(
                    "Skipping grant on missing resource %s for %s", grant.resource_id, user_id
                )
                return
            if grant.resource_id in seen:
                return
            seen.add(grant.resource_id)
            out.append(
                ResourceAccess(
                    resource=ResourceInfo.from_record(
                        resource, is_global=grant.resource_id in global_ids
                    ),
                    access_type=access_type,
                    group_id=group_id,
                    shared_by=grant.shared_by,
                    shared_at=grant.shared_at,
                    permissions=list(grant.permissions),
                )
            )

        for grant in direct:
            _add(grant, AccessType.DIRECT, None)
        for gid, grants in zip(group_ids, per_group, strict=True):
            for grant in grants:
                _add(grant, AccessType.GROUP, gid)

        for resource in global_resources:
            if resource.resource_id in seen:
                continue
            seen.add(resource.resource_id)
            out.append(
                ResourceAccess(
                    resource=ResourceInfo.from_record(resource, is_global=True),
                    access_type=AccessType.GLOBAL,
                    permissions=list(self._config.global_permissions),
                )
            )

        logger.debug(
            "Resolved user %s: %d resources via %d groups", user_id, len(seen), len(group_ids)
        )
        return ResourceList(user_id=user_id, total_resources=len(seen), resources=out)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _groups_of(
        self,
        store: GrantReader,
        user_id: str,
        index: MembershipIndex | None,
    ) -> list[str]:
        """Ordered ids of the live groups *user_id* belongs to."""
        if index is not None:
            return index.groups_of(user_id)

        candidates = list(
            dict.fromkeys(m.group_id for m in await store.list_memberships_of_user(user_id))
        )
        groups = await gather_bounded(
            [partial(store.get_group, gid) for gid in candidates],
            self._config.max_concurrency,
        )
        live = [gid for gid, group in zip(candidates, groups, strict=True) if group is not None]
        if len(live) != len(candidates):
            logger.debug(
                "Skipping %d dangling memberships for %s", len(candidates) - len(live), user_id
            )
        return live

    async def _lookup_resources(
        self,
        store: GrantReader,
        resource_ids: list[str],
        catalog: ResourceCatalog | None,
    ) -> dict[str, ResourceBase]:
        if catalog is not None:
            return {rid: r for rid in resource_ids if (r := catalog.get(rid)) is not None}
        records = await gather_bounded(
            [partial(store.get_resource, rid) for rid in resource_ids],
            self._config.max_concurrency,
        )
        return {
            rid: r for rid, r in zip(resource_ids, records, strict=True) if r is not None
        }
