"""Aggregator — resolve every resource or every user for reporting."""

from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from sharegate.config import EngineConfig

from .fanout import gather_bounded
from .forward import ForwardResolver
from .index import MembershipIndex, ResourceCatalog
from .reverse import ReverseResolver
from .types import AccessType, ResourceInfo, ResourceUserCount, UserInfo, UserResourceCount

if TYPE_CHECKING:
    from sharegate.store.protocol import GrantReader

logger = logging.getLogger(__name__)


class Aggregator:
    """Batch resolution sharing one prefetched membership index.

    Each pass scans users, groups and memberships once, then resolves every
    entity against that index.  Output order follows store list order.
    """

    def __init__(
        self,
        forward: ForwardResolver | None = None,
        reverse: ReverseResolver | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._forward = forward or ForwardResolver(self._config)
        self._reverse = reverse or ReverseResolver(self._config)

    async def resources_with_user_count(self, store: GrantReader) -> list[ResourceUserCount]:
        index = await MembershipIndex.build(store)
        resources = await store.list_resources()
        access_lists = await gather_bounded(
            [partial(self._forward.resolve_resource, store, r, index=index) for r in resources],
            self._config.max_concurrency,
        )
        logger.debug("Aggregated user counts for %d resources", len(resources))
        return [
            ResourceUserCount(
                resource=ResourceInfo.from_record(
                    r, is_global=access.access_type is AccessType.GLOBAL
                ),
                user_count=access.total_users,
                access_type=access.access_type,
            )
            for r, access in zip(resources, access_lists, strict=True)
        ]

    async def users_with_resource_count(self, store: GrantReader) -> list[UserResourceCount]:
        index = await MembershipIndex.build(store)
        catalog = await ResourceCatalog.build(store)
        users = list(index.users.values())
        resource_lists = await gather_bounded(
            [
                partial(self._reverse.resolve_user, store, u, index=index, catalog=catalog)
                for u in users
            ],
            self._config.max_concurrency,
        )
        logger.debug("Aggregated resource counts for %d users", len(users))
        return [
            UserResourceCount(user=UserInfo.from_record(u), resource_count=rl.total_resources)
            for u, rl in zip(users, resource_lists, strict=True)
        ]
