"""GrantMutator — create and remove share grants.

A resource is global exactly when a global grant row exists for it, so
sharing or unsharing globally is a single grant write.  The resource's
``updated_at`` is bumped alongside it in the caller's transaction.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, assert_never

from sharegate.config import EngineConfig
from sharegate.store.exceptions import NotFoundError, ValidationError

from .types import GlobalTarget, GrantInfo, GroupTarget, UserTarget, normalize_permissions

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sharegate.store.protocol import GrantStore

    from .types import ShareTarget

logger = logging.getLogger(__name__)


class GrantMutator:
    """Writes grants after validating the resource and the target.

    Re-sharing an existing ``(resource, share_type, target)`` key is an
    upsert: permissions, ``shared_by`` and ``shared_at`` are overwritten.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or EngineConfig()

    async def share(
        self,
        store: GrantStore,
        resource_id: str,
        target: ShareTarget,
        shared_by: str,
        permissions: Iterable[str] | None = None,
    ) -> GrantInfo:
        """Create or overwrite a grant. Flushes but does not commit."""
        if not shared_by or not shared_by.strip():
            raise ValidationError("shared_by is required")
        perms = normalize_permissions(
            self._config.default_permissions if permissions is None else permissions
        )

        if await store.get_resource(resource_id) is None:
            raise NotFoundError(f"Resource not found: {resource_id}")

        match target:
            case UserTarget(user_id=user_id):
                if await store.get_user(user_id) is None:
                    raise NotFoundError(f"Target user not found: {user_id}")
            case GroupTarget(group_id=group_id):
                if await store.get_group(group_id) is None:
                    raise NotFoundError(f"Target group not found: {group_id}")
            case GlobalTarget():
                await store.touch_resource(resource_id)
            case _:
                assert_never(target)

        grant = await store.put_grant(
            resource_id,
            target.share_type.value,
            target.target_id,
            shared_by,
            perms,
        )
        logger.debug(
            "Shared %s with %s:%s (%s)",
            resource_id,
            target.share_type.value,
            target.target_id,
            ",".join(perms),
        )
        return GrantInfo.from_record(grant)

    async def unshare(
        self,
        store: GrantStore,
        resource_id: str,
        target: ShareTarget,
    ) -> bool:
        """Remove a grant. Returns False, without error, if it did not exist."""
        removed = await store.delete_grant(
            resource_id, target.share_type.value, target.target_id
        )
        if removed and isinstance(target, GlobalTarget):
            await store.touch_resource(resource_id)
        logger.debug(
            "Unshare %s from %s:%s -> %s",
            resource_id,
            target.share_type.value,
            target.target_id,
            "removed" if removed else "absent",
        )
        return removed
