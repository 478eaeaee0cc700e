"""ShareGate — synchronous wrapper over ShareGateAsync."""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import create_async_engine

from sharegate._sharegate_async import ShareGateAsync

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sharegate.access.types import (
        AccessList,
        GrantInfo,
        GroupInfo,
        ResourceInfo,
        ResourceList,
        ResourceUserCount,
        ShareType,
        UserInfo,
        UserResourceCount,
    )
    from sharegate.config import EngineConfig
    from sharegate.events import AccessHandler, EventType, Subscription


class ShareGate:
    """Synchronous facade backed by a private event loop in a background thread.

    Owns its database engine: created from *url* at construction and
    disposed on ``close()``.

    Usage::

        with ShareGate("sqlite+aiosqlite:///access.db") as sg:
            sg.create_user("alice")
            sg.create_resource("doc-1", owner_id="alice")
            sg.share_resource("doc-1", "global", None, shared_by="alice")
            print(sg.resolve_resource_access("doc-1").total_users)
    """

    def __init__(
        self,
        url: str = "sqlite+aiosqlite://",
        *,
        config: EngineConfig | None = None,
        echo: bool = False,
    ) -> None:
        self._closed = False

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        try:
            self._run(self._async_init(url, config, echo))
        except BaseException:
            self._stop_loop()
            raise

    async def _async_init(self, url: str, config: EngineConfig | None, echo: bool) -> None:
        self._engine = create_async_engine(url, echo=echo)
        try:
            self._async = ShareGateAsync(engine=self._engine, config=config)
            await self._async.open()
        except BaseException:
            await self._engine.dispose()
            raise

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def _stop_loop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Dispose the engine, stop the event loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        try:
            self._run(self._async_close())
        finally:
            self._stop_loop()

    async def _async_close(self) -> None:
        await self._async.close()
        await self._engine.dispose()

    def __enter__(self) -> ShareGate:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    def on(
        self,
        event_type: EventType | None,
        handler: AccessHandler,
        *,
        resource_id: str | None = None,
        group_id: str | None = None,
    ) -> Subscription:
        """Register an async *handler* on the underlying bus."""
        return self._async.event_bus.register(
            event_type, handler, resource_id=resource_id, group_id=group_id
        )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_resource_access(self, resource_id: str) -> AccessList:
        return self._run(self._async.resolve_resource_access(resource_id))

    def resolve_user_resources(self, user_id: str) -> ResourceList:
        return self._run(self._async.resolve_user_resources(user_id))

    def resources_with_user_count(self) -> list[ResourceUserCount]:
        return self._run(self._async.resources_with_user_count())

    def users_with_resource_count(self) -> list[UserResourceCount]:
        return self._run(self._async.users_with_resource_count())

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    def share_resource(
        self,
        resource_id: str,
        share_type: ShareType | str,
        target_id: str | None,
        shared_by: str,
        permissions: Iterable[str] | None = None,
    ) -> GrantInfo:
        return self._run(
            self._async.share_resource(resource_id, share_type, target_id, shared_by, permissions)
        )

    def unshare_resource(
        self,
        resource_id: str,
        share_type: ShareType | str,
        target_id: str | None = None,
    ) -> bool:
        return self._run(self._async.unshare_resource(resource_id, share_type, target_id))

    def list_shares(self, resource_id: str) -> list[GrantInfo]:
        return self._run(self._async.list_shares(resource_id))

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    def create_user(self, user_id: str, *, email: str = "", name: str = "") -> UserInfo:
        return self._run(self._async.create_user(user_id, email=email, name=name))

    def get_user(self, user_id: str) -> UserInfo:
        return self._run(self._async.get_user(user_id))

    def update_user(
        self, user_id: str, *, email: str | None = None, name: str | None = None
    ) -> UserInfo:
        return self._run(self._async.update_user(user_id, email=email, name=name))

    def list_users(self) -> list[UserInfo]:
        return self._run(self._async.list_users())

    def delete_user(self, user_id: str) -> bool:
        return self._run(self._async.delete_user(user_id))

    def create_group(self, group_id: str, *, name: str = "", description: str = "") -> GroupInfo:
        return self._run(self._async.create_group(group_id, name=name, description=description))

    def get_group(self, group_id: str) -> GroupInfo:
        return self._run(self._async.get_group(group_id))

    def update_group(
        self, group_id: str, *, name: str | None = None, description: str | None = None
    ) -> GroupInfo:
        return self._run(
            self._async.update_group(group_id, name=name, description=description)
        )

    def list_groups(self) -> list[GroupInfo]:
        return self._run(self._async.list_groups())

    def delete_group(self, group_id: str) -> bool:
        return self._run(self._async.delete_group(group_id))

    def add_member(self, user_id: str, group_id: str) -> bool:
        return self._run(self._async.add_member(user_id, group_id))

    def remove_member(self, user_id: str, group_id: str) -> bool:
        return self._run(self._async.remove_member(user_id, group_id))

    def list_group_members(self, group_id: str) -> list[UserInfo]:
        return self._run(self._async.list_group_members(group_id))

    def list_user_groups(self, user_id: str) -> list[GroupInfo]:
        return self._run(self._async.list_user_groups(user_id))

    def create_resource(
        self,
        resource_id: str,
        owner_id: str,
        *,
        type: str = "",
        name: str = "",
        description: str = "",
    ) -> ResourceInfo:
        return self._run(
            self._async.create_resource(
                resource_id, owner_id, type=type, name=name, description=description
            )
        )

    def get_resource(self, resource_id: str) -> ResourceInfo:
        return self._run(self._async.get_resource(resource_id))

    def update_resource(
        self,
        resource_id: str,
        *,
        type: str | None = None,
        name: str | None = None,
        description: str | None = None,
    ) -> ResourceInfo:
        return self._run(
            self._async.update_resource(
                resource_id, type=type, name=name, description=description
            )
        )

    def list_resources(self, owner_id: str | None = None) -> list[ResourceInfo]:
        return self._run(self._async.list_resources(owner_id))

    def delete_resource(self, resource_id: str) -> bool:
        return self._run(self._async.delete_resource(resource_id))
