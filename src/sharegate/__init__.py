"""ShareGate: access resolution for shared resources.

Who can reach a resource, what a user can reach, and why: direct grants,
group membership and global visibility, resolved over a SQL store.
"""

__version__ = "0.0.1"

from sharegate._sharegate import ShareGate
from sharegate._sharegate_async import ShareGateAsync
from sharegate.access.types import (
    AccessEntry,
    AccessList,
    AccessType,
    GlobalTarget,
    GrantInfo,
    GroupInfo,
    GroupTarget,
    ResourceAccess,
    ResourceInfo,
    ResourceList,
    ResourceUserCount,
    ShareTarget,
    ShareType,
    UserInfo,
    UserResourceCount,
    UserTarget,
    parse_target,
)
from sharegate.config import EngineConfig
from sharegate.events import AccessEvent, AccessHandler, EventBus, EventType, Subscription
from sharegate.store.exceptions import (
    ConflictError,
    NotFoundError,
    ShareGateError,
    StoreUnavailableError,
    ValidationError,
)
from sharegate.store.protocol import GrantReader, GrantStore, GrantWriter

__all__ = [
    "AccessEntry",
    "AccessEvent",
    "AccessHandler",
    "AccessList",
    "AccessType",
    "ConflictError",
    "EngineConfig",
    "EventBus",
    "EventType",
    "GlobalTarget",
    "GrantInfo",
    "GrantReader",
    "GrantStore",
    "GrantWriter",
    "GroupInfo",
    "GroupTarget",
    "NotFoundError",
    "ResourceAccess",
    "ResourceInfo",
    "ResourceList",
    "ResourceUserCount",
    "ShareGate",
    "ShareGateAsync",
    "ShareGateError",
    "ShareTarget",
    "ShareType",
    "StoreUnavailableError",
    "Subscription",
    "UserInfo",
    "UserResourceCount",
    "UserTarget",
    "ValidationError",
    "__version__",
    "parse_target",
]
