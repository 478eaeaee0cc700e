"""Access resolution — forward/reverse resolvers, grant mutator, aggregator."""

from sharegate.access.aggregator import Aggregator
from sharegate.access.fanout import gather_bounded
from sharegate.access.forward import ForwardResolver
from sharegate.access.index import MembershipIndex, ResourceCatalog
from sharegate.access.mutator import GrantMutator
from sharegate.access.reverse import ReverseResolver
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
    normalize_permissions,
    parse_target,
)

__all__ = [
    "AccessEntry",
    "AccessList",
    "AccessType",
    "Aggregator",
    "ForwardResolver",
    "GlobalTarget",
    "GrantInfo",
    "GrantMutator",
    "GroupInfo",
    "GroupTarget",
    "MembershipIndex",
    "ResourceAccess",
    "ResourceCatalog",
    "ResourceInfo",
    "ResourceList",
    "ResourceUserCount",
    "ReverseResolver",
    "ShareTarget",
    "ShareType",
    "UserInfo",
    "UserResourceCount",
    "UserTarget",
    "gather_bounded",
    "normalize_permissions",
    "parse_target",
]
