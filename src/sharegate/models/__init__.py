"""SQLModel database models for ShareGate."""

from sharegate.models.grants import GLOBAL_TARGET_ID, ShareGrant, ShareGrantBase
from sharegate.models.groups import Group, GroupBase, Membership, MembershipBase
from sharegate.models.resources import Resource, ResourceBase
from sharegate.models.users import User, UserBase

__all__ = [
    "GLOBAL_TARGET_ID",
    "Group",
    "GroupBase",
    "Membership",
    "MembershipBase",
    "Resource",
    "ResourceBase",
    "ShareGrant",
    "ShareGrantBase",
    "User",
    "UserBase",
]
