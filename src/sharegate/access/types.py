"""Share targets and result types: AccessList, ResourceList, GrantInfo, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from sharegate.models.grants import GLOBAL_TARGET_ID
from sharegate.store.exceptions import ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from sharegate.models import GroupBase, ResourceBase, ShareGrantBase, UserBase


class ShareType(str, Enum):
    """Kind of principal a grant targets."""

    USER = "user"
    GROUP = "group"
    GLOBAL = "global"


class AccessType(str, Enum):
    """Why a user can reach a resource (provenance)."""

    DIRECT = "direct"
    GROUP = "group"
    GLOBAL = "global"
    SPECIFIC = "specific"
    """List-level marker: access comes from user/group grants, not the global flag."""


# ---------------------------------------------------------------------------
# Share targets
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class UserTarget:
    """Grant aimed at a single user."""

    user_id: str

    @property
    def share_type(self) -> ShareType:
        return ShareType.USER

    @property
    def target_id(self) -> str:
        return self.user_id


@dataclass(frozen=True, slots=True)
class GroupTarget:
    """Grant aimed at every member of a group."""

    group_id: str

    @property
    def share_type(self) -> ShareType:
        return ShareType.GROUP

    @property
    def target_id(self) -> str:
        return self.group_id


@dataclass(frozen=True, slots=True)
class GlobalTarget:
    """Grant that makes a resource visible to every user."""

    @property
    def share_type(self) -> ShareType:
        return ShareType.GLOBAL

    @property
    def target_id(self) -> str:
        return GLOBAL_TARGET_ID


ShareTarget = UserTarget | GroupTarget | GlobalTarget


def parse_target(share_type: ShareType | str | None, target_id: str | None = None) -> ShareTarget:
    """Build a ShareTarget from a ``(share_type, target_id)`` pair.

    For global shares *target_id* is ignored and the sentinel is used.
    Raises ``ValidationError`` for unknown share types or a blank target.
    """
    if share_type is None or share_type == "":
        raise ValidationError("share_type is required")
    try:
        kind = ShareType(share_type)
    except ValueError:
        raise ValidationError(
            f"Invalid share_type: {share_type!r}. Must be 'user', 'group' or 'global'."
        ) from None

    if kind is ShareType.GLOBAL:
        return GlobalTarget()
    if target_id is not None and not isinstance(target_id, str):
        raise ValidationError(f"target_id must be a string, got {type(target_id).__name__}")
    if target_id is None or not target_id.strip():
        raise ValidationError(f"target_id is required for {kind.value} shares")
    if kind is ShareType.USER:
        return UserTarget(target_id)
    return GroupTarget(target_id)


def normalize_permissions(permissions: Iterable[str]) -> list[str]:
    """Dedupe *permissions* keeping first occurrence; reject empty input."""
    if isinstance(permissions, str):
        permissions = [permissions]
    out: list[str] = []
    for perm in permissions:
        if not isinstance(perm, str) or not perm.strip():
            raise ValidationError(f"Invalid permission: {perm!r}")
        if perm not in out:
            out.append(perm)
    if not out:
        raise ValidationError("At least one permission is required")
    return out


# ---------------------------------------------------------------------------
# Entity snapshots
# ---------------------------------------------------------------------------


@dataclass
class UserInfo:
    """User metadata."""

    user_id: str
    email: str = ""
    name: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, u: UserBase) -> UserInfo:
        return cls(
            user_id=u.user_id,
            email=u.email,
            name=u.name,
            created_at=u.created_at,
            updated_at=u.updated_at,
        )


@dataclass
class GroupInfo:
    """Group metadata."""

    group_id: str
    name: str = ""
    description: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, g: GroupBase) -> GroupInfo:
        return cls(
            group_id=g.group_id,
            name=g.name,
            description=g.description,
            created_at=g.created_at,
            updated_at=g.updated_at,
        )


@dataclass
class ResourceInfo:
    """Resource metadata, with the derived global flag filled in."""

    resource_id: str
    owner_id: str
    type: str = ""
    name: str = ""
    description: str = ""
    is_global: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, r: ResourceBase, *, is_global: bool = False) -> ResourceInfo:
        return cls(
            resource_id=r.resource_id,
            owner_id=r.owner_id,
            type=r.type,
            name=r.name,
            description=r.description,
            is_global=is_global,
            created_at=r.created_at,
            updated_at=r.updated_at,
        )


@dataclass
class GrantInfo:
    """Share grant metadata."""

    resource_id: str
    share_type: ShareType
    target_id: str
    shared_by: str
    shared_at: datetime | None = None
    permissions: list[str] = field(default_factory=list)

    @classmethod
    def from_record(cls, g: ShareGrantBase) -> GrantInfo:
        return cls(
            resource_id=g.resource_id,
            share_type=ShareType(g.share_type),
            target_id=g.target_id,
            shared_by=g.shared_by,
            shared_at=g.shared_at,
            permissions=list(g.permissions),
        )


# ---------------------------------------------------------------------------
# Resolution results
# ---------------------------------------------------------------------------


@dataclass
class AccessEntry:
    """One user in a resource's access list."""

    user_id: str
    access_type: AccessType
    user: UserInfo | None = None
    group_id: str | None = None
    shared_by: str | None = None
    shared_at: datetime | None = None
    permissions: list[str] = field(default_factory=list)


@dataclass
class AccessList:
    """Result of forward resolution: every user who can reach a resource."""

    resource_id: str
    access_type: AccessType
    total_users: int = 0
    entries: list[AccessEntry] = field(default_factory=list)

    @property
    def user_ids(self) -> list[str]:
        return [e.user_id for e in self.entries]


@dataclass
class ResourceAccess:
    """One resource in a user's resource list."""

    resource: ResourceInfo
    access_type: AccessType
    group_id: str | None = None
    shared_by: str | None = None
    shared_at: datetime | None = None
    permissions: list[str] = field(default_factory=list)


@dataclass
class ResourceList:
    """Result of reverse resolution: every resource a user can reach."""

    user_id: str
    total_resources: int = 0
    resources: list[ResourceAccess] = field(default_factory=list)

    @property
    def resource_ids(self) -> list[str]:
        return [r.resource.resource_id for r in self.resources]


@dataclass
class ResourceUserCount:
    """Reporting row: a resource and how many users can reach it."""

    resource: ResourceInfo
    user_count: int
    access_type: AccessType


@dataclass
class UserResourceCount:
    """Reporting row: a user and how many resources they can reach."""

    user: UserInfo
    resource_count: int
