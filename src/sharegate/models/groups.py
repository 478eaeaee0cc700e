"""Group and Membership models.

A group is a pure label; who belongs to it lives in the membership edge
table, keyed by ``(user_id, group_id)``.
"""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel

from sharegate.models.columns import UTCDateTime, utc_now


class GroupBase(SQLModel):
    """Base fields for a group record. Subclass with ``table=True`` for a concrete table."""

    group_id: str = Field(primary_key=True)
    name: str = Field(default="")
    description: str = Field(default="")
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=UTCDateTime(),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_type=UTCDateTime(),  # type: ignore[invalid-argument-type]
    )


class Group(GroupBase, table=True):
    """Default group table — ``sharegate_groups``."""

    __tablename__ = "sharegate_groups"


class MembershipBase(SQLModel):
    """Base fields for a user-group edge. Subclass with ``table=True`` for a concrete table."""

    user_id: str = Field(primary_key=True)
    group_id: str = Field(primary_key=True, index=True)
    joined_at: datetime = Field(
        default_factory=utc_now,
        sa_type=UTCDateTime(),  # type: ignore[invalid-argument-type]
    )


class Membership(MembershipBase, table=True):
    """Default membership table — ``sharegate_memberships``."""

    __tablename__ = "sharegate_memberships"
