"""ShareGrant model — one path by which a resource becomes visible.

Provides ``ShareGrantBase`` (non-table) and ``ShareGrant`` (concrete table).
Custom subclasses must keep a unique constraint on
``(resource_id, share_type, target_id)``; the grant upsert conflicts on it.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, UniqueConstraint
from sqlmodel import Field, SQLModel

from sharegate.models.columns import UTCDateTime, utc_now

GLOBAL_TARGET_ID = "global"
"""Sentinel ``target_id`` for global grants (at most one per resource)."""


class ShareGrantBase(SQLModel):
    """Base fields for a share grant. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    resource_id: str = Field(index=True)
    share_type: str = Field(index=True)
    target_id: str = Field(index=True)
    shared_by: str = Field(default="")
    shared_at: datetime = Field(
        default_factory=utc_now,
        sa_type=UTCDateTime(),  # type: ignore[invalid-argument-type]
    )
    permissions: list[str] = Field(
        default_factory=lambda: ["read"],
        sa_type=JSON,  # type: ignore[invalid-argument-type]
    )


class ShareGrant(ShareGrantBase, table=True):
    """Default grant table — ``sharegate_share_grants``."""

    __tablename__ = "sharegate_share_grants"
    __table_args__ = (
        UniqueConstraint("resource_id", "share_type", "target_id", name="uq_sharegate_grant_key"),
    )
