"""Resource model — shareable objects owned by a user.

Global visibility is not a column: it is read from the presence of a
global share grant.
"""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel

from sharegate.models.columns import UTCDateTime, utc_now


class ResourceBase(SQLModel):
    """Base fields for a resource record. Subclass with ``table=True`` for a concrete table."""

    resource_id: str = Field(primary_key=True)
    owner_id: str = Field(index=True)
    type: str = Field(default="")
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


class Resource(ResourceBase, table=True):
    """Default resource table — ``sharegate_resources``."""

    __tablename__ = "sharegate_resources"
