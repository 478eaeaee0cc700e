"""User model — principals that can be granted access.

Provides ``UserBase`` (non-table) and ``User`` (concrete table).
Subclass ``UserBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name per backend.
"""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel

from sharegate.models.columns import UTCDateTime, utc_now


class UserBase(SQLModel):
    """Base fields for a user record. Subclass with ``table=True`` for a concrete table."""

    user_id: str = Field(primary_key=True)
    email: str = Field(default="", index=True)
    name: str = Field(default="")
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=UTCDateTime(),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_type=UTCDateTime(),  # type: ignore[invalid-argument-type]
    )


class User(UserBase, table=True):
    """Default user table — ``sharegate_users``."""

    __tablename__ = "sharegate_users"
