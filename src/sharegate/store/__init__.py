"""Store layer — GrantStore protocol, SQL implementation, error types."""

from sharegate.store.database_store import DatabaseGrantStore, StoreModels, translate_errors
from sharegate.store.dialect import get_dialect, upsert_grant
from sharegate.store.exceptions import (
    ConflictError,
    NotFoundError,
    ShareGateError,
    StoreUnavailableError,
    ValidationError,
)
from sharegate.store.protocol import GrantReader, GrantStore, GrantWriter

__all__ = [
    "ConflictError",
    "DatabaseGrantStore",
    "GrantReader",
    "GrantStore",
    "GrantWriter",
    "NotFoundError",
    "ShareGateError",
    "StoreModels",
    "StoreUnavailableError",
    "ValidationError",
    "get_dialect",
    "translate_errors",
    "upsert_grant",
]
