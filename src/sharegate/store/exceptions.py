"""Custom exception hierarchy for the ShareGate engine and its stores."""


class ShareGateError(Exception):
    """Base exception for all ShareGate errors."""


class NotFoundError(ShareGateError):
    """Raised when the primary entity of a request (user, group, resource) does not exist."""


class ValidationError(ShareGateError):
    """Raised on an invalid share type, blank target or sharer, or bad permissions."""


class ConflictError(ShareGateError):
    """Raised when the store rejects a write because the key already exists."""


class StoreUnavailableError(ShareGateError):
    """Raised on storage backend failures (DB connection, timeouts, I/O, etc.)."""
