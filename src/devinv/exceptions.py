"""Device inventory exception hierarchy.

Ordinary statement failures never surface as exceptions: the store and the
repositories log them and report ``False`` or an empty result instead.
"""


class InventoryError(Exception):
    """Base exception for all device inventory errors."""


class StoreUnavailableError(InventoryError):
    """Raised when the database file cannot be opened or its schema created."""


class PermissionDeniedError(InventoryError):
    """Raised when the current session may not perform an admin-only action."""


class NotLoggedInError(InventoryError):
    """Raised when an operation needs an authenticated session and there is none."""
