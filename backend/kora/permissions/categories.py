# Overview: Permission category constants for grouping related operations.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    STAFF = "STAFF"
    FIELD = "FIELD"
    CATALOG = "CATALOG"
    ORDERS = "ORDERS"
