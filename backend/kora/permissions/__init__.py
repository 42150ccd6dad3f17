# Overview: Permission system package.
# Re-exports the public API so callers import from kora.permissions.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    STAFF_PERMISSIONS,
    FIELD_PERMISSIONS,
    CATALOG_PERMISSIONS,
    ORDER_PERMISSIONS,
)
from .roles import ROLES, OPERATION_ROLES
from .helpers import (
    get_all_permission_codes,
    get_permissions_by_category,
    get_permission_definition,
    get_role_permissions,
    roles_allowed,
    validate_permission_code,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "STAFF_PERMISSIONS",
    "FIELD_PERMISSIONS",
    "CATALOG_PERMISSIONS",
    "ORDER_PERMISSIONS",
    "ROLES",
    "OPERATION_ROLES",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permission_definition",
    "get_role_permissions",
    "roles_allowed",
    "validate_permission_code",
]
