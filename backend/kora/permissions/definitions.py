# Overview: All tenant operation definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- STAFF --

STAFF_PERMISSIONS = [
    (
        "VIEW_STAFF",
        "View Staff",
        "List staff memberships and seat usage",
        PermissionCategory.STAFF,
    ),
    (
        "MANAGE_STAFF",
        "Manage Staff",
        "Invite, update, activate, deactivate and reassign staff",
        PermissionCategory.STAFF,
    ),
]


# -- FIELD (shops, assignments, leads) --

FIELD_PERMISSIONS = [
    (
        "VIEW_SHOPS",
        "View Shops",
        "View shops, geofences and rep assignments",
        PermissionCategory.FIELD,
    ),
    (
        "CREATE_SHOP",
        "Create Shop",
        "Register new shop locations",
        PermissionCategory.FIELD,
    ),
    (
        "MANAGE_SHOP_ASSIGNMENTS",
        "Manage Shop Assignments",
        "Assign reps to shops and set the primary rep",
        PermissionCategory.FIELD,
    ),
    (
        "MANAGE_LEADS",
        "Manage Leads",
        "Create, edit and convert leads",
        PermissionCategory.FIELD,
    ),
]


# -- CATALOG --

CATALOG_PERMISSIONS = [
    (
        "VIEW_PRODUCTS",
        "View Products",
        "View the product catalog and prices",
        PermissionCategory.CATALOG,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create, edit, reprice and delete products",
        PermissionCategory.CATALOG,
    ),
]


# -- ORDERS --

ORDER_PERMISSIONS = [
    (
        "VIEW_ORDERS",
        "View Orders",
        "View orders (reps see only orders they placed)",
        PermissionCategory.ORDERS,
    ),
    (
        "CREATE_ORDER",
        "Create Order",
        "Place new orders against shops or leads",
        PermissionCategory.ORDERS,
    ),
    (
        "TRANSITION_ORDER",
        "Transition Order",
        "Advance order status and cancel orders",
        PermissionCategory.ORDERS,
    ),
]


# Combined list of all permissions
PERMISSION_DEFINITIONS = (
    STAFF_PERMISSIONS
    + FIELD_PERMISSIONS
    + CATALOG_PERMISSIONS
    + ORDER_PERMISSIONS
)
