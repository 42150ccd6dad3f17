# Overview: Explicit role allow-list per operation.
# "boss" is not a superset role; it appears only where listed.

ROLES = ("boss", "manager", "rep", "back_office")

OPERATION_ROLES = {
    "VIEW_STAFF": frozenset({"boss", "manager", "back_office"}),
    "MANAGE_STAFF": frozenset({"boss", "manager"}),
    "VIEW_SHOPS": frozenset({"boss", "manager", "back_office"}),
    "CREATE_SHOP": frozenset({"boss", "manager"}),
    "MANAGE_SHOP_ASSIGNMENTS": frozenset({"boss", "manager", "back_office"}),
    "MANAGE_LEADS": frozenset({"boss", "manager", "rep"}),
    "VIEW_PRODUCTS": frozenset({"boss", "manager", "rep", "back_office"}),
    "MANAGE_PRODUCTS": frozenset({"boss", "manager", "back_office"}),
    "VIEW_ORDERS": frozenset({"boss", "manager", "rep", "back_office"}),
    "CREATE_ORDER": frozenset({"boss", "manager", "rep"}),
    "TRANSITION_ORDER": frozenset({"boss", "manager", "back_office"}),
}
