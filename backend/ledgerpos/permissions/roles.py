# Overview: Default roles created by `flask system init`.
# Each role is defined as: (name, description, is_lock_exempt)

DEFAULT_ROLES = [
    ("admin", "Branch and head-office administrator", True),
    ("it_support", "IT staff; keeps access during a system lock", True),
    ("manager", "Branch manager", False),
    ("cashier", "Point-of-sale operator", False),
    ("accountant", "Back-office accounting", False),
]

# Hidden actions seeded for the default roles. Everything else is allowed.
DEFAULT_ROLE_HIDDEN_ACTIONS = {
    "cashier": [
        "delete_invoice",
        "delete_purchase",
        "delete_product",
        "delete_expense",
        "manage_permissions",
        "pay_supplier",
    ],
    "accountant": [
        "sell",
        "manage_permissions",
    ],
    "manager": [
        "manage_permissions",
    ],
}
