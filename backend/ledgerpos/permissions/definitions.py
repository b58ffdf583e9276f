# Overview: Catalog of protected actions and UI sections.
# Each action is defined as: (code, name, description, category)
# Each section is defined as: (code, name, description)

from .categories import PermissionCategory


# -- SALES --

SALES_ACTIONS = [
    (
        "sell",
        "Sell",
        "Create sale invoices at the point of sale",
        PermissionCategory.SALES,
    ),
    (
        "process_return",
        "Process Return",
        "Accept customer returns against an invoice",
        PermissionCategory.SALES,
    ),
    (
        "delete_invoice",
        "Delete Invoice",
        "Void an invoice and restore its stock and cash effects",
        PermissionCategory.SALES,
    ),
]


# -- INVENTORY --

INVENTORY_ACTIONS = [
    (
        "manage_products",
        "Manage Products",
        "Create products and edit prices, offers and thresholds",
        PermissionCategory.INVENTORY,
    ),
    (
        "delete_product",
        "Delete Product",
        "Move a product to the archive",
        PermissionCategory.INVENTORY,
    ),
]


# -- PURCHASING --

PURCHASING_ACTIONS = [
    (
        "process_purchase",
        "Process Purchase",
        "Record goods received from a supplier",
        PermissionCategory.PURCHASING,
    ),
    (
        "process_purchase_return",
        "Process Purchase Return",
        "Send goods back to a supplier",
        PermissionCategory.PURCHASING,
    ),
    (
        "delete_purchase",
        "Delete Purchase",
        "Void a purchase and remove its stock",
        PermissionCategory.PURCHASING,
    ),
    (
        "pay_supplier",
        "Pay Supplier",
        "Record payments against supplier debt",
        PermissionCategory.PURCHASING,
    ),
    (
        "manage_suppliers",
        "Manage Suppliers",
        "Create and delete suppliers",
        PermissionCategory.PURCHASING,
    ),
]


# -- TREASURY --

TREASURY_ACTIONS = [
    (
        "open_shift",
        "Open Shift",
        "Open a cashier shift with an opening balance",
        PermissionCategory.TREASURY,
    ),
    (
        "close_shift",
        "Close Shift",
        "Close a shift with the counted drawer balance",
        PermissionCategory.TREASURY,
    ),
    (
        "record_expense",
        "Record Expense",
        "Pay an expense out of the drawer",
        PermissionCategory.TREASURY,
    ),
    (
        "delete_expense",
        "Delete Expense",
        "Reverse a recorded expense",
        PermissionCategory.TREASURY,
    ),
    (
        "view_treasury",
        "View Treasury",
        "View drawer balances and treasury movements",
        PermissionCategory.TREASURY,
    ),
]


# -- REPORTS --

REPORT_ACTIONS = [
    (
        "view_reports",
        "View Reports",
        "View supplier statements, shift summaries and stock reports",
        PermissionCategory.REPORTS,
    ),
]


# -- SYSTEM --

SYSTEM_ACTIONS = [
    (
        "manage_permissions",
        "Manage Permissions",
        "Edit overrides, hidden lists, roles and the global lock",
        PermissionCategory.SYSTEM,
    ),
]


ACTION_DEFINITIONS = (
    SALES_ACTIONS
    + INVENTORY_ACTIONS
    + PURCHASING_ACTIONS
    + TREASURY_ACTIONS
    + REPORT_ACTIONS
    + SYSTEM_ACTIONS
)


# Navigable areas of the back office. Hiding a section denies any action
# whose code equals the section code.
SECTION_DEFINITIONS = [
    ("dashboard", "Dashboard", "Home screen"),
    ("sales", "Point of Sale", "Sales screen and invoice entry"),
    ("inventory", "Inventory", "Product catalog and stock"),
    ("purchases", "Purchases", "Supplier invoices"),
    ("suppliers", "Suppliers", "Supplier list and statements"),
    ("customers", "Customers", "Customer directory"),
    ("expenses", "Expenses", "Expense entry"),
    ("treasury", "Treasury", "Drawer balances and movements"),
    ("staff", "Staff", "Users, branches and roles"),
    ("reports", "Reports", "Statistical reports"),
    ("dailyLogs", "Daily Logs", "Activity log"),
    ("securityAudit", "Security Audit", "Security events"),
    ("archive", "Sales Archive", "Past invoices"),
    ("itControl", "IT Control", "System lock and permission matrix"),
    ("recycleBin", "Recycle Bin", "Archived records"),
]
