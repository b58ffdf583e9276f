# Overview: Category constants for grouping actions and sections.


class PermissionCategory:
    """Action categories for organization and admin display."""
    SALES = "SALES"
    INVENTORY = "INVENTORY"
    PURCHASING = "PURCHASING"
    TREASURY = "TREASURY"
    REPORTS = "REPORTS"
    SYSTEM = "SYSTEM"
