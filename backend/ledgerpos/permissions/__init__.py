# Overview: Authorization catalog package.
# Re-exports the action/section catalog and default roles.

from .categories import PermissionCategory
from .definitions import (
    ACTION_DEFINITIONS,
    SECTION_DEFINITIONS,
    SALES_ACTIONS,
    INVENTORY_ACTIONS,
    PURCHASING_ACTIONS,
    TREASURY_ACTIONS,
    REPORT_ACTIONS,
    SYSTEM_ACTIONS,
)
from .roles import DEFAULT_ROLES, DEFAULT_ROLE_HIDDEN_ACTIONS
from .helpers import (
    get_all_action_codes,
    get_all_section_codes,
    get_actions_by_category,
    get_action_definition,
    validate_action_code,
    validate_section_code,
)

__all__ = [
    "PermissionCategory",
    "ACTION_DEFINITIONS",
    "SECTION_DEFINITIONS",
    "SALES_ACTIONS",
    "INVENTORY_ACTIONS",
    "PURCHASING_ACTIONS",
    "TREASURY_ACTIONS",
    "REPORT_ACTIONS",
    "SYSTEM_ACTIONS",
    "DEFAULT_ROLES",
    "DEFAULT_ROLE_HIDDEN_ACTIONS",
    "get_all_action_codes",
    "get_all_section_codes",
    "get_actions_by_category",
    "get_action_definition",
    "validate_action_code",
    "validate_section_code",
]
