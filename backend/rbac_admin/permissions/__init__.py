# Overview: Permission system package.
# Re-exports the built-in permission catalogue and navigation modules.

from .definitions import (
    PERMISSION_DEFINITIONS,
    DASHBOARD_PERMISSIONS,
    USER_PERMISSIONS,
    ROLE_PERMISSIONS,
    PERMISSION_PERMISSIONS,
    SETTINGS_PERMISSIONS,
    PRODUCT_PERMISSIONS,
    CATEGORY_PERMISSIONS,
)
from .modules import AVAILABLE_MODULES, get_module_names, default_module_order
from .roles import SUPER_ADMIN_ROLE, SUPER_ADMIN_DESCRIPTION
from .helpers import (
    get_all_permission_names,
    get_permission_definition,
    is_valid_permission_name,
)

__all__ = [
    "PERMISSION_DEFINITIONS",
    "DASHBOARD_PERMISSIONS",
    "USER_PERMISSIONS",
    "ROLE_PERMISSIONS",
    "PERMISSION_PERMISSIONS",
    "SETTINGS_PERMISSIONS",
    "PRODUCT_PERMISSIONS",
    "CATEGORY_PERMISSIONS",
    "AVAILABLE_MODULES",
    "get_module_names",
    "default_module_order",
    "SUPER_ADMIN_ROLE",
    "SUPER_ADMIN_DESCRIPTION",
    "get_all_permission_names",
    "get_permission_definition",
    "is_valid_permission_name",
]
