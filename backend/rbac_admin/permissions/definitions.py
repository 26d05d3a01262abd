# Overview: Built-in permission definitions grouped by module.
# Each permission is defined as: (name, module, action, display_name, description)


def _crud(module: str, label: str, noun: str) -> list[tuple[str, str, str, str, str]]:
    return [
        (f"{module}.view", module, "view", f"View {label}", f"Can view {noun} list and details"),
        (f"{module}.create", module, "create", f"Create {label}", f"Can create new {noun}"),
        (f"{module}.edit", module, "edit", f"Edit {label}", f"Can edit existing {noun}"),
        (f"{module}.delete", module, "delete", f"Delete {label}", f"Can delete {noun}"),
    ]


DASHBOARD_PERMISSIONS = [
    ("dashboard.view", "dashboard", "view", "View Dashboard", "Can view the dashboard"),
]

USER_PERMISSIONS = _crud("users", "Users", "users")
ROLE_PERMISSIONS = _crud("roles", "Roles", "roles")
PERMISSION_PERMISSIONS = _crud("permissions", "Permissions", "permissions")

SETTINGS_PERMISSIONS = [
    ("settings.view", "settings", "view", "View Settings", "Can view settings"),
    ("settings.edit", "settings", "edit", "Edit Settings", "Can edit settings"),
]

PRODUCT_PERMISSIONS = _crud("products", "Products", "products")
CATEGORY_PERMISSIONS = _crud("categories", "Categories", "categories")


PERMISSION_DEFINITIONS = (
    DASHBOARD_PERMISSIONS
    + USER_PERMISSIONS
    + ROLE_PERMISSIONS
    + PERMISSION_PERMISSIONS
    + SETTINGS_PERMISSIONS
    + PRODUCT_PERMISSIONS
    + CATEGORY_PERMISSIONS
)
