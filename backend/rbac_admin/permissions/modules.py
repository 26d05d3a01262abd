# Overview: Navigation modules that a role can order in its sidebar.


AVAILABLE_MODULES = [
    {"name": "dashboard", "title": "Dashboard", "icon": "LayoutGrid"},
    {"name": "categories", "title": "Categories", "icon": "FolderTree"},
    {"name": "products", "title": "Products", "icon": "Package"},
    {"name": "users", "title": "Users", "icon": "Users"},
    {"name": "roles", "title": "Roles", "icon": "Shield"},
    {"name": "permissions", "title": "Permissions", "icon": "Key"},
    {"name": "settings", "title": "Settings", "icon": "Settings"},
]


def get_module_names() -> list[str]:
    return [module["name"] for module in AVAILABLE_MODULES]


def default_module_order() -> list[dict]:
    """Sidebar order used for freshly seeded roles: declaration order, 1-based."""
    return [
        {"module": name, "order": position}
        for position, name in enumerate(get_module_names(), start=1)
    ]
