# Overview: Built-in roles seeded by `flask system init`.

SUPER_ADMIN_ROLE = "Super Admin"
SUPER_ADMIN_DESCRIPTION = "Has full access to all system features and permissions"

SUPER_ADMIN_EMAIL = "admin@example.com"
SUPER_ADMIN_NAME = "Super Admin"
# SECURITY: Change immediately after first login.
SUPER_ADMIN_PASSWORD = "password"
