from .auth import User, Role, UserRole, Permission, RolePermission, RoleModuleOrder, SessionToken
from .catalog import Category, Product

__all__ = [
    'User', 'Role', 'UserRole', 'Permission', 'RolePermission', 'RoleModuleOrder', 'SessionToken',
    'Category', 'Product',
]
