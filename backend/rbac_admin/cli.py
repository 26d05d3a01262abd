# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/rbac_admin/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, permissions, the Super Admin role and the default admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with roles and verification status.
# - python -m flask users create --name "Jane" --email jane@example.com --password "secret123" --role "Super Admin"
#   Create a verified user (prompts if options are omitted).
#
# Permission inspection/repair:
# - python -m flask perms list [--module categories] [--role "Super Admin"]
#   List permissions, optionally filtered by module or role.
# - python -m flask perms check admin@example.com categories.delete
#   Check whether a user has a permission.
# - python -m flask perms grant Editor products.edit
#   Grant a permission to a role.
# - python -m flask perms revoke Editor products.edit
#   Revoke a permission from a role.
#
# Catalog inspection:
# - python -m flask categories tree
#   Print the category hierarchy.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired/revoked session tokens older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Role, Permission
from .permissions import SUPER_ADMIN_ROLE
from .permissions.roles import SUPER_ADMIN_EMAIL, SUPER_ADMIN_NAME, SUPER_ADMIN_PASSWORD
from .services import auth_service, category_service, permission_service, session_service
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the admin system: schema, permissions, Super Admin role and user.

    Creates:
    - Every table that does not exist yet
    - The built-in permission catalogue
    - Role: Super Admin (all permissions, default module order)
    - User: admin@example.com / "password" holding Super Admin

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing RBAC admin...")

    db.create_all()

    click.echo("\nSECURITY Initializing permissions...")
    perm_count = permission_service.initialize_permissions()
    click.echo(f"PASS Created {perm_count} permissions")

    role = permission_service.ensure_super_admin_role()
    click.echo(f"PASS Role '{role.name}' holds {len(role.permissions)} permissions")

    click.echo("\nUSERS Creating default admin...")
    admin = db.session.query(User).filter_by(email=SUPER_ADMIN_EMAIL).first()
    if admin:
        click.echo(f"WARN  User '{SUPER_ADMIN_EMAIL}' already exists, skipping...")
    else:
        admin = auth_service.create_user({
            "name": SUPER_ADMIN_NAME,
            "email": SUPER_ADMIN_EMAIL,
            "password": SUPER_ADMIN_PASSWORD,
            "password_confirmation": SUPER_ADMIN_PASSWORD,
        })
        click.echo(f"PASS Created user: {admin.email}")

    auth_service.assign_role(admin.id, SUPER_ADMIN_ROLE)

    click.echo("\n" + "="*60)
    click.echo("DONE RBAC admin initialized successfully!")
    click.echo("="*60)
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo(f"   {SUPER_ADMIN_EMAIL} / {SUPER_ADMIN_PASSWORD}")
    click.echo("")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<25} {'Email':<35} {'Verified':<9} {'Roles'}")
    click.echo("="*100)

    for user in users:
        role_names = ", ".join(role.name for role in user.roles) or "-"
        verified = "Yes" if user.is_verified else "No"
        click.echo(f"{user.id:<5} {user.name:<25} {user.email:<35} {verified:<9} {role_names}")

    click.echo("="*100 + "\n")


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', 'role_names', multiple=True, help='Role name (repeatable)')
@with_appcontext
def create_user_cli(name, email, password, role_names):
    """Create a new verified user. Password must be at least 8 characters."""
    role_ids = []
    for role_name in role_names:
        role = db.session.query(Role).filter_by(name=role_name).first()
        if not role:
            click.echo(f"FAIL Role '{role_name}' not found")
            return
        role_ids.append(role.id)

    try:
        user = auth_service.create_user({
            "name": name,
            "email": email,
            "password": password,
            "password_confirmation": password,
            "roles": role_ids,
        })
    except ValidationError as e:
        db.session.rollback()
        for field, message in e.errors.items():
            click.echo(f"FAIL {field}: {message}")
        return

    roles = ", ".join(role.name for role in user.roles) or "no roles"
    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with {roles}")


# =============================================================================
# PERMISSION COMMANDS
# =============================================================================

@click.group('perms')
def perms_group():
    """Permission inspection and repair commands."""


@perms_group.command('list')
@click.option('--module', help='Filter by module')
@click.option('--role', help='Filter by role name')
@with_appcontext
def list_permissions_cli(module, role):
    """List all permissions, optionally filtered by module or role."""
    query = db.session.query(Permission)

    if module:
        query = query.filter(Permission.module == module)

    if role:
        role_obj = db.session.query(Role).filter_by(name=role).first()
        if not role_obj:
            click.echo(f"FAIL Role '{role}' not found")
            return
        ids = [p.id for p in role_obj.permissions]
        query = query.filter(Permission.id.in_(ids))

    permissions = query.order_by(Permission.module.asc(), Permission.action.asc()).all()
    if not permissions:
        click.echo("No permissions found.")
        return

    click.echo(f"\n{'Name':<30} {'Display name':<30} {'Module'}")
    click.echo("-"*80)
    for perm in permissions:
        click.echo(f"{perm.name:<30} {perm.display_name:<30} {perm.module}")
    click.echo(f"\nTotal: {len(permissions)} permissions\n")


@perms_group.command('check')
@click.argument('email')
@click.argument('permission_name')
@with_appcontext
def check_permission_cli(email, permission_name):
    """Check whether a user has a permission."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return

    if permission_service.has_permission(user, permission_name):
        click.echo(f"PASS {user.email} HAS {permission_name}")
    else:
        click.echo(f"DENY {user.email} does NOT have {permission_name}")


@perms_group.command('grant')
@click.argument('role_name')
@click.argument('permission_name')
@with_appcontext
def grant_permission_cli(role_name, permission_name):
    """Grant a permission to a role."""
    try:
        permission_service.grant_permission_to_role(role_name, permission_name)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Granted {permission_name} to {role_name}")


@perms_group.command('revoke')
@click.argument('role_name')
@click.argument('permission_name')
@with_appcontext
def revoke_permission_cli(role_name, permission_name):
    """Revoke a permission from a role."""
    try:
        revoked = permission_service.revoke_permission_from_role(role_name, permission_name)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return

    if revoked:
        click.echo(f"PASS Revoked {permission_name} from {role_name}")
    else:
        click.echo(f"WARN  {role_name} did not have {permission_name}")


# =============================================================================
# CATALOG COMMANDS
# =============================================================================

@click.group('categories')
def categories_group():
    """Category inspection commands."""


@categories_group.command('tree')
@with_appcontext
def category_tree_cli():
    """Print the category hierarchy."""
    roots = category_service.category_tree()
    if not roots:
        click.echo("No categories found.")
        return

    def echo_node(node, depth):
        marker = "" if node["is_active"] else " (inactive)"
        click.echo(f"{'  ' * depth}- {node['name']} [{node['slug']}]{marker}")
        for child in node["children"]:
            echo_node(child, depth + 1)

    for root in roots:
        echo_node(root, 0)


# =============================================================================
# MAINTENANCE COMMANDS
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired and revoked sessions older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} old sessions")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(categories_group)
    app.cli.add_command(maintenance_group)
