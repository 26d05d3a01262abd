from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class User(db.Model):
    """
    User accounts: the principal whose permissions are evaluated.

    Roles are reached through explicit UserRole association rows, ordered by
    assignment. The first (earliest assigned) role drives the navigation
    module order.
    """
    __tablename__ = "users"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    email_verified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def roles(self) -> list[Role]:
        return [user_role.role for user_role in self.user_roles if user_role.role is not None]

    @property
    def is_verified(self) -> bool:
        return self.email_verified_at is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "email_verified_at": to_utc_z(self.email_verified_at),
            "created_at": to_utc_z(self.created_at),
        }


class Role(db.Model):
    """
    Named bundle of permissions.

    A role with at least one assigned user cannot be deleted; its permission
    links and module order rows are removed with it otherwise.
    """
    __tablename__ = "roles"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True, index=True)
    description = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    @property
    def permissions(self) -> list[Permission]:
        return [rp.permission for rp in self.role_permissions if rp.permission is not None]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class UserRole(db.Model):
    """User-Role association."""
    __tablename__ = "user_role"
    __table_args__ = (
        db.UniqueConstraint("user_id", "role_id", name="uq_user_role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=False, index=True)

    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship(
        "User",
        backref=db.backref("user_roles", lazy=True, order_by="UserRole.id", cascade="all, delete-orphan"),
    )
    role = db.relationship(
        "Role",
        backref=db.backref("user_roles", lazy=True, cascade="all, delete-orphan"),
    )


class Permission(db.Model):
    """
    Atomic capability, named by convention "module.action" (e.g. "categories.delete").

    A permission referenced by at least one role cannot be deleted.
    """
    __tablename__ = "permissions"
    __table_args__ = (
        db.Index("ix_permissions_module_action", "module", "action"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True, index=True)
    module = db.Column(db.String(255), nullable=False, index=True)
    action = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "module": self.module,
            "action": self.action,
            "display_name": self.display_name,
            "description": self.description,
        }


class RolePermission(db.Model):
    """Role-Permission association."""
    __tablename__ = "role_permission"
    __table_args__ = (
        db.UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=False, index=True)
    permission_id = db.Column(db.Integer, db.ForeignKey("permissions.id"), nullable=False, index=True)

    granted_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    role = db.relationship(
        "Role",
        backref=db.backref("role_permissions", lazy=True, cascade="all, delete-orphan"),
    )
    permission = db.relationship("Permission", backref=db.backref("role_permissions", lazy=True))


class RoleModuleOrder(db.Model):
    """
    Per-role ordering of navigation modules.

    Replaced wholesale whenever the role's module order is edited.
    """
    __tablename__ = "role_module_order"
    __table_args__ = (
        db.UniqueConstraint("role_id", "module", name="uq_role_module_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=False, index=True)
    module = db.Column(db.String(64), nullable=False)
    order = db.Column(db.Integer, nullable=False)

    role = db.relationship(
        "Role",
        backref=db.backref(
            "module_orders",
            lazy=True,
            order_by="RoleModuleOrder.order",
            cascade="all, delete-orphan",
        ),
    )

    def to_dict(self) -> dict:
        return {"module": self.module, "order": self.order}


class SessionToken(db.Model):
    """
    Opaque bearer session tokens.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - Absolute and idle timeouts (see session_service)
    - Revocable on logout or account changes
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    user = db.relationship(
        "User",
        backref=db.backref("session_tokens", lazy=True, cascade="all, delete-orphan"),
    )
