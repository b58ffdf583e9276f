from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Role(db.Model):
    """
    Named role with default-allow semantics.

    A role grants nothing explicitly; hide-lists and overrides revoke or
    re-grant individual actions on top of it. is_lock_exempt roles keep
    working while the global system lock is enabled.
    """
    __tablename__ = "roles"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    is_lock_exempt = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_lock_exempt": self.is_lock_exempt,
            "created_at": to_utc_z(self.created_at),
        }


class User(db.Model):
    """
    Staff member as seen by the ledger core.

    Credentials live with the external identity provider; this row only
    carries what authorization and attribution need.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    full_name = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(64), nullable=False, default="cashier")

    # NULL branch means a head-office user that is not tied to one branch
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    branch = db.relationship("Branch", backref=db.backref("users", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "role": self.role,
            "branch_id": self.branch_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class PermissionOverride(db.Model):
    """
    Explicit allow/deny for one action, targeted at a user or a role.

    User overrides are keyed by username; role overrides by role name.
    """
    __tablename__ = "permission_overrides"
    __table_args__ = (
        db.UniqueConstraint("target_type", "target", "action", name="uq_permission_overrides_target_action"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    target_type = db.Column(db.String(8), nullable=False)  # user, role
    target = db.Column(db.String(64), nullable=False)
    action = db.Column(db.String(64), nullable=False)
    is_allowed = db.Column(db.Boolean, nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "target_type": self.target_type,
            "target": self.target,
            "action": self.action,
            "is_allowed": self.is_allowed,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class HiddenEntry(db.Model):
    """
    One cell of a hidden-action / hidden-section matrix.

    scope: role | user
    kind: action | section
    """
    __tablename__ = "hidden_entries"
    __table_args__ = (
        db.UniqueConstraint("scope", "target", "kind", "value", name="uq_hidden_entries_cell"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    scope = db.Column(db.String(8), nullable=False)
    target = db.Column(db.String(64), nullable=False)
    kind = db.Column(db.String(8), nullable=False)
    value = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "scope": self.scope,
            "target": self.target,
            "kind": self.kind,
            "value": self.value,
        }


class SystemSetting(db.Model):
    """Single-row platform settings (global lock switch)."""
    __tablename__ = "system_settings"

    id = db.Column(db.Integer, primary_key=True)
    global_system_lock = db.Column(db.Boolean, nullable=False, default=False)
    updated_by_user_id = db.Column(db.Integer, nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "global_system_lock": self.global_system_lock,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }
