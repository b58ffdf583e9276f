# Overview: Service-layer operations for authorization; pure resolver plus its stored configuration.

"""
Authorization Resolution

is_allowed() is a pure function of (actor, action, config). It never
touches the database: callers load an AuthorizationConfig snapshot first
(load_authorization_config) and pass it in.

Resolution order, first matching rule wins:
1. super-admin username           -> allow
2. global lock, role not exempt   -> deny
3. role hidden actions            -> deny
4. role hidden sections           -> deny
5. user hidden actions            -> deny
6. user hidden sections           -> deny
7. user override                  -> its value
8. role override                  -> its value
9. default                        -> allow

Role names are compared lower-cased and trimmed. User-level entries are
keyed by exact username. The super-admin name is compared
case-insensitively.

Denials are logged (logger + SecurityEvent row). Grants are not.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from flask import current_app

from ..errors import AuthorizationDenied, NotFound, ValidationFailed
from ..extensions import db
from ..identity import Actor
from ..models import HiddenEntry, PermissionOverride, Role, SecurityEvent, SystemSetting
from ..permissions import DEFAULT_ROLE_HIDDEN_ACTIONS, DEFAULT_ROLES, validate_action_code, validate_section_code
from ..time_utils import utcnow


logger = logging.getLogger(__name__)


def normalize_role(role: str | None) -> str:
    return (role or "").strip().lower()


@dataclass(frozen=True)
class AuthorizationConfig:
    """Immutable snapshot of everything the resolver reads."""
    super_admin_username: str = "admin"
    global_lock: bool = False
    lock_exempt_roles: frozenset = frozenset()
    role_hidden_actions: dict = field(default_factory=dict)
    role_hidden_sections: dict = field(default_factory=dict)
    user_hidden_actions: dict = field(default_factory=dict)
    user_hidden_sections: dict = field(default_factory=dict)
    user_overrides: dict = field(default_factory=dict)
    role_overrides: dict = field(default_factory=dict)


def explain(actor: Actor | None, action: str, config: AuthorizationConfig) -> tuple[bool, str]:
    """
    Resolve an action and report which rule decided it.

    Returns (allowed, rule) where rule is a short stable tag.
    """
    if actor is None:
        return False, "no_actor"

    username = actor.username or ""
    role = normalize_role(actor.role)

    if username.strip().lower() == config.super_admin_username.strip().lower():
        return True, "super_admin"

    if config.global_lock and role not in config.lock_exempt_roles:
        return False, "global_lock"

    if action in config.role_hidden_actions.get(role, ()):
        return False, "role_hidden_action"
    if action in config.role_hidden_sections.get(role, ()):
        return False, "role_hidden_section"
    if action in config.user_hidden_actions.get(username, ()):
        return False, "user_hidden_action"
    if action in config.user_hidden_sections.get(username, ()):
        return False, "user_hidden_section"

    user_override = config.user_overrides.get(username, {}).get(action)
    if user_override is not None:
        return user_override, "user_override"

    role_override = config.role_overrides.get(role, {}).get(action)
    if role_override is not None:
        return role_override, "role_override"

    return True, "default"


def is_allowed(actor: Actor | None, action: str, config: AuthorizationConfig) -> bool:
    allowed, _rule = explain(actor, action, config)
    return allowed


def load_authorization_config() -> AuthorizationConfig:
    """Read roles, hide-lists, overrides and the lock switch into a snapshot."""
    exempt = set(current_app.config.get("LOCK_EXEMPT_ROLES", ()))
    for role in db.session.query(Role).filter_by(is_lock_exempt=True).all():
        exempt.add(normalize_role(role.name))

    hidden: dict[tuple[str, str], dict[str, set[str]]] = {
        ("role", "action"): {},
        ("role", "section"): {},
        ("user", "action"): {},
        ("user", "section"): {},
    }
    for entry in db.session.query(HiddenEntry).all():
        bucket = hidden.get((entry.scope, entry.kind))
        if bucket is None:
            continue
        target = normalize_role(entry.target) if entry.scope == "role" else entry.target
        bucket.setdefault(target, set()).add(entry.value)

    user_overrides: dict[str, dict[str, bool]] = {}
    role_overrides: dict[str, dict[str, bool]] = {}
    for override in db.session.query(PermissionOverride).all():
        if override.target_type == "user":
            user_overrides.setdefault(override.target, {})[override.action] = override.is_allowed
        elif override.target_type == "role":
            role_overrides.setdefault(normalize_role(override.target), {})[override.action] = override.is_allowed

    setting = db.session.get(SystemSetting, 1)

    def _freeze(bucket: dict[str, set[str]]) -> dict[str, frozenset]:
        return {key: frozenset(values) for key, values in bucket.items()}

    return AuthorizationConfig(
        super_admin_username=current_app.config.get("SUPER_ADMIN_USERNAME", "admin"),
        global_lock=bool(setting and setting.global_system_lock),
        lock_exempt_roles=frozenset(exempt),
        role_hidden_actions=_freeze(hidden[("role", "action")]),
        role_hidden_sections=_freeze(hidden[("role", "section")]),
        user_hidden_actions=_freeze(hidden[("user", "action")]),
        user_hidden_sections=_freeze(hidden[("user", "section")]),
        user_overrides=user_overrides,
        role_overrides=role_overrides,
    )


def log_security_event(
    *,
    user_id: int | None,
    username: str | None,
    event_type: str,
    success: bool,
    action: str | None = None,
    resource: str | None = None,
    reason: str | None = None,
) -> SecurityEvent:
    """
    Append a row to the security audit trail.

    Commits immediately: the audit row must survive the rollback of the
    operation that was denied.
    """
    event = SecurityEvent(
        user_id=user_id,
        username=username,
        event_type=event_type,
        action=action,
        resource=resource,
        success=success,
        reason=reason,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.commit()
    return event


def require_allowed(
    actor: Actor | None,
    action: str,
    *,
    config: AuthorizationConfig | None = None,
    resource: str | None = None,
) -> AuthorizationConfig:
    """
    Raise AuthorizationDenied unless the actor may perform action.

    Runs before any ledger transaction is opened. Returns the config used so
    callers can reuse the snapshot for secondary checks.
    """
    if config is None:
        config = load_authorization_config()

    allowed, rule = explain(actor, action, config)
    if not allowed:
        username = actor.username if actor else None
        logger.warning("Authorization denied: user=%s action=%s rule=%s", username, action, rule)
        log_security_event(
            user_id=actor.id if actor else None,
            username=username,
            event_type="AUTHORIZATION_DENIED",
            success=False,
            action=action,
            resource=resource,
            reason=f"Denied by {rule}",
        )
        raise AuthorizationDenied(action, username=username)
    return config


def is_super_admin(actor: Actor | None, config: AuthorizationConfig) -> bool:
    if actor is None:
        return False
    return (actor.username or "").strip().lower() == config.super_admin_username.strip().lower()


# -- Admin writes --

def _who(actor: Actor | None) -> str:
    return actor.username if actor else "cli"


def _validate_target_type(target_type: str) -> str:
    if target_type not in ("user", "role"):
        raise ValidationFailed("target_type must be 'user' or 'role'", details={"target_type": target_type})
    return target_type


def _normalize_target(target_type: str, target: str) -> str:
    target = (target or "").strip()
    if not target:
        raise ValidationFailed("target is required")
    return normalize_role(target) if target_type == "role" else target


def set_override(
    *,
    actor: Actor | None,
    target_type: str,
    target: str,
    action: str,
    is_allowed: bool | None,
    notes: str | None = None,
) -> PermissionOverride | None:
    """
    Create, replace or (is_allowed=None) remove an explicit override.

    actor=None is the operator path used by the CLI.
    """
    if actor is not None:
        require_allowed(actor, "manage_permissions")
    _validate_target_type(target_type)
    target = _normalize_target(target_type, target)
    if not validate_action_code(action):
        raise ValidationFailed(f"Unknown action '{action}'", details={"action": action})

    existing = db.session.query(PermissionOverride).filter_by(
        target_type=target_type, target=target, action=action
    ).first()

    if is_allowed is None:
        if existing is not None:
            db.session.delete(existing)
            db.session.commit()
        logger.info("Override cleared: %s=%s action=%s by=%s", target_type, target, action, _who(actor))
        return None

    if existing is None:
        existing = PermissionOverride(target_type=target_type, target=target, action=action)
        db.session.add(existing)
    existing.is_allowed = bool(is_allowed)
    existing.notes = notes
    existing.created_by_user_id = actor.id if actor else None
    db.session.commit()

    logger.info(
        "Override set: %s=%s action=%s allowed=%s by=%s",
        target_type, target, action, existing.is_allowed, _who(actor),
    )
    return existing


def hide(*, actor: Actor | None, scope: str, target: str, kind: str, value: str) -> HiddenEntry:
    """Add an action or section to a role's or user's hidden list."""
    if actor is not None:
        require_allowed(actor, "manage_permissions")
    _validate_target_type(scope)
    target = _normalize_target(scope, target)

    if kind == "action":
        if not validate_action_code(value):
            raise ValidationFailed(f"Unknown action '{value}'", details={"value": value})
    elif kind == "section":
        if not (validate_section_code(value) or validate_action_code(value)):
            raise ValidationFailed(f"Unknown section '{value}'", details={"value": value})
    else:
        raise ValidationFailed("kind must be 'action' or 'section'", details={"kind": kind})

    entry = db.session.query(HiddenEntry).filter_by(scope=scope, target=target, kind=kind, value=value).first()
    if entry is None:
        entry = HiddenEntry(scope=scope, target=target, kind=kind, value=value)
        db.session.add(entry)
        db.session.commit()
        logger.info("Hidden %s '%s' for %s=%s by=%s", kind, value, scope, target, _who(actor))
    return entry


def unhide(*, actor: Actor | None, scope: str, target: str, kind: str, value: str) -> bool:
    if actor is not None:
        require_allowed(actor, "manage_permissions")
    _validate_target_type(scope)
    target = _normalize_target(scope, target)

    entry = db.session.query(HiddenEntry).filter_by(scope=scope, target=target, kind=kind, value=value).first()
    if entry is None:
        return False
    db.session.delete(entry)
    db.session.commit()
    logger.info("Unhidden %s '%s' for %s=%s by=%s", kind, value, scope, target, _who(actor))
    return True


def get_system_setting() -> SystemSetting:
    setting = db.session.get(SystemSetting, 1)
    if setting is None:
        setting = SystemSetting(id=1, global_system_lock=False)
        db.session.add(setting)
        db.session.flush()
    return setting


def set_global_lock(*, actor: Actor | None, enabled: bool) -> SystemSetting:
    """
    Turn the platform-wide lock on or off.

    actor=None is the operator path used by the CLI.
    """
    if actor is not None:
        require_allowed(actor, "manage_permissions")
    setting = get_system_setting()
    setting.global_system_lock = bool(enabled)
    setting.updated_by_user_id = actor.id if actor else None
    db.session.commit()
    logger.warning("Global system lock %s by=%s", "ENABLED" if enabled else "disabled", _who(actor))
    return setting


def create_role(
    *,
    actor: Actor | None,
    name: str,
    description: str | None = None,
    is_lock_exempt: bool = False,
) -> Role:
    if actor is not None:
        require_allowed(actor, "manage_permissions")
    name = normalize_role(name)
    if not name:
        raise ValidationFailed("Role name is required")
    if db.session.query(Role).filter_by(name=name).first() is not None:
        raise ValidationFailed(f"Role '{name}' already exists", details={"name": name})

    role = Role(name=name, description=description, is_lock_exempt=bool(is_lock_exempt))
    db.session.add(role)
    db.session.commit()
    logger.info("Role created: %s lock_exempt=%s", name, role.is_lock_exempt)
    return role


def get_role(name: str) -> Role:
    role = db.session.query(Role).filter_by(name=normalize_role(name)).first()
    if role is None:
        raise NotFound(f"Role '{name}' not found")
    return role


def ensure_default_roles() -> int:
    """
    Create the default roles and their hidden-action seeds if missing.

    Idempotent. Returns the number of roles created.
    """
    created = 0
    for name, description, lock_exempt in DEFAULT_ROLES:
        if db.session.query(Role).filter_by(name=name).first() is None:
            db.session.add(Role(name=name, description=description, is_lock_exempt=lock_exempt))
            created += 1
            for action in DEFAULT_ROLE_HIDDEN_ACTIONS.get(name, []):
                db.session.add(HiddenEntry(scope="role", target=name, kind="action", value=action))
    get_system_setting()
    db.session.commit()
    return created
