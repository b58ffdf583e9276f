# Overview: Flask API routes for authorization checks and permission administration.

"""
Authorization API

GET /api/authz/check is the isAllowed operation: it answers for the
calling actor and never raises on a deny. Everything else here edits the
stored configuration and requires manage_permissions.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_actor
from ..errors import ValidationFailed
from ..models import HiddenEntry, PermissionOverride, Role
from ..extensions import db
from ..permissions import ACTION_DEFINITIONS, SECTION_DEFINITIONS, get_action_definition
from ..services import authorization_service


authz_bp = Blueprint("authz", __name__, url_prefix="/api/authz")


@authz_bp.get("/check")
@require_actor
def check_route():
    """Query: action=<code>. Response: {"action", "allowed", "rule"}"""
    action = (request.args.get("action") or "").strip()
    if not action:
        raise ValidationFailed("action query parameter is required")
    config = authorization_service.load_authorization_config()
    allowed, rule = authorization_service.explain(g.actor, action, config)
    return jsonify({"action": action, "allowed": allowed, "rule": rule}), 200


@authz_bp.get("/catalog")
@require_actor
def catalog_route():
    return jsonify({
        "actions": [get_action_definition(a[0]) for a in ACTION_DEFINITIONS],
        "sections": [{"code": s[0], "name": s[1], "description": s[2]} for s in SECTION_DEFINITIONS],
    }), 200


@authz_bp.get("/config")
@require_actor
def config_route():
    authorization_service.require_allowed(g.actor, "manage_permissions", resource=request.path)
    return jsonify({
        "system": authorization_service.get_system_setting().to_dict(),
        "roles": [r.to_dict() for r in db.session.query(Role).order_by(Role.name).all()],
        "overrides": [o.to_dict() for o in db.session.query(PermissionOverride).order_by(PermissionOverride.id).all()],
        "hidden": [h.to_dict() for h in db.session.query(HiddenEntry).order_by(HiddenEntry.id).all()],
    }), 200


@authz_bp.put("/overrides")
@require_actor
def set_override_route():
    """
    Body: {"target_type": "user"|"role", "target": "...", "action": "...", "is_allowed": true|false|null}

    is_allowed null removes the override.
    """
    payload = request.get_json(silent=True) or {}
    override = authorization_service.set_override(
        actor=g.actor,
        target_type=payload.get("target_type"),
        target=payload.get("target"),
        action=payload.get("action"),
        is_allowed=payload.get("is_allowed"),
        notes=payload.get("notes"),
    )
    return jsonify({"override": override.to_dict() if override else None}), 200


@authz_bp.post("/hidden")
@require_actor
def hide_route():
    """Body: {"scope": "role"|"user", "target": "...", "kind": "action"|"section", "value": "..."}"""
    payload = request.get_json(silent=True) or {}
    entry = authorization_service.hide(
        actor=g.actor,
        scope=payload.get("scope"),
        target=payload.get("target"),
        kind=payload.get("kind"),
        value=payload.get("value"),
    )
    return jsonify({"hidden": entry.to_dict()}), 201


@authz_bp.delete("/hidden")
@require_actor
def unhide_route():
    payload = request.get_json(silent=True) or {}
    removed = authorization_service.unhide(
        actor=g.actor,
        scope=payload.get("scope"),
        target=payload.get("target"),
        kind=payload.get("kind"),
        value=payload.get("value"),
    )
    return jsonify({"removed": removed}), 200


@authz_bp.post("/lock")
@require_actor
def set_lock_route():
    """Body: {"enabled": true}"""
    payload = request.get_json(silent=True) or {}
    setting = authorization_service.set_global_lock(actor=g.actor, enabled=bool(payload.get("enabled")))
    return jsonify({"system": setting.to_dict()}), 200


@authz_bp.post("/roles")
@require_actor
def create_role_route():
    payload = request.get_json(silent=True) or {}
    role = authorization_service.create_role(
        actor=g.actor,
        name=payload.get("name"),
        description=payload.get("description"),
        is_lock_exempt=bool(payload.get("is_lock_exempt", False)),
    )
    return jsonify({"role": role.to_dict()}), 201
