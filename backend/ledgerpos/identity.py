# Overview: Actor identity handed to the ledger core by the session layer.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from .extensions import db
from .models import User


@dataclass(frozen=True)
class Actor:
    """
    The current user as the ledger core sees it.

    branch_id is None for head-office users that are not tied to a branch.
    """
    id: int
    username: str
    role: str
    branch_id: int | None = None

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, username=user.username, role=user.role, branch_id=user.branch_id)


def header_identity_provider(request) -> Actor | None:
    """
    Default identity provider: trusts the X-User-Id header.

    Deployments put the real session layer in front of this and replace it
    through app.config["IDENTITY_PROVIDER"].
    """
    raw = request.headers.get("X-User-Id")
    if not raw:
        return None
    try:
        user_id = int(raw)
    except ValueError:
        return None

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return Actor.from_user(user)


def resolve_actor(request) -> Actor | None:
    provider = current_app.config.get("IDENTITY_PROVIDER") or header_identity_provider
    return provider(request)
