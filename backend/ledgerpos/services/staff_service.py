# Overview: Branches and users as seen by the ledger core.

from __future__ import annotations

import logging

from ..errors import NotFound, ValidationFailed
from ..extensions import db
from ..models import Branch, User
from .authorization_service import get_role


logger = logging.getLogger(__name__)

BRANCH_STATUSES = ("active", "closed_temp")


def create_branch(
    *,
    name: str,
    operational_number: str,
    location: str | None = None,
    phone: str | None = None,
) -> Branch:
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Branch name is required")
    if db.session.query(Branch).filter_by(name=name).first() is not None:
        raise ValidationFailed(f"Branch '{name}' already exists", details={"name": name})

    branch = Branch(name=name, operational_number=operational_number, location=location, phone=phone)
    db.session.add(branch)
    db.session.commit()
    logger.info("Branch created: id=%s name=%s", branch.id, branch.name)
    return branch


def set_branch_status(branch_id: int, status: str) -> Branch:
    if status not in BRANCH_STATUSES:
        raise ValidationFailed(f"Invalid branch status '{status}'", details={"status": status})
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise NotFound(f"Branch {branch_id} not found")
    branch.status = status
    db.session.commit()
    return branch


def create_user(
    *,
    username: str,
    role: str = "cashier",
    branch_id: int | None = None,
    full_name: str | None = None,
) -> User:
    username = (username or "").strip()
    if not username:
        raise ValidationFailed("Username is required")
    if db.session.query(User).filter_by(username=username).first() is not None:
        raise ValidationFailed(f"User '{username}' already exists", details={"username": username})
    if branch_id is not None and db.session.get(Branch, branch_id) is None:
        raise NotFound(f"Branch {branch_id} not found")

    user = User(username=username, role=get_role(role).name, branch_id=branch_id, full_name=full_name)
    db.session.add(user)
    db.session.commit()
    logger.info("User created: id=%s username=%s role=%s branch=%s", user.id, user.username, user.role, branch_id)
    return user


def get_user_by_username(username: str) -> User:
    user = db.session.query(User).filter_by(username=username).first()
    if user is None:
        raise NotFound(f"User '{username}' not found", details={"username": username})
    return user
