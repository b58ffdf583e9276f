# Overview: Flask CLI command groups for bootstrap, permission administration and ledger inspection.

# backend/ledgerpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--branch "Main Branch"]
#   Idempotent bootstrap: tables, default branch, roles, hidden-action seeds, super-admin and demo users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --username sara --role cashier --branch-id 1
# - python -m flask users list
#
# Branches:
# - python -m flask branches list
# - python -m flask branches status 2 closed_temp
#
# Permissions:
# - python -m flask perms list [--category SALES]
# - python -m flask perms check cashier delete_invoice
#   Resolve an action for a user and print the deciding rule.
# - python -m flask perms lock | unlock
#   Toggle the global system lock.
# - python -m flask perms hide role cashier action delete_invoice
# - python -m flask perms unhide role cashier action delete_invoice
# - python -m flask perms override user sara delete_invoice allow|deny|clear
#
# Ledger inspection:
# - python -m flask suppliers statement 3
# - python -m flask shifts list [--status open] [--username sara]
# - python -m flask products low-stock [--branch-id 1]

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .identity import Actor
from .models import Branch, Role, User
from .permissions import ACTION_DEFINITIONS, get_actions_by_category
from .services import authorization_service, shift_service, staff_service, stock_service, supplier_service
from .time_utils import cents_to_str


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--branch', 'branch_name', default='Main Branch', help='Default branch name')
@with_appcontext
def init_system(branch_name):
    """
    Initialize the ledger: tables, default branch, roles and users.

    Creates:
    - Tables (db.create_all; use flask db upgrade for managed schemas)
    - Default branch
    - Roles: admin, it_support, manager, cashier, accountant (with hidden-action seeds)
    - Users: the super-admin (no branch), manager and cashier in the default branch
    """
    click.echo("START Initializing ledger...")
    db.create_all()

    branch = db.session.query(Branch).filter_by(name=branch_name).first()
    if not branch:
        branch = staff_service.create_branch(name=branch_name, operational_number="1")
        click.echo(f"PASS Created default branch: {branch.name} (ID: {branch.id})")
    else:
        click.echo(f"PASS Using existing branch: {branch.name} (ID: {branch.id})")

    click.echo("\nLIST Creating roles...")
    created = authorization_service.ensure_default_roles()
    roles = db.session.query(Role).order_by(Role.name).all()
    click.echo(f"PASS {created} new role(s); roles: {', '.join(r.name for r in roles)}")

    click.echo("\nUSERS Creating default users...")
    super_admin = current_app.config["SUPER_ADMIN_USERNAME"]
    default_users = [
        (super_admin, "admin", None),
        ("manager", "manager", branch.id),
        ("cashier", "cashier", branch.id),
    ]
    for username, role_name, branch_id in default_users:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        user = staff_service.create_user(username=username, role=role_name, branch_id=branch_id)
        click.echo(f"PASS Created user: {username} (ID: {user.id}) with role '{role_name}'")

    click.echo("\n" + "=" * 60)
    click.echo("DONE Ledger initialized")
    click.echo("=" * 60)


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.confirm("This deletes ALL data. Continue?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


# =============================================================================
# USERS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--role', default='cashier', show_default=True, help='Role name')
@click.option('--branch-id', type=int, help='Branch ID (omit for head office)')
@click.option('--full-name', help='Display name')
@with_appcontext
def create_user_cli(username, role, branch_id, full_name):
    try:
        user = staff_service.create_user(username=username, role=role, branch_id=branch_id, full_name=full_name)
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<20} {user.role:<12} branch={user.branch_id}  {status}")


# =============================================================================
# BRANCHES
# =============================================================================

@click.group('branches')
def branches_group():
    """Branch inspection and status."""


@branches_group.command('list')
@with_appcontext
def list_branches_cli():
    for branch in db.session.query(Branch).order_by(Branch.id).all():
        click.echo(f"{branch.id:>4}  {branch.name:<24} #{branch.operational_number:<6} {branch.status}")


@branches_group.command('status')
@click.argument('branch_id', type=int)
@click.argument('status', type=click.Choice(staff_service.BRANCH_STATUSES))
@with_appcontext
def branch_status_cli(branch_id, status):
    try:
        branch = staff_service.set_branch_status(branch_id, status)
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Branch '{branch.name}' is now {branch.status}")


# =============================================================================
# PERMISSIONS
# =============================================================================

@click.group('perms')
def perms_group():
    """Authorization configuration commands."""


@perms_group.command('list')
@click.option('--category', help='Filter by category')
@with_appcontext
def list_actions(category):
    actions = get_actions_by_category(category) if category else ACTION_DEFINITIONS
    for code, name, description, cat in actions:
        click.echo(f"{code:<26} {cat:<12} {description}")


@perms_group.command('check')
@click.argument('username')
@click.argument('action')
@with_appcontext
def check_permission_cli(username, action):
    """Resolve ACTION for USERNAME and show the deciding rule."""
    try:
        user = staff_service.get_user_by_username(username)
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        return

    config = authorization_service.load_authorization_config()
    allowed, rule = authorization_service.explain(Actor.from_user(user), action, config)
    if allowed:
        click.echo(f"PASS User '{username}' MAY '{action}' (rule: {rule})")
    else:
        click.echo(f"FAIL User '{username}' MAY NOT '{action}' (rule: {rule})")
    click.echo(f"\nRole: {user.role}  Global lock: {'ON' if config.global_lock else 'off'}")


@perms_group.command('lock')
@with_appcontext
def lock_cli():
    """Enable the global system lock."""
    authorization_service.set_global_lock(actor=None, enabled=True)
    click.echo("PASS Global system lock ENABLED")


@perms_group.command('unlock')
@with_appcontext
def unlock_cli():
    """Disable the global system lock."""
    authorization_service.set_global_lock(actor=None, enabled=False)
    click.echo("PASS Global system lock disabled")


@perms_group.command('hide')
@click.argument('scope', type=click.Choice(['role', 'user']))
@click.argument('target')
@click.argument('kind', type=click.Choice(['action', 'section']))
@click.argument('value')
@with_appcontext
def hide_cli(scope, target, kind, value):
    try:
        authorization_service.hide(actor=None, scope=scope, target=target, kind=kind, value=value)
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Hidden {kind} '{value}' for {scope} '{target}'")


@perms_group.command('unhide')
@click.argument('scope', type=click.Choice(['role', 'user']))
@click.argument('target')
@click.argument('kind', type=click.Choice(['action', 'section']))
@click.argument('value')
@with_appcontext
def unhide_cli(scope, target, kind, value):
    removed = authorization_service.unhide(actor=None, scope=scope, target=target, kind=kind, value=value)
    if removed:
        click.echo(f"PASS Unhidden {kind} '{value}' for {scope} '{target}'")
    else:
        click.echo(f"WARN  {kind} '{value}' was not hidden for {scope} '{target}'")


@perms_group.command('override')
@click.argument('target_type', type=click.Choice(['user', 'role']))
@click.argument('target')
@click.argument('action')
@click.argument('decision', type=click.Choice(['allow', 'deny', 'clear']))
@click.option('--notes', help='Why the override exists')
@with_appcontext
def override_cli(target_type, target, action, decision, notes):
    is_allowed = {"allow": True, "deny": False, "clear": None}[decision]
    try:
        authorization_service.set_override(
            actor=None,
            target_type=target_type,
            target=target,
            action=action,
            is_allowed=is_allowed,
            notes=notes,
        )
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Override {target_type} '{target}' {action} -> {decision}")


# =============================================================================
# LEDGER INSPECTION
# =============================================================================

@click.group('suppliers')
def suppliers_group():
    """Supplier ledger inspection."""


@suppliers_group.command('statement')
@click.argument('supplier_id', type=int)
@with_appcontext
def supplier_statement_cli(supplier_id):
    try:
        statement = supplier_service.supplier_statement(supplier_id)
    except LedgerError as e:
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"Supplier: {statement['supplier']['name']} (ID: {supplier_id})")
    click.echo(f"  Purchases:      {statement['purchase_count']}")
    click.echo(f"  Total supplied: {cents_to_str(statement['total_supplied_cents'])}")
    click.echo(f"  Total paid:     {cents_to_str(statement['total_paid_cents'])}")
    click.echo(f"  Current debt:   {cents_to_str(statement['current_debt_cents'])}")
    click.echo(f"  Payments:       {cents_to_str(statement['payments_total_cents'])}")
    if statement["drift_cents"]:
        click.echo(f"FAIL Drift detected: {cents_to_str(statement['drift_cents'])}")
    else:
        click.echo("PASS No drift")


@click.group('shifts')
def shifts_group():
    """Shift inspection."""


@shifts_group.command('list')
@click.option('--status', type=click.Choice(['open', 'closed']), help='Filter by status')
@click.option('--username', help='Filter by user')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def list_shifts_cli(status, username, limit):
    user_id = None
    if username:
        try:
            user_id = staff_service.get_user_by_username(username).id
        except LedgerError as e:
            click.echo(f"FAIL {e.message}")
            return

    shifts = shift_service.list_shifts(user_id=user_id, status=status, limit=limit)
    if not shifts:
        click.echo("No shifts found")
        return
    for shift in shifts:
        if shift.status == "open":
            balance = f"expected(live)={cents_to_str(shift_service.expected_balance_cents(shift))}"
        else:
            balance = (
                f"expected={cents_to_str(shift.expected_cents)} "
                f"actual={cents_to_str(shift.actual_cents)} "
                f"diff={cents_to_str(shift.difference_cents)}"
            )
        click.echo(f"{shift.id:>4}  user={shift.user_id:<4} {shift.status:<6} opening={cents_to_str(shift.opening_cents)}  {balance}")


@click.group('products')
def products_group():
    """Product catalog inspection."""


@products_group.command('low-stock')
@click.option('--branch-id', type=int, help='Branch ID')
@with_appcontext
def low_stock_cli(branch_id):
    products = stock_service.low_stock_products(branch_id=branch_id)
    if not products:
        click.echo("PASS No products at or below their threshold")
        return
    for product in products:
        click.echo(f"WARN  {product.code}  {product.name:<30} stock={product.stock} threshold={product.low_stock_threshold}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(branches_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(suppliers_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(products_group)
