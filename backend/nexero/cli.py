# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/nexero/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Tenants:
# - python -m flask tenants list
# - python -m flask tenants create --name "Loja Centro" --code "CENTRO"
#
# Users:
# - python -m flask users list [--org-id 1]
# - python -m flask users create --org-id 1 --email admin@nexero.local --name "Admin" --password "Password123!" --role ADMIN
#
# Inventory:
# - python -m flask inventory reconcile --org-id 1 [--product-id 5]
#   Compare product stock against the latest inventory movement.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import DomainError
from .models import Organization, User
from .services.auth_service import create_user
from .services.inventory_service import reconcile_stock
from .services.permission_service import ROLES
from .services.tenant_service import OperationContext


@click.group('tenants')
def tenants_group():
    """Organization (tenant) management commands."""


@tenants_group.command('list')
@with_appcontext
def list_tenants():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.id).all()

    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Users'}")
    click.echo("="*70)

    for org in orgs:
        user_count = db.session.query(User).filter_by(org_id=org.id).count()
        active_str = "Yes" if org.is_active else "No"
        click.echo(f"{org.id:<5} {org.name:<30} {org.code or '-':<15} {active_str:<8} {user_count}")

    click.echo("="*70 + "\n")


@tenants_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_tenant_cli(name, code):
    """Create a new organization (tenant)."""
    existing = db.session.query(Organization).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Organization with code '{code}' already exists")
        return

    org = Organization(name=name, code=code, is_active=True)
    db.session.add(org)
    db.session.commit()

    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name (printed as salesperson)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(org_id, email, name, password, role):
    """
    Create a new user inside an organization.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(email=email, name=name, password=password, org_id=org_id, role=role)
    except DomainError as e:
        db.session.rollback()
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}, role: {user.role}, org: {user.org_id})")


@users_group.command('list')
@click.option('--org-id', type=int, help='Filter by organization ID')
@with_appcontext
def list_users(org_id):
    """List all users with their roles."""
    query = db.session.query(User)

    if org_id:
        query = query.filter_by(org_id=org_id)

    users = query.order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Org':<5} {'Name':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.org_id:<5} {user.name:<20} {user.email:<30} {active_str:<8} {user.role}")

    click.echo("="*90 + "\n")


@click.group('inventory')
def inventory_group():
    """Inventory ledger maintenance commands."""


@inventory_group.command('reconcile')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--product-id', type=int, help='Check a single product')
@with_appcontext
def reconcile_cli(org_id, product_id):
    """Report products whose stock differs from their latest movement."""
    ctx = OperationContext(org_id=org_id, user_id=None, salesperson=None)
    mismatches = reconcile_stock(ctx, product_id=product_id)

    if not mismatches:
        click.echo(f"PASS Stock matches the movement ledger (org {org_id})")
        return

    click.echo(f"FAIL {len(mismatches)} product(s) out of sync:")
    for row in mismatches:
        click.echo(
            f"  #{row['product_id']} {row['sku']:<12} {row['name']:<30} "
            f"stock={row['product_stock']} ledger={row['ledger_stock']} diff={row['difference']:+d}"
        )
    click.get_current_context().exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(tenants_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
