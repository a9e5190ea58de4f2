# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/supplytrack/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP (PowerShell: $env:FLASK_APP="supplytrack"; bash: export FLASK_APP=supplytrack).
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users (identity references for the lifecycle engine):
# - python -m flask users create --username acme --role supplier [--company "Acme Supply"]
# - python -m flask users list [--role distributor]
# - python -m flask users issue-token acme [--hours 24]
#   Developer bootstrap: prints a bearer token for the user.
#
# Products:
# - python -m flask products show TRK-XXXX
#   Print status, owner and timeline for a product.

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .domain import Role
from .extensions import db
from .models import User
from .services import session_service
from .services.errors import NotFound
from .services.products_service import resolve_product


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate every table."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--role', type=click.Choice([r.value for r in Role]), prompt=True)
@click.option('--email', default=None)
@click.option('--company', 'company_name', default=None)
@with_appcontext
def create_user_cmd(username, role, email, company_name):
    """Create a user with the given role."""
    if db.session.query(User).filter_by(username=username).first():
        click.echo(f"FAIL User '{username}' already exists")
        raise SystemExit(1)
    user = User(username=username, role=role, email=email, company_name=company_name, is_active=True)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user {user.username} (ID: {user.id}) with role '{user.role}'")


@users_group.command('list')
@click.option('--role', type=click.Choice([r.value for r in Role]), default=None)
@with_appcontext
def list_users(role):
    """List users with role and active status."""
    q = db.session.query(User)
    if role:
        q = q.filter_by(role=role)
    users = q.order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>5}  {user.username:<24} {user.role:<18} {status}")


@users_group.command('issue-token')
@click.argument('username')
@click.option('--hours', default=24, show_default=True, type=int)
@with_appcontext
def issue_token_cmd(username, hours):
    """Print a bearer token for USERNAME (developer bootstrap)."""
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
        raise SystemExit(1)
    token = session_service.issue_token(user.id, ttl=timedelta(hours=hours))
    click.echo(token)


@click.group('products')
def products_group():
    """Product inspection commands."""


@products_group.command('show')
@click.argument('ref')
@with_appcontext
def show_product(ref):
    """Print a product's lifecycle state and timeline."""
    try:
        product = resolve_product(ref)
    except NotFound as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"{product.tracking_number}  {product.name}")
    click.echo(f"  status:   {product.status} (version {product.version_id})")
    click.echo(f"  owner:    {product.current_owner.display_name if product.current_owner else product.current_owner_id}")
    click.echo(f"  location: {product.current_location}")
    click.echo(f"  quantity: {product.quantity}")
    click.echo("  timeline:")
    for entry in product.timeline:
        click.echo(f"    {entry.position:>3}. [{entry.status}] {entry.title} @ {entry.location or '-'}")


def register_commands(app):
    """Register CLI command groups."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
