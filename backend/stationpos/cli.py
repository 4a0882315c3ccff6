# Overview: Flask CLI command groups for bootstrap and support tasks.

# backend/stationpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db [--company "Station Co"] [--store "Main Station"]
#   Idempotent bootstrap: creates tables, a default company, store and cashier.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User management:
# - python -m flask users list [--company-id 1]
#   List users with role and active status.
# - python -m flask users create --username jdoe --first-name Jane --last-name Doe --role cashier
#   Create a user in the default (or given) company.
#
# Store staffing:
# - python -m flask stores add-employee --store-id 1 --user-id 3
#   Allow a cashier to take orders at a store.
# - python -m flask stores remove-employee --store-id 1 --user-id 3
#
# Sessions:
# - python -m flask sessions issue --username jdoe
#   Print a bearer token for a user (support/testing; login lives elsewhere).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Company, Store, User
from .models.auth import USER_ROLES
from .services import session_service, store_access_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@click.option('--company', 'company_name', default='Default Company', help='Company name')
@click.option('--store', 'store_name', default='Main Store', help='Store name')
@with_appcontext
def init_db(company_name, store_name):
    """
    Create tables and seed a default company, store and cashier.

    Safe to run repeatedly: existing rows are reused.
    """
    click.echo("START Initializing database...")
    db.create_all()

    company = db.session.query(Company).first()
    if not company:
        company = Company(name=company_name, is_active=True)
        db.session.add(company)
        db.session.commit()
        click.echo(f"PASS Created company: {company.name} (ID: {company.id})")
    else:
        click.echo(f"PASS Using existing company: {company.name} (ID: {company.id})")

    store = db.session.query(Store).filter_by(company_id=company.id).first()
    if not store:
        store = Store(company_id=company.id, name=store_name)
        db.session.add(store)
        db.session.commit()
        click.echo(f"PASS Created store: {store.name} (ID: {store.id})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    cashier = db.session.query(User).filter_by(company_id=company.id, username="cashier").first()
    if not cashier:
        cashier = User(
            company_id=company.id,
            username="cashier",
            first_name="Default",
            last_name="Cashier",
            role="cashier",
        )
        db.session.add(cashier)
        db.session.commit()
        click.echo(f"PASS Created user: cashier (ID: {cashier.id})")

    store_access_service.add_employee(store_id=store.id, user_id=cashier.id)
    click.echo("PASS Database initialized.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init-db' to seed defaults.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--company-id', type=int, help='Filter by company')
@with_appcontext
def list_users(company_id):
    """List users with role and active status."""
    query = db.session.query(User)
    if company_id:
        query = query.filter_by(company_id=company_id)

    users = query.order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<20} {user.role:<10} {status:<8} company={user.company_id}")


@users_group.command('create')
@click.option('--company-id', type=int, help='Company ID (uses default if not specified)')
@click.option('--username', prompt=True, help='Username')
@click.option('--first-name', prompt=True, help='First name')
@click.option('--last-name', prompt=True, help='Last name')
@click.option('--role', type=click.Choice(list(USER_ROLES)), default='cashier', show_default=True, help='Role')
@with_appcontext
def create_user_cli(company_id, username, first_name, last_name, role):
    """Create a user in a company."""
    if company_id:
        company = db.session.query(Company).filter_by(id=company_id).first()
        if not company:
            click.echo(f"FAIL Company ID {company_id} not found")
            return
    else:
        company = db.session.query(Company).first()
        if not company:
            click.echo("FAIL No company found. Run 'python -m flask system init-db' first.")
            return

    existing = db.session.query(User).filter_by(company_id=company.id, username=username).first()
    if existing:
        click.echo(f"FAIL Username '{username}' already exists in {company.name}")
        return

    user = User(
        company_id=company.id,
        username=username,
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {username} (ID: {user.id}, role: {role})")


@click.group('stores')
def stores_group():
    """Store staffing commands."""


@stores_group.command('add-employee')
@click.option('--store-id', type=int, required=True)
@click.option('--user-id', type=int, required=True)
@with_appcontext
def add_employee_cli(store_id, user_id):
    """Allow a user to take orders at a store."""
    try:
        store = store_access_service.add_employee(store_id=store_id, user_id=user_id)
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS User {user_id} can now take orders at {store.name}")


@stores_group.command('remove-employee')
@click.option('--store-id', type=int, required=True)
@click.option('--user-id', type=int, required=True)
@with_appcontext
def remove_employee_cli(store_id, user_id):
    """Remove a user from a store's employees."""
    if store_access_service.remove_employee(store_id=store_id, user_id=user_id):
        click.echo(f"PASS User {user_id} removed from store {store_id}")
    else:
        click.echo(f"FAIL User {user_id} is not an employee of store {store_id}")


@click.group('sessions')
def sessions_group():
    """Session token commands."""


@sessions_group.command('issue')
@click.option('--username', required=True)
@click.option('--company-id', type=int, help='Disambiguate usernames shared across companies')
@with_appcontext
def issue_session(username, company_id):
    """Print a bearer token for a user."""
    query = db.session.query(User).filter_by(username=username)
    if company_id:
        query = query.filter_by(company_id=company_id)

    user = query.first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return

    try:
        _, token = session_service.create_session(user.id, user_agent="flask-cli")
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(token)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(sessions_group)
