# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/kora/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (development; production uses `flask db upgrade`).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Platform bosses:
# - python -m flask bosses create --email ops@kora.local --password "Password123!" --full-name "Ops"
#   Bootstrap a platform boss (prompts if options are omitted).
# - python -m flask bosses list
#
# Tenant inspection:
# - python -m flask companies list
#   List companies with seat usage and subscription state.
#
# Role allow-lists:
# - python -m flask perms list [--role rep] [--category ORDERS]

import click
from flask.cli import with_appcontext

from .errors import KoraError
from .extensions import db
from .models import Company, CompanyUser
from .permissions import (
    PERMISSION_DEFINITIONS,
    get_permission_definition,
    get_permissions_by_category,
    get_role_permissions,
)
from .services import boss_service, subscription_service
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask bosses create' to add a boss.")


@click.group('bosses')
def bosses_group():
    """Platform boss account commands."""


@bosses_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password (8..128 chars)')
@click.option('--full-name', default='', help='Display name')
@with_appcontext
def create_boss_cli(email, password, full_name):
    """Create a platform boss."""
    try:
        boss = boss_service.create_boss(email=email, password=password, full_name=full_name)
    except KoraError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created boss: {boss.email} (ID: {boss.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@bosses_group.command('list')
@with_appcontext
def list_bosses_cli():
    """List platform bosses."""
    bosses = boss_service.list_bosses()
    if not bosses:
        click.echo("No bosses found. Run 'python -m flask bosses create' first.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<40} {'Name'}")
    click.echo("="*80)
    for boss in bosses:
        click.echo(f"{boss.id:<5} {boss.email:<40} {boss.full_name or '-'}")
    click.echo("="*80 + "\n")


@click.group('companies')
def companies_group():
    """Tenant inspection commands."""


@companies_group.command('list')
@with_appcontext
def list_companies_cli():
    """List all companies with seat usage and subscription state."""
    companies = db.session.query(Company).order_by(Company.id.asc()).all()

    if not companies:
        click.echo("No companies found.")
        return

    click.echo("\n" + "="*110)
    click.echo(f"{'ID':<5} {'Name':<30} {'Slug':<25} {'Seats':<10} {'Ends at':<22} {'State'}")
    click.echo("="*110)

    for company in companies:
        used = db.session.query(CompanyUser).filter_by(company_id=company.id).count()
        seats = f"{used}/{company.staff_limit + 1}"
        if company.subscription_suspended:
            state = "suspended"
        elif subscription_service.is_expired(company):
            state = "expired"
        else:
            state = "active"
        ends_at = to_utc_z(company.subscription_ends_at) or "-"

        click.echo(f"{company.id:<5} {company.name[:30]:<30} {company.slug[:25]:<25} {seats:<10} {ends_at:<22} {state}")

    click.echo("="*110 + "\n")


@click.group('perms')
def perms_group():
    """Role allow-list inspection."""


@perms_group.command('list')
@click.option('--role', help='Filter by role name')
@click.option('--category', help='Filter by category')
@with_appcontext
def list_permissions_cli(role, category):
    """List operations and the roles allowed to perform them."""
    if role:
        codes = get_role_permissions(role)
        definitions = [get_permission_definition(code) for code in codes]
        title = f"Operations for role: {role}"
    elif category:
        definitions = [get_permission_definition(p[0]) for p in get_permissions_by_category(category)]
        title = f"Operations in category: {category}"
    else:
        definitions = [get_permission_definition(p[0]) for p in PERMISSION_DEFINITIONS]
        title = "All operations"

    click.echo(f"\n{'='*80}")
    click.echo(title)
    click.echo(f"{'='*80}\n")
    click.echo(f"{'Code':<28} {'Category':<10} {'Roles'}")
    click.echo("-"*80)
    for definition in definitions:
        click.echo(f"{definition['code']:<28} {definition['category']:<10} {', '.join(definition['roles'])}")
    click.echo(f"\n Total: {len(definitions)} operations\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(bosses_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(perms_group)
