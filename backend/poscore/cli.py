# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/poscore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to poscore (PowerShell: $env:FLASK_APP="poscore").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables if missing and the default owner, cashier and checker users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username owner2 --email owner2@pos.local --name "Second Owner" --password "Password123" --role owner
#   Create a user (prompts if options are omitted).
#
# Inventory:
# - python -m flask movements list-unapplied
#   Show stock movements that were recorded but whose stock update never landed.
# - python -m flask movements repair
#   Apply every unapplied movement exactly once, oldest first.
# - python -m flask products low-stock
#   List products with 0 < stock <= min stock.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services.auth_service import create_user, PasswordValidationError, VALID_ROLES
from .services.errors import PosError
from .services import inventory_service, movement_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the store: schema plus one user per role.

    Creates:
    - Users: owner/owner@pos.local, cashier/cashier@pos.local, checker/checker@pos.local
    - All passwords default to: "Password123"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing POS core...")

    db.create_all()
    click.echo("PASS Schema ready")

    default_password = "Password123"
    default_users = [
        ("owner", "owner@pos.local", "Store Owner", "owner"),
        ("cashier", "cashier@pos.local", "Cashier", "cashier"),
        ("checker", "checker@pos.local", "Stock Checker", "checker"),
    ]

    for username, email, name, role in default_users:
        try:
            existing = db.session.query(User).filter_by(username=username).first()
            if existing:
                click.echo(f"WARN  User '{username}' already exists, skipping...")
                continue

            create_user(username=username, email=email, password=default_password, name=name, role=role)
            click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")

        except PasswordValidationError as e:
            click.echo(f"FAIL Password validation failed for '{username}': {str(e)}")
        except PosError as e:
            click.echo(f"FAIL Failed to create user '{username}': {str(e)}")

    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo("   owner   -> owner@pos.local   / Password123")
    click.echo("   cashier -> cashier@pos.local / Password123")
    click.echo("   checker -> checker@pos.local / Password123")


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

    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(sorted(VALID_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, name, password, role):
    """
    Create a new user.

    Password must be 8+ characters with at least one letter and one digit.
    """
    try:
        user = create_user(username=username, email=email, password=password, name=name, role=role)
        click.echo(f"PASS Created user: {username} ({email}) with role '{role}' (ID: {user.id})")
        click.echo("SECURITY Password securely hashed with bcrypt")

    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, at least one letter and one digit")
    except PosError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active_str:<8} {user.role}")

    click.echo("="*90 + "\n")


@click.group('movements')
def movements_group():
    """Stock movement maintenance."""


@movements_group.command('list-unapplied')
@with_appcontext
def list_unapplied():
    movements = movement_service.list_unapplied_movements()
    if not movements:
        click.echo("PASS No unapplied movements")
        return

    for m in movements:
        click.echo(
            f"{m.id:<6} {m.created_at:%Y-%m-%d %H:%M:%S}  {m.kind:<9} {m.delta:+d}  "
            f"product={m.product_id} ({m.product_name}) by {m.operator_name}"
        )
    click.echo(f"\nWARN {len(movements)} movement(s) recorded without their stock update")


@movements_group.command('repair')
@with_appcontext
def repair_movements():
    """Apply every recorded-but-unapplied movement exactly once, oldest first."""
    try:
        repaired = movement_service.repair_unapplied_movements()
    except PosError as e:
        click.echo(f"FAIL Repair stopped: {str(e)}")
        raise SystemExit(1)
    click.echo(f"PASS Repaired {repaired} movement(s)")


@click.group('products')
def products_group():
    """Product inspection commands."""


@products_group.command('low-stock')
@with_appcontext
def low_stock():
    products = inventory_service.list_low_stock_products()
    if not products:
        click.echo("PASS No products are low on stock")
        return

    for p in products:
        click.echo(f"{p.id:<6} {p.name:<40} stock={p.current_stock:<5} min={p.min_stock}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(movements_group)
    app.cli.add_command(products_group)
