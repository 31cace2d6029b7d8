# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create tables (if missing) and the default admin/manager/staff users.
# - python -m flask system seed
#   Load sample categories, products, suppliers and customers for local development.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--role ADMIN]
#   List all users with roles and active status.
# - python -m flask users create --name "Admin" --email admin@backoffice.local --password "Password123!" --role ADMIN
#   Create a user (prompts if options are omitted).
#
# Permission inspection:
# - python -m flask perms list [--role STAFF] [--category SALES]
#   List permissions granted to each role.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired and revoked session tokens older than 30 days.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, Customer, Product, ProductSupplier, Supplier, User
from .permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    ROLES,
    get_permission_definition,
    get_permissions_by_category,
)
from .services import session_service
from .services.auth_service import create_user, PasswordValidationError
from .validation import ValidationError, ConflictError


DEFAULT_PASSWORD = "Password123!"

DEFAULT_USERS = [
    ("Admin", "admin@backoffice.local", "ADMIN"),
    ("Manager", "manager@backoffice.local", "MANAGER"),
    ("Staff", "staff@backoffice.local", "STAFF"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the back office: schema and default users.

    Creates:
    - All tables (no-op for tables that already exist)
    - Users: admin@backoffice.local (ADMIN), manager@backoffice.local (MANAGER),
      staff@backoffice.local (STAFF)
    - All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing back office...")

    db.create_all()
    click.echo("PASS Schema ready")

    click.echo("\nUSERS Creating default users...")
    for name, email, role in DEFAULT_USERS:
        if db.session.query(User.id).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        try:
            create_user(name=name, email=email, password=DEFAULT_PASSWORD, role=role)
            click.echo(f"PASS Created user: {email} with role '{role}'")
        except (PasswordValidationError, ValidationError, ConflictError) as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{email}': {str(e)}")

    click.echo("\n" + "="*60)
    click.echo("DONE Back office initialized")
    click.echo("="*60)
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for _, email, role in DEFAULT_USERS:
        click.echo(f"   {role:<8} -> {email:<28} / {DEFAULT_PASSWORD}")
    click.echo("")


@system_group.command('seed')
@with_appcontext
def seed_sample_data():
    """
    Load sample catalog data for local development.

    Idempotent: rows are matched by SKU / name / email and skipped when present.
    Opening stock is set directly on create, like POST /api/products.
    """
    categories = {}
    for name, description in [
        ("Beverages", "Drinks and liquid refreshments"),
        ("Snacks", "Packaged snack foods"),
        ("Household", "Cleaning and home supplies"),
    ]:
        category = db.session.query(Category).filter_by(name=name).first()
        if not category:
            category = Category(name=name, description=description)
            db.session.add(category)
        categories[name] = category
    db.session.flush()

    suppliers = {}
    for name, email, phone in [
        ("Northwind Traders", "orders@northwind.example", "555-0100"),
        ("Contoso Wholesale", "sales@contoso.example", "555-0101"),
    ]:
        supplier = db.session.query(Supplier).filter_by(name=name).first()
        if not supplier:
            supplier = Supplier(name=name, email=email, phone=phone)
            db.session.add(supplier)
        suppliers[name] = supplier
    db.session.flush()

    created_products = 0
    for sku, name, category, price_cents, cost_cents, quantity, minimum, supplier in [
        ("BEV-001", "Sparkling Water 500ml", "Beverages", 150, 60, 120, 24, "Northwind Traders"),
        ("BEV-002", "Cold Brew Coffee", "Beverages", 450, 200, 40, 10, "Northwind Traders"),
        ("SNK-001", "Sea Salt Crisps", "Snacks", 299, 120, 60, 15, "Contoso Wholesale"),
        ("SNK-002", "Trail Mix", "Snacks", 525, 250, 8, 10, "Contoso Wholesale"),
        ("HOU-001", "Dish Soap", "Household", 375, 150, 30, 5, "Contoso Wholesale"),
    ]:
        if db.session.query(Product.id).filter_by(sku=sku).first():
            continue
        product = Product(
            sku=sku,
            name=name,
            category_id=categories[category].id,
            price_cents=price_cents,
            cost_price_cents=cost_cents,
            quantity=quantity,
            minimum_stock=minimum,
        )
        db.session.add(product)
        db.session.flush()
        db.session.add(ProductSupplier(
            product_id=product.id,
            supplier_id=suppliers[supplier].id,
            is_preferred=True,
            unit_price_cents=cost_cents,
        ))
        created_products += 1

    created_customers = 0
    for name, email, phone, city in [
        ("Ada Lovelace", "ada@example.com", "555-0200", "London"),
        ("Grace Hopper", "grace@example.com", "555-0201", "New York"),
    ]:
        if db.session.query(Customer.id).filter_by(email=email).first():
            continue
        db.session.add(Customer(name=name, email=email, phone=phone, city=city))
        created_customers += 1

    db.session.commit()
    click.echo(f"PASS Seeded {created_products} products, {created_customers} customers")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


# =============================================================================
# USER COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address (login)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES, case_sensitive=False), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, email, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(name=name, email=email, password=password, role=role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return

    click.echo(f"PASS Created user: {user.email} with role '{user.role}' (ID: {user.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@click.option('--role', type=click.Choice(ROLES, case_sensitive=False), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their roles."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role.upper())

    users = query.order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<24} {'Email':<34} {'Role':<9} {'Active'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name:<24} {user.email:<34} {user.role:<9} {active_str}")

    click.echo("="*90 + "\n")


# =============================================================================
# PERMISSION COMMANDS
# =============================================================================

@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', type=click.Choice(ROLES, case_sensitive=False), help='Show a single role')
@click.option('--category', help='Filter by category (e.g. SALES)')
@with_appcontext
def list_permissions_cli(role, category):
    """List permissions granted to each role, optionally filtered by category."""
    roles = [role.upper()] if role else list(ROLES)
    allowed = None
    if category:
        allowed = {perm[0] for perm in get_permissions_by_category(category.upper())}
        if not allowed:
            click.echo(f"FAIL Unknown category '{category}'")
            return

    for role_name in roles:
        codes = sorted(c for c in DEFAULT_ROLE_PERMISSIONS[role_name] if allowed is None or c in allowed)
        click.echo(f"\n{'='*70}")
        click.echo(f"Permissions for role: {role_name}")
        click.echo(f"{'='*70}")
        for code in codes:
            definition = get_permission_definition(code)
            click.echo(f"  {code:<24} {definition['name'] if definition else ''}")
        click.echo(f"\n Total: {len(codes)} permissions")
    click.echo("")


# =============================================================================
# MAINTENANCE COMMANDS
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired and revoked session tokens older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} expired or revoked sessions.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(maintenance_group)
