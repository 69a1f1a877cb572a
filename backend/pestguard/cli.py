# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/pestguard/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables that do not exist yet.
# - python -m flask system seed-demo
#   Idempotent: demo customer, store, admin and employee (password: DEMO_PASSWORD).
#
# Access inspection:
# - python -m flask access store-grants 10
#   Effective grants on a store (direct + inherited from its customer).
# - python -m flask access owner-stores 4
#   Store ids an access owner may act upon.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30
#   Delete expired/revoked session tokens older than the retention window.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Admin, Customer, Employee, Store
from .services.access_service import AccessResolver
from .services.auth_service import create_staff_account
from .services import session_service
from .validation import ServiceError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Seed demo data for local development.

    SECURITY: The demo password comes from DEMO_PASSWORD. Never run this
    against production.
    """
    password = current_app.config["DEMO_PASSWORD"]

    customer = db.session.query(Customer).filter_by(code="DEMO").first()
    if not customer:
        customer = Customer(title="Demo Gıda A.Ş.", code="DEMO", city="İstanbul")
        db.session.add(customer)
        db.session.commit()
        click.echo(f"PASS Created customer {customer.title} (ID: {customer.id})")
    else:
        click.echo(f"PASS Using existing customer {customer.title} (ID: {customer.id})")

    store = db.session.query(Store).filter_by(customer_id=customer.id, code="D-001").first()
    if not store:
        store = Store(customer_id=customer.id, name="Kadıköy Şube", code="D-001", city="İstanbul")
        db.session.add(store)
        db.session.commit()
        click.echo(f"PASS Created store {store.label} (ID: {store.id})")
    else:
        click.echo(f"PASS Using existing store {store.label} (ID: {store.id})")

    for kind, model, email, name in (
        ("admin", Admin, "admin@pestguard.local", "Demo Admin"),
        ("employee", Employee, "tech@pestguard.local", "Demo Teknisyen"),
    ):
        if db.session.query(model).filter_by(email=email).first():
            click.echo(f"PASS {kind} {email} already exists")
            continue
        try:
            account = create_staff_account(kind, email=email, password=password, full_name=name)
        except ServiceError as exc:
            raise click.ClickException(str(exc))
        click.echo(f"PASS Created {kind} {account.email} (ID: {account.id})")

    click.echo("DONE Demo data ready")


@click.group('access')
def access_group():
    """Access grant inspection."""


@access_group.command('store-grants')
@click.argument('store_id', type=int)
@with_appcontext
def store_grants(store_id):
    """List effective grants on a store."""
    try:
        grants = AccessResolver(db.session).list_grants_for_store(store_id)
    except ServiceError as exc:
        raise click.ClickException(str(exc))

    if not grants:
        click.echo("No grants.")
        return
    for item in grants:
        principal = item.principal.name if item.principal else "(unknown)"
        click.echo(
            f"#{item.grant.id:<5} {item.grant.principal_type:<9} {principal:<30} {item.scope_label}"
        )


@access_group.command('owner-stores')
@click.argument('owner_id', type=int)
@with_appcontext
def owner_stores(owner_id):
    """List the stores an access owner may act upon."""
    stores = AccessResolver(db.session).list_accessible_stores(owner_id)
    if not stores:
        click.echo("No accessible stores.")
        return
    for store in stores:
        click.echo(f"{store.id:<6} {store.label}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance and retention commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} session tokens older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(access_group)
    app.cli.add_command(maintenance_group)
