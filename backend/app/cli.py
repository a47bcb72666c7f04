# Overview: Flask CLI command group for bootstrap and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to app (PowerShell: $env:FLASK_APP="app").
# - Use: python -m flask shop <command> [options]
#
# - python -m flask shop init
#   Idempotent bootstrap: creates tables, loyalty tiers/perks, rewards,
#   shipping options and payment methods.
# - python -m flask shop create-admin --name "Admin" --email admin@shop.local --password "Password123"
#   Create an administrator account (prompts if options are omitted).
# - python -m flask shop seed-catalog
#   Load demo products (with images, sizes, colors) and demo coupons.
# - python -m flask shop audit-carts [--fix]
#   Compare stored cart aggregates with their items; --fix rewrites drifted carts.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Cart
from .errors import ShopError
from .seed import seed_reference_data, seed_catalog
from .services import auth_service, cart_service


@click.group('shop')
def shop_group():
    """Storefront bootstrap and maintenance commands."""
    pass


@shop_group.command('init')
@with_appcontext
def init_shop():
    """Create tables and load reference data. Safe to run repeatedly."""
    click.echo("START Initializing storefront...")
    db.create_all()
    click.echo("PASS Tables ready")

    created = seed_reference_data()
    click.echo(f"PASS Loyalty tiers created: {created['tiers']}")
    click.echo(f"PASS Rewards created: {created['rewards']}")
    click.echo(f"PASS Shipping options created: {created['shipping_options']}")
    click.echo(f"PASS Payment methods created: {created['payment_methods']}")
    click.echo("DONE Storefront initialized")


@shop_group.command('create-admin')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_admin(name, email, password):
    """Create an administrator account."""
    try:
        result = auth_service.register(name, email, password, is_admin=True)
    except ShopError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created admin: {result['user']['email']} (ID: {result['user']['id']})")


@shop_group.command('seed-catalog')
@with_appcontext
def seed_catalog_cli():
    """Load demo products and coupons."""
    created = seed_catalog()
    click.echo(f"PASS Products created: {created['products']}")
    click.echo(f"PASS Coupons created: {created['coupons']}")


@shop_group.command('audit-carts')
@click.option('--fix', is_flag=True, help='Rewrite drifted aggregates from cart items')
@with_appcontext
def audit_carts(fix):
    """Report carts whose stored aggregates drifted from their items."""
    drifted = 0
    for cart in db.session.query(Cart).order_by(Cart.id.asc()).all():
        report = cart_service.audit_cart(cart, fix=fix)
        if report is None:
            continue
        drifted += 1
        click.echo(
            f"WARN Cart {report['cart_id']} (user {report['user_id']}): "
            f"stored={report['stored']} expected={report['expected']}"
        )

    if fix and drifted:
        db.session.commit()
        click.echo(f"PASS Repaired {drifted} cart(s)")
    elif drifted:
        click.echo(f"FAIL {drifted} cart(s) drifted (re-run with --fix to repair)")
        raise SystemExit(1)
    else:
        click.echo("PASS All cart aggregates consistent")


def register_commands(app):
    app.cli.add_command(shop_group)
